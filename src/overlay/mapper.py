"""
Image-pixel to display-pixel coordinate mapping.

x and width scale horizontally, y and height vertically. Boxes are not clamped
to the surface; a box may extend past the display edges.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from models.detection import Detection, DisplayBox, FrameDimensions


def compute_scale(source: FrameDimensions, display: FrameDimensions) -> Tuple[float, float]:
    """Return (scale_x, scale_y) from ``source`` pixels to ``display`` pixels."""
    if source.width <= 0 or source.height <= 0:
        raise ValueError(f"Source dimensions must be positive, got {source}")
    return (display.width / source.width, display.height / source.height)


def map_detection(det: Detection, scale_x: float, scale_y: float) -> DisplayBox:
    return DisplayBox(
        x=det.x * scale_x,
        y=det.y * scale_y,
        width=det.width * scale_x,
        height=det.height * scale_y,
        label=det.label,
        confidence=det.confidence,
    )


def map_detections(
    detections: Iterable[Detection],
    source: FrameDimensions,
    display: FrameDimensions,
) -> Tuple[DisplayBox, ...]:
    """Map every detection, preserving order."""
    scale_x, scale_y = compute_scale(source, display)
    return tuple(map_detection(d, scale_x, scale_y) for d in detections)
