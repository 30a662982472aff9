"""
OpenCV renderer for the overlay state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from models.detection import DisplayBox, FrameDimensions, format_label


@dataclass(frozen=True)
class RenderStyle:
    color: Tuple[int, int, int] = (0, 255, 0)  # lime (BGR)
    thickness: int = 2
    font_scale: float = 0.5
    font_thickness: int = 2
    label_offset: int = 5


class OverlayRenderer:
    """
    Draws display-space boxes as outlined rectangles with a caption just
    above each box's top edge.
    """

    def __init__(self, display: FrameDimensions, style: Optional[RenderStyle] = None):
        self.display = display
        self.style = style or RenderStyle()

    def draw(self, canvas: np.ndarray, boxes: Iterable[DisplayBox]) -> np.ndarray:
        """Draw ``boxes`` onto ``canvas`` in place and return it."""
        s = self.style
        for box in boxes:
            x1, y1, x2, y2 = box.as_int_tuple()
            cv2.rectangle(canvas, (x1, y1), (x2, y2), s.color, s.thickness)
            cv2.putText(
                canvas,
                format_label(box.label, box.confidence),
                (x1, y1 - s.label_offset),
                cv2.FONT_HERSHEY_SIMPLEX,
                s.font_scale,
                s.color,
                s.font_thickness,
            )
        return canvas

    def compose(self, preview: Optional[np.ndarray], boxes: Iterable[DisplayBox]) -> np.ndarray:
        """
        Scale the camera preview to the display surface and draw the overlay.

        Without a preview the overlay is drawn on a black surface.
        """
        size = self.display.as_tuple()
        if preview is None:
            canvas = np.zeros((self.display.height, self.display.width, 3), dtype=np.uint8)
        elif (preview.shape[1], preview.shape[0]) != size:
            canvas = cv2.resize(preview, size, interpolation=cv2.INTER_LINEAR)
        else:
            canvas = preview.copy()
        return self.draw(canvas, boxes)
