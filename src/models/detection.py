"""
Detection models shared by the inference client, the mapper and the renderer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple


def _number(value: Any, name: str) -> float:
    # bool is an int subclass; JSON true/false is not a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    try:
        number = float(value)
    except OverflowError as e:
        raise ValueError(f"{name} is out of range") from e
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


# Far outside any display; keeps cv2 point arithmetic in range
_DRAW_LIMIT = 1 << 20


def _draw_coord(value: float) -> int:
    return int(round(min(max(value, -_DRAW_LIMIT), _DRAW_LIMIT)))


def format_label(label: str, confidence: float) -> str:
    """Caption drawn above a box, e.g. ``"person 87%"`` (half-up rounding)."""
    return f"{label} {int(math.floor(confidence * 100 + 0.5))}%"


@dataclass(frozen=True)
class FrameDimensions:
    """Image or surface size in pixels."""
    width: int
    height: int

    @classmethod
    def from_shape(cls, shape: Sequence[int]) -> "FrameDimensions":
        """Create from a numpy image shape (height, width, ...)."""
        return cls(width=int(shape[1]), height=int(shape[0]))

    def as_tuple(self) -> Tuple[int, int]:
        """Return as (width, height) tuple."""
        return (self.width, self.height)


@dataclass(frozen=True)
class Detection:
    """
    One recognized object as returned by the detection service.

    Attributes:
        x: Left edge in image pixels.
        y: Top edge in image pixels.
        width: Box width in image pixels.
        height: Box height in image pixels.
        label: Class name.
        confidence: Score in 0.0-1.0.
    """
    x: float
    y: float
    width: float
    height: float
    label: str
    confidence: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Detection":
        """
        Adapter: parse one entry of the response ``detections`` array.

        Raises:
            KeyError: A required field is missing.
            TypeError: A field has the wrong JSON type.
            ValueError: A coordinate or score is not a finite number.
        """
        if not isinstance(d, dict):
            raise TypeError(f"detection must be an object, got {type(d).__name__}")
        label = d["label"]
        if not isinstance(label, str):
            raise TypeError(f"label must be a string, got {type(label).__name__}")
        return cls(
            x=_number(d["x"], "x"),
            y=_number(d["y"], "y"),
            width=_number(d["width"], "width"),
            height=_number(d["height"], "height"),
            label=label,
            confidence=_number(d["confidence"], "confidence"),
        )


@dataclass(frozen=True)
class DisplayBox:
    """A detection whose geometry is in display-pixel space."""
    x: float
    y: float
    width: float
    height: float
    label: str
    confidence: float

    @property
    def caption(self) -> str:
        return format_label(self.label, self.confidence)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """
        Return as integer (x1, y1, x2, y2) tuple for drawing.

        Corners far off the surface are pulled in to +/-_DRAW_LIMIT so they fit
        the C int OpenCV draws with; the box geometry itself is not clamped.
        """
        return (
            _draw_coord(self.x),
            _draw_coord(self.y),
            _draw_coord(self.x + self.width),
            _draw_coord(self.y + self.height),
        )


@dataclass(frozen=True)
class InferenceResult:
    """
    Parsed detection service response.

    ``dims`` is the size of the image the server actually ran on, which can
    differ from the size that was uploaded.
    """
    detections: Tuple[Detection, ...]
    dims: FrameDimensions

    @property
    def is_empty(self) -> bool:
        return len(self.detections) == 0
