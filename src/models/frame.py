"""
CapturedFrame model for frames handed from the camera to the inference client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .detection import FrameDimensions


@dataclass(frozen=True)
class CapturedFrame:
    """
    One encoded capture.

    Attributes:
        image_bytes: JPEG-encoded image.
        dims: Native pixel size of the captured image.
        timestamp: Unix timestamp when the frame was grabbed.
        frame_index: Sequential capture number since the camera opened.
        source: Identifier for the camera.
    """
    image_bytes: bytes
    dims: FrameDimensions
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return self.dims.as_tuple()
