"""
Camera interfaces.

We support multiple capture backends:
- OpenCV VideoCapture (USB cameras, RTSP streams, video files)
- Picamera2/libcamera (CSI camera on Raspberry Pi)

Every backend hands frames to the loop as JPEG bytes plus the native pixel
size. Capture favors speed over quality: backends return the most recent frame
they hold instead of waiting for a fresh exposure.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from models.detection import FrameDimensions
from models.errors import CaptureError
from models.frame import CapturedFrame


@dataclass(frozen=True)
class FrameTransform:
    """Post-processing applied to every frame before it is encoded or previewed."""
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    swap_rb: bool = False

    @property
    def is_identity(self) -> bool:
        return (
            self.rotate not in (90, 180, 270)
            and not self.flip_horizontal
            and not self.flip_vertical
            and not self.swap_rb
        )

    def apply(self, frame: np.ndarray) -> np.ndarray:
        if self.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif self.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif self.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if self.flip_horizontal or self.flip_vertical:
            flip_code = -1 if (self.flip_horizontal and self.flip_vertical) else (1 if self.flip_horizontal else 0)
            frame = cv2.flip(frame, flip_code)

        if self.swap_rb:
            frame = frame[..., ::-1].copy()
        return frame


class Camera:
    """
    Frame source adapter.

    Subclasses implement open(), release() and _grab(); capture(), preview()
    and the JPEG encoding are shared.
    """

    def __init__(
        self,
        source_id: str = "camera",
        jpeg_quality: int = 70,
        transform: Optional[FrameTransform] = None,
    ) -> None:
        self.source_id = source_id
        self.jpeg_quality = jpeg_quality
        self.transform = transform or FrameTransform()
        self._is_open = False
        self._frame_index = 0

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames captured since open."""
        return self._frame_index

    def request_permission(self) -> bool:
        """Ask the platform for camera access. Called once at startup."""
        return True

    def open(self) -> None:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def _grab(self) -> Optional[np.ndarray]:
        """Return the latest raw BGR frame, or None if none is available."""
        raise NotImplementedError

    def preview(self) -> Optional[np.ndarray]:
        """Latest frame for on-screen preview; never raises."""
        if not self._is_open:
            return None
        try:
            frame = self._grab()
        except Exception as e:
            logging.debug(f"Preview grab from {self.source_id} failed: {e}")
            return None
        if frame is None:
            return None
        return frame if self.transform.is_identity else self.transform.apply(frame)

    def capture(self) -> CapturedFrame:
        """
        Grab and JPEG-encode the latest frame.

        Raises:
            CaptureError: The camera is closed, has no frame, or encoding failed.
        """
        if not self._is_open:
            raise CaptureError(f"Camera {self.source_id} is not open")

        try:
            frame = self._grab()
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Capture from {self.source_id} failed: {e}") from e

        if frame is None:
            raise CaptureError(f"No frame available from {self.source_id}")

        if not self.transform.is_identity:
            frame = self.transform.apply(frame)

        ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, int(self.jpeg_quality)])
        if not ok:
            raise CaptureError(f"JPEG encoding failed for {self.source_id}")

        self._frame_index += 1
        return CapturedFrame(
            image_bytes=buf.tobytes(),
            dims=FrameDimensions.from_shape(frame.shape),
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )
