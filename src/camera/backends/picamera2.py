"""
Picamera2 camera backend (Raspberry Pi CSI camera via libcamera).

Only works on Raspberry Pi OS with Picamera2 installed:
  sudo apt install -y python3-picamera2
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np

from ..base import Camera, FrameTransform


def picamera2_available() -> bool:
    try:
        import picamera2  # type: ignore  # noqa: F401
    except ImportError:
        return False
    return True


@dataclass(frozen=True)
class Picamera2Config:
    resolution: Tuple[int, int] = (1280, 720)
    fps: int = 30


class Picamera2Camera(Camera):
    def __init__(
        self,
        cfg: Picamera2Config,
        jpeg_quality: int = 70,
        transform: Optional[FrameTransform] = None,
        source_id: str = "picamera2",
    ) -> None:
        super().__init__(source_id=source_id, jpeg_quality=jpeg_quality, transform=transform)
        self.cfg = cfg
        self._picam2: Any = None

    def request_permission(self) -> bool:
        # libcamera has no runtime prompt; access is decided by the library being usable
        if not picamera2_available():
            logging.warning("Picamera2 is not installed; CSI camera access unavailable")
            return False
        return True

    def open(self) -> None:
        if self._is_open:
            return
        try:
            from picamera2 import Picamera2  # type: ignore
        except ImportError as e:
            raise ImportError(
                "Picamera2 is not available. This backend only works on Raspberry Pi OS. "
                "Install with `sudo apt install -y python3-picamera2` or use backend 'opencv'."
            ) from e

        self._picam2 = Picamera2()
        config = self._picam2.create_video_configuration(
            main={"size": self.cfg.resolution, "format": "RGB888"},
            controls={"FrameRate": self.cfg.fps},
            buffer_count=2,
        )
        self._picam2.configure(config)
        self._picam2.start()
        self._is_open = True
        self._frame_index = 0
        logging.info(f"Camera initialized (backend=picamera2, res={self.cfg.resolution}, fps={self.cfg.fps})")

    def _grab(self) -> Optional[np.ndarray]:
        if self._picam2 is None:
            return None
        frame_rgb = self._picam2.capture_array("main")
        # encoder and drawing code expect BGR
        return frame_rgb[..., ::-1].copy()

    def release(self) -> None:
        if self._picam2 is None:
            self._is_open = False
            return
        try:
            self._picam2.stop()
        finally:
            try:
                self._picam2.close()
            except Exception as e:
                logging.warning(f"Error closing Picamera2: {e}")
            self._picam2 = None
            self._is_open = False
            logging.info("Camera released: picamera2")
