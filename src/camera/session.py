"""
Camera session: which device the capture loop is currently bound to.

Every bind() starts a new generation. A loop controller remembers the
generation it was started for and stops once that generation is superseded
or the session is closed.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from models.errors import NoDeviceError
from .base import Camera


class CameraSession:
    def __init__(self) -> None:
        self._camera: Optional[Camera] = None
        self._generation = 0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def camera(self) -> Optional[Camera]:
        return self._camera

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def bind(self, camera: Optional[Camera]) -> int:
        """
        Swap in ``camera`` (None unbinds) and return the new generation.

        The previous camera is released; a cycle still using it fails its
        capture and clears the overlay.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot bind a camera to a closed session")
            previous = self._camera
            self._camera = camera
            self._generation += 1
            generation = self._generation

        if previous is not None and previous is not camera:
            previous.release()
        logging.info(
            f"Camera session generation {generation}: "
            f"{camera.source_id if camera is not None else 'no device'}"
        )
        return generation

    def require_camera(self) -> Camera:
        camera = self._camera
        if camera is None:
            raise NoDeviceError("No camera bound to the session")
        return camera

    def is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def close(self) -> None:
        """Tear the session down; no controller may start a new cycle afterwards."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            camera, self._camera = self._camera, None
        if camera is not None:
            camera.release()
        logging.info("Camera session closed")
