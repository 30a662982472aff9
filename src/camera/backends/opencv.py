"""
OpenCV camera backend.

Supports:
- USB webcams (device_id as int, e.g. 0)
- RTSP/IP cameras (device_id as str URL, e.g. "rtsp://...")
- Video files (device_id as str path)

A background grabber thread keeps only the most recent frame, so capture()
never waits on the sensor and never returns a backlog of buffered frames.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from ..base import Camera, FrameTransform


def is_stream_url(device_id: Union[int, str]) -> bool:
    return isinstance(device_id, str) and (
        device_id.startswith("rtsp://") or device_id.startswith("rtsps://")
        or device_id.startswith("http://") or device_id.startswith("https://")
    )


class OpenCVCamera(Camera):
    """
    OpenCV-based capture for USB webcams, RTSP IP cameras and video files.

    Attributes:
        stale_after_s: A held frame older than this is treated as missing.
    """

    def __init__(
        self,
        device_id: Union[int, str] = 0,
        resolution: Tuple[int, int] = (1280, 720),
        fps: int = 30,
        buffer_size: int = 1,
        max_retries: int = 3,
        rtsp_transport: str = "tcp",
        jpeg_quality: int = 70,
        transform: Optional[FrameTransform] = None,
        stale_after_s: float = 2.0,
        warmup_s: float = 1.0,
        source_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            source_id=source_id or f"opencv:{device_id}",
            jpeg_quality=jpeg_quality,
            transform=transform,
        )
        self.device_id = device_id
        self.resolution = resolution
        self.fps = fps
        self.buffer_size = buffer_size
        self.max_retries = max_retries
        self.rtsp_transport = rtsp_transport
        self.stale_after_s = stale_after_s
        self.warmup_s = warmup_s

        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0
        self._latest: Optional[np.ndarray] = None
        self._latest_ts = 0.0
        self._latest_lock = threading.Lock()
        self._stop = threading.Event()
        self._grabber: Optional[threading.Thread] = None

    @property
    def _is_file(self) -> bool:
        return isinstance(self.device_id, str) and not is_stream_url(self.device_id)

    def request_permission(self) -> bool:
        """
        Probe-open the device once.

        Desktop platforms that gate camera access show their prompt on the
        first open; a device that cannot be opened is reported as denied.
        """
        if self._is_open or is_stream_url(self.device_id):
            return True
        cap = cv2.VideoCapture(self.device_id)
        try:
            granted = bool(cap.isOpened())
        finally:
            cap.release()
        if not granted:
            logging.warning(f"Camera access to {self.device_id} was denied or the device is unavailable")
        return granted

    def open(self) -> None:
        if self._is_open:
            return
        self._initialize()
        self._stop.clear()
        self._is_open = True
        self._frame_index = 0
        self._grabber = threading.Thread(
            target=self._grab_loop, name=f"grabber-{self.source_id}", daemon=True
        )
        self._grabber.start()
        logging.info(f"Camera initialized (backend=opencv, id={self.device_id}, res={self.resolution}, fps={self.fps})")

    def _initialize(self, retry_count: int = 0) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying camera initialization (attempt {retry_count + 1}/{self.max_retries}) after {wait_time}s"
            )
            if self._stop.wait(wait_time):
                raise RuntimeError(f"Camera {self.device_id} released during initialization")

        # RTSP transport selection (FFmpeg option)
        if isinstance(self.device_id, str) and self.device_id.startswith(("rtsp://", "rtsps://")):
            os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = f"rtsp_transport;{self.rtsp_transport}"

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            if retry_count < self.max_retries - 1:
                logging.warning(f"Failed to open camera device {self.device_id}, retrying...")
                return self._initialize(retry_count + 1)
            logging.error(f"Failed to open camera device {self.device_id} after {self.max_retries} attempts")
            raise RuntimeError(f"Failed to open camera device {self.device_id} after {self.max_retries} attempts")

        # Only set properties for USB cameras (integers), not IP streams or files
        if isinstance(self.device_id, int):
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
            cap.set(cv2.CAP_PROP_FPS, self.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, self.buffer_size)

            actual_width = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
            actual_height = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
            logging.info(f"Camera actual settings - Resolution: ({actual_width}x{actual_height})")

        self._cap = cap
        if self.warmup_s > 0:
            self._stop.wait(self.warmup_s)
        self._consecutive_failures = 0

    def _grab_loop(self) -> None:
        frame_interval = 1.0 / self.fps if self.fps else 0.0
        while not self._stop.is_set():
            cap = self._cap
            if cap is None:
                self._reconnect()
                continue

            ret, frame = cap.read()
            if ret and frame is not None:
                with self._latest_lock:
                    self._latest = frame
                    self._latest_ts = time.time()
                self._consecutive_failures = 0
                # files decode as fast as the CPU allows; play them at the configured fps
                if self._is_file and frame_interval:
                    self._stop.wait(frame_interval)
                continue

            self._consecutive_failures += 1
            logging.warning(
                f"Failed to read frame (consecutive failures: {self._consecutive_failures}), reinitializing..."
            )
            self._reconnect()
            # keep a dead device from spinning the thread
            if frame_interval:
                self._stop.wait(frame_interval)

    def _reconnect(self) -> None:
        try:
            self._initialize()
        except RuntimeError as e:
            logging.error(f"Camera reinitialization failed: {e}")
            self._stop.wait(1.0)

    def _grab(self) -> Optional[np.ndarray]:
        with self._latest_lock:
            frame = self._latest
            ts = self._latest_ts
        if frame is None:
            return None
        if self.stale_after_s and time.time() - ts > self.stale_after_s:
            return None
        return frame.copy()

    def release(self) -> None:
        self._stop.set()
        if self._grabber is not None and self._grabber is not threading.current_thread():
            self._grabber.join(timeout=2.0)
        self._grabber = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        with self._latest_lock:
            self._latest = None
        if self._is_open:
            logging.info(f"Camera released: {self.source_id}")
        self._is_open = False
