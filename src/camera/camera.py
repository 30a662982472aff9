"""
Camera factory, device discovery + credential helpers.

This is the single entrypoint the rest of the project should use to create a camera.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import cv2
import yaml

from .base import Camera, FrameTransform
from .backends.opencv import OpenCVCamera
from .backends.picamera2 import Picamera2Camera, Picamera2Config, picamera2_available


def inject_rtsp_credentials(camera_cfg: Dict[str, Any]) -> None:
    """
    Load RTSP connection info from secrets file if provided.

    The secrets file (e.g., secrets/camera_secrets.yaml) can contain:
      rtsp_url: "rtsp://192.168.1.100/stream"  # base URL or full URL with creds
      username: "user"
      password: "pass"
    """
    secrets_file = camera_cfg.get("secrets_file")
    if not secrets_file or not os.path.exists(secrets_file):
        return

    with open(secrets_file, "r") as f:
        secrets = yaml.safe_load(f) or {}

    rtsp_url = secrets.get("rtsp_url")
    if rtsp_url:
        camera_cfg["device_id"] = rtsp_url

    device_id = camera_cfg.get("device_id")
    if not isinstance(device_id, str) or not device_id.startswith("rtsp://"):
        return

    # Inject credentials if URL doesn't already have them
    username = secrets.get("username")
    password = secrets.get("password")
    if username and password and "@" not in device_id.split("://")[1].split("/")[0]:
        protocol, rest = device_id.split("://", 1)
        camera_cfg["device_id"] = f"{protocol}://{username}:{password}@{rest}"


def _transform_from_config(camera_cfg: Dict[str, Any]) -> FrameTransform:
    return FrameTransform(
        rotate=int(camera_cfg.get("rotate", 0) or 0),
        flip_horizontal=bool(camera_cfg.get("flip_horizontal", False)),
        flip_vertical=bool(camera_cfg.get("flip_vertical", False)),
        swap_rb=bool(camera_cfg.get("swap_rb", False)),
    )


def create_camera(camera_cfg: Dict[str, Any]) -> Camera:
    """Build (but do not open) the camera described by ``camera_cfg``."""
    backend = camera_cfg.get("backend", "opencv")
    resolution = tuple(camera_cfg.get("resolution", [1280, 720]))
    fps = int(camera_cfg.get("fps", 30))
    jpeg_quality = int(camera_cfg.get("jpeg_quality", 70))
    transform = _transform_from_config(camera_cfg)

    if backend == "picamera2":
        return Picamera2Camera(
            Picamera2Config(resolution=resolution, fps=fps),
            jpeg_quality=jpeg_quality,
            transform=transform,
        )

    # Default: OpenCV (USB/RTSP/file)
    return OpenCVCamera(
        device_id=camera_cfg.get("device_id", 0),
        resolution=resolution,
        fps=fps,
        rtsp_transport=camera_cfg.get("rtsp_transport", "tcp"),
        jpeg_quality=jpeg_quality,
        transform=transform,
    )


def _probe(index: int) -> bool:
    cap = cv2.VideoCapture(index)
    try:
        return bool(cap.isOpened())
    finally:
        cap.release()


def discover_devices(max_index: int = 4) -> List[int]:
    """Return the local capture indices in [0, max_index) that can be opened."""
    return [i for i in range(max_index) if _probe(i)]


def select_device(camera_cfg: Dict[str, Any]) -> Optional[Camera]:
    """
    Pick a usable camera for ``camera_cfg``, or None if there is none.

    - picamera2: available only when the library imports.
    - URL/path device ids are used as given; they are checked when opened.
    - Integer device ids are probed; when the configured index does not open
      and ``fallback_to_any`` is set, the first discovered index is used.
    """
    backend = camera_cfg.get("backend", "opencv")
    if backend == "picamera2":
        if not picamera2_available():
            logging.warning("No camera device available: Picamera2 is not installed")
            return None
        return create_camera(camera_cfg)

    device_id = camera_cfg.get("device_id", 0)
    if isinstance(device_id, str):
        return create_camera(camera_cfg)

    if _probe(device_id):
        return create_camera(camera_cfg)

    if camera_cfg.get("fallback_to_any", True):
        found = [i for i in discover_devices() if i != device_id]
        if found:
            logging.warning(f"Camera {device_id} unavailable, falling back to camera {found[0]}")
            return create_camera({**camera_cfg, "device_id": found[0]})

    logging.warning(f"No camera device available (configured device_id={device_id})")
    return None
