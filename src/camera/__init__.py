"""
Camera package.

Canonical imports:
- `from camera.camera import create_camera, select_device, inject_rtsp_credentials`
- `from camera.session import CameraSession`
- `from camera.backends.opencv import OpenCVCamera` (USB + RTSP + files)
- `from camera.backends.picamera2 import Picamera2Camera` (CSI)
"""
