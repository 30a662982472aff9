"""
Typed models for the live detection overlay.
"""

from .frame import CapturedFrame
from .detection import Detection, DisplayBox, FrameDimensions, InferenceResult, format_label
from .errors import CaptureError, InferenceError, NoDeviceError, OverlayLoopError
from .config import (
    Config,
    CameraConfig,
    InferenceConfig,
    LoopConfig,
    DisplayConfig,
)

__all__ = [
    # Frame
    "CapturedFrame",
    # Detection
    "Detection",
    "DisplayBox",
    "FrameDimensions",
    "InferenceResult",
    "format_label",
    # Errors
    "OverlayLoopError",
    "CaptureError",
    "InferenceError",
    "NoDeviceError",
    # Config
    "Config",
    "CameraConfig",
    "InferenceConfig",
    "LoopConfig",
    "DisplayConfig",
]
