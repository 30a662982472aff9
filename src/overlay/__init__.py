"""
Overlay package: coordinate mapping, the published overlay state and drawing.
"""

from .mapper import compute_scale, map_detection, map_detections
from .store import OverlayState, OverlayStore

__all__ = [
    "compute_scale",
    "map_detection",
    "map_detections",
    "OverlayState",
    "OverlayStore",
]
