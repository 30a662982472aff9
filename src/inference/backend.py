"""
Inference backend interface.

Backends return detections in the pixel space of the image the detector
actually ran on, together with that image's size.
"""

from __future__ import annotations

from typing import Protocol

from models.detection import InferenceResult


class InferenceBackend(Protocol):
    def infer(self, image_bytes: bytes) -> InferenceResult:
        """
        Run detection on a JPEG image.

        Raises:
            InferenceError: On any failure, including timeouts.
        """
        ...
