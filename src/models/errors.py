"""
Errors raised by the capture and inference adapters.

All of them are contained inside a single loop cycle: the controller logs
them, clears the overlay (except for NoDeviceError) and retries on the next tick.
"""

from __future__ import annotations

from typing import Optional


class OverlayLoopError(Exception):
    """Base class for per-cycle failures."""


class CaptureError(OverlayLoopError):
    """Raised when the camera is unavailable or a capture call fails."""


class NoDeviceError(OverlayLoopError):
    """Raised when no camera is currently bound to the session."""


class InferenceError(OverlayLoopError):
    """
    Raised on network failure, timeout, non-200 status or a malformed response.

    Attributes:
        timed_out: True when the request hit the client timeout.
        status_code: HTTP status of the response, if one was received.
    """

    def __init__(self, message: str, timed_out: bool = False, status_code: Optional[int] = None):
        super().__init__(message)
        self.timed_out = timed_out
        self.status_code = status_code
