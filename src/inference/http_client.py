"""
HTTP client for the remote detection service.

Wire contract:
    POST {endpoint}/detect
      multipart/form-data, field "image" = JPEG bytes
    200 OK
      {"image_width": int, "image_height": int,
       "detections": [{"x", "y", "width", "height", "label", "confidence"}, ...]}

Coordinates in the response are in the pixel space of the server's (possibly
resized) copy, so the dims always come from the response body.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

import requests

from models.detection import Detection, FrameDimensions, InferenceResult
from models.errors import InferenceError


def _dimension(payload: dict, key: str) -> int:
    if key not in payload:
        raise InferenceError(f"Malformed response: missing {key}")
    value = payload[key]
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or (isinstance(value, float) and not math.isfinite(value))
        or int(value) != value
    ):
        raise InferenceError(f"Malformed response: {key} must be an integer, got {value!r}")
    if value <= 0:
        raise InferenceError(f"Malformed response: {key} must be positive, got {value!r}")
    return int(value)


def parse_response(payload: Any) -> InferenceResult:
    """
    Validate a decoded response body.

    A missing or null ``detections`` field counts as "nothing detected".

    Raises:
        InferenceError: The body does not match the schema.
    """
    if not isinstance(payload, dict):
        raise InferenceError(f"Malformed response: expected a JSON object, got {type(payload).__name__}")

    dims = FrameDimensions(
        width=_dimension(payload, "image_width"),
        height=_dimension(payload, "image_height"),
    )

    raw = payload.get("detections")
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise InferenceError(f"Malformed response: detections must be an array, got {type(raw).__name__}")

    try:
        detections = tuple(Detection.from_dict(d) for d in raw)
    except (KeyError, TypeError, ValueError) as e:
        raise InferenceError(f"Malformed detection in response: {e!r}") from e

    return InferenceResult(detections=detections, dims=dims)


class HttpInferenceClient:
    """
    Thin wrapper around ``requests`` for the /detect endpoint.

    Every failure surfaces as InferenceError; a timeout is an expected outcome
    for a live overlay and is only logged at debug level here.
    """

    def __init__(
        self,
        endpoint: str = "http://127.0.0.1:8000",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self.request_count = 0

    @property
    def url(self) -> str:
        return f"{self.endpoint}/detect"

    def infer(self, image_bytes: bytes) -> InferenceResult:
        self.request_count += 1
        files = {"image": ("frame.jpg", image_bytes, "image/jpeg")}

        try:
            r = self._session.post(self.url, files=files, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logging.debug(f"Detection request timed out after {self.timeout}s")
            raise InferenceError(f"Detection request timed out after {self.timeout}s", timed_out=True) from e
        except requests.exceptions.ConnectionError as e:
            raise InferenceError(f"Detection service unreachable at {self.url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise InferenceError(f"Detection request failed: {e}") from e

        if r.status_code != 200:
            raise InferenceError(f"Detection service returned {r.status_code}", status_code=r.status_code)

        try:
            payload = r.json()
        except ValueError as e:
            raise InferenceError(f"Detection service returned invalid JSON: {e}", status_code=r.status_code) from e

        return parse_response(payload)

    def close(self) -> None:
        self._session.close()
