"""
Capture-infer-render loop controller.

A single-flight scheduler modelled as an explicit state machine:

    IDLE --tick--> IN_FLIGHT --cycle done (any outcome)--> IDLE

A tick that arrives while a cycle is in flight is skipped, never queued, so
there is at most one outstanding inference request and overlay updates are
applied in the order cycles complete.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from camera.session import CameraSession
from inference.backend import InferenceBackend
from models.config import LoopConfig
from models.detection import FrameDimensions
from models.errors import CaptureError, InferenceError, NoDeviceError
from overlay.mapper import map_detections
from overlay.store import OverlayStore


class LoopState(Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


class CycleOutcome(Enum):
    """Result of one tick."""
    DETECTIONS = "detections"
    EMPTY = "empty"
    FAILED = "failed"
    NO_DEVICE = "no_device"
    # ticks that did not run a cycle
    SKIPPED = "skipped"
    STOPPED = "stopped"


@dataclass
class LoopStats:
    """Runtime statistics for the loop."""
    cycles: int = 0
    skipped: int = 0
    failures: int = 0
    timeouts: int = 0
    no_device: int = 0
    boxes_published: int = 0
    last_cycle_s: float = 0.0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


class LoopController:
    """
    Owns the single-flight discipline and the overlay writes.

    The controller is bound to one camera session generation. It stops
    starting cycles once stop() is called, the session is closed, or the
    session is rebound to another device; a cycle already in flight still
    completes and publishes.

    Example:
        controller = LoopController(session, client, store, display_dims, LoopConfig())
        threading.Thread(target=controller.run, daemon=True).start()
    """

    def __init__(
        self,
        session: CameraSession,
        backend: InferenceBackend,
        store: OverlayStore,
        display: FrameDimensions,
        config: Optional[LoopConfig] = None,
        generation: Optional[int] = None,
    ):
        self.session = session
        self.backend = backend
        self.store = store
        self.config = config or LoopConfig()
        self.stats = LoopStats()
        self._display = display
        self._generation = session.generation if generation is None else generation
        self._state = LoopState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def guard_held(self) -> bool:
        return self._state is LoopState.IN_FLIGHT

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_active(self) -> bool:
        return not self._stop_event.is_set() and self.session.is_current(self._generation)

    @property
    def display(self) -> FrameDimensions:
        return self._display

    def set_display_size(self, display: FrameDimensions) -> None:
        """Surface size used for cycles that start after this call."""
        self._display = display

    def stop(self) -> None:
        """Signal the loop to stop; an in-flight cycle is allowed to finish."""
        self._stop_event.set()

    def tick(self) -> CycleOutcome:
        """
        Scheduler tick: run one cycle unless one is already in flight.

        Never raises.
        """
        with self._state_lock:
            if not self.is_active:
                return CycleOutcome.STOPPED
            if self._state is LoopState.IN_FLIGHT:
                self.stats.skipped += 1
                return CycleOutcome.SKIPPED
            self._state = LoopState.IN_FLIGHT

        started = time.monotonic()
        try:
            outcome = self._run_cycle()
        finally:
            with self._state_lock:
                self._state = LoopState.IDLE
            self.stats.last_cycle_s = time.monotonic() - started

        self.stats.cycles += 1
        return outcome

    def _run_cycle(self) -> CycleOutcome:
        try:
            camera = self.session.require_camera()
        except NoDeviceError:
            # no device: overlay left as is
            self.stats.no_device += 1
            return CycleOutcome.NO_DEVICE

        display = self._display
        try:
            frame = camera.capture()
            result = self.backend.infer(frame.image_bytes)
            boxes = map_detections(result.detections, result.dims, display)
        except (CaptureError, InferenceError) as e:
            self._record_failure(e)
            logging.warning(f"Inference error, clearing boxes: {e}")
            self.store.clear()
            return CycleOutcome.FAILED
        except Exception as e:
            self._record_failure(e)
            logging.exception(f"Unexpected error in capture cycle, clearing boxes: {e}")
            self.store.clear()
            return CycleOutcome.FAILED

        self.store.publish(boxes)
        self.stats.boxes_published += len(boxes)
        if not boxes:
            return CycleOutcome.EMPTY
        logging.debug(
            f"Published {len(boxes)} boxes from frame {frame.frame_index} "
            f"({(time.time() - frame.timestamp) * 1000:.0f}ms after capture)"
        )
        return CycleOutcome.DETECTIONS

    def _record_failure(self, error: Exception) -> None:
        self.stats.failures += 1
        if isinstance(error, InferenceError) and error.timed_out:
            self.stats.timeouts += 1

    def run(self) -> None:
        """
        Run ticks until inactive, waiting a fixed interval after each one.

        The wait does not depend on how long the cycle took.
        """
        self.stats = LoopStats()
        logging.info(
            f"Capture loop started: generation={self._generation}, "
            f"interval={self.config.interval_ms}ms, display={self._display.as_tuple()}"
        )
        while self.is_active:
            self.tick()
            self._handle_periodic_tasks()
            if self._stop_event.wait(self.config.interval_s):
                break
        logging.info(
            f"Capture loop stopped: generation={self._generation}, "
            f"cycles={self.stats.cycles}, failures={self.stats.failures}"
        )

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Loop stats: cycles={self.stats.cycles}, skipped={self.stats.skipped}, "
                f"failures={self.stats.failures} (timeouts={self.stats.timeouts}), "
                f"no_device={self.stats.no_device}, boxes={self.stats.boxes_published}, "
                f"last_cycle={self.stats.last_cycle_s * 1000:.0f}ms"
            )
            self.stats.last_stats_log_time = now
