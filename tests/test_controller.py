"""
Tests for the single-flight loop controller.
"""

import logging
import threading
import time

import numpy as np
import pytest

from camera.base import Camera
from camera.session import CameraSession
from models.config import LoopConfig
from models.detection import Detection, DisplayBox, FrameDimensions, InferenceResult
from models.errors import CaptureError, InferenceError
from overlay.store import OverlayStore
from pipeline.controller import CycleOutcome, LoopController, LoopState


class MockCamera(Camera):
    """Camera that always has a 640x480 frame unless told to fail."""

    def __init__(self, fail=False):
        super().__init__(source_id="mock")
        self.fail = fail
        self.captures = 0

    def open(self):
        self._is_open = True

    def release(self):
        self._is_open = False

    def _grab(self):
        self.captures += 1
        if self.fail:
            raise CaptureError("sensor unplugged")
        return np.zeros((480, 640, 3), dtype=np.uint8)


class MockBackend:
    """
    Inference backend replaying a script of results/exceptions.

    ``during`` is called inside infer(), i.e. while the cycle is in flight.
    """

    def __init__(self, script=None, during=None):
        self.script = list(script or [])
        self.during = during
        self.calls = 0

    def infer(self, image_bytes):
        self.calls += 1
        if self.during is not None:
            self.during()
        item = self.script.pop(0) if self.script else InferenceResult((), FrameDimensions(640, 480))
        if isinstance(item, Exception):
            raise item
        return item


def _det(x, y, w, h, label="person", confidence=0.9):
    return Detection(x=x, y=y, width=w, height=h, label=label, confidence=confidence)


def _result(*detections, dims=FrameDimensions(640, 480)):
    return InferenceResult(detections=tuple(detections), dims=dims)


def _stale_box():
    return DisplayBox(x=1, y=1, width=1, height=1, label="stale", confidence=0.5)


def _controller(backend, camera=None, display=FrameDimensions(1280, 960), store=None, bind=True):
    session = CameraSession()
    if bind:
        camera = camera or MockCamera()
        camera.open()
        session.bind(camera)
    store = store or OverlayStore()
    controller = LoopController(session, backend, store, display, LoopConfig(interval_ms=1))
    return controller, store, session


class TestCycleOutcomes:
    def test_scaling_through_cycle(self):
        backend = MockBackend([_result(_det(100, 50, 20, 10))])
        controller, store, _ = _controller(backend)

        outcome = controller.tick()

        assert outcome is CycleOutcome.DETECTIONS
        assert store.snapshot() == (
            DisplayBox(x=200, y=100, width=40, height=20, label="person", confidence=0.9),
        )

    def test_dims_come_from_response(self):
        """The server's resized dims drive the scale, not the captured size."""
        backend = MockBackend([_result(_det(10, 10, 10, 10), dims=FrameDimensions(320, 240))])
        controller, store, _ = _controller(backend)

        controller.tick()

        assert store.snapshot()[0].x == 40.0
        assert store.snapshot()[0].height == 40.0

    def test_zero_detections_clear_boxes(self):
        backend = MockBackend([_result(_det(1, 1, 1, 1)), _result()])
        controller, store, _ = _controller(backend)

        controller.tick()
        assert len(store.snapshot()) == 1

        outcome = controller.tick()

        assert outcome is CycleOutcome.EMPTY
        assert store.snapshot() == ()

    def test_replacement_not_merge(self):
        backend = MockBackend([
            _result(_det(0, 0, 5, 5, label="cat"), _det(10, 10, 5, 5, label="dog")),
            _result(_det(50, 50, 5, 5, label="bird")),
        ])
        controller, store, _ = _controller(backend)

        controller.tick()
        controller.tick()

        assert [b.label for b in store.snapshot()] == ["bird"]

    def test_inference_failure_clears(self):
        backend = MockBackend([InferenceError("HTTP 500", status_code=500)])
        controller, store, _ = _controller(backend)
        store.publish([_stale_box()])

        outcome = controller.tick()

        assert outcome is CycleOutcome.FAILED
        assert store.snapshot() == ()
        assert controller.stats.failures == 1

    def test_capture_failure_clears(self):
        backend = MockBackend()
        controller, store, _ = _controller(backend, camera=MockCamera(fail=True))
        store.publish([_stale_box()])

        outcome = controller.tick()

        assert outcome is CycleOutcome.FAILED
        assert store.snapshot() == ()
        assert backend.calls == 0

    def test_timeout_counted(self):
        backend = MockBackend([InferenceError("slow", timed_out=True)])
        controller, store, _ = _controller(backend)

        controller.tick()

        assert controller.stats.timeouts == 1

    def test_unexpected_error_contained(self):
        backend = MockBackend([KeyError("boom")])
        controller, store, _ = _controller(backend)
        store.publish([_stale_box()])

        outcome = controller.tick()

        assert outcome is CycleOutcome.FAILED
        assert store.snapshot() == ()
        assert controller.state is LoopState.IDLE

    def test_recovers_on_next_tick(self):
        backend = MockBackend([
            InferenceError("connection refused"),
            _result(_det(1, 2, 3, 4)),
        ])
        controller, store, _ = _controller(backend)

        assert controller.tick() is CycleOutcome.FAILED
        assert controller.tick() is CycleOutcome.DETECTIONS
        assert len(store.snapshot()) == 1

    def test_no_device_leaves_overlay(self):
        backend = MockBackend()
        controller, store, _ = _controller(backend, bind=False)
        store.publish([_stale_box()])
        version = store.version

        outcome = controller.tick()

        assert outcome is CycleOutcome.NO_DEVICE
        assert store.snapshot() == (_stale_box(),)
        assert store.version == version
        assert backend.calls == 0
        assert controller.state is LoopState.IDLE
        assert controller.stats.no_device == 1

    def test_set_display_size(self):
        backend = MockBackend([_result(_det(100, 100, 10, 10))])
        controller, store, _ = _controller(backend)

        controller.set_display_size(FrameDimensions(320, 240))
        controller.tick()

        assert store.snapshot()[0].x == 50.0
        assert controller.display == FrameDimensions(320, 240)

    def test_publish_logs_capture_latency(self, caplog):
        backend = MockBackend([_result(_det(1, 1, 1, 1))])
        controller, _, _ = _controller(backend)

        with caplog.at_level(logging.DEBUG):
            controller.tick()

        assert "Published 1 boxes from frame 1" in caplog.text
        assert "ms after capture" in caplog.text


class TestGuardRelease:
    @pytest.mark.parametrize("case", ["capture_failure", "inference_failure", "zero", "detections"])
    def test_guard_released_on_every_path(self, case):
        seen_during = []
        script = {
            "capture_failure": [],
            "inference_failure": [InferenceError("down")],
            "zero": [_result()],
            "detections": [_result(_det(1, 1, 1, 1))],
        }[case]
        camera = MockCamera(fail=(case == "capture_failure"))
        controller = None

        def during():
            seen_during.append(controller.guard_held)

        backend = MockBackend(script, during=during)
        controller, _, _ = _controller(backend, camera=camera)

        controller.tick()

        assert controller.guard_held is False
        assert controller.state is LoopState.IDLE
        if case != "capture_failure":
            assert seen_during == [True]


class TestSingleFlight:
    def test_tick_during_cycle_is_skipped(self):
        """A tick fired while inference is outstanding neither queues nor runs."""
        nested = []
        controller = None

        def during():
            nested.append(controller.tick())

        backend = MockBackend([_result(_det(1, 1, 1, 1))], during=during)
        controller, store, _ = _controller(backend)

        outcome = controller.tick()

        assert nested == [CycleOutcome.SKIPPED]
        assert outcome is CycleOutcome.DETECTIONS
        assert backend.calls == 1
        assert controller.stats.skipped == 1
        assert controller.stats.cycles == 1

    def test_concurrent_ticks_never_overlap(self):
        entered = threading.Event()
        release = threading.Event()
        in_flight = []
        max_in_flight = []
        lock = threading.Lock()

        def during():
            with lock:
                in_flight.append(1)
                max_in_flight.append(len(in_flight))
            entered.set()
            release.wait(timeout=5.0)
            with lock:
                in_flight.pop()

        backend = MockBackend(during=during)
        controller, _, _ = _controller(backend)

        worker = threading.Thread(target=controller.tick)
        worker.start()
        assert entered.wait(timeout=5.0)

        outcomes = []
        others = [threading.Thread(target=lambda: outcomes.append(controller.tick())) for _ in range(8)]
        for t in others:
            t.start()
        for t in others:
            t.join(timeout=5.0)

        assert controller.state is LoopState.IN_FLIGHT
        release.set()
        worker.join(timeout=5.0)

        assert outcomes == [CycleOutcome.SKIPPED] * 8
        assert backend.calls == 1
        assert max(max_in_flight) == 1
        assert controller.state is LoopState.IDLE


class TestTermination:
    def test_tick_after_stop(self):
        backend = MockBackend()
        controller, _, _ = _controller(backend)

        controller.stop()

        assert controller.tick() is CycleOutcome.STOPPED
        assert backend.calls == 0
        assert controller.is_active is False

    def test_in_flight_cycle_completes_after_stop(self):
        controller = None

        def during():
            controller.stop()

        backend = MockBackend([_result(_det(1, 1, 1, 1))], during=during)
        controller, store, _ = _controller(backend)

        outcome = controller.tick()

        assert outcome is CycleOutcome.DETECTIONS
        assert len(store.snapshot()) == 1
        assert store.version == 1
        assert controller.tick() is CycleOutcome.STOPPED
        assert store.version == 1

    def test_stop_seen_before_guard_acquired(self):
        """A tick waiting on the state lock when stop() lands does not start a cycle."""
        backend = MockBackend()
        controller, _, _ = _controller(backend)
        outcomes = []

        with controller._state_lock:
            worker = threading.Thread(target=lambda: outcomes.append(controller.tick()))
            worker.start()
            time.sleep(0.05)
            controller.stop()
        worker.join(timeout=5.0)

        assert outcomes == [CycleOutcome.STOPPED]
        assert backend.calls == 0
        assert controller.guard_held is False

    def test_device_swap_supersedes_controller(self):
        backend = MockBackend()
        controller, _, session = _controller(backend)

        session.bind(MockCamera())

        assert controller.tick() is CycleOutcome.STOPPED

    def test_session_close_stops(self):
        backend = MockBackend()
        controller, _, session = _controller(backend)

        session.close()

        assert controller.tick() is CycleOutcome.STOPPED


class TestRun:
    def test_run_until_stopped(self):
        controller = None

        def during():
            if backend.calls == 3:
                controller.stop()

        backend = MockBackend(during=during)
        controller, _, _ = _controller(backend)

        controller.run()

        assert backend.calls == 3
        assert controller.stats.cycles == 3

    def test_run_exits_on_device_swap(self):
        controller = None

        def during():
            session.bind(None)

        backend = MockBackend(during=during)
        controller, _, session = _controller(backend)

        thread = threading.Thread(target=controller.run)
        thread.start()
        thread.join(timeout=5.0)

        assert not thread.is_alive()
        assert backend.calls == 1

    def test_run_survives_failures(self):
        controller = None
        script = [InferenceError("down"), CaptureError("glitch"), _result(_det(1, 1, 1, 1))]

        def during():
            if backend.calls == 3:
                controller.stop()

        backend = MockBackend(script, during=during)
        controller, store, _ = _controller(backend)

        controller.run()

        assert controller.stats.failures == 2
        assert len(store.snapshot()) == 1
