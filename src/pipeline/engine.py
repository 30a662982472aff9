"""
Overlay engine: wires the camera session, the loop controller and the display.

The controller runs on its own thread; the calling thread runs the display
loop (or simply waits when headless). Swapping the device starts a new
controller bound to the new session generation; the previous one finishes its
in-flight cycle and exits.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cv2

from camera.base import Camera
from camera.camera import select_device
from camera.session import CameraSession
from inference.backend import InferenceBackend
from inference.http_client import HttpInferenceClient
from models.config import Config, LoopConfig
from models.detection import FrameDimensions
from overlay.renderer import OverlayRenderer
from overlay.store import OverlayState, OverlayStore
from pipeline.controller import LoopController


@dataclass
class EngineConfig:
    """
    Configuration for the overlay engine.

    Attributes:
        display: Open an OpenCV window; otherwise run headless.
        window_name: Title of the display window.
        refresh_ms: Display refresh period (cv2.waitKey delay).
        join_timeout: Seconds to wait for a controller thread to exit.
    """
    display: bool = False
    window_name: str = "Live Detection Overlay"
    refresh_ms: int = 33
    join_timeout: float = 10.0


class OverlayEngine:
    def __init__(
        self,
        session: CameraSession,
        backend: InferenceBackend,
        store: OverlayStore,
        renderer: OverlayRenderer,
        loop_config: LoopConfig,
        config: EngineConfig,
    ):
        self.session = session
        self.backend = backend
        self.store = store
        self.renderer = renderer
        self.loop_config = loop_config
        self.config = config
        self.controller: Optional[LoopController] = None
        self._controller_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._swap_lock = threading.Lock()
        self._unsubscribe = store.subscribe(self._on_overlay_change)

    @property
    def display_size(self) -> FrameDimensions:
        return self.renderer.display

    def _on_overlay_change(self, state: OverlayState) -> None:
        logging.debug(
            f"Overlay updated: {len(state)} boxes"
            + (f" ({', '.join(b.caption for b in state)})" if state else "")
        )

    def _open(self, camera: Optional[Camera]) -> Optional[Camera]:
        if camera is None:
            return None
        try:
            camera.open()
        except (RuntimeError, ImportError) as e:
            logging.error(f"Failed to open camera {camera.source_id}: {e}")
            return None
        return camera

    def start(self, camera: Optional[Camera]) -> None:
        """Request camera permission once, bind the device and start the loop."""
        if camera is not None and not camera.request_permission():
            logging.error(f"Camera permission not granted for {camera.source_id}")
            camera = None
        generation = self.session.bind(self._open(camera))
        self._start_controller(generation)

    def swap_device(self, camera: Optional[Camera]) -> None:
        """Bind a different device; the running loop stops and a new one starts."""
        with self._swap_lock:
            if self._stop_event.is_set() or self.session.closed:
                logging.warning("Engine is stopped; ignoring device swap")
                return
            generation = self.session.bind(self._open(camera))
            self._join_controller()
            self._start_controller(generation)

    def _start_controller(self, generation: int) -> None:
        controller = LoopController(
            self.session,
            self.backend,
            self.store,
            self.display_size,
            self.loop_config,
            generation=generation,
        )
        thread = threading.Thread(target=controller.run, name=f"capture-loop-{generation}", daemon=True)
        self.controller = controller
        self._controller_thread = thread
        thread.start()

    def _join_controller(self) -> None:
        if self.controller is not None:
            self.controller.stop()
        if self._controller_thread is not None:
            self._controller_thread.join(timeout=self.config.join_timeout)
            if self._controller_thread.is_alive():
                logging.warning("Capture loop did not exit within the join timeout")
        self.controller = None
        self._controller_thread = None

    def run(self) -> None:
        """Run the display loop (or wait headless) until stop() or 'q'."""
        try:
            if self.config.display:
                self._display_loop()
            else:
                while not self._stop_event.wait(1.0):
                    pass
        except KeyboardInterrupt:
            logging.info("Engine interrupted by user")
        finally:
            self.stop()

    def set_display_size(self, display: FrameDimensions) -> None:
        """Resize the drawing surface; cycles that start afterwards scale to it."""
        if display == self.renderer.display:
            return
        logging.info(f"Display surface resized to {display.as_tuple()}")
        self.renderer.display = display
        controller = self.controller
        if controller is not None:
            controller.set_display_size(display)

    def _follow_window_size(self) -> None:
        _, _, width, height = cv2.getWindowImageRect(self.config.window_name)
        # backends without window geometry report -1
        if width > 0 and height > 0:
            self.set_display_size(FrameDimensions(width, height))

    def _display_loop(self) -> None:
        cv2.namedWindow(self.config.window_name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.config.window_name, *self.display_size.as_tuple())
        while not self._stop_event.is_set():
            self._follow_window_size()
            camera = self.session.camera
            preview = camera.preview() if camera is not None else None
            frame = self.renderer.compose(preview, self.store.snapshot())
            cv2.imshow(self.config.window_name, frame)
            key = cv2.waitKey(self.config.refresh_ms) & 0xFF
            if key in (ord("q"), 27):
                break

    def stop(self) -> None:
        """Stop the loop, release the camera and close the client."""
        if self._stop_event.is_set() and self.session.closed:
            return
        self._stop_event.set()
        with self._swap_lock:
            self._join_controller()
        self.session.close()
        self._unsubscribe()
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()
        if self.config.display:
            cv2.destroyAllWindows()
        logging.info("Engine stopped")


def create_engine_from_config(config: Dict[str, Any], display: bool = False) -> OverlayEngine:
    """
    Factory: build an OverlayEngine from the merged config dict.

    Args:
        config: Full application config dict.
        display: Open the display window.
    """
    cfg = Config.from_dict(config)
    backend = HttpInferenceClient(
        endpoint=cfg.inference.endpoint,
        timeout=cfg.inference.timeout_s,
    )
    engine_config = EngineConfig(display=display, window_name=cfg.display.window_name)
    return OverlayEngine(
        session=CameraSession(),
        backend=backend,
        store=OverlayStore(),
        renderer=OverlayRenderer(cfg.display.dims),
        loop_config=cfg.loop,
        config=engine_config,
    )


def run_from_config(config: Dict[str, Any], display: bool = False) -> None:
    """Select the configured device, start the engine and block until it stops."""
    engine = create_engine_from_config(config, display=display)
    engine.start(select_device(config.get("camera", {})))
    engine.run()
