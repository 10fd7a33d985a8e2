#!/usr/bin/env python3

"""
Dual-Loop Scheduler

Runs the two loops of the live view:
1. a render loop, one iteration per displayed frame, that draws the active
   source's predictions on the current camera frame
2. a background loop on a fixed period that refreshes the custom model's
   predictions so the render loop never waits on that model

The loops only share the prediction cache, which is replaced by reference swap.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Optional

import numpy as np

from .errors import CameraAccessError
from .mode_controller import Mode, ModeController
from .overlay import draw_detections, draw_ranked_labels, draw_status_line
from .prediction_cache import PredictionCache
from .predictions import PredictionEntry
from .settings import BACKGROUND_INTERVAL_SEC, PREDICTION_ERROR_LABEL, RENDER_IDLE_SEC, LiveSettings
from .status import StatusBoard


logger = logging.getLogger(__name__)


class DualLoopScheduler:
    """
    Coordinates the render loop and the background inference loop.

    Args:
        frame_source: object with start(), stop(), is_ready() and current_frame()
        controller: mode controller selecting the active source
        cache: prediction cache shared by both loops
        settings: runtime settings (detector threshold)
        status: board that receives user-facing messages
        display: optional window with show(frame) -> key and poll() -> key
        interval: background loop period in seconds
    """

    def __init__(self,
                 frame_source,
                 controller: ModeController,
                 cache: Optional[PredictionCache] = None,
                 settings: Optional[LiveSettings] = None,
                 status: Optional[StatusBoard] = None,
                 display=None,
                 interval: float = BACKGROUND_INTERVAL_SEC):
        self.frame_source = frame_source
        self.controller = controller
        self.cache = cache or PredictionCache()
        self.settings = settings or LiveSettings()
        self.status = status or StatusBoard()
        self.display = display
        self.interval = interval

        self._cancel = threading.Event()
        self._cancel.set()
        self._background_thread: Optional[threading.Thread] = None
        self._last_render_error: Optional[str] = None
        # Held across the background loop's mode check and cache swap, and by mode-change clears
        self._swap_lock = threading.Lock()

        # Performance tracking
        self.fps_times = deque(maxlen=30)
        self._last_frame_time: Optional[float] = None
        self.frame_count = 0
        self.tick_count = 0
        self.latest_canvas: Optional[np.ndarray] = None

        # Predictions of the previous source must not outlive a mode switch
        controller.subscribe(self._on_mode_change)

    def _on_mode_change(self, old: Mode, new: Mode):
        with self._swap_lock:
            self.cache.clear()

    @property
    def running(self) -> bool:
        return not self._cancel.is_set()

    @property
    def fps(self) -> float:
        if not self.fps_times:
            return 0.0
        mean = float(np.mean(self.fps_times))
        return 1.0 / mean if mean > 0 else 0.0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """
        Open the camera and start a fresh scheduling cycle.

        Raises:
            CameraAccessError: the camera stays off
        """
        if self.running:
            return

        try:
            self.frame_source.start()
        except CameraAccessError as ex:
            self.status.error(f"Error accessing the camera: {ex}")
            raise
        except Exception as ex:
            self.status.error(f"Error accessing the camera: {ex}")
            raise CameraAccessError(str(ex)) from ex

        cancel = threading.Event()
        self._cancel = cancel
        self.fps_times.clear()
        self._last_frame_time = None
        self._last_render_error = None

        self._background_thread = threading.Thread(target=self._background_loop, args=(cancel,),
                                                   name="background-inference", daemon=True)
        self._background_thread.start()
        self.status.report("Camera on")

    def stop(self):
        """Cancel both loops and release the camera."""
        if not self.running:
            return

        self._cancel.set()
        if self._background_thread is not None:
            self._background_thread.join(timeout=max(1.0, self.interval * 10))
            self._background_thread = None

        self.frame_source.stop()
        self.cache.clear()
        self.latest_canvas = None
        self.status.report("Camera off")

    # ------------------------------------------------------------------
    # Background inference loop
    # ------------------------------------------------------------------

    def background_tick(self):
        """
        One background iteration.

        Outside custom model mode the cache is emptied and nothing runs.
        Otherwise the model is run on the current frame and its ranked scores
        replace the cache; a failure leaves a single error entry instead.
        """
        self.tick_count += 1
        mode = self.controller.mode
        source = self.controller.active_source()
        if mode is not Mode.CUSTOM_MODEL or source is None or not source.runs_in_background:
            self.cache.clear()
            return

        if not self.frame_source.is_ready():
            return
        frame = self.frame_source.current_frame()
        if frame is None:
            return

        error = None
        try:
            predictions = source.predict(frame)
        except Exception as ex:
            logger.exception("Background prediction failed")
            predictions = [PredictionEntry(PREDICTION_ERROR_LABEL, 1.0)]
            error = ex

        with self._swap_lock:
            # Mode switched away while the model was running
            if self.controller.mode is not Mode.CUSTOM_MODEL or self.controller.active_source() is not source:
                self.cache.clear()
                return
            self.cache.replace(predictions)

        if error is not None:
            self.status.error(f"Background prediction error: {error}")

    def _background_loop(self, cancel: threading.Event):
        logger.info("Background inference loop started")
        while not cancel.is_set():
            started = time.monotonic()
            try:
                self.background_tick()
            except Exception:
                # Tick bookkeeping itself failed; the next tick still runs
                logger.exception("Background tick failed")
            elapsed = time.monotonic() - started
            cancel.wait(max(0.0, self.interval - elapsed))
        logger.info("Background inference loop stopped")

    # ------------------------------------------------------------------
    # Render loop
    # ------------------------------------------------------------------

    def _report_render_error(self, ex: Exception):
        message = f"Prediction error: {ex}"
        # One status update per distinct error, not one per frame
        if message != self._last_render_error:
            self.status.error(message)
            self._last_render_error = message

    def _track_fps(self):
        now = time.time()
        if self._last_frame_time is not None:
            self.fps_times.append(now - self._last_frame_time)
        self._last_frame_time = now
        self.frame_count += 1

    def render_once(self) -> Optional[np.ndarray]:
        """
        One render iteration.

        Returns:
            The annotated copy of the current frame, or None when no frame is ready
        """
        if not self.frame_source.is_ready():
            return None
        frame = self.frame_source.current_frame()
        if frame is None:
            return None

        canvas = frame.copy()
        mode = self.controller.mode
        source = self.controller.active_source()

        try:
            if mode is Mode.DETECTOR and source is not None:
                detections = source.predict(frame)
                draw_detections(canvas, detections, self.settings.min_score)
            elif mode is Mode.NEAREST_NEIGHBOR and source is not None:
                predictions = source.predict(frame)
                draw_ranked_labels(canvas, predictions, decimals=0)
            elif mode is Mode.CUSTOM_MODEL:
                # Drawn from the cache; inference happens on the background loop
                draw_ranked_labels(canvas, self.cache.snapshot(), decimals=1)
            self._last_render_error = None
        except Exception as ex:
            logger.debug("Render iteration failed", exc_info=True)
            self._report_render_error(ex)

        self._track_fps()
        draw_status_line(canvas, mode.value, self.fps)
        self.latest_canvas = canvas
        return canvas

    def run(self, on_key: Optional[Callable[[int], bool]] = None):
        """
        Render until the current cycle is cancelled.

        Keeps iterating while the camera is paused or has no frame yet.

        Args:
            on_key: called with each key pressed in the display window;
                    returning False ends the loop
        """
        cancel = self._cancel
        while not cancel.is_set():
            canvas = self.render_once()

            if self.display is not None:
                key = self.display.show(canvas) if canvas is not None else self.display.poll()
                if on_key is not None and key != 255 and on_key(key) is False:
                    break
            else:
                cancel.wait(RENDER_IDLE_SEC)
