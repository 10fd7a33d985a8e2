#!/usr/bin/env python3

"""
LiveCam application context

Owns every part of the live view (camera, models, dataset, loops) and exposes
the user operations. Each operation is a boundary: pipeline errors raised
below it end up as a status message.
"""

import logging
import os
import threading
from typing import Callable, Optional

from .core.errors import CameraAccessError, LiveCamError
from .core.frame_source import CameraFrameSource
from .core.mode_controller import Mode, ModeController
from .core.models import load_custom_model, load_detector
from .core.prediction_cache import PredictionCache
from .core.scheduler import DualLoopScheduler
from .core.settings import BACKGROUND_INTERVAL_SEC, LiveSettings
from .core.sources import NearestNeighborSource
from .core.status import StatusBoard
from .knn.dataset_store import DatasetStore, ExportedDataset
from .knn.feature_extractor import FeatureExtractor
from .knn.storage import KeyValueStore


logger = logging.getLogger(__name__)


class LiveCamApp:
    """
    Application context passed to the scheduler, the key handler and the control server.

    Args:
        frame_source: camera (defaults to the first webcam)
        kv_store: dataset persistence; None keeps the dataset in memory only
        extractor: feature extraction port (defaults to MobileNetV2)
        detector_loader: returns a detector with detect(frame)
        custom_model_loader: takes a URL/path and returns a CustomModel
        settings: runtime settings
        display: window for the render loop; None runs headless
        interval: background loop period in seconds
    """

    def __init__(self,
                 frame_source=None,
                 kv_store: Optional[KeyValueStore] = None,
                 extractor: Optional[FeatureExtractor] = None,
                 detector_loader: Optional[Callable] = None,
                 custom_model_loader: Optional[Callable[[str], object]] = None,
                 settings: Optional[LiveSettings] = None,
                 display=None,
                 interval: float = BACKGROUND_INTERVAL_SEC,
                 export_dir: str = "exports"):
        self.status = StatusBoard()
        self.settings = settings or LiveSettings()
        self.export_dir = export_dir

        self.store = DatasetStore(kv_store, status=self.status)
        self.extractor = extractor or FeatureExtractor()
        self.extractor.status = self.status

        nn_source = NearestNeighborSource(self.extractor, self.store, lambda: self.settings.k)
        self.controller = ModeController(
            detector_loader or load_detector,
            custom_model_loader or load_custom_model,
            nn_source,
            status=self.status,
        )
        self.cache = PredictionCache()
        self.frame_source = frame_source or CameraFrameSource()
        self.display = display
        self.scheduler = DualLoopScheduler(
            self.frame_source,
            self.controller,
            cache=self.cache,
            settings=self.settings,
            status=self.status,
            display=display,
            interval=interval,
        )
        self._quit = threading.Event()

    # ------------------------------------------------------------------
    # Error boundary
    # ------------------------------------------------------------------

    def run_action(self, action: Callable, *args, **kwargs):
        """
        Run one user operation, turning pipeline errors into a status message.

        Returns:
            The operation's result, or None when it failed
        """
        try:
            return action(*args, **kwargs)
        except (LiveCamError, RuntimeError, ValueError) as ex:
            self.report_error(ex)
            return None

    def report_error(self, ex: Exception):
        message = str(ex)
        # Components that already reported the error leave it on the board
        if self.status.get() != message:
            self.status.error(message)

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------

    def start_camera(self):
        self.scheduler.start()

    def stop_camera(self):
        self.scheduler.stop()

    def pause_camera(self):
        self.frame_source.pause()
        self.status.report("Camera paused")

    def resume_camera(self):
        self.frame_source.resume()
        self.status.report("Camera resumed")

    @property
    def camera_on(self) -> bool:
        return self.scheduler.running

    # ------------------------------------------------------------------
    # Models and modes
    # ------------------------------------------------------------------

    def load_detector(self):
        return self.controller.load_detector()

    def load_custom_model(self, url: Optional[str] = None):
        if url is not None:
            self.settings.custom_model_url = url
        return self.controller.load_custom_model(self.settings.custom_model_url)

    def load_feature_extractor(self):
        return self.extractor.ensure_loaded()

    def toggle_nearest_neighbor(self) -> Mode:
        return self.controller.toggle_nearest_neighbor()

    def set_nearest_neighbor(self, enabled: bool) -> Mode:
        return self.controller.set_nearest_neighbor(enabled)

    def activate(self, mode) -> Mode:
        return self.controller.activate(mode)

    # ------------------------------------------------------------------
    # Training data
    # ------------------------------------------------------------------

    def add_example(self, label: Optional[str] = None):
        """
        Capture the current frame, extract its features and store them under label.

        Raises:
            InvalidLabel: label is empty
            CameraAccessError: no camera frame is available
        """
        if label is None:
            label = self.settings.example_label
        if not label or not label.strip():
            # Checked before touching the model or the camera
            return self.store.add_example(label or "", ())

        if not self.extractor.is_loaded:
            self.extractor.ensure_loaded()
        frame = self.frame_source.current_frame() if self.frame_source.is_ready() else None
        if frame is None:
            raise CameraAccessError("Feature extractor or camera not available")

        features = self.extractor.extract(frame)
        return self.store.add_example(label, features)

    def save_dataset(self):
        self.store.save()

    def load_dataset(self) -> bool:
        return self.store.load()

    def clear_dataset(self):
        self.store.clear()

    def export_dataset(self, directory: Optional[str] = None) -> str:
        """Write the dataset to a timestamped JSON file and return its path."""
        exported: ExportedDataset = self.store.export_dataset()
        directory = directory or self.export_dir
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, exported.filename)
        with open(path, "wb") as f:
            f.write(exported.content)
        self.status.report(f"Dataset exported to {path}")
        return path

    def import_dataset_file(self, path: str) -> int:
        with open(path, "rb") as f:
            data = f.read()
        return self.store.import_dataset(data)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_k(self, k: int):
        self.settings.k = k

    def set_min_score(self, min_score: float):
        self.settings.min_score = min_score

    def describe(self) -> dict:
        state = self.controller.describe()
        state.update({
            "status": self.status.get(),
            "camera_on": self.camera_on,
            "fps": round(self.scheduler.fps, 1),
            "feature_extractor_loaded": self.extractor.is_loaded,
            "examples": len(self.store),
            "label_counts": self.store.label_counts(),
            "predictions": [entry.as_dict() for entry in self.cache.snapshot()],
            "settings": self.settings.as_dict(),
        })
        return state

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def handle_key(self, key: int) -> bool:
        """
        Keyboard bindings of the display window. Returns False to quit.
        """
        bindings = {
            ord('d'): self.load_detector,
            ord('c'): self.load_custom_model,
            ord('m'): self.load_feature_extractor,
            ord('n'): self.toggle_nearest_neighbor,
            ord('a'): self.add_example,
            ord('s'): self.save_dataset,
            ord('l'): self.load_dataset,
            ord('x'): self.clear_dataset,
            ord('e'): self.export_dataset,
            ord('p'): self.pause_camera if not self.frame_source.paused else self.resume_camera,
        }

        if key == ord('q'):
            self._quit.set()
            return False

        action = bindings.get(key)
        if action is not None:
            self.run_action(action)
        return True

    def request_quit(self):
        self._quit.set()

    def run_forever(self):
        """Render while the camera is on; wait for it otherwise, until quit."""
        while not self._quit.is_set():
            if self.scheduler.running:
                self.scheduler.run(on_key=self.handle_key)
            elif self.display is not None:
                key = self.display.poll()
                if key != 255:
                    self.handle_key(key)
            else:
                self._quit.wait(0.05)

    def shutdown(self):
        self.scheduler.stop()
        self.store.wait_for_persistence(timeout=2.0)
        if self.display is not None:
            self.display.close()
        logger.info("LiveCam stopped")
