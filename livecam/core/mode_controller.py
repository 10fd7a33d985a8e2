#!/usr/bin/env python3

"""
Mode Controller

Decides which prediction source drives the overlay. Exactly one mode is active
at a time; loaded models stay resident when the selection moves away from
them, so switching back needs no reload.
"""

import enum
import logging
import threading
from typing import Callable, Dict, List, Optional

from .errors import LiveCamError, ModelLoadError, NotLoaded
from .sources import CustomModelSource, DetectorSource, PredictionSource
from .status import StatusBoard


logger = logging.getLogger(__name__)


class Mode(enum.Enum):
    IDLE = "idle"
    DETECTOR = "detector"
    CUSTOM_MODEL = "custom_model"
    NEAREST_NEIGHBOR = "nearest_neighbor"


ModeListener = Callable[[Mode, Mode], None]


class ModeController:
    """
    Exclusive-choice state machine over the three prediction sources.

    Args:
        detector_loader: returns a loaded detector (raises on failure)
        custom_model_loader: takes a model URL/path and returns a CustomModel
        nearest_neighbor_source: source used while k-NN is switched on
        status: board that receives user-facing messages
    """

    def __init__(self,
                 detector_loader: Callable[[], object],
                 custom_model_loader: Callable[[str], object],
                 nearest_neighbor_source: PredictionSource,
                 status: Optional[StatusBoard] = None):
        self.detector_loader = detector_loader
        self.custom_model_loader = custom_model_loader
        self.status = status or StatusBoard()

        self.detector = None
        self.custom_model = None

        self._sources: Dict[Mode, PredictionSource] = {Mode.NEAREST_NEIGHBOR: nearest_neighbor_source}
        self._mode = Mode.IDLE
        # Mode k-NN falls back to when switched off
        self._last_loaded: Optional[Mode] = None
        self._lock = threading.Lock()
        self._listeners: List[ModeListener] = []
        self.loading = False

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def nearest_neighbor_enabled(self) -> bool:
        return self._mode is Mode.NEAREST_NEIGHBOR

    def subscribe(self, listener: ModeListener):
        """Call listener(old_mode, new_mode) after every mode change."""
        self._listeners.append(listener)

    def _set_mode(self, mode: Mode):
        with self._lock:
            old = self._mode
            self._mode = mode

        if old is not mode:
            logger.info(f"Mode changed: {old.value} -> {mode.value}")
            for listener in list(self._listeners):
                listener(old, mode)

    def active_source(self) -> Optional[PredictionSource]:
        """Source for the current mode, or None while idle."""
        return self._sources.get(self._mode)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, description: str, load: Callable[[], object]):
        self.loading = True
        self.status.report(f"Loading {description}...")
        try:
            return load()
        except LiveCamError as ex:
            logger.exception(f"Loading {description} failed")
            error = ex if isinstance(ex, ModelLoadError) else ModelLoadError(str(ex))
            self.status.error(str(error))
            raise error from ex
        except Exception as ex:
            logger.exception(f"Loading {description} failed")
            error = ModelLoadError(f"Error loading {description}: {ex}")
            self.status.error(str(error))
            raise error from ex
        finally:
            self.loading = False

    def load_detector(self):
        """
        Load the detector and make it the active source.

        Raises:
            ModelLoadError: mode and resident models are left unchanged
        """
        detector = self._load("detector", self.detector_loader)

        with self._lock:
            self.detector = detector
            self._sources[Mode.DETECTOR] = DetectorSource(detector)
            self._last_loaded = Mode.DETECTOR
        self._set_mode(Mode.DETECTOR)
        self.status.report("Detector loaded")
        return detector

    def load_custom_model(self, source: str):
        """
        Load a custom classifier and make it the active source.

        Raises:
            ModelLoadError: mode and resident models are left unchanged
        """
        if not source:
            error = ModelLoadError("Please enter the model URL")
            self.status.error(str(error))
            raise error

        custom_model = self._load("custom model", lambda: self.custom_model_loader(source))

        with self._lock:
            self.custom_model = custom_model
            self._sources[Mode.CUSTOM_MODEL] = CustomModelSource(custom_model)
            self._last_loaded = Mode.CUSTOM_MODEL
        self._set_mode(Mode.CUSTOM_MODEL)
        self.status.report(f"Custom model and {len(custom_model.labels)} labels loaded")
        return custom_model

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def set_nearest_neighbor(self, enabled: bool) -> Mode:
        """
        Switch k-NN on or off.

        Switching on deselects the detector and the custom model. Switching
        off returns to the most recently loaded of the two, or idle.
        """
        if enabled:
            self._set_mode(Mode.NEAREST_NEIGHBOR)
            self.status.report("k-NN enabled")
        elif self._mode is Mode.NEAREST_NEIGHBOR:
            self._set_mode(self._last_loaded or Mode.IDLE)
            self.status.report("k-NN disabled")
        return self._mode

    def toggle_nearest_neighbor(self) -> Mode:
        return self.set_nearest_neighbor(not self.nearest_neighbor_enabled)

    def activate(self, mode: Mode) -> Mode:
        """
        Select an already loaded source without reloading it.

        Raises:
            NotLoaded: the model for that mode was never loaded
        """
        mode = Mode(mode)
        if mode is Mode.NEAREST_NEIGHBOR:
            return self.set_nearest_neighbor(True)

        if mode is Mode.DETECTOR and self.detector is None:
            raise NotLoaded("Load the detector first")
        if mode is Mode.CUSTOM_MODEL and self.custom_model is None:
            raise NotLoaded("Load a custom model first")

        self._set_mode(mode)
        return self._mode

    def describe(self) -> dict:
        return {
            "mode": self._mode.value,
            "detector_loaded": self.detector is not None,
            "custom_model_loaded": self.custom_model is not None,
            "labels": list(self.custom_model.labels) if self.custom_model is not None else [],
            "loading": self.loading,
        }
