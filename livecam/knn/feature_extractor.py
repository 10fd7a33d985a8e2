#!/usr/bin/env python3

"""
Feature Extraction Port

Wraps a pretrained image model (MobileNetV2 without its classification head)
that turns a camera frame into a fixed-length feature vector. The model is
loaded once, on first use, and shared by every caller.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

import cv2
import numpy as np

from ..core.errors import ModelLoadError, NotLoaded
from ..core.settings import FEATURE_EXTRACTOR_INPUT_SIZE
from ..core.status import StatusBoard


logger = logging.getLogger(__name__)


def load_mobilenet(input_size: int = FEATURE_EXTRACTOR_INPUT_SIZE):
    """Build MobileNetV2 as a feature extractor (global average pooled, no top)."""
    import tensorflow as tf

    return tf.keras.applications.MobileNetV2(
        input_shape=(input_size, input_size, 3),
        include_top=False,
        weights="imagenet",
        pooling="avg",
    )


class FeatureExtractor:
    """
    Lazily loaded, shared feature extractor.

    Args:
        loader: builds the model; defaults to MobileNetV2 with ImageNet weights
        status: board that receives load progress messages
        input_size: square input resolution the model expects
    """

    def __init__(self,
                 loader: Optional[Callable[[], Any]] = None,
                 status: Optional[StatusBoard] = None,
                 input_size: int = FEATURE_EXTRACTOR_INPUT_SIZE):
        self.loader = loader or (lambda: load_mobilenet(input_size))
        self.status = status or StatusBoard()
        self.input_size = input_size

        self._model = None
        self._inflight: Optional[Future] = None
        self._lock = threading.Lock()
        self._dimension: Optional[int] = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def ensure_loaded(self):
        """
        Load the model unless it is already loaded or loading.

        A caller arriving while another thread is loading waits for that load
        and gets the same model (or the same error).

        Returns:
            The model handle

        Raises:
            ModelLoadError: the model could not be loaded; a later call retries
        """
        with self._lock:
            if self._model is not None:
                model = self._model
                owner = None
            elif self._inflight is not None:
                model = None
                owner = False
                future = self._inflight
            else:
                model = None
                owner = True
                future = Future()
                self._inflight = future

        if model is not None:
            self.status.report("Feature extractor already loaded")
            return model

        if not owner:
            return future.result()

        self.status.report("Loading feature extractor (MobileNetV2)...")
        try:
            model = self.loader()
        except Exception as ex:
            logger.exception("Feature extractor load failed")
            error = ModelLoadError(f"Error loading feature extractor: {ex}")
            future.set_exception(error)
            self.status.error(str(error))
            raise error from ex
        except BaseException:
            # Interrupted load: release waiters, the next call starts over
            future.set_exception(ModelLoadError("Feature extractor load was interrupted"))
            raise
        else:
            with self._lock:
                self._model = model
            future.set_result(model)
        finally:
            with self._lock:
                self._inflight = None

        self.status.report("Feature extractor loaded")
        return model

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """BGR frame -> (1, size, size, 3) float32 batch scaled to [-1, 1]."""
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        resized = cv2.resize(rgb, (self.input_size, self.input_size), interpolation=cv2.INTER_LINEAR)
        batch = resized.astype(np.float32) / 127.5 - 1.0
        return batch[None, ...]

    def extract(self, frame: np.ndarray) -> np.ndarray:
        """
        Compute the feature vector of one frame.

        The frame is only read during the call; the caller may reuse its
        buffer as soon as this returns.

        Raises:
            NotLoaded: ensure_loaded() has not succeeded yet
        """
        model = self._model
        if model is None:
            raise NotLoaded("Feature extractor is not loaded")

        batch = self.preprocess(frame)
        activation = model.predict(batch, verbose=0)
        features = np.array(activation, dtype=np.float32).reshape(-1)

        if self._dimension is None:
            self._dimension = int(features.shape[0])
        return features
