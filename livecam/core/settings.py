#!/usr/bin/env python3

"""
Pipeline settings

Defaults for the camera, the models and the two loops. Every constant can be
overridden with a LIVECAM_* environment variable; values that the user changes
while the pipeline runs live in LiveSettings.
"""

import logging
import os
import threading


# Camera
WEBCAM_ID = int(os.getenv("LIVECAM_WEBCAM_ID", "0"))
FRAME_WIDTH = int(os.getenv("LIVECAM_FRAME_WIDTH", "640"))
FRAME_HEIGHT = int(os.getenv("LIVECAM_FRAME_HEIGHT", "480"))
CAMERA_FPS = int(os.getenv("LIVECAM_CAMERA_FPS", "30"))

# Background inference loop period (seconds) and score noise floor
BACKGROUND_INTERVAL_SEC = float(os.getenv("LIVECAM_BACKGROUND_INTERVAL_SEC", "0.1"))
NOISE_FLOOR = float(os.getenv("LIVECAM_NOISE_FLOOR", "0.01"))

# How long the render loop yields when no frame is ready
RENDER_IDLE_SEC = float(os.getenv("LIVECAM_RENDER_IDLE_SEC", "0.01"))

# Models
DETECTOR_WEIGHTS = os.getenv("LIVECAM_DETECTOR_WEIGHTS", "yolov8n.pt")
FEATURE_EXTRACTOR_INPUT_SIZE = int(os.getenv("LIVECAM_FEATURE_INPUT_SIZE", "224"))
MODEL_CACHE_DIR = os.getenv("LIVECAM_MODEL_CACHE_DIR", "models/custom")

# Dataset persistence
DB_PATH = os.getenv("LIVECAM_DB_PATH", "./data/livecam.db")
DATASET_KEY = "knnDataset"

# Defaults exposed to the user
DEFAULT_MIN_SCORE = 0.5
DEFAULT_K = 3

PREDICTION_ERROR_LABEL = "prediction error"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("livecam")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


class LiveSettings:
    """
    Runtime-adjustable values read by the render loop on every frame.

    Args:
        min_score: Detector confidence threshold in [0, 1]
        k: Number of neighbours for k-NN classification
        custom_model_url: Last custom model source entered by the user
        example_label: Label attached to examples captured from the keyboard
    """

    def __init__(self,
                 min_score: float = DEFAULT_MIN_SCORE,
                 k: int = DEFAULT_K,
                 custom_model_url: str = "",
                 example_label: str = ""):
        self._lock = threading.Lock()
        self._min_score = DEFAULT_MIN_SCORE
        self._k = DEFAULT_K
        self.custom_model_url = custom_model_url
        self.example_label = example_label
        self.min_score = min_score
        self.k = k

    @property
    def min_score(self) -> float:
        return self._min_score

    @min_score.setter
    def min_score(self, value: float):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"min_score must be a number: {value!r}") from None
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"min_score must be within [0, 1]: {value}")
        with self._lock:
            self._min_score = value

    @property
    def k(self) -> int:
        return self._k

    @k.setter
    def k(self, value: int):
        try:
            is_integer = not isinstance(value, bool) and int(value) == value
        except (OverflowError, TypeError, ValueError):
            is_integer = False
        if not is_integer:
            raise ValueError(f"k must be an integer: {value!r}")
        value = int(value)
        if value < 1:
            raise ValueError(f"k must be >= 1: {value}")
        with self._lock:
            self._k = value

    def as_dict(self) -> dict:
        return {
            "min_score": self._min_score,
            "k": self._k,
            "custom_model_url": self.custom_model_url,
            "example_label": self.example_label,
        }
