#!/usr/bin/env python3

"""
Model Loading Module

Loads the two external model kinds the pipeline can switch between:
- a pretrained bounding-box detector (YOLO through ultralytics)
- a user-supplied Keras classifier with its label list

Both are consumed only through detect() / predict_scores().
"""

import json
import logging
import os
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import cv2
import numpy as np
import requests

from .errors import ModelLoadError
from .predictions import Detection
from .settings import DETECTOR_WEIGHTS, MODEL_CACHE_DIR


logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SEC = 30


class YoloDetector:
    """Bounding-box detector backed by an ultralytics YOLO model."""

    def __init__(self, model):
        self.model = model

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """
        Detect objects in a frame.

        Returns:
            Detections with (x, y, width, height) boxes in frame pixels
        """
        results = self.model(frame, verbose=False)
        detections = []
        if not results:
            return detections

        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None:
            return detections

        names = result.names
        for box in boxes:
            x1, y1, x2, y2 = (float(v) for v in box.xyxy[0].tolist())
            class_id = int(box.cls[0])
            detections.append(Detection(
                label=names.get(class_id, f"Class {class_id}") if isinstance(names, dict) else names[class_id],
                confidence=float(box.conf[0]),
                bbox=(x1, y1, x2 - x1, y2 - y1),
            ))
        return detections


def load_detector(weights: str = DETECTOR_WEIGHTS) -> YoloDetector:
    """Load YOLO weights (downloaded by ultralytics on first use)."""
    try:
        from ultralytics import YOLO

        model = YOLO(weights)
    except Exception as ex:
        raise ModelLoadError(f"Error loading detector {weights}: {ex}") from ex

    logger.info(f"Loaded detector {weights}")
    return YoloDetector(model)


class CustomModel:
    """
    User-trained image classifier.

    Args:
        model: anything with a Keras-style predict(batch) and, optionally, input_shape
        labels: class names, index-aligned with the model's output scores
    """

    def __init__(self, model, labels: Sequence[str] = ()):
        self.model = model
        self.labels = list(labels)

    def target_size(self, frame_height: int, frame_width: int):
        """
        Height and width the frame is resized to before prediction.

        Uses the model's declared (batch, height, width, channels) input shape;
        any unknown axis, or a model with no 4-D input shape, falls back to the
        frame's own size.
        """
        input_shape = getattr(self.model, "input_shape", None)
        if isinstance(input_shape, list):
            input_shape = input_shape[0] if input_shape else None

        if input_shape is not None and len(input_shape) == 4:
            height = input_shape[1] or frame_height
            width = input_shape[2] or frame_width
            return int(height), int(width)
        return frame_height, frame_width

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        height, width = frame.shape[:2]
        target_h, target_w = self.target_size(height, width)

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB).astype(np.float32)
        if (target_h, target_w) != (height, width):
            rgb = cv2.resize(rgb, (target_w, target_h), interpolation=cv2.INTER_LINEAR)

        normalized = rgb / 255.0
        return normalized[None, ...]

    def predict_scores(self, frame: np.ndarray) -> np.ndarray:
        """Run one forward pass and return the flat score vector."""
        batch = self.preprocess(frame)
        output = self.model.predict(batch, verbose=0)

        # Multi-output models: the last output holds the class scores
        if isinstance(output, (list, tuple)):
            output = output[-1]
        return np.asarray(output, dtype=np.float32).reshape(-1)


def _is_remote(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def _sibling(source: str, name: str) -> str:
    """Path or URL of a file next to the model source."""
    if _is_remote(source):
        base = source.rsplit("/", 1)[0]
        return f"{base}/{name}"
    return os.path.join(os.path.dirname(source), name)


def _classes_txt(source: str) -> str:
    root, _ = os.path.splitext(source)
    return f"{root}_classes.txt"


def _read_text(location: str) -> Optional[str]:
    """Fetch a small text file from disk or HTTP; None when it does not exist."""
    if _is_remote(location):
        response = requests.get(location, timeout=DOWNLOAD_TIMEOUT_SEC)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    if not os.path.exists(location):
        return None
    with open(location, "r") as f:
        return f.read()


def load_labels(source: str) -> List[str]:
    """
    Load class names stored alongside a model.

    Looks for metadata.json ({"labels": [...]}) next to the model, then for
    <model>_classes.txt with one class per line. Returns an empty list when
    neither exists; predictions then use placeholder names.
    """
    metadata = _read_text(_sibling(source, "metadata.json"))
    if metadata is not None:
        labels = json.loads(metadata).get("labels")
        if isinstance(labels, list):
            return [str(label) for label in labels]

    classes = _read_text(_classes_txt(source))
    if classes is not None:
        return [line.strip() for line in classes.splitlines() if line.strip()]

    logger.warning(f"No label list found for {source}, using placeholder names")
    return []


def download_model(url: str, cache_dir: str = MODEL_CACHE_DIR) -> str:
    """Download a remote model file into the cache directory and return its local path."""
    os.makedirs(cache_dir, exist_ok=True)
    filename = os.path.basename(urlparse(url).path) or "model.keras"
    local_path = os.path.join(cache_dir, filename)

    logger.info(f"Downloading model from {url}...")
    response = requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SEC)
    response.raise_for_status()
    with open(local_path, "wb") as f:
        for chunk in response.iter_content(chunk_size=8192):
            f.write(chunk)
    return local_path


def load_custom_model(source: str, cache_dir: str = MODEL_CACHE_DIR) -> CustomModel:
    """
    Load a Keras classifier from a local path or an http(s) URL, with its labels.

    Raises:
        ModelLoadError: the source is empty, unreachable or not a loadable model
    """
    if not source:
        raise ModelLoadError("Please enter the model URL")

    try:
        import tensorflow as tf

        local_path = download_model(source, cache_dir) if _is_remote(source) else source
        model = tf.keras.models.load_model(local_path, compile=False)
        labels = load_labels(source)
    except Exception as ex:
        raise ModelLoadError(f"Error loading custom model: {ex}") from ex

    logger.info(f"Loaded custom model with {len(labels)} classes: {labels}")
    return CustomModel(model, labels)
