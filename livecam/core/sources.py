"""
Prediction Sources

The three interchangeable ways of producing ranked labels for the current
frame. The mode controller picks one; the scheduler only talks to this
interface.
"""

from abc import ABC, abstractmethod
from typing import Callable, List

import numpy as np

from ..knn.classifier import classify
from .predictions import PredictionEntry, rank_scores
from .settings import NOISE_FLOOR


class PredictionSource(ABC):
    """Produces ranked predictions for one frame."""

    # Sources whose inference is too slow for the render loop run on the
    # background loop, and the render loop draws their cached output instead.
    runs_in_background = False

    @abstractmethod
    def predict(self, frame: np.ndarray) -> List[PredictionEntry]:
        pass


class DetectorSource(PredictionSource):
    """Boxes from the resident object detector."""

    def __init__(self, detector):
        self.detector = detector

    def predict(self, frame):
        return list(self.detector.detect(frame))


class CustomModelSource(PredictionSource):
    """Raw class scores from the user's model, above the noise floor, highest first."""

    runs_in_background = True

    def __init__(self, custom_model, noise_floor: float = NOISE_FLOOR):
        self.custom_model = custom_model
        self.noise_floor = noise_floor

    def predict(self, frame):
        scores = self.custom_model.predict_scores(frame)
        return rank_scores(scores, self.custom_model.labels, self.noise_floor)


class NearestNeighborSource(PredictionSource):
    """
    Feature extraction followed by k-NN over the dataset store.

    Args:
        extractor: FeatureExtractor port
        store: DatasetStore holding the training examples
        get_k: returns the currently configured k
    """

    def __init__(self, extractor, store, get_k: Callable[[], int]):
        self.extractor = extractor
        self.store = store
        self.get_k = get_k

    def predict(self, frame):
        if not self.extractor.is_loaded:
            self.extractor.ensure_loaded()
        dataset = self.store.snapshot()
        # Not trained yet
        if not dataset:
            return []

        features = self.extractor.extract(frame)
        k = min(self.get_k(), len(dataset))
        return classify(features, dataset, k)
