"""
Prediction types shared by every prediction source.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple


@dataclass(frozen=True)
class PredictionEntry:
    """A label with a confidence in [0, 1]."""

    label: str
    confidence: float

    def as_dict(self) -> dict:
        return {"label": self.label, "confidence": self.confidence}


@dataclass(frozen=True)
class Detection(PredictionEntry):
    """A detector prediction with its (x, y, width, height) box in frame pixels."""

    bbox: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)

    def as_dict(self) -> dict:
        return {"label": self.label, "confidence": self.confidence, "bbox": list(self.bbox)}


def rank_scores(scores: Iterable[float],
                labels: Sequence[str],
                noise_floor: float) -> List[PredictionEntry]:
    """
    Turn a raw score vector into ranked predictions.

    Scores at or below the noise floor are dropped. Index i takes labels[i] when
    present and the placeholder "Class i" otherwise. Scores are not renormalized.

    Args:
        scores: one score per class
        labels: class names loaded alongside the model
        noise_floor: minimum score kept

    Returns:
        Predictions sorted by confidence, highest first
    """
    entries = []
    for index, score in enumerate(scores):
        score = float(score)
        if score <= noise_floor:
            continue
        label = labels[index] if index < len(labels) and labels[index] else f"Class {index}"
        entries.append(PredictionEntry(label, score))

    entries.sort(key=lambda entry: entry.confidence, reverse=True)
    return entries
