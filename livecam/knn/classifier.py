"""
k-Nearest Neighbour Classifier

Classifies a feature vector by majority vote among the k closest training
examples. Stateless: everything it needs is passed in.
"""

import math
from typing import Dict, List, Sequence

import numpy as np

from ..core.errors import DimensionMismatch
from ..core.predictions import PredictionEntry


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Euclidean distance between two feature vectors.

    Squared differences are summed first and a single square root is taken, so
    identical inputs always produce bit-identical distances.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(a.shape[0] if a.ndim else 0, b.shape[0] if b.ndim else 0)

    diff = a - b
    return math.sqrt(float(np.dot(diff, diff)))


def classify(query: Sequence[float], dataset: Sequence, k: int = 3) -> List[PredictionEntry]:
    """
    Rank labels for a query vector using the k nearest training examples.

    Args:
        query: Feature vector to classify
        dataset: Sequence of TrainingExample (anything with .label and .features)
        k: Number of neighbours, clamped to the dataset size

    Returns:
        One PredictionEntry per distinct label among the top-k, confidence
        being the vote fraction. Sorted by confidence, ties in the order the
        labels first appear among the neighbours. Empty for an empty dataset.
    """
    if isinstance(k, bool) or int(k) != k or k < 1:
        raise ValueError(f"k must be an integer >= 1: {k}")
    if len(dataset) == 0:
        return []

    query = np.asarray(query, dtype=np.float64).reshape(-1)

    distances = np.empty(len(dataset), dtype=np.float64)
    for i, example in enumerate(dataset):
        features = example.features
        if len(features) != query.shape[0]:
            raise DimensionMismatch(query.shape[0], len(features),
                                    f"Training example {i} has length {len(features)}, "
                                    f"query has length {query.shape[0]}")
        distances[i] = euclidean_distance(query, features)

    # Stable sort keeps dataset order among equal distances
    order = np.argsort(distances, kind="stable")
    effective_k = min(int(k), len(dataset))
    top_k = order[:effective_k]

    # dicts keep insertion order, i.e. first appearance among the neighbours
    votes: Dict[str, int] = {}
    for idx in top_k:
        label = dataset[int(idx)].label
        votes[label] = votes.get(label, 0) + 1

    ranked = sorted(votes.items(), key=lambda item: item[1], reverse=True)
    return [PredictionEntry(label, count / effective_k) for label, count in ranked]
