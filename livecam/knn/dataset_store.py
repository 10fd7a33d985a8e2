#!/usr/bin/env python3

"""
Dataset Store

Owns the labeled feature vectors the k-NN classifier is trained on. Every
change goes through one private entry point so the per-label counts always
match the examples, and every change can be persisted to a key-value store,
exported to JSON and imported back.
"""

import json
import logging
import math
import threading
import time
from dataclasses import dataclass
from numbers import Real
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.errors import CorruptDataset, DimensionMismatch, InvalidDataset, InvalidLabel
from ..core.settings import DATASET_KEY
from ..core.status import StatusBoard
from .storage import KeyValueStore


logger = logging.getLogger(__name__)

EXPORT_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class TrainingExample:
    """One labeled feature vector."""

    label: str
    features: Tuple[float, ...]

    def as_dict(self) -> dict:
        return {"label": self.label, "features": list(self.features)}


@dataclass(frozen=True)
class ExportedDataset:
    """Serialized dataset ready to be written to a file or an HTTP response."""

    content: bytes
    content_type: str
    filename: str


def _as_features(values) -> Tuple[float, ...]:
    return tuple(float(v) for v in values)


def _is_feature_sequence(values) -> bool:
    if isinstance(values, (str, bytes, dict)) or not isinstance(values, Sequence):
        return False
    if len(values) == 0:
        return False
    return all(isinstance(v, Real) and not isinstance(v, bool) and math.isfinite(v) for v in values)


def validate_records(records) -> List[TrainingExample]:
    """
    Check raw records and build TrainingExamples from them.

    Each record needs a non-empty string label and a non-empty numeric feature
    sequence, and all feature sequences must share the first record's length.
    Records may be dicts ({"label", "features"}) or TrainingExamples.

    Raises:
        InvalidDataset: listing the indices of every offending record
    """
    if isinstance(records, (str, bytes, dict)) or not isinstance(records, Sequence):
        raise InvalidDataset("Dataset must be a list of {label, features} records")

    bad: List[int] = []
    examples: List[TrainingExample] = []
    dimension: Optional[int] = None

    for index, record in enumerate(records):
        if isinstance(record, TrainingExample):
            label, features = record.label, record.features
        elif isinstance(record, dict):
            label, features = record.get("label"), record.get("features")
        else:
            bad.append(index)
            continue

        if not isinstance(label, str) or not label.strip() or not _is_feature_sequence(features):
            bad.append(index)
            continue

        if dimension is None:
            dimension = len(features)
        elif len(features) != dimension:
            bad.append(index)
            continue

        examples.append(TrainingExample(label, _as_features(features)))

    if bad:
        raise InvalidDataset("Dataset contains invalid records", bad)
    return examples


class DatasetStore:
    """
    In-memory k-NN training set with best-effort persistence.

    Args:
        kv_store: where save/load keep the dataset; None disables persistence
        status: board that receives user-facing messages
        key: storage key for the serialized dataset
        persist_async: write in a background thread after each added example
    """

    def __init__(self,
                 kv_store: Optional[KeyValueStore] = None,
                 status: Optional[StatusBoard] = None,
                 key: str = DATASET_KEY,
                 persist_async: bool = True):
        self.kv_store = kv_store
        self.status = status or StatusBoard()
        self.key = key
        self.persist_async = persist_async

        self._examples: Tuple[TrainingExample, ...] = ()
        self._label_counts: Dict[str, int] = {}
        self._pending_write: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Single mutation entry point
    # ------------------------------------------------------------------

    def _set_examples(self, examples: Iterable[TrainingExample]):
        examples = tuple(examples)
        counts: Dict[str, int] = {}
        for example in examples:
            counts[example.label] = counts.get(example.label, 0) + 1
        self._examples = examples
        self._label_counts = counts

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> Tuple[TrainingExample, ...]:
        """Immutable view of the current examples."""
        return self._examples

    def label_counts(self) -> Dict[str, int]:
        return dict(self._label_counts)

    @property
    def dimension(self) -> Optional[int]:
        if not self._examples:
            return None
        return len(self._examples[0].features)

    def __len__(self):
        return len(self._examples)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_example(self, label: str, features) -> TrainingExample:
        """
        Append one example and schedule a persistence write.

        Raises:
            InvalidLabel: label is empty
            DimensionMismatch: features length differs from the stored vectors
            InvalidDataset: features contain NaN or infinite values
        """
        if not isinstance(label, str) or not label.strip():
            raise InvalidLabel("Enter a label before adding examples")

        features = _as_features(features)
        if not features:
            raise DimensionMismatch(self.dimension or 0, 0, "Feature vector is empty")

        dimension = self.dimension
        if dimension is not None and len(features) != dimension:
            raise DimensionMismatch(dimension, len(features))
        if not all(math.isfinite(v) for v in features):
            raise InvalidDataset("Feature vector contains NaN or infinite values")

        example = TrainingExample(label, features)
        self._set_examples(self._examples + (example,))
        self.status.report(f"Example added for: {label} (total: {len(self._examples)})")

        self._persist_in_background()
        return example

    def replace(self, records) -> None:
        """Swap in a whole new dataset, or raise InvalidDataset and keep the old one."""
        examples = validate_records(records)
        self._set_examples(examples)

    def clear(self) -> None:
        self._set_examples(())
        if self.kv_store is not None:
            # A queued write of the old examples must not land after the delete
            self.wait_for_persistence()
            self.kv_store.delete(self.key)
        self.status.report("Dataset cleared")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _serialize(self, examples: Sequence[TrainingExample], indent: Optional[int] = None) -> bytes:
        return json.dumps([example.as_dict() for example in examples], indent=indent).encode("utf-8")

    def _write(self, examples: Tuple[TrainingExample, ...]):
        self.kv_store.set(self.key, self._serialize(examples))

    def _write_quietly(self, examples: Tuple[TrainingExample, ...]):
        try:
            self._write(examples)
        except Exception as ex:
            logger.exception("Dataset persistence failed")
            self.status.error(f"Error saving dataset: {ex}")

    def _persist_in_background(self):
        if self.kv_store is None:
            return

        examples = self._examples
        if not self.persist_async:
            self._write_quietly(examples)
            return

        # Writes stay ordered: each one waits for the previous before starting
        previous = self._pending_write

        def run():
            if previous is not None:
                previous.join()
            self._write_quietly(examples)

        thread = threading.Thread(target=run, name="dataset-persist", daemon=True)
        self._pending_write = thread
        thread.start()

    def wait_for_persistence(self, timeout: Optional[float] = None) -> bool:
        """Block until the last scheduled write finished. Returns False on timeout."""
        thread = self._pending_write
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def save(self) -> None:
        """Write the dataset synchronously."""
        if self.kv_store is None:
            raise RuntimeError("No key-value store configured")
        self.wait_for_persistence()
        self._write(self._examples)
        self.status.report("Dataset saved")

    def load(self) -> bool:
        """
        Replace the dataset with the persisted copy.

        Returns:
            False when nothing is stored under the key

        Raises:
            CorruptDataset: stored bytes are not a valid dataset; memory is untouched
        """
        if self.kv_store is None:
            raise RuntimeError("No key-value store configured")
        self.wait_for_persistence()

        raw = self.kv_store.get(self.key)
        if raw is None:
            self.status.report("No saved dataset found")
            return False

        try:
            records = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else raw)
            examples = validate_records(records)
        except (ValueError, InvalidDataset) as ex:
            raise CorruptDataset(f"Stored dataset is corrupt: {ex}") from ex

        self._set_examples(examples)
        self.status.report(f"Dataset loaded ({len(examples)} examples)")
        return True

    # ------------------------------------------------------------------
    # File import / export
    # ------------------------------------------------------------------

    def export_dataset(self) -> ExportedDataset:
        if not self._examples:
            raise InvalidDataset("No dataset to export")

        content = self._serialize(self._examples, indent=2)
        filename = f"knn-dataset-{int(time.time() * 1000)}.json"
        self.status.report("Dataset exported")
        return ExportedDataset(content, EXPORT_CONTENT_TYPE, filename)

    def import_dataset(self, data) -> int:
        """
        Parse JSON bytes (or text) and replace the dataset wholesale.

        Returns:
            Number of imported examples

        Raises:
            InvalidDataset: unparsable JSON or any invalid record; nothing is imported
        """
        try:
            text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
            records = json.loads(text)
        except (UnicodeDecodeError, ValueError) as ex:
            raise InvalidDataset(f"Could not read the JSON file: {ex}") from ex

        self.replace(records)
        self.status.report(f"Dataset imported with {len(self._examples)} examples")
        return len(self._examples)
