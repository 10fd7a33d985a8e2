#!/usr/bin/env python3

"""
Snapshot cache written by the background inference loop and read by the render loop
"""

import threading
from typing import Iterable, Tuple

from .predictions import PredictionEntry


class PredictionCache:
    """
    Latest predictions produced off the render thread.

    Writers build a complete tuple and swap the reference in one assignment;
    readers take whatever tuple is current and never see a half-written list.
    """

    def __init__(self):
        self._snapshot: Tuple[PredictionEntry, ...] = ()
        # Serializes writers only; readers never take it
        self._write_lock = threading.Lock()
        self.version = 0

    def replace(self, entries: Iterable[PredictionEntry]):
        snapshot = tuple(entries)
        with self._write_lock:
            self._snapshot = snapshot
            self.version += 1

    def clear(self):
        self.replace(())

    def snapshot(self) -> Tuple[PredictionEntry, ...]:
        return self._snapshot

    def __len__(self):
        return len(self._snapshot)

