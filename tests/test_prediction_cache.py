"""
Tests for the prediction cache shared by the two loops.
"""

import threading

from livecam.core.prediction_cache import PredictionCache
from livecam.core.predictions import PredictionEntry


class TestPredictionCache:

    def test_starts_empty(self):
        cache = PredictionCache()
        assert cache.snapshot() == ()
        assert len(cache) == 0

    def test_replace_and_clear(self):
        cache = PredictionCache()
        cache.replace([PredictionEntry("b", 0.5), PredictionEntry("a", 0.02)])
        assert cache.snapshot() == (PredictionEntry("b", 0.5), PredictionEntry("a", 0.02))

        cache.clear()
        assert cache.snapshot() == ()
        assert cache.version == 2

    def test_snapshot_unaffected_by_later_writes(self):
        cache = PredictionCache()
        cache.replace([PredictionEntry("a", 1.0)])
        held = cache.snapshot()
        cache.replace([PredictionEntry("b", 1.0)])

        assert held == (PredictionEntry("a", 1.0),)

    def test_readers_never_see_partial_writes(self):
        cache = PredictionCache()
        full = [PredictionEntry(f"label {i}", 0.1) for i in range(10)]
        stop = threading.Event()
        torn = []

        def writer():
            while not stop.is_set():
                cache.replace(full)
                cache.clear()

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(10000):
                size = len(cache.snapshot())
                if size not in (0, 10):
                    torn.append(size)
        finally:
            stop.set()
            thread.join()

        assert torn == []
