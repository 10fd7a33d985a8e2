"""
Shared fixtures. Nothing here touches a real device, the network or TensorFlow.
"""

import pytest

from livecam.core.status import StatusBoard
from livecam.knn.dataset_store import DatasetStore
from livecam.knn.storage import InMemoryKeyValueStore

from .fakes import FakeFrameSource


@pytest.fixture
def status():
    return StatusBoard()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv_store, status):
    return DatasetStore(kv_store, status=status, persist_async=False)


@pytest.fixture
def frame_source():
    return FakeFrameSource()
