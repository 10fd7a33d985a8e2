"""
Tests for the mode controller state machine.
"""

import pytest

from livecam.core.errors import ModelLoadError, NotLoaded
from livecam.core.models import CustomModel
from livecam.core.mode_controller import Mode, ModeController
from livecam.core.sources import CustomModelSource, DetectorSource, NearestNeighborSource

from .fakes import FakeDetector, FakeScoreModel


class Loader:

    def __init__(self, make, fail=False):
        self.make = make
        self.fail = fail
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)
        if self.fail:
            raise ConnectionError("download failed")
        return self.make()


@pytest.fixture
def detector_loader():
    return Loader(FakeDetector)


@pytest.fixture
def custom_loader():
    return Loader(lambda: CustomModel(FakeScoreModel([0.5, 0.5]), ["a", "b"]))


@pytest.fixture
def controller(detector_loader, custom_loader, status):
    nn_source = NearestNeighborSource(extractor=None, store=None, get_k=lambda: 3)
    return ModeController(detector_loader, custom_loader, nn_source, status=status)


class TestTransitions:

    def test_starts_idle(self, controller):
        assert controller.mode is Mode.IDLE
        assert controller.active_source() is None

    def test_load_detector(self, controller, status):
        controller.load_detector()
        assert controller.mode is Mode.DETECTOR
        assert isinstance(controller.active_source(), DetectorSource)
        assert status.get() == "Detector loaded"

    def test_load_custom_model(self, controller, custom_loader, status):
        controller.load_custom_model("https://example.com/model.keras")
        assert controller.mode is Mode.CUSTOM_MODEL
        assert isinstance(controller.active_source(), CustomModelSource)
        assert custom_loader.calls == [("https://example.com/model.keras",)]
        assert status.get() == "Custom model and 2 labels loaded"

    def test_nearest_neighbor_keeps_detector_resident(self, controller, detector_loader):
        controller.load_detector()
        detector = controller.detector

        assert controller.set_nearest_neighbor(True) is Mode.NEAREST_NEIGHBOR
        assert isinstance(controller.active_source(), NearestNeighborSource)
        assert controller.detector is detector

        # Back to the detector without a reload
        controller.activate(Mode.DETECTOR)
        assert controller.mode is Mode.DETECTOR
        assert len(detector_loader.calls) == 1

    def test_switching_off_reverts_to_last_loaded(self, controller):
        controller.load_detector()
        controller.load_custom_model("model.keras")
        controller.toggle_nearest_neighbor()
        assert controller.toggle_nearest_neighbor() is Mode.CUSTOM_MODEL

        controller.load_detector()
        controller.set_nearest_neighbor(True)
        assert controller.set_nearest_neighbor(False) is Mode.DETECTOR

    def test_switching_off_with_nothing_loaded(self, controller):
        controller.set_nearest_neighbor(True)
        assert controller.set_nearest_neighbor(False) is Mode.IDLE

    def test_switching_off_when_not_active_is_a_no_op(self, controller):
        controller.load_detector()
        assert controller.set_nearest_neighbor(False) is Mode.DETECTOR

    def test_new_load_replaces_resident_handle(self, controller):
        controller.load_detector()
        first = controller.detector
        controller.load_detector()
        assert controller.detector is not first

    def test_activate_idle(self, controller):
        controller.load_detector()
        assert controller.activate("idle") is Mode.IDLE

    def test_activate_unloaded(self, controller):
        with pytest.raises(NotLoaded):
            controller.activate(Mode.CUSTOM_MODEL)
        with pytest.raises(NotLoaded):
            controller.activate(Mode.DETECTOR)
        assert controller.mode is Mode.IDLE


class TestFailedLoads:

    def test_failed_load_keeps_mode(self, detector_loader, status):
        custom_loader = Loader(lambda: None, fail=True)
        nn_source = NearestNeighborSource(extractor=None, store=None, get_k=lambda: 3)
        controller = ModeController(detector_loader, custom_loader, nn_source, status=status)
        controller.load_detector()

        with pytest.raises(ModelLoadError):
            controller.load_custom_model("https://example.com/model.keras")

        assert controller.mode is Mode.DETECTOR
        assert controller.custom_model is None
        assert "download failed" in status.get()
        assert controller.loading is False

    def test_empty_model_url(self, controller, custom_loader, status):
        with pytest.raises(ModelLoadError):
            controller.load_custom_model("")
        assert custom_loader.calls == []
        assert status.get() == "Please enter the model URL"


class TestListeners:

    def test_notified_on_change_only(self, controller):
        changes = []
        controller.subscribe(lambda old, new: changes.append((old, new)))

        controller.load_detector()
        controller.load_detector()
        controller.set_nearest_neighbor(True)

        assert changes == [(Mode.IDLE, Mode.DETECTOR), (Mode.DETECTOR, Mode.NEAREST_NEIGHBOR)]

    def test_describe(self, controller):
        controller.load_custom_model("model.keras")
        state = controller.describe()
        assert state["mode"] == "custom_model"
        assert state["custom_model_loaded"] is True
        assert state["detector_loaded"] is False
        assert state["labels"] == ["a", "b"]
