"""
Tests for prediction ranking and the custom model / detector wrappers.
"""

import json
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from livecam.core.errors import ModelLoadError
from livecam.core.models import CustomModel, YoloDetector, load_custom_model, load_labels
from livecam.core.predictions import Detection, PredictionEntry, rank_scores

from .fakes import FakeScoreModel


class TestRankScores:

    def test_filters_noise_and_sorts(self):
        result = rank_scores([0.02, 0.5, 0.005], ["a", "b", "c"], noise_floor=0.01)
        assert result == [PredictionEntry("b", 0.5), PredictionEntry("a", 0.02)]

    def test_placeholder_for_missing_labels(self):
        result = rank_scores([0.1, 0.7, 0.2], ["cat"], noise_floor=0.01)
        assert [entry.label for entry in result] == ["Class 1", "Class 2", "cat"]

    def test_scores_not_renormalized(self):
        result = rank_scores([0.3, 0.3], ["x", "y"], noise_floor=0.01)
        assert sum(entry.confidence for entry in result) == pytest.approx(0.6)

    def test_noise_floor_is_exclusive(self):
        assert rank_scores([0.01], ["a"], noise_floor=0.01) == []


class TestCustomModel:

    def test_target_size_from_input_shape(self):
        model = CustomModel(FakeScoreModel([1.0], input_shape=(None, 224, 160, 3)))
        assert model.target_size(480, 640) == (224, 160)

    def test_target_size_unknown_axes_fall_back_to_frame(self):
        model = CustomModel(FakeScoreModel([1.0], input_shape=(None, None, None, 3)))
        assert model.target_size(480, 640) == (480, 640)

    def test_target_size_without_input_shape(self):
        model = CustomModel(object())
        assert model.target_size(48, 64) == (48, 64)

    def test_target_size_multi_input(self):
        model = CustomModel(FakeScoreModel([1.0], input_shape=[(None, 32, 32, 3), (None, 10)]))
        assert model.target_size(480, 640) == (32, 32)

    def test_predict_scores_resizes_and_normalizes(self):
        fake = FakeScoreModel([0.1, 0.9], input_shape=(None, 8, 8, 3))
        model = CustomModel(fake, ["a", "b"])
        frame = np.full((48, 64, 3), 255, dtype=np.uint8)

        scores = model.predict_scores(frame)

        np.testing.assert_allclose(scores, [0.1, 0.9], rtol=1e-6)
        batch = fake.batches[0]
        assert batch.shape == (1, 8, 8, 3)
        assert batch.max() == pytest.approx(1.0)

    def test_multi_output_uses_last(self):
        fake = MagicMock()
        fake.input_shape = (None, 8, 8, 3)
        fake.predict.return_value = [np.zeros((1, 4)), np.array([[0.2, 0.8]])]

        scores = CustomModel(fake).predict_scores(np.zeros((8, 8, 3), dtype=np.uint8))
        np.testing.assert_allclose(scores, [0.2, 0.8])


class TestLoadLabels:

    def test_metadata_json(self, tmp_path):
        (tmp_path / "metadata.json").write_text(json.dumps({"labels": ["pen", "cup"]}))
        assert load_labels(str(tmp_path / "model.keras")) == ["pen", "cup"]

    def test_classes_txt(self, tmp_path):
        (tmp_path / "model_classes.txt").write_text("squat\npushup\n\n")
        assert load_labels(str(tmp_path / "model.keras")) == ["squat", "pushup"]

    def test_no_label_file(self, tmp_path):
        assert load_labels(str(tmp_path / "model.keras")) == []

    def test_remote_metadata(self):
        response = MagicMock(status_code=200, text=json.dumps({"labels": ["a", "b"]}))
        with patch("livecam.core.models.requests.get", return_value=response) as get:
            labels = load_labels("https://example.com/models/model.keras")

        assert labels == ["a", "b"]
        get.assert_called_once()
        assert get.call_args[0][0] == "https://example.com/models/metadata.json"


class TestLoadCustomModel:

    def test_empty_source(self):
        with pytest.raises(ModelLoadError, match="Please enter the model URL"):
            load_custom_model("")

    def test_failure_wrapped(self, tmp_path):
        fake_tf = MagicMock()
        fake_tf.keras.models.load_model.side_effect = OSError("no such file")
        with patch.dict("sys.modules", {"tensorflow": fake_tf}):
            with pytest.raises(ModelLoadError, match="no such file"):
                load_custom_model(str(tmp_path / "missing.keras"))

    def test_loads_model_and_labels(self, tmp_path):
        (tmp_path / "model_classes.txt").write_text("a\nb\n")
        fake_tf = MagicMock()
        fake_tf.keras.models.load_model.return_value = FakeScoreModel([0.5, 0.5])
        with patch.dict("sys.modules", {"tensorflow": fake_tf}):
            model = load_custom_model(str(tmp_path / "model.keras"))

        assert model.labels == ["a", "b"]
        fake_tf.keras.models.load_model.assert_called_once_with(str(tmp_path / "model.keras"), compile=False)


class TestYoloDetector:

    def test_converts_boxes(self):
        box = MagicMock()
        box.xyxy = [MagicMock(tolist=MagicMock(return_value=[10.0, 20.0, 50.0, 80.0]))]
        box.cls = [2]
        box.conf = [0.875]
        result = MagicMock(boxes=[box], names={2: "car"})
        model = MagicMock(return_value=[result])

        detections = YoloDetector(model).detect(np.zeros((100, 100, 3), dtype=np.uint8))

        assert detections == [Detection("car", 0.875, (10.0, 20.0, 40.0, 60.0))]
