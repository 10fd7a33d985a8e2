"""
Tests for the HTTP control server, run on an ephemeral local port.
"""

import json

import pytest
import requests

from livecam.app import LiveCamApp
from livecam.backend_interface.server import start_control_server
from livecam.core.models import CustomModel
from livecam.knn.feature_extractor import FeatureExtractor
from livecam.knn.storage import InMemoryKeyValueStore

from .fakes import FakeDetector, FakeFeatureModel, FakeFrameSource, FakeScoreModel


@pytest.fixture
def app():
    app = LiveCamApp(
        frame_source=FakeFrameSource(),
        kv_store=InMemoryKeyValueStore(),
        extractor=FeatureExtractor(FakeFeatureModel, input_size=16),
        detector_loader=FakeDetector,
        custom_model_loader=lambda source: CustomModel(FakeScoreModel([0.3, 0.7]), ["a", "b"]),
        interval=0.01,
    )
    yield app
    app.shutdown()


@pytest.fixture
def base_url(app):
    server = start_control_server(app, "127.0.0.1", 0)
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


class TestControlServer:

    def test_status(self, base_url):
        response = requests.get(f"{base_url}/status", timeout=5)
        assert response.status_code == 200
        assert response.json()["mode"] == "idle"

    def test_unknown_route(self, base_url):
        assert requests.get(f"{base_url}/nope", timeout=5).status_code == 404
        assert requests.post(f"{base_url}/nope", json={}, timeout=5).status_code == 404

    def test_invalid_json(self, base_url):
        response = requests.post(f"{base_url}/settings", data=b"{not json", timeout=5)
        assert response.status_code == 400

    def test_settings(self, base_url, app):
        response = requests.post(f"{base_url}/settings", json={"k": 5, "min_score": 0.25}, timeout=5)
        assert response.status_code == 200
        assert response.json()["result"]["k"] == 5
        assert app.settings.min_score == 0.25

        response = requests.post(f"{base_url}/settings", json={"k": 0}, timeout=5)
        assert response.status_code == 400
        assert app.settings.k == 5

    @pytest.mark.parametrize("body", [b'{"k": Infinity}', b'{"k": null}', b'{"min_score": "high"}'])
    def test_unusable_setting_values(self, base_url, app, body):
        response = requests.post(f"{base_url}/settings", data=body, timeout=5)
        assert response.status_code == 400
        assert app.settings.k == 3
        assert app.settings.min_score == pytest.approx(0.5)

    def test_load_models_and_switch(self, base_url, app):
        assert requests.post(f"{base_url}/models/detector", timeout=5).status_code == 200

        response = requests.post(f"{base_url}/models/custom", json={"url": "model.keras"}, timeout=5)
        assert response.json()["result"] == {"labels": ["a", "b"]}

        response = requests.post(f"{base_url}/knn", json={"enabled": True}, timeout=5)
        assert response.json()["result"] == {"mode": "nearest_neighbor"}

        response = requests.post(f"{base_url}/mode", json={"mode": "detector"}, timeout=5)
        assert response.json()["result"] == {"mode": "detector"}

    def test_activate_unloaded_model(self, base_url):
        response = requests.post(f"{base_url}/mode", json={"mode": "custom_model"}, timeout=5)
        assert response.status_code == 400
        assert response.json()["error"] == "Load a custom model first"

    def test_add_example_without_label(self, base_url):
        response = requests.post(f"{base_url}/examples", json={"label": ""}, timeout=5)
        assert response.status_code == 400

    def test_import_and_export(self, base_url, app):
        dataset = [{"label": "pen", "features": [0.0, 1.0]}, {"label": "cup", "features": [1.0, 0.0]}]
        response = requests.post(f"{base_url}/dataset/import", data=json.dumps(dataset), timeout=5)
        assert response.status_code == 200
        assert response.json()["result"] == {"examples": 2}

        response = requests.get(f"{base_url}/dataset/export", timeout=5)
        assert response.status_code == 200
        assert response.headers["Content-Type"] == "application/json"
        assert "knn-dataset-" in response.headers["Content-Disposition"]
        assert response.json() == dataset

    def test_export_empty_dataset(self, base_url):
        response = requests.get(f"{base_url}/dataset/export", timeout=5)
        assert response.status_code == 400
        assert response.json()["error"] == "No dataset to export"

    def test_import_invalid_dataset(self, base_url, app):
        response = requests.post(f"{base_url}/dataset/import", data=b'[{"label": ""}]', timeout=5)
        assert response.status_code == 400
        assert len(app.store) == 0
