"""
Shared fixtures for the backend test-suite.

Run from the backend/ directory:
    python -m pytest tests -v

DATA_DIR points at a throw-away directory before any ``gallery`` module is
imported, so logs and stored predictions never touch backend/data/.
"""
from __future__ import annotations
import copy
import os
import sys
import tempfile

os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="gallery-test-")
os.environ.setdefault("REPLICATE_API_TOKEN", "test-token")

# Ensure backend root is on path so the gallery package can be imported
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from gallery.services.replicate_client import ReplicateError


# ─────────────────────────────────────────────────────────────────────────────
# Sample data
# ─────────────────────────────────────────────────────────────────────────────

SDXL_INPUT = {
    "type": "object",
    "title": "Input",
    "required": ["prompt"],
    "properties": {
        "prompt": {
            "type": "string",
            "title": "Prompt",
            "x-order": 0,
            "description": "Input prompt",
        },
        "image": {
            "type": "string",
            "title": "Image",
            "format": "uri",
            "x-order": 1,
            "description": "Input image for img2img or inpaint mode",
        },
        "width": {
            "type": "integer",
            "title": "Width",
            "default": 1024,
            "minimum": 256,
            "maximum": 2048,
            "x-order": 2,
        },
        "guidance_scale": {
            "type": "number",
            "title": "Guidance Scale",
            "default": 7.5,
            "minimum": 1,
            "maximum": 20,
            "x-order": 3,
        },
        "scheduler": {
            "allOf": [{
                "type": "string",
                "title": "scheduler",
                "enum": ["DDIM", "K_EULER"],
                "description": "An enumeration.",
            }],
            "default": "K_EULER",
            "x-order": 4,
        },
        "seed": {
            "type": "integer",
            "title": "Seed",
            "x-order": 5,
            "description": "Random seed. Leave blank to randomize the seed",
        },
        "disable_safety_checker": {
            "type": "boolean",
            "title": "Disable Safety Checker",
            "default": False,
            "x-order": 6,
        },
    },
}

SDXL_OUTPUT = {
    "type": "array",
    "title": "Output",
    "items": {"type": "string", "format": "uri"},
}


def make_model(owner: str = "stability-ai", name: str = "sdxl", **overrides) -> dict:
    model = {
        "owner": owner,
        "name": name,
        "description": "A text-to-image generative AI model that creates beautiful images",
        "url": f"https://replicate.com/{owner}/{name}",
        "visibility": "public",
        "run_count": 1000,
        "cover_image_url": None,
        "latest_version": {
            "id": f"{name}-v1",
            "created_at": "2024-01-01T00:00:00Z",
            "openapi_schema": {
                "components": {"schemas": {"Input": SDXL_INPUT, "Output": SDXL_OUTPUT}},
            },
        },
    }
    model.update(overrides)
    return model


# ─────────────────────────────────────────────────────────────────────────────
# Fake upstream client
# ─────────────────────────────────────────────────────────────────────────────

class FakeReplicateClient:
    """In-memory stand-in for ReplicateClient with the same method surface."""

    def __init__(self):
        self.models: dict[tuple[str, str], dict] = {}
        self.predictions: dict[str, dict] = {}
        # prediction id → statuses returned by successive get_prediction calls
        self.status_script: dict[str, list[str]] = {}
        self.listing: dict = {"results": [], "next": None, "previous": None}
        self.search_results: list[dict] = []
        self.collections: dict[str, dict] = {}
        # extra (non-latest) versions: (owner, name, version id) → version
        self.versions: dict[tuple[str, str, str], dict] = {}
        self.calls: list[tuple] = []
        self._counter = 0

    def add_model(self, model: dict) -> dict:
        self.models[(model["owner"], model["name"])] = model
        return model

    def _model(self, owner: str, name: str) -> dict:
        try:
            return self.models[(owner, name)]
        except KeyError:
            raise ReplicateError("Not found.", 404)

    # ── Models ───────────────────────────────────────────────────────────────

    def list_models(self, cursor=None, sort_by=None, sort_direction=None):
        self.calls.append(("list_models", cursor, sort_by, sort_direction))
        if cursor == "bad":
            raise ReplicateError("Invalid cursor", 400)
        return copy.deepcopy(self.listing)

    def get_model(self, owner, name):
        self.calls.append(("get_model", owner, name))
        return copy.deepcopy(self._model(owner, name))

    def get_model_versions(self, owner, name):
        return {"results": [copy.deepcopy(self._model(owner, name)["latest_version"])]}

    def add_version(self, owner, name, version: dict) -> dict:
        self.versions[(owner, name, version["id"])] = version
        return version

    def get_model_version(self, owner, name, version_id):
        self.calls.append(("get_model_version", owner, name, version_id))
        version = self._model(owner, name)["latest_version"]
        if version["id"] != version_id:
            version = self.versions.get((owner, name, version_id))
        if version is None:
            raise ReplicateError("Version not found.", 404)
        return copy.deepcopy(version)

    def search_models(self, query, limit=20):
        self.calls.append(("search_models", query, limit))
        return {"results": copy.deepcopy(self.search_results[:limit])}

    def list_collections(self):
        return {"results": [{"slug": s, "name": c["name"]} for s, c in self.collections.items()]}

    def get_collection(self, slug):
        if slug not in self.collections:
            raise ReplicateError("Collection not found.", 404)
        return copy.deepcopy(self.collections[slug])

    # ── Predictions ──────────────────────────────────────────────────────────

    def _new_prediction(self, version, model, input):
        self._counter += 1
        pred = {
            "id": f"remote{self._counter}",
            "version": version,
            "model": model,
            "status": "starting",
            "input": dict(input),
            "output": None,
            "error": None,
            "logs": "",
            "created_at": "2024-05-01T12:00:00Z",
            "urls": {"get": f"https://api.replicate.com/v1/predictions/remote{self._counter}"},
        }
        self.predictions[pred["id"]] = pred
        return copy.deepcopy(pred)

    def create_prediction(self, version, input, webhook=None):
        self.calls.append(("create_prediction", version, input))
        return self._new_prediction(version, None, input)

    def create_prediction_for_model(self, owner, name, input):
        self.calls.append(("create_prediction_for_model", owner, name, input))
        version = self._model(owner, name)["latest_version"]["id"]
        return self._new_prediction(version, f"{owner}/{name}", input)

    def get_prediction(self, prediction_id):
        self.calls.append(("get_prediction", prediction_id))
        if prediction_id not in self.predictions:
            raise ReplicateError("Prediction not found.", 404)
        pred = self.predictions[prediction_id]
        script = self.status_script.get(prediction_id)
        if script:
            pred["status"] = script.pop(0)
            if pred["status"] == "succeeded":
                pred["output"] = ["https://replicate.delivery/out-0.png"]
                pred["completed_at"] = "2024-05-01T12:00:09Z"
        return copy.deepcopy(pred)

    def cancel_prediction(self, prediction_id):
        self.calls.append(("cancel_prediction", prediction_id))
        pred = self.predictions[prediction_id]
        pred["status"] = "canceled"
        return copy.deepcopy(pred)

    def list_predictions(self, cursor=None):
        return {"results": copy.deepcopy(list(self.predictions.values())), "next": None}

    def list_hardware(self):
        return [{"name": "Nvidia T4 GPU", "sku": "gpu-t4"}]


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_client():
    from gallery.services import replicate_client

    client = FakeReplicateClient()
    client.add_model(make_model())
    replicate_client.set_client(client)
    yield client
    replicate_client.set_client(None)


@pytest.fixture
def clean_store():
    from gallery.services import prediction_store

    prediction_store.clear_predictions()
    yield prediction_store
    prediction_store.clear_predictions()


@pytest.fixture
def api(fake_client, clean_store):
    from fastapi.testclient import TestClient
    from gallery.main import app

    with TestClient(app) as client:
        yield client
