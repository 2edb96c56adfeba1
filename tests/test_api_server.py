"""
Tests for the CardSwap HTTP API.

Drives api.server through FastAPI's TestClient with a controller whose
Gemini clients are replaced by stubs.
"""

import base64
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from api import server
from cardswap.credentials import STORED_KEY_NAME
from cardswap.errors import ModelRefusalError
from cardswap.session import Activity
from conftest import FakeAPIError, StubGenerator, make_image_bytes, oversized_png_header

CARD_PNG = make_image_bytes(96, 128)
CARD = "data:image/png;base64," + base64.b64encode(CARD_PNG).decode()
EDITED = "data:image/png;base64," + base64.b64encode(make_image_bytes(96, 128, color=(0, 0, 0))).decode()


@pytest.fixture
def generator():
    return StubGenerator(CARD)


@pytest.fixture
def refiner():
    return StubGenerator(EDITED)


@pytest.fixture
def controller(make_controller, generator, refiner):
    return make_controller(generator=generator, refiner=refiner)


@pytest.fixture
def client(controller):
    server.set_controller(controller)
    with TestClient(server.app) as test_client:
        yield test_client
    server.set_controller(None)


def upload(client, slot, data, mime="image/png", name="image.png", source="picker"):
    return client.post(
        f"/images/{slot}",
        params={"source": source},
        files={"file": (name, data, mime)},
    )


def load_inputs(client, reference_png, character_png):
    assert upload(client, "reference", reference_png).status_code == 200
    assert upload(client, "character", character_png).status_code == 200


# =============================================================================
# BASICS
# =============================================================================

class TestBasics:
    """Health, state and cost endpoints"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_initial_state_without_key(self, client):
        data = client.get("/state").json()
        assert data["phase"] == "no_credential"
        assert data["aspect_ratio"] == "3:4"
        assert data["has_generated_image"] is False

    def test_startup_discovers_stored_key(self, stored_key, client):
        assert client.get("/state").json()["phase"] == "idle"

    def test_cost(self, client):
        data = client.get("/cost").json()
        assert data["jpy_per_image"] == 6
        assert data["usd_per_image"] == pytest.approx(0.04)
        assert "6" in data["display"]
        assert data["return_url"] == "https://gcxxblog.com/"


# =============================================================================
# CREDENTIALS
# =============================================================================

class TestCredentialEndpoints:
    """POST/DELETE /credential"""

    def test_submit_key(self, client, store):
        response = client.post("/credential", json={"api_key": " AIza-abc "})
        assert response.status_code == 200
        assert response.json()["phase"] == "idle"
        assert store.get(STORED_KEY_NAME) == "AIza-abc"

    def test_submit_blank_key(self, client):
        response = client.post("/credential", json={"api_key": "   "})
        assert response.status_code == 400
        assert response.json()["detail"]["kind"] == "invalid_credential"

    def test_clear_is_idempotent(self, stored_key, client, store):
        assert client.delete("/credential").json()["phase"] == "no_credential"
        assert client.delete("/credential").json()["phase"] == "no_credential"
        assert store.get(STORED_KEY_NAME) is None


# =============================================================================
# IMAGES
# =============================================================================

class TestImageEndpoints:
    """Uploads, drops and removal"""

    def test_reference_upload_sets_ratio(self, client):
        response = upload(client, "reference", make_image_bytes(1600, 900))
        data = response.json()
        assert response.status_code == 200
        assert data["accepted"] is True
        assert data["aspect_ratio"] == "16:9"
        assert data["reference"]["width"] == 1600

    def test_undecodable_upload(self, client, reference_png):
        upload(client, "reference", reference_png)
        response = upload(client, "reference", b"garbage", name="bad.png")
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "undecodable_image"
        assert client.get("/state").json()["reference"]["width"] == 1200

    def test_oversized_upload(self, client):
        response = upload(client, "reference", oversized_png_header(), name="huge.png")
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "undecodable_image"

    def test_non_image_drop_ignored(self, client):
        response = upload(client, "character", b"hello", mime="text/plain", name="a.txt", source="drop")
        assert response.status_code == 200
        assert response.json()["accepted"] is False
        assert response.json()["character"] is None

    def test_image_drop(self, client, character_png):
        response = upload(client, "character", character_png, source="drop")
        assert response.json()["accepted"] is True

    def test_unknown_slot(self, client, character_png):
        assert upload(client, "background", character_png).status_code == 404

    def test_remove(self, client, character_png):
        upload(client, "character", character_png)
        assert client.delete("/images/character").json()["character"] is None


# =============================================================================
# GENERATE / REFINE
# =============================================================================

class TestGenerationEndpoints:
    """POST /generate, /refine and GET /download"""

    def test_generate_refine_download(self, stored_key, client, generator, refiner, reference_png, character_png):
        load_inputs(client, reference_png, character_png)
        client.put("/inputs", json={"character_name": "Slime Hero"})

        data = client.post("/generate").json()
        assert data["phase"] == "idle"
        assert data["generated_image"] == CARD
        assert generator.calls[0][1].character_name == "Slime Hero"

        data = client.post("/refine", json={"instruction": "darken the background"}).json()
        assert data["generated_image"] == EDITED
        assert data["refinement_prompt"] == ""
        assert refiner.calls[0][1].image == CARD

        response = client.get("/download")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        disposition = response.headers["content-disposition"]
        assert 'filename="swapped-card-' in disposition
        assert response.content.startswith(b"\x89PNG")

    def test_refine_uses_stored_draft(self, stored_key, client, refiner, reference_png, character_png):
        load_inputs(client, reference_png, character_png)
        client.post("/generate")
        client.put("/inputs", json={"refinement_prompt": "add a glow"})

        assert client.post("/refine").status_code == 200
        assert refiner.calls[0][1].instruction == "add a glow"

    def test_generate_missing_inputs(self, stored_key, client, generator):
        response = client.post("/generate")
        assert response.status_code == 400
        assert response.json()["detail"]["kind"] == "input_rejected"
        assert generator.calls == []

    def test_generate_without_key(self, client, reference_png, character_png):
        load_inputs(client, reference_png, character_png)
        response = client.post("/generate")
        assert response.status_code == 400
        assert response.json()["detail"]["kind"] == "credential_missing"

    def test_empty_refine_rejected(self, stored_key, client, refiner, reference_png, character_png):
        load_inputs(client, reference_png, character_png)
        client.post("/generate")
        response = client.post("/refine", json={"instruction": "  "})
        assert response.status_code == 400
        assert refiner.calls == []

    def test_busy_returns_conflict(self, stored_key, client, controller):
        controller._state = replace(controller.state, activity=Activity.GENERATING)
        assert client.post("/generate").status_code == 409
        assert client.post("/refine", json={"instruction": "x"}).status_code == 409

    def test_download_without_image(self, client):
        assert client.get("/download").status_code == 404


class TestRemoteFailures:
    """Remote failures are reported on the state overlay, not as HTTP errors"""

    @pytest.fixture
    def generator(self):
        return StubGenerator(ModelRefusalError("Cannot draw that."), FakeAPIError(403, "Forbidden"))

    def test_refusal_then_auth_failure(self, stored_key, client, store, reference_png, character_png):
        load_inputs(client, reference_png, character_png)

        response = client.post("/generate")
        assert response.status_code == 200
        data = response.json()
        assert data["error"]["kind"] == "model_refusal"
        assert data["error"]["detail"] == "Cannot draw that."
        assert data["phase"] == "idle"

        data = client.post("/generate").json()
        assert data["phase"] == "no_credential"
        assert data["error"]["kind"] == "authentication"
        assert store.get(STORED_KEY_NAME) is None
