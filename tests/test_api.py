from __future__ import annotations

import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from conftest import FakeBackend, ScriptedLoader, auth_headers, candidate
from visionscan.core.exceptions import ModelFetchError
from visionscan.models.domain.detection import Detection
from visionscan.routers import dependencies, set_services
from visionscan.services.history_service import HistoryService
from visionscan.services.model_controller import ModelController
from visionscan.services.perception import PerceptionService
from visionscan.services.subscription_service import SubscriptionService


def _png_data_url(color=(200, 40, 40)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 24), color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


class _NoFaces:
    def detect(self, image):
        return []


class _NoPoses:
    def estimate(self, image):
        return []


@pytest.fixture
def wire_services(fake_supabase, jwt_secret):
    """Inject fakes into the routers; returns a function to swap the classifier."""
    saved = (
        dependencies.controller_instance,
        dependencies.perception_instance,
        dependencies.history_instance,
        dependencies.subscription_instance,
    )

    def wire(outcome=None, accounts=True):
        outcome = outcome if outcome is not None else FakeBackend("m1")
        controller = ModelController([candidate("m1")], ScriptedLoader({"m1@cpu": outcome}))
        perception = PerceptionService(controller, face_loader=_NoFaces, pose_loader=_NoPoses)
        history = HistoryService(fake_supabase) if accounts else None
        subscriptions = SubscriptionService(fake_supabase, free_scans=2, trial_days=14) if accounts else None
        set_services(controller, perception, history, subscriptions)
        return controller

    yield wire
    set_services(*saved)


@pytest.fixture
def client():
    from visionscan.main import app

    return TestClient(app)


# ==================== Health / models ====================


def test_health_reports_model_state(client, wire_services):
    wire_services()
    body = client.get("/api/health").json()
    assert body["success"] is True
    assert body["data"]["models"]["state"] == "uninitialized"
    assert body["data"]["accounts_enabled"] is True


def test_initialize_endpoint_loads_classifier(client, wire_services):
    wire_services()

    response = client.post("/api/models/initialize")

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["state"] == "ready"
    assert body["meta"]["progress"][-1] == 100
    assert client.get("/api/models/status").json()["data"]["model_id"] == "m1"


def test_initialize_endpoint_surfaces_exhaustion(client, wire_services):
    wire_services(outcome=ModelFetchError("m1", "offline"))

    response = client.post("/api/models/initialize")

    assert response.status_code == 503
    body = response.json()
    assert body["code"] == "ALL_BACKENDS_EXHAUSTED"
    assert body["meta"]["reason"] == "model_fetch"


# ==================== Scan ====================


def test_anonymous_scan_returns_top_label_without_saving(client, wire_services, fake_supabase):
    wire_services()

    response = client.post("/api/scan", json={"image": _png_data_url()})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["selected_object"] == "laptop, laptop computer"
    assert data["info"].startswith("A laptop")
    assert data["record_id"] is None
    assert fake_supabase.table("scan_history").rows == []


def test_authenticated_scan_spends_quota_and_saves_history(client, wire_services, fake_supabase):
    wire_services()

    response = client.post("/api/scan", json={"image": _png_data_url()}, headers=auth_headers())

    data = response.json()["data"]
    assert data["record_id"] is not None
    assert data["subscription"]["remaining_scans"] == 1
    [row] = fake_supabase.table("scan_history").rows
    assert row["user_id"] == "user-1"
    assert row["image_url"].startswith("data:image/jpeg;base64,")

    history = client.get("/api/history", headers=auth_headers()).json()
    assert history["meta"]["count"] == 1
    assert history["data"][0]["item_name"] == "laptop, laptop computer"


def test_scan_is_refused_when_free_scans_are_spent(client, wire_services):
    wire_services()
    for _ in range(2):
        assert client.post("/api/scan", json={"image": _png_data_url()}, headers=auth_headers()).status_code == 200

    response = client.post("/api/scan", json={"image": _png_data_url()}, headers=auth_headers())

    assert response.status_code == 402
    assert response.json()["code"] == "SCAN_QUOTA_EXCEEDED"


def test_scan_with_no_detections_is_rejected(client, wire_services):
    wire_services(outcome=FakeBackend("m1", detections=[]))

    response = client.post("/api/scan", json={"image": _png_data_url()})

    assert response.status_code == 422
    assert response.json()["code"] == "NO_OBJECTS_DETECTED"


def test_scan_with_broken_image_is_rejected_before_loading(client, wire_services):
    controller = wire_services()

    response = client.post("/api/scan", json={"image": "data:image/png;base64,@@@"})

    assert response.status_code == 422
    assert response.json()["success"] is False
    assert controller.attempt_count == 0


def test_scan_when_models_cannot_load(client, wire_services):
    wire_services(outcome=ModelFetchError("m1", "offline"))

    response = client.post("/api/scan", json={"image": _png_data_url()})

    assert response.status_code == 503
    assert response.json()["code"] == "MODEL_NOT_INITIALIZED"


def test_upload_scan(client, wire_services):
    wire_services()
    payload = base64.b64decode(_png_data_url().split(",", 1)[1])

    response = client.post("/api/scan/upload", files={"file": ("frame.png", payload, "image/png")})

    assert response.status_code == 200
    assert response.json()["data"]["confidence"] == pytest.approx(0.82)


def test_analyze_endpoint(client, wire_services):
    wire_services(outcome=FakeBackend("m1", detections=[
        Detection(label="coffee mug", score=0.9),
        Detection(label="cup", score=0.2),
    ]))

    body = client.post("/api/analyze", json={"image": _png_data_url()}).json()

    assert [o["label"] for o in body["data"]["objects"]] == ["coffee mug"]
    assert body["meta"] == {"objects": 1, "faces": 0, "poses": 0}


# ==================== Objects ====================


def test_object_info_endpoints(client, wire_services):
    wire_services()
    info = client.get("/api/objects/cup/info").json()["data"]
    details = client.get("/api/objects/person/details").json()["data"]

    assert info["info"].startswith("A cup is a small container")
    assert details["name"] == "Person"


def test_remember_requires_sign_in_and_stays_with_that_user(client, wire_services, monkeypatch):
    from visionscan.services import object_info

    monkeypatch.setattr(object_info, "user_items", object_info.UserItemRegistry())
    wire_services()

    anonymous = client.post("/api/objects/remember", json={"name": "Desk Lamp"})
    assert anonymous.status_code == 401

    remembered = client.post("/api/objects/remember", json={"name": "Desk Lamp"}, headers=auth_headers("user-1"))
    assert remembered.json()["data"]["is_user_trained"] is True

    own = client.get("/api/objects/desk lamp/details", headers=auth_headers("user-1")).json()["data"]
    other = client.get("/api/objects/desk lamp/details", headers=auth_headers("user-2")).json()["data"]
    assert own["name"] == "Desk Lamp"
    assert other["properties"][0]["value"] == "Unidentified"

    client.post("/api/objects/remember", json={"name": "Apple"}, headers=auth_headers("user-1"))
    apple = client.get("/api/objects/apple/details").json()["data"]
    assert apple["description"] == "A sweet, edible fruit produced by an apple tree."


# ==================== Accounts ====================


def test_history_requires_authentication(client, wire_services):
    wire_services()
    response = client.get("/api/history")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_ERROR"


def test_invalid_token_is_rejected(client, wire_services):
    wire_services()
    response = client.get("/api/subscription", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_subscription_flow(client, wire_services):
    wire_services()

    status = client.get("/api/subscription", headers=auth_headers()).json()
    assert status["data"]["status"] == "none"
    assert status["meta"]["can_scan"] is True

    trial = client.post("/api/subscription/trial", headers=auth_headers()).json()
    assert trial["data"]["status"] == "trial"

    subscribed = client.post("/api/subscription/subscribe", headers=auth_headers()).json()
    assert subscribed["data"]["status"] == "subscribed"
    assert subscribed["meta"]["should_show_subscription"] is False


def test_accounts_disabled_without_supabase(client, wire_services):
    wire_services(accounts=False)

    scan = client.post("/api/scan", json={"image": _png_data_url()}, headers=auth_headers())
    history = client.get("/api/history", headers=auth_headers())

    assert scan.status_code == 200
    assert scan.json()["data"]["record_id"] is None
    assert history.status_code == 503
    assert history.json()["code"] == "NOT_CONFIGURED"
