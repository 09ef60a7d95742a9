from fastapi.testclient import TestClient

from app.main import app


def test_defaults_created_on_first_read() -> None:
    client = TestClient(app)
    resp = client.get("/api/settings/5")
    assert resp.status_code == 200
    data = resp.json()
    assert data["userId"] == 5
    assert data["wakeWord"] == "Hey ERP"
    assert data["sensitivity"] == 7
    assert data["voiceResponse"] is True
    assert data["continuousListening"] is False
    assert data["voiceLanguage"] == "en-US"


def test_patch_updates_only_given_fields() -> None:
    client = TestClient(app)
    client.get("/api/settings/1")
    resp = client.patch("/api/settings/1", json={"continuousListening": True, "wakeWord": "Hello ERP"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["continuousListening"] is True
    assert data["wakeWord"] == "Hello ERP"
    assert data["voiceResponse"] is True


def test_patch_validation_and_missing_user() -> None:
    client = TestClient(app)
    client.get("/api/settings/1")
    assert client.patch("/api/settings/1", json={"sensitivity": 11}).status_code == 422
    resp = client.patch("/api/settings/99", json={"sensitivity": 3})
    assert resp.status_code == 404
    assert resp.json()["detail"]["error"]["code"] == "ERP_4004"


def test_post_upserts() -> None:
    client = TestClient(app)
    resp = client.post("/api/settings", json={"userId": 3, "voiceLanguage": "fr-FR"})
    assert resp.status_code == 200
    assert resp.json()["voiceLanguage"] == "fr-FR"
    assert resp.json()["wakeWord"] == "Hey ERP"
    resp = client.post("/api/settings", json={"userId": 3, "sensitivity": 2})
    assert resp.json()["voiceLanguage"] == "fr-FR"
    assert resp.json()["sensitivity"] == 2
