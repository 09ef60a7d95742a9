from fastapi.testclient import TestClient

from app.main import app


def test_command_lifecycle() -> None:
    client = TestClient(app)
    resp = client.post("/api/commands", json={"userId": 1, "command": "show open orders"})
    assert resp.status_code == 201
    record = resp.json()
    assert record["status"] == "pending"
    assert record["response"] is None
    assert record["timestamp"]

    resp = client.patch(
        f"/api/commands/{record['id']}",
        json={
            "status": "success",
            "response": "No open orders found.",
            "metadata": {"intent": "show_open_orders", "slots": {}},
        },
    )
    assert resp.status_code == 200
    done = resp.json()
    assert done["status"] == "success"
    assert done["response"] == "No open orders found."
    assert done["metadata"] == {"intent": "show_open_orders", "slots": {}}

    resp = client.patch(f"/api/commands/{record['id']}", json={"status": "error", "response": "again"})
    assert resp.status_code == 409
    assert resp.json()["detail"]["error"]["code"] == "ERP_4009"


def test_complete_unknown_command() -> None:
    client = TestClient(app)
    resp = client.patch("/api/commands/999", json={"status": "success", "response": "x"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["error"]["code"] == "ERP_4004"


def test_cannot_complete_back_to_pending() -> None:
    client = TestClient(app)
    record = client.post("/api/commands", json={"userId": 1, "command": "help"}).json()
    resp = client.patch(f"/api/commands/{record['id']}", json={"status": "pending"})
    assert resp.status_code == 422


def test_history_newest_first_per_user() -> None:
    client = TestClient(app)
    for text in ("first", "second", "third"):
        client.post("/api/commands", json={"userId": 7, "command": text, "status": "success", "response": "ok"})
    client.post("/api/commands", json={"userId": 8, "command": "other user"})

    resp = client.get("/api/commands/7")
    assert resp.status_code == 200
    assert [r["command"] for r in resp.json()] == ["third", "second", "first"]

    resp = client.get("/api/commands/7", params={"limit": 2})
    assert [r["command"] for r in resp.json()] == ["third", "second"]


def test_rejects_unknown_status() -> None:
    client = TestClient(app)
    resp = client.post("/api/commands", json={"userId": 1, "command": "x", "status": "done"})
    assert resp.status_code == 422
