"""Shared API helpers for tests."""
from fastapi.testclient import TestClient


def create_voting_session(client: TestClient, item_count: int, nickname=None, **extra) -> dict:
    """POST a session with items Item 1..Item N; returns the response JSON."""
    payload = {
        "name": "Snacks",
        "items": [{"label": f"Item {i}", "image_url": f"/uploads/{i}.png"} for i in range(1, item_count + 1)],
        **extra,
    }
    if nickname:
        payload["nickname"] = nickname
    resp = client.post("/api/sessions", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def join(client: TestClient, join_code: str, nickname: str) -> int:
    resp = client.post("/api/sessions/join", json={"join_code": join_code, "nickname": nickname})
    assert resp.status_code == 200, resp.text
    return resp.json()["participant_id"]
