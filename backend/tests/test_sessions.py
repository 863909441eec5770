"""Voting session CRUD and join-by-code."""
from fastapi.testclient import TestClient

from tests.helpers import create_voting_session, join
from tiervote.services.join_codes import JOIN_CODE_ALPHABET
from tiervote.services.tier_config import TIER_COLORS


def test_create_session_defaults(client: TestClient):
    data = create_voting_session(client, 3)

    assert data["name"] == "Snacks"
    assert data["status"] == "OPEN"
    assert data["is_locked"] is False
    assert len(data["join_code"]) == 8
    assert set(data["join_code"]) <= set(JOIN_CODE_ALPHABET)
    assert [t["key"] for t in data["tier_config"]] == ["S", "A", "B", "C", "D", "F"]
    assert [i["label"] for i in data["items"]] == ["Item 1", "Item 2", "Item 3"]
    assert [i["sort_order"] for i in data["items"]] == [0, 1, 2]
    assert data["participant_id"] is None
    assert data["participant_count"] == 0


def test_create_session_with_creator_nickname(client: TestClient):
    data = create_voting_session(client, 2, nickname="host")
    assert data["participant_id"] is not None
    assert data["participant_nickname"] == "host"
    assert data["participant_count"] == 1


def test_create_session_custom_tiers_get_derived_keys(client: TestClient):
    tiers = [
        {"label": "Love it", "color": "#ff0000"},
        {"label": "Meh", "color": "#00ff00"},
        {"label": "Meh", "color": "#0000ff"},
    ]
    data = create_voting_session(client, 2, tier_config=tiers)
    assert [t["key"] for t in data["tier_config"]] == ["Loveit", "Meh", "Meh1"]
    assert [t["sort_order"] for t in data["tier_config"]] == [0, 1, 2]


def test_create_session_fills_missing_tier_colors(client: TestClient):
    data = create_voting_session(client, 2, tier_config=[{"label": "Yes", "color": "#abcdef"}, {"label": "No"}])
    assert [t["color"] for t in data["tier_config"]] == ["#abcdef", TIER_COLORS[1]]


def test_create_session_requires_items(client: TestClient):
    resp = client.post("/api/sessions", json={"name": "Empty", "items": []})
    assert resp.status_code == 400


def test_create_session_rejects_blank_name(client: TestClient):
    resp = client.post("/api/sessions", json={"name": "  ", "items": [{"label": "x"}]})
    assert resp.status_code == 422


def test_get_session_not_found(client: TestClient):
    assert client.get("/api/sessions/999").status_code == 404


def test_list_sessions_filters_by_status(client: TestClient):
    open_session = create_voting_session(client, 2)
    closed_session = create_voting_session(client, 2)
    client.patch(f"/api/sessions/{closed_session['id']}", json={"status": "CLOSED"})

    all_ids = {s["id"] for s in client.get("/api/sessions").json()}
    assert all_ids == {open_session["id"], closed_session["id"]}

    closed = client.get("/api/sessions", params={"status": "CLOSED"}).json()
    assert [s["id"] for s in closed] == [closed_session["id"]]

    assert client.get("/api/sessions", params={"status": "BOGUS"}).status_code == 400


def test_update_session_rejects_unknown_status(client: TestClient):
    data = create_voting_session(client, 2)
    resp = client.patch(f"/api/sessions/{data['id']}", json={"status": "PAUSED"})
    assert resp.status_code == 422


def test_join_is_case_insensitive_and_rejoin_reuses_participant(client: TestClient):
    data = create_voting_session(client, 2)
    first = join(client, data["join_code"].lower(), "alice")
    again = join(client, data["join_code"], "alice")
    other = join(client, data["join_code"], "bob")

    assert first == again
    assert other != first
    assert client.get(f"/api/sessions/{data['id']}").json()["participant_count"] == 2


def test_join_unknown_code(client: TestClient):
    resp = client.post("/api/sessions/join", json={"join_code": "ZZZZZZZZ", "nickname": "x"})
    assert resp.status_code == 404


def test_join_closed_session(client: TestClient):
    data = create_voting_session(client, 2)
    client.patch(f"/api/sessions/{data['id']}", json={"status": "CLOSED"})
    resp = client.post("/api/sessions/join", json={"join_code": data["join_code"], "nickname": "late"})
    assert resp.status_code == 400


def test_locked_session_only_admits_existing_nicknames(client: TestClient):
    data = create_voting_session(client, 2)
    alice = join(client, data["join_code"], "alice")
    client.patch(f"/api/sessions/{data['id']}", json={"is_locked": True})

    assert join(client, data["join_code"], "alice") == alice
    resp = client.post("/api/sessions/join", json={"join_code": data["join_code"], "nickname": "mallory"})
    assert resp.status_code == 400


def test_delete_session_removes_bracket_and_votes(client: TestClient):
    data = create_voting_session(client, 4, nickname="host")
    sid = data["id"]
    bracket = client.post(f"/api/sessions/{sid}/bracket").json()
    m = bracket["matchups"][0]
    client.post(
        f"/api/sessions/{sid}/bracket/vote",
        json={"matchup_id": m["id"], "participant_id": data["participant_id"], "chosen_item_id": m["item_a_id"]},
    )

    assert client.delete(f"/api/sessions/{sid}").status_code == 204
    assert client.get(f"/api/sessions/{sid}").status_code == 404
    assert client.get(f"/api/sessions/{sid}/bracket").status_code == 404
    assert client.delete(f"/api/sessions/{sid}").status_code == 404
