"""
HTTP-level tests for the API routes.

Uses FastAPI TestClient with the store dependency pointed at a fresh
in-memory store, so status codes and error mapping are checked without a
database file.
"""

import pytest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from teamforge.api.main import app
from teamforge.api.routes import get_store
from teamforge.database.store import MemoryRecordStore


@pytest.fixture
def client():
    """TestClient whose requests all share one in-memory store."""
    store = MemoryRecordStore(id_prefix="api")
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _register(client, username):
    response = client.post(
        "/api/users",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": "secret123",
            "first_name": username.title(),
            "last_name": "Player",
        },
    )
    assert response.status_code == 201
    return response.json()


def _create_team(client, name):
    response = client.post("/api/teams", json={"name": name})
    assert response.status_code == 201
    return response.json()


def _create_game(client, home, away):
    response = client.post(
        "/api/events",
        json={
            "team_id": home["id"],
            "title": f"{home['name']} vs {away['name']}",
            "event_date": "2025-03-01T19:00:00Z",
            "event_type": "game",
            "opponent_team_id": away["id"],
        },
    )
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ============================================================================
# Users and teams
# ============================================================================


def test_register_user_hides_password_hash(client):
    """POST /api/users returns the user without its password hash."""
    user = _register(client, "jdoe")
    assert user["username"] == "jdoe"
    assert "password_hash" not in user


def test_register_duplicate_returns_400(client):
    _register(client, "jdoe")
    response = client.post(
        "/api/users",
        json={"username": "jdoe", "email": "other@example.com", "password": "pw", "first_name": "J", "last_name": "D"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_get_missing_team_returns_404(client):
    response = client.get("/api/teams/missing")
    assert response.status_code == 404


def test_duplicate_member_returns_409(client):
    """Adding an active member twice maps to 409 Conflict."""
    team = _create_team(client, "Hawks")
    user = _register(client, "jdoe")

    first = client.post(f"/api/teams/{team['id']}/members", json={"user_id": user["id"]})
    second = client.post(f"/api/teams/{team['id']}/members", json={"user_id": user["id"]})

    assert first.status_code == 201
    assert second.status_code == 409

    members = client.get(f"/api/teams/{team['id']}/members").json()
    assert [m["user"]["id"] for m in members] == [user["id"]]
    assert "password_hash" not in members[0]["user"]


def test_archive_missing_member_returns_404(client):
    team = _create_team(client, "Hawks")
    response = client.delete(f"/api/teams/{team['id']}/members/nobody")
    assert response.status_code == 404


def test_registration_key_single_use(client):
    """A one-use key admits one user; the next redemption is a 400."""
    team = _create_team(client, "Hawks")
    first = _register(client, "first")
    second = _register(client, "second")
    key = client.post(f"/api/teams/{team['id']}/registration-keys", json={}).json()

    assert client.get(f"/api/registration-keys/{key['key']}").json()["valid"] is True

    redeemed = client.post("/api/registration-keys/redeem", json={"key": key["key"], "user_id": first["id"]})
    assert redeemed.status_code == 201
    assert redeemed.json()["team_id"] == team["id"]

    again = client.post("/api/registration-keys/redeem", json={"key": key["key"], "user_id": second["id"]})
    assert again.status_code == 400


def test_registration_key_rejects_zero_uses(client):
    team = _create_team(client, "Hawks")
    response = client.post(f"/api/teams/{team['id']}/registration-keys", json={"uses": 0})
    assert response.status_code == 422


@patch("teamforge.services.team_service.list_teams", new_callable=AsyncMock)
def test_unexpected_error_returns_500(mock_list, client):
    """Unexpected service failures become a generic 500."""
    mock_list.side_effect = RuntimeError("store offline")

    response = client.get("/api/teams")

    assert response.status_code == 500
    assert response.json()["detail"] == "Error listing teams"


# ============================================================================
# Events and confirmation
# ============================================================================


def test_create_event_without_title_returns_400(client):
    team = _create_team(client, "Hawks")
    response = client.post("/api/events", json={"team_id": team["id"], "event_date": "2025-03-01T19:00:00Z"})
    assert response.status_code == 400


def test_confirm_game_flow(client):
    """Pending game -> wrong team is rejected -> opponent confirms -> stats accepted."""
    home, away = _create_team(client, "Hawks"), _create_team(client, "Bulls")
    game = _create_game(client, home, away)
    assert game["pending_confirmation"] is True

    assert client.get(f"/api/events/{game['id']}/confirmation").json()["state"] == "pending_confirmation"
    pending = client.get(f"/api/teams/{away['id']}/pending-confirmations").json()
    assert [c["game_id"] for c in pending] == [game["id"]]

    blocked = client.post(f"/api/games/{game['id']}/stats", json={"stats": [{"player_id": "p1", "points": 4}]})
    assert blocked.status_code == 409

    wrong_team = client.post(
        f"/api/events/{game['id']}/confirm", json={"user_id": "coach", "acting_team_id": home["id"]}
    )
    assert wrong_team.status_code == 409

    confirmed = client.post(
        f"/api/events/{game['id']}/confirm", json={"user_id": "coach", "acting_team_id": away["id"]}
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["is_confirmed"] is True

    again = client.post(f"/api/events/{game['id']}/confirm", json={"user_id": "coach"})
    assert again.status_code == 409

    stats = client.post(
        f"/api/games/{game['id']}/stats",
        json={"stats": [{"player_id": "p1", "team_id": home["id"], "points": 21}]},
    )
    assert stats.status_code == 200
    assert client.get("/api/players/p1/averages").json()["ppg"] == 21.0
    assert client.get(f"/api/teams/{home['id']}/stats-drift").json() == []


def test_decline_game_removes_event(client):
    home, away = _create_team(client, "Hawks"), _create_team(client, "Bulls")
    game = _create_game(client, home, away)

    declined = client.post(f"/api/events/{game['id']}/decline", json={"user_id": "coach"})

    assert declined.status_code == 200
    assert declined.json()["confirmation"]["status"] == "declined"
    assert client.get(f"/api/events/{game['id']}").status_code == 404
    assert client.get(f"/api/events/{game['id']}/confirmation").json()["state"] == "declined"
    assert client.post(f"/api/events/{game['id']}/confirm", json={"user_id": "coach"}).status_code == 409


def test_confirm_unknown_game_returns_404(client):
    response = client.post("/api/events/missing/confirm", json={"user_id": "coach"})
    assert response.status_code == 404


def test_availability_replaces_response(client):
    team = _create_team(client, "Hawks")
    user = _register(client, "jdoe")
    event = client.post(
        "/api/events", json={"team_id": team["id"], "title": "Practice", "event_date": "2025-03-02T17:00:00Z"}
    ).json()

    for status in ("maybe", "unavailable"):
        response = client.put(
            f"/api/events/{event['id']}/availability", json={"user_id": user["id"], "status": status}
        )
        assert response.status_code == 200

    responses = client.get(f"/api/events/{event['id']}/availability").json()
    assert [r["availability"]["status"] for r in responses] == ["unavailable"]
    assert client.get(f"/api/events/{event['id']}/availability/summary").json() == {
        "available": 0,
        "maybe": 0,
        "unavailable": 1,
    }


def test_availability_for_missing_event_returns_404(client):
    response = client.put("/api/events/missing/availability", json={"user_id": "u1", "status": "available"})
    assert response.status_code == 404


# ============================================================================
# Lineups and notes
# ============================================================================


def test_full_lineup_rejects_player(client):
    team = _create_team(client, "Hawks")
    lineup = client.post(
        f"/api/teams/{team['id']}/lineups",
        json={"name": "Starters", "selected_players": ["p1", "p2", "p3", "p4", "p5"]},
    ).json()

    response = client.post(f"/api/lineups/{lineup['id']}/players", json={"player_id": "p6"})

    assert response.status_code == 400
    assert len(client.get(f"/api/lineups/{lineup['id']}").json()["selected_players"]) == 5


def test_lineup_suggestion_strategy_validated(client):
    team = _create_team(client, "Hawks")
    assert client.get(f"/api/teams/{team['id']}/lineup-suggestion?strategy=random").status_code == 422
    assert client.get(f"/api/teams/{team['id']}/lineup-suggestion").status_code == 400


def test_messages_unread_and_read(client):
    team = _create_team(client, "Hawks")
    client.post(
        f"/api/teams/{team['id']}/messages",
        json={"author_id": "coach", "recipient_id": "p1", "content": "Film at 6"},
    )

    unread = client.get("/api/messages/unread", params={"user_id": "p1", "from_user_id": "coach"}).json()
    assert unread["unread"] == 1

    marked = client.post("/api/messages/read", json={"user_id": "p1", "from_user_id": "coach"}).json()
    assert marked == {"status": "ok", "marked": 1}

    unread = client.get("/api/messages/unread", params={"user_id": "p1", "from_user_id": "coach"}).json()
    assert unread["unread"] == 0


def test_delete_missing_note_returns_404(client):
    assert client.delete("/api/notes/missing").status_code == 404
