import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from gamehub.main import app
from gamehub.api.dependencies import get_db

SEND_EMAIL = "gamehub.services.auth_service.email_service.send_email"


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def signup(client: TestClient, username: str) -> dict:
    with patch(SEND_EMAIL, return_value=True) as send:
        response = client.post(
            "/api/auth/register",
            json={"username": username, "email": f"{username}@example.com", "password": "secret123"},
        )
    assert response.status_code == 201
    code = send.call_args.args[2]["code"]
    assert client.post("/api/auth/verify-email", json={"email": f"{username}@example.com", "code": code}).status_code == 200

    login = client.post("/api/auth/login", json={"email": f"{username}@example.com", "password": "secret123"})
    assert login.status_code == 200
    body = login.json()
    return {"id": body["user"]["id"], "headers": {"Authorization": f"Bearer {body['access_token']}"}}


class TestAuthRoutes:

    def test_me_requires_token(self, client: TestClient):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"] == "AuthError"

    def test_register_login_and_me(self, client: TestClient):
        alice = signup(client, "alice")

        response = client.get("/api/auth/me", headers=alice["headers"])

        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert response.json()["stats"]["coins"] == 100

    def test_duplicate_registration(self, client: TestClient):
        signup(client, "alice")

        with patch(SEND_EMAIL, return_value=True):
            response = client.post(
                "/api/auth/register",
                json={"username": "alice", "email": "alice@example.com", "password": "secret123"},
            )

        assert response.status_code == 409
        assert response.json()["error"] == "UserExists"

    def test_unverified_login(self, client: TestClient):
        with patch(SEND_EMAIL, return_value=True):
            client.post("/api/auth/register", json={"username": "bob", "email": "bob@example.com", "password": "secret123"})

        response = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "secret123"})

        assert response.status_code == 401

    def test_email_outage_is_503(self, client: TestClient):
        with patch(SEND_EMAIL, return_value=False):
            response = client.post(
                "/api/auth/register",
                json={"username": "carl", "email": "carl@example.com", "password": "secret123"},
            )

        assert response.status_code == 503
        assert response.json()["error"] == "EmailDeliveryFailed"


class TestGameRoutes:

    def test_play_a_game_end_to_end(self, client: TestClient):
        alice = signup(client, "alice")
        bob = signup(client, "bob")

        created = client.post("/api/games/create", json={"game_type": "tictactoe", "bet_amount": 10}, headers=alice["headers"])
        assert created.status_code == 201
        room_id = created.json()["room_id"]

        assert [g["room_id"] for g in client.get("/api/games/active").json()] == [room_id]
        assert client.post(f"/api/games/{room_id}/join", headers=bob["headers"]).status_code == 200
        assert client.post(f"/api/games/{room_id}/start", headers=bob["headers"]).status_code == 403
        assert client.post(f"/api/games/{room_id}/start", headers=alice["headers"]).status_code == 200
        assert client.post(f"/api/games/{room_id}/move", json={"move": {"cell": 4}}, headers=alice["headers"]).status_code == 200

        result = client.post(f"/api/games/{room_id}/result", json={"winner_id": alice["id"]}, headers=bob["headers"])
        assert result.status_code == 200
        assert result.json()["status"] == "completed"

        again = client.post(f"/api/games/{room_id}/result", json={"winner_id": bob["id"]}, headers=bob["headers"])
        assert again.status_code == 409

        stats = client.get(f"/api/users/{alice['id']}/stats").json()
        assert (stats["games_won"], stats["coins"]) == (1, 120)

        history = client.get("/api/games/history", headers=bob["headers"]).json()
        assert (history["total"], history["pages"]) == (1, 1)

        board = client.get("/api/games/leaderboard/global").json()
        assert [e["username"] for e in board] == ["alice", "bob"]

        notes = client.get("/api/notifications/", headers=bob["headers"]).json()
        assert notes[0]["type"] == "game_result"
        marked = client.post("/api/notifications/read-all", headers=bob["headers"]).json()
        assert marked == {"success": True, "updated": 1}

    def test_outsider_cannot_report(self, client: TestClient):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        carol = signup(client, "carol")
        room_id = client.post("/api/games/create", json={"game_type": "tictactoe"}, headers=alice["headers"]).json()["room_id"]
        client.post(f"/api/games/{room_id}/join", headers=bob["headers"])
        client.post(f"/api/games/{room_id}/start", headers=alice["headers"])

        response = client.post(f"/api/games/{room_id}/result", json={"winner_id": carol["id"]}, headers=carol["headers"])

        assert response.status_code == 403

    def test_unknown_game(self, client: TestClient):
        response = client.get("/api/games/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "RoomNotFound"

    def test_search_player(self, client: TestClient):
        alice = signup(client, "alice")
        signup(client, "alfred")

        response = client.get("/api/games/search-player", params={"q": "alf"}, headers=alice["headers"])

        assert [p["username"] for p in response.json()] == ["alfred"]

    def test_friends_leaderboard(self, client: TestClient):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        signup(client, "carol")

        sent = client.post(f"/api/users/{bob['id']}/friend-request", headers=alice["headers"])
        assert sent.status_code == 201
        assert client.post(f"/api/users/{bob['id']}/friend-request", headers=alice["headers"]).status_code == 409
        requests = client.get("/api/users/me/friend-requests", headers=bob["headers"]).json()
        assert [r["username"] for r in requests] == ["alice"]
        assert client.post(f"/api/users/{alice['id']}/friend-request/accept", headers=bob["headers"]).status_code == 200

        response = client.get("/api/games/leaderboard/friends", headers=alice["headers"])

        assert response.status_code == 200
        body = response.json()
        assert sorted(e["username"] for e in body["leaderboard"]) == ["alice", "bob"]
        assert body["your_score"] == 0
        assert body["your_rank"] in (1, 2)
        assert [f["username"] for f in client.get("/api/users/me/friends", headers=bob["headers"]).json()] == ["alice"]

    def test_friends_leaderboard_requires_login(self, client: TestClient):
        response = client.get("/api/games/leaderboard/friends")

        assert response.status_code == 401
