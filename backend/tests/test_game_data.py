import httpx
from fastapi.testclient import TestClient

from arena.game_api import GameApiFactory
from arena.routers import game_data
from helpers import make_app

app = make_app(game_data.router)
client = TestClient(app)


def _install(game: str, handler, region: str | None = None):
    return GameApiFactory.get_game_service(
        game, region=region, transport=httpx.MockTransport(handler)
    )


def test_missing_action():
    resp = client.get("/game-data/csgo")
    assert resp.status_code == 400
    assert resp.json()["code"] == "game_data_missing_parameter"


def test_unsupported_action():
    resp = client.get("/game-data/csgo", params={"action": "teleport"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "game_data_unsupported_action"


def test_unsupported_game():
    resp = client.get("/game-data/chess", params={"action": "profile", "playerId": "1"})
    assert resp.status_code == 404
    assert resp.json()["code"] == "game_data_unsupported_game"


def test_missing_player_id():
    resp = client.get("/game-data/csgo", params={"action": "stats"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing required parameter: playerId"


def test_stats_are_proxied():
    async def handler(request):
        return httpx.Response(
            200,
            json={"playerstats": {"stats": [{"name": "total_wins", "value": 3}, {"name": "total_matches_played", "value": 4}]}},
        )

    _install("csgo", handler)
    resp = client.get("/game-data/csgo", params={"action": "stats", "playerId": "7656"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == 200
    assert body["error"] is None
    assert body["data"]["winRate"] == 75.0


def test_provider_failure_is_reported_in_envelope():
    async def handler(request):
        return httpx.Response(403, json={"status": {"message": "Forbidden", "status_code": 403}})

    _install("league-of-legends", handler, region="euw1")
    resp = client.get(
        "/game-data/league-of-legends",
        params={"action": "profile", "playerId": "Someone", "region": "euw1"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"data": None, "error": "Forbidden", "status": 403}


def test_not_implemented_action():
    async def handler(request):
        raise AssertionError("no request expected")

    _install("csgo", handler)
    resp = client.get("/game-data/csgo", params={"action": "leaderboard"})
    assert resp.status_code == 200
    assert resp.json()["status"] == 501
