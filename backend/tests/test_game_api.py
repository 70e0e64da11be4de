from types import SimpleNamespace

import httpx
import pytest

from arena.game_api import (
    ApiClient,
    GameApiFactory,
    GameServiceConfig,
    UnsupportedGame,
)
from arena.game_api import client as client_module
from arena.game_api.csgo import CSGOService
from arena.game_api.league_of_legends import LeagueOfLegendsService


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def sleeps(monkeypatch):
    waits: list[float] = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    monkeypatch.setattr(client_module, "asyncio", SimpleNamespace(sleep=fake_sleep))
    return waits


def _client(handler, **kwargs) -> ApiClient:
    return ApiClient("https://api.example.test", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.anyio
async def test_success_returns_json_payload():
    async def handler(request):
        assert request.headers["accept"] == "application/json"
        return httpx.Response(200, json={"hello": "world"})

    resp = await _client(handler).get("/ping")
    assert resp.data == {"hello": "world"}
    assert resp.error is None
    assert resp.status == 200
    assert resp.ok


@pytest.mark.anyio
async def test_rate_limit_is_retried_with_exponential_backoff(sleeps):
    calls = []

    async def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(429, json={"message": "slow down"})
        return httpx.Response(200, json=[1, 2])

    resp = await _client(handler, retries=3, retry_delay=0.5).get("/things")
    assert resp.data == [1, 2]
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]


@pytest.mark.anyio
async def test_retry_after_header_sets_the_wait(sleeps):
    responses = iter(
        [
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={}),
        ]
    )

    async def handler(request):
        return next(responses)

    resp = await _client(handler).get("/things")
    assert resp.status == 200
    assert sleeps == [7.0]


@pytest.mark.anyio
async def test_rate_limit_after_retries_are_exhausted(sleeps):
    async def handler(request):
        return httpx.Response(429, json={"status": {"message": "Rate limit exceeded"}})

    resp = await _client(handler, retries=2, retry_delay=1).get("/things")
    assert resp.status == 429
    assert resp.error == "Rate limit exceeded"
    assert resp.data is None
    assert sleeps == [1, 2]


@pytest.mark.anyio
async def test_transport_errors_end_with_status_zero(sleeps):
    calls = 0

    async def handler(request):
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    resp = await _client(handler, retries=2, retry_delay=0.1).get("/down")
    assert calls == 3
    assert resp.status == 0
    assert resp.error == "connection refused"
    assert not resp.ok
    assert len(sleeps) == 2


@pytest.mark.anyio
async def test_transport_error_then_success(sleeps):
    calls = 0

    async def handler(request):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"ok": True})

    resp = await _client(handler, retry_delay=0.2).get("/flaky")
    assert resp.data == {"ok": True}
    assert sleeps == [0.2]


@pytest.mark.parametrize(
    "response,expected",
    [
        (httpx.Response(404, json={"message": "Not found"}), "Not found"),
        (httpx.Response(400, json={"error": "bad id"}), "bad id"),
        (httpx.Response(403, json={"status": {"message": "Forbidden", "status_code": 403}}), "Forbidden"),
        (httpx.Response(502, text="Bad gateway"), "Bad gateway"),
        (httpx.Response(500), "API Error: 500"),
        (httpx.Response(500, json=["unexpected"]), "API Error: 500"),
    ],
)
@pytest.mark.anyio
async def test_error_message_extraction(response, expected):
    async def handler(request):
        return response

    resp = await _client(handler).get("/boom")
    assert resp.error == expected
    assert resp.status == response.status_code
    assert resp.data is None


@pytest.mark.anyio
async def test_invalid_json_is_not_retried(sleeps):
    calls = 0

    async def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(200, text="<html>")

    resp = await _client(handler).get("/html")
    assert calls == 1
    assert resp.error == "invalid JSON in response"
    assert resp.status == 200
    assert sleeps == []


@pytest.mark.anyio
async def test_post_sends_json_body():
    async def handler(request):
        assert request.method == "POST"
        assert request.content == b'{"a":1}' or request.content == b'{"a": 1}'
        return httpx.Response(201, json={"created": True})

    resp = await _client(handler).post("/items", {"a": 1})
    assert resp.status == 201


# ---------------------------------------------------------------------------
# League of Legends
# ---------------------------------------------------------------------------
SUMMONER = {
    "id": "summoner-id",
    "accountId": "account-id",
    "puuid": "puuid-1",
    "name": "Faker",
    "profileIconId": 6,
    "summonerLevel": 512,
}


def _lol(handler, region="kr") -> LeagueOfLegendsService:
    return LeagueOfLegendsService(
        GameServiceConfig(base_url="https://api.riotgames.com", api_key="RGAPI-test", region=region),
        transport=httpx.MockTransport(handler),
    )


def _riot_match(match_id: str, puuid: str, win: bool) -> dict:
    return {
        "metadata": {"matchId": match_id},
        "info": {
            "gameStartTimestamp": 1_700_000_000_000,
            "gameEndTimestamp": 1_700_001_800_000,
            "gameDuration": 1800,
            "gameMode": "CLASSIC",
            "queueId": 420,
            "participants": [
                {
                    "puuid": puuid,
                    "summonerId": "s1",
                    "summonerName": "Faker",
                    "teamId": 100,
                    "championName": "Ahri",
                    "teamPosition": "MIDDLE",
                    "kills": 7,
                    "deaths": 1,
                    "assists": 9,
                    "win": win,
                },
                {
                    "puuid": "other",
                    "summonerId": "s2",
                    "summonerName": "Rival",
                    "teamId": 200,
                    "win": not win,
                },
            ],
        },
    }


@pytest.mark.anyio
async def test_lol_profile_by_name_uses_riot_token_and_region_host():
    seen = []

    async def handler(request):
        seen.append(request)
        return httpx.Response(200, json=SUMMONER)

    resp = await _lol(handler).get_player_profile("Faker")
    assert resp.status == 200
    assert resp.data["username"] == "Faker"
    assert resp.data["level"] == 512
    assert resp.data["region"] == "kr"
    assert resp.data["gameSpecificData"]["puuid"] == "puuid-1"
    assert seen[0].url.host == "kr.api.riotgames.com"
    assert seen[0].url.path == "/lol/summoner/v4/summoners/by-name/Faker"
    assert seen[0].headers["X-Riot-Token"] == "RGAPI-test"


@pytest.mark.anyio
async def test_lol_profile_by_encrypted_id():
    async def handler(request):
        assert request.url.path == "/lol/summoner/v4/summoners/" + "x" * 40
        return httpx.Response(200, json=SUMMONER)

    resp = await _lol(handler).get_player_profile("x" * 40)
    assert resp.data["id"] == "summoner-id"


@pytest.mark.anyio
async def test_lol_profile_passes_upstream_error_through():
    async def handler(request):
        return httpx.Response(404, json={"status": {"message": "Data not found", "status_code": 404}})

    resp = await _lol(handler).get_player_profile("Nobody")
    assert resp.status == 404
    assert resp.error == "Data not found"

    search = await _lol(handler).search_player("Nobody")
    assert search.data == []
    assert search.status == 404


@pytest.mark.anyio
async def test_lol_stats_prefer_solo_queue():
    entries = [
        {"queueType": "RANKED_FLEX_SR", "tier": "GOLD", "rank": "I", "wins": 1, "losses": 1, "leaguePoints": 10},
        {"queueType": "RANKED_SOLO_5x5", "tier": "DIAMOND", "rank": "II", "wins": 30, "losses": 10, "leaguePoints": 55},
    ]

    async def handler(request):
        return httpx.Response(200, json=entries)

    resp = await _lol(handler).get_player_stats("summoner-id")
    stats = resp.data
    assert stats["rank"] == "DIAMOND"
    assert stats["rankTier"] == 7
    assert stats["totalMatches"] == 40
    assert stats["winRate"] == 75.0
    assert stats["eloRating"] == 55


@pytest.mark.anyio
async def test_lol_stats_for_unranked_player():
    async def handler(request):
        return httpx.Response(200, json=[])

    resp = await _lol(handler).get_player_stats("summoner-id")
    assert resp.data["totalMatches"] == 0
    assert resp.error is None


@pytest.mark.anyio
async def test_lol_recent_matches_caps_detail_requests_and_skips_failures():
    ids = [f"KR_{i}" for i in range(8)]
    detail_calls = []

    async def handler(request):
        assert request.url.host == "asia.api.riotgames.com"
        if request.url.path.endswith("/ids"):
            assert request.url.params["count"] == "8"
            return httpx.Response(200, json=ids)
        match_id = request.url.path.rsplit("/", 1)[-1]
        detail_calls.append(match_id)
        if match_id == "KR_1":
            return httpx.Response(404, json={"status": {"message": "gone"}})
        return httpx.Response(200, json=_riot_match(match_id, "puuid-1", win=match_id != "KR_2"))

    resp = await _lol(handler).get_recent_matches("puuid-1", 8)
    assert detail_calls == ids[:5]
    assert [m["id"] for m in resp.data] == ["KR_0", "KR_2", "KR_3", "KR_4"]
    assert [m["result"] for m in resp.data] == ["win", "loss", "win", "win"]
    first = resp.data[0]
    assert first["duration"] == 1800
    assert first["participants"][0]["stats"]["score"] == 16


@pytest.mark.anyio
async def test_lol_leaderboard_sorted_and_limited():
    league = {
        "leagueId": "league-1",
        "tier": "CHALLENGER",
        "entries": [
            {"summonerId": "a", "summonerName": "A", "leaguePoints": 900, "wins": 100, "losses": 50},
            {"summonerId": "b", "summonerName": "B", "leaguePoints": 1500, "wins": 200, "losses": 90},
            {"summonerId": "c", "summonerName": "C", "leaguePoints": 1200, "wins": 150, "losses": 70},
        ],
    }

    async def handler(request):
        assert request.url.host == "euw1.api.riotgames.com"
        return httpx.Response(200, json=league)

    resp = await _lol(handler).get_leaderboard("euw1", 2)
    board = resp.data
    assert board["region"] == "euw1"
    assert [(e["rank"], e["username"]) for e in board["entries"]] == [(1, "B"), (2, "C")]


@pytest.mark.anyio
async def test_lol_tournaments_not_implemented():
    async def handler(request):
        raise AssertionError("no request expected")

    resp = await _lol(handler).get_tournaments()
    assert resp.status == 501


# ---------------------------------------------------------------------------
# Counter-Strike via Steam
# ---------------------------------------------------------------------------
def _csgo(handler) -> CSGOService:
    return CSGOService(
        GameServiceConfig(base_url="https://api.steampowered.com", api_key="steam-key"),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.anyio
async def test_csgo_profile_resolves_vanity_url():
    async def handler(request):
        assert request.url.params["key"] == "steam-key"
        if "ResolveVanityURL" in request.url.path:
            assert request.url.params["vanityurl"] == "gaben"
            return httpx.Response(200, json={"response": {"steamid": "76561197960287930", "success": 1}})
        assert request.url.params["steamids"] == "76561197960287930"
        return httpx.Response(
            200,
            json={
                "response": {
                    "players": [
                        {
                            "steamid": "76561197960287930",
                            "personaname": "Rabscuttle",
                            "avatarfull": "https://avatars.example/full.jpg",
                            "loccountrycode": "US",
                            "lastlogoff": 1_700_000_000,
                        }
                    ]
                }
            },
        )

    resp = await _csgo(handler).get_player_profile("gaben")
    assert resp.status == 200
    assert resp.data["username"] == "Rabscuttle"
    assert resp.data["region"] == "US"
    assert resp.data["gameSpecificData"]["lastLogoff"].startswith("2023-11-14")


@pytest.mark.anyio
async def test_csgo_unresolvable_vanity_url():
    async def handler(request):
        return httpx.Response(200, json={"response": {"success": 42}})

    resp = await _csgo(handler).get_player_profile("nobody-here")
    assert resp.status == 400
    assert resp.error == "Could not resolve vanity URL to Steam ID"


@pytest.mark.anyio
async def test_csgo_stats():
    stats = [
        {"name": "total_kills", "value": 500},
        {"name": "total_deaths", "value": 250},
        {"name": "total_wins", "value": 60},
        {"name": "total_matches_played", "value": 100},
        {"name": "total_shots_fired", "value": 1000},
        {"name": "total_shots_hit", "value": 250},
    ]

    async def handler(request):
        assert request.url.params["appid"] == "730"
        return httpx.Response(200, json={"playerstats": {"stats": stats}})

    resp = await _csgo(handler).get_player_stats("76561197960287930")
    data = resp.data
    assert data["wins"] == 60
    assert data["losses"] == 40
    assert data["winRate"] == 60.0
    assert data["gameSpecificStats"]["accuracy"] == 25.0


@pytest.mark.anyio
async def test_csgo_unavailable_features_answer_501():
    async def handler(request):
        raise AssertionError("no request expected")

    service = _csgo(handler)
    matches = await service.get_recent_matches("1")
    assert matches.status == 501
    assert matches.data == []
    assert (await service.get_match("1")).status == 501
    assert (await service.get_leaderboard()).status == 501
    assert (await service.search_player("x")).data == []


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
def test_factory_reuses_services_per_game_and_region():
    lol = GameApiFactory.get_game_service("league-of-legends")
    assert GameApiFactory.get_game_service("league-of-legends") is lol
    assert lol.region == "na1"
    euw = GameApiFactory.get_game_service("league-of-legends", region="euw1")
    assert euw is not lol
    assert euw.region == "euw1"
    assert isinstance(GameApiFactory.get_game_service("csgo"), CSGOService)


def test_factory_rejects_unknown_game_and_region():
    with pytest.raises(UnsupportedGame):
        GameApiFactory.get_game_service("chess")
    with pytest.raises(UnsupportedGame):
        GameApiFactory.get_game_service("league-of-legends", region="mars1")


@pytest.mark.anyio
async def test_factory_clear_cache_closes_services():
    service = GameApiFactory.get_game_service("csgo")
    await GameApiFactory.clear_cache()
    assert GameApiFactory._services == {}
    assert service.api_client._client.is_closed
