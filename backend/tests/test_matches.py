import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from arena.cache import veto_sessions
from arena.routers import chat, games, matches, stats, teams
from arena.services import matches as match_service
from arena.services.map_veto import MapVetoSession
from helpers import add_game, create_match, create_team, future, make_app, run, signup

app = make_app(games.router, teams.router, matches.router, chat.router, stats.router)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def two_teams(client):
    """Alice schedules a match for Team A; Bob joins it with Team B."""
    alice, alice_id = signup(client, "alice")
    bob, bob_id = signup(client, "bob")
    team_a = create_team(client, alice, "Team A")
    team_b = create_team(client, bob, "Team B")
    mid = create_match(client, alice, team_a, gameMode="snd")
    resp = client.post(f"/matches/{mid}/join", json={"teamId": team_b}, headers=bob)
    assert resp.status_code == 200, resp.text
    return {
        "mid": mid,
        "alice": alice,
        "bob": bob,
        "alice_id": alice_id,
        "bob_id": bob_id,
        "team_a": team_a,
        "team_b": team_b,
    }


def _ban(client, ctx, who, map_name):
    return client.post(
        f"/matches/{ctx['mid']}/veto/ban", json={"map": map_name}, headers=ctx[who]
    )


def _run_standard_veto(client, ctx):
    resp = client.post(f"/matches/{ctx['mid']}/veto", json={}, headers=ctx["alice"])
    assert resp.status_code == 200, resp.text
    for who, name in (("alice", "Raid"), ("bob", "Express"), ("alice", "Standoff")):
        assert _ban(client, ctx, who, name).status_code == 200
    resp = _ban(client, ctx, "bob", "Meltdown")
    assert resp.status_code == 200
    return resp.json()


def test_full_match_flow(client, two_teams, published):
    ctx = two_teams
    mid = ctx["mid"]

    detail = client.get(f"/matches/{mid}", headers=ctx["alice"]).json()
    assert detail["status"] == "scheduled"
    assert [p["teamName"] for p in detail["participants"]] == ["Team A", "Team B"]
    assert detail["roles"] == {
        "isScheduler": True,
        "isParticipant": True,
        "participantTeamId": ctx["team_a"],
    }
    assert detail["actions"]["canSetup"] is True
    assert detail["actions"]["canStart"] is False
    assert detail["settings"]["settings"]["veto_type"] == "standard"

    veto = _run_standard_veto(client, ctx)
    assert veto["complete"] is True
    assert veto["selectedMaps"] == ["Slums", "Firing Range", "Nuketown"]
    assert client.get(f"/matches/{mid}/veto", headers=ctx["alice"]).status_code == 404

    detail = client.get(f"/matches/{mid}", headers=ctx["bob"]).json()
    assert detail["settings"]["selectedMaps"] == ["Slums", "Firing Range", "Nuketown"]

    resp = client.post(f"/matches/{mid}/setup/complete", headers=ctx["bob"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["setupCompletedAt"] is not None
    assert resp.json()["actions"]["canStart"] is True

    resp = client.post(f"/matches/{mid}/start", headers=ctx["alice"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "in_progress"
    assert resp.json()["startedAt"] is not None
    assert resp.json()["actions"]["canReportResult"] is True

    resp = client.post(
        f"/matches/{mid}/result",
        json={"winnerTeamId": ctx["team_a"], "winnerScore": 13, "loserScore": 7},
        headers=ctx["bob"],
    )
    assert resp.status_code == 200, resp.text
    result = resp.json()
    assert result["loserTeamId"] == ctx["team_b"]
    assert result["reportedBy"] == ctx["bob_id"]

    detail = client.get(f"/matches/{mid}", headers=ctx["bob"]).json()
    assert detail["status"] == "completed"
    assert {p["teamId"]: p["result"] for p in detail["participants"]} == {
        ctx["team_a"]: "win",
        ctx["team_b"]: "loss",
    }
    assert detail["actions"]["canReportDispute"] is True

    alice_stats = client.get(f"/profiles/{ctx['alice_id']}/stats").json()
    assert alice_stats["matchesPlayed"] == 1
    assert alice_stats["matchesWon"] == 1
    assert alice_stats["winRate"] == 100
    bob_stats = client.get(f"/profiles/{ctx['bob_id']}/stats").json()
    assert bob_stats["matchesPlayed"] == 1
    assert bob_stats["winRate"] == 0

    team_stats = client.get(f"/teams/{ctx['team_a']}/stats").json()
    assert team_stats["totalMatches"] == 1
    assert team_stats["wonMatches"] == 1
    assert team_stats["streaks"]["current"] == 1

    chat_log = client.get(f"/matches/{mid}/chat", headers=ctx["alice"]).json()
    system = [m["message"] for m in chat_log["items"] if m["isSystem"]]
    assert system == [
        "Match created.",
        "Team B has joined the match.",
        "Map veto complete. Selected maps: Slums, Firing Range, Nuketown.",
        "Match setup has been completed. The match is now scheduled.",
        "Match has started! Good luck and have fun!",
        "Match completed. Team A won 13-7.",
    ]
    channels = {channel for channel, _ in published}
    assert channels == {f"match:{mid}:chat"}
    assert len(published) == len(system)


def test_create_match_requires_team_manager(client):
    alice, _ = signup(client, "alice")
    bob, bob_id = signup(client, "bob")
    team_a = create_team(client, alice, "Team A")
    resp = client.post(
        "/matches", json={"startTime": future(), "teamId": team_a}, headers=bob
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "match_team_role_required"


def test_create_match_rejects_naive_start_time(client):
    alice, _ = signup(client, "alice")
    resp = client.post("/matches", json={"startTime": "2030-01-01T10:00:00"}, headers=alice)
    assert resp.status_code == 422


def test_create_match_rejects_end_before_start(client):
    alice, _ = signup(client, "alice")
    resp = client.post(
        "/matches",
        json={"startTime": "2030-01-01T10:00:00Z", "endTime": "2030-01-01T09:00:00Z"},
        headers=alice,
    )
    assert resp.status_code == 422


def test_create_match_unknown_game(client):
    alice, _ = signup(client, "alice")
    resp = client.post(
        "/matches", json={"startTime": future(), "gameId": "missing"}, headers=alice
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "game_not_found"


def test_get_unknown_match_is_404(client):
    resp = client.get("/matches/nope")
    assert resp.status_code == 404
    assert resp.json()["code"] == "match_not_found"


def test_list_hides_private_matches_and_filters_status(client):
    alice, _ = signup(client, "alice")
    public = create_match(client, alice)
    create_match(client, alice, isPrivate=True)
    listed = client.get("/matches").json()
    assert [m["id"] for m in listed] == [public]

    client.post(f"/matches/{public}/cancel", headers=alice)
    assert client.get("/matches", params={"status": "scheduled"}).json() == []
    cancelled = client.get("/matches", params={"status": "cancelled"}).json()
    assert [m["id"] for m in cancelled] == [public]


def test_anonymous_detail_has_no_actions(client, two_teams):
    detail = client.get(f"/matches/{two_teams['mid']}").json()
    assert detail["roles"]["isScheduler"] is False
    assert not any(detail["actions"].values())


def test_join_twice_and_full_match(client, two_teams):
    ctx = two_teams
    resp = client.post(
        f"/matches/{ctx['mid']}/join", json={"teamId": ctx["team_b"]}, headers=ctx["bob"]
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_team_already_joined"

    carol, _ = signup(client, "carol")
    team_c = create_team(client, carol, "Team C")
    resp = client.post(
        f"/matches/{ctx['mid']}/join", json={"teamId": team_c}, headers=carol
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_join_not_allowed"


def test_join_needs_team_owner_or_captain(client, two_teams):
    carol, _ = signup(client, "carol")
    alice = two_teams["alice"]
    solo = create_match(client, alice)
    team_c = create_team(client, carol, "Team C")
    resp = client.post(f"/matches/{solo}/join", json={"teamId": team_c}, headers=alice)
    assert resp.status_code == 403
    assert resp.json()["code"] == "match_team_role_required"


def test_update_settings(client, two_teams):
    ctx = two_teams
    resp = client.patch(
        f"/matches/{ctx['mid']}/settings",
        json={"rules": "No knives", "settings": {"overtime": True}},
        headers=ctx["alice"],
    )
    assert resp.status_code == 200, resp.text
    settings = resp.json()["settings"]
    assert settings["rules"] == "No knives"
    assert settings["settings"] == {"veto_type": "standard", "overtime": True}

    resp = client.patch(
        f"/matches/{ctx['mid']}/settings", json={"rules": "x"}, headers=ctx["bob"]
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "match_forbidden"

    resp = client.patch(f"/matches/{ctx['mid']}/settings", json={}, headers=ctx["alice"])
    assert resp.status_code == 422


def test_setup_requires_selected_maps(client, two_teams):
    ctx = two_teams
    resp = client.post(f"/matches/{ctx['mid']}/setup/complete", headers=ctx["alice"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_maps_not_selected"


def test_start_before_setup_is_not_ready(client, two_teams):
    ctx = two_teams
    resp = client.post(f"/matches/{ctx['mid']}/start", headers=ctx["alice"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_not_ready"


def test_start_before_start_time(client):
    alice, _ = signup(client, "alice")
    bob, _ = signup(client, "bob")
    team_a = create_team(client, alice, "Team A")
    team_b = create_team(client, bob, "Team B")
    mid = create_match(client, alice, team_a, startTime=future())
    client.post(f"/matches/{mid}/join", json={"teamId": team_b}, headers=bob)
    ctx = {"mid": mid, "alice": alice, "bob": bob}
    _run_standard_veto(client, ctx)
    assert client.post(f"/matches/{mid}/setup/complete", headers=alice).status_code == 200

    resp = client.post(f"/matches/{mid}/start", headers=bob)
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_start_time_not_reached"


def test_outsider_cannot_start(client, two_teams):
    carol, _ = signup(client, "carol")
    resp = client.post(f"/matches/{two_teams['mid']}/start", headers=carol)
    assert resp.status_code == 403
    assert resp.json()["code"] == "match_forbidden"


def test_result_on_scheduled_match_is_invalid_transition(client, two_teams):
    ctx = two_teams
    resp = client.post(
        f"/matches/{ctx['mid']}/result",
        json={"winnerTeamId": ctx["team_a"], "winnerScore": 2, "loserScore": 1},
        headers=ctx["alice"],
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_invalid_transition"


def test_result_validation(client, two_teams):
    ctx = two_teams
    _run_standard_veto(client, ctx)
    client.post(f"/matches/{ctx['mid']}/setup/complete", headers=ctx["alice"])
    client.post(f"/matches/{ctx['mid']}/start", headers=ctx["alice"])

    resp = client.post(
        f"/matches/{ctx['mid']}/result",
        json={"winnerTeamId": ctx["team_a"], "winnerScore": 5, "loserScore": 5},
        headers=ctx["alice"],
    )
    assert resp.status_code == 422

    resp = client.post(
        f"/matches/{ctx['mid']}/result",
        json={"winnerTeamId": "someone-else", "winnerScore": 5, "loserScore": 2},
        headers=ctx["alice"],
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "match_winner_not_participant"


def test_cancel_rules(client, two_teams):
    ctx = two_teams
    resp = client.post(f"/matches/{ctx['mid']}/cancel", headers=ctx["bob"])
    assert resp.status_code == 403
    assert resp.json()["code"] == "match_forbidden"

    resp = client.post(f"/matches/{ctx['mid']}/cancel", headers=ctx["alice"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert not any(resp.json()["actions"].values())

    resp = client.post(f"/matches/{ctx['mid']}/cancel", headers=ctx["alice"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_invalid_transition"

    resp = client.post(f"/matches/{ctx['mid']}/start", headers=ctx["alice"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_invalid_transition"


def test_running_match_cannot_be_cancelled_by_scheduler(client, two_teams):
    ctx = two_teams
    _run_standard_veto(client, ctx)
    client.post(f"/matches/{ctx['mid']}/setup/complete", headers=ctx["alice"])
    client.post(f"/matches/{ctx['mid']}/start", headers=ctx["alice"])
    resp = client.post(f"/matches/{ctx['mid']}/cancel", headers=ctx["alice"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_not_cancellable"


def test_veto_turn_order_and_invalid_bans(client, two_teams):
    ctx = two_teams
    resp = client.post(f"/matches/{ctx['mid']}/veto", json={}, headers=ctx["bob"])
    assert resp.status_code == 200
    state = resp.json()
    assert state["currentTeamId"] == ctx["team_b"]
    assert state["remaining"] == state["pool"]

    # Starting again returns the running session.
    again = client.post(f"/matches/{ctx['mid']}/veto", json={}, headers=ctx["alice"])
    assert again.json()["currentTeamId"] == ctx["team_b"]

    resp = _ban(client, ctx, "alice", "Raid")
    assert resp.status_code == 409
    assert resp.json()["code"] == "veto_not_your_turn"

    resp = _ban(client, ctx, "bob", "Dust II")
    assert resp.status_code == 400
    assert resp.json()["code"] == "veto_invalid_ban"

    resp = _ban(client, ctx, "bob", "Raid")
    assert resp.status_code == 200
    assert resp.json()["currentTeamId"] == ctx["team_a"]
    got = client.get(f"/matches/{ctx['mid']}/veto", headers=ctx["alice"]).json()
    assert got["bans"] == [{"map": "Raid", "teamId": ctx["team_b"]}]

    resp = client.post(f"/matches/{ctx['mid']}/veto/random", headers=ctx["alice"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "veto_in_progress"


def test_veto_needs_two_teams_and_participant(client, two_teams):
    ctx = two_teams
    carol, _ = signup(client, "carol")
    resp = client.post(f"/matches/{ctx['mid']}/veto", json={}, headers=carol)
    assert resp.status_code == 403
    assert resp.json()["code"] == "veto_forbidden"

    team_c = create_team(client, carol, "Team C")
    solo = create_match(client, carol, team_c)
    resp = client.post(f"/matches/{solo}/veto", json={}, headers=carol)
    assert resp.status_code == 409
    assert resp.json()["code"] == "veto_not_allowed"


def test_ban_without_session(client, two_teams):
    resp = _ban(client, two_teams, "alice", "Raid")
    assert resp.status_code == 404
    assert resp.json()["code"] == "veto_not_started"


def test_captain_veto_is_unsupported(client, two_teams):
    resp = client.post(
        f"/matches/{two_teams['mid']}/veto",
        json={"vetoType": "captain"},
        headers=two_teams["alice"],
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "veto_mode_unsupported"


def test_random_veto_selects_three_maps(client, two_teams):
    ctx = two_teams
    resp = client.post(f"/matches/{ctx['mid']}/veto/random", headers=ctx["alice"])
    assert resp.status_code == 200, resp.text
    state = resp.json()
    assert state["vetoType"] == "random"
    assert state["complete"] is True
    assert len(state["selectedMaps"]) == 3
    detail = client.get(f"/matches/{ctx['mid']}", headers=ctx["alice"]).json()
    assert detail["settings"]["selectedMaps"] == state["selectedMaps"]


def test_veto_uses_game_map_pool(client):
    gid = add_game("Shooter", "shooter", ["One", "Two", "Three", "Four", "Five"])
    alice, _ = signup(client, "alice")
    bob, _ = signup(client, "bob")
    team_a = create_team(client, alice, "Team A")
    team_b = create_team(client, bob, "Team B")
    mid = create_match(client, alice, team_a, gameId=gid)
    client.post(f"/matches/{mid}/join", json={"teamId": team_b}, headers=bob)

    state = client.post(f"/matches/{mid}/veto", json={}, headers=alice).json()
    assert state["pool"] == ["One", "Two", "Three", "Four", "Five"]
    client.post(f"/matches/{mid}/veto/ban", json={"map": "One"}, headers=alice)
    done = client.post(f"/matches/{mid}/veto/ban", json={"map": "Five"}, headers=bob).json()
    assert done["selectedMaps"] == ["Two", "Three", "Four"]


def test_veto_with_small_pool_finishes_on_start(client):
    gid = add_game("Tiny", "tiny", ["One", "Two"])
    alice, _ = signup(client, "alice")
    bob, _ = signup(client, "bob")
    team_a = create_team(client, alice, "Team A")
    team_b = create_team(client, bob, "Team B")
    mid = create_match(client, alice, team_a, gameId=gid)
    client.post(f"/matches/{mid}/join", json={"teamId": team_b}, headers=bob)

    state = client.post(f"/matches/{mid}/veto", json={}, headers=alice).json()
    assert state["complete"] is True
    assert state["selectedMaps"] == ["One", "Two"]
    detail = client.get(f"/matches/{mid}", headers=alice).json()
    assert detail["settings"]["selectedMaps"] == ["One", "Two"]


def test_failed_veto_persist_does_not_strand_the_match(client, two_teams, monkeypatch):
    ctx = two_teams
    mid = ctx["mid"]
    real_save = match_service.save_selected_maps
    attempts = []

    async def flaky_save(session, match_id, maps):
        attempts.append(list(maps))
        if len(attempts) == 1:
            raise OperationalError("UPDATE match_settings", {}, Exception("database is locked"))
        return await real_save(session, match_id, maps)

    monkeypatch.setattr(match_service, "save_selected_maps", flaky_save)

    client.post(f"/matches/{mid}/veto", json={}, headers=ctx["alice"])
    for who, name in (("alice", "Raid"), ("bob", "Express"), ("alice", "Standoff")):
        assert _ban(client, ctx, who, name).status_code == 200
    with pytest.raises(OperationalError):
        _ban(client, ctx, "bob", "Meltdown")

    assert client.get(f"/matches/{mid}/veto", headers=ctx["alice"]).status_code == 404
    resp = client.post(f"/matches/{mid}/veto/random", headers=ctx["alice"])
    assert resp.status_code == 200, resp.text
    maps = resp.json()["selectedMaps"]
    assert len(maps) == 3
    detail = client.get(f"/matches/{mid}", headers=ctx["alice"]).json()
    assert detail["settings"]["selectedMaps"] == maps
    resp = client.post(f"/matches/{mid}/setup/complete", headers=ctx["bob"])
    assert resp.status_code == 200, resp.text


def test_cached_complete_veto_is_persisted_on_restart(client, two_teams):
    ctx = two_teams
    mid = ctx["mid"]
    done = MapVetoSession(
        match_id=mid,
        pool=["Raid", "Slums"],
        team_id=ctx["team_a"],
        opponent_team_id=ctx["team_b"],
        veto_type="standard",
    )
    assert done.is_complete
    run(veto_sessions.set(mid, done))

    resp = client.post(f"/matches/{mid}/veto", json={}, headers=ctx["alice"])
    assert resp.status_code == 200
    assert resp.json()["selectedMaps"] == ["Raid", "Slums"]
    assert run(veto_sessions.get(mid)) is None
    detail = client.get(f"/matches/{mid}", headers=ctx["alice"]).json()
    assert detail["settings"]["selectedMaps"] == ["Raid", "Slums"]
