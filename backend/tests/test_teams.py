from fastapi.testclient import TestClient

from arena.routers import teams
from helpers import create_team, make_app, signup

app = make_app(teams.router)


def test_creator_becomes_owner():
    with TestClient(app) as client:
        alice, alice_id = signup(client, "alice")
        resp = client.post(
            "/teams", json={"name": "  Night Owls ", "logoUrl": "https://img.example/owl.png"}, headers=alice
        )
        assert resp.status_code == 201
        team = resp.json()
        assert team["name"] == "Night Owls"
        assert team["createdBy"] == alice_id
        assert team["members"] == [
            {"id": team["members"][0]["id"], "profileId": alice_id, "username": "alice", "role": "owner"}
        ]


def test_invalid_team_input():
    with TestClient(app) as client:
        alice, _ = signup(client, "alice")
        assert client.post("/teams", json={"name": "   "}, headers=alice).status_code == 422
        resp = client.post(
            "/teams", json={"name": "Owls", "logoUrl": "javascript:alert(1)"}, headers=alice
        )
        assert resp.status_code == 422


def test_owner_adds_members_and_roles_are_checked():
    with TestClient(app) as client:
        alice, _ = signup(client, "alice")
        bob, bob_id = signup(client, "bob")
        carol, carol_id = signup(client, "carol")
        team = create_team(client, alice, "Owls")

        resp = client.post(
            f"/teams/{team}/members", json={"profileId": bob_id, "role": "captain"}, headers=alice
        )
        assert resp.status_code == 200
        roles = {m["username"]: m["role"] for m in resp.json()["members"]}
        assert roles == {"alice": "owner", "bob": "captain"}

        # Captains manage the roster too.
        resp = client.post(f"/teams/{team}/members", json={"profileId": carol_id}, headers=bob)
        assert resp.status_code == 200

        resp = client.post(f"/teams/{team}/members", json={"profileId": carol_id}, headers=alice)
        assert resp.status_code == 409
        assert resp.json()["code"] == "team_member_exists"

        resp = client.post(f"/teams/{team}/members", json={"profileId": bob_id}, headers=carol)
        assert resp.status_code == 403
        assert resp.json()["code"] == "team_forbidden"

        resp = client.post(
            f"/teams/{team}/members", json={"profileId": carol_id, "role": "owner"}, headers=alice
        )
        assert resp.status_code == 422

        resp = client.post(f"/teams/{team}/members", json={"profileId": "nobody"}, headers=alice)
        assert resp.status_code == 404


def test_unknown_team():
    client = TestClient(app)
    resp = client.get("/teams/missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "team_not_found"
