"""Shared builders for router tests."""

import asyncio
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from arena import db
from arena.exceptions import DomainException, ProblemDetail
from arena.models import Game, TeamMember
from arena.routers import auth

TEST_PASSWORD = "Str0ng!Pass!"


def make_app(*routers) -> FastAPI:
    app = FastAPI()
    app.state.limiter = auth.limiter
    app.add_exception_handler(RateLimitExceeded, auth.rate_limit_handler)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request, exc):
        problem = ProblemDetail(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            code=exc.code,
            hint=exc.hint,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=problem.model_dump(exclude_none=True),
            media_type="application/problem+json",
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        problem = ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            code=getattr(exc, "code", f"http_{exc.status_code}"),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=problem.model_dump(exclude_none=True),
            media_type="application/problem+json",
        )

    app.include_router(auth.router)
    for router in routers:
        app.include_router(router)
    return app


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup(client, username: str) -> tuple[dict[str, str], str]:
    """Register ``username`` and return ``(headers, profile_id)``."""
    resp = client.post("/auth/signup", json={"username": username, "password": TEST_PASSWORD})
    assert resp.status_code == 200, resp.text
    headers = auth_headers(resp.json()["access_token"])
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    return headers, me.json()["id"]


def create_team(client, headers: dict[str, str], name: str) -> str:
    resp = client.post("/teams", json={"name": name}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def past(minutes: int = 5) -> str:
    return (datetime.now(timezone.utc) - timedelta(minutes=minutes)).isoformat()


def future(hours: int = 2) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


def create_match(client, headers: dict[str, str], team_id: str | None = None, **extra) -> str:
    body = {"startTime": past(), **extra}
    if team_id is not None:
        body["teamId"] = team_id
    resp = client.post("/matches", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def run(coro):
    return asyncio.run(coro)


async def _add_game(name: str, slug: str, map_pool: list[str] | None) -> str:
    async with db.get_sessionmaker()() as session:
        gid = uuid.uuid4().hex
        session.add(Game(id=gid, name=name, slug=slug, map_pool=map_pool))
        await session.commit()
        return gid


def add_game(name: str, slug: str, map_pool: list[str] | None = None) -> str:
    return run(_add_game(name, slug, map_pool))


async def _add_member(team_id: str, profile_id: str, role: str) -> None:
    async with db.get_sessionmaker()() as session:
        session.add(
            TeamMember(id=uuid.uuid4().hex, team_id=team_id, profile_id=profile_id, role=role)
        )
        await session.commit()


def add_member(team_id: str, profile_id: str, role: str = "member") -> None:
    run(_add_member(team_id, profile_id, role))


async def _run_ddl(fn) -> None:
    async with db.get_engine().begin() as conn:
        await conn.run_sync(fn)


@contextmanager
def table_dropped(model):
    """Drop ``model``'s table for the duration of the block."""
    table = model.__table__
    run(_run_ddl(lambda conn: table.drop(conn, checkfirst=True)))
    try:
        yield
    finally:
        run(_run_ddl(lambda conn: table.create(conn, checkfirst=True)))
