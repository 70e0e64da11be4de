"""Team membership lookups shared by the match workflow."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import TeamNotFound
from ..models import Team, TeamMember
from .lifecycle import TEAM_MANAGER_ROLES


async def get_team(session: AsyncSession, team_id: str) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise TeamNotFound(team_id)
    return team


async def membership_roles(
    session: AsyncSession, profile_id: str, team_ids: Iterable[str] | None = None
) -> dict[str, str]:
    """Return ``{team_id: role}`` for every team ``profile_id`` belongs to.

    Restricted to ``team_ids`` when given.
    """

    stmt = select(TeamMember.team_id, TeamMember.role).where(
        TeamMember.profile_id == profile_id
    )
    if team_ids is not None:
        ids = list(team_ids)
        if not ids:
            return {}
        stmt = stmt.where(TeamMember.team_id.in_(ids))
    rows = (await session.execute(stmt)).all()
    return {team_id: role for team_id, role in rows}


async def can_manage_team(session: AsyncSession, profile_id: str, team_id: str) -> bool:
    roles = await membership_roles(session, profile_id, [team_id])
    return roles.get(team_id) in TEAM_MANAGER_ROLES


async def team_member_ids(session: AsyncSession, team_ids: Iterable[str]) -> dict[str, list[str]]:
    ids = list(team_ids)
    if not ids:
        return {}
    rows = (
        await session.execute(
            select(TeamMember.team_id, TeamMember.profile_id).where(
                TeamMember.team_id.in_(ids)
            )
        )
    ).all()
    members: dict[str, list[str]] = {tid: [] for tid in ids}
    for team_id, profile_id in rows:
        members[team_id].append(profile_id)
    return members
