"""Inviting teams into a match and answering those invitations.

Expiry is advisory: ``acceptance_deadline`` only decides whether the invited
team may still respond. Nothing reclaims an expired row or frees its slot.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import INVITATION_TTL_HOURS
from ..exceptions import InvitationNotFound, http_problem
from ..models import Match, MatchInvitation, MatchParticipant, Profile, Team
from ..schemas import InvitationOut
from ..time_utils import coerce_utc, utcnow
from .chat import post_system_message
from .lifecycle import MAX_PARTICIPANTS, MatchStatus, parse_status, require
from .matches import get_match, load_context
from .teams import can_manage_team, get_team

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10
OPEN_INVITATION_STATUSES = ("pending", "accepted")


def setup_path(match_id: str) -> str:
    return f"/matches/{match_id}/setup"


def invitation_state(
    invitation: MatchInvitation, now: datetime | None = None
) -> tuple[bool, bool]:
    """Return ``(is_expired, can_respond)`` for ``invitation`` at ``now``."""

    now = now or utcnow()
    deadline = coerce_utc(invitation.acceptance_deadline)
    is_expired = deadline is not None and now > deadline
    can_respond = invitation.status == "pending" and not is_expired
    return is_expired, can_respond


def invitation_to_out(
    invitation: MatchInvitation,
    team_name: str | None = None,
    now: datetime | None = None,
) -> InvitationOut:
    is_expired, can_respond = invitation_state(invitation, now)
    return InvitationOut(
        id=invitation.id,
        matchId=invitation.match_id,
        teamId=invitation.team_id,
        teamName=team_name,
        invitedBy=invitation.invited_by,
        status=invitation.status,
        acceptanceDeadline=coerce_utc(invitation.acceptance_deadline),
        createdAt=coerce_utc(invitation.created_at),
        respondedAt=coerce_utc(invitation.responded_at),
        isExpired=is_expired,
        canRespond=can_respond,
    )


async def _excluded_team_ids(session: AsyncSession, match_id: str) -> set[str]:
    participating = (
        await session.execute(
            select(MatchParticipant.team_id).where(MatchParticipant.match_id == match_id)
        )
    ).scalars().all()
    invited = (
        await session.execute(
            select(MatchInvitation.team_id)
            .where(MatchInvitation.match_id == match_id)
            .where(MatchInvitation.status.in_(OPEN_INVITATION_STATUSES))
        )
    ).scalars().all()
    return set(participating) | set(invited)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search_teams(
    session: AsyncSession, match_id: str, query: str, *, limit: int = SEARCH_LIMIT
) -> list[Team]:
    """Case-insensitive name search over teams that could still be invited."""

    q = (query or "").strip()
    if not q:
        return []
    await get_match(session, match_id)
    excluded = await _excluded_team_ids(session, match_id)
    stmt = (
        select(Team)
        .where(Team.name.ilike(f"%{_escape_like(q)}%", escape="\\"))
        .order_by(Team.name)
        .limit(limit + len(excluded))
    )
    teams = (await session.execute(stmt)).scalars().all()
    return [team for team in teams if team.id not in excluded][:limit]


async def invite_team(
    session: AsyncSession, match_id: str, team_id: str, profile: Profile
) -> MatchInvitation:
    ctx = await load_context(session, match_id, profile.id)
    require(
        ctx.roles.is_scheduler,
        "only the scheduler can invite teams",
        "invitation_forbidden",
    )
    require(
        ctx.actions.can_invite,
        "match is not open for invitations",
        "invitation_not_allowed",
        status_code=409,
    )
    team = await get_team(session, team_id)
    if team.id in await _excluded_team_ids(session, match_id):
        raise http_problem(
            status_code=409,
            detail="team is already participating or invited",
            code="invitation_already_exists",
        )

    now = utcnow()
    invitation = MatchInvitation(
        id=uuid.uuid4().hex,
        match_id=match_id,
        team_id=team.id,
        invited_by=profile.id,
        status="pending",
        acceptance_deadline=now + timedelta(hours=INVITATION_TTL_HOURS),
        created_at=now,
    )
    session.add(invitation)
    await session.commit()

    await post_system_message(
        match_id, f"{team.name} has been invited to the match."
    )
    return invitation


async def get_invitation(session: AsyncSession, invitation_id: str) -> MatchInvitation:
    invitation = await session.get(MatchInvitation, invitation_id)
    if invitation is None:
        raise InvitationNotFound(invitation_id)
    return invitation


async def _load_for_response(
    session: AsyncSession, invitation_id: str, profile: Profile
) -> tuple[MatchInvitation, Team]:
    invitation = await get_invitation(session, invitation_id)
    team = await get_team(session, invitation.team_id)
    require(
        await can_manage_team(session, profile.id, team.id),
        "only the invited team's owner or captain can respond",
        "invitation_forbidden",
    )
    if invitation.status != "pending":
        raise http_problem(
            status_code=409,
            detail="invitation has already been answered",
            code="invitation_not_pending",
        )
    is_expired, _ = invitation_state(invitation)
    if is_expired:
        raise http_problem(
            status_code=409,
            detail="invitation has expired",
            code="invitation_expired",
        )
    return invitation, team


async def accept_invitation(
    session: AsyncSession, invitation_id: str, profile: Profile
) -> tuple[MatchInvitation, MatchParticipant, Team]:
    invitation, team = await _load_for_response(session, invitation_id, profile)
    match = await get_match(session, invitation.match_id)
    if parse_status(match.status) is not MatchStatus.SCHEDULED:
        raise http_problem(
            status_code=409,
            detail="match is no longer accepting teams",
            code="match_not_scheduled",
        )
    participants = (
        await session.execute(
            select(MatchParticipant.team_id).where(MatchParticipant.match_id == match.id)
        )
    ).scalars().all()
    if team.id in participants:
        raise http_problem(
            status_code=409,
            detail="team already joined this match",
            code="match_team_already_joined",
        )
    if len(participants) >= MAX_PARTICIPANTS:
        raise http_problem(
            status_code=409, detail="match is full", code="match_full"
        )

    now = utcnow()
    invitation.status = "accepted"
    invitation.responded_at = now
    participant = MatchParticipant(
        id=uuid.uuid4().hex,
        match_id=match.id,
        team_id=team.id,
        joined_at=now,
    )
    session.add(participant)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise http_problem(
            status_code=409,
            detail="team already joined this match",
            code="match_team_already_joined",
        )
    logger.info("Team %s accepted invitation %s", team.id, invitation.id)

    await post_system_message(
        match.id,
        f"{team.name} has accepted the invitation and joined the match.",
    )
    return invitation, participant, team


async def decline_invitation(
    session: AsyncSession, invitation_id: str, profile: Profile
) -> tuple[MatchInvitation, Team]:
    invitation, team = await _load_for_response(session, invitation_id, profile)
    invitation.status = "declined"
    invitation.responded_at = utcnow()
    await session.commit()

    await post_system_message(
        invitation.match_id, f"{team.name} has declined the invitation."
    )
    return invitation, team


async def cancel_invitation(
    session: AsyncSession, invitation_id: str, profile: Profile
) -> None:
    invitation = await get_invitation(session, invitation_id)
    match = await session.get(Match, invitation.match_id)
    allowed = profile.id == invitation.invited_by or (
        match is not None and match.scheduled_by == profile.id
    )
    require(allowed, "only the inviter can cancel this invitation", "invitation_forbidden")
    await session.execute(
        delete(MatchInvitation).where(MatchInvitation.id == invitation.id)
    )
    await session.commit()


async def list_match_invitations(
    session: AsyncSession, match_id: str
) -> list[tuple[MatchInvitation, str | None]]:
    await get_match(session, match_id)
    rows = (
        await session.execute(
            select(MatchInvitation, Team.name)
            .join(Team, Team.id == MatchInvitation.team_id)
            .where(MatchInvitation.match_id == match_id)
            .order_by(MatchInvitation.created_at)
        )
    ).all()
    return [(inv, name) for inv, name in rows]


async def list_team_invitations(
    session: AsyncSession, team_id: str, *, status: str | None = "pending"
) -> list[tuple[MatchInvitation, str | None]]:
    team = await get_team(session, team_id)
    stmt = select(MatchInvitation).where(MatchInvitation.team_id == team.id)
    if status:
        stmt = stmt.where(MatchInvitation.status == status)
    stmt = stmt.order_by(MatchInvitation.acceptance_deadline)
    invitations = (await session.execute(stmt)).scalars().all()
    return [(inv, team.name) for inv in invitations]
