from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import http_problem
from ..models import Dispute, Profile
from ..schemas import DisputeOut
from ..time_utils import coerce_utc, utcnow
from .chat import post_system_message
from .lifecycle import MatchStatus, ensure_transition, require
from .matches import get_match, load_context

DISPUTE_MESSAGE = (
    "A dispute has been reported for this match. An admin will review the case."
)


def normalize_reason(reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise http_problem(
            status_code=400,
            detail="a reason is required to report a dispute",
            code="dispute_reason_required",
        )
    return cleaned


def dispute_to_out(dispute: Dispute) -> DisputeOut:
    return DisputeOut(
        id=dispute.id,
        matchId=dispute.match_id,
        reportedBy=dispute.reported_by,
        teamId=dispute.team_id,
        reason=dispute.reason,
        status=dispute.status,
        resolutionNotes=dispute.resolution_notes,
        createdAt=coerce_utc(dispute.created_at),
    )


async def report_dispute(
    session: AsyncSession,
    match_id: str,
    profile: Profile,
    reason: str | None,
    team_id: str | None = None,
) -> Dispute:
    """File a dispute and move the match to ``disputed``.

    The reason is validated before anything is read from the database.
    """

    cleaned = normalize_reason(reason)
    ctx = await load_context(session, match_id, profile.id)
    require(
        ctx.roles.is_participant,
        "only participating teams can report a dispute",
        "dispute_forbidden",
    )
    target = ensure_transition(ctx.status, MatchStatus.DISPUTED)

    if team_id is None:
        team_id = ctx.roles.participant_team_id
    elif team_id not in ctx.team_ids:
        raise http_problem(
            status_code=400,
            detail="team is not participating in this match",
            code="dispute_team_not_participant",
        )

    dispute = Dispute(
        id=uuid.uuid4().hex,
        match_id=match_id,
        reported_by=profile.id,
        team_id=team_id,
        reason=cleaned,
        status="pending",
        created_at=utcnow(),
    )
    session.add(dispute)
    ctx.match.status = target.value
    await session.commit()

    await post_system_message(match_id, DISPUTE_MESSAGE)
    return dispute


async def list_disputes(session: AsyncSession, match_id: str) -> list[Dispute]:
    await get_match(session, match_id)
    return (
        await session.execute(
            select(Dispute)
            .where(Dispute.match_id == match_id)
            .order_by(Dispute.created_at)
        )
    ).scalars().all()
