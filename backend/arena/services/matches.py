"""Match lifecycle operations.

Each mutation loads a :class:`MatchContext`, re-checks the caller's gated
action, validates the status change against the transition table and then
commits all of its rows together. The system chat message describing the
change is written afterwards and never undoes the change if it fails.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import MatchNotFound, http_problem
from ..models import (
    Game,
    Match,
    MatchParticipant,
    MatchResult,
    MatchSettings,
    PlayerStats,
    Profile,
    Team,
)
from ..schemas import MatchCreate, MatchResultIn
from ..time_utils import utcnow
from .chat import post_system_message
from .lifecycle import (
    MAX_PARTICIPANTS,
    TEAM_MANAGER_ROLES,
    MatchActions,
    MatchRoles,
    MatchSnapshot,
    MatchStatus,
    compute_actions,
    compute_roles,
    ensure_transition,
    parse_status,
    require,
)
from .rating import apply_match_result
from .teams import get_team, membership_roles, team_member_ids

logger = logging.getLogger(__name__)


@dataclass
class MatchContext:
    match: Match
    participants: list[MatchParticipant]
    settings: MatchSettings
    roles: MatchRoles
    actions: MatchActions

    @property
    def status(self) -> MatchStatus:
        return parse_status(self.match.status)

    @property
    def team_ids(self) -> list[str]:
        return [p.team_id for p in self.participants]

    @property
    def selected_maps(self) -> list[str]:
        return list(self.settings.selected_maps or [])


async def get_match(session: AsyncSession, match_id: str) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise MatchNotFound(match_id)
    return match


async def _participants(session: AsyncSession, match_id: str) -> list[MatchParticipant]:
    return (
        await session.execute(
            select(MatchParticipant)
            .where(MatchParticipant.match_id == match_id)
            .order_by(MatchParticipant.joined_at, MatchParticipant.id)
        )
    ).scalars().all()


async def _settings(session: AsyncSession, match_id: str) -> MatchSettings:
    settings = await session.get(MatchSettings, match_id)
    if settings is None:
        settings = MatchSettings(match_id=match_id, selected_maps=[], settings={})
        session.add(settings)
    return settings


async def load_context(
    session: AsyncSession,
    match_id: str,
    profile_id: str | None,
    *,
    now: datetime | None = None,
) -> MatchContext:
    match = await get_match(session, match_id)
    participants = await _participants(session, match_id)
    settings = await _settings(session, match_id)
    team_ids = [p.team_id for p in participants]
    membership = (
        await membership_roles(session, profile_id, team_ids) if profile_id else {}
    )
    roles = compute_roles(profile_id, match.scheduled_by, team_ids, membership)
    snapshot = MatchSnapshot(
        status=parse_status(match.status),
        participant_count=len(participants),
        start_time=match.start_time,
        setup_completed_at=match.setup_completed_at,
    )
    return MatchContext(
        match=match,
        participants=list(participants),
        settings=settings,
        roles=roles,
        actions=compute_actions(snapshot, roles, now),
    )


async def _require_team_manager(
    session: AsyncSession, profile: Profile, team_id: str, code: str
) -> None:
    roles = await membership_roles(session, profile.id, [team_id])
    require(
        roles.get(team_id) in TEAM_MANAGER_ROLES,
        "only a team owner or captain can act for the team",
        code,
    )


async def create_match(
    session: AsyncSession, body: MatchCreate, profile: Profile
) -> Match:
    if body.gameId and await session.get(Game, body.gameId) is None:
        raise http_problem(
            status_code=404, detail="game not found", code="game_not_found"
        )
    team: Team | None = None
    if body.teamId:
        team = await get_team(session, body.teamId)
        await _require_team_manager(session, profile, team.id, "match_team_role_required")

    mid = uuid.uuid4().hex
    match = Match(
        id=mid,
        game_id=body.gameId,
        scheduled_by=profile.id,
        start_time=body.startTime,
        end_time=body.endTime,
        status=MatchStatus.SCHEDULED.value,
        match_type=body.matchType,
        match_format=body.matchFormat,
        game_mode=body.gameMode,
        location=body.location,
        is_private=body.isPrivate,
        stream_url=body.streamUrl,
        match_notes=body.matchNotes,
    )
    session.add(match)
    await session.flush()
    session.add(
        MatchSettings(
            match_id=mid,
            selected_maps=[],
            settings={"veto_type": body.vetoType},
            rules=body.rules,
        )
    )
    if team is not None:
        session.add(
            MatchParticipant(
                id=uuid.uuid4().hex,
                match_id=mid,
                team_id=team.id,
                joined_at=utcnow(),
            )
        )
    await session.commit()
    logger.info("Match %s scheduled by %s", mid, profile.id)

    await post_system_message(mid, "Match created.")
    return match


async def join_match(
    session: AsyncSession, match_id: str, team_id: str, profile: Profile
) -> MatchParticipant:
    team = await get_team(session, team_id)
    await _require_team_manager(session, profile, team.id, "match_team_role_required")
    ctx = await load_context(session, match_id, profile.id)

    if team.id in ctx.team_ids:
        raise http_problem(
            status_code=409,
            detail="team already joined this match",
            code="match_team_already_joined",
        )
    require(
        ctx.actions.can_join,
        "match is not open for joining",
        "match_join_not_allowed",
        status_code=409,
    )

    participant = MatchParticipant(
        id=uuid.uuid4().hex,
        match_id=match_id,
        team_id=team.id,
        joined_at=utcnow(),
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

    await post_system_message(match_id, f"{team.name} has joined the match.")
    return participant


async def save_selected_maps(
    session: AsyncSession, match_id: str, maps: Sequence[str]
) -> MatchSettings:
    """Persist the veto outcome with a single update and announce it."""

    settings = await _settings(session, match_id)
    settings.selected_maps = list(maps)
    await session.commit()
    await post_system_message(
        match_id,
        "Map veto complete. Selected maps: " + ", ".join(maps) + ".",
    )
    return settings


async def update_settings(
    session: AsyncSession,
    match_id: str,
    profile: Profile,
    *,
    rules: str | None = None,
    settings: dict[str, Any] | None = None,
) -> MatchContext:
    ctx = await load_context(session, match_id, profile.id)
    require(ctx.roles.is_scheduler, "only the scheduler can edit this match", "match_forbidden")
    require(
        ctx.actions.can_edit,
        "match can only be edited while scheduled",
        "match_not_editable",
        status_code=409,
    )
    if rules is not None:
        ctx.settings.rules = rules
    if settings is not None:
        merged = dict(ctx.settings.settings or {})
        merged.update(settings)
        ctx.settings.settings = merged
    await session.commit()
    return ctx


async def complete_setup(
    session: AsyncSession, match_id: str, profile: Profile
) -> MatchContext:
    ctx = await load_context(session, match_id, profile.id)
    require(
        ctx.roles.is_participant,
        "only participating teams can complete setup",
        "match_forbidden",
    )
    require(
        ctx.actions.can_setup,
        "match setup cannot be completed now",
        "match_setup_not_allowed",
        status_code=409,
    )
    if not ctx.selected_maps:
        raise http_problem(
            status_code=409,
            detail="maps must be selected before completing setup",
            code="match_maps_not_selected",
        )
    ctx.match.setup_completed_at = utcnow()
    await session.commit()

    await post_system_message(
        match_id,
        "Match setup has been completed. The match is now scheduled.",
    )
    return ctx


async def start_match(
    session: AsyncSession,
    match_id: str,
    profile: Profile,
    *,
    now: datetime | None = None,
) -> MatchContext:
    now = now or utcnow()
    ctx = await load_context(session, match_id, profile.id, now=now)
    require(
        ctx.roles.is_scheduler or ctx.roles.is_participant,
        "only the scheduler or a participant can start the match",
        "match_forbidden",
    )
    target = ensure_transition(ctx.status, MatchStatus.IN_PROGRESS)
    if len(ctx.participants) != MAX_PARTICIPANTS or ctx.match.setup_completed_at is None:
        raise http_problem(
            status_code=409,
            detail="match setup is not complete",
            code="match_not_ready",
        )
    require(
        ctx.actions.can_start,
        "match start time has not been reached",
        "match_start_time_not_reached",
        status_code=409,
    )

    ctx.match.status = target.value
    ctx.match.started_at = now
    await session.commit()
    logger.info("Match %s started", match_id)

    await post_system_message(
        match_id, "Match has started! Good luck and have fun!"
    )
    return ctx


async def _bump_player_stats(
    session: AsyncSession,
    game_id: str | None,
    winner_members: Sequence[str],
    loser_members: Sequence[str],
) -> None:
    outcomes: dict[str, bool] = {pid: False for pid in loser_members}
    outcomes.update({pid: True for pid in winner_members})
    if not outcomes:
        return

    stmt = select(PlayerStats).where(PlayerStats.profile_id.in_(list(outcomes)))
    if game_id is None:
        stmt = stmt.where(PlayerStats.game_id.is_(None))
    else:
        stmt = stmt.where(PlayerStats.game_id == game_id)
    existing = {
        row.profile_id: row for row in (await session.execute(stmt)).scalars().all()
    }

    for profile_id, won in outcomes.items():
        row = existing.get(profile_id)
        if row is None:
            row = PlayerStats(
                id=uuid.uuid4().hex,
                profile_id=profile_id,
                game_id=game_id,
                matches_played=0,
                matches_won=0,
                tournaments_played=0,
                tournaments_won=0,
                total_earnings=0.0,
            )
            session.add(row)
        row.matches_played = (row.matches_played or 0) + 1
        if won:
            row.matches_won = (row.matches_won or 0) + 1


async def report_result(
    session: AsyncSession, match_id: str, body: MatchResultIn, profile: Profile
) -> MatchResult:
    ctx = await load_context(session, match_id, profile.id)
    require(
        ctx.roles.is_scheduler or ctx.roles.is_participant,
        "only the scheduler or a participant can report the result",
        "match_forbidden",
    )
    target = ensure_transition(ctx.status, MatchStatus.COMPLETED)
    if len(ctx.participants) != MAX_PARTICIPANTS:
        raise http_problem(
            status_code=409,
            detail="match needs two participating teams",
            code="match_not_ready",
        )
    if body.winnerTeamId not in ctx.team_ids:
        raise http_problem(
            status_code=400,
            detail="winner must be a participating team",
            code="match_winner_not_participant",
        )
    loser_team_id = next(tid for tid in ctx.team_ids if tid != body.winnerTeamId)

    now = utcnow()
    result = MatchResult(
        id=uuid.uuid4().hex,
        match_id=match_id,
        winner_team_id=body.winnerTeamId,
        loser_team_id=loser_team_id,
        winner_score=body.winnerScore,
        loser_score=body.loserScore,
        reported_by=profile.id,
        reported_by_team_id=ctx.roles.participant_team_id,
        notes=body.notes,
        created_at=now,
    )
    session.add(result)
    for participant in ctx.participants:
        participant.result = "win" if participant.team_id == body.winnerTeamId else "loss"
    ctx.match.status = target.value
    ctx.match.completed_at = now

    members = await team_member_ids(session, ctx.team_ids)
    await _bump_player_stats(
        session,
        ctx.match.game_id,
        members.get(body.winnerTeamId, []),
        members.get(loser_team_id, []),
    )
    await apply_match_result(
        session, match_id, ctx.match.game_id, body.winnerTeamId, loser_team_id
    )
    winner = await session.get(Team, body.winnerTeamId)
    winner_name = winner.name if winner else "The winning team"
    await session.commit()

    await post_system_message(
        match_id,
        f"Match completed. {winner_name} won {body.winnerScore}-{body.loserScore}.",
    )
    return result


async def cancel_match(
    session: AsyncSession, match_id: str, profile: Profile
) -> MatchContext:
    ctx = await load_context(session, match_id, profile.id)
    require(
        ctx.roles.is_scheduler or profile.is_admin,
        "only the scheduler can cancel this match",
        "match_forbidden",
    )
    target = ensure_transition(ctx.status, MatchStatus.CANCELLED)
    # Running matches can only be called off by an admin.
    require(
        ctx.actions.can_cancel or profile.is_admin,
        "match can only be cancelled while scheduled",
        "match_not_cancellable",
        status_code=409,
    )
    ctx.match.status = target.value
    await session.commit()
    logger.info("Match %s cancelled by %s", match_id, profile.id)

    await post_system_message(match_id, "Match has been cancelled.")
    return ctx


async def get_latest_result(session: AsyncSession, match_id: str) -> MatchResult | None:
    return (
        await session.execute(
            select(MatchResult)
            .where(MatchResult.match_id == match_id)
            .order_by(MatchResult.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()


async def team_names(session: AsyncSession, team_ids: Sequence[str]) -> dict[str, str]:
    if not team_ids:
        return {}
    rows = (
        await session.execute(select(Team.id, Team.name).where(Team.id.in_(list(team_ids))))
    ).all()
    return {tid: name for tid, name in rows}
