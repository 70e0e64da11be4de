# backend/arena/routers/matches.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..cache import veto_sessions
from ..models import Game, Match, MatchParticipant, Profile
from ..schemas import (
    MatchCreate,
    MatchJoin,
    MatchIdOut,
    MatchSummaryOut,
    MatchOut,
    MatchActionsOut,
    MatchRolesOut,
    MatchSettingsOut,
    MatchSettingsUpdate,
    MatchResultIn,
    MatchResultOut,
    ParticipantOut,
    VetoStart,
    VetoBanIn,
    VetoStateOut,
)
from ..services import matches as match_service
from ..services.lifecycle import MatchStatus, require
from ..services.map_veto import (
    InvalidBan,
    MapVetoSession,
    NotYourTurn,
    VetoAlreadyComplete,
    VetoError,
    VetoModeNotSupported,
    VetoType,
    resolve_map_pool,
)
from ..exceptions import http_problem
from ..time_utils import coerce_utc
from .auth import get_current_user, get_optional_user

logger = logging.getLogger(__name__)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


def _participants_out(
    participants: list[MatchParticipant], names: dict[str, str]
) -> list[ParticipantOut]:
    return [
        ParticipantOut(
            id=p.id,
            teamId=p.team_id,
            teamName=names.get(p.team_id),
            result=p.result,
            joinedAt=coerce_utc(p.joined_at),
        )
        for p in participants
    ]


async def _match_out(session: AsyncSession, ctx: match_service.MatchContext) -> MatchOut:
    m = ctx.match
    names = await match_service.team_names(session, ctx.team_ids)
    a = ctx.actions
    return MatchOut(
        id=m.id,
        gameId=m.game_id,
        status=m.status,
        startTime=coerce_utc(m.start_time),
        matchType=m.match_type,
        matchFormat=m.match_format,
        gameMode=m.game_mode,
        isPrivate=bool(m.is_private),
        participants=_participants_out(ctx.participants, names),
        scheduledBy=m.scheduled_by,
        endTime=coerce_utc(m.end_time),
        location=m.location,
        streamUrl=m.stream_url,
        matchNotes=m.match_notes,
        setupCompletedAt=coerce_utc(m.setup_completed_at),
        startedAt=coerce_utc(m.started_at),
        completedAt=coerce_utc(m.completed_at),
        settings=MatchSettingsOut(
            selectedMaps=ctx.selected_maps,
            settings=dict(ctx.settings.settings or {}),
            rules=ctx.settings.rules,
        ),
        roles=MatchRolesOut(
            isScheduler=ctx.roles.is_scheduler,
            isParticipant=ctx.roles.is_participant,
            participantTeamId=ctx.roles.participant_team_id,
        ),
        actions=MatchActionsOut(
            canJoin=a.can_join,
            canInvite=a.can_invite,
            canSetup=a.can_setup,
            canStart=a.can_start,
            canReportResult=a.can_report_result,
            canReportDispute=a.can_report_dispute,
            canEdit=a.can_edit,
            canCancel=a.can_cancel,
        ),
    )


async def _detail(session: AsyncSession, mid: str, user: Profile) -> MatchOut:
    ctx = await match_service.load_context(session, mid, user.id)
    return await _match_out(session, ctx)


# GET /api/v0/matches
@router.get("", response_model=list[MatchSummaryOut])
async def list_matches(
    session: AsyncSession = Depends(get_session),
    status: Optional[MatchStatus] = Query(default=None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    stmt = select(Match).where(Match.is_private.is_(False))
    if status is not None:
        stmt = stmt.where(Match.status == status.value)
    stmt = stmt.order_by(Match.start_time.desc(), Match.id).limit(limit).offset(offset)
    matches = (await session.execute(stmt)).scalars().all()
    if not matches:
        return []

    parts = (
        await session.execute(
            select(MatchParticipant)
            .where(MatchParticipant.match_id.in_([m.id for m in matches]))
            .order_by(MatchParticipant.joined_at)
        )
    ).scalars().all()
    names = await match_service.team_names(session, list({p.team_id for p in parts}))
    by_match: dict[str, list[MatchParticipant]] = {}
    for p in parts:
        by_match.setdefault(p.match_id, []).append(p)

    return [
        MatchSummaryOut(
            id=m.id,
            gameId=m.game_id,
            status=m.status,
            startTime=coerce_utc(m.start_time),
            matchType=m.match_type,
            matchFormat=m.match_format,
            gameMode=m.game_mode,
            isPrivate=bool(m.is_private),
            participants=_participants_out(by_match.get(m.id, []), names),
        )
        for m in matches
    ]


# POST /api/v0/matches
@router.post("", response_model=MatchIdOut, status_code=201)
async def create_match(
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    match = await match_service.create_match(session, body, user)
    return MatchIdOut(id=match.id)


@router.get("/{mid}", response_model=MatchOut)
async def get_match(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Optional[Profile] = Depends(get_optional_user),
):
    ctx = await match_service.load_context(session, mid, user.id if user else None)
    return await _match_out(session, ctx)


@router.post("/{mid}/join", response_model=MatchOut)
async def join_match(
    mid: str,
    body: MatchJoin,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await match_service.join_match(session, mid, body.teamId, user)
    return await _detail(session, mid, user)


@router.patch("/{mid}/settings", response_model=MatchOut)
async def update_match_settings(
    mid: str,
    body: MatchSettingsUpdate,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await match_service.update_settings(
        session, mid, user, rules=body.rules, settings=body.settings
    )
    return await _detail(session, mid, user)


@router.post("/{mid}/setup/complete", response_model=MatchOut)
async def complete_setup(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await match_service.complete_setup(session, mid, user)
    return await _detail(session, mid, user)


@router.post("/{mid}/start", response_model=MatchOut)
async def start_match(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await match_service.start_match(session, mid, user)
    return await _detail(session, mid, user)


@router.post("/{mid}/result", response_model=MatchResultOut)
async def report_result(
    mid: str,
    body: MatchResultIn,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    result = await match_service.report_result(session, mid, body, user)
    return MatchResultOut(
        id=result.id,
        matchId=result.match_id,
        winnerTeamId=result.winner_team_id,
        loserTeamId=result.loser_team_id,
        winnerScore=result.winner_score,
        loserScore=result.loser_score,
        reportedBy=result.reported_by,
        notes=result.notes,
        createdAt=coerce_utc(result.created_at),
    )


@router.post("/{mid}/cancel", response_model=MatchOut)
async def cancel_match(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await match_service.cancel_match(session, mid, user)
    return await _detail(session, mid, user)


# ---------------------------------------------------------------------------
# Map veto
# ---------------------------------------------------------------------------
def _veto_problem(exc: VetoError):
    if isinstance(exc, VetoModeNotSupported):
        return http_problem(status_code=422, detail=str(exc), code="veto_mode_unsupported")
    if isinstance(exc, NotYourTurn):
        return http_problem(status_code=409, detail=str(exc), code="veto_not_your_turn")
    if isinstance(exc, VetoAlreadyComplete):
        return http_problem(status_code=409, detail=str(exc), code="veto_complete")
    if isinstance(exc, InvalidBan):
        return http_problem(status_code=400, detail=str(exc), code="veto_invalid_ban")
    return http_problem(status_code=400, detail=str(exc), code="veto_invalid")


async def _veto_context(
    session: AsyncSession, mid: str, user: Profile
) -> match_service.MatchContext:
    ctx = await match_service.load_context(session, mid, user.id)
    require(
        ctx.roles.is_participant,
        "only participating teams can take part in the map veto",
        "veto_forbidden",
    )
    require(
        ctx.actions.can_setup,
        "map veto needs two teams and a match still in setup",
        "veto_not_allowed",
        status_code=409,
    )
    return ctx


async def _finish_veto(
    session: AsyncSession, veto: MapVetoSession
) -> VetoStateOut:
    try:
        await match_service.save_selected_maps(
            session, veto.match_id, veto.selected_maps or []
        )
    finally:
        # A finished session never stays cached, persisted or not.
        await veto_sessions.invalidate(veto.match_id)
    logger.info("Map veto for match %s complete: %s", veto.match_id, veto.selected_maps)
    return VetoStateOut(**veto.as_dict())


async def _new_veto(
    session: AsyncSession, ctx: match_service.MatchContext, veto_type: str
) -> MapVetoSession:
    game = await session.get(Game, ctx.match.game_id) if ctx.match.game_id else None
    pool = resolve_map_pool(ctx.match.game_mode, game.map_pool if game else None)
    team_id = ctx.roles.participant_team_id
    opponent = next(tid for tid in ctx.team_ids if tid != team_id)
    try:
        return MapVetoSession(
            match_id=ctx.match.id,
            pool=pool,
            team_id=team_id,
            opponent_team_id=opponent,
            veto_type=veto_type,
        )
    except VetoError as exc:
        raise _veto_problem(exc)


@router.post("/{mid}/veto", response_model=VetoStateOut)
async def start_veto(
    mid: str,
    body: VetoStart,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    """Start a map veto; the caller's team bans first.

    An in-flight session for the match is returned unchanged.
    """
    ctx = await _veto_context(session, mid, user)
    existing = await veto_sessions.get(mid)
    if existing is not None:
        if existing.is_complete:
            return await _finish_veto(session, existing)
        return VetoStateOut(**existing.as_dict())

    veto_type = body.vetoType or (ctx.settings.settings or {}).get(
        "veto_type", VetoType.STANDARD.value
    )
    veto = await _new_veto(session, ctx, veto_type)
    if veto.is_complete:
        return await _finish_veto(session, veto)
    await veto_sessions.set(mid, veto)
    return VetoStateOut(**veto.as_dict())


@router.get("/{mid}/veto", response_model=VetoStateOut)
async def get_veto(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await match_service.get_match(session, mid)
    veto = await veto_sessions.get(mid)
    if veto is None:
        raise http_problem(status_code=404, detail="no map veto in progress", code="veto_not_started")
    return VetoStateOut(**veto.as_dict())


@router.post("/{mid}/veto/ban", response_model=VetoStateOut)
async def ban_map(
    mid: str,
    body: VetoBanIn,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    ctx = await _veto_context(session, mid, user)
    veto = await veto_sessions.get(mid)
    if veto is None:
        raise http_problem(status_code=404, detail="no map veto in progress", code="veto_not_started")
    try:
        selection = veto.ban(body.map, ctx.roles.participant_team_id)
    except VetoError as exc:
        raise _veto_problem(exc)
    if selection is not None:
        return await _finish_veto(session, veto)
    # Refresh the expiry on every accepted ban.
    await veto_sessions.set(mid, veto)
    return VetoStateOut(**veto.as_dict())


@router.post("/{mid}/veto/random", response_model=VetoStateOut)
async def random_veto(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    ctx = await _veto_context(session, mid, user)
    veto = await veto_sessions.get(mid)
    if veto is None:
        veto = await _new_veto(session, ctx, VetoType.RANDOM.value)
    elif veto.veto_type is not VetoType.RANDOM:
        raise http_problem(
            status_code=409,
            detail="a map veto with bans is already in progress",
            code="veto_in_progress",
        )
    try:
        veto.randomize()
    except VetoError as exc:
        raise _veto_problem(exc)
    return await _finish_veto(session, veto)
