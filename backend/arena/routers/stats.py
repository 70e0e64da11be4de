from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile
from ..schemas import PlayerStatsSummaryOut, TeamStatsOut
from ..exceptions import http_problem
from ..services.stats import player_stats_summary, team_match_stats
from ..services.teams import get_team

router = APIRouter(tags=["stats"])


@router.get("/profiles/{profile_id}/stats", response_model=PlayerStatsSummaryOut)
async def profile_stats(profile_id: str, session: AsyncSession = Depends(get_session)):
    """Lifetime totals rolled up from ``player_stats``; recomputed per request."""
    if await session.get(Profile, profile_id) is None:
        raise http_problem(status_code=404, detail="profile not found", code="profile_not_found")
    return await player_stats_summary(session, profile_id)


@router.get("/teams/{team_id}/stats", response_model=TeamStatsOut)
async def team_stats(team_id: str, session: AsyncSession = Depends(get_session)):
    team = await get_team(session, team_id)
    return await team_match_stats(session, team.id)
