from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import TeamRating
from ..schemas import RatingChangeOut, RatingLeaderboardEntry, RatingOut, TeamRatingsOut
from ..services import rating as rating_service
from ..services.teams import get_team
from ..time_utils import coerce_utc

router = APIRouter(tags=["ratings"])


def _rating_out(row: TeamRating) -> RatingOut:
    return RatingOut(
        gameId=row.game_id,
        rating=row.rating,
        tier=rating_service.tier_name(row.rating),
        matchesPlayed=row.matches_played or 0,
    )


@router.get("/teams/{team_id}/ratings", response_model=TeamRatingsOut)
async def team_ratings(team_id: str, session: AsyncSession = Depends(get_session)):
    """Overall and per-game Elo with the latest changes.

    Teams that have not finished a match report the starting rating.
    """
    team = await get_team(session, team_id)
    rows, history = await rating_service.team_ratings(session, team.id)
    overall = next((r for r in rows if r.game_id is None), None)
    return TeamRatingsOut(
        teamId=team.id,
        overall=_rating_out(overall)
        if overall is not None
        else RatingOut(
            rating=rating_service.DEFAULT_RATING,
            tier=rating_service.tier_name(rating_service.DEFAULT_RATING),
        ),
        games=[_rating_out(r) for r in rows if r.game_id is not None],
        history=[
            RatingChangeOut(
                matchId=h.match_id,
                gameId=h.game_id,
                oldRating=h.old_rating,
                newRating=h.new_rating,
                change=h.change,
                createdAt=coerce_utc(h.created_at),
            )
            for h in history
        ],
    )


@router.get("/ratings/leaderboard", response_model=list[RatingLeaderboardEntry])
async def rating_leaderboard(
    gameId: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    rows = await rating_service.leaderboard(session, gameId, limit=limit)
    return [
        RatingLeaderboardEntry(
            rank=i,
            teamId=team.id,
            teamName=team.name,
            rating=row.rating,
            tier=rating_service.tier_name(row.rating),
            matchesPlayed=row.matches_played or 0,
        )
        for i, (row, team) in enumerate(rows, start=1)
    ]
