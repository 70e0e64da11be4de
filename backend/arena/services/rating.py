"""Team Elo ratings.

Every recorded result moves two ratings for each team: the one for the
match's game and the overall one (``game_id`` NULL). Ratings start at
``DEFAULT_RATING`` and each side's change uses its own K-factor, so a
provisional team swings further than an established opponent.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_errors import missing_table_problem
from ..models import RatingHistory, Team, TeamRating
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_RATING = 1200
DEFAULT_K_FACTOR = 32
PROVISIONAL_K_FACTOR = 40
ESTABLISHED_K_FACTOR = 16
PROVISIONAL_MATCHES = 30
ESTABLISHED_RATING = 2400

TIERS = (
    (1000, "Bronze"),
    (1200, "Silver"),
    (1400, "Gold"),
    (1600, "Platinum"),
    (1800, "Diamond"),
    (2000, "Master"),
    (2200, "Grandmaster"),
)
TOP_TIER = "Champion"


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that ``rating`` beats ``opponent_rating``."""
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def k_factor(rating: int, matches_played: int) -> int:
    if matches_played < PROVISIONAL_MATCHES:
        return PROVISIONAL_K_FACTOR
    if rating > ESTABLISHED_RATING:
        return ESTABLISHED_K_FACTOR
    return DEFAULT_K_FACTOR


def rating_change(rating: int, opponent_rating: int, score: float, k: int) -> int:
    # Halves round up, for negative changes too.
    return math.floor(k * (score - expected_score(rating, opponent_rating)) + 0.5)


def tier_name(rating: int) -> str:
    for upper, name in TIERS:
        if rating < upper:
            return name
    return TOP_TIER


def _scope(stmt, game_id: Optional[str]):
    if game_id is None:
        return stmt.where(TeamRating.game_id.is_(None))
    return stmt.where(TeamRating.game_id == game_id)


async def _rating_row(session: AsyncSession, team_id: str, game_id: Optional[str]) -> TeamRating:
    row = (
        await session.execute(
            _scope(select(TeamRating).where(TeamRating.team_id == team_id), game_id)
        )
    ).scalar_one_or_none()
    if row is None:
        row = TeamRating(
            id=uuid.uuid4().hex,
            team_id=team_id,
            game_id=game_id,
            rating=DEFAULT_RATING,
            matches_played=0,
        )
        session.add(row)
    return row


async def apply_match_result(
    session: AsyncSession,
    match_id: str,
    game_id: Optional[str],
    winner_team_id: str,
    loser_team_id: str,
) -> list[RatingHistory]:
    """Move both teams' ratings for a decided match.

    Changes are added to ``session`` without committing; the caller commits
    them together with the result itself.
    """

    now = utcnow()
    history: list[RatingHistory] = []
    scopes = [game_id, None] if game_id else [None]
    for scope in scopes:
        winner = await _rating_row(session, winner_team_id, scope)
        loser = await _rating_row(session, loser_team_id, scope)
        winner_delta = rating_change(
            winner.rating, loser.rating, 1.0, k_factor(winner.rating, winner.matches_played)
        )
        loser_delta = rating_change(
            loser.rating, winner.rating, 0.0, k_factor(loser.rating, loser.matches_played)
        )
        for row, delta in ((winner, winner_delta), (loser, loser_delta)):
            entry = RatingHistory(
                id=uuid.uuid4().hex,
                match_id=match_id,
                team_id=row.team_id,
                game_id=scope,
                old_rating=row.rating,
                new_rating=row.rating + delta,
                change=delta,
                created_at=now,
            )
            session.add(entry)
            history.append(entry)
            row.rating = row.rating + delta
            row.matches_played = (row.matches_played or 0) + 1
            row.updated_at = now
    logger.info("Updated ratings for match %s (%d entries)", match_id, len(history))
    return history


async def _guarded(session: AsyncSession, stmt, table):
    try:
        return (await session.execute(stmt)).all()
    except SQLAlchemyError as exc:
        await session.rollback()
        problem = missing_table_problem(exc, table)
        if problem is not None:
            raise problem from exc
        raise


async def team_ratings(
    session: AsyncSession, team_id: str, *, history_limit: int = 20
) -> tuple[list[TeamRating], Sequence[RatingHistory]]:
    ratings = [
        row
        for (row,) in await _guarded(
            session,
            select(TeamRating)
            .where(TeamRating.team_id == team_id)
            .order_by(TeamRating.game_id.is_not(None), TeamRating.game_id),
            TeamRating.__table__,
        )
    ]
    history = [
        row
        for (row,) in await _guarded(
            session,
            select(RatingHistory)
            .where(RatingHistory.team_id == team_id)
            .order_by(RatingHistory.created_at.desc(), RatingHistory.id)
            .limit(history_limit),
            RatingHistory.__table__,
        )
    ]
    return ratings, history


async def leaderboard(
    session: AsyncSession, game_id: Optional[str] = None, *, limit: int = 20
) -> list[tuple[TeamRating, Team]]:
    stmt = _scope(
        select(TeamRating, Team).join(Team, Team.id == TeamRating.team_id), game_id
    ).order_by(TeamRating.rating.desc(), Team.name).limit(limit)
    return [(rating, team) for rating, team in await _guarded(session, stmt, TeamRating.__table__)]
