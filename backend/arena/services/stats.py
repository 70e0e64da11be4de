from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_errors import missing_table_problem
from ..models import Dispute, Match, MatchParticipant, PlayerStats
from ..schemas import (
    GameStatsBreakdown,
    PlayerStatsSummaryOut,
    StreakOut,
    TeamStatsOut,
)
from .lifecycle import MatchStatus

FINISHED_STATUSES = (MatchStatus.COMPLETED.value, MatchStatus.DISPUTED.value)


def percentage(numerator: float, denominator: float) -> int:
    """Rounded percentage; ``0`` when there is nothing to divide by."""
    if not denominator:
        return 0
    return round(numerator / denominator * 100)


def compute_streaks(results: Sequence[bool]) -> Dict[str, int]:
    """Compute current, longest win, and longest loss streaks."""
    longest_win = longest_loss = 0
    curr_win = curr_loss = 0
    for r in results:
        if r:
            curr_win += 1
            curr_loss = 0
            longest_win = max(longest_win, curr_win)
        else:
            curr_loss += 1
            curr_win = 0
            longest_loss = max(longest_loss, curr_loss)
    current = 0
    if results:
        last = results[-1]
        count = 0
        for r in reversed(results):
            if r == last:
                count += 1
            else:
                break
        current = count if last else -count
    return {
        "current": current,
        "longestWin": longest_win,
        "longestLoss": longest_loss,
    }


def compute_game_stats(matches: Iterable[Tuple[str | None, bool]]) -> list[GameStatsBreakdown]:
    """Aggregate played/won counts per game.

    Args:
        matches: iterable of tuples ``(game_id, is_win)``.
    """
    totals: Dict[str | None, list[int]] = defaultdict(lambda: [0, 0])
    for game_id, is_win in matches:
        totals[game_id][0] += 1
        if is_win:
            totals[game_id][1] += 1
    return [
        GameStatsBreakdown(
            gameId=game_id, played=played, won=won, winRate=percentage(won, played)
        )
        for game_id, (played, won) in totals.items()
    ]


def summarize_player_stats(
    profile_id: str, rows: Iterable[PlayerStats]
) -> PlayerStatsSummaryOut:
    """Roll per-game ``player_stats`` rows into one summary."""
    rows = list(rows)
    matches_played = sum(r.matches_played or 0 for r in rows)
    matches_won = sum(r.matches_won or 0 for r in rows)
    tournaments_played = sum(r.tournaments_played or 0 for r in rows)
    tournaments_won = sum(r.tournaments_won or 0 for r in rows)
    earnings = sum(r.total_earnings or 0.0 for r in rows)
    return PlayerStatsSummaryOut(
        profileId=profile_id,
        matchesPlayed=matches_played,
        matchesWon=matches_won,
        tournamentsPlayed=tournaments_played,
        tournamentsWon=tournaments_won,
        totalEarnings=earnings,
        winRate=percentage(matches_won, matches_played),
        tournamentWinRate=percentage(tournaments_won, tournaments_played),
        games=[
            GameStatsBreakdown(
                gameId=r.game_id,
                played=r.matches_played or 0,
                won=r.matches_won or 0,
                winRate=percentage(r.matches_won or 0, r.matches_played or 0),
            )
            for r in rows
        ],
    )


async def player_stats_summary(
    session: AsyncSession, profile_id: str
) -> PlayerStatsSummaryOut:
    try:
        rows = (
            await session.execute(
                select(PlayerStats).where(PlayerStats.profile_id == profile_id)
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        await session.rollback()
        problem = missing_table_problem(exc, PlayerStats.__table__)
        if problem is not None:
            raise problem from exc
        raise
    return summarize_player_stats(profile_id, rows)


async def team_match_stats(session: AsyncSession, team_id: str) -> TeamStatsOut:
    rows = (
        await session.execute(
            select(Match.game_id, MatchParticipant.result)
            .join(MatchParticipant, MatchParticipant.match_id == Match.id)
            .where(MatchParticipant.team_id == team_id)
            .where(Match.status.in_(FINISHED_STATUSES))
            .order_by(
                func.coalesce(Match.completed_at, Match.start_time), Match.id
            )
        )
    ).all()
    outcomes = [(game_id, result == "win") for game_id, result in rows]
    results = [won for _, won in outcomes]

    disputes = (
        await session.execute(
            select(func.count())
            .select_from(Dispute)
            .where(
                or_(
                    Dispute.team_id == team_id,
                    # Disputes filed without a team still count against the
                    # match, so attribute them by participation instead.
                    Dispute.team_id.is_(None)
                    & Dispute.match_id.in_(
                        select(MatchParticipant.match_id).where(
                            MatchParticipant.team_id == team_id
                        )
                    ),
                )
            )
        )
    ).scalar_one()

    total = len(results)
    won = sum(1 for r in results if r)
    return TeamStatsOut(
        teamId=team_id,
        totalMatches=total,
        wonMatches=won,
        winRate=percentage(won, total),
        disputes=disputes,
        disputeRate=percentage(disputes, total),
        games=compute_game_stats(outcomes),
        streaks=StreakOut(**compute_streaks(results)),
    )
