import logging
from typing import Optional

from fastapi import APIRouter, Query

from ..exceptions import http_problem
from ..game_api import ApiResponse, GameApiFactory, UnsupportedGame
from ..schemas import GameDataResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/game-data", tags=["game-data"])

ACTIONS = ("profile", "stats", "matches", "match", "leaderboard", "search", "tournaments", "live")


def _required(value: Optional[str], name: str) -> str:
    if not value:
        raise http_problem(
            status_code=400,
            detail=f"Missing required parameter: {name}",
            code="game_data_missing_parameter",
        )
    return value


@router.get("/{game}", response_model=GameDataResponse)
async def game_data(
    game: str,
    action: Optional[str] = Query(default=None),
    region: Optional[str] = Query(default=None),
    playerId: Optional[str] = Query(default=None),
    matchId: Optional[str] = Query(default=None),
    username: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
):
    """Proxy one lookup to the provider behind ``game``.

    Provider failures come back inside the envelope with a 200; only bad
    input to this endpoint is answered with an error status.
    """
    action = _required(action, "action")
    if action not in ACTIONS:
        raise http_problem(
            status_code=400,
            detail=f"Unsupported action: {action}",
            code="game_data_unsupported_action",
        )
    try:
        service = GameApiFactory.get_game_service(game, region=region)
    except UnsupportedGame as exc:
        raise http_problem(status_code=404, detail=str(exc), code="game_data_unsupported_game")

    response: ApiResponse
    if action == "profile":
        response = await service.get_player_profile(_required(playerId, "playerId"))
    elif action == "stats":
        response = await service.get_player_stats(_required(playerId, "playerId"))
    elif action == "matches":
        player_id = _required(playerId, "playerId")
        if limit is None:
            response = await service.get_recent_matches(player_id)
        else:
            response = await service.get_recent_matches(player_id, limit)
    elif action == "match":
        response = await service.get_match(_required(matchId, "matchId"))
    elif action == "leaderboard":
        response = await service.get_leaderboard(region, limit or 100)
    elif action == "search":
        response = await service.search_player(_required(username, "username"))
    elif action == "tournaments":
        response = await service.get_tournaments(limit or 10)
    else:
        response = await service.get_live_matches(limit or 10)

    if response.error:
        logger.info("%s %s lookup failed (%s): %s", game, action, response.status, response.error)
    return GameDataResponse(data=response.data, error=response.error, status=response.status)
