from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from .client import ApiClient
from .types import ApiResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameServiceConfig:
    base_url: str
    api_key: str | None = None
    region: str | None = None
    language: str | None = None


def not_implemented(message: str = "Not implemented for this game") -> ApiResponse:
    return ApiResponse(data=None, error=message, status=501)


class BaseGameService(ABC):
    """Common surface every game-stat provider exposes."""

    game_id: str = ""

    def __init__(
        self,
        config: GameServiceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.api_client = ApiClient(
            config.base_url, headers=self.auth_headers(), transport=transport
        )

    def auth_headers(self) -> dict[str, str]:
        if not self.config.api_key:
            return {}
        return {"Authorization": f"Bearer {self.config.api_key}"}

    @abstractmethod
    async def get_player_profile(self, player_id: str) -> ApiResponse: ...

    @abstractmethod
    async def get_player_stats(self, player_id: str) -> ApiResponse: ...

    @abstractmethod
    async def get_recent_matches(self, player_id: str, limit: int = 10) -> ApiResponse: ...

    @abstractmethod
    async def get_match(self, match_id: str) -> ApiResponse: ...

    @abstractmethod
    async def get_leaderboard(
        self, region: str | None = None, limit: int = 100
    ) -> ApiResponse: ...

    @abstractmethod
    async def search_player(self, username: str) -> ApiResponse: ...

    async def get_tournaments(self, limit: int = 10) -> ApiResponse:
        return not_implemented()

    async def get_live_matches(self, limit: int = 10) -> ApiResponse:
        return not_implemented()

    def handle_error(self, exc: Exception) -> ApiResponse:
        logger.exception("Game API error in %s", type(self).__name__)
        return ApiResponse(
            data=None,
            error=str(exc) or "Unknown error occurred",
            status=getattr(exc, "status", 500),
        )

    async def aclose(self) -> None:
        await self.api_client.aclose()
