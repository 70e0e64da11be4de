from __future__ import annotations

import logging

import httpx

from .. import config
from .base import BaseGameService, GameServiceConfig
from .csgo import CSGOService
from .league_of_legends import LeagueOfLegendsService

logger = logging.getLogger(__name__)

SUPPORTED_GAMES = ("league-of-legends", "csgo")


class UnsupportedGame(ValueError):
    pass


class GameApiFactory:
    """Builds provider services and reuses them per ``(game, region)``."""

    _services: dict[str, BaseGameService] = {}

    @classmethod
    def get_game_service(
        cls,
        game: str,
        *,
        region: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BaseGameService:
        cache_key = f"{game}-{region or 'default'}"
        service = cls._services.get(cache_key)
        if service is not None:
            return service

        if game == "league-of-legends":
            if region and region not in config.RIOT_REGIONS:
                raise UnsupportedGame(f"Unknown region for {game}: {region}")
            service = LeagueOfLegendsService(
                GameServiceConfig(
                    base_url="https://api.riotgames.com",
                    api_key=config.RIOT_API_KEY,
                    region=region or config.RIOT_DEFAULT_REGION,
                ),
                transport=transport,
            )
        elif game == "csgo":
            service = CSGOService(
                GameServiceConfig(
                    base_url=config.STEAM_BASE_URL,
                    api_key=config.STEAM_API_KEY,
                ),
                transport=transport,
            )
        else:
            raise UnsupportedGame(f"Game API not implemented for: {game}")

        logger.debug("Created %s game service for %s", type(service).__name__, cache_key)
        cls._services[cache_key] = service
        return service

    @classmethod
    async def clear_cache(cls) -> None:
        services = list(cls._services.values())
        cls._services = {}
        for service in services:
            await service.aclose()
