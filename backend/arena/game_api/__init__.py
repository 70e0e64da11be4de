"""Clients for third-party game-stat providers."""

from .base import BaseGameService, GameServiceConfig
from .client import ApiClient
from .factory import GameApiFactory, SUPPORTED_GAMES, UnsupportedGame
from .types import ApiResponse

__all__ = [
    "ApiClient",
    "ApiResponse",
    "BaseGameService",
    "GameServiceConfig",
    "GameApiFactory",
    "SUPPORTED_GAMES",
    "UnsupportedGame",
]
