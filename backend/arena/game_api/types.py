"""Game data shapes shared by every provider."""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Normalized provider response.

    ``status`` is the upstream HTTP status, or ``0`` when no response was
    received at all.
    """

    data: Optional[Any] = None
    error: Optional[str] = None
    status: int

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None


class GameProfile(BaseModel):
    id: str
    username: str
    displayName: str
    avatarUrl: Optional[str] = None
    level: Optional[int] = None
    region: Optional[str] = None
    gameSpecificData: Optional[dict[str, Any]] = None


class GameStats(BaseModel):
    wins: int = 0
    losses: int = 0
    winRate: float = 0.0
    totalMatches: int = 0
    rank: Optional[str] = None
    rankTier: Optional[int] = None
    rankDivision: Optional[str] = None
    rankIconUrl: Optional[str] = None
    eloRating: Optional[int] = None
    gameSpecificStats: Optional[dict[str, Any]] = None


class GameMatchParticipant(BaseModel):
    id: str
    profileId: str
    username: str
    teamId: Optional[str] = None
    teamName: Optional[str] = None
    champion: Optional[str] = None
    role: Optional[str] = None
    stats: Optional[dict[str, Any]] = None


class GameMatch(BaseModel):
    id: str
    gameId: str
    startTime: str
    endTime: Optional[str] = None
    duration: Optional[int] = None
    mapName: Optional[str] = None
    mode: Optional[str] = None
    result: Optional[Literal["win", "loss", "draw", "ongoing"]] = None
    participants: List[GameMatchParticipant] = Field(default_factory=list)
    gameSpecificData: Optional[dict[str, Any]] = None


class GameLeaderboardEntry(BaseModel):
    rank: int
    profileId: str
    username: str
    score: int
    wins: Optional[int] = None
    losses: Optional[int] = None
    gameSpecificData: Optional[dict[str, Any]] = None


class GameLeaderboard(BaseModel):
    id: str
    name: str
    region: Optional[str] = None
    entries: List[GameLeaderboardEntry] = Field(default_factory=list)
    updatedAt: str
