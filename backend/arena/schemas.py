from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from urllib.parse import urlparse
from pydantic import BaseModel, Field, model_validator, field_validator

from .time_utils import require_utc

MIN_PASSWORD_LENGTH = 8

MatchType = Literal["friendly", "ranked"]
MatchFormat = Literal["bo1", "bo3", "bo5"]
GameMode = Literal["tdm", "snd", "ctf", "hp", "dom"]
VetoTypeName = Literal["standard", "captain", "random"]
TeamRole = Literal["owner", "captain", "manager", "member"]


def _ensure_password_complexity(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if not value.strip():
        raise ValueError("Password must include at least one non-space character")
    return value


def _strip_required(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field_name} must not be empty")
    return trimmed


# ---------------------------------------------------------------------------
# Profiles / auth
# ---------------------------------------------------------------------------
class ProfileCreate(BaseModel):
    """Schema for signup requests."""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    display_name: Optional[str] = Field(default=None, max_length=100)
    is_admin: bool = False

    @field_validator("password")
    def _check_password_complexity(cls, v: str) -> str:
        return _ensure_password_complexity(v)


class ProfileLogin(BaseModel):
    """Schema for login requests."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Returned on successful authentication."""
    access_token: str
    token_type: str = "bearer"


class ProfileOut(BaseModel):
    """Public profile information."""
    id: str
    username: str
    displayName: Optional[str] = None
    avatarUrl: Optional[str] = None
    isAdmin: bool = False


# ---------------------------------------------------------------------------
# Games and teams
# ---------------------------------------------------------------------------
class GameCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    mapPool: Optional[List[str]] = None

    @field_validator("mapPool")
    @classmethod
    def _clean_pool(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        cleaned = [m.strip() for m in value if isinstance(m, str) and m.strip()]
        return cleaned or None


class GameOut(BaseModel):
    id: str
    name: str
    slug: str
    mapPool: Optional[List[str]] = None


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    logoUrl: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")

    @field_validator("logoUrl", mode="before")
    @classmethod
    def _validate_logo(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = _strip_required(value, "logoUrl")
        if urlparse(trimmed).scheme.lower() not in {"http", "https"}:
            raise ValueError("logoUrl must start with http:// or https://")
        return trimmed


class TeamMemberIn(BaseModel):
    profileId: str
    role: TeamRole = "member"

    @model_validator(mode="after")
    def _no_second_owner(self) -> "TeamMemberIn":
        if self.role == "owner":
            raise ValueError("a team has exactly one owner")
        return self


class TeamMemberOut(BaseModel):
    id: str
    profileId: str
    username: Optional[str] = None
    role: TeamRole


class TeamOut(BaseModel):
    id: str
    name: str
    logoUrl: Optional[str] = None
    createdBy: str
    members: List[TeamMemberOut] = Field(default_factory=list)


class TeamSearchOut(BaseModel):
    id: str
    name: str
    logoUrl: Optional[str] = None


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------
class MatchCreate(BaseModel):
    """Schema for scheduling a match.

    When ``teamId`` is given the scheduler's team joins as the first
    participant; the caller must be its owner or captain.
    """

    gameId: Optional[str] = None
    teamId: Optional[str] = None
    startTime: datetime
    endTime: Optional[datetime] = None
    matchType: MatchType = "friendly"
    matchFormat: MatchFormat = "bo1"
    gameMode: Optional[GameMode] = None
    location: Optional[str] = Field(default=None, max_length=200)
    isPrivate: bool = False
    streamUrl: Optional[str] = None
    matchNotes: Optional[str] = Field(default=None, max_length=2000)
    vetoType: VetoTypeName = "standard"
    rules: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("startTime")
    def _normalize_start(cls, v: datetime) -> datetime:
        return require_utc(v, field_name="startTime")

    @field_validator("endTime")
    def _normalize_end(cls, v: datetime | None) -> datetime | None:
        return require_utc(v, field_name="endTime")

    @model_validator(mode="after")
    def _check_window(self) -> "MatchCreate":
        if self.endTime is not None and self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


class MatchJoin(BaseModel):
    teamId: str


class MatchSettingsUpdate(BaseModel):
    rules: Optional[str] = Field(default=None, max_length=5000)
    settings: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _ensure_fields(self) -> "MatchSettingsUpdate":
        if self.rules is None and self.settings is None:
            raise ValueError("at least one field must be provided")
        return self


class MatchSettingsOut(BaseModel):
    selectedMaps: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    rules: Optional[str] = None


class ParticipantOut(BaseModel):
    id: str
    teamId: str
    teamName: Optional[str] = None
    result: Optional[Literal["win", "loss"]] = None
    joinedAt: Optional[datetime] = None


class MatchRolesOut(BaseModel):
    isScheduler: bool = False
    isParticipant: bool = False
    participantTeamId: Optional[str] = None


class MatchActionsOut(BaseModel):
    canJoin: bool = False
    canInvite: bool = False
    canSetup: bool = False
    canStart: bool = False
    canReportResult: bool = False
    canReportDispute: bool = False
    canEdit: bool = False
    canCancel: bool = False


class MatchIdOut(BaseModel):
    """Schema returned after creating a match."""

    id: str


class MatchSummaryOut(BaseModel):
    """Lightweight representation of a match used in listings."""

    id: str
    gameId: Optional[str] = None
    status: str
    startTime: datetime
    matchType: str
    matchFormat: str
    gameMode: Optional[str] = None
    isPrivate: bool = False
    participants: List[ParticipantOut] = Field(default_factory=list)


class MatchOut(MatchSummaryOut):
    """Detailed match information, including the caller's roles and actions."""

    scheduledBy: str
    endTime: Optional[datetime] = None
    location: Optional[str] = None
    streamUrl: Optional[str] = None
    matchNotes: Optional[str] = None
    setupCompletedAt: Optional[datetime] = None
    startedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    settings: MatchSettingsOut = Field(default_factory=MatchSettingsOut)
    roles: MatchRolesOut = Field(default_factory=MatchRolesOut)
    actions: MatchActionsOut = Field(default_factory=MatchActionsOut)


class MatchResultIn(BaseModel):
    winnerTeamId: str
    winnerScore: int = Field(..., ge=0)
    loserScore: int = Field(..., ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _winner_outscores(self) -> "MatchResultIn":
        if self.winnerScore <= self.loserScore:
            raise ValueError("winner's score must be higher than loser's score")
        return self


class MatchResultOut(BaseModel):
    id: str
    matchId: str
    winnerTeamId: str
    loserTeamId: str
    winnerScore: int
    loserScore: int
    reportedBy: str
    notes: Optional[str] = None
    createdAt: datetime


# ---------------------------------------------------------------------------
# Map veto
# ---------------------------------------------------------------------------
class VetoStart(BaseModel):
    vetoType: Optional[VetoTypeName] = None


class VetoBanIn(BaseModel):
    map: str = Field(..., min_length=1, max_length=100)


class VetoBanOut(BaseModel):
    map: str
    teamId: str


class VetoStateOut(BaseModel):
    matchId: str
    vetoType: VetoTypeName
    pool: List[str]
    remaining: List[str]
    bans: List[VetoBanOut] = Field(default_factory=list)
    currentTeamId: Optional[str] = None
    complete: bool = False
    selectedMaps: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------
class InvitationCreate(BaseModel):
    teamId: str


class InvitationOut(BaseModel):
    id: str
    matchId: str
    teamId: str
    teamName: Optional[str] = None
    invitedBy: str
    status: Literal["pending", "accepted", "declined"]
    acceptanceDeadline: datetime
    createdAt: Optional[datetime] = None
    respondedAt: Optional[datetime] = None
    isExpired: bool = False
    canRespond: bool = False


class InvitationAcceptOut(BaseModel):
    invitation: InvitationOut
    participantId: str
    setupPath: str


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class ChatMessageIn(BaseModel):
    message: str


class ChatMessageOut(BaseModel):
    id: str
    matchId: str
    profileId: str
    username: Optional[str] = None
    displayName: Optional[str] = None
    avatarUrl: Optional[str] = None
    message: str
    isSystem: bool = False
    createdAt: datetime


class ChatMessageListOut(BaseModel):
    items: List[ChatMessageOut] = Field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------
class DisputeCreate(BaseModel):
    # Emptiness is checked by the dispute service so it answers with a
    # dedicated problem code instead of a generic validation error.
    reason: str = Field(default="", max_length=5000)
    teamId: Optional[str] = None


class DisputeOut(BaseModel):
    id: str
    matchId: str
    reportedBy: str
    teamId: Optional[str] = None
    reason: str
    status: Literal["pending", "resolved", "rejected"]
    resolutionNotes: Optional[str] = None
    createdAt: datetime


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
class GameStatsBreakdown(BaseModel):
    gameId: Optional[str] = None
    played: int = 0
    won: int = 0
    winRate: int = 0


class PlayerStatsSummaryOut(BaseModel):
    profileId: str
    matchesPlayed: int = 0
    matchesWon: int = 0
    tournamentsPlayed: int = 0
    tournamentsWon: int = 0
    totalEarnings: float = 0.0
    winRate: int = 0
    tournamentWinRate: int = 0
    games: List[GameStatsBreakdown] = Field(default_factory=list)


class StreakOut(BaseModel):
    current: int = 0
    longestWin: int = 0
    longestLoss: int = 0


class TeamStatsOut(BaseModel):
    teamId: str
    totalMatches: int = 0
    wonMatches: int = 0
    winRate: int = 0
    disputes: int = 0
    disputeRate: int = 0
    games: List[GameStatsBreakdown] = Field(default_factory=list)
    streaks: StreakOut = Field(default_factory=StreakOut)


class RatingOut(BaseModel):
    gameId: Optional[str] = None
    rating: int
    tier: str
    matchesPlayed: int = 0


class RatingChangeOut(BaseModel):
    matchId: str
    gameId: Optional[str] = None
    oldRating: int
    newRating: int
    change: int
    createdAt: datetime


class TeamRatingsOut(BaseModel):
    teamId: str
    overall: RatingOut
    games: List[RatingOut] = Field(default_factory=list)
    history: List[RatingChangeOut] = Field(default_factory=list)


class RatingLeaderboardEntry(BaseModel):
    rank: int
    teamId: str
    teamName: str
    rating: int
    tier: str
    matchesPlayed: int


# ---------------------------------------------------------------------------
# Game data
# ---------------------------------------------------------------------------
class GameDataResponse(BaseModel):
    """Normalized envelope returned by the external game-stat providers."""

    data: Optional[Any] = None
    error: Optional[str] = None
    status: int
