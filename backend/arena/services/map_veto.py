"""Turn-based map elimination used during match setup.

Pure logic, no I/O. A session is created for two teams and a map pool; in
``standard`` mode the teams alternate banning one map each until three or
fewer remain, in ``random`` mode a single draw picks the maps. Sessions are
never persisted turn by turn, only the final selection is.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

SELECTED_MAP_COUNT = 3

DEFAULT_GAME_MODE = "tdm"

DEFAULT_MAPS: dict[str, tuple[str, ...]] = {
    "tdm": ("Nuketown", "Firing Range", "Summit", "Crash", "Standoff", "Raid", "Slums"),
    "snd": ("Raid", "Express", "Standoff", "Meltdown", "Slums", "Firing Range", "Nuketown"),
    "ctf": ("Raid", "Standoff", "Slums", "Firing Range", "Express", "Meltdown", "Overflow"),
    "hp": ("Raid", "Standoff", "Slums", "Firing Range", "Express", "Meltdown", "Overflow"),
    "dom": ("Raid", "Standoff", "Slums", "Firing Range", "Express", "Meltdown", "Overflow"),
}


class VetoType(str, Enum):
    STANDARD = "standard"
    CAPTAIN = "captain"
    RANDOM = "random"


class VetoError(ValueError):
    """Base class for rejected veto actions."""


class VetoModeNotSupported(VetoError):
    pass


class NotYourTurn(VetoError):
    pass


class InvalidBan(VetoError):
    pass


class VetoAlreadyComplete(VetoError):
    pass


def resolve_map_pool(
    game_mode: str | None, available_maps: Sequence[str] | None = None
) -> list[str]:
    """Pick the pool to veto from.

    A non-empty ``available_maps`` (the game's own configuration) wins;
    otherwise the default table for ``game_mode`` is used, falling back to the
    team deathmatch pool for unknown modes.
    """

    if available_maps:
        return list(available_maps)
    mode = (game_mode or DEFAULT_GAME_MODE).strip().lower()
    return list(DEFAULT_MAPS.get(mode, DEFAULT_MAPS[DEFAULT_GAME_MODE]))


@dataclass(frozen=True)
class Ban:
    map: str
    team_id: str


@dataclass
class MapVetoSession:
    match_id: str
    pool: list[str]
    team_id: str
    opponent_team_id: str
    veto_type: VetoType = VetoType.STANDARD
    bans: list[Ban] = field(default_factory=list)
    current_team_id: str = ""
    selected_maps: list[str] | None = None

    def __post_init__(self) -> None:
        self.veto_type = VetoType(self.veto_type)
        if self.veto_type is VetoType.CAPTAIN:
            raise VetoModeNotSupported("captain veto is not available")
        if self.team_id == self.opponent_team_id:
            raise VetoError("a veto needs two different teams")
        # Keep the pool order but drop repeated names.
        self.pool = list(dict.fromkeys(self.pool))
        self.current_team_id = self.team_id
        if self.veto_type is VetoType.STANDARD and len(self.pool) <= SELECTED_MAP_COUNT:
            self.selected_maps = list(self.pool)

    @property
    def remaining(self) -> list[str]:
        banned = {ban.map for ban in self.bans}
        return [m for m in self.pool if m not in banned]

    @property
    def is_complete(self) -> bool:
        return self.selected_maps is not None

    def ban(self, map_name: str, team_id: str) -> list[str] | None:
        """Ban ``map_name`` for ``team_id``.

        Returns the final selection when this ban completes the veto,
        otherwise ``None`` and the turn passes to the other team.
        """

        if self.is_complete:
            raise VetoAlreadyComplete("map veto is already complete")
        if self.veto_type is not VetoType.STANDARD:
            raise VetoError(f"{self.veto_type.value} veto does not take bans")
        if team_id != self.current_team_id:
            raise NotYourTurn("it is the other team's turn to ban")
        remaining = self.remaining
        if map_name not in remaining:
            raise InvalidBan(f"map {map_name!r} is not available to ban")

        self.bans.append(Ban(map=map_name, team_id=team_id))
        remaining = [m for m in remaining if m != map_name]
        if len(remaining) <= SELECTED_MAP_COUNT:
            self.selected_maps = remaining
            return list(remaining)

        self.current_team_id = (
            self.opponent_team_id if team_id == self.team_id else self.team_id
        )
        return None

    def randomize(self, rng: random.Random | None = None) -> list[str]:
        if self.is_complete:
            raise VetoAlreadyComplete("map veto is already complete")
        if self.veto_type is not VetoType.RANDOM:
            raise VetoError(f"{self.veto_type.value} veto does not draw at random")
        rng = rng or random.Random()
        count = min(SELECTED_MAP_COUNT, len(self.pool))
        self.selected_maps = rng.sample(self.pool, count)
        return list(self.selected_maps)

    def as_dict(self) -> dict:
        return {
            "matchId": self.match_id,
            "vetoType": self.veto_type.value,
            "pool": list(self.pool),
            "remaining": self.remaining,
            "bans": [{"map": b.map, "teamId": b.team_id} for b in self.bans],
            "currentTeamId": None if self.is_complete else self.current_team_id,
            "complete": self.is_complete,
            "selectedMaps": list(self.selected_maps) if self.selected_maps else [],
        }
