"""Match status machine and per-role action gating.

The ``status`` column on ``match`` is the single authority for where a match
is in its lifecycle. Every mutation goes through :func:`ensure_transition`
so the allowed-transition table below is enforced server-side, and the
``MatchActions`` flags returned to clients are recomputed from the same
inputs the mutations re-check.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from ..exceptions import ActionNotAllowed, InvalidMatchTransition
from ..time_utils import coerce_utc, utcnow

MAX_PARTICIPANTS = 2


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


ALLOWED_TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.SCHEDULED: frozenset({MatchStatus.IN_PROGRESS, MatchStatus.CANCELLED}),
    MatchStatus.IN_PROGRESS: frozenset({MatchStatus.COMPLETED, MatchStatus.CANCELLED}),
    MatchStatus.COMPLETED: frozenset({MatchStatus.DISPUTED}),
    # A second dispute can be filed against an already disputed match.
    MatchStatus.DISPUTED: frozenset({MatchStatus.DISPUTED}),
    MatchStatus.CANCELLED: frozenset(),
}

TEAM_MANAGER_ROLES = frozenset({"owner", "captain"})


def parse_status(value: str | MatchStatus) -> MatchStatus:
    try:
        return MatchStatus(value)
    except ValueError:
        raise ValueError(f"unknown match status: {value!r}") from None


def can_transition(current: str | MatchStatus, target: str | MatchStatus) -> bool:
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]


def ensure_transition(current: str | MatchStatus, target: str | MatchStatus) -> MatchStatus:
    """Return ``target`` as a :class:`MatchStatus` or raise if it is not reachable."""

    current_status = parse_status(current)
    target_status = parse_status(target)
    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidMatchTransition(current_status.value, target_status.value)
    return target_status


@dataclass(frozen=True)
class MatchRoles:
    is_scheduler: bool
    is_participant: bool
    participant_team_id: str | None = None


def compute_roles(
    profile_id: str | None,
    scheduled_by: str,
    participant_team_ids: Iterable[str],
    membership: dict[str, str],
) -> MatchRoles:
    """Derive the caller's roles for one match.

    ``membership`` maps team id to the caller's role on that team.
    """

    if not profile_id:
        return MatchRoles(is_scheduler=False, is_participant=False)
    team_id = next((tid for tid in participant_team_ids if tid in membership), None)
    return MatchRoles(
        is_scheduler=profile_id == scheduled_by,
        is_participant=team_id is not None,
        participant_team_id=team_id,
    )


@dataclass(frozen=True)
class MatchSnapshot:
    """The match fields action gating depends on."""

    status: MatchStatus
    participant_count: int
    start_time: datetime | None
    setup_completed_at: datetime | None

    @property
    def is_ready(self) -> bool:
        return self.setup_completed_at is not None


@dataclass(frozen=True)
class MatchActions:
    can_join: bool
    can_invite: bool
    can_setup: bool
    can_start: bool
    can_report_result: bool
    can_report_dispute: bool
    can_edit: bool
    can_cancel: bool


def compute_actions(
    snapshot: MatchSnapshot, roles: MatchRoles, now: datetime | None = None
) -> MatchActions:
    now = now or utcnow()
    status = snapshot.status
    full = snapshot.participant_count >= MAX_PARTICIPANTS
    scheduled = status is MatchStatus.SCHEDULED
    start_time = coerce_utc(snapshot.start_time)
    start_reached = start_time is not None and now >= start_time
    involved = roles.is_scheduler or roles.is_participant

    return MatchActions(
        can_join=not roles.is_participant and scheduled and not full,
        can_invite=roles.is_scheduler and scheduled and not full,
        can_setup=(
            roles.is_participant
            and scheduled
            and snapshot.participant_count == MAX_PARTICIPANTS
            and not snapshot.is_ready
        ),
        can_start=(
            involved
            and scheduled
            and snapshot.is_ready
            and snapshot.participant_count == MAX_PARTICIPANTS
            and start_reached
        ),
        can_report_result=involved and status is MatchStatus.IN_PROGRESS,
        can_report_dispute=roles.is_participant
        and status in (MatchStatus.COMPLETED, MatchStatus.DISPUTED),
        can_edit=roles.is_scheduler and scheduled,
        can_cancel=roles.is_scheduler and scheduled,
    )


def require(allowed: bool, detail: str, code: str, *, status_code: int = 403) -> None:
    if not allowed:
        raise ActionNotAllowed(detail, code=code, status_code=status_code)
