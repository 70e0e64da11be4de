"""Match workflow services.

The veto, lifecycle and stats helpers are pure; the remaining modules take
an ``AsyncSession`` and commit their own writes.
"""

from .lifecycle import (
    MatchStatus,
    ALLOWED_TRANSITIONS,
    can_transition,
    ensure_transition,
    compute_roles,
    compute_actions,
)
from .map_veto import MapVetoSession, VetoType, resolve_map_pool
from .stats import compute_streaks, percentage, summarize_player_stats

__all__ = [
    "MatchStatus",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "ensure_transition",
    "compute_roles",
    "compute_actions",
    "MapVetoSession",
    "VetoType",
    "resolve_map_pool",
    "compute_streaks",
    "percentage",
    "summarize_player_stats",
]
