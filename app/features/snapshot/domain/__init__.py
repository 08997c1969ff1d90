"""
Domain subpackage for the snapshot feature.
"""

from .badges import BADGE_ORDER, BadgeFlags, BadgeKind, BadgeRoleMap
from .models import (
    NO_WALLET,
    ClassifiedRow,
    Identity,
    LedgerFilter,
    LedgerRecord,
    PendingReconciliation,
    RosterPage,
    RunState,
    SnapshotResult,
    SnapshotStats,
    Team,
)

__all__ = [
    "BADGE_ORDER",
    "NO_WALLET",
    "BadgeFlags",
    "BadgeKind",
    "BadgeRoleMap",
    "ClassifiedRow",
    "Identity",
    "LedgerFilter",
    "LedgerRecord",
    "PendingReconciliation",
    "RosterPage",
    "RunState",
    "SnapshotResult",
    "SnapshotStats",
    "Team",
]
