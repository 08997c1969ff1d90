"""
Domain models for the community snapshot feature.

Identity and LedgerRecord are validated at the roster / ledger boundary;
everything downstream trusts their shapes.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from .badges import BADGE_ORDER, BadgeFlags, BadgeKind

NO_WALLET = "NO_WALLET"


class Team(str, Enum):
    BULL = "bull"
    BEAR = "bear"


@dataclass(frozen=True, slots=True)
class Identity:
    """A community member as observed in the roster."""

    identity_id: str
    display_name: str
    role_ids: frozenset[str] = frozenset()

    @property
    def label(self) -> str:
        return f"{self.display_name} ({self.identity_id})"


@dataclass(frozen=True, slots=True)
class RosterPage:
    """
    One page of the member listing.

    `raw_count` and `last_id` describe the page as served, including entries
    that failed validation and are missing from `members`; paging decisions
    use them so a malformed entry never ends the listing early.
    """

    members: tuple[Identity, ...]
    raw_count: int
    last_id: str | None = None


@dataclass(frozen=True, slots=True)
class LedgerRecord:
    """Represents a users-table row (discord_id, address, points, team)."""

    identity_id: str | None
    wallet_address: str | None
    points: Decimal = Decimal(0)
    team: Team | None = None

    @property
    def has_wallet(self) -> bool:
        return bool(self.wallet_address and self.wallet_address.strip())


@dataclass(frozen=True, slots=True)
class LedgerFilter:
    address_not_null: bool = False
    team: Team | None = None


@dataclass(slots=True)
class ClassifiedRow:
    """One line of the snapshot report."""

    identity_id: str
    wallet_address: str
    flags: BadgeFlags
    points: Decimal = Decimal(0)

    @property
    def is_placeholder(self) -> bool:
        return self.wallet_address == NO_WALLET


@dataclass(frozen=True, slots=True)
class PendingReconciliation:
    row_index: int
    identity_id: str


def _zero_counts() -> dict[BadgeKind, int]:
    return {kind: 0 for kind in BADGE_ORDER}


def _empty_labels() -> dict[BadgeKind, list[str]]:
    return {kind: [] for kind in BADGE_ORDER}


@dataclass
class SnapshotStats:
    """Aggregate counters for one snapshot run."""

    totals: dict[BadgeKind, int] = field(default_factory=_zero_counts)
    no_wallet: dict[BadgeKind, int] = field(default_factory=_zero_counts)
    unverified: dict[BadgeKind, list[str]] = field(default_factory=_empty_labels)
    total_processed: int = 0
    reconciled: int = 0

    def record_holder(self, flags: BadgeFlags) -> None:
        for kind in flags.true_kinds():
            self.totals[kind] += 1

    def record_no_wallet(self, flags: BadgeFlags, label: str) -> None:
        for kind in flags.true_kinds():
            self.no_wallet[kind] += 1
            self.unverified[kind].append(label)

    def as_dict(self) -> dict:
        stats = {kind.total_key: self.totals[kind] for kind in BADGE_ORDER}
        stats["usersWithRoleNoWallet"] = {
            kind.stats_key: self.no_wallet[kind] for kind in BADGE_ORDER
        }
        return {
            "discordStats": stats,
            "unverifiedUsers": {
                kind.stats_key: list(self.unverified[kind]) for kind in BADGE_ORDER
            },
            "totalProcessed": self.total_processed,
            "reconciled": self.reconciled,
        }


@dataclass
class RunState:
    """
    Per-run arena of report rows.

    Rows are only appended during classification and orphan detection. The
    reconciliation pass may replace a row in its original slot through
    `overwrite`; the row count never changes after orphan detection.
    """

    rows: list[ClassifiedRow] = field(default_factory=list)
    processed_ids: set[str] = field(default_factory=set)
    pending: list[PendingReconciliation] = field(default_factory=list)
    slot_by_identity: dict[str, int] = field(default_factory=dict)

    def append(self, row: ClassifiedRow) -> int:
        if row.identity_id in self.slot_by_identity:
            raise ValueError(f"Row for identity {row.identity_id} already exists")
        self.rows.append(row)
        index = len(self.rows) - 1
        self.slot_by_identity[row.identity_id] = index
        return index

    def mark_processed(self, identity_id: str) -> None:
        self.processed_ids.add(identity_id)

    def add_placeholder(self, row: ClassifiedRow) -> PendingReconciliation:
        index = self.append(row)
        pending = PendingReconciliation(row_index=index, identity_id=row.identity_id)
        self.pending.append(pending)
        return pending

    def overwrite(self, row_index: int, row: ClassifiedRow) -> None:
        if not 0 <= row_index < len(self.rows):
            raise IndexError(f"Row index {row_index} outside of {len(self.rows)} rows")
        current = self.rows[row_index]
        if current.identity_id != row.identity_id:
            raise ValueError(
                f"Row {row_index} belongs to {current.identity_id}, not {row.identity_id}"
            )
        self.rows[row_index] = row

    def placeholder_count(self) -> int:
        return sum(1 for row in self.rows if row.is_placeholder)


@dataclass(frozen=True, slots=True)
class SnapshotResult:
    report: str
    stats: SnapshotStats
    total_processed: int
    row_count: int
