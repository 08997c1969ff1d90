from decimal import Decimal

import pytest

from app.features.snapshot.domain import (
    BadgeKind,
    BadgeRoleMap,
    Identity,
    LedgerFilter,
    LedgerRecord,
    RosterPage,
)
from app.features.snapshot.errors import LedgerStoreError
from app.services.discord.roster_client import DiscordApiError

ROLE_IDS = {
    BadgeKind.WL: "role-wl",
    BadgeKind.WL_WINNER: "role-wl-winner",
    BadgeKind.ML: "role-ml",
    BadgeKind.ML_WINNER: "role-ml-winner",
    BadgeKind.FREE_MINT: "role-free-mint",
    BadgeKind.FREE_MINT_WINNER: "role-free-mint-winner",
}


def member(identity_id: str, *badges: BadgeKind, extra_roles=(), name: str | None = None):
    roles = frozenset({ROLE_IDS[badge] for badge in badges} | set(extra_roles))
    return Identity(identity_id=identity_id, display_name=name or f"user{identity_id}", role_ids=roles)


def record(identity_id, address=None, points=0, team=None):
    return LedgerRecord(
        identity_id=identity_id,
        wallet_address=address,
        points=Decimal(str(points)),
        team=team,
    )


class FakeRoster:
    """In-memory RosterSource."""

    def __init__(self, members=(), *, failing_ids=(), departed_ids=()):
        self.members = {identity.identity_id: identity for identity in members}
        self.failing_ids = set(failing_ids)
        self.departed_ids = set(departed_ids)
        self.list_calls: list[str | None] = []
        self.get_calls: list[str] = []
        self.list_error: Exception | None = None

    async def list_members(self, community_id, *, after=None, limit=1000):
        self.list_calls.append(after)
        if self.list_error:
            raise self.list_error
        ordered = sorted(self.members.values(), key=lambda identity: int(identity.identity_id))
        if after is not None:
            ordered = [identity for identity in ordered if int(identity.identity_id) > int(after)]
        page = ordered[:limit]
        return RosterPage(
            members=tuple(page),
            raw_count=len(page),
            last_id=page[-1].identity_id if page else None,
        )

    async def get_member(self, community_id, identity_id):
        self.get_calls.append(identity_id)
        if identity_id in self.failing_ids:
            raise DiscordApiError("lookup failed", status_code=500)
        if identity_id in self.departed_ids:
            return None
        return self.members.get(identity_id)


class FakeLedger:
    """In-memory LedgerStore."""

    def __init__(self, records=(), *, late_records=(), failing_ids=()):
        self.records = list(records)
        self.late_records = list(late_records)
        self.failing_ids = set(failing_ids)
        self.query_calls: list[tuple[int, int]] = []
        self.find_calls: list[str] = []
        self.query_error: Exception | None = None

    async def query_records(self, ledger_filter: LedgerFilter, *, offset, limit):
        self.query_calls.append((offset, limit))
        if self.query_error:
            raise self.query_error
        rows = [
            row
            for row in self.records
            if (not ledger_filter.address_not_null or row.has_wallet)
            and (ledger_filter.team is None or row.team == ledger_filter.team)
        ]
        rows.sort(key=lambda row: row.points, reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def find_by_identity(self, identity_id, *, address_not_null=True):
        self.find_calls.append(identity_id)
        if identity_id in self.failing_ids:
            raise LedgerStoreError("ledger down", operation="find_by_identity")
        candidates = [
            row
            for row in self.records + self.late_records
            if row.identity_id == identity_id and (row.has_wallet or not address_not_null)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda row: row.points)


@pytest.fixture
def role_map():
    return BadgeRoleMap.from_mapping(ROLE_IDS)


@pytest.fixture
def fake_roster():
    return FakeRoster()


@pytest.fixture
def fake_ledger():
    return FakeLedger()
