"""
Repository helpers for the points ledger.

Reads the Supabase `users` table (discord_id, address, points, team) and
converts rows into validated LedgerRecord instances. The snapshot never
writes to this table.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from app.db.helpers import DatabaseError, fetch_all, fetch_one, fetch_val, with_db_retry
from app.features.snapshot.domain import LedgerFilter, LedgerRecord, Team
from app.features.snapshot.errors import LedgerStoreError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_NON_EMPTY_ADDRESS = "address IS NOT NULL AND btrim(address) <> ''"


class LedgerStore(Protocol):
    async def query_records(
        self, ledger_filter: LedgerFilter, *, offset: int, limit: int
    ) -> tuple[list[LedgerRecord], int]: ...

    async def find_by_identity(
        self, identity_id: str, *, address_not_null: bool = True
    ) -> LedgerRecord | None: ...


def _to_points(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    try:
        points = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)
    if not points.is_finite() or points < 0:
        return Decimal(0)
    return points


def _to_team(value: Any) -> Team | None:
    if value is None:
        return None
    try:
        return Team(str(value).strip().lower())
    except ValueError:
        return None


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def row_to_record(row: dict[str, Any]) -> LedgerRecord:
    """Validate a raw users-table row into a LedgerRecord."""
    return LedgerRecord(
        identity_id=_to_text(row.get("discord_id")),
        wallet_address=_to_text(row.get("address")),
        points=_to_points(row.get("points")),
        team=_to_team(row.get("team")),
    )


def _where_clause(ledger_filter: LedgerFilter) -> tuple[str, tuple]:
    conditions: list[str] = []
    params: list[Any] = []
    if ledger_filter.address_not_null:
        conditions.append(_NON_EMPTY_ADDRESS)
    if ledger_filter.team is not None:
        conditions.append("team = %s")
        params.append(ledger_filter.team.value)
    if not conditions:
        return "", ()
    return "WHERE " + " AND ".join(conditions), tuple(params)


class LedgerRepository:
    """Raw SQL helpers for the points ledger."""

    @classmethod
    @with_db_retry()
    async def _count(cls, ledger_filter: LedgerFilter) -> int:
        where, params = _where_clause(ledger_filter)
        total = await fetch_val(f"SELECT COUNT(*) AS total FROM users {where}", params)
        return int(total or 0)

    @classmethod
    @with_db_retry()
    async def _fetch_page(
        cls, ledger_filter: LedgerFilter, offset: int, limit: int
    ) -> list[dict[str, Any]]:
        where, params = _where_clause(ledger_filter)
        query = f"""
            SELECT discord_id, address, points, team
            FROM users
            {where}
            ORDER BY points DESC NULLS LAST, discord_id ASC
            OFFSET %s
            LIMIT %s
        """
        return await fetch_all(query, params + (offset, limit))

    @classmethod
    async def query_records(
        cls, ledger_filter: LedgerFilter, *, offset: int, limit: int
    ) -> tuple[list[LedgerRecord], int]:
        """
        Read one page of ledger records ordered by points descending.

        Returns:
            (records, total_count) where total_count is the exact number of
            rows matching the filter

        Raises:
            LedgerStoreError: If the page or the count cannot be read
        """
        if offset < 0 or limit < 1:
            raise ValueError("offset must be >= 0 and limit >= 1")

        try:
            rows = await cls._fetch_page(ledger_filter, offset, limit)
            total = await cls._count(ledger_filter)
        except DatabaseError as e:
            logger.error(
                "Ledger page read failed",
                offset=offset,
                limit=limit,
                error=str(e),
            )
            raise LedgerStoreError(
                f"Failed to read ledger page: {e}", operation="query_records"
            ) from e

        return [row_to_record(row) for row in rows], total

    @classmethod
    async def find_by_identity(
        cls, identity_id: str, *, address_not_null: bool = True
    ) -> LedgerRecord | None:
        """
        Look up the best ledger record for one Discord user.

        When several rows exist the one with the most points wins.
        """
        query = """
            SELECT discord_id, address, points, team
            FROM users
            WHERE discord_id = %s
        """
        if address_not_null:
            query += f" AND {_NON_EMPTY_ADDRESS}"
        query += " ORDER BY points DESC NULLS LAST LIMIT 1"

        try:
            row = await fetch_one(query, (identity_id,))
        except DatabaseError as e:
            raise LedgerStoreError(
                f"Failed to look up ledger record: {e}", operation="find_by_identity"
            ) from e

        return row_to_record(row) if row else None


ledger_repository = LedgerRepository()
