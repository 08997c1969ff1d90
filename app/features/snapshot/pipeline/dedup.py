"""
Ledger record deduplication.

The users table can hold several rows for one Discord id (stale rows,
concurrent inserts). The snapshot needs exactly one canonical row per id.
"""

from collections.abc import Iterable

from app.features.snapshot.domain import LedgerRecord


def _prefer(kept: LedgerRecord, incoming: LedgerRecord) -> LedgerRecord:
    if incoming.has_wallet and not kept.has_wallet:
        return incoming
    if incoming.has_wallet and kept.has_wallet and incoming.points > kept.points:
        return incoming
    return kept


def deduplicate_records(records: Iterable[LedgerRecord]) -> list[LedgerRecord]:
    """
    Collapse records to one per identity_id.

    Rules, applied in encounter order:
      * a record with a wallet address replaces one without
      * between two records with addresses, strictly more points wins
      * otherwise the first record seen is kept
    Records without an identity_id are dropped.

    The result keeps the encounter order of each identity's first record.
    """
    kept: dict[str, LedgerRecord] = {}
    for record in records:
        if not record.identity_id:
            continue
        current = kept.get(record.identity_id)
        kept[record.identity_id] = record if current is None else _prefer(current, record)
    return list(kept.values())
