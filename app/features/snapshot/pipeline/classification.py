"""
Classification of wallet-linked ledger records against the roster.
"""

from collections.abc import Iterable

from app.features.snapshot.domain import (
    BadgeRoleMap,
    ClassifiedRow,
    LedgerRecord,
    RunState,
    SnapshotStats,
)
from app.infrastructure.observability.logging import get_logger

from .roster_fetcher import MemberResolver

logger = get_logger(__name__)


class ClassificationEngine:
    def __init__(self, role_map: BadgeRoleMap):
        self.role_map = role_map

    async def classify(
        self,
        records: Iterable[LedgerRecord],
        resolver: MemberResolver,
        state: RunState,
        stats: SnapshotStats,
    ) -> int:
        """
        Emit one row per deduplicated record that has a wallet, a resolvable
        member and at least one tracked badge. Only emitted identities are
        marked processed.

        Returns:
            Number of rows appended
        """
        emitted = 0
        unresolved = 0
        no_badges = 0

        for record in records:
            if not record.identity_id or not record.has_wallet:
                continue

            identity = resolver.resolve(record.identity_id)
            if identity is None:
                unresolved += 1
                continue

            flags = self.role_map.flags_for(identity.role_ids)
            if not flags.any():
                no_badges += 1
                continue

            stats.record_holder(flags)
            state.mark_processed(record.identity_id)
            state.append(
                ClassifiedRow(
                    identity_id=record.identity_id,
                    wallet_address=record.wallet_address.strip(),
                    flags=flags,
                    points=record.points,
                )
            )
            emitted += 1

        logger.info(
            "Ledger records classified",
            emitted=emitted,
            unresolved=unresolved,
            without_badges=no_badges,
            processed=len(state.processed_ids),
        )
        return emitted
