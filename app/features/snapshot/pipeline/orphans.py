"""
Detection of badge holders without a linked wallet.
"""

from collections.abc import Iterable

from app.features.snapshot.domain import (
    NO_WALLET,
    BadgeRoleMap,
    ClassifiedRow,
    Identity,
    RunState,
    SnapshotStats,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class OrphanDetector:
    def __init__(self, role_map: BadgeRoleMap):
        self.role_map = role_map

    def detect(
        self, roster: Iterable[Identity], state: RunState, stats: SnapshotStats
    ) -> int:
        """
        Append a NO_WALLET placeholder for every unprocessed member holding a
        tracked badge and queue it for reconciliation.

        Returns:
            Number of placeholders appended
        """
        orphans = 0
        for identity in roster:
            if identity.identity_id in state.processed_ids:
                continue

            flags = self.role_map.flags_for(identity.role_ids)
            if not flags.any():
                continue

            stats.record_no_wallet(flags, identity.label)
            state.add_placeholder(
                ClassifiedRow(
                    identity_id=identity.identity_id,
                    wallet_address=NO_WALLET,
                    flags=flags,
                )
            )
            orphans += 1

        logger.info("Badge holders without wallet detected", orphan_count=orphans)
        return orphans
