"""
Reverse reconciliation of NO_WALLET placeholder rows.

The bulk ledger read and the roster are taken at slightly different times,
so a member may get a wallet linked after the ledger was paged. Each
placeholder is re-checked against the ledger and, when a wallet turns up,
replaced in its original slot with a fully classified row.
"""

from app.features.snapshot.domain import (
    BadgeRoleMap,
    ClassifiedRow,
    PendingReconciliation,
    RunState,
)
from app.features.snapshot.repository.ledger_repository import LedgerStore
from app.infrastructure.observability.logging import get_logger, mask_address
from app.utils.batching import RateLimitedBatcher

from .roster_fetcher import MemberResolver

logger = get_logger(__name__)


class ReverseReconciler:
    def __init__(
        self,
        role_map: BadgeRoleMap,
        store: LedgerStore,
        *,
        batch_size: int = 50,
        delay_seconds: float = 1.0,
        concurrency: int = 10,
    ):
        self.role_map = role_map
        self.store = store
        self.concurrency = concurrency
        self._batcher = RateLimitedBatcher(batch_size, delay_seconds)

    async def _reconcile_one(
        self, pending: PendingReconciliation, resolver: MemberResolver
    ) -> ClassifiedRow | None:
        """Build the replacement row for one placeholder, or None to keep it."""
        try:
            record = await self.store.find_by_identity(
                pending.identity_id, address_not_null=True
            )
        except Exception as e:
            logger.warning(
                "Reverse wallet lookup failed",
                identity_id=pending.identity_id,
                row_index=pending.row_index,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if record is None or not record.has_wallet:
            return None

        identity = await resolver.refresh(pending.identity_id)
        if identity is None:
            logger.debug("Reconciled member no longer in roster", identity_id=pending.identity_id)
            return None

        flags = self.role_map.flags_for(identity.role_ids)
        if not flags.any():
            return None

        return ClassifiedRow(
            identity_id=pending.identity_id,
            wallet_address=record.wallet_address.strip(),
            flags=flags,
            points=record.points,
        )

    async def reconcile(self, state: RunState, resolver: MemberResolver) -> int:
        """
        Re-check every pending placeholder and overwrite the ones that now
        resolve to a wallet-linked badge holder.

        Lookup failures leave the placeholder in place and are never raised.
        Row count and ordering are preserved.

        Returns:
            Number of rows upgraded
        """
        if not state.pending:
            return 0

        outcomes = await self._batcher.run(
            list(state.pending),
            lambda pending: self._reconcile_one(pending, resolver),
            concurrency=self.concurrency,
        )

        upgraded = 0
        for outcome in outcomes:
            if not outcome.ok:
                logger.warning(
                    "Reconciliation task failed",
                    identity_id=outcome.item.identity_id,
                    error=str(outcome.error),
                )
                continue
            if outcome.result is None:
                continue

            state.overwrite(outcome.item.row_index, outcome.result)
            upgraded += 1
            logger.debug(
                "Placeholder reconciled",
                identity_id=outcome.item.identity_id,
                row_index=outcome.item.row_index,
                wallet=mask_address(outcome.result.wallet_address),
            )

        logger.info(
            "Reverse reconciliation complete",
            pending=len(state.pending),
            upgraded=upgraded,
            remaining_placeholders=state.placeholder_count(),
        )
        return upgraded
