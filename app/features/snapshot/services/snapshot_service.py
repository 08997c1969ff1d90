"""
Community snapshot service.

Cross-references the Discord roster with the points ledger and produces the
CSV membership snapshot plus aggregate role statistics.

Usage:
    service = SnapshotService.from_settings(roster_client)
    result = await service.generate_snapshot(guild_id, include_identity_id=True)
    # result.report -> CSV text, result.stats -> SnapshotStats
"""

import asyncio
from collections.abc import Iterable

from app.config import settings
from app.features.snapshot.domain import (
    BadgeRoleMap,
    Identity,
    LedgerFilter,
    LedgerRecord,
    RunState,
    SnapshotResult,
    SnapshotStats,
)
from app.features.snapshot.errors import SnapshotSourceUnavailableError
from app.features.snapshot.pipeline import (
    BulkRosterFetcher,
    ClassificationEngine,
    LedgerPager,
    MemberResolver,
    OrphanDetector,
    ReverseReconciler,
    RosterSource,
    assemble_report,
    deduplicate_records,
)
from app.features.snapshot.pipeline.roster_fetcher import ProgressCallback
from app.features.snapshot.repository.ledger_repository import LedgerStore, ledger_repository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class SnapshotService:
    def __init__(
        self,
        roster_source: RosterSource,
        ledger_store: LedgerStore,
        role_map: BadgeRoleMap,
        *,
        ledger_page_size: int = 1000,
        roster_page_size: int = 1000,
        batch_delay_seconds: float = 1.0,
        reconcile_batch_size: int = 50,
        reconcile_concurrency: int = 10,
    ):
        self.roster_source = roster_source
        self.ledger_store = ledger_store
        self.role_map = role_map
        self.ledger_pager = LedgerPager(
            ledger_store, page_size=ledger_page_size, delay_seconds=batch_delay_seconds
        )
        self.roster_fetcher = BulkRosterFetcher(
            roster_source,
            page_size=roster_page_size,
            delay_seconds=batch_delay_seconds,
            detail_batch_size=reconcile_batch_size,
            detail_concurrency=reconcile_concurrency,
        )
        self.classifier = ClassificationEngine(role_map)
        self.orphan_detector = OrphanDetector(role_map)
        self.reconciler = ReverseReconciler(
            role_map,
            ledger_store,
            batch_size=reconcile_batch_size,
            delay_seconds=batch_delay_seconds,
            concurrency=reconcile_concurrency,
        )

    @classmethod
    def from_settings(cls, roster_source: RosterSource, ledger_store: LedgerStore | None = None):
        return cls(
            roster_source,
            ledger_store or ledger_repository,
            settings.badge_role_map(),
            ledger_page_size=settings.SNAPSHOT_LEDGER_PAGE_SIZE,
            roster_page_size=settings.SNAPSHOT_ROSTER_PAGE_SIZE,
            batch_delay_seconds=settings.SNAPSHOT_BATCH_DELAY_SECONDS,
            reconcile_batch_size=settings.SNAPSHOT_RECONCILE_BATCH_SIZE,
            reconcile_concurrency=settings.SNAPSHOT_RECONCILE_CONCURRENCY,
        )

    async def _load_sources(
        self,
        community_id: str,
        roster_members: Iterable[Identity] | None,
        progress: ProgressCallback | None,
    ) -> tuple[list, dict[str, Identity]]:
        async def _roster() -> dict[str, Identity]:
            if roster_members is not None:
                return {identity.identity_id: identity for identity in roster_members}
            return await self.roster_fetcher.fetch_all(community_id, progress)

        ledger_result, roster_result = await asyncio.gather(
            self.ledger_pager.fetch_all(LedgerFilter(address_not_null=True), progress),
            _roster(),
            return_exceptions=True,
        )

        for source, result in (("ledger", ledger_result), ("roster", roster_result)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "Snapshot source unavailable",
                    source=source,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                raise SnapshotSourceUnavailableError(
                    f"Failed to read {source}: {result}", source=source, operation="load_sources"
                ) from result

        return ledger_result, roster_result

    async def _build_resolver(
        self, community_id: str, roster: dict[str, Identity], records: list[LedgerRecord]
    ) -> MemberResolver:
        """
        Extend the bulk roster with batched lookups of wallet-linked ledger
        ids it does not contain, e.g. members who joined after the listing.
        """
        missing = [
            record.identity_id
            for record in records
            if record.identity_id and record.has_wallet and record.identity_id not in roster
        ]
        known = dict(roster)
        if missing:
            known.update(await self.roster_fetcher.fetch_members(community_id, missing))
            logger.info(
                "Resolved ledger ids missing from roster",
                missing=len(missing),
                found=len(known) - len(roster),
            )
        return MemberResolver(self.roster_source, community_id, known)

    async def generate_snapshot(
        self,
        community_id: str,
        *,
        roster_members: Iterable[Identity] | None = None,
        include_identity_id: bool = True,
        include_points: bool = False,
        progress: ProgressCallback | None = None,
    ) -> SnapshotResult:
        """
        Build the membership snapshot for one community.

        Args:
            community_id: Discord guild id
            roster_members: Pre-fetched roster; fetched from Discord when None
            include_identity_id: Prepend the identity_id column
            include_points: Add the points column after the wallet address
            progress: Optional async callback receiving progress messages

        Returns:
            SnapshotResult with the CSV text and run statistics

        Raises:
            SnapshotSourceUnavailableError: If the ledger or roster cannot be read
        """
        logger.info(
            "Starting snapshot",
            community_id=community_id,
            roster_supplied=roster_members is not None,
            include_identity_id=include_identity_id,
        )

        records, roster = await self._load_sources(community_id, roster_members, progress)
        unique_records = deduplicate_records(records)
        logger.info(
            "Ledger records deduplicated",
            fetched=len(records),
            unique=len(unique_records),
            roster_size=len(roster),
        )

        if progress:
            await progress(f"Creating CSV file with {len(unique_records)} users...")

        state = RunState()
        stats = SnapshotStats()
        resolver = await self._build_resolver(community_id, roster, unique_records)

        await self.classifier.classify(unique_records, resolver, state, stats)
        self.orphan_detector.detect(roster.values(), state, stats)
        stats.reconciled = await self.reconciler.reconcile(state, resolver)

        result = assemble_report(
            state,
            stats,
            include_identity_id=include_identity_id,
            include_points=include_points,
        )

        logger.info(
            "Snapshot generated",
            community_id=community_id,
            row_count=result.row_count,
            total_processed=result.total_processed,
            reconciled=stats.reconciled,
        )
        return result
