"""
Paginated bulk read of the points ledger.
"""

from app.features.snapshot.domain import LedgerFilter, LedgerRecord
from app.features.snapshot.repository.ledger_repository import LedgerStore
from app.infrastructure.observability.logging import get_logger
from app.utils.batching import RateLimitedBatcher

from .roster_fetcher import ProgressCallback

logger = get_logger(__name__)


class LedgerPager:
    """Reads every ledger record matching a filter, page by page."""

    def __init__(self, store: LedgerStore, *, page_size: int = 1000, delay_seconds: float = 1.0):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.store = store
        self.page_size = page_size
        self._batcher = RateLimitedBatcher(page_size, delay_seconds)

    async def fetch_all(
        self, ledger_filter: LedgerFilter, progress: ProgressCallback | None = None
    ) -> list[LedgerRecord]:
        page = 0
        records, total = await self.store.query_records(
            ledger_filter, offset=0, limit=self.page_size
        )
        collected = list(records)

        while (page + 1) * self.page_size < total:
            await self._batcher.pause()
            page += 1
            chunk, _ = await self.store.query_records(
                ledger_filter, offset=page * self.page_size, limit=self.page_size
            )
            collected.extend(chunk)
            if progress:
                await progress(f"Fetching data... Retrieved {len(collected)} users so far.")

        logger.info(
            "Ledger records fetched",
            record_count=len(collected),
            total_count=total,
            pages=page + 1,
        )
        return collected
