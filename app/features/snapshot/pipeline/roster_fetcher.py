"""
Bulk roster retrieval and per-member resolution.
"""

from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

import httpx

from app.features.snapshot.domain import Identity, RosterPage
from app.infrastructure.observability.logging import get_logger
from app.services.discord.roster_client import DiscordApiError
from app.utils.batching import RateLimitedBatcher

logger = get_logger(__name__)

ProgressCallback = Callable[[str], Awaitable[None]]

# Errors that mean "this one member could not be looked up"
LOOKUP_ERRORS = (DiscordApiError, httpx.HTTPError)


class RosterSource(Protocol):
    async def list_members(
        self, community_id: str, *, after: str | None = None, limit: int = 1000
    ) -> RosterPage: ...

    async def get_member(self, community_id: str, identity_id: str) -> Identity | None: ...


class BulkRosterFetcher:
    """Loads the full guild roster into memory."""

    def __init__(
        self,
        source: RosterSource,
        *,
        page_size: int = 1000,
        delay_seconds: float = 1.0,
        detail_batch_size: int = 50,
        detail_concurrency: int = 5,
    ):
        self.source = source
        self.page_size = page_size
        self.detail_concurrency = detail_concurrency
        self._batcher = RateLimitedBatcher(detail_batch_size, delay_seconds)

    async def fetch_all(
        self, community_id: str, progress: ProgressCallback | None = None
    ) -> dict[str, Identity]:
        """
        Page through the member listing until a short page is returned.

        Page length and the `after` cursor come from the page as served, so
        entries dropped as malformed never end the listing early. Listing
        errors propagate: without a roster there is no snapshot.
        """
        members: dict[str, Identity] = {}
        after: str | None = None
        pages = 0
        skipped = 0

        while True:
            page = await self.source.list_members(community_id, after=after, limit=self.page_size)
            pages += 1
            for identity in page.members:
                members[identity.identity_id] = identity
            skipped += page.raw_count - len(page.members)

            if page.raw_count < self.page_size:
                break

            if page.last_id is None or (after is not None and int(page.last_id) <= int(after)):
                raise DiscordApiError(
                    f"Member listing cursor did not advance past {after}",
                    operation="list_members",
                )
            after = page.last_id
            if progress:
                await progress(f"Fetching roster... Retrieved {len(members)} members so far.")
            await self._batcher.pause()

        logger.info(
            "Roster fetched",
            community_id=community_id,
            member_count=len(members),
            skipped_entries=skipped,
            pages=pages,
        )
        return members

    async def fetch_members(
        self, community_id: str, identity_ids: Iterable[str]
    ) -> dict[str, Identity]:
        """
        Look up specific members one by one, in rate-limited batches.

        Members that cannot be fetched (left the guild, lookup error) are
        simply absent from the result.
        """
        unique_ids = list(dict.fromkeys(identity_ids))
        if not unique_ids:
            return {}

        async def _lookup(identity_id: str) -> Identity | None:
            return await self.source.get_member(community_id, identity_id)

        outcomes = await self._batcher.run(
            unique_ids, _lookup, concurrency=self.detail_concurrency
        )

        members: dict[str, Identity] = {}
        failures = 0
        for outcome in outcomes:
            if not outcome.ok:
                failures += 1
                logger.debug(
                    "Member lookup failed",
                    identity_id=outcome.item,
                    error=str(outcome.error),
                )
                continue
            if outcome.result is not None:
                members[outcome.result.identity_id] = outcome.result

        logger.info(
            "Roster members fetched",
            requested=len(unique_ids),
            found=len(members),
            failures=failures,
        )
        return members


class MemberResolver:
    """
    Resolves identity ids to roster members.

    `resolve` only consults the in-memory roster, which callers extend with
    `BulkRosterFetcher.fetch_members` for ids the bulk listing missed.
    `refresh` asks the roster source for the member's current state; any
    lookup failure resolves to None.
    """

    def __init__(self, source: RosterSource, community_id: str, roster: dict[str, Identity]):
        self.source = source
        self.community_id = community_id
        self.roster = roster

    def resolve(self, identity_id: str) -> Identity | None:
        return self.roster.get(identity_id)

    async def refresh(self, identity_id: str) -> Identity | None:
        try:
            return await self.source.get_member(self.community_id, identity_id)
        except LOOKUP_ERRORS as e:
            logger.debug("Member resolution failed", identity_id=identity_id, error=str(e))
            return None
