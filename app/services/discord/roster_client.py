"""
Discord REST client for guild roster reads.

Low-level client used by the snapshot pipeline to list guild members and
look up individual members. Only read endpoints are used.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import ValidationError

from app.features.snapshot.domain import Identity, RosterPage
from app.infrastructure.observability.logging import get_logger
from app.models.api.discord_response import DiscordMemberPayload, DiscordRateLimitPayload

logger = get_logger(__name__)

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
MAX_MEMBERS_PER_PAGE = 1000

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
MAX_RATE_LIMIT_RETRIES = 5
BACKOFF_FACTOR = 1
RETRY_STATUS_CODES = {500, 502, 503, 504}


class DiscordApiError(Exception):
    """Custom exception for Discord API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: int | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.operation = operation


class DiscordRosterClient:
    """
    Read-only Discord guild member client.

    Handles bot authorization, 429 rate limit responses (honouring
    `retry_after`) and retry with backoff on transient failures.
    """

    def __init__(
        self,
        bot_token: str,
        base_url: str = DISCORD_API_BASE_URL,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not bot_token:
            raise ValueError("Discord bot token is required")
        self._client = self._create_client(bot_token, base_url, transport)
        self._sleep = sleep

    def _create_client(
        self, bot_token: str, base_url: str, transport: httpx.AsyncBaseTransport | None
    ) -> httpx.AsyncClient:
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        headers = {
            "Authorization": f"Bot {bot_token}",
            "Accept": "application/json",
            "User-Agent": "CommunitySnapshot/1.0",
        }
        return httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            limits=limits,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRosterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with rate limit handling and backoff."""
        attempt = 0
        rate_limited = 0
        while True:
            attempt += 1
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Discord API request error, retrying",
                    path=path,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await self._sleep(backoff)
                continue

            if response.status_code == 429 and rate_limited < MAX_RATE_LIMIT_RETRIES:
                rate_limited += 1
                attempt -= 1
                retry_after = self._retry_after(response)
                logger.info(
                    "Discord API rate limited",
                    path=path,
                    retry_after=retry_after,
                    rate_limited=rate_limited,
                )
                await self._sleep(retry_after)
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Discord API retrying request",
                    path=path,
                    attempt=attempt,
                    status_code=response.status_code,
                    backoff_seconds=backoff,
                )
                await self._sleep(backoff)
                continue

            return response

    def _retry_after(self, response: httpx.Response) -> float:
        try:
            return max(0.0, DiscordRateLimitPayload.model_validate(response.json()).retry_after)
        except (ValueError, ValidationError):
            header = response.headers.get("Retry-After")
            try:
                return max(0.0, float(header)) if header else 1.0
            except ValueError:
                return 1.0

    def _handle_api_response(self, response: httpx.Response, operation: str) -> Any:
        """
        Parse a successful response or raise DiscordApiError.
        """
        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                logger.error(f"Failed to parse Discord {operation} response", error=str(e))
                raise DiscordApiError(
                    f"Invalid response format: {e}", operation=operation
                ) from e

        error_code = None
        error_message = response.text[:200] if response.text else ""
        try:
            body = response.json()
            if isinstance(body, dict):
                error_code = body.get("code")
                error_message = body.get("message", error_message)
        except ValueError:
            pass

        logger.error(
            f"Discord {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )
        raise DiscordApiError(
            f"Discord API error (HTTP {response.status_code}): {error_message}",
            status_code=response.status_code,
            error_code=error_code,
            operation=operation,
        )

    def _parse_member(self, payload: Any) -> Identity | None:
        try:
            return DiscordMemberPayload.model_validate(payload).to_identity()
        except ValidationError as e:
            logger.warning("Skipping malformed guild member payload", error=str(e))
            return None

    async def list_members(
        self, community_id: str, *, after: str | None = None, limit: int = MAX_MEMBERS_PER_PAGE
    ) -> RosterPage:
        """
        List one page of guild members ordered by user id.

        Malformed entries are dropped from `members` but still counted in
        `raw_count`, and `last_id` is the highest user id on the page as
        served, so callers can keep paging past them.

        Args:
            community_id: Discord guild id
            after: Return members with a user id greater than this one
            limit: Page size (1-1000)

        Raises:
            DiscordApiError: If the listing fails
        """
        if not 1 <= limit <= MAX_MEMBERS_PER_PAGE:
            raise ValueError(f"limit must be between 1 and {MAX_MEMBERS_PER_PAGE}")

        params: dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after

        response = await self._request_with_retry(
            "GET", f"/guilds/{community_id}/members", params=params
        )
        data = self._handle_api_response(response, "list_members")
        if not isinstance(data, list):
            raise DiscordApiError("Unexpected member listing payload", operation="list_members")

        members = tuple(identity for identity in map(self._parse_member, data) if identity)
        raw_ids = [user_id for user_id in map(_raw_user_id, data) if user_id]
        last_id = max(raw_ids, key=int) if raw_ids else None
        logger.debug(
            "Guild member page fetched",
            community_id=community_id,
            after=after,
            raw_count=len(data),
            member_count=len(members),
        )
        return RosterPage(members=members, raw_count=len(data), last_id=last_id)

    async def get_member(self, community_id: str, identity_id: str) -> Identity | None:
        """
        Fetch a single guild member.

        Returns:
            Identity, or None when the user is not (or no longer) a member
        """
        response = await self._request_with_retry(
            "GET", f"/guilds/{community_id}/members/{identity_id}"
        )
        if response.status_code == 404:
            return None
        data = self._handle_api_response(response, "get_member")
        return self._parse_member(data)


def _raw_user_id(payload: Any) -> str | None:
    """User id of a listing entry, read without full validation."""
    if not isinstance(payload, dict) or not isinstance(payload.get("user"), dict):
        return None
    user_id = str(payload["user"].get("id") or "")
    return user_id if user_id.isdigit() else None
