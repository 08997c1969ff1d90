import httpx
import pytest

from app.services.discord.roster_client import DiscordApiError, DiscordRosterClient


def _member(user_id, roles=(), nick=None, username=None):
    return {
        "user": {"id": user_id, "username": username or f"user{user_id}", "global_name": None},
        "nick": nick,
        "roles": list(roles),
    }


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _client(handler, sleep=None):
    return DiscordRosterClient(
        "test-token",
        "https://discord.test/api/v10",
        transport=httpx.MockTransport(handler),
        sleep=sleep or RecordingSleep(),
    )


def test_requires_bot_token():
    with pytest.raises(ValueError):
        DiscordRosterClient("")


@pytest.mark.asyncio
async def test_list_members_sends_paging_params():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json=[_member("11", roles=["r1"], nick="Nick"), _member("12")]
        )

    async with _client(handler) as client:
        page = await client.list_members("guild-1", after="10", limit=2)

    request = seen[0]
    assert request.url.path == "/api/v10/guilds/guild-1/members"
    assert request.url.params["limit"] == "2"
    assert request.url.params["after"] == "10"
    assert request.headers["Authorization"] == "Bot test-token"
    members = page.members
    assert [m.identity_id for m in members] == ["11", "12"]
    assert (page.raw_count, page.last_id) == (2, "12")
    assert members[0].display_name == "Nick"
    assert members[0].role_ids == frozenset({"r1"})
    assert members[1].display_name == "user12"


@pytest.mark.asyncio
async def test_list_members_skips_malformed_entries():
    def handler(request):
        malformed = [{"nick": "no user"}, {"user": {"id": "9"}, "roles": 7}]
        return httpx.Response(200, json=[_member("5"), *malformed])

    async with _client(handler) as client:
        page = await client.list_members("g")

    assert [m.identity_id for m in page.members] == ["5"]
    assert page.raw_count == 3
    assert page.last_id == "9"


@pytest.mark.asyncio
async def test_list_members_validates_limit():
    async with _client(lambda request: httpx.Response(200, json=[])) as client:
        with pytest.raises(ValueError):
            await client.list_members("g", limit=0)


@pytest.mark.asyncio
async def test_get_member_not_found_returns_none():
    async with _client(lambda request: httpx.Response(404, json={"code": 10007})) as client:
        assert await client.get_member("g", "1") is None


@pytest.mark.asyncio
async def test_rate_limit_honours_retry_after():
    responses = iter(
        [
            httpx.Response(429, json={"retry_after": 2.5, "global": False}),
            httpx.Response(200, json=_member("3", roles=["r"])),
        ]
    )
    sleep = RecordingSleep()

    async with _client(lambda request: next(responses), sleep) as client:
        identity = await client.get_member("g", "3")

    assert identity.identity_id == "3"
    assert sleep.calls == [2.5]


@pytest.mark.asyncio
async def test_server_errors_retry_then_raise():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"message": "unavailable", "code": 0})

    sleep = RecordingSleep()
    async with _client(handler, sleep) as client:
        with pytest.raises(DiscordApiError) as exc_info:
            await client.list_members("g")

    assert len(calls) == 3
    assert sleep.calls == [1, 2]
    assert exc_info.value.status_code == 503
    assert exc_info.value.operation == "list_members"


@pytest.mark.asyncio
async def test_forbidden_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(403, json={"message": "Missing Access", "code": 50001})

    async with _client(handler) as client:
        with pytest.raises(DiscordApiError) as exc_info:
            await client.get_member("g", "1")

    assert len(calls) == 1
    assert exc_info.value.error_code == 50001


@pytest.mark.asyncio
async def test_non_list_listing_payload_rejected():
    async with _client(lambda request: httpx.Response(200, json={"members": []})) as client:
        with pytest.raises(DiscordApiError):
            await client.list_members("g")
