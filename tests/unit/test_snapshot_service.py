import pytest

from conftest import FakeLedger, FakeRoster, member, record

from app.features.snapshot.domain import BadgeKind
from app.features.snapshot.errors import LedgerStoreError, SnapshotSourceUnavailableError
from app.features.snapshot.services.snapshot_service import SnapshotService
from app.services.discord.roster_client import DiscordApiError
from app.utils.batching import RateLimitedBatcher


def _service(roster, ledger, role_map, **overrides):
    options = {"batch_delay_seconds": 0, "ledger_page_size": 2, "roster_page_size": 2}
    options.update(overrides)
    return SnapshotService(roster, ledger, role_map, **options)


def _lines(result):
    return result.report.split("\n")[1:]


@pytest.mark.asyncio
async def test_scenario_wallet_linked_holder(role_map):
    roster = FakeRoster([member("1", BadgeKind.WL)])
    ledger = FakeLedger([record("1", "0xabc", 50)])

    result = await _service(roster, ledger, role_map).generate_snapshot("guild")

    assert _lines(result) == ["1,0xabc,Y,N,N,N,N,N"]
    assert result.stats.totals[BadgeKind.WL] == 1
    assert result.stats.as_dict()["discordStats"]["totalWL"] == 1
    assert result.total_processed == 1


@pytest.mark.asyncio
async def test_scenario_orphan_then_late_wallet(role_map):
    roster = FakeRoster([member("2", BadgeKind.ML)])
    ledger = FakeLedger([], late_records=[record("2", "0xdef")])

    result = await _service(roster, ledger, role_map).generate_snapshot("guild")

    assert _lines(result) == ["2,0xdef,N,N,Y,N,N,N"]
    assert result.stats.as_dict()["discordStats"]["usersWithRoleNoWallet"]["ml"] == 1
    assert result.stats.reconciled == 1
    assert result.total_processed == 0


@pytest.mark.asyncio
async def test_scenario_orphan_without_late_wallet(role_map):
    roster = FakeRoster([member("2", BadgeKind.ML)])

    result = await _service(roster, FakeLedger(), role_map).generate_snapshot("guild")

    assert _lines(result) == ["2,NO_WALLET,N,N,Y,N,N,N"]
    assert result.stats.no_wallet[BadgeKind.ML] == 1


@pytest.mark.asyncio
async def test_scenario_duplicate_records_keep_addressed_one(role_map):
    roster = FakeRoster([member("3", BadgeKind.FREE_MINT)])
    ledger = FakeLedger([record("3", None, 10), record("3", "0x1", 5)])

    result = await _service(roster, ledger, role_map).generate_snapshot(
        "guild", include_identity_id=False, include_points=True
    )

    assert _lines(result) == ["0x1,5,N,N,N,N,Y,N"]


@pytest.mark.asyncio
async def test_scenario_departed_member_is_not_reported(role_map):
    roster = FakeRoster([member("1", BadgeKind.WL)], departed_ids={"4"})
    ledger = FakeLedger([record("1", "0x1"), record("4", "0x4", 99)])

    result = await _service(roster, ledger, role_map).generate_snapshot("guild")

    assert [line.split(",")[0] for line in _lines(result)] == ["1"]
    assert roster.get_calls == ["4"]
    assert sum(result.stats.totals.values()) == 1
    assert sum(result.stats.no_wallet.values()) == 0


@pytest.mark.asyncio
async def test_pages_through_ledger_and_roster(role_map):
    members = [member(str(i), BadgeKind.WL) for i in range(1, 6)]
    roster = FakeRoster(members)
    ledger = FakeLedger([record(str(i), f"0x{i}", i) for i in range(1, 6)])
    messages = []

    async def progress(message):
        messages.append(message)

    result = await _service(roster, ledger, role_map).generate_snapshot("guild", progress=progress)

    assert ledger.query_calls == [(0, 2), (2, 2), (4, 2)]
    assert roster.list_calls == [None, "2", "4"]
    assert result.row_count == 5
    assert result.total_processed == 5
    assert roster.get_calls == []
    assert any(message.startswith("Creating CSV file") for message in messages)


@pytest.mark.asyncio
async def test_supplied_roster_skips_listing(role_map):
    roster = FakeRoster()
    ledger = FakeLedger([record("1", "0x1")])

    result = await _service(roster, ledger, role_map).generate_snapshot(
        "guild", roster_members=[member("1", BadgeKind.WL_WINNER)]
    )

    assert roster.list_calls == []
    assert _lines(result) == ["1,0x1,N,Y,N,N,N,N"]


@pytest.mark.asyncio
async def test_ledger_failure_aborts_run(role_map):
    ledger = FakeLedger()
    ledger.query_error = LedgerStoreError("down")

    with pytest.raises(SnapshotSourceUnavailableError) as exc_info:
        await _service(FakeRoster(), ledger, role_map).generate_snapshot("guild")

    assert exc_info.value.source == "ledger"
    assert exc_info.value.recoverable is False


@pytest.mark.asyncio
async def test_roster_failure_aborts_run(role_map):
    roster = FakeRoster()
    roster.list_error = DiscordApiError("forbidden", status_code=403)

    with pytest.raises(SnapshotSourceUnavailableError) as exc_info:
        await _service(roster, FakeLedger(), role_map).generate_snapshot("guild")

    assert exc_info.value.source == "roster"


@pytest.mark.asyncio
async def test_every_row_has_a_badge_and_sets_are_disjoint(role_map):
    roster = FakeRoster(
        [
            member("1", BadgeKind.WL),
            member("2"),
            member("3", BadgeKind.ML_WINNER),
            member("4", BadgeKind.FREE_MINT_WINNER),
        ]
    )
    ledger = FakeLedger([record("1", "0x1"), record("2", "0x2"), record("3", None)])

    result = await _service(roster, ledger, role_map).generate_snapshot("guild")

    rows = [line.split(",") for line in _lines(result)]
    assert {row[0] for row in rows} == {"1", "3", "4"}
    assert all("Y" in row[2:] for row in rows)
    assert result.total_processed == 1


@pytest.mark.asyncio
async def test_ledger_ids_missing_from_roster_are_fetched_in_batches(role_map):
    late = [member(str(i), BadgeKind.ML) for i in range(10, 15)]
    roster = FakeRoster([member("1", BadgeKind.WL), *late], failing_ids={"12"})
    ledger = FakeLedger(
        [record("1", "0x1")] + [record(m.identity_id, f"0x{m.identity_id}") for m in late]
    )

    result = await _service(roster, ledger, role_map, reconcile_batch_size=2).generate_snapshot(
        "guild", roster_members=[member("1", BadgeKind.WL)]
    )

    assert sorted(roster.get_calls) == ["10", "11", "12", "13", "14"]
    assert {line.split(",")[0] for line in _lines(result)} == {"1", "10", "11", "13", "14"}
    assert result.total_processed == 5
    assert result.stats.totals[BadgeKind.ML] == 4


@pytest.mark.asyncio
async def test_batched_member_lookups_pause_between_batches(role_map):
    roster = FakeRoster([member(str(i), BadgeKind.WL) for i in range(1, 6)])
    ledger = FakeLedger([record(str(i), f"0x{i}") for i in range(1, 6)])
    service = _service(roster, ledger, role_map, reconcile_batch_size=2)
    sleeps = []

    async def recording_sleep(seconds):
        sleeps.append(seconds)

    service.roster_fetcher._batcher = RateLimitedBatcher(2, 0.25, sleep=recording_sleep)

    await service.generate_snapshot("guild", roster_members=[])

    assert sorted(roster.get_calls) == ["1", "2", "3", "4", "5"]
    assert sleeps == [0.25, 0.25]
