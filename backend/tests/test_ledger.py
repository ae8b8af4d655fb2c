"""Empty-bucket balance rules of LedgerEngine, against the in-process store."""
import asyncio
from datetime import datetime, timezone

import pytest

from core.errors import InsufficientEmptyBuckets, MalformedRequest, NegativeQuantity
from core.ledger import STATUS_KEY, LedgerEngine, format_timestamp, record_key
from core.records import RecordQueryService
from db.store import MemoryKeyValueStore


class SpyStore(MemoryKeyValueStore):
    def __init__(self):
        super().__init__()
        self.calls = []

    async def get(self, key):
        self.calls.append(("get", key))
        return await super().get(key)

    async def put(self, key, value):
        self.calls.append(("put", key))
        await super().put(key, value)

    async def list_keys(self, prefix=""):
        self.calls.append(("list", prefix))
        return await super().list_keys(prefix)


class StatusWriteFails(MemoryKeyValueStore):
    async def put(self, key, value):
        if key == STATUS_KEY:
            raise RuntimeError("status write lost")
        await super().put(key, value)


def test_scenario_from_ten_buckets(memory_store, clock):
    ledger = LedgerEngine(memory_store, clock=clock)

    async def scenario():
        await ledger.set_initial_buckets(10)
        record, balance = await ledger.record_delivery(3, 2, 4)
        assert balance == 11
        assert record.remaining_empty_buckets == 11
        assert record.total_delivered == 5
        assert record.empty_buckets_taken == 4

        with pytest.raises(InsufficientEmptyBuckets) as exc_info:
            await ledger.record_delivery(0, 0, 20)
        assert exc_info.value.available == 11
        assert "11" in exc_info.value.message

        status = await ledger.get_status()
        assert status.empty_buckets == 11
        assert len(await RecordQueryService(memory_store).list_records()) == 1

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "start, normal, nongfu, taken",
    [
        (0, 0, 0, 0),
        (0, 4, 1, 5),
        (7, 0, 0, 7),
        (3, 10, 2, 0),
        (100, 1, 1, 50),
    ],
)
def test_balance_follows_formula(memory_store, clock, start, normal, nongfu, taken):
    ledger = LedgerEngine(memory_store, clock=clock)

    async def run():
        await ledger.set_initial_buckets(start)
        record, balance = await ledger.record_delivery(normal, nongfu, taken)
        return record, balance, await ledger.get_status()

    record, balance, status = asyncio.run(run())
    expected = start + normal + nongfu - taken
    assert balance == expected
    assert record.remaining_empty_buckets == expected
    assert status.empty_buckets == expected


@pytest.mark.parametrize("start, normal, nongfu, taken", [(0, 0, 0, 1), (2, 1, 0, 4), (5, 0, 0, 6)])
def test_overdraw_changes_nothing(memory_store, clock, start, normal, nongfu, taken):
    ledger = LedgerEngine(memory_store, clock=clock)

    async def run():
        await ledger.set_initial_buckets(start)
        keys_before = await memory_store.list_keys()
        with pytest.raises(InsufficientEmptyBuckets) as exc_info:
            await ledger.record_delivery(normal, nongfu, taken)
        return exc_info.value, keys_before, await memory_store.list_keys(), await ledger.get_status()

    err, keys_before, keys_after, status = asyncio.run(run())
    assert err.available == start + normal + nongfu
    assert keys_after == keys_before
    assert status.empty_buckets == start


@pytest.mark.parametrize("args", [(-1, 0, 0), (0, -2, 0), (0, 0, -3)])
def test_negative_delivery_rejected_before_store_access(clock, args):
    store = SpyStore()
    ledger = LedgerEngine(store, clock=clock)
    with pytest.raises(NegativeQuantity):
        asyncio.run(ledger.record_delivery(*args))
    assert store.calls == []


@pytest.mark.parametrize("bad", ["3", 1.5, None, True])
def test_non_integer_delivery_rejected(clock, bad):
    store = SpyStore()
    ledger = LedgerEngine(store, clock=clock)
    with pytest.raises(MalformedRequest):
        asyncio.run(ledger.record_delivery(bad, 0, 0))
    assert store.calls == []


def test_negative_initial_buckets_rejected(clock):
    store = SpyStore()
    ledger = LedgerEngine(store, clock=clock)
    with pytest.raises(NegativeQuantity):
        asyncio.run(ledger.set_initial_buckets(-5))
    assert store.calls == []


def test_set_initial_overwrites_any_previous_balance(memory_store, clock):
    ledger = LedgerEngine(memory_store, clock=clock)

    async def run():
        await ledger.set_initial_buckets(40)
        await ledger.record_delivery(2, 2, 0)
        await ledger.set_initial_buckets(5)
        first = await ledger.get_status()
        await ledger.set_initial_buckets(5)
        second = await ledger.get_status()
        records = await RecordQueryService(memory_store).list_records()
        return first, second, records

    first, second, records = asyncio.run(run())
    assert first.empty_buckets == 5
    assert second.empty_buckets == 5
    # records keep the balance they were applied with
    assert [r.remaining_empty_buckets for r in records] == [44]


def test_status_defaults_to_zero(memory_store):
    status = asyncio.run(LedgerEngine(memory_store).get_status())
    assert status.empty_buckets == 0


def test_clear_all_resets_status_and_records(memory_store, clock):
    ledger = LedgerEngine(memory_store, clock=clock)

    async def run():
        await ledger.set_initial_buckets(3)
        await ledger.record_delivery(1, 0, 0)
        await ledger.record_delivery(0, 1, 2)
        deleted = await ledger.clear_all()
        again = await ledger.clear_all()
        return deleted, again, await ledger.get_status(), await RecordQueryService(memory_store).list_records()

    deleted, again, status, records = asyncio.run(run())
    assert deleted == 3
    assert again == 0
    assert status.empty_buckets == 0
    assert records == []


def test_record_is_written_before_status(clock):
    store = StatusWriteFails()
    ledger = LedgerEngine(store, clock=clock)
    with pytest.raises(RuntimeError):
        asyncio.run(ledger.record_delivery(2, 0, 0))

    keys = asyncio.run(store.list_keys())
    assert len(keys) == 1 and keys[0].startswith("delivery_")
    assert asyncio.run(ledger.get_status()).empty_buckets == 0


def test_record_key_and_timestamp_format(memory_store):
    instant = datetime(2026, 10, 18, 8, 15, 2, 123456, tzinfo=timezone.utc)
    ledger = LedgerEngine(memory_store, clock=lambda: instant)
    record, _ = asyncio.run(ledger.record_delivery(1, 0, 0))

    assert record.timestamp == "2026-10-18T08:15:02.123456Z"
    assert record.date.isoformat() == "2026-10-18"
    assert asyncio.run(memory_store.list_keys("delivery_")) == ["delivery_2026-10-18T08_15_02_123456Z"]


def test_same_instant_gets_distinct_keys(memory_store):
    instant = datetime(2026, 10, 18, 8, 0, 0, tzinfo=timezone.utc)
    ledger = LedgerEngine(memory_store, clock=lambda: instant)

    async def run():
        first, _ = await ledger.record_delivery(1, 0, 0)
        second, _ = await ledger.record_delivery(1, 0, 0)
        return first, second

    first, second = asyncio.run(run())
    assert first.timestamp == "2026-10-18T08:00:00.000000Z"
    assert second.timestamp == "2026-10-18T08:00:00.000001Z"
    assert len(asyncio.run(memory_store.list_keys("delivery_"))) == 2


def test_record_date_uses_ledger_timezone(memory_store):
    instant = datetime(2026, 10, 18, 23, 30, 0, tzinfo=timezone.utc)
    ledger = LedgerEngine(memory_store, clock=lambda: instant, tz="Asia/Shanghai")
    record, _ = asyncio.run(ledger.record_delivery(1, 0, 0))
    assert record.date.isoformat() == "2026-10-19"
    assert record.timestamp.startswith("2026-10-18T23:30:00")


def test_key_order_matches_time_order():
    earlier = format_timestamp(datetime(2026, 9, 30, 23, 59, 59, 999999, tzinfo=timezone.utc))
    later = format_timestamp(datetime(2026, 10, 1, 0, 0, 0, tzinfo=timezone.utc))
    assert record_key(earlier) < record_key(later)
