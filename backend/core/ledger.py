"""
Empty-bucket ledger.

Every delivery adds the delivered buckets to the empty-bucket balance and
subtracts the empties the driver takes away. The balance lives under a single
status key; every accepted delivery is also kept as an immutable record.

Status and records are loaded and saved on every call, never cached, so the
store's own consistency behaviour shows through unchanged. Two concurrent
deliveries can still race on the status read (last write wins); there is no
locking here.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from core.config import settings
from core.errors import InsufficientEmptyBuckets, MalformedRequest, NegativeQuantity
from db.store import KeyValueStore
from schemas.deliveries import DeliveryRecord, InventoryStatus

logger = logging.getLogger(__name__)

STATUS_KEY = "current_status"
RECORD_KEY_PREFIX = "delivery_"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(instant: datetime) -> str:
    """Fixed-width UTC ISO-8601 with microseconds, e.g. 2026-10-18T08:15:02.123456Z."""
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def record_key(timestamp: str) -> str:
    # Same width for every timestamp, so key order is chronological order
    return RECORD_KEY_PREFIX + timestamp.replace(":", "_").replace(".", "_")


def _require_quantity(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedRequest(f"{name} must be an integer")
    if value < 0:
        raise NegativeQuantity(name, value)
    return value


class LedgerEngine:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        tz: Optional[str] = None,
    ):
        self.store = store
        self.clock = clock or _utc_now
        self.tz = ZoneInfo(tz or settings.ledger_timezone)

    async def get_status(self) -> InventoryStatus:
        raw = await self.store.get(STATUS_KEY)
        if not raw:
            return InventoryStatus(empty_buckets=0)
        return InventoryStatus.model_validate_json(raw)

    async def _save_status(self, status: InventoryStatus) -> None:
        await self.store.put(STATUS_KEY, status.model_dump_json(by_alias=True))

    async def record_delivery(
        self,
        normal_water: int,
        nongfu_water: int,
        empty_buckets_taken: int,
    ) -> Tuple[DeliveryRecord, int]:
        """
        Apply one delivery and persist it.

        Returns the stored record and the new empty-bucket balance. Raises
        NegativeQuantity / MalformedRequest before touching the store and
        InsufficientEmptyBuckets (nothing written) when the driver would take
        more empties than are on hand.
        """
        normal_water = _require_quantity("normalWater", normal_water)
        nongfu_water = _require_quantity("nongfuWater", nongfu_water)
        empty_buckets_taken = _require_quantity("emptyBuckets", empty_buckets_taken)

        status = await self.get_status()
        delivered = normal_water + nongfu_water
        new_balance = status.empty_buckets + delivered - empty_buckets_taken

        if new_balance < 0:
            available = new_balance + empty_buckets_taken
            logger.warning(
                "Delivery rejected: %d empty buckets requested, %d available",
                empty_buckets_taken, available,
            )
            raise InsufficientEmptyBuckets(available=available, requested=empty_buckets_taken)

        instant, key = await self._fresh_record_slot()
        record = DeliveryRecord(
            date=instant.astimezone(self.tz).date(),
            timestamp=format_timestamp(instant),
            normal_water=normal_water,
            nongfu_water=nongfu_water,
            total_delivered=delivered,
            empty_buckets_taken=empty_buckets_taken,
            remaining_empty_buckets=new_balance,
        )

        # Record first, status second: a crash in between leaves an orphan
        # record, never a balance change without its record.
        await self.store.put(key, record.model_dump_json(by_alias=True))
        await self._save_status(InventoryStatus(empty_buckets=new_balance))

        logger.info(
            "Delivery %s: +%d delivered, -%d empties taken, balance %d -> %d",
            record.timestamp, delivered, empty_buckets_taken, status.empty_buckets, new_balance,
        )
        return record, new_balance

    async def _fresh_record_slot(self) -> Tuple[datetime, str]:
        instant = self.clock()
        key = record_key(format_timestamp(instant))
        while await self.store.get(key) is not None:
            instant += timedelta(microseconds=1)
            key = record_key(format_timestamp(instant))
        return instant, key

    async def set_initial_buckets(self, empty_buckets: int) -> InventoryStatus:
        """Overwrite the balance (first-time setup / reset). Records are untouched."""
        empty_buckets = _require_quantity("emptyBuckets", empty_buckets)
        status = InventoryStatus(empty_buckets=empty_buckets)
        await self._save_status(status)
        logger.info("Empty-bucket balance set to %d", empty_buckets)
        return status

    async def clear_all(self) -> int:
        """Delete every key in the store. Not atomic; re-running is harmless."""
        keys = await self.store.list_keys("")
        for key in keys:
            await self.store.delete(key)
        logger.info("Cleared %d keys from the ledger store", len(keys))
        return len(keys)
