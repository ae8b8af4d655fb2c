import csv
import io
import logging
from datetime import date, datetime, time
from typing import AsyncIterator, List, Optional
from zoneinfo import ZoneInfo

from core.config import settings
from core.errors import MalformedRequest
from core.ledger import RECORD_KEY_PREFIX, parse_timestamp
from db.store import KeyValueStore
from schemas.deliveries import DeliveryRecord

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50

CSV_HEADERS = [
    "Date",
    "Time",
    "Normal water",
    "Nongfu water",
    "Total delivered",
    "Empty buckets taken",
    "Remaining empty buckets",
]


def normalize_limit(raw) -> int:
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return limit if limit > 0 else DEFAULT_LIMIT


class RecordQueryService:
    def __init__(self, store: KeyValueStore, tz: Optional[str] = None):
        self.store = store
        self.tz = ZoneInfo(tz or settings.ledger_timezone)

    def _bounds(self, start: Optional[date], end: Optional[date]):
        if start and end and start > end:
            raise MalformedRequest("Start date cannot be later than end date")
        lo = datetime.combine(start, time(0, 0, 0), tzinfo=self.tz) if start else None
        hi = datetime.combine(end, time(23, 59, 59), tzinfo=self.tz) if end else None
        return lo, hi

    async def iter_records(
        self,
        limit: Optional[int] = DEFAULT_LIMIT,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AsyncIterator[DeliveryRecord]:
        """
        Yield stored delivery records, newest first.

        Keys sort chronologically, so sorting them descending gives newest
        first without reading the values. ``limit=None`` means no limit. A key
        that is listed but has no value yet is skipped.
        """
        lo, hi = self._bounds(start, end)
        keys = sorted(await self.store.list_keys(RECORD_KEY_PREFIX), reverse=True)

        produced = 0
        for key in keys:
            if limit is not None and produced >= limit:
                break
            raw = await self.store.get(key)
            if not raw:
                logger.debug("Record %s listed but not readable yet", key)
                continue
            record = DeliveryRecord.model_validate_json(raw)
            instant = parse_timestamp(record.timestamp)
            if hi is not None and instant > hi:
                continue
            if lo is not None and instant < lo:
                # everything after this is older still
                break
            produced += 1
            yield record

    async def list_records(
        self,
        limit: Optional[int] = DEFAULT_LIMIT,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DeliveryRecord]:
        return [r async for r in self.iter_records(limit, start, end)]

    async def export_csv(self, start: Optional[date] = None, end: Optional[date] = None) -> str:
        """All matching records as CSV (UTF-8 BOM so spreadsheet apps pick the encoding)."""
        buf = io.StringIO()
        buf.write("\ufeff")
        writer = csv.writer(buf)
        writer.writerow(CSV_HEADERS)
        async for r in self.iter_records(None, start, end):
            local = parse_timestamp(r.timestamp).astimezone(self.tz)
            writer.writerow([
                r.date.isoformat(),
                local.strftime("%H:%M:%S"),
                r.normal_water,
                r.nongfu_water,
                r.total_delivered,
                r.empty_buckets_taken,
                r.remaining_empty_buckets,
            ])
        return buf.getvalue()
