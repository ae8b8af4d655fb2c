from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from core.config import settings
from core.records import RecordQueryService, normalize_limit
from db.store import KeyValueStore, get_store
from schemas.deliveries import DeliveryRecord

router = APIRouter()


def get_record_query(store: KeyValueStore = Depends(get_store)) -> RecordQueryService:
    return RecordQueryService(store)


@router.get("/records", response_model=List[DeliveryRecord])
async def list_records(
    limit: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    records: RecordQueryService = Depends(get_record_query),
):
    """Newest first. Records that were just written may take a moment to show up."""
    return await records.list_records(normalize_limit(limit), start_date, end_date)


@router.get("/records/export")
async def export_records(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    records: RecordQueryService = Depends(get_record_query),
):
    content = await records.export_csv(start_date, end_date)
    today = datetime.now(ZoneInfo(settings.ledger_timezone)).date()
    filename = f"deliveries_{today.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
