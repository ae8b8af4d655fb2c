from fastapi import APIRouter, Depends

from core.ledger import LedgerEngine
from db.store import KeyValueStore, get_store
from schemas.deliveries import (
    DeliveryCreate,
    DeliveryResponse,
    InitialBucketsResponse,
    InitialBucketsSet,
    InventoryStatus,
    SuccessResponse,
)

router = APIRouter()


def get_ledger(store: KeyValueStore = Depends(get_store)) -> LedgerEngine:
    return LedgerEngine(store)


@router.post("/delivery", response_model=DeliveryResponse)
async def record_delivery(payload: DeliveryCreate, ledger: LedgerEngine = Depends(get_ledger)):
    """Record one delivery and return the stored record with the new balance."""
    record, balance = await ledger.record_delivery(
        payload.normal_water,
        payload.nongfu_water,
        payload.empty_buckets,
    )
    return DeliveryResponse(record=record, current_empty_buckets=balance)


@router.get("/status", response_model=InventoryStatus)
async def get_status(ledger: LedgerEngine = Depends(get_ledger)):
    return await ledger.get_status()


@router.post("/set-initial", response_model=InitialBucketsResponse)
async def set_initial_buckets(payload: InitialBucketsSet, ledger: LedgerEngine = Depends(get_ledger)):
    status = await ledger.set_initial_buckets(payload.empty_buckets)
    return InitialBucketsResponse(empty_buckets=status.empty_buckets)


@router.delete("/clear", response_model=SuccessResponse)
async def clear_all(ledger: LedgerEngine = Depends(get_ledger)):
    """Delete the balance and every delivery record."""
    await ledger.clear_all()
    return SuccessResponse()
