from datetime import date as date_type

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Wire and storage format uses camelCase (normalWater, emptyBucketsTaken, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InventoryStatus(CamelModel):
    empty_buckets: int = 0


class DeliveryRecord(CamelModel):
    date: date_type
    timestamp: str
    normal_water: int
    nongfu_water: int
    total_delivered: int
    empty_buckets_taken: int
    remaining_empty_buckets: int


class DeliveryCreate(CamelModel):
    normal_water: int = 0
    nongfu_water: int = 0
    # empties collected by the driver on this delivery
    empty_buckets: int = 0


class DeliveryResponse(CamelModel):
    success: bool = True
    record: DeliveryRecord
    current_empty_buckets: int


class InitialBucketsSet(CamelModel):
    empty_buckets: int = 0


class InitialBucketsResponse(CamelModel):
    success: bool = True
    empty_buckets: int


class SuccessResponse(BaseModel):
    success: bool = True
