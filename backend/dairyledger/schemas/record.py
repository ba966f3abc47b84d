"""Pydantic schemas for daily records and record generation runs."""

from datetime import date, datetime

from pydantic import BaseModel, field_validator

from dairyledger.schemas.customer import SlotSchedule
from dairyledger.services.schedule import validate_slots


class RecordOut(BaseModel):
    id: str
    customer_id: str
    customer_no: int | None = None
    customer_name: str | None = None
    record_date: date
    slots: list[SlotSchedule]
    total_daily_quantity: float
    total_daily_price: float
    created_at: datetime

    model_config = {"from_attributes": True}


class RecordUpdate(BaseModel):
    slots: list[SlotSchedule]

    @field_validator("slots")
    @classmethod
    def unique_slots(cls, v: list[SlotSchedule]) -> list[SlotSchedule]:
        validate_slots([s.model_dump() for s in v])
        return v


class GenerateRecordRequest(BaseModel):
    customer_id: str
    record_date: date


class GenerateRecordOut(BaseModel):
    status: str
    customer_id: str
    record_date: date
    holiday_name: str | None = None
    record: RecordOut | None = None


class DailyRunRequest(BaseModel):
    record_date: date | None = None


class FailedItem(BaseModel):
    customer_id: str
    name: str | None = None
    reason: str
    invoice_number: str | None = None


class DailyRunOut(BaseModel):
    record_date: date
    holiday: bool
    holiday_name: str | None = None
    total_customers: int
    created: int
    existing: int
    skipped: int
    failed: list[FailedItem]

    model_config = {"from_attributes": True}


class DailyTotal(BaseModel):
    date: date
    total_quantity: float
    total_amount: float
    morning_quantity: float
    evening_quantity: float


class CustomerTotal(BaseModel):
    customer_id: str
    customer_no: int | None = None
    name: str | None = None
    total_quantity: float
    total_amount: float
    record_count: int


class OverallTotal(BaseModel):
    total_records: int
    total_quantity: float
    total_amount: float
    morning_quantity: float
    evening_quantity: float


class RecordsSummaryOut(BaseModel):
    daily_totals: list[DailyTotal]
    customer_totals: list[CustomerTotal]
    overall: OverallTotal
