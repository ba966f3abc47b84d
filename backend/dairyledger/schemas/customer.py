"""Pydantic schemas for customers, their schedules, and credit balances."""

from datetime import date, datetime

from pydantic import BaseModel, field_validator

from dairyledger.services.schedule import SLOTS, validate_slots


class LineItem(BaseModel):
    milk_type_id: str
    subcategory_id: str
    quantity: float
    price_per_unit: float
    total_price: float = 0.0
    milk_type_name: str | None = None
    subcategory_name: str | None = None

    @field_validator("quantity", "price_per_unit")
    @classmethod
    def not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Must not be negative")
        return v


class SlotSchedule(BaseModel):
    slot: str
    items: list[LineItem] = []
    total_quantity: float = 0.0
    total_price: float = 0.0

    @field_validator("slot")
    @classmethod
    def valid_slot(cls, v: str) -> str:
        if v not in SLOTS:
            raise ValueError("slot must be 'morning' or 'evening'")
        return v


def _unique_slots(v: list[SlotSchedule] | None) -> list[SlotSchedule] | None:
    if v is not None:
        validate_slots([s.model_dump() for s in v])
    return v


class CustomerCreate(BaseModel):
    name: str
    phone: str
    address: str | None = None
    joined_date: date | None = None
    delivery_schedule: list[SlotSchedule] = []
    credit_balance: float = 0.0
    is_active: bool = True

    @field_validator("delivery_schedule")
    @classmethod
    def unique_slots(cls, v: list[SlotSchedule]) -> list[SlotSchedule]:
        return _unique_slots(v)

    @field_validator("credit_balance")
    @classmethod
    def credit_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Credit balance cannot be negative")
        return v


class CustomerUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    address: str | None = None
    joined_date: date | None = None
    delivery_schedule: list[SlotSchedule] | None = None
    is_active: bool | None = None

    @field_validator("delivery_schedule")
    @classmethod
    def unique_slots(cls, v: list[SlotSchedule] | None) -> list[SlotSchedule] | None:
        return _unique_slots(v)


class CustomerOut(BaseModel):
    id: str
    customer_no: int
    name: str
    phone: str
    address: str | None = None
    joined_date: date
    delivery_schedule: list[SlotSchedule]
    total_daily_quantity: float
    total_daily_price: float
    credit_balance: float
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BackfillOut(BaseModel):
    customer_id: str
    count: int
    message: str


class CustomerCreateOut(BaseModel):
    customer: CustomerOut
    backfill: BackfillOut


# ── Credit ───────────────────────────────────────────────────

class CreditAmount(BaseModel):
    amount: float
    notes: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Amount cannot be negative")
        return v


class CreditEntryOut(BaseModel):
    id: str
    kind: str
    amount: float
    balance_after: float
    invoice_id: str | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditBalanceOut(BaseModel):
    customer_id: str
    customer_no: int
    name: str
    credit_balance: float


class CreditPositionOut(BaseModel):
    customer_id: str
    credit_balance: float
    outstanding_due: float
    open_invoices: int
    net_position: float
