"""Pydantic schemas for quantity adjustments."""

from datetime import date, datetime

from pydantic import BaseModel, field_validator

from dairyledger.schemas.customer import SlotSchedule
from dairyledger.services.schedule import SLOTS


class AdjustmentCreate(BaseModel):
    customer_id: str
    adjustment_date: date
    slot: str
    milk_type_id: str
    subcategory_id: str
    new_quantity: float
    reason: str

    @field_validator("slot")
    @classmethod
    def valid_slot(cls, v: str) -> str:
        if v not in SLOTS:
            raise ValueError("slot must be 'morning' or 'evening'")
        return v

    @field_validator("new_quantity")
    @classmethod
    def quantity_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Quantity cannot be negative")
        return v

    @field_validator("reason")
    @classmethod
    def reason_present(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A reason is required")
        return v


class AdjustmentAccept(BaseModel):
    last_quantity: float | None = None


class AdjustmentReject(BaseModel):
    reason: str | None = None


class AdjustmentOut(BaseModel):
    id: str
    customer_id: str
    adjustment_date: date
    slot: str
    milk_type_id: str
    subcategory_id: str
    old_quantity: float
    new_quantity: float
    delta: float
    reason: str
    status: str
    is_accepted: bool
    last_quantity: float | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectedCustomer(BaseModel):
    customer_id: str
    customer_no: int
    name: str
    projected_schedule: list[SlotSchedule]


class AdjustmentListOut(BaseModel):
    adjustments: list[AdjustmentOut]
    customers: list[ProjectedCustomer]
