"""Pydantic schemas for the holiday calendar."""

from datetime import date, datetime

from pydantic import BaseModel


class HolidayCreate(BaseModel):
    name: str
    holiday_date: date
    reason: str | None = None
    is_recurring_yearly: bool = False


class HolidayOut(BaseModel):
    id: str
    name: str
    holiday_date: date
    reason: str | None = None
    is_recurring_yearly: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class HolidayCheckOut(BaseModel):
    date: date
    is_holiday: bool
    name: str | None = None
