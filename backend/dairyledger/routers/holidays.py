"""Holiday calendar.

Endpoints:
    POST   /api/holidays/          Add a holiday
    GET    /api/holidays/          List holidays (optionally by year / recurring)
    GET    /api/holidays/check     Is a date a holiday?
    DELETE /api/holidays/{id}      Remove a holiday
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.database import get_db
from dairyledger.schemas.holiday import HolidayCheckOut, HolidayCreate, HolidayOut
from dairyledger.services import holidays as holiday_service

router = APIRouter()


@router.post("/", response_model=HolidayOut, status_code=status.HTTP_201_CREATED)
async def create_holiday(body: HolidayCreate, db: AsyncSession = Depends(get_db)):
    holiday = await holiday_service.create_holiday(db, **body.model_dump())
    return HolidayOut.model_validate(holiday)


@router.get("/", response_model=list[HolidayOut])
async def list_holidays(
    year: int | None = Query(None),
    recurring: bool | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    holidays = await holiday_service.list_holidays(db, year=year, recurring=recurring)
    return [HolidayOut.model_validate(h) for h in holidays]


@router.get("/check", response_model=HolidayCheckOut)
async def check_holiday(
    on: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    check = await holiday_service.DatabaseHolidayOracle(db).is_holiday(on)
    return HolidayCheckOut(date=on, is_holiday=check.is_holiday, name=check.name)


@router.delete("/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(holiday_id: str, db: AsyncSession = Depends(get_db)):
    await holiday_service.delete_holiday(db, holiday_id)
