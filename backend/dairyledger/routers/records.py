"""Daily delivery records.

Endpoints:
    GET    /api/records/                           List records (filters + paging)
    GET    /api/records/summary                    Totals per day / customer for a range
    POST   /api/records/generate                   Generate one customer's record for a date
    POST   /api/records/daily-run                  Generate a date's records for all customers
    GET    /api/records/customer/{customer_id}     A customer's records for a range
    GET    /api/records/{id}                       Single record
    PUT    /api/records/{id}                       Replace slots (totals recomputed)
    DELETE /api/records/{id}                       Delete a record
"""

import dataclasses
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.database import get_db
from dairyledger.models.daily_record import DailyRecord
from dairyledger.schemas.common import PaginatedResponse
from dairyledger.schemas.record import (
    DailyRunOut,
    DailyRunRequest,
    GenerateRecordOut,
    GenerateRecordRequest,
    RecordOut,
    RecordsSummaryOut,
    RecordUpdate,
)
from dairyledger.services import records as record_service
from dairyledger.services.credit import get_customer

router = APIRouter()


def _record_out(record: DailyRecord) -> RecordOut:
    out = RecordOut.model_validate(record)
    if record.customer is not None:
        out.customer_no = record.customer.customer_no
        out.customer_name = record.customer.name
    return out


@router.get("/", response_model=PaginatedResponse[RecordOut])
async def list_records(
    customer_id: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await record_service.list_records(
        db, customer_id=customer_id, start=start_date, end=end_date, limit=limit, offset=offset
    )
    return PaginatedResponse(
        items=[_record_out(r) for r in items], total=total, limit=limit, offset=offset
    )


@router.get("/summary", response_model=RecordsSummaryOut)
async def records_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    customer_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await record_service.records_summary(db, start_date, end_date, customer_id)


# ── Generation ───────────────────────────────────────────────

@router.post("/generate", response_model=GenerateRecordOut)
async def generate_record(body: GenerateRecordRequest, db: AsyncSession = Depends(get_db)):
    """Generate one record. Holidays, existing records and rejected adjustments are outcomes, not errors."""
    customer = await get_customer(db, body.customer_id)
    outcome = await record_service.generate_record(db, customer, body.record_date)
    return GenerateRecordOut(
        status=outcome.status,
        customer_id=outcome.customer_id,
        record_date=outcome.record_date,
        holiday_name=outcome.holiday_name,
        record=_record_out(outcome.record) if outcome.record else None,
    )


@router.post("/daily-run", response_model=DailyRunOut)
async def daily_run(body: DailyRunRequest, db: AsyncSession = Depends(get_db)):
    """Same job the scheduler runs; defaults to today."""
    summary = await record_service.create_daily_records(db, body.record_date)
    return DailyRunOut(**dataclasses.asdict(summary))


@router.get("/customer/{customer_id}", response_model=list[RecordOut])
async def records_by_customer(
    customer_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    await get_customer(db, customer_id)
    records = await record_service.records_in_period(db, customer_id, start_date, end_date)
    return [_record_out(r) for r in reversed(records)]


# ── /api/records/{id} ────────────────────────────────────────

@router.get("/{record_id}", response_model=RecordOut)
async def get_record(record_id: str, db: AsyncSession = Depends(get_db)):
    return _record_out(await record_service.get_record(db, record_id))


@router.put("/{record_id}", response_model=RecordOut)
async def update_record(record_id: str, body: RecordUpdate, db: AsyncSession = Depends(get_db)):
    record = await record_service.update_record(
        db, record_id, [s.model_dump(exclude_none=True) for s in body.slots]
    )
    return _record_out(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(record_id: str, db: AsyncSession = Depends(get_db)):
    await record_service.delete_record(db, record_id)
