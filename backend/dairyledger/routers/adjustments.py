"""Quantity adjustments.

Endpoints:
    POST   /api/adjustments/               Create or rewrite the adjustment for a key
    GET    /api/adjustments/               List with projected schedules
    POST   /api/adjustments/{id}/accept    Accept
    POST   /api/adjustments/{id}/reject    Reject
    DELETE /api/adjustments/{id}           Delete
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.database import get_db
from dairyledger.schemas.adjustment import (
    AdjustmentAccept,
    AdjustmentCreate,
    AdjustmentListOut,
    AdjustmentOut,
    AdjustmentReject,
)
from dairyledger.services import adjustments as adjustment_service

router = APIRouter()


@router.post("/", response_model=AdjustmentOut)
async def upsert_adjustment(body: AdjustmentCreate, db: AsyncSession = Depends(get_db)):
    adjustment = await adjustment_service.upsert_adjustment(db, **body.model_dump())
    return AdjustmentOut.model_validate(adjustment)


@router.get("/", response_model=AdjustmentListOut)
async def list_adjustments(
    customer_id: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    status_filter: str | None = Query(None, alias="status", pattern="^(pending|accepted|rejected)$"),
    db: AsyncSession = Depends(get_db),
):
    result = await adjustment_service.list_adjustments(
        db, customer_id=customer_id, start=start_date, end=end_date, status=status_filter
    )
    return AdjustmentListOut(
        adjustments=[AdjustmentOut.model_validate(a) for a in result["adjustments"]],
        customers=result["customers"],
    )


@router.post("/{adjustment_id}/accept", response_model=AdjustmentOut)
async def accept_adjustment(
    adjustment_id: str,
    body: AdjustmentAccept | None = None,
    db: AsyncSession = Depends(get_db),
):
    adjustment = await adjustment_service.accept_adjustment(
        db, adjustment_id, last_quantity=body.last_quantity if body else None
    )
    return AdjustmentOut.model_validate(adjustment)


@router.post("/{adjustment_id}/reject", response_model=AdjustmentOut)
async def reject_adjustment(
    adjustment_id: str,
    body: AdjustmentReject | None = None,
    db: AsyncSession = Depends(get_db),
):
    adjustment = await adjustment_service.reject_adjustment(
        db, adjustment_id, reason=body.reason if body else None
    )
    return AdjustmentOut.model_validate(adjustment)


@router.delete("/{adjustment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_adjustment(adjustment_id: str, db: AsyncSession = Depends(get_db)):
    await adjustment_service.delete_adjustment(db, adjustment_id)
