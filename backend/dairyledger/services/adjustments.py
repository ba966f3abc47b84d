"""Quantity adjustment ledger.

An adjustment stages a one-off quantity for one line item on one date;
the customer's standing schedule is never touched. The record generator
reads adjustments through `DatabaseAdjustmentLookup`.

Key:  (customer, date, slot, milk type, subcategory), unique in the table.
A repeat request for a key rewrites that row and puts it back to pending.
Once its date has passed an adjustment is terminal.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.middleware.exceptions import (
    BusinessLogicError,
    ConflictError,
    ResourceNotFoundError,
)
from dairyledger.models.customer import Customer
from dairyledger.models.quantity_adjustment import QuantityAdjustment
from dairyledger.services.schedule import find_item, recompute_schedule

logger = logging.getLogger(__name__)

REJECTION_PLACEHOLDER = "No reason provided"


class AdjustmentLookup(Protocol):
    async def for_customer_day(self, customer_id: str, on: date) -> list[QuantityAdjustment]: ...


class DatabaseAdjustmentLookup:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def for_customer_day(self, customer_id: str, on: date) -> list[QuantityAdjustment]:
        result = await self.db.execute(
            select(QuantityAdjustment).where(
                QuantityAdjustment.customer_id == customer_id,
                QuantityAdjustment.adjustment_date == on,
            )
        )
        return list(result.scalars().all())


def _ensure_open(adjustment_date: date, today: date | None) -> None:
    today = today or date.today()
    if adjustment_date < today:
        raise ConflictError(
            f"Adjustments for {adjustment_date.isoformat()} are closed",
            error_code="ADJUSTMENT_CLOSED",
            details={"adjustment_date": adjustment_date.isoformat()},
        )


async def _get(db: AsyncSession, adjustment_id: str) -> QuantityAdjustment:
    adjustment = await db.get(QuantityAdjustment, adjustment_id)
    if not adjustment:
        raise ResourceNotFoundError("Quantity adjustment", adjustment_id)
    return adjustment


# ── Upsert ──────────────────────────────────────────────────

async def upsert_adjustment(
    db: AsyncSession,
    *,
    customer_id: str,
    adjustment_date: date,
    slot: str,
    milk_type_id: str,
    subcategory_id: str,
    new_quantity: float,
    reason: str,
    today: date | None = None,
) -> QuantityAdjustment:
    """Create the adjustment for this key, or rewrite the existing one."""
    if new_quantity < 0:
        raise BusinessLogicError("Quantity cannot be negative", error_code="INVALID_QUANTITY")
    if not reason or not reason.strip():
        raise BusinessLogicError("A reason is required", error_code="REASON_REQUIRED")
    _ensure_open(adjustment_date, today)

    customer = await db.get(Customer, customer_id)
    if not customer:
        raise ResourceNotFoundError("Customer", customer_id)

    schedule = customer.delivery_schedule or []
    if not any(entry.get("slot") == slot for entry in schedule):
        raise ResourceNotFoundError("Delivery slot", f"{customer_id}/{slot}")
    item = find_item(schedule, slot, milk_type_id, subcategory_id)
    if item is None:
        raise ResourceNotFoundError(
            "Schedule item", f"{customer_id}/{slot}/{milk_type_id}/{subcategory_id}"
        )

    old_quantity = float(item.get("quantity", 0))
    key = (
        QuantityAdjustment.customer_id == customer_id,
        QuantityAdjustment.adjustment_date == adjustment_date,
        QuantityAdjustment.slot == slot,
        QuantityAdjustment.milk_type_id == milk_type_id,
        QuantityAdjustment.subcategory_id == subcategory_id,
    )

    # Find-or-create under the unique key; a racing insert of the same key
    # loses the savepoint and falls through to the update.
    for _ in range(2):
        adjustment = (
            await db.execute(select(QuantityAdjustment).where(*key))
        ).scalar_one_or_none()
        if adjustment is not None:
            break
        try:
            async with db.begin_nested():
                adjustment = QuantityAdjustment(
                    customer_id=customer_id,
                    adjustment_date=adjustment_date,
                    slot=slot,
                    milk_type_id=milk_type_id,
                    subcategory_id=subcategory_id,
                    old_quantity=old_quantity,
                    new_quantity=new_quantity,
                    delta=new_quantity - old_quantity,
                    reason=reason,
                    status="pending",
                )
                db.add(adjustment)
                await db.flush()
            logger.info(
                "Adjustment created for customer %s on %s (%s): %s → %s",
                customer_id, adjustment_date, slot, old_quantity, new_quantity,
            )
            return adjustment
        except IntegrityError:
            logger.info("Adjustment key raced for customer %s on %s; updating", customer_id, adjustment_date)
            adjustment = None

    if adjustment is None:
        raise ConflictError(
            "Could not create or update the adjustment",
            details={"customer_id": customer_id, "adjustment_date": adjustment_date.isoformat()},
        )

    adjustment.old_quantity = old_quantity
    adjustment.new_quantity = new_quantity
    adjustment.delta = new_quantity - old_quantity
    adjustment.reason = reason
    adjustment.status = "pending"
    await db.flush()
    logger.info("Adjustment %s rewritten and reset to pending", adjustment.id)
    return adjustment


# ── Decisions ───────────────────────────────────────────────

async def accept_adjustment(
    db: AsyncSession,
    adjustment_id: str,
    *,
    last_quantity: float | None = None,
    today: date | None = None,
) -> QuantityAdjustment:
    adjustment = await _get(db, adjustment_id)
    _ensure_open(adjustment.adjustment_date, today)
    adjustment.status = "accepted"
    adjustment.last_quantity = adjustment.new_quantity if last_quantity is None else last_quantity
    await db.flush()
    return adjustment


async def reject_adjustment(
    db: AsyncSession,
    adjustment_id: str,
    *,
    reason: str | None = None,
    today: date | None = None,
) -> QuantityAdjustment:
    adjustment = await _get(db, adjustment_id)
    _ensure_open(adjustment.adjustment_date, today)
    adjustment.status = "rejected"
    adjustment.reason = reason.strip() if reason and reason.strip() else REJECTION_PLACEHOLDER
    await db.flush()
    return adjustment


async def delete_adjustment(db: AsyncSession, adjustment_id: str) -> None:
    adjustment = await _get(db, adjustment_id)
    await db.delete(adjustment)
    await db.flush()


# ── Query with projected schedule ───────────────────────────

def project_schedule(schedule: list[dict], adjustments: list[QuantityAdjustment]) -> list[dict]:
    """Read-only view of `schedule` with adjustments shown in place.

    The adjustment with the latest date per key wins. Pending and accepted
    show the new quantity; rejected falls back to the last accepted
    quantity, or 0.
    """
    latest: dict[tuple, QuantityAdjustment] = {}
    for adj in sorted(adjustments, key=lambda a: (a.adjustment_date, a.updated_at or a.created_at)):
        latest[(adj.slot, adj.milk_type_id, adj.subcategory_id)] = adj

    slots = []
    for entry in schedule:
        items = []
        for item in entry.get("items", []):
            adj = latest.get((entry.get("slot"), item.get("milk_type_id"), item.get("subcategory_id")))
            if adj is None:
                items.append(dict(item))
                continue
            if adj.status == "rejected":
                quantity = adj.last_quantity if adj.last_quantity is not None else 0.0
            else:
                quantity = adj.new_quantity
            items.append({**item, "quantity": quantity, "adjustment_id": adj.id, "adjustment_status": adj.status})
        slots.append({**entry, "items": items})
    projected, _, _ = recompute_schedule(slots)
    return projected


async def list_adjustments(
    db: AsyncSession,
    *,
    customer_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
    status: str | None = None,
) -> dict:
    """Adjustments matching the filters, plus each customer's projected schedule."""
    if start and end and start > end:
        raise BusinessLogicError("Start date cannot be after end date", error_code="INVALID_RANGE")

    stmt = select(QuantityAdjustment).order_by(
        QuantityAdjustment.adjustment_date.desc(), QuantityAdjustment.created_at.desc()
    )
    if customer_id:
        stmt = stmt.where(QuantityAdjustment.customer_id == customer_id)
    if start:
        stmt = stmt.where(QuantityAdjustment.adjustment_date >= start)
    if end:
        stmt = stmt.where(QuantityAdjustment.adjustment_date <= end)
    if status:
        stmt = stmt.where(QuantityAdjustment.status == status)
    adjustments = list((await db.execute(stmt)).scalars().all())

    by_customer: dict[str, list[QuantityAdjustment]] = {}
    for adj in adjustments:
        by_customer.setdefault(adj.customer_id, []).append(adj)

    views = []
    if by_customer:
        customers = (
            await db.execute(select(Customer).where(Customer.id.in_(by_customer)))
        ).scalars().all()
        for customer in sorted(customers, key=lambda c: c.customer_no):
            views.append({
                "customer_id": customer.id,
                "customer_no": customer.customer_no,
                "name": customer.name,
                "projected_schedule": project_schedule(
                    customer.delivery_schedule or [], by_customer[customer.id]
                ),
            })

    return {"adjustments": adjustments, "customers": views}
