"""Daily record generation and maintenance.

One DailyRecord per (customer, date), enforced by a unique constraint.
The generator snapshots the customer's standing schedule, swaps in the
new quantity of any accepted adjustment for that date, and writes the
record in a single insert. Outcomes:

    created              record written
    exists               a record was already there (or a racing writer won)
    holiday              the date is a holiday; nobody gets a record
    rejected_adjustment  a rejected adjustment exists for that customer/day;
                         the whole customer-day is skipped

Entry points:
    generate_record             one customer, one date
    create_daily_records        all active customers for one date (scheduled job)
    backfill_customer_records   join date through yesterday for one customer
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from dairyledger.models.customer import Customer
from dairyledger.models.daily_record import DailyRecord
from dairyledger.models.quantity_adjustment import QuantityAdjustment
from dairyledger.services.adjustments import AdjustmentLookup, DatabaseAdjustmentLookup
from dairyledger.services.holidays import DatabaseHolidayOracle, HolidayOracle
from dairyledger.services.schedule import money, recompute_schedule, slot_quantity, validate_slots

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutcome:
    status: str
    customer_id: str
    record_date: date
    record: DailyRecord | None = None
    holiday_name: str | None = None


@dataclass
class BatchSummary:
    record_date: date
    holiday: bool = False
    holiday_name: str | None = None
    total_customers: int = 0
    created: int = 0
    existing: int = 0
    skipped: int = 0
    failed: list[dict] = field(default_factory=list)


def apply_adjustments(
    schedule: list[dict], adjustments: list[QuantityAdjustment]
) -> tuple[list[dict], float, float] | None:
    """Day snapshot of `schedule` with accepted adjustments applied.

    Returns None when any adjustment for the day is rejected. Pending
    adjustments leave the scheduled quantity in place.
    """
    if any(adj.status == "rejected" for adj in adjustments):
        return None

    accepted = {
        (adj.slot, adj.milk_type_id, adj.subcategory_id): adj.new_quantity
        for adj in adjustments
        if adj.status == "accepted"
    }
    slots = []
    for entry in schedule:
        items = []
        for item in entry.get("items", []):
            key = (entry.get("slot"), item.get("milk_type_id"), item.get("subcategory_id"))
            items.append({**item, "quantity": accepted.get(key, item.get("quantity", 0))})
        slots.append({**entry, "items": items})
    return recompute_schedule(slots)


async def _record_exists(db: AsyncSession, customer_id: str, on: date) -> bool:
    found = await db.execute(
        select(DailyRecord.id).where(
            DailyRecord.customer_id == customer_id,
            DailyRecord.record_date == on,
        )
    )
    return found.first() is not None


async def generate_record(
    db: AsyncSession,
    customer: Customer,
    on: date,
    *,
    oracle: HolidayOracle | None = None,
    adjustments: AdjustmentLookup | None = None,
    check_holiday: bool = True,
) -> GenerationOutcome:
    """Produce the DailyRecord for (customer, on), or report why not."""
    oracle = oracle or DatabaseHolidayOracle(db)
    adjustments = adjustments or DatabaseAdjustmentLookup(db)
    customer_id = customer.id

    if check_holiday:
        check = await oracle.is_holiday(on)
        if check.is_holiday:
            return GenerationOutcome("holiday", customer_id, on, holiday_name=check.name)

    if await _record_exists(db, customer_id, on):
        return GenerationOutcome("exists", customer_id, on)

    snapshot = apply_adjustments(
        customer.delivery_schedule or [],
        await adjustments.for_customer_day(customer_id, on),
    )
    if snapshot is None:
        logger.info("Skipping customer %s on %s: rejected adjustment", customer_id, on)
        return GenerationOutcome("rejected_adjustment", customer_id, on)

    slots, quantity, amount = snapshot
    record = DailyRecord(
        customer=customer,
        record_date=on,
        slots=slots,
        total_daily_quantity=quantity,
        total_daily_price=amount,
    )
    try:
        async with db.begin_nested():
            db.add(record)
            await db.flush()
    except IntegrityError:
        logger.info("Record for customer %s on %s written concurrently", customer_id, on)
        return GenerationOutcome("exists", customer_id, on)

    return GenerationOutcome("created", customer_id, on, record=record)


async def create_daily_records(
    db: AsyncSession,
    on: date | None = None,
    *,
    oracle: HolidayOracle | None = None,
    adjustments: AdjustmentLookup | None = None,
) -> BatchSummary:
    """Generate `on`'s records (default today) for every active customer.

    Safe to re-run: customers that already have a record are counted as
    existing. One customer's failure is reported and the batch goes on.
    """
    on = on or date.today()
    oracle = oracle or DatabaseHolidayOracle(db)
    adjustments = adjustments or DatabaseAdjustmentLookup(db)
    summary = BatchSummary(record_date=on)

    check = await oracle.is_holiday(on)
    if check.is_holiday:
        logger.info("%s is a holiday (%s); no records generated", on, check.name)
        summary.holiday = True
        summary.holiday_name = check.name
        return summary

    customers = (
        await db.execute(
            select(Customer)
            .where(Customer.is_active == True)  # noqa: E712
            .order_by(Customer.customer_no)
        )
    ).scalars().all()
    summary.total_customers = len(customers)

    for customer in customers:
        customer_id, name = customer.id, customer.name
        try:
            async with db.begin_nested():
                outcome = await generate_record(
                    db, customer, on,
                    oracle=oracle, adjustments=adjustments, check_holiday=False,
                )
        except Exception as exc:
            logger.exception("Daily record failed for customer %s on %s", customer_id, on)
            summary.failed.append({"customer_id": customer_id, "name": name, "reason": str(exc)})
            continue

        if outcome.status == "created":
            summary.created += 1
        elif outcome.status == "exists":
            summary.existing += 1
        else:
            summary.skipped += 1

    logger.info(
        "Daily records for %s: %d created, %d existing, %d skipped, %d failed",
        on, summary.created, summary.existing, summary.skipped, len(summary.failed),
    )
    return summary


async def backfill_customer_records(
    db: AsyncSession,
    customer: Customer,
    *,
    today: date | None = None,
    oracle: HolidayOracle | None = None,
    adjustments: AdjustmentLookup | None = None,
) -> dict:
    """Fill in records from the customer's join date through yesterday."""
    today = today or date.today()
    customer_id = customer.id
    joined = customer.joined_date

    if joined is None or joined >= today:
        message = (
            "Join date is in the future; nothing to backfill"
            if joined and joined > today
            else "No past dates to backfill"
        )
        return {"customer_id": customer_id, "count": 0, "message": message}

    oracle = oracle or DatabaseHolidayOracle(db)
    adjustments = adjustments or DatabaseAdjustmentLookup(db)
    counts = {"created": 0, "exists": 0, "holiday": 0, "rejected_adjustment": 0}

    day = joined
    while day < today:
        outcome = await generate_record(db, customer, day, oracle=oracle, adjustments=adjustments)
        counts[outcome.status] += 1
        day += timedelta(days=1)

    yesterday = today - timedelta(days=1)
    message = (
        f"Created {counts['created']} records from {joined.isoformat()} to {yesterday.isoformat()}"
        f" ({counts['exists']} existing, {counts['holiday']} holidays skipped)"
    )
    logger.info("Backfill for customer %s: %s", customer_id, message)
    return {"customer_id": customer_id, "count": counts["created"], "message": message}


# ── Maintenance ─────────────────────────────────────────────

async def get_record(db: AsyncSession, record_id: str) -> DailyRecord:
    record = await db.get(DailyRecord, record_id)
    if not record:
        raise ResourceNotFoundError("Daily record", record_id)
    return record


async def list_records(
    db: AsyncSession,
    *,
    customer_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[DailyRecord], int]:
    stmt = select(DailyRecord)
    if customer_id:
        stmt = stmt.where(DailyRecord.customer_id == customer_id)
    if start:
        stmt = stmt.where(DailyRecord.record_date >= start)
    if end:
        stmt = stmt.where(DailyRecord.record_date <= end)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    rows = (
        await db.execute(
            stmt.order_by(DailyRecord.record_date.desc(), DailyRecord.created_at.desc())
            .limit(limit).offset(offset)
        )
    ).scalars().all()
    return list(rows), total


async def records_in_period(
    db: AsyncSession, customer_id: str, start: date, end: date
) -> list[DailyRecord]:
    """Every record for the customer in [start, end], oldest first."""
    if start > end:
        raise BusinessLogicError("Start date cannot be after end date", error_code="INVALID_RANGE")
    result = await db.execute(
        select(DailyRecord)
        .where(
            DailyRecord.customer_id == customer_id,
            DailyRecord.record_date >= start,
            DailyRecord.record_date <= end,
        )
        .order_by(DailyRecord.record_date)
    )
    return list(result.scalars().all())


async def update_record(db: AsyncSession, record_id: str, slots: list[dict]) -> DailyRecord:
    """Replace a record's slots; totals are recomputed from the new lines."""
    record = await get_record(db, record_id)
    try:
        validate_slots(slots)
    except ValueError as exc:
        raise BusinessLogicError(str(exc), error_code="INVALID_SCHEDULE")
    new_slots, quantity, amount = recompute_schedule(slots)
    record.slots = new_slots
    record.total_daily_quantity = quantity
    record.total_daily_price = amount
    await db.flush()
    return record


async def delete_record(db: AsyncSession, record_id: str) -> None:
    record = await get_record(db, record_id)
    await db.delete(record)
    await db.flush()


async def records_summary(
    db: AsyncSession,
    start: date,
    end: date,
    customer_id: str | None = None,
) -> dict:
    """Totals per day (with morning/evening split), per customer, and overall."""
    if start > end:
        raise BusinessLogicError("Start date cannot be after end date", error_code="INVALID_RANGE")

    stmt = select(DailyRecord).where(
        DailyRecord.record_date >= start,
        DailyRecord.record_date <= end,
    )
    if customer_id:
        stmt = stmt.where(DailyRecord.customer_id == customer_id)
    records = (await db.execute(stmt.order_by(DailyRecord.record_date))).scalars().all()

    daily: dict[date, dict] = {}
    per_customer: dict[str, dict] = {}
    for record in records:
        day = daily.setdefault(record.record_date, {
            "date": record.record_date,
            "total_quantity": 0.0,
            "total_amount": 0.0,
            "morning_quantity": 0.0,
            "evening_quantity": 0.0,
        })
        day["total_quantity"] += record.total_daily_quantity
        day["total_amount"] = money(day["total_amount"] + record.total_daily_price)
        day["morning_quantity"] += slot_quantity(record.slots or [], "morning")
        day["evening_quantity"] += slot_quantity(record.slots or [], "evening")

        if not customer_id:
            cust = per_customer.setdefault(record.customer_id, {
                "customer_id": record.customer_id,
                "customer_no": record.customer.customer_no if record.customer else None,
                "name": record.customer.name if record.customer else None,
                "total_quantity": 0.0,
                "total_amount": 0.0,
                "record_count": 0,
            })
            cust["total_quantity"] += record.total_daily_quantity
            cust["total_amount"] = money(cust["total_amount"] + record.total_daily_price)
            cust["record_count"] += 1

    daily_totals = list(daily.values())
    return {
        "daily_totals": daily_totals,
        "customer_totals": sorted(per_customer.values(), key=lambda c: -c["total_quantity"]),
        "overall": {
            "total_records": len(records),
            "total_quantity": sum(d["total_quantity"] for d in daily_totals),
            "total_amount": money(sum(d["total_amount"] for d in daily_totals)),
            "morning_quantity": sum(d["morning_quantity"] for d in daily_totals),
            "evening_quantity": sum(d["evening_quantity"] for d in daily_totals),
        },
    }
