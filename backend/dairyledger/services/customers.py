"""Customer management.

Creating a customer whose join date is in the past also backfills their
daily records up to yesterday.
"""

import logging
from datetime import date

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.middleware.exceptions import BusinessLogicError, ConflictError
from dairyledger.models.credit_entry import CreditEntry
from dairyledger.models.customer import Customer
from dairyledger.models.daily_record import DailyRecord
from dairyledger.models.invoice import Invoice
from dairyledger.models.quantity_adjustment import QuantityAdjustment
from dairyledger.services.credit import deposit, get_customer
from dairyledger.services.records import backfill_customer_records
from dairyledger.services.schedule import recompute_schedule, validate_slots

logger = logging.getLogger(__name__)


def _apply_schedule(customer: Customer, schedule: list[dict]) -> None:
    try:
        validate_slots(schedule)
    except ValueError as exc:
        raise BusinessLogicError(str(exc), error_code="INVALID_SCHEDULE")
    slots, quantity, amount = recompute_schedule(schedule)
    customer.delivery_schedule = slots
    customer.total_daily_quantity = quantity
    customer.total_daily_price = amount


async def _ensure_phone_free(db: AsyncSession, phone: str, exclude_id: str | None = None) -> None:
    stmt = select(Customer).where(Customer.phone == phone)
    if exclude_id:
        stmt = stmt.where(Customer.id != exclude_id)
    other = (await db.execute(stmt)).scalar_one_or_none()
    if other:
        raise ConflictError(
            f"Phone number {phone} is already registered",
            error_code="DUPLICATE_PHONE",
            details={"customer_id": other.id, "customer_no": other.customer_no},
        )


async def _next_customer_no(db: AsyncSession) -> int:
    highest = (await db.execute(select(func.max(Customer.customer_no)))).scalar()
    return (highest or 0) + 1


async def create_customer(db: AsyncSession, data: dict, *, today: date | None = None) -> tuple[Customer, dict]:
    """Create a customer and backfill records for a past join date.

    Returns (customer, backfill summary).
    """
    today = today or date.today()
    await _ensure_phone_free(db, data["phone"])

    customer = Customer(
        customer_no=await _next_customer_no(db),
        name=data["name"],
        phone=data["phone"],
        address=data.get("address"),
        joined_date=data.get("joined_date") or today,
        is_active=data.get("is_active", True),
        credit_balance=0.0,
    )
    _apply_schedule(customer, data.get("delivery_schedule") or [])
    db.add(customer)
    await db.flush()
    logger.info("Customer %s created (%s)", customer.customer_no, customer.name)

    opening = data.get("credit_balance") or 0.0
    if opening > 0:
        await deposit(db, customer.id, opening, notes="Opening balance")

    backfill = await backfill_customer_records(db, customer, today=today)
    return customer, backfill


async def list_customers(
    db: AsyncSession,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    stmt = select(Customer)
    if is_active is not None:
        stmt = stmt.where(Customer.is_active == is_active)
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    rows = (
        await db.execute(stmt.order_by(Customer.customer_no).limit(limit).offset(offset))
    ).scalars().all()
    return list(rows), total


async def update_customer(db: AsyncSession, customer_id: str, updates: dict) -> Customer:
    customer = await get_customer(db, customer_id)
    if "phone" in updates and updates["phone"] != customer.phone:
        await _ensure_phone_free(db, updates["phone"], exclude_id=customer.id)

    schedule = updates.pop("delivery_schedule", None)
    for key, value in updates.items():
        setattr(customer, key, value)
    if schedule is not None:
        _apply_schedule(customer, schedule)

    await db.flush()
    return customer


async def delete_customer(db: AsyncSession, customer_id: str) -> None:
    """Remove a customer with no invoices, along with records and adjustments."""
    customer = await get_customer(db, customer_id)
    invoice_count = (
        await db.execute(select(func.count(Invoice.id)).where(Invoice.customer_id == customer_id))
    ).scalar() or 0
    if invoice_count:
        raise ConflictError(
            "Cannot delete a customer that has invoices",
            error_code="CUSTOMER_HAS_INVOICES",
            details={"customer_id": customer_id, "invoice_count": invoice_count},
        )

    await db.execute(delete(DailyRecord).where(DailyRecord.customer_id == customer_id))
    await db.execute(delete(QuantityAdjustment).where(QuantityAdjustment.customer_id == customer_id))
    await db.execute(delete(CreditEntry).where(CreditEntry.customer_id == customer_id))
    await db.delete(customer)
    await db.flush()
    logger.info("Customer %s deleted", customer.customer_no)
