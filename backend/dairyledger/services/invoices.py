"""Invoice aggregation, payments, and billing read views.

An invoice sums one customer's daily records over a calendar month.
Billing periods of one customer never intersect; the check is a range
overlap, not an exact match, because an updated invoice may have had its
end date moved.

Amounts at rest:
    amount_paid = Σ payments.amount
    due_amount  = max(total_amount − amount_paid, 0)
    status      = derive_status(due_amount, amount_paid, due_date, today)

`recalculate` is the only writer of those three fields, except the admin
status override.
"""

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.middleware.exceptions import (
    BusinessLogicError,
    ConflictError,
    DairyLedgerException,
    ResourceNotFoundError,
)
from dairyledger.models.customer import Customer
from dairyledger.models.daily_record import DailyRecord
from dairyledger.models.invoice import INVOICE_STATUSES, PAYMENT_METHODS, Invoice, InvoicePayment
from dairyledger.services.catalog import SettingsCatalog, annotate_slots
from dairyledger.services.credit import (
    OPEN_INVOICE_STATUSES,
    consume_for_invoice,
    credit_overpayment,
    get_customer,
)
from dairyledger.services.records import records_in_period
from dairyledger.services.schedule import money
from dairyledger.utils.numbering import generate_code
from dairyledger.utils.settings_store import get_setting

logger = logging.getLogger(__name__)

DUE_GRACE_DAYS = 15
# Batch billing of the running month opens this many days before month end
BATCH_CUTOFF_DAYS = 3
DASHBOARD_MONTHS = 6
RECENT_INVOICES = 10
TOP_CUSTOMERS = 5


@dataclass
class InvoiceResult:
    invoice: Invoice
    action: str  # created | updated
    advance_used: float = 0.0


# ── Pure rules ──────────────────────────────────────────────

def month_period(month: int, year: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise BusinessLogicError("Month must be between 1 and 12", error_code="INVALID_MONTH")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def derive_status(due_amount: float, amount_paid: float, due_date: date, today: date) -> str:
    if due_amount <= 0:
        return "paid"
    if amount_paid > 0:
        return "partially_paid"
    if due_date < today:
        return "overdue"
    return "pending"


def recalculate(invoice: Invoice, today: date | None = None) -> Invoice:
    """Rewrite amount_paid, due_amount and status from payments and total."""
    invoice.amount_paid = money(sum(p.amount for p in invoice.payments))
    invoice.due_amount = max(money(invoice.total_amount - invoice.amount_paid), 0.0)
    invoice.status = derive_status(
        invoice.due_amount, invoice.amount_paid, invoice.due_date, today or date.today()
    )
    return invoice


def summarize_records(records: list[DailyRecord]) -> tuple[list[dict], float, float]:
    items = []
    quantity = 0.0
    amount = 0.0
    for record in records:
        items.append({
            "record_id": record.id,
            "record_date": record.record_date.isoformat(),
            "slots": record.slots,
            "total_daily_quantity": record.total_daily_quantity,
            "total_daily_price": record.total_daily_price,
        })
        quantity += record.total_daily_quantity
        amount += record.total_daily_price
    return items, quantity, money(amount)


# ── Lookups ─────────────────────────────────────────────────

async def get_invoice(db: AsyncSession, invoice_id: str) -> Invoice:
    invoice = await db.get(Invoice, invoice_id)
    if not invoice:
        raise ResourceNotFoundError("Invoice", invoice_id)
    return invoice


async def find_overlapping(
    db: AsyncSession,
    customer_id: str,
    start: date,
    end: date,
    exclude_id: str | None = None,
) -> Invoice | None:
    stmt = select(Invoice).where(
        Invoice.customer_id == customer_id,
        Invoice.start_date <= end,
        Invoice.end_date >= start,
    )
    if exclude_id:
        stmt = stmt.where(Invoice.id != exclude_id)
    result = await db.execute(stmt.order_by(Invoice.start_date).limit(1))
    return result.scalar_one_or_none()


def _conflict_details(invoice: Invoice) -> dict:
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "start_date": invoice.start_date.isoformat(),
        "end_date": invoice.end_date.isoformat(),
    }


# ── Generation ──────────────────────────────────────────────

async def _generate_for_customer(
    db: AsyncSession,
    customer: Customer,
    start: date,
    end: date,
    update_existing: bool,
    today: date,
) -> InvoiceResult:
    existing = await find_overlapping(db, customer.id, start, end)
    if existing and not update_existing:
        raise ConflictError(
            "Invoice already exists for this period",
            error_code="INVOICE_EXISTS",
            details=_conflict_details(existing),
        )

    records = await records_in_period(db, customer.id, start, end)
    if not records:
        raise ResourceNotFoundError(
            "Daily records", f"{customer.id} {start.isoformat()}..{end.isoformat()}"
        )
    items, quantity, amount = summarize_records(records)

    if existing:
        other = await find_overlapping(db, customer.id, existing.start_date, end, exclude_id=existing.id)
        if other:
            raise ConflictError(
                "Extending the invoice would overlap another invoice",
                error_code="INVOICE_EXISTS",
                details=_conflict_details(other),
            )
        existing.items = items
        existing.total_quantity = quantity
        existing.total_amount = amount
        existing.end_date = end
        recalculate(existing, today)
        await db.flush()
        logger.info("Invoice %s updated: total %.2f", existing.invoice_number, amount)
        return InvoiceResult(existing, "updated")

    invoice = Invoice(
        id=str(uuid.uuid4()),
        invoice_number=await generate_code(db, "invoice", on=today),
        customer_id=customer.id,
        start_date=start,
        end_date=end,
        due_date=end + timedelta(days=DUE_GRACE_DAYS),
        items=items,
        total_quantity=quantity,
        total_amount=amount,
        payments=[],
    )
    db.add(invoice)
    await db.flush()
    advance_used = await consume_for_invoice(db, customer, invoice, paid_on=today)
    recalculate(invoice, today)
    await db.flush()
    logger.info(
        "Invoice %s created for customer %s: total %.2f, advance used %.2f",
        invoice.invoice_number, customer.customer_no, amount, advance_used,
    )
    return InvoiceResult(invoice, "created", advance_used)


async def generate_invoice(
    db: AsyncSession,
    customer_id: str,
    month: int,
    year: int,
    *,
    update_existing: bool = False,
    today: date | None = None,
) -> InvoiceResult:
    """Bill one customer for a calendar month."""
    start, end = month_period(month, year)
    customer = await get_customer(db, customer_id)
    return await _generate_for_customer(db, customer, start, end, update_existing, today or date.today())


async def generate_invoices_batch(
    db: AsyncSession,
    month: int,
    year: int,
    *,
    update_existing: bool = False,
    today: date | None = None,
) -> dict:
    """Bill every active customer for a calendar month.

    The running month can only be billed in its last days. Failures are
    collected per customer; the batch always finishes.
    """
    today = today or date.today()
    start, end = month_period(month, year)

    if (year, month) == (today.year, today.month) and today.day < end.day - (BATCH_CUTOFF_DAYS - 1):
        remaining = end.day - today.day
        raise BusinessLogicError(
            f"Cannot generate invoices for the current month until the end of the month "
            f"({remaining} days remaining). This ensures all deliveries are included in the invoice.",
            error_code="BILLING_PERIOD_OPEN",
            details={"days_remaining": remaining},
        )

    customers = (
        await db.execute(
            select(Customer)
            .where(Customer.is_active == True)  # noqa: E712
            .order_by(Customer.customer_no)
        )
    ).scalars().all()

    created, updated, failed = [], [], []
    for customer in customers:
        customer_id, name = customer.id, customer.name
        try:
            async with db.begin_nested():
                result = await _generate_for_customer(db, customer, start, end, update_existing, today)
        except DairyLedgerException as exc:
            entry = {"customer_id": customer_id, "name": name, "reason": exc.message}
            if exc.details and "invoice_number" in exc.details:
                entry["invoice_number"] = exc.details["invoice_number"]
            failed.append(entry)
            continue
        except Exception as exc:
            logger.exception("Invoice generation failed for customer %s", customer_id)
            failed.append({"customer_id": customer_id, "name": name, "reason": str(exc)})
            continue

        entry = {
            "customer_id": customer_id,
            "name": name,
            "invoice_id": result.invoice.id,
            "invoice_number": result.invoice.invoice_number,
            "total_amount": result.invoice.total_amount,
            "advance_used": result.advance_used,
        }
        (created if result.action == "created" else updated).append(entry)

    logger.info(
        "Batch invoicing %02d/%d: %d created, %d updated, %d failed",
        month, year, len(created), len(updated), len(failed),
    )
    return {
        "total_processed": len(customers),
        "created": created,
        "updated": updated,
        "failed": failed,
    }


# ── Payments and status ─────────────────────────────────────

async def next_transaction_id(db: AsyncSession, customer: Customer, year: int) -> str:
    """`{year}_{customer_no}_{seq}`, one past the highest seq used this year."""
    prefix = f"{year}_{customer.customer_no}_"
    rows = await db.execute(
        select(InvoicePayment.transaction_id)
        .join(Invoice, Invoice.id == InvoicePayment.invoice_id)
        .where(
            Invoice.customer_id == customer.id,
            InvoicePayment.transaction_id.like(f"{prefix}%"),
        )
    )
    seqs = [
        int(tx[len(prefix):])
        for tx in rows.scalars().all()
        if tx and tx[len(prefix):].isdigit()
    ]
    return f"{prefix}{max(seqs, default=0) + 1}"


async def add_payment(
    db: AsyncSession,
    invoice_id: str,
    amount: float,
    method: str,
    *,
    transaction_id: str | None = None,
    notes: str | None = None,
    today: date | None = None,
) -> dict:
    """Apply a payment; anything above the due amount goes to customer credit."""
    if amount is None or amount <= 0:
        raise BusinessLogicError("Payment amount must be positive", error_code="INVALID_AMOUNT")
    if method not in PAYMENT_METHODS:
        raise BusinessLogicError(
            f"Payment method must be one of {', '.join(PAYMENT_METHODS)}",
            error_code="INVALID_PAYMENT_METHOD",
        )
    today = today or date.today()
    invoice = await get_invoice(db, invoice_id)
    customer = await get_customer(db, invoice.customer_id)

    applied = money(min(amount, max(invoice.due_amount, 0.0)))
    excess = money(amount - applied)

    if method != "cash" and not transaction_id:
        transaction_id = await next_transaction_id(db, customer, today.year)
    if excess > 0:
        note = f"{excess:.2f} credited to advance balance"
        notes = f"{notes}; {note}" if notes else note

    invoice.payments.append(
        InvoicePayment(
            amount=applied,
            paid_on=today,
            method=method,
            transaction_id=transaction_id,
            notes=notes,
        )
    )
    await credit_overpayment(db, customer, excess, invoice.id)
    recalculate(invoice, today)
    await db.flush()
    logger.info(
        "Payment of %.2f on %s (%.2f applied, %.2f to credit)",
        amount, invoice.invoice_number, applied, excess,
    )
    return {"invoice": invoice, "applied": applied, "credited": excess}


async def delete_invoice(db: AsyncSession, invoice_id: str) -> None:
    invoice = await get_invoice(db, invoice_id)
    if invoice.payments:
        raise ConflictError(
            "Cannot delete an invoice with recorded payments",
            error_code="INVOICE_HAS_PAYMENTS",
            details={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "payment_count": len(invoice.payments),
            },
        )
    await db.delete(invoice)
    await db.flush()
    logger.info("Invoice %s deleted", invoice.invoice_number)


async def override_status(db: AsyncSession, invoice_id: str, status: str) -> Invoice:
    """Set the status as given; the derived rule is not applied."""
    if status not in INVOICE_STATUSES:
        raise BusinessLogicError(
            f"Status must be one of {', '.join(INVOICE_STATUSES)}",
            error_code="INVALID_STATUS",
        )
    invoice = await get_invoice(db, invoice_id)
    invoice.status = status
    await db.flush()
    logger.info("Invoice %s status overridden to %s", invoice.invoice_number, status)
    return invoice


async def refresh_overdue_statuses(db: AsyncSession, today: date | None = None) -> int:
    """Move unpaid pending invoices past their due date to overdue."""
    today = today or date.today()
    result = await db.execute(
        select(Invoice).where(
            Invoice.status == "pending",
            Invoice.due_date < today,
        )
    )
    changed = 0
    for invoice in result.scalars().all():
        before = invoice.status
        recalculate(invoice, today)
        if invoice.status != before:
            changed += 1
    await db.flush()
    logger.info("Overdue refresh: %d invoices updated", changed)
    return changed


# ── Read views ──────────────────────────────────────────────

async def list_invoices(
    db: AsyncSession,
    *,
    customer_id: str | None = None,
    status: str | None = None,
    month: int | None = None,
    year: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Invoice], int]:
    stmt = select(Invoice)
    if customer_id:
        stmt = stmt.where(Invoice.customer_id == customer_id)
    if status:
        stmt = stmt.where(Invoice.status == status)
    if year:
        if month:
            start, end = month_period(month, year)
        else:
            start, end = date(year, 1, 1), date(year, 12, 31)
        stmt = stmt.where(Invoice.start_date <= end, Invoice.end_date >= start)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    rows = (
        await db.execute(
            stmt.order_by(Invoice.created_at.desc()).limit(limit).offset(offset)
        )
    ).scalars().all()
    return list(rows), total


async def check_existing(db: AsyncSession, customer_id: str, month: int, year: int) -> Invoice | None:
    start, end = month_period(month, year)
    await get_customer(db, customer_id)
    return await find_overlapping(db, customer_id, start, end)


def _totals(rows) -> dict:
    return {
        "total_invoices": len(rows),
        "total_amount": money(sum(r.total_amount for r in rows)),
        "total_paid": money(sum(r.amount_paid for r in rows)),
        "total_due": money(sum(r.due_amount for r in rows)),
    }


def _status_counts(rows) -> dict:
    counts = {s: 0 for s in INVOICE_STATUSES}
    for r in rows:
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts


def _brief(invoice: Invoice, customer_name: str | None) -> dict:
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer_id": invoice.customer_id,
        "customer_name": customer_name,
        "start_date": invoice.start_date,
        "end_date": invoice.end_date,
        "total_amount": invoice.total_amount,
        "due_amount": invoice.due_amount,
        "status": invoice.status,
    }


async def customer_summary(db: AsyncSession, customer_id: str) -> dict:
    customer = await get_customer(db, customer_id)
    invoices = (
        await db.execute(
            select(Invoice)
            .where(Invoice.customer_id == customer_id)
            .order_by(Invoice.start_date.desc())
        )
    ).scalars().all()
    return {
        "customer_id": customer.id,
        "customer_no": customer.customer_no,
        "name": customer.name,
        "credit_balance": money(customer.credit_balance),
        **_totals(invoices),
        "by_status": _status_counts(invoices),
        "invoices": [_brief(i, customer.name) for i in invoices],
    }


def _month_buckets(today: date, months: int) -> list[tuple[int, int]]:
    year, month = today.year, today.month
    buckets = []
    for _ in range(months):
        buckets.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(buckets))


async def dashboard(db: AsyncSession, today: date | None = None) -> dict:
    """Billing totals, status counts, monthly buckets, recent invoices, top debtors."""
    today = today or date.today()
    rows = (
        await db.execute(
            select(
                Invoice.total_amount,
                Invoice.amount_paid,
                Invoice.due_amount,
                Invoice.status,
                Invoice.created_at,
            )
        )
    ).all()

    buckets = _month_buckets(today, DASHBOARD_MONTHS)
    monthly = {
        key: {"year": key[0], "month": key[1], "count": 0, "total_amount": 0.0, "total_paid": 0.0}
        for key in buckets
    }
    for r in rows:
        bucket = monthly.get((r.created_at.year, r.created_at.month))
        if bucket:
            bucket["count"] += 1
            bucket["total_amount"] = money(bucket["total_amount"] + r.total_amount)
            bucket["total_paid"] = money(bucket["total_paid"] + r.amount_paid)

    recent = (
        await db.execute(
            select(Invoice, Customer.name)
            .join(Customer, Customer.id == Invoice.customer_id)
            .order_by(Invoice.created_at.desc())
            .limit(RECENT_INVOICES)
        )
    ).all()

    debtors = await customers_with_dues(db, limit=TOP_CUSTOMERS, offset=0)

    return {
        **_totals(rows),
        "by_status": _status_counts(rows),
        "monthly": [monthly[key] for key in buckets],
        "recent_invoices": [_brief(i, name) for i, name in recent],
        "top_customers": debtors["items"],
    }


async def customers_with_dues(
    db: AsyncSession,
    *,
    limit: int = 50,
    offset: int = 0,
    customer_no: int | None = None,
) -> dict:
    """Customers owing money, largest balance first.

    `customer_no` narrows the list (and the grand total) to one exact
    customer number.
    """
    due_sum = func.sum(Invoice.due_amount).label("total_due")
    grouped = (
        select(
            Invoice.customer_id,
            due_sum,
            func.count(Invoice.id).label("invoice_count"),
        )
        .where(Invoice.due_amount > 0)
        .group_by(Invoice.customer_id)
    )
    if customer_no is not None:
        grouped = grouped.join(Customer, Customer.id == Invoice.customer_id).where(
            Customer.customer_no == customer_no
        )
    grouped = grouped.subquery()
    total = (await db.execute(select(func.count()).select_from(grouped))).scalar() or 0
    grand_total = (await db.execute(select(func.coalesce(func.sum(grouped.c.total_due), 0.0)))).scalar()

    rows = (
        await db.execute(
            select(Customer, grouped.c.total_due, grouped.c.invoice_count)
            .join(grouped, grouped.c.customer_id == Customer.id)
            .order_by(grouped.c.total_due.desc(), Customer.customer_no)
            .limit(limit)
            .offset(offset)
        )
    ).all()
    items = [
        {
            "customer_id": customer.id,
            "customer_no": customer.customer_no,
            "name": customer.name,
            "phone": customer.phone,
            "total_due": money(total_due),
            "invoice_count": invoice_count,
        }
        for customer, total_due, invoice_count in rows
    ]
    return {
        "items": items,
        "total": total,
        "limit": limit,
        "offset": offset,
        "grand_total_due": money(grand_total or 0.0),
    }


async def render_invoice(db: AsyncSession, invoice_id: str) -> dict:
    """Everything the bill renderer needs for one invoice."""
    invoice = await get_invoice(db, invoice_id)
    customer = await get_customer(db, invoice.customer_id)
    outstanding = (
        await db.execute(
            select(func.coalesce(func.sum(Invoice.due_amount), 0.0)).where(
                Invoice.customer_id == customer.id,
                Invoice.status.in_(OPEN_INVOICE_STATUSES),
            )
        )
    ).scalar()
    schedule = await annotate_slots(customer.delivery_schedule or [], SettingsCatalog(db))
    return {
        "invoice": invoice,
        "customer": {
            "id": customer.id,
            "customer_no": customer.customer_no,
            "name": customer.name,
            "phone": customer.phone,
            "address": customer.address,
            "credit_balance": money(customer.credit_balance),
        },
        "delivery_schedule": schedule,
        "total_outstanding": money(outstanding or 0.0),
        "company": await get_setting(db, "company_profile"),
    }
