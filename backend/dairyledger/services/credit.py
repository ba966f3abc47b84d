"""Credit / advance ledger.

A customer's `credit_balance` only changes through `_post`, which writes a
CreditEntry with the signed amount and the resulting balance. Sources:

    overpayment   payment above an invoice's due amount      (+)
    consumed      applied to a newly generated invoice       (−)
    deposit       standalone advance deposit                 (+)
    admin_set     correction to an explicit value            (±)
    admin_clear   correction to zero                         (−)
"""

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from dairyledger.models.credit_entry import CreditEntry
from dairyledger.models.customer import Customer
from dairyledger.models.invoice import Invoice, InvoicePayment
from dairyledger.services.schedule import money

logger = logging.getLogger(__name__)

OPEN_INVOICE_STATUSES = ("pending", "partially_paid", "overdue")
ADVANCE_NOTE = "Advance applied from previous overpayment"


async def _post(
    db: AsyncSession,
    customer: Customer,
    kind: str,
    amount: float,
    *,
    invoice_id: str | None = None,
    notes: str | None = None,
) -> CreditEntry:
    balance = money((customer.credit_balance or 0.0) + amount)
    if balance < 0:
        raise BusinessLogicError(
            "Credit balance cannot go negative",
            error_code="NEGATIVE_CREDIT",
            details={"customer_id": customer.id, "balance": customer.credit_balance, "change": amount},
        )
    customer.credit_balance = balance
    entry = CreditEntry(
        customer_id=customer.id,
        kind=kind,
        amount=money(amount),
        balance_after=balance,
        invoice_id=invoice_id,
        notes=notes,
    )
    db.add(entry)
    logger.info(
        "Credit %s of %.2f for customer %s (balance now %.2f)",
        kind, amount, customer.customer_no, balance,
    )
    return entry


async def get_customer(db: AsyncSession, customer_id: str) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise ResourceNotFoundError("Customer", customer_id)
    return customer


# ── Invoice-linked movements ────────────────────────────────

async def credit_overpayment(
    db: AsyncSession, customer: Customer, amount: float, invoice_id: str
) -> None:
    if amount > 0:
        await _post(db, customer, "overpayment", amount, invoice_id=invoice_id)


async def consume_for_invoice(
    db: AsyncSession, customer: Customer, invoice: Invoice, paid_on: date | None = None
) -> float:
    """Apply available credit to a new invoice as a synthetic advance payment.

    Returns the amount consumed. Partial coverage uses the whole balance.
    """
    available = customer.credit_balance or 0.0
    if available <= 0 or invoice.total_amount <= 0:
        return 0.0

    consumed = money(min(available, invoice.total_amount))
    invoice.payments.append(
        InvoicePayment(
            amount=consumed,
            method="advance",
            paid_on=paid_on or date.today(),
            notes=ADVANCE_NOTE,
        )
    )
    await _post(db, customer, "consumed", -consumed, invoice_id=invoice.id)
    return consumed


# ── Admin operations ────────────────────────────────────────

async def deposit(db: AsyncSession, customer_id: str, amount: float, notes: str | None = None) -> Customer:
    if amount <= 0:
        raise BusinessLogicError("Deposit amount must be positive", error_code="INVALID_AMOUNT")
    customer = await get_customer(db, customer_id)
    await _post(db, customer, "deposit", amount, notes=notes)
    await db.flush()
    return customer


async def set_balance(db: AsyncSession, customer_id: str, amount: float, notes: str | None = None) -> Customer:
    if amount < 0:
        raise BusinessLogicError("Credit balance cannot be negative", error_code="NEGATIVE_CREDIT")
    customer = await get_customer(db, customer_id)
    change = money(amount - (customer.credit_balance or 0.0))
    await _post(db, customer, "admin_set", change, notes=notes)
    await db.flush()
    return customer


async def clear_balance(db: AsyncSession, customer_id: str, notes: str | None = None) -> Customer:
    customer = await get_customer(db, customer_id)
    await _post(db, customer, "admin_clear", -(customer.credit_balance or 0.0), notes=notes)
    await db.flush()
    return customer


# ── Read views ──────────────────────────────────────────────

async def net_position(db: AsyncSession, customer_id: str) -> dict:
    """Credit balance minus everything still owed on open invoices."""
    customer = await get_customer(db, customer_id)
    row = (
        await db.execute(
            select(
                func.coalesce(func.sum(Invoice.due_amount), 0.0),
                func.count(Invoice.id),
            ).where(
                Invoice.customer_id == customer_id,
                Invoice.status.in_(OPEN_INVOICE_STATUSES),
            )
        )
    ).one()
    outstanding = money(row[0])
    return {
        "customer_id": customer.id,
        "credit_balance": money(customer.credit_balance),
        "outstanding_due": outstanding,
        "open_invoices": row[1],
        "net_position": money(customer.credit_balance - outstanding),
    }


async def customers_with_credit(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
    base = select(Customer).where(Customer.credit_balance > 0)
    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    rows = (
        await db.execute(
            base.order_by(Customer.credit_balance.desc()).limit(limit).offset(offset)
        )
    ).scalars().all()
    items = [
        {
            "customer_id": c.id,
            "customer_no": c.customer_no,
            "name": c.name,
            "credit_balance": money(c.credit_balance),
        }
        for c in rows
    ]
    return items, total


async def credit_history(db: AsyncSession, customer_id: str) -> list[CreditEntry]:
    await get_customer(db, customer_id)
    result = await db.execute(
        select(CreditEntry)
        .where(CreditEntry.customer_id == customer_id)
        .order_by(CreditEntry.created_at, CreditEntry.id)
    )
    return list(result.scalars().all())
