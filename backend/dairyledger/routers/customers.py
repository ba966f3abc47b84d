"""Customer management and credit balances.

Endpoints:
    POST   /api/customers/                         Create (backfills past join dates)
    GET    /api/customers/                         List customers
    GET    /api/customers/with-credit              Customers holding credit
    GET    /api/customers/{id}                     Single customer
    PATCH  /api/customers/{id}                     Update (schedule totals recomputed)
    DELETE /api/customers/{id}                     Delete a customer without invoices
    POST   /api/customers/{id}/backfill            Backfill records up to yesterday
    GET    /api/customers/{id}/credit              Credit balance vs. open dues
    GET    /api/customers/{id}/credit/history      Credit journal
    POST   /api/customers/{id}/credit/deposit      Record an advance deposit
    PUT    /api/customers/{id}/credit              Set the balance explicitly
    DELETE /api/customers/{id}/credit              Clear the balance
    GET    /api/customers/{id}/invoices            The customer's invoices
    GET    /api/customers/{id}/billing-summary     Invoice totals for the customer
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.database import get_db
from dairyledger.schemas.common import PaginatedResponse
from dairyledger.schemas.customer import (
    BackfillOut,
    CreditAmount,
    CreditBalanceOut,
    CreditEntryOut,
    CreditPositionOut,
    CustomerCreate,
    CustomerCreateOut,
    CustomerOut,
    CustomerUpdate,
)
from dairyledger.schemas.invoice import CustomerBillingSummary, InvoiceOut
from dairyledger.services import credit as credit_service
from dairyledger.services import customers as customer_service
from dairyledger.services import invoices as invoice_service
from dairyledger.services.records import backfill_customer_records
from dairyledger.utils.cache import cached, invalidate_cache

router = APIRouter()


# ── POST /api/customers/ ─────────────────────────────────────

@router.post("/", response_model=CustomerCreateOut, status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a customer; a past join date backfills records through yesterday."""
    data = body.model_dump()
    data["delivery_schedule"] = [s.model_dump() for s in body.delivery_schedule]
    customer, backfill = await customer_service.create_customer(db, data)
    return CustomerCreateOut(
        customer=CustomerOut.model_validate(customer),
        backfill=BackfillOut(**backfill),
    )


# ── GET /api/customers/ ──────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[CustomerOut])
async def list_customers(
    search: str | None = Query(None, description="Name or phone fragment"),
    is_active: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await customer_service.list_customers(
        db, search=search, is_active=is_active, limit=limit, offset=offset
    )
    return PaginatedResponse(
        items=[CustomerOut.model_validate(c) for c in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/with-credit", response_model=PaginatedResponse[CreditBalanceOut])
async def list_customers_with_credit(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await credit_service.customers_with_credit(db, limit=limit, offset=offset)
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


# ── /api/customers/{id} ──────────────────────────────────────

@router.get("/{customer_id}", response_model=CustomerOut)
async def get_customer(customer_id: str, db: AsyncSession = Depends(get_db)):
    return CustomerOut.model_validate(await credit_service.get_customer(db, customer_id))


@router.patch("/{customer_id}", response_model=CustomerOut)
async def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if body.delivery_schedule is not None:
        updates["delivery_schedule"] = [s.model_dump() for s in body.delivery_schedule]
    customer = await customer_service.update_customer(db, customer_id, updates)
    return CustomerOut.model_validate(customer)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: str, db: AsyncSession = Depends(get_db)):
    await customer_service.delete_customer(db, customer_id)
    await invalidate_cache("billing:*")


@router.post("/{customer_id}/backfill", response_model=BackfillOut)
async def backfill_records(customer_id: str, db: AsyncSession = Depends(get_db)):
    customer = await credit_service.get_customer(db, customer_id)
    return BackfillOut(**await backfill_customer_records(db, customer))


# ── Credit ───────────────────────────────────────────────────

@router.get("/{customer_id}/credit", response_model=CreditPositionOut)
async def get_credit_position(customer_id: str, db: AsyncSession = Depends(get_db)):
    """Credit balance minus the dues on pending / partially paid / overdue invoices."""
    return await credit_service.net_position(db, customer_id)


@router.get("/{customer_id}/credit/history", response_model=list[CreditEntryOut])
async def get_credit_history(customer_id: str, db: AsyncSession = Depends(get_db)):
    entries = await credit_service.credit_history(db, customer_id)
    return [CreditEntryOut.model_validate(e) for e in entries]


@router.post("/{customer_id}/credit/deposit", response_model=CreditPositionOut)
async def deposit_credit(
    customer_id: str,
    body: CreditAmount,
    db: AsyncSession = Depends(get_db),
):
    await credit_service.deposit(db, customer_id, body.amount, notes=body.notes)
    await invalidate_cache("billing:*")
    return await credit_service.net_position(db, customer_id)


@router.put("/{customer_id}/credit", response_model=CreditPositionOut)
async def set_credit(
    customer_id: str,
    body: CreditAmount,
    db: AsyncSession = Depends(get_db),
):
    await credit_service.set_balance(db, customer_id, body.amount, notes=body.notes)
    await invalidate_cache("billing:*")
    return await credit_service.net_position(db, customer_id)


@router.delete("/{customer_id}/credit", response_model=CreditPositionOut)
async def clear_credit(customer_id: str, db: AsyncSession = Depends(get_db)):
    await credit_service.clear_balance(db, customer_id)
    await invalidate_cache("billing:*")
    return await credit_service.net_position(db, customer_id)


# ── Billing views ────────────────────────────────────────────

@router.get("/{customer_id}/invoices", response_model=list[InvoiceOut])
async def list_customer_invoices(customer_id: str, db: AsyncSession = Depends(get_db)):
    await credit_service.get_customer(db, customer_id)
    items, _ = await invoice_service.list_invoices(db, customer_id=customer_id, limit=1000)
    return [InvoiceOut.model_validate(i) for i in items]


@router.get("/{customer_id}/billing-summary", response_model=CustomerBillingSummary)
@cached(prefix="billing")
async def get_billing_summary(customer_id: str, db: AsyncSession = Depends(get_db)):
    return await invoice_service.customer_summary(db, customer_id)
