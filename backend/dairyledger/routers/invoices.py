"""Invoices, payments, and billing views.

Endpoints:
    POST   /api/invoices/generate            Bill one customer for a month
    POST   /api/invoices/generate-batch      Bill all active customers for a month
    GET    /api/invoices/                    List invoices (customer/status/month/year)
    GET    /api/invoices/dashboard           Billing dashboard
    GET    /api/invoices/dues                Customers with outstanding dues
    GET    /api/invoices/dues/search?q=N     Dues for one customer number
    GET    /api/invoices/check               Does a customer already have this month's invoice?
    POST   /api/invoices/refresh-overdue     Move past-due pending invoices to overdue
    GET    /api/invoices/{id}                Single invoice
    GET    /api/invoices/{id}/render         Data for the printed bill
    POST   /api/invoices/{id}/payments       Record a payment
    PATCH  /api/invoices/{id}/status         Admin status override
    DELETE /api/invoices/{id}                Delete an invoice without payments
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.database import get_db
from dairyledger.schemas.common import PaginatedResponse
from dairyledger.schemas.invoice import (
    BatchInvoiceOut,
    CustomersWithDuesOut,
    DashboardOut,
    InvoiceBatchGenerate,
    InvoiceCheckOut,
    InvoiceGenerate,
    InvoiceGenerateOut,
    InvoiceOut,
    InvoiceRenderOut,
    PaymentCreate,
    PaymentResultOut,
    StatusOverride,
)
from dairyledger.services import invoices as invoice_service
from dairyledger.utils.cache import cached, invalidate_cache

router = APIRouter()


# ── Generation ───────────────────────────────────────────────

@router.post("/generate", response_model=InvoiceGenerateOut)
async def generate_invoice(body: InvoiceGenerate, db: AsyncSession = Depends(get_db)):
    """Create the month's invoice, or refresh it when `update_existing` is set.

    An overlapping invoice without `update_existing` is a 409 carrying the
    existing invoice's id and number.
    """
    result = await invoice_service.generate_invoice(
        db, body.customer_id, body.month, body.year, update_existing=body.update_existing
    )
    await invalidate_cache("billing:*")
    return InvoiceGenerateOut(
        action=result.action,
        advance_used=result.advance_used,
        invoice=InvoiceOut.model_validate(result.invoice),
    )


@router.post("/generate-batch", response_model=BatchInvoiceOut)
async def generate_invoices_batch(body: InvoiceBatchGenerate, db: AsyncSession = Depends(get_db)):
    result = await invoice_service.generate_invoices_batch(
        db, body.month, body.year, update_existing=body.update_existing
    )
    await invalidate_cache("billing:*")
    return result


# ── Listing and views ────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[InvoiceOut])
async def list_invoices(
    customer_id: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=2000, le=2100),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await invoice_service.list_invoices(
        db,
        customer_id=customer_id,
        status=status_filter,
        month=month,
        year=year,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        items=[InvoiceOut.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/dashboard", response_model=DashboardOut)
@cached(prefix="billing")
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    return await invoice_service.dashboard(db)


@router.get("/dues", response_model=CustomersWithDuesOut)
async def customers_with_dues(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.customers_with_dues(db, limit=limit, offset=offset)


@router.get("/dues/search", response_model=CustomersWithDuesOut)
async def search_customers_with_dues(
    q: int = Query(..., description="Exact customer number"),
    db: AsyncSession = Depends(get_db),
):
    return await invoice_service.customers_with_dues(db, customer_no=q)


@router.get("/check", response_model=InvoiceCheckOut)
async def check_existing(
    customer_id: str = Query(...),
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    invoice = await invoice_service.check_existing(db, customer_id, month, year)
    if invoice is None:
        return InvoiceCheckOut(exists=False)
    return InvoiceCheckOut(exists=True, invoice_id=invoice.id, invoice_number=invoice.invoice_number)


@router.post("/refresh-overdue")
async def refresh_overdue(db: AsyncSession = Depends(get_db)):
    changed = await invoice_service.refresh_overdue_statuses(db)
    if changed:
        await invalidate_cache("billing:*")
    return {"updated": changed}


# ── /api/invoices/{id} ───────────────────────────────────────

@router.get("/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(invoice_id: str, db: AsyncSession = Depends(get_db)):
    return InvoiceOut.model_validate(await invoice_service.get_invoice(db, invoice_id))


@router.get("/{invoice_id}/render", response_model=InvoiceRenderOut)
async def render_invoice(invoice_id: str, db: AsyncSession = Depends(get_db)):
    data = await invoice_service.render_invoice(db, invoice_id)
    data["invoice"] = InvoiceOut.model_validate(data["invoice"])
    return data


@router.post(
    "/{invoice_id}/payments",
    response_model=PaymentResultOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_payment(invoice_id: str, body: PaymentCreate, db: AsyncSession = Depends(get_db)):
    """Apply a payment; any excess over the due amount becomes customer credit."""
    result = await invoice_service.add_payment(
        db,
        invoice_id,
        body.amount,
        body.method,
        transaction_id=body.transaction_id,
        notes=body.notes,
    )
    await invalidate_cache("billing:*")
    return PaymentResultOut(
        applied=result["applied"],
        credited=result["credited"],
        invoice=InvoiceOut.model_validate(result["invoice"]),
    )


@router.patch("/{invoice_id}/status", response_model=InvoiceOut)
async def override_status(invoice_id: str, body: StatusOverride, db: AsyncSession = Depends(get_db)):
    invoice = await invoice_service.override_status(db, invoice_id, body.status)
    await invalidate_cache("billing:*")
    return InvoiceOut.model_validate(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: str, db: AsyncSession = Depends(get_db)):
    await invoice_service.delete_invoice(db, invoice_id)
    await invalidate_cache("billing:*")
