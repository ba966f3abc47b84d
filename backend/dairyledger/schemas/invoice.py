"""Pydantic schemas for invoices, payments, and billing views."""

from datetime import date, datetime

from pydantic import BaseModel, field_validator

from dairyledger.models.invoice import INVOICE_STATUSES, PAYMENT_METHODS
from dairyledger.schemas.customer import SlotSchedule
from dairyledger.schemas.record import FailedItem


def _valid_month(v: int) -> int:
    if not 1 <= v <= 12:
        raise ValueError("Month must be between 1 and 12")
    return v


class InvoiceGenerate(BaseModel):
    customer_id: str
    month: int
    year: int
    update_existing: bool = False

    @field_validator("month")
    @classmethod
    def valid_month(cls, v: int) -> int:
        return _valid_month(v)


class InvoiceBatchGenerate(BaseModel):
    month: int
    year: int
    update_existing: bool = False

    @field_validator("month")
    @classmethod
    def valid_month(cls, v: int) -> int:
        return _valid_month(v)


class PaymentCreate(BaseModel):
    amount: float
    method: str = "cash"
    transaction_id: str | None = None
    notes: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        if v not in PAYMENT_METHODS:
            raise ValueError(f"method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class StatusOverride(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in INVOICE_STATUSES:
            raise ValueError(f"status must be one of {', '.join(INVOICE_STATUSES)}")
        return v


class PaymentOut(BaseModel):
    id: str
    amount: float
    paid_on: date
    method: str
    transaction_id: str | None = None
    notes: str | None = None

    model_config = {"from_attributes": True}


class InvoiceItem(BaseModel):
    record_id: str | None = None
    record_date: date
    slots: list[SlotSchedule]
    total_daily_quantity: float
    total_daily_price: float


class InvoiceOut(BaseModel):
    id: str
    invoice_number: str
    customer_id: str
    start_date: date
    end_date: date
    due_date: date
    items: list[InvoiceItem]
    total_quantity: float
    total_amount: float
    amount_paid: float
    due_amount: float
    status: str
    notes: str | None = None
    payments: list[PaymentOut]
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceGenerateOut(BaseModel):
    action: str
    advance_used: float
    invoice: InvoiceOut


class InvoiceCheckOut(BaseModel):
    exists: bool
    invoice_id: str | None = None
    invoice_number: str | None = None


class PaymentResultOut(BaseModel):
    applied: float
    credited: float
    invoice: InvoiceOut


class BatchInvoiceEntry(BaseModel):
    customer_id: str
    name: str | None = None
    invoice_id: str
    invoice_number: str
    total_amount: float
    advance_used: float = 0.0


class BatchInvoiceOut(BaseModel):
    total_processed: int
    created: list[BatchInvoiceEntry]
    updated: list[BatchInvoiceEntry]
    failed: list[FailedItem]


class InvoiceBrief(BaseModel):
    id: str
    invoice_number: str
    customer_id: str
    customer_name: str | None = None
    start_date: date
    end_date: date
    total_amount: float
    due_amount: float
    status: str


class MonthlyBucket(BaseModel):
    year: int
    month: int
    count: int
    total_amount: float
    total_paid: float


class CustomerDue(BaseModel):
    customer_id: str
    customer_no: int
    name: str
    phone: str
    total_due: float
    invoice_count: int


class DashboardOut(BaseModel):
    total_invoices: int
    total_amount: float
    total_paid: float
    total_due: float
    by_status: dict[str, int]
    monthly: list[MonthlyBucket]
    recent_invoices: list[InvoiceBrief]
    top_customers: list[CustomerDue]


class CustomerBillingSummary(BaseModel):
    customer_id: str
    customer_no: int
    name: str
    credit_balance: float
    total_invoices: int
    total_amount: float
    total_paid: float
    total_due: float
    by_status: dict[str, int]
    invoices: list[InvoiceBrief]


class CustomersWithDuesOut(BaseModel):
    items: list[CustomerDue]
    total: int
    limit: int
    offset: int
    grand_total_due: float


class BillCustomer(BaseModel):
    id: str
    customer_no: int
    name: str
    phone: str
    address: str | None = None
    credit_balance: float


class InvoiceRenderOut(BaseModel):
    invoice: InvoiceOut
    customer: BillCustomer
    delivery_schedule: list[SlotSchedule]
    total_outstanding: float
    company: dict
