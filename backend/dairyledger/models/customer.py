"""Customer: a household on a standing milk delivery schedule.

The schedule is stored as JSON, one entry per slot:

    [{"slot": "morning",
      "items": [{"milk_type_id": "...", "subcategory_id": "...",
                 "quantity": 2, "price_per_unit": 60.0, "total_price": 120.0}],
      "total_quantity": 2, "total_price": 120.0}, ...]

Line and slot totals are denormalized and always rewritten together by
`services.schedule.recompute_schedule`.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dairyledger.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    customer_no: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    # ── Identity ─────────────────────────────────────────────
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    joined_date: Mapped[date] = mapped_column(Date, default=date.today)

    # ── Standing schedule ────────────────────────────────────
    delivery_schedule: Mapped[list] = mapped_column(JSON, default=list)
    total_daily_quantity: Mapped[float] = mapped_column(Float, default=0.0)
    total_daily_price: Mapped[float] = mapped_column(Float, default=0.0)

    # ── Credit / advance ─────────────────────────────────────
    credit_balance: Mapped[float] = mapped_column(Float, default=0.0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
