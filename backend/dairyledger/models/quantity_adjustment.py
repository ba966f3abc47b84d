"""QuantityAdjustment: a one-off quantity change for one line item on one day.

Keyed by (customer, date, slot, milk type, subcategory); a repeat request
for the same key rewrites the existing row.

Lifecycle:  pending → accepted | rejected
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dairyledger.database import Base

ADJUSTMENT_STATUSES = ("pending", "accepted", "rejected")


class QuantityAdjustment(Base):
    __tablename__ = "quantity_adjustments"
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "adjustment_date", "slot", "milk_type_id", "subcategory_id",
            name="uq_quantity_adjustments_key",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Key ──────────────────────────────────────────────────
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )
    adjustment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    slot: Mapped[str] = mapped_column(String(20), nullable=False)  # morning | evening
    milk_type_id: Mapped[str] = mapped_column(String(36), nullable=False)
    subcategory_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # ── Change ───────────────────────────────────────────────
    old_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    new_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    delta: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # pending | accepted | rejected
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    last_quantity: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_accepted(self) -> bool:
        return self.status == "accepted"
