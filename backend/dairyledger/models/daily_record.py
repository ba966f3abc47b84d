"""DailyRecord: what was delivered to one customer on one day.

`slots` is a snapshot of the schedule as of that day, same shape as
`Customer.delivery_schedule`, with adjustments already applied. Later
schedule edits never touch it.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dairyledger.database import Base


class DailyRecord(Base):
    __tablename__ = "daily_records"
    __table_args__ = (
        UniqueConstraint("customer_id", "record_date", name="uq_daily_records_customer_date"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )
    record_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    slots: Mapped[list] = mapped_column(JSON, default=list)
    total_daily_quantity: Mapped[float] = mapped_column(Float, default=0.0)
    total_daily_price: Mapped[float] = mapped_column(Float, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    customer = relationship("Customer", lazy="selectin")
