"""System-wide configuration key-value store."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from dairyledger.database import Base


class SystemSetting(Base):
    """One row per well-known key, read through `utils.settings_store`.

    Used for:
      - company_profile: {"name": "...", "address": "...", "phone": "...", ...}
      - number_formats: {"invoice": "INV-{yy}-{mm}-{seq:4}"}
      - catalog: {"<milk type or subcategory id>": {"name": "Cow milk", "price": 60}}
    """
    __tablename__ = "system_settings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
