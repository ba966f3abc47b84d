"""Aggregate model imports for Alembic auto-detection."""

# Customers and their standing orders
from dairyledger.models.customer import Customer  # noqa: F401
from dairyledger.models.holiday import Holiday  # noqa: F401
from dairyledger.models.system_setting import SystemSetting  # noqa: F401

# Deliveries
from dairyledger.models.daily_record import DailyRecord  # noqa: F401
from dairyledger.models.quantity_adjustment import QuantityAdjustment  # noqa: F401

# Billing
from dairyledger.models.invoice import Invoice, InvoicePayment  # noqa: F401
from dairyledger.models.credit_entry import CreditEntry  # noqa: F401
