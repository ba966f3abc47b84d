import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dairyledger.config import settings
from dairyledger.middleware.exceptions import register_exception_handlers
from dairyledger.routers import adjustments, customers, health, holidays, invoices, records
from dairyledger.routers import settings as settings_router
from dairyledger.services.scheduler import lifespan

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="DairyLedger",
    description="Milk delivery subscriptions, daily records and monthly billing",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
app.include_router(holidays.router, prefix="/api/holidays", tags=["holidays"])
app.include_router(records.router, prefix="/api/records", tags=["records"])
app.include_router(adjustments.router, prefix="/api/adjustments", tags=["adjustments"])
app.include_router(invoices.router, prefix="/api/invoices", tags=["invoices"])
app.include_router(settings_router.router, prefix="/api/settings", tags=["settings"])
