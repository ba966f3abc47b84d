"""Read/write helpers for the `system_settings` key-value table.

Every key has a default, so a fresh database behaves as if the row
existed. Rows are only written when an admin changes a value.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.models.system_setting import SystemSetting

DEFAULTS: dict[str, dict] = {
    "company_profile": {
        "name": "Dairy Ledger",
        "address": "",
        "phone": "",
        "email": "",
        "tagline": "Fresh milk, delivered daily",
    },
    "number_formats": {
        "invoice": "INV-{yy}-{mm}-{seq:4}",
    },
    # milk type / subcategory id → {"name": ..., "price": ...}
    "catalog": {},
}


async def get_setting(db: AsyncSession, key: str) -> dict:
    """Stored value for `key` merged over its default."""
    result = await db.execute(select(SystemSetting).where(SystemSetting.key == key))
    row = result.scalar_one_or_none()
    value = dict(DEFAULTS.get(key, {}))
    if row and row.value:
        value.update(row.value)
    return value


async def put_setting(db: AsyncSession, key: str, value: dict) -> dict:
    """Merge `value` into the stored row for `key`, creating it if needed."""
    result = await db.execute(select(SystemSetting).where(SystemSetting.key == key))
    row = result.scalar_one_or_none()
    if row is None:
        row = SystemSetting(key=key, value=dict(value))
        db.add(row)
    else:
        # Reassign so the JSON column is flagged dirty
        row.value = {**row.value, **value}
    await db.flush()
    return await get_setting(db, key)
