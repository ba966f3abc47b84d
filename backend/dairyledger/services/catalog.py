"""Milk type / subcategory lookup used for display.

Category management lives outside this service. The core only needs
`resolve(id) -> CatalogEntry | None` to put names on bills; it never
changes prices stored on schedules or records.

`SettingsCatalog` reads the id → {"name", "price"} map kept under the
`catalog` system setting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.utils.settings_store import get_setting


@dataclass
class CatalogEntry:
    name: str
    price: float | None = None


class CatalogResolver(Protocol):
    async def resolve(self, item_id: str) -> CatalogEntry | None: ...


class SettingsCatalog:
    def __init__(self, db: AsyncSession):
        self.db = db
        self._entries: dict | None = None

    async def resolve(self, item_id: str) -> CatalogEntry | None:
        if self._entries is None:
            self._entries = await get_setting(self.db, "catalog")
        entry = self._entries.get(item_id)
        if not entry:
            return None
        return CatalogEntry(name=entry.get("name", item_id), price=entry.get("price"))


async def annotate_slots(slots: list[dict], resolver: CatalogResolver) -> list[dict]:
    """Copy of `slots` with milk_type_name / subcategory_name filled in where known."""
    out = []
    for entry in slots:
        items = []
        for item in entry.get("items", []):
            milk_type = await resolver.resolve(item.get("milk_type_id", ""))
            subcategory = await resolver.resolve(item.get("subcategory_id", ""))
            items.append({
                **item,
                "milk_type_name": milk_type.name if milk_type else item.get("milk_type_name"),
                "subcategory_name": subcategory.name if subcategory else item.get("subcategory_name"),
            })
        out.append({**entry, "items": items})
    return out
