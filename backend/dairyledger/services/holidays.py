"""Holiday calendar and the oracle the record generator consults.

`DatabaseHolidayOracle.is_holiday` checks an exact-date entry first, then
yearly-recurring entries by month/day. A failed lookup is logged and the
date treated as a working day, so an outage never blocks deliveries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from sqlalchemy import extract, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.middleware.exceptions import ResourceNotFoundError
from dairyledger.models.holiday import Holiday

logger = logging.getLogger(__name__)


@dataclass
class HolidayCheck:
    is_holiday: bool
    name: str | None = None


class HolidayOracle(Protocol):
    async def is_holiday(self, on: date) -> HolidayCheck: ...


class DatabaseHolidayOracle:
    """Answers holiday questions from the `holidays` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_holiday(self, on: date) -> HolidayCheck:
        try:
            # savepoint: a failed lookup must not abort the caller's transaction
            async with self.db.begin_nested():
                name = await self._find(on)
        except SQLAlchemyError:
            logger.warning(
                "Holiday lookup failed for %s; treating it as a working day",
                on, exc_info=True,
            )
            return HolidayCheck(False)
        if name is not None:
            return HolidayCheck(True, name)
        return HolidayCheck(False)

    async def _find(self, on: date) -> str | None:
        exact = (
            await self.db.execute(
                select(Holiday.name).where(Holiday.holiday_date == on).limit(1)
            )
        ).scalar_one_or_none()
        if exact is not None:
            return exact

        return (
            await self.db.execute(
                select(Holiday.name).where(
                    Holiday.is_recurring_yearly == True,  # noqa: E712
                    extract("month", Holiday.holiday_date) == on.month,
                    extract("day", Holiday.holiday_date) == on.day,
                ).limit(1)
            )
        ).scalar_one_or_none()


# ── Calendar maintenance ────────────────────────────────────

async def create_holiday(
    db: AsyncSession,
    *,
    name: str,
    holiday_date: date,
    reason: str | None = None,
    is_recurring_yearly: bool = False,
) -> Holiday:
    holiday = Holiday(
        name=name,
        holiday_date=holiday_date,
        reason=reason,
        is_recurring_yearly=is_recurring_yearly,
    )
    db.add(holiday)
    await db.flush()
    logger.info("Holiday %s added for %s", name, holiday_date)
    return holiday


async def list_holidays(
    db: AsyncSession,
    *,
    year: int | None = None,
    recurring: bool | None = None,
) -> list[Holiday]:
    """Holidays ordered by date; `year` keeps recurring entries from any year."""
    stmt = select(Holiday).order_by(Holiday.holiday_date)
    if recurring is not None:
        stmt = stmt.where(Holiday.is_recurring_yearly == recurring)
    if year is not None:
        stmt = stmt.where(
            (extract("year", Holiday.holiday_date) == year)
            | (Holiday.is_recurring_yearly == True)  # noqa: E712
        )
    return list((await db.execute(stmt)).scalars().all())


async def delete_holiday(db: AsyncSession, holiday_id: str) -> None:
    holiday = await db.get(Holiday, holiday_id)
    if not holiday:
        raise ResourceNotFoundError("Holiday", holiday_id)
    await db.delete(holiday)
    await db.flush()
