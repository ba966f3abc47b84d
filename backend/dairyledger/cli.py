"""Management CLI for the daily and monthly jobs.

Usage:
    python -m dairyledger.cli daily-records [--date YYYY-MM-DD]
    python -m dairyledger.cli backfill CUSTOMER_ID
    python -m dairyledger.cli invoices MONTH YEAR [--update-existing]
    python -m dairyledger.cli refresh-overdue
"""

import argparse
import asyncio
import sys
from datetime import date

from dairyledger.database import async_session
from dairyledger.middleware.exceptions import DairyLedgerException
from dairyledger.services.credit import get_customer
from dairyledger.services.invoices import generate_invoices_batch, refresh_overdue_statuses
from dairyledger.services.records import backfill_customer_records, create_daily_records


async def _in_session(job):
    async with async_session() as db:
        try:
            result = await job(db)
            await db.commit()
            return result
        except Exception:
            await db.rollback()
            raise


async def daily_records(on: date | None) -> None:
    summary = await _in_session(lambda db: create_daily_records(db, on))
    if summary.holiday:
        print(f"{summary.record_date} is a holiday ({summary.holiday_name}); nothing generated.")
        return
    print(
        f"{summary.record_date}: {summary.created} created, {summary.existing} existing, "
        f"{summary.skipped} skipped, {len(summary.failed)} failed "
        f"({summary.total_customers} customers)"
    )
    for failure in summary.failed:
        print(f"  FAILED {failure['name']} ({failure['customer_id']}): {failure['reason']}")


async def backfill(customer_id: str) -> None:
    async def job(db):
        customer = await get_customer(db, customer_id)
        return await backfill_customer_records(db, customer)

    result = await _in_session(job)
    print(result["message"])


async def invoices(month: int, year: int, update_existing: bool) -> None:
    result = await _in_session(
        lambda db: generate_invoices_batch(db, month, year, update_existing=update_existing)
    )
    print(
        f"{result['total_processed']} customers: {len(result['created'])} created, "
        f"{len(result['updated'])} updated, {len(result['failed'])} failed"
    )
    for failure in result["failed"]:
        print(f"  FAILED {failure['name']}: {failure['reason']}")


async def refresh_overdue() -> None:
    changed = await _in_session(refresh_overdue_statuses)
    print(f"{changed} invoices marked overdue")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dairyledger")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("daily-records", help="Generate daily records for all active customers")
    p.add_argument("--date", type=date.fromisoformat, default=None)

    p = sub.add_parser("backfill", help="Backfill one customer's records up to yesterday")
    p.add_argument("customer_id")

    p = sub.add_parser("invoices", help="Generate invoices for all active customers")
    p.add_argument("month", type=int)
    p.add_argument("year", type=int)
    p.add_argument("--update-existing", action="store_true")

    sub.add_parser("refresh-overdue", help="Mark past-due pending invoices overdue")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "daily-records":
            asyncio.run(daily_records(args.date))
        elif args.command == "backfill":
            asyncio.run(backfill(args.customer_id))
        elif args.command == "invoices":
            asyncio.run(invoices(args.month, args.year, args.update_existing))
        elif args.command == "refresh-overdue":
            asyncio.run(refresh_overdue())
    except DairyLedgerException as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
