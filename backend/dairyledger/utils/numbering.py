"""Sequential document number generation.

Reads format templates from system_settings["number_formats"].

Format tokens:
  {yyyy}   → four-digit year of the generation date
  {yy}     → two-digit year of the generation date
  {mm}     → two-digit month of the generation date
  {seq:N}  → zero-padded sequence number, N digits

Default formats:
  invoice: INV-{yy}-{mm}-{seq:4}

The sequence does not reset: it continues from the most recently
created document's number. When that number does not match the current
template, it continues after the highest code that does (or from 1).
"""

import re
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.models.invoice import Invoice
from dairyledger.utils.settings_store import DEFAULTS, get_setting

DEFAULT_FORMATS = DEFAULTS["number_formats"]

# entity → (model, code column)
ENTITY_TABLE_MAP = {
    "invoice": (Invoice, Invoice.invoice_number),
}

_TOKEN_RE = re.compile(r"\{(yyyy|yy|mm|seq:\d+)\}")


async def _get_format(db: AsyncSession, entity: str) -> str:
    """Get the format template for an entity type from system_settings."""
    formats = await get_setting(db, "number_formats")
    return formats.get(entity) or DEFAULT_FORMATS[entity]


def _render(fmt: str, on: date, seq: int) -> str:
    def _sub(match: re.Match) -> str:
        token = match.group(1)
        if token == "yyyy":
            return f"{on.year:04d}"
        if token == "yy":
            return f"{on.year % 100:02d}"
        if token == "mm":
            return f"{on.month:02d}"
        width = int(token.split(":")[1])
        return f"{seq:0{width}d}"

    return _TOKEN_RE.sub(_sub, fmt)


def parse_sequence(fmt: str, code: str) -> int | None:
    """Extract the {seq:N} part of `code`, or None if it doesn't fit `fmt`."""
    pattern = ""
    pos = 0
    for match in _TOKEN_RE.finditer(fmt):
        pattern += re.escape(fmt[pos:match.start()])
        token = match.group(1)
        if token == "yyyy":
            pattern += r"\d{4}"
        elif token in ("yy", "mm"):
            pattern += r"\d{2}"
        else:
            pattern += r"(?P<seq>\d+)"
        pos = match.end()
    pattern += re.escape(fmt[pos:])

    found = re.fullmatch(pattern, code)
    if not found or found.groupdict().get("seq") is None:
        return None
    return int(found.group("seq"))


async def _latest_code(db: AsyncSession, entity: str) -> str | None:
    model, column = ENTITY_TABLE_MAP[entity]
    result = await db.execute(
        select(column)
        .order_by(model.created_at.desc(), column.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _highest_sequence(db: AsyncSession, entity: str, fmt: str) -> int:
    """Largest sequence among all existing codes that fit `fmt` (0 if none)."""
    _, column = ENTITY_TABLE_MAP[entity]
    codes = (await db.execute(select(column))).scalars()
    sequences = (parse_sequence(fmt, code) for code in codes)
    return max((seq for seq in sequences if seq is not None), default=0)


async def generate_code(
    db: AsyncSession,
    entity: str,
    on: date | None = None,
) -> str:
    """Generate the next sequential code for `entity`.

    Args:
        db: Database session
        entity: Key of ENTITY_TABLE_MAP, e.g. "invoice"
        on: Generation date for the date tokens (defaults to today)

    Returns:
        Generated code string, e.g. "INV-26-03-0042"
    """
    fmt = await _get_format(db, entity)
    latest = await _latest_code(db, entity)
    last_seq = parse_sequence(fmt, latest) if latest else None
    if latest is not None and last_seq is None:
        # template changed; continue after codes already issued under it
        last_seq = await _highest_sequence(db, entity, fmt)
    return _render(fmt, on or date.today(), (last_seq or 0) + 1)
