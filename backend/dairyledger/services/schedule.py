"""Delivery schedule arithmetic.

A schedule (standing order or daily snapshot) is a list of slot dicts,
each with a list of line items. `recompute_schedule` is the only place
line, slot and day totals are derived; call it after any quantity or
price change.
"""

SLOTS = ("morning", "evening")


def money(value: float) -> float:
    return round(float(value), 2)


def validate_slots(slots: list[dict]) -> None:
    """Raise ValueError on an unknown or repeated slot, or a negative value."""
    seen: set[str] = set()
    for entry in slots:
        slot = entry.get("slot")
        if slot not in SLOTS:
            raise ValueError(f"Unknown delivery slot: {slot!r}")
        if slot in seen:
            raise ValueError(f"Delivery slot {slot!r} appears more than once")
        seen.add(slot)
        for item in entry.get("items", []):
            if float(item.get("quantity", 0)) < 0:
                raise ValueError("Quantity cannot be negative")
            if float(item.get("price_per_unit", 0)) < 0:
                raise ValueError("Price per unit cannot be negative")


def recompute_schedule(slots: list[dict]) -> tuple[list[dict], float, float]:
    """Return (new slots, day quantity, day amount) with every total rewritten.

    The input is not modified.
    """
    out = []
    day_quantity = 0.0
    day_amount = 0.0
    for entry in slots:
        items = []
        slot_quantity = 0.0
        slot_amount = 0.0
        for item in entry.get("items", []):
            quantity = float(item.get("quantity", 0))
            price = float(item.get("price_per_unit", 0))
            total = money(quantity * price)
            items.append({**item, "quantity": quantity, "price_per_unit": price, "total_price": total})
            slot_quantity += quantity
            slot_amount += total
        out.append({
            **entry,
            "items": items,
            "total_quantity": slot_quantity,
            "total_price": money(slot_amount),
        })
        day_quantity += slot_quantity
        day_amount += slot_amount
    return out, day_quantity, money(day_amount)


def find_item(slots: list[dict], slot: str, milk_type_id: str, subcategory_id: str) -> dict | None:
    """The line item for (slot, milk type, subcategory), or None."""
    for entry in slots:
        if entry.get("slot") != slot:
            continue
        for item in entry.get("items", []):
            if item.get("milk_type_id") == milk_type_id and item.get("subcategory_id") == subcategory_id:
                return item
    return None


def slot_quantity(slots: list[dict], slot: str) -> float:
    return sum(
        float(item.get("quantity", 0))
        for entry in slots if entry.get("slot") == slot
        for item in entry.get("items", [])
    )
