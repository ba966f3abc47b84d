"""Tests for the pure schedule, status and numbering rules."""

from datetime import date

import pytest

from dairyledger.middleware.exceptions import BusinessLogicError
from dairyledger.models.quantity_adjustment import QuantityAdjustment
from dairyledger.services.invoices import derive_status, month_period
from dairyledger.services.records import apply_adjustments
from dairyledger.services.schedule import (
    find_item,
    recompute_schedule,
    slot_quantity,
    validate_slots,
)
from dairyledger.utils.numbering import _render, parse_sequence

from conftest import COW, FULL_CREAM, morning_schedule, two_slot_schedule


def _adjustment(status: str, new_quantity: float, slot: str = "morning") -> QuantityAdjustment:
    return QuantityAdjustment(
        customer_id="c1",
        adjustment_date=date(2026, 3, 14),
        slot=slot,
        milk_type_id=COW,
        subcategory_id=FULL_CREAM,
        old_quantity=2,
        new_quantity=new_quantity,
        delta=new_quantity - 2,
        reason="guests",
        status=status,
    )


@pytest.mark.unit
class TestRecomputeSchedule:
    def test_line_slot_and_day_totals(self):
        slots, quantity, amount = recompute_schedule(two_slot_schedule())

        assert slots[0]["items"][0]["total_price"] == 120.0
        assert slots[0]["total_quantity"] == 2
        assert slots[1]["total_price"] == 70.0
        assert quantity == 3
        assert amount == 190.0

    def test_input_is_not_modified(self):
        schedule = morning_schedule()
        recompute_schedule(schedule)
        assert "total_price" not in schedule[0]["items"][0]

    def test_amounts_rounded_to_two_places(self):
        _, _, amount = recompute_schedule(morning_schedule(quantity=3, price=33.333))
        assert amount == 100.0

    def test_empty_schedule(self):
        assert recompute_schedule([]) == ([], 0.0, 0.0)

    def test_slot_quantity(self):
        slots, _, _ = recompute_schedule(two_slot_schedule())
        assert slot_quantity(slots, "morning") == 2
        assert slot_quantity(slots, "evening") == 1


@pytest.mark.unit
class TestValidateSlots:
    def test_unknown_slot(self):
        with pytest.raises(ValueError):
            validate_slots([{"slot": "noon", "items": []}])

    def test_repeated_slot(self):
        with pytest.raises(ValueError):
            validate_slots(morning_schedule() + morning_schedule())

    def test_negative_quantity(self):
        with pytest.raises(ValueError):
            validate_slots(morning_schedule(quantity=-1))

    def test_find_item(self):
        schedule = two_slot_schedule()
        assert find_item(schedule, "morning", COW, FULL_CREAM)["quantity"] == 2
        assert find_item(schedule, "evening", COW, FULL_CREAM) is None


@pytest.mark.unit
class TestApplyAdjustments:
    def test_no_adjustments_uses_schedule(self):
        _, quantity, amount = apply_adjustments(morning_schedule(), [])
        assert (quantity, amount) == (2, 120.0)

    def test_accepted_adjustment_overrides_quantity(self):
        _, quantity, amount = apply_adjustments(morning_schedule(), [_adjustment("accepted", 3)])
        assert (quantity, amount) == (3, 180.0)

    def test_pending_adjustment_keeps_schedule(self):
        _, quantity, amount = apply_adjustments(morning_schedule(), [_adjustment("pending", 5)])
        assert (quantity, amount) == (2, 120.0)

    def test_rejected_adjustment_skips_day(self):
        assert apply_adjustments(morning_schedule(), [_adjustment("rejected", 5)]) is None

    def test_adjustment_to_zero(self):
        _, quantity, amount = apply_adjustments(morning_schedule(), [_adjustment("accepted", 0)])
        assert (quantity, amount) == (0, 0.0)


@pytest.mark.unit
class TestInvoiceRules:
    @pytest.mark.parametrize(
        "due, paid, due_date, expected",
        [
            (0, 3000, date(2026, 4, 15), "paid"),
            (500, 2500, date(2026, 4, 15), "partially_paid"),
            (500, 2500, date(2026, 3, 1), "partially_paid"),
            (3000, 0, date(2026, 3, 1), "overdue"),
            (3000, 0, date(2026, 3, 14), "pending"),
            (3000, 0, date(2026, 4, 15), "pending"),
        ],
    )
    def test_derive_status(self, due, paid, due_date, expected):
        assert derive_status(due, paid, due_date, date(2026, 3, 14)) == expected

    def test_month_period(self):
        assert month_period(2, 2028) == (date(2028, 2, 1), date(2028, 2, 29))
        assert month_period(12, 2026) == (date(2026, 12, 1), date(2026, 12, 31))

    def test_month_period_rejects_bad_month(self):
        with pytest.raises(BusinessLogicError) as exc_info:
            month_period(13, 2026)
        assert exc_info.value.error_code == "INVALID_MONTH"


@pytest.mark.unit
class TestNumbering:
    def test_render(self):
        assert _render("INV-{yy}-{mm}-{seq:4}", date(2026, 3, 14), 42) == "INV-26-03-0042"
        assert _render("{yyyy}/{seq:3}", date(2026, 3, 14), 7) == "2026/007"

    def test_parse_sequence(self):
        assert parse_sequence("INV-{yy}-{mm}-{seq:4}", "INV-25-12-0099") == 99
        assert parse_sequence("INV-{yy}-{mm}-{seq:4}", "INV-26-03-12345") == 12345

    def test_parse_sequence_mismatch(self):
        assert parse_sequence("INV-{yy}-{mm}-{seq:4}", "BILL-0001") is None
