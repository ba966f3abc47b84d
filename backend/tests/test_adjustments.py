"""Tests for the quantity adjustment ledger."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from dairyledger.middleware.exceptions import (
    BusinessLogicError,
    ConflictError,
    ResourceNotFoundError,
)
from dairyledger.models.quantity_adjustment import QuantityAdjustment
from dairyledger.services.adjustments import (
    REJECTION_PLACEHOLDER,
    accept_adjustment,
    delete_adjustment,
    list_adjustments,
    reject_adjustment,
    upsert_adjustment,
)

from conftest import BUFFALO, COW, FULL_CREAM, TODAY, TONED, two_slot_schedule


async def _upsert(db, customer, new_quantity=3, on=TODAY, slot="morning", reason="Guests", **kw):
    return await upsert_adjustment(
        db,
        customer_id=customer.id,
        adjustment_date=on,
        slot=slot,
        milk_type_id=kw.get("milk_type_id", COW),
        subcategory_id=kw.get("subcategory_id", FULL_CREAM),
        new_quantity=new_quantity,
        reason=reason,
        today=TODAY,
    )


@pytest.mark.asyncio
class TestUpsertAdjustment:
    async def test_create_records_old_quantity_and_delta(self, db_session, make_customer):
        customer = await make_customer()

        adjustment = await _upsert(db_session, customer, new_quantity=3)

        assert adjustment.status == "pending"
        assert adjustment.old_quantity == 2
        assert adjustment.new_quantity == 3
        assert adjustment.delta == 1

    async def test_same_key_rewrites_single_row(self, db_session, make_customer):
        customer = await make_customer()
        first = await _upsert(db_session, customer, new_quantity=3)
        await accept_adjustment(db_session, first.id, today=TODAY)

        second = await _upsert(db_session, customer, new_quantity=1, reason="Changed plans")

        assert second.id == first.id
        assert second.status == "pending"
        assert second.new_quantity == 1
        assert second.delta == -1
        assert second.reason == "Changed plans"
        count = (await db_session.execute(select(func.count(QuantityAdjustment.id)))).scalar()
        assert count == 1

    async def test_standing_schedule_untouched(self, db_session, make_customer):
        customer = await make_customer()
        await _upsert(db_session, customer, new_quantity=5)

        assert customer.delivery_schedule[0]["items"][0]["quantity"] == 2
        assert customer.total_daily_quantity == 2

    async def test_reason_required(self, db_session, make_customer):
        customer = await make_customer()
        with pytest.raises(BusinessLogicError) as exc_info:
            await _upsert(db_session, customer, reason="   ")
        assert exc_info.value.error_code == "REASON_REQUIRED"

    async def test_negative_quantity(self, db_session, make_customer):
        customer = await make_customer()
        with pytest.raises(BusinessLogicError):
            await _upsert(db_session, customer, new_quantity=-1)

    async def test_unknown_slot_or_item(self, db_session, make_customer):
        customer = await make_customer()
        with pytest.raises(ResourceNotFoundError):
            await _upsert(db_session, customer, slot="evening")
        with pytest.raises(ResourceNotFoundError):
            await _upsert(db_session, customer, milk_type_id=BUFFALO)

    async def test_past_date_is_closed(self, db_session, make_customer):
        customer = await make_customer()
        with pytest.raises(ConflictError) as exc_info:
            await _upsert(db_session, customer, on=TODAY - timedelta(days=1))
        assert exc_info.value.error_code == "ADJUSTMENT_CLOSED"


@pytest.mark.asyncio
class TestDecisions:
    async def test_accept_defaults_last_quantity(self, db_session, make_customer):
        customer = await make_customer()
        adjustment = await _upsert(db_session, customer, new_quantity=3)

        accepted = await accept_adjustment(db_session, adjustment.id, today=TODAY)

        assert accepted.status == "accepted"
        assert accepted.is_accepted
        assert accepted.last_quantity == 3

    async def test_reject_without_reason_uses_placeholder(self, db_session, make_customer):
        customer = await make_customer()
        adjustment = await _upsert(db_session, customer)

        rejected = await reject_adjustment(db_session, adjustment.id, today=TODAY)

        assert rejected.status == "rejected"
        assert rejected.reason == REJECTION_PLACEHOLDER

    async def test_decision_after_date_passed(self, db_session, make_customer):
        customer = await make_customer()
        adjustment = await _upsert(db_session, customer)

        with pytest.raises(ConflictError):
            await accept_adjustment(db_session, adjustment.id, today=TODAY + timedelta(days=1))

    async def test_delete(self, db_session, make_customer):
        customer = await make_customer()
        adjustment = await _upsert(db_session, customer)

        await delete_adjustment(db_session, adjustment.id)

        with pytest.raises(ResourceNotFoundError):
            await accept_adjustment(db_session, adjustment.id, today=TODAY)


@pytest.mark.asyncio
class TestListAdjustments:
    async def test_projected_schedule(self, db_session, make_customer):
        customer = await make_customer(schedule=two_slot_schedule())
        morning = await _upsert(db_session, customer, new_quantity=4)
        evening = await _upsert(
            db_session, customer, new_quantity=3, slot="evening",
            milk_type_id=BUFFALO, subcategory_id=TONED,
        )
        await accept_adjustment(db_session, morning.id, today=TODAY)
        await reject_adjustment(db_session, evening.id, reason="Out of stock", today=TODAY)

        result = await list_adjustments(db_session, customer_id=customer.id)

        assert len(result["adjustments"]) == 2
        view = result["customers"][0]
        assert view["customer_id"] == customer.id
        projected = {slot["slot"]: slot for slot in view["projected_schedule"]}
        assert projected["morning"]["items"][0]["quantity"] == 4
        assert projected["morning"]["items"][0]["adjustment_status"] == "accepted"
        # rejected with no accepted history falls back to zero
        assert projected["evening"]["items"][0]["quantity"] == 0
        assert projected["evening"]["total_price"] == 0.0

    async def test_latest_date_wins_in_projection(self, db_session, make_customer):
        customer = await make_customer()
        await _upsert(db_session, customer, new_quantity=6, on=TODAY + timedelta(days=2))
        await _upsert(db_session, customer, new_quantity=4, on=TODAY + timedelta(days=1))

        result = await list_adjustments(
            db_session,
            customer_id=customer.id,
            start=TODAY,
            end=TODAY + timedelta(days=3),
        )

        projected = result["customers"][0]["projected_schedule"]
        assert projected[0]["items"][0]["quantity"] == 6

    async def test_status_filter(self, db_session, make_customer):
        customer = await make_customer()
        adjustment = await _upsert(db_session, customer)
        await accept_adjustment(db_session, adjustment.id, today=TODAY)

        assert len((await list_adjustments(db_session, status="pending"))["adjustments"]) == 0
        assert len((await list_adjustments(db_session, status="accepted"))["adjustments"]) == 1

    async def test_inverted_range(self, db_session):
        with pytest.raises(BusinessLogicError):
            await list_adjustments(db_session, start=TODAY, end=TODAY - timedelta(days=1))
