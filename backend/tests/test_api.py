"""HTTP-level tests: routing, schemas, and the error envelope."""

from datetime import date, timedelta

import pytest

from conftest import COW, FULL_CREAM, morning_schedule


def _customer_body(phone="9200000001", **overrides):
    body = {
        "name": "Asha Patel",
        "phone": phone,
        "address": "4 Milk Road",
        "delivery_schedule": morning_schedule(),
    }
    body.update(overrides)
    return body


@pytest.mark.integration
@pytest.mark.asyncio
class TestHealth:
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


@pytest.mark.integration
@pytest.mark.asyncio
class TestCustomerEndpoints:
    async def test_create_and_fetch(self, client):
        response = await client.post("/api/customers/", json=_customer_body())

        assert response.status_code == 201
        data = response.json()
        assert data["customer"]["customer_no"] == 1
        assert data["customer"]["total_daily_price"] == 120.0
        assert data["backfill"]["count"] == 0

        customer_id = data["customer"]["id"]
        response = await client.get(f"/api/customers/{customer_id}")
        assert response.status_code == 200
        assert response.json()["name"] == "Asha Patel"

    async def test_validation_error_envelope(self, client):
        body = _customer_body(delivery_schedule=[{"slot": "noon", "items": []}])

        response = await client.post("/api/customers/", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_not_found_envelope(self, client):
        response = await client.get("/api/customers/does-not-exist")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "RESOURCE_NOT_FOUND"
        assert error["details"]["id"] == "does-not-exist"

    async def test_duplicate_phone_is_409(self, client):
        await client.post("/api/customers/", json=_customer_body())
        response = await client.post("/api/customers/", json=_customer_body(name="Other"))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_PHONE"

    async def test_credit_endpoints(self, client):
        created = await client.post("/api/customers/", json=_customer_body())
        customer_id = created.json()["customer"]["id"]

        response = await client.post(
            f"/api/customers/{customer_id}/credit/deposit", json={"amount": 400.0}
        )
        assert response.status_code == 200
        assert response.json()["credit_balance"] == 400.0

        response = await client.put(f"/api/customers/{customer_id}/credit", json={"amount": 150.0})
        assert response.json()["credit_balance"] == 150.0

        history = await client.get(f"/api/customers/{customer_id}/credit/history")
        assert [e["kind"] for e in history.json()] == ["deposit", "admin_set"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestBillingFlow:
    async def test_records_adjustment_invoice_payment(self, client):
        today = date.today()
        joined = today - timedelta(days=3)
        created = await client.post(
            "/api/customers/", json=_customer_body(joined_date=joined.isoformat())
        )
        customer = created.json()["customer"]
        assert created.json()["backfill"]["count"] == 3

        adjustment = await client.post(
            "/api/adjustments/",
            json={
                "customer_id": customer["id"],
                "adjustment_date": today.isoformat(),
                "slot": "morning",
                "milk_type_id": COW,
                "subcategory_id": FULL_CREAM,
                "new_quantity": 3,
                "reason": "Guests",
            },
        )
        assert adjustment.status_code == 200
        accepted = await client.post(f"/api/adjustments/{adjustment.json()['id']}/accept", json={})
        assert accepted.json()["status"] == "accepted"

        generated = await client.post(
            "/api/records/generate",
            json={"customer_id": customer["id"], "record_date": today.isoformat()},
        )
        assert generated.json()["status"] == "created"
        assert generated.json()["record"]["total_daily_price"] == 180.0
        assert generated.json()["record"]["customer_name"] == "Asha Patel"

        again = await client.post(
            "/api/records/generate",
            json={"customer_id": customer["id"], "record_date": today.isoformat()},
        )
        assert again.json()["status"] == "exists"

        # bill the month of the join date
        response = await client.post(
            "/api/invoices/generate",
            json={"customer_id": customer["id"], "month": joined.month, "year": joined.year},
        )
        assert response.status_code == 200
        invoice = response.json()["invoice"]
        assert response.json()["action"] == "created"
        assert invoice["status"] == "pending"

        conflict = await client.post(
            "/api/invoices/generate",
            json={"customer_id": customer["id"], "month": joined.month, "year": joined.year},
        )
        assert conflict.status_code == 409
        assert conflict.json()["error"]["details"]["invoice_number"] == invoice["invoice_number"]

        payment = await client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount": invoice["due_amount"] + 50, "method": "online"},
        )
        assert payment.status_code == 201
        assert payment.json()["credited"] == 50.0
        assert payment.json()["invoice"]["status"] == "paid"
        assert payment.json()["invoice"]["payments"][0]["transaction_id"].startswith(f"{today.year}_1_")

        position = await client.get(f"/api/customers/{customer['id']}/credit")
        assert position.json()["credit_balance"] == 50.0

        deleted = await client.delete(f"/api/invoices/{invoice['id']}")
        assert deleted.status_code == 409

    async def test_dues_search_needs_numeric_customer_no(self, client):
        response = await client.get("/api/invoices/dues/search", params={"q": "abc"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

        response = await client.get("/api/invoices/dues/search", params={"q": 1})
        assert response.status_code == 200
        assert response.json()["items"] == []
        assert response.json()["grand_total_due"] == 0.0

    async def test_batch_rejects_bad_month(self, client):
        response = await client.post("/api/invoices/generate-batch", json={"month": 13, "year": 2026})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_past_adjustment_is_409(self, client):
        created = await client.post("/api/customers/", json=_customer_body())
        customer_id = created.json()["customer"]["id"]

        response = await client.post(
            "/api/adjustments/",
            json={
                "customer_id": customer_id,
                "adjustment_date": (date.today() - timedelta(days=1)).isoformat(),
                "slot": "morning",
                "milk_type_id": COW,
                "subcategory_id": FULL_CREAM,
                "new_quantity": 1,
                "reason": "Too late",
            },
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ADJUSTMENT_CLOSED"


@pytest.mark.integration
@pytest.mark.asyncio
class TestHolidayAndSettingsEndpoints:
    async def test_holiday_check(self, client):
        response = await client.post(
            "/api/holidays/",
            json={"name": "Harvest", "holiday_date": "2026-01-14", "is_recurring_yearly": True},
        )
        assert response.status_code == 201

        check = await client.get("/api/holidays/check", params={"date": "2031-01-14"})
        assert check.json()["is_holiday"] is True
        assert check.json()["name"] == "Harvest"

    async def test_daily_run_on_holiday(self, client):
        await client.post("/api/customers/", json=_customer_body())
        await client.post("/api/holidays/", json={"name": "Closed", "holiday_date": "2030-05-01"})

        response = await client.post("/api/records/daily-run", json={"record_date": "2030-05-01"})

        assert response.json()["holiday"] is True
        assert response.json()["created"] == 0

    async def test_settings_roundtrip(self, client):
        response = await client.put("/api/settings/company_profile", json={"name": "Gokul Dairy"})
        assert response.json()["name"] == "Gokul Dairy"
        assert "tagline" in response.json()

        assert (await client.get("/api/settings/unknown")).status_code == 404
