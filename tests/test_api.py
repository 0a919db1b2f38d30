#!/usr/bin/env python3
"""
HTTP tests for the public booking routes and the dashboard routes.
Runs the app in-process over httpx's ASGI transport, on the test loop.
"""

import sys
import os
from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

# Add app to Python path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from appointly.core.clock import get_clock
from appointly.core.errors import error_aggregator
from appointly.db.session import get_session
from appointly.main import app
from appointly.services.notifications import get_notifier

UTC = timezone.utc
FROZEN_NOW = datetime(2024, 3, 4, 12, 0, tzinfo=UTC)
PUBLIC = "/api/public/sunrise-spa"
HEADERS = {"X-API-Key": "test_api_key"}


@pytest_asyncio.fixture
async def client(session_factory, notifier, catalog):
    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_clock] = lambda: (lambda: FROZEN_NOW)
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def haircut(catalog, start="2024-03-11T10:00:00", end="2024-03-11T10:30:00", **extra):
    body = {
        "serviceId": catalog.haircut,
        "staffId": catalog.alice,
        "startTime": start,
        "endTime": end,
        "customerName": "Jane Doe",
        "customerEmail": "jane@example.com",
        "customerPhone": "+1 416-555-0100",
        "customerTimezone": "America/Los_Angeles",
    }
    body.update(extra)
    return body


@pytest.mark.api
class TestPublicCatalog:

    @pytest.mark.asyncio
    async def test_info(self, client):
        resp = await client.get(f"{PUBLIC}/info")
        assert resp.status_code == 200
        assert resp.json()["timezone"] == "America/New_York"

    @pytest.mark.asyncio
    async def test_services_hide_inactive(self, client):
        resp = await client.get(f"{PUBLIC}/services")
        names = {s["name"] for s in resp.json()}
        assert names == {"Haircut", "Massage", "Consultation"}

    @pytest.mark.asyncio
    async def test_unknown_business(self, client):
        resp = await client.get("/api/public/no-such-place/services")
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"


@pytest.mark.api
class TestPublicAvailability:

    @pytest.mark.asyncio
    async def test_slot_listing(self, client, catalog):
        resp = await client.get(f"{PUBLIC}/availability", params={
            "serviceId": catalog.haircut,
            "staffId": catalog.alice,
            "startDate": "2024-03-11",
            "endDate": "2024-03-11",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 16
        assert data["timezone"] == "America/New_York"
        first = data["slots"][0]
        assert first["start_time_local"].startswith("2024-03-11T09:00:00")
        assert first["available"] is True
        assert first["staff_id"] == catalog.alice

    @pytest.mark.asyncio
    async def test_display_timezone(self, client, catalog):
        resp = await client.get(f"{PUBLIC}/availability", params={
            "serviceId": catalog.consult,
            "startDate": "2024-03-11",
            "endDate": "2024-03-11",
            "timezone": "Europe/London",
        })
        first = resp.json()["slots"][0]
        assert first["start_time_local"].startswith("2024-03-11T13:00:00")

    @pytest.mark.asyncio
    async def test_missing_service_id(self, client):
        resp = await client.get(f"{PUBLIC}/availability")
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["field"] == "serviceId"
        assert body["details"]

    @pytest.mark.asyncio
    async def test_bad_timezone(self, client, catalog):
        resp = await client.get(f"{PUBLIC}/availability", params={
            "serviceId": catalog.consult, "timezone": "Mars/Olympus",
        })
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_timezone"

    @pytest.mark.asyncio
    async def test_check_slot(self, client, catalog):
        resp = await client.post(f"{PUBLIC}/availability/check", json={
            "serviceId": catalog.haircut,
            "staffId": catalog.alice,
            "startTime": "2024-03-11T10:00:00",
        })
        assert resp.status_code == 200
        assert resp.json()["available"] is True


@pytest.mark.api
class TestPublicBooking:

    @pytest.mark.asyncio
    async def test_book(self, client, catalog, notifier):
        resp = await client.post(f"{PUBLIC}/book", json=haircut(catalog))
        assert resp.status_code == 201
        data = resp.json()

        assert len(data["reschedule_token"]) == 64
        assert data["status"] == "confirmed"
        assert data["timezone"] == "America/Los_Angeles"
        assert data["start_time_local"].startswith("2024-03-11T07:00:00")
        assert data["service"]["name"] == "Haircut"
        assert data["customer"]["phone"] == "+14165550100"
        assert notifier.confirmed == [data["id"]]

    @pytest.mark.asyncio
    async def test_double_booking_is_409(self, client, catalog):
        first = await client.post(f"{PUBLIC}/book", json=haircut(catalog))
        second = await client.post(f"{PUBLIC}/book", json=haircut(catalog, customerEmail="sam@example.com"))

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json() == {"error": "Requested time slot is no longer available", "code": "slot_unavailable"}

    @pytest.mark.asyncio
    async def test_invalid_body(self, client, catalog):
        resp = await client.post(f"{PUBLIC}/book", json=haircut(catalog, customerEmail="not-an-email"))
        assert resp.status_code == 400
        assert resp.json()["field"] == "customerEmail"

    @pytest.mark.asyncio
    async def test_wrong_duration(self, client, catalog):
        resp = await client.post(f"{PUBLIC}/book", json=haircut(catalog, endTime="2024-03-11T11:00:00"))
        assert resp.status_code == 400
        assert resp.json()["field"] == "endTime"

    @pytest.mark.asyncio
    async def test_prepaid_amount_below_price_rejected(self, client, catalog, notifier):
        resp = await client.post(f"{PUBLIC}/book", json=haircut(catalog, paymentOption="prepaid", amount="0.01"))
        assert resp.status_code == 400
        assert resp.json()["field"] == "amount"
        assert notifier.payments == []

    @pytest.mark.asyncio
    async def test_prepaid_includes_payment_url(self, client, catalog):
        resp = await client.post(f"{PUBLIC}/book", json=haircut(catalog, paymentOption="prepaid"))
        data = resp.json()
        assert data["payment_url"] == f"https://checkout.test/pay/{data['id']}"
        assert data["payment_error"] is None


@pytest.mark.api
class TestTokenRoutes:

    async def _booked(self, client, catalog):
        resp = await client.post(f"{PUBLIC}/book", json=haircut(catalog))
        data = resp.json()
        return data["id"], data["reschedule_token"]

    @pytest.mark.asyncio
    async def test_view_with_token(self, client, catalog):
        appt_id, token = await self._booked(client, catalog)
        resp = await client.get(f"{PUBLIC}/appointments/{appt_id}", params={"token": token})
        assert resp.status_code == 200
        assert resp.json()["id"] == appt_id

    @pytest.mark.asyncio
    async def test_token_required(self, client, catalog):
        appt_id, _ = await self._booked(client, catalog)
        resp = await client.get(f"{PUBLIC}/appointments/{appt_id}")
        assert resp.status_code == 400
        assert resp.json()["code"] == "token_required"

    @pytest.mark.asyncio
    async def test_wrong_token_matches_unknown_id(self, client, catalog):
        appt_id, token = await self._booked(client, catalog)
        wrong = await client.get(f"{PUBLIC}/appointments/{appt_id}", params={"token": "f" * 64})
        unknown = await client.get(f"{PUBLIC}/appointments/{appt_id + 999}", params={"token": token})

        assert wrong.status_code == unknown.status_code == 404
        assert wrong.json() == unknown.json()

    @pytest.mark.asyncio
    async def test_errors_grouped_by_route_template(self, client, catalog):
        appt_id, token = await self._booked(client, catalog)
        for offset in (101, 202, 303):
            await client.get(f"{PUBLIC}/appointments/{appt_id + offset}", params={"token": token})

        endpoints = {p.endpoint for p in error_aggregator.patterns.values()}
        assert "/api/public/{slug}/appointments/{appointment_id}" in endpoints
        assert not any(str(appt_id + 101) in e for e in endpoints)

    @pytest.mark.asyncio
    async def test_reschedule_with_token(self, client, catalog, notifier):
        appt_id, token = await self._booked(client, catalog)
        resp = await client.post(
            f"{PUBLIC}/appointments/{appt_id}/reschedule",
            params={"token": token},
            json={"startTime": "2024-03-11T15:00:00", "endTime": "2024-03-11T15:30:00"},
        )
        assert resp.status_code == 200
        assert resp.json()["start_time"].startswith("2024-03-11T19:00:00")
        assert notifier.rescheduled == [appt_id]

    @pytest.mark.asyncio
    async def test_cancel_with_token(self, client, catalog):
        appt_id, token = await self._booked(client, catalog)
        resp = await client.post(f"{PUBLIC}/appointments/{appt_id}/cancel", params={"token": token},
                                 json={"reason": "Running late"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        again = await client.post(f"{PUBLIC}/book", json=haircut(catalog, customerEmail="sam@example.com"))
        assert again.status_code == 201


@pytest.mark.api
class TestDashboard:

    @pytest.mark.asyncio
    async def test_requires_api_key(self, client, catalog):
        resp = await client.get(f"/api/tenants/{catalog.spa}/appointments")
        assert resp.status_code == 401

        resp = await client.get(f"/api/tenants/{catalog.spa}/appointments", headers={"X-API-Key": "nope"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_list_and_update_status(self, client, catalog):
        booked = (await client.post(f"{PUBLIC}/book", json=haircut(catalog))).json()

        listing = await client.get(f"/api/tenants/{catalog.spa}/appointments", headers=HEADERS)
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["timezone"] == "America/New_York"

        resp = await client.patch(
            f"/api/tenants/{catalog.spa}/appointments/{booked['id']}/status",
            headers=HEADERS,
            json={"status": "no-show"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "no-show"

        filtered = await client.get(f"/api/tenants/{catalog.spa}/appointments", headers=HEADERS,
                                    params={"status": "confirmed"})
        assert filtered.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_appointment(self, client, catalog):
        booked = (await client.post(f"{PUBLIC}/book", json=haircut(catalog))).json()
        resp = await client.get(f"/api/tenants/{catalog.dental}/appointments/{booked['id']}", headers=HEADERS)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_record_payment(self, client, catalog):
        booked = (await client.post(f"{PUBLIC}/book", json=haircut(catalog))).json()
        resp = await client.patch(
            f"/api/tenants/{catalog.spa}/appointments/{booked['id']}/payment",
            headers=HEADERS,
            json={"paymentStatus": "paid", "paymentId": "pi_1"},
        )
        assert resp.status_code == 200
        assert resp.json()["payment_status"] == "paid"

    @pytest.mark.asyncio
    async def test_staff_day(self, client, catalog):
        resp = await client.get(f"/api/tenants/{catalog.spa}/staff/{catalog.alice}/availability",
                                headers=HEADERS, params={"date": "2024-03-12"})
        assert resp.status_code == 200
        assert resp.json()["windows"] == []
