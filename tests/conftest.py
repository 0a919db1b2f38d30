"""
Shared fixtures: an in-memory SQLite database per test, a seeded tenant
catalog, a frozen clock and a notifier that records instead of sending.
"""

import os
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Must be set before appointly.core.config is imported anywhere
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["APP_ENV"] = "testing"
os.environ["APP_API_KEY"] = "test_api_key"
os.environ["REDIS_URL"] = ""  # Disable Redis in tests
os.environ["STRIPE_SECRET_KEY"] = ""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import appointly.db.base  # noqa: F401  registers every model on Base.metadata
from appointly.core.errors import UpstreamError
from appointly.db.models.service import Service
from appointly.db.models.staff import Staff, StaffHoliday
from appointly.db.models.tenant import Tenant
from appointly.db.session import Base
from appointly.schemas.booking import BookingCreate
from appointly.services.booking import create_booking
from appointly.services.payments import CheckoutSession

UTC = timezone.utc

# Monday 2024-03-04 12:00 UTC (07:00 in New York). Every booking in the
# tests is later than this.
FROZEN_NOW = datetime(2024, 3, 4, 12, 0, tzinfo=UTC)

WEEKDAY_9_TO_5 = {
    day: [{"start": "09:00", "end": "17:00"}]
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}
WEEKDAY_9_TO_5["saturday"] = []


@dataclass
class RecordingNotifier:
    """Stands in for BookingNotifier; remembers every call."""
    payment_error: Optional[str] = None
    confirmed: list = field(default_factory=list)
    rescheduled: list = field(default_factory=list)
    cancelled: list = field(default_factory=list)
    payments: list = field(default_factory=list)

    async def booking_confirmed(self, appointment, now):
        self.confirmed.append(appointment.id)
        return appointment.start_time - timedelta(hours=24)

    async def booking_rescheduled(self, appointment, now):
        self.rescheduled.append(appointment.id)
        return appointment.start_time - timedelta(hours=24)

    async def booking_cancelled(self, appointment):
        self.cancelled.append(appointment.id)

    async def request_payment(self, appointment, *, description, currency, customer_email=None):
        self.payments.append({
            "appointment_id": appointment.id,
            "amount": appointment.amount,
            "currency": currency,
            "description": description,
            "customer_email": customer_email,
        })
        if self.payment_error:
            raise UpstreamError(self.payment_error)
        return CheckoutSession(id=f"cs_test_{appointment.id}", url=f"https://checkout.test/pay/{appointment.id}")


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def now():
    return FROZEN_NOW


@pytest_asyncio.fixture
async def catalog(db):
    """
    Two tenants. "sunrise-spa" (America/New_York) has:
      haircut  30 min, no buffer, staff required, $40
      massage  30 min, 15 min buffer, staff required, $80
      consult  60 min, staff-less, free
      retired  inactive service
      alice    Mon-Fri 09:00-17:00, holiday on Tue 2024-03-12
      bob      Monday 09:00-17:00 only
    "harbor-dental" (UTC) has one service and one staff member.
    """
    spa = Tenant(slug="sunrise-spa", business_name="Sunrise Spa", timezone="America/New_York", currency="USD")
    dental = Tenant(slug="harbor-dental", business_name="Harbor Dental", timezone="UTC", currency="EUR")
    db.add_all([spa, dental])
    await db.flush()

    haircut = Service(tenant_id=spa.id, name="Haircut", duration_minutes=30, buffer_minutes=0,
                      price=Decimal("40.00"), currency="USD", require_staff=True)
    massage = Service(tenant_id=spa.id, name="Massage", duration_minutes=30, buffer_minutes=15,
                      price=Decimal("80.00"), currency="USD", require_staff=True)
    consult = Service(tenant_id=spa.id, name="Consultation", duration_minutes=60, buffer_minutes=0,
                      price=Decimal("0"), currency="USD", require_staff=False)
    retired = Service(tenant_id=spa.id, name="Retired", duration_minutes=30, buffer_minutes=0,
                      price=Decimal("10.00"), currency="USD", require_staff=False, is_active=False)
    cleaning = Service(tenant_id=dental.id, name="Cleaning", duration_minutes=45, buffer_minutes=0,
                       price=Decimal("60.00"), currency="EUR", require_staff=True)

    alice = Staff(tenant_id=spa.id, name="Alice", weekly_schedule=WEEKDAY_9_TO_5)
    bob = Staff(tenant_id=spa.id, name="Bob", weekly_schedule={"monday": [{"start": "09:00", "end": "17:00"}]})
    hygienist = Staff(tenant_id=dental.id, name="Hana", weekly_schedule=WEEKDAY_9_TO_5)
    db.add_all([haircut, massage, consult, retired, cleaning, alice, bob, hygienist])
    await db.flush()

    db.add(StaffHoliday(staff_id=alice.id, date=date(2024, 3, 12), reason="Conference"))
    await db.commit()

    return SimpleNamespace(
        spa=spa.id,
        dental=dental.id,
        haircut=haircut.id,
        massage=massage.id,
        consult=consult.id,
        retired=retired.id,
        cleaning=cleaning.id,
        alice=alice.id,
        bob=bob.id,
        hygienist=hygienist.id,
    )


def booking_payload(service_id, start, end, *, staff_id=None, email="jane@example.com", **extra):
    data = {
        "serviceId": service_id,
        "staffId": staff_id,
        "startTime": start,
        "endTime": end,
        "customerName": "Jane Doe",
        "customerEmail": email,
        "customerTimezone": "America/New_York",
        "paymentOption": "pay_at_venue",
    }
    data.update(extra)
    return BookingCreate.model_validate(data)


@pytest.fixture
def book(db, notifier):
    """Create a booking through the real transaction."""
    async def _book(tenant_id, service_id, start, end, *, staff_id=None, **extra):
        payload = booking_payload(service_id, start, end, staff_id=staff_id, **extra)
        return await create_booking(db, tenant_id, payload, now=FROZEN_NOW, notifier=notifier)
    return _book


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Pure unit tests with no database")
    config.addinivalue_line("markers", "essential: Core booking engine tests")
    config.addinivalue_line("markers", "api: HTTP surface tests")
