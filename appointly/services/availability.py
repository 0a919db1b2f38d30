# appointly/services/availability.py
"""
Bookable slot generation.

For every tenant calendar date in the requested window the staff member's
(or the tenant default) working periods are converted to UTC and walked in
steps of the service duration. Each candidate is annotated with whether its
occupied interval (duration + buffer) is free on the resource. Booked
candidates are still returned so clients can render them as taken.

Nothing is cached: every call reads the current bookings.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from appointly.core.business import DEFAULT_WEEKLY_SCHEDULE
from appointly.core.config import settings
from appointly.core.errors import NotFoundError, ValidationError
from appointly.core.logging import get_logger
from appointly.crud.catalog import get_service, get_staff, get_staff_holidays, get_tenant
from appointly.db.models.service import Service
from appointly.db.models.staff import Staff
from appointly.db.models.tenant import Tenant
from appointly.services.conflicts import (
    BusyInterval,
    busy_intervals,
    is_free,
    is_interval_free,
    resource_key_for,
)
from appointly.services.schedule import open_periods
from appointly.services.timezones import (
    day_bounds_utc,
    local_date,
    period_to_utc,
    resolve_zone,
    tenant_zone,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Slot:
    start_time: datetime  # UTC
    end_time: datetime    # UTC, customer-visible end (no buffer)
    available: bool
    staff_id: Optional[int] = None


@dataclass(frozen=True)
class BookingContext:
    """Everything resolved for one (tenant, service, staff) combination."""
    tenant: Tenant
    service: Service
    staff: Optional[Staff]
    zone: ZoneInfo
    resource_key: Optional[str]

    @property
    def schedule(self) -> dict:
        if self.staff is not None:
            return self.staff.weekly_schedule or {}
        return DEFAULT_WEEKLY_SCHEDULE

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.service.duration_minutes)

    @property
    def occupied(self) -> timedelta:
        return timedelta(minutes=self.service.duration_minutes + self.service.buffer_minutes)


async def resolve_context(
    db: AsyncSession,
    tenant_id: int,
    service_id: int,
    staff_id: Optional[int] = None,
    *,
    mode: Optional[str] = None,
) -> BookingContext:
    tenant = await get_tenant(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    zone = tenant_zone(tenant.timezone)

    service = await get_service(db, tenant_id, service_id)
    if service is None:
        raise NotFoundError("Service not found or inactive")

    if service.require_staff and staff_id is None:
        raise ValidationError("Staff member is required for this service", field="staffId")

    staff = None
    if staff_id is not None:
        staff = await get_staff(db, tenant_id, staff_id)
        if staff is None:
            raise NotFoundError("Staff member not found")

    key = resource_key_for(tenant.id, service, staff_id, mode or settings.staffless_mode)
    return BookingContext(tenant=tenant, service=service, staff=staff, zone=zone, resource_key=key)


def iter_candidates(ctx: BookingContext, dates: Iterable[date], holidays: set[date]) -> Iterator[tuple[datetime, datetime]]:
    """Candidate (start, end) UTC pairs on the duration grid of each open period."""
    step = ctx.duration
    for day in dates:
        for period in open_periods(ctx.schedule, holidays, day):
            period_start, period_end = period_to_utc(day, period, ctx.zone)
            current = period_start
            while current + step <= period_end:
                yield current, current + step
                current += step


def generate_slots(
    ctx: BookingContext,
    dates: Iterable[date],
    holidays: set[date],
    busy: Sequence[BusyInterval],
    now: datetime,
) -> Iterator[Slot]:
    staff_id = ctx.staff.id if ctx.staff is not None else None
    for start, end in iter_candidates(ctx, dates, holidays):
        if start < now:
            continue
        yield Slot(
            start_time=start,
            end_time=end,
            available=is_free(start, start + ctx.occupied, busy),
            staff_id=staff_id,
        )


def date_range(start_date: date, end_date: date) -> Iterator[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def resolve_window(
    start_date: Optional[date],
    end_date: Optional[date],
    zone: ZoneInfo,
    now: datetime,
) -> tuple[date, date]:
    start = start_date or local_date(now, zone)
    end = end_date or start + timedelta(days=settings.DEFAULT_SLOT_WINDOW_DAYS)
    if end < start:
        raise ValidationError("endDate must not be before startDate", field="endDate")
    if (end - start).days + 1 > settings.MAX_SLOT_WINDOW_DAYS:
        raise ValidationError(
            f"Date range may span at most {settings.MAX_SLOT_WINDOW_DAYS} days",
            field="endDate",
        )
    return start, end


async def list_slots(
    db: AsyncSession,
    tenant_id: int,
    *,
    service_id: int,
    staff_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    display_timezone: str,
    now: datetime,
) -> Iterator[Slot]:
    """
    Validate the query, load bookings and holidays once, and return a lazy
    iterator over the window's slots.
    """
    resolve_zone(display_timezone)
    ctx = await resolve_context(db, tenant_id, service_id, staff_id)
    first, last = resolve_window(start_date, end_date, ctx.zone, now)

    window_start, _ = day_bounds_utc(first, ctx.zone)
    _, window_end = day_bounds_utc(last, ctx.zone)
    busy = await busy_intervals(db, ctx.resource_key, window_start, window_end + ctx.occupied)

    holidays: set[date] = set()
    if ctx.staff is not None:
        holidays = await get_staff_holidays(db, ctx.staff.id, first, last)

    logger.debug(
        "slots_requested",
        tenant_id=tenant_id,
        service_id=service_id,
        staff_id=staff_id,
        start_date=first.isoformat(),
        end_date=last.isoformat(),
        busy=len(busy),
        holidays=len(holidays),
    )
    return generate_slots(ctx, date_range(first, last), holidays, busy, now)


async def fits_working_hours(
    db: AsyncSession,
    ctx: BookingContext,
    start: datetime,
    end: datetime,
) -> bool:
    """True if [start, end) lies inside one open period on its tenant date."""
    day = local_date(start, ctx.zone)
    holidays: set[date] = set()
    if ctx.staff is not None:
        holidays = await get_staff_holidays(db, ctx.staff.id, day, day)
    for period in open_periods(ctx.schedule, holidays, day):
        period_start, period_end = period_to_utc(day, period, ctx.zone)
        if period_start <= start and end <= period_end:
            return True
    return False


async def staff_availability(
    db: AsyncSession,
    tenant_id: int,
    staff_id: int,
    on_date: date,
) -> list[tuple[datetime, datetime]]:
    """UTC working windows of one staff member for one tenant date."""
    tenant = await get_tenant(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    staff = await get_staff(db, tenant_id, staff_id)
    if staff is None:
        raise NotFoundError("Staff member not found")

    zone = tenant_zone(tenant.timezone)
    holidays = await get_staff_holidays(db, staff.id, on_date, on_date)
    return [
        period_to_utc(on_date, period, zone)
        for period in open_periods(staff.weekly_schedule or {}, holidays, on_date)
    ]


async def check_slot(
    db: AsyncSession,
    tenant_id: int,
    *,
    service_id: int,
    start: datetime,
    staff_id: Optional[int] = None,
    now: datetime,
) -> Slot:
    """
    Evaluate one proposed start the way booking would, without writing.
    Unknown service/staff still raise; everything else folds into `available`.
    """
    ctx = await resolve_context(db, tenant_id, service_id, staff_id)
    end = start + ctx.duration
    staff = ctx.staff.id if ctx.staff is not None else None

    available = (
        start >= now
        and start.second == 0
        and start.microsecond == 0
        and await fits_working_hours(db, ctx, start, end)
        and await is_interval_free(db, ctx.resource_key, start, start + ctx.occupied)
    )
    return Slot(start_time=start, end_time=end, available=bool(available), staff_id=staff)
