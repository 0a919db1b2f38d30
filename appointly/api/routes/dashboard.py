# appointly/api/routes/dashboard.py
"""Tenant dashboard: appointment management behind X-API-Key."""
from __future__ import annotations

from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from appointly.api.auth import require_api_key
from appointly.core.clock import get_clock
from appointly.core.errors import NotFoundError
from appointly.core.logging import bind_tenant
from appointly.crud.appointment import get_appointment, list_appointments
from appointly.crud.catalog import get_staff, get_tenant
from appointly.db.models.appointment import Appointment
from appointly.db.models.tenant import Tenant
from appointly.db.session import get_session
from appointly.schemas.appointment import AppointmentDetail, AppointmentList, BookingOut
from appointly.schemas.booking import PaymentUpdate, RescheduleRequest, StatusUpdate
from appointly.schemas.catalog import StaffAvailabilityOut, WorkingWindow
from appointly.services.availability import staff_availability
from appointly.services.booking import record_payment, reschedule_appointment, update_status
from appointly.services.notifications import BookingNotifier, get_notifier
from appointly.services.timezones import parse_date, parse_instant, tenant_zone

router = APIRouter(
    prefix="/api/tenants/{tenant_id}",
    tags=["dashboard"],
    dependencies=[Depends(require_api_key)],
)


async def get_dashboard_tenant(tenant_id: int, db: AsyncSession = Depends(get_session)) -> Tenant:
    tenant = await get_tenant(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    bind_tenant(tenant_id=tenant.id, slug=tenant.slug)
    return tenant


async def _load(db: AsyncSession, tenant: Tenant, appointment_id: int) -> Appointment:
    appt = await get_appointment(db, tenant.id, appointment_id)
    if appt is None:
        raise NotFoundError("Appointment not found")
    return appt


@router.get("/appointments", response_model=AppointmentList)
async def appointments(
    start: Optional[str] = Query(None, description="ISO datetime; naive = tenant time"),
    end: Optional[str] = Query(None, description="ISO datetime, exclusive"),
    status: Optional[List[str]] = Query(None),
    staff_id: Optional[int] = Query(None, alias="staffId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    tenant: Tenant = Depends(get_dashboard_tenant),
    db: AsyncSession = Depends(get_session),
):
    zone = tenant_zone(tenant.timezone)
    rows, total = await list_appointments(
        db,
        tenant.id,
        start_utc=parse_instant(start, zone, field="start") if start else None,
        end_utc=parse_instant(end, zone, field="end") if end else None,
        statuses=status,
        staff_id=staff_id,
        limit=limit,
        offset=offset,
    )
    return AppointmentList(
        items=[AppointmentDetail.build(r, zone) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/appointments/{appointment_id}", response_model=AppointmentDetail)
async def appointment(
    appointment_id: int,
    tenant: Tenant = Depends(get_dashboard_tenant),
    db: AsyncSession = Depends(get_session),
):
    appt = await _load(db, tenant, appointment_id)
    return AppointmentDetail.build(appt, tenant_zone(tenant.timezone))


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentDetail)
async def change_status(
    appointment_id: int,
    payload: StatusUpdate,
    tenant: Tenant = Depends(get_dashboard_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
    notifier: BookingNotifier = Depends(get_notifier),
):
    zone = tenant_zone(tenant.timezone)
    appt = await _load(db, tenant, appointment_id)
    appt = await update_status(db, appt, payload.status, now=clock(), notifier=notifier, reason=payload.reason)
    return AppointmentDetail.build(appt, zone)


@router.patch("/appointments/{appointment_id}/payment", response_model=AppointmentDetail)
async def change_payment(
    appointment_id: int,
    payload: PaymentUpdate,
    tenant: Tenant = Depends(get_dashboard_tenant),
    db: AsyncSession = Depends(get_session),
):
    zone = tenant_zone(tenant.timezone)
    appt = await _load(db, tenant, appointment_id)
    appt = await record_payment(db, appt, payload.payment_status, payment_id=payload.payment_id)
    return AppointmentDetail.build(appt, zone)


@router.post("/appointments/{appointment_id}/reschedule", response_model=BookingOut)
async def reschedule(
    appointment_id: int,
    payload: RescheduleRequest,
    tenant: Tenant = Depends(get_dashboard_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
    notifier: BookingNotifier = Depends(get_notifier),
):
    zone = tenant_zone(tenant.timezone)
    appt = await _load(db, tenant, appointment_id)
    outcome = await reschedule_appointment(db, appt, payload, now=clock(), notifier=notifier)
    return BookingOut.from_outcome(outcome, zone)


@router.get("/staff/{staff_id}/availability", response_model=StaffAvailabilityOut)
async def staff_day(
    staff_id: int,
    date: str = Query(..., description="YYYY-MM-DD, tenant calendar"),
    tenant: Tenant = Depends(get_dashboard_tenant),
    db: AsyncSession = Depends(get_session),
):
    on_date = parse_date(date, field="date")
    windows = await staff_availability(db, tenant.id, staff_id, on_date)
    member = await get_staff(db, tenant.id, staff_id)
    return StaffAvailabilityOut(
        staff_id=staff_id,
        date=on_date,
        timezone=tenant.timezone,
        windows=[WorkingWindow(start_time=s, end_time=e) for s, e in windows],
        weekly_schedule=member.weekly_schedule or {},
    )
