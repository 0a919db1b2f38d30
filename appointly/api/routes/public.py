# appointly/api/routes/public.py
"""
Customer-facing booking endpoints. No credentials: the tenant comes from
the slug, and an appointment is reachable only with its reschedule token.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from appointly.core.clock import get_clock
from appointly.core.errors import NotFoundError
from appointly.core.logging import bind_tenant
from appointly.crud.catalog import get_tenant_by_slug, list_active_services, list_staff
from appointly.db.models.tenant import Tenant
from appointly.db.session import get_session
from appointly.schemas.appointment import (
    AppointmentDetail,
    BookingOut,
    SlotCheckResponse,
    SlotOut,
    SlotsResponse,
)
from appointly.schemas.booking import BookingCreate, CancelRequest, RescheduleRequest, SlotCheck
from appointly.schemas.catalog import ServiceOut, StaffOut, TenantInfo
from appointly.services.access import resolve_by_token
from appointly.services.availability import check_slot, list_slots
from appointly.services.booking import cancel_appointment, create_booking, reschedule_appointment
from appointly.services.notifications import BookingNotifier, get_notifier
from appointly.services.timezones import parse_date, parse_instant, resolve_zone, tenant_zone

router = APIRouter(prefix="/api/public/{slug}", tags=["public"])


async def get_public_tenant(slug: str, db: AsyncSession = Depends(get_session)) -> Tenant:
    tenant = await get_tenant_by_slug(db, slug)
    if tenant is None:
        raise NotFoundError("Business not found")
    bind_tenant(tenant_id=tenant.id, slug=tenant.slug)
    return tenant


@router.get("/info", response_model=TenantInfo)
async def tenant_info(tenant: Tenant = Depends(get_public_tenant)):
    return tenant


@router.get("/services", response_model=List[ServiceOut])
async def services(
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
):
    return await list_active_services(db, tenant.id)


@router.get("/staff", response_model=List[StaffOut])
async def staff(
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
):
    return await list_staff(db, tenant.id)


@router.get("/availability", response_model=SlotsResponse)
async def availability(
    service_id: int = Query(..., alias="serviceId", gt=0),
    staff_id: Optional[int] = Query(None, alias="staffId", gt=0),
    start_date: Optional[str] = Query(None, alias="startDate", description="YYYY-MM-DD, tenant calendar"),
    end_date: Optional[str] = Query(None, alias="endDate", description="YYYY-MM-DD, inclusive"),
    timezone: Optional[str] = Query(None, description="IANA zone for the *_local fields"),
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
):
    display = timezone or tenant.timezone
    slots = await list_slots(
        db,
        tenant.id,
        service_id=service_id,
        staff_id=staff_id,
        start_date=parse_date(start_date, field="startDate") if start_date else None,
        end_date=parse_date(end_date, field="endDate") if end_date else None,
        display_timezone=display,
        now=clock(),
    )
    zone = resolve_zone(display)
    out = [SlotOut.build(s, zone) for s in slots]
    return SlotsResponse(slots=out, count=len(out), timezone=zone.key)


@router.post("/availability/check", response_model=SlotCheckResponse)
async def availability_check(
    payload: SlotCheck,
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
):
    display = resolve_zone(payload.timezone or tenant.timezone)
    start = parse_instant(payload.start_time, tenant_zone(tenant.timezone), field="startTime")
    slot = await check_slot(
        db,
        tenant.id,
        service_id=payload.service_id,
        staff_id=payload.staff_id,
        start=start,
        now=clock(),
    )
    return SlotCheckResponse(available=slot.available, slot=SlotOut.build(slot, display))


@router.post("/book", response_model=BookingOut, status_code=201)
async def book(
    payload: BookingCreate,
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
    notifier: BookingNotifier = Depends(get_notifier),
):
    outcome = await create_booking(db, tenant.id, payload, now=clock(), notifier=notifier)
    return BookingOut.from_outcome(outcome, resolve_zone(outcome.appointment.customer_timezone))


@router.get("/appointments/{appointment_id}", response_model=AppointmentDetail)
async def appointment_detail(
    appointment_id: int,
    token: Optional[str] = Query(None),
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
):
    appt = await resolve_by_token(db, tenant.id, appointment_id, token)
    return AppointmentDetail.build(appt, resolve_zone(appt.customer_timezone))


@router.post("/appointments/{appointment_id}/reschedule", response_model=BookingOut)
async def reschedule(
    appointment_id: int,
    payload: RescheduleRequest,
    token: Optional[str] = Query(None),
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
    notifier: BookingNotifier = Depends(get_notifier),
):
    appt = await resolve_by_token(db, tenant.id, appointment_id, token)
    outcome = await reschedule_appointment(db, appt, payload, now=clock(), notifier=notifier)
    return BookingOut.from_outcome(outcome, resolve_zone(outcome.appointment.customer_timezone))


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentDetail)
async def cancel(
    appointment_id: int,
    payload: Optional[CancelRequest] = Body(None),
    token: Optional[str] = Query(None),
    tenant: Tenant = Depends(get_public_tenant),
    db: AsyncSession = Depends(get_session),
    clock: Callable = Depends(get_clock),
    notifier: BookingNotifier = Depends(get_notifier),
):
    appt = await resolve_by_token(db, tenant.id, appointment_id, token)
    appt = await cancel_appointment(
        db,
        appt,
        now=clock(),
        notifier=notifier,
        reason=payload.reason if payload else None,
    )
    return AppointmentDetail.build(appt, resolve_zone(appt.customer_timezone))
