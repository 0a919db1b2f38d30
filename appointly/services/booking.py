# appointly/services/booking.py
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from appointly.core.business import APPOINTMENT_STATUSES, PAYMENT_STATUSES, RESCHEDULABLE_STATUSES
from appointly.core.config import settings
from appointly.core.errors import ConflictError, UpstreamError, ValidationError
from appointly.core.logging import get_logger
from appointly.crud.appointment import build_claims, get_appointment, release_claims
from appointly.crud.customer import upsert_customer
from appointly.db.models.appointment import Appointment
from appointly.schemas.booking import BookingCreate, RescheduleRequest
from appointly.services.availability import BookingContext, fits_working_hours, resolve_context
from appointly.services.conflicts import is_interval_free
from appointly.services.notifications import BookingNotifier
from appointly.services.timezones import parse_instant, resolve_zone

logger = get_logger(__name__)

SLOT_TAKEN = "Requested time slot is no longer available"


# ---------- Public contract returned to the route ----------

@dataclass
class BookingOutcome:
    appointment: Appointment
    payment_url: Optional[str] = None
    payment_error: Optional[str] = None
    reminder_at: Optional[datetime] = None


# ---------- Internal helpers ----------

def new_reschedule_token() -> str:
    """256 random bits, hex encoded. Carries nothing about the appointment."""
    return secrets.token_hex(32)


def _require_whole_minute(value: datetime, field: str) -> None:
    if value.second or value.microsecond:
        raise ValidationError(f"{field} must fall on a whole minute", field=field)


async def _validate_interval(
    db: AsyncSession,
    ctx: BookingContext,
    start: datetime,
    end: datetime,
    now: datetime,
    *,
    exclude_id: Optional[int] = None,
) -> None:
    """
    Shared by create and reschedule, in this order: shape of the range,
    not in the past, inside working hours, free on the resource.
    """
    _require_whole_minute(start, "startTime")
    _require_whole_minute(end, "endTime")
    if end != start + ctx.duration:
        raise ValidationError(
            f"endTime must be startTime plus {ctx.service.duration_minutes} minutes",
            field="endTime",
        )
    if start < now:
        raise ValidationError("startTime is in the past", field="startTime")
    if not await fits_working_hours(db, ctx, start, end):
        raise ValidationError("Requested time is outside working hours", field="startTime")
    if not await is_interval_free(db, ctx.resource_key, start, start + ctx.occupied, exclude_id=exclude_id):
        logger.info("booking_conflict", resource_key=ctx.resource_key, start_time=start.isoformat(), stage="precheck")
        raise ConflictError(SLOT_TAKEN)


async def _commit_claims(db: AsyncSession, *, resource_key: Optional[str], start: datetime) -> None:
    """Commit pending changes; a duplicate minute claim means someone else won the slot."""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("booking_conflict", resource_key=resource_key, start_time=start.isoformat(), stage="commit")
        raise ConflictError(SLOT_TAKEN)


def _append_note(notes: Optional[str], line: str) -> str:
    return f"{notes}\n{line}" if notes else line


# ---------- Core operations ----------

async def create_booking(
    db: AsyncSession,
    tenant_id: int,
    data: BookingCreate,
    *,
    now: datetime,
    notifier: BookingNotifier,
    mode: Optional[str] = None,
) -> BookingOutcome:
    """
    Validate, then write the appointment and its minute claims in a single
    commit. Reminder and payment run after the commit and never undo it.
    """
    # 1-2) service, staff
    ctx = await resolve_context(db, tenant_id, data.service_id, data.staff_id, mode=mode)

    # 3-5) times, working hours, conflicts
    start = parse_instant(data.start_time, ctx.zone, field="startTime")
    end = parse_instant(data.end_time, ctx.zone, field="endTime")
    resolve_zone(data.customer_timezone, field="customerTimezone")
    await _validate_interval(db, ctx, start, end, now)

    # The service price is authoritative; a client amount may only echo it.
    if data.amount is not None and data.amount != ctx.service.price:
        raise ValidationError("amount does not match the service price", field="amount")

    # Plain values only from here on; a rollback expires ORM state.
    resource_key = ctx.resource_key
    occupied_until = start + ctx.occupied
    service_name = ctx.service.name
    currency = ctx.service.currency or ctx.tenant.currency
    amount = ctx.service.price

    # 6) Find-or-create customer
    customer = await upsert_customer(
        db,
        tenant_id,
        name=data.customer_name,
        email=str(data.customer_email),
        phone=data.customer_phone,
        timezone=data.customer_timezone,
    )
    customer_id, customer_email = customer.id, customer.email

    # 7) Appointment + claims, one commit
    appt = Appointment(
        tenant_id=tenant_id,
        service_id=data.service_id,
        customer_id=customer_id,
        staff_id=data.staff_id,
        resource_key=resource_key,
        start_time=start,
        end_time=end,
        occupied_until=occupied_until,
        customer_timezone=data.customer_timezone,
        status="confirmed",
        notes=data.notes,
        payment_option=data.payment_option,
        payment_status="unpaid",
        amount=amount,
        reschedule_token=new_reschedule_token(),
    )
    db.add(appt)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(SLOT_TAKEN)
    appointment_id = appt.id
    if resource_key is not None:
        db.add_all(build_claims(appointment_id, resource_key, start, occupied_until))
    await _commit_claims(db, resource_key=resource_key, start=start)

    appt = await get_appointment(db, tenant_id, appointment_id)
    logger.info(
        "booking_created",
        tenant_id=tenant_id,
        appointment_id=appointment_id,
        service_id=data.service_id,
        staff_id=data.staff_id,
        start_time=start.isoformat(),
        payment_option=data.payment_option,
    )

    # 8) Side effects (non-blocking for the booking)
    outcome = BookingOutcome(appointment=appt)
    outcome.reminder_at = await notifier.booking_confirmed(appt, now)

    if data.payment_option == "prepaid":
        if not amount:
            logger.info("payment_skipped_zero_amount", appointment_id=appointment_id)
        else:
            try:
                session = await notifier.request_payment(
                    appt,
                    description=service_name,
                    currency=currency,
                    customer_email=customer_email,
                )
            except UpstreamError as e:
                logger.warning("payment_link_failed", appointment_id=appointment_id, error=e.message)
                outcome.payment_error = e.message
            else:
                appt.payment_id = session.id
                await db.commit()
                outcome.payment_url = session.url

    return outcome


async def reschedule_appointment(
    db: AsyncSession,
    appointment: Appointment,
    data: RescheduleRequest,
    *,
    now: datetime,
    notifier: BookingNotifier,
    mode: Optional[str] = None,
) -> BookingOutcome:
    """
    Move an appointment to a new interval. Old claims are deleted and new
    ones written in the same commit, so the appointment never conflicts
    with itself and nobody else can grab either interval meanwhile.
    """
    if appointment.status not in RESCHEDULABLE_STATUSES:
        raise ValidationError(f"A {appointment.status} appointment cannot be rescheduled", field="status")

    tenant_id = appointment.tenant_id
    appointment_id = appointment.id
    previous_start = appointment.start_time

    ctx = await resolve_context(db, tenant_id, appointment.service_id, appointment.staff_id, mode=mode)
    start = parse_instant(data.start_time, ctx.zone, field="startTime")
    end = parse_instant(data.end_time, ctx.zone, field="endTime")
    await _validate_interval(db, ctx, start, end, now, exclude_id=appointment_id)

    resource_key = ctx.resource_key
    occupied_until = start + ctx.occupied

    await release_claims(db, appointment_id)
    appointment.start_time = start
    appointment.end_time = end
    appointment.occupied_until = occupied_until
    appointment.resource_key = resource_key
    appointment.status = "confirmed"
    if settings.ROTATE_TOKEN_ON_RESCHEDULE:
        appointment.reschedule_token = new_reschedule_token()
    if resource_key is not None:
        db.add_all(build_claims(appointment_id, resource_key, start, occupied_until))
    await _commit_claims(db, resource_key=resource_key, start=start)

    appt = await get_appointment(db, tenant_id, appointment_id)
    logger.info(
        "appointment_rescheduled",
        tenant_id=tenant_id,
        appointment_id=appointment_id,
        previous_start=previous_start.isoformat(),
        start_time=start.isoformat(),
    )

    outcome = BookingOutcome(appointment=appt)
    outcome.reminder_at = await notifier.booking_rescheduled(appt, now)
    return outcome


async def update_status(
    db: AsyncSession,
    appointment: Appointment,
    status: str,
    *,
    now: datetime,
    notifier: BookingNotifier,
    reason: Optional[str] = None,
) -> Appointment:
    """
    Cancelling frees the interval. Leaving `cancelled` takes it back, which
    fails with ConflictError if someone booked it in the meantime.
    """
    if status not in APPOINTMENT_STATUSES:
        raise ValidationError(f"Unknown status: {status}", field="status")

    tenant_id = appointment.tenant_id
    appointment_id = appointment.id
    previous = appointment.status
    resource_key = appointment.resource_key
    start, occupied_until = appointment.start_time, appointment.occupied_until

    if previous == status and not reason:
        return appointment

    if status == "cancelled" and previous != "cancelled":
        await release_claims(db, appointment_id)
    elif previous == "cancelled" and status != "cancelled":
        if not await is_interval_free(db, resource_key, start, occupied_until, exclude_id=appointment_id):
            raise ConflictError(SLOT_TAKEN)
        if resource_key is not None:
            db.add_all(build_claims(appointment_id, resource_key, start, occupied_until))

    appointment.status = status
    if reason:
        appointment.notes = _append_note(appointment.notes, f"{status.capitalize()}: {reason}")
    await _commit_claims(db, resource_key=resource_key, start=start)

    appt = await get_appointment(db, tenant_id, appointment_id)
    logger.info(
        "appointment_status_changed",
        tenant_id=tenant_id,
        appointment_id=appointment_id,
        previous=previous,
        status=status,
    )

    if status == "cancelled" and previous != "cancelled":
        await notifier.booking_cancelled(appt)
    elif previous == "cancelled" and status == "confirmed":
        await notifier.booking_confirmed(appt, now)
    return appt


async def cancel_appointment(
    db: AsyncSession,
    appointment: Appointment,
    *,
    now: datetime,
    notifier: BookingNotifier,
    reason: Optional[str] = None,
) -> Appointment:
    if appointment.status == "completed":
        raise ValidationError("A completed appointment cannot be cancelled", field="status")
    if appointment.status == "cancelled":
        return appointment
    return await update_status(db, appointment, "cancelled", now=now, notifier=notifier, reason=reason)


async def record_payment(
    db: AsyncSession,
    appointment: Appointment,
    payment_status: str,
    *,
    payment_id: Optional[str] = None,
) -> Appointment:
    """Plain update; payment state never touches the schedule."""
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Unknown payment status: {payment_status}", field="paymentStatus")
    appointment.payment_status = payment_status
    if payment_id:
        appointment.payment_id = payment_id
    await db.commit()
    return await get_appointment(db, appointment.tenant_id, appointment.id)
