# appointly/schemas/appointment.py

from datetime import datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from appointly.db.models.appointment import Appointment
from appointly.schemas.catalog import ServiceOut, StaffOut
from appointly.services.availability import Slot
from appointly.services.timezones import to_display


class CustomerOut(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AppointmentOut(BaseModel):
    id: int
    service_id: int
    staff_id: Optional[int] = None
    customer_id: int
    start_time: datetime = Field(..., description="UTC")
    end_time: datetime = Field(..., description="UTC")
    start_time_local: datetime
    end_time_local: datetime
    timezone: str = Field(..., description="Zone of the *_local fields")
    status: str
    notes: Optional[str] = None
    payment_option: str
    payment_status: str
    amount: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def _fields(cls, appt: Appointment, zone: ZoneInfo) -> dict:
        return {
            "id": appt.id,
            "service_id": appt.service_id,
            "staff_id": appt.staff_id,
            "customer_id": appt.customer_id,
            "start_time": appt.start_time,
            "end_time": appt.end_time,
            "start_time_local": to_display(appt.start_time, zone),
            "end_time_local": to_display(appt.end_time, zone),
            "timezone": zone.key,
            "status": appt.status,
            "notes": appt.notes,
            "payment_option": appt.payment_option,
            "payment_status": appt.payment_status,
            "amount": appt.amount,
            "created_at": appt.created_at,
            "updated_at": appt.updated_at,
        }

    @classmethod
    def build(cls, appt: Appointment, zone: ZoneInfo) -> "AppointmentOut":
        return cls(**cls._fields(appt, zone))


class AppointmentDetail(AppointmentOut):
    """Appointment with service/staff/customer; relations must be loaded."""
    service: ServiceOut
    staff: Optional[StaffOut] = None
    customer: CustomerOut

    @classmethod
    def build(cls, appt: Appointment, zone: ZoneInfo) -> "AppointmentDetail":
        return cls(
            **cls._fields(appt, zone),
            service=ServiceOut.model_validate(appt.service),
            staff=StaffOut.model_validate(appt.staff) if appt.staff is not None else None,
            customer=CustomerOut.model_validate(appt.customer),
        )


class BookingOut(AppointmentDetail):
    """Returned on create/reschedule; the token is the customer's only key."""
    reschedule_token: str
    payment_url: Optional[str] = None
    payment_error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome, zone: ZoneInfo) -> "BookingOut":
        appt = outcome.appointment
        detail = AppointmentDetail.build(appt, zone)
        return cls(
            **detail.model_dump(),
            reschedule_token=appt.reschedule_token,
            payment_url=outcome.payment_url,
            payment_error=outcome.payment_error,
        )


class AppointmentList(BaseModel):
    items: list[AppointmentDetail]
    total: int
    limit: int
    offset: int


class SlotOut(BaseModel):
    start_time: datetime
    end_time: datetime
    start_time_local: datetime
    end_time_local: datetime
    available: bool
    staff_id: Optional[int] = None

    @classmethod
    def build(cls, slot: Slot, zone: ZoneInfo) -> "SlotOut":
        return cls(
            start_time=slot.start_time,
            end_time=slot.end_time,
            start_time_local=to_display(slot.start_time, zone),
            end_time_local=to_display(slot.end_time, zone),
            available=slot.available,
            staff_id=slot.staff_id,
        )


class SlotsResponse(BaseModel):
    slots: list[SlotOut]
    count: int
    timezone: str


class SlotCheckResponse(BaseModel):
    available: bool
    slot: SlotOut
