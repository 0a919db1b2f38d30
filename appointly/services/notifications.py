# appointly/services/notifications.py
"""
Side effects that run after a booking change has been committed.
None of them can undo the booking; failures are logged and reported back.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from appointly.core.logging import get_logger
from appointly.db.models.appointment import Appointment
from appointly.services.payments import CheckoutSession, PaymentGateway
from appointly.services.reminders import ReminderQueue, get_redis_client

logger = get_logger(__name__)


class BookingNotifier:
    def __init__(self, reminders: ReminderQueue, payments: PaymentGateway):
        self.reminders = reminders
        self.payments = payments

    async def booking_confirmed(self, appointment: Appointment, now: datetime) -> Optional[datetime]:
        return await self.reminders.schedule(appointment.id, appointment.start_time, now)

    async def booking_rescheduled(self, appointment: Appointment, now: datetime) -> Optional[datetime]:
        return await self.reminders.schedule(appointment.id, appointment.start_time, now)

    async def booking_cancelled(self, appointment: Appointment) -> None:
        await self.reminders.cancel(appointment.id)

    async def request_payment(
        self,
        appointment: Appointment,
        *,
        description: str,
        currency: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """Raises UpstreamError; the caller decides how to report it."""
        return await self.payments.create_checkout(
            tenant_id=appointment.tenant_id,
            appointment_id=appointment.id,
            amount=appointment.amount,
            currency=currency,
            description=description,
            customer_email=customer_email,
        )


_notifier: Optional[BookingNotifier] = None


def get_notifier() -> BookingNotifier:
    """FastAPI dependency; one notifier per process."""
    global _notifier
    if _notifier is None:
        _notifier = BookingNotifier(
            reminders=ReminderQueue(get_redis_client()),
            payments=PaymentGateway.from_settings(),
        )
    return _notifier
