# appointly/core/business.py
from __future__ import annotations

# 0=Mon .. 6=Sun, matching date.weekday()
WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# Hours used for services booked without a staff member (tenant timezone).
DEFAULT_WEEKLY_SCHEDULE = {day: [{"start": "09:00", "end": "17:00"}] for day in WEEKDAYS}

APPOINTMENT_STATUSES = ("confirmed", "completed", "cancelled", "no-show")
RESCHEDULABLE_STATUSES = ("confirmed", "no-show")

PAYMENT_STATUSES = ("unpaid", "paid", "refunded")


def weekday_name(weekday: int) -> str:
    return WEEKDAYS[weekday]
