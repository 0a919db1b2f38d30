# appointly/services/conflicts.py
"""
Overlap detection between a candidate occupied interval and the existing
non-cancelled appointments of one resource.

Conflict if any existing appointment on the same resource satisfies
    existing_start < candidate_end AND candidate_start < existing_occupied_until
(half-open intervals, so back-to-back bookings do not collide).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from appointly.crud.appointment import find_overlapping
from appointly.db.models.service import Service

PER_SERVICE = "per_service"
UNCONSTRAINED = "unconstrained"


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
    appointment_id: Optional[int] = None


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def occupied_interval(start: datetime, service: Service) -> tuple[datetime, datetime]:
    """What a booking starting at `start` blocks: duration plus buffer."""
    return start, start + timedelta(minutes=service.duration_minutes + service.buffer_minutes)


def resource_key_for(tenant_id: int, service: Service, staff_id: Optional[int], mode: str = PER_SERVICE) -> Optional[str]:
    """
    Staff bookings contend per staff member. Staff-less bookings either share
    one implicit resource per service, or are not capacity-limited at all.
    """
    if staff_id is not None:
        return f"staff:{staff_id}"
    if mode == UNCONSTRAINED:
        return None
    return f"service:{tenant_id}:{service.id}"


def is_free(start: datetime, end: datetime, busy: Iterable[BusyInterval]) -> bool:
    return not any(intervals_overlap(start, end, b.start, b.end) for b in busy)


async def busy_intervals(
    db: AsyncSession,
    resource_key: Optional[str],
    window_start: datetime,
    window_end: datetime,
    *,
    exclude_id: Optional[int] = None,
) -> list[BusyInterval]:
    if resource_key is None:
        return []
    rows = await find_overlapping(db, resource_key, window_start, window_end, exclude_id=exclude_id)
    return [BusyInterval(r.start_time, r.occupied_until, r.id) for r in rows]


async def is_interval_free(
    db: AsyncSession,
    resource_key: Optional[str],
    start: datetime,
    end: datetime,
    *,
    exclude_id: Optional[int] = None,
) -> bool:
    if resource_key is None:
        return True
    rows = await find_overlapping(db, resource_key, start, end, exclude_id=exclude_id)
    return not rows
