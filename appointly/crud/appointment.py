# appointly/crud/appointment.py

from __future__ import annotations
from datetime import datetime
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from appointly.db.models.appointment import Appointment, SlotClaim

_DETAIL_OPTIONS = (
    selectinload(Appointment.service),
    selectinload(Appointment.customer),
    selectinload(Appointment.staff),
)


async def get_appointment(
    db: AsyncSession,
    tenant_id: int,
    appointment_id: int,
) -> Optional[Appointment]:
    """Appointment with service/customer/staff loaded, scoped to the tenant."""
    q = (
        sa.select(Appointment)
        .where(Appointment.id == appointment_id, Appointment.tenant_id == tenant_id)
        .options(*_DETAIL_OPTIONS)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def list_appointments(
    db: AsyncSession,
    tenant_id: int,
    *,
    start_utc: Optional[datetime] = None,
    end_utc: Optional[datetime] = None,
    statuses: Optional[Sequence[str]] = None,
    staff_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[Sequence[Appointment], int]:
    q = sa.select(Appointment).where(Appointment.tenant_id == tenant_id)
    if start_utc is not None:
        q = q.where(Appointment.start_time >= start_utc)
    if end_utc is not None:
        q = q.where(Appointment.start_time < end_utc)
    if statuses:
        q = q.where(Appointment.status.in_(list(statuses)))
    if staff_id is not None:
        q = q.where(Appointment.staff_id == staff_id)
    if customer_id is not None:
        q = q.where(Appointment.customer_id == customer_id)

    total = await db.scalar(sa.select(sa.func.count()).select_from(q.subquery()))

    q = q.options(*_DETAIL_OPTIONS).order_by(Appointment.start_time.asc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return res.scalars().all(), int(total or 0)


async def find_overlapping(
    db: AsyncSession,
    resource_key: str,
    start_utc: datetime,
    end_utc: datetime,
    *,
    exclude_id: Optional[int] = None,
) -> Sequence[Appointment]:
    """
    Non-cancelled appointments on resource_key whose occupied interval
    [start_time, occupied_until) intersects [start_utc, end_utc).
    """
    q = sa.select(Appointment).where(
        Appointment.resource_key == resource_key,
        Appointment.status != "cancelled",
        Appointment.start_time < end_utc,
        Appointment.occupied_until > start_utc,
    )
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)
    q = q.order_by(Appointment.start_time.asc())
    res = await db.execute(q)
    return res.scalars().all()


def build_claims(appointment_id: int, resource_key: str, start_utc: datetime, occupied_until: datetime) -> list[SlotClaim]:
    first = int(start_utc.timestamp()) // 60
    last = int(occupied_until.timestamp()) // 60  # exclusive
    return [
        SlotClaim(appointment_id=appointment_id, resource_key=resource_key, minute=m)
        for m in range(first, last)
    ]


async def release_claims(db: AsyncSession, appointment_id: int) -> None:
    """Delete claim rows now, so new claims in the same transaction can reuse the minutes."""
    await db.execute(sa.delete(SlotClaim).where(SlotClaim.appointment_id == appointment_id))
