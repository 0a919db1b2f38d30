# appointly/crud/catalog.py
"""Read-only lookups for tenants, services and staff, always tenant-scoped."""
from __future__ import annotations
from datetime import date
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from appointly.db.models.service import Service
from appointly.db.models.staff import Staff, StaffHoliday
from appointly.db.models.tenant import Tenant


async def get_tenant(db: AsyncSession, tenant_id: int) -> Optional[Tenant]:
    tenant = await db.get(Tenant, tenant_id)
    if tenant is None or not tenant.is_active:
        return None
    return tenant


async def get_tenant_by_slug(db: AsyncSession, slug: str) -> Optional[Tenant]:
    stmt = sa.select(Tenant).where(
        Tenant.slug == slug.strip().lower(),
        Tenant.is_active.is_(True),
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def get_service(
    db: AsyncSession,
    tenant_id: int,
    service_id: int,
    *,
    active_only: bool = True,
) -> Optional[Service]:
    q = sa.select(Service).where(
        Service.id == service_id,
        Service.tenant_id == tenant_id,
        Service.deleted_at.is_(None),
    )
    if active_only:
        q = q.where(Service.is_active.is_(True))
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def list_active_services(db: AsyncSession, tenant_id: int) -> Sequence[Service]:
    q = (
        sa.select(Service)
        .where(
            Service.tenant_id == tenant_id,
            Service.is_active.is_(True),
            Service.deleted_at.is_(None),
        )
        .order_by(Service.name.asc())
    )
    res = await db.execute(q)
    return res.scalars().all()


async def get_staff(db: AsyncSession, tenant_id: int, staff_id: int) -> Optional[Staff]:
    q = sa.select(Staff).where(
        Staff.id == staff_id,
        Staff.tenant_id == tenant_id,
        Staff.deleted_at.is_(None),
    )
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def list_staff(db: AsyncSession, tenant_id: int) -> Sequence[Staff]:
    q = (
        sa.select(Staff)
        .where(Staff.tenant_id == tenant_id, Staff.deleted_at.is_(None))
        .order_by(Staff.name.asc())
    )
    res = await db.execute(q)
    return res.scalars().all()


async def get_staff_holidays(
    db: AsyncSession,
    staff_id: int,
    start_date: date,
    end_date: date,
) -> set[date]:
    q = sa.select(StaffHoliday.date).where(
        StaffHoliday.staff_id == staff_id,
        StaffHoliday.date >= start_date,
        StaffHoliday.date <= end_date,
    )
    res = await db.execute(q)
    return set(res.scalars().all())
