# appointly/crud/customer.py
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from appointly.db.models.customer import Customer


async def get_customer_by_email(db: AsyncSession, tenant_id: int, email: str) -> Optional[Customer]:
    stmt = sa.select(Customer).where(
        Customer.tenant_id == tenant_id,
        Customer.email == email.strip().lower(),
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def upsert_customer(
    db: AsyncSession,
    tenant_id: int,
    *,
    name: str,
    email: str,
    phone: Optional[str] = None,
    timezone: Optional[str] = None,
) -> Customer:
    """
    Find a customer by (tenant, email) or stage a new one. Nothing is
    committed here: the new row is flushed and written by the caller's
    commit, so a booking that fails afterwards leaves no customer behind.

    Call this before anything else is pending in the session. If a concurrent
    request created the same email, the transaction is rolled back and the
    existing row returned. Existing customers are not modified.
    """
    email = email.strip().lower()
    existing = await get_customer_by_email(db, tenant_id, email)
    if existing:
        return existing

    obj = Customer(
        tenant_id=tenant_id,
        name=name,
        email=email,
        phone=phone,
        timezone=timezone,
    )
    db.add(obj)
    try:
        await db.flush()
        return obj
    except IntegrityError:
        await db.rollback()
        existing = await get_customer_by_email(db, tenant_id, email)
        if existing:
            return existing
        raise
