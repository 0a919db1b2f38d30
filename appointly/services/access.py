# appointly/services/access.py
"""
Appointment access for customers without an account: the reschedule
token is the whole credential. A wrong token and an unknown id look the
same from the outside.
"""
from __future__ import annotations

import secrets
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from appointly.core.errors import AccessDenied, TokenRequiredError
from appointly.core.logging import get_logger
from appointly.crud.appointment import get_appointment
from appointly.db.models.appointment import Appointment

logger = get_logger(__name__)

NOT_FOUND = "Appointment not found"


async def resolve_by_token(
    db: AsyncSession,
    tenant_id: int,
    appointment_id: int,
    token: Optional[str],
) -> Appointment:
    if token is None or not token.strip():
        raise TokenRequiredError()

    appt = await get_appointment(db, tenant_id, appointment_id)
    if appt is None:
        raise AccessDenied(NOT_FOUND)

    if not secrets.compare_digest(appt.reschedule_token.encode(), token.strip().encode()):
        logger.info("token_mismatch", tenant_id=tenant_id, appointment_id=appointment_id)
        raise AccessDenied(NOT_FOUND)
    return appt
