# appointly/db/base.py

"""
Imports every ORM model so Alembic (and create_all) can discover them.
Whenever you add a new model, import it here.
"""
from appointly.db.models.tenant import Tenant
from appointly.db.models.service import Service
from appointly.db.models.staff import Staff, StaffHoliday
from appointly.db.models.customer import Customer
from appointly.db.models.appointment import Appointment, SlotClaim
from appointly.db.session import engine, Base

__all__ = [
    "Tenant", "Service", "Staff", "StaffHoliday", "Customer",
    "Appointment", "SlotClaim", "Base", "init_db",
]


async def init_db():
    """Initialize database by creating all tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
