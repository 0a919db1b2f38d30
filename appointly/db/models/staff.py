# appointly/db/models/staff.py

from __future__ import annotations
from datetime import date, datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appointly.db.session import Base, BigIntId, UTCDateTime


class Staff(Base):
    __tablename__ = "staff"
    __table_args__ = (
        sa.Index("ix_staff_tenant_id", "tenant_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(sa.String(254))
    phone: Mapped[str | None] = mapped_column(sa.String(20))

    # {"monday": [{"start": "09:00", "end": "12:00"}, ...], "saturday": []}
    # Wall-clock ranges in the tenant's timezone.
    weekly_schedule: Mapped[dict] = mapped_column(sa.JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    holidays: Mapped[list["StaffHoliday"]] = relationship(
        back_populates="staff",
        cascade="all, delete-orphan",
    )


class StaffHoliday(Base):
    __tablename__ = "staff_holidays"
    __table_args__ = (
        sa.Index("ix_staff_holidays_staff_id_date", "staff_id", "date"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    staff_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False)
    # Calendar date in the tenant's timezone
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(sa.String(200))

    staff: Mapped["Staff"] = relationship(back_populates="holidays")
