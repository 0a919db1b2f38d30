# appointly/db/models/appointment.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from decimal import Decimal
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appointly.db.session import Base, BigIntId, UTCDateTime


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        sa.Index("ix_appointments_tenant_id_start_time", "tenant_id", "start_time"),
        sa.Index("ix_appointments_resource_key_start_time", "resource_key", "start_time"),
        sa.Index("ix_appointments_staff_id_start_time", "staff_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("services.id"), nullable=False)
    customer_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("customers.id"), nullable=False)
    staff_id: Mapped[int | None] = mapped_column(sa.BigInteger, sa.ForeignKey("staff.id"))

    # "staff:<id>" or "service:<tenant>:<service>"; NULL when bookings are unconstrained
    resource_key: Mapped[str | None] = mapped_column(sa.String(120))

    # Stored as timezone-aware UTC
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    # end_time + the service buffer at booking time
    occupied_until: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    customer_timezone: Mapped[str] = mapped_column(sa.String(64), nullable=False)

    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="confirmed")
    notes: Mapped[str | None] = mapped_column(sa.Text)

    payment_option: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    payment_status: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="unpaid")
    payment_id: Mapped[str | None] = mapped_column(sa.String(255))
    amount: Mapped[Decimal | None] = mapped_column(sa.Numeric(10, 2))

    reschedule_token: Mapped[str] = mapped_column(sa.String(128), nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relations
    service: Mapped["Service"] = relationship("Service")
    customer: Mapped["Customer"] = relationship("Customer")
    staff: Mapped[Optional["Staff"]] = relationship("Staff")


class SlotClaim(Base):
    """
    One row per occupied minute of an active appointment on its resource.
    The unique constraint is what makes two overlapping bookings on the
    same resource impossible, whatever the interleaving of requests.
    """
    __tablename__ = "slot_claims"
    __table_args__ = (
        sa.UniqueConstraint("resource_key", "minute", name="uq_slot_claims_resource_minute"),
        sa.Index("ix_slot_claims_appointment_id", "appointment_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    appointment_id: Mapped[int] = mapped_column(
        sa.BigInteger, sa.ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    resource_key: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    # UTC epoch minute
    minute: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
