# appointly/db/models/service.py

from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from appointly.db.session import Base, BigIntId, UTCDateTime


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        sa.CheckConstraint("duration_minutes > 0 AND duration_minutes <= 1440", name="ck_services_duration_range"),
        sa.CheckConstraint("buffer_minutes >= 0", name="ck_services_buffer_non_negative"),
        sa.Index("ix_services_tenant_id", "tenant_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text)

    duration_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    # Recovery time after a booked appointment; not shown to customers
    buffer_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")
    price: Mapped[Decimal] = mapped_column(sa.Numeric(10, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(sa.String(3), nullable=False, default="USD")
    require_staff: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
