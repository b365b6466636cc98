import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldflow.db import Base


class CustomerStatus(enum.Enum):
    pending = "pending"
    active = "active"
    inactive = "inactive"


class FiberStatus(enum.Enum):
    active = "active"
    inactive = "inactive"
    disconnected = "disconnected"


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        # The assignment is all-or-nothing.
        CheckConstraint(
            "(splitter_id IS NULL AND assigned_port IS NULL)"
            " OR (splitter_id IS NOT NULL AND assigned_port IS NOT NULL)",
            name="ck_customers_assignment_complete",
        ),
        UniqueConstraint("splitter_id", "assigned_port", name="uq_customers_splitter_port"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255))
    neighborhood: Mapped[str | None] = mapped_column(String(160))
    plan: Mapped[str | None] = mapped_column(String(80))
    connection_type: Mapped[str | None] = mapped_column(String(40))
    status: Mapped[CustomerStatus] = mapped_column(
        Enum(CustomerStatus), default=CustomerStatus.pending, nullable=False
    )

    # Splitter node in the inventory service; opaque here.
    splitter_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    splitter_serial_number: Mapped[str | None] = mapped_column(String(120))
    assigned_port: Mapped[int | None] = mapped_column(Integer)
    port_reservation_key: Mapped[str | None] = mapped_column(String(120))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    fiber_drop_line = relationship(
        "FiberDropLine",
        back_populates="customer",
        uselist=False,
        cascade="all, delete-orphan",
    )


class FiberDropLine(Base):
    __tablename__ = "fiber_drop_lines"
    __table_args__ = (
        UniqueConstraint("customer_id", name="uq_fiber_drop_lines_customer"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False
    )
    from_splitter_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    length_meters: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    status: Mapped[FiberStatus] = mapped_column(
        Enum(FiberStatus), default=FiberStatus.active, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    customer = relationship("Customer", back_populates="fiber_drop_line")
