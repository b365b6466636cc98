import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldflow.db import Base


class AssetType(enum.Enum):
    headend = "headend"
    core_switch = "core_switch"
    fdh = "fdh"
    splitter = "splitter"
    ont = "ont"
    router = "router"
    fiber_roll = "fiber_roll"


INFRASTRUCTURE_TYPES = (
    AssetType.headend,
    AssetType.core_switch,
    AssetType.fdh,
    AssetType.splitter,
)
CUSTOMER_DEVICE_TYPES = (AssetType.ont, AssetType.router)


class NodeType(enum.Enum):
    headend = "headend"
    core_switch = "core_switch"
    fdh = "fdh"
    splitter = "splitter"


class AssetStatus(enum.Enum):
    available = "available"
    assigned = "assigned"
    faulty = "faulty"
    retired = "retired"


class Asset(Base):
    __tablename__ = "assets"
    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_assets_serial_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType), nullable=False)
    serial_number: Mapped[str] = mapped_column(String(120), nullable=False)
    model: Mapped[str | None] = mapped_column(String(120))
    location: Mapped[str | None] = mapped_column(String(200))
    status: Mapped[AssetStatus] = mapped_column(
        Enum(AssetStatus), default=AssetStatus.available
    )
    # Customer id from the customer store; no cross-store foreign key.
    assigned_to_customer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    history = relationship(
        "AssetHistory", back_populates="asset", cascade="all, delete-orphan"
    )


class AssetHistory(Base):
    __tablename__ = "asset_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True
    )
    change_type: Mapped[str] = mapped_column(String(60), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    changed_by: Mapped[str | None] = mapped_column(String(120))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    asset = relationship("Asset", back_populates="history")


class Headend(Base):
    __tablename__ = "headends"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, unique=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    asset = relationship("Asset")
    core_switches = relationship("CoreSwitch", back_populates="headend")


class CoreSwitch(Base):
    __tablename__ = "core_switches"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, unique=True
    )
    headend_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("headends.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    asset = relationship("Asset")
    headend = relationship("Headend", back_populates="core_switches")
    fdhs = relationship("Fdh", back_populates="core_switch")


class Fdh(Base):
    __tablename__ = "fdhs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, unique=True
    )
    core_switch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("core_switches.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    region: Mapped[str | None] = mapped_column(String(120))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    asset = relationship("Asset")
    core_switch = relationship("CoreSwitch", back_populates="fdhs")
    splitters = relationship("Splitter", back_populates="fdh")


class Splitter(Base):
    __tablename__ = "splitters"
    __table_args__ = (
        CheckConstraint(
            "used_ports >= 0 AND used_ports <= port_capacity",
            name="ck_splitters_used_ports_within_capacity",
        ),
        CheckConstraint("port_capacity > 0", name="ck_splitters_port_capacity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, unique=True
    )
    fdh_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fdhs.id"), nullable=False, index=True
    )
    neighborhood: Mapped[str | None] = mapped_column(String(160))
    port_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    used_ports: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    asset = relationship("Asset")
    fdh = relationship("Fdh", back_populates="splitters")
    reservations = relationship("SplitterPortReservation", back_populates="splitter")


class SplitterPortReservation(Base):
    """One splitter port held for one customer under one idempotency key."""

    __tablename__ = "splitter_port_reservations"
    __table_args__ = (
        UniqueConstraint("reservation_key", name="uq_splitter_port_reservations_key"),
        Index(
            "ix_splitter_port_reservations_active_port",
            "splitter_id",
            "port_number",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    splitter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("splitters.id"), nullable=False
    )
    port_number: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    reservation_key: Mapped[str] = mapped_column(String(120), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    splitter = relationship("Splitter", back_populates="reservations")
