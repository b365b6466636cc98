from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fieldflow.models.inventory import AssetStatus, AssetType, NodeType


class AssetBase(BaseModel):
    asset_type: AssetType
    serial_number: str = Field(min_length=1, max_length=120)
    model: str | None = Field(default=None, max_length=120)
    location: str | None = Field(default=None, max_length=200)


class AssetCreate(AssetBase):
    status: AssetStatus = AssetStatus.available


class AssetStatusUpdate(BaseModel):
    status: AssetStatus


class AssetRead(AssetBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: AssetStatus
    assigned_to_customer_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class AssetHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asset_id: UUID
    change_type: str
    description: str | None = None
    changed_by: str | None = None
    created_at: datetime


class AssetAssignmentRead(BaseModel):
    """Who holds an asset, and which hierarchy node wraps it if any."""

    asset_id: UUID
    serial_number: str
    asset_type: AssetType
    status: AssetStatus
    node_id: UUID | None = None
    assigned_to_customer_id: UUID | None = None


class AssetAssignRequest(BaseModel):
    serial_number: str = Field(min_length=1, max_length=120)
    customer_id: UUID


class AssetReclaimRequest(BaseModel):
    customer_id: UUID
    status: AssetStatus = AssetStatus.available


class AssetReclaimResult(BaseModel):
    customer_id: UUID
    reclaimed: int


class NodeCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    parent_id: UUID | None = None
    name: str | None = Field(default=None, max_length=160)
    location: str | None = Field(default=None, max_length=200)
    region: str | None = Field(default=None, max_length=120)
    neighborhood: str | None = Field(default=None, max_length=160)
    port_capacity: int | None = Field(default=None, ge=1)
    serial_number: str | None = Field(default=None, min_length=1, max_length=120)
    model: str | None = Field(default=None, max_length=120)


class NodeUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=160)
    location: str | None = Field(default=None, max_length=200)
    region: str | None = Field(default=None, max_length=120)
    neighborhood: str | None = Field(default=None, max_length=160)
    port_capacity: int | None = Field(default=None, ge=1)
    model: str | None = Field(default=None, max_length=120)


class NodeReparent(BaseModel):
    parent_id: UUID


class NodeRead(BaseModel):
    id: UUID
    node_type: NodeType
    asset_id: UUID
    serial_number: str | None = None
    model: str | None = None
    name: str | None = None
    location: str | None = None
    region: str | None = None
    neighborhood: str | None = None
    parent_id: UUID | None = None
    port_capacity: int | None = None
    used_ports: int | None = None
    created_at: datetime | None = None


class NodeTree(BaseModel):
    node: NodeRead
    children: list[NodeTree] = Field(default_factory=list)


class SplitterUsedPortsUpdate(BaseModel):
    used_ports: int


class ReservationCreate(BaseModel):
    port_number: int
    customer_id: UUID
    reservation_key: str = Field(min_length=1, max_length=120)


class ReservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    splitter_id: UUID
    port_number: int
    customer_id: UUID
    reservation_key: str
    active: bool
    released_at: datetime | None = None
    created_at: datetime


class ReleaseResult(BaseModel):
    reservation_key: str
    released: bool
    splitter_id: UUID | None = None
    used_ports: int | None = None
