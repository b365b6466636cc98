from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fieldflow.models.customer import CustomerStatus, FiberStatus
from fieldflow.models.inventory import AssetStatus, AssetType


class CustomerBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    address: str | None = Field(default=None, max_length=255)
    neighborhood: str | None = Field(default=None, max_length=160)
    plan: str | None = Field(default=None, max_length=80)
    connection_type: str | None = Field(default=None, max_length=40)


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    address: str | None = Field(default=None, max_length=255)
    neighborhood: str | None = Field(default=None, max_length=160)
    plan: str | None = Field(default=None, max_length=80)
    connection_type: str | None = Field(default=None, max_length=40)


class CustomerRead(CustomerBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: CustomerStatus
    splitter_id: UUID | None = None
    splitter_serial_number: str | None = None
    assigned_port: int | None = None
    port_reservation_key: str | None = None
    created_at: datetime
    updated_at: datetime


class CustomerStatusUpdate(BaseModel):
    # Free text so "ACTIVE" and "active" are both accepted.
    status: str = Field(min_length=1, max_length=40)


class FiberDropLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    from_splitter_id: UUID | None = None
    length_meters: Decimal | None = None
    status: FiberStatus
    created_at: datetime
    updated_at: datetime


class AssignmentRequest(BaseModel):
    splitter_serial_number: str = Field(min_length=1, max_length=120)
    port_number: int
    length_meters: Decimal | None = Field(default=None, ge=0)


class AssignedAssetRead(BaseModel):
    id: UUID
    serial_number: str
    asset_type: AssetType
    status: AssetStatus


class AssignmentRead(BaseModel):
    customer_id: UUID
    name: str | None = None
    status: CustomerStatus
    splitter_id: UUID | None = None
    splitter_serial_number: str | None = None
    assigned_port: int | None = None
    fiber_drop_line: FiberDropLineRead | None = None
    assets: list[AssignedAssetRead] = Field(default_factory=list)


class CustomerAssetAssign(BaseModel):
    serial_number: str = Field(min_length=1, max_length=120)
