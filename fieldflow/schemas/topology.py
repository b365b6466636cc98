from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class PathAsset(BaseModel):
    id: UUID
    serial_number: str
    asset_type: str
    status: str | None = None


class HierarchicalNetworkNode(BaseModel):
    """One hop of a physical path; ``child`` points one level down."""

    id: UUID
    node_type: str
    name: str | None = None
    detail: str | None = None
    serial_number: str | None = None
    model: str | None = None
    assets: list[PathAsset] = Field(default_factory=list)
    child: HierarchicalNetworkNode | None = None


class CustomerPathResponse(BaseModel):
    customer_id: UUID
    customer_name: str | None = None
    path: HierarchicalNetworkNode


class SerialPathResponse(BaseModel):
    serial_number: str
    asset_type: str
    customer_id: UUID | None = None
    customer_name: str | None = None
    path: HierarchicalNetworkNode


class TopologyCustomer(BaseModel):
    id: UUID
    name: str
    status: str
    assigned_port: int | None = None


class TopologyNode(BaseModel):
    id: UUID
    node_type: str
    name: str | None = None
    detail: str | None = None
    serial_number: str | None = None
    model: str | None = None
    port_capacity: int | None = None
    used_ports: int | None = None
    children: list[TopologyNode] = Field(default_factory=list)
    customers: list[TopologyCustomer] = Field(default_factory=list)
