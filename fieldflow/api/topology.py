from fastapi import APIRouter, Depends

from fieldflow.api.deps import get_customer_client, get_inventory_client, require_user_auth
from fieldflow.schemas.topology import CustomerPathResponse, SerialPathResponse, TopologyNode
from fieldflow.services.clients import CustomerClient, InventoryClient
from fieldflow.services.topology import topology

router = APIRouter(
    prefix="/topology", tags=["topology"], dependencies=[Depends(require_user_auth)]
)


@router.get("/customers/{customer_id}/path", response_model=CustomerPathResponse)
def trace_customer_path(
    customer_id: str,
    customers: CustomerClient = Depends(get_customer_client),
    inventory: InventoryClient = Depends(get_inventory_client),
):
    return topology.trace_customer_path(customer_id, customers, inventory)


@router.get("/devices/{serial_number}/path", response_model=SerialPathResponse)
def trace_serial_path(
    serial_number: str,
    customers: CustomerClient = Depends(get_customer_client),
    inventory: InventoryClient = Depends(get_inventory_client),
):
    return topology.trace_serial_path(serial_number, customers, inventory)


@router.get("/headends/{headend_id}", response_model=TopologyNode)
def get_headend_topology(
    headend_id: str,
    customers: CustomerClient = Depends(get_customer_client),
    inventory: InventoryClient = Depends(get_inventory_client),
):
    return topology.headend_topology(headend_id, customers, inventory)


@router.get("/fdhs/{fdh_id}", response_model=TopologyNode)
def get_fdh_topology(
    fdh_id: str,
    customers: CustomerClient = Depends(get_customer_client),
    inventory: InventoryClient = Depends(get_inventory_client),
):
    return topology.fdh_topology(fdh_id, customers, inventory)
