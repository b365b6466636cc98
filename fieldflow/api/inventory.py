from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fieldflow.api.deps import get_inventory_db, require_operator, require_user_auth
from fieldflow.models.inventory import NodeType
from fieldflow.schemas.common import ListResponse
from fieldflow.schemas.inventory import (
    AssetAssignmentRead,
    AssetAssignRequest,
    AssetCreate,
    AssetHistoryRead,
    AssetRead,
    AssetReclaimRequest,
    AssetReclaimResult,
    AssetStatusUpdate,
    NodeCreate,
    NodeRead,
    NodeReparent,
    NodeTree,
    NodeUpdate,
    ReleaseResult,
    ReservationCreate,
    ReservationRead,
    SplitterUsedPortsUpdate,
)
from fieldflow.services import inventory as inventory_service
from fieldflow.services.common import list_response

router = APIRouter(prefix="/inventory", tags=["inventory"])


# -- assets ------------------------------------------------------------------


@router.post("/assets", response_model=AssetRead, status_code=status.HTTP_201_CREATED)
def create_asset(
    payload: AssetCreate,
    db: Session = Depends(get_inventory_db),
    auth=Depends(require_operator),
):
    return inventory_service.assets.create(db, payload, changed_by=auth["user_id"])


@router.get(
    "/assets",
    response_model=ListResponse[AssetRead],
    dependencies=[Depends(require_user_auth)],
)
def list_assets(
    asset_type: str | None = None,
    status: str | None = None,
    location: str | None = None,
    customer_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_inventory_db),
):
    items = inventory_service.assets.list(
        db, asset_type, status, location, customer_id, order_by, order_dir, limit, offset
    )
    return list_response(items, limit, offset)


@router.get(
    "/assets/by-serial/{serial_number}",
    response_model=AssetRead,
    dependencies=[Depends(require_user_auth)],
)
def get_asset_by_serial(serial_number: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.assets.get_by_serial(db, serial_number)


@router.get(
    "/assets/by-serial/{serial_number}/assignment",
    response_model=AssetAssignmentRead,
    dependencies=[Depends(require_user_auth)],
)
def get_asset_assignment(serial_number: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.assets.assignment(db, serial_number)


@router.get(
    "/assets/by-customer/{customer_id}",
    response_model=list[AssetRead],
    dependencies=[Depends(require_user_auth)],
)
def list_customer_assets(customer_id: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.assets.for_customer(db, customer_id)


@router.post("/assets/assign", response_model=AssetRead)
def assign_asset(
    payload: AssetAssignRequest,
    db: Session = Depends(get_inventory_db),
    auth=Depends(require_operator),
):
    return inventory_service.assets.assign_to_customer(
        db, payload.serial_number, payload.customer_id, changed_by=auth["user_id"]
    )


@router.post("/assets/reclaim", response_model=AssetReclaimResult)
def reclaim_assets(
    payload: AssetReclaimRequest,
    db: Session = Depends(get_inventory_db),
    auth=Depends(require_operator),
):
    reclaimed = inventory_service.assets.unassign_for_customer(
        db, payload.customer_id, payload.status, changed_by=auth["user_id"]
    )
    return {"customer_id": payload.customer_id, "reclaimed": reclaimed}


@router.get(
    "/assets/{asset_id}",
    response_model=AssetRead,
    dependencies=[Depends(require_user_auth)],
)
def get_asset(asset_id: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.assets.get(db, asset_id)


@router.patch("/assets/{asset_id}/status", response_model=AssetRead)
def update_asset_status(
    asset_id: str,
    payload: AssetStatusUpdate,
    db: Session = Depends(get_inventory_db),
    auth=Depends(require_operator),
):
    return inventory_service.assets.update_status(
        db, asset_id, payload.status, changed_by=auth["user_id"]
    )


@router.get(
    "/assets/{asset_id}/history",
    response_model=list[AssetHistoryRead],
    dependencies=[Depends(require_user_auth)],
)
def get_asset_history(asset_id: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.assets.history(db, asset_id)


@router.delete(
    "/assets/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operator)],
)
def delete_asset(asset_id: str, db: Session = Depends(get_inventory_db)):
    inventory_service.assets.delete(db, asset_id)


# -- hierarchy nodes ---------------------------------------------------------


@router.get(
    "/nodes/{node_type}",
    response_model=ListResponse[NodeRead],
    dependencies=[Depends(require_user_auth)],
)
def list_nodes(
    node_type: NodeType,
    parent_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_inventory_db),
):
    nodes = inventory_service.network_nodes.list(db, node_type, parent_id, limit, offset)
    return list_response([inventory_service.node_payload(node) for node in nodes], limit, offset)


@router.post(
    "/nodes/{node_type}", response_model=NodeRead, status_code=status.HTTP_201_CREATED
)
def create_node(
    node_type: NodeType,
    payload: NodeCreate,
    db: Session = Depends(get_inventory_db),
    auth=Depends(require_operator),
):
    node = inventory_service.network_nodes.create(
        db, node_type, payload, changed_by=auth["user_id"]
    )
    return inventory_service.node_payload(node)


@router.get(
    "/nodes/{node_type}/{node_id}",
    response_model=NodeRead,
    dependencies=[Depends(require_user_auth)],
)
def get_node(node_type: NodeType, node_id: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.node_payload(
        inventory_service.network_nodes.get(db, node_type, node_id)
    )


@router.patch(
    "/nodes/{node_type}/{node_id}",
    response_model=NodeRead,
    dependencies=[Depends(require_operator)],
)
def update_node(
    node_type: NodeType,
    node_id: str,
    payload: NodeUpdate,
    db: Session = Depends(get_inventory_db),
):
    node = inventory_service.network_nodes.update(db, node_type, node_id, payload)
    return inventory_service.node_payload(node)


@router.put(
    "/nodes/{node_type}/{node_id}/parent",
    response_model=NodeRead,
    dependencies=[Depends(require_operator)],
)
def reparent_node(
    node_type: NodeType,
    node_id: str,
    payload: NodeReparent,
    db: Session = Depends(get_inventory_db),
):
    node = inventory_service.network_nodes.reparent(db, node_type, node_id, payload.parent_id)
    return inventory_service.node_payload(node)


@router.delete(
    "/nodes/{node_type}/{node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operator)],
)
def delete_node(node_type: NodeType, node_id: str, db: Session = Depends(get_inventory_db)):
    inventory_service.network_nodes.delete(db, node_type, node_id)


@router.get(
    "/nodes/{node_type}/{node_id}/children",
    response_model=list[NodeRead],
    dependencies=[Depends(require_user_auth)],
)
def list_node_children(
    node_type: NodeType, node_id: str, db: Session = Depends(get_inventory_db)
):
    children = inventory_service.network_nodes.children(db, node_type, node_id)
    return [inventory_service.node_payload(child) for child in children]


@router.get(
    "/nodes/{node_type}/{node_id}/path",
    response_model=list[NodeRead],
    dependencies=[Depends(require_user_auth)],
)
def get_node_path(node_type: NodeType, node_id: str, db: Session = Depends(get_inventory_db)):
    chain = inventory_service.network_nodes.path(db, node_type, node_id)
    return [inventory_service.node_payload(node) for node in chain]


@router.get(
    "/nodes/{node_type}/{node_id}/subtree",
    response_model=NodeTree,
    dependencies=[Depends(require_user_auth)],
)
def get_node_subtree(
    node_type: NodeType, node_id: str, db: Session = Depends(get_inventory_db)
):
    return inventory_service.network_nodes.subtree(db, node_type, node_id)


# -- splitter ports ----------------------------------------------------------


@router.put(
    "/splitters/{splitter_id}/used-ports",
    response_model=NodeRead,
    dependencies=[Depends(require_operator)],
)
def set_splitter_used_ports(
    splitter_id: str,
    payload: SplitterUsedPortsUpdate,
    db: Session = Depends(get_inventory_db),
):
    splitter = inventory_service.splitter_ports.set_used_ports(db, splitter_id, payload.used_ports)
    return inventory_service.node_payload(splitter)


@router.post(
    "/splitters/{splitter_id}/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operator)],
)
def reserve_splitter_port(
    splitter_id: UUID,
    payload: ReservationCreate,
    db: Session = Depends(get_inventory_db),
):
    return inventory_service.splitter_ports.reserve(db, splitter_id, payload)


@router.get(
    "/splitters/{splitter_id}/reservations",
    response_model=list[ReservationRead],
    dependencies=[Depends(require_user_auth)],
)
def list_splitter_reservations(splitter_id: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.splitter_ports.occupancy(db, splitter_id)


@router.post(
    "/reservations/{reservation_key}/release",
    response_model=ReleaseResult,
    dependencies=[Depends(require_operator)],
)
def release_reservation(reservation_key: str, db: Session = Depends(get_inventory_db)):
    return inventory_service.splitter_ports.release(db, reservation_key)
