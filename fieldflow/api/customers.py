from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from fieldflow.api.deps import (
    get_customer_db,
    get_inventory_client,
    require_operator,
    require_user_auth,
)
from fieldflow.schemas.common import ListResponse
from fieldflow.schemas.customer import (
    AssignmentRead,
    AssignmentRequest,
    CustomerAssetAssign,
    CustomerCreate,
    CustomerRead,
    CustomerStatusUpdate,
    CustomerUpdate,
    FiberDropLineRead,
)
from fieldflow.schemas.inventory import AssetRead
from fieldflow.services import allocation as allocation_service
from fieldflow.services import customers as customer_service
from fieldflow.services.clients import InventoryClient
from fieldflow.services.common import list_response
from fieldflow.services.errors import NotFoundError

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post(
    "",
    response_model=CustomerRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operator)],
)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_customer_db)):
    return customer_service.customers.create(db, payload)


@router.get(
    "",
    response_model=ListResponse[CustomerRead],
    dependencies=[Depends(require_user_auth)],
)
def list_customers(
    name: str | None = None,
    address: str | None = None,
    neighborhood: str | None = None,
    status: str | None = None,
    splitter_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_customer_db),
):
    items = customer_service.customers.list(
        db, name, address, neighborhood, status, splitter_id, order_by, order_dir, limit, offset
    )
    return list_response(items, limit, offset)


@router.get(
    "/by-splitters",
    response_model=list[CustomerRead],
    dependencies=[Depends(require_user_auth)],
)
def list_customers_by_splitters(
    splitter_id: list[str] = Query(default=[]),
    db: Session = Depends(get_customer_db),
):
    return customer_service.customers.list_by_splitters(db, splitter_id)


@router.get(
    "/fiber-drop-lines",
    response_model=ListResponse[FiberDropLineRead],
    dependencies=[Depends(require_user_auth)],
)
def list_fiber_drop_lines(
    customer_id: str | None = None,
    splitter_id: str | None = None,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_customer_db),
):
    items = customer_service.fiber_drop_lines.list(
        db, customer_id, splitter_id, status, limit, offset
    )
    return list_response(items, limit, offset)


@router.get(
    "/{customer_id}",
    response_model=CustomerRead,
    dependencies=[Depends(require_user_auth)],
)
def get_customer(customer_id: str, db: Session = Depends(get_customer_db)):
    return customer_service.customers.get(db, customer_id)


@router.patch(
    "/{customer_id}",
    response_model=CustomerRead,
    dependencies=[Depends(require_operator)],
)
def update_customer(
    customer_id: str, payload: CustomerUpdate, db: Session = Depends(get_customer_db)
):
    return customer_service.customers.update_profile(db, customer_id, payload)


@router.delete(
    "/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operator)],
)
def delete_customer(customer_id: str, db: Session = Depends(get_customer_db)):
    customer_service.customers.delete(db, customer_id)


@router.put("/{customer_id}/status", response_model=CustomerRead)
def change_customer_status(
    customer_id: str,
    payload: CustomerStatusUpdate,
    db: Session = Depends(get_customer_db),
    inventory: InventoryClient = Depends(get_inventory_client),
    auth=Depends(require_operator),
):
    return customer_service.customers.change_status(
        db, customer_id, payload.status, inventory=inventory, actor_id=auth["user_id"]
    )


@router.get(
    "/{customer_id}/assignment",
    response_model=AssignmentRead,
    dependencies=[Depends(require_user_auth)],
)
def get_customer_assignment(
    customer_id: str,
    db: Session = Depends(get_customer_db),
    inventory: InventoryClient = Depends(get_inventory_client),
):
    return customer_service.customers.assignment(db, customer_id, inventory)


@router.post("/{customer_id}/assignment", response_model=CustomerRead)
def assign_splitter_port(
    customer_id: str,
    payload: AssignmentRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    db: Session = Depends(get_customer_db),
    inventory: InventoryClient = Depends(get_inventory_client),
    auth=Depends(require_operator),
):
    return allocation_service.allocation.assign(
        db,
        customer_id,
        payload,
        inventory,
        actor_id=auth["user_id"],
        idempotency_key=idempotency_key,
    )


@router.put("/{customer_id}/assignment", response_model=CustomerRead)
def reassign_splitter_port(
    customer_id: str,
    payload: AssignmentRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    db: Session = Depends(get_customer_db),
    inventory: InventoryClient = Depends(get_inventory_client),
    auth=Depends(require_operator),
):
    return allocation_service.allocation.reassign(
        db,
        customer_id,
        payload,
        inventory,
        actor_id=auth["user_id"],
        idempotency_key=idempotency_key,
    )


@router.delete("/{customer_id}/assignment", response_model=CustomerRead)
def release_splitter_port(
    customer_id: str,
    db: Session = Depends(get_customer_db),
    inventory: InventoryClient = Depends(get_inventory_client),
    auth=Depends(require_operator),
):
    return allocation_service.allocation.release(
        db, customer_id, inventory, actor_id=auth["user_id"]
    )


@router.post("/{customer_id}/assets", response_model=AssetRead)
def assign_customer_asset(
    customer_id: str,
    payload: CustomerAssetAssign,
    db: Session = Depends(get_customer_db),
    inventory: InventoryClient = Depends(get_inventory_client),
    auth=Depends(require_operator),
):
    return customer_service.customers.assign_asset(
        db, customer_id, payload.serial_number, inventory, actor_id=auth["user_id"]
    )


@router.get(
    "/{customer_id}/fiber-drop-line",
    response_model=FiberDropLineRead,
    dependencies=[Depends(require_user_auth)],
)
def get_customer_fiber_drop_line(customer_id: str, db: Session = Depends(get_customer_db)):
    customer = customer_service.customers.get(db, customer_id)
    if customer.fiber_drop_line is None:
        raise NotFoundError(f"Customer {customer.id} has no fiber drop line")
    return customer.fiber_drop_line
