from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fieldflow.api.deps import (
    get_customer_client,
    get_deployment_db,
    get_inventory_client,
    require_field_staff,
    require_operator,
    require_user_auth,
)
from fieldflow.schemas.common import ListResponse
from fieldflow.schemas.deployment import (
    DeactivationRequest,
    DeactivationResult,
    DeploymentTaskCreate,
    DeploymentTaskRead,
    InstallationComplete,
    TechnicianCreate,
    TechnicianRead,
    TechnicianUpdate,
)
from fieldflow.services import deployment as deployment_service
from fieldflow.services.clients import CustomerClient, InventoryClient
from fieldflow.services.common import list_response

router = APIRouter(prefix="/deployment", tags=["deployment"])


@router.post("/customers/{customer_id}/deactivate", response_model=DeactivationResult)
def deactivate_customer(
    customer_id: UUID,
    payload: DeactivationRequest | None = None,
    customers: CustomerClient = Depends(get_customer_client),
    inventory: InventoryClient = Depends(get_inventory_client),
    auth=Depends(require_operator),
):
    return deployment_service.deactivation.deactivate(
        customer_id,
        customers,
        inventory,
        reason=payload.reason if payload else None,
        actor_id=auth["user_id"],
    )


@router.post(
    "/tasks",
    response_model=DeploymentTaskRead,
    status_code=status.HTTP_201_CREATED,
)
def create_task(
    payload: DeploymentTaskCreate,
    db: Session = Depends(get_deployment_db),
    customers: CustomerClient = Depends(get_customer_client),
    auth=Depends(require_operator),
):
    return deployment_service.deployment_tasks.create(
        db, payload, customers, actor_id=auth["user_id"]
    )


@router.get(
    "/tasks",
    response_model=ListResponse[DeploymentTaskRead],
    dependencies=[Depends(require_user_auth)],
)
def list_tasks(
    technician_id: str | None = None,
    customer_id: str | None = None,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_deployment_db),
):
    items = deployment_service.deployment_tasks.list(
        db, technician_id, customer_id, status, limit, offset
    )
    return list_response(items, limit, offset)


@router.get(
    "/tasks/{task_id}",
    response_model=DeploymentTaskRead,
    dependencies=[Depends(require_user_auth)],
)
def get_task(task_id: str, db: Session = Depends(get_deployment_db)):
    return deployment_service.deployment_tasks.get(db, task_id)


@router.post("/tasks/{task_id}/complete", response_model=DeploymentTaskRead)
def complete_installation(
    task_id: str,
    payload: InstallationComplete | None = None,
    db: Session = Depends(get_deployment_db),
    customers: CustomerClient = Depends(get_customer_client),
    auth=Depends(require_field_staff),
):
    return deployment_service.deployment_tasks.complete_installation(
        db,
        task_id,
        customers,
        notes=payload.notes if payload else None,
        actor_id=auth["user_id"],
    )


@router.post(
    "/technicians",
    response_model=TechnicianRead,
    status_code=status.HTTP_201_CREATED,
)
def create_technician(
    payload: TechnicianCreate,
    db: Session = Depends(get_deployment_db),
    auth=Depends(require_operator),
):
    return deployment_service.technicians.create(db, payload, actor_id=auth["user_id"])


@router.get(
    "/technicians",
    response_model=ListResponse[TechnicianRead],
    dependencies=[Depends(require_user_auth)],
)
def list_technicians(
    region: str | None = None,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_deployment_db),
):
    items = deployment_service.technicians.list(db, region, status, limit, offset)
    return list_response(items, limit, offset)


@router.get(
    "/technicians/{technician_id}",
    response_model=TechnicianRead,
    dependencies=[Depends(require_user_auth)],
)
def get_technician(technician_id: str, db: Session = Depends(get_deployment_db)):
    return deployment_service.technicians.get(db, technician_id)


@router.patch(
    "/technicians/{technician_id}",
    response_model=TechnicianRead,
    dependencies=[Depends(require_operator)],
)
def update_technician(
    technician_id: str, payload: TechnicianUpdate, db: Session = Depends(get_deployment_db)
):
    return deployment_service.technicians.update(db, technician_id, payload)
