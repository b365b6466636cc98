"""Field deployment: deactivation, installation tasks and the technician roster.

Each workflow calls the customer service and the resource ledger in sequence.
Completed steps are never rolled back; every step outcome is written to the
audit log, and any remote failure surfaces as ``ServiceCommunicationError``.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldflow.metrics import WORKFLOW_FAILURES
from fieldflow.models.customer import CustomerStatus
from fieldflow.models.deployment import DeploymentTask, TaskStatus, Technician, TechnicianStatus
from fieldflow.schemas.deployment import DeploymentTaskCreate, TechnicianCreate
from fieldflow.services.audit import audit_logs
from fieldflow.services.clients import CustomerClient, InventoryClient
from fieldflow.services.common import apply_pagination, coerce_uuid, validate_enum
from fieldflow.services.crud import CRUDManager
from fieldflow.services.errors import (
    DuplicateUsername,
    InvalidStateTransition,
    NotFoundError,
    ServiceCommunicationError,
    ServiceError,
    TechnicianNotFound,
)
from fieldflow.services.query_builders import apply_optional_equals, apply_optional_ilike

logger = logging.getLogger(__name__)

CUSTOMER_DEACTIVATION = "CUSTOMER_DEACTIVATION"
CUSTOMER_DEACTIVATION_FAILED = "CUSTOMER_DEACTIVATION_FAILED"
ASSET_RECLAMATION = "ASSET_RECLAMATION"
ASSET_RECLAMATION_FAILED = "ASSET_RECLAMATION_FAILED"
TASK_CREATED = "TASK_CREATED"
TASK_COMPLETION = "TASK_COMPLETION"
INSTALLATION_FAILED = "INSTALLATION_FAILED"
TECHNICIAN_CREATED = "TECHNICIAN_CREATED"
TECHNICIAN_CREATION_FAILED = "TECHNICIAN_CREATION_FAILED"


def _as_communication_error(exc: ServiceError, message: str) -> ServiceCommunicationError:
    if isinstance(exc, ServiceCommunicationError):
        return exc
    return ServiceCommunicationError(
        f"{message}: {exc}",
        details={"code": exc.code, "remote_details": exc.details},
        remote_status=exc.http_status,
    )


class DeactivationSaga:
    @staticmethod
    def deactivate(
        customer_id,
        customers: CustomerClient,
        inventory: InventoryClient,
        reason: str | None = None,
        actor_id=None,
    ) -> dict:
        customer_uuid = coerce_uuid(customer_id, "customer_id")
        suffix = f" Reason: {reason}" if reason else ""

        try:
            customer = customers.change_status(
                customer_uuid, CustomerStatus.inactive.value, actor_id=actor_id
            )
        except ServiceError as exc:
            WORKFLOW_FAILURES.labels(workflow="deactivation", step="customer").inc()
            logger.error("Deactivation of customer %s failed: %s", customer_uuid, exc)
            audit_logs.log_action(
                actor_id,
                CUSTOMER_DEACTIVATION_FAILED,
                f"Failed to deactivate customer {customer_uuid}: {exc}",
            )
            raise _as_communication_error(exc, "Customer service failed to deactivate customer") from exc
        audit_logs.log_action(
            actor_id,
            CUSTOMER_DEACTIVATION,
            f"Customer {customer_uuid} deactivated.{suffix}",
        )

        try:
            result = inventory.reclaim_assets(customer_uuid, actor_id=actor_id)
        except ServiceError as exc:
            WORKFLOW_FAILURES.labels(workflow="deactivation", step="reclaim_assets").inc()
            logger.error("Asset reclamation for customer %s failed: %s", customer_uuid, exc)
            audit_logs.log_action(
                actor_id,
                ASSET_RECLAMATION_FAILED,
                f"Customer {customer_uuid} is inactive but its assets were not reclaimed: {exc}",
            )
            raise _as_communication_error(exc, "Inventory service failed to reclaim assets") from exc
        reclaimed = int(result.get("reclaimed", 0)) if result else 0
        audit_logs.log_action(
            actor_id,
            ASSET_RECLAMATION,
            f"Reclaimed {reclaimed} assets from customer {customer_uuid}.",
        )
        logger.info("Deactivated customer %s and reclaimed %d assets", customer_uuid, reclaimed)
        return {
            "customer_id": customer_uuid,
            "status": customer["status"],
            "reclaimed_assets": reclaimed,
        }


class Technicians(CRUDManager[Technician]):
    model = Technician
    not_found_error = TechnicianNotFound
    not_found_detail = "Technician not found"

    @classmethod
    def create(cls, db: Session, payload: TechnicianCreate, actor_id=None) -> Technician:
        username = payload.username.strip()
        try:
            if db.query(Technician.id).filter(Technician.username == username).first():
                raise DuplicateUsername(
                    f"Technician with username {username} already exists.",
                    details={"username": username},
                )
            technician = Technician(**payload.model_dump(exclude={"username"}), username=username)
            db.add(technician)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateUsername(
                    f"Technician with username {username} already exists.",
                    details={"username": username},
                ) from exc
        except ServiceError as exc:
            audit_logs.log_action(
                actor_id,
                TECHNICIAN_CREATION_FAILED,
                f"Failed to create technician {username}: {exc}",
            )
            raise
        db.refresh(technician)
        audit_logs.log_action(
            actor_id,
            TECHNICIAN_CREATED,
            f"Technician {technician.name} ({technician.username}) created.",
        )
        logger.info("Created technician %s (%s)", technician.id, technician.username)
        return technician

    @staticmethod
    def list(
        db: Session,
        region: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Technician]:
        query = db.query(Technician)
        query = apply_optional_ilike(query, {Technician.region: region})
        query = apply_optional_equals(
            query, {Technician.status: validate_enum(status, TechnicianStatus, "status")}
        )
        query = query.order_by(Technician.name.asc(), Technician.username.asc())
        return apply_pagination(query, limit, offset).all()


class DeploymentTasks(CRUDManager[DeploymentTask]):
    model = DeploymentTask
    not_found_error = NotFoundError
    not_found_detail = "Deployment task not found"

    @classmethod
    def create(
        cls,
        db: Session,
        payload: DeploymentTaskCreate,
        customers: CustomerClient,
        actor_id=None,
    ) -> DeploymentTask:
        if payload.technician_id is not None:
            technicians.get(db, payload.technician_id)
        customers.get_customer(payload.customer_id)
        task = super().create(db, payload)
        audit_logs.log_action(
            actor_id,
            TASK_CREATED,
            f"Installation task {task.id} scheduled for customer {task.customer_id}",
        )
        return task

    @staticmethod
    def list(
        db: Session,
        technician_id: str | None = None,
        customer_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DeploymentTask]:
        query = db.query(DeploymentTask)
        query = apply_optional_equals(
            query,
            {
                DeploymentTask.technician_id: coerce_uuid(technician_id, "technician_id"),
                DeploymentTask.customer_id: coerce_uuid(customer_id, "customer_id"),
                DeploymentTask.status: validate_enum(status, TaskStatus, "status"),
            },
        )
        query = query.order_by(DeploymentTask.scheduled_date.asc(), DeploymentTask.created_at.asc())
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def complete_installation(
        cls,
        db: Session,
        task_id,
        customers: CustomerClient,
        notes: str | None = None,
        actor_id=None,
    ) -> DeploymentTask:
        task = cls.get(db, task_id)
        if task.status == TaskStatus.completed:
            return task
        if task.status not in (TaskStatus.scheduled, TaskStatus.in_progress):
            raise InvalidStateTransition(
                f"Task {task.id} is {task.status.value} and cannot be completed",
                details={"status": task.status.value},
            )
        task.status = TaskStatus.in_progress
        if notes:
            task.notes = notes
        db.commit()

        try:
            customers.change_status(task.customer_id, CustomerStatus.active.value, actor_id=actor_id)
        except ServiceError as exc:
            task.status = TaskStatus.failed
            db.commit()
            WORKFLOW_FAILURES.labels(workflow="installation", step="activate_customer").inc()
            logger.error("Installation task %s failed: %s", task.id, exc)
            audit_logs.log_action(
                actor_id,
                INSTALLATION_FAILED,
                f"Installation task {task.id} failed to activate customer {task.customer_id}: {exc}",
            )
            raise _as_communication_error(exc, "Customer service failed to activate customer") from exc

        task.status = TaskStatus.completed
        db.commit()
        db.refresh(task)
        audit_logs.log_action(
            actor_id,
            TASK_COMPLETION,
            f"Installation task {task.id} completed; customer {task.customer_id} is active",
        )
        return task


deactivation = DeactivationSaga()
deployment_tasks = DeploymentTasks()
technicians = Technicians()
