"""Splitter port allocation across the customer store and the resource ledger.

The two stores share no transaction. The ledger reservation always happens
first; if its outcome is unknown, or the customer row cannot be written
afterwards, the reservation is released again under the same key and the
failure is audited.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldflow.metrics import WORKFLOW_FAILURES
from fieldflow.models.customer import Customer, CustomerStatus
from fieldflow.models.inventory import AssetType
from fieldflow.schemas.customer import AssignmentRequest
from fieldflow.services.audit import audit_logs
from fieldflow.services.clients import InventoryClient
from fieldflow.services.customers import (
    PORT_RELEASE_FAILED,
    clear_assignment,
    customers,
    fiber_drop_lines,
)
from fieldflow.services.errors import (
    AlreadyAssigned,
    ConflictError,
    InvalidRequest,
    InvalidStateTransition,
    NodeNotFound,
    PortCapacityExceeded,
    PortConflict,
    ServiceCommunicationError,
    ServiceError,
)

logger = logging.getLogger(__name__)

PORT_ASSIGNMENT = "PORT_ASSIGNMENT"
PORT_ASSIGNMENT_FAILED = "PORT_ASSIGNMENT_FAILED"
PORT_REASSIGNMENT = "PORT_REASSIGNMENT"
PORT_REASSIGNMENT_FAILED = "PORT_REASSIGNMENT_FAILED"
PORT_RELEASE = "PORT_RELEASE"

MAX_IDEMPOTENCY_KEY_LENGTH = 80


def reservation_key(customer_id, idempotency_key: str | None = None) -> str:
    """Ledger reservation key, namespaced by customer."""
    if idempotency_key is None:
        return f"{customer_id}:{uuid.uuid4().hex}"
    idempotency_key = idempotency_key.strip()
    if not idempotency_key or len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise InvalidRequest(
            f"Idempotency-Key must be 1 to {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        )
    return f"{customer_id}:{idempotency_key}"


def _resolve_splitter(inventory: InventoryClient, serial_number: str) -> dict:
    assignment = inventory.asset_assignment(serial_number)
    if assignment.get("asset_type") != AssetType.splitter.value:
        raise InvalidRequest(
            f"Asset {serial_number} is not a splitter",
            details={"asset_type": assignment.get("asset_type")},
        )
    if not assignment.get("node_id"):
        raise NodeNotFound(f"No splitter is registered for serial number {serial_number}")
    return inventory.get_node(AssetType.splitter.value, assignment["node_id"])


def _precheck_port(db: Session, splitter: dict, port_number: int, customer: Customer) -> None:
    """Reject obvious failures before touching the ledger.

    The ledger re-checks all of this atomically when the port is reserved.
    """
    serial = splitter.get("serial_number")
    capacity = splitter["port_capacity"]
    if port_number < 1 or port_number > capacity:
        raise InvalidRequest(
            f"Port {port_number} is outside the range 1..{capacity} of splitter {serial}",
            details={"port_number": port_number, "port_capacity": capacity},
        )
    if splitter["used_ports"] >= capacity:
        raise PortCapacityExceeded(
            f"Splitter {serial} has no available ports.",
            details={"splitter_id": str(splitter["id"]), "port_capacity": capacity},
        )
    holder = (
        db.query(Customer.id)
        .filter(Customer.splitter_id == uuid.UUID(str(splitter["id"])))
        .filter(Customer.assigned_port == port_number)
        .filter(Customer.id != customer.id)
        .first()
    )
    if holder:
        raise PortConflict(
            f"Port {port_number} on splitter {serial} is already assigned to another customer.",
            details={"splitter_id": str(splitter["id"]), "port_number": port_number},
        )


def _compensate(
    inventory: InventoryClient,
    key: str,
    actor_id,
    action_type: str,
    description: str,
    workflow: str,
    step: str = "persist_customer",
) -> None:
    WORKFLOW_FAILURES.labels(workflow=workflow, step=step).inc()
    try:
        inventory.release_port(key, actor_id=actor_id)
    except ServiceError as exc:
        logger.error("Compensating release of reservation %s failed: %s", key, exc)
        description += f" Compensating release failed: {exc}"
    audit_logs.log_action(actor_id, action_type, description)


class AllocationCoordinator:
    @staticmethod
    def assign(
        db: Session,
        customer_id,
        payload: AssignmentRequest,
        inventory: InventoryClient,
        actor_id=None,
        idempotency_key: str | None = None,
    ) -> Customer:
        customer = customers.get(db, customer_id)
        key = reservation_key(customer.id, idempotency_key)
        if idempotency_key and customer.port_reservation_key == key:
            return customer
        if customer.status == CustomerStatus.inactive:
            raise InvalidStateTransition(
                "Inactive customers cannot be assigned a splitter port",
                details={"customer_id": str(customer.id)},
            )
        if customer.splitter_id is not None:
            raise AlreadyAssigned(
                f"Customer {customer.id} is already assigned to splitter "
                f"{customer.splitter_serial_number}; use reassign to move it",
                details={
                    "splitter_serial_number": customer.splitter_serial_number,
                    "assigned_port": customer.assigned_port,
                },
            )

        splitter = _resolve_splitter(inventory, payload.splitter_serial_number)
        _precheck_port(db, splitter, payload.port_number, customer)
        try:
            inventory.reserve_port(
                splitter["id"], payload.port_number, customer.id, key, actor_id=actor_id
            )
        except ServiceCommunicationError as exc:
            logger.error("Reserving a port for customer %s failed: %s", customer_id, exc)
            _compensate(
                inventory,
                key,
                actor_id,
                PORT_ASSIGNMENT_FAILED,
                f"Reservation of splitter {payload.splitter_serial_number} port "
                f"{payload.port_number} for customer {customer_id} failed: {exc}.",
                workflow="assign",
                step="reserve_port",
            )
            raise

        splitter_uuid = uuid.UUID(str(splitter["id"]))
        try:
            customer.splitter_id = splitter_uuid
            customer.splitter_serial_number = splitter.get("serial_number")
            customer.assigned_port = payload.port_number
            customer.port_reservation_key = key
            fiber_drop_lines.attach(customer, splitter_uuid, payload.length_meters)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("Persisting assignment for customer %s failed: %s", customer_id, exc)
            _compensate(
                inventory,
                key,
                actor_id,
                PORT_ASSIGNMENT_FAILED,
                f"Assignment of customer {customer_id} to splitter "
                f"{payload.splitter_serial_number} port {payload.port_number} failed: {exc}.",
                workflow="assign",
            )
            if isinstance(exc, IntegrityError):
                raise PortConflict(
                    f"Port {payload.port_number} on splitter {payload.splitter_serial_number} "
                    "is already assigned to another customer."
                ) from exc
            raise
        db.refresh(customer)
        audit_logs.log_action(
            actor_id,
            PORT_ASSIGNMENT,
            f"Customer {customer.id} assigned to splitter {customer.splitter_serial_number} "
            f"port {customer.assigned_port}",
        )
        logger.info(
            "Assigned customer %s to splitter %s port %d",
            customer.id,
            customer.splitter_serial_number,
            customer.assigned_port,
        )
        return customer

    @staticmethod
    def reassign(
        db: Session,
        customer_id,
        payload: AssignmentRequest,
        inventory: InventoryClient,
        actor_id=None,
        idempotency_key: str | None = None,
    ) -> Customer:
        customer = customers.get(db, customer_id)
        key = reservation_key(customer.id, idempotency_key)
        if idempotency_key and customer.port_reservation_key == key:
            return customer
        if customer.splitter_id is None:
            raise ConflictError(
                f"Customer {customer.id} has no splitter assignment to move",
                details={"customer_id": str(customer.id)},
            )

        splitter = _resolve_splitter(inventory, payload.splitter_serial_number)
        splitter_uuid = uuid.UUID(str(splitter["id"]))
        if splitter_uuid == customer.splitter_id and payload.port_number == customer.assigned_port:
            return customer
        _precheck_port(db, splitter, payload.port_number, customer)
        try:
            inventory.reserve_port(
                splitter_uuid, payload.port_number, customer.id, key, actor_id=actor_id
            )
        except ServiceCommunicationError as exc:
            logger.error("Reserving a new port for customer %s failed: %s", customer_id, exc)
            _compensate(
                inventory,
                key,
                actor_id,
                PORT_REASSIGNMENT_FAILED,
                f"Reservation of splitter {payload.splitter_serial_number} port "
                f"{payload.port_number} for customer {customer_id} failed: {exc}.",
                workflow="reassign",
                step="reserve_port",
            )
            raise

        old_key = customer.port_reservation_key
        old_serial = customer.splitter_serial_number
        old_port = customer.assigned_port
        try:
            customer.splitter_id = splitter_uuid
            customer.splitter_serial_number = splitter.get("serial_number")
            customer.assigned_port = payload.port_number
            customer.port_reservation_key = key
            fiber_drop_lines.attach(customer, splitter_uuid, payload.length_meters)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("Persisting reassignment for customer %s failed: %s", customer_id, exc)
            _compensate(
                inventory,
                key,
                actor_id,
                PORT_REASSIGNMENT_FAILED,
                f"Reassignment of customer {customer_id} to splitter "
                f"{payload.splitter_serial_number} port {payload.port_number} failed: {exc}.",
                workflow="reassign",
            )
            if isinstance(exc, IntegrityError):
                raise PortConflict(
                    f"Port {payload.port_number} on splitter {payload.splitter_serial_number} "
                    "is already assigned to another customer."
                ) from exc
            raise
        db.refresh(customer)

        if old_key:
            try:
                inventory.release_port(old_key, actor_id=actor_id)
            except ServiceError as exc:
                WORKFLOW_FAILURES.labels(workflow="reassign", step="release_old_port").inc()
                logger.warning(
                    "Old port %s on splitter %s for customer %s was not released: %s",
                    old_port,
                    old_serial,
                    customer.id,
                    exc,
                )
                audit_logs.log_action(
                    actor_id,
                    PORT_RELEASE_FAILED,
                    f"Old port {old_port} on splitter {old_serial} for customer {customer.id} "
                    f"was not released after reassignment (reservation key {old_key}): {exc}",
                )
        audit_logs.log_action(
            actor_id,
            PORT_REASSIGNMENT,
            f"Customer {customer.id} moved from splitter {old_serial} port {old_port} "
            f"to splitter {customer.splitter_serial_number} port {customer.assigned_port}",
        )
        return customer

    @staticmethod
    def release(db: Session, customer_id, inventory: InventoryClient, actor_id=None) -> Customer:
        customer = customers.get(db, customer_id)
        if customer.status == CustomerStatus.active:
            raise InvalidStateTransition(
                "Active customers keep their port until they are deactivated",
                details={"customer_id": str(customer.id)},
            )
        if customer.status == CustomerStatus.inactive or customer.splitter_id is None:
            return customer

        serial, port = customer.splitter_serial_number, customer.assigned_port
        if customer.port_reservation_key:
            inventory.release_port(customer.port_reservation_key, actor_id=actor_id)
        clear_assignment(customer)
        db.commit()
        db.refresh(customer)
        audit_logs.log_action(
            actor_id,
            PORT_RELEASE,
            f"Customer {customer.id} released port {port} on splitter {serial}",
        )
        return customer


allocation = AllocationCoordinator()
