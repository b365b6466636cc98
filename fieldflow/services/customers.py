"""Customer profiles, lifecycle state machine and fiber drop lines."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from fieldflow.metrics import WORKFLOW_FAILURES
from fieldflow.models.customer import Customer, CustomerStatus, FiberDropLine, FiberStatus
from fieldflow.schemas.customer import CustomerCreate, CustomerUpdate
from fieldflow.services.audit import audit_logs
from fieldflow.services.clients import InventoryClient
from fieldflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    validate_enum,
)
from fieldflow.services.crud import CRUDManager
from fieldflow.services.errors import (
    CustomerNotFound,
    InvalidRequest,
    InvalidStateTransition,
    ServiceError,
)
from fieldflow.services.query_builders import apply_optional_equals, apply_optional_ilike

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    CustomerStatus.pending: {CustomerStatus.active},
    CustomerStatus.active: {CustomerStatus.inactive},
    CustomerStatus.inactive: set(),
}

PORT_RELEASE_FAILED = "PORT_RELEASE_FAILED"


def _is_valid_transition(from_status: CustomerStatus, to_status: CustomerStatus) -> bool:
    if from_status == to_status:
        return True
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def clear_assignment(customer: Customer) -> None:
    """Drop the splitter assignment and disconnect the drop line; no commit."""
    customer.splitter_id = None
    customer.splitter_serial_number = None
    customer.assigned_port = None
    customer.port_reservation_key = None
    if customer.fiber_drop_line is not None:
        customer.fiber_drop_line.status = FiberStatus.disconnected


def release_port_best_effort(
    inventory: InventoryClient, customer: Customer, actor_id=None, workflow: str = "deactivation"
) -> bool:
    """Ask the ledger to free the customer's port; a failure is logged and audited only."""
    key = customer.port_reservation_key
    if not key:
        return False
    try:
        result = inventory.release_port(key, actor_id=actor_id)
    except ServiceError as exc:
        WORKFLOW_FAILURES.labels(workflow=workflow, step="release_port").inc()
        logger.warning(
            "Could not release port %s on splitter %s for customer %s: %s",
            customer.assigned_port,
            customer.splitter_serial_number,
            customer.id,
            exc,
        )
        audit_logs.log_action(
            actor_id,
            PORT_RELEASE_FAILED,
            f"Port {customer.assigned_port} on splitter {customer.splitter_serial_number} "
            f"for customer {customer.id} was not released (reservation key {key}): {exc}",
        )
        return False
    return bool(result and result.get("released"))


class Customers(CRUDManager[Customer]):
    model = Customer
    not_found_error = CustomerNotFound
    not_found_detail = "Customer not found"

    @classmethod
    def create(cls, db: Session, payload: CustomerCreate) -> Customer:
        customer = super().create(db, payload)
        logger.info("Created customer %s", customer.id)
        return customer

    @staticmethod
    def list(
        db: Session,
        name: str | None = None,
        address: str | None = None,
        neighborhood: str | None = None,
        status: str | None = None,
        splitter_id: str | None = None,
        order_by: str = "created_at",
        order_dir: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ) -> list[Customer]:
        query = db.query(Customer)
        query = apply_optional_ilike(
            query,
            {
                Customer.name: name,
                Customer.address: address,
                Customer.neighborhood: neighborhood,
            },
        )
        query = apply_optional_equals(
            query,
            {
                Customer.status: validate_enum(status, CustomerStatus, "status"),
                Customer.splitter_id: coerce_uuid(splitter_id, "splitter_id"),
            },
        )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Customer.created_at, "name": Customer.name, "status": Customer.status},
        )
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def update_profile(cls, db: Session, customer_id, payload: CustomerUpdate) -> Customer:
        data = payload.model_dump(exclude_unset=True)
        if "name" in data and not data["name"]:
            raise InvalidRequest("name cannot be empty")
        return super().update(db, customer_id, data)

    @staticmethod
    def list_by_splitters(db: Session, splitter_ids) -> list[Customer]:
        """Active customers on any of the given splitters, in one query."""
        ids = [coerce_uuid(value, "splitter_id") for value in splitter_ids]
        if not ids:
            return []
        return (
            db.query(Customer)
            .filter(Customer.splitter_id.in_(ids))
            .filter(Customer.status == CustomerStatus.active)
            .order_by(Customer.splitter_id, Customer.assigned_port)
            .all()
        )

    @classmethod
    def change_status(
        cls,
        db: Session,
        customer_id,
        status,
        inventory: InventoryClient | None = None,
        actor_id=None,
    ) -> Customer:
        customer = cls.get(db, customer_id)
        new_status = validate_enum(status, CustomerStatus, "status")
        old_status = customer.status
        if new_status == old_status:
            return customer
        if not _is_valid_transition(old_status, new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {old_status.value} to {new_status.value}",
                details={"from": old_status.value, "to": new_status.value},
            )

        if new_status == CustomerStatus.active:
            if customer.splitter_id is None or customer.assigned_port is None:
                raise InvalidStateTransition(
                    "Customer must be assigned a splitter port before activation",
                    details={"customer_id": str(customer.id)},
                )
            if customer.fiber_drop_line is None:
                raise InvalidStateTransition(
                    "Customer must have a fiber drop line before activation",
                    details={"customer_id": str(customer.id)},
                )
            if customer.fiber_drop_line.status != FiberStatus.active:
                customer.fiber_drop_line.status = FiberStatus.active

        if new_status == CustomerStatus.inactive:
            if inventory is None:
                raise RuntimeError("An inventory client is required to deactivate a customer")
            release_port_best_effort(inventory, customer, actor_id=actor_id)
            clear_assignment(customer)

        customer.status = new_status
        db.commit()
        db.refresh(customer)
        logger.info(
            "Customer %s moved from %s to %s", customer.id, old_status.value, new_status.value
        )
        return customer

    @classmethod
    def delete(cls, db: Session, customer_id) -> None:
        customer = cls.get(db, customer_id)
        if customer.status != CustomerStatus.inactive:
            raise InvalidStateTransition(
                "Only inactive customers can be deleted",
                details={"status": customer.status.value},
            )
        db.delete(customer)
        db.commit()
        logger.info("Deleted customer %s", customer_id)

    @classmethod
    def assignment(cls, db: Session, customer_id, inventory: InventoryClient) -> dict:
        customer = cls.get(db, customer_id)
        return {
            "customer_id": customer.id,
            "name": customer.name,
            "status": customer.status,
            "splitter_id": customer.splitter_id,
            "splitter_serial_number": customer.splitter_serial_number,
            "assigned_port": customer.assigned_port,
            "fiber_drop_line": customer.fiber_drop_line,
            "assets": inventory.assets_for_customer(customer.id),
        }

    @classmethod
    def assign_asset(
        cls, db: Session, customer_id, serial_number: str, inventory: InventoryClient, actor_id=None
    ) -> dict:
        customer = cls.get(db, customer_id)
        asset = inventory.assign_asset(serial_number, customer.id, actor_id=actor_id)
        logger.info("Assigned asset %s to customer %s", serial_number, customer.id)
        return asset


class FiberDropLines:
    @staticmethod
    def list(
        db: Session,
        customer_id: str | None = None,
        splitter_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FiberDropLine]:
        query = db.query(FiberDropLine)
        query = apply_optional_equals(
            query,
            {
                FiberDropLine.customer_id: coerce_uuid(customer_id, "customer_id"),
                FiberDropLine.from_splitter_id: coerce_uuid(splitter_id, "splitter_id"),
                FiberDropLine.status: validate_enum(status, FiberStatus, "status"),
            },
        )
        query = query.order_by(FiberDropLine.created_at.asc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def attach(
        customer: Customer, splitter_id: uuid.UUID, length_meters: Decimal | None
    ) -> FiberDropLine:
        """Create or repoint the customer's drop line; the caller commits."""
        line = customer.fiber_drop_line
        if line is None:
            line = FiberDropLine(
                from_splitter_id=splitter_id,
                length_meters=length_meters,
                status=FiberStatus.active,
            )
            customer.fiber_drop_line = line
            return line
        line.from_splitter_id = splitter_id
        if length_meters is not None:
            line.length_meters = length_meters
        line.status = FiberStatus.active
        return line


customers = Customers()
fiber_drop_lines = FiberDropLines()
