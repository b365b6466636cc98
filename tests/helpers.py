"""Shared lookups for the service tests."""

from decimal import Decimal

from fieldflow.models import AuditLog
from fieldflow.schemas.customer import AssignmentRequest
from fieldflow.services.allocation import allocation


def fresh(db, model, entity_id):
    """Reload a row, ignoring whatever the session has cached."""
    db.expire_all()
    return db.get(model, entity_id)


def audit_actions(db) -> list[str]:
    db.expire_all()
    return [entry.action_type for entry in db.query(AuditLog).order_by(AuditLog.created_at).all()]


def assign_port(db, customer, inventory, serial_number: str, port_number: int, **kwargs):
    return allocation.assign(
        db,
        customer.id,
        AssignmentRequest(
            splitter_serial_number=serial_number,
            port_number=port_number,
            length_meters=Decimal("35.5"),
        ),
        inventory,
        **kwargs,
    )
