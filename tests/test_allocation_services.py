"""Tests for splitter port assignment across the customer store and the ledger."""

import uuid
from decimal import Decimal

import pytest

from fieldflow.models import AuditLog, Customer, CustomerStatus, Splitter
from fieldflow.schemas.customer import AssignmentRequest
from fieldflow.schemas.inventory import ReservationCreate
from fieldflow.services import allocation as allocation_service
from fieldflow.services import customers as customer_service
from fieldflow.services import inventory as inventory_service
from fieldflow.services.allocation import allocation, reservation_key
from fieldflow.services.clients import InventoryClient
from fieldflow.services.errors import (
    AlreadyAssigned,
    ConflictError,
    InvalidRequest,
    InvalidStateTransition,
    PortCapacityExceeded,
    PortConflict,
    ServiceCommunicationError,
)
from tests.helpers import assign_port, audit_actions, fresh


class ReplyLostInventory(InventoryClient):
    """Ledger whose reservation commits but whose reply never arrives."""

    def reserve_port(self, *args, **kwargs):
        super().reserve_port(*args, **kwargs)
        raise ServiceCommunicationError("inventory service timed out")


class ReleaseRefusingInventory(InventoryClient):
    def release_port(self, reservation_key, actor_id=None):
        raise ServiceCommunicationError("inventory service is unreachable")


def _move(db, customer, inventory, serial_number, port_number, **kwargs):
    return allocation.reassign(
        db,
        customer.id,
        AssignmentRequest(splitter_serial_number=serial_number, port_number=port_number),
        inventory,
        **kwargs,
    )


def test_reservation_key_is_namespaced_by_customer():
    customer_id = uuid.uuid4()
    assert reservation_key(customer_id, "abc") == f"{customer_id}:abc"
    assert reservation_key(customer_id).startswith(f"{customer_id}:")
    assert reservation_key(customer_id) != reservation_key(customer_id)
    with pytest.raises(InvalidRequest):
        reservation_key(customer_id, "x" * 81)


def test_assign_records_port_and_drop_line(
    customer_session, inventory_session, deployment_session, customer, hierarchy, inventory_client
):
    assigned = assign_port(
        customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1,
        actor_id="operator-1",
    )
    assert assigned.splitter_id == hierarchy["splitter_id"]
    assert assigned.splitter_serial_number == hierarchy["splitter_serial"]
    assert assigned.assigned_port == 1
    assert assigned.fiber_drop_line.length_meters == Decimal("35.5")
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 1
    assert "PORT_ASSIGNMENT" in audit_actions(deployment_session)


def test_assign_rejects_non_splitter_serial(customer_session, customer, hierarchy, inventory_client):
    with pytest.raises(InvalidRequest):
        assign_port(customer_session, customer, inventory_client, "F1", 1)


def test_assign_twice_requires_reassign(customer_session, customer, hierarchy, inventory_client):
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1)
    with pytest.raises(AlreadyAssigned):
        assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 2)


def test_assign_replay_with_same_key(
    customer_session, inventory_session, customer, hierarchy, inventory_client
):
    first = assign_port(
        customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1,
        idempotency_key="req-1",
    )
    again = assign_port(
        customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1,
        idempotency_key="req-1",
    )
    assert again.id == first.id
    assert again.port_reservation_key == f"{customer.id}:req-1"
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 1


def test_port_conflict_leaves_second_customer_unassigned(
    customer_session, inventory_session, make_customer, hierarchy, inventory_client
):
    first = make_customer("C1")
    second = make_customer("C2")
    assign_port(customer_session, first, inventory_client, hierarchy["splitter_serial"], 1)

    with pytest.raises(PortConflict):
        assign_port(customer_session, second, inventory_client, hierarchy["splitter_serial"], 1)

    reloaded = fresh(customer_session, Customer, second.id)
    assert reloaded.splitter_id is None
    assert reloaded.assigned_port is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 1


def test_ledger_conflict_is_reported_to_caller(
    customer_session, inventory_session, customer, hierarchy, inventory_client
):
    # Port held in the ledger by a reservation the customer store never saw.
    inventory_service.splitter_ports.reserve(
        inventory_session,
        hierarchy["splitter_id"],
        ReservationCreate(port_number=4, customer_id=uuid.uuid4(), reservation_key="external"),
    )
    with pytest.raises(PortConflict):
        assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 4)
    assert fresh(customer_session, Customer, customer.id).splitter_id is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 1


def test_full_splitter_rejects_assignment(
    customer_session, inventory_session, make_customer, build_hierarchy, inventory_client
):
    hierarchy = build_hierarchy(port_capacity=2)
    serial = hierarchy["splitter_serial"]
    assign_port(customer_session, make_customer("C1"), inventory_client, serial, 1)
    assign_port(customer_session, make_customer("C2"), inventory_client, serial, 2)

    late = make_customer("C3")
    with pytest.raises(PortCapacityExceeded):
        assign_port(customer_session, late, inventory_client, serial, 2)
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 2
    assert fresh(customer_session, Customer, late.id).splitter_id is None


def test_port_outside_capacity_is_rejected(
    customer_session, customer, hierarchy, inventory_client
):
    with pytest.raises(InvalidRequest):
        assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 9)


def test_inactive_customer_cannot_be_assigned(
    customer_session, customer, hierarchy, inventory_client
):
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1)
    customer_service.customers.change_status(customer_session, customer.id, "active")
    customer_service.customers.change_status(
        customer_session, customer.id, "inactive", inventory=inventory_client
    )
    with pytest.raises(InvalidStateTransition):
        assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1)


def test_reassign_round_trip_restores_counts(
    customer_session, inventory_session, deployment_session, customer, build_hierarchy,
    inventory_client,
):
    first = build_hierarchy("1")
    second = build_hierarchy("2")
    assign_port(customer_session, customer, inventory_client, first["splitter_serial"], 1)

    moved = _move(customer_session, customer, inventory_client, second["splitter_serial"], 3)
    assert moved.splitter_id == second["splitter_id"]
    assert moved.assigned_port == 3
    assert moved.fiber_drop_line.from_splitter_id == second["splitter_id"]
    assert fresh(inventory_session, Splitter, first["splitter_id"]).used_ports == 0
    assert fresh(inventory_session, Splitter, second["splitter_id"]).used_ports == 1

    back = _move(customer_session, customer, inventory_client, first["splitter_serial"], 1)
    assert back.splitter_id == first["splitter_id"]
    assert back.assigned_port == 1
    assert fresh(inventory_session, Splitter, first["splitter_id"]).used_ports == 1
    assert fresh(inventory_session, Splitter, second["splitter_id"]).used_ports == 0
    assert audit_actions(deployment_session).count("PORT_REASSIGNMENT") == 2


def test_reassign_to_same_port_is_a_noop(
    customer_session, inventory_session, customer, hierarchy, inventory_client
):
    assigned = assign_port(
        customer_session, customer, inventory_client, hierarchy["splitter_serial"], 2
    )
    key = assigned.port_reservation_key
    same = _move(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 2)
    assert same.port_reservation_key == key
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 1


def test_reassign_within_splitter(
    customer_session, inventory_session, customer, hierarchy, inventory_client
):
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 2)
    moved = _move(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 5)
    assert moved.assigned_port == 5
    occupancy = inventory_service.splitter_ports.occupancy(
        inventory_session, hierarchy["splitter_id"]
    )
    assert [reservation.port_number for reservation in occupancy] == [5]


def test_reassign_without_assignment(customer_session, customer, hierarchy, inventory_client):
    with pytest.raises(ConflictError):
        _move(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1)


def test_release_frees_port_for_pending_customer(
    customer_session, inventory_session, deployment_session, customer, hierarchy, inventory_client
):
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 6)
    released = allocation.release(customer_session, customer.id, inventory_client)
    assert released.status == CustomerStatus.pending
    assert released.splitter_id is None
    assert released.port_reservation_key is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 0
    assert "PORT_RELEASE" in audit_actions(deployment_session)

    again = allocation.release(customer_session, customer.id, inventory_client)
    assert again.splitter_id is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 0


def test_active_customer_keeps_port(customer_session, customer, hierarchy, inventory_client):
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1)
    customer_service.customers.change_status(customer_session, customer.id, "active")
    with pytest.raises(InvalidStateTransition):
        allocation.release(customer_session, customer.id, inventory_client)


@pytest.fixture()
def reply_lost_inventory(client, inventory_client):
    return ReplyLostInventory(inventory_client.base_url, http_client=client)


@pytest.fixture()
def release_refusing_inventory(client, inventory_client):
    return ReleaseRefusingInventory(inventory_client.base_url, http_client=client)


def _audit_descriptions(db, action_type):
    db.expire_all()
    return [
        entry.description
        for entry in db.query(AuditLog).filter(AuditLog.action_type == action_type).all()
    ]


def test_lost_reservation_reply_is_released_and_audited(
    customer_session,
    inventory_session,
    deployment_session,
    customer,
    hierarchy,
    reply_lost_inventory,
):
    with pytest.raises(ServiceCommunicationError):
        assign_port(
            customer_session, customer, reply_lost_inventory, hierarchy["splitter_serial"], 1
        )

    assert fresh(customer_session, Customer, customer.id).splitter_id is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 0
    assert inventory_service.splitter_ports.occupancy(
        inventory_session, hierarchy["splitter_id"]
    ) == []
    assert audit_actions(deployment_session) == ["PORT_ASSIGNMENT_FAILED"]


def test_lost_reservation_reply_during_reassign(
    customer_session,
    inventory_session,
    deployment_session,
    customer,
    build_hierarchy,
    inventory_client,
    reply_lost_inventory,
):
    first = build_hierarchy("1")
    second = build_hierarchy("2")
    assign_port(customer_session, customer, inventory_client, first["splitter_serial"], 1)

    with pytest.raises(ServiceCommunicationError):
        _move(customer_session, customer, reply_lost_inventory, second["splitter_serial"], 2)

    reloaded = fresh(customer_session, Customer, customer.id)
    assert reloaded.splitter_id == first["splitter_id"]
    assert reloaded.assigned_port == 1
    assert fresh(inventory_session, Splitter, first["splitter_id"]).used_ports == 1
    assert fresh(inventory_session, Splitter, second["splitter_id"]).used_ports == 0
    assert "PORT_REASSIGNMENT_FAILED" in audit_actions(deployment_session)


def test_customer_write_race_releases_reservation(
    customer_session,
    inventory_session,
    deployment_session,
    make_customer,
    hierarchy,
    inventory_client,
    monkeypatch,
):
    # Another writer takes the port between the precheck and the commit.
    monkeypatch.setattr(allocation_service, "_precheck_port", lambda *args: None)
    holder = make_customer("C1")
    holder.splitter_id = hierarchy["splitter_id"]
    holder.splitter_serial_number = hierarchy["splitter_serial"]
    holder.assigned_port = 4
    customer_session.commit()
    late = make_customer("C2")

    with pytest.raises(PortConflict):
        assign_port(customer_session, late, inventory_client, hierarchy["splitter_serial"], 4)

    assert fresh(customer_session, Customer, late.id).splitter_id is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 0
    assert "PORT_ASSIGNMENT_FAILED" in audit_actions(deployment_session)
    assert "PORT_ASSIGNMENT" not in audit_actions(deployment_session)


def test_failed_reassign_write_keeps_old_port(
    customer_session,
    inventory_session,
    deployment_session,
    customer,
    build_hierarchy,
    inventory_client,
    monkeypatch,
):
    first = build_hierarchy("1")
    second = build_hierarchy("2")
    assign_port(customer_session, customer, inventory_client, first["splitter_serial"], 1)

    def _broken_attach(*args, **kwargs):
        raise RuntimeError("drop line store unavailable")

    monkeypatch.setattr(customer_service.fiber_drop_lines, "attach", _broken_attach)
    with pytest.raises(RuntimeError):
        _move(customer_session, customer, inventory_client, second["splitter_serial"], 2)

    reloaded = fresh(customer_session, Customer, customer.id)
    assert reloaded.splitter_id == first["splitter_id"]
    assert fresh(inventory_session, Splitter, first["splitter_id"]).used_ports == 1
    assert fresh(inventory_session, Splitter, second["splitter_id"]).used_ports == 0
    assert "PORT_REASSIGNMENT_FAILED" in audit_actions(deployment_session)


def test_reassign_survives_refused_release_of_old_port(
    customer_session,
    inventory_session,
    deployment_session,
    customer,
    build_hierarchy,
    inventory_client,
    release_refusing_inventory,
):
    first = build_hierarchy("1")
    second = build_hierarchy("2")
    assigned = assign_port(
        customer_session, customer, inventory_client, first["splitter_serial"], 1
    )
    old_key = assigned.port_reservation_key

    moved = _move(
        customer_session, customer, release_refusing_inventory, second["splitter_serial"], 3
    )
    assert moved.splitter_id == second["splitter_id"]
    assert moved.assigned_port == 3
    assert fresh(inventory_session, Splitter, first["splitter_id"]).used_ports == 1
    assert fresh(inventory_session, Splitter, second["splitter_id"]).used_ports == 1

    actions = audit_actions(deployment_session)
    assert "PORT_REASSIGNMENT" in actions
    (description,) = _audit_descriptions(deployment_session, "PORT_RELEASE_FAILED")
    assert old_key in description
