"""Tests for the deactivation workflow and installation tasks."""

import uuid
from datetime import date

import pytest

from fieldflow.models import (
    AssetStatus,
    AssetType,
    Customer,
    CustomerStatus,
    DeploymentTask,
    Splitter,
    TaskStatus,
    TechnicianStatus,
)
from fieldflow.models.inventory import Asset
from fieldflow.schemas.deployment import DeploymentTaskCreate, TechnicianCreate, TechnicianUpdate
from fieldflow.schemas.inventory import AssetCreate
from fieldflow.services import customers as customer_service
from fieldflow.services import inventory as inventory_service
from fieldflow.services.deployment import deactivation, deployment_tasks, technicians
from fieldflow.services.errors import (
    CustomerNotFound,
    DuplicateUsername,
    InvalidRequest,
    InvalidStateTransition,
    ServiceCommunicationError,
    TechnicianNotFound,
)
from tests.helpers import assign_port, audit_actions, fresh


@pytest.fixture()
def make_technician(deployment_session):
    def _make(username: str = "tech-1", region: str | None = "North", **fields):
        return technicians.create(
            deployment_session,
            TechnicianCreate(name=f"Tech {username}", username=username, region=region, **fields),
        )

    return _make


@pytest.fixture()
def technician(make_technician):
    return make_technician()


@pytest.fixture()
def active_customer(customer_session, inventory_session, customer, hierarchy, inventory_client):
    inventory_service.assets.create(
        inventory_session, AssetCreate(asset_type=AssetType.ont, serial_number="ONT-1")
    )
    inventory_service.assets.create(
        inventory_session, AssetCreate(asset_type=AssetType.router, serial_number="RTR-1")
    )
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 1)
    customer_service.customers.change_status(customer_session, customer.id, "active")
    for serial in ("ONT-1", "RTR-1"):
        inventory_service.assets.assign_to_customer(inventory_session, serial, customer.id)
    return customer


def test_deactivation_reclaims_assets(
    customer_session,
    inventory_session,
    deployment_session,
    active_customer,
    hierarchy,
    customer_client,
    inventory_client,
):
    result = deactivation.deactivate(
        active_customer.id, customer_client, inventory_client, reason="moved away",
        actor_id="operator-1",
    )
    assert result["customer_id"] == active_customer.id
    assert result["status"] == CustomerStatus.inactive.value
    assert result["reclaimed_assets"] == 2

    reloaded = fresh(customer_session, Customer, active_customer.id)
    assert reloaded.status == CustomerStatus.inactive
    assert reloaded.splitter_id is None
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 0
    assets = inventory_session.query(Asset).filter(Asset.serial_number.in_(["ONT-1", "RTR-1"])).all()
    assert {asset.status for asset in assets} == {AssetStatus.available}
    assert all(asset.assigned_to_customer_id is None for asset in assets)

    actions = audit_actions(deployment_session)
    assert "CUSTOMER_DEACTIVATION" in actions
    assert "ASSET_RECLAMATION" in actions


def test_reclamation_failure_keeps_customer_inactive(
    customer_session,
    inventory_session,
    deployment_session,
    active_customer,
    hierarchy,
    customer_client,
    unreachable_inventory,
):
    with pytest.raises(ServiceCommunicationError) as exc:
        deactivation.deactivate(active_customer.id, customer_client, unreachable_inventory)
    assert exc.value.status_code == 502

    assert fresh(customer_session, Customer, active_customer.id).status == CustomerStatus.inactive
    assert fresh(inventory_session, Splitter, hierarchy["splitter_id"]).used_ports == 0
    ont = inventory_service.assets.get_by_serial(inventory_session, "ONT-1")
    assert ont.assigned_to_customer_id == active_customer.id

    actions = audit_actions(deployment_session)
    assert "CUSTOMER_DEACTIVATION" in actions
    assert "ASSET_RECLAMATION_FAILED" in actions
    assert "ASSET_RECLAMATION" not in actions


def test_deactivation_of_unknown_customer(
    deployment_session, customer_client, inventory_client
):
    with pytest.raises(ServiceCommunicationError) as exc:
        deactivation.deactivate(uuid.uuid4(), customer_client, inventory_client)
    assert exc.value.remote_status == 404
    assert exc.value.details["code"] == "customer_not_found"
    assert audit_actions(deployment_session) == ["CUSTOMER_DEACTIVATION_FAILED"]


def test_deactivation_rejects_bad_id(customer_client, inventory_client):
    with pytest.raises(InvalidRequest):
        deactivation.deactivate("not-a-uuid", customer_client, inventory_client)


def test_create_task_for_known_customer(
    deployment_session, customer, technician, customer_client
):
    task = deployment_tasks.create(
        deployment_session,
        DeploymentTaskCreate(
            customer_id=customer.id, technician_id=technician.id, scheduled_date=date(2026, 11, 2)
        ),
        customer_client,
        actor_id="operator-1",
    )
    assert task.status == TaskStatus.scheduled
    assert task.technician_id == technician.id
    assert "TASK_CREATED" in audit_actions(deployment_session)


def test_create_task_for_missing_customer(deployment_session, customer_client):
    with pytest.raises(CustomerNotFound):
        deployment_tasks.create(
            deployment_session, DeploymentTaskCreate(customer_id=uuid.uuid4()), customer_client
        )
    assert deployment_session.query(DeploymentTask).count() == 0


def test_list_tasks_filters(deployment_session, make_customer, technician, customer_client):
    first = make_customer("C1")
    second = make_customer("C2")
    deployment_tasks.create(
        deployment_session,
        DeploymentTaskCreate(customer_id=first.id, technician_id=technician.id),
        customer_client,
    )
    deployment_tasks.create(
        deployment_session, DeploymentTaskCreate(customer_id=second.id), customer_client
    )
    mine = deployment_tasks.list(deployment_session, technician_id=str(technician.id))
    assert [task.customer_id for task in mine] == [first.id]
    assert len(deployment_tasks.list(deployment_session, status="scheduled")) == 2
    with pytest.raises(InvalidRequest):
        deployment_tasks.list(deployment_session, status="cancelled")


def test_complete_installation_activates_customer(
    customer_session,
    deployment_session,
    customer,
    hierarchy,
    inventory_client,
    customer_client,
):
    assign_port(customer_session, customer, inventory_client, hierarchy["splitter_serial"], 2)
    task = deployment_tasks.create(
        deployment_session, DeploymentTaskCreate(customer_id=customer.id), customer_client
    )

    done = deployment_tasks.complete_installation(
        deployment_session, task.id, customer_client, notes="ONT mounted", actor_id="tech-1"
    )
    assert done.status == TaskStatus.completed
    assert done.notes == "ONT mounted"
    assert fresh(customer_session, Customer, customer.id).status == CustomerStatus.active
    assert "TASK_COMPLETION" in audit_actions(deployment_session)

    again = deployment_tasks.complete_installation(deployment_session, task.id, customer_client)
    assert again.status == TaskStatus.completed
    assert audit_actions(deployment_session).count("TASK_COMPLETION") == 1


def test_installation_without_assignment_fails_task(
    customer_session, deployment_session, customer, customer_client
):
    task = deployment_tasks.create(
        deployment_session, DeploymentTaskCreate(customer_id=customer.id), customer_client
    )
    with pytest.raises(ServiceCommunicationError) as exc:
        deployment_tasks.complete_installation(deployment_session, task.id, customer_client)
    assert exc.value.details["code"] == "invalid_state_transition"

    assert fresh(deployment_session, DeploymentTask, task.id).status == TaskStatus.failed
    assert fresh(customer_session, Customer, customer.id).status == CustomerStatus.pending
    assert "INSTALLATION_FAILED" in audit_actions(deployment_session)

    with pytest.raises(InvalidStateTransition):
        deployment_tasks.complete_installation(deployment_session, task.id, customer_client)


def test_create_technician_is_audited(deployment_session, make_technician):
    created = make_technician(" field-7 ", contact="+234 800 000 0007")
    assert created.username == "field-7"
    assert created.status == TechnicianStatus.available
    assert audit_actions(deployment_session) == ["TECHNICIAN_CREATED"]


def test_duplicate_username_is_rejected(deployment_session, make_technician):
    make_technician("field-7")
    with pytest.raises(DuplicateUsername):
        make_technician("field-7", region="South")
    assert technicians.list(deployment_session, region="South") == []
    assert audit_actions(deployment_session) == [
        "TECHNICIAN_CREATED",
        "TECHNICIAN_CREATION_FAILED",
    ]


def test_list_technicians_by_region(deployment_session, make_technician):
    make_technician("north-1", region="North Lagos")
    make_technician("north-2", region="north ikeja")
    make_technician("south-1", region="South")
    make_technician("unplaced", region=None)

    found = technicians.list(deployment_session, region="NORTH")
    assert sorted(item.username for item in found) == ["north-1", "north-2"]
    assert len(technicians.list(deployment_session)) == 4


def test_list_technicians_by_status(deployment_session, make_technician):
    away = make_technician("away-1")
    make_technician("ready-1")
    technicians.update(
        deployment_session, away.id, TechnicianUpdate(status=TechnicianStatus.on_leave)
    )
    on_leave = technicians.list(deployment_session, status="on_leave")
    assert [item.username for item in on_leave] == ["away-1"]
    with pytest.raises(InvalidRequest):
        technicians.list(deployment_session, status="retired")


def test_task_for_unknown_technician(deployment_session, customer, customer_client):
    with pytest.raises(TechnicianNotFound):
        deployment_tasks.create(
            deployment_session,
            DeploymentTaskCreate(customer_id=customer.id, technician_id=uuid.uuid4()),
            customer_client,
        )
    assert deployment_session.query(DeploymentTask).count() == 0
    assert "TASK_CREATED" not in audit_actions(deployment_session)
