"""Tests for physical path tracing and topology views."""

import pytest

from fieldflow.models import AssetType, NodeType
from fieldflow.schemas.inventory import AssetCreate, NodeCreate
from fieldflow.services import customers as customer_service
from fieldflow.services import inventory as inventory_service
from fieldflow.services.errors import (
    AssetNotFound,
    CustomerInactive,
    CustomerNotFound,
    UnsupportedAssetType,
)
from fieldflow.services.topology import topology
from tests.helpers import assign_port


def _flatten(hop):
    hops = []
    while hop is not None:
        hops.append(hop)
        hop = hop["child"]
    return hops


@pytest.fixture()
def activate(customer_session, inventory_client):
    def _activate(customer, serial_number, port_number):
        assign_port(customer_session, customer, inventory_client, serial_number, port_number)
        return customer_service.customers.change_status(customer_session, customer.id, "active")

    return _activate


def test_customer_path_runs_headend_to_customer(
    customer, hierarchy, activate, customer_client, inventory_client
):
    activate(customer, hierarchy["splitter_serial"], 3)

    traced = topology.trace_customer_path(customer.id, customer_client, inventory_client)
    assert traced["customer_id"] == customer.id
    assert traced["customer_name"] == "C1"

    hops = _flatten(traced["path"])
    assert [hop["node_type"] for hop in hops] == [
        "headend",
        "core_switch",
        "fdh",
        "splitter",
        "customer",
    ]
    assert [hop["name"] for hop in hops] == ["H1", "X1", "F1", "Splitter-SPL-1", "C1"]
    assert hops[0]["detail"] == "Central Office"
    assert hops[2]["detail"] == "North"
    assert hops[3]["detail"] == "8 Ports, Riverside"
    assert hops[4]["detail"] == "Port: 3"
    assert hops[0]["id"] == str(hierarchy["headend_id"])


def test_customer_path_lists_devices(
    inventory_session, customer, hierarchy, activate, customer_client, inventory_client
):
    inventory_service.assets.create(
        inventory_session, AssetCreate(asset_type=AssetType.ont, serial_number="ONT-9")
    )
    activate(customer, hierarchy["splitter_serial"], 1)
    inventory_service.assets.assign_to_customer(inventory_session, "ONT-9", customer.id)

    hops = _flatten(topology.trace_customer_path(customer.id, customer_client, inventory_client)["path"])
    assert [asset["serial_number"] for asset in hops[-1]["assets"]] == ["ONT-9"]


def test_pending_customer_has_no_path(customer, customer_client, inventory_client):
    with pytest.raises(CustomerInactive) as exc:
        topology.trace_customer_path(customer.id, customer_client, inventory_client)
    assert exc.value.status_code == 404


def test_unknown_customer_has_no_path(customer_client, inventory_client):
    with pytest.raises(CustomerNotFound):
        topology.trace_customer_path(
            "0b6f6a52-3d3f-4d5e-9a51-6e0f3f1f8a11", customer_client, inventory_client
        )


def test_device_serial_resolves_through_owner(
    inventory_session, customer, hierarchy, activate, customer_client, inventory_client
):
    inventory_service.assets.create(
        inventory_session, AssetCreate(asset_type=AssetType.router, serial_number="RTR-5")
    )
    activate(customer, hierarchy["splitter_serial"], 2)
    inventory_service.assets.assign_to_customer(inventory_session, "RTR-5", customer.id)

    traced = topology.trace_serial_path("RTR-5", customer_client, inventory_client)
    assert traced["asset_type"] == "router"
    assert traced["customer_id"] == customer.id
    assert _flatten(traced["path"])[-1]["name"] == "C1"


def test_unassigned_device_has_no_path(inventory_session, customer_client, inventory_client):
    inventory_service.assets.create(
        inventory_session, AssetCreate(asset_type=AssetType.ont, serial_number="ONT-SPARE")
    )
    with pytest.raises(AssetNotFound):
        topology.trace_serial_path("ONT-SPARE", customer_client, inventory_client)


def test_splitter_serial_returns_ancestry(hierarchy, customer_client, inventory_client):
    traced = topology.trace_serial_path(hierarchy["splitter_serial"], customer_client, inventory_client)
    assert traced["customer_id"] is None
    hops = _flatten(traced["path"])
    assert [hop["node_type"] for hop in hops] == ["headend", "core_switch", "fdh", "splitter"]
    assert hops[-1]["serial_number"] == "SPL-1"


def test_fiber_roll_cannot_be_traced(inventory_session, customer_client, inventory_client):
    inventory_service.assets.create(
        inventory_session, AssetCreate(asset_type=AssetType.fiber_roll, serial_number="ROLL-1")
    )
    with pytest.raises(UnsupportedAssetType):
        topology.trace_serial_path("ROLL-1", customer_client, inventory_client)


def test_headend_topology_shows_active_customers(
    make_customer, build_hierarchy, activate, customer_session, inventory_client, customer_client
):
    hierarchy = build_hierarchy()
    active = make_customer("Active")
    pending = make_customer("Pending")
    activate(active, hierarchy["splitter_serial"], 1)
    assign_port(customer_session, pending, inventory_client, hierarchy["splitter_serial"], 2)

    tree = topology.headend_topology(hierarchy["headend_id"], customer_client, inventory_client)
    assert tree["node_type"] == "headend"
    (core,) = tree["children"]
    (fdh,) = core["children"]
    (splitter,) = fdh["children"]
    assert splitter["name"] == "Splitter-SPL-1"
    assert splitter["used_ports"] == 2
    assert [item["name"] for item in splitter["customers"]] == ["Active"]
    assert splitter["customers"][0]["assigned_port"] == 1


def test_fdh_topology_covers_its_splitters(
    inventory_session, make_customer, hierarchy, activate, customer_client, inventory_client
):
    second = inventory_service.network_nodes.create(
        inventory_session,
        NodeType.splitter,
        NodeCreate(parent_id=hierarchy["fdh_id"], serial_number="SPL-1B"),
    )
    activate(make_customer("North One"), hierarchy["splitter_serial"], 1)
    activate(make_customer("North Two"), "SPL-1B", 1)

    tree = topology.fdh_topology(hierarchy["fdh_id"], customer_client, inventory_client)
    assert tree["name"] == "F1"
    by_serial = {child["serial_number"]: child for child in tree["children"]}
    assert set(by_serial) == {"SPL-1", "SPL-1B"}
    assert by_serial["SPL-1B"]["id"] == str(second.id)
    assert [item["name"] for item in by_serial["SPL-1B"]["customers"]] == ["North Two"]
