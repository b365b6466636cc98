"""Read-only physical path resolution over the ledger and customer services."""

from __future__ import annotations

import logging
from collections import defaultdict

from fieldflow.models.customer import CustomerStatus
from fieldflow.models.inventory import CUSTOMER_DEVICE_TYPES, NodeType
from fieldflow.services.clients import CustomerClient, InventoryClient
from fieldflow.services.common import coerce_uuid
from fieldflow.services.errors import (
    AssetNotFound,
    CustomerInactive,
    NodeNotFound,
    UnsupportedAssetType,
)

logger = logging.getLogger(__name__)

_DEVICE_TYPES = {asset_type.value for asset_type in CUSTOMER_DEVICE_TYPES}
_NODE_TYPES = {node_type.value for node_type in NodeType}
_PATH_DEPTH = len(NodeType)


def _hop(node: dict) -> dict:
    node_type = node["node_type"]
    if node_type == NodeType.splitter.value:
        name = f"Splitter-{node.get('serial_number')}"
        detail = f"{node.get('port_capacity')} Ports"
        if node.get("neighborhood"):
            detail += f", {node['neighborhood']}"
    elif node_type == NodeType.fdh.value:
        name, detail = node.get("name"), node.get("region")
    else:
        name, detail = node.get("name"), node.get("location")
    return {
        "id": node["id"],
        "node_type": node_type,
        "name": name,
        "detail": detail,
        "serial_number": node.get("serial_number"),
        "model": node.get("model"),
        "assets": [],
        "child": None,
    }


def _chain(hops: list[dict]) -> dict:
    """Link hops root-first through their ``child`` pointers."""
    for parent, child in zip(hops, hops[1:]):
        parent["child"] = child
    return hops[0]


def _collect_ids(tree: dict, node_type: str) -> list[str]:
    found = []
    if tree["node"]["node_type"] == node_type:
        found.append(str(tree["node"]["id"]))
    for child in tree.get("children", []):
        found.extend(_collect_ids(child, node_type))
    return found


def _topology_node(tree: dict, occupants: dict) -> dict:
    node = tree["node"]
    hop = _hop(node)
    return {
        "id": hop["id"],
        "node_type": hop["node_type"],
        "name": hop["name"],
        "detail": hop["detail"],
        "serial_number": hop["serial_number"],
        "model": hop["model"],
        "port_capacity": node.get("port_capacity"),
        "used_ports": node.get("used_ports"),
        "children": [_topology_node(child, occupants) for child in tree.get("children", [])],
        "customers": occupants.get(str(node["id"]), []),
    }


class TopologyResolver:
    @staticmethod
    def trace_customer_path(
        customer_id, customers: CustomerClient, inventory: InventoryClient
    ) -> dict:
        customer_uuid = coerce_uuid(customer_id, "customer_id")
        assignment = customers.assignment(customer_uuid)
        if assignment.get("status") != CustomerStatus.active.value:
            raise CustomerInactive(
                f"Customer with ID {customer_uuid} is not active and has no assigned network path.",
                details={"status": assignment.get("status")},
            )
        if not assignment.get("splitter_id"):
            raise NodeNotFound(f"Customer with ID {customer_uuid} has no splitter assignment.")

        ancestry = inventory.node_path(NodeType.splitter.value, assignment["splitter_id"])
        if len(ancestry) != _PATH_DEPTH or ancestry[0]["node_type"] != NodeType.headend.value:
            raise NodeNotFound(
                f"Splitter {assignment['splitter_id']} is not connected to a headend.",
                details={"hops": [hop["node_type"] for hop in ancestry]},
            )
        hops = [_hop(node) for node in ancestry]
        hops.append(
            {
                "id": customer_uuid,
                "node_type": "customer",
                "name": assignment.get("name"),
                "detail": f"Port: {assignment.get('assigned_port')}",
                "serial_number": None,
                "model": None,
                "assets": assignment.get("assets", []),
                "child": None,
            }
        )
        return {
            "customer_id": customer_uuid,
            "customer_name": assignment.get("name"),
            "path": _chain(hops),
        }

    @classmethod
    def trace_serial_path(
        cls, serial_number: str, customers: CustomerClient, inventory: InventoryClient
    ) -> dict:
        assignment = inventory.asset_assignment(serial_number)
        asset_type = assignment["asset_type"]

        if asset_type in _DEVICE_TYPES:
            owner = assignment.get("assigned_to_customer_id")
            if not owner:
                raise AssetNotFound(
                    f"Device {serial_number} is not assigned to any customer.",
                    details={"serial_number": serial_number},
                )
            traced = cls.trace_customer_path(owner, customers, inventory)
            return {
                "serial_number": serial_number,
                "asset_type": asset_type,
                "customer_id": traced["customer_id"],
                "customer_name": traced["customer_name"],
                "path": traced["path"],
            }

        if asset_type in _NODE_TYPES:
            if not assignment.get("node_id"):
                raise NodeNotFound(
                    f"No {asset_type} node is registered for serial number {serial_number}."
                )
            ancestry = inventory.node_path(asset_type, assignment["node_id"])
            return {
                "serial_number": serial_number,
                "asset_type": asset_type,
                "customer_id": None,
                "customer_name": None,
                "path": _chain([_hop(node) for node in ancestry]),
            }

        raise UnsupportedAssetType(
            f"Path tracing is not supported for {asset_type} assets.",
            details={"serial_number": serial_number, "asset_type": asset_type},
        )

    @staticmethod
    def subtree_topology(
        node_type: NodeType, node_id, customers: CustomerClient, inventory: InventoryClient
    ) -> dict:
        tree = inventory.subtree(node_type.value, coerce_uuid(node_id, f"{node_type.value}_id"))
        splitter_ids = _collect_ids(tree, NodeType.splitter.value)
        occupants: dict[str, list[dict]] = defaultdict(list)
        for customer in customers.list_by_splitters(splitter_ids):
            occupants[str(customer["splitter_id"])].append(
                {
                    "id": customer["id"],
                    "name": customer["name"],
                    "status": customer["status"],
                    "assigned_port": customer.get("assigned_port"),
                }
            )
        logger.debug(
            "Resolved %s %s topology with %d splitters", node_type.value, node_id, len(splitter_ids)
        )
        return _topology_node(tree, occupants)

    @classmethod
    def headend_topology(cls, headend_id, customers: CustomerClient, inventory: InventoryClient) -> dict:
        return cls.subtree_topology(NodeType.headend, headend_id, customers, inventory)

    @classmethod
    def fdh_topology(cls, fdh_id, customers: CustomerClient, inventory: InventoryClient) -> dict:
        return cls.subtree_topology(NodeType.fdh, fdh_id, customers, inventory)


topology = TopologyResolver()
