"""Resource ledger: assets, the network hierarchy and splitter port reservations.

Every hierarchy node (headend, core switch, FDH, splitter) wraps exactly one
asset row. Splitter ports are handed out through reservations: a reservation
row and the splitter's ``used_ports`` counter always change together in one
transaction, with the splitter row locked for the duration.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from fieldflow.metrics import PORT_RELEASES, PORT_RESERVATIONS
from fieldflow.models.inventory import (
    INFRASTRUCTURE_TYPES,
    Asset,
    AssetHistory,
    AssetStatus,
    AssetType,
    CoreSwitch,
    Fdh,
    Headend,
    NodeType,
    Splitter,
    SplitterPortReservation,
)
from fieldflow.schemas.inventory import (
    AssetCreate,
    NodeCreate,
    NodeUpdate,
    ReservationCreate,
)
from fieldflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    validate_enum,
)
from fieldflow.services.crud import CRUDManager
from fieldflow.services.errors import (
    AssetNotFound,
    ConflictError,
    DuplicateSerial,
    InvalidRequest,
    NodeNotFound,
    PortCapacityExceeded,
    PortConflict,
    ResourceInUse,
)
from fieldflow.services.query_builders import apply_optional_equals, apply_optional_ilike

logger = logging.getLogger(__name__)

ASSET_CREATED = "ASSET_CREATED"
ASSET_ASSIGNED = "ASSET_ASSIGNED"
ASSET_UNASSIGNED = "ASSET_UNASSIGNED"
STATUS_UPDATE = "STATUS_UPDATE"

DEFAULT_SPLITTER_CAPACITY = 8


@dataclass(frozen=True)
class NodeLevel:
    node_type: NodeType
    model: type
    asset_type: AssetType
    label: str
    fields: tuple[str, ...]
    default_model: str | None = None
    parent_type: NodeType | None = None
    parent_field: str | None = None
    parent_attr: str | None = None
    child_type: NodeType | None = None
    children_attr: str | None = None


LEVELS: dict[NodeType, NodeLevel] = {
    NodeType.headend: NodeLevel(
        node_type=NodeType.headend,
        model=Headend,
        asset_type=AssetType.headend,
        label="Headend",
        fields=("name", "location"),
        default_model="Infrastructure",
        child_type=NodeType.core_switch,
        children_attr="core_switches",
    ),
    NodeType.core_switch: NodeLevel(
        node_type=NodeType.core_switch,
        model=CoreSwitch,
        asset_type=AssetType.core_switch,
        label="Core switch",
        fields=("name", "location"),
        default_model="Core Infrastructure",
        parent_type=NodeType.headend,
        parent_field="headend_id",
        parent_attr="headend",
        child_type=NodeType.fdh,
        children_attr="fdhs",
    ),
    NodeType.fdh: NodeLevel(
        node_type=NodeType.fdh,
        model=Fdh,
        asset_type=AssetType.fdh,
        label="FDH",
        fields=("name", "region"),
        default_model="Infrastructure",
        parent_type=NodeType.core_switch,
        parent_field="core_switch_id",
        parent_attr="core_switch",
        child_type=NodeType.splitter,
        children_attr="splitters",
    ),
    NodeType.splitter: NodeLevel(
        node_type=NodeType.splitter,
        model=Splitter,
        asset_type=AssetType.splitter,
        label="Splitter",
        fields=("neighborhood", "port_capacity"),
        parent_type=NodeType.fdh,
        parent_field="fdh_id",
        parent_attr="fdh",
    ),
}
_LEVEL_BY_MODEL = {level.model: level for level in LEVELS.values()}
_LEVEL_BY_ASSET_TYPE = {level.asset_type: level for level in LEVELS.values()}


def get_level(node_type) -> NodeLevel:
    return LEVELS[validate_enum(node_type, NodeType, "node_type")]


def node_payload(node) -> dict:
    """Flatten a hierarchy node and its asset into the ``NodeRead`` shape."""
    level = _LEVEL_BY_MODEL[type(node)]
    asset = node.asset
    data = {
        "id": node.id,
        "node_type": level.node_type,
        "asset_id": node.asset_id,
        "serial_number": asset.serial_number if asset else None,
        "model": asset.model if asset else None,
        "parent_id": getattr(node, level.parent_field) if level.parent_field else None,
        "created_at": node.created_at,
    }
    for field in ("name", "location", "region", "neighborhood", "port_capacity", "used_ports"):
        if hasattr(node, field):
            data[field] = getattr(node, field)
    return data


def _commit_or_duplicate(db: Session, serial_number: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateSerial(
            f"Asset with serial number {serial_number} already exists.",
            details={"serial_number": serial_number},
        ) from exc


def _record_history(asset: Asset, change_type: str, description: str, changed_by=None) -> None:
    asset.history.append(
        AssetHistory(
            change_type=change_type,
            description=description,
            changed_by=str(changed_by) if changed_by else None,
        )
    )


class Assets(CRUDManager[Asset]):
    model = Asset
    not_found_error = AssetNotFound
    not_found_detail = "Asset not found"

    @staticmethod
    def build(
        db: Session,
        asset_type: AssetType,
        serial_number: str,
        model: str | None = None,
        location: str | None = None,
        status: AssetStatus = AssetStatus.available,
        changed_by=None,
    ) -> Asset:
        """Stage a new asset and its creation history row; the caller commits."""
        exists = db.query(Asset.id).filter(Asset.serial_number == serial_number).first()
        if exists:
            raise DuplicateSerial(
                f"Asset with serial number {serial_number} already exists.",
                details={"serial_number": serial_number},
            )
        asset = Asset(
            asset_type=asset_type,
            serial_number=serial_number,
            model=model,
            location=location,
            status=status,
        )
        _record_history(asset, ASSET_CREATED, "New asset created.", changed_by)
        db.add(asset)
        return asset

    @classmethod
    def create(cls, db: Session, payload: AssetCreate, changed_by=None) -> Asset:
        asset = cls.build(
            db,
            asset_type=payload.asset_type,
            serial_number=payload.serial_number,
            model=payload.model,
            location=payload.location,
            status=payload.status,
            changed_by=changed_by,
        )
        _commit_or_duplicate(db, payload.serial_number)
        db.refresh(asset)
        logger.info("Created %s asset %s", asset.asset_type.value, asset.serial_number)
        return asset

    @staticmethod
    def get_by_serial(db: Session, serial_number: str) -> Asset:
        asset = db.query(Asset).filter(Asset.serial_number == serial_number).first()
        if not asset:
            raise AssetNotFound(
                f"Asset not found with serial number: {serial_number}",
                details={"serial_number": serial_number},
            )
        return asset

    @staticmethod
    def list(
        db: Session,
        asset_type: str | None = None,
        status: str | None = None,
        location: str | None = None,
        customer_id: str | None = None,
        order_by: str = "created_at",
        order_dir: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Asset)
        query = apply_optional_equals(
            query,
            {
                Asset.asset_type: validate_enum(asset_type, AssetType, "asset_type"),
                Asset.status: validate_enum(status, AssetStatus, "status"),
                Asset.assigned_to_customer_id: coerce_uuid(customer_id, "customer_id"),
            },
        )
        query = apply_optional_ilike(query, {Asset.location: location})
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Asset.created_at,
                "serial_number": Asset.serial_number,
                "status": Asset.status,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def for_customer(db: Session, customer_id) -> list[Asset]:
        customer_uuid = coerce_uuid(customer_id, "customer_id")
        return (
            db.query(Asset)
            .filter(Asset.assigned_to_customer_id == customer_uuid)
            .order_by(Asset.created_at.asc())
            .all()
        )

    @staticmethod
    def node_for_asset(db: Session, asset: Asset):
        level = _LEVEL_BY_ASSET_TYPE.get(asset.asset_type)
        if not level:
            return None
        return db.query(level.model).filter(level.model.asset_id == asset.id).first()

    @classmethod
    def assignment(cls, db: Session, serial_number: str) -> dict:
        asset = cls.get_by_serial(db, serial_number)
        node = cls.node_for_asset(db, asset)
        return {
            "asset_id": asset.id,
            "serial_number": asset.serial_number,
            "asset_type": asset.asset_type,
            "status": asset.status,
            "node_id": node.id if node else None,
            "assigned_to_customer_id": asset.assigned_to_customer_id,
        }

    @classmethod
    def assign_to_customer(
        cls, db: Session, serial_number: str, customer_id, changed_by=None
    ) -> Asset:
        asset = cls.get_by_serial(db, serial_number)
        if asset.asset_type in INFRASTRUCTURE_TYPES:
            raise InvalidRequest(
                f"{asset.asset_type.value} assets cannot be assigned to a customer",
                details={"serial_number": serial_number},
            )
        if asset.status in (AssetStatus.faulty, AssetStatus.retired):
            raise ConflictError(
                f"Asset {serial_number} is {asset.status.value} and cannot be assigned",
                details={"serial_number": serial_number, "status": asset.status.value},
            )
        customer_uuid = coerce_uuid(customer_id, "customer_id")
        previous = asset.assigned_to_customer_id
        asset.assigned_to_customer_id = customer_uuid
        asset.status = AssetStatus.assigned
        description = f"Assigned to customer ID: {customer_uuid}"
        if previous and previous != customer_uuid:
            description += f" (previously {previous})"
        _record_history(asset, ASSET_ASSIGNED, description, changed_by)
        db.commit()
        db.refresh(asset)
        return asset

    @staticmethod
    def unassign_for_customer(
        db: Session, customer_id, new_status=AssetStatus.available, changed_by=None
    ) -> int:
        """Reclaim every asset held by a customer; returns how many moved."""
        status = validate_enum(new_status, AssetStatus, "status")
        if status == AssetStatus.assigned:
            raise InvalidRequest("Reclaimed assets cannot stay assigned")
        customer_uuid = coerce_uuid(customer_id, "customer_id")
        held = db.query(Asset).filter(Asset.assigned_to_customer_id == customer_uuid).all()
        for asset in held:
            asset.assigned_to_customer_id = None
            asset.status = status
            _record_history(
                asset, ASSET_UNASSIGNED, f"Unassigned from customer ID: {customer_uuid}", changed_by
            )
        db.commit()
        if held:
            logger.info("Reclaimed %d assets from customer %s", len(held), customer_uuid)
        return len(held)

    @classmethod
    def update_status(cls, db: Session, asset_id, status, changed_by=None) -> Asset:
        asset = cls.get(db, asset_id)
        new_status = validate_enum(status, AssetStatus, "status")
        old_status = asset.status
        if new_status != old_status:
            asset.status = new_status
            _record_history(
                asset,
                STATUS_UPDATE,
                f"Status changed from {old_status.value} to {new_status.value}",
                changed_by,
            )
            db.commit()
            db.refresh(asset)
        return asset

    @classmethod
    def history(cls, db: Session, asset_id) -> list[AssetHistory]:
        asset = cls.get(db, asset_id)
        return (
            db.query(AssetHistory)
            .filter(AssetHistory.asset_id == asset.id)
            .order_by(AssetHistory.created_at.desc())
            .all()
        )

    @classmethod
    def delete(cls, db: Session, asset_id) -> None:
        asset = cls.get(db, asset_id)
        if asset.status == AssetStatus.assigned:
            raise ResourceInUse(
                f"Cannot delete asset {asset.serial_number}. It is currently assigned to a customer.",
                details={"asset_id": str(asset.id)},
            )
        node = cls.node_for_asset(db, asset)
        if node is not None:
            NetworkNodes.delete(db, _LEVEL_BY_MODEL[type(node)].node_type, node.id)
            return
        db.delete(asset)
        db.commit()


class NetworkNodes:
    """Headends, core switches, FDHs and splitters, addressed by node type."""

    @staticmethod
    def get(db: Session, node_type, node_id):
        level = get_level(node_type)
        node = db.get(level.model, coerce_uuid(node_id, f"{level.node_type.value}_id"))
        if not node:
            raise NodeNotFound(
                f"{level.label} not found with ID: {node_id}",
                details={"node_type": level.node_type.value, "id": str(node_id)},
            )
        return node

    @staticmethod
    def list(db: Session, node_type, parent_id=None, limit: int = 100, offset: int = 0):
        level = get_level(node_type)
        query = db.query(level.model)
        if parent_id is not None:
            if not level.parent_field:
                raise InvalidRequest(f"{level.label}s have no parent")
            query = query.filter(
                getattr(level.model, level.parent_field) == coerce_uuid(parent_id, "parent_id")
            )
        query = query.order_by(level.model.created_at.asc())
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def children(cls, db: Session, node_type, node_id) -> list:
        level = get_level(node_type)
        node = cls.get(db, level.node_type, node_id)
        if not level.children_attr:
            return []
        return list(getattr(node, level.children_attr))

    @classmethod
    def create(cls, db: Session, node_type, payload: NodeCreate, changed_by=None):
        level = get_level(node_type)
        parent = None
        if level.parent_type:
            if not payload.parent_id:
                raise InvalidRequest(f"parent_id is required for a {level.label}")
            parent = cls.get(db, level.parent_type, payload.parent_id)
        elif payload.parent_id:
            raise InvalidRequest(f"{level.label}s have no parent")

        attrs = {field: getattr(payload, field) for field in level.fields}
        if level.node_type == NodeType.splitter:
            capacity = payload.port_capacity or DEFAULT_SPLITTER_CAPACITY
            attrs["port_capacity"] = capacity
            attrs["used_ports"] = 0
            serial_number = (
                payload.serial_number or f"SPLITTER-{parent.id}-{int(time.time() * 1000)}"
            )
            model = payload.model or f"{capacity}-Port Splitter"
        else:
            if not payload.name:
                raise InvalidRequest(f"name is required for a {level.label}")
            serial_number = payload.serial_number or payload.name
            model = payload.model or level.default_model
        if parent is not None:
            attrs[level.parent_field] = parent.id

        asset = Assets.build(
            db,
            asset_type=level.asset_type,
            serial_number=serial_number,
            model=model,
            location=payload.location or payload.region or payload.neighborhood,
            changed_by=changed_by,
        )
        node = level.model(asset=asset, **attrs)
        db.add(node)
        _commit_or_duplicate(db, serial_number)
        db.refresh(node)
        logger.info("Created %s %s (serial %s)", level.label, node.id, serial_number)
        return node

    @classmethod
    def update(cls, db: Session, node_type, node_id, payload: NodeUpdate):
        level = get_level(node_type)
        node = cls.get(db, level.node_type, node_id)
        data = payload.model_dump(exclude_unset=True)
        if "model" in data:
            node.asset.model = data.pop("model")
        for key, value in data.items():
            if key not in level.fields:
                raise InvalidRequest(f"{key} cannot be set on a {level.label}")
            if key == "name" and not value:
                raise InvalidRequest("name cannot be empty")
            if key == "port_capacity":
                cls._check_capacity_change(db, node, value)
            setattr(node, key, value)
            if key == "location":
                node.asset.location = value
        db.commit()
        db.refresh(node)
        return node

    @staticmethod
    def _check_capacity_change(db: Session, splitter: Splitter, capacity) -> None:
        if capacity is None or capacity < 1:
            raise InvalidRequest("port_capacity must be at least 1")
        if capacity < splitter.used_ports:
            raise InvalidRequest(
                f"port_capacity cannot drop below the {splitter.used_ports} ports in use",
                details={"used_ports": splitter.used_ports},
            )
        highest = (
            db.query(func.max(SplitterPortReservation.port_number))
            .filter(SplitterPortReservation.splitter_id == splitter.id)
            .filter(SplitterPortReservation.active.is_(True))
            .scalar()
        )
        if highest and capacity < highest:
            raise InvalidRequest(
                f"port_capacity cannot drop below reserved port {highest}",
                details={"highest_reserved_port": highest},
            )

    @classmethod
    def reparent(cls, db: Session, node_type, node_id, new_parent_id):
        level = get_level(node_type)
        if not level.parent_type:
            raise InvalidRequest(f"{level.label}s cannot be re-parented")
        node = cls.get(db, level.node_type, node_id)
        parent = cls.get(db, level.parent_type, new_parent_id)
        setattr(node, level.parent_field, parent.id)
        db.commit()
        db.refresh(node)
        logger.info("Moved %s %s under %s", level.label, node.id, parent.id)
        return node

    @classmethod
    def delete(cls, db: Session, node_type, node_id) -> None:
        level = get_level(node_type)
        node = cls.get(db, level.node_type, node_id)
        if level.child_type:
            child = LEVELS[level.child_type]
            child_count = (
                db.query(func.count(child.model.id))
                .filter(getattr(child.model, child.parent_field) == node.id)
                .scalar()
            )
            if child_count:
                raise ResourceInUse(
                    f"Cannot delete {level.label} {node.id}. It has child {child.label}s.",
                    details={"children": child_count},
                )
        if level.node_type == NodeType.splitter and node.used_ports > 0:
            raise ResourceInUse(
                f"Cannot delete Splitter {node.id}. It has active customer connections.",
                details={"used_ports": node.used_ports},
            )
        asset = node.asset
        if asset is not None and asset.status == AssetStatus.assigned:
            raise ResourceInUse(
                f"Cannot delete {level.label} {node.id}. Its asset is assigned to a customer.",
            )
        if level.node_type == NodeType.splitter:
            db.query(SplitterPortReservation).filter(
                SplitterPortReservation.splitter_id == node.id
            ).delete(synchronize_session=False)
        db.delete(node)
        db.flush()
        if asset is not None:
            db.delete(asset)
        db.commit()
        logger.info("Deleted %s %s", level.label, node_id)

    @classmethod
    def path(cls, db: Session, node_type, node_id) -> list:
        """Ancestry of a node, root first, ending with the node itself."""
        level = get_level(node_type)
        node = cls.get(db, level.node_type, node_id)
        chain = [node]
        while level.parent_attr:
            parent = getattr(node, level.parent_attr)
            if parent is None:
                raise NodeNotFound(
                    f"{LEVELS[level.parent_type].label} not found for {level.label} {node.id}"
                )
            chain.append(parent)
            node, level = parent, LEVELS[level.parent_type]
        chain.reverse()
        return chain

    @classmethod
    def subtree(cls, db: Session, node_type, node_id) -> dict:
        """Nested ``{"node", "children"}`` tree from a node down to splitters."""
        level = get_level(node_type)
        node = cls.get(db, level.node_type, node_id)
        if level.node_type == NodeType.headend:
            db.query(Headend).options(
                selectinload(Headend.core_switches)
                .selectinload(CoreSwitch.fdhs)
                .selectinload(Fdh.splitters)
            ).filter(Headend.id == node.id).all()
        return _tree(node)


def _tree(node) -> dict:
    level = _LEVEL_BY_MODEL[type(node)]
    children = getattr(node, level.children_attr) if level.children_attr else []
    return {"node": node_payload(node), "children": [_tree(child) for child in children]}


class SplitterPorts:
    """Port accounting on splitters."""

    @staticmethod
    def _lock_splitter(db: Session, splitter_id) -> Splitter:
        splitter = (
            db.query(Splitter)
            .filter(Splitter.id == coerce_uuid(splitter_id, "splitter_id"))
            .with_for_update()
            .first()
        )
        if not splitter:
            raise NodeNotFound(
                f"Splitter not found with ID: {splitter_id}",
                details={"node_type": NodeType.splitter.value, "id": str(splitter_id)},
            )
        return splitter

    @classmethod
    def set_used_ports(cls, db: Session, splitter_id, used_ports: int) -> Splitter:
        splitter = cls._lock_splitter(db, splitter_id)
        if used_ports < 0:
            db.rollback()
            raise InvalidRequest("used_ports cannot be negative")
        if used_ports > splitter.port_capacity:
            capacity = splitter.port_capacity
            db.rollback()
            raise PortCapacityExceeded(
                f"used_ports cannot exceed the splitter capacity of {capacity}",
                details={"port_capacity": capacity, "used_ports": used_ports},
            )
        reserved = cls._active_count(db, splitter.id)
        if reserved != used_ports:
            logger.warning(
                "Splitter %s used_ports overridden to %d with %d active reservations",
                splitter.id,
                used_ports,
                reserved,
            )
        splitter.used_ports = used_ports
        db.commit()
        db.refresh(splitter)
        return splitter

    @staticmethod
    def _active_count(db: Session, splitter_id) -> int:
        return (
            db.query(func.count(SplitterPortReservation.id))
            .filter(SplitterPortReservation.splitter_id == splitter_id)
            .filter(SplitterPortReservation.active.is_(True))
            .scalar()
        )

    @classmethod
    def reserve(cls, db: Session, splitter_id, payload: ReservationCreate) -> SplitterPortReservation:
        """Atomically hold one port, or fail without changing anything.

        Replaying a key that already holds the same port for the same customer
        returns the existing reservation.
        """
        splitter = cls._lock_splitter(db, splitter_id)
        customer_uuid = coerce_uuid(payload.customer_id, "customer_id")
        port = payload.port_number

        existing = (
            db.query(SplitterPortReservation)
            .filter(SplitterPortReservation.reservation_key == payload.reservation_key)
            .first()
        )
        if existing is not None:
            if (
                existing.active
                and existing.splitter_id == splitter.id
                and existing.port_number == port
                and existing.customer_id == customer_uuid
            ):
                db.commit()
                PORT_RESERVATIONS.labels(outcome="replayed").inc()
                return existing
            db.rollback()
            PORT_RESERVATIONS.labels(outcome="key_conflict").inc()
            raise ConflictError(
                f"Reservation key {payload.reservation_key} is already used",
                details={"reservation_key": payload.reservation_key},
            )

        serial = splitter.asset.serial_number if splitter.asset else str(splitter.id)
        capacity = splitter.port_capacity
        if port < 1 or port > capacity:
            db.rollback()
            PORT_RESERVATIONS.labels(outcome="invalid_port").inc()
            raise InvalidRequest(
                f"Port {port} is outside the range 1..{capacity} of splitter {serial}",
                details={"port_number": port, "port_capacity": capacity},
            )
        if splitter.used_ports >= capacity:
            db.rollback()
            PORT_RESERVATIONS.labels(outcome="capacity_exceeded").inc()
            raise PortCapacityExceeded(
                f"Splitter {serial} has no available ports.",
                details={"splitter_id": str(splitter_id), "port_capacity": capacity},
            )
        holder = (
            db.query(SplitterPortReservation.id)
            .filter(SplitterPortReservation.splitter_id == splitter.id)
            .filter(SplitterPortReservation.port_number == port)
            .filter(SplitterPortReservation.active.is_(True))
            .first()
        )
        if holder:
            db.rollback()
            PORT_RESERVATIONS.labels(outcome="conflict").inc()
            raise PortConflict(
                f"Port {port} on splitter {serial} is already assigned to another customer.",
                details={"splitter_id": str(splitter_id), "port_number": port},
            )

        reservation = SplitterPortReservation(
            splitter_id=splitter.id,
            port_number=port,
            customer_id=customer_uuid,
            reservation_key=payload.reservation_key,
            active=True,
        )
        db.add(reservation)
        splitter.used_ports += 1
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            PORT_RESERVATIONS.labels(outcome="conflict").inc()
            raise PortConflict(
                f"Port {port} on splitter {serial} is already assigned to another customer.",
                details={"splitter_id": str(splitter_id), "port_number": port},
            ) from exc
        db.refresh(reservation)
        PORT_RESERVATIONS.labels(outcome="reserved").inc()
        logger.info(
            "Reserved port %d on splitter %s for customer %s (key %s)",
            port,
            serial,
            customer_uuid,
            payload.reservation_key,
        )
        return reservation

    @classmethod
    def release(cls, db: Session, reservation_key: str) -> dict:
        """Release the port held under a key; replays report ``released=False``."""
        reservation = (
            db.query(SplitterPortReservation)
            .filter(SplitterPortReservation.reservation_key == reservation_key)
            .first()
        )
        if reservation is None or not reservation.active:
            PORT_RELEASES.labels(outcome="noop").inc()
            return {
                "reservation_key": reservation_key,
                "released": False,
                "splitter_id": reservation.splitter_id if reservation else None,
                "used_ports": None,
            }
        splitter = cls._lock_splitter(db, reservation.splitter_id)
        db.refresh(reservation)
        if not reservation.active:
            db.commit()
            PORT_RELEASES.labels(outcome="noop").inc()
            return {
                "reservation_key": reservation_key,
                "released": False,
                "splitter_id": splitter.id,
                "used_ports": splitter.used_ports,
            }
        reservation.active = False
        reservation.released_at = datetime.now(timezone.utc)
        splitter.used_ports = max(splitter.used_ports - 1, 0)
        db.commit()
        PORT_RELEASES.labels(outcome="released").inc()
        logger.info(
            "Released port %d on splitter %s (key %s)",
            reservation.port_number,
            splitter.id,
            reservation_key,
        )
        return {
            "reservation_key": reservation_key,
            "released": True,
            "splitter_id": splitter.id,
            "used_ports": splitter.used_ports,
        }

    @staticmethod
    def occupancy(db: Session, splitter_id) -> list[SplitterPortReservation]:
        splitter = NetworkNodes.get(db, NodeType.splitter, splitter_id)
        return (
            db.query(SplitterPortReservation)
            .filter(SplitterPortReservation.splitter_id == splitter.id)
            .filter(SplitterPortReservation.active.is_(True))
            .order_by(SplitterPortReservation.port_number.asc())
            .all()
        )


assets = Assets()
network_nodes = NetworkNodes()
splitter_ports = SplitterPorts()
