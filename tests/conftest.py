import uuid

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldflow.api import deps
from fieldflow.db import Base
from fieldflow.main import app
from fieldflow.models import (
    Asset,
    AssetHistory,
    AuditLog,
    CoreSwitch,
    Customer,
    DeploymentTask,
    Fdh,
    FiberDropLine,
    Headend,
    NodeType,
    Splitter,
    SplitterPortReservation,
    Technician,
)
from fieldflow.schemas.customer import CustomerCreate
from fieldflow.schemas.inventory import NodeCreate
from fieldflow.services import customers as customer_service
from fieldflow.services import inventory as inventory_service
from fieldflow.services.audit import audit_logs
from fieldflow.services.clients import CustomerClient, InventoryClient

OPERATOR_HEADERS = {"X-User-Id": "operator-1", "X-User-Roles": "operator"}
INVENTORY_URL = "http://testserver/api/inventory"
CUSTOMER_URL = "http://testserver/api/customers"

INVENTORY_TABLES = [
    model.__table__
    for model in (Asset, AssetHistory, Headend, CoreSwitch, Fdh, Splitter, SplitterPortReservation)
]
CUSTOMER_TABLES = [Customer.__table__, FiberDropLine.__table__]
DEPLOYMENT_TABLES = [AuditLog.__table__, DeploymentTask.__table__, Technician.__table__]


def _memory_engine(tables):
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine, tables=tables)
    return engine


def _session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def inventory_engine():
    engine = _memory_engine(INVENTORY_TABLES)
    yield engine
    engine.dispose()


@pytest.fixture()
def customer_engine():
    engine = _memory_engine(CUSTOMER_TABLES)
    yield engine
    engine.dispose()


@pytest.fixture()
def deployment_engine():
    engine = _memory_engine(DEPLOYMENT_TABLES)
    yield engine
    engine.dispose()


def _session(engine):
    session = _session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def inventory_session(inventory_engine):
    yield from _session(inventory_engine)


@pytest.fixture()
def customer_session(customer_engine):
    yield from _session(customer_engine)


@pytest.fixture()
def deployment_session(deployment_engine):
    yield from _session(deployment_engine)


@pytest.fixture(autouse=True)
def audit_sessions(deployment_engine, monkeypatch):
    factory = _session_factory(deployment_engine)
    monkeypatch.setattr(audit_logs, "session_factory", factory)
    return factory


def _db_override(engine):
    factory = _session_factory(engine)

    def _get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


@pytest.fixture()
def client(inventory_engine, customer_engine, deployment_engine):
    """Full app over the three in-memory stores.

    Cross-service calls made inside a request are routed back into the same
    app through this client.
    """
    test_client = TestClient(app, raise_server_exceptions=False, headers=OPERATOR_HEADERS)
    app.dependency_overrides[deps.get_inventory_db] = _db_override(inventory_engine)
    app.dependency_overrides[deps.get_customer_db] = _db_override(customer_engine)
    app.dependency_overrides[deps.get_deployment_db] = _db_override(deployment_engine)
    app.dependency_overrides[deps.get_inventory_client] = lambda: InventoryClient(
        INVENTORY_URL, http_client=test_client
    )
    app.dependency_overrides[deps.get_customer_client] = lambda: CustomerClient(
        CUSTOMER_URL, http_client=test_client
    )
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def inventory_client(client):
    return InventoryClient(INVENTORY_URL, http_client=client)


@pytest.fixture()
def customer_client(client):
    return CustomerClient(CUSTOMER_URL, http_client=client)


@pytest.fixture()
def unreachable_inventory():
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    http_client = httpx.Client(transport=httpx.MockTransport(_refuse))
    yield InventoryClient("http://inventory.invalid/api/inventory", http_client=http_client)
    http_client.close()


def _build_hierarchy(db, suffix: str = "1", port_capacity: int = 8) -> dict:
    headend = inventory_service.network_nodes.create(
        db, NodeType.headend, NodeCreate(name=f"H{suffix}", location="Central Office")
    )
    core = inventory_service.network_nodes.create(
        db, NodeType.core_switch, NodeCreate(parent_id=headend.id, name=f"X{suffix}")
    )
    fdh = inventory_service.network_nodes.create(
        db, NodeType.fdh, NodeCreate(parent_id=core.id, name=f"F{suffix}", region="North")
    )
    splitter = inventory_service.network_nodes.create(
        db,
        NodeType.splitter,
        NodeCreate(
            parent_id=fdh.id,
            neighborhood="Riverside",
            port_capacity=port_capacity,
            serial_number=f"SPL-{suffix}",
        ),
    )
    return {
        "headend_id": headend.id,
        "core_switch_id": core.id,
        "fdh_id": fdh.id,
        "splitter_id": splitter.id,
        "splitter_serial": splitter.asset.serial_number,
    }


@pytest.fixture()
def build_hierarchy(inventory_session):
    def _build(suffix: str = "1", port_capacity: int = 8) -> dict:
        return _build_hierarchy(inventory_session, suffix, port_capacity)

    return _build


@pytest.fixture()
def hierarchy(build_hierarchy):
    return build_hierarchy()


@pytest.fixture()
def make_customer(customer_session):
    def _make(name: str = "C1", **fields):
        return customer_service.customers.create(
            customer_session,
            CustomerCreate(name=name, address=f"{uuid.uuid4().hex[:6]} Main St", **fields),
        )

    return _make


@pytest.fixture()
def customer(make_customer):
    return make_customer()

