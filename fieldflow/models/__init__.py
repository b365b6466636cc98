from fieldflow.models.customer import Customer, CustomerStatus, FiberDropLine, FiberStatus
from fieldflow.models.deployment import (
    AuditLog,
    DeploymentTask,
    TaskStatus,
    Technician,
    TechnicianStatus,
)
from fieldflow.models.inventory import (
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

__all__ = [
    "Asset",
    "AssetHistory",
    "AssetStatus",
    "AssetType",
    "AuditLog",
    "CoreSwitch",
    "Customer",
    "CustomerStatus",
    "DeploymentTask",
    "Fdh",
    "FiberDropLine",
    "FiberStatus",
    "Headend",
    "NodeType",
    "Splitter",
    "SplitterPortReservation",
    "TaskStatus",
    "Technician",
    "TechnicianStatus",
]
