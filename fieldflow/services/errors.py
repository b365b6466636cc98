"""Domain errors shared by every fieldflow service.

Each error is an ``HTTPException`` whose detail carries a machine readable
``code`` so the API error handlers can render ``{code, message, details}`` and
so HTTP clients can turn a remote error body back into the same class.
"""

from __future__ import annotations

from fastapi import HTTPException


class ServiceError(HTTPException):
    http_status = 400
    code = "invalid_request"

    def __init__(self, message: str, details: object | None = None):
        super().__init__(
            status_code=self.http_status,
            detail={"code": self.code, "message": message, "details": details},
        )
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class InvalidRequest(ServiceError):
    pass


class UnsupportedAssetType(ServiceError):
    code = "unsupported_asset_type"


# -- not found ---------------------------------------------------------------


class NotFoundError(ServiceError):
    http_status = 404
    code = "not_found"


class CustomerNotFound(NotFoundError):
    code = "customer_not_found"


class AssetNotFound(NotFoundError):
    code = "asset_not_found"


class NodeNotFound(AssetNotFound):
    code = "node_not_found"


class TechnicianNotFound(NotFoundError):
    code = "technician_not_found"


class CustomerInactive(NotFoundError):
    code = "customer_inactive"


# -- conflicts ---------------------------------------------------------------


class ConflictError(ServiceError):
    http_status = 409
    code = "conflict"


class PortConflict(ConflictError):
    code = "port_conflict"


class AlreadyAssigned(ConflictError):
    code = "already_assigned"


class ResourceInUse(ConflictError):
    code = "resource_in_use"


class DuplicateSerial(ConflictError):
    code = "duplicate_serial"


class DuplicateUsername(ConflictError):
    code = "duplicate_username"


class PortCapacityExceeded(ServiceError):
    http_status = 409
    code = "capacity_exceeded"


class InvalidStateTransition(ServiceError):
    http_status = 409
    code = "invalid_state_transition"


# -- remote ------------------------------------------------------------------


class ServiceCommunicationError(ServiceError):
    """A call to another service failed: unreachable, timed out or rejected."""

    http_status = 502
    code = "service_communication"

    def __init__(
        self,
        message: str,
        details: object | None = None,
        remote_status: int | None = None,
    ):
        super().__init__(message, details)
        self.remote_status = remote_status


ERRORS_BY_CODE: dict[str, type[ServiceError]] = {
    cls.code: cls
    for cls in (
        InvalidRequest,
        UnsupportedAssetType,
        NotFoundError,
        CustomerNotFound,
        AssetNotFound,
        NodeNotFound,
        CustomerInactive,
        TechnicianNotFound,
        ConflictError,
        PortConflict,
        AlreadyAssigned,
        ResourceInUse,
        DuplicateSerial,
        DuplicateUsername,
        PortCapacityExceeded,
        InvalidStateTransition,
    )
}
