"""Request-scoped dependencies: identity, roles and service clients.

Identity is issued upstream; the gateway forwards the caller as the
``X-User-Id`` and ``X-User-Roles`` headers and the routers trust them.
"""

from fastapi import Depends, Header, HTTPException

from fieldflow.config import settings
from fieldflow.db import get_customer_db, get_deployment_db, get_inventory_db
from fieldflow.services.clients import SERVICE_ROLE, customer_client, inventory_client


def require_user_auth(
    x_user_id: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
) -> dict:
    if not x_user_id:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Missing X-User-Id header", "details": None},
        )
    roles = {role.strip().lower() for role in (x_user_roles or "").split(",") if role.strip()}
    return {"user_id": x_user_id, "roles": roles}


def require_role(*role_names: str):
    allowed = {name.strip().lower() for name in role_names if name.strip()}

    def _require_role(auth=Depends(require_user_auth)):
        if auth["roles"] & allowed:
            return auth
        raise HTTPException(
            status_code=403,
            detail={
                "code": "forbidden",
                "message": "Forbidden",
                "details": {"required_roles": sorted(allowed)},
            },
        )

    return _require_role


_OPERATOR_ROLES = tuple(settings.operator_roles.split(","))

require_operator = require_role(*_OPERATOR_ROLES, SERVICE_ROLE)
require_field_staff = require_role(*_OPERATOR_ROLES, "technician", SERVICE_ROLE)


def get_inventory_client():
    client = inventory_client()
    try:
        yield client
    finally:
        client.close()


def get_customer_client():
    client = customer_client()
    try:
        yield client
    finally:
        client.close()


__all__ = [
    "get_customer_client",
    "get_customer_db",
    "get_deployment_db",
    "get_inventory_client",
    "get_inventory_db",
    "require_field_staff",
    "require_operator",
    "require_role",
    "require_user_auth",
]
