"""HTTP clients for calls between fieldflow services.

A remote error body carries the same ``code`` the remote service raised, so
the clients re-raise the matching domain error locally. Anything that cannot
be mapped (connection failures, timeouts, unexpected bodies) becomes a
``ServiceCommunicationError``.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from fieldflow.config import settings
from fieldflow.metrics import observe_remote_call
from fieldflow.services.errors import ERRORS_BY_CODE, ServiceCommunicationError

logger = logging.getLogger(__name__)

SERVICE_USER_ID = "fieldflow-service"
SERVICE_ROLE = "service"


class ServiceClient:
    service_name = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ):
        """
        Args:
            base_url: Root of the remote service API (e.g. ``http://host/api/inventory``)
            timeout: Request timeout in seconds; defaults to SERVICE_HTTP_TIMEOUT
            http_client: Pre-built client to send requests through
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.service_http_timeout
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers={"Accept": "application/json", "User-Agent": "fieldflow/1.0"},
            )
        return self._client

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_data: Any = None,
        actor_id: str | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {
            "X-User-Id": str(actor_id) if actor_id else SERVICE_USER_ID,
            "X-User-Roles": SERVICE_ROLE,
        }
        started = time.monotonic()
        outcome = "ok"
        try:
            response = self._get_client().request(
                method, url, params=params, json=json_data, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            outcome = "error"
            self._raise_remote_error(method, path, exc.response)
        except httpx.TimeoutException as exc:
            outcome = "timeout"
            logger.warning("%s timed out on %s %s", self.service_name, method, path)
            raise ServiceCommunicationError(
                f"{self.service_name} service timed out",
                details={"method": method, "path": path},
            ) from exc
        except httpx.RequestError as exc:
            outcome = "unreachable"
            logger.warning("%s unreachable on %s %s: %s", self.service_name, method, path, exc)
            raise ServiceCommunicationError(
                f"{self.service_name} service is unreachable: {exc}",
                details={"method": method, "path": path},
            ) from exc
        finally:
            observe_remote_call(self.service_name, method, outcome, time.monotonic() - started)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _raise_remote_error(self, method: str, path: str, response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error_cls = ERRORS_BY_CODE.get(body.get("code"))
            if error_cls is not None:
                raise error_cls(
                    body.get("message") or f"{self.service_name} rejected the request",
                    details=body.get("details"),
                )
            message = body.get("message") or body.get("detail")
        else:
            message = None
        logger.warning(
            "%s returned %s on %s %s", self.service_name, response.status_code, method, path
        )
        raise ServiceCommunicationError(
            message or f"{self.service_name} service returned {response.status_code}",
            details={"method": method, "path": path, "body": body},
            remote_status=response.status_code,
        )


class InventoryClient(ServiceClient):
    service_name = "inventory"

    def get_asset_by_serial(self, serial_number: str) -> dict:
        return self._request("GET", f"/assets/by-serial/{quote(serial_number, safe='')}")

    def asset_assignment(self, serial_number: str) -> dict:
        return self._request(
            "GET", f"/assets/by-serial/{quote(serial_number, safe='')}/assignment"
        )

    def assets_for_customer(self, customer_id) -> list[dict]:
        return self._request("GET", f"/assets/by-customer/{customer_id}")

    def assign_asset(self, serial_number: str, customer_id, actor_id=None) -> dict:
        return self._request(
            "POST",
            "/assets/assign",
            json_data={"serial_number": serial_number, "customer_id": str(customer_id)},
            actor_id=actor_id,
        )

    def reclaim_assets(self, customer_id, status: str = "available", actor_id=None) -> dict:
        return self._request(
            "POST",
            "/assets/reclaim",
            json_data={"customer_id": str(customer_id), "status": status},
            actor_id=actor_id,
        )

    def get_node(self, node_type: str, node_id) -> dict:
        return self._request("GET", f"/nodes/{node_type}/{node_id}")

    def node_path(self, node_type: str, node_id) -> list[dict]:
        return self._request("GET", f"/nodes/{node_type}/{node_id}/path")

    def subtree(self, node_type: str, node_id) -> dict:
        return self._request("GET", f"/nodes/{node_type}/{node_id}/subtree")

    def reserve_port(
        self, splitter_id, port_number: int, customer_id, reservation_key: str, actor_id=None
    ) -> dict:
        return self._request(
            "POST",
            f"/splitters/{splitter_id}/reservations",
            json_data={
                "port_number": port_number,
                "customer_id": str(customer_id),
                "reservation_key": reservation_key,
            },
            actor_id=actor_id,
        )

    def release_port(self, reservation_key: str, actor_id=None) -> dict:
        return self._request(
            "POST",
            f"/reservations/{quote(reservation_key, safe='')}/release",
            actor_id=actor_id,
        )


class CustomerClient(ServiceClient):
    service_name = "customer"

    def get_customer(self, customer_id) -> dict:
        return self._request("GET", f"/{customer_id}")

    def assignment(self, customer_id) -> dict:
        return self._request("GET", f"/{customer_id}/assignment")

    def change_status(self, customer_id, status: str, actor_id=None) -> dict:
        return self._request(
            "PUT", f"/{customer_id}/status", json_data={"status": status}, actor_id=actor_id
        )

    def list_by_splitters(self, splitter_ids) -> list[dict]:
        ids = [str(splitter_id) for splitter_id in splitter_ids]
        if not ids:
            return []
        return self._request("GET", "/by-splitters", params={"splitter_id": ids})


def inventory_client() -> InventoryClient:
    return InventoryClient(settings.inventory_service_url)


def customer_client() -> CustomerClient:
    return CustomerClient(settings.customer_service_url)
