"""Async HTTP client for the CRM API that reports failures as notifications."""

import logging
from typing import Any

import httpx

from app.client.errors import notify_error
from app.client.notifications import NotificationStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class CRMClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` for the ``/api/v1`` endpoints.

    Every failed call (non-2xx response or transport error) is pushed to the
    notification store before being re-raised to the caller.

    Example:
        store = NotificationStore()
        async with CRMClient("http://localhost:8000", store, token=token) as client:
            lead = await client.create_lead({"name": "Ada", "email": "ada@example.com"})
    """

    def __init__(
        self,
        base_url: str,
        store: NotificationStore,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.store = store
        self._http = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "CRMClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            notify_error(self.store, exc)
            raise
        return response

    async def create_lead(self, lead: dict[str, Any]) -> dict[str, Any]:
        response = await self.request("POST", "/api/v1/leads", json=lead)
        return response.json()

    async def get_lead(self, lead_id: int) -> dict[str, Any]:
        response = await self.request("GET", f"/api/v1/leads/{lead_id}")
        return response.json()

    async def update_lead(self, lead_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        response = await self.request("PATCH", f"/api/v1/leads/{lead_id}", json=changes)
        return response.json()

    async def delete_lead(self, lead_id: int) -> None:
        await self.request("DELETE", f"/api/v1/leads/{lead_id}")
