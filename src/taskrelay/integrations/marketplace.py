"""Async client for the remote task-marketplace API.

Only the read endpoints the relay polls are covered:

    GET /tasks?status=<status>[&network=<network>]
    GET /tasks/<task_id>
    GET /agents
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger("taskrelay.marketplace")


class MarketplaceError(Exception):
    """A marketplace call failed (transport error, non-2xx status or bad JSON)."""


def _extract_list(data: Any, key: str) -> list[dict]:
    """Accept either a bare JSON list or ``{key: [...]}``."""
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = data.get(key) or []
    else:
        items = []
    return [item for item in items if isinstance(item, dict)]


@dataclass
class MarketplaceClient:
    api_base: str
    timeout: float = 15.0
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    def _base_url(self) -> str:
        return self.api_base.rstrip("/")

    async def _get_json(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        url = f"{self._base_url()}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise MarketplaceError(f"GET {url} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise MarketplaceError(f"GET {url} returned {resp.status_code}: {resp.text[:300]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise MarketplaceError(f"GET {url} returned invalid JSON: {exc}") from exc

    async def list_tasks(self, status: str, network: Optional[str] = None) -> list[dict]:
        params = {"status": status}
        if network:
            params["network"] = network
        data = await self._get_json("tasks", params=params)
        return _extract_list(data, "tasks")

    async def get_task(self, task_id: str) -> dict:
        data = await self._get_json(f"tasks/{task_id}")
        if not isinstance(data, dict):
            raise MarketplaceError(f"task {task_id}: expected a JSON object")
        return data

    async def list_agents(self) -> list[dict]:
        data = await self._get_json("agents")
        return _extract_list(data, "agents")
