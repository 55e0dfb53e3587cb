"""In-memory stand-ins for the marketplace API, sockets and wall-clock time."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from starlette.websockets import WebSocketState

from taskrelay.core.config import Settings
from taskrelay.integrations.marketplace import MarketplaceError


def make_settings(tmp_path, **overrides: Any) -> Settings:
    values: dict[str, Any] = dict(
        log_level="debug",
        log_dir=str(tmp_path / "logs"),
        host="127.0.0.1",
        port=3402,
        api_base="https://marketplace.test",
        wallets_dir=str(tmp_path / "wallets"),
        static_dir=None,
        new_task_interval=5.0,
        agent_task_interval=10.0,
        watched_task_interval=10.0,
        state_query_timeout=5.0,
        http_timeout=5.0,
        clear_logs_on_launch=False,
        anthropic_api_key="",
        openai_api_key="",
        openrouter_api_key="",
    )
    values.update(overrides)
    return Settings(**values)


class FakeMarketplace:
    """Serves canned listings keyed by ``(status, network)``."""

    def __init__(self) -> None:
        self.listings: dict[tuple[str, Optional[str]], list[dict]] = {}
        self.tasks: dict[str, dict] = {}
        self.agents: list[dict] = []
        self.failing: set[Any] = set()
        self.calls: list[tuple] = []

    def set_listing(self, status: str, tasks: list[dict], network: Optional[str] = None) -> None:
        self.listings[(status, network)] = [dict(t) for t in tasks]

    async def list_tasks(self, status: str, network: Optional[str] = None) -> list[dict]:
        self.calls.append(("list", status, network))
        if ("list", status, network) in self.failing:
            raise MarketplaceError(f"listing {status}/{network} unavailable")
        return [dict(t) for t in self.listings.get((status, network), [])]

    async def get_task(self, task_id: str) -> dict:
        self.calls.append(("get", task_id))
        if ("get", task_id) in self.failing or task_id not in self.tasks:
            raise MarketplaceError(f"task {task_id} unavailable")
        return dict(self.tasks[task_id])

    async def list_agents(self) -> list[dict]:
        self.calls.append(("agents",))
        if "agents" in self.failing:
            raise MarketplaceError("agent directory unavailable")
        return list(self.agents)


class FakeConnection:
    """Looks enough like a server-side WebSocket for the broadcast hub."""

    def __init__(self, state: WebSocketState = WebSocketState.CONNECTED, fail: bool = False) -> None:
        self.client_state = state
        self.application_state = state
        self.fail = fail
        self.sent: list[dict] = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


class VirtualClock:
    """Injectable ``sleep`` whose time only moves when ``advance`` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self._waiters: list[tuple[float, int, asyncio.Future]] = []
        self._seq = 0

    async def sleep(self, delay: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._waiters.append((self.now + delay, self._seq, fut))
        await fut

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            await _settle()
            due = sorted(w for w in self._waiters if w[0] <= target and not w[2].done())
            if not due:
                break
            when, _, fut = due[0]
            self._waiters.remove(due[0])
            self.now = when
            fut.set_result(None)
        self.now = target
        await _settle()


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)
