from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from taskrelay.core.broadcast import BroadcastHub, StateQuery
from taskrelay.core.config import Settings
from taskrelay.core.identity import AgentIdentity
from taskrelay.core.pollers import AgentTaskPoller, NewTaskPoller, WatchedTaskPoller
from taskrelay.core.scheduler import Scheduler, SleepFn
from taskrelay.core.task_cache import SeenTaskIds, TaskStatusCache
from taskrelay.integrations.marketplace import MarketplaceClient

logger = logging.getLogger("taskrelay.relay")


class Relay:
    """All state of one relay instance and the operations on it.

    Nothing here is process-global, so several relays can run side by side.
    """

    def __init__(
        self,
        settings: Settings,
        client: MarketplaceClient,
        identity: Optional[AgentIdentity] = None,
        hub: Optional[BroadcastHub] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.identity = identity or AgentIdentity()
        self.hub = hub or BroadcastHub()
        self.cache = TaskStatusCache()
        self.seen = SeenTaskIds()
        self.payments: dict[str, str] = {}
        self.state_query = StateQuery()

        self.new_tasks = NewTaskPoller(client, self.seen, self.hub)
        self.agent_tasks = AgentTaskPoller(client, self.cache, self.identity, self.hub)
        self.watched_tasks = WatchedTaskPoller(client, self.cache, self.hub)

        self.scheduler = Scheduler(sleep=sleep or asyncio.sleep)
        self.scheduler.every("new-tasks", settings.new_task_interval, self.new_tasks.poll_once)
        self.scheduler.every("agent-tasks", settings.agent_task_interval, self.agent_tasks.poll_once)
        self.scheduler.every("watched-tasks", settings.watched_task_interval, self.watched_tasks.poll_once)
        self.started = False

    # ---- lifecycle ----

    async def start(self) -> None:
        """Resolve identities, seed the caches, then start the interval loops."""
        for step, run in (
            ("agent id resolution", lambda: self.identity.resolve(self.client)),
            ("open task seed", self.new_tasks.poll_once),
            ("agent task seed", lambda: self.agent_tasks.poll_once(seed=True)),
        ):
            try:
                await run()
            except Exception as exc:  # noqa: BLE001
                logger.error("Startup %s failed: %s", step, exc)
        logger.info("Tracking %d agent tasks", len(self.cache))
        self.scheduler.start()
        self.started = True

    def stop(self) -> None:
        self.scheduler.cancel_all()
        self.started = False

    # ---- control operations ----

    async def push_tasks(self, tasks: list[dict]) -> int:
        logger.info("Manual push: %d task(s) to %d client(s)", len(tasks), self.hub.client_count())
        return await self.hub.broadcast({"type": "new_tasks", "tasks": tasks})

    async def record_payment(self, task_id: str, tx_id: str) -> int:
        self.payments[task_id] = tx_id
        logger.info("Stored payment tx for task %s: %s", task_id, tx_id)
        return await self.hub.broadcast({"type": "payment_tx", "taskId": task_id, "txId": tx_id})

    def payment_for(self, task_id: str) -> Optional[str]:
        return self.payments.get(task_id)

    def watch(self, task_id: str, status: Optional[str] = None) -> int:
        if self.cache.watch(task_id, status or "unknown"):
            logger.info("Now watching task %s", task_id)
        return len(self.cache)

    async def trigger_poll(self) -> int:
        return await self.hub.broadcast({"type": "poll_watched"})

    async def reload_clients(self) -> int:
        delivered = await self.hub.broadcast({"type": "reload"})
        logger.info("Reload signal sent to %d client(s)", delivered)
        return delivered

    async def query_state(self) -> dict[str, Any]:
        """Ask the first connected client for its state and wait for the answer."""
        conn = self.hub.first_open()
        if conn is None:
            return {"error": "no clients"}
        fut = self.state_query.begin()
        await self.hub.send(conn, {"type": "state_request"})
        return await self.state_query.wait(fut, self.settings.state_query_timeout)

    def handle_client_message(self, raw: str) -> None:
        """Interpret one inbound frame. Only ``state_response`` is acted on."""
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("Ignoring non-JSON client message")
            return
        if isinstance(data, dict) and data.get("type") == "state_response":
            if not self.state_query.resolve(data):
                logger.debug("state_response with no pending query")

    def status(self) -> dict[str, int]:
        return {
            "clients": self.hub.client_count(),
            "tracking": len(self.cache),
            "seen_new": len(self.seen),
            "agent_ids": len(self.identity.server_ids),
            "wallets": len(self.identity.wallets),
            "payments": len(self.payments),
        }
