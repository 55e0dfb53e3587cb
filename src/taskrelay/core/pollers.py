"""The three polling loops that turn marketplace snapshots into push events.

Every poller exposes ``poll_once()``, which runs a single cycle and
returns the tasks it broadcast. A failed remote call is logged and
skipped; nothing is mutated for it and the next cycle tries again.
"""
from __future__ import annotations

import logging
from typing import Protocol

from taskrelay.core.broadcast import BroadcastHub
from taskrelay.core.identity import AgentIdentity
from taskrelay.core.task_cache import Observation, SeenTaskIds, TaskStatusCache, is_terminal, task_key
from taskrelay.integrations.marketplace import MarketplaceError

logger = logging.getLogger("taskrelay.pollers")

OPEN_TASK_NETWORKS = ("testnet", "mainnet")

AGENT_TASK_STATUSES = ("bidding", "assigned", "in-progress", "submitted", "completed")


class TaskSource(Protocol):
    async def list_tasks(self, status: str, network: str | None = None) -> list[dict]: ...

    async def get_task(self, task_id: str) -> dict: ...


class NewTaskPoller:
    """Announces open tasks that were not open on any earlier cycle."""

    def __init__(self, source: TaskSource, seen: SeenTaskIds, hub: BroadcastHub) -> None:
        self.source = source
        self.seen = seen
        self.hub = hub

    async def _fetch_open(self) -> list[dict]:
        tasks: list[dict] = []
        for network in OPEN_TASK_NETWORKS:
            try:
                tasks.extend(await self.source.list_tasks("open", network=network))
            except MarketplaceError as exc:
                logger.warning("Open task fetch failed (%s): %s", network, exc)
        return tasks

    async def poll_once(self) -> list[dict]:
        tasks = await self._fetch_open()
        ids = [key for key in (task_key(t.get("id")) for t in tasks) if key is not None]

        if not self.seen.seeded:
            total = self.seen.seed(ids)
            logger.info("Seeded %d existing open tasks", total)
            return []

        new_tasks = self.seen.unseen(tasks)
        self.seen.add_all(ids)
        if not new_tasks:
            return []
        for task in new_tasks:
            logger.info("New task: %s", task.get("title"))
        logger.info("Pushing %d new task(s) to %d client(s)", len(new_tasks), self.hub.client_count())
        await self.hub.broadcast({"type": "new_tasks", "tasks": new_tasks})
        return new_tasks


class AgentTaskPoller:
    """Tracks every task belonging to our agents across the status listings."""

    def __init__(
        self,
        source: TaskSource,
        cache: TaskStatusCache,
        identity: AgentIdentity,
        hub: BroadcastHub,
    ) -> None:
        self.source = source
        self.cache = cache
        self.identity = identity
        self.hub = hub

    async def poll_once(self, *, seed: bool = False) -> list[dict]:
        """Run one cycle.

        Interval cycles are skipped while no agent id is resolved or no
        client is connected. The startup call passes ``seed=True`` so the
        cache is filled even before the first client arrives.
        """
        if not self.identity.server_ids:
            return []
        if not seed and self.hub.client_count() == 0:
            return []

        updates: list[dict] = []
        for listing in AGENT_TASK_STATUSES:
            try:
                tasks = await self.source.list_tasks(listing)
            except MarketplaceError as exc:
                logger.warning("Agent task fetch failed (%s): %s", listing, exc)
                continue
            for task in tasks:
                task_id = task_key(task.get("id"))
                status = task.get("status")
                if task_id is None or not isinstance(status, str) or not self.identity.is_our_task(task):
                    continue
                prev = self.cache.get(task_id)
                result = self.cache.record_observation(task_id, status)
                if result is Observation.CHANGED:
                    logger.info('Task %s status: %s -> %s "%s"', task_id, prev, status, task.get("title"))
                    updates.append(task)
                elif result is Observation.FIRST_SEEN:
                    logger.info('Tracking agent task: %s (%s) "%s"', task_id, status, task.get("title"))

        if updates:
            logger.info("Pushing %d status update(s) to %d client(s)", len(updates), self.hub.client_count())
            await self.hub.broadcast({"type": "task_updates", "tasks": updates})
        return updates


class WatchedTaskPoller:
    """Re-fetches each non-terminal cached task individually.

    Catches tasks registered through the watch endpoint before they show up
    in any status listing.
    """

    def __init__(self, source: TaskSource, cache: TaskStatusCache, hub: BroadcastHub) -> None:
        self.source = source
        self.cache = cache
        self.hub = hub

    async def poll_once(self) -> list[dict]:
        if len(self.cache) == 0 or self.hub.client_count() == 0:
            return []

        updates: list[dict] = []
        for task_id, _ in self.cache.active_items():
            # another loop may have moved it to a terminal status meanwhile
            last_status = self.cache.get(task_id)
            if last_status is None or is_terminal(last_status):
                continue
            try:
                task = await self.source.get_task(task_id)
            except MarketplaceError as exc:
                logger.warning("Watched task fetch failed (%s): %s", task_id, exc)
                continue
            status = task.get("status")
            if not isinstance(status, str) or status == self.cache.get(task_id):
                continue
            logger.info("Task %s status: %s -> %s", task_id, last_status, status)
            self.cache.set(task_id, status)
            updates.append(task)

        if updates:
            logger.info("Pushing %d watched update(s) to %d client(s)", len(updates), self.hub.client_count())
            await self.hub.broadcast({"type": "task_updates", "tasks": updates})
        return updates
