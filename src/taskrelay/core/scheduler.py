from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("taskrelay.scheduler")

SleepFn = Callable[[float], Awaitable[None]]
CycleFn = Callable[[], Awaitable[object]]


class PeriodicTask:
    """Run *callback* every *interval* seconds on the running event loop.

    Each tick starts the cycle as its own task, so a slow cycle does not
    delay the next one and cycles of the same task may overlap. Errors
    escaping a cycle are logged; the schedule keeps going.
    """

    def __init__(self, name: str, interval: float, callback: CycleFn, sleep: SleepFn = asyncio.sleep) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"periodic-{self.name}")

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            cycle = asyncio.get_running_loop().create_task(self._cycle(), name=f"cycle-{self.name}")
            self._inflight.add(cycle)
            cycle.add_done_callback(self._inflight.discard)

    async def _cycle(self) -> None:
        self.runs += 1
        try:
            await self._callback()
        except Exception as exc:  # noqa: BLE001
            logger.error("%s cycle failed: %s", self.name, exc)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        for cycle in list(self._inflight):
            cycle.cancel()
        self._inflight.clear()


class Scheduler:
    """Owns the periodic tasks of one relay instance."""

    def __init__(self, sleep: SleepFn = asyncio.sleep) -> None:
        self._sleep = sleep
        self._tasks: dict[str, PeriodicTask] = {}

    def every(self, name: str, interval: float, callback: CycleFn) -> PeriodicTask:
        task = PeriodicTask(name, interval, callback, sleep=self._sleep)
        self._tasks[name] = task
        return task

    def get(self, name: str) -> Optional[PeriodicTask]:
        return self._tasks.get(name)

    def list(self) -> list[PeriodicTask]:
        return list(self._tasks.values())

    def start(self) -> None:
        for task in self._tasks.values():
            task.start()
        logger.info(
            "Started %s",
            ", ".join(f"{t.name} every {t.interval:g}s" for t in self._tasks.values()),
        )

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            task.cancel()
