"""Last-observed task status per task id, and the seen-new-task set.

The status cache is the single source of truth for change detection: a
poller only broadcasts a task when ``record_observation`` reports
``CHANGED``.
"""
from __future__ import annotations

import enum
from typing import Dict, Iterable, Optional

TERMINAL_STATUSES = frozenset({"completed", "cancelled", "rejected", "expired"})


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def task_key(value: object) -> Optional[str]:
    """Normalize a remote id to the string used as a cache key.

    Only strings and integers qualify; anything else yields None.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return str(value)


class Observation(enum.Enum):
    FIRST_SEEN = "first_seen"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class TaskStatusCache:
    def __init__(self) -> None:
        self._statuses: Dict[str, str] = {}

    def record_observation(self, task_id: str, status: str) -> Observation:
        """Compare *status* against the cached one and store it.

        A first sighting is stored but not reported as a change, so the
        backlog of existing tasks is never announced at boot.
        """
        if task_id not in self._statuses:
            self._statuses[task_id] = status
            return Observation.FIRST_SEEN
        if self._statuses[task_id] == status:
            return Observation.UNCHANGED
        self._statuses[task_id] = status
        return Observation.CHANGED

    def watch(self, task_id: str, status: str = "unknown") -> bool:
        """Start tracking *task_id* unless already tracked. Returns True if added."""
        if task_id in self._statuses:
            return False
        self._statuses[task_id] = status
        return True

    def get(self, task_id: str) -> Optional[str]:
        return self._statuses.get(task_id)

    def set(self, task_id: str, status: str) -> None:
        self._statuses[task_id] = status

    def active_items(self) -> list[tuple[str, str]]:
        """Snapshot of entries whose current status is not terminal."""
        return [(tid, status) for tid, status in self._statuses.items() if not is_terminal(status)]

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._statuses

    def __len__(self) -> int:
        return len(self._statuses)


class SeenTaskIds:
    """Ids already offered to clients as newly discovered open tasks."""

    def __init__(self) -> None:
        self._ids: set[str] = set()
        self.seeded = False

    def seed(self, task_ids: Iterable[str]) -> int:
        self._ids.update(task_ids)
        self.seeded = True
        return len(self._ids)

    def unseen(self, tasks: Iterable[dict]) -> list[dict]:
        """Tasks whose id has not been seen, in input order, without duplicates."""
        result: list[dict] = []
        picked: set[str] = set()
        for task in tasks:
            tid = task_key(task.get("id"))
            if tid is None or tid in self._ids or tid in picked:
                continue
            picked.add(tid)
            result.append(task)
        return result

    def add_all(self, task_ids: Iterable[str]) -> None:
        self._ids.update(task_ids)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
