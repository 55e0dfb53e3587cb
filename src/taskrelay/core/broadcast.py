"""Push-channel fan-out to connected clients.

Delivery is best effort and at most once: a message goes to every
connection that is open at send time, and a client that connects later
never sees it.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

from starlette.websockets import WebSocketState

from taskrelay.core.logging_config import log_broadcast

logger = logging.getLogger("taskrelay.broadcast")

MESSAGE_TYPES = (
    "new_tasks",
    "task_updates",
    "payment_tx",
    "poll_watched",
    "reload",
    "state_request",
    "state_response",
)


class Connection(Protocol):
    client_state: WebSocketState
    application_state: WebSocketState

    async def send_text(self, data: str) -> None: ...


def is_open(conn: Connection) -> bool:
    return (
        conn.client_state == WebSocketState.CONNECTED
        and conn.application_state == WebSocketState.CONNECTED
    )


class BroadcastHub:
    def __init__(self) -> None:
        # dict keeps connection order for first_open()
        self._connections: dict[int, Connection] = {}

    def add(self, conn: Connection) -> None:
        self._connections[id(conn)] = conn

    def discard(self, conn: Connection) -> None:
        self._connections.pop(id(conn), None)

    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    def open_connections(self) -> list[Connection]:
        return [conn for conn in self._connections.values() if is_open(conn)]

    def client_count(self) -> int:
        return len(self.open_connections())

    def first_open(self) -> Optional[Connection]:
        for conn in self._connections.values():
            if is_open(conn):
                return conn
        return None

    async def send(self, conn: Connection, message: dict[str, Any]) -> bool:
        """Send to one connection. Returns False if it was closed or the send failed."""
        return await self._send_text(conn, json.dumps(message))

    async def _send_text(self, conn: Connection, text: str) -> bool:
        if not is_open(conn):
            return False
        try:
            await conn.send_text(text)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Dropping connection after failed send: %s", exc)
            self.discard(conn)
            return False
        return True

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send *message* to every open connection. Returns the delivery count."""
        msg_type = message.get("type", "")
        if msg_type not in MESSAGE_TYPES:
            logger.warning("Broadcasting unknown message type %r", msg_type)
        text = json.dumps(message)
        targets = self.open_connections()
        delivered = 0
        for conn in targets:
            if await self._send_text(conn, text):
                delivered += 1
        tasks = message.get("tasks")
        task_ids = [str(t.get("id")) for t in tasks if isinstance(t, dict)] if isinstance(tasks, list) else None
        log_broadcast(msg_type, delivered, len(targets), task_ids)
        return delivered


class StateQuery:
    """One pending request/response correlation over the push channel.

    Only one query is tracked at a time. Beginning a new query replaces the
    pending one without resolving it, so the earlier caller is released only
    by its own timeout.
    """

    def __init__(self) -> None:
        self._pending: Optional[asyncio.Future] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def begin(self) -> asyncio.Future:
        if self.pending:
            logger.warning("State query replaced while another was pending; earlier caller will time out")
        fut = asyncio.get_running_loop().create_future()
        self._pending = fut
        return fut

    def resolve(self, payload: dict[str, Any]) -> bool:
        fut = self._pending
        if fut is None or fut.done():
            return False
        self._pending = None
        fut.set_result(payload)
        return True

    async def wait(self, fut: asyncio.Future, timeout: float) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError:
            if self._pending is fut:
                self._pending = None
            return {"error": "timeout"}
