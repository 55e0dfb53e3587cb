from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from taskrelay.core.task_cache import task_key
from taskrelay.integrations.marketplace import MarketplaceError

logger = logging.getLogger("taskrelay.identity")


def _member(value: object, pool: set[str]) -> bool:
    key = task_key(value)
    return key is not None and key in pool


class AgentDirectory(Protocol):
    async def list_agents(self) -> list[dict]: ...


@dataclass
class AgentIdentity:
    """Local wallet addresses plus the remote agent ids they resolve to."""

    wallets: set[str] = field(default_factory=set)
    server_ids: set[str] = field(default_factory=set)

    @classmethod
    def from_wallets(cls, addresses: Iterable[str]) -> "AgentIdentity":
        return cls(wallets=set(addresses))

    async def resolve(self, directory: AgentDirectory) -> int:
        """Match the remote agent directory against local wallets.

        Best effort: any failure leaves ``server_ids`` as it was and is
        only logged. Returns the number of resolved ids.
        """
        try:
            agents = await directory.list_agents()
        except MarketplaceError as exc:
            logger.warning("Agent directory unavailable, continuing without agent ids: %s", exc)
            return len(self.server_ids)
        for agent in agents:
            if not isinstance(agent, dict) or not _member(agent.get("walletAddress"), self.wallets):
                continue
            raw_id = agent.get("id") or agent.get("agentId")
            server_id = task_key(raw_id)
            if server_id is None:
                logger.debug("Skipping agent with unusable id: %r", raw_id)
                continue
            self.server_ids.add(server_id)
        logger.info(
            "Resolved %d agent server IDs: %s",
            len(self.server_ids),
            ", ".join(sorted(self.server_ids)),
        )
        return len(self.server_ids)

    def is_our_task(self, task: dict) -> bool:
        """True if the task's assignee or poster is one of our identities."""
        assigned = task.get("assignedAgent")
        return (
            _member(assigned, self.server_ids)
            or _member(task.get("agentId"), self.server_ids)
            or _member(task.get("posterAddress"), self.wallets)
            or _member(assigned, self.wallets)
        )
