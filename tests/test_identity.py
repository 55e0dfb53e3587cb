import asyncio

from taskrelay.core.identity import AgentIdentity

from fakes import FakeMarketplace


def test_resolve_matches_wallets() -> None:
    market = FakeMarketplace()
    market.agents = [
        {"id": "agent-1", "walletAddress": "ST1OURS"},
        {"agentId": "agent-2", "walletAddress": "SP1OURS"},
        {"id": "agent-3", "walletAddress": "ST1THEIRS"},
        {"walletAddress": "ST1OURS"},
    ]
    identity = AgentIdentity.from_wallets({"ST1OURS", "SP1OURS"})
    count = asyncio.run(identity.resolve(market))
    assert count == 2
    assert identity.server_ids == {"agent-1", "agent-2"}


def test_resolve_failure_is_not_fatal() -> None:
    market = FakeMarketplace()
    market.failing.add("agents")
    identity = AgentIdentity.from_wallets({"ST1OURS"})
    assert asyncio.run(identity.resolve(market)) == 0
    assert identity.server_ids == set()


def test_is_our_task() -> None:
    identity = AgentIdentity(wallets={"ST1OURS"}, server_ids={"agent-1"})
    assert identity.is_our_task({"assignedAgent": "agent-1"})
    assert identity.is_our_task({"agentId": "agent-1"})
    assert identity.is_our_task({"posterAddress": "ST1OURS"})
    assert identity.is_our_task({"assignedAgent": "ST1OURS"})
    assert not identity.is_our_task({"assignedAgent": "agent-9", "posterAddress": "ST1THEIRS"})
    assert not identity.is_our_task({})


def test_is_our_task_ignores_non_string_fields() -> None:
    identity = AgentIdentity(wallets={"ST1OURS"}, server_ids={"agent-1"})
    assert not identity.is_our_task({"assignedAgent": {"id": "agent-1"}, "posterAddress": ["ST1OURS"]})


def test_resolve_accepts_numeric_ids() -> None:
    market = FakeMarketplace()
    market.agents = [
        {"id": 7, "walletAddress": "ST1OURS"},
        {"id": "agent-1", "walletAddress": "SP1OURS"},
    ]
    identity = AgentIdentity.from_wallets({"ST1OURS", "SP1OURS"})
    assert asyncio.run(identity.resolve(market)) == 2
    assert identity.server_ids == {"7", "agent-1"}
    assert identity.is_our_task({"assignedAgent": 7})
    assert identity.is_our_task({"agentId": "7"})


def test_resolve_skips_unusable_ids() -> None:
    market = FakeMarketplace()
    market.agents = [
        {"id": {"x": 1}, "walletAddress": "ST1OURS"},
        {"id": ["agent-9"], "walletAddress": "ST1OURS"},
        {"id": True, "walletAddress": "ST1OURS"},
        "not-an-agent",
        {"id": "agent-1", "walletAddress": "ST1OURS"},
    ]
    identity = AgentIdentity.from_wallets({"ST1OURS"})
    assert asyncio.run(identity.resolve(market)) == 1
    assert identity.server_ids == {"agent-1"}
