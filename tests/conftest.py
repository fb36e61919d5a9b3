"""
Shared fixtures for settlement node tests.

- FakeClock: deterministic, manually advanced time source
- make_node: single node builder with test-friendly defaults
- network: hub (chain 1) + spoke (chain 42161), registered with each other,
  with one authorized relayer on both
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from src.integration.config import NodeConfig
from src.integration.node import SettlementNode

HUB_CHAIN = 1
SPOKE_CHAIN = 42161

OWNER = "0x" + "0a" * 20
RELAYER = "0x" + "0b" * 20
USER = "0x" + "0c" * 20
HUB_HANDLE = "0x" + "11" * 20
SPOKE_HANDLE = "0x" + "42" * 20
TOKEN = "0x" + "70" * 20

T0 = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


def handle_for(chain_id: int) -> str:
    return "0x" + format(chain_id, "040x")


def make_node(
    chain_id: int,
    *,
    hub_chain_id: int,
    clock: FakeClock,
    attestor=None,
    handle: str | None = None,
    **overrides,
) -> SettlementNode:
    cfg = NodeConfig(
        chain_id=chain_id,
        is_hub=chain_id == hub_chain_id,
        hub_chain_id=hub_chain_id,
        self_handle=handle or handle_for(chain_id),
        owner=OWNER,
        **overrides,
    )
    return SettlementNode(cfg, clock=clock, attestor=attestor)


@dataclass
class Network:
    hub: SettlementNode
    spoke: SettlementNode
    clock: FakeClock
    owner: str = OWNER
    relayer: str = RELAYER
    user: str = USER


def wire(hub: SettlementNode, spoke: SettlementNode) -> None:
    hub.register_chain(spoke.chain_id, spoke.config.self_handle, caller=OWNER)
    spoke.register_chain(hub.chain_id, hub.config.self_handle, caller=OWNER)
    hub.set_relayer(RELAYER, True, caller=OWNER)
    spoke.set_relayer(RELAYER, True, caller=OWNER)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def network(clock: FakeClock) -> Network:
    hub = make_node(HUB_CHAIN, hub_chain_id=HUB_CHAIN, clock=clock, handle=HUB_HANDLE)
    spoke = make_node(SPOKE_CHAIN, hub_chain_id=HUB_CHAIN, clock=clock, handle=SPOKE_HANDLE)
    wire(hub, spoke)
    return Network(hub=hub, spoke=spoke, clock=clock)
