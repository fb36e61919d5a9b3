from __future__ import annotations

import pytest

from conftest import FakeClock
from src.core.params import MAX_REGISTERED_CHAINS, MESSAGE_EXPIRY_SECONDS
from src.integration.attestation import BlsRelayerAttestor, bls_pubkey_hex_from_privkey
from src.integration.config import NodeConfig, load_deployment_yaml, parse_deployment
from src.integration.node import build_nodes_from_deployment

OWNER = "0x" + "aa" * 20
RELAYER = "0x" + "bb" * 20

DEPLOYMENT_YAML = """\
nodes:
  - chain_id: 1
    is_hub: true
    handle: "0x1111111111111111111111111111111111111111"
    owner: "0x00000000000000000000000000000000000000AA"
  - chain_id: 42161
    handle: "0x4242424242424242424242424242424242424242"
    owner: "0x00000000000000000000000000000000000000aa"
    min_sync_interval_s: 60
relayers:
  - address: "0x00000000000000000000000000000000000000bb"
"""


# ---------------------------------------------------------------------------
# NodeConfig
# ---------------------------------------------------------------------------


def test_defaults_match_protocol_parameters() -> None:
    cfg = NodeConfig(chain_id=1, is_hub=True, hub_chain_id=1, self_handle="0x" + "11" * 20, owner=OWNER)
    assert cfg.max_chains == MAX_REGISTERED_CHAINS
    assert cfg.message_expiry_s == MESSAGE_EXPIRY_SECONDS


def test_addresses_are_canonicalized() -> None:
    cfg = NodeConfig(
        chain_id=5,
        is_hub=False,
        hub_chain_id=1,
        self_handle="AB" * 20,
        owner="0x" + "CD" * 20,
    )
    assert cfg.self_handle == "0x" + "ab" * 20
    assert cfg.owner == "0x" + "cd" * 20


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(chain_id=0, is_hub=True, hub_chain_id=1),
        dict(chain_id=1, is_hub=True, hub_chain_id=2),
        dict(chain_id=2, is_hub=False, hub_chain_id=2),
        dict(chain_id=2, is_hub=False, hub_chain_id=1, max_chains=0),
        dict(chain_id=2, is_hub=False, hub_chain_id=1, min_sync_interval_s=-1),
    ],
)
def test_invalid_configs_fail_closed(kwargs) -> None:
    with pytest.raises(ValueError):
        NodeConfig(self_handle="0x" + "11" * 20, owner=OWNER, **kwargs)


def test_zero_handle_rejected() -> None:
    with pytest.raises(ValueError):
        NodeConfig(chain_id=1, is_hub=True, hub_chain_id=1, self_handle="0x" + "00" * 20, owner=OWNER)


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("XCHAIN_CHAIN_ID", "42161")
    monkeypatch.setenv("XCHAIN_IS_HUB", "no")
    monkeypatch.setenv("XCHAIN_HUB_CHAIN_ID", "1")
    monkeypatch.setenv("XCHAIN_SELF_HANDLE", "0x" + "42" * 20)
    monkeypatch.setenv("XCHAIN_OWNER", OWNER)
    cfg = NodeConfig.from_env()
    assert cfg.chain_id == 42161
    assert cfg.is_hub is False
    assert cfg.hub_chain_id == 1


def test_from_env_hub_defaults_hub_chain(monkeypatch) -> None:
    monkeypatch.setenv("XCHAIN_CHAIN_ID", "1")
    monkeypatch.setenv("XCHAIN_IS_HUB", "true")
    monkeypatch.delenv("XCHAIN_HUB_CHAIN_ID", raising=False)
    monkeypatch.setenv("XCHAIN_SELF_HANDLE", "0x" + "11" * 20)
    monkeypatch.setenv("XCHAIN_OWNER", OWNER)
    cfg = NodeConfig.from_env()
    assert cfg.is_hub and cfg.hub_chain_id == 1


def test_from_env_missing_chain_fails(monkeypatch) -> None:
    monkeypatch.delenv("XCHAIN_CHAIN_ID", raising=False)
    with pytest.raises(ValueError):
        NodeConfig.from_env()


# ---------------------------------------------------------------------------
# Deployment files
# ---------------------------------------------------------------------------


def test_load_deployment_yaml(tmp_path) -> None:
    path = tmp_path / "deployment.yaml"
    path.write_text(DEPLOYMENT_YAML, encoding="utf-8")
    deployment = load_deployment_yaml(path)

    assert deployment.hub.chain_id == 1
    assert [n.chain_id for n in deployment.nodes] == [1, 42161]
    spoke = deployment.nodes[1]
    assert spoke.hub_chain_id == 1
    assert spoke.min_sync_interval_s == 60
    assert deployment.nodes[0].owner == "0x" + "00" * 19 + "aa"
    assert deployment.relayers[0].address == "0x" + "00" * 19 + "bb"


def test_deployment_requires_exactly_one_hub() -> None:
    node = {"chain_id": 2, "handle": "0x" + "22" * 20, "owner": OWNER}
    with pytest.raises(ValueError):
        parse_deployment({"nodes": [node]})
    hub_a = {**node, "chain_id": 1, "is_hub": True}
    hub_b = {**node, "chain_id": 3, "is_hub": True}
    with pytest.raises(ValueError):
        parse_deployment({"nodes": [hub_a, hub_b]})


def test_deployment_rejects_duplicates_and_unknown_keys() -> None:
    hub = {"chain_id": 1, "is_hub": True, "handle": "0x" + "11" * 20, "owner": OWNER}
    dup = {"chain_id": 1, "handle": "0x" + "22" * 20, "owner": OWNER}
    with pytest.raises(ValueError):
        parse_deployment({"nodes": [hub, dup]})
    with pytest.raises(ValueError):
        parse_deployment({"nodes": [{**hub, "colour": "blue"}]})
    with pytest.raises(ValueError):
        parse_deployment({"nodes": []})


def test_build_nodes_wires_registry_and_relayers(tmp_path) -> None:
    path = tmp_path / "deployment.yaml"
    path.write_text(DEPLOYMENT_YAML, encoding="utf-8")
    nodes = build_nodes_from_deployment(load_deployment_yaml(path), clock=FakeClock())

    hub, spoke = nodes[1], nodes[42161]
    assert hub.is_hub and not spoke.is_hub
    assert hub.registered_chains() == [1, 42161]
    assert spoke.registered_chains() == [42161, 1]
    assert hub.is_relayer(RELAYER) and spoke.is_relayer(RELAYER)
    assert spoke.config.min_sync_interval_s == 60


def test_build_nodes_uses_bls_when_keys_are_declared() -> None:
    pubkey = bls_pubkey_hex_from_privkey(7)
    deployment = parse_deployment(
        {
            "nodes": [{"chain_id": 1, "is_hub": True, "handle": "0x" + "11" * 20, "owner": OWNER}],
            "relayers": [{"address": RELAYER, "bls_pubkey": pubkey}],
        }
    )
    nodes = build_nodes_from_deployment(deployment, clock=FakeClock())
    assert isinstance(nodes[1]._attestor, BlsRelayerAttestor)
