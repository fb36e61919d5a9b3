"""
Settlement node configuration.

`NodeConfig` is validated on construction (fail-closed). Two loaders:
- `NodeConfig.from_env()` for single-node container deployments,
- `load_deployment_yaml()` for a whole multi-chain deployment described in
  one file (used by local tooling and tests).

Protocol parameters default to the interop values; overriding them is meant
for tests only.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

from ..core.params import (
    MAX_REGISTERED_CHAINS,
    MESSAGE_EXPIRY_SECONDS,
    MIN_SYNC_INTERVAL_SECONDS,
    SETTLEMENT_IMBALANCE_TOLERANCE_E18,
)
from ..state.canonical import ZERO_ADDRESS, canonical_address


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _require_positive_int(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{name} must be a positive int, got {value!r}")
    return value


@dataclass(frozen=True)
class NodeConfig:
    chain_id: int
    is_hub: bool
    hub_chain_id: int
    self_handle: str
    owner: str
    max_chains: int = MAX_REGISTERED_CHAINS
    message_expiry_s: int = MESSAGE_EXPIRY_SECONDS
    min_sync_interval_s: int = MIN_SYNC_INTERVAL_SECONDS
    imbalance_tolerance_e18: int = SETTLEMENT_IMBALANCE_TOLERANCE_E18

    def __post_init__(self) -> None:
        _require_positive_int(self.chain_id, "chain_id")
        _require_positive_int(self.hub_chain_id, "hub_chain_id")
        if self.is_hub and self.hub_chain_id != self.chain_id:
            raise ValueError("a hub node must have hub_chain_id == chain_id")
        if not self.is_hub and self.hub_chain_id == self.chain_id:
            raise ValueError("a spoke node must point at a different hub chain")
        handle = canonical_address(self.self_handle, name="self_handle")
        if handle == ZERO_ADDRESS:
            raise ValueError("self_handle must not be the zero address")
        object.__setattr__(self, "self_handle", handle)
        object.__setattr__(self, "owner", canonical_address(self.owner, name="owner"))
        _require_positive_int(self.max_chains, "max_chains")
        _require_positive_int(self.message_expiry_s, "message_expiry_s")
        if not isinstance(self.min_sync_interval_s, int) or self.min_sync_interval_s < 0:
            raise ValueError("min_sync_interval_s must be a non-negative int")
        if not isinstance(self.imbalance_tolerance_e18, int) or self.imbalance_tolerance_e18 < 0:
            raise ValueError("imbalance_tolerance_e18 must be a non-negative int")

    @classmethod
    def from_env(cls, prefix: str = "XCHAIN_") -> "NodeConfig":
        chain_id = _env_int(prefix + "CHAIN_ID", 0, lo=0, hi=2**63 - 1)
        is_hub = _env_bool(prefix + "IS_HUB", False)
        hub_chain_id = _env_int(prefix + "HUB_CHAIN_ID", chain_id if is_hub else 0, lo=0, hi=2**63 - 1)
        return cls(
            chain_id=chain_id,
            is_hub=is_hub,
            hub_chain_id=hub_chain_id,
            self_handle=_env_str(prefix + "SELF_HANDLE", ZERO_ADDRESS),
            owner=_env_str(prefix + "OWNER", ZERO_ADDRESS),
        )

    @classmethod
    def from_mapping(cls, obj: Mapping[str, Any], *, hub_chain_id: int) -> "NodeConfig":
        allowed = {
            "chain_id",
            "is_hub",
            "handle",
            "owner",
            "max_chains",
            "message_expiry_s",
            "min_sync_interval_s",
            "imbalance_tolerance_e18",
        }
        unknown = set(obj) - allowed
        if unknown:
            raise ValueError(f"unknown node config keys: {sorted(unknown)}")
        extra = {k: obj[k] for k in allowed - {"chain_id", "is_hub", "handle", "owner"} if k in obj}
        return cls(
            chain_id=obj["chain_id"],
            is_hub=bool(obj.get("is_hub", False)),
            hub_chain_id=hub_chain_id,
            self_handle=obj["handle"],
            owner=obj["owner"],
            **extra,
        )


@dataclass(frozen=True)
class RelayerEntry:
    address: str
    bls_pubkey: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", canonical_address(self.address, name="relayer address"))


@dataclass(frozen=True)
class DeploymentConfig:
    nodes: List[NodeConfig] = field(default_factory=list)
    relayers: List[RelayerEntry] = field(default_factory=list)

    @property
    def hub(self) -> NodeConfig:
        return next(n for n in self.nodes if n.is_hub)


def parse_deployment(obj: Mapping[str, Any]) -> DeploymentConfig:
    """Validate a deployment mapping: exactly one hub, unique chain ids."""
    if not isinstance(obj, Mapping):
        raise TypeError("deployment must be a mapping")
    raw_nodes = obj.get("nodes")
    if not isinstance(raw_nodes, list) or not raw_nodes:
        raise ValueError("deployment.nodes must be a non-empty list")
    hubs = [n for n in raw_nodes if isinstance(n, Mapping) and n.get("is_hub")]
    if len(hubs) != 1:
        raise ValueError(f"deployment must declare exactly one hub, found {len(hubs)}")
    hub_chain_id = hubs[0]["chain_id"]

    nodes = [NodeConfig.from_mapping(n, hub_chain_id=hub_chain_id) for n in raw_nodes]
    chain_ids = [n.chain_id for n in nodes]
    if len(set(chain_ids)) != len(chain_ids):
        raise ValueError("deployment chain ids must be unique")

    relayers = []
    for r in obj.get("relayers") or []:
        if not isinstance(r, Mapping):
            raise ValueError("relayer entries must be mappings")
        relayers.append(RelayerEntry(address=r["address"], bls_pubkey=r.get("bls_pubkey")))
    return DeploymentConfig(nodes=nodes, relayers=relayers)


def load_deployment_yaml(path: str | Path) -> DeploymentConfig:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return parse_deployment(obj)
