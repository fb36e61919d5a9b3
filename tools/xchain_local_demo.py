#!/usr/bin/env python3
"""
Run a hub/spoke settlement round trip against in-process nodes.

lock on the spoke -> relay to the hub -> settle on the hub -> relay the
Settle message back to the spoke, then print both nodes' view.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.agents.relayer import Relayer
from src.core.errors import SettlementError
from src.core.params import SCALE_E18
from src.integration.config import load_deployment_yaml
from src.integration.node import build_nodes_from_deployment

DEFAULT_DEPLOYMENT = ROOT / "tools" / "local_deployment.yaml"


class _StepClock:
    """Deterministic clock: every read advances by `step` seconds."""

    def __init__(self, start: int, step: int) -> None:
        self._now = start
        self._step = step

    def __call__(self) -> int:
        self._now += self._step
        return self._now


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Cross-chain settlement local round trip")
    parser.add_argument("--deployment", default=str(DEFAULT_DEPLOYMENT), help="deployment YAML")
    parser.add_argument("--series", type=int, default=7)
    parser.add_argument("--amount", type=int, default=1000)
    parser.add_argument("--price", type=int, default=2_000, help="settlement price (whole units)")
    parser.add_argument("--strike", type=int, default=1_800, help="strike price (whole units)")
    parser.add_argument("--put", action="store_true", help="settle as a put instead of a call")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    deployment = load_deployment_yaml(args.deployment)
    if not deployment.relayers:
        print("[xchain-demo] deployment declares no relayer")
        return 2
    clock = _StepClock(start=1_700_000_000, step=1)
    nodes = build_nodes_from_deployment(deployment, clock=clock)
    hub_cfg = deployment.hub
    hub = nodes[hub_cfg.chain_id]
    spokes = [n for cid, n in sorted(nodes.items()) if cid != hub_cfg.chain_id]
    if not spokes:
        print("[xchain-demo] deployment declares no spoke")
        return 2
    spoke = spokes[0]
    relayer = Relayer(deployment.relayers[0].address, nodes)
    depositor = "0x" + "cc" * 20

    try:
        spoke.lock_collateral(args.series, args.amount, caller=depositor)
        spoke.sync_position(args.series, args.amount, args.amount, caller=relayer.address)
        report = relayer.relay_once(spoke)
        print(f"[xchain-demo] spoke -> hub: delivered={len(report.delivered)} failed={len(report.failed)}")

        plan = hub.initiate_settlement(
            args.series,
            args.price * SCALE_E18,
            args.strike * SCALE_E18,
            not args.put,
            caller=hub_cfg.owner,
        )
        report = relayer.relay_once(hub)
        print(f"[xchain-demo] hub -> spokes: delivered={len(report.delivered)} failed={len(report.failed)}")
    except SettlementError as exc:
        print(f"[xchain-demo] FAIL: {type(exc).__name__}: {exc}")
        return 1

    agg = hub.get_aggregated_position(args.series)
    summary = {
        "series_id": args.series,
        "payoff_e18": plan.payoff_e18,
        "net_settlement": plan.net_settlement,
        "hub_aggregate": {
            "total_long": agg.total_long,
            "total_short": agg.total_short,
            "total_collateral": agg.total_collateral,
            "settled": agg.settled,
        },
        "spoke_delta": spoke.get_settlement_delta(args.series, spoke.chain_id),
        "spoke_settled": spoke.get_aggregated_position(args.series).settled,
        "hub_state_root": hub.state_root(),
        "spoke_state_root": spoke.state_root(),
    }
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
