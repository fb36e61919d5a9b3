"""
Settlement node (imperative shell).

One `SettlementNode` is deployed per participating chain: exactly one hub
(aggregation and settlement authority), every other node a spoke. Nodes never
call each other. A state change that must reach another chain appends a
message to the local ledger; an external relayer observes it and replays it
into the destination node through a relayer-gated entrypoint.

Execution model:
- every public entrypoint is one atomic transaction against local state:
  it either commits fully or raises a `SettlementError` and leaves the node
  (ledger, events and counters included) exactly as it was,
- role gates (owner / relayer / hub / spoke) run before any effect,
- the pure rules live in `src/core`; this module only sequences them, emits
  messages and events, and logs.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..core.aggregation import recompute_aggregate
from ..core.errors import (
    ChainNotActive,
    InsufficientCollateral,
    InvalidParameterError,
    NodeNotPaused,
    NodePaused,
    NotHub,
    NotOwner,
    NotRelayer,
    NotSpoke,
    SeriesAlreadySettled,
    SettlementError,
    SyncTooFrequent,
    ZeroAmount,
)
from ..core.rebalance_rules import rebalance_legs, validate_rebalance_request
from ..core.settlement_engine import (
    SettlementPlan,
    apply_relayed_settlement,
    apply_settlement_plan,
    plan_settlement,
)
from ..state.canonical import ZERO_ADDRESS, canonical_address
from ..state.messages import CrossChainMessage, MessageKind, MessageLedger
from ..state.node_state import NodeState
from ..state.positions import (
    AggregatedPosition,
    ChainPositionSnapshot,
    validate_amount,
    validate_series_id,
)
from ..state.rebalance import RebalanceRequest
from ..state.registry import ChainDeployment, ChainRegistry, validate_chain_id
from ..state.state_root import compute_node_state_root
from .attestation import BlsRelayerAttestor, RelayerAttestor, TrustedRelayerAttestor
from .config import DeploymentConfig, NodeConfig
from .events import Event, EventLog

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def _addr(value: str, *, name: str = "address") -> str:
    try:
        return canonical_address(value, name=name)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(str(exc)) from exc


def _positive_amount(amount: int, *, name: str = "amount") -> int:
    validate_amount(amount, name=name)
    if amount == 0:
        raise ZeroAmount(name)
    return amount


class SettlementNode:
    """Hub or spoke settlement node for one chain."""

    def __init__(
        self,
        config: NodeConfig,
        *,
        clock: Clock,
        attestor: Optional[RelayerAttestor] = None,
    ) -> None:
        self.config = config
        self._clock = clock
        self._attestor = attestor if attestor is not None else TrustedRelayerAttestor()
        registry = ChainRegistry(
            self_chain_id=config.chain_id,
            self_handle=config.self_handle,
            max_chains=config.max_chains,
        )
        self._state = NodeState(
            registry=registry,
            ledger=MessageLedger(expiry_s=config.message_expiry_s),
        )
        self.events = EventLog()
        logger.info(
            "chain %s: %s node started (hub=%s)",
            config.chain_id,
            "hub" if config.is_hub else "spoke",
            config.hub_chain_id,
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def chain_id(self) -> int:
        return self.config.chain_id

    @property
    def is_hub(self) -> bool:
        return self.config.is_hub

    def _now(self) -> int:
        now = int(self._clock())
        if now < 0:
            raise InvalidParameterError(f"clock returned a negative timestamp: {now}")
        return now

    @contextmanager
    def _transaction(self, entrypoint: str) -> Iterator[NodeState]:
        saved = copy.deepcopy(self._state)
        mark = len(self.events)
        try:
            yield self._state
        except Exception as exc:
            self._state = saved
            self.events.truncate(mark)
            if isinstance(exc, SettlementError):
                logger.warning(
                    "chain %s: %s rejected: %s: %s",
                    self.chain_id,
                    entrypoint,
                    type(exc).__name__,
                    exc,
                )
            raise

    def _only_owner(self, caller: str) -> str:
        who = _addr(caller, name="caller")
        if who != self.config.owner:
            raise NotOwner(who)
        return who

    def _only_relayer(
        self,
        caller: str,
        action: str,
        payload: Dict[str, Any],
        proof: Optional[str],
    ) -> str:
        who = _addr(caller, name="caller")
        if not self._state.is_relayer(who):
            raise NotRelayer(who)
        self._attestor.check(
            caller=who,
            action=action,
            payload={"node_chain_id": self.chain_id, **payload},
            proof=proof,
        )
        return who

    def _only_hub(self) -> None:
        if not self.is_hub:
            raise NotHub(self.chain_id)

    def _only_spoke(self) -> None:
        if self.is_hub:
            raise NotSpoke(self.chain_id)

    def _when_not_paused(self) -> None:
        if self._state.paused:
            raise NodePaused()

    def _recompute(self, series_id: int) -> AggregatedPosition:
        state = self._state
        return recompute_aggregate(state.positions, series_id, state.registry.chain_ids())

    def _send(
        self,
        *,
        kind: MessageKind,
        source: int,
        destination: int,
        series_id: int,
        amount: int,
        sender: str,
        now: int,
        delta: int = 0,
        rebalance_id: int = 0,
    ) -> CrossChainMessage:
        msg = self._state.ledger.send(
            source=source,
            destination=destination,
            kind=kind,
            series_id=series_id,
            amount=amount,
            sender=sender,
            now=now,
            delta=delta,
            rebalance_id=rebalance_id,
        )
        self.events.emit(Event.MESSAGE_SENT, timestamp=now, **msg.to_envelope())
        logger.debug(
            "chain %s: sent %s %s -> %s (%s)",
            self.chain_id,
            kind.value,
            source,
            destination,
            msg.message_id,
        )
        return msg

    def _send_to_hub(self, kind: MessageKind, series_id: int, amount: int, sender: str, now: int) -> Optional[str]:
        if self.is_hub:
            return None
        msg = self._send(
            kind=kind,
            source=self.chain_id,
            destination=self.config.hub_chain_id,
            series_id=series_id,
            amount=amount,
            sender=sender,
            now=now,
        )
        return msg.message_id

    def _record_delivery(self, source_chain_id: int, message_id: str) -> None:
        try:
            self._state.replay.record(source_chain_id, message_id)
        except (TypeError, ValueError) as exc:
            if isinstance(exc, SettlementError):
                raise
            raise InvalidParameterError(str(exc)) from exc

    def _sync_remote_collateral(self, chain_id: int) -> None:
        """Hub view of a remote chain's collateral: the sum of its relayed snapshots."""
        state = self._state
        reported = sum(
            snap.locked_collateral
            for (_series, cid), snap in state.positions.all_snapshots().items()
            if cid == chain_id
        )
        current = state.registry.require(chain_id).total_collateral_locked
        state.registry.adjust_collateral(chain_id, reported - current)

    # ------------------------------------------------------------------
    # Owner-gated
    # ------------------------------------------------------------------

    def register_chain(self, chain_id: int, handle: str, *, caller: str) -> ChainDeployment:
        with self._transaction("register_chain") as state:
            self._only_owner(caller)
            deployment = state.registry.register(chain_id, handle)
            now = self._now()
            self.events.emit(Event.CHAIN_REGISTERED, timestamp=now, chain_id=chain_id, handle=deployment.handle)
        logger.info("chain %s: registered chain %s at %s", self.chain_id, chain_id, deployment.handle)
        return deployment

    def deactivate_chain(self, chain_id: int, *, caller: str) -> None:
        self._set_chain_active(chain_id, False, caller=caller)

    def activate_chain(self, chain_id: int, *, caller: str) -> None:
        self._set_chain_active(chain_id, True, caller=caller)

    def _set_chain_active(self, chain_id: int, active: bool, *, caller: str) -> None:
        entrypoint = "activate_chain" if active else "deactivate_chain"
        with self._transaction(entrypoint) as state:
            self._only_owner(caller)
            changed = state.registry.set_active(chain_id, active)
            if changed:
                self.events.emit(
                    Event.CHAIN_ACTIVATED if active else Event.CHAIN_DEACTIVATED,
                    timestamp=self._now(),
                    chain_id=chain_id,
                )
        if changed:
            logger.info("chain %s: chain %s active=%s", self.chain_id, chain_id, active)

    def set_relayer(self, relayer: str, authorized: bool, *, caller: str) -> None:
        with self._transaction("set_relayer") as state:
            self._only_owner(caller)
            who = _addr(relayer, name="relayer")
            if who == ZERO_ADDRESS:
                raise InvalidParameterError("relayer must not be the zero address")
            state.relayers[who] = bool(authorized)
            self.events.emit(Event.RELAYER_SET, timestamp=self._now(), relayer=who, authorized=bool(authorized))
        logger.info("chain %s: relayer %s authorized=%s", self.chain_id, who, bool(authorized))

    def pause(self, *, caller: str) -> None:
        with self._transaction("pause") as state:
            self._only_owner(caller)
            if state.paused:
                raise NodePaused()
            state.paused = True
            self.events.emit(Event.PAUSED, timestamp=self._now())
        logger.info("chain %s: paused", self.chain_id)

    def unpause(self, *, caller: str) -> None:
        with self._transaction("unpause") as state:
            self._only_owner(caller)
            if not state.paused:
                raise NodeNotPaused()
            state.paused = False
            self.events.emit(Event.UNPAUSED, timestamp=self._now())
        logger.info("chain %s: unpaused", self.chain_id)

    def set_collateral_asset(self, asset: str, *, caller: str) -> None:
        with self._transaction("set_collateral_asset") as state:
            self._only_owner(caller)
            a = _addr(asset, name="asset")
            if a == ZERO_ADDRESS:
                raise InvalidParameterError("collateral asset must not be the zero address")
            state.collateral_asset = a
            self.events.emit(Event.COLLATERAL_ASSET_SET, timestamp=self._now(), asset=a)
        logger.info("chain %s: collateral asset set to %s", self.chain_id, a)

    def emergency_withdraw(self, amount: int, recipient: str, *, caller: str) -> int:
        """Write down tracked local collateral while paused. Moves no assets."""
        with self._transaction("emergency_withdraw") as state:
            self._only_owner(caller)
            if not state.paused:
                raise NodeNotPaused()
            _positive_amount(amount)
            to = _addr(recipient, name="recipient")
            if amount > state.total_local_collateral:
                raise InsufficientCollateral(amount, state.total_local_collateral)
            state.total_local_collateral -= amount
            state.registry.adjust_collateral(self.chain_id, -amount)
            self.events.emit(Event.EMERGENCY_WITHDRAWAL, timestamp=self._now(), amount=amount, recipient=to)
        logger.warning("chain %s: emergency withdrawal of %s to %s", self.chain_id, amount, to)
        return amount

    def initiate_settlement(
        self,
        series_id: int,
        settlement_price_e18: int,
        strike_e18: int,
        is_call: bool,
        *,
        caller: str,
    ) -> SettlementPlan:
        """Hub: price every chain's book, check global balance, settle, notify spokes."""
        with self._transaction("initiate_settlement") as state:
            sender = self._only_owner(caller)
            self._only_hub()
            validate_series_id(series_id)
            plan = plan_settlement(
                state.positions,
                series_id,
                state.registry.chain_ids(),
                settlement_price_e18=settlement_price_e18,
                strike_e18=strike_e18,
                is_call=is_call,
                tolerance_e18=self.config.imbalance_tolerance_e18,
            )
            apply_settlement_plan(state.positions, plan)
            now = self._now()
            for leg in plan.legs:
                state.registry.add_position_value(leg.chain_id, leg.delta)
                if leg.chain_id == self.chain_id:
                    continue
                self._send(
                    kind=MessageKind.SETTLE,
                    source=self.chain_id,
                    destination=leg.chain_id,
                    series_id=series_id,
                    amount=leg.long_amount,
                    sender=sender,
                    now=now,
                    delta=leg.delta,
                )
            self.events.emit(
                Event.SETTLEMENT_INITIATED,
                timestamp=now,
                series_id=series_id,
                settlement_price_e18=settlement_price_e18,
                net_settlement=plan.net_settlement,
                chains=len(plan.legs),
            )
        logger.info(
            "chain %s: settled series %s at %s (net=%s, legs=%s)",
            self.chain_id,
            series_id,
            settlement_price_e18,
            plan.net_settlement,
            len(plan.legs),
        )
        return plan

    def request_rebalance(self, from_chain: int, to_chain: int, token: str, amount: int, *, caller: str) -> int:
        with self._transaction("request_rebalance") as state:
            sender = self._only_owner(caller)
            validate_rebalance_request(from_chain, to_chain, amount)
            for chain_id in (from_chain, to_chain):
                state.registry.require(chain_id)
                if not state.registry.is_active(chain_id):
                    raise ChainNotActive(chain_id)
            tok = _addr(token, name="token")
            now = self._now()
            req = state.rebalances.create(from_chain=from_chain, to_chain=to_chain, token=tok, amount=amount, now=now)
            self._send(
                kind=MessageKind.LIQUIDITY_REBALANCE,
                source=from_chain,
                destination=to_chain,
                series_id=0,
                amount=amount,
                sender=sender,
                now=now,
                rebalance_id=req.rebalance_id,
            )
            self.events.emit(
                Event.REBALANCE_REQUESTED,
                timestamp=now,
                rebalance_id=req.rebalance_id,
                from_chain=from_chain,
                to_chain=to_chain,
                amount=amount,
            )
        logger.info(
            "chain %s: rebalance %s requested %s -> %s amount=%s",
            self.chain_id,
            req.rebalance_id,
            from_chain,
            to_chain,
            amount,
        )
        return req.rebalance_id

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    def lock_collateral(self, series_id: int, amount: int, *, caller: str) -> Optional[str]:
        """
        Lock collateral for a series on this chain.

        Returns the id of the LockCollateral message sent to the hub (spokes),
        or None on the hub.
        """
        with self._transaction("lock_collateral") as state:
            depositor = _addr(caller, name="caller")
            self._when_not_paused()
            validate_series_id(series_id)
            _positive_amount(amount)
            if state.positions.is_settled(series_id):
                raise SeriesAlreadySettled(series_id)
            if not state.registry.is_active(self.chain_id):
                raise ChainNotActive(self.chain_id)

            state.total_local_collateral += amount
            state.registry.adjust_collateral(self.chain_id, amount)
            state.positions.add_collateral(series_id, self.chain_id, amount)
            self._recompute(series_id)

            now = self._now()
            message_id = self._send_to_hub(MessageKind.LOCK_COLLATERAL, series_id, amount, depositor, now)
            self.events.emit(
                Event.COLLATERAL_LOCKED,
                timestamp=now,
                series_id=series_id,
                amount=amount,
                depositor=depositor,
            )
        logger.info("chain %s: locked %s on series %s", self.chain_id, amount, series_id)
        return message_id

    # ------------------------------------------------------------------
    # Relayer-gated
    # ------------------------------------------------------------------

    def release_collateral(
        self,
        series_id: int,
        amount: int,
        recipient: str,
        *,
        caller: str,
        proof: Optional[str] = None,
    ) -> Optional[str]:
        with self._transaction("release_collateral") as state:
            to = _addr(recipient, name="recipient")
            relayer = self._only_relayer(
                caller,
                "release_collateral",
                {"series_id": series_id, "amount": amount, "recipient": to},
                proof,
            )
            self._when_not_paused()
            validate_series_id(series_id)
            _positive_amount(amount)
            locked = state.positions.snapshot(series_id, self.chain_id).locked_collateral
            available = min(locked, state.total_local_collateral)
            if amount > available:
                raise InsufficientCollateral(amount, available)

            state.total_local_collateral -= amount
            state.registry.adjust_collateral(self.chain_id, -amount)
            state.positions.add_collateral(series_id, self.chain_id, -amount)
            # A settled aggregate is frozen; claims after settlement only touch the snapshot.
            if not state.positions.is_settled(series_id):
                self._recompute(series_id)

            now = self._now()
            message_id = self._send_to_hub(MessageKind.RELEASE_COLLATERAL, series_id, amount, relayer, now)
            self.events.emit(
                Event.COLLATERAL_RELEASED,
                timestamp=now,
                series_id=series_id,
                amount=amount,
                recipient=to,
            )
        logger.info("chain %s: released %s on series %s to %s", self.chain_id, amount, series_id, to)
        return message_id

    def sync_position(
        self,
        series_id: int,
        long_amount: int,
        short_amount: int,
        *,
        caller: str,
        proof: Optional[str] = None,
    ) -> Optional[str]:
        """Overwrite the local chain's long/short for a series (last report wins)."""
        with self._transaction("sync_position") as state:
            relayer = self._only_relayer(
                caller,
                "sync_position",
                {"series_id": series_id, "long_amount": long_amount, "short_amount": short_amount},
                proof,
            )
            validate_series_id(series_id)
            local = state.registry.require(self.chain_id)
            if not local.active:
                raise ChainNotActive(self.chain_id)
            now = self._now()
            if local.last_sync_timestamp != 0:
                retry_at = local.last_sync_timestamp + self.config.min_sync_interval_s
                if now < retry_at:
                    raise SyncTooFrequent(self.chain_id, local.last_sync_timestamp, retry_at)

            state.positions.overwrite_position(
                series_id, self.chain_id, long_amount=long_amount, short_amount=short_amount
            )
            self._recompute(series_id)
            state.registry.record_sync(self.chain_id, now)

            message_id = self._send_to_hub(MessageKind.SYNC_POSITION, series_id, long_amount, relayer, now)
            self.events.emit(
                Event.POSITION_SYNCED,
                timestamp=now,
                series_id=series_id,
                long_amount=long_amount,
                short_amount=short_amount,
            )
        logger.info(
            "chain %s: synced series %s long=%s short=%s",
            self.chain_id,
            series_id,
            long_amount,
            short_amount,
        )
        return message_id

    def receive_position_sync(
        self,
        source_chain_id: int,
        series_id: int,
        long_amount: int,
        short_amount: int,
        locked_collateral: int,
        *,
        caller: str,
        message_id: Optional[str] = None,
        proof: Optional[str] = None,
    ) -> AggregatedPosition:
        """Hub: overwrite a remote chain's snapshot and re-aggregate the series."""
        with self._transaction("receive_position_sync") as state:
            self._only_hub()
            self._only_relayer(
                caller,
                "receive_position_sync",
                {
                    "source_chain_id": source_chain_id,
                    "series_id": series_id,
                    "long_amount": long_amount,
                    "short_amount": short_amount,
                    "locked_collateral": locked_collateral,
                    "message_id": message_id or "",
                },
                proof,
            )
            validate_chain_id(source_chain_id, name="source_chain_id")
            validate_series_id(series_id)
            state.registry.require(source_chain_id)
            if message_id is not None:
                self._record_delivery(source_chain_id, message_id)

            state.positions.overwrite_position(
                series_id,
                source_chain_id,
                long_amount=long_amount,
                short_amount=short_amount,
                locked_collateral=locked_collateral,
            )
            aggregate = self._recompute(series_id)
            if source_chain_id != self.chain_id:
                self._sync_remote_collateral(source_chain_id)
            now = self._now()
            state.registry.record_sync(source_chain_id, now)
            self.events.emit(
                Event.POSITION_SYNC_RECEIVED,
                timestamp=now,
                source_chain_id=source_chain_id,
                series_id=series_id,
                long_amount=long_amount,
                short_amount=short_amount,
                locked_collateral=locked_collateral,
            )
        logger.info(
            "chain %s: received sync from %s for series %s (long=%s short=%s collateral=%s)",
            self.chain_id,
            source_chain_id,
            series_id,
            long_amount,
            short_amount,
            locked_collateral,
        )
        return aggregate

    def execute_settlement(
        self,
        series_id: int,
        delta: int,
        *,
        caller: str,
        message_id: Optional[str] = None,
        proof: Optional[str] = None,
    ) -> AggregatedPosition:
        """Spoke: accept the hub-computed delta for this chain. No recomputation."""
        with self._transaction("execute_settlement") as state:
            self._only_spoke()
            self._only_relayer(
                caller,
                "execute_settlement",
                {"series_id": series_id, "delta": delta, "message_id": message_id or ""},
                proof,
            )
            validate_series_id(series_id)
            if message_id is not None:
                self._record_delivery(self.config.hub_chain_id, message_id)
            aggregate = apply_relayed_settlement(state.positions, series_id, self.chain_id, delta)
            state.registry.add_position_value(self.chain_id, delta)
            self.events.emit(Event.SETTLEMENT_EXECUTED, timestamp=self._now(), series_id=series_id, delta=delta)
        logger.info("chain %s: executed settlement of series %s with delta %s", self.chain_id, series_id, delta)
        return aggregate

    def confirm_message(self, message_id: str, *, caller: str, proof: Optional[str] = None) -> CrossChainMessage:
        with self._transaction("confirm_message") as state:
            self._only_relayer(caller, "confirm_message", {"message_id": message_id}, proof)
            now = self._now()
            msg = state.ledger.confirm(message_id, now=now)
            self.events.emit(Event.MESSAGE_CONFIRMED, timestamp=now, message_id=message_id)
        logger.debug("chain %s: message %s confirmed", self.chain_id, message_id)
        return msg

    def fail_message(self, message_id: str, *, caller: str, proof: Optional[str] = None) -> CrossChainMessage:
        with self._transaction("fail_message") as state:
            self._only_relayer(caller, "fail_message", {"message_id": message_id}, proof)
            msg = state.ledger.fail(message_id)
            self.events.emit(Event.MESSAGE_FAILED, timestamp=self._now(), message_id=message_id)
        logger.debug("chain %s: message %s failed", self.chain_id, message_id)
        return msg

    def execute_rebalance(self, rebalance_id: int, *, caller: str, proof: Optional[str] = None) -> RebalanceRequest:
        with self._transaction("execute_rebalance") as state:
            self._only_relayer(caller, "execute_rebalance", {"rebalance_id": rebalance_id}, proof)
            now = self._now()
            req = state.rebalances.mark_executed(rebalance_id, now=now)
            for chain_id, delta in rebalance_legs(req, self.chain_id):
                state.registry.adjust_collateral(chain_id, delta)
                state.total_local_collateral = max(state.total_local_collateral + delta, 0)
            self.events.emit(Event.REBALANCE_EXECUTED, timestamp=now, rebalance_id=rebalance_id)
        logger.info("chain %s: executed rebalance %s", self.chain_id, rebalance_id)
        return req

    # ------------------------------------------------------------------
    # Read-only
    # ------------------------------------------------------------------

    def registered_chains(self) -> List[int]:
        return self._state.registry.chain_ids()

    def get_chain(self, chain_id: int) -> Optional[ChainDeployment]:
        return self._state.registry.get(chain_id)

    def is_chain_active(self, chain_id: int) -> bool:
        return self._state.registry.is_active(chain_id)

    def get_aggregated_position(self, series_id: int) -> AggregatedPosition:
        return self._state.positions.aggregate(series_id)

    def get_snapshot(self, series_id: int, chain_id: int) -> ChainPositionSnapshot:
        return self._state.positions.snapshot(series_id, chain_id)

    def get_settlement_delta(self, series_id: int, chain_id: int) -> int:
        return self._state.positions.snapshot(series_id, chain_id).settlement_delta

    def get_message(self, message_id: str) -> Optional[CrossChainMessage]:
        return self._state.ledger.get(message_id)

    def is_message_expired(self, message_id: str) -> bool:
        """True once `message_id` can no longer be confirmed here."""
        return self._state.ledger.is_expired(message_id, now=self._now())

    def messages(self) -> List[CrossChainMessage]:
        return self._state.ledger.all()

    def pending_messages(self) -> List[CrossChainMessage]:
        return self._state.ledger.pending()

    def get_rebalance(self, rebalance_id: int) -> Optional[RebalanceRequest]:
        return self._state.rebalances.get(rebalance_id)

    def total_collateral_across_chains(self) -> int:
        return self._state.registry.total_collateral()

    def is_relayer(self, address: str) -> bool:
        return self._state.is_relayer(_addr(address, name="address"))

    @property
    def paused(self) -> bool:
        return self._state.paused

    @property
    def collateral_asset(self) -> str:
        return self._state.collateral_asset

    @property
    def message_nonce(self) -> int:
        return self._state.ledger.nonce

    @property
    def next_rebalance_id(self) -> int:
        return self._state.rebalances.next_id

    @property
    def total_local_collateral(self) -> int:
        return self._state.total_local_collateral

    def state_root(self) -> str:
        return compute_node_state_root(self._state)

    def __repr__(self) -> str:
        role = "hub" if self.is_hub else "spoke"
        return f"SettlementNode(chain={self.chain_id}, {role}, {self._state.registry!r})"


def build_nodes_from_deployment(
    deployment: DeploymentConfig,
    *,
    clock: Clock,
    attestor: Optional[RelayerAttestor] = None,
) -> Dict[int, SettlementNode]:
    """
    Construct one node per configured chain and wire them together.

    Every node registers every other chain and authorizes every configured
    relayer. When any relayer declares a BLS pubkey and no attestor is given,
    nodes require BLS attestations from the relayers that declared one.
    """
    if attestor is None:
        keyed = {r.address: r.bls_pubkey for r in deployment.relayers if r.bls_pubkey}
        attestor = BlsRelayerAttestor(keyed) if keyed else TrustedRelayerAttestor()

    nodes: Dict[int, SettlementNode] = {}
    for cfg in deployment.nodes:
        nodes[cfg.chain_id] = SettlementNode(cfg, clock=clock, attestor=attestor)

    for cfg in deployment.nodes:
        node = nodes[cfg.chain_id]
        for peer in deployment.nodes:
            if peer.chain_id != cfg.chain_id:
                node.register_chain(peer.chain_id, peer.self_handle, caller=cfg.owner)
        for relayer in deployment.relayers:
            node.set_relayer(relayer.address, True, caller=cfg.owner)
    return nodes
