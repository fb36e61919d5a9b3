from __future__ import annotations

import pytest

from src.core.errors import MessageAlreadyProcessed, MessageExpired, MessageNotFound
from src.core.params import MESSAGE_EXPIRY_SECONDS
from src.state.messages import (
    MessageKind,
    MessageLedger,
    MessageStatus,
    derive_event_key,
    derive_message_id,
)

SENDER = "0x" + "0a" * 20


def _send(ledger: MessageLedger, *, now: int = 1000, amount: int = 5, **kwargs):
    params = dict(
        source=42161,
        destination=1,
        kind=MessageKind.LOCK_COLLATERAL,
        series_id=7,
        amount=amount,
        sender=SENDER,
        now=now,
    )
    params.update(kwargs)
    return ledger.send(**params)


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------


def test_send_appends_pending_and_advances_nonce() -> None:
    ledger = MessageLedger()
    assert ledger.nonce == 0
    msg = _send(ledger)
    assert ledger.nonce == 1
    assert msg.status is MessageStatus.PENDING
    assert msg.created_at == 1000
    assert msg.executed_at == 0
    assert ledger.get(msg.message_id) == msg
    assert ledger.pending() == [msg]


def test_message_id_depends_on_nonce_and_time() -> None:
    assert derive_message_id(source=1, destination=2, nonce=0, timestamp=5) != derive_message_id(
        source=1, destination=2, nonce=1, timestamp=5
    )
    assert derive_message_id(source=1, destination=2, nonce=0, timestamp=5) != derive_message_id(
        source=1, destination=2, nonce=0, timestamp=6
    )
    mid = derive_message_id(source=1, destination=2, nonce=0, timestamp=5)
    assert mid.startswith("0x") and len(mid) == 66


def test_retransmission_gets_new_id_but_same_event_key() -> None:
    ledger = MessageLedger()
    a = _send(ledger)
    b = _send(ledger)
    assert a.message_id != b.message_id
    assert a.event_key == b.event_key
    assert ledger.find_by_event_key(a.event_key) == [a, b]


def test_event_key_covers_payload() -> None:
    base = dict(source=1, destination=2, kind=MessageKind.SETTLE, series_id=7, amount=10)
    assert derive_event_key(**base, delta=5) != derive_event_key(**base, delta=-5)
    assert derive_event_key(**base) != derive_event_key(**{**base, "kind": MessageKind.SYNC_POSITION})


def test_envelope_carries_delta_and_kind() -> None:
    ledger = MessageLedger()
    msg = _send(ledger, kind=MessageKind.SETTLE, delta=-42)
    env = msg.to_envelope()
    assert env["kind"] == "Settle"
    assert env["delta"] == -42
    assert env["message_id"] == msg.message_id


# ---------------------------------------------------------------------------
# confirm / fail
# ---------------------------------------------------------------------------


def test_confirm_sets_status_and_timestamp() -> None:
    ledger = MessageLedger()
    msg = _send(ledger, now=1000)
    done = ledger.confirm(msg.message_id, now=1500)
    assert done.status is MessageStatus.CONFIRMED
    assert done.executed_at == 1500
    assert ledger.pending() == []


def test_confirm_unknown_message() -> None:
    ledger = MessageLedger()
    with pytest.raises(MessageNotFound):
        ledger.confirm("0x" + "00" * 32, now=1)


def test_confirm_and_fail_are_terminal() -> None:
    ledger = MessageLedger()
    a = _send(ledger)
    b = _send(ledger)
    ledger.confirm(a.message_id, now=1000)
    ledger.fail(b.message_id)
    with pytest.raises(MessageAlreadyProcessed) as exc:
        ledger.confirm(a.message_id, now=1000)
    assert exc.value.status == "Confirmed"
    with pytest.raises(MessageAlreadyProcessed):
        ledger.fail(a.message_id)
    with pytest.raises(MessageAlreadyProcessed):
        ledger.confirm(b.message_id, now=1000)


def test_expiry_boundary() -> None:
    ledger = MessageLedger()
    a = _send(ledger, now=1000)
    b = _send(ledger, now=1000)
    # Exactly at the window edge is still confirmable.
    ledger.confirm(a.message_id, now=1000 + MESSAGE_EXPIRY_SECONDS)
    with pytest.raises(MessageExpired) as exc:
        ledger.confirm(b.message_id, now=1001 + MESSAGE_EXPIRY_SECONDS)
    assert exc.value.expired_at == 1000 + MESSAGE_EXPIRY_SECONDS
    assert ledger.get(b.message_id).is_pending


def test_fail_ignores_expiry() -> None:
    ledger = MessageLedger()
    msg = _send(ledger, now=0)
    assert ledger.is_expired(msg.message_id, now=MESSAGE_EXPIRY_SECONDS + 1)
    assert ledger.fail(msg.message_id).status is MessageStatus.FAILED
