"""
Relayer attestation plumbing.

The settlement protocol does not verify cross-chain delivery cryptographically:
it trusts an authorized relayer role. This module makes that trust an explicit,
pluggable capability so a deployment can demand stronger evidence without
touching settlement logic.

Every relayer-gated entrypoint first checks the node's relayer table, then
asks the configured attestor to accept `(caller, action, payload, proof)`:
- `TrustedRelayerAttestor`: the table check is enough (source-system semantics).
- `BlsRelayerAttestor`: `proof` must be a BLS12-381 signature by the caller's
  registered key over the canonical attestation message.
- `DisabledAttestor`: reject all relayed input (fail-closed).
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from py_ecc.bls import G2Basic
from py_ecc.optimized_bls12_381 import curve_order as BLS12_381_CURVE_ORDER

from ..core.errors import AttestationRejected
from ..state.canonical import canonical_address, canonical_json_bytes, domain_sep_bytes


def attestation_message(action: str, payload: Mapping[str, Any]) -> bytes:
    """Bytes a relayer signs to attest one delivery."""
    body = canonical_json_bytes({"action": action, "payload": dict(payload)})
    return domain_sep_bytes("relayer_attestation") + body


def bls_pubkey_hex_from_privkey(privkey: int) -> str:
    sk = _parse_privkey(privkey)
    return "0x" + G2Basic.SkToPk(sk).hex()


def sign_attestation(privkey: int, action: str, payload: Mapping[str, Any]) -> str:
    sk = _parse_privkey(privkey)
    sig = G2Basic.Sign(sk, attestation_message(action, payload))
    return "0x" + sig.hex()


def _parse_privkey(privkey: int) -> int:
    if not isinstance(privkey, int) or isinstance(privkey, bool):
        raise TypeError("privkey must be an int")
    if privkey <= 0 or privkey >= int(BLS12_381_CURVE_ORDER):
        raise ValueError("privkey out of range (must be in [1, BLS12-381 curve order))")
    return privkey


def _hex_bytes(value: str, *, name: str) -> bytes:
    s = value.strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    try:
        return bytes.fromhex(s)
    except ValueError as exc:
        raise ValueError(f"{name} must be hex") from exc


class RelayerAttestor:
    """Interface for accepting or rejecting one relayed delivery."""

    def check(self, *, caller: str, action: str, payload: Mapping[str, Any], proof: Optional[str]) -> None:
        raise NotImplementedError


class TrustedRelayerAttestor(RelayerAttestor):
    def check(self, *, caller: str, action: str, payload: Mapping[str, Any], proof: Optional[str]) -> None:
        return None


class DisabledAttestor(RelayerAttestor):
    def check(self, *, caller: str, action: str, payload: Mapping[str, Any], proof: Optional[str]) -> None:
        raise AttestationRejected(caller, action, "relayed input disabled on this node")


class BlsRelayerAttestor(RelayerAttestor):
    """Require a BLS12-381 (G2Basic) signature by the calling relayer."""

    def __init__(self, pubkeys: Mapping[str, str]) -> None:
        self._pubkeys: dict[str, bytes] = {}
        for address, pubkey in pubkeys.items():
            pk = _hex_bytes(pubkey, name="bls pubkey")
            if len(pk) != 48:
                raise ValueError(f"bls pubkey for {address} must be 48 bytes")
            self._pubkeys[canonical_address(address, name="relayer address")] = pk

    def check(self, *, caller: str, action: str, payload: Mapping[str, Any], proof: Optional[str]) -> None:
        pk = self._pubkeys.get(caller)
        if pk is None:
            raise AttestationRejected(caller, action, "no BLS key registered for relayer")
        if not proof:
            raise AttestationRejected(caller, action, "missing attestation signature")
        try:
            sig = _hex_bytes(proof, name="attestation signature")
        except ValueError as exc:
            raise AttestationRejected(caller, action, str(exc)) from exc
        if len(sig) != 96:
            raise AttestationRejected(caller, action, "attestation signature must be 96 bytes")
        try:
            ok = bool(G2Basic.Verify(pk, attestation_message(action, payload), sig))
        except (ValueError, AssertionError) as exc:
            raise AttestationRejected(caller, action, f"signature verification error: {exc}") from exc
        if not ok:
            raise AttestationRejected(caller, action, "invalid attestation signature")
