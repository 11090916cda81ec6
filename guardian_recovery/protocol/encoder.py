"""
Protocol Encoder
================
Pure, deterministic translation of recovery actions into typed calls.

The "Architect" of the recovery pipeline: no network, no signing.
Every method returns an EncodedCall that the DeployBuilder wraps into an
unsigned deploy. Key and width problems surface here as
InvalidKeyEncoding / SchemaMismatch, before anything is built.

Registration is the only BOOTSTRAP action: a fresh owner has no stored
registry state to call into yet. Everything else is a STORED_CALL on the
shared registry contract.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from guardian_recovery.errors import SchemaMismatch
from guardian_recovery.identity.codec import PublicKey
from guardian_recovery.protocol.schema import (
    REGISTER_ACTION_CODE,
    CallMode,
    ProtocolAction,
    RuntimeArgs,
    get_schema,
)
from guardian_recovery.shared.system.logging import Logger


_DECIMAL_RE = re.compile(r"[0-9]+")

# 2^256 - 1 has 78 decimal digits
_MAX_U256_DIGITS = 78


@dataclass(frozen=True)
class EncodedCall:
    """Everything needed to build a deploy, minus fees and chain context."""

    action: ProtocolAction
    mode: CallMode
    entry_point: str
    caller: PublicKey
    args: RuntimeArgs


def parse_recovery_id(recovery_id: str) -> int:
    """Recovery ids travel as plain decimal strings."""
    if not isinstance(recovery_id, str) or not _DECIMAL_RE.fullmatch(recovery_id):
        raise SchemaMismatch(
            f"Recovery id must be a decimal string, got {recovery_id!r}", field="id"
        )
    significant = recovery_id.lstrip("0") or "0"
    if len(significant) > _MAX_U256_DIGITS:
        raise SchemaMismatch(
            f"Recovery id has {len(significant)} digits, U256 allows {_MAX_U256_DIGITS}",
            field="id",
        )
    return int(significant)


class ProtocolEncoder:
    """
    Builds EncodedCalls for every recovery registry action.

    Usage:
        encoder = ProtocolEncoder()
        call = encoder.approve(guardian_hex, "42")
        deploy = builder.build(call, payment_amount, contract_hash=registry_hash)
    """

    def _encode(
        self, protocol_action: ProtocolAction, caller_hex: str, values: Dict[str, Any]
    ) -> EncodedCall:
        caller = PublicKey.from_hex(caller_hex)
        schema = get_schema(protocol_action)
        args = schema.bind(values)
        Logger.debug(
            f"[ENCODER] {protocol_action.value} -> {schema.mode.value}:{schema.entry_point} "
            f"args={args.names()}"
        )
        return EncodedCall(protocol_action, schema.mode, schema.entry_point, caller, args)

    # =========================================================================
    # WRITE ACTIONS
    # =========================================================================

    def register_guardians(
        self,
        owner_hex: str,
        guardian_hexes: Sequence[str],
        threshold: int,
    ) -> EncodedCall:
        """Owner registers an ordered guardian set and approval threshold."""
        owner = PublicKey.from_hex(owner_hex)
        guardians = [PublicKey.from_hex(g).account_identity() for g in guardian_hexes]

        if not guardians:
            raise SchemaMismatch("At least one guardian is required", field="guardians")
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            raise SchemaMismatch(
                f"Threshold must be an integer, got {threshold!r}", field="threshold"
            )
        if threshold < 1 or threshold > len(guardians):
            raise SchemaMismatch(
                f"Threshold {threshold} outside 1..{len(guardians)}", field="threshold"
            )

        return self._encode(
            ProtocolAction.REGISTER_GUARDIANS,
            owner_hex,
            {
                "action": REGISTER_ACTION_CODE,
                "account": owner.account_identity(),
                "guardians": guardians,
                "threshold": threshold,
            },
        )

    def start_recovery(
        self,
        initiator_hex: str,
        target_owner_hex: str,
        replacement_key_hex: str,
    ) -> EncodedCall:
        return self._encode(
            ProtocolAction.START_RECOVERY,
            initiator_hex,
            {
                "account": PublicKey.from_hex(target_owner_hex).account_identity(),
                "new_key": PublicKey.from_hex(replacement_key_hex),
            },
        )

    def approve(self, guardian_hex: str, recovery_id: str) -> EncodedCall:
        return self._encode(
            ProtocolAction.APPROVE, guardian_hex, {"id": parse_recovery_id(recovery_id)}
        )

    def check_threshold(self, signer_hex: str, recovery_id: str) -> EncodedCall:
        """No free query entry point exists; this runs as a paid deploy."""
        return self._encode(
            ProtocolAction.CHECK_THRESHOLD, signer_hex, {"id": parse_recovery_id(recovery_id)}
        )

    def finalize(self, signer_hex: str, recovery_id: str) -> EncodedCall:
        return self._encode(
            ProtocolAction.FINALIZE, signer_hex, {"id": parse_recovery_id(recovery_id)}
        )

    # =========================================================================
    # QUERY-STYLE DEPLOYS
    # =========================================================================

    def has_guardians(self, signer_hex: str, target_owner_hex: str) -> EncodedCall:
        return self._encode(
            ProtocolAction.HAS_GUARDIANS,
            signer_hex,
            {"account": PublicKey.from_hex(target_owner_hex).account_identity()},
        )

    def get_guardians(self, signer_hex: str, target_owner_hex: str) -> EncodedCall:
        return self._encode(
            ProtocolAction.GET_GUARDIANS,
            signer_hex,
            {"account": PublicKey.from_hex(target_owner_hex).account_identity()},
        )
