"""
State Reader
============
Read-only answers to "is this owner registered, with whom, at what threshold".

Records live under the owner's account named keys:

    grp_init_<account hash hex>       Bool
    grp_guardians_<account hash hex>  List(ByteArray(32)) or List(PublicKey)
    grp_threshold_<account hash hex>  U8 / U32

These three reads back informational paths, so anything that keeps them
from producing a definitive value (absent key, RPC error, wrong type) is
logged and resolved to a safe default: False, [], 0. That includes an
owner key that does not parse. A threshold of 0
means "not configured"; real thresholds start at 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

import httpx

from guardian_recovery.errors import (
    InvalidKeyEncoding,
    LedgerRpcError,
    QueryInconclusive,
    SchemaMismatch,
)
from guardian_recovery.identity.codec import (
    AccountIdentity,
    RecordField,
    derive_identity,
    identity_to_lookup_key,
)
from guardian_recovery.infrastructure.node_client import LedgerClient
from guardian_recovery.protocol.clvalue import CLTypeTag, CLValue
from guardian_recovery.shared.system.logging import Logger


_THRESHOLD_TAGS = (CLTypeTag.U8, CLTypeTag.U32, CLTypeTag.U64)


def _short(owner_hex: object) -> str:
    return f"{str(owner_hex)[:12]}..."


@dataclass(frozen=True)
class AssociatedKey:
    account_hash: str
    weight: int


@dataclass(frozen=True)
class AccountKeys:
    """An account's associated keys and action thresholds."""

    associated_keys: List[AssociatedKey] = field(default_factory=list)
    deployment_threshold: int = 0
    key_management_threshold: int = 0


class StateReader:
    """
    Decodes the recovery registry's named-state records for one owner.

    Usage:
        reader = StateReader(node_client)
        if await reader.is_registered(owner_hex):
            guardians = await reader.get_guardians(owner_hex)
    """

    def __init__(self, client: LedgerClient):
        self.client = client

    async def _read_record(self, identity: AccountIdentity, record: RecordField) -> CLValue:
        key_name = identity_to_lookup_key(identity, record)
        try:
            root = await self.client.get_state_root_hash()
            stored = await self.client.get_block_state(root, identity.formatted, [key_name])
            raw = stored.get("CLValue")
            if raw is None:
                raise QueryInconclusive(f"{key_name} holds no CLValue")
            return CLValue.from_json(raw)
        except (LedgerRpcError, SchemaMismatch, httpx.HTTPError,
                AttributeError, KeyError, TypeError) as e:
            raise QueryInconclusive(f"{key_name}: {e}") from e

    async def _read_owner_record(self, owner_hex: str, record: RecordField) -> CLValue:
        try:
            identity = derive_identity(owner_hex)
        except InvalidKeyEncoding as e:
            raise QueryInconclusive(f"owner key: {e.message}") from e
        return await self._read_record(identity, record)

    # =========================================================================
    # SOFT-FAIL READS
    # =========================================================================

    async def is_registered(self, owner_hex: str) -> bool:
        try:
            record = await self._read_owner_record(owner_hex, RecordField.REGISTERED)
        except QueryInconclusive as e:
            Logger.debug(f"[STATE] is_registered({_short(owner_hex)}) -> False ({e.message})")
            return False
        return record.value is True

    async def get_guardians(self, owner_hex: str) -> List[str]:
        """Guardian identities as `account-hash-<hex>`, in registration order."""
        try:
            record = await self._read_owner_record(owner_hex, RecordField.GUARDIANS)
        except QueryInconclusive as e:
            Logger.debug(f"[STATE] get_guardians({_short(owner_hex)}) -> [] ({e.message})")
            return []

        cl_type = record.cl_type
        if cl_type.tag != CLTypeTag.LIST:
            Logger.warning(f"[STATE] Guardian record has type {cl_type.name}, expected a list")
            return []

        inner = cl_type.inner
        if inner.tag == CLTypeTag.BYTE_ARRAY and inner.size == 32:
            return [AccountIdentity(item).formatted for item in record.value]
        if inner.tag == CLTypeTag.PUBLIC_KEY:
            return [item.account_identity().formatted for item in record.value]

        Logger.warning(f"[STATE] Guardian record has type {cl_type.name}, expected account hashes")
        return []

    async def get_threshold(self, owner_hex: str) -> int:
        try:
            record = await self._read_owner_record(owner_hex, RecordField.THRESHOLD)
        except QueryInconclusive as e:
            Logger.debug(f"[STATE] get_threshold({_short(owner_hex)}) -> 0 ({e.message})")
            return 0

        if record.cl_type.tag not in _THRESHOLD_TAGS:
            Logger.warning(f"[STATE] Threshold record has type {record.cl_type.name}")
            return 0
        return record.value

    # =========================================================================
    # ACCOUNT KEYS
    # =========================================================================

    async def get_account_keys(self, owner_hex: str) -> AccountKeys:
        """Associated keys and action thresholds. Errors propagate."""
        identity = derive_identity(owner_hex)
        root = await self.client.get_state_root_hash()
        stored = await self.client.get_block_state(root, identity.formatted, [])
        account: Dict[str, Any] = stored["Account"]

        thresholds = account.get("action_thresholds", {})
        return AccountKeys(
            associated_keys=[
                AssociatedKey(key["account_hash"], int(key["weight"]))
                for key in account.get("associated_keys", [])
            ],
            deployment_threshold=int(thresholds.get("deployment", 0)),
            key_management_threshold=int(thresholds.get("key_management", 0)),
        )
