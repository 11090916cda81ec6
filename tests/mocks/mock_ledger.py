"""
Mock Ledger
===========
In-memory Casper node + recovery registry for tests without network calls.

Implements the four LedgerClient calls. Deploys are executed on
submission; their results become visible after `pending_polls` lookups
so confirmation polling has something to wait for.

Usage:
    ledger = MockLedger()
    submitter = DeploySubmitter(ledger, SubmitterConfig(poll_interval_ms=10))
    reader = StateReader(ledger)
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from guardian_recovery.errors import LedgerRpcError
from guardian_recovery.execution.deploy_builder import Deploy
from guardian_recovery.identity.codec import AccountIdentity, RecordField, identity_to_lookup_key
from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, BOOL, U8, CLValue, list_of
from guardian_recovery.protocol.schema import CallMode


class ContractRevert(Exception):
    pass


@dataclass
class MockRecovery:
    account: AccountIdentity
    new_key: Any
    approvals: Set[AccountIdentity] = field(default_factory=set)
    finalized: bool = False


class MockLedger:
    """
    Fake node running a simplified recovery registry.

    Knobs:
        pending_polls: lookups that report "no execution results yet"
        unknown_polls: lookups that fail as "deploy not known" first
        reject_submissions: put_deploy raises an RPC error
    """

    def __init__(self, pending_polls: int = 0, unknown_polls: int = 0):
        self.pending_polls = pending_polls
        self.unknown_polls = unknown_polls
        self.reject_submissions: Optional[str] = None

        self.state_root = "MOCK_ROOT_" + "0" * 54
        self.named_keys: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.recoveries: Dict[int, MockRecovery] = {}
        self.registered: Dict[AccountIdentity, Tuple[List[AccountIdentity], int]] = {}
        self.last_recovery_id: Optional[int] = None

        self._deploys: Dict[str, Dict[str, Any]] = {}
        self._lookups: Dict[str, int] = {}
        self._recovery_ids = itertools.count(1)

        self.call_count = 0
        self.get_deploy_calls = 0
        self.put_deploy_calls = 0

    # =========================================================================
    # LEDGER CLIENT API
    # =========================================================================

    async def get_state_root_hash(self) -> str:
        self.call_count += 1
        return self.state_root

    async def get_block_state(self, state_root_hash: str, key: str, path: List[str]) -> Dict[str, Any]:
        self.call_count += 1
        if not path:
            if key in self.accounts:
                return {"Account": self.accounts[key]}
            raise LedgerRpcError(-32003, "state query failed: ValueNotFound")
        stored = self.named_keys.get((key, path[0]))
        if stored is None:
            raise LedgerRpcError(-32003, f"state query failed: ValueNotFound({path[0]})")
        return stored

    async def put_deploy(self, deploy_json: Dict[str, Any]) -> str:
        self.call_count += 1
        self.put_deploy_calls += 1
        if self.reject_submissions:
            raise LedgerRpcError(-32008, self.reject_submissions)

        deploy = Deploy.from_json(deploy_json)
        if not deploy.is_signed:
            raise LedgerRpcError(-32008, "invalid deploy: no approvals")
        if deploy.signers[0] != deploy.account:
            raise LedgerRpcError(-32008, "invalid deploy: approval signer is not the account")

        try:
            self._execute(deploy)
            result = {"Success": {"cost": "100000"}}
        except ContractRevert as e:
            result = {"Failure": {"cost": "100000", "error_message": str(e)}}

        self._deploys[deploy.hash_hex] = {
            "deploy": deploy_json,
            "execution_results": [{"block_hash": "b" * 64, "result": result}],
        }
        self._lookups[deploy.hash_hex] = 0
        return deploy.hash_hex

    async def get_deploy(self, deploy_hash: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        self.call_count += 1
        self.get_deploy_calls += 1
        if deploy_hash not in self._deploys:
            raise LedgerRpcError(-32000, "deploy not known")

        seen = self._lookups[deploy_hash]
        self._lookups[deploy_hash] = seen + 1
        if seen < self.unknown_polls:
            raise LedgerRpcError(-32000, "deploy not known")
        entry = self._deploys[deploy_hash]
        if seen < self.unknown_polls + self.pending_polls:
            return entry["deploy"], []
        return entry["deploy"], entry["execution_results"]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def put_named_value(self, owner: AccountIdentity, record: RecordField, value: CLValue) -> None:
        """Write a record the way the registry does (under the owner's account)."""
        key = identity_to_lookup_key(owner, record)
        self.named_keys[(owner.formatted, key)] = {"CLValue": value.to_json()}

    def put_raw_named_value(self, owner: AccountIdentity, record: RecordField, stored: Dict[str, Any]) -> None:
        key = identity_to_lookup_key(owner, record)
        self.named_keys[(owner.formatted, key)] = stored

    # =========================================================================
    # REGISTRY SIMULATION
    # =========================================================================

    def _execute(self, deploy: Deploy) -> None:
        caller = deploy.account.account_identity()
        args = {name: value.value for name, value in deploy.session_args.args}

        if deploy.mode == CallMode.BOOTSTRAP:
            if args.get("action") != 1:
                raise ContractRevert("User error: 1 (UnknownAction)")
            self._register(AccountIdentity(args["account"]), args["guardians"], args["threshold"])
            return

        handler = {
            "start_recovery": self._start_recovery,
            "approve": self._approve,
            "is_approved": self._is_approved,
            "finalize": self._finalize,
            "has_guardians": self._has_guardians,
            "get_guardians": self._has_guardians,
        }.get(deploy.entry_point)
        if handler is None:
            raise ContractRevert(f"No such method: {deploy.entry_point}")
        handler(caller, args)

    def _register(self, owner: AccountIdentity, guardians: List[bytes], threshold: int) -> None:
        if owner in self.registered:
            raise ContractRevert("User error: 3 (AlreadyInitialized)")
        if threshold == 0 or threshold > len(guardians):
            raise ContractRevert("User error: 2 (InvalidThreshold)")
        identities = [AccountIdentity(g) for g in guardians]
        self.registered[owner] = (identities, threshold)
        self.put_named_value(owner, RecordField.REGISTERED, CLValue(BOOL, True))
        self.put_named_value(owner, RecordField.GUARDIANS, CLValue(list_of(ACCOUNT_HASH), guardians))
        self.put_named_value(owner, RecordField.THRESHOLD, CLValue(U8, threshold))

    def _start_recovery(self, caller: AccountIdentity, args: Dict[str, Any]) -> None:
        account = AccountIdentity(args["account"])
        if account not in self.registered:
            raise ContractRevert("User error: 4 (AccountNotFound)")
        recovery_id = next(self._recovery_ids)
        self.recoveries[recovery_id] = MockRecovery(account, args["new_key"])
        self.last_recovery_id = recovery_id

    def _recovery(self, args: Dict[str, Any]) -> MockRecovery:
        recovery = self.recoveries.get(args["id"])
        if recovery is None:
            raise ContractRevert("User error: 5 (UnknownRecovery)")
        return recovery

    def _approve(self, caller: AccountIdentity, args: Dict[str, Any]) -> None:
        recovery = self._recovery(args)
        if recovery.finalized:
            raise ContractRevert("User error: 8 (RecoveryFinalized)")
        guardians, _ = self.registered[recovery.account]
        if caller not in guardians:
            raise ContractRevert("User error: 6 (NotGuardian)")
        if caller in recovery.approvals:
            raise ContractRevert("User error: 7 (AlreadyApproved)")
        recovery.approvals.add(caller)

    def _is_approved(self, caller: AccountIdentity, args: Dict[str, Any]) -> None:
        recovery = self._recovery(args)
        _, threshold = self.registered[recovery.account]
        if len(recovery.approvals) < threshold:
            raise ContractRevert("User error: 9 (ThresholdNotMet)")

    def _finalize(self, caller: AccountIdentity, args: Dict[str, Any]) -> None:
        recovery = self._recovery(args)
        if recovery.finalized:
            raise ContractRevert("User error: 8 (RecoveryFinalized)")
        self._is_approved(caller, args)
        recovery.finalized = True
        self.accounts[recovery.account.formatted] = {
            "associated_keys": [
                {"account_hash": recovery.new_key.account_identity().formatted, "weight": 1}
            ],
            "action_thresholds": {"deployment": 1, "key_management": 1},
        }

    def _has_guardians(self, caller: AccountIdentity, args: Dict[str, Any]) -> None:
        if AccountIdentity(args["account"]) not in self.registered:
            raise ContractRevert("User error: 4 (AccountNotFound)")
