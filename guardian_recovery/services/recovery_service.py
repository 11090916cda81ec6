"""
Recovery Service
================
Write-action facade over encoder -> builder -> submitter.

Build methods return an unsigned deploy (as JSON in `message`) for the
caller to sign. `submit_and_confirm` takes the signed deploy back and
reports the ledger round trip as a DeployResult. Only local validation
errors (InvalidKeyEncoding, SchemaMismatch) are raised; submission,
execution and timeout problems come back inside the result.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence, Union

from config.settings import Settings
from guardian_recovery.errors import ErrorCode, SchemaMismatch, SubmissionFailure
from guardian_recovery.execution.deploy_builder import Deploy, DeployBuilder, load_session_wasm
from guardian_recovery.execution.execution_result import (
    DeployResult,
    failure_result,
    outcome_result,
    unsigned_deploy_result,
)
from guardian_recovery.execution.submitter import DeploySubmitter, SubmitterConfig
from guardian_recovery.infrastructure.node_client import LedgerClient
from guardian_recovery.protocol.encoder import EncodedCall, ProtocolEncoder
from guardian_recovery.shared.system.logging import Logger


class RecoveryService:
    """
    Usage:
        service = RecoveryService(encoder, builder, submitter,
                                  contract_hash=registry_hash, session_wasm=wasm)
        unsigned = service.approve_recovery(guardian_hex, "7")
        # ... sign unsigned.message externally ...
        result = await service.submit_and_confirm(signed_json)
    """

    def __init__(
        self,
        encoder: ProtocolEncoder,
        builder: DeployBuilder,
        submitter: DeploySubmitter,
        contract_hash: str = "",
        session_wasm: Optional[bytes] = None,
        payment_amount: int = 5_000_000_000,
    ):
        self.encoder = encoder
        self.builder = builder
        self.submitter = submitter
        self.contract_hash = contract_hash
        self.session_wasm = session_wasm
        self.payment_amount = payment_amount

    @classmethod
    def from_settings(cls, client: LedgerClient, load_wasm: bool = True) -> "RecoveryService":
        """Wire a service from Settings (node, registry hash, wasm path, fees)."""
        session_wasm = load_session_wasm(Settings.RECOVERY_REGISTRY_WASM) if load_wasm else None
        return cls(
            encoder=ProtocolEncoder(),
            builder=DeployBuilder(
                Settings.CHAIN_NAME,
                ttl_ms=Settings.DEPLOY_TTL_MS,
                gas_price=Settings.DEPLOY_GAS_PRICE,
            ),
            submitter=DeploySubmitter(
                client,
                SubmitterConfig(
                    confirmation_timeout_ms=Settings.CONFIRMATION_TIMEOUT_MS,
                    poll_interval_ms=Settings.POLL_INTERVAL_MS,
                ),
            ),
            contract_hash=Settings.RECOVERY_REGISTRY_HASH,
            session_wasm=session_wasm,
            payment_amount=Settings.DEPLOY_PAYMENT_AMOUNT,
        )

    def _build(self, call: EncodedCall) -> DeployResult:
        deploy = self.builder.build(
            call,
            self.payment_amount,
            contract_hash=self.contract_hash,
            session_wasm=self.session_wasm,
        )
        Logger.info(f"[SERVICE] Built {call.action.value} deploy {deploy.hash_hex[:16]}...")
        return unsigned_deploy_result(json.dumps(deploy.to_json()))

    # =========================================================================
    # BUILD (UNSIGNED)
    # =========================================================================

    def initialize_guardians(
        self, owner_hex: str, guardian_hexes: Sequence[str], threshold: int
    ) -> DeployResult:
        return self._build(self.encoder.register_guardians(owner_hex, guardian_hexes, threshold))

    def initiate_recovery(
        self, initiator_hex: str, target_owner_hex: str, new_key_hex: str
    ) -> DeployResult:
        return self._build(
            self.encoder.start_recovery(initiator_hex, target_owner_hex, new_key_hex)
        )

    def approve_recovery(self, guardian_hex: str, recovery_id: str) -> DeployResult:
        return self._build(self.encoder.approve(guardian_hex, recovery_id))

    def build_check_threshold_deploy(self, signer_hex: str, recovery_id: str) -> DeployResult:
        return self._build(self.encoder.check_threshold(signer_hex, recovery_id))

    def finalize_recovery(self, signer_hex: str, recovery_id: str) -> DeployResult:
        return self._build(self.encoder.finalize(signer_hex, recovery_id))

    def build_has_guardians_deploy(self, signer_hex: str, target_owner_hex: str) -> DeployResult:
        return self._build(self.encoder.has_guardians(signer_hex, target_owner_hex))

    def build_get_guardians_deploy(self, signer_hex: str, target_owner_hex: str) -> DeployResult:
        return self._build(self.encoder.get_guardians(signer_hex, target_owner_hex))

    # =========================================================================
    # SUBMIT + CONFIRM
    # =========================================================================

    async def submit_and_confirm(
        self,
        signed_deploy: Union[str, Dict[str, Any], Deploy],
        timeout_ms: Optional[int] = None,
    ) -> DeployResult:
        """
        Submit a signed deploy once and wait for its outcome.

        A TIMED_OUT result means "unknown yet": re-poll with
        `submitter.get_status`, do not resubmit.
        """
        if isinstance(signed_deploy, str):
            try:
                signed_deploy = json.loads(signed_deploy)
            except ValueError as e:
                raise SchemaMismatch(f"Signed deploy is not valid JSON: {e}") from None
        deploy = signed_deploy if isinstance(signed_deploy, Deploy) else Deploy.from_json(signed_deploy)

        try:
            deploy_hash = await self.submitter.submit(deploy)
        except SubmissionFailure as e:
            return failure_result(ErrorCode.SUBMISSION_FAILURE, e.message)

        outcome = await self.submitter.await_outcome(deploy_hash, timeout_ms=timeout_ms)
        return outcome_result(outcome)
