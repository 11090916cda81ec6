"""
Deploy Submitter
================
Deploy submission and confirmation handling.

The "Pilot" of the recovery pipeline.
Handles the messy real-world interaction with the ledger.

Responsibilities:
- Submit a signed deploy (exactly once, never retried)
- Poll for the execution outcome under a bounded, cancellable schedule
- Classify the outcome as SUCCESS / FAILURE / TIMED_OUT
- One-shot status lookups for external pollers
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from guardian_recovery.errors import LedgerRpcError, SchemaMismatch, SubmissionFailure
from guardian_recovery.execution.deploy_builder import Deploy
from guardian_recovery.execution.execution_result import (
    DeployStatusReport,
    OutcomeStatus,
    TransactionOutcome,
    classify_execution_result,
)
from guardian_recovery.execution.retry import ScheduledRetry
from guardian_recovery.infrastructure.node_client import LedgerClient
from guardian_recovery.shared.system.logging import Logger


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SubmitterConfig:
    """Configuration for deploy confirmation."""

    confirmation_timeout_ms: int = 60_000
    poll_interval_ms: int = 2_000


# ═══════════════════════════════════════════════════════════════════════════════
# DEPLOY SUBMITTER
# ═══════════════════════════════════════════════════════════════════════════════

class DeploySubmitter:
    """
    Submits signed deploys and watches them to completion.

    A failed submission is surfaced immediately: resubmitting a signed
    deploy without idempotency tracking is unsafe. Poll errors while
    waiting are treated as "not indexed yet" and retried; only an
    execution result reporting failure yields FAILURE.

    Usage:
        submitter = DeploySubmitter(node_client)
        deploy_hash = await submitter.submit(signed_deploy)
        outcome = await submitter.await_outcome(deploy_hash, timeout_ms=60_000)
    """

    def __init__(
        self,
        client: LedgerClient,
        config: Optional[SubmitterConfig] = None,
    ):
        self.client = client
        self.config = config or SubmitterConfig()

        # Statistics
        self._submissions = 0
        self._confirmations = 0
        self._failures = 0
        self._timeouts = 0

    async def submit(self, deploy: Deploy) -> str:
        """
        Send a signed deploy.

        Node rejections and transport errors raise SubmissionFailure;
        anything else is a bug and propagates unchanged.
        """
        if not deploy.is_signed:
            raise SchemaMismatch("Deploy has no approvals; sign it before submitting")

        try:
            deploy_hash = await self.client.put_deploy(deploy.to_json())
        except (LedgerRpcError, httpx.HTTPError) as e:
            Logger.error(f"[SUBMIT] Deploy {deploy.hash_hex[:16]}... rejected: {e}")
            raise SubmissionFailure(str(e)) from e

        self._submissions += 1
        Logger.info(f"[SUBMIT] Deploy submitted: {deploy_hash}")
        return deploy_hash

    async def await_outcome(
        self,
        deploy_hash: str,
        timeout_ms: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransactionOutcome:
        """
        Poll until the deploy has an execution result or time runs out.

        Stopping (deadline or cancel_event) only stops the watching; the
        ledger may still execute the deploy afterwards.
        """
        if timeout_ms is None:
            timeout_ms = self.config.confirmation_timeout_ms

        schedule = ScheduledRetry(
            interval_sec=self.config.poll_interval_ms / 1000,
            timeout_sec=timeout_ms / 1000,
            cancel_event=cancel_event,
        )
        start = time.monotonic()

        async for attempt in schedule:
            report = await self._lookup(deploy_hash)
            if report is None or report.status == OutcomeStatus.PENDING:
                continue

            elapsed_ms = (time.monotonic() - start) * 1000
            if report.status == OutcomeStatus.SUCCESS:
                self._confirmations += 1
                Logger.success(f"[CONFIRM] Deploy {deploy_hash[:16]}... executed")
                return TransactionOutcome(
                    deploy_hash, OutcomeStatus.SUCCESS, polls=attempt, elapsed_ms=elapsed_ms
                )

            self._failures += 1
            Logger.warning(f"[CONFIRM] Deploy {deploy_hash[:16]}... failed: {report.reason}")
            return TransactionOutcome(
                deploy_hash,
                OutcomeStatus.FAILURE,
                reason=report.reason,
                polls=attempt,
                elapsed_ms=elapsed_ms,
            )

        self._timeouts += 1
        reason = "Stopped watching (cancelled)" if schedule.cancelled else "Timeout waiting for deploy"
        Logger.warning(
            f"[CONFIRM] Deploy {deploy_hash[:16]}... no outcome after "
            f"{schedule.attempts} polls: {reason}"
        )
        return TransactionOutcome(
            deploy_hash,
            OutcomeStatus.TIMED_OUT,
            reason=reason,
            polls=schedule.attempts,
            elapsed_ms=(time.monotonic() - start) * 1000,
        )

    async def get_status(self, deploy_hash: str) -> DeployStatusReport:
        """One lookup, no waiting. Lookup errors read as PENDING."""
        report = await self._lookup(deploy_hash)
        if report is None:
            return DeployStatusReport(deploy_hash, OutcomeStatus.PENDING)
        return report

    async def _lookup(self, deploy_hash: str) -> Optional[DeployStatusReport]:
        try:
            _, execution_results = await self.client.get_deploy(deploy_hash)
        except (LedgerRpcError, httpx.HTTPError) as e:
            Logger.debug(f"[CONFIRM] Status check for {deploy_hash[:16]}... not available: {e}")
            return None

        if not execution_results:
            return DeployStatusReport(deploy_hash, OutcomeStatus.PENDING)

        result = execution_results[0]
        status = classify_execution_result(result)
        return DeployStatusReport(deploy_hash, status, execution_result=result)

    def get_stats(self) -> dict:
        """Get submission statistics."""
        watched = self._confirmations + self._failures + self._timeouts
        return {
            "submissions": self._submissions,
            "confirmations": self._confirmations,
            "failures": self._failures,
            "timeouts": self._timeouts,
            "success_rate": self._confirmations / watched if watched else 0.0,
        }
