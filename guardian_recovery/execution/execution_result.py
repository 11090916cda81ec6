"""
Deploy Outcomes
===============
Standardized result types for the submit/confirm lifecycle.

- OutcomeStatus / TransactionOutcome: what polling concluded
- DeployStatusReport: one-shot status lookup
- DeployResult: the stable {transaction_id, success, message} surface
  every write action returns to callers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import time

from guardian_recovery.errors import ConfirmationTimeout, ErrorCode, ExecutionFailure


class OutcomeStatus(Enum):
    """Lifecycle states of a submitted deploy."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class TransactionOutcome:
    """
    What `await_outcome` concluded about a deploy.

    TIMED_OUT is inconclusive, not a failure: the deploy may still execute
    after the client stops watching.
    """

    deploy_hash: str
    status: OutcomeStatus
    reason: str = ""
    polls: int = 0
    elapsed_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def error_code(self) -> Optional[ErrorCode]:
        if self.status == OutcomeStatus.FAILURE:
            return ErrorCode.EXECUTION_FAILURE
        if self.status == OutcomeStatus.TIMED_OUT:
            return ErrorCode.TIMEOUT
        return None

    def raise_for_status(self, timeout_ms: int = 0) -> "TransactionOutcome":
        """Turn FAILURE / TIMED_OUT into ExecutionFailure / ConfirmationTimeout."""
        if self.status == OutcomeStatus.FAILURE:
            raise ExecutionFailure(self.reason, deploy_hash=self.deploy_hash)
        if self.status == OutcomeStatus.TIMED_OUT:
            raise ConfirmationTimeout(self.deploy_hash, timeout_ms or int(self.elapsed_ms))
        return self


@dataclass(frozen=True)
class DeployStatusReport:
    """Non-blocking status snapshot (PENDING / SUCCESS / FAILURE)."""

    deploy_hash: str
    status: OutcomeStatus
    execution_result: Optional[Dict[str, Any]] = None

    @property
    def reason(self) -> str:
        if self.status != OutcomeStatus.FAILURE or not self.execution_result:
            return ""
        return failure_reason(self.execution_result)


@dataclass
class DeployResult:
    """
    Result contract for every write action.

    `transaction_id` stays empty until a submission completes; for
    build-only calls `message` carries the unsigned deploy JSON.
    """

    transaction_id: str
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/transport."""
        return {
            "transactionId": self.transaction_id,
            "success": self.success,
            "message": self.message,
            "errorCode": self.error_code.value if self.error_code else None,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# EXECUTION RESULT PARSING
# ═══════════════════════════════════════════════════════════════════════════════

def classify_execution_result(execution_result: Dict[str, Any]) -> OutcomeStatus:
    """Map one node execution result entry to SUCCESS / FAILURE."""
    result = execution_result.get("result", {})
    if "Success" in result:
        return OutcomeStatus.SUCCESS
    return OutcomeStatus.FAILURE


def failure_reason(execution_result: Dict[str, Any]) -> str:
    failure = execution_result.get("result", {}).get("Failure") or {}
    return failure.get("error_message") or "Unknown error"


# ═══════════════════════════════════════════════════════════════════════════════
# FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def unsigned_deploy_result(deploy_json: str) -> DeployResult:
    """Build-only result: nothing submitted yet."""
    return DeployResult(transaction_id="", success=True, message=deploy_json)


def outcome_result(outcome: TransactionOutcome) -> DeployResult:
    if outcome.status == OutcomeStatus.SUCCESS:
        message = "Deploy executed successfully"
    elif outcome.status == OutcomeStatus.FAILURE:
        message = outcome.reason
    else:
        message = "Timeout waiting for deploy"
    return DeployResult(
        transaction_id=outcome.deploy_hash,
        success=outcome.success,
        message=message,
        error_code=outcome.error_code,
    )


def failure_result(
    error_code: ErrorCode,
    message: str,
    transaction_id: str = "",
) -> DeployResult:
    return DeployResult(
        transaction_id=transaction_id,
        success=False,
        message=message,
        error_code=error_code,
    )
