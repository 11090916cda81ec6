"""
Error Taxonomy
==============
Every failure the recovery client can report, grouped by where it happens.

Local (raised, nothing is submitted):
- InvalidKeyEncoding: malformed public key hex
- SchemaMismatch: argument does not fit the entry point's declared type

Ledger round trip (reported in results, not raised by the service layer):
- SubmissionFailure: node rejected the signed deploy
- ExecutionFailure: deploy ran and the contract reverted
- ConfirmationTimeout: stopped watching before an outcome was known
- QueryInconclusive: a state read could not produce a definitive value
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Standardized error codes for recovery client failures."""

    INVALID_KEY_ENCODING = "INVALID_KEY_ENCODING"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    SUBMISSION_FAILURE = "SUBMISSION_FAILURE"
    EXECUTION_FAILURE = "EXECUTION_FAILURE"
    QUERY_INCONCLUSIVE = "QUERY_INCONCLUSIVE"
    TIMEOUT = "TIMEOUT"
    RPC_ERROR = "RPC_ERROR"


class GuardianRecoveryError(Exception):
    """Base class for all recovery client errors."""

    code: ErrorCode = ErrorCode.RPC_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidKeyEncoding(GuardianRecoveryError):
    code = ErrorCode.INVALID_KEY_ENCODING


class SchemaMismatch(GuardianRecoveryError):
    code = ErrorCode.SCHEMA_MISMATCH

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class SubmissionFailure(GuardianRecoveryError):
    code = ErrorCode.SUBMISSION_FAILURE


class ExecutionFailure(GuardianRecoveryError):
    """The ledger executed the deploy and the contract rejected it."""

    code = ErrorCode.EXECUTION_FAILURE

    def __init__(self, reason: str, deploy_hash: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.deploy_hash = deploy_hash


class QueryInconclusive(GuardianRecoveryError):
    code = ErrorCode.QUERY_INCONCLUSIVE


class ConfirmationTimeout(GuardianRecoveryError):
    """
    Polling stopped before the deploy outcome was known.

    The deploy may still execute. Re-poll, do not resubmit.
    """

    code = ErrorCode.TIMEOUT

    def __init__(self, deploy_hash: str, timeout_ms: int):
        super().__init__(f"No outcome for deploy {deploy_hash} within {timeout_ms}ms")
        self.deploy_hash = deploy_hash
        self.timeout_ms = timeout_ms


class LedgerRpcError(GuardianRecoveryError):
    """JSON-RPC error object returned by the node."""

    code = ErrorCode.RPC_ERROR

    def __init__(self, rpc_code: int, message: str, data: Optional[object] = None):
        super().__init__(f"[{rpc_code}] {message}")
        self.rpc_code = rpc_code
        self.data = data
