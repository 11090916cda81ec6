"""
Execution Pipeline
==================
Deploy assembly, submission and confirmation.

Components:
- DeployBuilder: unsigned deploy assembly and hashing (The Architect's hands)
- DeploySubmitter: submission + confirmation polling (The Pilot)
- ScheduledRetry: cancellable poll schedule
"""

from guardian_recovery.execution.deploy_builder import (
    Deploy,
    DeployBuilder,
    load_session_wasm,
)

from guardian_recovery.execution.execution_result import (
    DeployResult,
    DeployStatusReport,
    OutcomeStatus,
    TransactionOutcome,
)

from guardian_recovery.execution.retry import ScheduledRetry

from guardian_recovery.execution.submitter import (
    DeploySubmitter,
    SubmitterConfig,
)


__all__ = [
    # Builder
    "Deploy",
    "DeployBuilder",
    "load_session_wasm",
    # Results
    "DeployResult",
    "DeployStatusReport",
    "OutcomeStatus",
    "TransactionOutcome",
    # Submitter
    "DeploySubmitter",
    "SubmitterConfig",
    "ScheduledRetry",
]
