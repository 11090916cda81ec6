"""
Guardian Recovery CLI
=====================
Thin Typer + Rich front end over the recovery client.

    guardian account-hash <public key hex>
    guardian registered|guardians|threshold|keys <owner public key hex>
    guardian build-register <owner> -g <guardian> -g <guardian> --threshold 2
    guardian build-approve <guardian> <recovery id>
    guardian build-has-guardians|build-get-guardians <signer> <owner>
    guardian submit signed_deploy.json --timeout 60000
    guardian status|wait <deploy hash>

Build commands print the unsigned deploy JSON; signing happens outside
this tool.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, List, NoReturn, Optional, TypeVar

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from config.settings import Settings
from guardian_recovery.errors import GuardianRecoveryError
from guardian_recovery.execution.execution_result import DeployResult, OutcomeStatus
from guardian_recovery.execution.submitter import DeploySubmitter
from guardian_recovery.identity.codec import derive_identity
from guardian_recovery.infrastructure.node_client import LedgerNodeClient
from guardian_recovery.services.recovery_service import RecoveryService
from guardian_recovery.state.reader import StateReader

app = typer.Typer(
    name="guardian",
    help="Guardian-based social account recovery client",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

T = TypeVar("T")


def _fail(message: str) -> NoReturn:
    console.print(f"[red bold]{escape(message)}[/]")
    raise typer.Exit(code=1)


def _run(work: Callable[[LedgerNodeClient], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with LedgerNodeClient(Settings.NODE_URL, Settings.RPC_TIMEOUT_SEC) as node:
            return await work(node)

    try:
        return asyncio.run(runner())
    except GuardianRecoveryError as e:
        _fail(str(e))
    except httpx.HTTPError as e:
        _fail(f"Node request failed: {e}")
    except OSError as e:
        _fail(f"I/O error: {e}")
    except ValueError as e:
        _fail(f"Invalid input: {e}")


def _print_result(result: DeployResult) -> None:
    if result.transaction_id == "" and result.success:
        console.print_json(result.message)
        return
    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.message}[/]")
    console.print_json(data=result.to_dict())
    if not result.success:
        raise typer.Exit(code=1)


# ═══════════════════════════════════════════════════════════════════════════════
# IDENTITY + STATE
# ═══════════════════════════════════════════════════════════════════════════════

@app.command("account-hash")
def account_hash(public_key: str = typer.Argument(..., help="Public key hex (01.. / 02..)")):
    """Print the account hash for a public key."""
    try:
        console.print(derive_identity(public_key).formatted)
    except GuardianRecoveryError as e:
        _fail(str(e))


@app.command()
def registered(owner: str):
    """Whether OWNER has a guardian set registered."""
    console.print(_run(lambda node: StateReader(node).is_registered(owner)))


@app.command()
def guardians(owner: str):
    """OWNER's guardians in registration order."""
    result = _run(lambda node: StateReader(node).get_guardians(owner))
    table = Table(title="Guardians")
    table.add_column("#", justify="right")
    table.add_column("Account hash")
    for i, guardian in enumerate(result, 1):
        table.add_row(str(i), guardian)
    console.print(table)


@app.command()
def threshold(owner: str):
    """OWNER's approval threshold (0 = not configured)."""
    console.print(_run(lambda node: StateReader(node).get_threshold(owner)))


@app.command()
def keys(owner: str):
    """OWNER's associated keys and action thresholds."""
    account = _run(lambda node: StateReader(node).get_account_keys(owner))
    table = Table(title="Associated keys")
    table.add_column("Account hash")
    table.add_column("Weight", justify="right")
    for key in account.associated_keys:
        table.add_row(key.account_hash, str(key.weight))
    console.print(table)
    console.print(
        f"deployment={account.deployment_threshold} "
        f"key_management={account.key_management_threshold}"
    )


# ═══════════════════════════════════════════════════════════════════════════════
# BUILD (UNSIGNED DEPLOYS)
# ═══════════════════════════════════════════════════════════════════════════════

def _build(build: Callable[[RecoveryService], DeployResult], load_wasm: bool = False) -> None:
    async def work(node: LedgerNodeClient) -> DeployResult:
        return build(RecoveryService.from_settings(node, load_wasm=load_wasm))

    _print_result(_run(work))


@app.command("build-register")
def build_register(
    owner: str,
    guardian: List[str] = typer.Option(..., "--guardian", "-g", help="Guardian public key (repeat)"),
    threshold: int = typer.Option(..., "--threshold", "-t", min=1),
):
    """Registration deploy (bootstrap session module)."""
    _build(lambda s: s.initialize_guardians(owner, guardian, threshold), load_wasm=True)


@app.command("build-start-recovery")
def build_start_recovery(initiator: str, target_owner: str, new_key: str):
    """Start recovery of TARGET_OWNER with NEW_KEY."""
    _build(lambda s: s.initiate_recovery(initiator, target_owner, new_key))


@app.command("build-approve")
def build_approve(guardian: str, recovery_id: str):
    _build(lambda s: s.approve_recovery(guardian, recovery_id))


@app.command("build-check")
def build_check(signer: str, recovery_id: str):
    """Threshold check (runs as a paid deploy)."""
    _build(lambda s: s.build_check_threshold_deploy(signer, recovery_id))


@app.command("build-finalize")
def build_finalize(signer: str, recovery_id: str):
    _build(lambda s: s.finalize_recovery(signer, recovery_id))


@app.command("build-has-guardians")
def build_has_guardians(signer: str, target_owner: str):
    """On-chain has_guardians call for TARGET_OWNER (paid deploy)."""
    _build(lambda s: s.build_has_guardians_deploy(signer, target_owner))


@app.command("build-get-guardians")
def build_get_guardians(signer: str, target_owner: str):
    """On-chain get_guardians call for TARGET_OWNER (paid deploy)."""
    _build(lambda s: s.build_get_guardians_deploy(signer, target_owner))


# ═══════════════════════════════════════════════════════════════════════════════
# SUBMIT + STATUS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def submit(
    deploy_file: Path = typer.Argument(..., exists=True, readable=True),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Confirmation timeout (ms)"),
):
    """Submit a signed deploy JSON file and wait for the outcome."""
    async def work(node: LedgerNodeClient) -> DeployResult:
        service = RecoveryService.from_settings(node, load_wasm=False)
        return await service.submit_and_confirm(deploy_file.read_text(), timeout_ms=timeout)

    _print_result(_run(work))


@app.command()
def status(deploy_hash: str):
    """One-shot deploy status."""
    report = _run(lambda node: DeploySubmitter(node).get_status(deploy_hash))
    console.print(f"{report.deploy_hash}: [bold]{report.status.value}[/]")
    if report.status == OutcomeStatus.FAILURE:
        console.print(f"[red]{report.reason}[/]")


@app.command()
def wait(
    deploy_hash: str,
    timeout: int = typer.Option(Settings.CONFIRMATION_TIMEOUT_MS, "--timeout", help="ms"),
):
    """Poll a deploy until it executes or TIMEOUT elapses."""
    async def work(node: LedgerNodeClient):
        service = RecoveryService.from_settings(node, load_wasm=False)
        return await service.submitter.await_outcome(deploy_hash, timeout_ms=timeout)

    outcome = _run(work)
    style = {"success": "green", "failed": "red"}.get(outcome.status.value, "yellow")
    console.print(f"[{style}]{outcome.status.value}[/] after {outcome.polls} polls {outcome.reason}")
    if not outcome.success:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
