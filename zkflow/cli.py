"""Command line interface for driving the zkLogin workflow."""

from __future__ import annotations

import asyncio
import webbrowser
from typing import Any, Awaitable, Callable, Optional

import typer

from zkflow.config import load_config
from zkflow.errors import ZkFlowError
from zkflow.models import TransactionOptions, WorkflowState
from zkflow.workflow import Navigator, ZkLoginWorkflow

app = typer.Typer(help="CLI for the zkLogin workflow")


@app.callback()
def main() -> None:
    """zkflow CLI entry point."""
    pass


async def build_workflow(navigator: Optional[Navigator] = None) -> ZkLoginWorkflow:
    """Create and restore a workflow from the loaded configuration."""
    return await ZkLoginWorkflow.create(load_config(), navigator=navigator)


def _run(
    action: Callable[[ZkLoginWorkflow], Awaitable[Any]],
    navigator: Optional[Navigator] = None,
) -> Any:
    async def runner() -> Any:
        workflow = await build_workflow(navigator=navigator)
        try:
            return await action(workflow)
        finally:
            await workflow.aclose()

    try:
        return asyncio.run(runner())
    except ZkFlowError as exc:
        code = exc.code.value if exc.code else "error"
        typer.secho(f"{code}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _echo_state(state: WorkflowState) -> None:
    typer.echo(f"Step: {state.current_step}")
    typer.echo(f"Ready: {'yes' if state.is_ready else 'no'}")
    if state.ephemeral_key_material:
        typer.echo(f"Max epoch: {state.ephemeral_key_material.max_epoch}")
    if state.jwt:
        validity = "valid" if state.jwt.is_valid else "expired"
        typer.echo(f"JWT subject: {state.jwt.claims.get('sub')} ({validity})")
    if state.zklogin_address:
        typer.echo(
            f"Address: {state.zklogin_address.address}"
            f" (balance {state.zklogin_address.balance or 'unknown'})"
        )
    if state.last_error:
        typer.secho(f"Last error: {state.last_error}", fg=typer.colors.YELLOW)


@app.command("status")
def status() -> None:
    """Show the restored workflow state."""

    async def action(workflow: ZkLoginWorkflow) -> WorkflowState:
        return workflow.get_state()

    _echo_state(_run(action))


@app.command("login")
def login(
    provider: Optional[str] = typer.Option(None, help="OAuth provider name"),
    state: Optional[str] = typer.Option(None, help="Opaque state echoed back"),
    open_browser: bool = typer.Option(
        False, "--open", help="Open the authorization URL in a browser"
    ),
) -> None:
    """
    Print the OAuth authorization URL for the current key material.

    Example:
        zkflow login --provider google --open
    """

    async def action(workflow: ZkLoginWorkflow) -> str:
        return workflow.redirect_to_provider(provider, state)

    url = _run(action, navigator=webbrowser.open if open_browser else None)
    typer.echo(url)


@app.command("callback")
def callback(url: str) -> None:
    """
    Complete login from the provider's redirect URL.

    Decodes the token, then derives salt, address and proof in turn.

    Example:
        zkflow callback "https://app.example/cb#id_token=eyJ..."
    """

    async def action(workflow: ZkLoginWorkflow) -> WorkflowState:
        await workflow.handle_callback(url)
        return workflow.get_state()

    _echo_state(_run(action))


@app.command("balance")
def balance() -> None:
    """Refresh and print the balance of the derived address."""

    async def action(workflow: ZkLoginWorkflow) -> str:
        return await workflow.refresh_balance()

    typer.echo(_run(action))


@app.command("faucet")
def faucet() -> None:
    """Request test funds for the derived address."""

    async def action(workflow: ZkLoginWorkflow) -> Optional[str]:
        return await workflow.request_faucet_funds()

    typer.echo(f"Balance: {_run(action)}")


@app.command("transfer")
def transfer(
    recipient: Optional[str] = typer.Option(None, help="Recipient address"),
    amount: Optional[int] = typer.Option(None, help="Amount in MIST"),
) -> None:
    """Sign and submit a transfer from the derived address."""

    async def action(workflow: ZkLoginWorkflow) -> str:
        options = TransactionOptions(recipient=recipient, amount=amount)
        return await workflow.execute_transaction(options)

    typer.echo(f"Digest: {_run(action)}")


@app.command("reset")
def reset() -> None:
    """Clear all stored records and generate new key material."""

    async def action(workflow: ZkLoginWorkflow) -> WorkflowState:
        await workflow.reset()
        return workflow.get_state()

    _echo_state(_run(action))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
