import asyncio
import os

import click
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from kodo import __version__
from kodo.config import PERSIST_KEYS, get_config, save_user_settings
from kodo.constants import SESSION_LIST_LIMIT
from kodo.context import Context
from kodo.core.models import TaskCallbacks, ToolUse
from kodo.errors import KodoError
from kodo.llm.models import get_model_meta, list_models
from kodo.logging import configure_logging
from kodo.session.service import SessionService
from kodo.session.store import SessionStore
from kodo.service import create_agent_service
from kodo.tools.core.enums import SESSION_APPROVAL_MODES, ApprovalCategory, ApprovalMode
from kodo.utils import truncate

PRODUCT_NAME = "kodo"

console = Console()
err_console = Console(stderr=True)

APPROVAL_MODES = [m.value for m in ApprovalMode]
SESSION_MODES = [m.value for m in ApprovalMode if m in SESSION_APPROVAL_MODES]


@click.group(invoke_without_command=True)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.version_option(__version__, prog_name=PRODUCT_NAME)
@click.pass_context
def main(ctx, log_level: str | None):
    """kodo - a single-agent coding assistant"""
    ctx.ensure_object(dict)
    try:
        config = get_config(os.getcwd())
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] invalid settings: {e}")
        raise SystemExit(1)
    configure_logging(log_level or config.log_level)

    if ctx.invoked_subcommand is None:
        console.print("[bold]kodo[/bold] - a single-agent coding assistant\n")
        console.print('Run [cyan]kodo run "your request"[/cyan] to start a task.')
        console.print("\nUse [cyan]kodo --help[/cyan] for all commands.")


@main.command()
@click.argument("prompt")
@click.option("--cwd", default=None, type=click.Path(exists=True, file_okay=False), help="Project directory")
@click.option("-m", "--model", default=None, help="Model id for this task")
@click.option("--plan", is_flag=True, help="Plan only: read-only tools, no changes")
@click.option("-s", "--session", "session_id", default=None, help="Resume an existing session")
@click.option("--parent", "parent_uuid", default=None, help="Branch from this message uuid")
@click.option("--language", default=None, help="Answer language")
@click.option("--approval-mode", type=click.Choice(APPROVAL_MODES, case_sensitive=False), default=None)
@click.option("--thinking", type=click.Choice(["low", "medium", "high"]), default=None, help="Reasoning effort")
def run(
    prompt: str,
    cwd: str | None,
    model: str | None,
    plan: bool,
    session_id: str | None,
    parent_uuid: str | None,
    language: str | None,
    approval_mode: str | None,
    thinking: str | None,
):
    """Run one task headlessly and print the answer."""
    overrides = {"model": model, "language": language, "approval_mode": approval_mode}
    ok = asyncio.run(
        _run_task(
            prompt,
            cwd=cwd or os.getcwd(),
            plan=plan,
            session_id=session_id,
            parent_uuid=parent_uuid,
            overrides=overrides,
            thinking=thinking,
        )
    )
    if not ok:
        raise SystemExit(1)


async def _confirm_tool(tool_use: ToolUse, category: ApprovalCategory | None) -> bool:
    console.print()
    console.print(f"[bold yellow]{tool_use.name}[/bold yellow] [dim]({category or 'unknown'})[/dim]")
    for key, value in tool_use.params.items():
        console.print(f"  [cyan]{key}[/cyan]: {escape(truncate(str(value), 300))}")
    return await asyncio.to_thread(Confirm.ask, "Allow?", default=False, console=console)


async def _print_delta(text: str) -> None:
    console.print(text, end="", markup=False, highlight=False)


async def _run_task(
    prompt: str,
    *,
    cwd: str,
    plan: bool,
    session_id: str | None,
    parent_uuid: str | None,
    overrides: dict,
    thinking: str | None,
) -> bool:
    try:
        service = await create_agent_service(
            cwd,
            product_name=PRODUCT_NAME,
            version=__version__,
            session_id=session_id,
            config_overrides=overrides,
        )
    except KodoError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        return False

    try:
        console.print(f"[dim]Session {service.session_id}[/dim]\n")
        callbacks = TaskCallbacks(on_tool_approve=_confirm_tool, on_text_delta=_print_delta)
        run_task = service.plan if plan else service.send
        result = await run_task(prompt, parent_uuid=parent_uuid, thinking_effort=thinking, callbacks=callbacks)
    finally:
        await service.destroy()

    console.print()
    if not result.success:
        err_console.print(f"[red]Error:[/red] {result.error.message}")
        return False

    meta = result.metadata
    usage = result.data.usage
    console.print(
        f"\n[dim]{meta.turns_count} turns, {meta.tool_calls_count} tool calls, "
        f"{usage.total_tokens} tokens, {meta.duration_ms / 1000:.1f}s[/dim]"
    )
    return True


@main.command()
@click.option("--cwd", default=None, type=click.Path(exists=True, file_okay=False))
@click.option("-n", "--limit", default=SESSION_LIST_LIMIT, show_default=True)
def sessions(cwd: str | None, limit: int):
    """List recent sessions for a project."""
    rows = asyncio.run(_list_sessions(cwd or os.getcwd(), limit))
    if not rows:
        console.print("[dim]No sessions yet.[/dim]")
        return

    table = Table()
    table.add_column("Session", style="cyan")
    table.add_column("Last activity")
    table.add_column("Messages", justify="right")
    table.add_column("Name")
    for row in rows:
        table.add_row(row["session_id"], row["last_activity"], str(row["message_count"]), row["name"] or "")
    console.print(table)


async def _list_sessions(cwd: str, limit: int) -> list[dict]:
    context = Context.create(cwd, product_name=PRODUCT_NAME, version=__version__)
    store = SessionStore(context.paths.sessions_db_path)
    await store.connect()
    try:
        return await SessionService(store).list_sessions(limit=limit)
    finally:
        await store.close()


@main.command()
@click.argument("session_id")
@click.argument("tool_name")
@click.option("--revoke", is_flag=True, help="Remove the tool from the session's approved list")
@click.option("--cwd", default=None, type=click.Path(exists=True, file_okay=False))
def approve(session_id: str, tool_name: str, revoke: bool, cwd: str | None):
    """Let TOOL_NAME run without confirmation in a session."""

    async def _update():
        store, session_service = await _open_sessions(cwd or os.getcwd())
        try:
            if revoke:
                return await session_service.revoke_tool(session_id, tool_name)
            return await session_service.approve_tool(session_id, tool_name)
        finally:
            await store.close()

    policy = _run_policy_update(_update())
    console.print(f"Approved tools: {', '.join(sorted(policy.pre_approved_tools)) or '[dim]none[/dim]'}")


@main.command()
@click.argument("session_id")
@click.argument("mode", type=click.Choice([*SESSION_MODES, "none"], case_sensitive=False))
@click.option("--cwd", default=None, type=click.Path(exists=True, file_okay=False))
def mode(session_id: str, mode: str, cwd: str | None):
    """Set a session's approval mode override ("none" clears it). yolo is only available per task."""
    override = None if mode.lower() == "none" else next(m for m in ApprovalMode if m.value.lower() == mode.lower())

    async def _update():
        store, session_service = await _open_sessions(cwd or os.getcwd())
        try:
            return await session_service.set_approval_mode(session_id, override)
        finally:
            await store.close()

    policy = _run_policy_update(_update())
    console.print(f"Approval mode: [cyan]{policy.approval_mode_override or 'none'}[/cyan]")


@main.command()
def models():
    """List known models and their limits."""
    table = Table()
    table.add_column("Model", style="cyan")
    table.add_column("Reasoning")
    table.add_column("Context", justify="right")
    table.add_column("Output", justify="right")
    for model_id in list_models():
        meta = get_model_meta(model_id)
        table.add_row(model_id, "yes" if meta.reasoning else "", f"{meta.max_context_tokens:,}", f"{meta.max_output_tokens:,}")
    console.print(table)


@main.command("set")
@click.argument("key", type=click.Choice(sorted(PERSIST_KEYS)))
@click.argument("value")
def set_setting(key: str, value: str):
    """Persist a user setting to the global settings file."""
    parsed: str | bool = value
    if value.lower() in ("true", "false"):
        parsed = value.lower() == "true"
    save_user_settings({key: parsed})
    console.print(f"[green]Saved[/green] {key} = {parsed}")


async def _open_sessions(cwd: str) -> tuple[SessionStore, SessionService]:
    context = Context.create(cwd, product_name=PRODUCT_NAME, version=__version__)
    store = SessionStore(context.paths.sessions_db_path)
    await store.connect()
    return store, SessionService(store)


def _run_policy_update(coro):
    try:
        return asyncio.run(coro)
    except KodoError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
