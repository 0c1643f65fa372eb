"""
SyncScope CLI Main Entry Point.

Provides commands and an interactive shell for managing the sync
subscriptions of an application.
"""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from syncscope import __version__
from syncscope.core.config import SyncScopeConfig, load_config
from syncscope.core.errors import SyncScopeError
from syncscope.core.models import OperationResult
from syncscope.core.session import Session

console = Console()

BACK = "Back"


def get_session(ctx: click.Context) -> Session:
    """Get or create session from context."""
    if "session" not in ctx.obj:
        try:
            session = Session(config=ctx.obj["config"], app_id=ctx.obj.get("app_id"))
        except SyncScopeError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)
        ctx.obj["session"] = session
        ctx.find_root().call_on_close(session.close)
    return ctx.obj["session"]


def show_result(ctx: click.Context, result: OperationResult) -> bool:
    """Print an operation result. Returns False if the operation failed."""
    if ctx.obj.get("json_output", False):
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return result.success

    if result.skipped:
        return True

    for warning in result.warnings:
        console.print(f"[yellow]⚠️  {warning}[/yellow]")

    if result.success:
        console.print(f"[green]✓ {result.message}[/green]")
    else:
        console.print(f"[red]✗ {result.message}[/red]")
    return result.success


def subscriptions_table(rows: list[dict[str, str]]) -> Table:
    table = Table(title="Subscriptions")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Table", style="yellow")
    table.add_column("Query", style="white")

    for index, row in enumerate(rows, start=1):
        table.add_row(str(index), row["Name"], row["Table"], row["Query"])
    return table


def choose_subscription(names: list[str]) -> str | None:
    """Numbered chooser over live names. Returns None when the user picks Back."""
    choices = [*names, BACK]
    for index, choice in enumerate(choices, start=1):
        console.print(f"  [cyan]{index})[/cyan] {choice}")

    picked = click.prompt(
        "Which subscription do you want to remove?",
        type=click.IntRange(1, len(choices)),
    )
    if picked == len(choices):
        return None
    return choices[picked - 1]


@click.group()
@click.version_option(version=__version__, prog_name="SyncScope")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--app-id", help="Application identifier (overrides the config file)")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    app_id: str | None,
    json_output: bool,
) -> None:
    """
    SyncScope - Manage sync subscriptions.

    Lists, adds, removes and re-applies the query subscriptions that decide
    which objects the sync server sends to this device.
    """
    ctx.ensure_object(dict)

    if config:
        ctx.obj["config"] = SyncScopeConfig.load(config)
    else:
        ctx.obj["config"] = load_config()

    ctx.obj["app_id"] = app_id
    ctx.obj["json_output"] = json_output


@cli.command("list")
@click.pass_context
def list_subscriptions(ctx: click.Context) -> None:
    """List the live subscriptions."""
    session = get_session(ctx)
    result = session.list_subscriptions()

    if ctx.obj.get("json_output", False) or not result.success:
        if not show_result(ctx, result):
            sys.exit(1)
        return

    if not result.data:
        console.print("[dim]No subscriptions.[/dim]")
        return
    console.print(subscriptions_table(result.data))


@cli.command("apply")
@click.pass_context
def apply_subscriptions(ctx: click.Context) -> None:
    """Apply the saved subscriptions if the live set is empty."""
    session = get_session(ctx)

    with console.status("Applying subscriptions…"):
        result = session.apply_initial_subscriptions()

    if not show_result(ctx, result):
        sys.exit(1)


@cli.command("add")
@click.argument("name", required=False)
@click.argument("class_name", metavar="CLASS", required=False)
@click.argument("query", required=False)
@click.pass_context
def add_subscription(
    ctx: click.Context,
    name: str | None,
    class_name: str | None,
    query: str | None,
) -> None:
    """Add a subscription, or modify the one with the same NAME."""
    session = get_session(ctx)

    if name is None:
        name = click.prompt("Please enter the subscription name", default="", show_default=False)
    if class_name is None:
        class_name = click.prompt("Collection/Table Name", default="", show_default=False)
    if query is None:
        query = click.prompt("RQL Filter", default="", show_default=False)

    with console.status(f"Adding/Modifying subscription {name}…"):
        result = session.add_modify_subscription(name, class_name, query)

    if not show_result(ctx, result):
        sys.exit(1)


@cli.command("remove")
@click.argument("name", required=False)
@click.pass_context
def remove_subscription(ctx: click.Context, name: str | None) -> None:
    """Remove the live subscription NAME (choose from a list if omitted)."""
    session = get_session(ctx)

    if name is None:
        listing = session.list_subscriptions()
        if not listing.success:
            show_result(ctx, listing)
            sys.exit(1)
        console.print(subscriptions_table(listing.data))
        name = choose_subscription([row["Name"] for row in listing.data])
        if name is None:
            return

    with console.status(f"Removing subscription {name}…"):
        result = session.remove_subscription(name)

    if not show_result(ctx, result):
        sys.exit(1)


@cli.command("refresh")
@click.pass_context
def refresh_subscriptions(ctx: click.Context) -> None:
    """Drop the live subscriptions and re-apply the saved ones."""
    session = get_session(ctx)

    with console.status("Refreshing subscriptions…"):
        result = session.refresh_subscriptions()

    if not show_result(ctx, result):
        sys.exit(1)


@cli.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear_subscriptions(ctx: click.Context, yes: bool) -> None:
    """Remove every subscription from the live set and the registry."""
    session = get_session(ctx)

    if not yes and not click.confirm("Remove ALL subscriptions?", default=False):
        console.print("[yellow]Operation cancelled[/yellow]")
        return

    with console.status("Clearing subscriptions…"):
        result = session.clear_subscriptions()

    if not show_result(ctx, result):
        sys.exit(1)


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Compare the saved subscriptions with the live set."""
    session = get_session(ctx)

    try:
        report = session.reconcile_report()
    except SyncScopeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if ctx.obj.get("json_output", False):
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    state_color = "green" if report.in_sync else "yellow"
    state_text = "In sync" if report.in_sync else "Diverged (run refresh)"
    panel = Panel(
        f"""[cyan]Session ID:[/cyan] {session.id[:8]}
[cyan]Application:[/cyan] {session.app_id}
[cyan]Engine:[/cyan] {session.engine.state.name}
[cyan]Registry:[/cyan] [{state_color}]{state_text}[/{state_color}]
[cyan]Missing live:[/cyan] {", ".join(report.missing) or "(none)"}
[cyan]Not saved:[/cyan] {", ".join(report.extra) or "(none)"}
[cyan]Changed:[/cyan] {", ".join(report.changed) or "(none)"}""",
        title="SyncScope Status",
    )
    console.print(panel)


@cli.command("shell")
@click.pass_context
def shell(ctx: click.Context) -> None:
    """Interactive menu over the subscription operations."""
    session = get_session(ctx)
    pause = session.config.ui.pause_seconds

    with console.status("Applying subscriptions…"):
        show_result(ctx, session.apply_initial_subscriptions())

    menu = [
        ("List subscriptions", list_subscriptions),
        ("Add/Modify subscription", add_subscription),
        ("Remove subscription", remove_subscription),
        ("Refresh subscriptions", refresh_subscriptions),
        ("Status", status),
    ]

    while True:
        if session.config.ui.show_banner:
            console.print(Panel(f"Application: {session.app_id}", title="SyncScope"))
        for index, (label, _) in enumerate(menu, start=1):
            console.print(f"  [cyan]{index})[/cyan] {label}")
        console.print(f"  [cyan]{len(menu) + 1})[/cyan] Quit")

        picked = click.prompt("Choose an action", type=click.IntRange(1, len(menu) + 1))
        if picked == len(menu) + 1:
            return

        _, command = menu[picked - 1]
        try:
            ctx.invoke(command)
        except SystemExit:
            # Failure already reported; stay in the menu
            pass

        if command in (list_subscriptions, status):
            click.pause("Press a key to proceed…")
        else:
            time.sleep(pause)


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
