"""tracker-sync CLI main entry point."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from tracker_sync.cli._helpers import (
    build_context,
    configure_logging,
    console,
    get_config,
    get_store,
    output_json,
    run_async,
)
from tracker_sync.cli.commands.config_cmd import config_app
from tracker_sync.cli.commands.queue_cmd import queue_app
from tracker_sync.entities import DEPENDENCY_ORDER
from tracker_sync.sync.orchestrator import SyncOrchestrator, SyncReport
from tracker_sync.sync.queue import OperationQueue
from tracker_sync.utils.timeutils import to_iso

# Main app
app = typer.Typer(
    name="tsync",
    help="tracker-sync - offline-first sync between the local tracker store and Notion",
    no_args_is_help=True,
)
app.add_typer(queue_app, name="queue")
app.add_typer(config_app, name="config")


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")
    ] = False,
) -> None:
    configure_logging(verbose)


def _print_report(report: SyncReport) -> None:
    if report.skipped:
        typer.secho(f"Sync skipped: {report.skipped}", fg=typer.colors.YELLOW)
        return

    table = Table(title=f"Sync ({report.trigger})", show_header=True)
    table.add_column("Step", style="cyan")
    table.add_column("Result")
    if report.push is not None:
        push = report.push
        table.add_row(
            "push",
            f"{push.pushed} pushed, {push.failed} failed, "
            f"{push.retried} retrying, {push.deferred} waiting",
        )
    if report.pull is not None:
        pull = report.pull
        table.add_row(
            "pull",
            f"{pull.fetched} fetched, {pull.inserted} new, {pull.updated} updated, "
            f"{pull.deleted} deleted, {pull.failed} failed",
        )
        if pull.repair is not None:
            table.add_row("repair", f"{pull.repair.checked} checked, {pull.repair.repaired} fixed")
    console.print(table)

    if report.push is not None:
        for error in report.push.errors:
            typer.secho(f"  failed: {error}", fg=typer.colors.RED)
    if report.error:
        typer.secho(f"Error: {report.error}", fg=typer.colors.RED)


@app.command()
def run(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Run one sync cycle (push local changes, then pull remote ones).

    Examples:
        tsync run
        tsync -v run --json
    """
    config = get_config()

    async def _run() -> SyncReport | None:
        context = await build_context(config)
        orchestrator = SyncOrchestrator(context, is_configured=lambda: config.configured)
        return await orchestrator.run("manual")

    report = run_async(_run())
    if report is None:
        typer.secho("A sync is already running.", fg=typer.colors.YELLOW)
        return
    if json_output:
        output_json(report.to_dict())
    else:
        _print_report(report)
    if report.error:
        raise typer.Exit(1)


@app.command()
def status(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show queue counts, last sync time and pull cursors.

    Examples:
        tsync status
        tsync status --json
    """
    config = get_config()

    async def _status() -> dict[str, object]:
        store = await get_store(config)
        counts = await OperationQueue(store).counts()
        last_sync = await store.get_last_sync()
        cursors = {}
        for entity_type in DEPENDENCY_ORDER:
            cursor = await store.get_cursor(entity_type)
            cursors[entity_type] = to_iso(cursor) if cursor else None
        return {
            "configured": config.configured,
            "pending": counts.pending,
            "failed": counts.failed,
            "last_sync_at": to_iso(last_sync) if last_sync else None,
            "cursors": cursors,
        }

    data = run_async(_status())
    if json_output:
        output_json(data)
        return

    if not data["configured"]:
        typer.secho("[NOT CONFIGURED] Set a token and containers first", fg=typer.colors.YELLOW)
    typer.echo(f"Pending: {data['pending']}")
    failed = data["failed"]
    typer.secho(f"Failed:  {failed}", fg=typer.colors.RED if failed else None)
    typer.echo(f"Last sync: {data['last_sync_at'] or 'never'}")

    table = Table(title="Pull cursors", show_header=True)
    table.add_column("Entity type", style="cyan")
    table.add_column("Container")
    table.add_column("Cursor")
    cursors = data["cursors"]
    assert isinstance(cursors, dict)
    for entity_type, cursor in cursors.items():
        table.add_row(
            entity_type,
            config.container_for(entity_type) or "-",
            cursor or "-",
        )
    console.print(table)


@app.command()
def watch(
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Minutes between cycles (default: config)"),
    ] = None,
) -> None:
    """Sync periodically until interrupted.

    Examples:
        tsync watch
        tsync watch --interval 1
    """
    config = get_config()
    minutes = interval if interval is not None else config.sync.interval_minutes
    if minutes <= 0:
        typer.secho("Interval must be positive.", fg=typer.colors.RED)
        raise typer.Exit(1)

    async def _watch() -> None:
        context = await build_context(config)
        orchestrator = SyncOrchestrator(context, is_configured=lambda: config.configured)
        task = orchestrator.start_periodic(minutes * 60)
        try:
            await task
        finally:
            await orchestrator.stop()

    typer.echo(f"Syncing every {minutes:g} minute(s). Press Ctrl+C to stop.")
    try:
        run_async(_watch())
    except KeyboardInterrupt:
        typer.echo("\nStopped.")


@app.command()
def version() -> None:
    """Show version information."""
    from tracker_sync import __version__

    typer.echo(f"tracker-sync v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
