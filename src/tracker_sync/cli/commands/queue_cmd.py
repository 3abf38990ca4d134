"""Queue inspection and failed-operation actions."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from tracker_sync.cli._helpers import console, get_config, get_store, output_json, run_async
from tracker_sync.core.operation import Operation
from tracker_sync.sync.queue import OperationQueue
from tracker_sync.utils.timeutils import to_iso

queue_app = typer.Typer(help="Inspect and manage queued operations")


async def _get_queue() -> OperationQueue:
    return OperationQueue(await get_store(get_config()))


@queue_app.command("list")
def queue_list(
    failed_only: Annotated[
        bool, typer.Option("--failed", "-f", help="Only show failed operations")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List queued operations, oldest first.

    Examples:
        tsync queue list
        tsync queue list --failed
    """

    async def _list() -> list[Operation]:
        queue = await _get_queue()
        return await (queue.failed() if failed_only else queue.all())

    ops = run_async(_list())
    if json_output:
        output_json({"operations": [op.to_dict() for op in ops]})
        return
    if not ops:
        typer.echo("Queue is empty." if not failed_only else "No failed operations.")
        return

    table = Table(show_header=True)
    table.add_column("ID", style="bright_black")
    table.add_column("Type")
    table.add_column("Record", style="cyan")
    table.add_column("Status")
    table.add_column("Retries", justify="right")
    table.add_column("Queued")
    table.add_column("Error", overflow="fold")
    for op in ops:
        table.add_row(
            op.id,
            op.type.value,
            f"{op.entity_type}/{op.record_id}",
            f"[red]{op.status.value}[/red]" if op.status == "failed" else op.status.value,
            str(op.retry_count),
            to_iso(op.created_at),
            op.error or "",
        )
    console.print(table)


@queue_app.command("retry")
def queue_retry(
    operation_id: Annotated[str, typer.Argument(help="Operation ID")],
) -> None:
    """Reset a failed operation so the next sync tries it again.

    Examples:
        tsync queue retry 3f2a...
    """

    async def _retry() -> Operation | None:
        return await (await _get_queue()).retry(operation_id)

    if run_async(_retry()) is None:
        typer.secho(f"No queued operation {operation_id}", fg=typer.colors.RED)
        raise typer.Exit(1)
    typer.secho(f"Operation {operation_id} queued for retry.", fg=typer.colors.GREEN)


@queue_app.command("retry-all")
def queue_retry_all() -> None:
    """Reset every failed operation.

    Examples:
        tsync queue retry-all
    """

    async def _retry_all() -> int:
        return await (await _get_queue()).retry_all_failed()

    count = run_async(_retry_all())
    typer.secho(f"{count} failed operation(s) queued for retry.", fg=typer.colors.GREEN)


@queue_app.command("drop")
def queue_drop(
    operation_id: Annotated[str, typer.Argument(help="Operation ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Discard an operation without sending it.

    Examples:
        tsync queue drop 3f2a... --yes
    """
    if not yes:
        typer.confirm(f"Drop operation {operation_id}?", abort=True)

    async def _drop() -> bool:
        return await (await _get_queue()).discard(operation_id)

    if not run_async(_drop()):
        typer.secho(f"No queued operation {operation_id}", fg=typer.colors.RED)
        raise typer.Exit(1)
    typer.secho(f"Operation {operation_id} dropped.", fg=typer.colors.GREEN)
