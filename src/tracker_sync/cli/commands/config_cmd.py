"""CLI commands for configuration management."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from tracker_sync.cli._helpers import console, get_config, mask, output_json
from tracker_sync.config import RemoteSettings
from tracker_sync.entities import DEPENDENCY_ORDER

config_app = typer.Typer(help="Configuration management")


@config_app.command("show")
def config_show(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the effective configuration (secrets masked).

    Examples:
        tsync config show
    """
    config = get_config()
    remote = config.remote.to_dict()
    for secret in ("token", "proxy_token"):
        if secret in remote:
            remote[secret] = mask(remote[secret])

    data = {
        "config_path": str(config.config_path),
        "db_path": str(config.db_path),
        "remote": remote,
        "containers": dict(config.containers),
        "sync": config.sync.to_dict(),
    }
    if json_output:
        output_json(data)
        return

    typer.echo(f"Config:   {data['config_path']}")
    typer.echo(f"Database: {data['db_path']}")
    typer.echo(f"API:      {config.remote.base_url} (version {config.remote.api_version})")
    typer.echo(f"Token:    {mask(config.remote.token)}")
    if config.remote.proxy_url:
        typer.echo(f"Proxy:    {config.remote.proxy_url}")

    table = Table(title="Containers", show_header=True)
    table.add_column("Entity type", style="cyan")
    table.add_column("Container ID")
    for entity_type in DEPENDENCY_ORDER:
        table.add_row(entity_type, config.container_for(entity_type) or "[bright_black]-[/]")
    console.print(table)

    for key, value in config.sync.to_dict().items():
        typer.echo(f"  {key} = {value}")


@config_app.command("set-container")
def config_set_container(
    entity_type: Annotated[str, typer.Argument(help="Entity type, e.g. pets")],
    container_id: Annotated[str, typer.Argument(help="Remote data source ID ('' to clear)")],
) -> None:
    """Map an entity type to its remote data source.

    Examples:
        tsync config set-container pets 1a2b3c...
        tsync config set-container events ""
    """
    if entity_type not in DEPENDENCY_ORDER:
        typer.secho(f"Unknown entity type: {entity_type}", fg=typer.colors.RED)
        typer.echo(f"Known types: {', '.join(DEPENDENCY_ORDER)}")
        raise typer.Exit(1)

    config = get_config()
    container_id = container_id.strip()
    if container_id:
        config.containers[entity_type] = container_id
    else:
        config.containers.pop(entity_type, None)
    config.save()
    typer.secho(
        f"{entity_type} -> {container_id or '(none)'}",
        fg=typer.colors.GREEN,
    )


@config_app.command("set-remote")
def config_set_remote(
    token: Annotated[str | None, typer.Option("--token", "-t", help="API token")] = None,
    proxy_url: Annotated[
        str | None, typer.Option("--proxy-url", help="Proxy worker URL ('' to clear)")
    ] = None,
    proxy_token: Annotated[
        str | None, typer.Option("--proxy-token", help="Proxy shared secret")
    ] = None,
    base_url: Annotated[str | None, typer.Option("--base-url", help="API base URL")] = None,
    api_version: Annotated[
        str | None, typer.Option("--api-version", help="Notion-Version header value")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Request timeout in seconds")
    ] = None,
) -> None:
    """Update remote API connection settings.

    Examples:
        tsync config set-remote --token secret_abc
        tsync config set-remote --proxy-url https://proxy.example.workers.dev --proxy-token s3
    """
    config = get_config()
    updates = {
        "token": token,
        "proxy_url": proxy_url,
        "proxy_token": proxy_token,
        "base_url": base_url,
        "api_version": api_version,
        "timeout": timeout,
    }
    changes = {k: v for k, v in updates.items() if v is not None}
    if not changes:
        typer.echo("Nothing to change. See 'tsync config set-remote --help'.")
        raise typer.Exit(1)

    merged = {**config.remote.to_dict(), **changes}
    config.remote = RemoteSettings.from_dict(merged)
    config.save()

    typer.secho("Remote settings saved.", fg=typer.colors.GREEN)
    for key in sorted(changes):
        shown = mask(str(changes[key])) if "token" in key else changes[key]
        typer.echo(f"  {key}: {shown}")
