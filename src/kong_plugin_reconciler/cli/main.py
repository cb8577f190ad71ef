"""Main CLI entry point using Typer.

Each command runs exactly one reconciler operation against the Kong Admin
API and prints the resulting plugin state:

- create: Create a plugin from a YAML declaration
- read: Refresh a plugin's state from Kong
- update: Apply a YAML declaration to an existing plugin
- delete: Delete a plugin
- import: Start managing an existing plugin by id
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from kong_plugin_reconciler import __version__
from kong_plugin_reconciler.cli.output import OutputFormat, render_state
from kong_plugin_reconciler.integrations.kong.client import KongAdminClient
from kong_plugin_reconciler.integrations.kong.config import ReconcilerConfig
from kong_plugin_reconciler.integrations.kong.exceptions import (
    KongAPIError,
    KongConnectionError,
    KongPluginConflictError,
    KongPluginValidationError,
    KongUnexpectedStatusError,
)
from kong_plugin_reconciler.logging.config import LOG_DIR, configure_logging
from kong_plugin_reconciler.resources.plugin import PluginReconciler
from kong_plugin_reconciler.resources.schema import PLUGIN_SCHEMA
from kong_plugin_reconciler.resources.state import ResourceData, load_declaration

app = typer.Typer(
    name="kong-plugin",
    help="Reconcile declared Kong plugins against the Kong Admin API.",
    no_args_is_help=True,
)

console = Console()


DeclarationArgument = Annotated[
    Path,
    typer.Argument(
        exists=True,
        dir_okay=False,
        readable=True,
        help="YAML file declaring the plugin",
    ),
]

PluginIdArgument = Annotated[str, typer.Argument(help="Plugin ID")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"kong-plugin version {__version__}")
        raise typer.Exit()


def handle_kong_error(error: KongAPIError) -> None:
    """Print a Kong error with a hint and exit with status 1.

    Raises:
        typer.Exit: Always exits with code 1.
    """
    if isinstance(error, KongConnectionError):
        console.print("[red]Error:[/red] Cannot reach Kong Admin API")
        console.print(f"  {error.message}", markup=False)
        if error.original_error:
            console.print(f"  Cause: {error.original_error}", markup=False)
        console.print("\n[dim]Hint: Check that Kong is running and the URL is correct.[/dim]")

    elif isinstance(error, KongPluginConflictError):
        console.print("[red]Error:[/red] Plugin already exists in Kong")
        console.print(f"  {error.message}", markup=False)
        console.print("\n[dim]Hint: Find its id and run:[/dim]")
        console.print("  kong-plugin import <plugin-id>", markup=False)

    elif isinstance(error, KongPluginValidationError):
        console.print("[red]Error:[/red] Invalid plugin declaration")
        console.print(f"  {error.message}", markup=False)
        for item in error.errors:
            console.print(f"    - {item}", markup=False)

    elif isinstance(error, KongUnexpectedStatusError):
        console.print("[red]Error:[/red] Unexpected response from Kong")
        console.print(f"  {error.message}", markup=False)
        if error.endpoint:
            console.print(f"  Endpoint: {error.endpoint}", markup=False)

    else:
        console.print(f"[red]Error:[/red] {error.message}", markup=False)
        if error.status_code:
            console.print(f"  HTTP Status: {error.status_code}")
        if error.endpoint:
            console.print(f"  Endpoint: {error.endpoint}", markup=False)

    raise typer.Exit(1)


@contextmanager
def _reconciler(ctx: typer.Context) -> Iterator[PluginReconciler]:
    """Open an Admin API client for one command and hand out a reconciler."""
    config: ReconcilerConfig = ctx.obj
    try:
        with KongAdminClient(config.connection, config.auth) as client:
            yield PluginReconciler(client)
    except KongAPIError as e:
        handle_kong_error(e)


def _output(ctx: typer.Context) -> OutputFormat:
    config: ReconcilerConfig = ctx.obj
    return OutputFormat(config.output_format)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode."),
    no_log_file: bool = typer.Option(
        False, "--no-log-file", help="Do not write the rotating log file."
    ),
    admin_url: str | None = typer.Option(
        None, "--admin-url", help="Kong Admin API URL (overrides KONG_PLUGIN_ADMIN_URL)."
    ),
    output: OutputFormat | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: table, json, or yaml",
        case_sensitive=False,
    ),
) -> None:
    """Kong plugin reconciler - manage plugin attachments declaratively."""
    configure_logging(verbose=verbose, debug=debug, log_dir=None if no_log_file else LOG_DIR)

    base: dict[str, object] = {}
    if admin_url:
        base["connection"] = {"base_url": admin_url}
    try:
        config = ReconcilerConfig.from_env(base)
    except ValidationError as e:
        console.print("[red]Error:[/red] Invalid configuration")
        console.print(f"  {e}", markup=False)
        raise typer.Exit(1) from e

    if output is not None:
        config = config.model_copy(update={"output_format": output.value})
    ctx.obj = config


@app.command()
def create(ctx: typer.Context, file: DeclarationArgument) -> None:
    """Create a plugin from a YAML declaration.

    Examples:
        kong-plugin create rate-limiting.yaml
        kong-plugin -o json create rate-limiting.yaml
    """
    with _reconciler(ctx) as reconciler:
        data = load_declaration(file)
        reconciler.create(data)
    render_state(console, data.to_dict(), _output(ctx), title="Created Plugin")


@app.command()
def read(
    ctx: typer.Context,
    plugin_id: PluginIdArgument,
    file: Annotated[
        Path | None,
        typer.Option(
            "--file",
            "-f",
            exists=True,
            dir_okay=False,
            help="Declaration supplying the declared scope",
        ),
    ] = None,
) -> None:
    """Read a plugin's current state from Kong.

    Examples:
        kong-plugin read 4d1c...
        kong-plugin read 4d1c... --file rate-limiting.yaml
    """
    with _reconciler(ctx) as reconciler:
        if file is not None:
            data = load_declaration(file, resource_id=plugin_id)
        else:
            data = ResourceData(PLUGIN_SCHEMA, resource_id=plugin_id)
        reconciler.read(data)

    if not data.id:
        console.print(f"[yellow]Plugin '{plugin_id}' no longer exists in Kong[/yellow]")
        return
    render_state(console, data.to_dict(), _output(ctx))


@app.command()
def update(ctx: typer.Context, plugin_id: PluginIdArgument, file: DeclarationArgument) -> None:
    """Apply a YAML declaration to an existing plugin.

    Examples:
        kong-plugin update 4d1c... rate-limiting.yaml
    """
    with _reconciler(ctx) as reconciler:
        data = load_declaration(file, resource_id=plugin_id)
        reconciler.update(data)
    render_state(console, data.to_dict(), _output(ctx), title="Updated Plugin")


@app.command()
def delete(
    ctx: typer.Context,
    plugin_id: PluginIdArgument,
    force: Annotated[bool, typer.Option("--force", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete a plugin.

    Examples:
        kong-plugin delete 4d1c...
        kong-plugin delete 4d1c... --force
    """
    if not force and not typer.confirm(
        f"Are you sure you want to delete plugin '{plugin_id}'?", default=False
    ):
        console.print("Cancelled")
        raise typer.Exit(0)

    with _reconciler(ctx) as reconciler:
        reconciler.delete(ResourceData(PLUGIN_SCHEMA, resource_id=plugin_id))
    console.print(f"[green]Plugin '{plugin_id}' deleted[/green]")


@app.command("import")
def import_plugin(ctx: typer.Context, plugin_id: PluginIdArgument) -> None:
    """Start managing an existing plugin, taking its id verbatim.

    Examples:
        kong-plugin import 4d1c...
    """
    with _reconciler(ctx) as reconciler:
        data = reconciler.import_state(plugin_id)
        reconciler.read(data)

    if not data.id:
        console.print(f"[red]Error:[/red] Plugin '{plugin_id}' not found in Kong")
        raise typer.Exit(1)
    render_state(console, data.to_dict(), _output(ctx), title="Imported Plugin")


if __name__ == "__main__":
    app()
