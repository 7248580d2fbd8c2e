"""spk-agent: run and manage the local SPK storage agent."""

from __future__ import annotations

import json
import logging
from typing import Optional

import typer
from rich import print
from rich.table import Table

from . import __version__
from .autostart import get_autostart
from .config import get_settings
from .errors import AgentError
from .ledger import format_hbd
from .node import NodeSupervisor, format_bytes
from .store import AgentConfigStore

logger = logging.getLogger(__name__)

APP_HELP = """
spk-agent: keeps a local IPFS node running for the SPK network.

The agent owns the node's repository, starts the daemon, answers
proof-of-storage challenges and tracks earnings. The desktop app talks to
it over a loopback HTTP API (default 127.0.0.1:5111).
"""

app = typer.Typer(name="spk-agent", help=APP_HELP, no_args_is_help=True)
autostart_app = typer.Typer(name="autostart", help="Start the agent at login.")
app.add_typer(autostart_app, name="autostart")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Address to bind (default from settings)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on (default 5111)"),
    no_node: bool = typer.Option(False, "--no-node", help="Serve the API without starting the node"),
):
    """
    Run the control plane. The node is initialized and started on startup
    and stopped on shutdown.
    """
    import uvicorn

    from .api import create_app
    from .runtime import AgentRuntime

    settings = get_settings()
    _configure_logging(settings.log_level)

    runtime = AgentRuntime.from_settings(settings)
    if no_node:
        runtime.manage_node = False

    bind_host = host or settings.api_host
    bind_port = port or settings.api_port
    logger.info(f"spk-agent {__version__} listening on {bind_host}:{bind_port}")

    uvicorn.run(
        create_app(runtime),
        host=bind_host,
        port=bind_port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def init():
    """Initialize the node repository (if needed) and print the peer id."""
    settings = get_settings()
    supervisor = NodeSupervisor.from_settings(settings)
    try:
        peer_id = supervisor.initialize()
        AgentConfigStore(settings.settings_file).ensure_exists()
    except AgentError as e:
        print(f"[red]Initialization failed: {e}[/red]")
        raise typer.Exit(code=1)

    print(f"[green]Repository ready at {settings.repo_path}[/green]")
    print(f"  PeerID: {peer_id or 'unknown'}")


@app.command()
def status(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show repository and earnings status without starting the daemon.
    """
    settings = get_settings()
    supervisor = NodeSupervisor.from_settings(settings)
    config = AgentConfigStore(settings.settings_file).load()

    result = {
        "version": __version__,
        "repo_path": str(settings.repo_path),
        "initialized": False,
        "peer_id": None,
        "ipfs_repo_size": 0,
        "num_pinned_files": 0,
        "hive_username": config.hive_username,
        "total_earned": format_hbd(config.total_earned_hbd),
        "challenge_count": config.challenge_count,
    }

    try:
        if (settings.repo_path / "config").exists():
            result["initialized"] = True
            result["peer_id"] = supervisor.initialize()
            stats = supervisor.repo_stats()
            result["ipfs_repo_size"] = stats.repo_size
            result["num_pinned_files"] = stats.num_pins
    except AgentError as e:
        result["error"] = str(e)

    if json_output:
        typer.echo(json.dumps(result, indent=2))
        return

    table = Table(title=f"spk-agent {__version__}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Repository", result["repo_path"])
    table.add_row("Initialized", "[green]yes[/green]" if result["initialized"] else "[yellow]no[/yellow]")
    table.add_row("PeerID", result["peer_id"] or "-")
    table.add_row("Repo size", format_bytes(result["ipfs_repo_size"]))
    table.add_row("Pinned", str(result["num_pinned_files"]))
    table.add_row("Hive user", result["hive_username"] or "-")
    table.add_row("Earned", f"{result['total_earned']} ({result['challenge_count']} challenges)")
    print(table)

    if "error" in result:
        print(f"[yellow]Warning: {result['error']}[/yellow]")


@autostart_app.command("enable")
def autostart_enable():
    """Register the agent to start at login."""
    _set_autostart(True)


@autostart_app.command("disable")
def autostart_disable():
    """Remove the login item."""
    _set_autostart(False)


@autostart_app.command("status")
def autostart_status():
    """Show whether the agent starts at login."""
    enabled = get_autostart().is_enabled()
    state = "[green]enabled[/green]" if enabled else "[dim]disabled[/dim]"
    print(f"Autostart is {state}")


def _set_autostart(enabled: bool) -> None:
    settings = get_settings()
    backend = get_autostart()
    try:
        if enabled:
            backend.enable()
        else:
            backend.disable()
    except AgentError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    def apply(config) -> None:
        config.auto_start = enabled

    try:
        AgentConfigStore(settings.settings_file).mutate(apply)
    except AgentError as e:
        print(f"[yellow]Autostart changed but not saved: {e}[/yellow]")
        raise typer.Exit(code=1)
    print(f"[green]Autostart {'enabled' if enabled else 'disabled'}[/green]")


if __name__ == "__main__":
    app()
