"""
CLI entry point for chatgate.
"""

import logging

import click
from rich.console import Console
from rich.table import Table

try:
    from importlib.metadata import version as pkg_version

    _version = pkg_version("chatgate")
except Exception:
    _version = "0.1.0"

from chatgate.core.config import GatewayConfig

console = Console()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@click.group()
@click.version_option(version=_version, prog_name="chatgate")
@click.option("--debug", is_flag=True, hidden=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """
    chatgate - streaming chat gateway for a locally invoked AI agent.

    \b
        chatgate serve     # Run the HTTP/SSE server
        chatgate health    # Check that the agent CLI can be run
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address")
@click.option("--port", default=8080, show_default=True, type=int, help="Bind port")
@click.option(
    "--log-level",
    default="info",
    show_default=True,
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, log_level: str):
    """Run the chat gateway server."""
    import uvicorn

    from chatgate.core.gateway import ChatGateway
    from chatgate.server.app import create_app
    from chatgate.server.dependencies import set_gateway

    if ctx.obj.get("debug"):
        log_level = "debug"
    _setup_logging(log_level)

    config = GatewayConfig.from_env()
    set_gateway(ChatGateway(config))
    app = create_app(cors_origins=config.cors_origins)

    console.print(f"[bold]chatgate[/bold] listening on [cyan]http://{host}:{port}[/cyan]")
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())


@cli.command()
def health():
    """Show whether the agent CLI is available and how it is configured."""
    from chatgate.core.gateway import ChatGateway

    gateway = ChatGateway(GatewayConfig.from_env())
    info = gateway.health()

    table = Table(title="Agent Health")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    status = "[green]available[/green]" if info["available"] else "[red]unavailable[/red]"
    table.add_row("Status", status)
    table.add_row("CLI", gateway.config.cli_path)
    table.add_row("Version", info["version"])
    table.add_row("Provider", info["provider"])
    table.add_row("Model", info["model"])
    console.print(table)
    console.print(f"[dim]{info['message']}[/dim]")

    if not info["available"]:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
