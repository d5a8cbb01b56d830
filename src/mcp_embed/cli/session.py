"""CLI: mcp-embed session init, token refresh, launch-url"""

from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from mcp_embed.caller import CallerOrchestrator
from mcp_embed.errors import UpstreamSessionError
from mcp_embed.models.events import TransportMode

console = Console()


def _get_issuer():
    from mcp_embed.cli.main import _get_issuer
    return _get_issuer()


def _run(coro):
    from mcp_embed.cli.main import _run
    return _run(coro)


@click.group()
def session():
    """SessionIssuer session commands."""


@session.command("init")
@click.option("--language", default=None)
@click.option("--json-output", "--json", is_flag=True)
def session_init(language: Optional[str], json_output: bool):
    """Fetch a session and list the apps it grants."""

    async def _init():
        issuer = _get_issuer()
        try:
            with console.status("Initializing session..."):
                result = await issuer.init_session(language=language)
        except UpstreamSessionError as e:
            console.print(f"[red]Session init failed: {e}[/red]")
            raise SystemExit(1)
        finally:
            await issuer.close()
        if json_output:
            click.echo(result.model_dump_json(indent=2))
            return
        console.print(f"[green]Session {result.session.id}[/green] (expires {result.session.expires_at})")
        table = Table(title=f"Apps ({len(result.apps)})")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Response type")
        table.add_column("Endpoint")
        table.add_column("Token expires")
        for app in result.apps:
            table.add_row(app.id, app.name, app.response_type, app.endpoint, app.token_expires_at or "")
        console.print(table)

    _run(_init())


@click.group()
def token():
    """Per-app token commands."""


@token.command("refresh")
@click.argument("app_id")
def token_refresh(app_id: str):
    """Refresh the scoped token of one app."""

    async def _refresh():
        issuer = _get_issuer()
        try:
            with console.status("Refreshing token..."):
                result = await issuer.refresh_token(app_id)
        except UpstreamSessionError as e:
            console.print(f"[red]Token refresh failed: {e}[/red]")
            raise SystemExit(1)
        finally:
            await issuer.close()
        console.print(f"[green]Token refreshed[/green], expires {result.expires_at}")

    _run(_refresh())


@click.command("launch-url")
@click.argument("app")
@click.option("--resource-id", required=True)
@click.option("--user-id", required=True)
@click.option("--mode", type=click.Choice([TransportMode.LAYER.value, TransportMode.IFRAME.value]), default=None)
def launch_url_cmd(app: str, resource_id: str, user_id: str, mode: Optional[str]):
    """Build the launch URL for APP (id or name) from a fresh session."""

    async def _launch():
        issuer = _get_issuer()
        try:
            result = await issuer.init_session()
        except UpstreamSessionError as e:
            console.print(f"[red]Session init failed: {e}[/red]")
            raise SystemExit(1)
        finally:
            await issuer.close()
        info = result.find_app(app)
        if info is None:
            console.print(f"[red]No app {app!r} in session {result.session.id}[/red]")
            raise SystemExit(1)
        context = {"resourceId": resource_id, "userId": user_id}
        url = CallerOrchestrator.build_launch_url(info, context, TransportMode(mode) if mode else None)
        click.echo(url)

    _run(_launch())
