"""CLI: mcp-embed auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

console = Console()


def _load_config() -> dict:
    from mcp_embed.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from mcp_embed.cli.main import _save_config
    _save_config(cfg)


@click.group()
def auth():
    """SessionIssuer credentials."""


@auth.command("login")
@click.option("--base-url", default=None, help="SessionIssuer base URL")
@click.option("--token", default=None, help="Bearer JWT (prompted when omitted)")
def auth_login(base_url: Optional[str], token: Optional[str]):
    """Save the bearer JWT used for session init."""
    from mcp_embed.transport.http import DEFAULT_BASE_URL

    cfg = _load_config()
    url = base_url or cfg.get("base_url", DEFAULT_BASE_URL)
    if not token:
        token = click.prompt("Bearer token", hide_input=True)
    _save_config({**cfg, "token": token, "base_url": url})
    console.print(f"[green]Token saved for {url}[/green]")
    console.print("[dim]Stored in ~/.mcp-embed/config.json[/dim]")


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("token"):
        console.print(f"[green]Logged in[/green] to {cfg.get('base_url', 'default issuer')}")
    else:
        console.print("[yellow]Not logged in. Run `mcp-embed auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    _save_config({})
    console.print("[green]Logged out.[/green]")
