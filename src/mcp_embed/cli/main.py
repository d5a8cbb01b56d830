"""
mcp-embed CLI — `mcp-embed` command.

Commands:
  mcp-embed auth login|status|logout   Store the SessionIssuer bearer token
  mcp-embed session init               Fetch a session and list its apps
  mcp-embed token refresh <app-id>     Refresh a per-app token
  mcp-embed launch-url <app>           Build the launch URL for an app
  mcp-embed simulate                   Run a caller and a demo callee in-process
"""

import asyncio
import json
from pathlib import Path

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install mcp-embed[cli]")

from mcp_embed.issuer import SessionIssuer
from mcp_embed.transport.http import DEFAULT_BASE_URL, HttpClient

console = Console()
CONFIG_FILE = Path.home() / ".mcp-embed" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_issuer() -> SessionIssuer:
    cfg = _load_config()
    if not cfg.get("token"):
        console.print("[red]Not logged in. Run `mcp-embed auth login` first.[/red]")
        raise SystemExit(1)
    return SessionIssuer(HttpClient(base_url=cfg.get("base_url", DEFAULT_BASE_URL), token=cfg["token"]))


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
def main():
    """mcp-embed CLI — launch and exercise embedded mini-apps."""


# Register subcommands from separate modules
from mcp_embed.cli.auth import auth
from mcp_embed.cli.session import session, token, launch_url_cmd
from mcp_embed.cli.simulate import simulate_cmd

main.add_command(auth)
main.add_command(session)
main.add_command(token)
main.add_command(launch_url_cmd)
main.add_command(simulate_cmd)


if __name__ == "__main__":
    main()
