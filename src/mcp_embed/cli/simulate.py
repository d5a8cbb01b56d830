"""CLI: mcp-embed simulate"""

import json

import click
from rich.console import Console
from rich.table import Table

from mcp_embed.models.events import TransportMode

console = Console()


def _run(coro):
    from mcp_embed.cli.main import _run
    return _run(coro)


@click.command("simulate")
@click.option("--mode", type=click.Choice([TransportMode.IFRAME.value, TransportMode.LAYER.value]), default="iframe")
@click.option("--no-init", is_flag=True, help="Never answer mcp:ready; the callee falls back to URL params.")
@click.option("--cancel", is_flag=True, help="The demo game cancels instead of completing.")
@click.option("--rounds", default=3, type=int)
@click.option("--json-output", "--json", is_flag=True)
def simulate_cmd(mode: str, no_init: bool, cancel: bool, rounds: int, json_output: bool):
    """Run the caller and a demo game in-process and print the message log."""
    from mcp_embed.harness import run_simulation

    embedding = _run(run_simulation(TransportMode(mode), send_init=not no_init, cancel=cancel, rounds=rounds))
    if json_output:
        for direction, message in embedding.log:
            click.echo(json.dumps({"direction": direction, **message}))
        return
    table = Table(title=f"{embedding.app.name} ({mode})")
    table.add_column("Dir")
    table.add_column("Type", style="bold")
    table.add_column("Body")
    for direction, message in embedding.log:
        body = {k: v for k, v in message.items() if k not in ("type", "appId", "timestamp")}
        arrow = "host → app" if direction == "out" else "app → host"
        table.add_row(arrow, message["type"], json.dumps(body))
    console.print(table)
