"""breakout CLI.

Commands:
- breakout demo            host a room and join it in-process, print the transcript
- breakout config          show the effective configuration
- breakout invite-info     check an invite and show its pairing topic
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from breakout import __logo__, __version__
from breakout.config.loader import get_config_path, load_config
from breakout.config.schema import Config
from breakout.errors import BreakoutError, PairingError
from breakout.manager import RoomManager
from breakout.models.room import MESSAGE, PEER_ENTERED, PEER_LEFT
from breakout.net.memory import MemoryNetwork
from breakout.net.pairing import invite_keys
from breakout.room import decode_invite
from breakout.utils.codec import z32_encode
from breakout.utils.logging import configure_logging

console = Console()

app = typer.Typer(
    name="breakout",
    help=f"{__logo__} breakout - ephemeral peer-to-peer rooms",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Configure logging before any command runs."""
    config = load_config(config_path)
    configure_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        verbose=verbose or config.logging.verbose,
    )


def _short(key: str) -> str:
    return f"{key[:8]}…"


def _transcript_table(transcript: List[dict]) -> Table:
    table = Table(title="Transcript")
    table.add_column("When", style="dim")
    table.add_column("Who", style="cyan")
    table.add_column("Message", style="green")

    for entry in transcript:
        when = datetime.fromtimestamp(entry.get("when", 0) / 1000).strftime("%H:%M:%S")
        text = entry.get("data", "")
        if entry.get("event"):
            text = f"[yellow]<{entry['event']}>[/yellow]"
        table.add_row(when, _short(entry.get("who", "?")), str(text))
    return table


async def _run_demo(messages: List[str], config: Config) -> None:
    network = MemoryNetwork()
    alice = RoomManager.from_config(config, network=network)
    bob = RoomManager(network=network)
    if config.signals.install_handlers:
        alice.install_signal_handlers()

    host = alice.create_room(metadata={"name": "demo"})
    host.subscribe(PEER_ENTERED, lambda key: console.print(f"[green]→[/green] host sees peer {_short(key)}"))
    host.subscribe(MESSAGE, lambda entry: console.print(f"[cyan]host got:[/cyan] {entry['data']}"))
    host.subscribe(PEER_LEFT, lambda key: console.print(f"[yellow]←[/yellow] {_short(key)} left"))

    invite = await host.ready()
    console.print(Panel(invite, title="Invite", expand=False))

    guest = bob.create_room(invite=invite)
    guest.subscribe(PEER_ENTERED, lambda key: console.print(f"[green]→[/green] guest sees host {_short(key)}"))
    guest.subscribe(MESSAGE, lambda entry: console.print(f"[magenta]guest got:[/magenta] {entry['data']}"))
    await guest.ready()

    for i, text in enumerate(messages):
        sender = host if i % 2 == 0 else guest
        await sender.message(text)
        await asyncio.sleep(0)

    await guest.exit()
    transcript = await host.get_transcript()
    await asyncio.sleep(0)
    console.print(_transcript_table(transcript))

    await alice.cleanup()
    await bob.cleanup()


@app.command("demo")
def demo(
    message: List[str] = typer.Option(
        ["hello", "hi there", "bye"], "--message", "-m", help="Messages to exchange (alternating host/guest)"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Host a room and join it in-process, then print the transcript."""
    config = load_config(config_path)
    try:
        asyncio.run(_run_demo(message, config))
    except BreakoutError as e:
        logger.error(f"Demo failed: {e}")
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


@app.command("config")
def show_config(
    config_path: Optional[Path] = typer.Option(None, "--path", "-p", help="Path to config file"),
):
    """Show the effective configuration."""
    path = config_path or get_config_path()
    config = load_config(path)
    console.print(f"[bold blue]Config file:[/bold blue] {path} {'' if path.exists() else '[dim](not found, using defaults)[/dim]'}")
    console.print_json(json.dumps(config.model_dump(by_alias=True, mode="json")))


@app.command("invite-info")
def invite_info(invite: str = typer.Argument(..., help="z32 invite")):
    """Check an invite and show its pairing topic."""
    try:
        raw = decode_invite(invite)
        public_key, topic = invite_keys(raw)
    except PairingError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    table = Table(show_header=False)
    table.add_column("Field", style="bold blue")
    table.add_column("Value", style="green")
    table.add_row("Pairing key", z32_encode(public_key))
    table.add_row("Topic", z32_encode(topic))
    console.print(table)


@app.command("version")
def version():
    """Show version."""
    console.print(f"{__logo__} breakout v{__version__}")


if __name__ == "__main__":
    app()
