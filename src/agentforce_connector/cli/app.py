"""CLI app setup and common utilities.

This module creates the main Typer app and provides shared helpers for
loading capabilities and printing bot messages used by all commands.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typer import Context, Typer

from agentforce_connector.config import config, load_capabilities
from agentforce_connector.connectors import Capabilities
from agentforce_connector.models import BotMessage

# Initialize Typer app
app = Typer(
    name="agentforce-connector",
    help="Drive a Salesforce Agentforce agent through the bot-testing connector lifecycle.",
)


class CLIState:
    """Shared state object for CLI commands."""

    def __init__(self):
        self.caps_file: Optional[Path] = None
        self.simulate: bool = False


def resolve_capabilities(ctx: Context) -> Dict[str, Any]:
    """Load capabilities for the current invocation."""
    state: CLIState = ctx.obj
    caps = load_capabilities(state.caps_file)
    if state.simulate:
        caps[Capabilities.AGENTFORCE_SIMULATION_MODE] = True
    return caps


def print_bot_message(message: BotMessage, as_json: bool) -> None:
    """Echo one bot message."""
    if as_json:
        typer.echo(json.dumps(message.to_dict(), indent=2, default=str))
        return

    typer.echo(f"🤖 {message.message_text or ''}")
    for card in message.cards:
        typer.echo(f"   🃏 {card.text or ''}" + (f" - {card.subtext}" if card.subtext else ""))
        for button in card.buttons:
            typer.echo(f"      [{button.text}]")
    for button in message.buttons:
        typer.echo(f"   [{button.text}]")
    for media in message.media:
        typer.echo(f"   📎 {media.media_uri} ({media.mime_type or 'unknown'})")
    if message.nlp:
        intent = message.nlp.intent
        typer.echo(f"   🧠 intent={intent.name} confidence={intent.confidence:.2f}")


@app.callback()
def init_app(
    ctx: Context,
    caps_file: Optional[Path] = typer.Option(
        None,
        "--caps-file",
        "-c",
        help="botium.json-style capability file (default: AGENTFORCE_CAPS_FILE or ./botium.json)",
    ),
    simulate: bool = typer.Option(
        False,
        "--simulate",
        help="Use the local simulated agent instead of the Agent API",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging and capability sources."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(CLIState)
    ctx.obj.caps_file = caps_file or config.caps_file
    ctx.obj.simulate = simulate
