"""Session commands.

Commands:
- validate: check capabilities and show the resolved configuration
- say: run one conversation with the given utterances
- chat: interactive conversation until 'exit'
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import typer
from typer import Context

from agentforce_connector.cli.app import app, print_bot_message, resolve_capabilities
from agentforce_connector.config import config
from agentforce_connector.connector import AgentforceConnector
from agentforce_connector.connectors import ConnectorError, Credentials
from agentforce_connector.models import BotMessage

EXIT_WORDS = {"exit", "quit", "bye"}


@app.command()
def validate(ctx: Context):
    """Validate capabilities without contacting Salesforce."""
    caps = resolve_capabilities(ctx)
    try:
        credentials = Credentials.from_capabilities(caps)
    except ConnectorError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    typer.echo("✅ Configuration is valid")
    typer.echo(json.dumps(credentials.describe(), indent=2))


async def _run_turns(caps: Dict[str, Any], utterances: List[str], as_json: bool) -> None:
    interval = config.emit_interval_s

    def on_bot_says(message: BotMessage) -> None:
        print_bot_message(message, as_json)

    async with AgentforceConnector(on_bot_says, caps, emit_interval_s=interval) as connector:
        typer.echo(f"🔗 Session {connector.session_id}")
        for text in utterances:
            typer.echo(f"👤 {text}")
            messages = await connector.user_says(text)
            # Let deferred messages of this turn arrive before the next one
            if len(messages) > 1:
                await asyncio.sleep(interval * len(messages))


@app.command()
def say(
    ctx: Context,
    utterances: List[str] = typer.Argument(..., help="Utterances to send, in order"),
    as_json: bool = typer.Option(False, "--json", help="Print bot messages as JSON"),
):
    """Start a session, send each utterance, print the replies, stop."""
    caps = resolve_capabilities(ctx)
    try:
        asyncio.run(_run_turns(caps, utterances, as_json))
    except ConnectorError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


async def _chat_loop(caps: Dict[str, Any], as_json: bool) -> None:
    def on_bot_says(message: BotMessage) -> None:
        print_bot_message(message, as_json)

    async with AgentforceConnector(
        on_bot_says, caps, emit_interval_s=config.emit_interval_s
    ) as connector:
        typer.echo(f"🔗 Session {connector.session_id} (type 'exit' to quit)")
        while True:
            try:
                text = await asyncio.to_thread(typer.prompt, "👤 You")
            except (EOFError, typer.Abort):
                break
            if text.strip().lower() in EXIT_WORDS:
                break
            try:
                await connector.user_says(text)
            except ConnectorError as e:
                typer.echo(f"⚠️ {e}", err=True)


@app.command()
def chat(
    ctx: Context,
    as_json: bool = typer.Option(False, "--json", help="Print bot messages as JSON"),
):
    """Interactive conversation with the agent."""
    caps = resolve_capabilities(ctx)
    try:
        asyncio.run(_chat_loop(caps, as_json))
    except ConnectorError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    typer.echo("👋 Session closed")
