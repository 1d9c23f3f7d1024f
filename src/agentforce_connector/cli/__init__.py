"""CLI package for the Agentforce connector.

The main Typer app is created in app.py and commands are registered by
importing each command module.
"""

import agentforce_connector.cli.commands_session  # noqa: F401, E402
from agentforce_connector.cli.app import app

__all__ = ["app"]
