"""Configuration and environment handling for the Agentforce connector."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

CAPABILITY_PREFIX = "AGENTFORCE_"
BOTIUM_PREFIX = "BOTIUM_"


class Config:
    """Central configuration object."""

    def __init__(self):
        # Load .env file if it exists
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        # Get project root
        self.project_root = Path(__file__).parent.parent.parent

        # Capability file (botium.json layout)
        self.caps_file: Path = Path(os.getenv("AGENTFORCE_CAPS_FILE", "botium.json"))

        # Logging
        self.log_level: str = os.getenv("AGENTFORCE_LOG_LEVEL", "INFO")

        # Spacing between deferred messages of one turn
        self.emit_interval_s: float = float(os.getenv("AGENTFORCE_EMIT_INTERVAL_S", "0.1"))


def _read_caps_file(path: Path) -> Dict[str, Any]:
    """Read ``botium.Capabilities`` from a botium.json-style file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    caps = data.get("botium", {}).get("Capabilities", {})
    return dict(caps) if isinstance(caps, dict) else {}


def load_capabilities(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Collect connector capabilities.

    Later sources win: the capability file, then ``BOTIUM_*`` variables
    (prefix stripped), then ``AGENTFORCE_*`` variables.

    Args:
        path: botium.json-style file; skipped if it does not exist
        environ: Environment mapping (defaults to os.environ)
    """
    env = os.environ if environ is None else environ
    caps: Dict[str, Any] = {}

    if path is not None and path.exists():
        caps.update(_read_caps_file(path))

    for key, value in env.items():
        if key.startswith(BOTIUM_PREFIX):
            caps[key[len(BOTIUM_PREFIX):]] = value

    for key, value in env.items():
        if key.startswith(CAPABILITY_PREFIX):
            caps[key] = value

    return caps


# Global config instance
config = Config()
