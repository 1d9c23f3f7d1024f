"""Agent session management.

A session binds the connector to one remote agent and carries the turn
sequence counter. Sessions are immutable values: advancing the counter
returns a new Session.
"""

import logging
import random
import string
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .base import (
    ConnectorError,
    EndpointTemplates,
    OAuthTokenAuth,
    SessionError,
    describe_error,
)
from .credentials import Credentials
from .http_client import AsyncHTTPClient

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Remote session lifecycle states."""

    CLOSED = "closed"
    AUTHENTICATED = "authenticated"
    OPEN = "open"


def generate_session_key(prefix: str = "botium-session") -> str:
    """Generate an externally unique session key.

    Uses a random UUID; falls back to ``<prefix>-<millis>-<random>`` when
    the platform cannot supply randomness for uuid4.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


@dataclass(frozen=True)
class Session:
    """An open remote session."""

    id: str
    agent_id: str
    external_session_key: str
    sequence_id: int = 1
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def advance(self) -> "Session":
        """Return the session with the sequence counter moved to the next turn."""
        return replace(self, sequence_id=self.sequence_id + 1)


def resolve_session_id(data: Any, fields: tuple, fallback: str) -> str:
    """Pick the session id from a response body.

    Tries each field name in order and falls back to the locally generated
    key when the remote acknowledges without echoing an id.
    """
    if isinstance(data, dict):
        for name in fields:
            value = data.get(name)
            if value:
                return str(value)
    return fallback


class SessionManager:
    """Opens and closes remote agent sessions."""

    def __init__(self, client: AsyncHTTPClient, credentials: Credentials):
        self._client = client
        self._credentials = credentials

    @property
    def endpoints(self) -> EndpointTemplates:
        return self._credentials.endpoints

    def _url(self, template: str, **values: str) -> str:
        path = self.endpoints.render(template, api_version=self._credentials.api_version, **values)
        return f"{self._credentials.agent_api_host}{path}"

    def build_open_body(self, session_key: str) -> Dict[str, Any]:
        """Session-open request body."""
        return {
            "externalSessionKey": session_key,
            "instanceConfig": {"endpoint": self._credentials.instance_url},
            "streamingCapabilities": {"chunkTypes": ["Text"]},
            "bypassUser": True,
        }

    async def open(self, token: OAuthTokenAuth, agent_id: str) -> Session:
        """Open a session against ``agent_id``.

        Raises:
            SessionError: if the HTTP exchange fails
        """
        session_key = generate_session_key()
        url = self._url(self.endpoints.open_session, agent_id=agent_id)
        logger.debug("Opening session for agent %s", agent_id)

        try:
            response = await self._client.with_auth(token).post(
                url, json=self.build_open_body(session_key)
            )
        except ConnectorError as e:
            raise SessionError(
                f"Failed to start Agent session: {describe_error(e)}",
                status_code=e.status_code,
                error_data=e.error_data,
            ) from e

        session_id = resolve_session_id(
            response.data, self.endpoints.session_id_fields, session_key
        )
        logger.debug("Session started: %s", session_id)
        return Session(id=session_id, agent_id=agent_id, external_session_key=session_key)

    async def close(self, token: Optional[OAuthTokenAuth], session: Session) -> None:
        """Delete the remote session.

        Raises:
            ConnectorError: if the call fails; callers treat this as non-fatal
        """
        url = self._url(self.endpoints.close_session, session_id=session.id)
        logger.debug("Ending session %s", session.id)
        await self._client.with_auth(token).delete(url)


class LocalSessionManager(SessionManager):
    """Session manager for simulated agents: no remote session exists."""

    async def open(self, token: OAuthTokenAuth, agent_id: str) -> Session:
        session_key = generate_session_key(prefix="dev-session")
        logger.debug("Opened local session %s for agent %s", session_key, agent_id)
        return Session(id=session_key, agent_id=agent_id, external_session_key=session_key)

    async def close(self, token: Optional[OAuthTokenAuth], session: Session) -> None:
        logger.debug("Closed local session %s", session.id)
