"""Connector facade driven by the bot-testing framework.

Lifecycle: validate -> build -> start -> user_says* -> stop/clean.

The connector's mutable state is a single immutable ``ConnectorState``
value that each lifecycle step replaces. ``stop`` always installs the
closed state, whether or not the remote close succeeded.

Lifecycle methods must be awaited one at a time by the owning harness.
Overlapping ``user_says`` calls are serialized so no two turns share a
sequence number.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from agentforce_connector.connectors import (
    AsyncHTTPClient,
    AuthError,
    Authenticator,
    CleanupError,
    ConnectorError,
    Credentials,
    Exchanger,
    LocalSessionManager,
    MessageError,
    OAuthTokenAuth,
    RequestPolicy,
    Session,
    SessionError,
    SessionManager,
    SessionState,
    SimulatedExchanger,
    TurnExchanger,
    validate_capabilities,
)
from agentforce_connector.emitter import (
    DEFAULT_EMIT_INTERVAL_S,
    AsyncioScheduler,
    BotMessageEmitter,
    BotSaysCallback,
    Scheduler,
)
from agentforce_connector.models import BotMessage, UserMessage
from agentforce_connector.normalizer import normalize

logger = logging.getLogger(__name__)


class ConnectorPhase(str, Enum):
    """Lifecycle phase of a connector instance."""

    CREATED = "created"
    VALIDATED = "validated"
    BUILT = "built"
    AUTHENTICATED = "authenticated"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ConnectorState:
    """Snapshot of connector state. Replaced, never mutated."""

    phase: ConnectorPhase = ConnectorPhase.CREATED
    credentials: Optional[Credentials] = None
    token: Optional[OAuthTokenAuth] = None
    session: Optional[Session] = None

    @classmethod
    def closed(cls, credentials: Optional[Credentials] = None) -> "ConnectorState":
        """Terminal state: token and session are always dropped."""
        return cls(phase=ConnectorPhase.CLOSED, credentials=credentials)

    @property
    def session_state(self) -> SessionState:
        if self.session is not None:
            return SessionState.OPEN
        if self.token is not None:
            return SessionState.AUTHENTICATED
        return SessionState.CLOSED


@dataclass
class ConnectorStrategy:
    """The session manager and exchanger a connector drives."""

    session_manager: SessionManager
    exchanger: Exchanger

    @classmethod
    def for_credentials(cls, credentials: Credentials, client: AsyncHTTPClient) -> "ConnectorStrategy":
        """Remote Agent API engine, or the local simulation in simulation mode."""
        if credentials.simulation_mode:
            return cls(
                session_manager=LocalSessionManager(client, credentials),
                exchanger=SimulatedExchanger(),
            )
        return cls(
            session_manager=SessionManager(client, credentials),
            exchanger=TurnExchanger(client, credentials),
        )


class AgentforceConnector:
    """Bridges the test framework to a Salesforce Agentforce agent.

    Usage:
        connector = AgentforceConnector(queue_bot_says=received.append, caps=caps)
        await connector.validate()
        await connector.build()
        await connector.start()
        await connector.user_says("Hello")
        await connector.stop()
    """

    def __init__(
        self,
        queue_bot_says: BotSaysCallback,
        caps: Mapping[str, Any],
        *,
        scheduler: Optional[Scheduler] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        emit_interval_s: float = DEFAULT_EMIT_INTERVAL_S,
    ):
        """Initialize the connector.

        Args:
            queue_bot_says: Callback receiving each BotMessage
            caps: Capability dictionary (see ``Capabilities``)
            scheduler: Scheduler for deferred messages (defaults to the event loop)
            transport: httpx transport override (tests)
            emit_interval_s: Spacing between deferred messages of one turn
        """
        self.queue_bot_says = queue_bot_says
        self.caps: Dict[str, Any] = dict(caps)
        self._transport = transport
        self._emitter = BotMessageEmitter(
            queue_bot_says, scheduler or AsyncioScheduler(), interval_s=emit_interval_s
        )
        self._state = ConnectorState()
        self._client: Optional[AsyncHTTPClient] = None
        self._strategy: Optional[ConnectorStrategy] = None
        self._turn_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectorState:
        return self._state

    @property
    def access_token(self) -> Optional[str]:
        return self._state.token.access_token if self._state.token else None

    @property
    def session_id(self) -> Optional[str]:
        return self._state.session.id if self._state.session else None

    @property
    def sequence_id(self) -> Optional[int]:
        """Sequence number the next turn will use."""
        return self._state.session.sequence_id if self._state.session else None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def validate(self) -> None:
        """Check required capabilities.

        Raises:
            ConfigError: naming the first missing field
        """
        logger.debug("Validating configuration")
        validate_capabilities(self.caps)
        self._state = replace(self._state, phase=ConnectorPhase.VALIDATED)

    async def build(self) -> None:
        """Apply defaults and prepare the HTTP client and engine."""
        credentials = Credentials.from_capabilities(self.caps)
        self._client = AsyncHTTPClient(
            policy=RequestPolicy.from_timeout_ms(credentials.timeout_ms),
            transport=self._transport,
        )
        self._strategy = ConnectorStrategy.for_credentials(credentials, self._client)
        self._state = ConnectorState(phase=ConnectorPhase.BUILT, credentials=credentials)
        logger.debug("Configuration complete: %s", credentials.describe())

    async def start(self) -> None:
        """Authenticate and open a session.

        An already open session is closed first, so restarting never leaves
        a remote session behind.

        Raises:
            AuthError: if authentication failed
            SessionError: if the session could not be opened
        """
        if self._state.session is not None:
            logger.debug("Closing session %s before restart", self._state.session.id)
            await self.stop()
        if self._state.credentials is None or self._strategy is None:
            await self.build()
        credentials = self._state.credentials
        logger.debug("Starting connector")

        try:
            token = await Authenticator(self._client).authenticate(credentials)
        except AuthError as e:
            logger.debug("Authentication failed: %s", e)
            raise AuthError(
                f"Failed to start Agentforce connection: {e}",
                code=e.code,
                description=e.description,
                status_code=e.status_code,
            ) from e
        self._state = ConnectorState(
            phase=ConnectorPhase.AUTHENTICATED, credentials=credentials, token=token
        )

        try:
            session = await self._strategy.session_manager.open(token, credentials.agent_id)
        except SessionError as e:
            logger.debug("Session open failed: %s", e)
            raise SessionError(
                f"Failed to start Agentforce connection: {e}",
                status_code=e.status_code,
                error_data=e.error_data,
            ) from e
        self._state = replace(self._state, phase=ConnectorPhase.OPEN, session=session)
        logger.info("Agentforce session %s started for agent %s", session.id, session.agent_id)

    async def user_says(
        self, msg: Union[str, Mapping[str, Any], UserMessage]
    ) -> List[BotMessage]:
        """Send one utterance and emit the agent's replies.

        The first reply reaches ``queue_bot_says`` before this returns; further
        replies of the same turn are delivered later by the scheduler.

        Raises:
            MessageError: if there is no active session or the exchange failed
        """
        utterance = UserMessage.coerce(msg)
        logger.debug("Processing user message: %r", utterance.message_text)

        async with self._turn_lock:
            token = self._state.token
            if token is None or not token.is_configured():
                raise MessageError("No access token available")
            if self._state.session is None:
                raise MessageError("No session available")

            session = self._state.session
            try:
                raw = await self._strategy.exchanger.send(session, token, utterance)
            except MessageError as e:
                raise MessageError(
                    f"Failed to process message: {e}",
                    status_code=e.status_code,
                    error_data=e.error_data,
                ) from e

            self._state = replace(self._state, session=session.advance())

        messages = normalize(raw)
        self._emitter.emit(messages)
        return messages

    send = user_says

    async def stop(self) -> None:
        """Close the session, best effort.

        A failed remote close (any ConnectorError) is logged and swallowed.
        Other exceptions propagate. Either way the closed state is installed
        and token and session are dropped.
        """
        logger.debug("Stopping connector")
        state = self._state
        try:
            if state.session is not None and self._strategy is not None:
                await self._strategy.session_manager.close(state.token, state.session)
                logger.debug("Session %s ended", state.session.id)
        except ConnectorError as e:
            cleanup_error = CleanupError(f"Error ending session: {e}", details=e.details)
            logger.warning("%s", cleanup_error)
        finally:
            self._state = ConnectorState.closed(state.credentials)

    async def clean(self) -> None:
        """Alias for ``stop``; safe to call repeatedly."""
        logger.debug("Cleaning up connector")
        await self.stop()

    async def __aenter__(self) -> "AgentforceConnector":
        await self.validate()
        await self.build()
        try:
            await self.start()
        except ConnectorError:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
