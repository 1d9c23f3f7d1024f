"""Connector layer for the Salesforce Agentforce Agent API.

Key components:
- Error hierarchy: transport errors and phase errors (config, auth,
  session, message, cleanup)
- OAuthTokenAuth / RequestPolicy / EndpointTemplates: shared value types
- AsyncHTTPClient: httpx wrapper with policy enforcement
- Credentials: validated, immutable configuration
- Authenticator: OAuth2 client-credentials / password grants
- SessionManager: opens and closes remote sessions
- TurnExchanger: sends one utterance per call
- LocalSessionManager / SimulatedExchanger: offline stand-ins
"""

from .auth import Authenticator, build_token_form
from .base import (
    DEFAULT_ENDPOINTS,
    SERVICES_DATA_ENDPOINTS,
    AuthenticationError,
    AuthError,
    CleanupError,
    ConfigError,
    ConnectionError,
    ConnectorError,
    EndpointTemplates,
    MessageError,
    OAuthTokenAuth,
    RateLimitError,
    RequestPolicy,
    ResourceNotFoundError,
    ServiceUnavailableError,
    SessionError,
    TimeoutError,
    describe_error,
)
from .credentials import (
    DEFAULT_API_VERSION,
    DEFAULT_TIMEOUT_MS,
    ENDPOINT_PROFILES,
    Capabilities,
    Credentials,
    validate_capabilities,
)
from .exchange import Exchanger, SimulatedExchanger, TurnExchanger, build_message_body
from .http_client import AsyncHTTPClient, HTTPResponse, map_http_error
from .session import (
    LocalSessionManager,
    Session,
    SessionManager,
    SessionState,
    generate_session_key,
    resolve_session_id,
)

__all__ = [
    "AsyncHTTPClient",
    "AuthError",
    "AuthenticationError",
    "Authenticator",
    "Capabilities",
    "CleanupError",
    "ConfigError",
    "ConnectionError",
    "ConnectorError",
    "Credentials",
    "DEFAULT_API_VERSION",
    "DEFAULT_ENDPOINTS",
    "DEFAULT_TIMEOUT_MS",
    "ENDPOINT_PROFILES",
    "EndpointTemplates",
    "Exchanger",
    "HTTPResponse",
    "LocalSessionManager",
    "MessageError",
    "OAuthTokenAuth",
    "RateLimitError",
    "RequestPolicy",
    "ResourceNotFoundError",
    "SERVICES_DATA_ENDPOINTS",
    "ServiceUnavailableError",
    "Session",
    "SessionError",
    "SessionManager",
    "SessionState",
    "SimulatedExchanger",
    "TimeoutError",
    "TurnExchanger",
    "build_message_body",
    "build_token_form",
    "describe_error",
    "generate_session_key",
    "map_http_error",
    "resolve_session_id",
    "validate_capabilities",
]
