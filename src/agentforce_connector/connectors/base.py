"""Core connector abstractions shared by every phase.

Defines the foundation the lifecycle components are built on:
- ConnectorError hierarchy: transport errors and phase errors
- OAuthTokenAuth: the bearer token held by an active connector
- RequestPolicy: timeouts, retries, user agent
- EndpointTemplates: remote URL shapes and response field fallbacks
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# =============================================================================
# Connector Error Hierarchy
# =============================================================================


class ConnectorError(Exception):
    """Base exception for connector errors."""

    def __init__(
        self,
        message: str,
        connector_name: str = "agentforce",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.connector_name = connector_name
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> Optional[int]:
        """HTTP status of the failed exchange, if any."""
        return self.details.get("status_code")

    @property
    def error_data(self) -> Any:
        """Decoded error body returned by the remote endpoint, if any."""
        return self.details.get("error_data")


# -----------------------------------------------------------------------------
# Transport errors (mapped from HTTP status / httpx exceptions)
# -----------------------------------------------------------------------------


class ConnectionError(ConnectorError):
    """Failed to connect to the service."""

    pass


class TimeoutError(ConnectorError):
    """Request timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        connector_name: str = "agentforce",
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(message, connector_name, {"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class AuthenticationError(ConnectorError):
    """Remote rejected the credentials or the bearer token (401/403)."""

    pass


class RateLimitError(ConnectorError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        connector_name: str = "agentforce",
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, connector_name, {**(details or {}), "retry_after": retry_after})
        self.retry_after = retry_after


class ResourceNotFoundError(ConnectorError):
    """Requested resource not found."""

    pass


class ServiceUnavailableError(ConnectorError):
    """Service is temporarily unavailable."""

    pass


# -----------------------------------------------------------------------------
# Phase errors (what callers of the lifecycle see)
# -----------------------------------------------------------------------------


class ConfigError(ConnectorError):
    """A required configuration field is missing."""

    def __init__(self, message: str, field_name: str = ""):
        super().__init__(message, details={"field": field_name})
        self.field_name = field_name


class AuthError(ConnectorError):
    """Exchanging credentials for a bearer token failed."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        description: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            details={"code": code, "description": description, "status_code": status_code},
        )
        self.code = code
        self.description = description


class SessionError(ConnectorError):
    """Opening the remote agent session failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, error_data: Any = None):
        super().__init__(message, details={"status_code": status_code, "error_data": error_data})


class MessageError(ConnectorError):
    """A single turn exchange failed. The session stays open."""

    def __init__(self, message: str, status_code: Optional[int] = None, error_data: Any = None):
        super().__init__(message, details={"status_code": status_code, "error_data": error_data})


class CleanupError(ConnectorError):
    """Closing the session failed. Logged, never raised to callers."""

    pass


def describe_error(error: BaseException) -> str:
    """Extract the most specific human-readable description of an upstream error.

    Looks at the decoded error body first (OAuth ``error_description``,
    Agent API ``error.message`` / ``message``, bare ``error``) and falls back
    to the exception text.
    """
    data = error.error_data if isinstance(error, ConnectorError) else None

    if isinstance(data, list) and data and isinstance(data[0], dict):
        data = data[0]

    if isinstance(data, dict):
        nested = data.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
        for key in ("error_description", "message", "errorCode"):
            if data.get(key):
                return str(data[key])
        if nested:
            return str(nested)
    elif isinstance(data, str) and data.strip():
        return data.strip()

    return str(error)


# =============================================================================
# Authentication
# =============================================================================


@dataclass
class OAuthTokenAuth:
    """Bearer token obtained from the OAuth2 token endpoint.

    Lifetime is issuer-assigned and not tracked; a new token is only
    requested when the connector is started again.
    """

    access_token: str = ""
    token_type: str = "Bearer"
    instance_url: Optional[str] = None
    scope: Optional[str] = None
    issued_at: Optional[datetime] = None

    def is_configured(self) -> bool:
        """Check if token is set."""
        return bool(self.access_token)

    def get_headers(self) -> Dict[str, str]:
        """Get authorization header."""
        if not self.access_token:
            return {}
        return {"Authorization": f"{self.token_type} {self.access_token}"}

    @classmethod
    def from_token_response(cls, data: Dict[str, Any]) -> "OAuthTokenAuth":
        """Build a token from a ``/services/oauth2/token`` JSON body."""
        issued_at = None
        raw_issued = data.get("issued_at")
        if raw_issued:
            try:
                # Salesforce reports milliseconds since the epoch as a string
                issued_at = datetime.fromtimestamp(int(raw_issued) / 1000, tz=timezone.utc)
            except (TypeError, ValueError):
                issued_at = None

        token_type = data.get("token_type") or "Bearer"
        return cls(
            access_token=data.get("access_token", ""),
            token_type=token_type,
            instance_url=data.get("instance_url"),
            scope=data.get("scope"),
            issued_at=issued_at,
        )


# =============================================================================
# Request Policy
# =============================================================================


@dataclass
class RequestPolicy:
    """Policy for HTTP requests: timeout, retries, headers.

    Phases never retry on their own; ``max_retries`` stays 0 unless a
    caller opts in.
    """

    timeout: float = 60.0  # seconds, applied to connect/read/write/pool
    max_retries: int = 0
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    retry_on_status: List[int] = field(default_factory=lambda: [429, 502, 503, 504])
    user_agent: str = "agentforce-connector/1.0"
    default_headers: Dict[str, str] = field(default_factory=lambda: {"Accept": "application/json"})

    @classmethod
    def from_timeout_ms(cls, timeout_ms: int) -> "RequestPolicy":
        """Create a policy from a millisecond timeout."""
        return cls(timeout=timeout_ms / 1000.0)


# =============================================================================
# Endpoint Templates
# =============================================================================


@dataclass(frozen=True)
class EndpointTemplates:
    """URL templates and response field fallbacks for the Agent API.

    Orgs disagree on the exact session/message shapes, so these are
    configuration rather than constants. Templates may use ``{api_version}``,
    ``{agent_id}`` and ``{session_id}``.
    """

    token: str = "/services/oauth2/token"
    open_session: str = "/einstein/ai-agent/v1/agents/{agent_id}/sessions"
    send_message: str = "/einstein/ai-agent/v1/sessions/{session_id}/messages"
    close_session: str = "/einstein/ai-agent/v1/sessions/{session_id}"
    session_id_fields: Tuple[str, ...] = ("sessionId", "id")

    def render(self, template: str, **values: str) -> str:
        """Fill a template with the given values."""
        return template.format(**values)


DEFAULT_ENDPOINTS = EndpointTemplates()

# Shape used by the older Connect API variant
SERVICES_DATA_ENDPOINTS = EndpointTemplates(
    open_session="/services/data/{api_version}/einstein/ai-agent/agents/{agent_id}/sessions",
    send_message="/services/data/{api_version}/einstein/ai-agent/sessions/{session_id}/messages",
    close_session="/services/data/{api_version}/einstein/ai-agent/sessions/{session_id}",
)
