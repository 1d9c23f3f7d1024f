"""Credential store: validated, immutable connector configuration.

Capabilities arrive from the test framework as a flat dictionary.
``validate_capabilities`` reports the first missing field and
``Credentials.from_capabilities`` applies defaults once they are valid.
"""

from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .base import (
    DEFAULT_ENDPOINTS,
    SERVICES_DATA_ENDPOINTS,
    ConfigError,
    EndpointTemplates,
)

DEFAULT_API_VERSION = "v61.0"
DEFAULT_TIMEOUT_MS = 60000

GrantType = Literal["client_credentials", "password"]


class Capabilities:
    """Capability names understood by the connector."""

    AGENTFORCE_INSTANCE_URL = "AGENTFORCE_INSTANCE_URL"
    AGENTFORCE_CLIENT_ID = "AGENTFORCE_CLIENT_ID"
    AGENTFORCE_CLIENT_SECRET = "AGENTFORCE_CLIENT_SECRET"
    AGENTFORCE_USERNAME = "AGENTFORCE_USERNAME"
    AGENTFORCE_PASSWORD = "AGENTFORCE_PASSWORD"
    AGENTFORCE_SECURITY_TOKEN = "AGENTFORCE_SECURITY_TOKEN"
    AGENTFORCE_AGENT_ID = "AGENTFORCE_AGENT_ID"
    AGENTFORCE_API_VERSION = "AGENTFORCE_API_VERSION"
    AGENTFORCE_TIMEOUT = "AGENTFORCE_TIMEOUT"
    AGENTFORCE_API_HOST = "AGENTFORCE_API_HOST"
    AGENTFORCE_ENDPOINT_PROFILE = "AGENTFORCE_ENDPOINT_PROFILE"
    AGENTFORCE_SIMULATION_MODE = "AGENTFORCE_SIMULATION_MODE"


ENDPOINT_PROFILES: Dict[str, EndpointTemplates] = {
    "agent-api": DEFAULT_ENDPOINTS,
    "services-data": SERVICES_DATA_ENDPOINTS,
}

_TRUTHY = {"1", "true", "yes", "on"}


def _value(caps: Mapping[str, Any], name: str) -> Optional[str]:
    """Return a capability as a stripped string, or None if blank."""
    raw = caps.get(name)
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _flag(caps: Mapping[str, Any], name: str) -> bool:
    raw = caps.get(name)
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in _TRUTHY


def _timeout_ms(caps: Mapping[str, Any]) -> int:
    """Parse the timeout capability, falling back to the default."""
    raw = caps.get(Capabilities.AGENTFORCE_TIMEOUT)
    try:
        timeout = int(str(raw).strip())
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT_MS
    return timeout if timeout > 0 else DEFAULT_TIMEOUT_MS


def validate_capabilities(caps: Mapping[str, Any]) -> None:
    """Check required capabilities in priority order.

    Order: instance URL, agent id, then credential-pair completeness.

    Raises:
        ConfigError: naming the first missing field
    """
    for name in (Capabilities.AGENTFORCE_INSTANCE_URL, Capabilities.AGENTFORCE_AGENT_ID):
        if not _value(caps, name):
            raise ConfigError(f"{name} capability is required", field_name=name)

    has_client = bool(
        _value(caps, Capabilities.AGENTFORCE_CLIENT_ID)
        and _value(caps, Capabilities.AGENTFORCE_CLIENT_SECRET)
    )
    has_user = bool(
        _value(caps, Capabilities.AGENTFORCE_USERNAME)
        and _value(caps, Capabilities.AGENTFORCE_PASSWORD)
    )
    if not has_client and not has_user:
        raise ConfigError(
            "Either AGENTFORCE_CLIENT_ID/AGENTFORCE_CLIENT_SECRET or "
            "AGENTFORCE_USERNAME/AGENTFORCE_PASSWORD capabilities are required",
            field_name="credentials",
        )

    profile = _value(caps, Capabilities.AGENTFORCE_ENDPOINT_PROFILE)
    if profile and profile not in ENDPOINT_PROFILES:
        raise ConfigError(
            f"{Capabilities.AGENTFORCE_ENDPOINT_PROFILE} must be one of "
            f"{', '.join(sorted(ENDPOINT_PROFILES))}, got {profile!r}",
            field_name=Capabilities.AGENTFORCE_ENDPOINT_PROFILE,
        )


class Credentials(BaseModel):
    """Static connector configuration. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    instance_url: str
    agent_id: str
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    security_token: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    api_host: Optional[str] = None
    endpoint_profile: str = "agent-api"
    simulation_mode: bool = False

    @classmethod
    def from_capabilities(cls, caps: Mapping[str, Any]) -> "Credentials":
        """Validate capabilities and build credentials with defaults applied."""
        validate_capabilities(caps)
        instance_url = _value(caps, Capabilities.AGENTFORCE_INSTANCE_URL).rstrip("/")
        return cls(
            instance_url=instance_url,
            agent_id=_value(caps, Capabilities.AGENTFORCE_AGENT_ID),
            client_id=_value(caps, Capabilities.AGENTFORCE_CLIENT_ID),
            client_secret=_value(caps, Capabilities.AGENTFORCE_CLIENT_SECRET),
            username=_value(caps, Capabilities.AGENTFORCE_USERNAME),
            password=_value(caps, Capabilities.AGENTFORCE_PASSWORD),
            security_token=_value(caps, Capabilities.AGENTFORCE_SECURITY_TOKEN),
            api_version=_value(caps, Capabilities.AGENTFORCE_API_VERSION) or DEFAULT_API_VERSION,
            timeout_ms=_timeout_ms(caps),
            api_host=(_value(caps, Capabilities.AGENTFORCE_API_HOST) or instance_url).rstrip("/"),
            endpoint_profile=_value(caps, Capabilities.AGENTFORCE_ENDPOINT_PROFILE) or "agent-api",
            simulation_mode=_flag(caps, Capabilities.AGENTFORCE_SIMULATION_MODE),
        )

    @property
    def grant_type(self) -> GrantType:
        """OAuth2 grant: client credentials when both halves are present."""
        if self.client_id and self.client_secret:
            return "client_credentials"
        return "password"

    @property
    def agent_api_host(self) -> str:
        """Host serving the Agent API endpoints."""
        return self.api_host or self.instance_url

    @property
    def endpoints(self) -> EndpointTemplates:
        """Endpoint templates for the configured profile."""
        return ENDPOINT_PROFILES[self.endpoint_profile]

    def describe(self) -> Dict[str, Any]:
        """Secret-free summary for logging and CLI output."""
        return {
            "instance_url": self.instance_url,
            "api_host": self.agent_api_host,
            "agent_id": self.agent_id,
            "grant_type": self.grant_type,
            "api_version": self.api_version,
            "timeout_ms": self.timeout_ms,
            "endpoint_profile": self.endpoint_profile,
            "simulation_mode": self.simulation_mode,
        }
