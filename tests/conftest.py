"""Test configuration and fixtures.

HTTP traffic never leaves the process: ``agent_api`` builds an
``httpx.MockTransport`` around a small fake of the Salesforce token and
Agent API endpoints that records every request it sees.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from agentforce_connector.emitter import ManualScheduler

INSTANCE_URL = "https://myorg.my.salesforce.com"
AGENT_ID = "0XxTEST000000001"
SESSION_ID = "sess-123"


@pytest.fixture(autouse=True)
def _quiet_loggers():
    """Keep connector loggers from leaking handlers between tests."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict):
        if logger_name.startswith("agentforce_connector."):
            logger = logging.getLogger(logger_name)
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)


@pytest.fixture
def client_caps() -> Dict[str, Any]:
    """Capabilities for the client-credentials grant."""
    return {
        "AGENTFORCE_INSTANCE_URL": INSTANCE_URL,
        "AGENTFORCE_AGENT_ID": AGENT_ID,
        "AGENTFORCE_CLIENT_ID": "client-id",
        "AGENTFORCE_CLIENT_SECRET": "client-secret",
    }


@pytest.fixture
def password_caps() -> Dict[str, Any]:
    """Capabilities for the password grant."""
    return {
        "AGENTFORCE_INSTANCE_URL": INSTANCE_URL,
        "AGENTFORCE_AGENT_ID": AGENT_ID,
        "AGENTFORCE_USERNAME": "user@example.com",
        "AGENTFORCE_PASSWORD": "secret",
        "AGENTFORCE_SECURITY_TOKEN": "TOKEN",
    }


@pytest.fixture
def simulation_caps(client_caps) -> Dict[str, Any]:
    return {**client_caps, "AGENTFORCE_SIMULATION_MODE": "true"}


@pytest.fixture
def received() -> List[Any]:
    """Messages delivered to queue_bot_says."""
    return []


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


Route = Tuple[int, Any]


@dataclass
class FakeAgentAPI:
    """Scriptable fake of the token and Agent API endpoints.

    Each endpoint answers with a ``(status, body)`` pair. ``replies`` is
    consumed one entry per message turn; once exhausted every turn gets a
    plain text reply.
    """

    token: Route = (200, {"access_token": "tok-abc", "instance_url": INSTANCE_URL})
    open_session: Route = (200, {"sessionId": SESSION_ID})
    close_session: Route = (204, None)
    replies: List[Route] = field(default_factory=list)
    requests: List[httpx.Request] = field(default_factory=list)
    raise_on: Optional[Callable[[httpx.Request], Optional[Exception]]] = None

    def requests_to(self, method: str, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(suffix)]

    @property
    def message_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests_to("POST", "/messages")]

    def _respond(self, route: Route) -> httpx.Response:
        status, body = route
        if body is None:
            return httpx.Response(status)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_on is not None:
            error = self.raise_on(request)
            if error is not None:
                raise error

        path = request.url.path
        if path.endswith("/services/oauth2/token"):
            return self._respond(self.token)
        if request.method == "POST" and path.endswith("/sessions"):
            return self._respond(self.open_session)
        if request.method == "POST" and path.endswith("/messages"):
            if self.replies:
                return self._respond(self.replies.pop(0))
            return self._respond((200, {"messages": [{"type": "Inform", "message": "ok"}]}))
        if request.method == "DELETE":
            return self._respond(self.close_session)
        return httpx.Response(404, json={"message": "no route"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def agent_api() -> FakeAgentAPI:
    return FakeAgentAPI()
