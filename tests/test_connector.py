"""Tests for the AgentforceConnector lifecycle.

Tests cover:
- validate -> build -> start -> user_says* -> stop against a fake Agent API
- Sequence numbering across turns
- Wrapped phase errors
- stop/clean clearing state even when the remote close fails
- Deferred delivery of multi-message turns
- Simulation mode

No network calls - all traffic goes through httpx.MockTransport.
"""

import asyncio

import httpx
import pytest

from agentforce_connector import AgentforceConnector, ConnectorPhase
from agentforce_connector.connectors import (
    AuthError,
    ConfigError,
    MessageError,
    SessionError,
    SessionState,
)
from agentforce_connector.normalizer import ACKNOWLEDGEMENT_TEXT


def _connector(caps, received, agent_api, scheduler):
    return AgentforceConnector(
        received.append, caps, scheduler=scheduler, transport=agent_api.transport
    )


async def _started(caps, received, agent_api, scheduler):
    connector = _connector(caps, received, agent_api, scheduler)
    await connector.validate()
    await connector.build()
    await connector.start()
    return connector


class TestLifecycle:
    """Happy-path lifecycle against the fake Agent API."""

    @pytest.mark.asyncio
    async def test_full_conversation(self, client_caps, received, agent_api, scheduler):
        agent_api.replies = [
            (200, {"messages": [{"type": "Inform", "message": "Hi!"}]}),
            (200, {"messages": [{"type": "Inform", "message": "Sure."}]}),
        ]
        connector = _connector(client_caps, received, agent_api, scheduler)
        assert connector.state.phase == ConnectorPhase.CREATED

        await connector.validate()
        assert connector.state.phase == ConnectorPhase.VALIDATED
        await connector.build()
        assert connector.state.phase == ConnectorPhase.BUILT
        await connector.start()
        assert connector.state.phase == ConnectorPhase.OPEN
        assert connector.state.session_state == SessionState.OPEN
        assert connector.access_token == "tok-abc"
        assert connector.session_id == "sess-123"
        assert connector.sequence_id == 1

        first = await connector.user_says("hello")
        second = await connector.user_says({"messageText": "can you help?"})

        assert [m.message_text for m in first] == ["Hi!"]
        assert [m.message_text for m in second] == ["Sure."]
        assert [m.message_text for m in received] == ["Hi!", "Sure."]
        assert agent_api.message_bodies == [
            {"message": "hello", "sequenceId": 1},
            {"message": "can you help?", "sequenceId": 2},
        ]
        assert connector.sequence_id == 3

        await connector.stop()
        assert connector.state.phase == ConnectorPhase.CLOSED
        assert connector.state.session_state == SessionState.CLOSED
        assert connector.access_token is None
        assert connector.session_id is None
        assert len(agent_api.requests_to("DELETE", "/sessions/sess-123")) == 1

    @pytest.mark.asyncio
    async def test_sequence_runs_one_to_n(self, client_caps, received, agent_api, scheduler):
        connector = await _started(client_caps, received, agent_api, scheduler)
        for i in range(5):
            await connector.user_says(f"turn {i}")
        assert [b["sequenceId"] for b in agent_api.message_bodies] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_concurrent_turns_get_distinct_sequence_ids(
        self, client_caps, received, agent_api, scheduler
    ):
        connector = await _started(client_caps, received, agent_api, scheduler)
        await asyncio.gather(*(connector.user_says(f"t{i}") for i in range(4)))
        assert sorted(b["sequenceId"] for b in agent_api.message_bodies) == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_start_builds_when_needed(self, client_caps, received, agent_api, scheduler):
        connector = _connector(client_caps, received, agent_api, scheduler)
        await connector.start()
        assert connector.state.phase == ConnectorPhase.OPEN

    @pytest.mark.asyncio
    async def test_session_endpoint_and_auth_header(self, client_caps, received, agent_api, scheduler):
        await _started(client_caps, received, agent_api, scheduler)
        [open_request] = agent_api.requests_to("POST", "/sessions")
        assert open_request.url.path == "/einstein/ai-agent/v1/agents/0XxTEST000000001/sessions"
        assert open_request.headers["authorization"] == "Bearer tok-abc"

    @pytest.mark.asyncio
    async def test_send_alias(self, client_caps, received, agent_api, scheduler):
        connector = await _started(client_caps, received, agent_api, scheduler)
        messages = await connector.send("hi")
        assert messages[0].message_text == "ok"

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, client_caps, received, agent_api, scheduler):
        connector = await _started(client_caps, received, agent_api, scheduler)
        await connector.user_says("one")
        await connector.stop()
        await connector.start()
        await connector.user_says("two")
        assert [b["sequenceId"] for b in agent_api.message_bodies] == [1, 1]
        assert len(agent_api.requests_to("POST", "/services/oauth2/token")) == 2

    @pytest.mark.asyncio
    async def test_start_twice_closes_previous_session(self, client_caps, received, agent_api, scheduler):
        """Each opened session is deleted exactly once across a restart."""
        connector = await _started(client_caps, received, agent_api, scheduler)
        await connector.start()
        assert connector.state.phase == ConnectorPhase.OPEN
        await connector.stop()

        opened = agent_api.requests_to("POST", "/sessions")
        closed = agent_api.requests_to("DELETE", "/sessions/sess-123")
        assert len(opened) == 2
        assert len(closed) == len(opened)
        assert connector.state.phase == ConnectorPhase.CLOSED

    @pytest.mark.asyncio
    async def test_context_manager(self, client_caps, received, agent_api, scheduler):
        async with _connector(client_caps, received, agent_api, scheduler) as connector:
            await connector.user_says("hello")
        assert connector.state.phase == ConnectorPhase.CLOSED
        assert len(agent_api.requests_to("DELETE", "/sessions/sess-123")) == 1


class TestDeferredMessages:
    """Multi-message turns: first inline, the rest through the scheduler."""

    @pytest.mark.asyncio
    async def test_followers_are_scheduled(self, client_caps, received, agent_api, scheduler):
        agent_api.replies = [
            (
                200,
                {
                    "messages": [
                        {"type": "Inform", "message": "one"},
                        {"type": "Inform", "message": "two"},
                        {"type": "Inform", "message": "three"},
                    ]
                },
            )
        ]
        connector = await _started(client_caps, received, agent_api, scheduler)
        messages = await connector.user_says("hello")

        assert len(messages) == 3
        assert [m.message_text for m in received] == ["one"]
        assert scheduler.due_times() == pytest.approx([0.1, 0.2])

        scheduler.run_all()
        assert [m.message_text for m in received] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_stop_does_not_cancel_followers(self, client_caps, received, agent_api, scheduler):
        agent_api.replies = [(200, {"outputs": [{"text": "a"}, {"text": "b"}]})]
        connector = await _started(client_caps, received, agent_api, scheduler)
        await connector.user_says("hello")
        await connector.stop()

        scheduler.run_all()
        assert [m.message_text for m in received] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unrecognized_reply_is_acknowledged(self, client_caps, received, agent_api, scheduler):
        agent_api.replies = [(200, {"status": "accepted"})]
        connector = await _started(client_caps, received, agent_api, scheduler)
        [message] = await connector.user_says("hello")
        assert message.message_text == ACKNOWLEDGEMENT_TEXT
        assert received == [message]


class TestErrors:
    """Phase errors surface with their documented messages."""

    @pytest.mark.asyncio
    async def test_validate_reports_missing_field(self, received, agent_api, scheduler):
        connector = _connector({"AGENTFORCE_AGENT_ID": "0Xx1"}, received, agent_api, scheduler)
        with pytest.raises(ConfigError) as exc_info:
            await connector.validate()
        assert exc_info.value.field_name == "AGENTFORCE_INSTANCE_URL"
        assert connector.state.phase == ConnectorPhase.CREATED

    @pytest.mark.asyncio
    async def test_auth_failure_is_wrapped(self, client_caps, received, agent_api, scheduler):
        agent_api.token = (400, {"error": "invalid_grant", "error_description": "authentication failure"})
        connector = _connector(client_caps, received, agent_api, scheduler)
        with pytest.raises(AuthError) as exc_info:
            await connector.start()

        error = exc_info.value
        assert str(error) == (
            "Failed to start Agentforce connection: "
            "Salesforce authentication failed: authentication failure"
        )
        assert error.code == "invalid_grant"
        assert connector.access_token is None
        assert agent_api.requests_to("POST", "/sessions") == []

    @pytest.mark.asyncio
    async def test_session_failure_is_wrapped(self, client_caps, received, agent_api, scheduler):
        agent_api.open_session = (500, {"message": "agent unavailable"})
        connector = _connector(client_caps, received, agent_api, scheduler)
        with pytest.raises(SessionError) as exc_info:
            await connector.start()

        assert str(exc_info.value) == (
            "Failed to start Agentforce connection: "
            "Failed to start Agent session: agent unavailable"
        )
        assert connector.state.phase == ConnectorPhase.AUTHENTICATED
        assert connector.state.session_state == SessionState.AUTHENTICATED
        assert connector.session_id is None

    @pytest.mark.asyncio
    async def test_user_says_before_start(self, client_caps, received, agent_api, scheduler):
        connector = _connector(client_caps, received, agent_api, scheduler)
        with pytest.raises(MessageError, match="No access token available"):
            await connector.user_says("hello")
        assert agent_api.requests == []

    @pytest.mark.asyncio
    async def test_user_says_without_session(self, client_caps, received, agent_api, scheduler):
        agent_api.open_session = (500, {"message": "down"})
        connector = _connector(client_caps, received, agent_api, scheduler)
        with pytest.raises(SessionError):
            await connector.start()
        with pytest.raises(MessageError, match="No session available"):
            await connector.user_says("hello")

    @pytest.mark.asyncio
    async def test_user_says_after_stop(self, client_caps, received, agent_api, scheduler):
        connector = await _started(client_caps, received, agent_api, scheduler)
        await connector.stop()
        with pytest.raises(MessageError, match="No access token available"):
            await connector.user_says("hello")

    @pytest.mark.asyncio
    async def test_failed_turn_keeps_session_and_sequence(
        self, client_caps, received, agent_api, scheduler
    ):
        agent_api.replies = [
            (400, {"message": "Invalid message"}),
            (200, {"messages": [{"type": "Inform", "message": "recovered"}]}),
        ]
        connector = await _started(client_caps, received, agent_api, scheduler)

        with pytest.raises(MessageError) as exc_info:
            await connector.user_says("bad")
        assert str(exc_info.value) == (
            "Failed to process message: Failed to send message to agent: Invalid message"
        )
        assert connector.session_id == "sess-123"
        assert connector.sequence_id == 1
        assert received == []

        await connector.user_says("good")
        assert [b["sequenceId"] for b in agent_api.message_bodies] == [1, 1]
        assert [m.message_text for m in received] == ["recovered"]

    @pytest.mark.asyncio
    async def test_transport_failure_during_turn(self, client_caps, received, agent_api, scheduler):
        connector = await _started(client_caps, received, agent_api, scheduler)

        def fail_messages(request):
            if request.url.path.endswith("/messages"):
                return httpx.ConnectError("reset", request=request)
            return None

        agent_api.raise_on = fail_messages
        with pytest.raises(MessageError, match="Failed to process message"):
            await connector.user_says("hello")


class TestStop:
    """stop/clean are best effort and always clear state."""

    @pytest.mark.asyncio
    async def test_close_failure_still_clears_state(self, client_caps, received, agent_api, scheduler, caplog):
        agent_api.close_session = (500, {"message": "close failed"})
        connector = await _started(client_caps, received, agent_api, scheduler)

        await connector.stop()

        assert connector.state.phase == ConnectorPhase.CLOSED
        assert connector.access_token is None
        assert connector.session_id is None
        assert "Error ending session" in caplog.text

    @pytest.mark.asyncio
    async def test_close_transport_failure_still_clears_state(
        self, client_caps, received, agent_api, scheduler
    ):
        connector = await _started(client_caps, received, agent_api, scheduler)
        agent_api.raise_on = lambda request: (
            httpx.ConnectError("down", request=request) if request.method == "DELETE" else None
        )
        await connector.stop()
        assert connector.session_id is None

    @pytest.mark.asyncio
    async def test_unexpected_close_error_propagates_after_clearing_state(
        self, client_caps, received, agent_api, scheduler, monkeypatch
    ):
        """Only ConnectorErrors are swallowed; the closed state is installed regardless."""
        connector = await _started(client_caps, received, agent_api, scheduler)

        async def broken_close(token, session):
            raise RuntimeError("close bug")

        monkeypatch.setattr(connector._strategy.session_manager, "close", broken_close)

        with pytest.raises(RuntimeError, match="close bug"):
            await connector.stop()
        assert connector.state.phase == ConnectorPhase.CLOSED
        assert connector.session_id is None
        assert connector.access_token is None

    @pytest.mark.asyncio
    async def test_stop_without_session_skips_remote_call(self, client_caps, received, agent_api, scheduler):
        connector = _connector(client_caps, received, agent_api, scheduler)
        await connector.stop()
        await connector.clean()
        assert agent_api.requests == []
        assert connector.state.phase == ConnectorPhase.CLOSED

    @pytest.mark.asyncio
    async def test_clean_is_idempotent(self, client_caps, received, agent_api, scheduler):
        connector = await _started(client_caps, received, agent_api, scheduler)
        await connector.clean()
        await connector.clean()
        assert len(agent_api.requests_to("DELETE", "/sessions/sess-123")) == 1

    @pytest.mark.asyncio
    async def test_context_manager_stops_on_session_failure(
        self, client_caps, received, agent_api, scheduler
    ):
        agent_api.open_session = (500, {"message": "down"})
        connector = _connector(client_caps, received, agent_api, scheduler)
        with pytest.raises(SessionError):
            async with connector:
                pass
        assert connector.state.phase == ConnectorPhase.CLOSED
        assert connector.access_token is None


class TestSimulationMode:
    """Simulation mode answers locally after a real token exchange."""

    @pytest.mark.asyncio
    async def test_local_conversation(self, simulation_caps, received, agent_api, scheduler):
        connector = await _started(simulation_caps, received, agent_api, scheduler)
        assert connector.session_id is not None

        [greeting] = await connector.user_says("hello")
        [products] = await connector.user_says("what products do you have?")
        await connector.stop()

        assert greeting.nlp.intent.name == "greeting"
        assert greeting.nlp.intent.confidence == 0.9
        assert [c.text for c in products.cards] == ["Product A", "Service B"]

        paths = [r.url.path for r in agent_api.requests]
        assert paths == ["/services/oauth2/token"]
