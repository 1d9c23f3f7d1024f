"""Turn exchange: one user utterance in, one raw payload out.

TurnExchanger talks to the Agent API messages endpoint. SimulatedExchanger
implements the same contract locally for orgs without Agentforce
(Developer Edition), answering with rule-based canned replies.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from agentforce_connector.models import UserMessage

from .base import ConnectorError, MessageError, OAuthTokenAuth, describe_error
from .credentials import Credentials
from .http_client import AsyncHTTPClient
from .session import Session

logger = logging.getLogger(__name__)


class Exchanger(Protocol):
    """Sends one utterance within a session and returns the raw response."""

    async def send(self, session: Session, token: OAuthTokenAuth, utterance: UserMessage) -> Any:
        ...


def build_message_body(utterance: UserMessage, sequence_id: int) -> Dict[str, Any]:
    """Messages-endpoint request body.

    Attachments, buttons and form fields are only included when present.
    """
    body: Dict[str, Any] = {
        "message": utterance.message_text,
        "sequenceId": sequence_id,
    }

    if utterance.media:
        body["attachments"] = [
            {
                "contentType": media.mime_type,
                "contentUrl": media.media_uri,
                "name": media.alt_text or (media.media_uri or "").rsplit("/", 1)[-1],
            }
            for media in utterance.media
        ]

    if utterance.buttons:
        body["suggestedActions"] = {
            "actions": [
                {
                    "type": "imBack",
                    "title": button.text,
                    "value": button.payload or button.text,
                }
                for button in utterance.buttons
            ]
        }

    if utterance.forms:
        body["channelData"] = {"forms": dict(utterance.forms)}

    return body


class TurnExchanger:
    """Posts utterances to ``/sessions/{session_id}/messages``."""

    def __init__(self, client: AsyncHTTPClient, credentials: Credentials):
        self._client = client
        self._credentials = credentials

    def message_url(self, session: Session) -> str:
        endpoints = self._credentials.endpoints
        path = endpoints.render(
            endpoints.send_message,
            api_version=self._credentials.api_version,
            session_id=session.id,
        )
        return f"{self._credentials.agent_api_host}{path}"

    async def send(self, session: Session, token: OAuthTokenAuth, utterance: UserMessage) -> Any:
        """Send one turn using ``session.sequence_id``.

        Raises:
            MessageError: on any non-success status or transport failure
        """
        body = build_message_body(utterance, session.sequence_id)
        logger.debug("Sending turn %d to session %s", session.sequence_id, session.id)

        try:
            response = await self._client.with_auth(token).post(self.message_url(session), json=body)
        except ConnectorError as e:
            raise MessageError(
                f"Failed to send message to agent: {describe_error(e)}",
                status_code=e.status_code,
                error_data=e.error_data,
            ) from e

        return response.data


class SimulatedExchanger:
    """Rule-based responder standing in for a real agent.

    Replies carry an intent and a 0.9 confidence so NLP assertions can be
    exercised without a live org.
    """

    CONFIDENCE = 0.9

    def __init__(self, delay_s: float = 0.0):
        self.delay_s = delay_s

    def respond(self, text: str) -> Dict[str, Any]:
        """Canned reply for ``text``."""
        lowered = (text or "").lower()

        if "hello" in lowered or "hi" in lowered.split():
            return self._text_reply(
                "Hello! I'm your Agentforce assistant. How can I help you today?", "greeting"
            )
        if "help" in lowered:
            return self._text_reply(
                "I'm here to help! I can assist you with various tasks. What do you need help with?",
                "help_request",
            )
        if "weather" in lowered:
            return self._text_reply(
                "I'd be happy to help with weather information, but I don't have access "
                "to real-time weather data in this simulation.",
                "weather_inquiry",
            )
        if "product" in lowered or "service" in lowered:
            return {
                "content": {
                    "type": "card",
                    "text": "Here are our available products and services:",
                    "cards": [
                        {
                            "title": "Product A",
                            "subtitle": "Our flagship product",
                            "image": "https://example.com/product-a.jpg",
                            "buttons": [
                                {"text": "Learn More", "payload": "learn_more_product_a"},
                                {"text": "Buy Now", "payload": "buy_product_a"},
                            ],
                        },
                        {
                            "title": "Service B",
                            "subtitle": "Professional services",
                            "buttons": [{"text": "Get Quote", "payload": "quote_service_b"}],
                        },
                    ],
                },
                "intent": "product_inquiry",
                "confidence": self.CONFIDENCE,
                "entities": [],
            }
        if "thank" in lowered:
            return self._text_reply(
                "You're welcome! Is there anything else I can help you with?", "gratitude"
            )
        return self._text_reply(
            f'I understand you\'re asking about "{text}". I\'m running in simulation mode, '
            "so try asking about products, weather, or say hello!",
            "general_inquiry",
        )

    def _text_reply(self, text: str, intent: str) -> Dict[str, Any]:
        return {
            "type": "text",
            "text": text,
            "intent": intent,
            "confidence": self.CONFIDENCE,
            "entities": [],
        }

    async def send(
        self, session: Session, token: Optional[OAuthTokenAuth], utterance: UserMessage
    ) -> Dict[str, Any]:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        logger.debug("Simulated turn %d for session %s", session.sequence_id, session.id)
        return self.respond(utterance.message_text)
