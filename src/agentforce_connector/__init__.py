"""Salesforce Agentforce connector for conversational bot testing."""

from agentforce_connector.connector import (
    AgentforceConnector,
    ConnectorPhase,
    ConnectorState,
    ConnectorStrategy,
)
from agentforce_connector.models import BotMessage, UserMessage
from agentforce_connector.normalizer import normalize

__version__ = "0.1.0"

__all__ = [
    "AgentforceConnector",
    "BotMessage",
    "ConnectorPhase",
    "ConnectorState",
    "ConnectorStrategy",
    "UserMessage",
    "normalize",
]
