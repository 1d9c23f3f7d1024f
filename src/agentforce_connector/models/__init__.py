"""Message models for the Agentforce connector."""

from agentforce_connector.models.messages import (
    NLP,
    BotMessage,
    Button,
    Card,
    Intent,
    Media,
    MediaRef,
    UserMessage,
)
from agentforce_connector.models.outputs import (
    ButtonOption,
    CardElement,
    ListContent,
    ListItem,
    MediaAttachment,
    MediaContent,
    Output,
    PlainText,
    QuickReplies,
    RichContent,
)

__all__ = [
    "BotMessage",
    "Button",
    "ButtonOption",
    "Card",
    "CardElement",
    "Intent",
    "ListContent",
    "ListItem",
    "Media",
    "MediaAttachment",
    "MediaContent",
    "MediaRef",
    "NLP",
    "Output",
    "PlainText",
    "QuickReplies",
    "RichContent",
    "UserMessage",
]
