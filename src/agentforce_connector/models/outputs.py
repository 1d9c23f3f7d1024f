"""Tagged union of remote output shapes.

Each variant is what the normalizer recognized in one remote output
entry. ``to_bot_message`` maps it deterministically to a BotMessage.
"""

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from agentforce_connector.models.messages import BotMessage, Button, Card, Media, MediaRef


class ButtonOption(BaseModel):
    """Remote button/quick-reply option."""

    text: Optional[str] = None
    payload: Optional[str] = None

    def to_button(self) -> Button:
        return Button(text=self.text, payload=self.payload)


class CardElement(BaseModel):
    """Remote card or rich-content element."""

    title: Optional[str] = None
    subtitle: Optional[str] = None
    image_url: Optional[str] = None
    buttons: List[ButtonOption] = Field(default_factory=list)

    def to_card(self) -> Card:
        return Card(
            text=self.title,
            subtext=self.subtitle,
            image=MediaRef(media_uri=self.image_url) if self.image_url else None,
            buttons=[b.to_button() for b in self.buttons],
        )


class MediaAttachment(BaseModel):
    """Remote media attachment."""

    mime_type: Optional[str] = None
    uri: Optional[str] = None
    alt_text: Optional[str] = None

    def to_media(self) -> Media:
        return Media(mime_type=self.mime_type, media_uri=self.uri, alt_text=self.alt_text)


class ListItem(BaseModel):
    """Remote list entry."""

    title: Optional[str] = None
    subtitle: Optional[str] = None
    buttons: List[ButtonOption] = Field(default_factory=list)

    def to_card(self) -> Card:
        return Card(
            text=self.title,
            subtext=self.subtitle,
            buttons=[b.to_button() for b in self.buttons],
        )


class PlainText(BaseModel):
    kind: Literal["text"] = "text"
    text: Optional[str] = None

    def to_bot_message(self, source: Any = None) -> BotMessage:
        return BotMessage(message_text=self.text, source_data=source)


class RichContent(BaseModel):
    """Cards, rich-content elements, or a single card."""

    kind: Literal["rich_content"] = "rich_content"
    text: Optional[str] = None
    elements: List[CardElement] = Field(default_factory=list)

    def to_bot_message(self, source: Any = None) -> BotMessage:
        return BotMessage(
            message_text=self.text,
            cards=[e.to_card() for e in self.elements],
            source_data=source,
        )


class QuickReplies(BaseModel):
    kind: Literal["quick_replies"] = "quick_replies"
    text: Optional[str] = None
    options: List[ButtonOption] = Field(default_factory=list)

    def to_bot_message(self, source: Any = None) -> BotMessage:
        return BotMessage(
            message_text=self.text,
            buttons=[o.to_button() for o in self.options],
            source_data=source,
        )


class MediaContent(BaseModel):
    kind: Literal["media"] = "media"
    text: Optional[str] = None
    attachments: List[MediaAttachment] = Field(default_factory=list)

    def to_bot_message(self, source: Any = None) -> BotMessage:
        return BotMessage(
            message_text=self.text,
            media=[a.to_media() for a in self.attachments],
            source_data=source,
        )


class ListContent(BaseModel):
    kind: Literal["list"] = "list"
    text: Optional[str] = None
    items: List[ListItem] = Field(default_factory=list)

    def to_bot_message(self, source: Any = None) -> BotMessage:
        return BotMessage(
            message_text=self.text,
            cards=[i.to_card() for i in self.items],
            source_data=source,
        )


Output = Union[PlainText, RichContent, QuickReplies, MediaContent, ListContent]
