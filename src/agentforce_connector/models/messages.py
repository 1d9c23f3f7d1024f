"""Canonical message models exchanged with the test framework."""

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field


class Button(BaseModel):
    """A clickable option attached to a message or card."""

    text: Optional[str] = None
    payload: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"text": self.text, "payload": self.payload})


class MediaRef(BaseModel):
    """Reference to an image shown on a card."""

    media_uri: str

    def to_dict(self) -> Dict[str, Any]:
        return {"mediaUri": self.media_uri}


class Card(BaseModel):
    """A card in a bot message (title, subtitle, image, buttons)."""

    text: Optional[str] = None
    subtext: Optional[str] = None
    image: Optional[MediaRef] = None
    buttons: List[Button] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "text": self.text,
                "subtext": self.subtext,
                "image": self.image.to_dict() if self.image else None,
                "buttons": [b.to_dict() for b in self.buttons],
            }
        )


class Media(BaseModel):
    """A media attachment in a bot message."""

    mime_type: Optional[str] = None
    media_uri: Optional[str] = None
    alt_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {"mimeType": self.mime_type, "mediaUri": self.media_uri, "altText": self.alt_text}
        )


class Intent(BaseModel):
    """Recognized intent."""

    name: str
    confidence: float = 1.0
    incomprehension: bool = False


class NLP(BaseModel):
    """Intent and entities reported alongside a reply."""

    intent: Intent
    entities: List[Any] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"intent": self.intent.model_dump(), "entities": list(self.entities)}


class BotMessage(BaseModel):
    """Normalized agent reply.

    ``source_data`` keeps the raw payload the message was built from.
    """

    sender: str = "bot"
    message_text: Optional[str] = None
    cards: List[Card] = Field(default_factory=list)
    media: List[Media] = Field(default_factory=list)
    buttons: List[Button] = Field(default_factory=list)
    nlp: Optional[NLP] = None
    source_data: Any = None

    def has_content(self) -> bool:
        """True if the message carries text, cards, media or buttons."""
        return bool(self.message_text or self.cards or self.media or self.buttons)

    def to_dict(self) -> Dict[str, Any]:
        """Framework-facing shape (camelCase keys, empty fields omitted)."""
        return _compact(
            {
                "sender": self.sender,
                "messageText": self.message_text,
                "cards": [c.to_dict() for c in self.cards],
                "media": [m.to_dict() for m in self.media],
                "buttons": [b.to_dict() for b in self.buttons],
                "nlp": self.nlp.to_dict() if self.nlp else None,
                "sourceData": self.source_data,
            }
        )


class UserMessage(BaseModel):
    """One outbound utterance."""

    message_text: str = ""
    media: List[Media] = Field(default_factory=list)
    buttons: List[Button] = Field(default_factory=list)
    forms: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Union[str, Mapping[str, Any], "UserMessage", None]) -> "UserMessage":
        """Accept plain text, a framework message dict, or a UserMessage."""
        if isinstance(value, UserMessage):
            return value
        if value is None:
            return cls()
        if isinstance(value, str):
            return cls(message_text=value)

        media = [
            Media(
                mime_type=m.get("mimeType"),
                media_uri=m.get("mediaUri"),
                alt_text=m.get("altText"),
            )
            for m in value.get("media") or []
        ]
        buttons = [
            Button(text=b.get("text"), payload=b.get("payload"))
            for b in value.get("buttons") or []
        ]
        forms = {f.get("name"): f.get("value") for f in value.get("forms") or [] if f.get("name")}
        return cls(
            message_text=value.get("messageText") or value.get("text") or "",
            media=media,
            buttons=buttons,
            forms=forms,
        )


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None values and empty lists."""
    return {k: v for k, v in data.items() if v is not None and v != []}
