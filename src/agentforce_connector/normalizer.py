"""Response normalizer: remote agent payloads -> BotMessages.

Remote payloads come in many loosely-typed shapes. Recognition is driven
by two ordered rule tables, each rule a pure predicate plus a parser;
the first rule whose predicate matches wins.

RESPONSE_RULES (whole payload):
    1. message_list  - ``messages`` / ``outputs`` array, one BotMessage per entry
    2. direct        - ``text`` / ``messageText`` field (or a top-level card,
                       button, media or list shape), dispatched as content
    3. content       - ``content`` / ``richContent`` substructure
    4. acknowledge   - placeholder message

CONTENT_RULES (one output entry or nested content object):
    card -> quick_replies -> media -> list -> plain

NLP (intent/entities) is extracted independently of the shape.
"""

import logging
import math
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from agentforce_connector.models import (
    NLP,
    BotMessage,
    ButtonOption,
    CardElement,
    Intent,
    ListContent,
    ListItem,
    MediaAttachment,
    MediaContent,
    Output,
    PlainText,
    QuickReplies,
    RichContent,
)

logger = logging.getLogger(__name__)

ACKNOWLEDGEMENT_TEXT = "Agent response received"
MESSAGE_LIST_FIELDS = ("messages", "outputs")
NESTED_CONTENT_FIELDS = ("richContent", "content")
INCOMPREHENSION_INTENTS = frozenset({"none", "unknown"})
DEFAULT_CONFIDENCE = 1.0


# =============================================================================
# Field helpers
# =============================================================================


def _first(data: Dict[str, Any], *keys: str) -> Any:
    """Return the first truthy value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    """Coerce scalars to text; containers are not text."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _button_options(raw_buttons: Any) -> List[ButtonOption]:
    options = []
    for raw in _as_list(raw_buttons):
        if isinstance(raw, dict):
            text = _text(_first(raw, "text", "title", "label"))
            payload = _text(_first(raw, "payload", "value")) or text
        else:
            text = payload = _text(raw)
        options.append(ButtonOption(text=text, payload=payload))
    return options


def _image_url(raw: Dict[str, Any]) -> Optional[str]:
    image = _first(raw, "imageUrl", "image")
    if isinstance(image, dict):
        image = _first(image, "url", "mediaUri", "imageUrl")
    return _text(image)


def _card_element(raw: Any) -> CardElement:
    if not isinstance(raw, dict):
        return CardElement(title=_text(raw))
    return CardElement(
        title=_text(_first(raw, "title", "text")),
        subtitle=_text(_first(raw, "subtitle", "description")),
        image_url=_image_url(raw),
        buttons=_button_options(raw.get("buttons")),
    )


def _media_attachment(raw: Any) -> MediaAttachment:
    if not isinstance(raw, dict):
        return MediaAttachment(uri=_text(raw))
    mime_type = _first(raw, "contentType", "mimeType")
    if not mime_type and raw.get("type") != "media":
        mime_type = raw.get("type")
    return MediaAttachment(
        mime_type=_text(mime_type),
        uri=_text(_first(raw, "contentUrl", "url", "mediaUri")),
        alt_text=_text(_first(raw, "name", "title", "altText")),
    )


def _list_item(raw: Any) -> ListItem:
    if not isinstance(raw, dict):
        return ListItem(title=_text(raw))
    return ListItem(
        title=_text(_first(raw, "title", "text")),
        subtitle=_text(_first(raw, "subtitle", "description")),
        buttons=_button_options(raw.get("buttons")),
    )


def _content_text(content: Dict[str, Any]) -> Optional[str]:
    return _text(_first(content, "text", "messageText", "message"))


# =============================================================================
# Content rules
# =============================================================================


class ContentRule(NamedTuple):
    """Shape detector for one output entry."""

    name: str
    matches: Callable[[Dict[str, Any]], bool]
    parse: Callable[[Dict[str, Any]], Output]


def _is_card(content: Dict[str, Any]) -> bool:
    return (
        content.get("type") == "card"
        or isinstance(content.get("cards"), list)
        or isinstance(content.get("elements"), list)
    )


def _parse_card(content: Dict[str, Any]) -> RichContent:
    for key in ("cards", "elements"):
        if isinstance(content.get(key), list):
            return RichContent(
                text=_content_text(content),
                elements=[_card_element(e) for e in content[key]],
            )
    # A single card described inline
    return RichContent(elements=[_card_element(content)])


def _is_quick_replies(content: Dict[str, Any]) -> bool:
    return content.get("type") == "quickReplies" or "buttons" in content


def _parse_quick_replies(content: Dict[str, Any]) -> QuickReplies:
    raw = _first(content, "buttons", "quickReplies", "options")
    return QuickReplies(text=_content_text(content), options=_button_options(raw))


def _is_media(content: Dict[str, Any]) -> bool:
    return content.get("type") == "media" or "attachments" in content


def _parse_media(content: Dict[str, Any]) -> MediaContent:
    if isinstance(content.get("attachments"), list):
        return MediaContent(
            text=_content_text(content),
            attachments=[_media_attachment(a) for a in content["attachments"]],
        )
    return MediaContent(attachments=[_media_attachment(content)])


def _is_list(content: Dict[str, Any]) -> bool:
    return content.get("type") == "list" or "items" in content


def _parse_list(content: Dict[str, Any]) -> ListContent:
    return ListContent(
        text=_content_text(content),
        items=[_list_item(i) for i in _as_list(content.get("items"))],
    )


def _parse_plain(content: Dict[str, Any]) -> PlainText:
    # Agent API "Inform" entries carry their text in ``message``
    return PlainText(text=_text(_first(content, "text", "content", "messageText", "message")))


CONTENT_RULES: List[ContentRule] = [
    ContentRule("card", _is_card, _parse_card),
    ContentRule("quick_replies", _is_quick_replies, _parse_quick_replies),
    ContentRule("media", _is_media, _parse_media),
    ContentRule("list", _is_list, _parse_list),
    ContentRule("plain", lambda content: True, _parse_plain),
]


def _unwrap(content: Dict[str, Any]) -> Dict[str, Any]:
    """Descend into nested ``richContent``/``content`` objects.

    Text on the wrapper is kept when the nested object has none.
    """
    for key in NESTED_CONTENT_FIELDS:
        inner = content.get(key)
        if isinstance(inner, dict):
            merged = dict(inner)
            if not _content_text(merged) and _content_text(content):
                merged["text"] = _content_text(content)
            return _unwrap(merged)
    return content


def match_content_rule(content: Any) -> str:
    """Name of the content rule that applies to ``content``."""
    if not isinstance(content, dict):
        return "plain"
    content = _unwrap(content)
    for rule in CONTENT_RULES:
        if rule.matches(content):
            return rule.name
    return "plain"


def classify_content(content: Any) -> Output:
    """Map one output entry or content object to an Output variant."""
    if not isinstance(content, dict):
        return PlainText(text=_text(content))
    content = _unwrap(content)
    for rule in CONTENT_RULES:
        if rule.matches(content):
            return rule.parse(content)
    return _parse_plain(content)


# =============================================================================
# NLP extraction
# =============================================================================


def parse_confidence(value: Any) -> float:
    """Parse a confidence score, defaulting to 1.0 when absent or unparsable."""
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(confidence):
        return DEFAULT_CONFIDENCE
    return confidence


def _nlp_source(payload: Any) -> Optional[Dict[str, Any]]:
    """Find the object carrying ``intent``/``nlp``: top level first, then nested."""
    if not isinstance(payload, dict):
        return None
    if payload.get("intent") or payload.get("nlp"):
        return payload
    for key in NESTED_CONTENT_FIELDS:
        found = _nlp_source(payload.get(key))
        if found is not None:
            return found
    return None


def extract_nlp(payload: Any) -> Optional[NLP]:
    """Extract intent name, confidence, incomprehension and entities."""
    source = _nlp_source(payload)
    if source is None:
        return None

    intent_raw = source.get("intent")
    nlp_raw = source.get("nlp") if isinstance(source.get("nlp"), dict) else {}
    nlp_intent = nlp_raw.get("intent")

    name = None
    confidence = None
    for candidate in (intent_raw, nlp_intent):
        if isinstance(candidate, dict):
            name = name or _text(candidate.get("name"))
            if confidence is None:
                confidence = candidate.get("confidence")
        elif candidate and name is None:
            name = _text(candidate)
    if confidence is None:
        confidence = nlp_raw.get("confidence", source.get("confidence"))

    name = name or "unknown"
    entities = source.get("entities")
    if not isinstance(entities, list):
        entities = nlp_raw.get("entities")

    return NLP(
        intent=Intent(
            name=name,
            confidence=parse_confidence(confidence),
            incomprehension=name.lower() in INCOMPREHENSION_INTENTS,
        ),
        entities=list(_as_list(entities)),
    )


# =============================================================================
# Response rules
# =============================================================================


def _build_message(content: Any, source: Any, nlp: Optional[NLP]) -> BotMessage:
    message = classify_content(content).to_bot_message(source=source)
    update: Dict[str, Any] = {"nlp": nlp}
    if not message.has_content():
        update["message_text"] = ACKNOWLEDGEMENT_TEXT
    return message.model_copy(update=update)


def _message_entries(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in MESSAGE_LIST_FIELDS:
            entries = payload.get(key)
            if isinstance(entries, list) and entries:
                return entries
    return []


def _from_message_list(payload: Any) -> List[BotMessage]:
    entries = _message_entries(payload)
    top_level_nlp = extract_nlp(payload)
    messages = [_build_message(entries[0], entries[0], extract_nlp(entries[0]) or top_level_nlp)]
    for entry in entries[1:]:
        messages.append(_build_message(entry, entry, extract_nlp(entry)))
    return messages


def _has_direct_content(payload: Any) -> bool:
    """Top-level text, or a top-level card/button/media/list shape."""
    if isinstance(payload, str):
        return bool(payload.strip())
    if not isinstance(payload, dict):
        return False
    if _content_text(payload):
        return True
    return any(rule.matches(payload) for rule in CONTENT_RULES if rule.name != "plain")


def _from_direct_content(payload: Any) -> List[BotMessage]:
    if isinstance(payload, str):
        return [BotMessage(message_text=payload, source_data=payload)]
    return [_build_message(payload, payload, extract_nlp(payload))]


def _has_content(payload: Any) -> bool:
    return isinstance(payload, dict) and any(
        payload.get(key) is not None for key in ("content", "richContent")
    )


def _from_content(payload: Dict[str, Any]) -> List[BotMessage]:
    content = payload.get("content")
    if content is None:
        content = payload.get("richContent")
    return [_build_message(content, payload, extract_nlp(payload))]


def _acknowledge(payload: Any) -> List[BotMessage]:
    return [
        BotMessage(
            message_text=ACKNOWLEDGEMENT_TEXT,
            nlp=extract_nlp(payload),
            source_data=payload,
        )
    ]


class ResponseRule(NamedTuple):
    """Shape detector for a whole turn response."""

    name: str
    matches: Callable[[Any], bool]
    parse: Callable[[Any], List[BotMessage]]


RESPONSE_RULES: List[ResponseRule] = [
    ResponseRule("message_list", lambda payload: bool(_message_entries(payload)), _from_message_list),
    ResponseRule("direct", _has_direct_content, _from_direct_content),
    ResponseRule("content", _has_content, _from_content),
    ResponseRule("acknowledge", lambda payload: True, _acknowledge),
]


def match_response_rule(raw: Any) -> ResponseRule:
    """First response rule matching ``raw``."""
    for rule in RESPONSE_RULES:
        if rule.matches(raw):
            return rule
    return RESPONSE_RULES[-1]


def normalize(raw: Any) -> List[BotMessage]:
    """Normalize a raw turn response into one or more BotMessages.

    Pure function of its input. Never returns an empty list: a payload with
    no recognizable content yields a single acknowledgement message.
    """
    rule = match_response_rule(raw)
    messages = rule.parse(raw)
    logger.debug("Normalized response via %s rule into %d message(s)", rule.name, len(messages))
    return messages
