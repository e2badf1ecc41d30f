"""Event types for the inbound message bus.

Raw envelopes arrive from the transport as protocol-shaped dicts. They are
decoded once here: the key and metadata into ``InboundEvent`` and the
message container into one of the ``Content`` variants.
"""

from dataclasses import dataclass, field
from typing import Any, Union

ACCEPTED_BATCH_TYPES = ("notify", "append")


@dataclass(frozen=True)
class MessageKey:
    remote_jid: str
    id: str
    from_me: bool = False
    participant: str | None = None

    @property
    def dedup_key(self) -> str:
        return f"{self.remote_jid}_{self.id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "remoteJid": self.remote_jid,
            "id": self.id,
            "fromMe": self.from_me,
            "participant": self.participant,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageKey":
        return cls(
            remote_jid=str(data.get("remoteJid") or ""),
            id=str(data.get("id") or ""),
            from_me=bool(data.get("fromMe", False)),
            participant=data.get("participant") or None,
        )


# Content variants, one per message kind the normalizer understands.

@dataclass(frozen=True)
class Conversation:
    text: str


@dataclass(frozen=True)
class ExtendedText:
    text: str
    context_info: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageMedia:
    caption: str
    media: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VideoMedia:
    caption: str
    media: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ButtonReply:
    selected_id: str


@dataclass(frozen=True)
class TemplateButtonReply:
    selected_id: str


@dataclass(frozen=True)
class ListReply:
    selected_id: str


@dataclass(frozen=True)
class Unsupported:
    kinds: tuple[str, ...] = ()


Content = Union[
    Conversation,
    ExtendedText,
    ImageMedia,
    VideoMedia,
    ButtonReply,
    TemplateButtonReply,
    ListReply,
    Unsupported,
]

VIEW_ONCE_WRAPPERS = ("viewOnceMessage", "viewOnceMessageV2", "viewOnceMessageV2Extension")


def unwrap_view_once(message: dict[str, Any] | None) -> dict[str, Any] | None:
    """Peel one view-once envelope; anything else is returned as-is."""
    if not message:
        return None
    for wrapper in VIEW_ONCE_WRAPPERS:
        inner = (message.get(wrapper) or {}).get("message")
        if inner:
            return inner
    return message


def decode_content(message: dict[str, Any]) -> Content:
    """Pick the content variant following the body precedence of the protocol."""
    if message.get("conversation"):
        return Conversation(text=str(message["conversation"]))

    extended = message.get("extendedTextMessage") or {}
    if extended.get("text"):
        return ExtendedText(text=str(extended["text"]), context_info=extended.get("contextInfo") or {})

    media = unwrap_view_once(message) or {}
    if media.get("imageMessage") is not None:
        image = media["imageMessage"] or {}
        return ImageMedia(caption=str(image.get("caption") or ""), media=image)
    if media.get("videoMessage") is not None:
        video = media["videoMessage"] or {}
        return VideoMedia(caption=str(video.get("caption") or ""), media=video)

    selected = (message.get("buttonsResponseMessage") or {}).get("selectedButtonId")
    if selected:
        return ButtonReply(selected_id=str(selected))
    selected = (message.get("templateButtonReplyMessage") or {}).get("selectedId")
    if selected:
        return TemplateButtonReply(selected_id=str(selected))
    selected = ((message.get("listResponseMessage") or {}).get("singleSelectReply") or {}).get("selectedRowId")
    if selected:
        return ListReply(selected_id=str(selected))

    if extended:
        return ExtendedText(text="", context_info=extended.get("contextInfo") or {})
    return Unsupported(kinds=tuple(message.keys()))


def _coerce_timestamp(value: Any) -> float | None:
    # Protocol longs may arrive as {"low": ..., "high": ...} or as strings.
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("low")
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class InboundEvent:
    """A raw message envelope. Immutable once received."""
    key: MessageKey
    message: dict[str, Any]
    timestamp: float | None = None
    push_name: str = ""

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "InboundEvent | None":
        if not isinstance(raw, dict) or not raw.get("message"):
            return None
        return cls(
            key=MessageKey.from_dict(raw.get("key") or {}),
            message=raw["message"],
            timestamp=_coerce_timestamp(raw.get("messageTimestamp")),
            push_name=str(raw.get("pushName") or ""),
        )

    @property
    def content(self) -> Content:
        return decode_content(self.message)

    def to_raw(self) -> dict[str, Any]:
        return {
            "key": self.key.to_dict(),
            "message": self.message,
            "messageTimestamp": self.timestamp,
            "pushName": self.push_name,
        }


@dataclass
class MessageBatch:
    """An ``messages.upsert``-style delivery from the transport."""
    type: str
    messages: list[dict[str, Any]] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.type in ACCEPTED_BATCH_TYPES
