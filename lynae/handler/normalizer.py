"""Collapse the inbound content shapes into a ``NormalizedCommand``."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from lynae.bus.events import (
    ButtonReply,
    Conversation,
    ExtendedText,
    ImageMedia,
    InboundEvent,
    ListReply,
    MessageKey,
    TemplateButtonReply,
    VideoMedia,
    unwrap_view_once,
)
from lynae.utils.jid import is_group, is_user

DEFAULT_PREFIXES = ("!", "/", ".", "#")
CONTEXT_CARRIERS = ("extendedTextMessage", "imageMessage", "videoMessage")


def _pick(data: dict[str, Any], *names: str) -> Any:
    # Baileys-style payloads say stanzaId/mentionedJid, protobuf JSON says stanzaID/mentionedJID.
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


def context_info(message: dict[str, Any]) -> dict[str, Any]:
    for carrier in CONTEXT_CARRIERS:
        info = (message.get(carrier) or {}).get("contextInfo")
        if info:
            return info
    return {}


def message_text(message: dict[str, Any] | None) -> str:
    """Plain text of a (quoted) message container, empty when it has none."""
    content = unwrap_view_once(message) or {}
    if content.get("conversation"):
        return str(content["conversation"])
    for carrier, attr in (
        ("extendedTextMessage", "text"),
        ("imageMessage", "caption"),
        ("videoMessage", "caption"),
    ):
        value = (content.get(carrier) or {}).get(attr)
        if value:
            return str(value)
    return ""


@dataclass
class QuotedMessage:
    """The message being replied to."""
    key: MessageKey
    participant: str | None
    message: dict[str, Any] | None
    context_info: dict[str, Any] = field(default_factory=dict)
    text: str = ""

    @property
    def content(self) -> dict[str, Any] | None:
        return unwrap_view_once(self.message)

    @property
    def is_view_once(self) -> bool:
        return bool(self.message) and self.content is not self.message

    def media(self, kind: str) -> dict[str, Any] | None:
        return (self.content or {}).get(f"{kind}Message")

    @property
    def image(self) -> dict[str, Any] | None:
        return self.media("image")

    @property
    def video(self) -> dict[str, Any] | None:
        return self.media("video")

    @property
    def audio(self) -> dict[str, Any] | None:
        return self.media("audio")

    @property
    def sticker(self) -> dict[str, Any] | None:
        return self.media("sticker")


@dataclass
class NormalizedCommand:
    sender: str
    chat: str
    body: str
    command: str
    text: str
    prefix: str
    key: MessageKey
    event: InboundEvent
    push_name: str = ""
    quoted: QuotedMessage | None = None
    mentions: list[str] = field(default_factory=list)
    image: dict[str, Any] | None = None
    video: dict[str, Any] | None = None
    is_group: bool = False
    is_admin: bool = False
    is_bot_admin: bool = False

    @property
    def quoted_text(self) -> str:
        return self.quoted.text if self.quoted else ""

    @property
    def args(self) -> list[str]:
        return self.text.split()[1:]

    @property
    def from_me(self) -> bool:
        return self.key.from_me


def extract_body(event: InboundEvent) -> tuple[str, bool]:
    """Return ``(body, has_image)`` following the body precedence rules."""
    content = event.content
    if isinstance(content, (Conversation, ExtendedText)):
        if isinstance(content, ExtendedText) and not content.text:
            quoted = unwrap_view_once(content.context_info.get("quotedMessage")) or {}
            return "", quoted.get("imageMessage") is not None
        return content.text, False
    if isinstance(content, ImageMedia):
        return content.caption, True
    if isinstance(content, VideoMedia):
        return content.caption, False
    if isinstance(content, (ButtonReply, TemplateButtonReply, ListReply)):
        return content.selected_id, False
    return "", False


def parse_prefix(body: str, prefixes: tuple[str, ...] | list[str] = DEFAULT_PREFIXES) -> tuple[str, str] | None:
    """Return ``(prefix, command_text)`` when ``body`` starts with a known prefix."""
    if not body:
        return None
    for prefix in prefixes:
        if body.startswith(prefix):
            return prefix, body[len(prefix):].strip()
    return None


def extract_quoted(event: InboundEvent) -> QuotedMessage | None:
    info = context_info(event.message)
    if not info:
        return None
    participant = info.get("participant") or None
    key = MessageKey(
        remote_jid=str(info.get("remoteJid") or event.key.remote_jid),
        id=str(_pick(info, "stanzaId", "stanzaID") or ""),
        from_me=bool(info.get("fromMe", False)),
        participant=participant,
    )
    quoted_message = info.get("quotedMessage") or None
    return QuotedMessage(
        key=key,
        participant=participant,
        message=quoted_message,
        context_info=info,
        text=message_text(quoted_message),
    )


def extract_mentions(event: InboundEvent) -> list[str]:
    mentioned = _pick(context_info(event.message), "mentionedJid", "mentionedJID") or []
    return [jid for jid in mentioned if isinstance(jid, str) and is_user(jid)]


def extract_media(event: InboundEvent, quoted: QuotedMessage | None) -> tuple[dict | None, dict | None]:
    own = unwrap_view_once(event.message) or {}
    quoted_content = quoted.content if quoted else None
    quoted_content = quoted_content or {}
    image = own.get("imageMessage") or quoted_content.get("imageMessage")
    video = own.get("videoMessage") or quoted_content.get("videoMessage")
    return image, video


class MessageNormalizer:
    """Turns inbound events into commands, dropping stale and non-command traffic."""

    def __init__(
        self,
        prefixes: tuple[str, ...] | list[str] = DEFAULT_PREFIXES,
        max_age_seconds: float = 120,
        clock: Callable[[], float] = time.time,
    ):
        self.prefixes = tuple(prefixes)
        self.max_age_seconds = max_age_seconds
        self._clock = clock

    def is_stale(self, event: InboundEvent) -> bool:
        if not event.timestamp:
            return False
        return self._clock() - event.timestamp > self.max_age_seconds

    def detect_command(self, event: InboundEvent) -> tuple[str, str, str] | None:
        """Return ``(body, prefix, command_text)`` or None when the event is not a command."""
        body, has_image = extract_body(event)
        if not body.strip() and not has_image:
            return None

        parsed = parse_prefix(body, self.prefixes)
        if parsed is None and has_image:
            caption = str((event.message.get("imageMessage") or {}).get("caption") or "")
            parsed = parse_prefix(caption, self.prefixes)
        if parsed is None:
            return None
        prefix, command_text = parsed
        if not command_text:
            return None
        return body, prefix, command_text

    def normalize(self, event: InboundEvent, sender: str) -> NormalizedCommand | None:
        detected = self.detect_command(event)
        if detected is None:
            return None
        body, prefix, command_text = detected
        quoted = extract_quoted(event)
        image, video = extract_media(event, quoted)
        return NormalizedCommand(
            sender=sender,
            chat=event.key.remote_jid,
            body=body,
            command=command_text.lower(),
            text=command_text,
            prefix=prefix,
            key=event.key,
            event=event,
            push_name=event.push_name,
            quoted=quoted,
            mentions=extract_mentions(event),
            image=image,
            video=video,
            is_group=is_group(event.key.remote_jid),
        )
