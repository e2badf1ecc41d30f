"""Outbound guard around the transport's send primitive.

Plugins talk to the transport through ``GuardedSender``. Sends whose content
is missing or empty never reach the transport; the caller gets a
``SendResult`` with ``blocked=True`` instead of an exception, so plugin code
does not have to special-case validation failures. Errors raised by the
transport for an accepted send still propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from lynae.bus.events import InboundEvent, MessageKey
from lynae.utils.jid import is_group

if TYPE_CHECKING:
    from lynae.channels.base import MessagingClient

SCALAR_PAYLOADS = ("image", "video", "audio", "sticker", "document", "location", "list")
LIST_PAYLOADS = ("contacts", "buttons", "sections")


@dataclass
class SendResult:
    status: int = 200
    blocked: bool = False
    reason: str = ""
    response: Any = None


def _blocked(reason: str, content: Any = None) -> SendResult:
    logger.warning(f"Blocked sendMessage: {reason}")
    if isinstance(content, dict):
        logger.debug(f"Blocked content keys: {list(content.keys())}")
    return SendResult(blocked=True, reason=reason)


def _clean_text(content: dict[str, Any]) -> None:
    if "text" not in content:
        return
    value = content["text"]
    text = str(value).strip() if value is not None else ""
    if text:
        content["text"] = text
    else:
        del content["text"]


def has_payload(content: dict[str, Any]) -> bool:
    if isinstance(content.get("text"), str) and content["text"].strip():
        return True
    for kind in SCALAR_PAYLOADS:
        value = content.get(kind)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if isinstance(value, (bytes, bytearray, dict)) and not value:
            continue
        return True
    for kind in LIST_PAYLOADS:
        value = content.get(kind)
        if isinstance(value, (list, tuple)) and len(value) > 0:
            return True
    return False


class GuardedSender:
    """Capability wrapper handed to plugins for one dispatched command."""

    def __init__(self, client: MessagingClient, event: InboundEvent, sender: str):
        self.client = client
        self.event = event
        self.sender = sender

    @property
    def chat(self) -> str:
        return self.event.key.remote_jid

    @property
    def self_id(self) -> str | None:
        return self.client.self_id

    def resolve_target(self, jid: str | None) -> str:
        target = jid or self.chat
        # Replies to the sender of a group command belong in the group.
        if jid and jid == self.sender and is_group(self.chat):
            target = self.chat
        return target

    def reply_context(self) -> dict[str, Any]:
        return {
            "stanza_id": self.event.key.id,
            "participant": self.event.key.participant or self.sender,
            "quoted_message": self.event.message,
        }

    async def send_message(
        self,
        jid: str | None,
        content: Any,
        options: dict[str, Any] | None = None,
    ) -> SendResult:
        options = dict(options or {})

        if content is None:
            return _blocked("content is None")

        if isinstance(content, str):
            trimmed = content.strip()
            if not trimmed:
                return _blocked("empty or whitespace-only string")
            content = {"text": trimmed}
        elif isinstance(content, dict):
            content = dict(content)
        else:
            return _blocked(f"invalid content type: {type(content).__name__}")

        react = content.get("react")
        if isinstance(react, dict):
            if not str(react.get("text") or "").strip():
                return _blocked("empty react", content)
            response = await self.client.send_message(jid or self.chat, content, options)
            return SendResult(response=response)

        if not content:
            return _blocked("empty object")

        _clean_text(content)
        if not has_payload(content):
            return _blocked("no valid content", content)

        target = self.resolve_target(jid)

        if not content.get("context_info") and not options.get("quoted"):
            content["context_info"] = self.reply_context()
        if "quoted" not in options:
            options["quoted"] = self.event

        _clean_text(content)
        if not has_payload(content):
            return _blocked("no valid content after cleanup", content)

        response = await self.client.send_message(target, content, options)
        return SendResult(response=response)

    async def reply(self, content: Any, **options: Any) -> SendResult:
        return await self.send_message(self.chat, content, options)

    async def send_presence_update(self, state: str, jid: str | None = None) -> None:
        await self.client.send_presence_update(state, jid or self.chat)

    async def group_metadata(self, jid: str | None = None) -> dict[str, Any]:
        return await self.client.group_metadata(jid or self.chat)

    async def read_messages(self, keys: list[MessageKey]) -> None:
        await self.client.read_messages(keys)

    async def profile_picture_url(self, jid: str, kind: str = "image") -> str | None:
        return await self.client.profile_picture_url(jid, kind)

    async def download_media(self, media: dict[str, Any], kind: str) -> bytes:
        return await self.client.download_media(media, kind)
