"""Messaging client contract consumed by the dispatch pipeline."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from loguru import logger

from lynae.bus.events import MessageBatch, MessageKey
from lynae.bus.queue import MessageBus


class MessagingClient(ABC):
    """Abstract base class for messaging transports.

    Content passed to ``send_message`` is a dict keyed by payload kind
    (``text``, ``image``, ``video``, ``audio``, ``sticker``, ``document``,
    ``contacts``, ``location``, ``buttons``, ``list``, ``sections``,
    ``react``) plus modifiers such as ``caption``, ``mimetype``,
    ``file_name``, ``ptt``, ``footer``, ``sticker_name``, ``sticker_author``,
    ``mentions`` and ``context_info``. Media values are raw bytes or
    ``{"url": ...}``.
    """

    name: str = "base"

    def __init__(self, bus: MessageBus | None = None):
        self.bus = bus
        self._running = False
        self._logout_callback: Callable[[], Awaitable[None]] | None = None

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    @property
    @abstractmethod
    def self_id(self) -> str | None:
        """The session's own JID (may carry a device segment)."""

    @abstractmethod
    async def send_message(self, jid: str, content: dict[str, Any], options: dict[str, Any] | None = None) -> Any:
        pass

    @abstractmethod
    async def send_presence_update(self, state: str, jid: str | None = None) -> None:
        pass

    @abstractmethod
    async def group_metadata(self, jid: str) -> dict[str, Any]:
        """Return ``{"subject": ..., "participants": [{"id": ..., "admin": ...}]}``."""

    @abstractmethod
    async def read_messages(self, keys: list[MessageKey]) -> None:
        pass

    @abstractmethod
    async def profile_picture_url(self, jid: str, kind: str = "image") -> str | None:
        pass

    @abstractmethod
    async def download_media(self, media: dict[str, Any], kind: str) -> bytes:
        """Download and decrypt a media reference such as a quoted ``imageMessage``."""

    async def update_profile_status(self, status: str) -> None:
        """Set the account bio. Default: no-op."""
        pass

    def on_logged_out(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._logout_callback = callback

    async def _publish(self, batch: MessageBatch) -> None:
        if self.bus is None:
            logger.warning(f"{self.name}: no bus attached, dropping {len(batch.messages)} message(s)")
            return
        await self.bus.publish_inbound(batch)

    @property
    def is_running(self) -> bool:
        return self._running
