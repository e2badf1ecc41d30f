"""Dispatch engine: dedup, command lookup, plugin invocation.

Per inbound event::

    received -> stale/dedup check -> (dropped | parsed) -> (no match | matched)
             -> executing -> (done | failed)

Events are handled one at a time. A plugin failure is logged and the
presence indicator reset; it never stops the loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from lynae.bus.events import InboundEvent, MessageBatch
from lynae.config import Config
from lynae.handler.dedup import ProcessedMessageSet
from lynae.handler.identity import bot_identity, resolve_admin_status, resolve_sender
from lynae.handler.normalizer import MessageNormalizer, NormalizedCommand, extract_body
from lynae.handler.sender import GuardedSender
from lynae.utils.jid import base_number
from lynae.utils.logger import is_transport_noise

if TYPE_CHECKING:
    from lynae.channels.base import MessagingClient
    from lynae.plugins.base import Plugin
    from lynae.plugins.registry import PluginRegistry


@dataclass
class ExecutionContext:
    """Everything a plugin gets besides the command itself."""
    client: GuardedSender
    used_prefix: str
    command: str
    plugins: list[Plugin]
    is_admin: bool = False
    is_bot_admin: bool = False
    config: Config = field(default_factory=Config)
    registry: PluginRegistry | None = None

    @property
    def lynae(self) -> GuardedSender:
        """Alias of ``client``."""
        return self.client


class Dispatcher:
    def __init__(
        self,
        client: MessagingClient,
        registry: PluginRegistry,
        config: Config | None = None,
        normalizer: MessageNormalizer | None = None,
        processed: ProcessedMessageSet | None = None,
    ):
        self.client = client
        self.registry = registry
        self.config = config or Config()
        self.normalizer = normalizer or MessageNormalizer(
            prefixes=self.config.prefixes,
            max_age_seconds=self.config.max_message_age_seconds,
        )
        self.processed = processed or ProcessedMessageSet(self.config.processed_capacity)

    @property
    def bot_jid(self) -> str | None:
        return bot_identity(self.client.self_id, self.config.bot_number)

    async def handle_batch(self, batch: MessageBatch) -> int:
        """Handle every envelope of an accepted batch in order. Returns the number dispatched."""
        if not batch.accepted:
            return 0
        dispatched = 0
        for raw in batch.messages:
            try:
                if await self.handle_raw(raw):
                    dispatched += 1
            except Exception as e:
                if is_transport_noise(e):
                    continue
                logger.exception(f"Error processing message: {e}")
        return dispatched

    async def handle_raw(self, raw: dict[str, Any]) -> bool:
        event = InboundEvent.from_raw(raw)
        if event is None:
            return False
        return await self.handle_event(event)

    async def handle_event(self, event: InboundEvent) -> bool:
        if self.normalizer.is_stale(event):
            logger.debug(f"Dropping stale message {event.key.id} from {event.key.remote_jid}")
            return False
        if not self.processed.check_and_add(event.key.dedup_key):
            logger.debug(f"Skipping duplicate message {event.key.dedup_key}")
            return False

        body, _ = extract_body(event)
        bot_jid = self.bot_jid
        sender = resolve_sender(event.key, bot_jid)
        if body:
            name = event.push_name or "Unknown"
            logger.info(f"[{name}] {base_number(event.key.remote_jid or sender)}: {body}")

        m = self.normalizer.normalize(event, sender)
        if m is None:
            return False

        if len(self.registry) == 0:
            logger.warning("No plugins loaded")
            return False

        plugin = self.registry.match(m.text)
        if plugin is None:
            logger.debug(f"No plugin matched '{m.command}'")
            return False

        await self._invoke(plugin, m, bot_jid)
        return True

    async def _invoke(self, plugin: Plugin, m: NormalizedCommand, bot_jid: str | None) -> None:
        status = await resolve_admin_status(self.client, m.chat, m.sender, bot_jid)
        m.is_admin = status.is_admin
        m.is_bot_admin = status.is_bot_admin

        ctx = ExecutionContext(
            client=GuardedSender(self.client, m.event, m.sender),
            used_prefix=m.prefix,
            command=m.command,
            plugins=self.registry.plugins,
            is_admin=status.is_admin,
            is_bot_admin=status.is_bot_admin,
            config=self.config,
            registry=self.registry,
        )

        await self._presence("composing", m.chat)
        try:
            await self.client.read_messages([m.key])
        except Exception as e:
            logger.debug(f"Read receipt failed: {e}")

        logger.debug(f"Dispatch: '{m.command}' -> plugin '{plugin.name}'")
        try:
            await plugin.execute(m, ctx)
        except Exception as e:
            logger.opt(exception=e).error(f"Error executing plugin {plugin.name}: {e}")
        finally:
            await self._presence("available", m.chat)

    async def _presence(self, state: str, chat: str) -> None:
        try:
            await self.client.send_presence_update(state, chat)
        except Exception as e:
            logger.debug(f"Presence update '{state}' failed: {e}")
