"""Async queue between the transport and the dispatcher."""

import asyncio

from loguru import logger

from lynae.bus.events import MessageBatch


class MessageBus:
    """Serialises inbound batches: the dispatcher consumes one at a time."""

    def __init__(self, inbound_maxsize: int = 200):
        self.inbound: asyncio.Queue[MessageBatch] = asyncio.Queue(maxsize=inbound_maxsize)

    async def publish_inbound(self, batch: MessageBatch) -> None:
        logger.debug(f"Bus <- inbound [{batch.type}] ({len(batch.messages)} message(s))")
        await self.inbound.put(batch)

    async def consume_inbound(self) -> MessageBatch:
        batch = await self.inbound.get()
        logger.debug(f"Bus -> dispatch inbound [{batch.type}] (queue size: {self.inbound.qsize()})")
        return batch
