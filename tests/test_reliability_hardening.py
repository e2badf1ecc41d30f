from __future__ import annotations

import pytest

from lynae.bus.events import MessageBatch
from lynae.bus.queue import MessageBus
from lynae.handler.dedup import ProcessedMessageSet


@pytest.mark.asyncio
async def test_message_bus_queue_limit_is_applied() -> None:
    bus = MessageBus(inbound_maxsize=7)
    assert bus.inbound.maxsize == 7


@pytest.mark.asyncio
async def test_message_bus_no_loss_under_burst_within_limits() -> None:
    bus = MessageBus(inbound_maxsize=20)

    payloads = [f"in-{i}" for i in range(10)]
    for idx, payload in enumerate(payloads):
        await bus.publish_inbound(
            MessageBatch(
                type="notify",
                messages=[{"key": {"remoteJid": "chat-1", "id": str(idx)}, "message": {"conversation": payload}}],
            )
        )

    received = [await bus.consume_inbound() for _ in payloads]
    assert [b.messages[0]["message"]["conversation"] for b in received] == payloads


def test_processed_set_rejects_duplicates() -> None:
    seen = ProcessedMessageSet(capacity=10)
    assert seen.check_and_add("chat_1") is True
    assert seen.check_and_add("chat_1") is False
    assert "chat_1" in seen
    assert len(seen) == 1


def test_processed_set_evicts_oldest_beyond_capacity() -> None:
    seen = ProcessedMessageSet(capacity=1000)
    for i in range(1001):
        seen.check_and_add(f"chat_{i}")

    assert len(seen) == 1000
    assert "chat_0" not in seen
    assert "chat_1" in seen
    assert "chat_1000" in seen
    # an evicted key is accepted again
    assert seen.check_and_add("chat_0") is True
    assert "chat_1" not in seen


def test_processed_set_requires_positive_capacity() -> None:
    with pytest.raises(ValueError):
        ProcessedMessageSet(capacity=0)
