import time

import pytest

from lynae.bus.events import MessageBatch
from lynae.config import Config
from lynae.handler.dispatcher import Dispatcher
from lynae.plugins.registry import PluginRegistry

USER = "6281234567890@s.whatsapp.net"
OTHER = "6289876543210@s.whatsapp.net"
GROUP = "120363000000000001@g.us"


def make_dispatcher(client, plugins_dir, **config) -> Dispatcher:
    registry = PluginRegistry(plugins_dir)
    registry.load_all()
    return Dispatcher(client, registry, Config(**config))


@pytest.mark.asyncio
async def test_help_with_no_plugins_sends_nothing(client, plugins_dir, make_raw) -> None:
    dispatcher = make_dispatcher(client, plugins_dir)

    count = await dispatcher.handle_batch(
        MessageBatch("notify", [make_raw(".help", chat=GROUP, sender=USER)])
    )

    assert count == 0
    assert client.sent == []
    assert client.presences() == []


@pytest.mark.asyncio
async def test_ping_is_dispatched_once_with_presence_updates(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("ping", body="pass")
    dispatcher = make_dispatcher(client, plugins_dir)
    plugin = dispatcher.registry.get("ping")

    count = await dispatcher.handle_batch(MessageBatch("notify", [make_raw(".ping")]))

    assert count == 1
    assert type(plugin).calls == ["ping"]
    assert client.presences() == ["composing", "available"]
    assert ("read", ["MSG1"]) in client.calls


@pytest.mark.asyncio
async def test_duplicate_event_dispatched_at_most_once(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("ping", body="pass")
    dispatcher = make_dispatcher(client, plugins_dir)
    raw = make_raw(".ping", msg_id="SAME")

    await dispatcher.handle_batch(MessageBatch("notify", [raw]))
    await dispatcher.handle_batch(MessageBatch("append", [raw]))

    assert type(dispatcher.registry.get("ping")).calls == ["ping"]


@pytest.mark.asyncio
async def test_unaccepted_batch_types_and_stale_events_are_ignored(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("ping", body="pass")
    dispatcher = make_dispatcher(client, plugins_dir)

    assert await dispatcher.handle_batch(MessageBatch("history", [make_raw(".ping", msg_id="A")])) == 0
    stale = make_raw(".ping", msg_id="B", timestamp=time.time() - 600)
    assert await dispatcher.handle_batch(MessageBatch("notify", [stale])) == 0
    assert type(dispatcher.registry.get("ping")).calls == []


@pytest.mark.asyncio
async def test_every_envelope_in_a_batch_is_handled(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("ping", body="pass")
    dispatcher = make_dispatcher(client, plugins_dir)

    batch = MessageBatch("notify", [make_raw(".ping", msg_id="A"), make_raw("hello", msg_id="B"), make_raw(".ping", msg_id="C")])
    assert await dispatcher.handle_batch(batch) == 2


@pytest.mark.asyncio
async def test_plugin_failure_is_isolated(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("boom", body="raise RuntimeError('plugin exploded')")
    write_plugin("ping", body="pass")
    dispatcher = make_dispatcher(client, plugins_dir)

    batch = MessageBatch("notify", [make_raw(".boom", msg_id="A"), make_raw(".ping", msg_id="B")])
    count = await dispatcher.handle_batch(batch)

    assert count == 2
    assert type(dispatcher.registry.get("ping")).calls == ["ping"]
    assert client.presences() == ["composing", "available", "composing", "available"]


@pytest.mark.asyncio
async def test_first_matching_plugin_wins(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("a_first", pattern="^(hi|hello)$", body="pass")
    write_plugin("b_second", pattern="^hello$", body="pass")
    dispatcher = make_dispatcher(client, plugins_dir)

    await dispatcher.handle_batch(MessageBatch("notify", [make_raw("!hello")]))

    assert type(dispatcher.registry.get("a_first")).calls == ["hello"]
    assert type(dispatcher.registry.get("b_second")).calls == []


@pytest.mark.asyncio
async def test_group_admin_flags_reach_the_context(fake_client_cls, plugins_dir, write_plugin, make_raw) -> None:
    client = fake_client_cls(groups={GROUP: {"participants": [
        {"id": USER, "admin": "admin"},
        {"id": "6280000000001@lid", "admin": "superadmin"},
    ]}})
    write_plugin("whoami", body="await ctx.client.reply(f'{ctx.is_admin} {ctx.is_bot_admin} {m.is_admin} {ctx.used_prefix}')")
    dispatcher = make_dispatcher(client, plugins_dir)

    await dispatcher.handle_batch(MessageBatch("notify", [make_raw("#whoami", chat=GROUP, sender=USER)]))

    assert client.texts() == ["True True True #"]
    assert client.sent[0][0] == GROUP


@pytest.mark.asyncio
async def test_metadata_failure_treats_sender_as_non_admin(client, plugins_dir, write_plugin, make_raw) -> None:
    client.fail_metadata = True
    write_plugin("whoami", body="await ctx.client.reply(str(ctx.is_admin))")
    dispatcher = make_dispatcher(client, plugins_dir)

    await dispatcher.handle_batch(MessageBatch("notify", [make_raw(".whoami", chat=GROUP, sender=OTHER)]))

    assert client.texts() == ["False"]


@pytest.mark.asyncio
async def test_own_messages_use_bot_identity(fake_client_cls, plugins_dir, write_plugin, make_raw) -> None:
    client = fake_client_cls(self_id=None)
    write_plugin("me", body="await ctx.client.reply(m.sender)")
    dispatcher = make_dispatcher(client, plugins_dir, bot_number="+62 800-0000-0001")

    await dispatcher.handle_batch(MessageBatch("notify", [make_raw(".me", chat=USER, from_me=True)]))

    assert client.texts() == ["6280000000001@s.whatsapp.net"]


@pytest.mark.asyncio
async def test_context_exposes_client_as_lynae(client, plugins_dir, write_plugin, make_raw) -> None:
    write_plugin("hello", body="await ctx.lynae.reply('hi' if ctx.lynae is ctx.client else 'no')")
    dispatcher = make_dispatcher(client, plugins_dir)

    await dispatcher.handle_batch(MessageBatch("notify", [make_raw(".hello")]))

    assert client.texts() == ["hi"]
