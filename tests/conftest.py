from pathlib import Path
from typing import Any

import pytest

from lynae.bus.events import MessageKey
from lynae.channels.base import MessagingClient

BOT = "6280000000001@s.whatsapp.net"
USER = "6281234567890@s.whatsapp.net"
GROUP = "120363000000000001@g.us"


class FakeClient(MessagingClient):
    """Records every transport call instead of talking to WhatsApp."""

    name = "fake"

    def __init__(self, self_id: str | None = BOT, groups: dict[str, dict] | None = None):
        super().__init__()
        self._self_id = self_id
        self.groups = groups or {}
        self.calls: list[tuple] = []
        self.sent: list[tuple[str, dict[str, Any], dict[str, Any]]] = []
        self.media = b"\x89PNG" + b"\x00" * 4096
        self.profile_url: str | None = None
        self.fail_metadata = False
        self.fail_send = False
        self.fail_download = False

    @property
    def self_id(self) -> str | None:
        return self._self_id

    async def send_message(self, jid, content, options=None):
        self.calls.append(("send_message", jid))
        if self.fail_send:
            raise ConnectionError("socket closed")
        self.sent.append((jid, content, options or {}))
        return {"status": 200}

    async def send_presence_update(self, state, jid=None):
        self.calls.append(("presence", state, jid))

    async def group_metadata(self, jid):
        self.calls.append(("group_metadata", jid))
        if self.fail_metadata:
            raise TimeoutError("metadata timed out")
        return self.groups.get(jid, {"subject": "", "participants": []})

    async def read_messages(self, keys: list[MessageKey]):
        self.calls.append(("read", [k.id for k in keys]))

    async def profile_picture_url(self, jid, kind="image"):
        self.calls.append(("profile_picture_url", jid))
        return self.profile_url

    async def download_media(self, media, kind):
        self.calls.append(("download_media", kind))
        if self.fail_download:
            raise ConnectionError("media download refused")
        return self.media

    def presences(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "presence"]

    def texts(self) -> list[str]:
        return [content.get("text", "") for _, content, _ in self.sent]


def raw_message(
    text: str | None = None,
    chat: str = USER,
    sender: str | None = None,
    msg_id: str = "MSG1",
    timestamp: float | None = None,
    from_me: bool = False,
    message: dict[str, Any] | None = None,
    push_name: str = "Tester",
) -> dict[str, Any]:
    """A protocol-shaped envelope as the transport would deliver it."""
    key: dict[str, Any] = {"remoteJid": chat, "id": msg_id, "fromMe": from_me}
    if sender:
        key["participant"] = sender
    if message is None:
        message = {"conversation": text or ""}
    raw = {"key": key, "message": message, "pushName": push_name}
    if timestamp is not None:
        raw["messageTimestamp"] = timestamp
    return raw


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_raw():
    return raw_message


@pytest.fixture
def fake_client_cls():
    return FakeClient


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    path = tmp_path / "plugins"
    path.mkdir()
    return path


PLUGIN_TEMPLATE = '''
import re

from lynae.plugins.base import Plugin


class {cls}(Plugin):
    command = re.compile(r"{pattern}", re.IGNORECASE)
    help = {help!r}
    tags = {tags!r}
    calls = []

    async def execute(self, m, ctx):
        type(self).calls.append(m.text)
        {body}
'''


@pytest.fixture
def write_plugin(plugins_dir: Path):
    def _write(
        name: str,
        pattern: str | None = None,
        help: list[str] | None = None,
        tags: list[str] | None = None,
        body: str = "await ctx.client.reply('ok')",
        cls: str = "TestPlugin",
    ) -> Path:
        path = plugins_dir / f"{name}.py"
        path.write_text(PLUGIN_TEMPLATE.format(
            cls=cls,
            pattern=pattern or f"^{name}$",
            help=help or [name],
            tags=tags or ["test"],
            body=body,
        ))
        return path

    return _write
