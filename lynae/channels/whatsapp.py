"""WhatsApp transport using neonize (whatsmeow Go backend, no Node.js bridge)."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

from loguru import logger

from lynae.bus.events import InboundEvent, MessageBatch, MessageKey
from lynae.bus.queue import MessageBus
from lynae.channels.base import MessagingClient
from lynae.utils.jid import USER_SERVER
from lynae.utils.logger import is_transport_noise

MEDIA_KINDS = ("image", "video", "audio", "sticker", "document")


def _to_jid(jid: str):
    from neonize.utils import build_jid

    user, _, server = str(jid).partition("@")
    return build_jid(user.split(":")[0], server or USER_SERVER)


def _jid_str(jid) -> str:
    from neonize.utils.jid import Jid2String

    return Jid2String(jid) if jid is not None else ""


def _media_source(value: Any) -> Any:
    # neonize accepts bytes, a local path or a URL.
    if isinstance(value, dict):
        return value.get("url") or value.get("path")
    return value


def _timestamp_seconds(value: Any) -> float | None:
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    return ts / 1000 if ts > 1e12 else ts


def _render_choices(content: dict[str, Any]) -> str:
    """Flatten button/list payloads into plain text; the multi-device protocol dropped them."""
    lines = [str(content.get("text") or content.get("caption") or "").strip()]
    for button in content.get("buttons") or []:
        label = (button.get("buttonText") or {}).get("displayText") or button.get("buttonId", "")
        lines.append(f"• {label}: {button.get('buttonId', '')}")
    for section in content.get("sections") or []:
        if section.get("title"):
            lines.append(f"\n*{section['title']}*")
        for row in section.get("rows") or []:
            lines.append(f"• {row.get('title', '')}: {row.get('rowId', '')}")
    if content.get("footer"):
        lines.append(f"\n_{content['footer']}_")
    return "\n".join(line for line in lines if line).strip()


class WhatsAppClient(MessagingClient):
    """neonize-backed messaging client."""

    name = "whatsapp"

    def __init__(self, auth_dir: Path, bus: MessageBus | None = None, bio: str = ""):
        super().__init__(bus)
        self.auth_dir = Path(auth_dir)
        self.bio = bio
        self._client = None
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._self_id: str | None = None

    @property
    def self_id(self) -> str | None:
        if self._self_id is None and self._client is not None:
            try:
                self._self_id = _jid_str(self._client.get_me().JID) or None
            except Exception as e:
                logger.debug(f"WhatsApp: self id not available yet: {e}")
        return self._self_id

    async def start(self) -> None:
        from neonize.client import NewClient
        from neonize.events import ConnectedEv, LoggedOutEv, MessageEv, PairStatusEv

        self._running = True
        self._loop = asyncio.get_running_loop()

        self.auth_dir.mkdir(parents=True, exist_ok=True)
        db_path = str(self.auth_dir / "neonize.db")
        logger.info(f"WhatsApp: auth database at {db_path}")

        client = NewClient(db_path)
        self._client = client

        @client.event(ConnectedEv)
        def on_connected(_: NewClient, __: ConnectedEv):
            logger.info("WhatsApp connected")
            self._schedule(self._on_connected())

        @client.event(PairStatusEv)
        def on_pair_status(_: NewClient, ev: PairStatusEv):
            logger.info(f"WhatsApp: logged in as {ev.ID.User}")

        @client.event(LoggedOutEv)
        def on_logged_out(_: NewClient, __: LoggedOutEv):
            logger.warning("WhatsApp: session logged out, remove the auth directory and pair again")
            if self._logout_callback:
                self._schedule(self._logout_callback())

        @client.event(MessageEv)
        def on_message(_: NewClient, ev: MessageEv):
            self._handle_neonize_message(ev)

        def run_client():
            try:
                client.connect()
            except Exception as e:
                if self._running and not is_transport_noise(e):
                    logger.error(f"WhatsApp client error: {e}")

        self._thread = threading.Thread(target=run_client, daemon=True, name="whatsapp-neonize")
        self._thread.start()
        logger.info("WhatsApp client started (neonize)")

        while self._running:
            await asyncio.sleep(1)

    def _schedule(self, coro) -> None:
        if self._loop and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(coro, self._loop)
        else:
            coro.close()

    async def _on_connected(self) -> None:
        self._self_id = None
        if self.bio:
            try:
                await self.update_profile_status(self.bio)
                logger.info("WhatsApp: profile bio updated")
            except Exception as e:
                logger.warning(f"WhatsApp: failed to update bio: {e}")

    def to_raw(self, ev) -> dict[str, Any]:
        """Convert a neonize ``MessageEv`` into the protocol-shaped envelope the dispatcher reads."""
        from google.protobuf.json_format import MessageToDict

        info = ev.Info
        source = info.MessageSource
        is_group = bool(getattr(source, "IsGroup", False))
        key = MessageKey(
            remote_jid=_jid_str(source.Chat),
            id=str(info.ID),
            from_me=bool(getattr(source, "IsFromMe", False)),
            participant=_jid_str(source.Sender) if is_group else None,
        )
        return {
            "key": key.to_dict(),
            "message": MessageToDict(ev.Message),
            "messageTimestamp": _timestamp_seconds(getattr(info, "Timestamp", None)),
            "pushName": getattr(info, "Pushname", "") or getattr(info, "PushName", ""),
        }

    def _handle_neonize_message(self, ev) -> None:
        """Called from neonize's thread."""
        try:
            raw = self.to_raw(ev)
        except Exception as e:
            if not is_transport_noise(e):
                logger.error(f"WhatsApp message conversion error: {e}")
            return
        self._schedule(self._publish(MessageBatch(type="notify", messages=[raw])))

    async def stop(self) -> None:
        self._running = False
        if self._client:
            try:
                self._client.disconnect()
            except Exception as e:
                logger.debug(f"WhatsApp disconnect: {e}")
            self._client = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("WhatsApp client stopped")

    def _require_client(self):
        if not self._client:
            raise RuntimeError("WhatsApp client not connected")
        return self._client

    # --- outbound ---

    def _context_dict(self, content: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]:
        ctx: dict[str, Any] = {}
        info = content.get("context_info")
        quoted = options.get("quoted")
        if info:
            ctx = {
                "stanzaID": info.get("stanza_id"),
                "participant": info.get("participant"),
                "quotedMessage": info.get("quoted_message"),
            }
        elif isinstance(quoted, InboundEvent):
            ctx = {
                "stanzaID": quoted.key.id,
                "participant": quoted.key.participant or quoted.key.remote_jid,
                "quotedMessage": quoted.message,
            }
        mentions = list(content.get("mentions") or (info or {}).get("mentioned_jid") or [])
        if mentions:
            ctx["mentionedJID"] = mentions
        return {k: v for k, v in ctx.items() if v}

    def _build_message(self, client, jid: str, content: dict[str, Any], options: dict[str, Any]):
        from google.protobuf.json_format import ParseDict
        from neonize.proto.waE2E.WAWebProtobufsE2E_pb2 import ContextInfo, Message

        react = content.get("react")
        if isinstance(react, dict):
            key = react.get("key")
            if isinstance(key, dict):
                key = MessageKey.from_dict(key)
            if key is None:
                raise ValueError("react needs a message key")
            sender = key.participant or key.remote_jid
            return client.build_reaction(_to_jid(key.remote_jid), _to_jid(sender), key.id, react["text"])

        ctx = self._context_dict(content, options)

        for kind in MEDIA_KINDS:
            if content.get(kind) is None:
                continue
            source = _media_source(content[kind])
            caption = content.get("caption") or content.get("text")
            if kind == "image":
                msg = client.build_image_message(source, caption=caption)
            elif kind == "video":
                msg = client.build_video_message(source, caption=caption)
            elif kind == "audio":
                msg = client.build_audio_message(source, ptt=bool(content.get("ptt", False)))
            elif kind == "sticker":
                msg = client.build_sticker_message(
                    source,
                    name=content.get("sticker_name", ""),
                    packname=content.get("sticker_author", ""),
                )
            else:
                msg = client.build_document_message(
                    source,
                    caption=caption,
                    filename=content.get("file_name"),
                    mimetype=content.get("mimetype"),
                )
            if ctx:
                getattr(msg, f"{kind}Message").contextInfo.MergeFrom(
                    ParseDict(ctx, ContextInfo(), ignore_unknown_fields=True)
                )
            return msg

        if content.get("location"):
            loc = content["location"]
            data = {"locationMessage": {
                "degreesLatitude": loc.get("latitude", loc.get("degreesLatitude")),
                "degreesLongitude": loc.get("longitude", loc.get("degreesLongitude")),
                "name": loc.get("name", ""),
            }}
        elif content.get("contacts"):
            contacts = [{"displayName": c.get("displayName", ""), "vcard": c.get("vcard", "")} for c in content["contacts"]]
            if len(contacts) == 1:
                data = {"contactMessage": contacts[0]}
            else:
                data = {"contactsArrayMessage": {"displayName": f"{len(contacts)} contacts", "contacts": contacts}}
        else:
            text = _render_choices(content) if (content.get("buttons") or content.get("sections")) else content.get("text", "")
            data = {"extendedTextMessage": {"text": text}}
            if ctx:
                data["extendedTextMessage"]["contextInfo"] = ctx
        return ParseDict(data, Message(), ignore_unknown_fields=True)

    async def send_message(self, jid: str, content: dict[str, Any], options: dict[str, Any] | None = None) -> Any:
        client = self._require_client()
        msg = self._build_message(client, jid, content, options or {})
        return await asyncio.to_thread(client.send_message, _to_jid(jid), msg)

    async def send_presence_update(self, state: str, jid: str | None = None) -> None:
        from neonize.utils.enum import ChatPresence, ChatPresenceMedia, Presence

        client = self._require_client()
        if state in ("available", "unavailable"):
            presence = Presence.AVAILABLE if state == "available" else Presence.UNAVAILABLE
            await asyncio.to_thread(client.send_presence, presence)
            return
        if not jid:
            return
        chat_state = ChatPresence.CHAT_PRESENCE_COMPOSING if state in ("composing", "recording") else ChatPresence.CHAT_PRESENCE_PAUSED
        media = ChatPresenceMedia.CHAT_PRESENCE_MEDIA_AUDIO if state == "recording" else ChatPresenceMedia.CHAT_PRESENCE_MEDIA_TEXT
        await asyncio.to_thread(client.send_chat_presence, _to_jid(jid), chat_state, media)

    async def group_metadata(self, jid: str) -> dict[str, Any]:
        client = self._require_client()
        info = await asyncio.to_thread(client.get_group_info, _to_jid(jid))
        participants = []
        for p in info.Participants:
            role = "superadmin" if p.IsSuperAdmin else "admin" if p.IsAdmin else None
            participants.append({"id": _jid_str(p.JID), "admin": role})
            lid = getattr(p, "LID", None)
            if lid is not None and getattr(lid, "User", ""):
                participants.append({"id": _jid_str(lid), "admin": role})
        return {"subject": info.GroupName.Name, "participants": participants}

    async def read_messages(self, keys: list[MessageKey]) -> None:
        from neonize.utils.enum import ReceiptType

        client = self._require_client()
        for key in keys:
            if key.from_me:
                continue
            sender = key.participant or key.remote_jid
            await asyncio.to_thread(
                client.mark_read,
                key.id,
                chat=_to_jid(key.remote_jid),
                sender=_to_jid(sender),
                receipt=ReceiptType.READ,
            )

    async def profile_picture_url(self, jid: str, kind: str = "image") -> str | None:
        from neonize.proto.Neonize_pb2 import GetProfilePictureParams

        client = self._require_client()
        try:
            info = await asyncio.to_thread(
                client.get_profile_picture,
                _to_jid(jid),
                GetProfilePictureParams(Preview=kind == "preview"),
            )
        except Exception as e:
            logger.debug(f"WhatsApp: no profile picture for {jid}: {e}")
            return None
        return getattr(info, "URL", "") or None

    async def download_media(self, media: dict[str, Any], kind: str) -> bytes:
        from google.protobuf.json_format import ParseDict
        from neonize.proto.waE2E.WAWebProtobufsE2E_pb2 import Message

        client = self._require_client()
        msg = ParseDict({f"{kind}Message": media}, Message(), ignore_unknown_fields=True)
        return await asyncio.to_thread(client.download_any, msg)

    async def update_profile_status(self, status: str) -> None:
        client = self._require_client()
        await asyncio.to_thread(client.set_status_message, status)
