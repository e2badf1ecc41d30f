import asyncio
import re

from loguru import logger

from lynae.handler.identity import member_id, member_is_admin
from lynae.plugins.base import Plugin
from lynae.utils.jid import LID_SERVER, USER_SERVER, base_number


def taggable_members(participants, bot_jid: str | None) -> list[str]:
    """Member JIDs that can be mentioned, without the bot itself."""
    bot_number = base_number(bot_jid) if bot_jid else ""
    jids = []
    for member in participants:
        jid = member_id(member)
        if not jid:
            continue
        if bot_number and base_number(jid) == bot_number:
            continue
        if f"@{USER_SERVER}" in jid or f"@{LID_SERVER}" in jid:
            jids.append(jid)
    return jids


class HidetagPlugin(Plugin):
    command = re.compile(r"^(hidetag|h)(\s|$)", re.IGNORECASE)
    help = ["hidetag <text>", "h <text>"]
    tags = ["group"]
    description = "Send a message with mention to all group members (Admin only)"

    async def execute(self, m, ctx):
        client = ctx.client
        if not m.is_group:
            await client.send_message(m.chat, {"text": "❌ This command can only be used in a group."})
            return

        try:
            metadata = await client.group_metadata(m.chat)
        except Exception as e:
            logger.error(f"hidetag: group metadata failed: {e}")
            await client.send_message(m.chat, {"text": "❌ An error occurred while getting group information."})
            return
        participants = metadata.get("participants") or []

        is_admin = ctx.is_admin or ctx.config.is_owner(m.sender) or member_is_admin(participants, m.sender)
        if not is_admin:
            await client.send_message(m.chat, {"text": "❌ This command can only be used by group admins."})
            return

        text = " ".join(m.args).strip() or m.quoted_text.strip()
        if not text:
            p = ctx.used_prefix
            await client.send_message(m.chat, {"text": (
                "❌ Please include the message you want to send or reply to a message.\n\n"
                f"Usage:\n• {p}hidetag <text>\n• {p}hidetag (with reply to message)\n\n"
                f"Example:\n• {p}hidetag Hello everyone!\n• Reply to a message then type: {p}hidetag"
            )})
            return

        mentions = taggable_members(participants, client.self_id)
        if not mentions:
            await client.send_message(m.chat, {"text": "❌ No group participants can be tagged."})
            return

        await client.send_presence_update("composing", m.chat)
        await asyncio.sleep(1)
        await client.send_presence_update("available", m.chat)

        # Explicit context so the automatic reply quote does not replace the mentions.
        context_info = {"mentioned_jid": mentions}
        if m.quoted:
            context_info.update(
                stanza_id=m.quoted.key.id,
                participant=m.quoted.participant,
                quoted_message=m.quoted.message,
            )
        await client.send_message(m.chat, {"text": text, "context_info": context_info}, {"quoted": None})
