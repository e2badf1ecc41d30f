import asyncio
import re

import httpx
from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.http import USER_AGENT
from lynae.utils.jid import as_user_jid, base_number, is_user
from lynae.utils.media import shrink_image

_MENTION = re.compile(r"@(\d+)")


def resolve_target(m) -> str:
    """Quoted participant, then first mention, then ``@number`` in the text, then the sender."""
    if m.quoted:
        jid = as_user_jid(m.quoted.participant or m.quoted.key.participant)
        if not jid and not m.quoted.participant:
            jid = as_user_jid(m.quoted.key.remote_jid)
        if jid:
            return jid
    for mentioned in m.mentions:
        jid = as_user_jid(mentioned)
        if jid:
            return jid
    match = _MENTION.search(m.text or m.body or "")
    if match:
        return as_user_jid(match.group(1)) or m.sender
    return m.sender


class GetppPlugin(Plugin):
    command = re.compile(r"^getpp(\s+.*)?$", re.IGNORECASE)
    help = ["getpp"]
    tags = ["tools"]
    description = (
        "Get profile picture. Usage: .getpp (your own PP), .getpp @user (mentioned user), "
        "or reply a message and type .getpp (PP of replied user)"
    )

    async def execute(self, m, ctx):
        client = ctx.client
        if not is_user(m.sender):
            await client.send_message(m.chat, {
                "text": "❌ Cannot determine user. Please use this command in private chat or mention a user."
            })
            return

        target = resolve_target(m)
        await client.send_presence_update("composing", m.chat)
        await asyncio.sleep(1)
        await client.send_presence_update("available", m.chat)

        image = b""
        url = await client.profile_picture_url(target, "image")
        if url and url.startswith(("http://", "https://")):
            try:
                async with httpx.AsyncClient(timeout=10.0, headers={"User-Agent": USER_AGENT}) as http:
                    r = await http.get(url)
                    r.raise_for_status()
                    image = r.content
            except httpx.HTTPError as e:
                logger.error(f"Error downloading profile picture: {e}")

        if not image:
            await client.send_message(m.chat, {
                "text": "❌ Profile picture not available for this user or failed to download."
            })
            return

        image = await shrink_image(image, ctx.config.resolve_temp_dir())
        number = base_number(target)
        await client.send_message(m.chat, {
            "image": image,
            "caption": f"📷 *Profile Picture*\n\n👤 *User:* {number}\n📱 *JID:* {number}",
        })
