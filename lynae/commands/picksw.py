import re

from loguru import logger

from lynae.commands.pick import pick_media
from lynae.plugins.base import Plugin


class PickStatusPlugin(Plugin):
    command = re.compile(r"^(picksw|sw)(\s|$)", re.IGNORECASE)
    help = ["picksw", "sw"]
    tags = ["owner"]
    description = "Re-send the media of a replied status (Owner only)"

    async def execute(self, m, ctx):
        client = ctx.client
        # The bot's own account counts as owner.
        if not ctx.config.is_owner(m.sender) and not m.from_me:
            await client.send_message(m.chat, {"text": "❌ This command is only for the bot owner."})
            return
        if not m.quoted:
            await client.send_message(m.chat, {"text": f"❌ Please reply to a status with {ctx.used_prefix}picksw"})
            return

        await client.send_message(m.chat, {"text": "⏳ Processing status..."})
        picked = pick_media(m.quoted)
        if picked is None:
            await client.send_message(m.chat, {"text": "❌ Failed to retrieve status: No media found in the replied message."})
            return
        kind, media = picked
        if not media.get("mediaKey"):
            await client.send_message(m.chat, {"text": "❌ Failed to retrieve status: Media Key is missing. Cannot decrypt status."})
            return

        try:
            data = await client.download_media(media, kind)
        except Exception as e:
            logger.error(f"PickSW error: {e}")
            await client.send_message(m.chat, {"text": f"❌ Failed to retrieve status: {e}"})
            return

        content = {kind: data}
        if kind == "audio":
            content["mimetype"] = "audio/mpeg"
        await client.send_message(m.chat, content)
