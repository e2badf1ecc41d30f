import re

from loguru import logger

from lynae.plugins.base import Plugin

PICKABLE = ("image", "video", "audio")


def pick_media(quoted) -> tuple[str, dict] | None:
    """The first image/video/audio of the quoted message, through view-once or ephemeral wrappers."""
    content = quoted.content or {}
    ephemeral = (content.get("ephemeralMessage") or {}).get("message")
    if ephemeral:
        content = ephemeral
    for kind in PICKABLE:
        media = content.get(f"{kind}Message")
        if media:
            return kind, media
    return None


class PickPlugin(Plugin):
    command = re.compile(r"^(pick)$", re.IGNORECASE)
    help = ["pick"]
    tags = ["owner"]
    description = "Re-send the media of a replied view-once message (Owner only)"

    async def execute(self, m, ctx):
        client = ctx.client
        if not ctx.config.is_owner(m.sender):
            await client.send_message(m.chat, {"text": "❌ This command is only for the bot owner."})
            return
        if not m.quoted:
            await client.send_message(m.chat, {"text": f"❌ Please reply to a ViewOnce message with {ctx.used_prefix}pick"})
            return

        await client.send_message(m.chat, {"text": "⏳ Processing media..."})
        picked = pick_media(m.quoted)
        if picked is None:
            await client.send_message(m.chat, {"text": "❌ Failed to retrieve media: Not a valid media message (or unsupported format)."})
            return
        kind, media = picked
        if not media.get("mediaKey"):
            await client.send_message(m.chat, {"text": (
                "❌ Failed to retrieve media: Media Key is missing. "
                "The bot must have received the original message while online to decrypt it."
            )})
            return

        try:
            data = await client.download_media(media, kind)
        except Exception as e:
            logger.error(f"Pick error: {e}")
            await client.send_message(m.chat, {"text": f"❌ Failed to retrieve media: {e}"})
            return

        content = {kind: data}
        if kind == "audio":
            content["mimetype"] = media.get("mimetype") or "audio/ogg; codecs=opus"
        await client.send_message(m.chat, content)
