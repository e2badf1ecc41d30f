import re

from loguru import logger

from lynae.plugins.base import Plugin


def parse_pack(text: str) -> tuple[str, str]:
    """``"My Pack | Me"`` -> ``("My Pack", "Me")``; missing parts are empty."""
    pack, _, author = text.partition("|")
    return pack.strip(), author.strip()


class StickerWatermarkPlugin(Plugin):
    command = re.compile(r"^(wm|take)(\s|$)", re.IGNORECASE)
    help = ["wm <packname>|<author>", "take <packname>|<author>"]
    tags = ["sticker"]
    description = "Re-stamp the pack name and author of a replied sticker"

    async def execute(self, m, ctx):
        client = ctx.client
        cmd = ctx.command.split()[0]
        if not m.quoted:
            await client.send_message(m.chat, {
                "text": f"❌ Please reply to a sticker with {ctx.used_prefix}{cmd} <packname>|<author>"
            })
            return
        sticker = m.quoted.sticker
        if not sticker:
            await client.send_message(m.chat, {"text": "❌ Please reply to a sticker."})
            return

        parts = m.text.split(maxsplit=1)
        pack, author = parse_pack(parts[1] if len(parts) > 1 else "")

        await client.send_message(m.chat, {"text": "⏳ Processing..."})
        try:
            data = await client.download_media(sticker, "sticker")
            if not data:
                raise ValueError("Failed to download sticker.")
        except Exception as e:
            logger.error(f"WM error: {e}")
            await client.send_message(m.chat, {"text": f"❌ Error: {e}"})
            return

        await client.send_message(m.chat, {"sticker": data, "sticker_name": pack, "sticker_author": author})
