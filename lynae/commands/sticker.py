import re

from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.media import FFmpegError, image_to_webp


class StickerPlugin(Plugin):
    command = re.compile(r"^(sticker|s|stiker)(\s|$)", re.IGNORECASE)
    help = ["sticker", "s"]
    tags = ["tools"]
    description = "Convert an image to a sticker (send with caption or reply to an image)"

    async def execute(self, m, ctx):
        client = ctx.client
        if not m.image:
            await client.send_message(m.chat, {"text": (
                "❌ *Sticker Maker*\n\n"
                f"Please send an image with caption *{ctx.used_prefix}sticker* or reply to an image you want to convert to sticker."
            )})
            return

        await client.send_presence_update("composing", m.chat)
        try:
            image = await client.download_media(m.image, "image")
        except Exception as e:
            logger.error(f"Sticker download failed: {e}")
            await client.send_message(m.chat, {"text": f"❌ Failed to download image: {e}"})
            return

        try:
            if not image:
                raise ValueError("Downloaded image is empty.")
            webp = await image_to_webp(image, ctx.config.resolve_temp_dir())
        except (FFmpegError, ValueError, OSError) as e:
            logger.error(f"Sticker conversion failed: {e}")
            await client.send_message(m.chat, {"text": f"❌ Failed to create sticker: {e}"})
            return

        await client.send_message(m.chat, {
            "sticker": webp,
            "sticker_name": ctx.config.sticker.pack_name,
            "sticker_author": ctx.config.sticker.pack_author,
        })
