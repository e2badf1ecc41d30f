import re

from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.media import FFmpegError, video_to_mp3


class Tomp3Plugin(Plugin):
    command = re.compile(r"^(tomp3|mp3)$", re.IGNORECASE)
    help = ["tomp3"]
    tags = ["tools"]
    description = "Convert video to MP3 audio"

    async def execute(self, m, ctx):
        client = ctx.client
        video = m.video
        if not video:
            await client.send_message(m.chat, {"text": (
                f"❌ *Video to MP3*\n\nPlease send a video with caption *{ctx.used_prefix}tomp3* or reply to a video."
            )})
            return

        await client.send_presence_update("composing", m.chat)
        try:
            data = await client.download_media(video, "video")
        except Exception as e:
            logger.error(f"Video download failed: {e}")
            await client.send_message(m.chat, {"text": f"❌ Failed to download video: {e}"})
            return

        try:
            audio = await video_to_mp3(data, ctx.config.resolve_temp_dir())
        except (FFmpegError, ValueError, OSError) as e:
            logger.error(f"Error converting video: {e}")
            await client.send_message(m.chat, {"text": f"❌ Error: {e}"})
            return

        await client.send_message(m.chat, {"audio": audio, "mimetype": "audio/mpeg", "ptt": False})
