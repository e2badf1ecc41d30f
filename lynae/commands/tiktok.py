"""TikTok downloader.

The first request fetches metadata and stores it in the download cache under
a short id. Follow-ups ``tiktok <id> video|audio|slide`` pull the cached
result, and only the user who made the first request may use them.
"""

import re
from urllib.parse import quote

import httpx
from loguru import logger

from lynae.plugins.base import Plugin
from lynae.storage.cache import DownloadCache
from lynae.utils.http import InvalidMediaError, fetch_media, first_result

ACTIONS = ("video", "audio", "slide")
CACHE_FILE = "tiktok_cache.json"
DEFAULT_THUMBNAIL = "https://i.imgur.com/5Ky6dGk.png"


def endpoints(url: str) -> list[str]:
    u = quote(url, safe="")
    return [
        f"https://tikwm.com/api/?url={u}&hd=1",
        f"https://api.tiklydown.eu.org/api/download?url={u}",
        f"https://api.ryzumi.vip/api/downloader/ttdl?url={u}",
        f"https://anabot.my.id/api/download/tiktok?url={u}&apikey=freeApikey",
        f"https://api.faa.my.id/api/download/tiktok?url={u}",
        f"https://api.agatz.xyz/api/tiktok?url={u}",
        f"https://api.siputzx.my.id/api/d/tiktok?url={u}",
        f"https://widipe.com/tiktok?url={u}",
    ]


def parse_result(data) -> dict | None:
    if not isinstance(data, dict):
        return None
    if data.get("code") == 0 and isinstance(data.get("data"), dict):
        return data["data"]
    video = data.get("video")
    if isinstance(video, dict) and video.get("noWatermark"):
        return {
            "video": video["noWatermark"],
            "audio": (data.get("music") or {}).get("play_url"),
            "thumbnail": data.get("cover"),
            "description": data.get("title"),
            "author": data.get("author"),
        }
    nested = data.get("data")
    if isinstance(nested, dict) and isinstance(nested.get("result"), dict):
        return nested["result"]
    if isinstance(data.get("result"), dict):
        return data["result"]
    if isinstance(nested, dict):
        return nested
    if data.get("status") and data.get("url"):
        return {"video": data["url"], "description": data.get("title"), "thumbnail": data.get("thumb"), "audio": data.get("music")}
    return None


def video_urls(result: dict) -> list[str]:
    keys = ("nowatermark", "video", "url", "download_url", "play")
    return [result[k] for k in keys if isinstance(result.get(k), str) and result[k]]


def audio_url(result: dict) -> str | None:
    music = result.get("music")
    music_info = result.get("music_info") if isinstance(result.get("music_info"), dict) else {}
    return result.get("audio") or (music if isinstance(music, str) else None) or music_info.get("play")


def slide_images(result: dict) -> list[str]:
    images = result.get("images") or result.get("image") or []
    return [images] if isinstance(images, str) else list(images)


def author_name(result: dict) -> str:
    author = result.get("author")
    if isinstance(author, dict):
        author = author.get("nickname")
    return result.get("username") or author or "-"


def is_follow_up(args: list[str]) -> bool:
    return len(args) >= 2 and not args[0].startswith("http") and args[1] in ACTIONS


class TiktokPlugin(Plugin):
    command = re.compile(r"^(tiktok|tt|tiktokdl)(\s|$)", re.IGNORECASE)
    help = ["tiktok <url>", "tt <url>"]
    tags = ["downloader"]
    description = "Download TikTok videos, audio and photo slides"

    def cache(self, ctx) -> DownloadCache:
        return DownloadCache(ctx.config.resolve_data_dir() / CACHE_FILE)

    async def execute(self, m, ctx):
        cache = self.cache(ctx)
        cache.sweep()
        args = m.args
        cmd = ctx.command.split()[0] if ctx.command else "tiktok"

        if is_follow_up(args):
            await self.follow_up(m, ctx, cache, args[0], args[1])
            return

        url = next((arg for arg in args if arg.startswith("http")), None)
        if not url:
            await ctx.client.send_message(m.chat, {
                "text": f"❌ Please provide a TikTok link.\n\nExample:\n{ctx.used_prefix}{cmd} https://vm.tiktok.com/xyz/"
            })
            return

        await ctx.client.send_message(m.chat, {"text": "⏳ Fetching data..."})
        result = await first_result(endpoints(url), parse_result)
        if not result:
            await ctx.client.send_message(m.chat, {"text": "❌ Error: Media not found or API error."})
            return

        entry_id = cache.save(result, owner=m.sender)
        await ctx.client.send_message(m.chat, self.menu(result, entry_id, f"{ctx.used_prefix}{cmd}"))

    def menu(self, result: dict, entry_id: str, invoke: str) -> dict:
        is_slide = bool(slide_images(result))
        lines = [
            "🎵 *TIKTOK DOWNLOADER*",
            "",
            f"👤 *Author:* {author_name(result)}",
            f"📝 *Desc:* {result.get('description') or result.get('title') or '-'}",
            "",
            "_Select an option below or type the command:_",
            f"🎥 *Video:* {invoke} {entry_id} video",
            f"🎵 *Audio:* {invoke} {entry_id} audio",
        ]
        if is_slide:
            lines.append(f"📸 *Slides:* {invoke} {entry_id} slide")

        buttons = []
        if is_slide:
            buttons.append(("slide", "📸 Download Slides"))
        else:
            buttons.append(("video", "🎥 Download Video"))
            if audio_url(result):
                buttons.append(("audio", "🎵 Download Audio"))

        return {
            "image": {"url": result.get("thumbnail") or result.get("cover") or DEFAULT_THUMBNAIL},
            "caption": "\n".join(lines),
            "buttons": [
                {"buttonId": f"{invoke} {entry_id} {action}", "buttonText": {"displayText": label}, "type": 1}
                for action, label in buttons
            ],
            "footer": "Lynae-MD",
        }

    async def follow_up(self, m, ctx, cache: DownloadCache, entry_id: str, action: str) -> None:
        client = ctx.client
        result = cache.get(entry_id)
        if not result:
            await client.send_message(m.chat, {"text": "❌ Session expired. Please request the link again."})
            return
        if not cache.belongs_to(result, m.sender):
            await client.send_message(m.chat, {"text": "❌ This button is not for you."})
            return

        try:
            if action == "video":
                await client.send_message(m.chat, {"text": "⏳ Downloading & Sending video..."})
                await self.send_video(m, ctx, result)
            elif action == "audio":
                await client.send_message(m.chat, {"text": "⏳ Downloading & Sending audio..."})
                url = audio_url(result)
                if not url:
                    raise ValueError("Audio URL not found.")
                data = await fetch_media(url)
                await client.send_message(m.chat, {"audio": data, "mimetype": "audio/mpeg", "ptt": False})
            else:
                images = slide_images(result)
                if not images:
                    raise ValueError("No images found.")
                await client.send_message(m.chat, {"text": "⏳ Sending slides..."})
                for image in images:
                    await client.send_message(m.chat, {"image": {"url": image}})
                await client.send_message(m.chat, {"text": "✅ All slides sent."})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"TikTok {action} error: {e}")
            await client.send_message(m.chat, {"text": f"❌ Error: {e}"})

    async def send_video(self, m, ctx, result: dict) -> None:
        urls = video_urls(result)
        if not urls:
            raise ValueError("Video URL not found.")
        last_error: Exception | None = None
        for url in urls:
            try:
                data = await fetch_media(url)
            except (httpx.HTTPError, InvalidMediaError) as e:
                last_error = e
                continue
            await ctx.client.send_message(m.chat, {"video": data, "mimetype": "video/mp4"})
            return
        raise last_error or ValueError("Failed to send video.")
