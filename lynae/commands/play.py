import re
from urllib.parse import quote

from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.http import first_result


def endpoints(query: str) -> list[str]:
    q = quote(query, safe="")
    return [
        f"https://api-faa.my.id/faa/ytplay?query={q}",
        f"https://api.ootaizumi.web.id/downloader/youtube/play?query={q}",
        f"https://api.nekolabs.web.id/downloader/youtube/play/v1?q={q}",
        f"https://anabot.my.id/api/download/playmusic?query={q}&apikey=freeApikey",
        f"https://api.elrayyxml.web.id/api/downloader/ytplay?q={q}",
    ]


def _track(title, channel, cover, url, download_url) -> dict:
    return {
        "title": title or "Unknown Title",
        "channel": channel or "Unknown Artist",
        "cover": cover,
        "url": url,
        "download_url": download_url,
    }


def parse_track(data) -> dict | None:
    """Normalise the provider response shapes into one track dict."""
    if not isinstance(data, dict) or not (data.get("success") or data.get("status")):
        return None
    result = data.get("result") or {}
    if isinstance(result, dict):
        if result.get("downloadUrl") and result.get("metadata"):
            meta = result["metadata"]
            return _track(meta.get("title"), meta.get("channel"), meta.get("cover"), meta.get("url"), result["downloadUrl"])
        if result.get("mp3") and result.get("title"):
            return _track(result["title"], result.get("author"), result.get("thumbnail"), result.get("url"), result["mp3"])
        if result.get("download") and result.get("title"):
            author = result.get("author")
            channel = author.get("name") if isinstance(author, dict) else author
            cover = result.get("thumbnail") or result.get("image")
            return _track(result["title"], channel, cover, result.get("url"), result["download"])
        if result.get("download_url") and result.get("title"):
            return _track(result["title"], result.get("channel"), result.get("thumbnail"), result.get("url"), result["download_url"])
    ana = (data.get("data") or {}).get("result") or {}
    if isinstance(ana, dict) and ana.get("success") and ana.get("urls") and ana.get("metadata"):
        meta = ana["metadata"]
        return _track(meta.get("title"), meta.get("channel"), meta.get("thumbnail"), meta.get("webpage_url"), ana["urls"])
    return None


class PlayPlugin(Plugin):
    command = re.compile(r"^(play)(\s|$)", re.IGNORECASE)
    help = ["play <title>"]
    tags = ["downloader"]
    description = "Search a song and send it as audio"

    async def execute(self, m, ctx):
        client = ctx.client
        query = " ".join(m.args).strip()
        if not query:
            p = ctx.used_prefix
            await client.send_message(m.chat, {"text": (
                "❌ Please provide a song title or link.\n\n"
                f"Usage:\n• {p}play <title/link>\n\nExample:\n• {p}play Never Gonna Give You Up"
            )})
            return

        await client.send_message(m.chat, {"text": f"🔍 Searching/Downloading: *{query}*..."})
        track = await first_result(endpoints(query), parse_track)
        if not track:
            await client.send_message(m.chat, {"text": "❌ Error: No downloadable track found from any provider."})
            return

        await client.send_message(m.chat, {"text": (
            "🎵 *PLAY MUSIC*\n\n"
            f"📌 *Title:* {track['title']}\n"
            f"👤 *Channel:* {track['channel']}\n"
            f"🔗 *Link:* {track['url'] or '-'}\n\n"
            "_Sending audio file, please wait..._"
        )})
        try:
            await client.send_message(m.chat, {
                "audio": {"url": track["download_url"]},
                "mimetype": "audio/mpeg",
                "file_name": f"{track['title']}.mp3",
            })
        except Exception as e:
            logger.error(f"Play: sending audio failed: {e}")
            await client.send_message(m.chat, {"text": f"❌ Error: {e}"})
