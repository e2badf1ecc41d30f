import re
from urllib.parse import quote

import httpx
from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.http import fetch_media, first_result
from lynae.utils.media import detect_file_type

URL_KEYS = ("hd_url", "video_hd", "video_url", "hd", "video", "url", "download_url", "link", "_url")


def endpoints(url: str) -> list[str]:
    u = quote(url, safe="")
    return [
        f"https://api.ryzumi.vip/api/downloader/igdl?url={u}",
        f"https://api.tiklydown.eu.org/api/download/ig?url={u}",
        f"https://api.faa.my.id/api/download/instagram?url={u}",
        f"https://anabot.my.id/api/download/instagram?url={u}&apikey=freeApikey",
        f"https://api.elrayyxml.web.id/api/downloader/igdl?url={u}",
        f"https://api.agatz.xyz/api/instagram?url={u}",
        f"https://api.siputzx.my.id/api/d/igdl?url={u}",
        f"https://widipe.com/igdl?url={u}",
        f"https://api.vreden.my.id/api/igdownload?url={u}",
    ]


def parse_items(data) -> list | None:
    """Pull the media list out of whatever shape the provider returned."""
    if isinstance(data, list):
        return data or None
    if not isinstance(data, dict):
        return None
    nested = data.get("data")
    if isinstance(nested, dict) and nested.get("result"):
        result = nested["result"]
    elif isinstance(nested, list):
        result = nested
    else:
        result = data.get("result") or nested or data.get("url_list") or data.get("media")
    if not result:
        return None
    return result if isinstance(result, list) else [result]


def media_url(item) -> str | None:
    if isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return None
    for key in URL_KEYS:
        value = item.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class InstagramPlugin(Plugin):
    command = re.compile(r"^(instagram|ig)(\s|$)", re.IGNORECASE)
    help = ["instagram <url>", "ig <url>"]
    tags = ["downloader"]
    description = "Download Instagram posts, reels and carousels"

    async def execute(self, m, ctx):
        client = ctx.client
        if not m.args:
            cmd = ctx.command.split()[0] if ctx.command else "ig"
            await client.send_message(m.chat, {"text": (
                f"❌ Please provide an Instagram link.\n\nExample:\n{ctx.used_prefix}{cmd} https://www.instagram.com/p/CzoHzuRvdVh"
            )})
            return

        await client.send_message(m.chat, {"text": "⏳ Downloading media, please wait..."})
        items = await first_result(endpoints(m.args[0]), parse_items)
        if not items:
            await client.send_message(m.chat, {"text": "❌ Error: Media not found or API error."})
            return

        for item in items:
            url = media_url(item)
            if not url:
                continue
            try:
                data = await fetch_media(url)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Instagram download failed: {e}")
                await client.send_message(m.chat, {"text": f"❌ Failed to send media: {e}"})
                continue

            detected = detect_file_type(data)
            if detected:
                kind, _, mimetype = detected
            elif ".mp4" in url:
                kind, mimetype = "video", "video/mp4"
            else:
                kind, mimetype = "image", "image/jpeg"
            await client.send_message(m.chat, {kind: data, "mimetype": mimetype})
