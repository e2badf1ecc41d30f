import re

import httpx
from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.http import fetch_json, fetch_text, strip_tags

GENIUS_SEARCH_URL = "https://api.genius.com/search"

_CONTAINER_OPEN = re.compile(r'<div[^>]*data-lyrics-container="true"[^>]*>', re.I)
_DIV_TAG = re.compile(r'<(/?)div\b[^>]*>', re.I)


def lyrics_containers(page: str) -> list[str]:
    """Inner HTML of every ``data-lyrics-container`` div, nested divs included."""
    blocks = []
    for opening in _CONTAINER_OPEN.finditer(page):
        depth, pos = 1, opening.end()
        for tag in _DIV_TAG.finditer(page, pos):
            depth += -1 if tag.group(1) else 1
            if depth == 0:
                blocks.append(page[pos:tag.start()])
                break
    return blocks


def extract_lyrics(page: str) -> str:
    text = "\n\n".join(strip_tags(block) for block in lyrics_containers(page)).strip()
    text = re.sub(r'^\d+\s+Contributors[\s\S]*?Lyrics\s*', '', text)
    text = re.sub(r'\s*Embed$', '', text)
    return re.sub(r'\n{3,}', '\n\n', text).strip()


class LyricsPlugin(Plugin):
    command = re.compile(r"^(lyrics|lirik)(\s|$)", re.IGNORECASE)
    help = ["lyrics <title>"]
    tags = ["tools"]
    description = "Find song lyrics on Genius"

    async def execute(self, m, ctx):
        client = ctx.client
        query = " ".join(m.args).strip()
        cmd = ctx.command.split()[0] if ctx.command else "lyrics"
        if not query:
            p = ctx.used_prefix
            await client.send_message(m.chat, {"text": (
                f"❌ Please provide a song title.\n\nUsage:\n• {p}{cmd} <title>\n\n"
                f"Example:\n• {p}{cmd} Never Gonna Give You Up"
            )})
            return

        api_key = ctx.config.genius_api_key
        if not api_key:
            await client.send_message(m.chat, {"text": (
                "⚠️ Genius API Key is not configured.\n\n"
                "Please set genius_api_key in config.yaml.\n"
                "You can get it from: https://genius.com/api-clients"
            )})
            return

        await client.send_presence_update("composing", m.chat)
        try:
            data = await fetch_json(GENIUS_SEARCH_URL, params={"q": query}, headers={"Authorization": f"Bearer {api_key}"})
            hits = (data.get("response") or {}).get("hits") or []
            if not hits:
                await client.send_message(m.chat, {"text": f'❌ Lyrics for "{query}" not found.'})
                return

            song = hits[0]["result"]
            title = song.get("full_title") or song.get("title") or query
            artist = (song.get("primary_artist") or {}).get("name", "")
            lyrics = extract_lyrics(await fetch_text(song["url"]))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Lyrics error: {e}")
            await client.send_message(m.chat, {"text": f"❌ An error occurred while fetching lyrics.\nError: {e}"})
            return

        if not lyrics:
            await client.send_message(m.chat, {"text": f'❌ Failed to retrieve lyrics content for "{title}".'})
            return
        await client.send_message(m.chat, {"text": f"🎤 *{title}*\n👤 *{artist}*\n\n{lyrics}"})
