import re

import httpx
from loguru import logger

from lynae.plugins.base import Plugin
from lynae.utils.http import fetch_json

TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"

LANGUAGE_ALIASES = {
    "indonesia": "id", "indo": "id", "indonesian": "id", "id": "id",
    "english": "en", "inggris": "en", "ing": "en", "en": "en",
    "japanese": "ja", "jepang": "ja", "jp": "ja",
    "korean": "ko", "korea": "ko", "ko": "ko",
    "chinese": "zh-CN", "china": "zh-CN", "mandarin": "zh-CN", "cn": "zh-CN",
    "arabic": "ar", "arab": "ar", "ar": "ar",
    "spanish": "es", "spanyol": "es", "es": "es",
    "french": "fr", "prancis": "fr", "fr": "fr",
    "german": "de", "jerman": "de", "de": "de",
    "russian": "ru", "rusia": "ru", "ru": "ru",
    "javanese": "jv", "jawa": "jv", "jv": "jv",
    "sundanese": "su", "sunda": "su", "su": "su",
}


def language_code(value: str) -> str:
    return LANGUAGE_ALIASES.get(value.lower(), value)


async def translate(text: str, lang: str) -> str:
    data = await fetch_json(TRANSLATE_URL, params={
        "client": "gtx", "sl": "auto", "tl": lang, "dt": "t", "q": text,
    })
    # Segments come back as [[translated, original, ...], ...]
    if isinstance(data, list) and data and isinstance(data[0], list):
        return "".join(segment[0] for segment in data[0] if segment and segment[0])
    raise ValueError("Invalid response from Google Translate")


class TranslatePlugin(Plugin):
    command = re.compile(r"^(translate|t|tr)(\s|$)", re.IGNORECASE)
    help = ["translate <lang>", "t <lang>"]
    tags = ["tools"]
    description = "Translate the replied message into another language"

    async def execute(self, m, ctx):
        client = ctx.client
        p, cmd = ctx.used_prefix, ctx.command.split()[0]
        if not m.quoted:
            await client.send_message(m.chat, {"text": (
                "❌ Please reply to a message containing text to translate.\n\n"
                f"Usage:\n• Reply to a message -> {p}{cmd} <language_code>\n\n"
                f"Example:\n• {p}t id (Translate to Indonesian)\n• {p}t en (Translate to English)"
            )})
            return

        text = m.quoted_text.strip()
        if not text:
            await client.send_message(m.chat, {"text": "❌ The replied message does not contain any text to translate."})
            return

        if not m.args:
            await client.send_message(m.chat, {"text": (
                "❌ Please specify the target language code.\n\n"
                f"Example:\n• {p}t id\n• {p}t en\n• {p}t ja"
            )})
            return

        lang = language_code(m.args[0])
        await client.send_message(m.chat, {"text": "⏳ Translating..."})
        try:
            result = await translate(text, lang)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Translate error: {e}")
            await client.send_message(m.chat, {"text": f"❌ Translation failed.\nError: {e}"})
            return

        await client.send_message(m.chat, {"text": (
            "🌍 *TRANSLATION*\n\n"
            f"📝 *Original:* {text}\n"
            f"🔤 *To:* {lang.upper()}\n\n"
            f"✨ *Result:*\n{result}"
        )})
