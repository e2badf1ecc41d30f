"""Shared HTTP helpers for command plugins."""

from __future__ import annotations

import html as html_mod
import re
from typing import Any, Callable, Iterable, TypeVar

import httpx
from loguru import logger

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
MIN_MEDIA_BYTES = 2048

T = TypeVar("T")


class InvalidMediaError(ValueError):
    """A download that is an error page rather than media."""


def strip_tags(text: str) -> str:
    text = re.sub(r'<script[\s\S]*?</script>', '', text, flags=re.I)
    text = re.sub(r'<style[\s\S]*?</style>', '', text, flags=re.I)
    text = re.sub(r'<br\s*/?>', '\n', text, flags=re.I)
    text = re.sub(r'<[^>]+>', '', text)
    return html_mod.unescape(text).strip()


def validate_media(data: bytes) -> bytes:
    """Reject tiny payloads and HTML/JSON error bodies served with a 200."""
    head = data[:50].decode("utf-8", errors="ignore").strip()
    if (
        len(data) < MIN_MEDIA_BYTES
        or head.startswith("<")
        or head.startswith("{")
        or ("error" in head.lower() and len(data) < 500)
    ):
        raise InvalidMediaError("Invalid media file (likely HTML/JSON error response)")
    return data


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


async def fetch_json(url: str, params: dict[str, Any] | None = None, timeout: float = 30.0, **kwargs: Any) -> Any:
    async with _client(timeout) as client:
        r = await client.get(url, params=params, **kwargs)
        r.raise_for_status()
        return r.json()


async def fetch_text(url: str, params: dict[str, Any] | None = None, timeout: float = 30.0, **kwargs: Any) -> str:
    async with _client(timeout) as client:
        r = await client.get(url, params=params, **kwargs)
        r.raise_for_status()
        return r.text


async def fetch_media(url: str, timeout: float = 120.0) -> bytes:
    async with _client(timeout) as client:
        r = await client.get(url)
        r.raise_for_status()
        return validate_media(r.content)


async def first_result(urls: Iterable[str], parse: Callable[[Any], T | None], timeout: float = 30.0) -> T | None:
    """Try JSON endpoints in order and return the first one ``parse`` accepts."""
    for url in urls:
        try:
            data = await fetch_json(url, timeout=timeout)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Endpoint failed {url}: {e}")
            continue
        try:
            result = parse(data)
        except (KeyError, TypeError, AttributeError, IndexError) as e:
            logger.debug(f"Unexpected response shape from {url}: {e}")
            continue
        if result:
            return result
    return None
