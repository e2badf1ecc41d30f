"""JSON-file cache for pending download results.

Layout on disk: ``{id: {"data": {...}, "timestamp": <ms since epoch>}}``.
The whole file is rewritten on every mutation, and entries older than the
TTL are swept on every access.
"""

from __future__ import annotations

import json
import secrets
import string
import time
from pathlib import Path
from typing import Any, Callable

from loguru import logger

ID_ALPHABET = string.ascii_lowercase + string.digits
DEFAULT_TTL_SECONDS = 3600


def _now_ms() -> int:
    return int(time.time() * 1000)


class DownloadCache:
    def __init__(
        self,
        path: Path,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = _now_ms,
    ):
        self.path = Path(path)
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Download cache unreadable, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving download cache: {e}")

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        data = self._read()
        cutoff = self._clock() - self.ttl_ms
        expired = [
            key for key, entry in data.items()
            if not isinstance(entry, dict) or entry.get("timestamp", 0) < cutoff
        ]
        for key in expired:
            del data[key]
        if expired:
            self._write(data)
            logger.debug(f"Download cache: swept {len(expired)} expired entr{'y' if len(expired) == 1 else 'ies'}")
        return len(expired)

    @staticmethod
    def new_id(length: int = 8) -> str:
        return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))

    def save(self, data: dict[str, Any], owner: str | None = None, entry_id: str | None = None) -> str:
        """Store ``data`` under a fresh short id bound to ``owner``. Returns the id."""
        self.sweep()
        cache = self._read()
        entry_id = entry_id or self.new_id()
        while entry_id in cache:
            entry_id = self.new_id()
        payload = dict(data)
        if owner:
            payload["originalSender"] = owner
        cache[entry_id] = {"data": payload, "timestamp": self._clock()}
        self._write(cache)
        return entry_id

    def get(self, entry_id: str) -> dict[str, Any] | None:
        self.sweep()
        entry = self._read().get(entry_id)
        return entry.get("data") if isinstance(entry, dict) else None

    @staticmethod
    def belongs_to(data: dict[str, Any], sender: str) -> bool:
        owner = data.get("originalSender")
        return not owner or owner == sender

    def __len__(self) -> int:
        return len(self._read())
