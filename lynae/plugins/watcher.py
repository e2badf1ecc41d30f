"""Hot-reload watcher for the plugins directory.

Polls file modification times. A change is applied only after the file has
been quiet for the debounce window, so half-written files are not imported.
"""

import asyncio
import time
from typing import Callable

from loguru import logger

from lynae.plugins.registry import PluginRegistry, source_name

MIN_DEBOUNCE = 0.5


class PluginWatcher:
    def __init__(
        self,
        registry: PluginRegistry,
        debounce: float = MIN_DEBOUNCE,
        interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.debounce = max(debounce, MIN_DEBOUNCE)
        self.interval = interval
        self._clock = clock
        self._seen: dict[str, float] = self.snapshot()
        # source -> (time the latest change was observed, mtime or None when deleted)
        self._pending: dict[str, tuple[float, float | None]] = {}
        self._running = False

    def snapshot(self) -> dict[str, float]:
        files = {}
        for path in self.registry.discover():
            try:
                files[source_name(path.name)] = path.stat().st_mtime
            except FileNotFoundError:
                continue
        return files

    def poll(self) -> list[tuple[str, str]]:
        """Record new changes and apply the ones that have settled. Returns ``(action, source)`` pairs."""
        now = self._clock()
        current = self.snapshot()

        for source, mtime in current.items():
            if self._seen.get(source) != mtime:
                self._pending[source] = (now, mtime)
        for source in self._seen.keys() - current.keys():
            self._pending[source] = (now, None)
        self._seen = current

        applied = []
        for source, (changed_at, mtime) in list(self._pending.items()):
            if now - changed_at < self.debounce:
                continue
            del self._pending[source]
            applied.append((self._apply(source, mtime), source))
        return applied

    def _apply(self, source: str, mtime: float | None) -> str:
        if mtime is None:
            if self.registry.remove(source):
                return "removed"
            return "ignored"
        if source in self.registry:
            result = self.registry.reload(source)
            if result.success:
                logger.info(f"Hot-reload: {source}.py updated")
            return "reloaded" if result.success else "failed"
        result = self.registry.load_one(source)
        if result.success:
            logger.info(f"Hot-reload: {source}.py added")
            return "added"
        logger.error(f"Hot-reload failed for {source}.py: {result.error}")
        return "failed"

    async def run(self) -> None:
        self._running = True
        logger.info(f"Plugin watcher started on {self.registry.plugins_dir} (hot-reload enabled)")
        while self._running:
            try:
                self.poll()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Plugin watcher error: {e}")
                await asyncio.sleep(self.interval)

    def stop(self) -> None:
        self._running = False
