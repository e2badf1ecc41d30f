"""Plugin registry: discovery, ordered lookup and hot reload.

Plugins live as ``*.py`` files in one directory. Each file contributes one
``Plugin`` subclass. Registry order is match priority (first match wins):
``load_all`` orders by file name, files added later are appended, and a
reload keeps the entry at its existing position.
"""

from __future__ import annotations

import importlib.util
import inspect
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

from loguru import logger

from lynae.plugins.base import Plugin, PluginLoadError

MODULE_PREFIX = "lynae_plugin_"


@dataclass
class PluginEntry:
    source: str
    path: Path
    plugin: Plugin
    mtime: float


@dataclass
class LoadResult:
    source: str
    success: bool
    plugin: Plugin | None = None
    error: str = ""


def source_name(name: str) -> str:
    """``ping``, ``ping.py`` and ``plugins/ping.py`` all name the source ``ping``."""
    stem = Path(name).name
    return stem[:-3] if stem.endswith(".py") else stem


def is_plugin_file(path: Path) -> bool:
    return path.suffix == ".py" and not path.name.startswith("_")


class PluginRegistry:
    """Ordered plugin collection with a source-name index."""

    def __init__(self, plugins_dir: Path):
        self.plugins_dir = Path(plugins_dir)
        self._entries: list[PluginEntry] = []
        self._index: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.plugins)

    def __contains__(self, name: str) -> bool:
        return source_name(name) in self._index

    @property
    def plugins(self) -> list[Plugin]:
        return [entry.plugin for entry in self._entries]

    @property
    def names(self) -> list[str]:
        return [entry.source for entry in self._entries]

    @property
    def entries(self) -> list[PluginEntry]:
        return list(self._entries)

    def get(self, name: str) -> Plugin | None:
        idx = self._index.get(source_name(name))
        return self._entries[idx].plugin if idx is not None else None

    def position(self, name: str) -> int | None:
        return self._index.get(source_name(name))

    def match(self, text: str) -> Plugin | None:
        for entry in list(self._entries):
            if entry.plugin.matches(text):
                return entry.plugin
        return None

    def discover(self) -> list[Path]:
        if not self.plugins_dir.is_dir():
            logger.warning(f"Plugins directory not found: {self.plugins_dir}")
            return []
        return sorted(p for p in self.plugins_dir.iterdir() if p.is_file() and is_plugin_file(p))

    def _reindex(self) -> None:
        self._index = {entry.source: i for i, entry in enumerate(self._entries)}

    def _import(self, path: Path) -> ModuleType:
        module_name = MODULE_PREFIX + source_name(path.name)
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"cannot import {path}")
        importlib.invalidate_caches()
        module = importlib.util.module_from_spec(spec)
        previous = sys.modules.get(module_name)
        sys.modules[module_name] = module
        # No bytecode is cached for plugin files: an edit within the same second
        # and of the same size would otherwise load the old version.
        write_bytecode = sys.dont_write_bytecode
        sys.dont_write_bytecode = True
        try:
            spec.loader.exec_module(module)
        except BaseException:
            if previous is not None:
                sys.modules[module_name] = previous
            else:
                sys.modules.pop(module_name, None)
            raise
        finally:
            sys.dont_write_bytecode = write_bytecode
        return module

    @staticmethod
    def _plugin_class(module: ModuleType) -> type[Plugin]:
        for obj in vars(module).values():
            if (
                inspect.isclass(obj)
                and issubclass(obj, Plugin)
                and obj is not Plugin
                and obj.__module__ == module.__name__
                and not inspect.isabstract(obj)
            ):
                return obj
        raise PluginLoadError("no Plugin subclass defined")

    def _build_entry(self, name: str) -> PluginEntry:
        source = source_name(name)
        path = self.plugins_dir / f"{source}.py"
        if not path.is_file():
            raise PluginLoadError("file not found")
        mtime = path.stat().st_mtime
        module = self._import(path)
        plugin = self._plugin_class(module)()
        errors = plugin.validate()
        if errors:
            raise PluginLoadError("; ".join(errors))
        return PluginEntry(source=source, path=path, plugin=plugin, mtime=mtime)

    def load_one(self, name: str) -> LoadResult:
        """Import one source; replace it in place or append. A failure keeps the old version."""
        source = source_name(name)
        try:
            entry = self._build_entry(source)
        except Exception as e:
            return LoadResult(source=source, success=False, error=str(e) or type(e).__name__)

        idx = self._index.get(source)
        if idx is not None:
            self._entries[idx] = entry
        else:
            self._entries.append(entry)
            self._reindex()
        return LoadResult(source=source, success=True, plugin=entry.plugin)

    def reload(self, name: str) -> LoadResult:
        result = self.load_one(name)
        if result.success:
            logger.info(f"Reloaded plugin: {result.source}")
        else:
            logger.error(f"Failed to reload plugin {result.source}: {result.error}")
        return result

    def remove(self, name: str) -> bool:
        source = source_name(name)
        idx = self._index.get(source)
        if idx is None:
            return False
        del self._entries[idx]
        self._reindex()
        sys.modules.pop(MODULE_PREFIX + source, None)
        logger.warning(f"Plugin removed: {source}")
        return True

    def load_all(self) -> list[LoadResult]:
        """Rebuild the registry from the plugins directory."""
        results: list[LoadResult] = []
        entries: list[PluginEntry] = []
        for path in self.discover():
            source = source_name(path.name)
            try:
                entry = self._build_entry(source)
            except Exception as e:
                results.append(LoadResult(source=source, success=False, error=str(e) or type(e).__name__))
                logger.error(f"Failed to load plugin {path.name}: {results[-1].error}")
                continue
            entries.append(entry)
            results.append(LoadResult(source=source, success=True, plugin=entry.plugin))
            logger.info(f"Loaded plugin: {path.name}")

        self._entries = entries
        self._reindex()
        logger.info(f"{len(self._entries)} plugin(s) loaded from {self.plugins_dir}")
        return results

    async def watch(self, debounce: float = 0.5, interval: float = 0.25) -> None:
        """Observe the plugins directory and hot-reload until cancelled."""
        from lynae.plugins.watcher import PluginWatcher

        await PluginWatcher(self, debounce=debounce, interval=interval).run()
