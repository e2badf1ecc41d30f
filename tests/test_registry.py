import os
from pathlib import Path

import pytest

from lynae.plugins.registry import PluginRegistry, source_name
from lynae.plugins.watcher import PluginWatcher


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def touch_later(path: Path, seconds: int = 5) -> None:
    # Force a distinct mtime even on filesystems with coarse timestamps.
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + seconds))


def test_source_name() -> None:
    assert source_name("ping") == "ping"
    assert source_name("ping.py") == "ping"
    assert source_name("plugins/ping.py") == "ping"


def test_load_all_orders_by_file_name_and_skips_private(plugins_dir, write_plugin) -> None:
    write_plugin("zeta")
    write_plugin("alpha")
    (plugins_dir / "_helpers.py").write_text("VALUE = 1\n")
    (plugins_dir / "notes.txt").write_text("not a plugin")

    registry = PluginRegistry(plugins_dir)
    results = registry.load_all()

    assert [r.source for r in results] == ["alpha", "zeta"]
    assert registry.names == ["alpha", "zeta"]
    assert registry.position("zeta") == 1
    assert "alpha.py" in registry


def test_broken_plugin_does_not_block_others(plugins_dir, write_plugin) -> None:
    write_plugin("good")
    (plugins_dir / "broken.py").write_text("def oops(:\n")
    (plugins_dir / "empty.py").write_text("X = 1\n")

    registry = PluginRegistry(plugins_dir)
    results = {r.source: r for r in registry.load_all()}

    assert results["good"].success
    assert not results["broken"].success
    assert "no Plugin subclass" in results["empty"].error
    assert registry.names == ["good"]


def test_plugin_without_help_is_rejected(plugins_dir) -> None:
    (plugins_dir / "nohelp.py").write_text(
        "from lynae.plugins.base import Plugin\n\n"
        "class NoHelp(Plugin):\n"
        "    command = '^nohelp$'\n\n"
        "    async def execute(self, m, ctx):\n"
        "        pass\n"
    )
    registry = PluginRegistry(plugins_dir)
    result = registry.load_all()[0]
    assert not result.success
    assert "missing help names" in result.error


def test_reload_replaces_in_place(plugins_dir, write_plugin) -> None:
    write_plugin("alpha")
    write_plugin("beta", help=["beta"])
    write_plugin("gamma")
    registry = PluginRegistry(plugins_dir)
    registry.load_all()
    old = registry.get("beta")

    write_plugin("beta", help=["beta", "b"])
    result = registry.reload("beta.py")

    assert result.success
    assert registry.names == ["alpha", "beta", "gamma"]
    assert registry.get("beta") is not old
    assert registry.get("beta").aliases == ["b"]


def test_failed_reload_keeps_previous_version(plugins_dir, write_plugin) -> None:
    path = write_plugin("alpha")
    registry = PluginRegistry(plugins_dir)
    registry.load_all()
    old = registry.get("alpha")

    path.write_text("this is not python\n")
    result = registry.reload("alpha")

    assert not result.success
    assert registry.get("alpha") is old
    assert len(registry) == 1


def test_new_file_is_appended_and_remove_reindexes(plugins_dir, write_plugin) -> None:
    write_plugin("beta")
    write_plugin("delta")
    registry = PluginRegistry(plugins_dir)
    registry.load_all()

    write_plugin("alpha")
    assert registry.load_one("alpha").success
    assert registry.names == ["beta", "delta", "alpha"]

    assert registry.remove("beta") is True
    assert registry.remove("beta") is False
    assert registry.names == ["delta", "alpha"]
    assert registry.position("alpha") == 1
    assert registry.match("alpha").name == "alpha"


def test_missing_plugins_dir_loads_nothing(tmp_path) -> None:
    registry = PluginRegistry(tmp_path / "nope")
    assert registry.load_all() == []
    assert len(registry) == 0


def test_watcher_debounces_and_applies_changes(plugins_dir, write_plugin) -> None:
    alpha = write_plugin("alpha")
    registry = PluginRegistry(plugins_dir)
    registry.load_all()
    clock = FakeClock()
    watcher = PluginWatcher(registry, debounce=0.5, clock=clock)
    old = registry.get("alpha")

    write_plugin("alpha", help=["alpha", "a"])
    touch_later(alpha)
    write_plugin("beta")
    assert watcher.poll() == []

    clock.advance(0.2)
    assert watcher.poll() == []
    assert registry.get("alpha") is old

    clock.advance(0.5)
    applied = sorted(watcher.poll())
    assert applied == [("added", "beta"), ("reloaded", "alpha")]
    assert registry.get("alpha").aliases == ["a"]
    assert registry.names == ["alpha", "beta"]


def test_watcher_removes_deleted_files(plugins_dir, write_plugin) -> None:
    path = write_plugin("alpha")
    registry = PluginRegistry(plugins_dir)
    registry.load_all()
    clock = FakeClock()
    watcher = PluginWatcher(registry, clock=clock)

    path.unlink()
    watcher.poll()
    clock.advance(1)

    assert watcher.poll() == [("removed", "alpha")]
    assert len(registry) == 0


def test_watcher_enforces_minimum_debounce(plugins_dir) -> None:
    watcher = PluginWatcher(PluginRegistry(plugins_dir), debounce=0.1)
    assert watcher.debounce == 0.5


@pytest.mark.asyncio
async def test_registry_watch_stops_on_cancel(plugins_dir) -> None:
    import asyncio

    registry = PluginRegistry(plugins_dir)
    task = asyncio.create_task(registry.watch(interval=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    await asyncio.wait_for(task, timeout=1)
    assert task.done()


def test_reload_sees_same_size_edit_with_unchanged_mtime(plugins_dir, write_plugin) -> None:
    path = write_plugin("alpha", help=["alpha", "aa"])
    registry = PluginRegistry(plugins_dir)
    registry.load_all()
    stat = path.stat()

    path.write_text(path.read_text().replace("'aa'", "'bb'"))
    os.utime(path, (stat.st_atime, stat.st_mtime))
    assert path.stat().st_size == stat.st_size

    assert registry.reload("alpha").success
    assert registry.get("alpha").aliases == ["bb"]
    assert not (plugins_dir / "__pycache__").exists()
