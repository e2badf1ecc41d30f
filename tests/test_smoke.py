from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError


def test_package_imports() -> None:
    import lynae  # noqa: F401
    import lynae.main  # noqa: F401


def test_default_config() -> None:
    from lynae.config import BUNDLED_PLUGINS_DIR, Config

    cfg = Config()
    assert cfg.prefixes == ["!", "/", ".", "#"]
    assert cfg.max_message_age_seconds == 120
    assert cfg.processed_capacity == 1000
    assert cfg.resolve_plugins_dir() == BUNDLED_PLUGINS_DIR


def test_load_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    from lynae.config import load_config

    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.bot_name == "Lynae-MD"
    assert cfg.hot_reload is True
    assert cfg.sticker.pack_name == "LynaeBot"
    assert cfg.resolve_data_dir() == (tmp_path / "db").resolve()


def test_load_config_reads_yaml_and_resolves_relative_paths(tmp_path: Path) -> None:
    from lynae.config import load_config

    config_path = tmp_path / "config.yaml"
    data = {
        "bot_name": "Test Bot",
        "owners": ["6281234567890@s.whatsapp.net"],
        "prefixes": ["!"],
        "plugins_dir": "my_plugins",
        "watch_debounce_ms": 800,
        "whatsapp": {"auth_dir": "session"},
    }
    config_path.write_text(yaml.safe_dump(data))

    cfg = load_config(config_path)
    assert cfg.bot_name == "Test Bot"
    assert cfg.prefixes == ["!"]
    assert cfg.watch_debounce_ms == 800
    assert cfg.resolve_plugins_dir() == (tmp_path / "my_plugins").resolve()
    assert cfg.resolve_auth_dir() == (tmp_path / "session").resolve()


def test_config_rejects_empty_prefixes_and_short_debounce() -> None:
    from lynae.config import Config

    with pytest.raises(ValidationError):
        Config(prefixes=[])
    with pytest.raises(ValidationError):
        Config(watch_debounce_ms=100)


def test_is_owner_compares_bare_numbers() -> None:
    from lynae.config import Config

    cfg = Config(owners=["6281234567890@s.whatsapp.net"])
    assert cfg.owner_numbers() == ["6281234567890"]
    assert cfg.is_owner("6281234567890@s.whatsapp.net")
    assert cfg.is_owner("6281234567890:12@s.whatsapp.net")
    assert not cfg.is_owner("6289999999999@s.whatsapp.net")
    assert not cfg.is_owner(None)


def test_bundled_plugins_load() -> None:
    from lynae.config import BUNDLED_PLUGINS_DIR
    from lynae.plugins.registry import PluginRegistry

    registry = PluginRegistry(BUNDLED_PLUGINS_DIR)
    results = registry.load_all()

    assert results and all(r.success for r in results), [r.error for r in results if not r.success]
    assert {"help", "ping", "tiktok", "hidetag", "sf"} <= set(registry.names)
    assert registry.match("help sticker").name == "help"
    assert registry.match("tt https://vm.tiktok.com/x").name == "tiktok"


def test_transport_noise_is_recognised() -> None:
    from lynae.utils.logger import is_transport_noise

    assert is_transport_noise(Exception("Bad MAC"))
    assert is_transport_noise("Failed to decrypt message from 628...")
    assert not is_transport_noise(ValueError("plugin exploded"))
    assert not is_transport_noise(None)


def test_cli_help_and_plugin_report(tmp_path: Path, plugins_dir: Path, write_plugin, monkeypatch, capsys) -> None:
    from lynae import main as cli

    write_plugin("ping")
    (plugins_dir / "broken.py").write_text("def oops(:\n")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({"plugins_dir": str(plugins_dir)}))

    monkeypatch.setattr("sys.argv", ["lynae", "-h"])
    cli.main()
    assert "Usage: lynae [run] [config_path]" in capsys.readouterr().out

    monkeypatch.setattr("sys.argv", ["lynae", "plugins", str(config_path)])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    out = capsys.readouterr().out
    assert exc.value.code == 1
    assert "ok    ping" in out
    assert "FAIL  broken" in out
    assert "1 loaded, 1 failed" in out


@pytest.mark.asyncio
async def test_bot_dispatches_until_logged_out(tmp_path: Path, plugins_dir: Path, write_plugin, fake_client_cls, make_raw) -> None:
    import asyncio

    from lynae.bus.events import MessageBatch
    from lynae.main import LynaeBot

    write_plugin("ping")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({"plugins_dir": str(plugins_dir), "hot_reload": False}))
    client = fake_client_cls()
    bot = LynaeBot(str(config_path), client=client)

    task = asyncio.create_task(bot.start())
    await bot.bus.publish_inbound(MessageBatch("notify", [make_raw(".ping")]))
    for _ in range(200):
        if client.sent:
            break
        await asyncio.sleep(0.01)
    assert client.texts() == ["ok"]

    await client._logout_callback()
    await asyncio.wait_for(task, timeout=2)
    assert bot._stopped
