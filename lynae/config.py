"""Configuration schema and loader."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, PrivateAttr, field_validator

from lynae.utils.jid import base_number

BUNDLED_PLUGINS_DIR = Path(__file__).parent / "commands"


class StickerConfig(BaseModel):
    pack_name: str = "LynaeBot"
    pack_author: str = "vtx.my.id"


class WhatsAppConfig(BaseModel):
    auth_dir: str = "LynaeSession"


class Config(BaseModel):
    """Root configuration."""
    bot_name: str = "Lynae-MD"
    bot_number: str = ""  # used when the session has no self identity yet
    owners: list[str] = Field(default_factory=list)
    bio: str = "Lynae-MD Bot\n\nType .help for commands"
    prefixes: list[str] = Field(default_factory=lambda: ["!", "/", ".", "#"])
    plugins_dir: str = ""  # empty -> bundled lynae/commands
    hot_reload: bool = True
    watch_debounce_ms: int = Field(default=500, ge=500)
    data_dir: str = "db"
    temp_dir: str = "temp"
    max_message_age_seconds: int = Field(default=120, ge=1)
    processed_capacity: int = Field(default=1000, ge=1)
    genius_api_key: str = ""
    log_level: str = "INFO"
    sticker: StickerConfig = Field(default_factory=StickerConfig)
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)
    _config_dir: Path = PrivateAttr(default_factory=lambda: Path.cwd())

    @field_validator("prefixes")
    @classmethod
    def _prefixes_not_empty(cls, value: list[str]) -> list[str]:
        cleaned = [p for p in value if p]
        if not cleaned:
            raise ValueError("at least one command prefix is required")
        return cleaned

    def owner_numbers(self) -> list[str]:
        return [base_number(owner) for owner in self.owners if owner]

    def is_owner(self, jid: str | None) -> bool:
        if not jid:
            return False
        return base_number(jid) in self.owner_numbers()

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = self._config_dir / path
        return path.resolve()

    def resolve_plugins_dir(self) -> Path:
        if not self.plugins_dir:
            return BUNDLED_PLUGINS_DIR
        return self._resolve(self.plugins_dir)

    def resolve_data_dir(self) -> Path:
        return self._resolve(self.data_dir)

    def resolve_temp_dir(self) -> Path:
        return self._resolve(self.temp_dir)

    def resolve_auth_dir(self) -> Path:
        return self._resolve(self.whatsapp.auth_dir)


def load_config(path: str | Path = "config.yaml") -> Config:
    """Load config from YAML file."""
    p = Path(path).expanduser()
    resolved_path = p.resolve()
    if p.exists():
        with open(resolved_path) as f:
            data = yaml.safe_load(f) or {}
        config = Config(**data)
    else:
        config = Config()
    config._config_dir = resolved_path.parent
    return config
