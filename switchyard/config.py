import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import toml

from .errors import ConfigError

DEFAULT_CCSWITCH_PATH = "/usr/local/bin/cc-switch"
DEFAULT_CONFIG_FILE = Path.home() / ".switchyard_config.toml"
CONFIG_ENV_VAR = "SWITCHYARD_CONFIG"


def _default_ccswitch_path() -> str:
    return os.environ.get("CC_SWITCH_PATH", DEFAULT_CCSWITCH_PATH)


def _default_data_dir() -> str:
    return str(Path.home() / ".cc-switch-web")


@dataclass
class Config:
    """Paths and limits switchyard needs to reach cc-switch, sqlite3 and its state directory."""

    ccswitch_path: str = field(default_factory=_default_ccswitch_path)
    sqlite_path: str = "sqlite3"
    db_path: str = ""
    data_dir: str = field(default_factory=_default_data_dir)
    timeout: float = 30.0
    debug: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        return cls(**{key: value for key, value in data.items() if key in cls.__annotations__})

    def to_dict(self) -> dict:
        return asdict(self)


class ConfigManager:
    """Persists Config as TOML.

    The file defaults to ``~/.switchyard_config.toml`` and can be moved with
    ``SWITCHYARD_CONFIG``. Values in the file override the defaults.
    """

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE)

    def load_config(self) -> Config:
        if not self.config_file.exists():
            return Config()
        try:
            stored = toml.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, toml.TomlDecodeError) as exc:
            raise ConfigError(f"Failed to load config from {self.config_file}: {exc}") from exc
        return Config.from_dict({**Config().to_dict(), **stored})

    def save_config(self, **changes) -> None:
        """Merge the non-None ``changes`` into the stored settings (file mode 600)."""
        values = self.load_config().to_dict()
        values.update({key: value for key, value in changes.items() if value is not None and key in values})
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            self.config_file.write_text(toml.dumps(values), encoding="utf-8")
            self.config_file.chmod(0o600)
        except OSError as exc:
            raise ConfigError(f"Failed to save config to {self.config_file}: {exc}") from exc
