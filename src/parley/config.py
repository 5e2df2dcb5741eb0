"""Runtime configuration.

Centralizes environment variables and defaults so the rest of the
package receives plain values.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class LogLevel:
    """Log level constants with numeric values for comparison.

    Standard logging hierarchy: DEBUG < INFO < WARNING < ERROR
    Lower numeric value = more verbose (shows more messages).
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40

    _from_string = {
        "debug": DEBUG,
        "info": INFO,
        "warning": WARNING,
        "error": ERROR,
    }

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert string to log level. Returns WARNING if invalid."""
        return cls._from_string.get(level_str.lower(), cls.WARNING)


DEFAULT_DB_PATH = Path.home() / ".parley" / "preferences.db"


class ParleyConfig(BaseModel):
    """Secrets, storage location and log level."""

    model_config = ConfigDict(frozen=True)

    yandex_api_key: str | None = None
    yandex_folder_id: str | None = None
    deepseek_api_key: str | None = None
    store_backend: str = Field(default="sqlite", description="Preference store: sqlite or memory")
    db_path: Path = DEFAULT_DB_PATH
    log_level: str = "warning"

    @property
    def yandex_enabled(self) -> bool:
        return bool(self.yandex_api_key) and bool(self.yandex_folder_id)

    @property
    def deepseek_enabled(self) -> bool:
        return bool(self.deepseek_api_key)


def load_config(environ: Mapping[str, str] | None = None) -> ParleyConfig:
    """Build configuration from environment variables.

    Environment variables:
        YANDEX_API_KEY: Yandex Cloud API key
        YANDEX_FOLDER_ID: Yandex Cloud folder id
        DEEPSEEK_API_KEY: DeepSeek API key
        PARLEY_STORE: Preference store backend (default: sqlite)
        PARLEY_DB_PATH: SQLite file (default: ~/.parley/preferences.db)
        PARLEY_LOG_LEVEL: debug, info, warning or error (default: warning)
    """
    env = os.environ if environ is None else environ
    return ParleyConfig(
        yandex_api_key=env.get("YANDEX_API_KEY") or None,
        yandex_folder_id=env.get("YANDEX_FOLDER_ID") or None,
        deepseek_api_key=env.get("DEEPSEEK_API_KEY") or None,
        store_backend=env.get("PARLEY_STORE", "sqlite").lower(),
        db_path=Path(env.get("PARLEY_DB_PATH") or DEFAULT_DB_PATH).expanduser(),
        log_level=env.get("PARLEY_LOG_LEVEL", "warning"),
    )
