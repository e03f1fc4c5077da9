from __future__ import annotations
import os
from pathlib import Path
import fcntl
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv

from guildconf.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DB_PATH = Path("./data/guild_settings.db")
DB_PATH_ENV_VAR = "GUILDCONF_DB_PATH"


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    Caches the contents of ``./config/app_config.yml`` and exposes typed
    shortcuts for the settings store. Environment variables (optionally
    loaded from ``.env``) take precedence where noted.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping, ignoring it.", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    @staticmethod
    def _positive_float(value: Any, default: Optional[float]) -> Optional[float]:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return default
        return number if number > 0 else default

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or malformed.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Path of the SQLite database holding guild settings.

        ``GUILDCONF_DB_PATH`` overrides ``database.path``.
        """
        value = os.getenv(DB_PATH_ENV_VAR) or self._section("database").get("path")
        return Path(value) if isinstance(value, str) and value.strip() else DEFAULT_DB_PATH

    @property
    def operation_timeout(self) -> Optional[float]:
        """Seconds a single storage operation may take. Default is 10."""
        return self._positive_float(self._section("database").get("operation_timeout_seconds", 10.0), 10.0)

    @property
    def reconnect_attempts(self) -> int:
        """How many reconnects a storage operation may trigger. Default is 1."""
        try:
            return max(0, int(self._section("database").get("reconnect_attempts", 1)))
        except (TypeError, ValueError):
            return 1

    @property
    def slow_query_threshold_ms(self) -> float:
        """Operations slower than this are logged as warnings. Default is 100ms."""
        return self._positive_float(self._section("database").get("slow_query_threshold_ms", 100.0), 100.0)

    @property
    def lock_timeout(self) -> Optional[float]:
        """Maximum seconds a save waits for its guild's lock; None waits forever."""
        return self._positive_float(self._section("settings").get("lock_timeout_seconds"), None)


def load_environment(dotenv_path: Optional[Path] = None) -> None:
    """Load variables from a ``.env`` file without overriding the real environment."""
    load_dotenv(dotenv_path=dotenv_path)


load_environment()

# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
