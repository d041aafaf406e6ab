from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from communityops.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    dictionary-like access helpers plus section shortcuts used when assembling
    :class:`~communityops.configuration.bot_settings.BotSettings`.
    """

    def __init__(self, config_path: Path = CONFIG_PATH) -> None:
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
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache; callers should not mutate it.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    def section(self, key: str) -> Dict[str, Any]:
        """Return a nested mapping, or an empty dict when absent or malformed."""
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def bot(self) -> Dict[str, Any]:
        """Runtime mode, main guild and development guild."""
        return self.section("bot")

    @property
    def permissions(self) -> Dict[str, Any]:
        """Per-guild role overrides and global default role ids."""
        return self.section("permissions")

    @property
    def internal_affairs(self) -> Dict[str, Any]:
        """Oversight roles that can see IA case channels."""
        return self.section("internal_affairs")

    @property
    def onboarding(self) -> Dict[str, Any]:
        """Recruit role and allocation review channel."""
        return self.section("onboarding")

    @property
    def database(self) -> Dict[str, Any]:
        return self.section("database")
