"""Application configuration manager wrapping QSettings."""

import logging

from PySide6.QtCore import QObject, QSettings, Signal, Slot

logger = logging.getLogger(__name__)

ORGANIZATION = "claude-roi"
APPLICATION = "claude-roi"

# Default values
DEFAULTS = {
    "general/projectsDir": "~/.claude/projects",
    "general/days": 30,
    "general/matching": "nearest",
    "general/pricing": "versioned",
    "server/host": "127.0.0.1",
    "server/port": 3457,
    "cache/enabled": True,
    "advanced/logLevel": "WARNING",
}


class ConfigManager(QObject):
    """Persistent user settings with change notification."""

    settings_changed = Signal(str)  # key

    def __init__(self, parent=None, settings: QSettings | None = None):
        super().__init__(parent)
        self._settings = settings if settings is not None else QSettings(ORGANIZATION, APPLICATION)

    @Slot(str, result=str)
    def get_string(self, key: str) -> str:
        return str(self._settings.value(key, DEFAULTS.get(key, "")))

    @Slot(str, result=int)
    def get_int(self, key: str) -> int:
        val = self._settings.value(key, DEFAULTS.get(key, 0))
        try:
            return int(val)
        except (ValueError, TypeError):
            logger.debug("Invalid int for %s: %r", key, val)
            return DEFAULTS.get(key, 0)

    @Slot(str, result=bool)
    def get_bool(self, key: str) -> bool:
        val = self._settings.value(key, DEFAULTS.get(key, False))
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.lower() in ("true", "1", "yes")
        return bool(val)

    @Slot(str, str)
    def set_string(self, key: str, value: str):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, int)
    def set_int(self, key: str, value: int):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, bool)
    def set_bool(self, key: str, value: bool):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str)
    def reset(self, key: str):
        """Forget a stored value so the default applies again."""
        self._settings.remove(key)
        self.settings_changed.emit(key)
