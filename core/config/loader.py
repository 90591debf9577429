"""
Settings loader

Loads settings.yaml and exposes the runtime settings of the web process.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths


@dataclass(frozen=True)
class AppSettings:
    """Application settings (loaded from settings.yaml)

    Immutable so settings cannot change at runtime.
    """

    db_path: Path
    log_level: str
    log_dir: Path | None
    web_host: str
    web_port: int
    registers_file: Path | None


class SettingsLoadError(Exception):
    """settings.yaml could not be loaded"""

    pass


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_path(value: Any, field_name: str) -> Path:
    """Resolve a configured path relative to the project root"""
    if not isinstance(value, str) or not value.strip():
        raise SettingsLoadError(f"'{field_name}' must be a non-empty path string")

    path = Path(value)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise SettingsLoadError(f"'{name}' section must be a mapping")
    return section


def load_settings(path: Path | None = None) -> AppSettings:
    """Load settings.yaml

    Args:
        path: settings.yaml path (default path if None)

    Returns:
        AppSettings instance

    Raises:
        SettingsLoadError: file missing or malformed
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        raise SettingsLoadError(f"settings.yaml not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"Failed to parse settings.yaml: {e}") from e

    if data is None:
        raise SettingsLoadError("settings.yaml is empty")
    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml must contain a mapping")

    database = _section(data, "database")
    logging_config = _section(data, "logging")
    web = _section(data, "web")

    db_path = Paths.DEFAULT_DB
    if "path" in database:
        db_path = _resolve_path(database["path"], "database.path")

    log_level = str(logging_config.get("level", Defaults.LOG_LEVEL)).upper()
    if log_level not in _VALID_LOG_LEVELS:
        raise SettingsLoadError(
            f"Invalid logging.level: '{log_level}'. "
            f"Valid values: {sorted(_VALID_LOG_LEVELS)}"
        )

    log_dir = None
    if logging_config.get("dir"):
        log_dir = _resolve_path(logging_config["dir"], "logging.dir")

    web_port = web.get("port", Defaults.WEB_PORT)
    if not isinstance(web_port, int) or not 0 < web_port < 65536:
        raise SettingsLoadError(f"Invalid web.port: {web_port!r}")

    registers_file = None
    if data.get("registers_file"):
        registers_file = _resolve_path(data["registers_file"], "registers_file")

    return AppSettings(
        db_path=db_path,
        log_level=log_level,
        log_dir=log_dir,
        web_host=str(web.get("host", Defaults.WEB_HOST)),
        web_port=web_port,
        registers_file=registers_file,
    )


class Settings:
    """Application settings (singleton)

    Loads settings.yaml once per process and provides the related values.
    Only the web process uses this; the register engine receives its
    collaborators explicitly.
    """

    _instance: "Settings | None" = None
    _settings: AppSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            self._settings = load_settings(settings_path)

    @property
    def db_path(self) -> Path:
        """SQLite database path"""
        assert self._settings is not None
        return self._settings.db_path

    @property
    def log_level(self) -> str:
        """Console/file log level name"""
        assert self._settings is not None
        return self._settings.log_level

    @property
    def log_dir(self) -> Path | None:
        """Log directory override"""
        assert self._settings is not None
        return self._settings.log_dir

    @property
    def web_host(self) -> str:
        assert self._settings is not None
        return self._settings.web_host

    @property
    def web_port(self) -> int:
        assert self._settings is not None
        return self._settings.web_port

    @property
    def registers_file(self) -> Path | None:
        """registers.yaml path (None: built-in register definitions)"""
        assert self._settings is not None
        return self._settings.registers_file

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (tests)"""
        cls._instance = None
        cls._settings = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Return the Settings instance

    Args:
        settings_path: settings.yaml path (default path if None)

    Returns:
        Settings singleton
    """
    return Settings(settings_path)
