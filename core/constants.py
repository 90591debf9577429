"""
Fixed constants - values that practically never change

Important: always use pathlib.Path for paths (Windows/Linux cross-platform)
"""

from pathlib import Path


# Project root (two levels above this file: core/constants.py -> project root)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """Default values"""

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    # Local timezone of the pharmacy (used for "today" in RP lookups)
    LOCAL_TIMEZONE: str = "Europe/London"

    # Upper bound for a single period grid request
    MAX_GRID_DAYS: int = 3660

    # Hard limit on search results returned by the HTTP layer
    SEARCH_LIMIT: int = 500


class Paths:
    """Project path constants (pathlib - OS independent)"""

    # Directories
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"
    SCRIPT_LOGS_DIR: Path = LOGS_DIR / "scripts"

    # Configuration files
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"
    REGISTERS_FILE: Path = CONFIG_DIR / "registers.yaml"

    # DB file
    DEFAULT_DB: Path = DATA_DIR / "register_ledger.db"
