"""
Logging setup

One call per process. The web API and the maintenance scripts log to their
own directory (logs/web, logs/scripts, or the logging.dir setting):

    web.log             every record at file_level, rotated daily
    web.register.log    core.register records only (appends, conflicts)

Context passed with extra={...} is appended to the line as key=value pairs,
so a conflict warning carries its ledger_id and versions.

Usage:
    from core.logging import setup_logging
    setup_logging("web", console_level=settings.log_level, log_dir=settings.log_dir)
    setup_logging("scripts")
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.constants import Paths


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 30  # days

# Register writes get their own file at INFO whatever the general level
REGISTER_LOGGER = "core.register"

PROCESS_LOG_DIRS: dict[str, Path] = {
    "web": Paths.WEB_LOGS_DIR,
    "scripts": Paths.SCRIPT_LOGS_DIR,
}

NOISY_LOGGERS = [
    "aiosqlite",        # executing/completed per query
    "asyncio",
    "httpcore",
    "httpx",
    "uvicorn.access",   # one line per request
]

# Attributes every LogRecord has; anything else came from extra={...}
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "color_message"}


class ContextFormatter(logging.Formatter):
    """Formatter that appends extra={...} fields as key=value"""

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} | {pairs}"


def resolve_level(level: int | str) -> int:
    """Level number from a number or a name ("info", "WARNING")

    Raises:
        ValueError: unknown level name
    """
    if isinstance(level, int):
        return level
    levels = logging.getLevelNamesMapping()
    name = level.strip().upper()
    if name not in levels:
        raise ValueError(f"Unknown log level: {level!r}")
    return levels[name]


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        filename=path,
        when="midnight",
        interval=1,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"  # web.log.2024-01-10
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    process_name: str,
    console_level: int | str = logging.INFO,
    file_level: int | str | None = None,
    log_dir: Path | None = None,
) -> logging.Logger:
    """Initialise logging for a process

    Safe to call again (the web lifespan does, once settings are loaded):
    handlers from the previous call are closed and replaced.

    Args:
        process_name: "web" or "scripts" (other names log under logs/)
        console_level: console level, number or name
        file_level: file level (default: console_level)
        log_dir: override for the process log directory

    Returns:
        Configured root Logger
    """
    console_level = resolve_level(console_level)
    file_level = console_level if file_level is None else resolve_level(file_level)

    log_file = get_log_file_path(process_name, log_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    register_log_file = log_file.with_name(f"{process_name}.register.log")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()

    formatter = ContextFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_file_handler(log_file, file_level, formatter))

    register_handler = _file_handler(register_log_file, logging.INFO, formatter)
    register_handler.addFilter(logging.Filter(REGISTER_LOGGER))
    root_logger.addHandler(register_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialised: {process_name}",
        extra={
            "console": logging.getLevelName(console_level),
            "file": logging.getLevelName(file_level),
            "log_dir": str(log_file.parent),
        },
    )
    return root_logger


def get_log_file_path(process_name: str, log_dir: Path | None = None) -> Path:
    """Main log file of a process"""
    if log_dir is None:
        log_dir = PROCESS_LOG_DIRS.get(process_name, Paths.LOGS_DIR)
    return log_dir / f"{process_name}.log"
