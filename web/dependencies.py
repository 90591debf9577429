"""
Dependency injection

Dependency management with FastAPI Depends.
"""

from functools import lru_cache
from pathlib import Path
from typing import AsyncGenerator

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from core.register import SchemaRegistry, load_register_schemas


def get_app_settings() -> Settings:
    """Application settings"""
    return get_settings()


@lru_cache(maxsize=4)
def _load_schemas(registers_file: Path | None) -> SchemaRegistry:
    return load_register_schemas(registers_file)


def get_schemas() -> SchemaRegistry:
    """Register schemas (loaded once per registers file)"""
    return _load_schemas(get_settings().registers_file)


def clear_schema_cache() -> None:
    """Forget loaded register schemas (tests)"""
    _load_schemas.cache_clear()


async def get_db() -> AsyncGenerator[SQLiteAdapter, None]:
    """DB session (read-only)

    Used by every query route.
    """
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=True) as db:
        yield db


async def get_db_write() -> AsyncGenerator[SQLiteAdapter, None]:
    """DB session (writable)

    Used for ledger creation, appends and annotations.
    """
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=False) as db:
        yield db
