"""
Shared pytest fixtures

Temporary directories, settings files, an initialised SQLite database and
a deterministic clock for entered_at ordering.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.register import RegisterService, SchemaRegistry


class FakeClock:
    """Deterministic UTC clock

    Every call returns the current instant and then advances by step, so
    consecutive appends get strictly increasing entered_at values.
    """

    def __init__(
        self,
        start: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def set(self, instant: datetime) -> None:
        self.now = instant


@pytest.fixture
def temp_dir() -> Path:
    """OS-independent temporary directory"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """settings.yaml pointing at a database inside temp_dir"""
    content = f"""# test settings.yaml
database:
  path: {(temp_dir / "register.db").as_posix()}

logging:
  level: DEBUG

web:
  host: 127.0.0.1
  port: 8100
"""
    settings_path = temp_dir / "settings.yaml"
    settings_path.write_text(content, encoding="utf-8")
    return settings_path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def schemas() -> SchemaRegistry:
    """Built-in register schemas"""
    return SchemaRegistry.default()


@pytest_asyncio.fixture
async def db(temp_dir: Path):
    """Connected adapter with the register schema initialised"""
    adapter = SQLiteAdapter(temp_dir / "register.db")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def service(db: SQLiteAdapter, schemas: SchemaRegistry, clock: FakeClock) -> RegisterService:
    """RegisterService over the test database"""
    return RegisterService(db, schemas, clock)
