"""
Pytest configuration and fixtures for guildconf tests.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from guildconf.database.db_connection import ConnectionManager  # noqa: E402
from guildconf.settings.guild_settings_store import SettingsStore  # noqa: E402


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "guild_settings.db"


@pytest_asyncio.fixture
async def connection(db_path: Path):
    """An open connection manager on a fresh database."""
    manager = ConnectionManager(db_path, operation_timeout=5.0)
    await manager.open()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def store(db_path: Path):
    """An open settings store on a fresh database."""
    settings_store = SettingsStore(ConnectionManager(db_path, operation_timeout=5.0))
    await settings_store.open()
    yield settings_store
    await settings_store.close()
