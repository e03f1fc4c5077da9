"""Tests for the guild settings repository."""

import asyncio

import pytest
import pytest_asyncio

from guildconf.errors import CorruptDocumentError, StorageError
from guildconf.settings.repositories import GuildSettingsRepository

GUILD_ID = "111111111111111111"
OTHER_GUILD_ID = "222222222222222222"


@pytest_asyncio.fixture
async def repo(connection):
    return GuildSettingsRepository(connection)


class TestGuildSettingsRepository:
    """CRUD behaviour of the document table."""

    @pytest.mark.asyncio
    async def test_missing_guild_returns_none(self, repo):
        assert await repo.get_row(GUILD_ID) is None
        assert await repo.load_raw(GUILD_ID) is None

    @pytest.mark.asyncio
    async def test_upsert_then_load(self, repo):
        assert await repo.upsert(GUILD_ID, {"guild_id": GUILD_ID, "prefix": "!"}) is True

        row = await repo.get_row(GUILD_ID)
        assert row.guild_id == GUILD_ID
        assert row.document == {"guild_id": GUILD_ID, "prefix": "!"}
        assert row.created_at == row.updated_at

    @pytest.mark.asyncio
    async def test_upsert_overwrites_document_and_keeps_created_at(self, repo):
        await repo.upsert(GUILD_ID, {"prefix": "!"})
        first = await repo.get_row(GUILD_ID)
        await asyncio.sleep(0.01)
        await repo.upsert(GUILD_ID, {"prefix": "?"})
        second = await repo.get_row(GUILD_ID)

        assert second.document == {"prefix": "?"}
        assert second.created_at == first.created_at
        assert second.updated_at > first.updated_at

    @pytest.mark.asyncio
    async def test_insert_if_absent_only_inserts_once(self, repo):
        assert await repo.insert_if_absent(GUILD_ID, {"prefix": "."}) is True
        assert await repo.insert_if_absent(GUILD_ID, {"prefix": "!"}) is False
        assert await repo.load_raw(GUILD_ID) == {"prefix": "."}

    @pytest.mark.asyncio
    async def test_list_guild_ids_most_recent_first(self, repo):
        await repo.upsert(GUILD_ID, {})
        await asyncio.sleep(0.01)
        await repo.upsert(OTHER_GUILD_ID, {})
        assert await repo.list_guild_ids() == [OTHER_GUILD_ID, GUILD_ID]

    @pytest.mark.asyncio
    async def test_corrupt_document_raises_corrupt_document_error(self, repo, connection):
        async def _corrupt(conn):
            await conn.execute(
                "INSERT INTO guild_settings VALUES (?, ?, ?, ?)",
                (GUILD_ID, "[not, an, object", "2024-01-01T00:00:00", "2024-01-01T00:00:00"),
            )

        await connection.run("corrupt", _corrupt, write=True)
        with pytest.raises(CorruptDocumentError) as excinfo:
            await repo.load_raw(GUILD_ID)
        assert isinstance(excinfo.value, StorageError)
        assert excinfo.value.guild_id == GUILD_ID

    @pytest.mark.asyncio
    async def test_unicode_survives(self, repo):
        await repo.upsert(GUILD_ID, {"welcome_message": "Bienvenue 🇫🇷 {user}"})
        assert (await repo.load_raw(GUILD_ID))["welcome_message"] == "Bienvenue 🇫🇷 {user}"
