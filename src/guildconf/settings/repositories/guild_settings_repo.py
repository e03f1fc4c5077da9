"""
Repository for the guild_settings table.

Each row holds one guild's full settings document as JSON text together
with its creation and last-update timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import aiosqlite

from guildconf.database.db_connection import ConnectionManager
from guildconf.errors import CorruptDocumentError
from guildconf.settings.serialization import decode_document, encode_document
from guildconf.util.logger import get_logger

logger = get_logger("guild_settings_repo")


@dataclass
class GuildSettingsRow:
    """Raw DB row for a guild's settings document."""
    guild_id: str
    document: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class GuildSettingsRepository:
    """Load and upsert settings documents through the shared connection."""

    def __init__(self, connection: ConnectionManager) -> None:
        self.connection = connection

    async def get_row(self, guild_id: str) -> Optional[GuildSettingsRow]:
        """
        Fetch a guild's row, or None when the guild has never been stored.

        Raises:
            CorruptDocumentError: If the stored document cannot be decoded.
            StorageError: If the store is unreachable.
        """
        async def _select(conn: aiosqlite.Connection):
            async with conn.execute(
                """
                SELECT guild_id, document, created_at, updated_at
                FROM guild_settings
                WHERE guild_id = ?
                """,
                (guild_id,),
            ) as cursor:
                return await cursor.fetchone()

        row = await self.connection.run("load_settings", _select)
        if row is None:
            return None

        try:
            return GuildSettingsRow(
                guild_id=row[0],
                document=decode_document(row[1]),
                created_at=datetime.fromisoformat(row[2]),
                updated_at=datetime.fromisoformat(row[3]),
            )
        except (TypeError, ValueError) as exc:
            logger.error("[GUILD SETTINGS REPO] Corrupt settings document for guild %s: %s", guild_id, exc)
            raise CorruptDocumentError(guild_id) from exc

    async def load_raw(self, guild_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored document for a guild, or None when absent."""
        row = await self.get_row(guild_id)
        return None if row is None else row.document

    async def upsert(self, guild_id: str, document: Mapping[str, Any]) -> bool:
        """
        Create the guild's row or overwrite its document, stamping ``updated_at``.

        Returns:
            True once the write is committed.

        Raises:
            StorageError: If the write cannot be committed.
        """
        payload = encode_document(document)
        now = _utcnow()

        async def _upsert(conn: aiosqlite.Connection) -> None:
            await conn.execute(
                """
                INSERT INTO guild_settings (guild_id, document, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                (guild_id, payload, now, now),
            )

        await self.connection.run("upsert_settings", _upsert, write=True)
        logger.debug("[GUILD SETTINGS REPO] Persisted guild %s", guild_id)
        return True

    async def insert_if_absent(self, guild_id: str, document: Mapping[str, Any]) -> bool:
        """
        Store ``document`` only when the guild has no row yet.

        Returns:
            True if a row was created, False if one already existed.
        """
        payload = encode_document(document)
        now = _utcnow()

        async def _insert(conn: aiosqlite.Connection) -> int:
            cursor = await conn.execute(
                """
                INSERT OR IGNORE INTO guild_settings (guild_id, document, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (guild_id, payload, now, now),
            )
            return cursor.rowcount

        return await self.connection.run("insert_default_settings", _insert, write=True) == 1

    async def list_guild_ids(self) -> List[str]:
        """Return every stored guild id, most recently updated first."""
        async def _select(conn: aiosqlite.Connection):
            async with conn.execute(
                "SELECT guild_id FROM guild_settings ORDER BY updated_at DESC"
            ) as cursor:
                return await cursor.fetchall()

        rows = await self.connection.run("list_guilds", _select)
        return [row[0] for row in rows]
