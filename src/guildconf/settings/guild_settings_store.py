"""
Persistent per-guild configuration store.

Command handlers and the dashboard only ever call two methods:

- ``get_settings(guild_id)``: always returns a complete, normalized record.
  An unseen guild gets a default record that is persisted immediately.
  Storage failures degrade to an in-memory default record.
- ``save_settings(guild_id, patch)``: merges ``patch`` into the committed
  record under the guild's lock, normalizes and validates the result, and
  persists it. Raises ValidationError or StorageError; never persists a
  partial or invalid record. A stored document that cannot be decoded is
  replaced by the saved record.

Saves for one guild are serialised; different guilds proceed in parallel.
Reads do not take the lock and may observe the record before or after an
in-flight save.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

import discord

from guildconf.configuration.app_configuration import AppConfig
from guildconf.database.db_connection import ConnectionManager
from guildconf.database.db_perf_mon import DatabasePerformanceMonitor
from guildconf.datatypes.discord_datatypes import GuildID
from guildconf.datatypes.guild_settings import GuildSettings
from guildconf.errors import CorruptDocumentError, StorageError, ValidationError
from guildconf.settings.lock_registry import LockRegistry
from guildconf.settings.merger import merge
from guildconf.settings.normalizer import default_settings, normalize
from guildconf.settings.repositories.guild_settings_repo import GuildSettingsRepository
from guildconf.settings.serialization import from_document, to_document
from guildconf.settings.validator import validate
from guildconf.util.logger import get_logger

logger = get_logger("guild_settings_store")

GuildRef = Union[discord.Guild, GuildID, str, int]


def _guild_key(guild: GuildRef) -> str:
    """Canonical string id of a guild reference. Raises ValueError if malformed."""
    if isinstance(guild, discord.Guild):
        return str(GuildID.from_guild(guild))
    return str(GuildID(guild))


class SettingsStore:
    """
    Orchestrates normalizer, merger, validator, lock registry and repository.

    Lifecycle:
        1. ``await store.open()`` at process start (or ``async with store``)
        2. ``get_settings`` / ``save_settings`` from any task
        3. ``await store.close()`` at shutdown
    """

    def __init__(
        self,
        connection: ConnectionManager,
        repository: Optional[GuildSettingsRepository] = None,
        lock_registry: Optional[LockRegistry] = None,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self.connection = connection
        self.repository = repository or GuildSettingsRepository(connection)
        self.locks = lock_registry or LockRegistry()
        self.lock_timeout = lock_timeout

    @classmethod
    def from_config(cls, config: AppConfig) -> "SettingsStore":
        """Build a store wired to the database described by ``config``."""
        connection = ConnectionManager(
            config.database_path,
            operation_timeout=config.operation_timeout,
            reconnect_attempts=config.reconnect_attempts,
            perf_monitor=DatabasePerformanceMonitor(config.slow_query_threshold_ms),
        )
        return cls(connection, lock_timeout=config.lock_timeout)

    # ========== Lifecycle ==========

    async def open(self) -> None:
        """Open the database connection. Raises StorageError if unreachable."""
        await self.connection.open()
        logger.info("[SETTINGS STORE] Opened")

    async def close(self) -> None:
        """Close the database connection."""
        await self.connection.close()
        logger.info("[SETTINGS STORE] Closed")

    async def __aenter__(self) -> "SettingsStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ========== Core API ==========

    async def get_settings(self, guild_id: GuildRef) -> GuildSettings:
        """
        Retrieve a guild's settings, creating and persisting defaults if missing.

        Args:
            guild_id: The guild (or its id) to fetch settings for.

        Returns:
            GuildSettings: A complete, normalized record.

        Raises:
            ValueError: If ``guild_id`` is not a valid Discord ID.
        """
        gid = _guild_key(guild_id)
        try:
            document = await self.repository.load_raw(gid)
            if document is None:
                document = await self._write_through_defaults(gid)
        except StorageError as exc:
            logger.error(
                "[SETTINGS STORE] Falling back to default settings for guild %s: %s",
                gid, exc
            )
            return default_settings(gid)

        return self._from_storage(gid, document)

    async def save_settings(self, guild_id: GuildRef, patch: Mapping[str, Any]) -> GuildSettings:
        """
        Merge ``patch`` into the guild's settings and persist the result.

        Args:
            guild_id: The guild to update.
            patch: Only the fields to change, e.g. ``{"prefix": "!"}``.

        Returns:
            GuildSettings: The merged, normalized record that was persisted.

        Raises:
            ValueError: If ``guild_id`` is not a valid Discord ID.
            TypeError: If ``patch`` is not a mapping.
            ValidationError: If the merged record is invalid; nothing is written.
            StorageError: If the record cannot be loaded or persisted.
            LockTimeoutError: If a lock timeout is configured and expires.
        """
        if not isinstance(patch, Mapping):
            raise TypeError(f"Settings patch must be a mapping, got {type(patch).__name__}")
        gid = _guild_key(guild_id)
        logger.debug("[SETTINGS STORE] Saving fields %s for guild %s", sorted(map(str, patch)), gid)

        async with self.locks.hold(gid, self.lock_timeout):
            try:
                document = await self.repository.load_raw(gid)
            except CorruptDocumentError as exc:
                logger.error(
                    "[SETTINGS STORE] Replacing unreadable settings for guild %s with defaults: %s",
                    gid, exc
                )
                document = None
            current = self._from_storage(gid, document) if document is not None else default_settings(gid)

            settings = normalize(merge(current, patch), guild_id=gid)

            violations = validate(settings)
            if violations:
                logger.warning(
                    "[SETTINGS STORE] Rejected update for guild %s: %s",
                    gid, "; ".join(violations)
                )
                raise ValidationError(violations, guild_id=gid)

            await self.repository.upsert(gid, to_document(settings))

        logger.info("[SETTINGS STORE] Saved settings for guild %s", gid)
        return settings

    async def list_guild_ids(self) -> List[str]:
        """Return the ids of every guild with stored settings."""
        return await self.repository.list_guild_ids()

    # ========== Private Methods ==========

    async def _write_through_defaults(self, gid: str) -> Dict[str, Any]:
        document = to_document(default_settings(gid))
        if await self.repository.insert_if_absent(gid, document):
            logger.info("[SETTINGS STORE] Created default settings for guild %s", gid)
            return document

        # Another task stored the guild between our read and insert
        stored = await self.repository.load_raw(gid)
        return stored if stored is not None else document

    @staticmethod
    def _from_storage(gid: str, document: Mapping[str, Any]) -> GuildSettings:
        try:
            settings = from_document(document)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.warning(
                "[SETTINGS STORE] Stored document for guild %s does not match the schema (%s), normalizing raw",
                gid, exc
            )
            return normalize(document, guild_id=gid)
        return normalize(settings, guild_id=gid)
