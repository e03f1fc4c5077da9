"""
guildconf - persistent per-guild configuration for Discord bots

Stores one settings record per guild and hands it to command handlers and
the dashboard through two calls:

- ``SettingsStore.get_settings(guild_id)``: complete, normalized settings;
  unseen guilds get defaults that are persisted on first read.
- ``SettingsStore.save_settings(guild_id, patch)``: merges a partial update
  under a per-guild lock, validates it and persists it.

Usage:
    from guildconf import SettingsStore
    from guildconf.configuration.app_configuration import app_config

    async with SettingsStore.from_config(app_config) as store:
        settings = await store.get_settings(guild.id)
        await store.save_settings(guild.id, {"prefix": "!"})
"""

from guildconf.datatypes.guild_settings import GuildSettings
from guildconf.errors import (
    CorruptDocumentError,
    GuildConfError,
    LockTimeoutError,
    StorageError,
    ValidationError,
)
from guildconf.settings.guild_settings_store import SettingsStore

__all__ = [
    "GuildSettings",
    "SettingsStore",
    "GuildConfError",
    "ValidationError",
    "StorageError",
    "CorruptDocumentError",
    "LockTimeoutError",
]
