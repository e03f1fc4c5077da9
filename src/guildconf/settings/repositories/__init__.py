"""Repository layer for guild settings database access."""
from guildconf.settings.repositories.guild_settings_repo import GuildSettingsRepository

__all__ = ["GuildSettingsRepository"]
