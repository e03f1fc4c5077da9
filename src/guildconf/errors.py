"""Typed error taxonomy for the guild settings store.

Callers of ``save_settings`` catch the specific subclasses; ``get_settings``
never lets :class:`StorageError` escape.
"""

from __future__ import annotations

from typing import Iterable, List

__all__ = [
    "GuildConfError",
    "ValidationError",
    "StorageError",
    "CorruptDocumentError",
    "LockTimeoutError",
]


class GuildConfError(Exception):
    """Base class for every error raised by guildconf."""
    pass


class ValidationError(GuildConfError):
    """A merged record violates one or more structural constraints.

    Attributes:
        violations: Every violated constraint, in the order they were found.
    """

    def __init__(self, violations: Iterable[str], guild_id: str | None = None) -> None:
        self.violations: List[str] = list(violations)
        self.guild_id = guild_id
        prefix = f"Invalid settings for guild {guild_id}" if guild_id else "Invalid settings"
        super().__init__(f"{prefix}: {'; '.join(self.violations)}")


class StorageError(GuildConfError):
    """The durable store is unreachable or rejected a write after the reconnect attempt."""
    pass


class CorruptDocumentError(StorageError):
    """A stored settings document could not be decoded; the store itself is reachable."""

    def __init__(self, guild_id: str) -> None:
        self.guild_id = guild_id
        super().__init__(f"Corrupt settings document for guild {guild_id}")


class LockTimeoutError(GuildConfError):
    """A per-guild lock could not be acquired within the configured bound."""

    def __init__(self, key: str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.2f}s waiting for the lock on {key}")
