"""
Type-safe wrapper classes for Discord identifiers.

Every guild, channel, role and message reference stored in a settings record
is a Discord snowflake: a string of 17 to 20 decimal digits. The wrappers
below validate that format once, at the boundary, so the rest of the store
can treat IDs as plain strings.
"""

from __future__ import annotations

import re
from typing import Any, Union

import discord

SNOWFLAKE_PATTERN = re.compile(r"^\d{17,20}$")


def is_snowflake(value: Any) -> bool:
    """
    Check whether ``value`` is a string in the platform ID format.

    Args:
        value: Any value.

    Returns:
        bool: True for a ``str`` of 17-20 decimal digits, False otherwise.
    """
    return isinstance(value, str) and SNOWFLAKE_PATTERN.match(value) is not None


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    Snowflakes are 64-bit integers, but are stored and compared as strings so
    they round-trip through JSON documents unchanged.

    Attributes:
        _value (str): The snowflake ID as a 17-20 digit string.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> str(gid)
        '123456789012345678'
        >>> gid == "123456789012345678"
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Initialize from a string, int, or another snowflake of the same kind.

        Args:
            value: The snowflake ID.

        Raises:
            ValueError: If the value is not in the platform ID format.
        """
        if isinstance(value, type(self)):
            self._value = value._value
            return

        if isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool: {value}")
        if isinstance(value, int):
            candidate = str(value)
        elif isinstance(value, str):
            candidate = value.strip()
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

        if not is_snowflake(candidate):
            raise ValueError(f"{type(self).__name__} must be 17-20 digits, got {value!r}")
        self._value = candidate

    @classmethod
    def from_int(cls, value: int):
        """Create an ID from an integer snowflake."""
        return cls(value)

    def to_int(self) -> int:
        """
        Convert to an integer for Discord API calls.

        Returns:
            int: The snowflake ID as an integer.
        """
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class GuildID(Snowflake):
    """Type-safe wrapper for Discord guild snowflake IDs."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        """
        Create a GuildID from a Discord Guild object.

        Args:
            guild: The Discord Guild to extract the ID from.

        Returns:
            GuildID: A new GuildID instance.
        """
        return cls(guild.id)


class ChannelID(Snowflake):
    """Type-safe wrapper for Discord channel (and category) snowflake IDs."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.GuildChannel) -> "ChannelID":
        """Create a ChannelID from a guild channel or category."""
        return cls(channel.id)


class RoleID(Snowflake):
    """Type-safe wrapper for Discord role snowflake IDs."""

    __slots__ = ()

    @classmethod
    def from_role(cls, role: discord.Role) -> "RoleID":
        """Create a RoleID from a Discord Role object."""
        return cls(role.id)


class MessageID(Snowflake):
    """Type-safe wrapper for Discord message snowflake IDs."""

    __slots__ = ()

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageID":
        """Create a MessageID from a Discord Message object."""
        return cls(message.id)
