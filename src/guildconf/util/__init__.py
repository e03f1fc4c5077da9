"""Shared utilities (logging) for guildconf."""
