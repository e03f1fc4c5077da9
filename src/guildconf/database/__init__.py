"""
Database package for guildconf.

Provides the single aiosqlite connection with its connect/reconnect state
machine, the schema, and operation timing.

Public API:
    - ConnectionManager: Owner of the shared connection
    - ConnectionState: DISCONNECTED / CONNECTING / CONNECTED
"""
from guildconf.database.db_connection import ConnectionManager, ConnectionState

__all__ = ["ConnectionManager", "ConnectionState"]
