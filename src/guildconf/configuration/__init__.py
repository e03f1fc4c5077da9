"""
Configuration management for guildconf.

- **app_configuration.py**: YAML configuration loader (``config/app_config.yml``)
  with ``.env`` support. Provides the database path, storage operation
  timeout, reconnect attempts, slow-query threshold and save lock timeout.
  Falls back to defaults on missing or malformed files.
"""
