"""
Field-by-field merge of a partial patch into a current settings record.

- A field the patch does not mention keeps its current value.
- ``language_roles`` and ``rules_announcement`` merge key by key.
- Lists and the trigger maps are replaced wholesale.
- Every other field takes the patch value.

The result is a raw document; run it through the normalizer before use.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, Mapping

from guildconf.datatypes.guild_settings import NESTED_MAP_FIELDS, GuildSettings
from guildconf.settings.serialization import dump_value
from guildconf.util.logger import get_logger

logger = get_logger("settings_merger")

PATCHABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(GuildSettings) if f.name != "guild_id"
)


def merge(current: GuildSettings | Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Combine ``current`` with ``patch`` (patch wins per field).

    Args:
        current: The committed record (or its document).
        patch: Only the fields the caller wants to change.

    Returns:
        Dict[str, Any]: The merged raw document.

    Raises:
        TypeError: If ``patch`` is not a mapping.
    """
    if not isinstance(patch, Mapping):
        raise TypeError(f"Settings patch must be a mapping, got {type(patch).__name__}")

    merged: Dict[str, Any] = dict(dump_value(current))

    for key, value in patch.items():
        if key == "guild_id":
            if value is not None and str(value) != str(merged.get("guild_id")):
                logger.warning(
                    "[MERGER] Ignoring attempt to change guild_id %s -> %s",
                    merged.get("guild_id"), value
                )
            continue
        if key not in PATCHABLE_FIELDS:
            logger.warning("[MERGER] Unknown field %s for guild %s", key, merged.get("guild_id"))
            continue

        value = dump_value(value)
        existing = merged.get(key)
        if key in NESTED_MAP_FIELDS and isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = {**existing, **value}
        else:
            merged[key] = value

    return merged
