"""
Mapping between in-memory settings and their stored document shape.

Documents are plain JSON objects: dataclasses become dicts, enums their
value, datetimes ISO-8601 strings, sets sorted lists.
``from_document(to_document(s)) == s`` holds for every normalized record,
so nothing is lost across a save/load.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping

from guildconf.datatypes.guild_settings import (
    GuildSettings,
    RoleGrantRule,
    RulesAnnouncement,
    RulesSection,
    TranslationRoute,
)


def dump_value(value: Any) -> Any:
    """Recursively convert ``value`` into JSON-compatible Python objects."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: dump_value(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {key: dump_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [dump_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        # Unordered input gets a stable order
        return sorted((dump_value(item) for item in value), key=str)
    return value


def to_document(settings: GuildSettings) -> Dict[str, Any]:
    """Convert a settings record into its storage document."""
    return dump_value(settings)


def _load_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _load_rules_announcement(doc: Mapping[str, Any]) -> RulesAnnouncement:
    fields = dict(doc)
    fields["sections"] = [RulesSection(**section) for section in doc.get("sections", [])]
    fields["last_sent_at"] = _load_datetime(doc.get("last_sent_at"))
    return RulesAnnouncement(**fields)


def from_document(doc: Mapping[str, Any]) -> GuildSettings:
    """
    Rebuild a settings record from a storage document.

    The document is expected to be the output of :func:`to_document`; the
    caller still runs the result through the normalizer, which absorbs any
    drift between stored documents and the current schema.

    Raises:
        TypeError / ValueError: If the document has an unexpected shape.
    """
    fields = dict(doc)
    fields["language_roles"] = dict(doc.get("language_roles", {}))
    fields["required_role_ids"] = list(doc.get("required_role_ids", []))
    fields["support_role_ids"] = list(doc.get("support_role_ids", []))
    fields["log_events"] = list(doc.get("log_events", []))
    fields["translation_routes"] = [
        TranslationRoute(id=r["id"], name=r["name"], channel_map=dict(r.get("channel_map", {})))
        for r in doc.get("translation_routes", [])
    ]
    fields["role_grant_rules"] = [RoleGrantRule(**r) for r in doc.get("role_grant_rules", [])]
    if "rules_announcement" in doc:
        fields["rules_announcement"] = _load_rules_announcement(doc["rules_announcement"])
    return GuildSettings(**fields)


def encode_document(doc: Mapping[str, Any]) -> str:
    """Serialize a document to the JSON text stored in the database."""
    return json.dumps(doc, ensure_ascii=False, allow_nan=False)


def decode_document(text: str) -> Dict[str, Any]:
    """
    Parse stored JSON text back into a document.

    Raises:
        ValueError: If the text is not a JSON object.
    """
    doc = json.loads(text)
    if not isinstance(doc, dict):
        raise ValueError(f"Stored settings document is a {type(doc).__name__}, expected an object")
    return doc
