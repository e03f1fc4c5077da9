"""
Structural validation of normalized guild settings.

The stored document shape is described by ``settings_schema`` and checked
with jsonschema; uniqueness of sub-record ids, which JSON Schema cannot
express, is checked separately. ``validate`` never raises; it returns every
violation it finds so a caller can report them all at once. An empty list
means the record may be persisted.
"""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft7Validator, ValidationError

from guildconf.datatypes.discord_datatypes import SNOWFLAKE_PATTERN
from guildconf.datatypes.guild_settings import (
    LANGUAGE_CODES,
    LOG_EVENT_NAMES,
    MAX_BUTTON_EMOJI_LENGTH,
    MAX_BUTTON_TEXT_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_ENTRY_NAME_LENGTH,
    MAX_FOOTER_LENGTH,
    MAX_MESSAGE_LENGTH,
    MAX_PREFIX_LENGTH,
    MAX_RULE_DESCRIPTION_LENGTH,
    MAX_SECTION_NAME_LENGTH,
    MAX_SECTION_VALUE_LENGTH,
    MAX_TITLE_LENGTH,
    ROLE_GRANT_CONDITIONS,
    GuildSettings,
)
from guildconf.settings.serialization import to_document
from guildconf.util.logger import get_logger

logger = get_logger("settings_validator")

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
SNOWFLAKE = SNOWFLAKE_PATTERN.pattern
SNOWFLAKE_OR_EMPTY = r"^(\d{17,20})?$"

_snowflake = {"type": "string", "pattern": SNOWFLAKE}
_optional_snowflake = {"type": ["string", "null"], "pattern": SNOWFLAKE}


def _text(max_length: int, min_length: int = 0) -> Dict[str, Any]:
    return {"type": "string", "minLength": min_length, "maxLength": max_length}


_trigger_map = {
    "type": "object",
    "additionalProperties": _text(MAX_MESSAGE_LENGTH, 1),
}

settings_schema = {
    "type": "object",
    "properties": {
        "guild_id": _snowflake,
        "prefix": _text(MAX_PREFIX_LENGTH, 1),
        "welcome_enabled": {"type": "boolean"},
        "welcome_message": _text(MAX_MESSAGE_LENGTH),
        "goodbye_enabled": {"type": "boolean"},
        "goodbye_message": _text(MAX_MESSAGE_LENGTH),
        "welcome_channel_id": _optional_snowflake,
        "language_roles": {
            "type": "object",
            "propertyNames": {"enum": list(LANGUAGE_CODES)},
            "additionalProperties": {"type": "string", "pattern": SNOWFLAKE_OR_EMPTY},
        },
        "required_role_ids": {"type": "array", "items": _snowflake, "uniqueItems": True},
        "ticket_category_id": _optional_snowflake,
        "ticket_log_channel_id": _optional_snowflake,
        "ticket_open_message_id": _optional_snowflake,
        "support_role_ids": {"type": "array", "items": _snowflake, "uniqueItems": True},
        "log_channel_id": _optional_snowflake,
        "log_events": {
            "type": "array",
            "items": {"type": "string", "enum": sorted(LOG_EVENT_NAMES)},
            "uniqueItems": True,
        },
        "translation_routes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": _text(MAX_ENTRY_NAME_LENGTH, 1),
                    "channel_map": {"type": "object", "additionalProperties": _snowflake},
                },
                "required": ["id", "name", "channel_map"],
            },
        },
        "role_grant_rules": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": _text(MAX_ENTRY_NAME_LENGTH, 1),
                    "target_role_id": _snowflake,
                    "condition": {"type": "string", "enum": sorted(ROLE_GRANT_CONDITIONS)},
                    "description": _text(MAX_RULE_DESCRIPTION_LENGTH),
                    "enabled": {"type": "boolean"},
                    "trigger_data": {"type": "object"},
                },
                "required": ["id", "name", "target_role_id", "condition", "description", "enabled", "trigger_data"],
            },
        },
        "rules_announcement": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "title": _text(MAX_TITLE_LENGTH),
                "description": _text(MAX_DESCRIPTION_LENGTH),
                "color": {"type": "string", "pattern": HEX_COLOR_PATTERN},
                "sections": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": _text(MAX_SECTION_NAME_LENGTH, 1),
                            "value": _text(MAX_SECTION_VALUE_LENGTH, 1),
                            "inline": {"type": "boolean"},
                        },
                        "required": ["name", "value"],
                    },
                },
                "footer_text": _text(MAX_FOOTER_LENGTH),
                "show_thumbnail": {"type": "boolean"},
                "show_timestamp": {"type": "boolean"},
                "accept_button_text": _text(MAX_BUTTON_TEXT_LENGTH),
                "decline_button_text": _text(MAX_BUTTON_TEXT_LENGTH),
                "accept_button_emoji": _text(MAX_BUTTON_EMOJI_LENGTH),
                "decline_button_emoji": _text(MAX_BUTTON_EMOJI_LENGTH),
                "auto_send": {"type": "boolean"},
                "target_channel_id": _optional_snowflake,
                "last_message_id": _optional_snowflake,
                "last_sent_at": {"type": ["string", "null"]},
                "last_channel_id": _optional_snowflake,
            },
        },
        "custom_commands": _trigger_map,
        "auto_reacts": _trigger_map,
        "auto_replies": _trigger_map,
    },
    "required": ["guild_id", "prefix"],
}

"""JSON schema of a stored guild settings document."""


_settings_validator = Draft7Validator(settings_schema)


def _format_path(error: ValidationError) -> str:
    path = ""
    for part in error.absolute_path:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "settings"


def _describe(error: ValidationError) -> str:
    """Turn a jsonschema error into a one-line violation message."""
    path = _format_path(error)
    instance = error.instance
    if error.validator == "pattern":
        if error.validator_value in (SNOWFLAKE, SNOWFLAKE_OR_EMPTY):
            return f"{path} must be a valid Discord ID: {instance!r}"
        if error.validator_value == HEX_COLOR_PATTERN:
            return f"{path} must be a hex color (#RRGGBB): {instance!r}"
    if error.validator == "maxLength":
        return f"{path} must be at most {error.validator_value} characters (got {len(instance)})."
    if error.validator == "minLength":
        return f"{path} must not be empty."
    if error.validator == "enum":
        return f"{path} has an invalid value: {instance!r}"
    return f"{path}: {error.message}"


def _duplicate_ids(doc: Dict[str, Any], field_name: str) -> List[str]:
    errors: List[str] = []
    seen: set[str] = set()
    for index, entry in enumerate(doc.get(field_name, [])):
        entry_id = entry.get("id") if isinstance(entry, dict) else None
        if not isinstance(entry_id, str) or not entry_id:
            continue
        if entry_id in seen:
            errors.append(f"{field_name}[{index}] reuses id {entry_id!r}.")
        seen.add(entry_id)
    return errors


def validate(settings: GuildSettings) -> List[str]:
    """
    Check the structural and format invariants of a settings record.

    Args:
        settings: A normalized settings record.

    Returns:
        List[str]: Human-readable violations; empty when the record is valid.
    """
    doc = to_document(settings)
    errors = [
        _describe(error)
        for error in sorted(_settings_validator.iter_errors(doc), key=lambda e: [str(p) for p in e.absolute_path])
    ]
    errors.extend(_duplicate_ids(doc, "translation_routes"))
    errors.extend(_duplicate_ids(doc, "role_grant_rules"))

    if errors:
        logger.debug("[VALIDATOR] %d violation(s) for guild %s", len(errors), settings.guild_id)
    return errors
