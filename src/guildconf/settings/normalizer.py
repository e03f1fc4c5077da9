"""
Normalization of raw guild settings into the canonical record shape.

``normalize`` accepts anything (a stored document, a merged patch, an already
normalized :class:`GuildSettings`, or garbage) and returns a complete record:
wrong-typed or missing fields take their defaults, malformed sub-records are
dropped, and nested maps are filtered down to well-typed entries.

The function is deterministic and idempotent. IDs generated for sub-records
that lack one are derived from the guild, list position and entry name, so
normalizing the same input twice yields the same IDs.

Format problems that a caller must hear about (an unknown rule condition, a
channel reference that is not a snowflake) are left in place for the
validator instead of being silently repaired.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import discord

from guildconf.datatypes.discord_datatypes import ChannelID, MessageID, RoleID, Snowflake, is_snowflake
from guildconf.datatypes.guild_settings import (
    DEFAULT_CONDITION,
    DEFAULT_GOODBYE_MESSAGE,
    DEFAULT_PREFIX,
    DEFAULT_WELCOME_MESSAGE,
    LANGUAGE_CODES,
    GuildSettings,
    RoleGrantRule,
    RulesAnnouncement,
    RulesSection,
    TranslationRoute,
    default_rules_sections,
)
from guildconf.settings.serialization import dump_value
from guildconf.util.logger import get_logger

logger = get_logger("settings_normalizer")

UNKNOWN_GUILD_ID = "unknown"

# Namespace for IDs generated for sub-records that arrive without one
_GENERATED_ID_NAMESPACE = uuid.UUID("6f0e5a5c-3f4e-4d8e-9a57-2b0c1d7e9f31")


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def _string(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) else default


def _bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _discord_reference(value: Any) -> Optional[Snowflake]:
    if isinstance(value, discord.Role):
        return RoleID.from_role(value)
    if isinstance(value, discord.abc.GuildChannel):
        return ChannelID.from_channel(value)
    if isinstance(value, discord.Message):
        return MessageID.from_message(value)
    return None


def _reference(value: Any) -> Optional[str]:
    """Coerce a channel/role/message reference, keeping its text for validation."""
    try:
        wrapped = _discord_reference(value)
    except ValueError:
        return None
    if wrapped is not None:
        return str(wrapped)
    if isinstance(value, Snowflake):
        return str(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _items(value: Any) -> Optional[List[Any]]:
    """List form of a list, tuple or set. Sets are sorted so the order is stable."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return None


def _id_list(value: Any) -> List[str]:
    items = _items(value)
    if items is None:
        return []
    ids: List[str] = []
    for item in items:
        ref = _reference(item)
        if is_snowflake(ref) and ref not in ids:
            ids.append(ref)
    return ids


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    # Naive timestamps are taken as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _json_value(value: Any) -> tuple[bool, Any]:
    """Return ``(True, cleaned)`` when ``value`` can be stored as JSON."""
    if value is None or isinstance(value, (str, bool, int)):
        return True, value
    if isinstance(value, float):
        return (True, value) if math.isfinite(value) else (False, None)
    if isinstance(value, list):
        cleaned = []
        for item in value:
            ok, item = _json_value(item)
            if ok:
                cleaned.append(item)
        return True, cleaned
    if isinstance(value, Mapping):
        return True, _json_map(value)
    return False, None


def _json_map(value: Any) -> Dict[str, Any]:
    if not isinstance(value, Mapping):
        return {}
    cleaned: Dict[str, Any] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            continue
        ok, item = _json_value(item)
        if ok:
            cleaned[key] = item
    return cleaned


def _generated_id(guild_id: str, kind: str, index: int, name: Any) -> str:
    seed = f"{guild_id}/{kind}/{index}/{name if isinstance(name, str) else ''}"
    return str(uuid.uuid5(_GENERATED_ID_NAMESPACE, seed))


# ---------------------------------------------------------------------------
# Nested structures
# ---------------------------------------------------------------------------

def _language_roles(value: Any) -> Dict[str, str]:
    source = value if isinstance(value, Mapping) else {}
    roles: Dict[str, str] = {}
    for code in LANGUAGE_CODES:
        ref = _reference(source.get(code))
        roles[code] = ref if is_snowflake(ref) else ""
    return roles


def _log_events(value: Any) -> List[str]:
    items = _items(value)
    if items is None:
        return []
    events: List[str] = []
    for item in items:
        if isinstance(item, str) and item.strip() and item.strip() not in events:
            events.append(item.strip())
    return events


def _channel_map(value: Mapping) -> Dict[str, str]:
    channels: Dict[str, str] = {}
    for code, channel in value.items():
        if not isinstance(code, str) or not code.strip():
            continue
        ref = _reference(channel)
        if ref is not None:
            channels[code.strip()] = ref
    return channels


def _translation_routes(value: Any, guild_id: str) -> List[TranslationRoute]:
    if not isinstance(value, list):
        return []

    routes: List[TranslationRoute] = []
    seen: set[str] = set()
    for index, entry in enumerate(value):
        if not isinstance(entry, Mapping):
            continue
        route_id = _string(entry.get("id"), "")
        name = _string(entry.get("name"), "")
        channel_map = entry.get("channel_map")
        if channel_map is None:
            channel_map = {}
        if not isinstance(channel_map, Mapping) or not (route_id or name):
            logger.debug("[NORMALIZER] Dropping malformed translation route #%d for guild %s", index, guild_id)
            continue

        route_id = route_id or _generated_id(guild_id, "translation_routes", index, name)
        if route_id in seen:
            logger.debug("[NORMALIZER] Dropping duplicate translation route %s for guild %s", route_id, guild_id)
            continue
        seen.add(route_id)

        routes.append(TranslationRoute(
            id=route_id,
            name=name or f"Translation route {len(routes) + 1}",
            channel_map=_channel_map(channel_map),
        ))
    return routes


def _role_grant_rules(value: Any, guild_id: str) -> List[RoleGrantRule]:
    if not isinstance(value, list):
        return []

    rules: List[RoleGrantRule] = []
    seen: set[str] = set()
    for index, entry in enumerate(value):
        if not isinstance(entry, Mapping):
            continue
        target_role_id = _reference(entry.get("target_role_id"))
        if target_role_id is None:
            logger.debug("[NORMALIZER] Dropping role rule #%d without target role for guild %s", index, guild_id)
            continue

        name = _string(entry.get("name"), "")
        rule_id = _string(entry.get("id"), "") or _generated_id(guild_id, "role_grant_rules", index, name)
        if rule_id in seen:
            logger.debug("[NORMALIZER] Dropping duplicate role rule %s for guild %s", rule_id, guild_id)
            continue
        seen.add(rule_id)

        rules.append(RoleGrantRule(
            id=rule_id,
            name=name or f"Role rule {len(rules) + 1}",
            target_role_id=target_role_id,
            condition=_string(entry.get("condition"), "") or DEFAULT_CONDITION,
            description=_string(entry.get("description"), ""),
            enabled=entry.get("enabled") is not False,
            trigger_data=_json_map(entry.get("trigger_data")),
        ))
    return rules


def _rules_sections(value: Any) -> List[RulesSection]:
    if not isinstance(value, list):
        return default_rules_sections()
    sections: List[RulesSection] = []
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        name = _string(entry.get("name"), "")
        text = entry.get("value")
        if not name or not isinstance(text, str) or not text.strip():
            continue
        sections.append(RulesSection(name=name, value=text, inline=_bool(entry.get("inline"), False)))
    return sections


def _rules_announcement(value: Any) -> RulesAnnouncement:
    source = value if isinstance(value, Mapping) else {}
    d = RulesAnnouncement()
    return RulesAnnouncement(
        enabled=_bool(source.get("enabled"), d.enabled),
        title=_string(source.get("title"), d.title),
        description=_string(source.get("description"), d.description),
        color=_string(source.get("color"), d.color),
        sections=_rules_sections(source.get("sections")),
        footer_text=_string(source.get("footer_text"), d.footer_text),
        show_thumbnail=_bool(source.get("show_thumbnail"), d.show_thumbnail),
        show_timestamp=_bool(source.get("show_timestamp"), d.show_timestamp),
        accept_button_text=_string(source.get("accept_button_text"), d.accept_button_text),
        decline_button_text=_string(source.get("decline_button_text"), d.decline_button_text),
        accept_button_emoji=_string(source.get("accept_button_emoji"), d.accept_button_emoji),
        decline_button_emoji=_string(source.get("decline_button_emoji"), d.decline_button_emoji),
        auto_send=_bool(source.get("auto_send"), d.auto_send),
        target_channel_id=_reference(source.get("target_channel_id")),
        last_message_id=_reference(source.get("last_message_id")),
        last_sent_at=_timestamp(source.get("last_sent_at")),
        last_channel_id=_reference(source.get("last_channel_id")),
    )


def _trigger_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    triggers: Dict[str, str] = {}
    for trigger, reply in value.items():
        if not isinstance(trigger, str) or not trigger.strip():
            continue
        if isinstance(reply, str) and reply.strip():
            triggers[trigger.strip().lower()] = reply.strip()
    return triggers


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize(raw: Any, guild_id: Any = None) -> GuildSettings:
    """
    Map a partially or incorrectly typed record onto a complete GuildSettings.

    Args:
        raw: A stored document, merged patch, GuildSettings, or any other value.
        guild_id: Overrides the guild id carried by ``raw`` when given.

    Returns:
        GuildSettings: A fully defaulted record. ``guild_id`` is never empty;
        when neither argument provides one it is ``"unknown"``, which the
        validator rejects.
    """
    data = dump_value(raw)
    if not isinstance(data, Mapping):
        data = {}

    gid = _reference(guild_id if guild_id is not None else data.get("guild_id"))
    if gid is None:
        logger.warning("[NORMALIZER] guild_id missing during normalization")
        gid = UNKNOWN_GUILD_ID

    return GuildSettings(
        guild_id=gid,
        prefix=_string(data.get("prefix"), DEFAULT_PREFIX) or DEFAULT_PREFIX,
        welcome_enabled=_bool(data.get("welcome_enabled"), False),
        welcome_message=_string(data.get("welcome_message"), DEFAULT_WELCOME_MESSAGE),
        goodbye_enabled=_bool(data.get("goodbye_enabled"), False),
        goodbye_message=_string(data.get("goodbye_message"), DEFAULT_GOODBYE_MESSAGE),
        welcome_channel_id=_reference(data.get("welcome_channel_id")),
        language_roles=_language_roles(data.get("language_roles")),
        required_role_ids=_id_list(data.get("required_role_ids")),
        ticket_category_id=_reference(data.get("ticket_category_id")),
        ticket_log_channel_id=_reference(data.get("ticket_log_channel_id")),
        ticket_open_message_id=_reference(data.get("ticket_open_message_id")),
        support_role_ids=_id_list(data.get("support_role_ids")),
        log_channel_id=_reference(data.get("log_channel_id")),
        log_events=_log_events(data.get("log_events")),
        translation_routes=_translation_routes(data.get("translation_routes"), gid),
        role_grant_rules=_role_grant_rules(data.get("role_grant_rules"), gid),
        rules_announcement=_rules_announcement(data.get("rules_announcement")),
        custom_commands=_trigger_map(data.get("custom_commands")),
        auto_reacts=_trigger_map(data.get("auto_reacts")),
        auto_replies=_trigger_map(data.get("auto_replies")),
    )


def default_settings(guild_id: Any) -> GuildSettings:
    """Return the all-defaults record for a guild."""
    return normalize({}, guild_id=guild_id)
