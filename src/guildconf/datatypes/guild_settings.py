"""
Persistent per-guild configuration schema.

One :class:`GuildSettings` record exists per guild. Nested structures are
fixed dataclasses so the normalizer, merger and validator all work on one
known shape. Defaults live next to the fields they belong to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class RoleGrantCondition(Enum):
    """Event that makes a role grant rule hand out its target role."""

    ON_JOIN = "member_join"
    ON_BUTTON = "button_click"
    ON_REACTION = "reaction_add"
    ON_COMMAND = "command_use"

    def __str__(self) -> str:
        return self.value


class LogEvent(Enum):
    """Guild events that can be mirrored to the log channel."""

    MEMBER_JOIN = "memberJoin"
    MEMBER_LEAVE = "memberLeave"
    MESSAGE_DELETE = "messageDelete"
    MESSAGE_UPDATE = "messageUpdate"
    CHANNEL_CREATE = "channelCreate"
    CHANNEL_DELETE = "channelDelete"
    CHANNEL_UPDATE = "channelUpdate"
    ROLE_CREATE = "roleCreate"
    ROLE_DELETE = "roleDelete"
    ROLE_UPDATE = "roleUpdate"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Language:
    code: str
    name: str
    flag: str


LANGUAGES: Dict[str, Language] = {
    "fr": Language("fr", "Français", "🇫🇷"),
    "en": Language("en", "English", "🇬🇧"),
    "es": Language("es", "Español", "🇪🇸"),
    "de": Language("de", "Deutsch", "🇩🇪"),
    "pt": Language("pt", "Português", "🇵🇹"),
    "ru": Language("ru", "Русский", "🇷🇺"),
    "hu": Language("hu", "Magyar", "🇭🇺"),
    "it": Language("it", "Italiano", "🇮🇹"),
}
LANGUAGE_CODES: tuple[str, ...] = tuple(LANGUAGES)

ROLE_GRANT_CONDITIONS = frozenset(c.value for c in RoleGrantCondition)
LOG_EVENT_NAMES = frozenset(e.value for e in LogEvent)

DEFAULT_PREFIX = "."
DEFAULT_WELCOME_MESSAGE = "Welcome {user} to the server!"
DEFAULT_GOODBYE_MESSAGE = "Goodbye {username}!"
DEFAULT_CONDITION = RoleGrantCondition.ON_JOIN.value

# Length bounds shared by the validator and the dashboard forms
MAX_PREFIX_LENGTH = 5
MAX_MESSAGE_LENGTH = 2000
MAX_ENTRY_NAME_LENGTH = 100
MAX_RULE_DESCRIPTION_LENGTH = 500
MAX_TITLE_LENGTH = 256
MAX_DESCRIPTION_LENGTH = 1024
MAX_SECTION_NAME_LENGTH = 256
MAX_SECTION_VALUE_LENGTH = 1024
MAX_FOOTER_LENGTH = 512
MAX_BUTTON_TEXT_LENGTH = 80
MAX_BUTTON_EMOJI_LENGTH = 10


@dataclass(slots=True)
class TranslationRoute:
    """A group of channels whose messages are mirrored across languages."""

    id: str
    name: str
    channel_map: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class RoleGrantRule:
    """Automatically grants ``target_role_id`` when ``condition`` fires."""

    id: str
    name: str
    target_role_id: str
    condition: str = DEFAULT_CONDITION
    description: str = ""
    enabled: bool = True
    trigger_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RulesSection:
    name: str
    value: str
    inline: bool = False


def default_rules_sections() -> List[RulesSection]:
    return [
        RulesSection(
            name="General Rules",
            value=(
                "• Respect every member\n"
                "• No spam or inappropriate content\n"
                "• Use the right channels\n"
                "• Follow the moderators' instructions"
            ),
        )
    ]


@dataclass(slots=True)
class RulesAnnouncement:
    """Rules embed with accept/decline buttons, optionally posted automatically."""

    enabled: bool = False
    title: str = "Server Rules"
    description: str = "Please read and accept our rules to access the server."
    color: str = "#7289DA"
    sections: List[RulesSection] = field(default_factory=default_rules_sections)
    footer_text: str = "By accepting, you will automatically receive your access roles"
    show_thumbnail: bool = True
    show_timestamp: bool = True
    accept_button_text: str = "✅ I accept the rules"
    decline_button_text: str = "❌ I decline"
    accept_button_emoji: str = "📋"
    decline_button_emoji: str = "🚫"
    auto_send: bool = False
    target_channel_id: Optional[str] = None
    last_message_id: Optional[str] = None
    last_sent_at: Optional[datetime] = None
    last_channel_id: Optional[str] = None


def default_language_roles() -> Dict[str, str]:
    return {code: "" for code in LANGUAGE_CODES}


@dataclass(slots=True)
class GuildSettings:
    """Persistent per-guild configuration values."""

    guild_id: str
    prefix: str = DEFAULT_PREFIX
    welcome_enabled: bool = False
    welcome_message: str = DEFAULT_WELCOME_MESSAGE
    goodbye_enabled: bool = False
    goodbye_message: str = DEFAULT_GOODBYE_MESSAGE
    welcome_channel_id: Optional[str] = None
    language_roles: Dict[str, str] = field(default_factory=default_language_roles)
    required_role_ids: List[str] = field(default_factory=list)
    ticket_category_id: Optional[str] = None
    ticket_log_channel_id: Optional[str] = None
    ticket_open_message_id: Optional[str] = None
    support_role_ids: List[str] = field(default_factory=list)
    log_channel_id: Optional[str] = None
    log_events: List[str] = field(default_factory=list)
    translation_routes: List[TranslationRoute] = field(default_factory=list)
    role_grant_rules: List[RoleGrantRule] = field(default_factory=list)
    rules_announcement: RulesAnnouncement = field(default_factory=RulesAnnouncement)
    custom_commands: Dict[str, str] = field(default_factory=dict)
    auto_reacts: Dict[str, str] = field(default_factory=dict)
    auto_replies: Dict[str, str] = field(default_factory=dict)


# Fields whose patches merge key by key instead of replacing the value
NESTED_MAP_FIELDS = frozenset({"language_roles", "rules_announcement"})
