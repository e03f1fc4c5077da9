"""Tests for settings validation."""

from jsonschema import Draft7Validator

from guildconf.datatypes.guild_settings import MAX_MESSAGE_LENGTH, RoleGrantRule
from guildconf.settings.normalizer import default_settings, normalize
from guildconf.settings.serialization import to_document
from guildconf.settings.validator import settings_schema, validate

GUILD_ID = "111111111111111111"
ROLE_ID = "333333333333333333"
CHANNEL_ID = "444444444444444444"


def _settings(**fields):
    return normalize(fields, guild_id=GUILD_ID)


class TestValidate:
    """validate() returns every violation and never raises."""

    def test_defaults_are_valid(self):
        assert validate(default_settings(GUILD_ID)) == []

    def test_fully_populated_record_is_valid(self):
        settings = _settings(
            prefix="!",
            welcome_channel_id=CHANNEL_ID,
            log_channel_id=CHANNEL_ID,
            log_events=["memberJoin", "roleUpdate"],
            support_role_ids=[ROLE_ID],
            translation_routes=[{"id": "r1", "name": "Main", "channel_map": {"en": CHANNEL_ID}}],
            role_grant_rules=[{"id": "g1", "name": "Join", "target_role_id": ROLE_ID, "condition": "reaction_add"}],
            rules_announcement={"target_channel_id": CHANNEL_ID, "color": "#00ff00"},
        )
        assert validate(settings) == []

    def test_unknown_guild_is_rejected(self):
        errors = validate(normalize({}))
        assert any(e.startswith("guild_id") for e in errors)

    def test_invalid_condition_is_reported(self):
        settings = _settings(role_grant_rules=[{"target_role_id": ROLE_ID, "condition": "bogus"}])
        assert validate(settings) == ["role_grant_rules[0].condition has an invalid value: 'bogus'"]

    def test_invalid_target_role_is_reported(self):
        settings = _settings(role_grant_rules=[{"target_role_id": "everyone"}])
        errors = validate(settings)
        assert errors == ["role_grant_rules[0].target_role_id must be a valid Discord ID: 'everyone'"]

    def test_prefix_too_long(self):
        errors = validate(_settings(prefix="toolong"))
        assert errors == ["prefix must be at most 5 characters (got 7)."]

    def test_message_too_long(self):
        errors = validate(_settings(welcome_message="x" * (MAX_MESSAGE_LENGTH + 1)))
        assert len(errors) == 1
        assert errors[0].startswith("welcome_message")

    def test_malformed_channel_reference(self):
        errors = validate(_settings(log_channel_id="general"))
        assert errors == ["log_channel_id must be a valid Discord ID: 'general'"]

    def test_unknown_log_event(self):
        errors = validate(_settings(log_events=["memberJoin", "somethingElse"]))
        assert errors == ["log_events[1] has an invalid value: 'somethingElse'"]

    def test_translation_route_channel_reference(self):
        settings = _settings(translation_routes=[{"id": "r1", "name": "Main", "channel_map": {"en": "#general"}}])
        errors = validate(settings)
        assert len(errors) == 1
        assert "translation_routes[0].channel_map" in errors[0]

    def test_announcement_color_and_lengths(self):
        settings = _settings(rules_announcement={"color": "blue", "title": "t" * 300})
        errors = validate(settings)
        assert len(errors) == 2
        assert any("color" in e for e in errors)
        assert any("title" in e for e in errors)

    def test_reports_every_violation(self):
        settings = _settings(
            prefix="toolong",
            log_channel_id="general",
            role_grant_rules=[{"target_role_id": ROLE_ID, "condition": "bogus"}],
        )
        assert len(validate(settings)) == 3

    def test_duplicate_rule_ids_are_reported(self):
        settings = default_settings(GUILD_ID)
        settings.role_grant_rules = [
            RoleGrantRule(id="same", name="First", target_role_id=ROLE_ID),
            RoleGrantRule(id="same", name="Second", target_role_id=ROLE_ID),
        ]
        assert validate(settings) == ["role_grant_rules[1] reuses id 'same'."]

    def test_unknown_language_code_is_reported(self):
        settings = default_settings(GUILD_ID)
        settings.language_roles["xx"] = ROLE_ID
        assert validate(settings) == ["language_roles has an invalid value: 'xx'"]

    def test_schema_is_well_formed_and_accepts_defaults(self):
        Draft7Validator.check_schema(settings_schema)
        assert Draft7Validator(settings_schema).is_valid(to_document(default_settings(GUILD_ID)))
