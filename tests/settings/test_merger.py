"""Tests for merging partial patches into settings."""

import pytest

from guildconf.settings.merger import PATCHABLE_FIELDS, merge
from guildconf.settings.normalizer import default_settings, normalize

GUILD_ID = "111111111111111111"
ROLE_ID = "333333333333333333"
OTHER_ROLE_ID = "333333333333333334"


@pytest.fixture
def current():
    return normalize(
        {
            "prefix": "!",
            "welcome_enabled": True,
            "language_roles": {"en": ROLE_ID},
            "required_role_ids": [ROLE_ID],
            "custom_commands": {"hello": "world", "bye": "later"},
            "rules_announcement": {"title": "House rules", "enabled": True},
        },
        guild_id=GUILD_ID,
    )


class TestMerge:
    """Patch fields win, untouched fields are preserved."""

    def test_untouched_fields_are_preserved(self, current):
        merged = normalize(merge(current, {"welcome_message": "Hi {user}"}), guild_id=GUILD_ID)

        assert merged.welcome_message == "Hi {user}"
        assert merged.prefix == "!"
        assert merged.welcome_enabled is True
        assert merged.required_role_ids == [ROLE_ID]

    def test_sequential_patches_compose(self):
        settings = default_settings(GUILD_ID)
        settings = normalize(merge(settings, {"prefix": "!"}), guild_id=GUILD_ID)
        settings = normalize(merge(settings, {"welcome_enabled": True}), guild_id=GUILD_ID)

        assert settings.prefix == "!"
        assert settings.welcome_enabled is True

    def test_language_roles_merge_per_key(self, current):
        merged = normalize(merge(current, {"language_roles": {"fr": OTHER_ROLE_ID}}), guild_id=GUILD_ID)

        assert merged.language_roles["en"] == ROLE_ID
        assert merged.language_roles["fr"] == OTHER_ROLE_ID

    def test_rules_announcement_merges_per_key(self, current):
        merged = normalize(merge(current, {"rules_announcement": {"color": "#FF0000"}}), guild_id=GUILD_ID)

        assert merged.rules_announcement.color == "#FF0000"
        assert merged.rules_announcement.title == "House rules"
        assert merged.rules_announcement.enabled is True

    def test_lists_are_replaced_wholesale(self, current):
        merged = normalize(merge(current, {"required_role_ids": [OTHER_ROLE_ID]}), guild_id=GUILD_ID)
        assert merged.required_role_ids == [OTHER_ROLE_ID]

    def test_trigger_maps_are_replaced_wholesale(self, current):
        merged = normalize(merge(current, {"custom_commands": {"hello": "there"}}), guild_id=GUILD_ID)
        assert merged.custom_commands == {"hello": "there"}

    def test_guild_id_cannot_be_changed(self, current):
        merged = merge(current, {"guild_id": "222222222222222222", "prefix": "?"})
        assert merged["guild_id"] == GUILD_ID
        assert merged["prefix"] == "?"

    def test_unknown_fields_are_ignored(self, current):
        merged = merge(current, {"not_a_field": 1})
        assert "not_a_field" not in merged

    def test_empty_patch_is_identity(self, current):
        assert normalize(merge(current, {}), guild_id=GUILD_ID) == current

    def test_does_not_mutate_current(self, current):
        before = normalize(current, guild_id=GUILD_ID)
        merge(current, {"language_roles": {"fr": OTHER_ROLE_ID}, "prefix": "?"})
        assert current == before

    def test_accepts_a_document_as_current(self, current):
        merged = merge({"guild_id": GUILD_ID, "prefix": "!"}, {"welcome_enabled": True})
        assert merged == {"guild_id": GUILD_ID, "prefix": "!", "welcome_enabled": True}

    def test_non_mapping_patch_raises(self, current):
        with pytest.raises(TypeError):
            merge(current, ["prefix", "!"])  # type: ignore

    def test_patchable_fields_exclude_guild_id(self):
        assert "guild_id" not in PATCHABLE_FIELDS
        assert "prefix" in PATCHABLE_FIELDS
        assert "rules_announcement" in PATCHABLE_FIELDS
