"""Tests for the class-keyed metadata side table."""

import pytest

from slashkit.exceptions import DefinitionError, ErrorCategory
from slashkit.metadata import (
    FIELD_MERGE_POLICY,
    CommandMetadata,
    MergePolicy,
    OptionDescriptor,
    OptionType,
)


class Target:
    pass


class TestCommandIdentity:

    def test_read_returns_none_when_nothing_attached(self, registry):
        assert registry.read_command(Target) is None
        assert registry.read_event(Target) is None

    def test_attach_and_read(self, registry):
        registry.attach_command_metadata(Target, "ping", "Check latency")
        meta = registry.read_command(Target)
        assert meta.name == "ping"
        assert meta.description == "Check latency"
        assert meta.cooldown_ms == 0
        assert meta.permissions == []
        assert meta.owner_only is False

    def test_last_identity_wins(self, registry):
        registry.attach_command_metadata(Target, "first", "First")
        registry.attach_command_metadata(Target, "second", "Second")
        meta = registry.read_command(Target)
        assert (meta.name, meta.description) == ("second", "Second")

    def test_guards_without_identity_read_as_none(self, registry):
        registry.attach_guard(Target, guild_only=True)
        assert registry.read_command(Target) is None
        assert registry.read_guards(Target).guild_only is True

    @pytest.mark.parametrize("name", ["", "Ping", "has space", "x" * 33, None])
    def test_invalid_name_rejected(self, registry, name):
        with pytest.raises(DefinitionError):
            registry.attach_command_metadata(Target, name, "desc")

    @pytest.mark.parametrize("description", ["", "   ", "d" * 101])
    def test_invalid_description_rejected(self, registry, description):
        with pytest.raises(DefinitionError):
            registry.attach_command_metadata(Target, "ping", description)

    def test_definition_error_is_fatal(self, registry):
        with pytest.raises(DefinitionError) as exc_info:
            registry.attach_command_metadata(Target, "Bad Name", "desc")
        assert exc_info.value.category == ErrorCategory.DEFINITION
        assert exc_info.value.is_fatal

    def test_non_class_target_rejected(self, registry):
        with pytest.raises(DefinitionError):
            registry.attach_command_metadata(object(), "ping", "desc")

    def test_subclass_does_not_inherit(self, registry):
        registry.attach_command_metadata(Target, "ping", "desc")

        class Child(Target):
            pass

        assert registry.read_command(Child) is None

    def test_read_returns_fresh_copy(self, registry):
        registry.attach_command_metadata(Target, "ping", "desc")
        registry.attach_guard(Target, permissions=["BAN_MEMBERS"])
        first = registry.read_command(Target)
        first.permissions.append("KICK_MEMBERS")
        first.contexts.append(99)
        second = registry.read_command(Target)
        assert second.permissions == ["BAN_MEMBERS"]
        assert 99 not in second.contexts


class TestGuardMerge:

    def test_permission_union_preserves_order(self, registry):
        registry.attach_command_metadata(Target, "ban", "Ban a user")
        registry.attach_guard(Target, permissions=["BAN_MEMBERS"])
        registry.attach_guard(Target, permissions=["KICK_MEMBERS"])
        assert registry.read_command(Target).permissions == ["BAN_MEMBERS", "KICK_MEMBERS"]

    def test_duplicate_permissions_kept_but_display_dedupes(self, registry):
        registry.attach_command_metadata(Target, "ban", "Ban a user")
        registry.attach_guard(Target, permissions=["BAN_MEMBERS"])
        registry.attach_guard(Target, permissions=["BAN_MEMBERS", "KICK_MEMBERS"])
        meta = registry.read_command(Target)
        assert meta.permissions == ["BAN_MEMBERS", "BAN_MEMBERS", "KICK_MEMBERS"]
        assert meta.display_permissions == ["BAN_MEMBERS", "KICK_MEMBERS"]
        assert meta.permission_mask == (1 << 2) | (1 << 1)

    def test_flags_are_ored(self, registry):
        registry.attach_command_metadata(Target, "admin", "Admin tools")
        registry.attach_guard(Target, owner_only=True)
        registry.attach_guard(Target, owner_only=False, guild_only=True)
        meta = registry.read_command(Target)
        assert meta.owner_only is True
        assert meta.guild_only is True
        assert meta.dm_only is False

    def test_unknown_guard_field_rejected(self, registry):
        with pytest.raises(DefinitionError):
            registry.attach_guard(Target, admin_only=True)

    def test_unknown_permission_rejected(self, registry):
        with pytest.raises(DefinitionError):
            registry.attach_guard(Target, permissions=["FLY"])


class TestCooldownAndOptions:

    def test_cooldown_overwrites(self, registry):
        registry.attach_command_metadata(Target, "ping", "desc")
        registry.attach_cooldown(Target, 3000)
        registry.attach_cooldown(Target, 5000)
        assert registry.read_command(Target).cooldown_ms == 5000

    @pytest.mark.parametrize("value", [-1, 1.5, "100", True])
    def test_invalid_cooldown_rejected(self, registry, value):
        with pytest.raises(DefinitionError):
            registry.attach_cooldown(Target, value)

    def test_options_overwrite(self, registry):
        registry.attach_command_metadata(Target, "say", "Say something")
        registry.attach_options(Target, [OptionDescriptor("a", OptionType.STRING, "A")])
        registry.attach_options(Target, [OptionDescriptor("b", OptionType.INTEGER, "B")])
        names = [o.name for o in registry.read_command(Target).options]
        assert names == ["b"]

    def test_duplicate_option_names_rejected(self, registry):
        opts = [
            OptionDescriptor("a", OptionType.STRING, "A"),
            OptionDescriptor("a", OptionType.STRING, "Again"),
        ]
        with pytest.raises(DefinitionError):
            registry.attach_options(Target, opts)

    def test_too_many_options_rejected(self, registry):
        opts = [OptionDescriptor(f"o{i}", OptionType.STRING, "x") for i in range(26)]
        with pytest.raises(DefinitionError):
            registry.attach_options(Target, opts)

    def test_required_after_optional_rejected(self, registry):
        opts = [
            OptionDescriptor("first", OptionType.STRING, "x"),
            OptionDescriptor("second", OptionType.STRING, "y", required=True),
        ]
        with pytest.raises(DefinitionError):
            registry.attach_options(Target, opts)


class TestAvailabilityAndDeclaration:

    def test_defaults(self, registry):
        registry.attach_command_metadata(Target, "ping", "desc")
        meta = registry.read_command(Target)
        assert meta.contexts == [0, 1, 2]
        assert meta.integration_types == [0, 1]
        assert meta.dm_permission is True
        assert meta.user_installable is True

    def test_availability_overwrites_only_given_fields(self, registry):
        registry.attach_command_metadata(Target, "ping", "desc")
        registry.attach_availability(Target, contexts=[0])
        registry.attach_availability(Target, integration_types=[0], dm_permission=False)
        meta = registry.read_command(Target)
        assert meta.contexts == [0]
        assert meta.integration_types == [0]
        assert meta.dm_permission is False
        assert meta.user_installable is False

    def test_declaration_payload(self, registry):
        registry.attach_command_metadata(Target, "ban", "Ban a user")
        registry.attach_guard(Target, permissions=["BAN_MEMBERS"], guild_only=True)
        registry.attach_options(
            Target,
            [OptionDescriptor("user", OptionType.USER, "Who", required=True)],
        )
        decl = registry.read_command(Target).to_declaration()
        assert decl["type"] == 1
        assert decl["name"] == "ban"
        assert decl["default_member_permissions"] == str(1 << 2)
        assert decl["dm_permission"] is False
        assert decl["options"] == [
            {"type": 6, "name": "user", "description": "Who", "required": True}
        ]

    def test_explicit_member_permissions_win(self, registry):
        registry.attach_command_metadata(Target, "ban", "Ban a user")
        registry.attach_guard(Target, permissions=["BAN_MEMBERS"])
        registry.attach_availability(Target, default_member_permissions="0")
        assert registry.read_command(Target).to_declaration()["default_member_permissions"] == "0"

    def test_no_permissions_declares_none(self):
        assert CommandMetadata("ping", "desc").to_declaration()["default_member_permissions"] is None


class TestEvents:

    def test_attach_and_overwrite(self, registry):
        registry.attach_event_metadata(Target, "ready", once=True)
        registry.attach_event_metadata(Target, "message")
        meta = registry.read_event(Target)
        assert meta.name == "message"
        assert meta.once is False

    def test_unknown_event_rejected(self, registry):
        with pytest.raises(DefinitionError):
            registry.attach_event_metadata(Target, "not_an_event")


def test_merge_policy_covers_every_command_field():
    from dataclasses import fields

    assert {f.name for f in fields(CommandMetadata)} == set(FIELD_MERGE_POLICY)
    assert FIELD_MERGE_POLICY["permissions"] == MergePolicy.UNION
    assert FIELD_MERGE_POLICY["cooldown_ms"] == MergePolicy.OVERWRITE
    assert FIELD_MERGE_POLICY["guild_only"] == MergePolicy.OR


def test_clear_single_class(registry):
    registry.attach_command_metadata(Target, "ping", "desc")
    registry.clear(Target)
    assert registry.read_command(Target) is None
