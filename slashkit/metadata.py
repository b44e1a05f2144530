"""Class-keyed metadata side table for commands and events.

Decorators in :mod:`slashkit.decorators` write partial records here
at class-definition time. ``BaseCommand`` and ``BaseEvent`` read the
merged record once, at construction.

Every command field has one explicit merge policy (see
``FIELD_MERGE_POLICY``):

* OVERWRITE - the last attach call for the field wins.
* UNION - values from every attach call are concatenated in call
  order; duplicates are kept.
* OR - boolean flags; once any call sets the flag it stays set.

Event records are overwritten as a whole.

Key classes:
    MetadataRegistry: The side table itself.
    CommandMetadata: Immutable-by-convention snapshot handed to commands.
    EventMetadata: Snapshot handed to events.
    GuardOptions: Accumulator for guard flags and permissions.
    OptionDescriptor: One slash-command parameter.
"""

import copy
import re
import weakref
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

import structlog

from .exceptions import DefinitionError
from .permissions import dedupe, declared_mask, permission_mask, validate_permission_names

logger = structlog.get_logger("slashkit.commands")

NAME_PATTERN = re.compile(r"^[a-z0-9_-]{1,32}$")
MAX_DESCRIPTION_LENGTH = 100
MAX_OPTIONS = 25

# Interaction context types: guild, bot DM, private channel.
DEFAULT_CONTEXTS = (0, 1, 2)
# Installation types: guild install, user install.
DEFAULT_INTEGRATION_TYPES = (0, 1)

# Event names the gateway client dispatches.
GATEWAY_EVENTS = frozenset({
    "connect", "disconnect", "ready", "resumed", "error",
    "interaction", "app_command_completion",
    "message", "message_edit", "message_delete", "bulk_message_delete",
    "raw_message_edit", "raw_message_delete",
    "reaction_add", "reaction_remove", "reaction_clear",
    "raw_reaction_add", "raw_reaction_remove",
    "guild_join", "guild_remove", "guild_update",
    "guild_available", "guild_unavailable",
    "guild_channel_create", "guild_channel_delete", "guild_channel_update",
    "guild_role_create", "guild_role_delete", "guild_role_update",
    "member_join", "member_remove", "member_update",
    "member_ban", "member_unban",
    "presence_update", "voice_state_update", "typing",
    "thread_create", "thread_delete", "thread_update",
    "invite_create", "invite_delete",
})


class MergePolicy(str, Enum):
    """How successive attach calls combine for one field."""
    OVERWRITE = "overwrite"
    UNION = "union"
    OR = "or"


FIELD_MERGE_POLICY: Dict[str, MergePolicy] = {
    "name": MergePolicy.OVERWRITE,
    "description": MergePolicy.OVERWRITE,
    "options": MergePolicy.OVERWRITE,
    "cooldown_ms": MergePolicy.OVERWRITE,
    "contexts": MergePolicy.OVERWRITE,
    "integration_types": MergePolicy.OVERWRITE,
    "dm_permission": MergePolicy.OVERWRITE,
    "default_member_permissions": MergePolicy.OVERWRITE,
    "permissions": MergePolicy.UNION,
    "owner_only": MergePolicy.OR,
    "guild_only": MergePolicy.OR,
    "dm_only": MergePolicy.OR,
    "nsfw": MergePolicy.OR,
}


class OptionType(IntEnum):
    """Slash-command option types."""
    STRING = 3
    INTEGER = 4
    BOOLEAN = 5
    USER = 6
    CHANNEL = 7
    ROLE = 8
    MENTIONABLE = 9
    NUMBER = 10


@dataclass
class OptionDescriptor:
    """A single command parameter as declared to the platform."""
    name: str
    type: OptionType
    description: str
    required: bool = False
    choices: Optional[List[Dict[str, Any]]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    autocomplete: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the platform's option object, omitting unset fields."""
        payload: Dict[str, Any] = {
            "type": int(self.type),
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }
        if self.choices:
            payload["choices"] = [dict(c) for c in self.choices]
        for key in ("min_value", "max_value", "min_length", "max_length"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.autocomplete:
            payload["autocomplete"] = True
        return payload


@dataclass
class GuardOptions:
    """Accumulated guard declarations for one command class."""
    permissions: List[str] = field(default_factory=list)
    owner_only: bool = False
    guild_only: bool = False
    dm_only: bool = False
    nsfw: bool = False

    def merge(self, **partial: Any) -> None:
        """Fold a partial guard record into this one.

        Permissions are appended in call order, flags are OR'd.
        """
        known = {f.name for f in fields(self)}
        for key, value in partial.items():
            if key not in known:
                raise DefinitionError(f"Unknown guard field: {key!r}", field=key)
            if key == "permissions":
                self.permissions.extend(validate_permission_names(value))
            else:
                setattr(self, key, getattr(self, key) or bool(value))


@dataclass
class CommandMetadata:
    """Merged, per-class command metadata.

    Commands receive a deep copy at construction and must treat it as
    read-only afterwards.
    """
    name: str
    description: str
    options: List[OptionDescriptor] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    owner_only: bool = False
    guild_only: bool = False
    dm_only: bool = False
    nsfw: bool = False
    cooldown_ms: int = 0
    contexts: List[int] = field(default_factory=lambda: list(DEFAULT_CONTEXTS))
    integration_types: List[int] = field(
        default_factory=lambda: list(DEFAULT_INTEGRATION_TYPES)
    )
    dm_permission: bool = True
    default_member_permissions: Optional[str] = None

    @property
    def display_permissions(self) -> List[str]:
        """Required permissions without repeats, for user-facing text."""
        return dedupe(self.permissions)

    @property
    def permission_mask(self) -> int:
        return permission_mask(self.permissions)

    @property
    def user_installable(self) -> bool:
        return 1 in self.integration_types

    def to_declaration(self) -> Dict[str, Any]:
        """Build the bulk-declaration payload entry for this command."""
        member_permissions = self.default_member_permissions
        if member_permissions is None:
            member_permissions = declared_mask(self.permissions)
        return {
            "type": 1,  # CHAT_INPUT
            "name": self.name,
            "description": self.description,
            "options": [o.to_payload() for o in self.options],
            "default_member_permissions": member_permissions,
            "dm_permission": self.dm_permission and not self.guild_only,
            "nsfw": self.nsfw,
            "contexts": list(self.contexts),
            "integration_types": list(self.integration_types),
        }


@dataclass
class EventMetadata:
    """Per-class event subscription metadata."""
    name: str
    once: bool = False


@dataclass
class _CommandRecord:
    name: Optional[str] = None
    description: Optional[str] = None
    guards: GuardOptions = field(default_factory=GuardOptions)
    cooldown_ms: int = 0
    options: List[OptionDescriptor] = field(default_factory=list)
    availability: Dict[str, Any] = field(default_factory=dict)


def _validate_name(name: Any, what: str) -> str:
    if not isinstance(name, str) or not NAME_PATTERN.match(name):
        raise DefinitionError(
            f"Invalid {what} name {name!r}: expected 1-32 lowercase "
            "letters, digits, '-' or '_'",
            name=name,
        )
    return name


def _validate_description(description: Any, what: str) -> str:
    if (
        not isinstance(description, str)
        or not description.strip()
        or len(description) > MAX_DESCRIPTION_LENGTH
    ):
        raise DefinitionError(
            f"Invalid {what} description: expected 1-{MAX_DESCRIPTION_LENGTH} characters",
            description=description,
        )
    return description


def _validate_options(descriptors: List[OptionDescriptor]) -> List[OptionDescriptor]:
    if len(descriptors) > MAX_OPTIONS:
        raise DefinitionError(
            f"Too many options ({len(descriptors)}), max is {MAX_OPTIONS}"
        )
    seen = set()
    optional_seen = False
    for descriptor in descriptors:
        if not isinstance(descriptor, OptionDescriptor):
            raise DefinitionError(f"Not an OptionDescriptor: {descriptor!r}")
        _validate_name(descriptor.name, "option")
        _validate_description(descriptor.description, "option")
        if descriptor.name in seen:
            raise DefinitionError(f"Duplicate option name {descriptor.name!r}")
        seen.add(descriptor.name)
        if descriptor.required and optional_seen:
            raise DefinitionError(
                f"Required option {descriptor.name!r} follows an optional one"
            )
        optional_seen = optional_seen or not descriptor.required
    return list(descriptors)


class MetadataRegistry:
    """Side table from class identity to accumulated metadata.

    Keys are the class objects themselves (held weakly), so a subclass
    never inherits its parent's record.
    """

    def __init__(self) -> None:
        self._commands: "weakref.WeakKeyDictionary[type, _CommandRecord]" = (
            weakref.WeakKeyDictionary()
        )
        self._events: "weakref.WeakKeyDictionary[type, EventMetadata]" = (
            weakref.WeakKeyDictionary()
        )

    def _record(self, cls: type) -> _CommandRecord:
        if not isinstance(cls, type):
            raise DefinitionError(f"Metadata target must be a class, got {cls!r}")
        record = self._commands.get(cls)
        if record is None:
            record = _CommandRecord()
            self._commands[cls] = record
        return record

    def attach_command_metadata(self, cls: type, name: str, description: str) -> None:
        """Set a command's identity. Overwrites any earlier identity."""
        record = self._record(cls)
        record.name = _validate_name(name, "command")
        record.description = _validate_description(description, "command")
        logger.debug("command_metadata_attached", target=cls.__name__, command=name)

    def attach_guard(self, cls: type, **partial: Any) -> None:
        """Merge guard fields: permissions concatenate, flags OR."""
        self._record(cls).guards.merge(**partial)

    def attach_cooldown(self, cls: type, duration_ms: int) -> None:
        """Set the per-user cooldown. Overwrites any earlier value."""
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, int) or duration_ms < 0:
            raise DefinitionError(
                f"Cooldown must be a non-negative integer of milliseconds, got {duration_ms!r}",
                target=cls.__name__,
            )
        self._record(cls).cooldown_ms = duration_ms

    def attach_options(self, cls: type, descriptors: List[OptionDescriptor]) -> None:
        """Set the parameter schema. Overwrites any earlier schema."""
        self._record(cls).options = _validate_options(list(descriptors))

    def attach_availability(
        self,
        cls: type,
        *,
        contexts: Optional[List[int]] = None,
        integration_types: Optional[List[int]] = None,
        dm_permission: Optional[bool] = None,
        default_member_permissions: Optional[str] = None,
    ) -> None:
        """Overwrite the availability fields that are passed (not None)."""
        availability = self._record(cls).availability
        if contexts is not None:
            availability["contexts"] = list(contexts)
        if integration_types is not None:
            availability["integration_types"] = list(integration_types)
        if dm_permission is not None:
            availability["dm_permission"] = bool(dm_permission)
        if default_member_permissions is not None:
            availability["default_member_permissions"] = str(default_member_permissions)

    def attach_event_metadata(self, cls: type, name: str, once: bool = False) -> None:
        """Set an event subscription. Overwrites any earlier one."""
        if not isinstance(cls, type):
            raise DefinitionError(f"Metadata target must be a class, got {cls!r}")
        if name not in GATEWAY_EVENTS:
            raise DefinitionError(
                f"Unknown gateway event {name!r}", target=cls.__name__, event=name
            )
        self._events[cls] = EventMetadata(name=name, once=bool(once))

    def read_command(self, cls: type) -> Optional[CommandMetadata]:
        """Return a fresh merged CommandMetadata, or None if no identity was attached."""
        record = self._commands.get(cls)
        if record is None or record.name is None:
            return None
        guards = record.guards
        metadata = CommandMetadata(
            name=record.name,
            description=record.description,
            options=copy.deepcopy(record.options),
            permissions=list(guards.permissions),
            owner_only=guards.owner_only,
            guild_only=guards.guild_only,
            dm_only=guards.dm_only,
            nsfw=guards.nsfw,
            cooldown_ms=record.cooldown_ms,
        )
        for key, value in record.availability.items():
            setattr(metadata, key, copy.copy(value))
        return metadata

    def read_guards(self, cls: type) -> Optional[GuardOptions]:
        record = self._commands.get(cls)
        if record is None:
            return None
        return copy.deepcopy(record.guards)

    def read_event(self, cls: type) -> Optional[EventMetadata]:
        metadata = self._events.get(cls)
        return copy.copy(metadata) if metadata is not None else None

    def clear(self, cls: Optional[type] = None) -> None:
        """Forget one class's metadata, or everything (tests)."""
        if cls is None:
            self._commands.clear()
            self._events.clear()
            return
        self._commands.pop(cls, None)
        self._events.pop(cls, None)


# Global default registry written by the decorators.
registry = MetadataRegistry()
