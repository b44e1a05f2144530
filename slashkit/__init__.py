"""slashkit: declarative slash-command bots.

Commands and events are classes declared with decorators; a module
registry builds them, a dispatcher routes live interactions to them.
"""

__version__ = "0.1.0"

from .commands.base import BaseCommand, BotContext
from .decorators import (
    availability,
    boolean_option,
    channel_option,
    command,
    cooldown,
    dm_only,
    event,
    guild_only,
    integer_option,
    mentionable_option,
    nsfw,
    number_option,
    options,
    owner_only,
    require_permissions,
    role_option,
    string_option,
    user_option,
)
from .dispatch import DispatchOutcome, DispatchRouter
from .events import BaseEvent, EventRouter
from .exceptions import DefinitionError, DeliveryError, SlashkitError
from .interaction import Interaction, InteractionKind, Reply
from .metadata import CommandMetadata, EventMetadata, MetadataRegistry, registry
from .modules import BaseModule, ModuleRegistry

__all__ = [
    "BaseCommand",
    "BaseEvent",
    "BaseModule",
    "BotContext",
    "CommandMetadata",
    "DefinitionError",
    "DeliveryError",
    "DispatchOutcome",
    "DispatchRouter",
    "EventMetadata",
    "EventRouter",
    "Interaction",
    "InteractionKind",
    "MetadataRegistry",
    "ModuleRegistry",
    "Reply",
    "SlashkitError",
    "availability",
    "boolean_option",
    "channel_option",
    "command",
    "cooldown",
    "dm_only",
    "event",
    "guild_only",
    "integer_option",
    "mentionable_option",
    "nsfw",
    "number_option",
    "options",
    "owner_only",
    "registry",
    "require_permissions",
    "role_option",
    "string_option",
    "user_option",
]
