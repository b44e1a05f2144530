"""Class decorators that declare commands and events.

Usage::

    @command("ban", "Ban a user from the server")
    @require_permissions("BAN_MEMBERS")
    @guild_only()
    @cooldown(3000)
    @options(
        user_option("user", "The user to ban", required=True),
        string_option("reason", "Reason for the ban", max_length=512),
    )
    class BanCommand(BaseCommand):
        async def execute(self, interaction): ...

Each decorator writes one partial record into a MetadataRegistry
(the module-level default unless ``registry=`` is given) and returns
the class unchanged. Python applies stacked decorators bottom-up;
only the order of repeated ``require_permissions`` calls is
observable, and it follows application order.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from . import metadata as _metadata
from .metadata import MetadataRegistry, OptionDescriptor, OptionType

T = TypeVar("T", bound=type)


def _target(registry: Optional[MetadataRegistry]) -> MetadataRegistry:
    return registry if registry is not None else _metadata.registry


def command(
    name: str, description: str, *, registry: Optional[MetadataRegistry] = None
) -> Callable[[T], T]:
    """Declare a class as the slash command *name*."""
    def decorator(cls: T) -> T:
        _target(registry).attach_command_metadata(cls, name, description)
        return cls
    return decorator


def require_permissions(
    *permissions: str, registry: Optional[MetadataRegistry] = None
) -> Callable[[T], T]:
    """Add platform permissions the invoker must hold. Accumulates."""
    def decorator(cls: T) -> T:
        _target(registry).attach_guard(cls, permissions=list(permissions))
        return cls
    return decorator


def _flag(flag_name: str) -> Callable[..., Callable[[T], T]]:
    def factory(*, registry: Optional[MetadataRegistry] = None) -> Callable[[T], T]:
        def decorator(cls: T) -> T:
            _target(registry).attach_guard(cls, **{flag_name: True})
            return cls
        return decorator
    factory.__name__ = flag_name
    factory.__doc__ = f"Set the ``{flag_name}`` guard flag."
    return factory


guild_only = _flag("guild_only")
dm_only = _flag("dm_only")
owner_only = _flag("owner_only")
nsfw = _flag("nsfw")


def cooldown(
    milliseconds: int, *, registry: Optional[MetadataRegistry] = None
) -> Callable[[T], T]:
    """Per-user minimum interval between allowed invocations. Overwrites."""
    def decorator(cls: T) -> T:
        _target(registry).attach_cooldown(cls, milliseconds)
        return cls
    return decorator


def options(
    *descriptors: OptionDescriptor, registry: Optional[MetadataRegistry] = None
) -> Callable[[T], T]:
    """Declare the command's parameters, in display order. Overwrites."""
    def decorator(cls: T) -> T:
        _target(registry).attach_options(cls, list(descriptors))
        return cls
    return decorator


def availability(
    *,
    contexts: Optional[Sequence[int]] = None,
    integration_types: Optional[Sequence[int]] = None,
    dm_permission: Optional[bool] = None,
    default_member_permissions: Optional[str] = None,
    registry: Optional[MetadataRegistry] = None,
) -> Callable[[T], T]:
    """Where the command may be installed and used."""
    def decorator(cls: T) -> T:
        _target(registry).attach_availability(
            cls,
            contexts=list(contexts) if contexts is not None else None,
            integration_types=(
                list(integration_types) if integration_types is not None else None
            ),
            dm_permission=dm_permission,
            default_member_permissions=default_member_permissions,
        )
        return cls
    return decorator


def event(
    name: str, once: bool = False, *, registry: Optional[MetadataRegistry] = None
) -> Callable[[T], T]:
    """Subscribe a BaseEvent subclass to the gateway event *name*."""
    def decorator(cls: T) -> T:
        _target(registry).attach_event_metadata(cls, name, once)
        return cls
    return decorator


# ---------------------------------------------------------------------------
# Option helpers
# ---------------------------------------------------------------------------

def _choices(choices: Optional[Any]) -> Optional[List[Dict[str, Any]]]:
    if not choices:
        return None
    if isinstance(choices, dict):
        return [{"name": str(k), "value": v} for k, v in choices.items()]
    return [dict(c) for c in choices]


def string_option(
    name: str,
    description: str,
    *,
    required: bool = False,
    choices: Optional[Any] = None,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    autocomplete: bool = False,
) -> OptionDescriptor:
    return OptionDescriptor(
        name=name,
        type=OptionType.STRING,
        description=description,
        required=required,
        choices=_choices(choices),
        min_length=min_length,
        max_length=max_length,
        autocomplete=autocomplete,
    )


def integer_option(
    name: str,
    description: str,
    *,
    required: bool = False,
    choices: Optional[Any] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
    autocomplete: bool = False,
) -> OptionDescriptor:
    return OptionDescriptor(
        name=name,
        type=OptionType.INTEGER,
        description=description,
        required=required,
        choices=_choices(choices),
        min_value=min_value,
        max_value=max_value,
        autocomplete=autocomplete,
    )


def number_option(
    name: str,
    description: str,
    *,
    required: bool = False,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> OptionDescriptor:
    return OptionDescriptor(
        name=name,
        type=OptionType.NUMBER,
        description=description,
        required=required,
        min_value=min_value,
        max_value=max_value,
    )


def _simple(option_type: OptionType) -> Callable[..., OptionDescriptor]:
    def helper(name: str, description: str, *, required: bool = False) -> OptionDescriptor:
        return OptionDescriptor(
            name=name, type=option_type, description=description, required=required
        )
    helper.__name__ = f"{option_type.name.lower()}_option"
    return helper


boolean_option = _simple(OptionType.BOOLEAN)
user_option = _simple(OptionType.USER)
channel_option = _simple(OptionType.CHANNEL)
role_option = _simple(OptionType.ROLE)
mentionable_option = _simple(OptionType.MENTIONABLE)
