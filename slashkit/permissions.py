"""Platform permission names and bitmask helpers.

Commands carry their required capabilities as ordered lists of
permission names (``"BAN_MEMBERS"``). The platform wants them as a
single integer mask (serialized as a decimal string) when commands
are declared, and reports the invoker's resolved permissions as a
mask on every guild interaction.
"""

from typing import Dict, Iterable, List, Optional

import discord

from .exceptions import DefinitionError

# Platform permission names (upper case) to bit values, from discord.py's
# flag table. Aliases such as READ_MESSAGES are accepted too.
PERMISSION_FLAGS: Dict[str, int] = {
    name.upper(): value for name, value in discord.Permissions.VALID_FLAGS.items()
}

# Names the platform documents that discord.py spells differently
for _platform_name, _flag_name in (
    ("USE_VAD", "use_voice_activation"),
    ("MANAGE_GUILD_EXPRESSIONS", "manage_emojis"),
    ("USE_EXTERNAL_EMOJIS", "external_emojis"),
):
    PERMISSION_FLAGS.setdefault(_platform_name, discord.Permissions.VALID_FLAGS[_flag_name])


def validate_permission_names(names: Iterable[str]) -> List[str]:
    """Return *names* as a list, raising DefinitionError on unknown names."""
    result = []
    for name in names:
        if not isinstance(name, str) or name not in PERMISSION_FLAGS:
            raise DefinitionError(
                f"Unknown permission name: {name!r}",
                module="permissions",
                permission=name,
            )
        result.append(name)
    return result


def dedupe(names: Iterable[str]) -> List[str]:
    """Drop repeated names, keeping first-seen order."""
    seen = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


def permission_mask(names: Iterable[str]) -> int:
    """OR the flags of every name into one integer."""
    mask = 0
    for name in names:
        mask |= PERMISSION_FLAGS[name]
    return mask


def declared_mask(names: Iterable[str]) -> Optional[str]:
    """Mask string for a command declaration, or None if nothing is required."""
    mask = permission_mask(names)
    return str(mask) if mask else None


def missing_permissions(granted: int, required: Iterable[str]) -> List[str]:
    """Names in *required* whose bit is not set in *granted*.

    ADMINISTRATOR implies every other permission.
    """
    if granted & PERMISSION_FLAGS["ADMINISTRATOR"]:
        return []
    return [name for name in dedupe(required) if not granted & PERMISSION_FLAGS[name]]
