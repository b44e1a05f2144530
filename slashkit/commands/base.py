"""Base classes for slash commands.

A command is a BaseCommand subclass declared with the decorators in
:mod:`slashkit.decorators`. Construction binds the instance to its
merged metadata snapshot and fails fast when the class was never
declared; guard evaluation and per-user cooldowns live here so every
command gets them for free.

Key classes:
    BotContext: Service bundle shared by all commands and events.
    BaseCommand: ABC that concrete commands implement.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

import structlog

from .. import metadata as _metadata
from ..cooldown import CooldownTracker
from ..exceptions import DefinitionError
from ..interaction import Interaction

if TYPE_CHECKING:
    from ..config import Config
    from ..dispatch import DispatchRouter
    from ..events import EventRouter
    from ..interaction import CommandDeclarer
    from ..metadata import CommandMetadata, MetadataRegistry
    from ..modules import ModuleRegistry

logger = structlog.get_logger("slashkit.commands")

OWNER_ONLY_MESSAGE = "This command is only available to the bot owner."
GUILD_ONLY_MESSAGE = "This command can only be used in a server."
DM_ONLY_MESSAGE = "This command can only be used in DMs."
COOLDOWN_MESSAGE = "Please wait {seconds} seconds before using this command again."


@dataclass
class BotContext:
    """Service bundle for commands, events and modules.

    Provides typed access to shared collaborators without coupling
    handlers to the gateway client. Deferred fields (set while the bot
    wires itself up) use underscore storage with property getters that
    raise RuntimeError if accessed before initialization.
    """

    config: "Config"
    declarer: Optional["CommandDeclarer"] = None
    request_shutdown: Optional[Callable[[], Awaitable[None]]] = None
    services: Dict[str, Any] = field(default_factory=dict)
    _router: Optional["DispatchRouter"] = field(default=None, repr=False)
    _events: Optional["EventRouter"] = field(default=None, repr=False)
    _modules: Optional["ModuleRegistry"] = field(default=None, repr=False)

    @property
    def router(self) -> "DispatchRouter":
        if self._router is None:
            raise RuntimeError("Bot not wired: dispatch router not available")
        return self._router

    @property
    def events(self) -> "EventRouter":
        if self._events is None:
            raise RuntimeError("Bot not wired: event router not available")
        return self._events

    @property
    def modules(self) -> "ModuleRegistry":
        if self._modules is None:
            raise RuntimeError("Bot not wired: module registry not available")
        return self._modules

    def service(self, name: str) -> Any:
        """Look up an extra collaborator registered under *name*."""
        try:
            return self.services[name]
        except KeyError:
            raise RuntimeError(f"Service not registered: {name}") from None


class BaseCommand(ABC):
    """Abstract base class for slash commands.

    Subclasses must be declared with ``@command(name, description)``
    and implement ``execute()``.

    Args:
        ctx: Shared BotContext service bundle.
        registry: Metadata side table to read from (default: the global one).
        clock: Monotonic clock for cooldowns, injectable for tests.

    Raises:
        DefinitionError: If the class carries no command metadata.
    """

    def __init__(
        self,
        ctx: BotContext,
        *,
        registry: Optional["MetadataRegistry"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ctx = ctx
        source = registry if registry is not None else _metadata.registry
        metadata = source.read_command(type(self))
        if metadata is None:
            raise DefinitionError(
                f"Command {type(self).__name__} is missing @command decorator",
                target=type(self).__name__,
            )
        self.metadata: "CommandMetadata" = metadata
        self.cooldowns = CooldownTracker(metadata.cooldown_ms, clock=clock)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def description(self) -> str:
        return self.metadata.description

    @property
    def permissions(self) -> List[str]:
        """Required platform permissions, in declaration order."""
        return list(self.metadata.permissions)

    @abstractmethod
    async def execute(self, interaction: Interaction) -> None:
        """Run the command. Exceptions are handled by the dispatcher."""
        ...

    async def can_execute(self, interaction: Interaction) -> bool:
        """Evaluate guards in order; the first failing guard denies.

        Sends one private denial reply whenever it returns False.
        Order: owner-only, guild-only, DM-only, cooldown.
        """
        meta = self.metadata

        if meta.owner_only and interaction.user_id != self.ctx.config.owner_id:
            await self._deny(interaction, OWNER_ONLY_MESSAGE, guard="owner_only")
            return False

        if meta.guild_only and not interaction.in_guild:
            await self._deny(interaction, GUILD_ONLY_MESSAGE, guard="guild_only")
            return False

        if meta.dm_only and interaction.in_guild:
            await self._deny(interaction, DM_ONLY_MESSAGE, guard="dm_only")
            return False

        if meta.cooldown_ms > 0:
            state = self.cooldowns.try_acquire(interaction.user_id)
            if state.active:
                await self._deny(
                    interaction,
                    COOLDOWN_MESSAGE.format(seconds=state.remaining_seconds),
                    guard="cooldown",
                )
                return False

        return True

    async def _deny(self, interaction: Interaction, message: str, *, guard: str) -> None:
        """Send a private denial. Delivery failures are logged, not raised."""
        logger.info(
            "command_denied",
            command=self.name,
            guard=guard,
            user=interaction.user_id,
        )
        try:
            await interaction.reply(message, ephemeral=True)
        except Exception as e:
            logger.warning(
                "denial_delivery_failed",
                command=self.name,
                guard=guard,
                error=str(e),
                error_type=type(e).__name__,
            )

    def get_help_line(self) -> str:
        """Return the help text line for this command."""
        return f"/{self.name} - {self.description}"
