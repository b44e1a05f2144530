"""Module discovery, registration and lifecycle management.

A module groups related commands and event handlers. The
ModuleRegistry instantiates a module's classes (which fails fast on
missing metadata), registers the instances with the dispatch and event
routers, declares the resulting command list to the platform, and
shuts modules down in reverse order.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Type, Union

import structlog

from .commands.base import BaseCommand
from .events import BaseEvent
from .exceptions import DefinitionError

if TYPE_CHECKING:
    from .commands.base import BotContext
    from .dispatch import DispatchRouter
    from .events import EventRouter

logger = structlog.get_logger("slashkit.modules")


class BaseModule:
    """Base class for slashkit modules.

    Subclass this, list the command and event classes, and override
    the lifecycle hooks you need.
    """

    name: str = ""
    description: str = ""
    commands: Sequence[Type[BaseCommand]] = ()
    events: Sequence[Type[BaseEvent]] = ()

    def __init__(self, ctx: "BotContext"):
        self.ctx = ctx

    def create_commands(self) -> List[BaseCommand]:
        """Instantiate this module's commands. Raises DefinitionError on bad classes."""
        return [cls(self.ctx) for cls in self.commands]

    def create_events(self) -> List[BaseEvent]:
        """Instantiate this module's event handlers."""
        return [cls(self.ctx) for cls in self.events]

    async def initialize(self) -> None:
        """Called once, after instances are built and before they are registered."""
        pass

    async def shutdown(self) -> None:
        """Called during bot shutdown. Clean up resources."""
        pass


class ModuleRegistry:
    """Owns every loaded module and the instances it contributed.

    Args:
        ctx: Service bundle handed to modules.
        router: Command table the instances are registered into.
        events: Event router the handlers are subscribed to.
    """

    def __init__(self, ctx: "BotContext", router: "DispatchRouter", events: "EventRouter"):
        self.ctx = ctx
        self.router = router
        self.events = events
        self.modules: List[BaseModule] = []
        self._commands: Dict[str, List[BaseCommand]] = {}
        self._events: Dict[str, List[BaseEvent]] = {}

    async def register(self, module: Union[BaseModule, Type[BaseModule]]) -> BaseModule:
        """Build, initialize and register one module.

        Args:
            module: A BaseModule instance, or a subclass to instantiate
                with this registry's context.

        Raises:
            DefinitionError: On a missing name, a duplicate module or
                command name, or a command/event class without metadata.
        """
        if isinstance(module, type):
            module = module(self.ctx)

        module_name = module.name or type(module).__name__
        if not module.name:
            raise DefinitionError(
                f"Module {module_name} has no name", target=module_name, module="modules"
            )
        if module_name in self._commands:
            raise DefinitionError(
                f"Module {module_name!r} is already registered",
                target=module_name,
                module="modules",
            )

        commands = module.create_commands()
        events = module.create_events()
        self._check_names(module_name, commands)

        await module.initialize()

        for command in commands:
            self.router.register(command)
        for handler in events:
            self.events.subscribe(handler)

        self.modules.append(module)
        self._commands[module_name] = commands
        self._events[module_name] = events

        logger.info(
            "module_loaded",
            module=module_name,
            commands=[c.name for c in commands],
            events=[e.name for e in events],
        )
        return module

    async def register_all(self, modules: Sequence[Union[BaseModule, Type[BaseModule]]]) -> None:
        for module in modules:
            await self.register(module)
        logger.info(
            "module_registry_complete",
            modules_loaded=len(self.modules),
            commands=len(self.commands),
        )

    def _check_names(self, module_name: str, commands: List[BaseCommand]) -> None:
        counts = Counter(c.name for c in commands)
        for name, count in counts.items():
            if count > 1 or name in self.router.command_names:
                raise DefinitionError(
                    f"Command name {name!r} from module {module_name!r} is already taken",
                    target=module_name,
                    module="modules",
                    command=name,
                )

    @property
    def commands(self) -> List[BaseCommand]:
        """All command instances, in module then declaration order."""
        return [c for module in self.modules for c in self._commands[module.name]]

    def commands_for(self, module_name: str) -> List[BaseCommand]:
        return list(self._commands.get(module_name, []))

    def events_for(self, module_name: str) -> List[BaseEvent]:
        return list(self._events.get(module_name, []))

    def get(self, module_name: str) -> Optional[BaseModule]:
        for module in self.modules:
            if module.name == module_name:
                return module
        return None

    def declarations(self) -> List[Dict[str, Any]]:
        """Ordered bulk-declaration payload for every command."""
        return [c.metadata.to_declaration() for c in self.commands]

    async def declare_commands(self, guild_id: Optional[str] = None) -> int:
        """Replace the platform's command list with ours, in one call.

        Returns:
            Number of commands declared.
        """
        declarer = self.ctx.declarer
        if declarer is None:
            logger.warning("declare_commands_skipped", reason="no declarer configured")
            return 0
        declarations = self.declarations()
        await declarer.bulk_declare(declarations, guild_id=guild_id)
        logger.info(
            "commands_declared",
            count=len(declarations),
            scope="guild" if guild_id else "global",
            guild=guild_id,
        )
        return len(declarations)

    async def shutdown_all(self) -> None:
        """Call shutdown() on all modules (reverse order)."""
        for module in reversed(self.modules):
            try:
                await module.shutdown()
                logger.info("module_stopped", module=module.name)
            except Exception as e:
                logger.error(
                    "module_stop_failed",
                    module=module.name,
                    error=str(e),
                )
            for command in self._commands.get(module.name, []):
                command.cooldowns.clear()
