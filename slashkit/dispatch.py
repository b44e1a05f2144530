"""Single ingress point for inbound command interactions.

The DispatchRouter resolves an interaction to its command instance,
evaluates the command's guards, runs the middleware chain and the
handler, and contains every failure: a broken handler produces one
generic notice for the user and one log record, never an exception
for the gateway.

Key classes:
    DispatchRouter: Name-keyed command table plus dispatch pipeline.
    DispatchOutcome: What happened to one interaction.
    UsageRecord: Passed to the usage reporter after a successful run.
"""

from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import structlog

from .exceptions import CommandExecutionError, DefinitionError

if TYPE_CHECKING:
    from .commands.base import BaseCommand
    from .interaction import Interaction
    from .middleware import Middleware

logger = structlog.get_logger("slashkit.dispatch")

UNKNOWN_COMMAND_MESSAGE = "Command not found."
FAILURE_MESSAGE = "An error occurred while executing this command."


class DispatchOutcome(str, Enum):
    """Result of dispatching one interaction."""
    IGNORED = "ignored"      # Not a command interaction
    UNKNOWN = "unknown"      # No command registered under that name
    DENIED = "denied"        # A command guard refused
    BLOCKED = "blocked"      # A middleware stopped the invocation
    EXECUTED = "executed"
    FAILED = "failed"        # The handler raised


@dataclass
class UsageRecord:
    """One successful command invocation."""
    command: str
    user_id: str
    guild_id: Optional[str] = None
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


UsageReporter = Callable[[UsageRecord], Awaitable[None]]


async def log_usage(record: UsageRecord) -> None:
    """Default usage reporter: one structured log line per invocation."""
    logger.info(
        "command_usage",
        command=record.command,
        user=record.user_id,
        guild=record.guild_id,
    )


class DispatchRouter:
    """Routes command interactions to registered command instances.

    Args:
        commands: Initial command instances to register.
        usage_reporter: Async callable invoked after each successful run.
        middlewares: Applied in order around every ``execute()``.
    """

    def __init__(
        self,
        commands: Iterable["BaseCommand"] = (),
        usage_reporter: Optional[UsageReporter] = log_usage,
        middlewares: Sequence["Middleware"] = (),
    ):
        self._commands: Dict[str, "BaseCommand"] = {}
        self._usage_reporter = usage_reporter
        self._middlewares: List["Middleware"] = list(middlewares)
        for command in commands:
            self.register(command)

    def register(self, command: "BaseCommand") -> None:
        """Add a command instance to the table.

        Raises:
            DefinitionError: If another instance already owns the name.
        """
        existing = self._commands.get(command.name)
        if existing is not None and existing is not command:
            raise DefinitionError(
                f"Command name {command.name!r} is already registered by "
                f"{type(existing).__name__}",
                target=type(command).__name__,
                module="dispatch",
            )
        self._commands[command.name] = command
        logger.debug("command_registered", command=command.name)

    def unregister(self, name: str) -> Optional["BaseCommand"]:
        return self._commands.pop(name, None)

    def add_middleware(self, middleware: "Middleware") -> None:
        self._middlewares.append(middleware)

    def get(self, name: str) -> Optional["BaseCommand"]:
        """Look up a command by name."""
        return self._commands.get(name)

    @property
    def commands(self) -> List["BaseCommand"]:
        """Registered commands, in registration order."""
        return list(self._commands.values())

    @property
    def command_names(self) -> frozenset:
        """All registered command names."""
        return frozenset(self._commands.keys())

    async def dispatch(self, interaction: "Interaction") -> DispatchOutcome:
        """Resolve, gate, execute and contain one interaction.

        Never raises for failures inside command handling.
        """
        if not interaction.is_command:
            logger.debug("interaction_ignored", kind=interaction.kind.name)
            return DispatchOutcome.IGNORED

        name = interaction.command_name or ""
        command = self._commands.get(name)
        if command is None:
            logger.warning("unknown_command", command=name, user=interaction.user_id)
            await self._safe_reply(interaction, UNKNOWN_COMMAND_MESSAGE, command=name)
            return DispatchOutcome.UNKNOWN

        logger.debug("command_routing", command=name, user=interaction.user_id)
        try:
            if not await command.can_execute(interaction):
                return DispatchOutcome.DENIED
            executed = await self._run_chain(interaction, command)
        except Exception as e:
            error = CommandExecutionError(
                str(e) or type(e).__name__,
                command=name,
                user_id=interaction.user_id,
            )
            logger.error(
                "command_failed",
                command=name,
                user=interaction.user_id,
                guild=interaction.guild_id,
                error=str(error),
                error_type=type(e).__name__,
                exc_info=e,
            )
            await self._safe_reply(interaction, FAILURE_MESSAGE, command=name)
            return DispatchOutcome.FAILED

        if not executed:
            return DispatchOutcome.BLOCKED

        logger.info(
            "command_executed",
            command=name,
            user=interaction.user_id,
            user_name=interaction.user_name,
        )
        await self._report_usage(interaction, name)
        return DispatchOutcome.EXECUTED

    async def _run_chain(self, interaction: "Interaction", command: "BaseCommand") -> bool:
        """Run middlewares then the handler. Returns False if a middleware blocked."""
        executed = False

        async def terminal() -> None:
            nonlocal executed
            executed = True
            result = command.execute(interaction)
            if inspect.isawaitable(result):
                await result

        call_next = terminal
        for middleware in reversed(self._middlewares):
            call_next = functools.partial(middleware, interaction, command, call_next)
        await call_next()
        return executed

    async def _safe_reply(self, interaction: "Interaction", message: str, *, command: str) -> None:
        """Edit the pending reply or send a private one; never raises."""
        try:
            await interaction.respond(message, ephemeral=True)
        except Exception as e:
            logger.warning(
                "notice_delivery_failed",
                command=command,
                user=interaction.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _report_usage(self, interaction: "Interaction", name: str) -> None:
        if self._usage_reporter is None:
            return
        record = UsageRecord(
            command=name, user_id=interaction.user_id, guild_id=interaction.guild_id
        )
        try:
            await self._usage_reporter(record)
        except Exception as e:
            logger.warning("usage_report_failed", command=name, error=str(e))
