"""The general module: everyday commands plus lifecycle events."""

import structlog

from ..modules import BaseModule
from .commands import HelpCommand, PingCommand, ShutdownCommand
from .events import ErrorEvent, ReadyEvent

logger = structlog.get_logger("slashkit.modules")


class GeneralModule(BaseModule):
    name = "general"
    description = "Ping, help and owner controls"
    commands = (PingCommand, HelpCommand, ShutdownCommand)
    events = (ReadyEvent, ErrorEvent)

    async def initialize(self) -> None:
        logger.info("module_initializing", module=self.name)
