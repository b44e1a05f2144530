"""Lifecycle events for the general module."""

from typing import Any

import structlog

from ..decorators import event
from ..events import BaseEvent

logger = structlog.get_logger("slashkit.events")


@event("ready", once=True)
class ReadyEvent(BaseEvent):
    """Declares commands once the gateway session is up."""

    async def execute(self, *args: Any) -> None:
        config = self.ctx.config
        client = self.ctx.services.get("client")
        user = getattr(client, "user", None)
        logger.info(
            "gateway_ready",
            user=str(user) if user is not None else None,
            environment=config.environment,
        )
        if not config.declare_commands_on_ready:
            return
        guild_id = config.dev_guild_id if config.is_development else None
        await self.ctx.modules.declare_commands(guild_id=guild_id)


@event("error")
class ErrorEvent(BaseEvent):

    async def execute(self, event_method: str = "", error: Any = None, *args: Any) -> None:
        logger.error(
            "client_error",
            gateway_event=event_method,
            error=str(error),
            error_type=type(error).__name__,
        )
