"""Bot wiring for slashkit.

Builds the dispatch pipeline (routers, middleware, module registry)
around a gateway client and owns the start/stop lifecycle.

Key classes:
    SlashkitBot: Owns every subsystem instance and the service bundle
        handed to modules, commands and events.
"""

import asyncio
from typing import Any, List, Optional, Sequence, Type, Union

import structlog

from .commands.base import BotContext
from .config import Config, get_config
from .dispatch import DispatchRouter, log_usage
from .events import EventRouter
from .gateway import DiscordCommandDeclarer, DiscordResponder, InteractionCreateEvent, SlashkitClient
from .general import GeneralModule
from .middleware import Middleware, PermissionMiddleware, RateLimitMiddleware
from .modules import BaseModule, ModuleRegistry

logger = structlog.get_logger("slashkit.bot")

DEFAULT_MODULES: List[Type[BaseModule]] = [GeneralModule]


class SlashkitBot:
    """Slash-command bot: gateway client plus dispatch pipeline.

    Args:
        config: Loaded configuration (default: global config).
        modules: Module classes or instances to load, in order.
        client: Gateway client; built from config when omitted.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        modules: Optional[Sequence[Union[BaseModule, Type[BaseModule]]]] = None,
        client: Optional[Any] = None,
    ):
        self.config = config or get_config()
        self.events = EventRouter()
        self.router = DispatchRouter(usage_reporter=log_usage, middlewares=self._middlewares())

        if client is None:
            application_id = self.config.application_id
            client = SlashkitClient(
                self.events,
                application_id=int(application_id) if application_id else None,
            )
        self.client = client

        self.shutdown_event = asyncio.Event()
        self.ctx = BotContext(
            config=self.config,
            declarer=DiscordCommandDeclarer(self.client),
            request_shutdown=self.request_shutdown,
            services={"client": self.client, "responder": DiscordResponder()},
            _router=self.router,
            _events=self.events,
        )
        self.modules = ModuleRegistry(self.ctx, self.router, self.events)
        self.ctx._modules = self.modules

        self._module_specs = list(modules) if modules is not None else list(DEFAULT_MODULES)
        self._setup_done = False

    def _middlewares(self) -> List[Middleware]:
        middlewares: List[Middleware] = []
        if self.config.rate_limit_enabled:
            middlewares.append(
                RateLimitMiddleware(
                    max_requests=self.config.rate_limit_max,
                    window_seconds=self.config.rate_limit_window_seconds,
                )
            )
        middlewares.append(PermissionMiddleware())
        return middlewares

    async def setup(self) -> None:
        """Load modules and subscribe the interaction bridge.

        Raises DefinitionError on any declaration defect, before the
        gateway is contacted.
        """
        if self._setup_done:
            return
        await self.modules.register_all(self._module_specs)
        self.events.subscribe(InteractionCreateEvent(self.ctx))
        self._setup_done = True
        logger.info(
            "bot_setup_complete",
            commands=sorted(self.router.command_names),
            events=sorted(self.events.event_names),
        )

    async def run(self) -> None:
        """Set up, log in and hold the gateway connection until closed."""
        await self.setup()
        logger.info("bot_starting", environment=self.config.environment)
        await self.client.start(self.config.bot_token)

    async def request_shutdown(self) -> None:
        """Ask the entry point to stop the bot."""
        logger.info("shutdown_requested_by_command")
        self.shutdown_event.set()

    async def stop(self) -> None:
        """Shut modules down (reverse order) and close the gateway."""
        await self.modules.shutdown_all()
        try:
            await self.client.close()
        except Exception as e:
            logger.error("client_close_failed", error=str(e))
        logger.info("bot_stopped")
