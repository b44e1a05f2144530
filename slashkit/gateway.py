"""discord.py gateway adapter.

Bridges a ``discord.Client`` to the transport-neutral core:

* SlashkitClient forwards every gateway event to the EventRouter.
* InteractionCreateEvent turns ``interaction`` events into core
  Interactions and hands them to the DispatchRouter.
* DiscordResponder sends and edits interaction replies.
* DiscordCommandDeclarer bulk-overwrites the application's commands.

Apart from the permission flag table in :mod:`slashkit.permissions`,
nothing outside this module imports discord.py.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import aiohttp
import discord
import structlog

from .decorators import event
from .events import BaseEvent, EventRouter
from .exceptions import DeliveryError
from .interaction import Interaction, InteractionKind, Reply

if TYPE_CHECKING:
    from .commands.base import BotContext

logger = structlog.get_logger("slashkit.gateway")

# Errors the platform client raises when a request does not go through
_DELIVERY_ERRORS = (discord.HTTPException, discord.InteractionResponded, aiohttp.ClientError)


def _reply_kwargs(reply: Reply) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"content": reply.content or None}
    if reply.embeds:
        kwargs["embeds"] = [discord.Embed.from_dict(e) for e in reply.embeds]
    return kwargs


class DiscordResponder:
    """Responder backed by the native interaction carried in ``Interaction.raw``."""

    async def send_reply(self, interaction: Interaction, reply: Reply) -> None:
        native: discord.Interaction = interaction.raw
        if native.response.is_done():
            # Answered outside the core (e.g. a raw defer); edit that response
            await self.edit_reply(interaction, reply)
            return
        try:
            await native.response.send_message(ephemeral=reply.ephemeral, **_reply_kwargs(reply))
        except _DELIVERY_ERRORS as e:
            raise DeliveryError(
                f"Failed to send reply: {e}",
                operation="send_reply",
                status=getattr(e, "status", None),
            ) from e

    async def defer(self, interaction: Interaction, ephemeral: bool = False) -> None:
        native: discord.Interaction = interaction.raw
        try:
            await native.response.defer(ephemeral=ephemeral, thinking=True)
        except _DELIVERY_ERRORS as e:
            raise DeliveryError(
                f"Failed to defer: {e}",
                operation="defer",
                status=getattr(e, "status", None),
            ) from e

    async def edit_reply(self, interaction: Interaction, reply: Reply) -> None:
        native: discord.Interaction = interaction.raw
        try:
            await native.edit_original_response(**_reply_kwargs(reply))
        except _DELIVERY_ERRORS as e:
            raise DeliveryError(
                f"Failed to edit reply: {e}",
                operation="edit_reply",
                status=getattr(e, "status", None),
            ) from e


class DiscordCommandDeclarer:
    """Replaces the application's command set in one request."""

    def __init__(self, client: discord.Client):
        self._client = client

    async def bulk_declare(
        self, declarations: List[Dict[str, Any]], guild_id: Optional[str] = None
    ) -> None:
        application_id = self._client.application_id
        if application_id is None:
            raise DeliveryError(
                "Application id unknown; log in before declaring commands",
                operation="bulk_declare",
            )
        http = self._client.http
        try:
            if guild_id:
                await http.bulk_upsert_guild_commands(application_id, int(guild_id), declarations)
            else:
                await http.bulk_upsert_global_commands(application_id, declarations)
        except _DELIVERY_ERRORS as e:
            raise DeliveryError(
                f"Failed to declare commands: {e}",
                operation="bulk_declare",
                status=getattr(e, "status", None),
            ) from e


def to_interaction(native: Any, responder: Any) -> Optional[Interaction]:
    """Translate a ``discord.Interaction`` into a core Interaction.

    Returns None for interaction types the core does not know.
    """
    try:
        kind = InteractionKind(native.type.value)
    except ValueError:
        logger.debug("interaction_type_unknown", type=native.type)
        return None

    data = native.data or {}
    options = {
        opt["name"]: opt.get("value")
        for opt in data.get("options", [])
        if "value" in opt
    }
    guild_id = str(native.guild_id) if native.guild_id is not None else None
    member_permissions = native.permissions.value if guild_id is not None else None

    return Interaction(
        kind=kind,
        responder=responder,
        id=str(native.id),
        token=native.token,
        command_name=data.get("name"),
        user_id=str(native.user.id),
        user_name=str(native.user),
        guild_id=guild_id,
        channel_id=str(native.channel_id) if native.channel_id is not None else None,
        options=options,
        member_permissions=member_permissions,
        acknowledged=native.response.is_done(),
        raw=native,
    )


@event("interaction")
class InteractionCreateEvent(BaseEvent):
    """Routes every gateway interaction into the dispatcher."""

    async def execute(self, native: Any) -> None:
        interaction = to_interaction(native, self.ctx.service("responder"))
        if interaction is None:
            return
        await self.ctx.router.dispatch(interaction)


class SlashkitClient(discord.Client):
    """discord.Client that mirrors gateway events into an EventRouter.

    Args:
        events: Router receiving every dispatched gateway event.
        intents: Gateway intents (default: ``discord.Intents.default()``).
    """

    def __init__(self, events: EventRouter, *, intents: Optional[discord.Intents] = None, **options: Any):
        super().__init__(intents=intents or discord.Intents.default(), **options)
        self.events = events

    def dispatch(self, event_name: str, /, *args: Any, **kwargs: Any) -> None:
        super().dispatch(event_name, *args, **kwargs)
        self.events.emit_nowait(event_name, *args)

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        exc = sys.exc_info()[1]
        logger.error(
            "gateway_event_error",
            gateway_event=event_method,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        self.events.emit_nowait("error", event_method, exc)
