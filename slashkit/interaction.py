"""Transport-neutral interaction model.

The gateway adapter translates platform payloads into ``Interaction``
objects; commands and the dispatcher only ever see this type. Replies
go back out through a ``Responder``, which is the gateway's concern.

Key classes:
    InteractionKind: Discriminator for inbound notifications.
    Reply: Outbound message payload (text + private flag).
    Responder: Protocol the gateway implements for replies and deferrals.
    CommandDeclarer: Protocol the gateway implements for bulk declaration.
    Interaction: One inbound user invocation.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Protocol


class InteractionKind(IntEnum):
    """Interaction types as tagged by the platform."""
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


@dataclass
class Reply:
    """An outbound reply. Private replies are only visible to the invoker."""
    content: str = ""
    ephemeral: bool = False
    embeds: List[Dict[str, Any]] = field(default_factory=list)


class Responder(Protocol):
    """Outbound reply channel provided by the gateway."""

    async def send_reply(self, interaction: "Interaction", reply: Reply) -> None:
        """Send the initial response to an interaction."""
        ...

    async def edit_reply(self, interaction: "Interaction", reply: Reply) -> None:
        """Edit the response that was already sent."""
        ...

    async def defer(self, interaction: "Interaction", ephemeral: bool = False) -> None:
        """Acknowledge now; the reply arrives later through ``edit_reply``."""
        ...


class CommandDeclarer(Protocol):
    """Idempotent bulk replacement of the platform's command list."""

    async def bulk_declare(
        self, declarations: List[Dict[str, Any]], guild_id: Optional[str] = None
    ) -> None:
        ...


@dataclass
class Interaction:
    """One inbound invocation notification.

    Attributes:
        kind: Interaction type tag.
        id: Platform interaction id.
        token: Interaction token used for follow-up replies.
        command_name: Invoked command (application commands only).
        user_id: Invoker identity.
        user_name: Invoker display name (for logs).
        guild_id: Guild the invocation came from, None for DMs.
        channel_id: Channel the invocation came from.
        options: Option name -> resolved value.
        member_permissions: Invoker's resolved permission mask in the
            guild, None outside guilds.
        responder: Gateway reply channel.
        acknowledged: True once any reply has been sent.
        raw: Original platform object, for handlers that need more.
    """
    kind: InteractionKind
    responder: Responder
    id: str = ""
    token: str = ""
    command_name: Optional[str] = None
    user_id: str = ""
    user_name: str = ""
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    member_permissions: Optional[int] = None
    acknowledged: bool = False
    raw: Any = field(default=None, repr=False)

    @property
    def is_command(self) -> bool:
        return self.kind == InteractionKind.APPLICATION_COMMAND

    @property
    def in_guild(self) -> bool:
        return self.guild_id is not None

    def option(self, name: str, default: Any = None) -> Any:
        """Return the value the invoker passed for option *name*."""
        return self.options.get(name, default)

    async def reply(
        self, content: str = "", *, ephemeral: bool = False, **extra: Any
    ) -> None:
        """Send the initial response."""
        await self.responder.send_reply(self, Reply(content=content, ephemeral=ephemeral, **extra))
        self.acknowledged = True

    async def defer(self, *, ephemeral: bool = False) -> None:
        """Acknowledge without content, for handlers that need time.

        Later replies and failure notices edit the pending response.
        """
        await self.responder.defer(self, ephemeral=ephemeral)
        self.acknowledged = True

    async def edit_reply(self, content: str = "", **extra: Any) -> None:
        """Replace the content of the response already sent."""
        await self.responder.edit_reply(self, Reply(content=content, **extra))

    async def respond(
        self, content: str = "", *, ephemeral: bool = False, **extra: Any
    ) -> None:
        """Edit the pending reply if one exists, otherwise send a new one."""
        if self.acknowledged:
            await self.edit_reply(content, **extra)
        else:
            await self.reply(content, ephemeral=ephemeral, **extra)
