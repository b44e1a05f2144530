"""Shared fixtures: fake gateway responder, interactions and contexts."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from slashkit.commands.base import BotContext
from slashkit.interaction import Interaction, InteractionKind
from slashkit.metadata import MetadataRegistry

OWNER_ID = "100"


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_responder():
    responder = AsyncMock()
    responder.send_reply = AsyncMock()
    responder.edit_reply = AsyncMock()
    responder.defer = AsyncMock()
    return responder


def make_interaction(
    command_name="ping",
    user_id="200",
    guild_id="300",
    kind=InteractionKind.APPLICATION_COMMAND,
    responder=None,
    **kwargs,
):
    return Interaction(
        kind=kind,
        responder=responder or make_responder(),
        id="1",
        token="tok",
        command_name=command_name,
        user_id=user_id,
        guild_id=guild_id,
        **kwargs,
    )


def make_config(**overrides):
    values = {
        "owner_id": OWNER_ID,
        "environment": "test",
        "is_development": False,
        "dev_guild_id": None,
        "declare_commands_on_ready": True,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def sent_texts(responder):
    """Contents of every initial reply sent through *responder*."""
    return [call.args[1].content for call in responder.send_reply.await_args_list]


@pytest.fixture
def registry():
    return MetadataRegistry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ctx():
    return BotContext(config=make_config())
