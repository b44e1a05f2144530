"""Tests for SlashkitBot wiring and lifecycle."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_config, make_interaction
from slashkit.bot import SlashkitBot
from slashkit.dispatch import DispatchOutcome
from slashkit.middleware import PermissionMiddleware, RateLimitMiddleware


def bot_config(**overrides):
    values = {
        "bot_token": "token",
        "application_id": "123",
        "rate_limit_enabled": True,
        "rate_limit_max": 5,
        "rate_limit_window_seconds": 60.0,
    }
    values.update(overrides)
    return make_config(**values)


def make_bot(**overrides):
    client = MagicMock()
    client.start = AsyncMock()
    client.close = AsyncMock()
    return SlashkitBot(bot_config(**overrides), client=client)


def test_middleware_stack_follows_config():
    bot = make_bot()
    kinds = [type(m) for m in bot.router._middlewares]
    assert kinds == [RateLimitMiddleware, PermissionMiddleware]

    bot = make_bot(rate_limit_enabled=False)
    assert [type(m) for m in bot.router._middlewares] == [PermissionMiddleware]


@pytest.mark.asyncio
async def test_setup_registers_default_module_once():
    bot = make_bot()
    await bot.setup()
    await bot.setup()

    assert bot.router.command_names == frozenset({"ping", "help", "shutdown"})
    assert {"ready", "error", "interaction"} <= bot.events.event_names
    assert len(bot.events.handlers_for("interaction")) == 1
    assert bot.ctx.modules is bot.modules
    assert bot.ctx.service("client") is bot.client


@pytest.mark.asyncio
async def test_run_starts_client_with_token():
    bot = make_bot()
    await bot.run()
    bot.client.start.assert_awaited_once_with("token")


@pytest.mark.asyncio
async def test_shutdown_command_sets_event():
    bot = make_bot()
    await bot.setup()
    owner = make_interaction("shutdown", user_id=bot.config.owner_id)
    assert await bot.router.dispatch(owner) == DispatchOutcome.EXECUTED
    assert bot.shutdown_event.is_set()


@pytest.mark.asyncio
async def test_stop_closes_client_even_if_close_fails():
    bot = make_bot()
    await bot.setup()
    bot.client.close.side_effect = RuntimeError("already closed")
    await bot.stop()
    bot.client.close.assert_awaited_once()
