"""Tests for event handlers and the event router."""

import asyncio

import pytest
import structlog.testing

from slashkit import decorators as d
from slashkit.events import BaseEvent, EventRouter
from slashkit.exceptions import DefinitionError


class Recorder(BaseEvent):
    def __init__(self, ctx, **kwargs):
        super().__init__(ctx, **kwargs)
        self.calls = []

    async def execute(self, *args):
        self.calls.append(args)


def declare(registry, name, once=False, base=Recorder):
    cls = type("Handler", (base,), {})
    d.event(name, once=once, registry=registry)(cls)
    return cls


class TestBaseEvent:

    def test_metadata_bound(self, ctx, registry):
        handler = declare(registry, "ready", once=True)(ctx, registry=registry)
        assert handler.name == "ready"
        assert handler.once is True

    def test_missing_metadata_raises(self, ctx, registry):
        with pytest.raises(DefinitionError, match="missing @event"):
            Recorder(ctx, registry=registry)


class TestEventRouter:

    @pytest.mark.asyncio
    async def test_emit_delivers_in_subscription_order(self, ctx, registry):
        order = []

        class Ordered(BaseEvent):
            async def execute(self, *args):
                order.append(self.tag)

        router = EventRouter()
        for tag in ("first", "second"):
            handler = declare(registry, "message", base=Ordered)(ctx, registry=registry)
            handler.tag = tag
            router.subscribe(handler)

        assert await router.emit("message", "payload") == 2
        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_once_handler_runs_once(self, ctx, registry):
        router = EventRouter()
        handler = declare(registry, "ready", once=True)(ctx, registry=registry)
        router.subscribe(handler)

        await router.emit("ready")
        await router.emit("ready")
        assert handler.calls == [()]
        assert "ready" not in router.event_names

    @pytest.mark.asyncio
    async def test_handler_error_is_contained(self, ctx, registry):
        class Broken(BaseEvent):
            async def execute(self, *args):
                raise RuntimeError("boom")

        router = EventRouter()
        router.subscribe(declare(registry, "message", base=Broken)(ctx, registry=registry))
        survivor = declare(registry, "message")(ctx, registry=registry)
        router.subscribe(survivor)

        assert await router.emit("message", 1) == 2
        assert survivor.calls == [(1,)]

    @pytest.mark.asyncio
    async def test_emit_without_subscribers(self):
        router = EventRouter()
        assert await router.emit("typing") == 0
        assert router.emit_nowait("typing") is None

    @pytest.mark.asyncio
    async def test_emit_nowait_schedules_task(self, ctx, registry):
        router = EventRouter()
        handler = declare(registry, "member_join")(ctx, registry=registry)
        router.subscribe(handler)

        task = router.emit_nowait("member_join", "member")
        assert isinstance(task, asyncio.Task)
        await task
        assert handler.calls == [("member",)]

    def test_unsubscribe(self, ctx, registry):
        router = EventRouter()
        handler = declare(registry, "message")(ctx, registry=registry)
        router.subscribe(handler)
        router.unsubscribe(handler)
        assert router.handlers_for("message") == []


class TestRouterLogging:

    def test_subscribe_logs_gateway_event(self, ctx, registry):
        router = EventRouter()
        with structlog.testing.capture_logs() as logs:
            router.subscribe(declare(registry, "ready", once=True)(ctx, registry=registry))
        record = next(r for r in logs if r["event"] == "event_subscribed")
        assert record["gateway_event"] == "ready"
        assert record["once"] is True

    @pytest.mark.asyncio
    async def test_handler_failure_logged_and_contained(self, ctx, registry):
        class Broken(BaseEvent):
            async def execute(self, *args):
                raise RuntimeError("boom")

        router = EventRouter()
        router.subscribe(declare(registry, "message", base=Broken)(ctx, registry=registry))

        with structlog.testing.capture_logs() as logs:
            assert await router.emit("message") == 1
        record = next(r for r in logs if r["event"] == "event_handler_failed")
        assert record["gateway_event"] == "message"
        assert record["error"] == "boom"
        assert record["error_type"] == "RuntimeError"
