"""Middleware that wraps command execution.

Middlewares run after a command's own guards pass and before its
``execute()``. Each one receives the interaction, the resolved command
and a ``call_next`` coroutine function; not awaiting ``call_next``
stops the invocation (the middleware is then responsible for telling
the user why).

Provided middlewares:
    RateLimitMiddleware: Per-user sliding window across all commands.
    PermissionMiddleware: Checks the invoker's resolved platform
        permissions against the command's required permissions.
"""

from __future__ import annotations

import math
import time
from collections import defaultdict
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Protocol

import structlog

from .permissions import dedupe, missing_permissions

if TYPE_CHECKING:
    from .commands.base import BaseCommand
    from .interaction import Interaction

logger = structlog.get_logger("slashkit.dispatch")

CallNext = Callable[[], Awaitable[None]]

# Drop idle users from the rate limiter at most this often
_RATE_LIMIT_CLEANUP_INTERVAL = 300


class Middleware(Protocol):
    async def __call__(
        self, interaction: "Interaction", command: "BaseCommand", call_next: CallNext
    ) -> None:
        ...


async def _notify(interaction: "Interaction", message: str, source: str) -> None:
    """Send a private notice; delivery failures are logged and swallowed."""
    try:
        await interaction.reply(message, ephemeral=True)
    except Exception as e:
        logger.warning(
            "middleware_delivery_failed",
            middleware=source,
            error=str(e),
            error_type=type(e).__name__,
        )


class RateLimitMiddleware:
    """Sliding-window rate limiter keyed by invoker identity.

    Args:
        max_requests: Allowed invocations per window.
        window_seconds: Window length.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = clock()

    def check(self, user_id: str) -> float:
        """Record a request if allowed.

        Returns:
            0 when the request is allowed, otherwise seconds until the
            oldest request leaves the window.
        """
        now = self._clock()
        window_start = now - self.window_seconds
        self._requests[user_id] = [ts for ts in self._requests[user_id] if ts > window_start]

        if now - self._last_cleanup > _RATE_LIMIT_CLEANUP_INTERVAL:
            self._last_cleanup = now
            stale = [key for key, stamps in self._requests.items() if not stamps]
            for key in stale:
                del self._requests[key]

        stamps = self._requests[user_id]
        if len(stamps) >= self.max_requests:
            return stamps[0] + self.window_seconds - now

        stamps.append(now)
        return 0

    def reset(self) -> None:
        """Reset rate limit state (for testing)."""
        self._requests.clear()

    async def __call__(
        self, interaction: "Interaction", command: "BaseCommand", call_next: CallNext
    ) -> None:
        retry_after = self.check(interaction.user_id)
        if retry_after > 0:
            logger.warning(
                "rate_limit_exceeded",
                user=interaction.user_id,
                command=command.name,
                retry_after=round(retry_after, 2),
            )
            await _notify(
                interaction,
                "You're being rate limited. Please try again in "
                f"{max(1, math.ceil(retry_after))} seconds.",
                "rate_limit",
            )
            return
        await call_next()


class PermissionMiddleware:
    """Checks required platform permissions against the invoker's mask."""

    async def __call__(
        self, interaction: "Interaction", command: "BaseCommand", call_next: CallNext
    ) -> None:
        required = command.permissions
        if not required:
            await call_next()
            return

        if not interaction.in_guild:
            await _notify(
                interaction,
                "This command requires guild permissions and can only be used in a server.",
                "permissions",
            )
            return

        if interaction.member_permissions is None:
            await _notify(interaction, "Could not verify your permissions.", "permissions")
            return

        missing = missing_permissions(interaction.member_permissions, required)
        if missing:
            logger.info(
                "permission_denied",
                command=command.name,
                user=interaction.user_id,
                missing=missing,
            )
            await _notify(
                interaction,
                f"You need the following permissions: {', '.join(dedupe(required))}",
                "permissions",
            )
            return

        await call_next()
