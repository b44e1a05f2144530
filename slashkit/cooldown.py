"""Per-user cooldown tracking for a single command.

Each command instance owns one CooldownTracker. A user moves from
not-tracked to cooling on their first allowed invocation, and back to
not-tracked when the window elapses: a timer on the running event loop
removes the entry, and lookups treat an elapsed entry as gone even if
the timer has not fired yet.

State is in-memory only and does not survive restarts.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

logger = structlog.get_logger("slashkit.commands")


@dataclass
class CooldownState:
    """Snapshot of one user's cooldown status."""
    active: bool
    expires_at: Optional[float] = None  # clock() timestamp
    remaining_seconds: int = 0


class CooldownTracker:
    """Maps user identity to cooldown expiry for one command.

    Args:
        cooldown_ms: Window length in milliseconds. 0 disables tracking.
        clock: Monotonic clock in seconds. Injectable for tests.
    """

    def __init__(
        self,
        cooldown_ms: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_ms = cooldown_ms
        self._clock = clock
        self._expiries: Dict[str, float] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def enabled(self) -> bool:
        return self.cooldown_ms > 0

    @property
    def window_seconds(self) -> float:
        return self.cooldown_ms / 1000

    def __len__(self) -> int:
        return len(self._expiries)

    def __contains__(self, user_id: str) -> bool:
        return self.expiry(user_id) is not None

    def expiry(self, user_id: str) -> Optional[float]:
        """Return the user's expiry timestamp, or None if not cooling."""
        expires_at = self._expiries.get(user_id)
        if expires_at is None:
            return None
        if self._clock() >= expires_at:
            self._forget(user_id)
            return None
        return expires_at

    def check(self, user_id: str) -> Optional[float]:
        """Return seconds left in the user's window, or None if not cooling."""
        expires_at = self.expiry(user_id)
        if expires_at is None:
            return None
        return expires_at - self._clock()

    def get_state(self, user_id: str) -> CooldownState:
        """Return a snapshot of the user's cooldown state."""
        expires_at = self.expiry(user_id)
        if expires_at is None:
            return CooldownState(active=False)
        remaining = math.ceil(expires_at - self._clock())
        return CooldownState(
            active=True,
            expires_at=expires_at,
            remaining_seconds=max(1, remaining),
        )

    def hit(self, user_id: str) -> float:
        """Start the user's window now and schedule its removal.

        Returns:
            The new expiry timestamp.
        """
        expires_at = self._clock() + self.window_seconds
        self._expiries[user_id] = expires_at
        self._schedule_removal(user_id, expires_at)
        return expires_at

    def try_acquire(self, user_id: str) -> CooldownState:
        """Check and, if allowed, start the user's window in one step.

        Returns the active state when the user is still cooling (the
        caller should deny), otherwise an inactive state carrying the
        freshly recorded expiry.
        """
        if not self.enabled:
            return CooldownState(active=False)
        state = self.get_state(user_id)
        if state.active:
            return state
        return CooldownState(active=False, expires_at=self.hit(user_id))

    def reset(self, user_id: str) -> None:
        """Drop one user's window early."""
        self._forget(user_id)

    def clear(self) -> None:
        """Drop every window and cancel pending timers (for shutdown)."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._expiries.clear()

    def _forget(self, user_id: str) -> None:
        self._expiries.pop(user_id, None)
        handle = self._timers.pop(user_id, None)
        if handle is not None:
            handle.cancel()

    def _schedule_removal(self, user_id: str, expires_at: float) -> None:
        """Schedule removal of the entry after the window elapses."""
        previous = self._timers.pop(user_id, None)
        if previous is not None:
            previous.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # No running loop; expiry() cleans up lazily

        self._timers[user_id] = loop.call_later(
            self.window_seconds, self._expire, user_id, expires_at
        )

    def _expire(self, user_id: str, expires_at: float) -> None:
        """Timer callback. Only removes the entry it was scheduled for."""
        if self._expiries.get(user_id) != expires_at:
            return
        self._expiries.pop(user_id, None)
        self._timers.pop(user_id, None)
        logger.debug("cooldown_expired", user=user_id)
