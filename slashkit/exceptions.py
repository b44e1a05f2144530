"""Custom exception hierarchy for slashkit.

Provides error classification for the registration and dispatch
pipeline. Only DefinitionError and ConfigurationError are meant to
escape to the caller (they abort startup); everything raised while
handling a live interaction is contained at the dispatch boundary.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for escalation decisions."""
    TRANSIENT = "transient"          # Delivery hiccups, stale interaction tokens
    PERMANENT = "permanent"          # Handler bugs, bad input
    DEFINITION = "definition"        # Programming defects found at startup
    INFRASTRUCTURE = "infrastructure"  # Missing config, env issues


class SlashkitError(Exception):
    """Base exception for all slashkit errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for escalation decisions.
        module: Originating module name (e.g. "dispatch").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    @property
    def is_fatal(self) -> bool:
        """Whether this error should abort startup."""
        return self.category in (ErrorCategory.DEFINITION, ErrorCategory.INFRASTRUCTURE)

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Definition-time exceptions
# ---------------------------------------------------------------------------

class DefinitionError(SlashkitError):
    """A command, event or module class is declared incorrectly.

    Raised when a class is instantiated without its metadata decorator,
    when a decorator receives an invalid value, or when two commands
    claim the same name. Never recoverable at runtime.

    Attributes:
        target: Name of the offending class (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        target: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.DEFINITION,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.target = target
        super().__init__(
            message, category=category, module=module or "metadata", **context
        )


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(SlashkitError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )


# ---------------------------------------------------------------------------
# Runtime exceptions (contained at the dispatch boundary)
# ---------------------------------------------------------------------------

class DeliveryError(SlashkitError):
    """An outbound reply could not be delivered to the gateway.

    Usually a stale interaction token or a transient HTTP failure.
    Logged and swallowed by the dispatcher, never retried.

    Attributes:
        operation: "send_reply", "edit_reply", "defer" or "bulk_declare".
        status: HTTP status returned by the platform (if any).
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        status: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.operation = operation
        self.status = status
        super().__init__(
            message, category=category, module=module or "gateway", **context
        )


class CommandExecutionError(SlashkitError):
    """A command handler failed while executing.

    Wraps the original exception so the dispatcher can log one
    structured record per failed invocation.

    Attributes:
        command: Name of the command that failed.
        user_id: Invoker identity.
    """

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        user_id: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command = command
        self.user_id = user_id
        super().__init__(
            message, category=category, module=module or "dispatch", **context
        )
