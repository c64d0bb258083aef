"""Exception hierarchy for hookwire.

Every error raised by the extension runtime derives from HookwireError,
so hosts can catch broadly while still handling each subsystem
precisely.

Registration errors (CommandValidationError, ModuleValidationError) are
raised synchronously and are fatal to the call that produced them.
ModuleExecutionError is different: isolated dispatch collects it into a
result list and never raises it.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"            # e.g. a module handler timed out talking to a service
    PERMANENT = "permanent"            # bad module shape, bad command name
    INFRASTRUCTURE = "infrastructure"  # unreadable settings, missing directories


class HookwireError(Exception):
    """Base exception for all hookwire errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry/escalation decisions.
        module: Originating subsystem name (e.g. "modules.loader").
        context: Extra key-value pairs, emitted by ``log_fields``.
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
        return self.category == ErrorCategory.TRANSIENT

    def log_fields(self) -> Dict[str, Any]:
        """Keyword arguments describing this error for a structlog call.

        ``event`` is structlog's positional event name, so a context key
        of that name is emitted as ``event_label``.
        """
        fields: Dict[str, Any] = {
            "error": self.message or type(self).__name__,
            "error_type": type(self).__name__,
            "category": self.category.value,
        }
        if self.module:
            fields["subsystem"] = self.module
        for key, value in self.context.items():
            fields["event_label" if key == "event" else key] = value
        return fields

    def __str__(self) -> str:
        text = self.message or type(self).__name__
        if self.module:
            text = f"{self.module}: {text}"
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            text = f"{text} ({details})"
        return text

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, "
            f"category={self.category.value!r}, module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Command registry
# ---------------------------------------------------------------------------

class CommandValidationError(HookwireError):
    """A command name does not satisfy the naming pattern.

    Attributes:
        command_name: The rejected name.
    """

    def __init__(
        self,
        message: str = "",
        *,
        command_name: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command_name = command_name
        super().__init__(
            message,
            category=ErrorCategory.PERMANENT,
            module=module or "commands",
            **context,
        )


# ---------------------------------------------------------------------------
# Middleware pipeline
# ---------------------------------------------------------------------------

class MiddlewareChainError(HookwireError):
    """A middleware misused its continuation (e.g. called next() twice).

    Attributes:
        middleware_name: Name of the offending middleware.
    """

    def __init__(
        self,
        message: str = "",
        *,
        middleware_name: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.middleware_name = middleware_name
        super().__init__(
            message,
            category=ErrorCategory.PERMANENT,
            module=module or "middleware",
            **context,
        )


# ---------------------------------------------------------------------------
# Module loader
# ---------------------------------------------------------------------------

class ModuleValidationError(HookwireError):
    """A module is structurally invalid or its name is already taken.

    Attributes:
        module_name: Name of the rejected module, if it had one.
        errors: Individual validation failures.
    """

    def __init__(
        self,
        message: str = "",
        *,
        module_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.module_name = module_name
        self.errors = list(errors or [])
        super().__init__(
            message,
            category=ErrorCategory.PERMANENT,
            module=module or "modules.loader",
            **context,
        )


class ModuleExecutionError(HookwireError):
    """Wraps an exception raised by a module's event handler.

    Produced by isolated dispatch and collected into its result; the
    dispatcher itself never raises it.

    Attributes:
        module_name: Name of the module whose handler failed.
        original_error: The exception the handler raised.
        handler_name: Name of the failing handler definition.
        event: Event label being dispatched.
    """

    def __init__(
        self,
        module_name: str,
        original_error: BaseException,
        *,
        handler_name: Optional[str] = None,
        event: Optional[str] = None,
    ) -> None:
        self.module_name = module_name
        self.original_error = original_error
        self.handler_name = handler_name
        self.event = event
        if isinstance(original_error, HookwireError):
            category = original_error.category
        else:
            category = ErrorCategory.PERMANENT
        super().__init__(
            f'Error in module "{module_name}": {original_error}',
            category=category,
            module="modules.dispatch",
        )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(HookwireError):
    """Invalid or unreadable configuration.

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
