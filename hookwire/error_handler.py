"""Host-side error handling for failed updates.

Logs errors with the user/chat that triggered them, notifies
registered callbacks, and owns the user-facing fallback message the
transport shows after a failure.
"""

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from .config import DEFAULT_ERROR_MESSAGE

logger = structlog.get_logger("hookwire.runtime")


@dataclass
class ErrorContext:
    """Who triggered the failing update (both optional)."""
    user_id: Optional[int] = None
    chat_id: Optional[int] = None


@dataclass
class ErrorLogEntry:
    """Snapshot of the last handled error."""
    error_message: str
    stack_trace: Optional[str]
    user_id: Optional[int]
    chat_id: Optional[int]
    timestamp: datetime = field(default_factory=datetime.now)


ErrorCallback = Callable[[Exception, ErrorContext], None]


class ErrorHandler:
    """Logs handler failures and fans them out to callbacks.

    Args:
        user_message: Fallback text for users; defaults to
            DEFAULT_ERROR_MESSAGE.
    """

    def __init__(self, user_message: Optional[str] = None):
        self._user_message = user_message or DEFAULT_ERROR_MESSAGE
        self._callbacks: List[ErrorCallback] = []
        self._last_logged_error: Optional[ErrorLogEntry] = None

    async def handle(self, error: Exception, ctx: Optional[ErrorContext] = None) -> None:
        """Log ``error`` with its context and notify every callback.

        A callback that raises is logged and skipped; it never
        propagates to the caller.
        """
        ctx = ctx or ErrorContext()
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ) if error.__traceback__ else None

        self._last_logged_error = ErrorLogEntry(
            error_message=str(error),
            stack_trace=stack,
            user_id=ctx.user_id,
            chat_id=ctx.chat_id,
        )

        logger.error(
            "handler_error",
            error=str(error),
            error_type=type(error).__name__,
            user_id=ctx.user_id,
            chat_id=ctx.chat_id,
        )

        for callback in self._callbacks:
            try:
                callback(error, ctx)
            except Exception as e:
                logger.warning("error_callback_failed", error=str(e))

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback invoked for every handled error."""
        self._callbacks.append(callback)

    def set_user_message(self, message: str) -> None:
        """Set the fallback text shown to users after a failure."""
        self._user_message = message

    @property
    def user_message(self) -> str:
        return self._user_message

    @property
    def last_logged_error(self) -> Optional[ErrorLogEntry]:
        """Most recent entry recorded by ``handle`` (None before any)."""
        return self._last_logged_error
