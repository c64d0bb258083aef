"""Tests for the host error handler."""

from unittest.mock import MagicMock

import pytest

from hookwire.config import DEFAULT_ERROR_MESSAGE
from hookwire.error_handler import ErrorContext, ErrorHandler


def _raised(exc):
    """Return ``exc`` after raising it so it carries a traceback."""
    try:
        raise exc
    except Exception as e:
        return e


class TestErrorHandler:

    @pytest.mark.asyncio
    async def test_records_last_error_with_context(self):
        handler = ErrorHandler()
        error = _raised(RuntimeError("db down"))

        await handler.handle(error, ErrorContext(user_id=1, chat_id=2))

        entry = handler.last_logged_error
        assert entry.error_message == "db down"
        assert entry.user_id == 1
        assert entry.chat_id == 2
        assert "RuntimeError" in entry.stack_trace

    @pytest.mark.asyncio
    async def test_error_without_traceback(self):
        handler = ErrorHandler()
        await handler.handle(ValueError("never raised"))

        entry = handler.last_logged_error
        assert entry.stack_trace is None
        assert entry.user_id is None

    @pytest.mark.asyncio
    async def test_callbacks_receive_error_and_context(self):
        handler = ErrorHandler()
        first, second = MagicMock(), MagicMock()
        handler.on_error(first)
        handler.on_error(second)
        error = ValueError("bad")
        ctx = ErrorContext(user_id=5)

        await handler.handle(error, ctx)

        first.assert_called_once_with(error, ctx)
        second.assert_called_once_with(error, ctx)

    @pytest.mark.asyncio
    async def test_failing_callback_is_swallowed(self):
        handler = ErrorHandler()
        after = MagicMock()
        handler.on_error(MagicMock(side_effect=RuntimeError("callback broke")))
        handler.on_error(after)

        await handler.handle(ValueError("bad"))
        after.assert_called_once()

    def test_user_message_default_and_override(self):
        handler = ErrorHandler()
        assert handler.user_message == DEFAULT_ERROR_MESSAGE

        handler.set_user_message("Please retry")
        assert handler.user_message == "Please retry"
        assert ErrorHandler("Custom").user_message == "Custom"

    def test_no_error_logged_initially(self):
        assert ErrorHandler().last_logged_error is None
