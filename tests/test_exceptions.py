"""Tests for the hookwire exception hierarchy."""

from hookwire.exceptions import (
    CommandValidationError,
    ConfigurationError,
    ErrorCategory,
    HookwireError,
    MiddlewareChainError,
    ModuleExecutionError,
    ModuleValidationError,
)


def test_all_errors_share_base():
    for cls in (
        CommandValidationError,
        ConfigurationError,
        MiddlewareChainError,
        ModuleValidationError,
    ):
        assert issubclass(cls, HookwireError)
    assert issubclass(ModuleExecutionError, HookwireError)


def test_str_includes_module_and_context():
    error = HookwireError("failed", module="commands", attempt=2)
    assert str(error) == "commands: failed (attempt=2)"
    assert "category='permanent'" in repr(error)


def test_log_fields_are_safe_structlog_kwargs():
    error = ModuleValidationError("bad", module_name="m", event="message")
    fields = error.log_fields()

    assert fields["error"] == "bad"
    assert fields["error_type"] == "ModuleValidationError"
    assert fields["subsystem"] == "modules.loader"
    assert fields["event_label"] == "message"
    assert "event" not in fields


def test_only_transient_is_retryable():
    assert HookwireError("x", category=ErrorCategory.TRANSIENT).is_retryable
    assert not HookwireError("x").is_retryable
    assert not ConfigurationError("x").is_retryable


def test_subsystem_defaults():
    assert CommandValidationError("x", command_name="Bad").module == "commands"
    assert MiddlewareChainError("x", middleware_name="auth").module == "middleware"
    assert ConfigurationError("x").category == ErrorCategory.INFRASTRUCTURE


def test_module_validation_error_copies_errors():
    errors = ["name: Field required"]
    error = ModuleValidationError("bad", module_name="m", errors=errors)
    errors.append("later")
    assert error.errors == ["name: Field required"]
    assert ModuleValidationError("bad").errors == []


def test_module_execution_error_wraps_original():
    original = ValueError("boom")
    error = ModuleExecutionError("weather", original, handler_name="h", event="message")

    assert error.message == 'Error in module "weather": boom'
    assert error.original_error is original
    assert error.module_name == "weather"
    assert error.category == ErrorCategory.PERMANENT


def test_module_execution_error_inherits_category():
    original = HookwireError("timeout", category=ErrorCategory.TRANSIENT)
    assert ModuleExecutionError("weather", original).is_retryable
