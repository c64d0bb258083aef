"""Command registry for hookwire.

Provides CommandDefinition, CommandRegistry, and the pure helpers for
validating command names and extracting them from message text.
"""

from .registry import (
    COMMAND_NAME_PATTERN,
    CommandDefinition,
    CommandHandler,
    CommandRegistry,
    extract_command_from_text,
    get_message_text,
    validate_command_name,
)

__all__ = [
    "COMMAND_NAME_PATTERN",
    "CommandDefinition",
    "CommandHandler",
    "CommandRegistry",
    "extract_command_from_text",
    "get_message_text",
    "validate_command_name",
]
