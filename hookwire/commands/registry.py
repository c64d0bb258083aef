"""Command registration, validation, and routing.

Commands are slash-prefixed text directives (``/start``,
``/help@mybot arg``) bound to exactly one async handler. The registry
validates names against the platform naming rule, stores definitions
by name, and routes an incoming context to at most one handler.

Key classes:
    CommandDefinition: A named handler plus menu metadata.
    CommandRegistry: Maps command names to definitions and routes.

Key functions:
    validate_command_name: Check a name against COMMAND_NAME_PATTERN.
    extract_command_from_text: Pull the command name out of message text.
    get_message_text: Read ``message.text`` from a host context.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

import structlog

from ..exceptions import CommandValidationError

logger = structlog.get_logger("hookwire.commands")

T = TypeVar("T")

# Handler signature: async (ctx) -> None
CommandHandler = Callable[[T], Awaitable[None]]

# Lowercase letter first, then up to 31 lowercase letters, digits, or underscores.
COMMAND_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,31}$")

_WHITESPACE = re.compile(r"\s")


@dataclass
class CommandDefinition(Generic[T]):
    """A slash command and the handler that serves it.

    Attributes:
        name: Command name without the leading slash.
        description: One-line description shown in menus.
        handler: Async callable receiving the host context.
        usage: Optional usage hint (e.g. "/ban <user_id>").
        hidden: If True, omitted from menus but still routable.
    """
    name: str
    description: str
    handler: Callable[[T], Awaitable[None]]
    usage: Optional[str] = None
    hidden: bool = False


def validate_command_name(name: Any) -> bool:
    """Return True iff ``name`` is a string matching COMMAND_NAME_PATTERN."""
    # fullmatch: "$" alone would accept a trailing newline
    return isinstance(name, str) and COMMAND_NAME_PATTERN.fullmatch(name) is not None


def extract_command_from_text(text: str) -> Optional[str]:
    """Extract the command name from message text.

    ``"/start"`` -> ``"start"``, ``"/help@mybot arg1"`` -> ``"help"``.

    Args:
        text: Raw message text.

    Returns:
        The command name without slash or bot mention, or None if the
        text is not a command or the name part is empty.
    """
    if not text.startswith("/"):
        return None

    command_part = _WHITESPACE.split(text[1:], maxsplit=1)[0]
    command_name = command_part.split("@", 1)[0]
    return command_name or None


def get_message_text(ctx: Any) -> Optional[str]:
    """Read ``ctx.message.text`` from an attribute- or mapping-shaped context."""
    if isinstance(ctx, Mapping):
        message = ctx.get("message")
    else:
        message = getattr(ctx, "message", None)
    if message is None:
        return None
    if isinstance(message, Mapping):
        text = message.get("text")
    else:
        text = getattr(message, "text", None)
    return text if isinstance(text, str) else None


class CommandRegistry(Generic[T]):
    """Maps validated command names to their definitions.

    Re-registering an existing name replaces the previous definition;
    there is no duplicate rejection. Routing awaits the matched
    handler and lets its exceptions propagate to the caller.
    """

    def __init__(self) -> None:
        self._commands: Dict[str, CommandDefinition[T]] = {}

    def validate_command_name(self, name: Any) -> bool:
        """Validate a command name."""
        return validate_command_name(name)

    def register(self, command: CommandDefinition[T]) -> None:
        """Register a command, replacing any existing one with the same name.

        Raises:
            CommandValidationError: If the command name is invalid.
        """
        if not self.validate_command_name(command.name):
            raise CommandValidationError(
                f"Invalid command name {command.name!r}. Command names must start "
                "with a lowercase letter, contain only lowercase letters, digits, "
                "and underscores, and be 1-32 characters long.",
                command_name=command.name,
            )

        if command.name in self._commands:
            logger.debug("command_overwritten", command=command.name)
        self._commands[command.name] = command
        logger.debug("command_registered", command=command.name, hidden=command.hidden)

    def unregister(self, name: str) -> None:
        """Remove a command by name. Unknown names are ignored."""
        if self._commands.pop(name, None) is not None:
            logger.debug("command_unregistered", command=name)

    def get_command(self, name: str) -> Optional[CommandDefinition[T]]:
        """Look up a command definition by name."""
        return self._commands.get(name)

    def get_all_commands(self) -> List[CommandDefinition[T]]:
        """Return all registered command definitions."""
        return list(self._commands.values())

    async def route(self, ctx: T) -> bool:
        """Route a context to the matching command handler.

        Args:
            ctx: Host context exposing an optional ``message.text``.

        Returns:
            True if a registered command handled the message, False if
            there was no text, no command, or no matching registration.
        """
        text = get_message_text(ctx)
        if not text:
            return False

        command_name = extract_command_from_text(text)
        if not command_name:
            return False

        command = self._commands.get(command_name)
        if command is None:
            return False

        await command.handler(ctx)
        return True

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands
