"""hookwire: in-process extension runtime for chat bots.

Command registry, priority-ordered middleware pipeline, and a module
loader with fault-isolated event dispatch.
"""

from .commands import (
    CommandDefinition,
    CommandRegistry,
    extract_command_from_text,
    validate_command_name,
)
from .exceptions import (
    CommandValidationError,
    HookwireError,
    MiddlewareChainError,
    ModuleExecutionError,
    ModuleValidationError,
)
from .middleware import MiddlewareDefinition, MiddlewarePipeline
from .module_base import (
    BotModule,
    HandlerDefinition,
    ModuleContext,
    ModuleInfo,
    parse_module,
    validate_module,
)
from .module_loader import DispatchResult, ModuleLoader, discover_modules
from .runtime import ExtensionRuntime, ProcessOutcome

__version__ = "0.1.0"

__all__ = [
    "BotModule",
    "CommandDefinition",
    "CommandRegistry",
    "CommandValidationError",
    "DispatchResult",
    "ExtensionRuntime",
    "HandlerDefinition",
    "HookwireError",
    "MiddlewareChainError",
    "MiddlewareDefinition",
    "MiddlewarePipeline",
    "ModuleContext",
    "ModuleExecutionError",
    "ModuleInfo",
    "ModuleLoader",
    "ModuleValidationError",
    "ProcessOutcome",
    "discover_modules",
    "extract_command_from_text",
    "parse_module",
    "validate_command_name",
    "validate_module",
]
