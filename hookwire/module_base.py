"""Module types and structural validation for hookwire extensibility.

A module bundles commands, event handlers, and optional middlewares
under a single enable/disable flag. Modules may be declared as typed
``BotModule`` instances or as plain mappings (e.g. loaded from a
plugin file); ``parse_module`` turns either into a typed ``BotModule``
or a list of validation failures.

Key classes:
    HandlerDefinition: An event-label-keyed handler owned by a module.
    BotModule: The module bundle itself.
    ModuleInfo: Summary row returned by the loader.
    ModuleContext: Interface handed to ``on_init`` hooks.
    ModuleParseResult: Outcome of ``parse_module``.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    TypeVar,
    Union,
)

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
)

from .commands import CommandDefinition
from .middleware import MiddlewareDefinition

if TYPE_CHECKING:
    from .config import Config

T = TypeVar("T")

# Type alias for module event handlers: async (ctx) -> None
ModuleEventHandler = Callable[[Any], Awaitable[None]]


@dataclass
class HandlerDefinition(Generic[T]):
    """A module handler triggered by an event label.

    Attributes:
        name: Handler name, used in dispatch reports and logs.
        event: Opaque event label (e.g. "message", "callback_query").
        handler: Async callable receiving the host context.
    """
    name: str
    event: str
    handler: Callable[[T], Awaitable[None]]


class ModuleContext:
    """Interface exposed to modules during ``on_init``.

    Modules receive this instead of importing host internals. Only the
    module's own ``modules.<name>`` settings section is visible.
    """

    def __init__(
        self,
        module_name: str,
        config: Optional["Config"] = None,
        services: Optional[Dict[str, Any]] = None,
    ):
        self.module_name = module_name
        self.config = config
        self._module_settings = config.module_settings(module_name) if config else {}
        self.services = dict(services or {})
        self.data_dir: Optional[Path] = config.data_dir / module_name if config else None
        self.logger = structlog.get_logger("hookwire.modules").bind(module=module_name)

    def get_config(self, key: str, default: Any = None) -> Any:
        """Read a value from modules.<module_name>.<key> in settings.yaml."""
        return self._module_settings.get(key, default)

    def get_env(self, key: str) -> Optional[str]:
        """Read an environment variable."""
        return os.environ.get(key)

    def get_service(self, name: str, default: Any = None) -> Any:
        """Return a host-injected service (db, i18n, ...) by name."""
        return self.services.get(name, default)


@dataclass
class BotModule(Generic[T]):
    """A named bundle of commands, event handlers, and middlewares.

    ``on_init`` and ``on_shutdown`` are driven by the host runtime, not
    by the loader.
    """
    name: str
    enabled: bool = True
    commands: List[CommandDefinition[T]] = field(default_factory=list)
    handlers: List[HandlerDefinition[T]] = field(default_factory=list)
    middlewares: Optional[List[MiddlewareDefinition[T]]] = None
    on_init: Optional[Callable[[ModuleContext], Awaitable[None]]] = None
    on_shutdown: Optional[Callable[[], Awaitable[None]]] = None


@dataclass
class ModuleInfo:
    """Summary view of a registered module."""
    name: str
    enabled: bool
    command_count: int
    handler_count: int


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------

class _Schema(BaseModel):
    # from_attributes lets dataclass instances validate like mappings.
    model_config = ConfigDict(from_attributes=True, arbitrary_types_allowed=True)


class CommandSchema(_Schema):
    # usage/hidden are menu metadata and are not part of the structural check.
    name: StrictStr = Field(min_length=1)
    description: StrictStr = Field(min_length=1)
    handler: Callable[..., Any]


class HandlerSchema(_Schema):
    name: StrictStr = Field(min_length=1)
    event: StrictStr = Field(min_length=1)
    handler: Callable[..., Any]


class MiddlewareSchema(_Schema):
    name: StrictStr = Field(min_length=1)
    priority: Union[StrictInt, StrictFloat]
    handler: Callable[..., Any]


class ModuleSchema(_Schema):
    name: StrictStr = Field(min_length=1)
    enabled: StrictBool
    commands: List[CommandSchema]
    handlers: List[HandlerSchema]
    middlewares: Optional[List[MiddlewareSchema]] = None
    on_init: Optional[Callable[..., Any]] = None
    on_shutdown: Optional[Callable[..., Any]] = None


@dataclass
class ModuleParseResult:
    """Either a typed module or the reasons the input was rejected."""
    module: Optional[BotModule] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.module is not None and not self.errors


_NON_OBJECT_TYPES = (str, bytes, bytearray, int, float, bool, list, tuple, set, frozenset)


def _raw_field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _typed_list(raw: Any, schemas: List[BaseModel], cls: type, build: Callable) -> list:
    """Keep ``raw`` verbatim when it already holds ``cls`` items, else convert.

    ``build`` receives each validated schema with its raw source item.
    """
    if isinstance(raw, list) and all(isinstance(item, cls) for item in raw):
        return raw
    items = list(raw) if isinstance(raw, (list, tuple)) else [None] * len(schemas)
    return [build(schema, item) for schema, item in zip(schemas, items)]


def _build_command(schema: CommandSchema, item: Any) -> CommandDefinition:
    usage = _raw_field(item, "usage") if item is not None else None
    hidden = _raw_field(item, "hidden") if item is not None else None
    return CommandDefinition(
        name=schema.name,
        description=schema.description,
        handler=schema.handler,
        usage=usage,
        hidden=bool(hidden),
    )


def _explicit_null_middlewares(data: Any) -> bool:
    # An explicit null is not an omitted key; attribute objects cannot tell the two apart.
    return isinstance(data, Mapping) and "middlewares" in data and data["middlewares"] is None


def _format_errors(exc: ValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "module"
        errors.append(f"{location}: {err['msg']}")
    return errors


def parse_module(data: Any) -> ModuleParseResult:
    """Validate untyped module data and convert it into a ``BotModule``.

    Accepts a ``BotModule``, a mapping, or any attribute-bearing object.
    Never raises; structural problems are reported in ``errors``.

    When the input is already a ``BotModule`` whose lists hold typed
    definitions, that same instance is returned so list identity is
    preserved.
    """
    if data is None or isinstance(data, _NON_OBJECT_TYPES):
        return ModuleParseResult(
            errors=[f"module: expected an object, got {type(data).__name__}"]
        )

    try:
        schema = ModuleSchema.model_validate(data)
    except ValidationError as e:
        return ModuleParseResult(errors=_format_errors(e))

    if _explicit_null_middlewares(data):
        return ModuleParseResult(errors=["middlewares: Input should be a valid list"])

    commands = _typed_list(
        _raw_field(data, "commands"),
        schema.commands,
        CommandDefinition,
        _build_command,
    )
    handlers = _typed_list(
        _raw_field(data, "handlers"),
        schema.handlers,
        HandlerDefinition,
        lambda s, _: HandlerDefinition(name=s.name, event=s.event, handler=s.handler),
    )
    middlewares = None
    if schema.middlewares is not None:
        middlewares = _typed_list(
            _raw_field(data, "middlewares"),
            schema.middlewares,
            MiddlewareDefinition,
            lambda s, _: MiddlewareDefinition(
                name=s.name, priority=s.priority, handler=s.handler
            ),
        )

    if (
        isinstance(data, BotModule)
        and commands is data.commands
        and handlers is data.handlers
        and middlewares is data.middlewares
    ):
        return ModuleParseResult(module=data)

    return ModuleParseResult(
        module=BotModule(
            name=schema.name,
            enabled=schema.enabled,
            commands=commands,
            handlers=handlers,
            middlewares=middlewares,
            on_init=schema.on_init,
            on_shutdown=schema.on_shutdown,
        )
    )


def validate_module(data: Any) -> bool:
    """Return True iff ``data`` is a structurally valid module."""
    return parse_module(data).ok
