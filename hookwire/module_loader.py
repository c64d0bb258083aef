"""Module registration, enable/disable, isolated dispatch, and discovery.

The loader keeps one mutable record per module, keyed by name, in
registration order. Event dispatch walks enabled modules in that order
and each module's handlers in declaration order, awaiting matching
handlers one at a time. A handler's exception is captured as a
ModuleExecutionError and never stops sibling handlers from running.
"""

import dataclasses
import importlib.util
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

import structlog

from .exceptions import ModuleExecutionError, ModuleValidationError
from .module_base import BotModule, ModuleInfo, parse_module, validate_module

logger = structlog.get_logger("hookwire.modules")

T = TypeVar("T")
R = TypeVar("R")

ErrorCallback = Callable[[ModuleExecutionError], None]


@dataclass
class DispatchResult:
    """Outcome of one isolated dispatch round.

    Attributes:
        handled: ``"module:handler"`` labels of handlers that completed.
        errors: One entry per handler that raised.
    """
    handled: List[str] = field(default_factory=list)
    errors: List[ModuleExecutionError] = field(default_factory=list)


@dataclass
class IsolationResult(Generic[R]):
    """Result of a single guarded call."""
    success: bool
    result: Optional[R] = None
    error: Optional[ModuleExecutionError] = None


class ModuleLoader(Generic[T]):
    """Registry of bot modules with fault-isolated event dispatch."""

    def __init__(self) -> None:
        self._modules: Dict[str, BotModule[T]] = {}

    def validate_module(self, data: Any) -> bool:
        """Non-throwing structural check over untyped module data."""
        return validate_module(data)

    def register(self, module: Any) -> None:
        """Register a module.

        Stores a shallow copy of the module, so ``enable``/``disable``
        never touch the caller's object while the commands and handlers
        lists stay identical to the input.

        Raises:
            ModuleValidationError: If the module is structurally invalid
                or a module with the same name is already registered.
        """
        parsed = parse_module(module)
        if not parsed.ok:
            name = _name_of(module)
            logger.warning("module_rejected", module=name, errors=parsed.errors)
            raise ModuleValidationError(
                f"Invalid module structure for {name or 'unknown'!r}. Module must have: "
                "name (string), enabled (boolean), commands (list), handlers (list).",
                module_name=name,
                errors=parsed.errors,
            )

        typed = parsed.module
        if typed.name in self._modules:
            logger.warning("module_rejected", module=typed.name, errors=["duplicate name"])
            raise ModuleValidationError(
                f"Module {typed.name!r} is already registered.",
                module_name=typed.name,
                errors=["duplicate name"],
            )

        self._modules[typed.name] = dataclasses.replace(typed)
        logger.info(
            "module_registered",
            module=typed.name,
            enabled=typed.enabled,
            commands=len(typed.commands),
            handlers=len(typed.handlers),
            middlewares=len(typed.middlewares or []),
        )

    def unregister(self, name: str) -> None:
        """Remove a module by name. Unknown names are ignored."""
        if self._modules.pop(name, None) is not None:
            logger.info("module_unregistered", module=name)

    def enable(self, name: str) -> None:
        """Set a module's ``enabled`` flag to True."""
        self._set_enabled(name, True)

    def disable(self, name: str) -> None:
        """Set a module's ``enabled`` flag to False."""
        self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> None:
        module = self._modules.get(name)
        if module is None:
            logger.debug("module_toggle_unknown", module=name, enabled=enabled)
            return
        module.enabled = enabled
        logger.info("module_enabled" if enabled else "module_disabled", module=name)

    def get_module(self, name: str) -> Optional[BotModule[T]]:
        """Return the registered record for ``name``, if any."""
        return self._modules.get(name)

    def get_all_modules(self) -> List[BotModule[T]]:
        """Return all registered modules in registration order."""
        return list(self._modules.values())

    def get_enabled_modules(self) -> List[BotModule[T]]:
        """Return only the modules whose ``enabled`` flag is True."""
        return [m for m in self._modules.values() if m.enabled is True]

    def get_registered_module_info(self) -> List[ModuleInfo]:
        """Return one summary row per registered module, enabled or not."""
        return [
            ModuleInfo(
                name=m.name,
                enabled=m.enabled,
                command_count=len(m.commands),
                handler_count=len(m.handlers),
            )
            for m in self._modules.values()
        ]

    async def execute_with_isolation(
        self,
        module_name: str,
        fn: Callable[[], Awaitable[R]],
        *,
        handler_name: Optional[str] = None,
        event: Optional[str] = None,
    ) -> IsolationResult[R]:
        """Await ``fn()`` and capture any exception as a ModuleExecutionError."""
        try:
            result = await fn()
        except Exception as e:
            return IsolationResult(
                success=False,
                error=ModuleExecutionError(
                    module_name, e, handler_name=handler_name, event=event
                ),
            )
        return IsolationResult(success=True, result=result)

    async def execute_handlers_with_isolation(
        self,
        event: str,
        ctx: T,
        on_error: Optional[ErrorCallback] = None,
    ) -> DispatchResult:
        """Run every enabled module's handlers for ``event``, isolating failures.

        Modules run in registration order, handlers in declaration order,
        strictly one after another. A failing handler is recorded and
        reported through ``on_error`` (called synchronously), then
        dispatch continues with the next handler.

        Args:
            event: Event label to match against ``HandlerDefinition.event``.
            ctx: Host context passed unchanged to each handler.
            on_error: Optional callback invoked once per captured error.

        Returns:
            DispatchResult listing completed handlers and captured errors.
        """
        outcome = DispatchResult()

        for module in self.get_enabled_modules():
            for definition in module.handlers:
                if definition.event != event:
                    continue

                result = await self.execute_with_isolation(
                    module.name,
                    lambda: definition.handler(ctx),
                    handler_name=definition.name,
                    event=event,
                )

                if result.success:
                    outcome.handled.append(f"{module.name}:{definition.name}")
                    continue

                error = result.error
                logger.warning(
                    "module_handler_failed",
                    module=module.name,
                    handler=definition.name,
                    event_label=event,
                    error=str(error.original_error),
                    error_type=type(error.original_error).__name__,
                )
                outcome.errors.append(error)
                if on_error is not None:
                    on_error(error)

        return outcome

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules


def _name_of(data: Any) -> Optional[str]:
    if isinstance(data, Mapping):
        name = data.get("name")
    else:
        name = getattr(data, "name", None)
    return name if isinstance(name, str) and name else None


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def discover_modules(modules_dir: Path, settings: Optional[dict] = None) -> List[BotModule]:
    """Load BotModule objects from ``<modules_dir>/<name>/module.py`` files.

    Honours ``module_allowlist`` and per-module ``modules.<name>.enabled``
    overrides from ``settings``. Failures are logged and skipped; they
    never abort discovery.

    Args:
        modules_dir: Directory containing one subdirectory per module.
        settings: Parsed settings.yaml contents.

    Returns:
        Discovered modules, sorted by directory name.
    """
    settings = settings or {}
    if not modules_dir.is_dir():
        logger.info("module_discovery_no_dir", path=str(modules_dir))
        return []

    allowlist = settings.get("module_allowlist")
    if allowlist is not None and not isinstance(allowlist, list):
        logger.error("module_allowlist_invalid_type", type=type(allowlist).__name__)
        allowlist = None

    overrides = settings.get("modules") or {}
    discovered: List[BotModule] = []

    for module_dir in sorted(modules_dir.iterdir()):
        if not module_dir.is_dir():
            continue
        module_file = module_dir / "module.py"
        if not module_file.is_file():
            continue

        dir_name = module_dir.name
        if allowlist is not None and dir_name not in allowlist:
            logger.warning(
                "module_blocked_not_in_allowlist",
                module=dir_name,
                allowlist=allowlist,
            )
            continue

        try:
            module = _load_module_file(dir_name, module_file)
        except Exception as e:
            logger.error(
                "module_load_failed",
                module=dir_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue

        if module is None:
            logger.warning("module_no_definition_found", module=dir_name)
            continue

        override = overrides.get(dir_name) if isinstance(overrides, dict) else None
        if isinstance(override, dict) and isinstance(override.get("enabled"), bool):
            module = dataclasses.replace(module, enabled=override["enabled"])

        discovered.append(module)
        logger.info("module_discovered", module=module.name, enabled=module.enabled)

    logger.info("module_discovery_complete", modules=len(discovered))
    return discovered


def _load_module_file(dir_name: str, module_file: Path) -> Optional[BotModule]:
    """Import a module.py file and return its first BotModule attribute."""
    import_name = f"hookwire_modules.{dir_name}"
    spec = importlib.util.spec_from_file_location(import_name, module_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load {module_file}")
    py_module = importlib.util.module_from_spec(spec)
    sys.modules[import_name] = py_module
    try:
        spec.loader.exec_module(py_module)
    except BaseException:
        sys.modules.pop(import_name, None)
        raise

    for attr in vars(py_module).values():
        if isinstance(attr, BotModule):
            return attr
    return None
