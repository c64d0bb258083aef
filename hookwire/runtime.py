"""Host runtime wiring the command registry, pipeline, and module loader.

ExtensionRuntime is what a transport adapter talks to: it registers
modules (spreading their commands and middlewares into the shared
registries), processes each inbound context, and drives the module
``on_init``/``on_shutdown`` hooks.

Processing order for one context:
    middleware pipeline -> /command routing -> isolated module dispatch

Middleware short-circuiting stops only the remaining middlewares;
routing and dispatch still run afterwards.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

import structlog

from .commands import CommandRegistry, get_message_text, validate_command_name
from .config import Config
from .error_handler import ErrorContext, ErrorHandler
from .exceptions import CommandValidationError, HookwireError, ModuleExecutionError
from .middleware import MiddlewarePipeline
from .module_base import ModuleContext, parse_module
from .module_loader import DispatchResult, ModuleLoader, discover_modules

logger = structlog.get_logger("hookwire.runtime")

T = TypeVar("T")


@dataclass
class ProcessOutcome:
    """What happened to one inbound context.

    Attributes:
        routed: Whether a registered command handled it (None if the
            payload was not a command).
        dispatch: Isolated dispatch result (None for commands).
        error: Exception that escaped the pipeline or a command handler.
        user_message: Fallback text to show the user when ``error`` is set.
    """
    routed: Optional[bool] = None
    dispatch: Optional[DispatchResult] = None
    error: Optional[Exception] = None
    user_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ExtensionRuntime(Generic[T]):
    """Owns the three registries and the module lifecycle.

    Args:
        config: Config used for module settings and discovery. Optional.
        commands: Command registry (a fresh one if omitted).
        pipeline: Middleware pipeline (a fresh one if omitted).
        loader: Module loader (a fresh one if omitted).
        error_handler: Error handler (built from ``config`` if omitted).
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        commands: Optional[CommandRegistry[T]] = None,
        pipeline: Optional[MiddlewarePipeline[T]] = None,
        loader: Optional[ModuleLoader[T]] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.config = config
        self.commands = commands if commands is not None else CommandRegistry()
        self.pipeline = pipeline if pipeline is not None else MiddlewarePipeline()
        self.loader = loader if loader is not None else ModuleLoader()
        if error_handler is None:
            error_handler = ErrorHandler(config.error_user_message if config else None)
        self.error_handler = error_handler
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # --- Registration ---

    def register_module(self, module: Any) -> None:
        """Register a module and its commands and middlewares.

        All command names are checked before anything is registered, so
        a bad name leaves every registry untouched.

        Raises:
            CommandValidationError: If any command name is invalid.
            ModuleValidationError: If the module is invalid or a duplicate.
        """
        parsed = parse_module(module)
        if parsed.ok:
            module = parsed.module
        else:
            # Raises ModuleValidationError with the parse errors.
            self.loader.register(module)

        for command in module.commands:
            if not validate_command_name(command.name):
                raise CommandValidationError(
                    f"Module {module.name!r} declares invalid command name "
                    f"{command.name!r}",
                    command_name=command.name,
                )

        self.loader.register(module)

        for command in module.commands:
            self.commands.register(command)
        for middleware in module.middlewares or []:
            self.pipeline.use(middleware)

        logger.info(
            "runtime_module_registered",
            module=module.name,
            commands=[c.name for c in module.commands],
            handlers=len(module.handlers),
            middlewares=len(module.middlewares or []),
        )

    def unregister_module(self, name: str) -> None:
        """Remove a module along with the commands and middlewares it added."""
        module = self.loader.get_module(name)
        if module is None:
            return
        for command in module.commands:
            # Later modules may have replaced the entry; only drop our own.
            if self.commands.get_command(command.name) is command:
                self.commands.unregister(command.name)
        for middleware in module.middlewares or []:
            if self.pipeline.get_middleware(middleware.name) is middleware:
                self.pipeline.remove(middleware.name)
        self.loader.unregister(name)

    def load_modules_from_config(self) -> List[str]:
        """Discover modules under ``config.modules_dir`` and register them.

        Returns:
            Names of modules that were registered.
        """
        config = self.config
        if config is None:
            logger.warning("module_discovery_skipped", reason="no config")
            return []

        settings = dict(config.settings)
        settings["module_allowlist"] = config.module_allowlist
        registered = []
        for module in discover_modules(config.modules_dir, settings):
            try:
                self.register_module(module)
            except HookwireError as e:
                logger.error("module_register_failed", module=module.name, **e.log_fields())
                continue
            registered.append(module.name)
        return registered

    # --- Processing ---

    async def process(
        self,
        ctx: T,
        event: str = "message",
        error_context: Optional[ErrorContext] = None,
    ) -> ProcessOutcome:
        """Run one inbound context through middlewares, commands, and modules.

        Only "message" events are checked for a leading "/" command;
        everything else goes to module dispatch.

        Exceptions from middlewares or command handlers are handed to
        the ErrorHandler and reported in the outcome instead of raised.
        Module handler failures are isolated by the loader.

        Args:
            ctx: Host context.
            event: Event label used for module dispatch.
            error_context: User/chat identifiers for error logging.
        """
        outcome = ProcessOutcome()
        try:
            await self.pipeline.execute(ctx)

            text = get_message_text(ctx) if event == "message" else None
            if text and text.startswith("/"):
                outcome.routed = await self.commands.route(ctx)
                if not outcome.routed:
                    logger.debug("unknown_command", command=text.split()[0])
            else:
                outcome.dispatch = await self.loader.execute_handlers_with_isolation(
                    event, ctx, on_error=self._log_module_error
                )
        except Exception as e:
            await self.error_handler.handle(e, error_context)
            outcome.error = e
            outcome.user_message = self.error_handler.user_message
        return outcome

    @staticmethod
    def _log_module_error(error: ModuleExecutionError) -> None:
        logger.warning(
            "module_handler_error",
            module=error.module_name,
            handler=error.handler_name,
            error=error.message,
        )

    # --- Lifecycle ---

    async def start(self, services: Optional[Dict[str, Any]] = None) -> None:
        """Call ``on_init`` once for every enabled module, in order."""
        if self._running:
            logger.warning("runtime_already_running")
            return

        for module in self.loader.get_enabled_modules():
            if module.on_init is None:
                continue
            ctx = ModuleContext(module.name, config=self.config, services=services)
            try:
                await module.on_init(ctx)
                logger.info("module_initialized", module=module.name)
            except Exception as e:
                logger.error(
                    "module_init_failed",
                    module=module.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        self._running = True
        logger.info("runtime_started", modules=len(self.loader))

    async def stop(self) -> None:
        """Call ``on_shutdown`` on enabled modules in reverse order."""
        if not self._running:
            return

        for module in reversed(self.loader.get_enabled_modules()):
            if module.on_shutdown is None:
                continue
            try:
                await module.on_shutdown()
                logger.info("module_shutdown", module=module.name)
            except Exception as e:
                logger.warning(
                    "module_shutdown_failed",
                    module=module.name,
                    error=str(e),
                )

        self._running = False
        logger.info("runtime_stopped")

    # --- Menus ---

    def menu_commands(self) -> List[Dict[str, str]]:
        """Commands to publish in the platform menu (hidden ones excluded)."""
        return [
            {"command": c.name, "description": c.description}
            for c in self.commands.get_all_commands()
            if not c.hidden
        ]

    def help_text(self) -> str:
        """Render visible commands as ``/name - description`` lines."""
        lines = []
        for command in self.commands.get_all_commands():
            if command.hidden:
                continue
            lines.append(f"/{command.name} - {command.description}")
            if command.usage:
                lines.append(f"  usage: {command.usage}")
        return "\n".join(lines)
