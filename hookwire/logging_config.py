"""Logging configuration for hookwire.

Provides subsystem-level log file routing, secret sanitization,
and structlog + stdlib integration.

Subsystem hierarchy (stdlib dotted names, structlog wraps them):
    root              → ConsoleHandler (terminal)
      └─ hookwire     → RotatingFileHandler → hookwire.log (combined)
           ├─ hookwire.runtime    → RFH → runtime.log
           ├─ hookwire.commands   → RFH → commands.log
           ├─ hookwire.middleware → RFH → middleware.log
           └─ hookwire.modules    → RFH → modules.log
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict

import structlog

SUBSYSTEMS = ("runtime", "commands", "middleware", "modules")

LOGGER_PREFIX = "hookwire"

# ---------------------------------------------------------------------------
# Secret sanitization
# ---------------------------------------------------------------------------

# Values found anywhere in a logged string.
_SECRET_PATTERNS = [
    # Bot API tokens, bare or inside /bot<token>/ URLs
    re.compile(r"(?<!\d)\d{6,12}:[A-Za-z0-9_-]{30,}"),
    # Webhook secret passed as a query parameter
    re.compile(r"(?<=secret_token=)[^&\s]+"),
    # Bearer credentials forwarded by host services
    re.compile(r"Bearer\s+[a-zA-Z0-9_./-]{20,}"),
    # sk- prefixed API keys that modules put in their settings
    re.compile(r"sk-[a-zA-Z0-9_-]{20,}"),
]

# Event keys whose values are redacted wholesale, whatever they contain.
_SECRET_KEYS = frozenset({"token", "bot_token", "secret_token", "api_key", "password"})

_REDACTED = "***REDACTED***"

# Module settings and contexts can nest; stop descending past this depth.
_MAX_DEPTH = 4


def _scrub(value: Any, depth: int = 0) -> Any:
    if isinstance(value, str):
        for pattern in _SECRET_PATTERNS:
            value = pattern.sub(_REDACTED, value)
        return value
    if depth >= _MAX_DEPTH:
        return value
    if isinstance(value, dict):
        return {
            k: _REDACTED if k in _SECRET_KEYS else _scrub(v, depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v, depth + 1) for v in value)
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that keeps bot credentials out of the logs.

    Keys such as ``token`` or ``api_key`` are redacted outright. Every
    other string, including those nested in module settings or context
    dumps, is scanned for bot tokens, webhook secrets, and API keys.
    """
    for key, value in event_dict.items():
        if key in _SECRET_KEYS:
            event_dict[key] = _REDACTED
        else:
            event_dict[key] = _scrub(value)
    return event_dict


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def _file_handler(
    path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _resolve_level(name: str, default: int) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def setup_logging(config=None) -> None:
    """Configure structured logging with subsystem file handlers.

    Every subsystem logger propagates up the hierarchy, so an event
    appears in its subsystem file, the combined hookwire.log, and the
    console.

    Args:
        config: Optional Config instance. Without one, defaults are used
            and loggers are not cached so a later call can reconfigure.
    """
    if config is not None:
        log_dir = config.log_dir
        root_level = _resolve_level(config.logging_level, logging.INFO)
        subsystem_levels = config.logging_subsystem_levels or {}
        max_bytes = config.logging_max_file_size_mb * 1024 * 1024
        backup_count = config.logging_backup_count
    else:
        log_dir = Path(__file__).parent.parent / "logs"
        root_level = logging.INFO
        subsystem_levels = {}
        max_bytes = 10 * 1024 * 1024
        backup_count = 5

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        write_files = True
    except OSError as exc:
        # Console-only; a broken log dir must not stop the host.
        print(
            f"WARNING: Cannot create log directory {log_dir}: {exc}. "
            "Falling back to console-only logging.",
            file=sys.stderr,
        )
        write_files = False

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers filter by level
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(root_level)
    console_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root_logger.addHandler(console_handler)

    targets = [(LOGGER_PREFIX, "hookwire.log", root_level, logging.DEBUG)]
    for subsystem in SUBSYSTEMS:
        level = _resolve_level(str(subsystem_levels.get(subsystem, "")), root_level)
        targets.append((f"{LOGGER_PREFIX}.{subsystem}", f"{subsystem}.log", level, level))

    for logger_name, filename, handler_level, logger_level in targets:
        target = logging.getLogger(logger_name)
        target.setLevel(logger_level)
        target.handlers.clear()
        target.propagate = True
        if write_files:
            target.addHandler(
                _file_handler(
                    log_dir / filename, handler_level, file_formatter, max_bytes, backup_count
                )
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=config is not None,
    )
