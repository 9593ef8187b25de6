"""
Structured logging for the locale directory.

Library modules log through the standard library (`logging.getLogger(__name__)`).
configure_logging() attaches one handler to the `multilang` logger whose
ProcessorFormatter renders those records and structlog's own events the same way:

- JSON lines for log aggregation, console output for development
- player_id / trace_id bound with PlayerContext show up on every line, across
  awaits and worker threads (structlog contextvars)
- credentials are redacted before rendering
- OperationContext logs the outcome and duration of reloads

Records still propagate, so handlers installed by the host keep receiving them.
"""

import logging
import sys
import time
import uuid

import structlog
from structlog.types import EventDict, Processor

from multilang.config import LoggingConfig

PACKAGE_LOGGER = "multilang"
_HANDLER_NAME = "multilang-structlog"

_SENSITIVE_MARKERS = ("password", "secret", "token", "dsn")
REDACTED = "***REDACTED***"


# ============================================================================
# PROCESSORS
# ============================================================================


class ServiceMetadata:
    """Stamps service name, version and environment on every event."""

    def __init__(self, config: LoggingConfig):
        self._fields = {
            "service": config.service_name,
            "version": config.service_version,
            "environment": config.environment,
        }

    def __call__(self, logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in self._fields.items():
            event_dict.setdefault(key, value)
        return event_dict


def redact_credentials(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Replace credential values so connection parameters can be logged as-is.

    Any key containing password, secret, token or dsn (case-insensitive) is
    redacted, e.g. `password`, `db_password`, `DSN`. Empty values are kept so
    "no password configured" stays visible.
    """
    for key, value in event_dict.items():
        if value and any(marker in key.lower() for marker in _SENSITIVE_MARKERS):
            event_dict[key] = REDACTED
    return event_dict


def _shared_processors(config: LoggingConfig) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        ServiceMetadata(config),
        redact_credentials,
    ]


# ============================================================================
# CONFIGURATION
# ============================================================================


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structlog and the `multilang` stdlib logger.

    Safe to call again (e.g. after a reload): the previous handler is replaced.

    JSON output:
        {
          "event": "Storage ready: sqlite",
          "logger": "multilang.storage.manager",
          "level": "info",
          "timestamp": "2025-01-15T10:30:45.123456Z",
          "service": "multilang",
          "player_id": "11111111-1111-1111-1111-111111111111"
        }
    """
    config = config or LoggingConfig()
    shared = _shared_processors(config)

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if config.json_output:
        render: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render = [structlog.dev.ConsoleRenderer(colors=config.colorized)]

    formatter = structlog.stdlib.ProcessorFormatter(
        # Stdlib records: `extra=` fields become event keys
        foreign_pre_chain=shared + [structlog.stdlib.ExtraAdder()],
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(package_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(config.level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Structured logger whose events go through the `multilang` handler when
    `name` is below the package logger.

    Usage:
        logger = get_logger("multilang.scripts")
        logger.info("Storage installed", storage_type="sqlite", rows=12)
    """
    return structlog.get_logger(name)


# ============================================================================
# CONTEXT
# ============================================================================


class PlayerContext:
    """
    Binds player_id (and a trace_id) to every log line inside the block.

    Usage:
        with PlayerContext(player_id=str(uuid)):
            logger.info("Locale assigned")
    """

    def __init__(self, player_id: str | None = None, trace_id: str | None = None):
        self.player_id = player_id
        self.trace_id = trace_id or f"trace_{uuid.uuid4().hex[:16]}"
        self._tokens: dict = {}

    def __enter__(self):
        self._tokens = structlog.contextvars.bind_contextvars(
            player_id=self.player_id, trace_id=self.trace_id
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}


class OperationContext:
    """
    Logs the outcome and duration of one operation.

    Usage:
        with OperationContext("storage_reload", storage_type="sqlite"):
            ...
        # -> "Operation completed" operation=storage_reload duration_ms=12.4
    """

    def __init__(self, operation: str, **fields):
        self.operation = operation
        self.logger = get_logger(f"{PACKAGE_LOGGER}.operations").bind(operation=operation, **fields)
        self.start_time: float | None = None
        self.duration_ms: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug("Operation started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type is None:
            self.logger.info("Operation completed", duration_ms=self.duration_ms)
        else:
            self.logger.warning(
                "Operation failed",
                duration_ms=self.duration_ms,
                error=f"{exc_type.__name__}: {exc_val}",
            )


def get_player_id() -> str | None:
    """Player bound by the innermost PlayerContext, if any."""
    return structlog.contextvars.get_contextvars().get("player_id")


def get_trace_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("trace_id")
