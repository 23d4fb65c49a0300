"""Structured logging configuration using structlog.

This module configures structlog for the tracer's own diagnostics with:
- Pretty-printed or JSON console output
- Optional rotating JSON-lines file output
- UTC timestamps
- Component tracking

Handlers are attached to the ``tracewire`` logger namespace only, so the
host application's root logger is left alone.
"""

import logging
import logging.handlers
import pathlib
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOGGER_NAMESPACE = "tracewire"


def _get_log_level() -> str:
    """Get log level from configuration.

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    # Bootstrap from environment to avoid circular imports with settings.
    from tracewire.config.bootstrap import get_bootstrap_log_level  # noqa: PLC0415

    return get_bootstrap_log_level()


def _get_log_format() -> str:
    """Get console log format (json or console)."""
    from tracewire.config.bootstrap import get_bootstrap_log_format  # noqa: PLC0415

    return get_bootstrap_log_format()


def _get_log_dir() -> pathlib.Path | None:
    """Get log directory path, or None when file logging is disabled."""
    from tracewire.config.bootstrap import get_bootstrap_log_dir  # noqa: PLC0415

    value = get_bootstrap_log_dir()
    return pathlib.Path(value) if value else None


def _add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add UTC timestamp to log event.

    Args:
        logger: The logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with timestamp added.
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _add_component_from_event_dict(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add component name to log event from the event_dict logger name.

    Works after structlog's add_logger_name processor has run
    (e.g., "tracewire.tracing.tracer" -> "tracer").

    Args:
        logger: The structlog logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with component added.
    """
    logger_name = event_dict.get("logger", "")

    if "." in logger_name:
        component = logger_name.split(".")[-1]
    else:
        component = logger_name or "unknown"

    event_dict["component"] = component
    return event_dict


def _foreign_pre_chain() -> list[Any]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_timestamp,
        _add_component_from_event_dict,
    ]


def _configure_file_handler(log_dir: pathlib.Path) -> logging.handlers.RotatingFileHandler:
    """Configure rotating file handler for JSON logs.

    Args:
        log_dir: Directory for log files.

    Returns:
        Configured RotatingFileHandler.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_dir / "tracewire.jsonl"),
        maxBytes=50 * 1024 * 1024,  # 50 MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_foreign_pre_chain(),
        )
    )
    return handler


def _configure_console_handler(log_format: str) -> logging.StreamHandler[Any]:
    """Configure console handler.

    Args:
        log_format: "json" for JSON lines, "console" for pretty output.

    Returns:
        Configured StreamHandler writing to stderr.
    """
    handler = logging.StreamHandler(sys.stderr)

    if log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=_foreign_pre_chain(),
        )
    )
    return handler


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    log_dir: pathlib.Path | None = None,
) -> None:
    """Configure structlog for structured logging.

    Safe to call more than once; each call replaces the handlers on the
    ``tracewire`` logger. Arguments left as None fall back to the
    ``TRACEWIRE_LOG_*`` environment variables.

    Args:
        log_level: Console log level.
        log_format: Console format, "json" or "console".
        log_dir: Directory for the rotating JSON-lines file. None disables it.
    """
    level_name = log_level or _get_log_level()
    fmt = log_format or _get_log_format()
    directory = log_dir if log_dir is not None else _get_log_dir()

    # Namespace logger accepts all levels; individual handlers gate output.
    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
        existing.close()

    console_handler = _configure_console_handler(fmt)
    console_handler.setLevel(getattr(logging, level_name, logging.INFO))
    package_logger.addHandler(console_handler)

    if directory is not None:
        # File handler captures DEBUG+ regardless of console level
        file_handler = _configure_file_handler(directory)
        file_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_component_from_event_dict,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:  # Returns structlog.stdlib.BoundLogger
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module).

    Returns:
        Configured structlog logger instance.

    Example:
        >>> from tracewire.telemetry import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("span_finished", trace_id="abc", span_id="def")
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name)
