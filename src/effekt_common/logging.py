"""Structured logging for Effekt worker processes.

Wraps structlog on top of stdlib logging so that third-party loggers
(uvicorn, aiohttp) and our own key/value events share one set of handlers.

Usage:
    from effekt_common import setup_logging, get_logger, bind_request_id

    # At process startup
    setup_logging("tidbyt-worker")

    # In request handlers
    logger = get_logger(__name__)
    bind_request_id(request_id)
    logger.info("Donation accepted", donation_id=42)

Configuration via environment variables:
    LOG_LEVEL: DEBUG, INFO, WARN, ERROR (default: INFO)
    LOG_FORMAT: human, json (default: human)
    LOG_FILE: Path to log file (optional)
    LOG_FILE_LEVEL: Level for file output (default: same as LOG_LEVEL)
"""

import logging
import os
import secrets
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

# Header carrying the request ID in and out of the HTTP front end
REQUEST_ID_HEADER = "x-request-id"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "human"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_FILE_BACKUP_COUNT = 5


def generate_request_id() -> str:
    """Generate a new request ID (12 hex characters)."""
    return secrets.token_hex(6)


def _get_log_level(level_str: str) -> int:
    """Map a LOG_LEVEL string to a logging constant; unknown names mean INFO."""
    levels = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    return levels.get(level_str.upper(), logging.INFO)


def _create_file_handler(log_file: str, level: int) -> RotatingFileHandler:
    """Rotating handler for LOG_FILE, creating its directory if needed."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_logging(service_name: str) -> None:
    """Configure logging for a worker process.

    Args:
        service_name: Name bound to every log line (e.g. "tidbyt-worker")
    """
    level = _get_log_level(os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL))
    log_format = os.environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT)
    log_file = os.environ.get("LOG_FILE")
    file_level = _get_log_level(
        os.environ.get("LOG_FILE_LEVEL", os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL))
    )

    # Root logger passes everything either handler wants; handlers filter
    root_logger = logging.getLogger()
    root_logger.setLevel(min(level, file_level))

    # Drop handlers from earlier calls or from uvicorn's default config
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        root_logger.addHandler(_create_file_handler(log_file, file_level))

    # Shared by structlog events and by foreign stdlib records
    # (uvicorn, aiohttp), so both carry level, timestamp and context
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        # No ANSI codes when stderr is redirected to a file or collector
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=pre_chain,
    )
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)

    # structlog hands its events to stdlib so the handlers above render them
    structlog.configure(
        processors=pre_chain + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Service name on every line, including lines from flush tasks
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger.

    Args:
        name: Logger name, usually ``__name__``. Omitted means the root logger.

    Returns:
        A structlog BoundLogger; context bound via contextvars is merged in
        when the event is emitted.
    """
    return structlog.get_logger(name)


def bind_request_id(request_id: str) -> None:
    """Bind a request ID to the current context.

    Every log line emitted while handling the request carries it, including
    lines from the flush a waiting request ends up blocked on.
    """
    structlog.contextvars.bind_contextvars(request_id=request_id)


def unbind_request_id() -> None:
    """Remove the request ID once the response has been produced."""
    structlog.contextvars.unbind_contextvars("request_id")


def get_or_create_request_id(headers) -> str:
    """Return the request ID carried in ``headers`` or generate a new one.

    Args:
        headers: Mapping of request headers (may be None)

    Returns:
        The caller's ``x-request-id`` if it sent one, else a fresh ID.
    """
    request_id = headers.get(REQUEST_ID_HEADER) if headers is not None else None
    return request_id or generate_request_id()
