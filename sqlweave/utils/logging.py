# ruff: noqa: PLR6301
"""Centralized logging configuration for sqlweave.

This module provides a standardized logging setup for the library, including
structured logging with correlation IDs and the query echo used by the
relational service's debug levels.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import msgspec
import sqlglot
from sqlglot.errors import SqlglotError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import LogRecord

__all__ = (
    "CorrelationIDFilter",
    "StructuredFormatter",
    "configure_logging",
    "correlation_id_var",
    "format_sql",
    "get_correlation_id",
    "get_logger",
    "log_query",
    "set_correlation_id",
)

ROOT_LOGGER_NAME = "sqlweave"

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_json_encoder = msgspec.json.Encoder(enc_hook=str)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: The correlation ID to set, or None to clear
    """
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID.

    Returns:
        The current correlation ID or None if not set
    """
    return correlation_id_var.get()


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter with correlation ID support."""

    def format(self, record: LogRecord) -> str:
        """Format log record as structured JSON.

        Args:
            record: The log record to format

        Returns:
            JSON formatted log entry
        """
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if correlation_id := get_correlation_id():
            log_entry["correlation_id"] = correlation_id

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)  # pyright: ignore

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return _json_encoder.encode(log_entry).decode("utf-8")


class CorrelationIDFilter(logging.Filter):
    """Filter that adds correlation ID to log records."""

    def filter(self, record: LogRecord) -> bool:
        """Add correlation ID to record if available.

        Args:
            record: The log record to filter

        Returns:
            Always True to pass the record through
        """
        if correlation_id := get_correlation_id():
            record.correlation_id = correlation_id  # type: ignore[attr-defined]
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance with standardized configuration.

    Args:
        name: Logger name. If not provided, returns the root sqlweave logger.

    Returns:
        Configured logger instance
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIDFilter) for f in logger.filters):
        logger.addFilter(CorrelationIDFilter())

    return logger


def configure_logging(
    level: str = "INFO",
    format_style: str = "structured",
    log_to_file: str | None = None,
    extra_handlers: list[logging.Handler] | None = None,
) -> None:
    """Configure logging for the whole library.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_style: Log format style ("structured" for JSON, "simple" for text)
        log_to_file: Optional file path to log to
        extra_handlers: Additional handlers to add
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if format_style == "structured":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(log_to_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            root_logger.addHandler(handler)

    root_logger.propagate = False

    root_logger.info(
        "sqlweave logging configured",
        extra={
            "extra_fields": {
                "level": level,
                "format_style": format_style,
                "handlers_count": len(root_logger.handlers),
            }
        },
    )


def format_sql(sql: str) -> str:
    """Pretty-print a PostgreSQL statement for humans.

    Falls back to the stripped input when sqlglot cannot parse it; the text is
    only used for diagnostics, never executed.

    Args:
        sql: Statement text with ``$N`` placeholders.

    Returns:
        The formatted statement.
    """
    try:
        return ";\n".join(sqlglot.transpile(sql, read="postgres", write="postgres", pretty=True))
    except SqlglotError:
        return sql.strip()


def log_query(
    logger: logging.Logger, level: int, sql: str, args: Sequence[Any] = (), log_level: int = logging.INFO
) -> None:
    """Echo a statement according to a service debug level.

    Level 1 logs the SQL text, level 2 the text and its arguments, and level 3
    the pretty-printed text and arguments. Level 0 logs nothing.

    Args:
        logger: Logger to write to.
        level: Debug level (0-3).
        sql: Statement text.
        args: Positional arguments bound to the statement.
        log_level: Logging level the echo is emitted at.
    """
    if level <= 0:
        return
    if level == 1:
        logger.log(log_level, "query: %s", sql, extra={"extra_fields": {"sql": sql}})
        return
    text = format_sql(sql) if level >= 3 else sql
    logger.log(
        log_level,
        "query and args: %s %r",
        text,
        list(args),
        extra={"extra_fields": {"sql": sql, "args": [repr(a) for a in args]}},
    )
