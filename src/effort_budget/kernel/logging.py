"""
Structured logging for Effort Budget

structlog on top of the stdlib logging module, with a correlation id per
unit of work so that the log lines of one budget update (validation,
transaction, reconciliation counts) can be grouped together.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Fields that identify people or reveal commercial terms
REDACTED_FIELDS = {
    "user_id",
    "email",
    "hourly_rate",
    "total_value",
    "password",
    "token",
    "secret",
    "api_key",
}


def generate_correlation_id() -> str:
    """Return a 22-character URL-safe random id (128 bits)"""
    return secrets.token_urlsafe(16)


def get_correlation_id() -> str:
    """Get the current correlation ID, or generate a new one if not set."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding the correlation id"""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def is_production() -> bool:
    """True when ENVIRONMENT=production"""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def configure_logging(
    *,
    json_output: bool | None = None,
    log_level: str = "INFO",
) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_output: JSON lines when True, coloured console output when False.
            None picks JSON in production.
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if json_output is None:
        json_output = is_production()

    level = getattr(logging, log_level.upper())

    # stderr keeps stdout clean for CLI output
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Replace sensitive values before they reach a log line.

    Example:
        >>> redact_context({"user_id": "u-1", "budget_id": "b-1"})
        {'user_id': '***REDACTED***', 'budget_id': 'b-1'}
    """
    return {
        k: "***REDACTED***" if k in REDACTED_FIELDS else v
        for k, v in context.items()
    }


class LogOperation:
    """
    Context manager logging start, completion or failure of an operation

    Usage:
        with LogOperation(logger, "update_budget", budget_id=budget_id):
            ...

    Failures are logged and re-raised; the context manager never
    swallows exceptions.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ) -> None:
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time = 0.0
        self.duration_ms = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.info(
            f"{self.operation} started",
            operation=self.operation,
            **redact_context(self.context),
        )
        return self

    def bind(self, **context: Any) -> None:
        """Attach extra context reported on exit (e.g. ids created inside the block)"""
        self.context.update(context)

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        redacted = redact_context(self.context)

        if exc_type is None:
            self.logger.info(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=round(self.duration_ms, 2),
                **redacted,
            )
        else:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=round(self.duration_ms, 2),
                error_type=exc_type.__name__,
                error=str(exc_val),
                exc_info=not is_production(),
                **redacted,
            )
