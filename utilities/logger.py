"""
Structured logging setup using structlog.
Provides JSON or console output, an optional log file and a check-cycle logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call site information to every event
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class WatchLogger:
    """
    Logger for check cycles with context management.
    """

    def __init__(self, name: str = "watcher"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> "WatchLogger":
        """
        Bind context variables to the logger.

        Args:
            **kwargs: Context variables to bind

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def clear_context(self) -> "WatchLogger":
        """Clear all context variables."""
        self.context.clear()
        return self

    def log_cycle_start(self, url_count: int) -> None:
        self.logger.info(
            "Check cycle started",
            url_count=url_count,
            **self.context
        )

    def log_cycle_progress(self, checked: int, total: int) -> None:
        """Log check cycle progress."""
        progress_percent = (checked / total) * 100 if total > 0 else 0
        self.logger.info(
            "Check cycle progress",
            checked=checked,
            total=total,
            progress_percent=round(progress_percent, 2),
            **self.context
        )

    def log_outcome(self, url: str, outcome: str) -> None:
        """Log the outcome of one page check."""
        level = "info" if outcome == "changed" else "debug"
        getattr(self.logger, level)(
            "Page checked",
            url=url,
            outcome=outcome,
            **self.context
        )

    def log_cycle_complete(self, checked: int, changed: int, failed: int, duration_seconds: float) -> None:
        self.logger.info(
            "Check cycle completed",
            checked=checked,
            changed=changed,
            failed=failed,
            duration_seconds=duration_seconds,
            **self.context
        )

    def log_error(self, error: str, url: Optional[str] = None, retry_count: Optional[int] = None) -> None:
        """Log error with context."""
        self.logger.error(
            "Check error occurred",
            error=error,
            url=url,
            retry_count=retry_count,
            **self.context
        )

    def log_retry(self, url: str, attempt: int, max_attempts: int, delay: float) -> None:
        """Log retry attempt."""
        self.logger.warning(
            "Retrying request",
            url=url,
            attempt=attempt,
            max_attempts=max_attempts,
            delay_seconds=delay,
            **self.context
        )
