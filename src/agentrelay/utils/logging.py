"""
Structured logging for the agent runtime.

All components log through structlog with event-style names
("tool_executed", "breaker_opened") and keyword fields. Run-scoped fields
(run_id, agent) are bound with structlog.contextvars so every line emitted
during a run carries them, including lines from concurrently running
guardrails and tools.
"""

import logging
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

import structlog

from ..models.enums import LogLevel

if TYPE_CHECKING:
    from ..core.config import RelayConfig


def setup_file_logging(
    log_file: Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5  # 10MB
) -> RotatingFileHandler:
    """
    Configure rotating file handler for logs.

    Args:
        log_file: Path to the log file
        max_bytes: Maximum log file size before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)
    """
    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    return file_handler


def setup_logging(config: "RelayConfig") -> None:
    """
    Configure structlog processors for the given configuration.

    With ``log_file`` set, events go to a rotating JSON file and to a
    ConsoleRenderer stream handler. Without it, events are printed directly:
    as JSON lines at DEBUG level, through the ConsoleRenderer otherwise.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    level = getattr(logging, config.log_level.value, logging.INFO)

    if config.log_file is not None:
        config.ensure_log_directory()
        file_handler = setup_file_logging(
            log_file=config.log_file,
            max_bytes=config.log_max_bytes,
            backup_count=config.log_backup_count,
        )

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.dev.ConsoleRenderer(),
                ],
            )
        )

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)
        root_logger.setLevel(level)

        logger_factory: Any = structlog.stdlib.LoggerFactory()
        processors = shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter]
    else:
        logger_factory = structlog.PrintLoggerFactory()
        processors = shared_processors + [
            (
                structlog.processors.JSONRenderer()
                if config.log_level == LogLevel.DEBUG
                else structlog.dev.ConsoleRenderer()
            ),
        ]

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically module name)
    """
    return structlog.get_logger(name)


@contextmanager
def bound_run_context(**fields: Any) -> Iterator[None]:
    """
    Bind fields to every log line emitted inside the block.

    Contextvars are task-local, so concurrent runs do not see each other's
    bindings.
    """
    tokens = structlog.contextvars.bind_contextvars(**fields)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
