"""
Structured logging for the agent engine.

structlog is configured once per process via ``setup_logging()``; components
obtain loggers through ``get_logger()`` or use one of the ``ComponentLogger``
instances at the bottom of this module.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console

from ..core.config import AgentConfig, get_config
from ..models.enums import LogLevel


def setup_file_logging(
    log_file: Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5  # 10MB
) -> RotatingFileHandler:
    """
    Configure rotating file handler for logs.

    Args:
        log_file: Path to the log file
        max_bytes: Maximum log file size before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)

    Returns:
        Configured RotatingFileHandler instance
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


def setup_logging(config: AgentConfig | None = None) -> None:
    """
    Configure structured logging with appropriate processors.

    Sets up structlog with timestamping, log level filtering, console
    rendering, and optional JSON file logging with rotation.
    """
    config = config or get_config()
    level = getattr(logging, config.log_level.value, logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

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

        # Handlers do the rendering
        logger_factory = structlog.stdlib.LoggerFactory()
        processors = shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
    else:
        logger_factory = structlog.PrintLoggerFactory()  # type: ignore[assignment]
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


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class ComponentLogger:
    """Component-scoped structured logging with optional console echo"""

    def __init__(self, component_name: str, echo: bool = False):
        self.logger = structlog.get_logger(component_name)
        self.component = component_name
        self.echo = echo
        self.console = Console(stderr=True)

    def log_operation_start(self, operation: str, details: dict | None = None):
        """Log operation start"""
        if self.echo:
            self.console.print(f"[cyan]▶[/cyan] [{self.component}] Starting: {operation}")
        self.logger.info(f"{operation}_started", component=self.component, **(details or {}))

    def log_operation_complete(
        self, operation: str, duration_ms: float | None = None, details: dict | None = None
    ):
        """Log operation completion"""
        if self.echo:
            msg = f"[green]✓[/green] [{self.component}] Completed: {operation}"
            if duration_ms is not None:
                msg += f" ({duration_ms:.0f}ms)"
            self.console.print(msg)

        log_data = details.copy() if details else {}
        log_data["component"] = self.component
        if duration_ms is not None:
            log_data["duration_ms"] = duration_ms

        self.logger.info(f"{operation}_completed", **log_data)

    def log_operation_error(self, operation: str, error: Exception, details: dict | None = None):
        """Log operation error"""
        if self.echo:
            self.console.print(f"[red]✗[/red] [{self.component}] Failed: {operation}: {error}")

        log_data = details.copy() if details else {}
        log_data.update(
            {
                "component": self.component,
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        )

        self.logger.error(f"{operation}_failed", **log_data)

    def log_metric(self, metric_name: str, value: Any, unit: str = ""):
        """Log a metric"""
        self.logger.info(
            "metric", component=self.component, metric=metric_name, value=value, unit=unit
        )


# Create component-specific loggers
agent_logger = ComponentLogger("agent")
dispatch_logger = ComponentLogger("dispatch")
context_logger = ComponentLogger("context")
history_logger = ComponentLogger("history")
