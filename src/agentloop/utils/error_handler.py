"""Centralized error handling utilities"""
import time
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from ..utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class ErrorHandler:
    """Error handling with logging and fallbacks for non-critical operations"""

    @staticmethod
    def handle_with_fallback(
        operation: Callable[[], T],
        fallback: T,
        error_msg: str,
        log_level: str = "error"
    ) -> T:
        """
        Execute operation with fallback on error.

        Args:
            operation: Function to execute
            fallback: Value to return on error
            error_msg: Event name logged on failure
            log_level: Log level for errors

        Returns:
            Operation result or fallback value

        Example:
            value = ErrorHandler.handle_with_fallback(
                lambda: cache.read_cache(key),
                fallback=CACHE_MISS,
                error_msg="cache_read_failed",
            )
        """
        try:
            return operation()
        except Exception as e:
            getattr(logger, log_level)(error_msg, error=str(e), error_type=type(e).__name__)
            return fallback

    @staticmethod
    @contextmanager
    def log_duration(operation_name: str, log_level: str = "info"):
        """
        Context manager to log operation duration.

        Example:
            with ErrorHandler.log_duration("history_save"):
                store.save()
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            getattr(logger, log_level)(f"{operation_name}_timed", duration_ms=duration_ms)

    @staticmethod
    def ignore_errors(
        operation: Callable[[], T],
        error_msg: str = "operation_failed",
        log_level: str = "warning"
    ) -> Optional[T]:
        """
        Execute operation, logging and discarding any error.

        Returns None on error. Only for side effects whose failure must not
        end a run.

        Example:
            ErrorHandler.ignore_errors(
                lambda: history.save_answer(answer),
                error_msg="history_save_failed",
            )
        """
        try:
            return operation()
        except Exception as e:
            getattr(logger, log_level)(error_msg, error=str(e), error_type=type(e).__name__)
            return None
