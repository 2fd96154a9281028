"""Structured logging setup for the case intake service."""

import functools
import logging
from contextvars import ContextVar, Token
from typing import Optional, Dict, Any
from pathlib import Path


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(case_id)s] %(message)s"


class ContextFilter(logging.Filter):
    """
    Add case-scoped context information to log records.

    The context lives in a ContextVar, so each thread (and each request run
    through the FastAPI threadpool) sees only the fields it set itself.
    """

    defaults = {"case_id": "-"}

    def __init__(self):
        super().__init__()
        self._context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
            f"log_context_{id(self)}", default=None
        )

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context.get() or {})

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.defaults.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        for key, value in (self._context.get() or {}).items():
            setattr(record, key, value)
        return True

    def set_context(self, **kwargs) -> Token:
        return self._context.set({**self.context, **kwargs})

    def reset_context(self, token: Token):
        self._context.reset(token)

    def clear_context(self):
        self._context.set(None)


# Global context filter instance
_context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_format: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for log messages
        log_file: Optional path to log file

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    return root_logger


def set_context(**kwargs):
    """
    Set context fields for all subsequent log messages.

    Example:
        set_context(case_id="REG-4F7K2Q9ZA")
        logger.info("Storing photos")  # Will include case_id

    Returns:
        Token that reset_context() uses to restore the previous fields
    """
    return _context_filter.set_context(**kwargs)


def reset_context(token: Token):
    _context_filter.reset_context(token)


def clear_context():
    _context_filter.clear_context()


def with_context(**context_kwargs):
    """
    Decorator to add context to all log messages within a function.

    The previous context is restored when the function returns, so a
    request handler can tag its own records without leaking into the next.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            token = _context_filter.set_context(**context_kwargs)
            try:
                return func(*args, **kwargs)
            finally:
                _context_filter.reset_context(token)

        return wrapper
    return decorator
