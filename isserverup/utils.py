"""
Utility functions, custom exceptions, and logging configuration.
"""

import logging
import json
import re
import sys
import time
import traceback
from typing import Optional
from datetime import datetime, timezone
from functools import wraps

from isserverup.config import log_config


# Fields attached to per-check log records by log_check()
CHECK_FIELDS = ("url", "status_code", "elapsed_ms")

_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


# Custom Exceptions
class ValidationError(Exception):
    """Raised when command-line input validation fails."""
    pass


# Logging Configuration
class JSONFormatter(logging.Formatter):
    """One JSON object per line, with check fields promoted to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CHECK_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Readable single-line records; check fields are appended as key=value pairs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s isserverup %(levelname)s: %(message)s",
            datefmt="%H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = [
            f"{name}={getattr(record, name)}"
            for name in CHECK_FIELDS
            if hasattr(record, name)
        ]
        if pairs:
            line = f"{line} [{' '.join(pairs)}]"
        return line


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    (Re)configure the package logger from LogConfig.

    The handler is bound to the current sys.stderr, so calling this again
    after stderr has been replaced redirects log output there. stdout is
    reserved for usage text.

    Args:
        level: Overrides LogConfig.level when given (e.g. DEBUG for --verbose)

    Returns:
        logging.Logger: Configured logger instance
    """
    level_name = (level or log_config.level).upper()

    logger = logging.getLogger("isserverup")
    logger.setLevel(getattr(logging, level_name, logging.WARNING))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if log_config.format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    return logger


# Global logger instance
logger = setup_logging()


# Helper Functions
def normalize_url(url: str) -> str:
    """
    Normalize a server argument into a requestable URL.

    Arguments that do not start with a scheme, such as ``example.com``
    or ``example.com/check?next=http://other``, get an ``http://``
    prefix, the same guess curl makes.

    Args:
        url: Raw server argument

    Returns:
        str: URL with a scheme

    Raises:
        ValidationError: If the argument is empty
    """
    if not isinstance(url, str):
        raise ValidationError(f"URL must be string, got {type(url).__name__}")

    url = url.strip()
    if not url:
        raise ValidationError("URL cannot be empty")

    if not _SCHEME_PREFIX.match(url):
        url = f"http://{url}"

    return url


def write_diagnostic(message: str, end: str = "\n") -> None:
    """Write a human-readable diagnostic line to stderr."""
    print(message, end=end, file=sys.stderr)
    sys.stderr.flush()


def output_error(context: str, error: str) -> None:
    """Write a transport error diagnostic for the given context."""
    write_diagnostic(f"{context} error: {error}")


def log_check(
    logger_instance: logging.Logger,
    url: str,
    status_code: Optional[int],
    elapsed_ms: int,
    error: Optional[str] = None,
):
    """
    Log the outcome of a single check with structured fields.

    Args:
        logger_instance: Logger to use
        url: Checked URL
        status_code: Final status code, or None on transport failure
        elapsed_ms: Request duration in milliseconds
        error: Transport error message, if any
    """
    if not log_config.log_checks:
        return

    if error is None:
        level = logging.INFO
        message = f"Checked {url}: status={status_code} in {elapsed_ms}ms"
    else:
        level = logging.WARNING
        message = f"Transport failure for {url} after {elapsed_ms}ms: {error}"

    if not logger_instance.isEnabledFor(level):
        return

    log_record = logger_instance.makeRecord(
        logger_instance.name,
        level,
        "(check)",
        0,
        message,
        (),
        None,
    )
    log_record.url = url
    log_record.status_code = status_code
    log_record.elapsed_ms = elapsed_ms
    logger_instance.handle(log_record)


def log_elapsed(func):
    """
    Log at DEBUG how long each call took, labelled with its first argument.

    Exceptions are logged with the elapsed time and re-raised.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        label = f"{func.__name__}({args[0]!r})" if args else func.__name__
        started = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except Exception:
            logger.exception(f"{label} raised after {(time.monotonic() - started) * 1000:.1f}ms")
            raise
        logger.debug(f"{label} took {(time.monotonic() - started) * 1000:.1f}ms")
        return result

    return wrapper
