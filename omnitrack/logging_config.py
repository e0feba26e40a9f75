"""
Logging configuration for Omnitrack.

Single 'omnitrack' logger used across all modules.

  Log file : logs/omnitrack.log
  Rotation : 5 MB × 3 backups
  Level    : LOG_LEVEL env var (DEBUG / INFO / WARNING / ERROR / CRITICAL)
             defaults to INFO when unset

Usage
-----
    from omnitrack.logging_config import configure_logging, log_call

    # Once at startup (idempotent):
    configure_logging()

    # On any function (sync or async) you want traced:
    @log_call
    async def refresh_all(account_id):
        ...

Log format per line
-------------------
    2026-02-16 14:32:01 | INFO     | CALL refresh_all | args=('8c1f...',)
    2026-02-16 14:32:01 | INFO     | OK   refresh_all | 312ms
    2026-02-16 14:32:01 | ERROR    | FAIL refresh_all | OperationalError: timeout | 5003ms
"""

import asyncio
import functools
import logging
import logging.handlers
import os
import time
from pathlib import Path

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "omnitrack.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3


def configure_logging() -> logging.Logger:
    """
    Set up the omnitrack logger. Idempotent, called on every CLI entry.
    Returns the configured logger.
    """
    _LOG_DIR.mkdir(exist_ok=True)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("omnitrack")

    # Guard: don't add duplicate handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)

    return logger


def _format_args(args, kwargs) -> str:
    parts = [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
    return ", ".join(parts) if parts else "-"


def log_call(func):
    """
    Decorator: logs entry, clean exit, and exceptions for any function.
    Coroutine functions are wrapped with an async wrapper so timings cover
    the awaited body, not just coroutine creation.

    - DEBUG on entry   : CALL <name> | args=(...)
    - INFO  on success : OK   <name> | <N>ms
    - ERROR on failure : FAIL <name> | ExcType: message | <N>ms   (then re-raises)
    """
    name = func.__name__

    if asyncio.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = logging.getLogger("omnitrack")
            start = time.perf_counter()
            logger.debug(f"CALL {name} | args=({_format_args(args, kwargs)})")
            try:
                result = await func(*args, **kwargs)
                ms = int((time.perf_counter() - start) * 1000)
                logger.info(f"OK   {name} | {ms}ms")
                return result
            except Exception as exc:
                ms = int((time.perf_counter() - start) * 1000)
                logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
                raise

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("omnitrack")
        start = time.perf_counter()
        logger.debug(f"CALL {name} | args=({_format_args(args, kwargs)})")

        try:
            result = func(*args, **kwargs)
            ms = int((time.perf_counter() - start) * 1000)
            logger.info(f"OK   {name} | {ms}ms")
            return result
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

    return wrapper
