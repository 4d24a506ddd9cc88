"""Logging configuration for netreconcile.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Timing decorators for handlers and reconciliation phases

Environment Variables:
    NETRECONCILE_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    NETRECONCILE_LOG_FILE: Path to log file (default: ~/.netreconcile/netreconcile.log)
    NETRECONCILE_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    NETRECONCILE_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from netreconcile.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("network")
    async def process(self, declaration, store, state):
        ...

    # Or use context manager for sections:
    async with timed_section("delete_class", object_class="VLAN"):
        ...
"""
import functools
import inspect
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("netreconcile.perf")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("NETRECONCILE_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".netreconcile" / "netreconcile.log"
    path_str = os.environ.get("NETRECONCILE_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(level: Optional[int] = None, log_to_file: bool = True) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects NETRECONCILE_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    """
    log_level = level if level is not None else get_log_level()

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    root_logger = logging.getLogger("netreconcile")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_to_file:
        log_file = get_log_file()
        max_size_mb = int(os.environ.get("NETRECONCILE_LOG_MAX_SIZE", "10"))
        backup_count = int(os.environ.get("NETRECONCILE_LOG_BACKUPS", "5"))
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(main_format)
        root_logger.addHandler(file_handler)
        root_logger.info(
            f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}"
        )


def _report(operation: str, start: float, error: Optional[BaseException] = None, **extra) -> None:
    """Emit one perf line: operation, elapsed milliseconds, outcome, extras."""
    elapsed_ms = (time.perf_counter() - start) * 1000
    parts = [f"{operation:20s}", f"{elapsed_ms:8.2f}ms", "OK" if error is None else f"FAIL: {error}"]
    parts.extend(f"{key}={value}" for key, value in extra.items())
    line = " | ".join(parts)
    if error is None:
        perf_logger.info(line)
    else:
        perf_logger.warning(line)


def timed(operation: str):
    """Decorator that reports how long an async handler method took.

    Usage:
        @timed("network")
        async def process(self, ...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"@timed only wraps coroutine functions, got {func!r}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(operation, start, e)
                raise
            _report(operation, start)
            return result

        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, **extra):
    """Time a block of a reconcile run.

    Usage:
        async with timed_section("delete_class", object_class="VLAN", count=3):
            await asyncio.gather(...)
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        _report(operation, start, e, **extra)
        raise
    _report(operation, start, **extra)
