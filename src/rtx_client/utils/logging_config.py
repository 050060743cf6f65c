"""Logging configuration for the RTX client.

Provides:
- File-based logging with rotation
- Console output
- A separate performance logger fed by ``timed`` / ``timed_section``
- Redaction of credentials in every record

Environment Variables:
    RTX_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    RTX_LOG_FILE: Path to log file (default: ~/.rtx-client/rtx-client.log)
    RTX_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    RTX_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from rtx_client.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("dial")
    async def dial(self):
        ...

    async with timed_section("snapshot_fetch", router_id="rtx-home"):
        ...
"""
import functools
import logging
import os
import re
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("rtx_client.perf")
main_logger = logging.getLogger("rtx_client")

REDACTED = "[REDACTED]"

SENSITIVE_KEYWORDS = (
    "pre-shared-key",
    "password",
    "secret",
    "community",
    "credential",
    "token",
    "key",
)

# "<keyword> [id] [text|encrypted|...] <value>" and "<keyword>=<value>"
_SENSITIVE_RE = re.compile(
    r"(?P<head>\b(?:" + "|".join(re.escape(k) for k in SENSITIVE_KEYWORDS) + r")"
    r"(?:\s+\d+)?(?:\s+(?:text|encrypted|ascii|read-only|read-write))?)(?P<sep>\s*[=:]\s*|\s+)(?P<value>[^\s,]+)",
    re.IGNORECASE,
)


def sanitize(text: str) -> str:
    """Replace values following secret-bearing keywords with ``[REDACTED]``."""
    if not text:
        return text
    return _SENSITIVE_RE.sub(lambda m: f"{m.group('head')}{m.group('sep')}{REDACTED}", text)


class SanitizingFilter(logging.Filter):
    """Logging filter that redacts credentials from the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        cleaned = sanitize(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("RTX_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".rtx-client" / "rtx-client.log"
    path_str = os.environ.get("RTX_LOG_FILE", str(default_path))
    return Path(path_str).expanduser()


def setup_logging(console: bool = True) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (respects RTX_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("RTX_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("RTX_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-28s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    sanitizer = SanitizingFilter()

    handlers: list[logging.Handler] = []
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(main_format)
        handlers.append(console_handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)
    handlers.append(file_handler)

    perf_log_file = log_file.parent / "rtx-client-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    for handler in handlers + [perf_handler]:
        handler.addFilter(sanitizer)

    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    for handler in handlers:
        main_logger.addHandler(handler)

    # Perf records go to their own file only
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False
    perf_logger.addHandler(perf_handler)

    main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def _perf_line(operation: str, router_id: Optional[str], elapsed: float, outcome: str) -> str:
    return f"{operation:20s} | {router_id or 'N/A':15s} | {elapsed:8.2f}ms | {outcome}"


def timed(operation: str, router_id: Optional[str] = None):
    """Decorator to log execution time of async methods.

    Args:
        operation: Name of the operation (e.g., "dial", "run", "snapshot_fetch")
        router_id: Optional router identifier (inferred from self.router_id otherwise)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            rid = router_id
            if rid is None and args and hasattr(args[0], "router_id"):
                rid = args[0].router_id

            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_perf_line(operation, rid, elapsed, f"FAIL: {e}"))
                raise
            elapsed = (time.perf_counter() - start) * 1000  # ms
            perf_logger.info(_perf_line(operation, rid, elapsed, "OK"))
            return result

        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, router_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("snapshot_parse", router_id="rtx-home", bytes=4096):
            ...
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _perf_line(operation, router_id, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
    elapsed = (time.perf_counter() - start) * 1000
    msg = _perf_line(operation, router_id, elapsed, "OK")
    if extra_str:
        msg += f" | {extra_str}"
    perf_logger.info(msg)
