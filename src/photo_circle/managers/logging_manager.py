"""
Centralized logging manager for the application.

Every component obtains its logger through `get_logger()`. Loggers always write to
the console; by default they also write to a per-worker file under ``logs/`` so
multiple uvicorn workers do not interleave their output. When ``LOKI_ENABLED`` is
set, a Loki handler is attached as well.

Loki Downtime Handling:
----------------------
- Logs sent to Loki while it is unreachable may be dropped by the handler.
- The console and per-worker file handlers are unaffected, so the worker files are
  the record of last resort.

Usage:
- Use get_logger(prefix="[Component]") to obtain a logger instance.
"""

from datetime import datetime, timezone
import json
import logging
import os
import sys

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from photo_circle.config import settings

LOG_LEVEL: str = os.getenv("LOG_LEVEL", settings.LOG_LEVEL).upper()
LOG_FORMAT: str = "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"
LOKI_TAGS: dict[str, str] = {
    "app": os.getenv("APP_NAME", settings.APP_NAME),
    "env": os.getenv("ENV", settings.ENV),
}


def _ensure_console_handler(logger: logging.Logger, formatter: logging.Formatter) -> bool:
    """
    Ensure logger has a StreamHandler for console output.

    Args:
        logger: The logger instance to check and modify
        formatter: The formatter to apply to the StreamHandler

    Returns:
        bool: True if a new StreamHandler was added, False if one already existed
    """
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stdout:
            return False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logger.level)
    logger.addHandler(console_handler)
    return True


def get_worker_log_filename() -> str:
    return os.path.join(settings.LOG_DIR, f"worker_{os.getpid()}.log")


def get_worker_registry_filename() -> str:
    return os.path.join(settings.LOG_DIR, "worker_registry.json")


def _register_worker(logger: logging.Logger, log_filename: str) -> None:
    """Record this worker's pid and log file in the shared registry."""
    reg_file = get_worker_registry_filename()
    worker_info = {
        "pid": os.getpid(),
        "log_file": log_filename,
        "start_time": datetime.now(timezone.utc).isoformat(),
        "hostname": os.getenv("HOSTNAME", os.uname().nodename),
    }
    try:
        if os.path.exists(reg_file):
            with open(reg_file, "r", encoding="utf-8") as f:
                reg = json.load(f)
        else:
            reg = {}
        reg[str(os.getpid())] = worker_info
        with open(reg_file, "w", encoding="utf-8") as f:
            json.dump(reg, f, indent=2)
    except (OSError, ValueError) as e:
        logger.warning("[LoggingManager] Could not update worker registry: %s", e)


def _ensure_file_handler(logger: logging.Logger, formatter: logging.Formatter) -> None:
    log_filename = get_worker_log_filename()
    if any(
        isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == os.path.abspath(log_filename)
        for h in logger.handlers
    ):
        return
    try:
        os.makedirs(os.path.dirname(log_filename), exist_ok=True)
        file_handler = logging.FileHandler(log_filename)
    except OSError as e:
        logger.warning("[LoggingManager] Could not open worker log file %s: %s", log_filename, e)
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    _register_worker(logger, log_filename)


def _ensure_loki_handler(logger: logging.Logger, name: str) -> None:
    if any(isinstance(h, LokiLoggerHandler) for h in logger.handlers):
        return
    try:
        loki_handler = LokiLoggerHandler(
            url=settings.LOKI_URL,
            labels=LOKI_TAGS,
            compressed=settings.LOKI_COMPRESS,
        )
    except (ValueError, OSError) as e:
        logger.error("[LoggingManager] Failed to attach LokiLoggerHandler: %s", e, exc_info=True)
        return
    logger.addHandler(loki_handler)
    logger.info(
        "[LoggingManager] LokiLoggerHandler attached to logger '%s' (url=%s, labels=%s)",
        name,
        settings.LOKI_URL,
        LOKI_TAGS,
    )


class PrefixFilter(logging.Filter):
    """Prepend a component prefix such as ``[FriendManager]`` to every message."""

    def __init__(self, prefix: str) -> None:
        super().__init__()
        self.prefix = prefix

    def filter(self, record: logging.LogRecord) -> bool:
        if self.prefix and not getattr(record, "_prefix_applied", False):
            record.msg = f"{self.prefix} {record.msg}"
            record._prefix_applied = True
        return True


def get_logger(name: str = "PhotoCircle", add_loki: bool = True, prefix: str = "") -> logging.Logger:
    """
    Return a configured logger.

    Loggers sharing a name share handlers; a distinct prefix gets its own child
    logger so component prefixes do not leak into each other's records.
    """
    if prefix:
        name = f"{name}.{prefix.strip('[]').replace(' ', '_')}"

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT)
    _ensure_console_handler(logger, formatter)

    if settings.LOG_TO_FILE:
        _ensure_file_handler(logger, formatter)

    if add_loki and settings.LOKI_ENABLED:
        _ensure_loki_handler(logger, name)

    if prefix and not any(isinstance(f, PrefixFilter) for f in logger.filters):
        logger.addFilter(PrefixFilter(prefix))

    return logger
