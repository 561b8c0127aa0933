"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging.config
import os
from pathlib import Path
from typing import Any

import structlog

ROOT_LOGGER = "redmine_notifier"
NOTIFIER_LOG = "notifier.log"
ERROR_LOG = "error.log"

_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    env_root = os.environ.get("REDMINE_NOTIFIER_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def notifier_log_path() -> Path:
    return _default_log_dir() / NOTIFIER_LOG


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def build_logging_config(log_dir: Path, verbose: bool = False) -> dict[str, Any]:
    """Return the ``dictConfig`` payload: JSON lines to stderr and two log files.

    Everything at INFO and above lands in ``notifier.log``; ``error.log`` only
    keeps errors such as failed state saves. ``verbose`` lowers the console and
    package level to DEBUG, so per-query events become visible.
    """

    level = "DEBUG" if verbose else "INFO"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "notifier_file": _file_handler(log_dir / NOTIFIER_LOG, "INFO"),
            "error_file": _file_handler(log_dir / ERROR_LOG, "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "notifier_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure logging on first call and return the package logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    for name in (NOTIFIER_LOG, ERROR_LOG):
        (log_dir / name).touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        logging.config.dictConfig(build_logging_config(log_dir, verbose))
        # Rendering is left to the stdlib JsonFormatter.
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = ["build_logging_config", "configure_logging", "notifier_log_path", "tail_log"]
