"""Logging configuration for the XSpec runner."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional
import json
from datetime import datetime

_RESERVED_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    )
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging in CI pipelines."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, separators=(",", ":"), default=str)


LOG_FILE = "xspec_runner.log"
ERROR_LOG_FILE = "xspec_runner_errors.log"
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s [%(filename)s:%(lineno)d]"


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[str] = None,
    enable_file: bool = True,
    json_format: Optional[bool] = False,
) -> None:
    """
    Setup logging for the XSpec runner.

    Logs go to stdout and, with ``enable_file``, to ``xspec_runner.log`` plus an
    error-only ``xspec_runner_errors.log`` in ``log_dir``.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to XSPEC_LOG_LEVEL
        log_dir: Directory for log files; defaults to XSPEC_LOG_DIR or logs/
        enable_file: Enable file logging
        json_format: Use JSON format for logs; None decides from XSPEC_ENVIRONMENT
    """
    level = getattr(logging, (level or os.getenv("XSPEC_LOG_LEVEL", "INFO")).upper())
    if json_format is None:
        json_format = os.getenv("XSPEC_ENVIRONMENT", "development").lower() == "production"
    formatter = JsonFormatter() if json_format else logging.Formatter(_TEXT_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if enable_file:
        log_path = Path(log_dir or os.getenv("XSPEC_LOG_DIR", "logs"))
        log_path.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating_handler(log_path / LOG_FILE, level, formatter))
        root_logger.addHandler(_rotating_handler(log_path / ERROR_LOG_FILE, logging.ERROR, formatter))

    _setup_module_loggers()


def _setup_module_loggers() -> None:
    """Apply per-module level overrides such as XSPEC_LOG_LEVEL_RUNNER=DEBUG."""
    for logger_name in ["runner", "transform"]:
        level = os.getenv(f"XSPEC_LOG_LEVEL_{logger_name.upper()}", None)
        if level:
            logger = logging.getLogger(f"xspec_runner.{logger_name}")
            logger.setLevel(getattr(logging, level.upper()))


def get_logger(name: str) -> logging.Logger:
    """Get logger for specific module."""
    if not name.startswith("xspec_runner."):
        name = f"xspec_runner.{name}"
    return logging.getLogger(name)
