"""Logging configuration using loguru.

Production output is one JSON object per line (Google Cloud Logging field
names); development output is human-readable and colored.
"""

import json
import logging
import sys
import traceback
from typing import Any

from loguru import logger

# Map loguru levels to Cloud Logging severity
LEVEL_TO_SEVERITY = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}


def serialize_record(record: dict[str, Any]) -> str:
    """Serialize a loguru record to a Cloud Logging JSON line.

    Extra fields bound on the record are copied to the top level.
    """
    log_entry: dict[str, Any] = {
        "severity": LEVEL_TO_SEVERITY.get(record["level"].name, "INFO"),
        "message": record["message"],
        "time": record["time"].isoformat(),
    }

    if record["level"].no >= 40:  # ERROR and above
        log_entry["logging.googleapis.com/sourceLocation"] = {
            "file": record["file"].path,
            "line": str(record["line"]),
            "function": record["function"],
        }

    if record["exception"] is not None:
        exc_info = record["exception"]
        tb_str = None
        if exc_info.traceback:
            tb_str = "".join(
                traceback.format_exception(exc_info.type, exc_info.value, exc_info.traceback)
            )
        log_entry["exception"] = {
            "type": exc_info.type.__name__ if exc_info.type else None,
            "value": str(exc_info.value) if exc_info.value else None,
            "traceback": tb_str,
        }

    for key, value in record.get("extra", {}).items():
        if not key.startswith("_"):
            log_entry[key] = value

    return json.dumps(log_entry, default=str)


def _json_sink(message: Any) -> None:
    sys.stdout.write(serialize_record(message.record) + "\n")
    sys.stdout.flush()


def configure_logging(
    *, is_production: bool, log_level: str = "INFO", spreadsheet_id: str | None = None
) -> None:
    """Configure loguru for the application.

    Args:
        is_production: If True, output JSON lines. If False, use
            human-readable colored output for development.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        spreadsheet_id: When given, attached to every record as an extra field.
    """
    logger.remove()
    if spreadsheet_id:
        logger.configure(extra={"spreadsheet_id": spreadsheet_id})

    if is_production:
        logger.add(
            _json_sink,
            level=log_level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>"
                "{exception}"
            ),
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    _intercept_standard_logging(log_level)


class InterceptHandler(logging.Handler):
    """Route standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _intercept_standard_logging(log_level: str) -> None:
    """Capture logs from uvicorn, httpx and google-auth."""
    logging.basicConfig(handlers=[InterceptHandler()], level=log_level, force=True)

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore"]:
        logging.getLogger(name).setLevel(log_level)
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False
