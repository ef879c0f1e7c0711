"""Console logging for the relay.

Every line carries the company prefix and a level badge. Structured context
goes through ``extra={"meta": {...}}`` (always printed as one JSON line) and
``extra={"details": {...}}`` (printed indented, only at DEBUG or for errors).
"""

import asyncio
import json
import logging
import logging.config
import sys
import threading
from datetime import datetime, timezone

from relay.core.config import Settings

logger = logging.getLogger(__name__)

BADGES = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARN",
    "ERROR": "ERROR",
    "CRITICAL": "FATAL",
}


class RelayFormatter(logging.Formatter):
    """ISO timestamps, company prefix, meta and details blocks."""

    def __init__(self, company: str = "JARVIS", verbose: bool = False):
        super().__init__()
        self.company = company
        self.verbose = verbose

    def formatTime(self, record, datefmt=None):  # noqa: N802
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        badge = BADGES.get(record.levelname, record.levelname)
        lines = [
            f"[{self.formatTime(record)}] [{self.company}] [{badge}] "
            f"{record.name}: {record.getMessage()}"
        ]

        meta = getattr(record, "meta", None)
        if meta:
            lines.append(f"  ├─ meta: {_dumps(meta)}")

        details = getattr(record, "details", None)
        if details and (self.verbose or record.levelno >= logging.ERROR):
            lines.append("  └─ details:")
            lines.append(_dumps(details, indent=2))

        if record.exc_info:
            lines.append(self.formatException(record.exc_info))
        return "\n".join(lines)


def _dumps(value, indent=None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False, default=str)


def configure_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    if level == "WARN":
        level = "WARNING"
    if level not in BADGES:
        level = "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "relay": {
                    "()": RelayFormatter,
                    "company": settings.company_name,
                    "verbose": level == "DEBUG",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "relay",
                }
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {
                "sqlalchemy.engine": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )


def install_exception_hooks() -> None:
    """Log uncaught exceptions instead of letting them vanish."""

    def _log_uncaught(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logger.error("Uncaught exception", exc_info=(exc_type, exc, tb))

    def _log_thread(args):
        logger.error(
            f"Uncaught exception in thread {getattr(args.thread, 'name', '?')}",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _log_uncaught
    threading.excepthook = _log_thread


def install_asyncio_handler(loop: asyncio.AbstractEventLoop) -> None:
    """Log exceptions nobody awaited (failed background tasks, callbacks)."""

    def _log_async(loop, context):
        exc = context.get("exception")
        logger.error(
            f"Unhandled async error: {context.get('message', 'no message')}",
            exc_info=exc,
            extra={"meta": {"task": repr(context.get("task") or context.get("future"))}},
        )

    loop.set_exception_handler(_log_async)
