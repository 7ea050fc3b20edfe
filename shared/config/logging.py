"""
Centralized structured logging for the presence gateway.

Every component logs through ``get_logger(__name__)`` and passes context as
keyword arguments. Production emits one JSON object per line; development
emits a coloured single line with the context appended.

Also defines LogEntry, the structured event handed to host supplied
``on_log`` sinks so embedding applications can route registry events into
their own logging without touching the stdlib logging tree.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


LOG_LEVELS = ("debug", "info", "warning", "error")

SERVICE_NAME = "presence-gateway"

# Context keys promoted to top-level JSON fields for log aggregation queries
PROMOTED_FIELDS = ("peer_id", "channel")


@dataclass(frozen=True)
class LogEntry:
    """
    Structured log event passed to ``on_log`` callbacks.

    Attributes:
        message: Human readable description of the event.
        level: One of "debug", "info", "warning", "error".
        context: Structured key/value data for the event.
        source: Component that produced the entry (e.g. "ConnectionManager").
    """

    message: str
    level: str
    context: dict[str, Any] = field(default_factory=dict)
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message, "level": self.level}
        if self.source:
            data["source"] = self.source
        if self.context:
            data["context"] = dict(self.context)
        return data


def short_id(peer_id: str | None) -> str:
    """
    Shorten a peer id for human readable output.

    Shows the first 8 characters, enough to correlate lines of one peer.
    """
    if not peer_id:
        return "<no-peer>"
    peer_id = str(peer_id)
    if len(peer_id) <= 8:
        return peer_id
    return f"{peer_id[:8]}..."


def _record_data(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter, one object per line.

    ``peer_id`` and ``channel`` are lifted out of the context so every line
    of one peer can be selected without parsing nested data.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        data = dict(_record_data(record))
        for key in PROMOTED_FIELDS:
            if key in data:
                log_data[key] = data.pop(key)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Lines look like:
        [12:00:01] INFO     presence_gateway.connection_manager: Client disconnected [3f2a9c1b...] (remaining_clients=2)
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name}: {record.getMessage()}"
        ]

        data = dict(_record_data(record))
        peer_id = data.pop("peer_id", None)
        if peer_id is not None:
            parts.append(f"[{short_id(peer_id)}]")
        if data:
            parts.append("(" + " | ".join(f"{k}={v}" for k, v in data.items()) + ")")

        line = " ".join(parts)
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger accepting structured context as keyword arguments.

    Usage:
        logger.info("Client connected", peer_id="a1b2", total_clients=3)
        logger.error("Message callback failed", peer_id="a1b2", exc_info=True)
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        # stacklevel 3 skips this helper and the level method, so the record
        # points at the calling component
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra={"extra_data": kwargs or None},
            stacklevel=3,
        )

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


# Set custom logger class
logging.setLoggerClass(StructuredLogger)


def setup_logging(level: int | None = None) -> None:
    """
    Configure logging for the gateway process.

    Call once at startup. Uses JSON output in production and the coloured
    formatter everywhere else.

    Args:
        level: Explicit log level; defaults to DEBUG when settings.debug is
            on, INFO otherwise.
    """
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if settings.environment == "production":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from the server and HTTP client
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger for a module.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Client connected", peer_id="a1b2", total_clients=3)
    """
    return logging.getLogger(name)  # type: ignore


# Pre-configured logger for the gateway application
presence_gateway_logger = get_logger("presence_gateway")
