"""
streamgen :: Structured Logging

Logging for the generation stack, JSON or human-readable.
Per-session events go to DEBUG, pipeline summaries to INFO.
The per-token hot path never logs.

Records may carry two extra attributes:
    session_id    generation session the record belongs to
    extra_data    dict of structured fields (token counts, strategy, ...)

INL - 2025
"""

import logging
import json
import time
import sys
from typing import Any, Dict, Optional

# Keyword arguments the logging module itself understands.
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


def _structured_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields: Dict[str, Any] = dict(getattr(record, "extra_data", None) or {})
    if hasattr(record, "session_id"):
        fields["session_id"] = record.session_id
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_structured_fields(record))
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class HumanFormatter(logging.Formatter):
    """Colored single-line output: time, level, message, key=value fields."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = self.formatTime(record, "%H:%M:%S")
        parts = [f"{color}{ts} [{record.levelname:>7}]{self.RESET}", record.getMessage()]

        fields = _structured_fields(record)
        session_id = fields.pop("session_id", None)
        parts.extend(f"{k}={v}" for k, v in fields.items())
        if session_id is not None:
            parts.append(f"[session={session_id}]")

        msg = " ".join(parts)
        if record.exc_info and record.exc_info[1]:
            msg += "\n" + self.formatException(record.exc_info)
        return msg


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the "streamgen" logger. Replaces any handlers set before.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format on the console
        log_file: Optional file path for log output (always JSON)
    """
    logger = logging.getLogger("streamgen")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_output else HumanFormatter())
    logger.addHandler(console)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(JSONFormatter())
        logger.addHandler(fh)

    return logger


def get_logger(name: str = "streamgen") -> logging.Logger:
    return logging.getLogger(name)


class SessionLogger(logging.LoggerAdapter):
    """
    Logger bound to one generation session.

    Keyword arguments other than the logging module's own become the
    record's extra_data:

        log.debug("session start", prompt_tokens=12)

    Also keeps a wall clock for the session (restart_clock / elapsed_ms).
    """

    def __init__(self, session_id: int, logger: Optional[logging.Logger] = None):
        super().__init__(logger or get_logger(), {"session_id": session_id})
        self.session_id = session_id
        self.start_time = time.perf_counter()

    def process(self, msg, kwargs):
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOGGING_KWARGS}
        kwargs["extra"] = {"session_id": self.session_id, "extra_data": fields}
        return msg, kwargs

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000

    def restart_clock(self):
        self.start_time = time.perf_counter()
