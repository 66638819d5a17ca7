"""Structured logging for the screener.

Provides JSON-formatted logging with context support for
scan tracking, debugging, and monitoring.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

# LogRecord attributes that are not user-supplied context
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename",
    "funcName", "levelname", "levelno", "lineno",
    "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info",
    "thread", "threadName", "exc_info", "exc_text",
    "message", "asctime", "taskName",
})


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the extra=... fields attached to a log record."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS
    }


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_extras: bool = True):
        """Initialize JSON formatter.

        Args:
            include_extras: Include extra fields in output
        """
        super().__init__()
        self._include_extras = include_extras

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._include_extras:
            extras = {}
            for key, value in _record_extras(record).items():
                try:
                    json.dumps(value)  # Check if serializable
                    extras[key] = value
                except (TypeError, ValueError):
                    extras[key] = str(value)

            if extras:
                log_data["context"] = extras

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Text formatter with context support."""

    def __init__(self):
        """Initialize text formatter."""
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text, appending key=value context."""
        base = super().format(record)

        extras = [f"{key}={value}" for key, value in _record_extras(record).items()]
        if extras:
            return f"{base} | {' '.join(extras)}"

        return base


class ScanLogger:
    """Specialized logger for scan lifecycle events.

    Example:
        >>> logger = ScanLogger("screener.scanner")
        >>> logger.scan_started(scan="breakout", instruments=750)
    """

    def __init__(self, name: str):
        """Initialize scan logger.

        Args:
            name: Logger name
        """
        self._logger = logging.getLogger(name)

    def scan_started(self, scan: str, instruments: int, **context: Any) -> None:
        """Log the start of a universe scan."""
        self._logger.info(
            f"Scan started: {scan} over {instruments} instruments",
            extra={
                "event": "scan_started",
                "scan": scan,
                "instruments": instruments,
                **context,
            },
        )

    def instrument_matched(self, scan: str, symbol: str, **context: Any) -> None:
        """Log an instrument that satisfied the scan."""
        self._logger.debug(
            f"Matched: {symbol}",
            extra={
                "event": "instrument_matched",
                "scan": scan,
                "symbol": symbol,
                **context,
            },
        )

    def instrument_skipped(self, scan: str, symbol: str, reason: str, **context: Any) -> None:
        """Log an instrument that could not be evaluated."""
        self._logger.warning(
            f"Skipped: {symbol} - {reason}",
            extra={
                "event": "instrument_skipped",
                "scan": scan,
                "symbol": symbol,
                "reason": reason,
                **context,
            },
        )

    def scan_completed(
        self,
        scan: str,
        instruments: int,
        matched: int,
        elapsed_s: float,
        **context: Any,
    ) -> None:
        """Log the end of a universe scan."""
        self._logger.info(
            f"Scan completed: {scan} matched {matched}/{instruments} in {elapsed_s:.2f}s",
            extra={
                "event": "scan_completed",
                "scan": scan,
                "instruments": instruments,
                "matched": matched,
                "elapsed_s": round(elapsed_s, 3),
                **context,
            },
        )


def setup_logging(
    level: str = "INFO",
    format: str = "text",
    file: str | Path | None = None,
    rotate_size_mb: int = 10,
    retain_count: int = 5,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format ('json' or 'text')
        file: Log file path (None for stdout only)
        rotate_size_mb: Log rotation size in MB
        retain_count: Number of rotated files to retain
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    if format == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    # Console goes to stderr so CLI JSON output on stdout stays clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if file:
        file_path = Path(file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=rotate_size_mb * 1024 * 1024,
            backupCount=retain_count,
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def get_scan_logger(name: str) -> ScanLogger:
    """Get a scan logger instance."""
    return ScanLogger(name)
