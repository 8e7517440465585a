"""
Logging for the VDB mover.

This module configures console and file logging for a run and provides
the RunLogger used by the orchestrator to record phase progress and the
verbatim diagnostic output of failing tools.
"""

import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "vdb_mover"


class LogLevel(str, Enum):
    """Log levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogEntry:
    """Structured log entry with metadata."""
    timestamp: datetime = field(default_factory=datetime.now)
    level: LogLevel = LogLevel.INFO
    message: str = ""
    run_id: Optional[str] = None
    phase: Optional[str] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
    'stack_info', 'taskName', 'message', 'asctime',
}


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created),
            level=LogLevel(record.levelname),
            message=record.getMessage(),
            run_id=getattr(record, 'run_id', None),
            phase=getattr(record, 'phase', None),
            duration=getattr(record, 'duration', None),
            metadata={
                'logger': record.name,
                'function': record.funcName,
                'line': record.lineno,
            }
        )

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS and key not in ('run_id', 'phase', 'duration'):
                log_entry.metadata[key] = value

        return log_entry.to_json()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = True,
    structured_logging: bool = False,
    console: Optional[Console] = None
) -> logging.Logger:
    """
    Set up logging for the VDB mover.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional run log path; the file is appended to
        rich_console: Whether to use Rich console handler
        structured_logging: Whether to write JSON lines to the log file
        console: Rich console to log to

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    if rich_console:
        console_handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        if structured_logging:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class RunLogger:
    """Logger bound to one run, with phase-level helpers."""

    def __init__(self, run_id: str, logger: Optional[logging.Logger] = None):
        self.run_id = run_id
        self.logger = logger or get_logger(f"run.{run_id}")

    def _extra(self, phase: Optional[str] = None, **metadata) -> Dict[str, Any]:
        extra = {'run_id': self.run_id, **metadata}
        if phase:
            extra['phase'] = phase
        return extra

    def debug(self, message: str, phase: Optional[str] = None, **metadata):
        self.logger.debug(message, extra=self._extra(phase, **metadata))

    def info(self, message: str, phase: Optional[str] = None, **metadata):
        self.logger.info(message, extra=self._extra(phase, **metadata))

    def warning(self, message: str, phase: Optional[str] = None, **metadata):
        self.logger.warning(message, extra=self._extra(phase, **metadata))

    def error(self, message: str, phase: Optional[str] = None, **metadata):
        self.logger.error(message, extra=self._extra(phase, **metadata))

    def phase_start(self, phase: str, description: str):
        self.info(f"{description}: started at {datetime.now():%Y-%m-%d %H:%M:%S}", phase=phase)

    def phase_complete(self, phase: str, duration: float):
        self.info(
            f"Completed phase {phase} (took {duration:.2f}s)",
            phase=phase,
            duration=duration
        )

    def phase_failed(self, phase: str, error: str, error_code: Optional[str] = None):
        self.error(f"Failed phase {phase}: {error}", phase=phase, error_code=error_code)

    def diagnostic(self, phase: str, output: str):
        """Log captured tool output verbatim, one record per line."""
        for line in output.splitlines():
            self.error(line, phase=phase)
