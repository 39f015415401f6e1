"""
Structured logging for the sync service.

Every entry is one JSON document carrying the component name and a free-form
``metadata`` dict (natural keys, topics, counts), so routing and sync
decisions can be traced without parsing prose.
"""
import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

SERVICE_NAME = os.getenv('SERVICE_NAME', 'learning-sync')

NOISY_LOGGERS = ('sqlalchemy', 'aiokafka', 'httpx', 'apscheduler', 'asyncio')


class LogFormat(Enum):
    """Log format enumeration"""
    TEXT = "text"
    JSON = "json"


def _level_number(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return logging.getLevelName(level.upper())


class StructuredLogger:
    """Thin wrapper over a stdlib logger that renders entries as JSON lines"""

    def __init__(
        self,
        name: str,
        level: Union[str, int] = "INFO",
        log_format: LogFormat = LogFormat.JSON,
        log_dir: Optional[str] = None,
    ):
        self.name = name
        self.log_format = log_format
        self.logger = logging.getLogger(name)
        self.logger.setLevel(_level_number(level))

        # Console output goes through the root handler installed by setup_logging
        self.logger.handlers.clear()
        if log_dir:
            self._add_file_handlers(Path(log_dir))

    def _add_file_handlers(self, log_path: Path):
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path / f"{self.name}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.INFO)

        error_handler = TimedRotatingFileHandler(
            log_path / f"{self.name}_error.log",
            when='midnight',
            backupCount=30
        )
        error_handler.setLevel(logging.ERROR)

        for handler in (file_handler, error_handler):
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def _entry(
        self,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]],
        exception: Optional[BaseException],
    ) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.upper(),
            "service": SERVICE_NAME,
            "logger": self.name,
            "message": message,
        }
        if metadata:
            entry["metadata"] = metadata

        if exception is not None:
            details = {"type": type(exception).__name__, "message": str(exception)}
            error_kind = getattr(exception, "error_kind", None)
            if error_kind is not None:
                details["error_kind"] = getattr(error_kind, "value", error_kind)
            # Tracebacks only for errors; warnings about bad input stay one line
            if level == "error" and exception.__traceback__ is not None:
                details["traceback"] = "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                )
            entry["exception"] = details
        return entry

    def _log(
        self,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exception: Optional[BaseException] = None,
    ):
        if not self.logger.isEnabledFor(_level_number(level)):
            return

        if self.log_format == LogFormat.JSON:
            rendered = json.dumps(self._entry(level, message, metadata, exception), default=str)
        else:
            rendered = message
            if metadata:
                rendered += f" | {metadata}"
            if exception is not None:
                rendered += f" | {type(exception).__name__}: {exception}"

        getattr(self.logger, level)(rendered)

    def debug(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        self._log("debug", message, metadata)

    def info(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        self._log("info", message, metadata)

    def warning(self, message: str, metadata: Optional[Dict[str, Any]] = None,
                exception: Optional[BaseException] = None):
        self._log("warning", message, metadata, exception)

    def error(self, message: str, metadata: Optional[Dict[str, Any]] = None,
              exception: Optional[BaseException] = None):
        self._log("error", message, metadata, exception)

    def log_database_operation(
        self,
        operation: str,
        table: str,
        affected_rows: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Log a write performed by the persistence gateway"""
        details = {"operation": operation, "table": table, "affected_rows": affected_rows}
        if metadata:
            details.update(metadata)
        self.debug(f"DB {operation} on {table}", metadata=details)


class LoggerManager:
    """Registry of structured loggers sharing one configuration"""

    _loggers: Dict[str, StructuredLogger] = {}
    _config: Dict[str, Any] = {"level": "INFO", "log_format": LogFormat.JSON, "log_dir": None}

    @classmethod
    def configure(cls, level: Union[str, int], log_format: LogFormat, log_dir: Optional[str] = None):
        cls._config = {"level": level, "log_format": log_format, "log_dir": log_dir}
        # Loggers created at import time are held by their modules; update them in place
        for structured in cls._loggers.values():
            structured.log_format = log_format
            structured.logger.setLevel(_level_number(level))
            structured.logger.handlers.clear()
            if log_dir:
                structured._add_file_handlers(Path(log_dir))

    @classmethod
    def get_logger(cls, name: str) -> StructuredLogger:
        if name not in cls._loggers:
            cls._loggers[name] = StructuredLogger(name=name, **cls._config)
        return cls._loggers[name]


def setup_logging(
    level: str = "INFO",
    log_format: Union[str, LogFormat] = LogFormat.JSON,
    enable_file_logging: bool = False,
    log_dir: Optional[str] = None
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level name
        log_format: ``json`` or ``text``
        enable_file_logging: Whether to also write rotating files
        log_dir: Directory for log files
    """
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    if log_format == LogFormat.JSON:
        format_str = '%(message)s'
    else:
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=_level_number(level),
        format=format_str,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )

    file_dir = (log_dir or os.getenv('LOG_DIR', 'logs')) if enable_file_logging else None
    LoggerManager.configure(level=level, log_format=log_format, log_dir=file_dir)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_structured_logger(name: str) -> StructuredLogger:
    """Get the shared structured logger for a component"""
    return LoggerManager.get_logger(name)


__all__ = [
    'StructuredLogger',
    'LoggerManager',
    'LogFormat',
    'setup_logging',
    'get_structured_logger',
]
