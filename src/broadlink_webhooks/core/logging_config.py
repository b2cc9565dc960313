"""
Logging configuration for the BroadLink Webhooks automation.

Console output stays human readable; the rotating files under the log
directory receive one JSON object per record so a failed run can be
reconstructed afterwards.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import asdict, is_dataclass
from enum import Enum


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    EXTRA_FIELDS = ("task", "group", "operation", "attempt", "duration", "success", "url", "metadata")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=self._json_serializer)

    def _json_serializer(self, obj):
        """Custom JSON serializer for complex objects."""
        if is_dataclass(obj):
            return asdict(obj)
        elif isinstance(obj, Enum):
            return obj.value
        elif hasattr(obj, 'isoformat'):  # datetime objects
            return obj.isoformat()
        else:
            return str(obj)


class TaskLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter for task operations with contextual information."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any]):
        super().__init__(logger, extra)

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message and add contextual information."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra'].update(self.extra)
        return msg, kwargs

    def log_operation_start(self, operation: str, **metadata):
        """Log the start of an operation."""
        self.info(f"Starting {operation}", extra={
            'operation': operation,
            'metadata': metadata
        })

    def log_operation_success(self, operation: str, duration: float, **metadata):
        """Log successful completion of an operation."""
        self.info(f"Completed {operation} successfully", extra={
            'operation': operation,
            'success': True,
            'duration': duration,
            'metadata': metadata
        })

    def log_operation_failure(self, operation: str, duration: float, error: str, **metadata):
        """Log failure of an operation."""
        self.error(f"Failed {operation}: {error}", extra={
            'operation': operation,
            'success': False,
            'duration': duration,
            'metadata': metadata
        })


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = "logs") -> Dict[str, logging.Logger]:
    """
    Set up console and structured file logging.

    Args:
        log_level: Console logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory to store log files, or None for console only

    Returns:
        Dictionary of configured loggers
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    loggers = {"root": root_logger}

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        structured_formatter = StructuredFormatter()

        all_logs_handler = logging.handlers.RotatingFileHandler(
            log_path / "broadlink_webhooks.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8"
        )
        all_logs_handler.setFormatter(structured_formatter)
        all_logs_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(all_logs_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            log_path / "broadlink_webhooks_errors.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=10,
            encoding="utf-8"
        )
        error_handler.setFormatter(structured_formatter)
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

        tasks_logger = logging.getLogger("broadlink_webhooks.tasks")
        tasks_logger.setLevel(logging.DEBUG)
        loggers["tasks"] = tasks_logger

    _configure_external_library_logging()

    return loggers


def _configure_external_library_logging():
    """Keep Selenium, urllib3 and webdriver-manager chatter out of the console."""
    for name in ("selenium", "urllib3", "WDM"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_task_logger(component: str, task: Optional[str] = None, group: Optional[str] = None) -> TaskLoggerAdapter:
    """
    Get a task logger adapter with contextual information.

    Args:
        component: Component name (tasks, session, ifttt, etc.)
        task: Optional task name
        group: Optional BroadLink group name

    Returns:
        TaskLoggerAdapter instance
    """
    logger = logging.getLogger(f"broadlink_webhooks.{component}")

    extra = {}
    if task:
        extra['task'] = task
    if group:
        extra['group'] = group

    return TaskLoggerAdapter(logger, extra)
