"""
Log formatters for the LP hedging bot.

- JsonFormatter: one JSON object per line, for log files
- ColoredFormatter: human-readable console output
- CategoryFilter: route records by category
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# LogRecord attributes that are not user data
STANDARD_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName',
    'message', 'asctime', 'correlation_id', 'category',
})


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """User-supplied ``extra`` fields of a record."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in STANDARD_ATTRS and not key.startswith('_')
    }


class JsonFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Example output:
    {
        "timestamp": "2024-01-27T10:30:00.123456+00:00",
        "level": "INFO",
        "logger": "hedgebot.hedge.hedge_manager",
        "correlation_id": "6f1c...",
        "category": "HEDGE",
        "message": "Current position status",
        "data": {"hedge_data": {"deviation_pct": 4.2, ...}}
    }
    """

    def __init__(self, include_extra: bool = True, indent: Optional[int] = None):
        super().__init__()
        self.include_extra = include_extra
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        correlation_id = getattr(record, 'correlation_id', None)
        if correlation_id:
            log_data['correlation_id'] = correlation_id

        category = getattr(record, 'category', None)
        if category:
            log_data['category'] = category

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if self.include_extra:
            data = extra_fields(record)
            if data:
                log_data['data'] = data

        return json.dumps(log_data, indent=self.indent, default=str)


class ColoredFormatter(logging.Formatter):
    """
    Colored console formatter.

    Structured payloads passed through ``extra`` are appended as compact
    JSON after the message.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }

    RESET = '\033[0m'
    DIM = '\033[2m'

    DEFAULT_FORMAT = '%(asctime)s | %(levelname)-8s | %(category)-8s | %(name)s | %(message)s'

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = '%Y-%m-%d %H:%M:%S',
        use_colors: bool = True,
        show_data: bool = True
    ):
        super().__init__(fmt or self.DEFAULT_FORMAT, datefmt)
        self.use_colors = use_colors
        self.show_data = show_data

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, 'category'):
            record.category = 'GENERAL'

        formatted = super().format(record)

        if self.show_data:
            data = extra_fields(record)
            if data:
                payload = json.dumps(data, default=str, separators=(',', ':'))
                if self.use_colors:
                    payload = f"{self.DIM}{payload}{self.RESET}"
                formatted = f"{formatted} {payload}"

        if self.use_colors:
            level_color = self.COLORS.get(record.levelname, self.RESET)
            formatted = formatted.replace(
                record.levelname,
                f"{level_color}{record.levelname}{self.RESET}",
                1
            )

        return formatted


class CategoryFilter(logging.Filter):
    """Filter logs by category (include list and/or exclude list)."""

    def __init__(
        self,
        include_categories: Optional[list] = None,
        exclude_categories: Optional[list] = None
    ):
        super().__init__()
        self.include_categories = set(include_categories) if include_categories else None
        self.exclude_categories = set(exclude_categories) if exclude_categories else set()

    def filter(self, record: logging.LogRecord) -> bool:
        category = getattr(record, 'category', 'GENERAL')

        if category in self.exclude_categories:
            return False

        if self.include_categories is not None:
            return category in self.include_categories

        return True
