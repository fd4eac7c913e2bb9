"""
Logging system for the LP hedging bot.

This module wraps the standard library logging with categories,
correlation IDs (one per tick) and structured event helpers.

Example Usage:
    from hedgebot.utils import get_logger, setup_logging, tick_context

    setup_logging({'logging': {'level': 'INFO', 'file': True}})

    logger = get_logger('hedgebot.hedge')

    with tick_context() as tick_id:
        logger.log_hedge_event({
            'asset': 'PENDLE-PERP',
            'deviation_pct': 7.5,
            'action': 'INCREASE_SHORT'
        })
"""

import logging
import logging.handlers
import sys
import threading
import uuid
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .log_formatter import (
    JsonFormatter,
    ColoredFormatter,
    CategoryFilter,
)


class LogCategory(Enum):
    """Log categories for organizing log output."""
    HEDGE = "HEDGE"
    ORDERS = "ORDERS"
    EXCHANGE = "EXCHANGE"
    SYSTEM = "SYSTEM"
    GENERAL = "GENERAL"


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds correlation ID and category support.

    The correlation ID comes from the adapter itself when set, otherwise
    from the manager's global (per-tick) ID.
    """

    def __init__(
        self,
        logger: logging.Logger,
        extra: Optional[Dict[str, Any]] = None,
        manager: Optional['LoggerManager'] = None
    ):
        super().__init__(logger, extra or {})
        self._correlation_id: Optional[str] = None
        self._manager = manager

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get('extra')
        if extra is None:
            extra = {}
            kwargs['extra'] = extra

        correlation_id = self._correlation_id
        if correlation_id is None and self._manager is not None:
            correlation_id = self._manager.correlation_id
        if correlation_id and 'correlation_id' not in extra:
            extra['correlation_id'] = correlation_id

        for key, value in self.extra.items():
            extra.setdefault(key, value)

        return msg, kwargs

    def set_correlation_id(self, correlation_id: str) -> None:
        self._correlation_id = correlation_id

    def clear_correlation_id(self) -> None:
        self._correlation_id = None

    def _log_event(
        self,
        category: LogCategory,
        data_key: str,
        data: Dict[str, Any],
        msg: str,
        level: int
    ) -> None:
        self.log(level, msg, extra={
            'category': category.value,
            data_key: data
        })

    def log_hedge_event(self, event_data: Dict[str, Any], msg: str = "", level: int = logging.INFO) -> None:
        """
        Log a hedge decision or rebalance event.

        Args:
            event_data: Hedge event data dictionary
            msg: Optional message
            level: Log level
        """
        if not msg:
            msg = f"Hedge: {event_data.get('action', 'unknown')} {event_data.get('asset', 'unknown')}"
        self._log_event(LogCategory.HEDGE, 'hedge_data', event_data, msg, level)

    def log_order_event(self, event_data: Dict[str, Any], msg: str = "", level: int = logging.INFO) -> None:
        """
        Log an order placement event.

        Args:
            event_data: Order event data dictionary
            msg: Optional message
            level: Log level
        """
        if not msg:
            msg = (
                f"Order: {event_data.get('side', 'unknown')} "
                f"{event_data.get('order_type', 'unknown')} {event_data.get('asset', 'unknown')}"
            )
        self._log_event(LogCategory.ORDERS, 'order_data', event_data, msg, level)

    def log_system_event(self, event_data: Dict[str, Any], msg: str = "", level: int = logging.INFO) -> None:
        """
        Log a lifecycle event (start, stop, restart, status).

        Args:
            event_data: System event data dictionary
            msg: Optional message
            level: Log level
        """
        if not msg:
            msg = f"System: {event_data.get('event_type', 'unknown')}"
        self._log_event(LogCategory.SYSTEM, 'system_data', event_data, msg, level)


class LoggerManager:
    """
    Manager for the logging system.

    Handles initialization, configuration, and lifecycle of loggers.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Singleton pattern for LoggerManager."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._initialized = True
        self._loggers: Dict[str, LoggerAdapter] = {}
        self._handlers: List[logging.Handler] = []
        self._setup_done = False
        self.correlation_id: Optional[str] = None

    def setup_logging(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Setup the logging system with configuration.

        Args:
            config: Logging configuration dictionary
        """
        if self._setup_done:
            return

        log_config = (config or {}).get('logging', {})

        root_level = self._get_log_level(log_config.get('level', 'INFO'))
        root = logging.getLogger()
        root.setLevel(root_level)

        for handler in list(root.handlers):
            root.removeHandler(handler)

        if log_config.get('console', True):
            self._setup_console_handler(log_config.get('console_config', {}))

        if log_config.get('file', False):
            self._setup_file_handler(log_config.get('file_config', {}))

        self._setup_done = True

        self.get_logger('hedgebot.system').log_system_event({
            'event_type': 'logging_initialized',
            'level': log_config.get('level', 'INFO'),
            'console': log_config.get('console', True),
            'file': log_config.get('file', False),
        }, msg="Logging system initialized", level=logging.DEBUG)

    @staticmethod
    def _get_log_level(level: Union[str, int]) -> int:
        if isinstance(level, int):
            return level

        levels = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL
        }
        return levels.get(str(level).upper(), logging.INFO)

    def _setup_console_handler(self, config: Dict[str, Any]) -> None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self._get_log_level(config.get('level', 'DEBUG')))

        use_colors = config.get('colors', True) and sys.stdout.isatty()
        handler.setFormatter(ColoredFormatter(use_colors=use_colors))

        categories = config.get('categories')
        if categories:
            handler.addFilter(CategoryFilter(include_categories=categories))

        logging.getLogger().addHandler(handler)
        self._handlers.append(handler)

    def _setup_file_handler(self, config: Dict[str, Any]) -> None:
        filepath = Path(config.get('directory', 'logs')) / config.get('filename', 'hedgebot.log')
        filepath.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            filename=str(filepath),
            maxBytes=config.get('max_bytes', 10 * 1024 * 1024),
            backupCount=config.get('backup_count', 10),
            encoding='utf-8'
        )
        handler.setLevel(self._get_log_level(config.get('level', 'INFO')))
        handler.setFormatter(JsonFormatter())

        logging.getLogger().addHandler(handler)
        self._handlers.append(handler)

    def get_logger(self, name: str) -> LoggerAdapter:
        if name not in self._loggers:
            self._loggers[name] = LoggerAdapter(logging.getLogger(name), manager=self)
        return self._loggers[name]

    def shutdown(self) -> None:
        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
        self._setup_done = False


# Global logger manager instance
_logger_manager = LoggerManager()


def setup_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """
    Setup the logging system.

    Example:
        setup_logging({
            'logging': {
                'level': 'INFO',
                'console': True,
                'file': True,
                'file_config': {'directory': 'logs', 'filename': 'hedgebot.log'}
            }
        })
    """
    _logger_manager.setup_logging(config)


def get_logger(name: str) -> LoggerAdapter:
    """Get a logger instance."""
    return _logger_manager.get_logger(name)


def shutdown_logging() -> None:
    """Remove and close the handlers installed by setup_logging."""
    _logger_manager.shutdown()


def set_global_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set a global correlation ID for all loggers.

    Returns:
        The correlation ID
    """
    cid = correlation_id or str(uuid.uuid4())
    _logger_manager.correlation_id = cid
    return cid


def clear_global_correlation_id() -> None:
    _logger_manager.correlation_id = None


@contextmanager
def tick_context(correlation_id: Optional[str] = None):
    """
    Tag every log record emitted inside the block with one correlation ID.

    Example:
        with tick_context() as tick_id:
            logger.info("Executing check cycle")
    """
    previous = _logger_manager.correlation_id
    cid = set_global_correlation_id(correlation_id)
    try:
        yield cid
    finally:
        _logger_manager.correlation_id = previous
