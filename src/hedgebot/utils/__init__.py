"""
Utilities package for the LP hedging bot.

This package provides:
- Logging system with categories and per-tick correlation IDs
- Log formatters (JSON, colored)

Example Usage:
    from hedgebot.utils import get_logger, setup_logging, tick_context

    setup_logging({'logging': {'level': 'INFO'}})
    logger = get_logger('hedgebot.hedge')

    with tick_context():
        logger.log_hedge_event({'asset': 'PENDLE-PERP', 'action': 'NO_ACTION'})
"""

from .logger import (
    setup_logging,
    get_logger,
    shutdown_logging,
    tick_context,
    set_global_correlation_id,
    clear_global_correlation_id,
    LoggerAdapter,
    LoggerManager,
    LogCategory,
)

from .log_formatter import (
    JsonFormatter,
    ColoredFormatter,
    CategoryFilter,
)

__all__ = [
    'setup_logging',
    'get_logger',
    'shutdown_logging',
    'tick_context',
    'set_global_correlation_id',
    'clear_global_correlation_id',
    'LoggerAdapter',
    'LoggerManager',
    'LogCategory',
    'JsonFormatter',
    'ColoredFormatter',
    'CategoryFilter',
]
