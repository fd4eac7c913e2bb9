"""
Bot package for the LP hedging bot.

This package provides the orchestrator components:
- HedgingBot: Tick driver that reconciles the hedge every interval
- StateManager: Owns the bot state and its bounded error history
"""

from .state_manager import StateManager
from .hedging_bot import HedgingBot

__all__ = [
    'HedgingBot',
    'StateManager',
]
