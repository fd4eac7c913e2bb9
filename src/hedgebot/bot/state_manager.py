"""
State Manager module for the LP hedging bot.

This module provides the StateManager class that owns the in-memory
BotState: status transitions, the bounded error log and the status
snapshot exposed to operators.
"""

from collections import deque
from typing import Any, Dict, Optional

from ..hedge import BotState, BotStatus, DEFAULT_ERROR_HISTORY, now_ms
from ..utils import get_logger

logger = get_logger(__name__)


class StateManager:
    """
    Manages the bot state across ticks.

    This class handles:
    - Status transitions
    - Recording errors into a bounded history
    - Building a JSON-friendly summary of the state

    Attributes:
        state: Current BotState instance
        error_history_size: Maximum number of errors kept
    """

    def __init__(self, error_history_size: int = DEFAULT_ERROR_HISTORY, state: Optional[BotState] = None):
        """
        Initialize the StateManager.

        Args:
            error_history_size: Maximum number of errors kept in memory
            state: Existing state to manage (a fresh one is created if omitted)
        """
        if error_history_size < 1:
            raise ValueError("error_history_size must be at least 1")

        self.error_history_size = error_history_size
        self.state = state or BotState()
        self.state.errors = deque(self.state.errors, maxlen=error_history_size)

    @property
    def status(self) -> BotStatus:
        return self.state.status

    def set_status(self, status: BotStatus) -> None:
        if status != self.state.status:
            logger.debug(f"Bot status {self.state.status.value} -> {status.value}")
        self.state.status = status

    def mark_check(self) -> None:
        self.state.last_check_ms = now_ms()

    def record_error(self, message: str) -> None:
        """Append an error; the oldest entry is dropped when the history is full."""
        self.state.errors.append(message)

    def clear_errors(self) -> None:
        self.state.errors.clear()

    def get_state_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the current state.

        Returns:
            Dictionary with state summary
        """
        state = self.state
        return {
            'status': state.status.value,
            'last_check_ms': state.last_check_ms,
            'exposure_usd': state.exposure.usd_value if state.exposure else None,
            'hedge_position': state.hedge_position.to_dict() if state.hedge_position else None,
            'hedge_position_stale': state.hedge_position_stale,
            'price': state.price,
            'funding_rate': state.funding_rate,
            'deviation_pct': state.deviation,
            'last_action': state.last_action.to_dict() if state.last_action else None,
            'error_count': len(state.errors),
            'recent_errors': list(state.errors)[-5:],
        }
