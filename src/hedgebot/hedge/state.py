"""
Explicit bot state shared between the tick driver and the hedge manager.

The state is owned by the tick driver and written only from inside a tick.
Nothing in this package keeps module-level state.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional

from .models import Exposure, ExecutionResult
from ..exchange.models import HedgePosition

DEFAULT_ERROR_HISTORY = 50


class BotStatus(Enum):
    """Lifecycle status of the bot."""
    CREATED = "CREATED"
    INITIALIZED = "INITIALIZED"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


@dataclass
class BotState:
    """Cross-tick state: last known values and a bounded error log."""

    status: BotStatus = BotStatus.CREATED
    last_check_ms: int = 0

    # Last known good values
    exposure: Optional[Exposure] = None
    hedge_position: Optional[HedgePosition] = None
    # Set when the venue may hold a hedge other than hedge_position
    hedge_position_stale: bool = False
    price: float = 0.0
    funding_rate: float = 0.0
    deviation: float = 0.0

    last_action: Optional[ExecutionResult] = None
    errors: Deque[str] = field(default_factory=lambda: deque(maxlen=DEFAULT_ERROR_HISTORY))
