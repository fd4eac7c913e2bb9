"""Hedge decision and execution result types."""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class HedgingAction(Enum):
    """Decision emitted by the hedge engine for one tick."""
    NO_ACTION = "NO_ACTION"
    INCREASE_SHORT = "INCREASE_SHORT"
    DECREASE_SHORT = "DECREASE_SHORT"
    CLOSE_POSITIONS = "CLOSE_POSITIONS"


@dataclass(frozen=True)
class Exposure:
    """USD value of the LP-held asset that must be hedged."""
    asset: str
    usd_value: float
    price: float = 0.0

    def __post_init__(self):
        if not math.isfinite(self.usd_value):
            raise ValueError(f"Exposure usd_value must be finite, got {self.usd_value}")


@dataclass(frozen=True)
class HedgeDecision:
    """Action plus an unsigned USD size change. Recomputed every tick."""
    action: HedgingAction
    size_change_usd: float = 0.0


@dataclass(frozen=True)
class ExecutionResult:
    """Audit record of one tick's outcome."""
    success: bool
    action: HedgingAction
    details: Optional[str] = None
    error: Optional[str] = None
    timestamp_ms: int = 0

    @classmethod
    def ok(cls, action: HedgingAction, details: str) -> 'ExecutionResult':
        return cls(success=True, action=action, details=details, timestamp_ms=now_ms())

    @classmethod
    def failed(
        cls,
        action: HedgingAction,
        error: Optional[str] = None,
        details: Optional[str] = None
    ) -> 'ExecutionResult':
        return cls(
            success=False,
            action=action,
            details=details,
            error=error,
            timestamp_ms=now_ms()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'action': self.action.value,
            'details': self.details,
            'error': self.error,
            'timestamp_ms': self.timestamp_ms,
        }


def now_ms() -> int:
    return int(time.time() * 1000)
