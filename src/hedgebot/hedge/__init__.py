"""Hedge management module for the LP hedging bot.

This module provides:
- Pure hedge decision rules (required size, deviation, funding gate)
- HedgeExecutor: maps a decision to one exchange call
- HedgeManager: evaluate-and-reconcile entry point for one tick
- BotState: explicit cross-tick state owned by the tick driver

Example Usage:
    ```python
    from hedgebot.exchange import ExchangeClient
    from hedgebot.hedge import HedgeManager, HedgeManagerConfig, BotState, Exposure

    manager = HedgeManager(client, HedgeManagerConfig(asset='PENDLE-PERP'))
    state = BotState()

    result = await manager.reconcile(Exposure('PENDLE-PERP', 1250.0), state)
    if not result.success:
        print(result.error)
    ```
"""

from .models import (
    Exposure,
    ExecutionResult,
    HedgeDecision,
    HedgingAction,
    now_ms,
)

from .hedge_calculator import (
    EPSILON,
    calculate_deviation,
    calculate_required_hedge_size,
    calculate_token_amount,
    calculate_usd_value,
    determine_hedge_action,
    is_funding_rate_acceptable,
)

from .state import BotState, BotStatus, DEFAULT_ERROR_HISTORY

from .hedge_executor import HedgeExecutor, HedgeExecutorConfig

from .hedge_manager import HedgeManager, HedgeManagerConfig

__all__ = [
    # Models
    'Exposure',
    'ExecutionResult',
    'HedgeDecision',
    'HedgingAction',
    'now_ms',

    # Decision rules
    'EPSILON',
    'calculate_deviation',
    'calculate_required_hedge_size',
    'calculate_token_amount',
    'calculate_usd_value',
    'determine_hedge_action',
    'is_funding_rate_acceptable',

    # State
    'BotState',
    'BotStatus',
    'DEFAULT_ERROR_HISTORY',

    # Executor
    'HedgeExecutor',
    'HedgeExecutorConfig',

    # Manager
    'HedgeManager',
    'HedgeManagerConfig',
]
