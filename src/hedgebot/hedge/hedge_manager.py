"""Hedge manager module: evaluate and reconcile once.

This module provides the HedgeManager class, the single entry point the
tick driver calls. One call fetches the hedge position and market data
concurrently, runs the decision engine, records deviation telemetry and
hands the decision to the HedgeExecutor.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

from .hedge_calculator import (
    calculate_deviation,
    determine_hedge_action,
)
from .hedge_executor import HedgeExecutor, HedgeExecutorConfig
from .models import Exposure, ExecutionResult, HedgeDecision, HedgingAction
from .state import BotState
from ..exchange import ExchangeClient, ExchangeError, HedgePosition, MarketData
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class HedgeManagerConfig:
    """Configuration for HedgeManager."""
    asset: str = 'PENDLE-PERP'
    rebalance_threshold: float = 0.05
    funding_tolerance: float = 0.005

    def __post_init__(self):
        if not 0 < self.rebalance_threshold < 1:
            raise ValueError("rebalance_threshold must be between 0 and 1")
        if not 0 < self.funding_tolerance < 1:
            raise ValueError("funding_tolerance must be between 0 and 1")


class HedgeManager:
    """Reconciles the hedge against the current exposure.

    This class handles:
    - Reading the hedge position and market data for one tick
    - Falling back to the last known hedge position on read failure
    - Aborting the tick when market data is unavailable
    - Deciding and executing the rebalance
    - Re-reading the hedge position after every executed order

    Attributes:
        exchange: ExchangeClient for reads
        executor: HedgeExecutor for writes
        config: HedgeManagerConfig with thresholds
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        config: Optional[HedgeManagerConfig] = None,
        executor: Optional[HedgeExecutor] = None
    ):
        self.exchange = exchange
        self.config = config or HedgeManagerConfig()
        self.executor = executor or HedgeExecutor(
            exchange,
            HedgeExecutorConfig(
                asset=self.config.asset,
                funding_tolerance=self.config.funding_tolerance
            )
        )

        logger.info(
            f"HedgeManager initialized for {self.config.asset} with "
            f"rebalance_threshold={self.config.rebalance_threshold}, "
            f"funding_tolerance={self.config.funding_tolerance}"
        )

    async def get_market_data(self) -> MarketData:
        """Market data for the hedged asset. Raises on failure."""
        return await self.exchange.get_market_data(self.config.asset)

    async def get_hedge_position(self) -> Optional[HedgePosition]:
        """Current hedge position for the hedged asset. Raises on failure."""
        return await self.exchange.get_position(self.config.asset)

    def decide(
        self,
        exposure: Optional[Exposure],
        hedge_position: Optional[HedgePosition],
        current_price: float
    ) -> HedgeDecision:
        return determine_hedge_action(
            exposure,
            hedge_position,
            self.config.rebalance_threshold,
            current_price
        )

    async def reconcile(self, exposure: Optional[Exposure], state: BotState) -> ExecutionResult:
        """Evaluate the hedge once and execute the resulting decision.

        Args:
            exposure: Exposure for this tick.
            state: Bot state; updated with price, hedge position, deviation
                and the returned result.

        Returns:
            ExecutionResult. Never raises.
        """
        try:
            result = await self._reconcile(exposure, state)
        except Exception as e:
            logger.error(f"Failed to update hedge position: {e}", exc_info=True)
            result = ExecutionResult.failed(HedgingAction.NO_ACTION, error=str(e) or type(e).__name__)

        state.last_action = result
        return result

    async def _reconcile(self, exposure: Optional[Exposure], state: BotState) -> ExecutionResult:
        hedge_outcome, market_outcome = await asyncio.gather(
            self.get_hedge_position(),
            self.get_market_data(),
            return_exceptions=True
        )

        market_data, abort_reason = self._resolve_market_data(market_outcome)
        if market_data is None:
            logger.error(f"Skipping reconciliation: {abort_reason}")
            return ExecutionResult.failed(
                HedgingAction.NO_ACTION,
                error=abort_reason,
                details='Market data unavailable, waiting for next tick.'
            )

        hedge_position, abort_reason = self._resolve_hedge_position(hedge_outcome, state)
        if abort_reason is not None:
            logger.error(f"Skipping reconciliation: {abort_reason}")
            return ExecutionResult.failed(
                HedgingAction.NO_ACTION,
                error=abort_reason,
                details='Hedge position unknown, waiting for next tick.'
            )

        state.price = market_data.price
        state.funding_rate = market_data.funding_rate
        state.hedge_position = hedge_position

        decision = self.decide(exposure, hedge_position, market_data.price)

        exposure_usd = exposure.usd_value if exposure is not None else 0.0
        hedge_size = hedge_position.size_usd if hedge_position is not None else 0.0
        state.deviation = calculate_deviation(max(0.0, exposure_usd), hedge_size)

        logger.log_hedge_event({
            'asset': self.config.asset,
            'exposure_usd': round(exposure_usd, 2),
            'hedge_size_usd': round(hedge_size, 2),
            'deviation_pct': state.deviation,
            'rebalance_threshold_pct': round(self.config.rebalance_threshold * 100, 2),
            'action': decision.action.value,
            'size_change_usd': round(decision.size_change_usd, 2),
        }, msg='Current position status')

        result = await self.executor.execute(decision, market_data)
        if result.success and result.action != HedgingAction.NO_ACTION:
            await self.refresh_hedge_position(state)
        return result

    async def refresh_hedge_position(self, state: BotState) -> None:
        """Re-read the hedge position into ``state``.

        Called after every executed order and on initialization. A failed
        read marks the last known hedge as stale so that the next tick
        cannot size an order from it.
        """
        try:
            state.hedge_position = await self.get_hedge_position()
            state.hedge_position_stale = False
        except Exception as e:
            state.hedge_position_stale = True
            logger.warning(
                f"Failed to refresh hedge position, marking it stale: {e}",
                exc_info=not isinstance(e, ExchangeError)
            )

    @staticmethod
    def _resolve_market_data(outcome) -> Tuple[Optional[MarketData], Optional[str]]:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            return None, f"Market data retrieval failed: {outcome}"
        if outcome.price <= 0:
            return None, f"Invalid market data: price {outcome.price}"
        return outcome, None

    @staticmethod
    def _resolve_hedge_position(
        outcome,
        state: BotState
    ) -> Tuple[Optional[HedgePosition], Optional[str]]:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            if state.hedge_position_stale:
                return None, f"Hedge position retrieval failed and last known value is stale: {outcome}"
            logger.warning(
                f"Failed to get hedge position, using last known value: {outcome}",
                exc_info=not isinstance(outcome, ExchangeError)
            )
            return state.hedge_position, None
        state.hedge_position_stale = False
        return outcome, None
