"""Hedge executor module for turning hedge decisions into orders.

This module provides the HedgeExecutor class, which maps one HedgeDecision
to at most one exchange call and converts the outcome into an
ExecutionResult. Growing the short is gated on the funding rate; shrinking
or closing it never is.
"""

from dataclasses import dataclass
from typing import Optional

from .hedge_calculator import is_funding_rate_acceptable
from .models import ExecutionResult, HedgeDecision, HedgingAction
from ..exchange import ExchangeClient, MarketData, OrderResult
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class HedgeExecutorConfig:
    """Configuration for HedgeExecutor."""
    asset: str = 'PENDLE-PERP'
    funding_tolerance: float = 0.005  # 0.5% per period


class HedgeExecutor:
    """Executes hedge decisions against the exchange.

    Every call to ``execute`` returns exactly one ExecutionResult and never
    raises.

    Attributes:
        exchange: ExchangeClient used for order placement
        config: HedgeExecutorConfig with asset and funding tolerance
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        config: Optional[HedgeExecutorConfig] = None
    ):
        self.exchange = exchange
        self.config = config or HedgeExecutorConfig()

        logger.info(
            f"HedgeExecutor initialized for {self.config.asset}, "
            f"funding_tolerance={self.config.funding_tolerance}"
        )

    def check_funding_rate(self, market_data: MarketData) -> bool:
        """Return True if the funding rate allows growing the short."""
        acceptable = is_funding_rate_acceptable(
            market_data.funding_rate,
            self.config.funding_tolerance
        )
        if not acceptable:
            logger.warning(
                f"Funding rate ({market_data.funding_rate * 100:.4f}%) exceeds tolerance "
                f"({self.config.funding_tolerance * 100:.2f}%)"
            )
        return acceptable

    async def execute(
        self,
        decision: HedgeDecision,
        market_data: MarketData
    ) -> ExecutionResult:
        """Execute one hedge decision.

        Args:
            decision: Decision from the hedge engine.
            market_data: Market data fetched for the same tick; its funding
                rate gates INCREASE_SHORT.

        Returns:
            ExecutionResult stamped at call time.
        """
        action = decision.action
        try:
            if action is HedgingAction.NO_ACTION:
                return ExecutionResult.ok(action, 'No rebalance needed.')

            if action is HedgingAction.INCREASE_SHORT:
                return await self._increase_short(decision, market_data)

            if action is HedgingAction.DECREASE_SHORT:
                return await self._decrease_short(decision)

            if action is HedgingAction.CLOSE_POSITIONS:
                return await self._close_positions()

            return ExecutionResult.failed(action, error=f"Unsupported hedging action: {action}")

        except Exception as e:
            logger.error(f"Failed to execute {action.value}: {e}", exc_info=True)
            return ExecutionResult.failed(action, error=str(e) or type(e).__name__)

    async def _increase_short(
        self,
        decision: HedgeDecision,
        market_data: MarketData
    ) -> ExecutionResult:
        action = decision.action
        if decision.size_change_usd <= 0:
            return ExecutionResult.ok(action, 'Size change is zero, nothing to increase.')

        if not self.check_funding_rate(market_data):
            return ExecutionResult.failed(
                action,
                error='Funding rate exceeds tolerance',
                details='Funding rate exceeds tolerance. Skipping hedge increase.'
            )

        logger.log_hedge_event({
            'asset': self.config.asset,
            'action': action.value,
            'size_change_usd': decision.size_change_usd,
            'funding_rate': market_data.funding_rate,
        }, msg=f"Increasing short position by {decision.size_change_usd:.2f} USD")

        result = await self.exchange.open_short_position(self.config.asset, decision.size_change_usd)
        return self._to_execution_result(
            action,
            result,
            f"Increased short position by {decision.size_change_usd:.2f} USD",
            'Unknown error increasing short position'
        )

    async def _decrease_short(self, decision: HedgeDecision) -> ExecutionResult:
        action = decision.action
        if decision.size_change_usd <= 0:
            return ExecutionResult.ok(action, 'Size change is zero, nothing to decrease.')

        logger.log_hedge_event({
            'asset': self.config.asset,
            'action': action.value,
            'size_change_usd': decision.size_change_usd,
        }, msg=f"Decreasing short position by {decision.size_change_usd:.2f} USD")

        result = await self.exchange.reduce_short_position(self.config.asset, decision.size_change_usd)
        return self._to_execution_result(
            action,
            result,
            f"Decreased short position by {decision.size_change_usd:.2f} USD",
            'Unknown error decreasing short position'
        )

    async def _close_positions(self) -> ExecutionResult:
        action = HedgingAction.CLOSE_POSITIONS

        logger.log_hedge_event({
            'asset': self.config.asset,
            'action': action.value,
        }, msg=f"Closing all positions for {self.config.asset}")

        result = await self.exchange.close_position(self.config.asset)
        return self._to_execution_result(
            action,
            result,
            f"Closed all positions for {self.config.asset}",
            'Unknown error closing positions'
        )

    @staticmethod
    def _to_execution_result(
        action: HedgingAction,
        result: OrderResult,
        success_details: str,
        default_error: str
    ) -> ExecutionResult:
        if result.success:
            return ExecutionResult.ok(action, success_details)
        return ExecutionResult.failed(action, error=result.error or default_error)
