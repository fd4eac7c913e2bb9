"""
Hedging Bot orchestrator.

This module provides the HedgingBot class that drives the periodic
check cycle: read exposure, reconcile the hedge through the HedgeManager,
record errors and re-initialize after repeated failures.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ..config import ConfigurationError, HedgeBotConfig, mask_secret
from ..exchange import ExchangeClient, ValidationError
from ..exposure import ExposureSource, StaticExposureSource
from ..hedge import (
    BotStatus,
    Exposure,
    ExecutionResult,
    HedgeManager,
    HedgeManagerConfig,
    HedgingAction,
)
from ..utils import get_logger, tick_context
from .state_manager import StateManager

logger = get_logger(__name__)


class HedgingBot:
    """
    Tick driver for the LP hedge.

    Each check cycle:
    1. Read the exposure (falling back to the last known value)
    2. Reconcile the hedge once through the HedgeManager
    3. Record failures and count consecutive failed ticks

    Ticks never overlap: a tick that fires while the previous one is still
    running is skipped. Every tick is bounded by
    ``tick_timeout_multiplier * check_interval``.

    Attributes:
        config: HedgeBotConfig with all settings
        exchange: ExchangeClient used for reads and orders
        exposure_source: Source of the LP exposure
        hedge_manager: HedgeManager performing the reconciliation
        state_manager: StateManager owning the BotState
        running: Whether the check loop is active
    """

    def __init__(
        self,
        config: HedgeBotConfig,
        exchange_client: Optional[ExchangeClient] = None,
        exposure_source: Optional[ExposureSource] = None
    ):
        """
        Initialize the hedging bot.

        Args:
            config: HedgeBotConfig with all settings
            exchange_client: Client to use; one is built from ``config.venue``
                and owned by the bot when omitted
            exposure_source: Exposure source; a static source is built from
                ``config.exposure.static_usd_value`` when omitted

        Raises:
            ConfigurationError: If no exposure source is available
        """
        self.config = config
        self.asset = config.hedge.hedge_asset

        self.exchange = exchange_client or ExchangeClient.from_config(config)
        self._owns_exchange = exchange_client is None

        self.exposure_source = exposure_source or self._build_exposure_source(config)

        self.hedge_manager = HedgeManager(
            self.exchange,
            HedgeManagerConfig(
                asset=self.asset,
                rebalance_threshold=config.hedge.rebalance_threshold,
                funding_tolerance=config.hedge.funding_tolerance
            )
        )
        self.state_manager = StateManager(config.bot.error_history_size)

        self.running = False
        self.restart_count = 0
        self._consecutive_errors = 0
        self._tick_failed = False
        self._tick_lock = asyncio.Lock()
        self._shutdown_event = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None

        logger.info(f"HedgingBot created for {self.asset}")

    def _build_exposure_source(self, config: HedgeBotConfig) -> ExposureSource:
        usd_value = config.exposure.static_usd_value
        if usd_value is None:
            raise ConfigurationError(
                "No exposure source configured. Pass an exposure source or set "
                "exposure.static_usd_value"
            )
        return StaticExposureSource(self.asset, usd_value)

    @property
    def state(self):
        return self.state_manager.state

    @property
    def check_interval(self) -> float:
        """Seconds between ticks."""
        return self.config.bot.check_interval_ms / 1000.0

    @property
    def tick_timeout(self) -> float:
        """Deadline for one tick in seconds."""
        return self.check_interval * self.config.bot.tick_timeout_multiplier

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Validate connectivity and load initial market data.

        Raises:
            Exception: Whatever prevented initialization; the bot is left
                in ERROR status with the failure recorded
        """
        logger.log_system_event({
            'event_type': 'initializing',
            'asset': self.asset,
            'api_url': self.config.venue.api_url,
            'signing_key': mask_secret(self.config.venue.signing_key),
            'check_interval_ms': self.config.bot.check_interval_ms,
        }, msg="Initializing hedging bot...")

        try:
            await self.exchange.connect()

            market_data = await self.hedge_manager.get_market_data()
            if market_data.price <= 0:
                raise ValidationError(f"Invalid market data: price {market_data.price}")

            self.state.price = market_data.price
            self.state.funding_rate = market_data.funding_rate
            logger.info(f"Initial {self.asset} price: {market_data.price:.4f}")
            logger.info(f"Current funding rate: {market_data.funding_rate:.4%}")

            await self.hedge_manager.refresh_hedge_position(self.state)

            self.state_manager.set_status(BotStatus.INITIALIZED)
            logger.log_system_event(
                {'event_type': 'initialized', 'asset': self.asset},
                msg="Hedging bot initialized successfully"
            )

        except Exception as e:
            self.state_manager.set_status(BotStatus.ERROR)
            self.state_manager.record_error(f"Initialization failed: {e}")
            logger.critical(f"Failed to initialize hedging bot: {e}", exc_info=True)
            raise

    async def start(self) -> None:
        """
        Start the check loop. The first tick runs immediately.

        Raises:
            RuntimeError: If the bot has not been initialized
        """
        if self.running:
            logger.warning("Bot is already running")
            return

        if self.state_manager.status != BotStatus.INITIALIZED:
            raise RuntimeError("Bot must be initialized before starting")

        self.running = True
        self._shutdown_event.clear()
        self.state_manager.set_status(BotStatus.RUNNING)
        self._loop_task = asyncio.create_task(self._check_loop())

        logger.log_system_event({
            'event_type': 'started',
            'asset': self.asset,
            'check_interval_s': self.check_interval,
        }, msg=f"Hedging bot is running. Checking every {self.check_interval:g} seconds.")

    async def stop(self) -> None:
        """Stop the check loop and release the exchange client if owned."""
        if not self.running and self.state_manager.status == BotStatus.STOPPED:
            return

        logger.info("Stopping hedging bot...")
        self.running = False
        self._shutdown_event.set()

        task = self._loop_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            try:
                # Let an in-flight tick finish within its deadline
                await asyncio.wait_for(task, timeout=self.tick_timeout)
            except asyncio.TimeoutError:
                logger.warning("Check loop did not finish in time and was cancelled")
            except asyncio.CancelledError:
                pass
        self._loop_task = None

        if self._owns_exchange:
            await self.exchange.close()

        self.state_manager.set_status(BotStatus.STOPPED)
        logger.log_system_event({'event_type': 'stopped', 'asset': self.asset}, msg="Hedging bot stopped")

    async def wait_until_stopped(self) -> None:
        """Block until the check loop has ended."""
        task = self._loop_task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def restart(self) -> bool:
        """
        Re-initialize the bot after repeated failures.

        Returns:
            True if re-initialization succeeded, False otherwise
        """
        self.restart_count += 1
        logger.log_system_event({
            'event_type': 'restart',
            'asset': self.asset,
            'restart_count': self.restart_count,
            'recent_errors': list(self.state.errors)[-5:],
        }, msg="Restarting hedging bot...", level=logging.CRITICAL)

        self.state_manager.clear_errors()
        self._consecutive_errors = 0

        try:
            await self.initialize()
        except Exception as e:
            self.state_manager.record_error(f"Restart failed: {e}")
            logger.critical(f"Failed to restart hedging bot: {e}")
            return False

        if self.running:
            self.state_manager.set_status(BotStatus.RUNNING)
        logger.info("Hedging bot successfully restarted")
        return True

    async def _check_loop(self) -> None:
        """Main check loop."""
        logger.info("Check loop started")

        while self.running:
            await self.execute_check()

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.check_interval
                )
                break  # Shutdown requested
            except asyncio.TimeoutError:
                pass

        logger.info("Check loop ended")

    # ------------------------------------------------------------------
    # Check cycle
    # ------------------------------------------------------------------

    async def execute_check(self) -> Optional[ExecutionResult]:
        """
        Execute a single check and rebalance cycle.

        Returns:
            The ExecutionResult of the reconciliation, or None when the tick
            was skipped (previous tick still running, no exposure, timeout)
        """
        if self._tick_lock.locked():
            logger.warning("Previous check still in progress, skipping this tick")
            return None

        async with self._tick_lock:
            with tick_context():
                self._tick_failed = False
                result = None
                try:
                    result = await asyncio.wait_for(self._run_check(), timeout=self.tick_timeout)
                except asyncio.TimeoutError:
                    self._record_error(f"Check cycle timed out after {self.tick_timeout:g}s")
                except Exception as e:
                    logger.error(f"Check cycle failed: {e}", exc_info=True)
                    self._record_error(f"Check cycle failed: {e}")

                await self._track_consecutive_errors()
                self._log_state()
                return result

    async def _run_check(self) -> Optional[ExecutionResult]:
        logger.info("Executing check cycle...")
        self.state_manager.mark_check()

        exposure = await self._read_exposure()
        if exposure is None:
            logger.warning("No exposure available. Skipping reconciliation.")
            return None

        result = await self.hedge_manager.reconcile(exposure, self.state)

        if result.success:
            if result.action != HedgingAction.NO_ACTION:
                logger.info(f"Rebalance executed: {result.details}")
        else:
            self._record_error(result.error or 'Unknown error during rebalance')

        return result

    async def _read_exposure(self) -> Optional[Exposure]:
        try:
            exposure = await self.exposure_source.get_exposure()
        except Exception as e:
            self._record_error(f"Exposure update failed: {e}")
            if self.state.exposure is not None:
                logger.warning(
                    f"Using last known exposure: ${self.state.exposure.usd_value:.2f}"
                )
            return self.state.exposure

        self.state.exposure = exposure
        return exposure

    def _record_error(self, message: str) -> None:
        logger.error(message)
        self.state_manager.record_error(message)
        self._tick_failed = True

    async def _track_consecutive_errors(self) -> None:
        if not self._tick_failed:
            self._consecutive_errors = 0
            return

        self._consecutive_errors += 1
        max_errors = self.config.bot.max_consecutive_errors
        if self._consecutive_errors >= max_errors:
            logger.critical(f"{max_errors} consecutive failed checks detected, restarting bot...")
            await self.restart()

    def _log_state(self) -> None:
        logger.log_system_event(
            {'event_type': 'tick_state', **self.get_status()},
            msg="Current bot state"
        )

    def get_status(self) -> Dict[str, Any]:
        """Get current bot status."""
        status = self.state_manager.get_state_summary()
        status.update({
            'asset': self.asset,
            'running': self.running,
            'check_interval_ms': self.config.bot.check_interval_ms,
            'consecutive_errors': self._consecutive_errors,
            'restart_count': self.restart_count,
        })
        return status
