"""
Command-line entry point for the LP hedging bot.

This module loads configuration, sets up logging, and runs the bot with
proper signal handling.

Usage:
    hedgebot --config config/config.yaml
    hedgebot --config config/config.yaml --dry-run-exposure 1250
    hedgebot --once --log-level DEBUG
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional

from . import __version__
from .bot import HedgingBot
from .config import ConfigurationError, HedgeBotConfig, LogLevel, load_config
from .exposure import StaticExposureSource
from .utils import get_logger, setup_logging, shutdown_logging

logger = get_logger(__name__)


class BotRunner:
    """
    Manages the hedging bot lifecycle and handles signals.
    """

    def __init__(self):
        self.bot: Optional[HedgingBot] = None
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        try:
            loop = asyncio.get_running_loop()

            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._signal_handler)

            logger.debug("Signal handlers registered")

        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            logger.warning("Signal handlers not supported on this platform")

    def _signal_handler(self) -> None:
        """Handle shutdown signals."""
        logger.info("Shutdown signal received, stopping bot...")
        self._shutdown_event.set()

    async def run(
        self,
        config: HedgeBotConfig,
        dry_run_exposure: Optional[float] = None,
        once: bool = False
    ) -> int:
        """
        Run the hedging bot.

        Args:
            config: Loaded configuration
            dry_run_exposure: Fixed exposure in USD overriding the configured source
            once: Run a single check cycle and exit

        Returns:
            Process exit code
        """
        try:
            exposure_source = None
            if dry_run_exposure is not None:
                exposure_source = StaticExposureSource(config.hedge.hedge_asset, dry_run_exposure)
                logger.info(f"Using static exposure of ${dry_run_exposure:.2f}")

            self.bot = HedgingBot(config, exposure_source=exposure_source)

            await self.bot.initialize()

            if once:
                result = await self.bot.execute_check()
                print(json.dumps(self.bot.get_status(), indent=2, default=str))
                return 0 if result is not None and result.success else 1

            await self.bot.start()

            logger.info("Bot is running. Press Ctrl+C to stop.")
            await self._shutdown_event.wait()

            return 0

        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return 2
        except Exception as e:
            logger.error(f"Error running bot: {e}", exc_info=True)
            return 1
        finally:
            if self.bot:
                await self.bot.stop()

    def get_status(self) -> dict:
        """Get current bot status."""
        if self.bot:
            return self.bot.get_status()
        return {'running': False, 'status': None}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='hedgebot',
        description='Delta-neutral hedging bot for LP positions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hedgebot --config config/config.yaml
  hedgebot --config config/config.yaml --dry-run-exposure 1250
  hedgebot --once --log-level DEBUG
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to configuration file (YAML or JSON); environment only when omitted'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=None,
        help='Logging level (overrides configuration)'
    )

    parser.add_argument(
        '--dry-run-exposure',
        type=float,
        metavar='USD',
        default=None,
        help='Hedge a fixed exposure in USD instead of the configured source'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single check cycle, print the status and exit'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.log_level:
        config.logging.log_level = LogLevel(args.log_level)

    setup_logging(config.logging.to_logging_config())

    runner = BotRunner()
    runner.setup_signal_handlers()

    try:
        return await runner.run(
            config,
            dry_run_exposure=args.dry_run_exposure,
            once=args.once
        )
    finally:
        shutdown_logging()


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)
