"""
Delta-neutral hedging bot for liquidity-provider positions.

Keeps a short perpetual position sized to the USD value of the LP
exposure, rebalancing when the deviation crosses a threshold and skipping
hedge increases while funding is too expensive.
"""

__version__ = "1.0.0"
