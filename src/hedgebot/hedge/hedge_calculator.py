"""Hedge sizing and decision rules.

Everything here is a pure function of its arguments: no I/O, no state
carried between calls. The decision engine and the deviation telemetry
share ``EPSILON`` so they never disagree about what counts as "no hedge".
"""

from typing import Optional

from .models import Exposure, HedgeDecision, HedgingAction
from ..exchange.models import HedgePosition
from ..utils import get_logger

logger = get_logger(__name__)

# Sizes below this (in USD) are treated as zero.
EPSILON = 1e-6


def calculate_usd_value(amount: float, price: float) -> float:
    """USD value of ``amount`` tokens at ``price``."""
    return amount * price


def calculate_token_amount(usd_value: float, price: float) -> float:
    """Token amount worth ``usd_value`` at ``price``."""
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")
    return usd_value / price


def calculate_required_hedge_size(exposure: Exposure) -> float:
    """USD short required to offset ``exposure`` one-for-one."""
    return exposure.usd_value


def calculate_deviation(exposure_usd: float, hedge_size: float) -> float:
    """Deviation between exposure and hedge as a percentage of the hedge.

    Informational only. A hedge smaller than EPSILON reports 100 when there
    is exposure to cover and 0 otherwise.

    Args:
        exposure_usd: Current exposure in USD.
        hedge_size: Current hedge size in USD (unsigned).

    Returns:
        Percentage rounded to 2 decimals (e.g. 5.2 for 5.2%).
    """
    if hedge_size == 0 or abs(hedge_size) < EPSILON:
        return 100.0 if exposure_usd > 0 else 0.0

    deviation = abs(exposure_usd - hedge_size) / hedge_size * 100
    return round(deviation, 2)


def is_funding_rate_acceptable(funding_rate: float, funding_tolerance: float) -> bool:
    """True if the magnitude of the period funding rate is within tolerance."""
    return abs(funding_rate) <= funding_tolerance


def determine_hedge_action(
    exposure: Optional[Exposure],
    hedge_position: Optional[HedgePosition],
    rebalance_threshold: float,
    current_price: float = 0.0
) -> HedgeDecision:
    """Decide how the hedge should change for the current tick.

    Rules, in order:
        1. No exposure (missing, zero or negative, or a required hedge
           below EPSILON): close whatever hedge exists.
        2. Exposure but no hedge: open a short for the full exposure.
        3. Both exist and the relative deviation (against the required
           size) exceeds the threshold: grow or shrink the short by the
           difference.
        4. Otherwise no action.

    Args:
        exposure: Current exposure, or None if there is none.
        hedge_position: Current hedge, or None.
        rebalance_threshold: Fraction in (0, 1).
        current_price: Current asset price. Sizes are in USD so the rules
            do not depend on it.

    Returns:
        HedgeDecision with a non-negative size change.
    """
    if not 0 < rebalance_threshold < 1:
        raise ValueError(f"rebalance_threshold must be in (0, 1), got {rebalance_threshold}")

    current_hedge_size = hedge_position.size_usd if hedge_position is not None else 0.0

    if exposure is None or exposure.usd_value <= 0:
        return HedgeDecision(HedgingAction.CLOSE_POSITIONS, current_hedge_size)

    required_hedge_size = calculate_required_hedge_size(exposure)
    if required_hedge_size < EPSILON:
        return HedgeDecision(HedgingAction.CLOSE_POSITIONS, current_hedge_size)

    if hedge_position is None:
        logger.debug(f"No hedge yet. Need to short {required_hedge_size:.2f} USD of {exposure.asset}")
        return HedgeDecision(HedgingAction.INCREASE_SHORT, required_hedge_size)

    deviation = abs(required_hedge_size - current_hedge_size) / required_hedge_size

    logger.debug(
        f"Current hedge: {current_hedge_size:.2f} USD, required: {required_hedge_size:.2f} USD, "
        f"deviation: {deviation * 100:.2f}%, threshold: {rebalance_threshold * 100:.2f}%"
    )

    if deviation > rebalance_threshold:
        if required_hedge_size > current_hedge_size:
            return HedgeDecision(
                HedgingAction.INCREASE_SHORT,
                required_hedge_size - current_hedge_size
            )
        return HedgeDecision(
            HedgingAction.DECREASE_SHORT,
            current_hedge_size - required_hedge_size
        )

    return HedgeDecision(HedgingAction.NO_ACTION, 0.0)
