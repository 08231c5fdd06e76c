"""
Position Sizing
===============

Two sizing rules, both capped by the configured max position size.

KELLY CRITERION:
================

For a bet won with probability p paying b-to-1 and lost with q = 1 - p:

    f* = (b * p - q) / b

Full Kelly maximizes log growth but is brutally volatile and assumes the
inputs are known exactly. We size at a quarter of it:

    size = min(f* * 0.25 * portfolio_value, max_position_size)

A negative f* (no edge) sizes to zero rather than a short.

VOLATILITY TARGETING:
=====================

    size = min(0.02 * portfolio_value * target_vol / (symbol_vol + 0.001),
               max_position_size)

A symbol twice as volatile as the target gets half the base allocation.

Both rules return a notional amount in currency, not a share count.
"""

from ..infra.config import EPSILON


KELLY_SAFETY_FACTOR = 0.25
BASE_ALLOCATION = 0.02
VOLATILITY_EPSILON = 0.001


def kelly_fraction(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """
    Raw Kelly fraction, floored at zero.

    Args:
        win_rate: Probability of a winning trade (0 to 1)
        avg_win: Average gain of a winning trade
        avg_loss: Average loss of a losing trade (sign ignored)
    """
    b = avg_win / max(abs(avg_loss), EPSILON)
    if b <= 0:
        return 0.0

    p = win_rate
    q = 1.0 - p
    return max((b * p - q) / b, 0.0)


def kelly_position_size(
    win_rate: float,
    avg_win: float,
    avg_loss: float,
    portfolio_value: float,
    max_position_size: float,
    safety_factor: float = KELLY_SAFETY_FACTOR
) -> float:
    """Fractional Kelly notional, capped at max_position_size."""
    size = kelly_fraction(win_rate, avg_win, avg_loss) * safety_factor * portfolio_value
    return min(size, max_position_size)


def volatility_weighted_size(
    volatility: float,
    target_volatility: float,
    portfolio_value: float,
    max_position_size: float,
    base_allocation: float = BASE_ALLOCATION
) -> float:
    """Volatility-targeted notional, capped at max_position_size."""
    vol_adjustment = target_volatility / (volatility + VOLATILITY_EPSILON)
    return min(portfolio_value * base_allocation * vol_adjustment, max_position_size)
