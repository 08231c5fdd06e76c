"""
Portfolio Risk Metrics
======================

Statistics computed from open positions and the portfolio value history.

METRICS:
========

    portfolio_value   Σ |quantity * current_price|  (gross exposure)
    current_drawdown  (peak - value) / peak
    max_drawdown      worst peak-to-trough decline over the history
    VaR (95%)         historical simulation: 5th percentile of the sorted
                      value returns, reported as a positive number
    Sharpe            mean(returns) / std(returns), not annualized
    correlation_risk  Σ (exposure_i / portfolio_value)^2

KNOWN SIMPLIFICATIONS:
- VaR and Sharpe assume returns are i.i.d. (no fat tails, no regimes)
- correlation_risk is a Herfindahl concentration index standing in for a
  covariance-based measure; it is 1.0 for a single position and 1/n for
  n equal positions regardless of how the assets actually co-move
"""

from dataclasses import dataclass, field
from typing import Dict, Sequence

import numpy as np

from ..infra.config import EPSILON


@dataclass(frozen=True)
class RiskMetrics:
    """
    Immutable snapshot of portfolio risk.
    """
    portfolio_value: float
    exposure_by_asset: Dict[str, float] = field(default_factory=dict)
    correlation_risk: float = 0.0
    var_estimate: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    current_drawdown: float = 0.0
    daily_pnl: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "portfolio_value": self.portfolio_value,
            "exposure_by_asset": dict(self.exposure_by_asset),
            "correlation_risk": self.correlation_risk,
            "var_estimate": self.var_estimate,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
            "current_drawdown": self.current_drawdown,
            "daily_pnl": self.daily_pnl,
        }


def value_returns(history: Sequence[float]) -> np.ndarray:
    """
    Simple returns between consecutive portfolio values.

    A step from a (near) zero value has no defined return and counts as 0.
    """
    values = np.asarray(history, dtype=float)
    if len(values) < 2:
        return np.array([], dtype=float)

    previous = values[:-1]
    changes = np.diff(values)
    safe_previous = np.where(previous < EPSILON, 1.0, previous)
    return np.where(previous < EPSILON, 0.0, changes / safe_previous)


def value_at_risk(history: Sequence[float], confidence: float = 0.95, min_points: int = 30) -> float:
    """Historical-simulation VaR as a positive fraction of portfolio value."""
    if len(history) < min_points:
        return 0.0

    returns = np.sort(value_returns(history))
    if len(returns) == 0:
        return 0.0

    index = int((1 - confidence) * len(returns))
    return float(abs(returns[index]))


def sharpe_ratio(history: Sequence[float], min_points: int = 30) -> float:
    """Per-observation Sharpe ratio of the value history."""
    if len(history) < min_points:
        return 0.0

    returns = value_returns(history)
    volatility = float(np.std(returns))
    if volatility == 0:
        return 0.0
    return float(np.mean(returns)) / volatility


def max_drawdown(history: Sequence[float]) -> float:
    """Largest running-peak drawdown over the history."""
    if len(history) < 2:
        return 0.0

    worst = 0.0
    peak = history[0]
    for value in history:
        if value > peak:
            peak = value
        elif peak > 0:
            worst = max(worst, (peak - value) / peak)
    return worst


def current_drawdown(peak: float, value: float) -> float:
    if peak <= 0:
        return 0.0
    return max((peak - value) / peak, 0.0)


def correlation_risk(exposures: Dict[str, float], portfolio_value: float) -> float:
    """Sum of squared exposure weights."""
    if not exposures or portfolio_value <= 0:
        return 0.0
    return sum((exposure / portfolio_value) ** 2 for exposure in exposures.values())


def format_risk_report(metrics: RiskMetrics) -> str:
    """
    Format risk metrics as a readable report.
    """
    report = """
╔════════════════════════════════════════════════════════════╗
║                   PORTFOLIO RISK REPORT                    ║
╠════════════════════════════════════════════════════════════╣
║ EXPOSURE                                                   ║
║   Portfolio Value:  ${portfolio_value:>12,.2f}                         ║
║   Positions:        {num_positions:>12,}                         ║
║   Concentration:    {correlation_risk:>12.4f}                         ║
╠════════════════════════════════════════════════════════════╣
║ PNL                                                        ║
║   Daily PnL:        ${daily_pnl:>12,.2f}                         ║
╠════════════════════════════════════════════════════════════╣
║ RISK METRICS                                               ║
║   VaR (95%):        {var_estimate:>12.2%}                         ║
║   Sharpe Ratio:     {sharpe_ratio:>12.2f}                         ║
║   Max Drawdown:     {max_drawdown:>12.2%}                         ║
║   Current Drawdown: {current_drawdown:>12.2%}                         ║
╚════════════════════════════════════════════════════════════╝
""".format(num_positions=len(metrics.exposure_by_asset), **metrics.to_dict())

    for symbol, exposure in sorted(metrics.exposure_by_asset.items()):
        report += f"  {symbol:<8} ${exposure:>12,.2f}\n"
    return report
