"""
Risk management module for the alpha engine.

Provides:
- Position sizing (Kelly, volatility targeting)
- Pre-trade limit checks and position bookkeeping
- Portfolio risk metrics
"""

from .position_sizing import (
    kelly_fraction,
    kelly_position_size,
    volatility_weighted_size,
)

from .risk_metrics import (
    RiskMetrics,
    format_risk_report,
)

from .risk_manager import (
    RiskManager,
    RiskDecision,
    DenialReason,
    Position,
    PositionClosedEvent,
    CloseReason,
)

__all__ = [
    # Sizing
    "kelly_fraction",
    "kelly_position_size",
    "volatility_weighted_size",
    # Metrics
    "RiskMetrics",
    "format_risk_report",
    # Manager
    "RiskManager",
    "RiskDecision",
    "DenialReason",
    "Position",
    "PositionClosedEvent",
    "CloseReason",
]
