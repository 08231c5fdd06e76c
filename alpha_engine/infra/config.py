"""
Configuration Management for the Alpha Engine
=============================================

This module provides centralized configuration with:
- Type-safe configuration dataclasses
- Feature, factor and pair-trading parameters
- Risk limits that can be hot-reloaded during a session

Every numeric constant the signal and risk components rely on lives here,
so a research run can be reproduced from its config alone.

HOT RELOAD:
===========
Only `RiskLimits` is meant to change mid-session (via
`RiskManager.update_risk_limits`). Window sizes are fixed at construction
because the rolling histories are allocated with them.
"""

from dataclasses import dataclass, field, fields
from typing import Dict, List
from enum import Enum
import math
import os

from ..errors import ConfigError


# Shared guard for denominators that may collapse to zero
EPSILON = 1e-4


class Environment(Enum):
    """Deployment environment - affects logging verbosity and strictness."""
    RESEARCH = "research"
    BACKTEST = "backtest"
    PAPER = "paper"


@dataclass
class TradingPair:
    """
    A configured statistical-arbitrage pair.

    hedge_ratio and correlation are configuration, not derived state: they
    are supplied externally or re-estimated on demand by
    StatisticalArbitrageEngine.refresh_pair().
    """
    symbol1: str
    symbol2: str
    hedge_ratio: float = 1.0
    correlation: float = 0.0
    cointegration_pvalue: float = 1.0

    @property
    def key(self) -> str:
        return f"{self.symbol1}_{self.symbol2}"


def default_trading_pairs() -> List[TradingPair]:
    """Sector pairs with historically stable relationships."""
    return [
        TradingPair("AAPL", "MSFT", hedge_ratio=1.2, correlation=0.85, cointegration_pvalue=0.01),
        TradingPair("JPM", "BAC", hedge_ratio=1.8, correlation=0.75, cointegration_pvalue=0.03),
        TradingPair("XOM", "CVX", hedge_ratio=1.1, correlation=0.92, cointegration_pvalue=0.005),
        TradingPair("GOOGL", "META", hedge_ratio=0.8, correlation=0.7, cointegration_pvalue=0.02),
    ]


@dataclass
class FeatureConfig:
    """
    Order book feature extraction parameters.

    Depth weighting decays liquidity exponentially with its relative
    distance from mid, so a level 1% away counts for exp(-0.1) of its size.
    """
    imbalance_levels: int = 10
    pressure_levels: int = 5
    depth_decay: float = 10.0

    vwap_window: int = 100
    price_history_size: int = 1000

    # Smart money: a print this many times larger than the previous one
    large_trade_multiplier: float = 5.0

    # tradeIntensity normalization (shares per print that saturates to 1)
    intensity_scale: float = 1000.0


@dataclass
class AlphaConfig:
    """
    Alpha factor and microstructure signal parameters.

    These would typically be:
    - Tuned via backtesting
    - Regime-dependent
    - Re-validated as alpha decays
    """
    max_history: int = 1000
    factor_history: int = 200

    min_samples_microstructure: int = 30
    min_samples_factors: int = 50

    # Momentum horizons (milliseconds)
    momentum_windows_ms: Dict[str, int] = field(default_factory=lambda: {
        "momentum_1s": 1_000,
        "momentum_5s": 5_000,
        "momentum_30s": 30_000,
    })

    noise_window: int = 20
    ema_alpha: float = 0.3

    # Composite microstructure alpha weights
    alpha_weights: Dict[str, float] = field(default_factory=lambda: {
        "noise": -0.20,
        "momentum_1s": 0.30,
        "momentum_5s": 0.20,
        "momentum_30s": 0.10,
        "volume_momentum": 0.15,
        "velocity": 0.25,
    })
    alpha_scale: float = 5.0

    # Constant, not a function of sample age (see DESIGN.md)
    decay_factor: float = math.exp(-0.1)


@dataclass
class StatArbConfig:
    """
    Pairs-trading parameters.

    Entry at |z| > 2 is the textbook two-sigma band; exit at 0.5 leaves
    room for the spread to overshoot the mean slightly.
    """
    pairs: List[TradingPair] = field(default_factory=default_trading_pairs)

    price_history_size: int = 1000
    spread_history_size: int = 200
    zscore_window: int = 20

    entry_threshold: float = 2.0
    exit_threshold: float = 0.5
    max_confidence: float = 0.95

    correlation_window: int = 100

    # Raise on unconfigured pairs instead of logging and ignoring them
    strict_pairs: bool = False


@dataclass
class RiskLimits:
    """
    Risk thresholds for the RiskManager.

    Units:
    - max_position_size, daily_loss_limit: currency
    - max_drawdown, concentration_limit: fractions (0.2 = 20%)
    - stop_loss_percent, take_profit_percent: percent (2.0 = 2%)

    leverage_limit and max_correlated_positions are carried for the host
    system's own checks; check_risk_limits does not consult them.
    """
    max_position_size: float = 10_000.0
    daily_loss_limit: float = 5_000.0
    max_drawdown: float = 0.2
    concentration_limit: float = 0.3
    leverage_limit: float = 2.0
    stop_loss_percent: float = 2.0
    take_profit_percent: float = 5.0
    max_correlated_positions: int = 3

    def validate(self) -> None:
        """Reject negative limits; they would silently block every order."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ConfigError(f"Risk limit {f.name} must be non-negative, got {value}")

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


@dataclass
class SystemConfig:
    """
    Top-level configuration aggregating all components.
    """
    environment: Environment = Environment.RESEARCH
    features: FeatureConfig = field(default_factory=FeatureConfig)
    alpha: AlphaConfig = field(default_factory=AlphaConfig)
    stat_arb: StatArbConfig = field(default_factory=StatArbConfig)
    risk: RiskLimits = field(default_factory=RiskLimits)

    # Portfolio statistics
    portfolio_history_size: int = 1000
    var_confidence: float = 0.95
    min_history_for_stats: int = 30

    # Logging
    log_level: str = field(
        default_factory=lambda: os.environ.get("ALPHA_ENGINE_LOG_LEVEL", "INFO")
    )


def get_default_config() -> SystemConfig:
    """
    Returns default configuration for the research environment.
    """
    return SystemConfig()


def get_backtest_config() -> SystemConfig:
    """
    Returns configuration for deterministic replays.

    Pairs start empty: a replay supplies its own pair list.
    """
    config = SystemConfig(environment=Environment.BACKTEST)
    config.stat_arb.pairs = []
    return config
