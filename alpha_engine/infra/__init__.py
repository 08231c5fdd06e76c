"""
Infrastructure module for the alpha engine.

Provides core infrastructure components:
- Configuration management
- Structured logging and latency tracking
"""

from .config import (
    EPSILON,
    SystemConfig,
    FeatureConfig,
    AlphaConfig,
    StatArbConfig,
    RiskLimits,
    TradingPair,
    Environment,
    default_trading_pairs,
    get_default_config,
    get_backtest_config,
)

from .logging import (
    EngineLogger,
    LogCategory,
    LatencyMeasurement,
    LatencyTracker,
    get_logger,
    get_latency_stats,
    logger,
)

__all__ = [
    # Config
    "EPSILON",
    "SystemConfig",
    "FeatureConfig",
    "AlphaConfig",
    "StatArbConfig",
    "RiskLimits",
    "TradingPair",
    "Environment",
    "default_trading_pairs",
    "get_default_config",
    "get_backtest_config",
    # Logging
    "EngineLogger",
    "LogCategory",
    "LatencyMeasurement",
    "LatencyTracker",
    "get_logger",
    "get_latency_stats",
    "logger",
]
