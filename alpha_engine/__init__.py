"""
Alpha Engine
============

A microstructure-aware alpha and risk-gated statistical arbitrage engine.

It ingests per-symbol ticks and order book snapshots, derives normalized
alpha factors and pairs-trading signals, and passes every candidate trade
through a risk manager that sizes positions, enforces limits and tracks
portfolio risk (drawdown, VaR, Sharpe).

MODULES:
- data: Tick and order book records
- signals: Order book features, alpha factors, pair signals
- risk: Position sizing, limit checks, portfolio metrics
- infra: Configuration and logging
- engine: The AlphaRiskEngine facade

NOTE: The engine performs no I/O. Market data sourcing, persistence and
order execution are the host system's job.
"""

__version__ = "1.0.0"

from .errors import (
    AlphaEngineError,
    ConfigError,
    UnknownPairError,
    DataFormatError,
)

from .infra import (
    SystemConfig,
    RiskLimits,
    TradingPair,
    get_default_config,
    get_backtest_config,
    logger,
)

from .data import (
    TickSample,
    BookLevel,
    OrderBookSnapshot,
)

from .signals import (
    OrderBookFeatureExtractor,
    OrderBookFeatures,
    AlphaFactorEngine,
    AlphaFactor,
    MicrostructureSignal,
    StatisticalArbitrageEngine,
    StatArbSignal,
)

from .risk import (
    RiskManager,
    RiskDecision,
    RiskMetrics,
    Position,
    PositionClosedEvent,
)

from .engine import AlphaRiskEngine

__all__ = [
    # Errors
    "AlphaEngineError",
    "ConfigError",
    "UnknownPairError",
    "DataFormatError",
    # Config
    "SystemConfig",
    "RiskLimits",
    "TradingPair",
    "get_default_config",
    "get_backtest_config",
    # Logging
    "logger",
    # Data
    "TickSample",
    "BookLevel",
    "OrderBookSnapshot",
    # Signals
    "OrderBookFeatureExtractor",
    "OrderBookFeatures",
    "AlphaFactorEngine",
    "AlphaFactor",
    "MicrostructureSignal",
    "StatisticalArbitrageEngine",
    "StatArbSignal",
    # Risk
    "RiskManager",
    "RiskDecision",
    "RiskMetrics",
    "Position",
    "PositionClosedEvent",
    # Facade
    "AlphaRiskEngine",
]
