"""
Signal generation module for the alpha engine.

Provides:
- Order book feature extraction
- Alpha factors and microstructure signals
- Pairs-trading (statistical arbitrage) signals
"""

from .orderbook_features import (
    OrderBookFeatureExtractor,
    OrderBookFeatures,
    AggressorSide,
)

from .alpha_factors import (
    AlphaFactorEngine,
    AlphaFactor,
    FactorName,
    MicrostructureSignal,
)

from .statistical_arbitrage import (
    StatisticalArbitrageEngine,
    StatArbSignal,
    BollingerBands,
    PairSignal,
    BandSignal,
)

__all__ = [
    # Order book
    "OrderBookFeatureExtractor",
    "OrderBookFeatures",
    "AggressorSide",
    # Factors
    "AlphaFactorEngine",
    "AlphaFactor",
    "FactorName",
    "MicrostructureSignal",
    # Stat arb
    "StatisticalArbitrageEngine",
    "StatArbSignal",
    "BollingerBands",
    "PairSignal",
    "BandSignal",
]
