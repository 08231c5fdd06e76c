"""
Statistical Arbitrage Engine
============================

Pairs trading on configured symbol pairs.

THEORETICAL BACKGROUND:
=======================

Two related instruments (same sector, shared factor exposure) tend to
move together. The hedged spread

    spread = price1 - hedge_ratio * price2

should be mean-reverting. When it strays far from its recent mean we bet
on the return:

    z = (spread - mean_20) / std_20

    z > +2.0  ->  SHORT the spread (sell symbol1, buy symbol2)
    z < -2.0  ->  LONG the spread  (buy symbol1, sell symbol2)
    otherwise ->  NEUTRAL

    confidence = min(|z| / 3, 0.95)   (0 when NEUTRAL)

SUPPORT ROUTINES:
=================

- Bollinger bands on a single symbol's price history
- Mean reversion score tanh(5 * (price - mean) / mean)
- Pair correlation (Pearson, from raw sums)
- OLS hedge ratio (slope of price1 regressed on price2)

APPROXIMATIONS:
- detect_cointegration() returns a correlation coefficient. Correlated
  prices are not necessarily cointegrated; a true test would run ADF on
  the regression residuals.
- Hedge ratios are static between refresh_pair() calls.
"""

import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Deque, Sequence

import numpy as np

from ..errors import UnknownPairError
from ..infra.config import StatArbConfig, TradingPair, EPSILON
from ..infra.logging import get_logger, LogCategory


logger = get_logger()


class PairSignal(Enum):
    """Direction on the spread."""
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class BandSignal(Enum):
    """Price position relative to Bollinger bands."""
    OVERSOLD = "OVERSOLD"
    OVERBOUGHT = "OVERBOUGHT"
    NEUTRAL = "NEUTRAL"


@dataclass
class StatArbSignal:
    """
    Pair signal for one configured pair.
    """
    pair: TradingPair
    spread: float
    zscore: float
    signal: PairSignal
    confidence: float  # 0 to max_confidence
    entry_threshold: float
    exit_threshold: float

    def to_dict(self) -> Dict:
        return {
            "pair": self.pair.key,
            "spread": self.spread,
            "zscore": self.zscore,
            "signal": self.signal.value,
            "confidence": self.confidence,
            "entry_threshold": self.entry_threshold,
            "exit_threshold": self.exit_threshold,
        }


@dataclass
class BollingerBands:
    """Bollinger band reading for one symbol."""
    symbol: str
    price: float
    upper: float
    middle: float
    lower: float
    position: float  # (price - middle) / (k * std)
    signal: BandSignal
    confidence: float


class StatisticalArbitrageEngine:
    """
    Tracks configured pairs and emits spread z-score signals.

    Prices enter only through update_prices(); signal generation reads
    the latest prices it is given and appends to the spread history.
    """

    def __init__(self, config: Optional[StatArbConfig] = None):
        """
        Initialize statistical arbitrage engine.

        Args:
            config: Pair-trading configuration (defaults if omitted)
        """
        self._config = config or StatArbConfig()

        # Pairs keyed by "symbol1_symbol2", insertion ordered
        self._pairs: Dict[str, TradingPair] = {}
        self._price_history: Dict[str, Deque[float]] = {}
        self._spread_history: Dict[str, Deque[float]] = {}

        self.set_pairs(self._config.pairs)

    # ------------------------------------------------------------------
    # Pair configuration
    # ------------------------------------------------------------------

    def set_pairs(self, pairs: Sequence[TradingPair]) -> None:
        """
        Replace the configured pairs.

        Spread history of a kept pair survives only if its hedge ratio is
        unchanged; spreads computed under another ratio are discarded.
        """
        previous = self._pairs
        self._pairs = {pair.key: pair for pair in pairs}
        for key, pair in self._pairs.items():
            old = previous.get(key)
            if old is not None:
                self._drop_stale_spreads(pair, old.hedge_ratio)
        logger.info(
            f"Configured {len(self._pairs)} trading pairs",
            category=LogCategory.SIGNAL,
            pairs=list(self._pairs),
        )

    def add_pair(self, pair: TradingPair) -> None:
        """Add or replace a single pair."""
        old = self._pairs.get(pair.key)
        if old is not None:
            self._drop_stale_spreads(pair, old.hedge_ratio)
        self._pairs[pair.key] = pair

    def _drop_stale_spreads(self, pair: TradingPair, old_hedge_ratio: float) -> None:
        if pair.hedge_ratio != old_hedge_ratio and self._spread_history.pop(pair.key, None):
            logger.info(
                f"Hedge ratio of {pair.key} changed {old_hedge_ratio:.4f} -> {pair.hedge_ratio:.4f}, "
                f"spread history cleared",
                category=LogCategory.SIGNAL,
            )

    def get_pairs(self) -> List[TradingPair]:
        return list(self._pairs.values())

    def get_pair(self, symbol1: str, symbol2: str) -> Optional[TradingPair]:
        """Look up a configured pair; unknown pairs follow the strict_pairs policy."""
        pair = self._pairs.get(f"{symbol1}_{symbol2}")
        if pair is None:
            self._unknown_pair(symbol1, symbol2)
        return pair

    def _unknown_pair(self, symbol1: str, symbol2: str) -> None:
        key = f"{symbol1}_{symbol2}"
        if self._config.strict_pairs:
            raise UnknownPairError(key)
        logger.warning(f"Ignoring unconfigured pair {key}", category=LogCategory.SIGNAL)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def update_prices(self, symbol: str, price: float) -> None:
        """Append a price to the symbol's history, evicting the oldest."""
        # Initialize if needed
        if symbol not in self._price_history:
            self._price_history[symbol] = deque(maxlen=self._config.price_history_size)
        self._price_history[symbol].append(price)

    def _recent_prices(self, symbol: str, window: int) -> Optional[np.ndarray]:
        history = self._price_history.get(symbol)
        if not history or len(history) < window:
            return None
        return np.array(list(history)[-window:], dtype=float)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def generate_stat_arb_signals(self, latest_prices: Mapping[str, float]) -> List[StatArbSignal]:
        """
        Generate a signal for every configured pair with enough spread history.

        Args:
            latest_prices: symbol -> latest price

        Returns:
            One StatArbSignal per pair that has both prices and at least
            `zscore_window` spread samples
        """
        cfg = self._config
        signals = []

        for pair in self._pairs.values():
            price1 = latest_prices.get(pair.symbol1)
            price2 = latest_prices.get(pair.symbol2)
            if not price1 or not price2 or price1 <= 0 or price2 <= 0:
                continue

            spread = price1 - pair.hedge_ratio * price2

            # Initialize if needed
            if pair.key not in self._spread_history:
                self._spread_history[pair.key] = deque(maxlen=cfg.spread_history_size)
            spreads = self._spread_history[pair.key]
            spreads.append(spread)

            if len(spreads) < cfg.zscore_window:
                continue

            recent = np.array(list(spreads)[-cfg.zscore_window:], dtype=float)
            std = float(np.std(recent))
            zscore = 0.0 if std < EPSILON else (spread - float(np.mean(recent))) / std

            if zscore > cfg.entry_threshold:
                signal = PairSignal.SHORT
            elif zscore < -cfg.entry_threshold:
                signal = PairSignal.LONG
            else:
                signal = PairSignal.NEUTRAL

            confidence = 0.0
            if signal != PairSignal.NEUTRAL:
                confidence = min(abs(zscore) / 3, cfg.max_confidence)
                logger.log_signal(
                    "stat_arb", pair.key, zscore, confidence,
                    direction=signal.value, spread=spread,
                )

            signals.append(StatArbSignal(
                pair=pair,
                spread=spread,
                zscore=zscore,
                signal=signal,
                confidence=confidence,
                entry_threshold=cfg.entry_threshold,
                exit_threshold=cfg.exit_threshold,
            ))

        return signals

    def calculate_bollinger_bands(
        self,
        symbol: str,
        period: int = 20,
        k: float = 2.0
    ) -> Optional[BollingerBands]:
        """
        Bollinger bands over the last `period` prices.

        Returns:
            BollingerBands, or None with fewer than `period` prices.
            A flat window collapses the bands onto the mean and reads NEUTRAL.
        """
        prices = self._recent_prices(symbol, period)
        if prices is None:
            return None

        price = float(prices[-1])
        middle = float(np.mean(prices))
        std = float(np.std(prices))
        upper = middle + k * std
        lower = middle - k * std

        if std < EPSILON:
            return BollingerBands(symbol, price, upper, middle, lower, 0.0, BandSignal.NEUTRAL, 0.0)

        position = (price - middle) / (k * std)

        signal = BandSignal.NEUTRAL
        confidence = 0.0
        if price <= lower:
            signal = BandSignal.OVERSOLD
            confidence = min(abs(position), self._config.max_confidence)
        elif price >= upper:
            signal = BandSignal.OVERBOUGHT
            confidence = min(abs(position), self._config.max_confidence)

        return BollingerBands(symbol, price, upper, middle, lower, position, signal, confidence)

    def calculate_mean_reversion(self, symbol: str, lookback: int = 50) -> float:
        """
        tanh(5 * (price - mean) / mean) over the lookback; 0 without history.
        """
        prices = self._recent_prices(symbol, lookback)
        if prices is None:
            return 0.0

        mean = float(np.mean(prices))
        if mean <= 0:
            return 0.0
        return math.tanh(5 * (float(prices[-1]) - mean) / mean)

    def detect_cointegration(self, symbol1: str, symbol2: str, window: int = 100) -> float:
        """
        Pearson correlation of the two price series.

        A correlation proxy, not a stationarity test. Returns 0 without
        `window` prices on both legs or when either leg is flat.
        """
        x = self._recent_prices(symbol1, window)
        y = self._recent_prices(symbol2, window)
        if x is None or y is None:
            return 0.0

        n = len(x)
        sum_x, sum_y = x.sum(), y.sum()
        numerator = n * np.dot(x, y) - sum_x * sum_y
        spread_x = n * np.dot(x, x) - sum_x * sum_x
        spread_y = n * np.dot(y, y) - sum_y * sum_y

        if spread_x * spread_y <= 0:
            return 0.0
        return float(numerator / math.sqrt(spread_x * spread_y))

    def calculate_optimal_hedge_ratio(self, symbol1: str, symbol2: str, window: int = 100) -> float:
        """
        OLS slope of price1 on price2.

        Returns 1.0 without `window` prices on both legs or when price2 is flat.
        """
        y = self._recent_prices(symbol1, window)
        x = self._recent_prices(symbol2, window)
        if x is None or y is None:
            return 1.0

        n = len(x)
        sum_x, sum_y = x.sum(), y.sum()
        numerator = n * np.dot(x, y) - sum_x * sum_y
        denominator = n * np.dot(x, x) - sum_x * sum_x

        if abs(denominator) < EPSILON:
            return 1.0
        return float(numerator / denominator)

    def refresh_pair(self, symbol1: str, symbol2: str) -> Optional[TradingPair]:
        """
        Re-estimate hedge ratio and correlation of a configured pair.

        Estimates need `correlation_window` prices on both legs; with less
        history the pair is left unchanged. A new hedge ratio clears the
        pair's spread history.
        """
        pair = self.get_pair(symbol1, symbol2)
        if pair is None:
            return None

        window = self._config.correlation_window
        if self._recent_prices(symbol1, window) is None or self._recent_prices(symbol2, window) is None:
            return pair

        old_hedge_ratio = pair.hedge_ratio
        pair.hedge_ratio = self.calculate_optimal_hedge_ratio(symbol1, symbol2, window)
        self._drop_stale_spreads(pair, old_hedge_ratio)
        pair.correlation = self.detect_cointegration(symbol1, symbol2, window)

        logger.info(
            f"Refreshed pair {pair.key}: hedge={pair.hedge_ratio:.4f} corr={pair.correlation:.4f}",
            category=LogCategory.SIGNAL,
            hedge_ratio=pair.hedge_ratio,
            correlation=pair.correlation,
        )
        return pair

    def reset(self, symbol: Optional[str] = None) -> None:
        """Reset price history for one symbol (and its pairs' spreads) or all."""
        if symbol:
            self._price_history.pop(symbol, None)
            for pair in self._pairs.values():
                if symbol in (pair.symbol1, pair.symbol2):
                    self._spread_history.pop(pair.key, None)
        else:
            self._price_history.clear()
            self._spread_history.clear()
