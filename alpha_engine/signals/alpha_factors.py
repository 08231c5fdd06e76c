"""
Alpha Factor Engine
===================

Turns a rolling per-symbol tick history into two products:

1. MicrostructureSignal - short-horizon state of the tape (noise,
   multi-horizon momentum, volume momentum, velocity) folded into a
   single composite alpha in [-1, 1].
2. AlphaFactor list - six raw factors, each z-scored against its own
   rolling history so they are comparable across symbols and regimes.

THE SIX FACTORS:
================

    momentum_volume       20-sample price momentum scaled by
                          ln(min(recent 5 volume / avg 20 volume, 3))
    mean_reversion        -tanh(5 * z) of the price against its 30-sample
                          mean (contrarian: rich prices score negative)
    volume_divergence     1 when price direction and volume trend disagree
    volatility_regime     relative change of recent vs earlier realized vol
    microstructure_noise  -noise_ratio (quiet tape preferred)
    tick_momentum         (up ticks - down ticks) / (up + down), last 10

NOISE RATIO:
============

    noise_ratio = var(log returns of raw prices)
                  / (var(log returns of EMA-smoothed prices) + 1e-4)

The EMA (alpha = 0.3) removes bid-ask bounce, so a high ratio means most
of the variance is microstructure noise rather than price discovery.

NORMALIZATION:
==============

Each (symbol, factor) keeps a 200-value history:
    zscore          = (value - mean) / std      (0 when std == 0)
    percentile      = rank / len                (rank of first value >= current)
    signal_strength = tanh(|zscore|)

decay_factor is a configured constant; it does not depend on sample age.
"""

import math
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Deque, Tuple

import numpy as np

from ..data.market_data import TickSample
from ..infra.config import AlphaConfig, EPSILON
from ..infra.logging import get_logger, LogCategory


logger = get_logger()


class FactorName(Enum):
    """Closed set of alpha factors."""
    MOMENTUM_VOLUME = "momentum_volume"
    MEAN_REVERSION = "mean_reversion"
    VOLUME_DIVERGENCE = "volume_divergence"
    VOLATILITY_REGIME = "volatility_regime"
    MICROSTRUCTURE_NOISE = "microstructure_noise"
    TICK_MOMENTUM = "tick_momentum"


@dataclass
class AlphaFactor:
    """
    A single normalized factor reading.
    """
    name: FactorName
    value: float
    zscore: float
    percentile: float       # 0 to 1
    signal_strength: float  # 0 to 1
    decay_factor: float

    def to_dict(self) -> Dict:
        return {
            "name": self.name.value,
            "value": self.value,
            "zscore": self.zscore,
            "percentile": self.percentile,
            "signal_strength": self.signal_strength,
            "decay_factor": self.decay_factor,
        }


@dataclass
class MicrostructureSignal:
    """
    Short-horizon microstructure state for one symbol.
    """
    symbol: str
    noise_ratio: float
    momentum_1s: float
    momentum_5s: float
    momentum_30s: float
    volume_momentum: float
    price_velocity: float   # price units per second
    acceleration: float     # price units per second^2
    microstructure_alpha: float  # -1 to +1

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "noise_ratio": self.noise_ratio,
            "momentum_1s": self.momentum_1s,
            "momentum_5s": self.momentum_5s,
            "momentum_30s": self.momentum_30s,
            "volume_momentum": self.volume_momentum,
            "price_velocity": self.price_velocity,
            "acceleration": self.acceleration,
            "microstructure_alpha": self.microstructure_alpha,
        }


def _variance(values: np.ndarray) -> float:
    """Population variance, 0 for an empty window."""
    if len(values) == 0:
        return 0.0
    return float(np.var(values))


def _log_returns(prices: np.ndarray) -> np.ndarray:
    if len(prices) < 2 or np.any(prices <= 0):
        return np.array([], dtype=float)
    return np.diff(np.log(prices))


def _ema(values: np.ndarray, alpha: float) -> np.ndarray:
    smoothed = np.empty_like(values)
    smoothed[0] = values[0]
    for i in range(1, len(values)):
        smoothed[i] = alpha * values[i] + (1 - alpha) * smoothed[i - 1]
    return smoothed


class AlphaFactorEngine:
    """
    Generates microstructure signals and normalized alpha factors.

    Raw tick history and factor-value history are separate: factor
    normalization never looks at prices directly.
    """

    def __init__(self, config: Optional[AlphaConfig] = None):
        """
        Initialize alpha factor engine.

        Args:
            config: Alpha configuration (defaults if omitted)
        """
        self._config = config or AlphaConfig()

        self._history: Dict[str, Deque[TickSample]] = {}
        self._factor_history: Dict[Tuple[str, FactorName], Deque[float]] = {}

    def update_market_data(
        self,
        symbol: str,
        price: float,
        volume: float,
        timestamp: Optional[int] = None
    ) -> None:
        """
        Append a sample to the symbol's history, evicting the oldest.

        Args:
            symbol: Ticker
            price: Trade price
            volume: Trade volume
            timestamp: Epoch milliseconds (wall clock if omitted)
        """
        if timestamp is None:
            timestamp = int(time.time() * 1000)

        # Initialize if needed
        if symbol not in self._history:
            self._history[symbol] = deque(maxlen=self._config.max_history)

        self._history[symbol].append(TickSample(symbol, price, volume, timestamp))

    def generate_microstructure_signals(self, symbol: str) -> Optional[MicrostructureSignal]:
        """
        Compute the microstructure signal.

        Returns:
            MicrostructureSignal, or None with fewer than
            `min_samples_microstructure` samples
        """
        history = self._history.get(symbol)
        if not history or len(history) < self._config.min_samples_microstructure:
            return None

        samples = list(history)
        prices = np.array([s.price for s in samples], dtype=float)
        volumes = np.array([s.volume for s in samples], dtype=float)

        noise_ratio = self._noise_ratio(prices)
        momenta = {
            name: self._momentum(samples, window_ms)
            for name, window_ms in self._config.momentum_windows_ms.items()
        }
        volume_momentum = self._volume_momentum(volumes)
        velocity, acceleration = self._velocity_acceleration(samples)

        components = {
            "noise": noise_ratio,
            "volume_momentum": volume_momentum,
            "velocity": velocity,
            **momenta,
        }
        weighted = sum(
            weight * components.get(name, 0.0)
            for name, weight in self._config.alpha_weights.items()
        )
        alpha = float(np.tanh(self._config.alpha_scale * weighted))

        signal = MicrostructureSignal(
            symbol=symbol,
            noise_ratio=noise_ratio,
            momentum_1s=momenta.get("momentum_1s", 0.0),
            momentum_5s=momenta.get("momentum_5s", 0.0),
            momentum_30s=momenta.get("momentum_30s", 0.0),
            volume_momentum=volume_momentum,
            price_velocity=velocity,
            acceleration=acceleration,
            microstructure_alpha=alpha,
        )

        logger.log_signal("microstructure_alpha", symbol, alpha, abs(alpha))
        return signal

    def generate_alpha_factors(self, symbol: str) -> List[AlphaFactor]:
        """
        Compute and normalize all six factors.

        Each call appends one value to every factor's history.

        Returns:
            Six AlphaFactors in FactorName order, or [] with fewer than
            `min_samples_factors` samples
        """
        history = self._history.get(symbol)
        if not history or len(history) < self._config.min_samples_factors:
            return []

        prices = np.array([s.price for s in history], dtype=float)
        volumes = np.array([s.volume for s in history], dtype=float)

        raw = {
            FactorName.MOMENTUM_VOLUME: self._momentum_volume(prices, volumes),
            FactorName.MEAN_REVERSION: self._mean_reversion(prices),
            FactorName.VOLUME_DIVERGENCE: self._volume_divergence(prices, volumes),
            FactorName.VOLATILITY_REGIME: self._volatility_regime(prices),
            FactorName.MICROSTRUCTURE_NOISE: -self._noise_ratio(prices),
            FactorName.TICK_MOMENTUM: self._tick_momentum(prices),
        }

        return [self._normalize(symbol, name, value) for name, value in raw.items()]

    # ------------------------------------------------------------------
    # Microstructure components
    # ------------------------------------------------------------------

    def _noise_ratio(self, prices: np.ndarray) -> float:
        if len(prices) < 10:
            return 0.0

        window = prices[-self._config.noise_window:]
        returns = _log_returns(window)
        if len(returns) == 0:
            return 0.0

        smoothed_returns = _log_returns(_ema(window, self._config.ema_alpha))
        return _variance(returns) / (_variance(smoothed_returns) + EPSILON)

    @staticmethod
    def _momentum(samples: List[TickSample], window_ms: int) -> float:
        """
        Return over the trailing window, measured back from the newest sample.
        """
        cutoff = samples[-1].timestamp - window_ms

        start = None
        count = 0
        for sample in reversed(samples):
            if sample.timestamp < cutoff:
                break
            start = sample
            count += 1

        if count < 2 or start.price <= 0:
            return 0.0
        return (samples[-1].price - start.price) / start.price

    @staticmethod
    def _volume_momentum(volumes: np.ndarray) -> float:
        if len(volumes) < 10:
            return 0.0

        recent = volumes[-10:]
        prior = volumes[-50:-10]
        if len(prior) == 0:
            return 0.0

        prior_mean = float(np.mean(prior))
        return (float(np.mean(recent)) - prior_mean) / (prior_mean + EPSILON)

    @staticmethod
    def _velocity_acceleration(samples: List[TickSample]) -> Tuple[float, float]:
        if len(samples) < 3:
            return 0.0, 0.0

        s0, s1, s2 = samples[-3:]
        dt1 = (s1.timestamp - s0.timestamp) / 1000.0
        dt2 = (s2.timestamp - s1.timestamp) / 1000.0

        # Zero elapsed time has no defined rate
        v1 = (s1.price - s0.price) / dt1 if dt1 > 0 else 0.0
        v2 = (s2.price - s1.price) / dt2 if dt2 > 0 else 0.0
        acceleration = (v2 - v1) / dt2 if dt2 > 0 else 0.0

        return v2, acceleration

    # ------------------------------------------------------------------
    # Factors
    # ------------------------------------------------------------------

    @staticmethod
    def _momentum_volume(prices: np.ndarray, volumes: np.ndarray) -> float:
        p = prices[-20:]
        v = volumes[-20:]
        if p[0] <= 0:
            return 0.0

        price_momentum = (p[-1] - p[0]) / p[0]

        avg_volume = float(np.mean(v))
        recent_volume = float(np.mean(v[-5:]))
        if avg_volume < EPSILON:
            volume_weight = 1.0
        else:
            volume_weight = max(min(recent_volume / avg_volume, 3.0), EPSILON)

        return float(price_momentum * math.log(volume_weight))

    @staticmethod
    def _mean_reversion(prices: np.ndarray) -> float:
        p = prices[-30:]
        z = (p[-1] - np.mean(p)) / (np.std(p) + EPSILON)
        return float(-np.tanh(5 * z))

    @staticmethod
    def _volume_divergence(prices: np.ndarray, volumes: np.ndarray) -> float:
        p = prices[-20:]
        v = volumes[-20:]

        price_direction = 1 if p[-1] > p[0] else -1
        volume_direction = 1 if v[10:].sum() > v[:10].sum() else -1

        return 1.0 if price_direction != volume_direction else 0.0

    @staticmethod
    def _volatility_regime(prices: np.ndarray) -> float:
        returns = _log_returns(prices[-20:])
        if len(returns) < 11:
            return 0.0

        recent_vol = math.sqrt(_variance(returns[-10:]))
        historical_vol = math.sqrt(_variance(returns[:-10]))
        return (recent_vol - historical_vol) / (historical_vol + EPSILON)

    @staticmethod
    def _tick_momentum(prices: np.ndarray) -> float:
        changes = np.diff(prices[-10:])
        up_ticks = int(np.sum(changes > 0))
        down_ticks = int(np.sum(changes < 0))

        total = up_ticks + down_ticks
        return (up_ticks - down_ticks) / total if total > 0 else 0.0

    def _normalize(self, symbol: str, name: FactorName, value: float) -> AlphaFactor:
        key = (symbol, name)
        if key not in self._factor_history:
            self._factor_history[key] = deque(maxlen=self._config.factor_history)

        history = self._factor_history[key]
        history.append(value)

        values = np.array(history, dtype=float)
        variance = _variance(values)
        zscore = (value - float(np.mean(values))) / math.sqrt(variance) if variance > 0 else 0.0

        rank = int(np.searchsorted(np.sort(values), value, side="left"))
        percentile = rank / len(values)

        return AlphaFactor(
            name=name,
            value=float(value),
            zscore=float(zscore),
            percentile=percentile,
            signal_strength=float(np.tanh(abs(zscore))),
            decay_factor=self._config.decay_factor,
        )

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def get_history(self, symbol: str) -> List[TickSample]:
        """Copy of the symbol's tick history, oldest first."""
        return list(self._history.get(symbol, ()))

    def sample_count(self, symbol: str) -> int:
        return len(self._history.get(symbol, ()))

    def reset(self, symbol: Optional[str] = None) -> None:
        """Reset state for one symbol or all."""
        if symbol:
            self._history.pop(symbol, None)
            for key in [k for k in self._factor_history if k[0] == symbol]:
                del self._factor_history[key]
        else:
            self._history.clear()
            self._factor_history.clear()
        logger.debug("Alpha factor state reset", category=LogCategory.SIGNAL, symbol=symbol)
