"""
Alpha/Risk Engine Facade
========================

The single entry point an external feed/execution layer talks to.

    INBOUND                          OUTBOUND (pull)
    ───────                          ───────────────
    feed_tick(...)                   extract_features(snapshot)
    feed_order_book(snapshot)        generate_alpha_factors(symbol)
    feed_pair_config(pairs)          generate_microstructure_signals(symbol)
    feed_risk_limits(limits)         generate_stat_arb_signals(prices)
    day_boundary()                   check_risk_limits(...)
                                     calculate_risk_metrics()
                                     get_positions()

    OUTBOUND (push): position-closed events via register_callback()
                     and the AUDIT log stream

A tick fans out to the alpha factor engine, the pair engine's price
history and, when a position is open in the symbol, the risk manager's
mark-to-market.

SYNCHRONIZATION:
================
Every call holds the facade lock for its duration. Pair signals and
portfolio metrics read several symbols' state at once; holding the lock
means they always see a consistent cut across symbols.
"""

import threading
from dataclasses import asdict
from typing import Dict, List, Mapping, Optional, Sequence

from .data.market_data import OrderBookSnapshot
from .infra.config import SystemConfig, RiskLimits, TradingPair, get_default_config
from .infra.logging import get_logger, LogCategory
from .signals.orderbook_features import OrderBookFeatureExtractor, OrderBookFeatures
from .signals.alpha_factors import AlphaFactorEngine, AlphaFactor, MicrostructureSignal
from .signals.statistical_arbitrage import StatisticalArbitrageEngine, StatArbSignal
from .risk.risk_manager import (
    RiskManager,
    RiskDecision,
    Position,
    PositionClosedEvent,
    PositionClosedCallback,
)
from .risk.risk_metrics import RiskMetrics


logger = get_logger()


class AlphaRiskEngine:
    """
    Composes feature extraction, alpha factors, pair signals and risk.

    Each component owns exactly its own state; the facade owns only the
    latest price per symbol and the latest features per symbol.
    """

    def __init__(self, config: Optional[SystemConfig] = None):
        """
        Initialize the engine.

        Args:
            config: System configuration (defaults if omitted)
        """
        self._config = config or get_default_config()
        logger.set_level(self._config.log_level)

        self._features = OrderBookFeatureExtractor(self._config.features)
        self._alpha = AlphaFactorEngine(self._config.alpha)
        self._stat_arb = StatisticalArbitrageEngine(self._config.stat_arb)
        self._risk = RiskManager(
            self._config.risk,
            history_size=self._config.portfolio_history_size,
            var_confidence=self._config.var_confidence,
            min_history_for_stats=self._config.min_history_for_stats,
        )

        self._latest_prices: Dict[str, float] = {}
        self._latest_features: Dict[str, OrderBookFeatures] = {}

        self._lock = threading.RLock()

        logger.info(
            f"Alpha engine initialized ({self._config.environment.value})",
            category=LogCategory.SYSTEM,
            pairs=[p.key for p in self._stat_arb.get_pairs()],
        )

    # Components are exposed for direct inspection in research sessions

    @property
    def feature_extractor(self) -> OrderBookFeatureExtractor:
        return self._features

    @property
    def alpha_engine(self) -> AlphaFactorEngine:
        return self._alpha

    @property
    def stat_arb_engine(self) -> StatisticalArbitrageEngine:
        return self._stat_arb

    @property
    def risk_manager(self) -> RiskManager:
        return self._risk

    @property
    def latest_prices(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._latest_prices)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def feed_tick(
        self,
        symbol: str,
        price: float,
        volume: float,
        timestamp: Optional[int] = None
    ) -> Optional[PositionClosedEvent]:
        """
        Deliver one trade/quote sample.

        Returns:
            A close event when the mark-to-market triggered an exit
        """
        with self._lock:
            self._alpha.update_market_data(symbol, price, volume, timestamp)
            self._stat_arb.update_prices(symbol, price)
            self._latest_prices[symbol] = price
            return self._risk.update_position(symbol, price)

    def feed_order_book(
        self,
        snapshot: OrderBookSnapshot,
        historical_snapshots: Optional[Sequence[OrderBookSnapshot]] = None
    ) -> OrderBookFeatures:
        """Deliver a snapshot; its features are cached per symbol and returned."""
        with self._lock:
            features = self.extract_features(snapshot, historical_snapshots)
            self._latest_features[snapshot.symbol] = features
            return features

    def feed_pair_config(self, pairs: Sequence[TradingPair]) -> None:
        with self._lock:
            self._stat_arb.set_pairs(pairs)

    def feed_risk_limits(self, limits: RiskLimits) -> None:
        """Replace all risk limits."""
        with self._lock:
            self._risk.update_risk_limits(**asdict(limits))

    def day_boundary(self) -> None:
        """Start a new trading day."""
        with self._lock:
            self._risk.reset_daily_metrics()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def extract_features(
        self,
        snapshot: OrderBookSnapshot,
        historical_snapshots: Optional[Sequence[OrderBookSnapshot]] = None
    ) -> OrderBookFeatures:
        with self._lock:
            with logger.measure_latency("extract_features", symbol=snapshot.symbol):
                return self._features.extract_features(snapshot, historical_snapshots)

    def get_latest_features(self, symbol: str) -> Optional[OrderBookFeatures]:
        with self._lock:
            return self._latest_features.get(symbol)

    def generate_alpha_factors(self, symbol: str) -> List[AlphaFactor]:
        with self._lock:
            with logger.measure_latency("alpha_factors", symbol=symbol):
                return self._alpha.generate_alpha_factors(symbol)

    def generate_microstructure_signals(self, symbol: str) -> Optional[MicrostructureSignal]:
        with self._lock:
            with logger.measure_latency("microstructure_signals", symbol=symbol):
                return self._alpha.generate_microstructure_signals(symbol)

    def generate_stat_arb_signals(
        self,
        latest_prices: Optional[Mapping[str, float]] = None
    ) -> List[StatArbSignal]:
        """
        Pair signals, by default against the latest fed prices.
        """
        with self._lock:
            prices = latest_prices if latest_prices is not None else dict(self._latest_prices)
            with logger.measure_latency("stat_arb_signals"):
                return self._stat_arb.generate_stat_arb_signals(prices)

    def check_risk_limits(self, symbol: str, proposed_quantity: float, price: float) -> RiskDecision:
        with self._lock:
            return self._risk.check_risk_limits(symbol, proposed_quantity, price)

    def calculate_risk_metrics(self) -> RiskMetrics:
        with self._lock:
            return self._risk.calculate_risk_metrics()

    def get_positions(self) -> Dict[str, Position]:
        with self._lock:
            return self._risk.get_positions()

    def register_callback(self, callback: PositionClosedCallback) -> None:
        """Subscribe to position-closed events."""
        self._risk.register_callback(callback)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def submit_order(
        self,
        symbol: str,
        quantity: float,
        price: float,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
        timestamp: Optional[int] = None
    ) -> RiskDecision:
        """
        Run the risk gate and book the position when allowed.

        The position is booked at `price`; actual execution is external.
        """
        with self._lock:
            decision = self._risk.check_risk_limits(symbol, quantity, price)
            if not decision.allowed:
                logger.log_risk_event(
                    "ORDER_DENIED",
                    decision.reason,
                    symbol=symbol,
                    code=decision.code.value,
                    quantity=quantity,
                    price=price,
                )
                return decision

            self._risk.open_position(
                symbol, quantity, price,
                timestamp=timestamp,
                stop_loss=stop_loss,
                take_profit=take_profit,
            )
            self._latest_prices.setdefault(symbol, price)
            return decision

    def emergency_stop(self) -> List[PositionClosedEvent]:
        with self._lock:
            return self._risk.emergency_stop()
