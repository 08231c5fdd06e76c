"""
Order Book Feature Extraction
=============================

Turns one order book snapshot into a flat feature vector describing
liquidity, pressure and trade aggressiveness.

FEATURES:
=========

Price features:
    spread     = best_ask - best_bid
    mid        = (best_bid + best_ask) / 2
    micro      = (best_bid * ask_size + best_ask * bid_size) / (bid_size + ask_size)

  The micro price leans toward the side with LESS resting size: a thin
  ask is likely to be lifted, so fair value sits closer to it.

Flow / imbalance features (all in [-1, 1]):
    order_flow_imbalance = (Σbid_10 - Σask_10) / (Σbid_10 + Σask_10)
    volume_imbalance     = same, best level only
    depth_imbalance      = same, each level weighted by exp(-10 * |p - mid| / mid)

Pressure features:
    buy_pressure  = bid share of top-5 liquidity
    sell_pressure = ask share of top-5 liquidity

Trade features:
    vwap / vwap_deviation over the last 100 prints
    tick_direction        sign of the last price change
    aggressor_side        BUY at/above ask, SELL at/below bid, else PASSIVE
    smart_money           large print (> 5x previous) in the tick direction
    market_impact         ln(last_size / (top_of_book_depth + 1))

CAVEATS:
- smart_money is a heuristic, not a statistically validated signal
- aggressor classification uses the snapshot's own quotes, so a stale
  book misclassifies trades (no Lee-Ready delay adjustment)
"""

import math
from collections import deque
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional, Deque, Sequence, Tuple

import numpy as np

from ..data.market_data import BookLevel, OrderBookSnapshot
from ..infra.config import FeatureConfig
from ..infra.logging import get_logger, LogCategory


logger = get_logger()


class AggressorSide(Enum):
    """Side that initiated the last trade."""
    BUY = "BUY"
    SELL = "SELL"
    PASSIVE = "PASSIVE"


@dataclass
class OrderBookFeatures:
    """
    Feature vector derived from a single snapshot.

    Stateless output: two extractions of the same snapshot differ only in
    the history-dependent fields (vwap, tick_direction, smart_money).
    """
    spread: float
    mid_price: float
    micro_price: float

    # Flow
    order_flow_imbalance: float
    volume_imbalance: float
    depth_imbalance: float

    # Pressure
    buy_pressure: float
    sell_pressure: float
    pressure_ratio: float

    # Depth
    bid_depth: float
    ask_depth: float
    depth_ratio: float

    # VWAP
    vwap: float
    vwap_deviation: float

    # Microstructure
    tick_direction: int
    aggressor_side: AggressorSide
    trade_intensity: float

    # Advanced
    smart_money: float
    liquidity_taking: float
    market_impact: float

    @classmethod
    def empty(cls) -> 'OrderBookFeatures':
        """Zero-valued defaults for a book without a top of book."""
        return cls(
            spread=0.0,
            mid_price=0.0,
            micro_price=0.0,
            order_flow_imbalance=0.0,
            volume_imbalance=0.0,
            depth_imbalance=0.0,
            buy_pressure=0.0,
            sell_pressure=0.0,
            pressure_ratio=0.0,
            bid_depth=0.0,
            ask_depth=0.0,
            depth_ratio=0.0,
            vwap=0.0,
            vwap_deviation=0.0,
            tick_direction=0,
            aggressor_side=AggressorSide.PASSIVE,
            trade_intensity=0.0,
            smart_money=0.0,
            liquidity_taking=0.0,
            market_impact=0.0,
        )

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["aggressor_side"] = self.aggressor_side.value
        return data


def _imbalance(bid_total: float, ask_total: float) -> float:
    """(bid - ask) / (bid + ask), 0 for an empty book."""
    total = bid_total + ask_total
    if total <= 0:
        return 0.0
    return (bid_total - ask_total) / total


class OrderBookFeatureExtractor:
    """
    Extracts microstructure features from order book snapshots.

    Per-symbol state is limited to what the trade features need:
    a rolling last-price history, a VWAP window and the previous
    print size.
    """

    def __init__(self, config: Optional[FeatureConfig] = None):
        """
        Initialize feature extractor.

        Args:
            config: Feature configuration (defaults if omitted)
        """
        self._config = config or FeatureConfig()

        self._price_history: Dict[str, Deque[float]] = {}
        # (price * size, size) per print
        self._vwap_window: Dict[str, Deque[Tuple[float, float]]] = {}
        self._last_size: Dict[str, float] = {}

    def extract_features(
        self,
        snapshot: OrderBookSnapshot,
        historical_snapshots: Optional[Sequence[OrderBookSnapshot]] = None
    ) -> OrderBookFeatures:
        """
        Extract the full feature vector from a snapshot.

        Args:
            snapshot: Current order book
            historical_snapshots: Optional earlier snapshots (oldest first),
                used only to seed state for a symbol seen for the first time

        Returns:
            OrderBookFeatures; OrderBookFeatures.empty() when either side
            of the book is missing
        """
        if not snapshot.has_top_of_book:
            logger.debug(
                "Snapshot without top of book, returning empty features",
                category=LogCategory.MARKET_DATA,
                symbol=snapshot.symbol,
            )
            return OrderBookFeatures.empty()

        symbol = snapshot.symbol
        cfg = self._config

        # Initialize if needed
        if symbol not in self._price_history:
            self._price_history[symbol] = deque(maxlen=cfg.price_history_size)
            self._vwap_window[symbol] = deque(maxlen=cfg.vwap_window)
            if historical_snapshots:
                self._seed_from_history(symbol, historical_snapshots[-1])

        bids = snapshot.bids[:cfg.imbalance_levels]
        asks = snapshot.asks[:cfg.imbalance_levels]

        best_bid = bids[0]
        best_ask = asks[0]

        # Price features
        spread = best_ask.price - best_bid.price
        mid_price = (best_bid.price + best_ask.price) / 2
        top_size = best_bid.size + best_ask.size
        if top_size > 0:
            micro_price = (best_bid.price * best_ask.size + best_ask.price * best_bid.size) / top_size
        else:
            micro_price = mid_price

        # Flow features
        bid_sizes = np.array([level.size for level in bids], dtype=float)
        ask_sizes = np.array([level.size for level in asks], dtype=float)
        bid_depth = float(bid_sizes.sum())
        ask_depth = float(ask_sizes.sum())

        order_flow_imbalance = _imbalance(bid_depth, ask_depth)
        volume_imbalance = _imbalance(best_bid.size, best_ask.size)
        depth_imbalance = _imbalance(
            self._weighted_depth(bids, mid_price),
            self._weighted_depth(asks, mid_price),
        )

        # Pressure features
        buy_pressure, sell_pressure = self._pressure(bid_sizes, ask_sizes)

        # Trade features (order matters: tick direction reads the previous print)
        tick_direction = self._update_tick_direction(symbol, snapshot.last_price)
        vwap = self._update_vwap(symbol, snapshot.last_price, snapshot.last_size)
        vwap_deviation = (snapshot.last_price - vwap) / vwap if vwap > 0 else 0.0
        aggressor_side = self._determine_aggressor(snapshot.last_price, best_bid.price, best_ask.price)
        smart_money = self._smart_money(symbol, snapshot.last_size, tick_direction)

        # Update history
        self._last_size[symbol] = snapshot.last_size

        return OrderBookFeatures(
            spread=spread,
            mid_price=mid_price,
            micro_price=micro_price,
            order_flow_imbalance=order_flow_imbalance,
            volume_imbalance=volume_imbalance,
            depth_imbalance=depth_imbalance,
            buy_pressure=buy_pressure,
            sell_pressure=sell_pressure,
            pressure_ratio=buy_pressure / (sell_pressure + 0.001),
            bid_depth=bid_depth,
            ask_depth=ask_depth,
            depth_ratio=bid_depth / (ask_depth + 0.001),
            vwap=vwap,
            vwap_deviation=vwap_deviation,
            tick_direction=tick_direction,
            aggressor_side=aggressor_side,
            trade_intensity=min(snapshot.last_size / cfg.intensity_scale, 1.0),
            smart_money=smart_money,
            liquidity_taking=0.0 if aggressor_side == AggressorSide.PASSIVE else 1.0,
            market_impact=self._market_impact(snapshot.last_size, top_size),
        )

    def _seed_from_history(self, symbol: str, previous: OrderBookSnapshot) -> None:
        """Use the most recent historical snapshot as the previous print."""
        if previous.last_price > 0:
            self._price_history[symbol].append(previous.last_price)
        if previous.last_size > 0:
            self._last_size[symbol] = previous.last_size

    def _weighted_depth(self, levels: List[BookLevel], mid_price: float) -> float:
        """
        Sum of level sizes, exponentially discounted by distance from mid.
        """
        if not levels or mid_price <= 0:
            return 0.0

        prices = np.array([level.price for level in levels], dtype=float)
        sizes = np.array([level.size for level in levels], dtype=float)
        distance = np.abs(prices - mid_price) / mid_price
        return float(np.sum(sizes * np.exp(-self._config.depth_decay * distance)))

    def _pressure(self, bid_sizes: np.ndarray, ask_sizes: np.ndarray) -> Tuple[float, float]:
        n = self._config.pressure_levels
        bid_strength = float(bid_sizes[:n].sum())
        ask_strength = float(ask_sizes[:n].sum())
        total = bid_strength + ask_strength
        if total <= 0:
            return 0.0, 0.0
        return bid_strength / total, ask_strength / total

    def _update_tick_direction(self, symbol: str, last_price: float) -> int:
        history = self._price_history[symbol]
        previous = history[-1] if history else None
        history.append(last_price)

        if previous is None or previous <= 0:
            return 0
        if last_price > previous:
            return 1
        if last_price < previous:
            return -1
        return 0

    def _update_vwap(self, symbol: str, last_price: float, last_size: float) -> float:
        """
        Rolling VWAP = Σ(price * size) / Σsize over the window.

        Falls back to the last price when the window carries no volume.
        """
        window = self._vwap_window[symbol]
        window.append((last_price * last_size, last_size))

        total_value = sum(value for value, _ in window)
        total_size = sum(size for _, size in window)
        if total_size <= 0:
            return last_price
        return total_value / total_size

    @staticmethod
    def _determine_aggressor(last_price: float, best_bid: float, best_ask: float) -> AggressorSide:
        if last_price >= best_ask:
            return AggressorSide.BUY
        if last_price <= best_bid:
            return AggressorSide.SELL
        return AggressorSide.PASSIVE

    def _smart_money(self, symbol: str, last_size: float, tick_direction: int) -> float:
        """
        Large-print heuristic.

        A print larger than `large_trade_multiplier` times the previous print,
        in the direction of the tick, scores direction * ln(size / threshold).
        """
        previous_size = self._last_size.get(symbol, 0.0)
        if previous_size <= 0 or tick_direction == 0:
            return 0.0

        threshold = previous_size * self._config.large_trade_multiplier
        if last_size > threshold:
            return tick_direction * math.log(last_size / threshold)
        return 0.0

    @staticmethod
    def _market_impact(last_size: float, top_of_book_depth: float) -> float:
        if last_size <= 0:
            return 0.0
        return math.log(last_size / (top_of_book_depth + 1))

    def reset(self, symbol: Optional[str] = None) -> None:
        """Reset state for one symbol or all."""
        if symbol:
            self._price_history.pop(symbol, None)
            self._vwap_window.pop(symbol, None)
            self._last_size.pop(symbol, None)
        else:
            self._price_history.clear()
            self._vwap_window.clear()
            self._last_size.clear()
