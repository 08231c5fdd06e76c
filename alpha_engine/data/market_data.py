"""
Market Data Types for the Alpha Engine
======================================

The engine never sources market data itself. An external feed delivers
two kinds of records, one at a time:

- TickSample: a single trade/quote print (symbol, price, volume, ms timestamp)
- OrderBookSnapshot: a multi-level book with the last trade attached

ORDER BOOK LAYOUT:
==================

    BIDS (best-first)              ASKS (best-first)
    Price    |  Size               Price    |  Size
    ─────────┼───────              ─────────┼───────
    100.02   |  500   <-- Best     100.03   |  300   <-- Best
    100.01   |  1200               100.04   |  800
    100.00   |  2500               100.05   |  1500

Snapshots are consumed once. Only the state needed for tick direction
and VWAP is retained by the feature extractor.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class TickSample:
    """
    One recorded market data sample.

    Immutable once recorded; histories evict the oldest sample first.
    """
    symbol: str
    price: float
    volume: float
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "volume": self.volume,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class BookLevel:
    """A single aggregated price level."""
    price: float
    size: float


@dataclass
class OrderBookSnapshot:
    """
    Order book state for a single symbol at one instant.

    bids are highest-first and asks lowest-first, so index 0 is always
    the top of book.
    """
    symbol: str
    timestamp: int
    bids: List[BookLevel] = field(default_factory=list)
    asks: List[BookLevel] = field(default_factory=list)
    last_price: float = 0.0
    last_size: float = 0.0

    @classmethod
    def from_tuples(
        cls,
        symbol: str,
        timestamp: int,
        bids: Sequence[Tuple[float, float]],
        asks: Sequence[Tuple[float, float]],
        last_price: float,
        last_size: float,
    ) -> 'OrderBookSnapshot':
        """Build a snapshot from (price, size) pairs."""
        return cls(
            symbol=symbol,
            timestamp=timestamp,
            bids=[BookLevel(p, s) for p, s in bids],
            asks=[BookLevel(p, s) for p, s in asks],
            last_price=last_price,
            last_size=last_size,
        )

    @property
    def best_bid(self) -> Optional[BookLevel]:
        """Best (highest) bid level."""
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[BookLevel]:
        """Best (lowest) ask level."""
        return self.asks[0] if self.asks else None

    @property
    def has_top_of_book(self) -> bool:
        """True when both sides quote a positive price."""
        return (
            self.best_bid is not None
            and self.best_ask is not None
            and self.best_bid.price > 0
            and self.best_ask.price > 0
        )
