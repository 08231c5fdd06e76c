"""
Data module for the alpha engine.

Provides the inbound market data records:
- Tick samples
- Order book snapshots
"""

from .market_data import (
    TickSample,
    BookLevel,
    OrderBookSnapshot,
)

__all__ = [
    "TickSample",
    "BookLevel",
    "OrderBookSnapshot",
]
