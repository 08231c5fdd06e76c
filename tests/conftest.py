import sys
from pathlib import Path

import pytest

# Make the repo root importable so tests can import alpha_engine directly
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from alpha_engine.data.market_data import OrderBookSnapshot  # noqa: E402


@pytest.fixture
def snapshot_factory():
    def _make(
        symbol="AAPL",
        bids=((100.00, 500), (99.99, 1200), (99.98, 2500)),
        asks=((100.02, 300), (100.03, 800), (100.04, 1500)),
        last_price=100.01,
        last_size=100,
        timestamp=1_700_000_000_000,
    ):
        return OrderBookSnapshot.from_tuples(symbol, timestamp, bids, asks, last_price, last_size)

    return _make
