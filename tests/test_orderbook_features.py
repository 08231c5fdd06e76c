import math

from alpha_engine.data.market_data import OrderBookSnapshot
from alpha_engine.signals.orderbook_features import (
    AggressorSide,
    OrderBookFeatureExtractor,
    OrderBookFeatures,
)


def test_spread_and_micro_price_within_touch(snapshot_factory):
    snap = snapshot_factory()
    f = OrderBookFeatureExtractor().extract_features(snap)

    assert f.spread >= 0
    assert abs(f.spread - 0.02) < 1e-9
    assert abs(f.mid_price - 100.01) < 1e-9
    assert snap.bids[0].price <= f.micro_price <= snap.asks[0].price


def test_micro_price_leans_toward_thin_side(snapshot_factory):
    # 500 bid vs 300 ask: thin ask, micro price above mid
    f = OrderBookFeatureExtractor().extract_features(snapshot_factory())
    expected = (100.00 * 300 + 100.02 * 500) / 800
    assert abs(f.micro_price - expected) < 1e-9
    assert f.micro_price > f.mid_price


def test_micro_price_falls_back_to_mid_on_zero_sizes(snapshot_factory):
    snap = snapshot_factory(bids=((100.0, 0),), asks=((100.1, 0),))
    f = OrderBookFeatureExtractor().extract_features(snap)
    assert abs(f.micro_price - f.mid_price) < 1e-9
    assert f.order_flow_imbalance == 0.0


def test_order_flow_imbalance_bounded_and_zero_when_balanced(snapshot_factory):
    balanced = snapshot_factory(
        bids=((100.0, 100), (99.9, 200)),
        asks=((100.1, 150), (100.2, 150)),
    )
    f = OrderBookFeatureExtractor().extract_features(balanced)
    assert f.order_flow_imbalance == 0.0

    skewed = snapshot_factory(bids=((100.0, 1000),), asks=((100.1, 1),))
    f = OrderBookFeatureExtractor().extract_features(skewed)
    assert -1.0 <= f.order_flow_imbalance <= 1.0
    assert f.order_flow_imbalance > 0.9


def test_pressure_shares_sum_to_one(snapshot_factory):
    f = OrderBookFeatureExtractor().extract_features(snapshot_factory())
    assert abs(f.buy_pressure + f.sell_pressure - 1.0) < 1e-9
    assert abs(f.bid_depth - 4200) < 1e-9
    assert abs(f.ask_depth - 2600) < 1e-9


def test_missing_side_returns_empty_features():
    snap = OrderBookSnapshot.from_tuples("AAPL", 0, [(100.0, 10)], [], 100.0, 5)
    extractor = OrderBookFeatureExtractor()
    f = extractor.extract_features(snap)
    assert f == OrderBookFeatures.empty()
    assert f.aggressor_side == AggressorSide.PASSIVE


def test_aggressor_classification(snapshot_factory):
    extractor = OrderBookFeatureExtractor()
    assert extractor.extract_features(snapshot_factory(last_price=100.02)).aggressor_side == AggressorSide.BUY
    assert extractor.extract_features(snapshot_factory(last_price=100.00)).aggressor_side == AggressorSide.SELL
    f = extractor.extract_features(snapshot_factory(last_price=100.01))
    assert f.aggressor_side == AggressorSide.PASSIVE
    assert f.liquidity_taking == 0.0


def test_tick_direction_follows_last_price(snapshot_factory):
    extractor = OrderBookFeatureExtractor()
    assert extractor.extract_features(snapshot_factory(last_price=100.01)).tick_direction == 0
    assert extractor.extract_features(snapshot_factory(last_price=100.02)).tick_direction == 1
    assert extractor.extract_features(snapshot_factory(last_price=100.00)).tick_direction == -1
    assert extractor.extract_features(snapshot_factory(last_price=100.00)).tick_direction == 0


def test_vwap_weights_by_size(snapshot_factory):
    extractor = OrderBookFeatureExtractor()
    extractor.extract_features(snapshot_factory(last_price=100.0, last_size=100))
    f = extractor.extract_features(snapshot_factory(last_price=101.0, last_size=300))

    expected = (100.0 * 100 + 101.0 * 300) / 400
    assert abs(f.vwap - expected) < 1e-9
    assert abs(f.vwap_deviation - (101.0 - expected) / expected) < 1e-12


def test_smart_money_on_large_print_in_tick_direction(snapshot_factory):
    extractor = OrderBookFeatureExtractor()
    extractor.extract_features(snapshot_factory(last_price=100.01, last_size=100))
    f = extractor.extract_features(snapshot_factory(last_price=100.02, last_size=1000))

    # threshold = 5 * 100
    assert abs(f.smart_money - math.log(1000 / 500)) < 1e-12

    # Same size again is not large relative to the previous print
    f = extractor.extract_features(snapshot_factory(last_price=100.03, last_size=1000))
    assert f.smart_money == 0.0


def test_historical_snapshot_seeds_previous_print(snapshot_factory):
    extractor = OrderBookFeatureExtractor()
    history = [snapshot_factory(last_price=100.00, last_size=50)]
    f = extractor.extract_features(snapshot_factory(last_price=100.02, last_size=400), history)
    assert f.tick_direction == 1
    assert f.smart_money > 0


def test_market_impact_and_intensity(snapshot_factory):
    f = OrderBookFeatureExtractor().extract_features(snapshot_factory(last_size=2000))
    assert abs(f.market_impact - math.log(2000 / (500 + 300 + 1))) < 1e-12
    assert f.trade_intensity == 1.0

    f = OrderBookFeatureExtractor().extract_features(snapshot_factory(last_size=0))
    assert f.market_impact == 0.0


def test_reset_clears_symbol_state(snapshot_factory):
    extractor = OrderBookFeatureExtractor()
    extractor.extract_features(snapshot_factory(last_price=100.00))
    extractor.reset("AAPL")
    assert extractor.extract_features(snapshot_factory(last_price=100.02)).tick_direction == 0
