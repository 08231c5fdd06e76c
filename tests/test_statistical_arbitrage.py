import math

import pytest

from alpha_engine.errors import UnknownPairError
from alpha_engine.infra.config import StatArbConfig, TradingPair
from alpha_engine.signals.statistical_arbitrage import (
    BandSignal,
    PairSignal,
    StatisticalArbitrageEngine,
)


def _engine(pairs=None, **kwargs):
    pairs = pairs if pairs is not None else [TradingPair("AAA", "BBB", hedge_ratio=2.0)]
    return StatisticalArbitrageEngine(StatArbConfig(pairs=pairs, **kwargs))


def test_default_pairs_are_configured():
    keys = [p.key for p in StatisticalArbitrageEngine().get_pairs()]
    assert keys == ["AAPL_MSFT", "JPM_BAC", "XOM_CVX", "GOOGL_META"]


def test_zero_variance_spread_is_neutral():
    engine = _engine()
    signals = []
    for _ in range(25):
        signals = engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0})

    assert len(signals) == 1
    signal = signals[0]
    assert signal.spread == 0.0
    assert signal.zscore == 0.0
    assert not math.isnan(signal.zscore)
    assert signal.signal == PairSignal.NEUTRAL
    assert signal.confidence == 0.0


def test_pair_skipped_until_window_filled():
    engine = _engine()
    for _ in range(19):
        assert engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0}) == []
    assert len(engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0})) == 1


def test_missing_leg_skips_pair():
    engine = _engine()
    assert engine.generate_stat_arb_signals({"AAA": 100.0}) == []
    assert engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 0.0}) == []


def test_spread_blowout_goes_short_and_collapse_goes_long():
    engine = _engine()
    for i in range(20):
        engine.generate_stat_arb_signals({"AAA": 100.0 + (0.1 if i % 2 else -0.1), "BBB": 50.0})

    short = engine.generate_stat_arb_signals({"AAA": 105.0, "BBB": 50.0})[0]
    assert short.zscore > 2.0
    assert short.signal == PairSignal.SHORT
    assert 0.0 < short.confidence <= 0.95

    engine = _engine()
    for i in range(20):
        engine.generate_stat_arb_signals({"AAA": 100.0 + (0.1 if i % 2 else -0.1), "BBB": 50.0})
    long = engine.generate_stat_arb_signals({"AAA": 95.0, "BBB": 50.0})[0]
    assert long.zscore < -2.0
    assert long.signal == PairSignal.LONG
    assert long.confidence == min(abs(long.zscore) / 3, 0.95)


def test_signal_does_not_touch_price_history():
    engine = _engine()
    engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0})
    assert engine.calculate_bollinger_bands("AAA", period=1) is None


def test_bollinger_bands():
    engine = _engine()
    assert engine.calculate_bollinger_bands("AAA") is None

    for i in range(19):
        engine.update_prices("AAA", 100.0 + (1.0 if i % 2 else -1.0))
    engine.update_prices("AAA", 110.0)
    bands = engine.calculate_bollinger_bands("AAA")

    assert bands.lower < bands.middle < bands.upper
    assert bands.price == 110.0
    assert bands.signal == BandSignal.OVERBOUGHT
    assert 0.0 < bands.confidence <= 0.95


def test_bollinger_flat_window_is_neutral():
    engine = _engine()
    for _ in range(20):
        engine.update_prices("AAA", 100.0)
    bands = engine.calculate_bollinger_bands("AAA")
    assert bands.signal == BandSignal.NEUTRAL
    assert bands.position == 0.0
    assert bands.upper == bands.lower == bands.middle == 100.0


def test_mean_reversion_score():
    engine = _engine()
    assert engine.calculate_mean_reversion("AAA") == 0.0

    for _ in range(49):
        engine.update_prices("AAA", 100.0)
    engine.update_prices("AAA", 150.0)
    mean = (49 * 100.0 + 150.0) / 50
    expected = math.tanh(5 * (150.0 - mean) / mean)
    assert abs(engine.calculate_mean_reversion("AAA") - expected) < 1e-12


def test_hedge_ratio_recovers_linear_relation():
    engine = _engine()
    assert engine.calculate_optimal_hedge_ratio("AAA", "BBB") == 1.0

    for i in range(100):
        x = 50.0 + 0.5 * i
        engine.update_prices("BBB", x)
        engine.update_prices("AAA", 2.0 * x + 3.0)

    assert engine.calculate_optimal_hedge_ratio("AAA", "BBB") == pytest.approx(2.0, rel=1e-6)
    assert engine.detect_cointegration("AAA", "BBB") == pytest.approx(1.0, rel=1e-6)


def test_correlation_zero_for_flat_leg():
    engine = _engine()
    for i in range(100):
        engine.update_prices("AAA", 100.0 + i)
        engine.update_prices("BBB", 50.0)
    assert engine.detect_cointegration("AAA", "BBB") == 0.0
    assert engine.calculate_optimal_hedge_ratio("AAA", "BBB") == 1.0


def test_refresh_pair_updates_configuration():
    engine = _engine()
    for i in range(100):
        x = 50.0 + i
        engine.update_prices("BBB", x)
        engine.update_prices("AAA", 1.5 * x)

    pair = engine.refresh_pair("AAA", "BBB")
    assert pair.hedge_ratio == pytest.approx(1.5, rel=1e-6)
    assert pair.correlation == pytest.approx(1.0, rel=1e-6)


def test_unknown_pair_ignored_unless_strict():
    assert _engine().refresh_pair("XXX", "YYY") is None

    with pytest.raises(UnknownPairError):
        _engine(strict_pairs=True).refresh_pair("XXX", "YYY")


def test_set_pairs_replaces_configuration():
    engine = _engine()
    engine.set_pairs([TradingPair("CCC", "DDD", 1.0)])
    engine.add_pair(TradingPair("EEE", "FFF", 0.5))
    assert [p.key for p in engine.get_pairs()] == ["CCC_DDD", "EEE_FFF"]


def test_hedge_ratio_change_discards_old_spreads():
    engine = _engine([TradingPair("AAA", "BBB", hedge_ratio=1.0)])
    for i in range(25):
        x = 50.0 + 0.1 * i
        engine.generate_stat_arb_signals({"AAA": 2.0 * x, "BBB": x})

    engine.set_pairs([TradingPair("AAA", "BBB", hedge_ratio=2.0)])
    assert engine.generate_stat_arb_signals({"AAA": 110.0, "BBB": 55.0}) == []

    signals = []
    for _ in range(19):
        signals = engine.generate_stat_arb_signals({"AAA": 110.0, "BBB": 55.0})
    assert signals[0].spread == 0.0
    assert signals[0].signal == PairSignal.NEUTRAL


def test_add_pair_with_same_ratio_keeps_spreads():
    engine = _engine()
    for _ in range(20):
        engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0})

    engine.add_pair(TradingPair("AAA", "BBB", hedge_ratio=2.0))
    assert len(engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0})) == 1

    engine.add_pair(TradingPair("AAA", "BBB", hedge_ratio=2.5))
    assert engine.generate_stat_arb_signals({"AAA": 100.0, "BBB": 50.0}) == []


def test_refresh_pair_restarts_spread_window():
    engine = _engine([TradingPair("AAA", "BBB", hedge_ratio=1.2)])
    for i in range(100):
        x = 50.0 + i
        engine.update_prices("BBB", x)
        engine.update_prices("AAA", 1.5 * x)
        engine.generate_stat_arb_signals({"AAA": 1.5 * x, "BBB": x})

    pair = engine.refresh_pair("AAA", "BBB")
    assert pair.hedge_ratio == pytest.approx(1.5, rel=1e-6)
    assert engine.generate_stat_arb_signals({"AAA": 1.5 * 149.0, "BBB": 149.0}) == []
