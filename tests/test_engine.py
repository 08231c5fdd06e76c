import pytest

from alpha_engine.engine import AlphaRiskEngine
from alpha_engine.infra.config import RiskLimits, TradingPair, get_backtest_config
from alpha_engine.risk.risk_manager import CloseReason, DenialReason
from alpha_engine.signals.statistical_arbitrage import PairSignal


@pytest.fixture
def engine():
    config = get_backtest_config()
    config.stat_arb.pairs = [TradingPair("AAA", "BBB", hedge_ratio=2.0)]
    return AlphaRiskEngine(config)


def test_ticks_reach_alpha_and_pair_engines(engine):
    for i in range(50):
        engine.feed_tick("AAA", 100.0 + 0.1 * i, 100.0, i * 1000)
        engine.feed_tick("BBB", 50.0, 100.0, i * 1000)

    assert len(engine.generate_alpha_factors("AAA")) == 6
    assert engine.generate_microstructure_signals("AAA") is not None
    assert engine.latest_prices == {"AAA": pytest.approx(104.9), "BBB": 50.0}
    assert engine.stat_arb_engine.calculate_optimal_hedge_ratio("AAA", "BBB", window=50) == 1.0


def test_stat_arb_uses_latest_prices_by_default(engine):
    signals = []
    for i in range(20):
        engine.feed_tick("AAA", 100.0, 10.0, i)
        engine.feed_tick("BBB", 50.0, 10.0, i)
        signals = engine.generate_stat_arb_signals()
    assert len(signals) == 1
    assert signals[0].signal == PairSignal.NEUTRAL


def test_feed_pair_config_replaces_pairs(engine):
    engine.feed_pair_config([TradingPair("CCC", "DDD", 1.0)])
    assert [p.key for p in engine.stat_arb_engine.get_pairs()] == ["CCC_DDD"]


def test_feed_order_book_caches_features(engine, snapshot_factory):
    features = engine.feed_order_book(snapshot_factory(symbol="AAA"))
    assert engine.get_latest_features("AAA") is features
    assert features.spread > 0


def test_submit_order_books_allowed_position(engine):
    decision = engine.submit_order("AAA", 10, 100.0)
    assert decision.allowed
    position = engine.get_positions()["AAA"]
    assert position.quantity == 10
    assert position.stop_loss == pytest.approx(98.0)
    assert position.take_profit == pytest.approx(105.0)


def test_submit_order_denied_books_nothing(engine):
    decision = engine.submit_order("AAA", 1000, 100.0)
    assert decision.code == DenialReason.POSITION_SIZE
    assert engine.get_positions() == {}


def test_tick_marks_position_to_market_and_pushes_close(engine):
    closed = []
    engine.register_callback(closed.append)
    engine.submit_order("AAA", 10, 100.0)

    assert engine.feed_tick("AAA", 101.0, 10.0, 1) is None
    event = engine.feed_tick("AAA", 106.0, 10.0, 2)

    assert event.reason == CloseReason.TAKE_PROFIT
    assert closed == [event]
    assert engine.calculate_risk_metrics().daily_pnl == pytest.approx(60.0)


def test_day_boundary_resets_daily_pnl(engine):
    engine.submit_order("AAA", 10, 100.0)
    engine.feed_tick("AAA", 97.0, 10.0, 1)
    assert engine.risk_manager.daily_pnl == pytest.approx(-30.0)

    engine.day_boundary()
    assert engine.risk_manager.daily_pnl == 0.0


def test_feed_risk_limits_hot_reload(engine):
    engine.feed_risk_limits(RiskLimits(max_position_size=500_000.0))
    assert engine.check_risk_limits("AAA", 1000, 100.0).allowed


def test_emergency_stop(engine):
    engine.submit_order("AAA", 10, 100.0)
    engine.submit_order("BBB", -1, 50.0)
    events = engine.emergency_stop()
    assert [e.symbol for e in events] == ["AAA", "BBB"]
    assert engine.get_positions() == {}
