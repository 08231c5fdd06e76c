"""
Alpha Engine - Replay Entry Point
=================================

Replays a CSV of ticks through the engine and prints the resulting
alpha factors, microstructure signals, pair signals and a risk report.

Input format (header required):

    symbol,timestamp,price,volume
    AAPL,1700000000000,150.00,100
    MSFT,1700000000000,125.00,80

Pair signals are evaluated once per distinct timestamp, after every tick
carrying that timestamp has been fed.

Usage:
    python -m alpha_engine.main --ticks data/ticks.csv
    python -m alpha_engine.main --ticks data/ticks.csv --pairs AAPL:MSFT:1.2,XOM:CVX:1.1

For detailed options:
    python -m alpha_engine.main --help
"""

import argparse
import csv
import sys
from typing import Dict, Iterator, List, Optional, Tuple

from .engine import AlphaRiskEngine
from .errors import DataFormatError
from .infra import (
    TradingPair,
    get_default_config,
    get_latency_stats,
    logger,
    LogCategory,
)
from .risk import format_risk_report
from .signals import PairSignal, StatArbSignal


REQUIRED_COLUMNS = ("symbol", "timestamp", "price", "volume")


def parse_pairs(spec: str) -> List[TradingPair]:
    """
    Parse "A:B:ratio,C:D:ratio" into TradingPairs.

    Raises:
        ValueError: malformed entry
    """
    pairs = []
    for entry in spec.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        if len(parts) != 3:
            raise ValueError(f"Pair '{entry}' is not SYMBOL1:SYMBOL2:HEDGE_RATIO")
        symbol1, symbol2, ratio = parts
        pairs.append(TradingPair(symbol1.strip().upper(), symbol2.strip().upper(), float(ratio)))
    return pairs


def read_ticks(path: str) -> Iterator[Tuple[str, int, float, float]]:
    """
    Yield (symbol, timestamp, price, volume) rows from a CSV file.

    Raises:
        DataFormatError: missing columns or an unparseable row
    """
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise DataFormatError(f"{path}: missing columns {', '.join(missing)}")

        for line_no, row in enumerate(reader, start=2):
            try:
                symbol = row["symbol"].strip().upper()
                timestamp = int(row["timestamp"])
                price = float(row["price"])
                volume = float(row["volume"])
            except (TypeError, ValueError, AttributeError) as e:
                raise DataFormatError(f"{path}:{line_no}: bad row {row!r}: {e}") from e

            if not symbol or price <= 0 or volume < 0:
                raise DataFormatError(f"{path}:{line_no}: invalid values {row!r}")

            yield symbol, timestamp, price, volume


def replay(engine: AlphaRiskEngine, path: str) -> Dict[str, StatArbSignal]:
    """
    Feed every tick in `path` into the engine.

    Returns:
        The last signal seen per pair key
    """
    last_signals: Dict[str, StatArbSignal] = {}
    current_ts: Optional[int] = None
    count = 0

    for symbol, timestamp, price, volume in read_ticks(path):
        if current_ts is not None and timestamp != current_ts:
            for signal in engine.generate_stat_arb_signals():
                last_signals[signal.pair.key] = signal
        current_ts = timestamp

        engine.feed_tick(symbol, price, volume, timestamp)
        count += 1

    if current_ts is not None:
        for signal in engine.generate_stat_arb_signals():
            last_signals[signal.pair.key] = signal

    logger.info(f"Replayed {count} ticks from {path}", category=LogCategory.MARKET_DATA)
    return last_signals


def print_report(engine: AlphaRiskEngine, signals: Dict[str, StatArbSignal]) -> None:
    """Print factors, microstructure signals, pair signals and risk."""
    print("\n" + "=" * 60)
    print("📈 ALPHA FACTORS")
    print("=" * 60)
    for symbol in sorted(engine.latest_prices):
        factors = engine.generate_alpha_factors(symbol)
        if not factors:
            count = engine.alpha_engine.sample_count(symbol)
            print(f"{symbol:<8} insufficient history ({count} samples)")
            continue
        print(symbol)
        for factor in factors:
            print(
                f"  {factor.name.value:<22} value={factor.value:+.4f} "
                f"z={factor.zscore:+.2f} pct={factor.percentile:.2f} "
                f"strength={factor.signal_strength:.2f}"
            )
        micro = engine.generate_microstructure_signals(symbol)
        if micro:
            print(f"  {'microstructure_alpha':<22} {micro.microstructure_alpha:+.4f}")

    print("\n" + "=" * 60)
    print("🔗 PAIR SIGNALS")
    print("=" * 60)
    if not signals:
        print("No pair had enough spread history")
    for key, signal in signals.items():
        marker = "" if signal.signal == PairSignal.NEUTRAL else " <--"
        print(
            f"{key:<14} {signal.signal.value:<8} z={signal.zscore:+.2f} "
            f"spread={signal.spread:+.4f} conf={signal.confidence:.2f}{marker}"
        )

    print(format_risk_report(engine.calculate_risk_metrics()))

    print("=" * 60)
    print("⏱  COMPUTATION LATENCY")
    print("=" * 60)
    for operation, stats in sorted(get_latency_stats().items()):
        if stats:
            print(
                f"{operation:<24} n={stats['count']:<6} "
                f"p50={stats['p50_ns'] / 1000:.1f}us p99={stats['p99_ns'] / 1000:.1f}us"
            )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Alpha Engine tick replay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--ticks",
        required=True,
        help="CSV file with symbol,timestamp,price,volume rows"
    )
    parser.add_argument(
        "--pairs",
        type=str,
        default=None,
        help="Comma-separated SYMBOL1:SYMBOL2:HEDGE_RATIO list (default: built-in pairs)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override ALPHA_ENGINE_LOG_LEVEL"
    )

    args = parser.parse_args(argv)

    config = get_default_config()
    if args.log_level:
        config.log_level = args.log_level
    if args.pairs:
        try:
            config.stat_arb.pairs = parse_pairs(args.pairs)
        except ValueError as e:
            parser.error(str(e))

    print("\n" + "=" * 60)
    print("🚀 ALPHA ENGINE - REPLAY")
    print("=" * 60)
    print(f"Ticks: {args.ticks}")
    print(f"Pairs: {', '.join(p.key for p in config.stat_arb.pairs) or 'none'}")
    print("=" * 60)

    engine = AlphaRiskEngine(config)

    try:
        signals = replay(engine, args.ticks)
    except (OSError, DataFormatError) as e:
        logger.error(f"Replay failed: {e}", category=LogCategory.SYSTEM)
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print_report(engine, signals)
    return 0


if __name__ == "__main__":
    sys.exit(main())
