import pytest

from alpha_engine.errors import DataFormatError
from alpha_engine.main import main, parse_pairs, read_ticks


def _write_ticks(path, n=60):
    lines = ["symbol,timestamp,price,volume"]
    for i in range(n):
        ts = 1_700_000_000_000 + i * 1000
        lines.append(f"AAA,{ts},{100.0 + 0.05 * i:.4f},100")
        lines.append(f"BBB,{ts},{50.0 + 0.025 * i:.4f},80")
    path.write_text("\n".join(lines) + "\n")
    return path


def test_parse_pairs():
    pairs = parse_pairs("aaa:bbb:1.5, CCC:DDD:2")
    assert [(p.symbol1, p.symbol2, p.hedge_ratio) for p in pairs] == [
        ("AAA", "BBB", 1.5),
        ("CCC", "DDD", 2.0),
    ]
    with pytest.raises(ValueError):
        parse_pairs("AAA:BBB")


def test_read_ticks_rejects_bad_rows(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("symbol,timestamp,price,volume\nAAA,1,not-a-price,10\n")
    with pytest.raises(DataFormatError):
        list(read_ticks(str(path)))

    path.write_text("symbol,price\nAAA,1\n")
    with pytest.raises(DataFormatError):
        list(read_ticks(str(path)))


def test_replay_prints_report(tmp_path, capsys):
    path = _write_ticks(tmp_path / "ticks.csv")
    assert main(["--ticks", str(path), "--pairs", "AAA:BBB:2.0"]) == 0

    out = capsys.readouterr().out
    assert "ALPHA FACTORS" in out
    assert "momentum_volume" in out
    assert "AAA_BBB" in out
    assert "PORTFOLIO RISK REPORT" in out
    assert "alpha_factors" in out


def test_replay_short_history(tmp_path, capsys):
    path = _write_ticks(tmp_path / "ticks.csv", n=10)
    assert main(["--ticks", str(path), "--pairs", "AAA:BBB:2.0"]) == 0

    out = capsys.readouterr().out
    assert "insufficient history (10 samples)" in out
    assert "No pair had enough spread history" in out


def test_missing_file_fails(tmp_path):
    assert main(["--ticks", str(tmp_path / "missing.csv")]) == 1
