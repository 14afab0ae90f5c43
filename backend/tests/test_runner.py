"""Tests for BacktestRunner pipeline, candle sources and settings."""

import asyncio
import json
import math
import time

import pytest

from backtest.config import BacktestSettings
from backtest.runner import CONSENSUS, BacktestRunner
from backtest.storage.candle_source import CsvCandleSource, InMemoryCandleSource, load_csv
from core.errors import ConfigurationError, EngineError, InsufficientDataError
from core.models.candle import Candle, CandleSeries
from core.models.config import INDICATOR_NAMES, BacktestParams, IndicatorConfig, SignalThresholds
from core.models.signal import Signal

HOUR_MS = 3_600_000
START_MS = 1_700_000_000_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_series(closes: list[float], symbol: str = "BTCUSDT", timeframe: str = "1h") -> CandleSeries:
    candles = [
        Candle(
            time=START_MS + i * HOUR_MS,
            open=c,
            high=c + 0.5,
            low=c - 0.5,
            close=c,
            volume=100.0,
        )
        for i, c in enumerate(closes)
    ]
    return CandleSeries.from_candles(candles, symbol=symbol, timeframe=timeframe)


def rising(n: int = 200) -> list[float]:
    return [100.0 + i for i in range(n)]


def pattern(n: int) -> list[float]:
    return [100.0 + 10.0 * math.sin(2 * math.pi * i / 40) + 3.0 * math.sin(i / 3.0) for i in range(n)]


class TestPipeline:
    """Tests for the consensus pipeline on synthetic series."""

    def test_rising_series_indicators(self):
        records = BacktestRunner().compute_indicators(make_series(rising()))
        tail = records[60:]

        for prev, record in zip(tail, tail[1:]):
            assert record["sma_fast"] > prev["sma_fast"]
            assert record["ema_fast"] > prev["ema_fast"]
            assert record["ema_slow"] > prev["ema_slow"]
        assert tail[-1]["rsi"] >= 99.0
        assert all(r["psar"] < r.close for r in records)

    def test_rising_series_backtest(self):
        result = BacktestRunner().run_series(make_series(rising()))

        assert result.strategy == CONSENSUS
        assert len(result.equity_curve) == 200
        assert result.final_balance == pytest.approx(
            result.initial_balance + sum(t.pnl for t in result.trades)
        )

    def test_generate_signals(self):
        signals = BacktestRunner().generate_signals(make_series(rising(80)))

        assert len(signals) == 80
        # SMA, EMA and PSAR all follow the trend
        assert signals[-1].category_scores.trend == pytest.approx(3.0)
        assert signals[-1].time == START_MS + 79 * HOUR_MS
        # Only PSAR has a value on the first candle
        assert signals[0].signal is Signal.BUY

    def test_empty_series(self):
        runner = BacktestRunner()
        empty = CandleSeries(symbol="BTCUSDT", timeframe="1h")

        assert runner.compute_indicators(empty) == []
        result = runner.run_series(empty)
        assert result.total_trades == 0
        assert result.roi == 0.0

    def test_unusable_series(self):
        nan = float("nan")
        series = CandleSeries.from_candles(
            [Candle(time=START_MS + i, open=nan, high=nan, low=nan, close=nan) for i in range(5)]
        )
        with pytest.raises(InsufficientDataError):
            BacktestRunner().run_series(series)

    def test_roi_matches_cumulative_pnl(self):
        runner = BacktestRunner(params=BacktestParams(long_only=False))
        result = runner.run_series(make_series(pattern(400)))

        cumulative = sum(t.pnl for t in result.trades)
        assert result.roi == pytest.approx(cumulative / result.initial_balance * 100)


class TestSingleIndicator:
    """Tests for single-indicator backtests and comparison."""

    def test_run_single_indicator(self):
        result = BacktestRunner().run_single_indicator(make_series(pattern(200)), "RSI")
        assert result.strategy == "RSI"

    def test_unknown_indicator(self):
        with pytest.raises(KeyError):
            BacktestRunner().run_single_indicator(make_series(pattern(50)), "ATR")

    def test_compare_indicators(self):
        comparison = BacktestRunner().compare_indicators(make_series(pattern(200)))

        assert set(comparison.results) == set(INDICATOR_NAMES) | {CONSENSUS}
        rois = [r.roi for _, r in comparison.ranking()]
        assert rois == sorted(rois, reverse=True)
        assert comparison.best == comparison.ranking()[0][0]


class TestOverfitting:
    """Tests for the train/test overfitting check."""

    def test_repeating_pattern_is_not_overfit(self):
        half = pattern(200)
        series = make_series(half + half)

        report = BacktestRunner().check_overfitting(series, split=0.5)
        assert report.ratio == pytest.approx(1.0)
        assert not report.overfitting_detected
        assert report.train_candles == report.test_candles == 200

    def test_run_series_attaches_report(self):
        half = pattern(200)
        result = BacktestRunner().run_series(make_series(half + half), overfit_split=0.5)

        assert result.overfitting is not None
        assert result.overfitting_detected is False


class TestRunSymbols:
    """Tests for concurrent multi-symbol runs."""

    @pytest.mark.asyncio
    async def test_run_symbols(self):
        series = [
            make_series(rising(), symbol="BTCUSDT"),
            make_series(pattern(200), symbol="ETHUSDT"),
        ]
        outcomes = await BacktestRunner().run_symbols(series)

        assert [o.symbol for o in outcomes] == ["BTCUSDT", "ETHUSDT"]
        assert all(o.ok for o in outcomes)
        assert outcomes[0].result.symbol == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_others(self):
        series = [
            CandleSeries(symbol="EMPTY", timeframe="1h"),
            make_series(rising(), symbol="BTCUSDT"),
        ]
        outcomes = await BacktestRunner().run_symbols(series)

        assert not outcomes[0].ok
        assert "No candles" in outcomes[0].error
        assert outcomes[1].ok

    @pytest.mark.asyncio
    async def test_matches_sequential_run(self):
        runner = BacktestRunner()
        series = make_series(pattern(300))

        outcomes = await runner.run_symbols([series, series])
        sequential = runner.run_series(series)
        assert outcomes[0].result.final_balance == outcomes[1].result.final_balance == sequential.final_balance

    @pytest.mark.asyncio
    async def test_timeout(self, monkeypatch):
        runner = BacktestRunner()

        def slow(series, overfit_split=None):
            time.sleep(0.5)

        monkeypatch.setattr(runner, "run_series", slow)
        outcomes = await runner.run_symbols([make_series(rising(10))], timeout=0.05)
        assert "timed out" in outcomes[0].error


class TestCandleSources:
    """Tests for CSV and in-memory candle sources."""

    def write_csv(self, path, rows):
        lines = ["time,open,high,low,close,volume"]
        lines += [",".join(str(v) for v in row) for row in rows]
        path.write_text("\n".join(lines) + "\n")

    def test_load_csv(self, tmp_path):
        path = tmp_path / "BTCUSDT_1h.csv"
        self.write_csv(path, [
            (1_700_003_600, 2, 3, 1, 2.5, 10),
            (1_700_000_000, 1, 2, 0.5, 1.5, 5),
        ])

        series = load_csv(path, symbol="BTCUSDT", timeframe="1h")
        assert [c.time for c in series] == [1_700_000_000_000, 1_700_003_600_000]
        assert series.closes == [1.5, 2.5]

    def test_bad_timestamp_row_is_skipped(self, tmp_path):
        path = tmp_path / "BTCUSDT_1h.csv"
        rows = [(START_MS + i * HOUR_MS, 1, 2, 0.5, 1.5, 5) for i in range(50)]
        rows.insert(20, ("not-a-time", 1, 2, 0.5, 1.5, 5))
        self.write_csv(path, rows)

        series = load_csv(path, symbol="BTCUSDT", timeframe="1h")
        assert len(series) == 50
        assert series[0].time == START_MS

    def test_missing_file(self, tmp_path):
        assert len(load_csv(tmp_path / "missing.csv")) == 0

    def test_csv_source(self, tmp_path):
        self.write_csv(tmp_path / "ETHUSDT_4h.csv", [(1_700_000_000_000, 1, 1, 1, 1, 1)])
        series = asyncio.run(CsvCandleSource(tmp_path).get_series("ETHUSDT", "4h"))

        assert len(series) == 1
        assert series.symbol == "ETHUSDT"

    def test_in_memory_source(self):
        source = InMemoryCandleSource({("BTCUSDT", "1h"): list(make_series(rising(5)))})

        assert len(asyncio.run(source.get_series("BTCUSDT", "1h"))) == 5
        assert len(asyncio.run(source.get_series("BTCUSDT", "4h"))) == 0


class TestSettings:
    """Tests for environment-driven backtest settings."""

    def test_defaults(self):
        settings = BacktestSettings(_env_file=None)
        assert settings.backtest_params() == BacktestParams()

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("BACKTEST_FEE", "0.002")
        monkeypatch.setenv("BACKTEST_LONG_ONLY", "false")
        settings = BacktestSettings(_env_file=None)

        params = settings.backtest_params()
        assert params.fee == 0.002
        assert params.long_only is False

    def test_runner_from_settings(self):
        settings = BacktestSettings(_env_file=None, fee=0.0, signal_threshold=0.25)
        runner = BacktestRunner.from_settings(settings)

        assert runner.params.fee == 0.0
        assert runner.aggregator.threshold == 0.25

    def test_indicator_periods_from_env(self, monkeypatch):
        monkeypatch.setenv("BACKTEST_RSI_PERIOD", "7")
        monkeypatch.setenv("BACKTEST_STOCH_RSI_K", "5")
        settings = BacktestSettings(_env_file=None)

        config = settings.indicator_config()
        assert config.rsi_period == 7
        assert config.stoch_rsi_k == 5
        assert config.macd_slow == IndicatorConfig().macd_slow
        assert BacktestRunner.from_settings(settings).indicator_config == config

    def test_default_indicator_config(self):
        assert BacktestSettings(_env_file=None).indicator_config() == IndicatorConfig()

    @pytest.mark.parametrize(
        "build",
        [
            lambda: IndicatorConfig(rsi_period=0),
            lambda: IndicatorConfig(macd_fast=30, macd_slow=26),
            lambda: BacktestParams(fee=-1),
            lambda: BacktestParams(stop_loss=0.05),
            lambda: SignalThresholds(stoch_oversold=90),
        ],
    )
    def test_invalid_models_raise_configuration_error(self, build):
        with pytest.raises(ConfigurationError) as exc_info:
            build()
        assert isinstance(exc_info.value, EngineError)

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("BACKTEST_FEE", "-1")
        settings = BacktestSettings(_env_file=None)

        with pytest.raises(ConfigurationError):
            settings.backtest_params()
        with pytest.raises(ConfigurationError):
            BacktestRunner.from_settings(settings)

    def test_unparsable_env_value(self, monkeypatch):
        monkeypatch.setenv("BACKTEST_FEE", "abc")
        with pytest.raises(ConfigurationError):
            BacktestSettings(_env_file=None)


class TestCli:
    """Tests for the command-line entry point."""

    def write_series(self, path, closes):
        lines = ["time,open,high,low,close,volume"]
        for i, c in enumerate(closes):
            lines.append(f"{START_MS + i * HOUR_MS},{c},{c + 0.5},{c - 0.5},{c},1")
        path.write_text("\n".join(lines) + "\n")

    def test_consensus_run(self, tmp_path, capsys):
        from backtest.__main__ import main

        csv_path = tmp_path / "BTCUSDT_1h.csv"
        out_path = tmp_path / "result.json"
        self.write_series(csv_path, pattern(120))

        assert main(["--csv", str(csv_path), "-o", str(out_path)]) == 0
        assert "BACKTEST RESULTS" in capsys.readouterr().out

        data = json.loads(out_path.read_text())
        assert data[0]["symbol"] == "BTCUSDT"
        assert data[0]["timeframe"] == "1h"
        assert data[0]["error"] is None

    def test_compare(self, tmp_path, capsys):
        from backtest.__main__ import main

        csv_path = tmp_path / "ETHUSDT_4h.csv"
        self.write_series(csv_path, pattern(120))

        assert main(["--csv", str(csv_path), "--compare"]) == 0
        assert "INDICATOR COMPARISON" in capsys.readouterr().out

    @pytest.mark.parametrize("fee", ["-1", "abc"])
    def test_invalid_env_config(self, tmp_path, monkeypatch, fee):
        from backtest.__main__ import main

        csv_path = tmp_path / "BTCUSDT_1h.csv"
        self.write_series(csv_path, pattern(60))
        monkeypatch.setattr("backtest.config._settings", None)
        monkeypatch.setenv("BACKTEST_FEE", fee)

        assert main(["--csv", str(csv_path)]) == 1

    def test_missing_input(self, capsys):
        from backtest.__main__ import main

        assert main([]) == 1
