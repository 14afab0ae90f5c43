"""Tests for PerformanceAnalyzer backtest statistics."""

import numpy as np
import pytest

from backtest.engine import EngineRun, EquityPoint, ExitReason, Trade
from backtest.stats import (
    MIN_DRAWDOWN_PCT,
    BacktestResult,
    PerformanceAnalyzer,
)
from core.models.signal import Direction


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def make_trade(pnl: float, holding_period: int = 1, entry_time: int = 0) -> Trade:
    """Build a Trade with sensible defaults for testing."""
    return Trade(
        entry_time=entry_time,
        entry_price=100.0,
        exit_time=entry_time + holding_period,
        exit_price=100.0 + pnl / 100,
        side=Direction.LONG,
        net_return=pnl / 10_000,
        pnl=pnl,
        is_win=pnl > 0,
        holding_period=holding_period,
        exit_reason=ExitReason.SIGNAL,
    )


def make_run(balances: list[float], trades: list[Trade] | None = None, initial: float = 10_000.0) -> EngineRun:
    return EngineRun(
        initial_balance=initial,
        final_balance=balances[-1] if balances else initial,
        trades=trades or [],
        equity_curve=[EquityPoint(time=i, balance=b) for i, b in enumerate(balances)],
    )


class TestReturnMetrics:
    """Tests for ROI, drawdown, Sharpe and Sortino."""

    def test_roi(self):
        assert PerformanceAnalyzer.roi(10_000, 11_000) == pytest.approx(10.0)
        assert PerformanceAnalyzer.roi(10_000, 9_500) == pytest.approx(-5.0)

    def test_max_drawdown(self):
        assert PerformanceAnalyzer.max_drawdown([100, 120, 90, 130]) == pytest.approx(25.0)

    def test_max_drawdown_floor(self):
        assert PerformanceAnalyzer.max_drawdown([100, 101, 102]) == MIN_DRAWDOWN_PCT
        assert PerformanceAnalyzer.max_drawdown([]) == MIN_DRAWDOWN_PCT

    def test_period_returns(self):
        returns = PerformanceAnalyzer.period_returns([100, 110, 99])
        np.testing.assert_allclose(returns, [0.1, -0.1])
        assert len(PerformanceAnalyzer.period_returns([100])) == 0

    def test_sharpe(self):
        analyzer = PerformanceAnalyzer(annualization_factor=1)
        assert analyzer.sharpe_ratio(np.array([0.1, 0.3])) == pytest.approx(2.0)

    def test_sharpe_annualized(self):
        analyzer = PerformanceAnalyzer(annualization_factor=4)
        assert analyzer.sharpe_ratio(np.array([0.1, 0.3])) == pytest.approx(4.0)

    def test_sharpe_none_without_variance(self):
        analyzer = PerformanceAnalyzer()
        assert analyzer.sharpe_ratio(np.array([0.25, 0.25, 0.25])) is None
        assert analyzer.sharpe_ratio(np.array([0.25])) is None

    def test_sortino(self):
        analyzer = PerformanceAnalyzer(annualization_factor=1)
        assert analyzer.sortino_ratio(np.array([0.1, -0.1, -0.3])) == pytest.approx(-1.0)

    def test_sortino_none_without_losses(self):
        analyzer = PerformanceAnalyzer()
        assert analyzer.sortino_ratio(np.array([0.1, 0.2])) is None
        # A single downside value has zero deviation
        assert analyzer.sortino_ratio(np.array([0.1, -0.2])) is None

    def test_annualized_return(self):
        analyzer = PerformanceAnalyzer(annualization_factor=4)
        # 10% per two periods compounds twice over four periods
        assert analyzer.annualized_return(100, 110, 2) == pytest.approx(21.0)
        assert analyzer.annualized_return(100, 100, 2) == pytest.approx(0.0)

    def test_annualized_return_edge_cases(self):
        analyzer = PerformanceAnalyzer(annualization_factor=1_000_000)
        assert analyzer.annualized_return(100, 110, 0) is None
        assert analyzer.annualized_return(100, 0, 5) == -100.0
        assert analyzer.annualized_return(100, 200, 1) is None

    def test_invalid_annualization(self):
        with pytest.raises(ValueError):
            PerformanceAnalyzer(annualization_factor=0)


class TestTradeMetrics:
    """Tests for trade-level breakdowns."""

    def test_win_rate_and_counts(self):
        trades = [make_trade(100), make_trade(-50), make_trade(30), make_trade(-10)]
        result = PerformanceAnalyzer().analyze(make_run([10_070], trades))

        assert result.total_trades == 4
        assert result.wins == 2
        assert result.losses == 2
        assert result.win_rate == pytest.approx(50.0)

    def test_profit_factor(self):
        result = PerformanceAnalyzer().analyze(make_run([10_050], [make_trade(100), make_trade(-50)]))
        assert result.profit_factor == pytest.approx(2.0)

    def test_profit_factor_without_losses(self):
        result = PerformanceAnalyzer().analyze(make_run([10_100], [make_trade(100)]))
        assert result.profit_factor == float("inf")
        assert result.to_dict()["profit_factor"] is None

    def test_profit_factor_without_trades(self):
        result = PerformanceAnalyzer().analyze(make_run([10_000]))
        assert result.profit_factor == 0.0
        assert result.win_rate == 0.0

    def test_max_consecutive_losses(self):
        pnls = [10, -1, -2, 5, -3, -4, -5, 1]
        result = PerformanceAnalyzer().analyze(make_run([10_001], [make_trade(p) for p in pnls]))
        assert result.max_consecutive_losses == 3

    def test_avg_holding_period(self):
        trades = [make_trade(1, holding_period=2), make_trade(1, holding_period=6)]
        result = PerformanceAnalyzer().analyze(make_run([10_002], trades))
        assert result.avg_holding_period == pytest.approx(4.0)


class TestAnalyze:
    """Tests for the full analysis of an EngineRun."""

    def test_empty_run(self):
        result = PerformanceAnalyzer().analyze(make_run([]))

        assert result.roi == 0.0
        assert result.total_trades == 0
        assert result.max_drawdown == MIN_DRAWDOWN_PCT
        assert result.sharpe_ratio is None
        assert result.sortino_ratio is None
        assert result.annualized_return is None

    def test_annualized_return_uses_equity_length(self):
        run = make_run([10_000, 10_500, 11_000, 12_100])
        result = PerformanceAnalyzer(annualization_factor=8).analyze(run)
        assert result.annualized_return == pytest.approx((1.21 ** 2 - 1) * 100)

    def test_roi_matches_cumulative_pnl(self):
        trades = [make_trade(250), make_trade(-100), make_trade(50)]
        run = make_run([10_250, 10_150, 10_200], trades)
        result = PerformanceAnalyzer().analyze(run)

        cumulative = sum(t.pnl for t in result.trades)
        assert result.roi == pytest.approx(cumulative / result.initial_balance * 100)

    def test_drawdown_includes_initial_balance(self):
        result = PerformanceAnalyzer().analyze(make_run([9_000, 9_500]))
        assert result.max_drawdown == pytest.approx(10.0)

    def test_metadata(self):
        result = PerformanceAnalyzer().analyze(make_run([10_000]), symbol="BTCUSDT", timeframe="1h", strategy="RSI")
        assert (result.symbol, result.timeframe, result.strategy) == ("BTCUSDT", "1h", "RSI")

    def test_to_dict_series(self):
        result = PerformanceAnalyzer().analyze(make_run([10_100], [make_trade(100)]))

        assert "trades" not in result.to_dict()
        data = result.to_dict(include_series=True)
        assert data["trades"][0]["side"] == "LONG"
        assert data["trades"][0]["exit_reason"] == "signal"
        assert data["equity_curve"][0] == {"time": 0, "balance": 10_100}


class TestOverfitting:
    """Tests for the train/test overfitting heuristic."""

    @pytest.mark.parametrize(
        "train,test,expected",
        [
            (10.0, 6.0, 0.6),
            (10.0, 2.0, 0.2),
            (10.0, 10.0, 1.0),
            (-1.0, -2.0, 1.0),
            (0.0, 0.0, 1.0),
            (-1.0, 5.0, 0.5),
        ],
    )
    def test_ratio(self, train, test, expected):
        assert PerformanceAnalyzer.overfitting_ratio(train, test) == pytest.approx(expected)

    def test_compare(self):
        analyzer = PerformanceAnalyzer()
        train = BacktestResult(initial_balance=10_000, final_balance=11_000, roi=10.0)
        test = BacktestResult(initial_balance=10_000, final_balance=10_200, roi=2.0)

        report = analyzer.compare(train, test)
        assert report.ratio == pytest.approx(0.2)
        assert report.overfitting_detected

        report = analyzer.compare(train, train)
        assert not report.overfitting_detected
