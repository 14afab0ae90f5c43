"""Performance statistics for backtest runs.

ROI, annualized return, win rate, max drawdown, Sharpe/Sortino and
trade-level breakdowns are derived from an engine run's trade list and
equity curve. The overfitting heuristic compares the ROI of two
independent runs on a chronological train/test split.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np

from backtest.engine import EngineRun, EquityPoint, Trade

logger = logging.getLogger(__name__)

# Smallest drawdown ever reported, in percent.
MIN_DRAWDOWN_PCT = 0.01

# Below this test/train ROI ratio a strategy is flagged as overfit.
OVERFIT_RATIO_THRESHOLD = 0.5


@dataclass
class OverfittingReport:
    train_roi: float
    test_roi: float
    ratio: float
    overfitting_detected: bool
    train_candles: int = 0
    test_candles: int = 0


@dataclass
class BacktestResult:
    """Complete results of one backtest invocation."""

    initial_balance: float
    final_balance: float
    roi: float = 0.0
    win_rate: float = 0.0
    max_drawdown: float = MIN_DRAWDOWN_PCT
    sharpe_ratio: float | None = None
    sortino_ratio: float | None = None
    annualized_return: float | None = None

    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    profit_factor: float = 0.0
    max_consecutive_losses: int = 0
    avg_holding_period: float = 0.0

    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    signal_counts: dict[str, int] = field(default_factory=dict)

    overfitting_detected: bool | None = None
    overfitting: OverfittingReport | None = None

    # Metadata
    symbol: str = ""
    timeframe: str = ""
    strategy: str = ""

    def to_dict(self, include_series: bool = False) -> dict[str, Any]:
        """JSON-friendly representation (trades/equity only on request)."""
        data = asdict(self)
        if not include_series:
            data.pop("trades")
            data.pop("equity_curve")
        else:
            for trade in data["trades"]:
                trade["side"] = trade["side"].name
                trade["exit_reason"] = trade["exit_reason"].value
        if math.isinf(data["profit_factor"]):
            data["profit_factor"] = None
        return data


class PerformanceAnalyzer:
    """Derive performance metrics from an EngineRun."""

    def __init__(self, annualization_factor: float = 252 * 24):
        if not annualization_factor > 0:
            raise ValueError(f"annualization_factor must be > 0, got {annualization_factor}")
        self.annualization_factor = annualization_factor

    def analyze(self, run: EngineRun, symbol: str = "", timeframe: str = "", strategy: str = "") -> BacktestResult:
        result = BacktestResult(
            initial_balance=run.initial_balance,
            final_balance=run.final_balance,
            trades=run.trades,
            equity_curve=run.equity_curve,
            signal_counts=run.signal_counts,
            symbol=symbol,
            timeframe=timeframe,
            strategy=strategy,
        )
        result.roi = self.roi(run.initial_balance, run.final_balance)
        self._calc_trades(result)
        balances = [run.initial_balance] + [p.balance for p in run.equity_curve]
        result.max_drawdown = self.max_drawdown(balances)
        returns = self.period_returns(balances)
        result.sharpe_ratio = self.sharpe_ratio(returns)
        result.sortino_ratio = self.sortino_ratio(returns)
        result.annualized_return = self.annualized_return(
            run.initial_balance, run.final_balance, len(run.equity_curve)
        )
        return result

    # ------------------------------------------------------------------
    # Return metrics
    # ------------------------------------------------------------------

    @staticmethod
    def roi(initial_balance: float, final_balance: float) -> float:
        """Return on investment in percent."""
        return (final_balance - initial_balance) / initial_balance * 100

    @staticmethod
    def max_drawdown(balances: list[float]) -> float:
        """Largest peak-to-trough decline in percent, floored at MIN_DRAWDOWN_PCT."""
        peak = None
        worst = 0.0
        for balance in balances:
            if peak is None or balance > peak:
                peak = balance
            if peak > 0:
                worst = max(worst, (peak - balance) / peak)
        return max(worst * 100, MIN_DRAWDOWN_PCT)

    @staticmethod
    def period_returns(balances: list[float]) -> np.ndarray:
        arr = np.asarray(balances, dtype=np.float64)
        if len(arr) < 2:
            return np.empty(0)
        prev = arr[:-1]
        with np.errstate(divide="ignore", invalid="ignore"):
            returns = np.where(prev != 0, (arr[1:] - prev) / prev, 0.0)
        return returns

    def annualized_return(self, initial_balance: float, final_balance: float, periods: int) -> float | None:
        """Compound ROI scaled to ``annualization_factor`` periods, in percent.

        ``None`` for an empty run or when the compounding overflows a float.
        """
        if periods <= 0 or initial_balance <= 0:
            return None
        growth = final_balance / initial_balance
        if growth <= 0:
            return -100.0
        try:
            return (growth ** (self.annualization_factor / periods) - 1) * 100
        except OverflowError:
            return None

    def sharpe_ratio(self, returns: np.ndarray) -> float | None:
        if len(returns) < 2:
            return None
        std = float(np.std(returns))
        if std == 0 or not math.isfinite(std):
            return None
        return float(np.mean(returns)) / std * math.sqrt(self.annualization_factor)

    def sortino_ratio(self, returns: np.ndarray) -> float | None:
        downside = returns[returns < 0]
        if len(downside) == 0:
            return None
        std = float(np.std(downside))
        if std == 0 or not math.isfinite(std):
            return None
        return float(np.mean(returns)) / std * math.sqrt(self.annualization_factor)

    # ------------------------------------------------------------------
    # Trade metrics
    # ------------------------------------------------------------------

    def _calc_trades(self, result: BacktestResult) -> None:
        trades = result.trades
        result.total_trades = len(trades)
        result.wins = sum(1 for t in trades if t.is_win)
        result.losses = result.total_trades - result.wins
        result.win_rate = result.wins / result.total_trades * 100 if trades else 0.0

        gross_profit = sum(t.pnl for t in trades if t.pnl > 0)
        gross_loss = -sum(t.pnl for t in trades if t.pnl < 0)
        if gross_loss > 0:
            result.profit_factor = gross_profit / gross_loss
        else:
            result.profit_factor = float("inf") if gross_profit > 0 else 0.0

        streak = 0
        for trade in trades:
            streak = 0 if trade.is_win else streak + 1
            result.max_consecutive_losses = max(result.max_consecutive_losses, streak)

        if trades:
            result.avg_holding_period = sum(t.holding_period for t in trades) / len(trades)

    # ------------------------------------------------------------------
    # Overfitting heuristic
    # ------------------------------------------------------------------

    @staticmethod
    def overfitting_ratio(train_roi: float, test_roi: float) -> float:
        """test/train ROI ratio.

        A non-positive train ROI would flip the sign or divide by zero, so:
        both non-positive -> 1.0, only train non-positive -> 0.5.
        """
        if train_roi <= 0:
            return 1.0 if test_roi <= 0 else 0.5
        return test_roi / train_roi

    def compare(self, train: BacktestResult, test: BacktestResult) -> OverfittingReport:
        ratio = self.overfitting_ratio(train.roi, test.roi)
        report = OverfittingReport(
            train_roi=train.roi,
            test_roi=test.roi,
            ratio=ratio,
            overfitting_detected=ratio < OVERFIT_RATIO_THRESHOLD,
            train_candles=len(train.equity_curve),
            test_candles=len(test.equity_curve),
        )
        logger.info(
            f"Train ROI: {train.roi:.2f}% | Test ROI: {test.roi:.2f}% | "
            f"ratio={ratio:.2f} overfit={'YES' if report.overfitting_detected else 'NO'}"
        )
        return report
