"""Report formatting for backtest results.

Outputs results to console (formatted tables) and JSON files.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum

import numpy as np

from core.models.converters import ms_to_datetime

from backtest.runner import IndicatorComparison, SymbolOutcome
from backtest.stats import OVERFIT_RATIO_THRESHOLD, BacktestResult


class ResultEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, np.generic):
            return obj.item()
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def _fmt_ratio(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def _fmt_time(ms: int) -> str:
    return f"{ms_to_datetime(ms):%Y-%m-%d %H:%M}"


class ReportFormatter:
    """Format backtest results for display and export."""

    @staticmethod
    def print_console(result: BacktestResult) -> None:
        """Print formatted report to console."""
        print("\n" + "=" * 70)
        print(f"  BACKTEST RESULTS — {result.strategy or 'Consensus'}")
        print("=" * 70)
        if result.symbol:
            print(f"  Series: {result.symbol} {result.timeframe}")
        if result.equity_curve:
            first, last = result.equity_curve[0].time, result.equity_curve[-1].time
            print(f"  Period: {_fmt_time(first)} → {_fmt_time(last)}")
            print(f"  Candles: {len(result.equity_curve):,}")

        print("\n" + "-" * 70)
        print("  PERFORMANCE")
        print("-" * 70)
        print(f"  Initial balance:  {result.initial_balance:,.2f}")
        print(f"  Final balance:    {result.final_balance:,.2f}")
        print(f"  ROI:              {result.roi:+.2f}%")
        if result.annualized_return is not None:
            print(f"  Annualized:       {result.annualized_return:+.2f}%")
        print(f"  Max drawdown:     {result.max_drawdown:.2f}%")
        print(f"  Sharpe ratio:     {_fmt_ratio(result.sharpe_ratio)}")
        print(f"  Sortino ratio:    {_fmt_ratio(result.sortino_ratio)}")

        print("\n" + "-" * 70)
        print("  TRADES")
        print("-" * 70)
        print(f"  Total trades:     {result.total_trades}")
        print(f"  Wins / Losses:    {result.wins} / {result.losses}")
        print(f"  Win rate:         {result.win_rate:.1f}%")
        pf = "inf" if result.profit_factor == float("inf") else f"{result.profit_factor:.2f}"
        print(f"  Profit factor:    {pf}")
        print(f"  Max loss streak:  {result.max_consecutive_losses}")
        print(f"  Avg holding:      {result.avg_holding_period:.1f} candles")

        if result.signal_counts:
            print("\n" + "-" * 70)
            print("  SIGNALS")
            print("-" * 70)
            for name, count in sorted(result.signal_counts.items()):
                print(f"  {name:<14} {count:>8}")

        if result.overfitting is not None:
            o = result.overfitting
            print("\n" + "-" * 70)
            print("  OVERFITTING CHECK")
            print("-" * 70)
            print(f"  Train ROI:        {o.train_roi:+.2f}% ({o.train_candles} candles)")
            print(f"  Test ROI:         {o.test_roi:+.2f}% ({o.test_candles} candles)")
            verdict = "DETECTED" if o.overfitting_detected else "not detected"
            print(f"  Ratio:            {o.ratio:.2f} (threshold {OVERFIT_RATIO_THRESHOLD}) → {verdict}")

        print("\n" + "=" * 70)

    @staticmethod
    def print_comparison(comparison: IndicatorComparison) -> None:
        """Print single-indicator results ranked by ROI."""
        print("\n" + "=" * 70)
        print(f"  INDICATOR COMPARISON — {comparison.symbol} {comparison.timeframe}")
        print("=" * 70)
        print(f"  {'#':<3} {'Strategy':<16} {'ROI':>9} {'Trades':>7} {'Win%':>7} {'MaxDD':>8} {'Sharpe':>8}")
        for rank, (name, r) in enumerate(comparison.ranking(), start=1):
            print(
                f"  {rank:<3} {name:<16} {r.roi:>+8.2f}% {r.total_trades:>7} "
                f"{r.win_rate:>6.1f}% {r.max_drawdown:>7.2f}% {_fmt_ratio(r.sharpe_ratio):>8}"
            )
        print("\n" + "=" * 70)

    @staticmethod
    def print_outcomes(outcomes: list[SymbolOutcome]) -> None:
        """Print one summary line per series of a multi-symbol run."""
        print("\n" + "=" * 70)
        print("  BY SYMBOL")
        print("=" * 70)
        print(f"  {'Symbol':<12} {'TF':<6} {'ROI':>9} {'Trades':>7} {'Win%':>7} {'Status':>10}")
        for o in outcomes:
            if o.result is None:
                print(f"  {o.symbol:<12} {o.timeframe:<6} {'-':>9} {'-':>7} {'-':>7} {'FAILED':>10}  {o.error}")
                continue
            r = o.result
            status = "OVERFIT" if r.overfitting_detected else "OK"
            print(
                f"  {o.symbol:<12} {o.timeframe:<6} {r.roi:>+8.2f}% {r.total_trades:>7} "
                f"{r.win_rate:>6.1f}% {status:>10}"
            )
        print("\n" + "=" * 70)

    @staticmethod
    def to_dict(result: BacktestResult, include_series: bool = False) -> dict:
        """Convert results to JSON-serializable dict."""
        return result.to_dict(include_series=include_series)

    @staticmethod
    def comparison_to_dict(comparison: IndicatorComparison) -> dict:
        return {
            "symbol": comparison.symbol,
            "timeframe": comparison.timeframe,
            "best": comparison.best,
            "ranking": [
                {"strategy": name, **result.to_dict()} for name, result in comparison.ranking()
            ],
        }

    @staticmethod
    def save_json(data: dict | list, filepath: str) -> None:
        """Save a report dict to a JSON file."""
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, cls=ResultEncoder)
        print(f"\nResults saved to {filepath}")
