"""Backtesting system for the weighted indicator consensus.

Only depends on core/ for indicators, signals and models.

Usage:
    python -m backtest --csv data/BTCUSDT_1h.csv
    python -m backtest --csv data/BTCUSDT_1h.csv --compare
"""

from backtest.engine import BacktestEngine, EngineRun, ExitReason, Trade
from backtest.runner import BacktestRunner, IndicatorComparison, SymbolOutcome
from backtest.stats import BacktestResult, OverfittingReport, PerformanceAnalyzer

__all__ = [
    "BacktestEngine",
    "EngineRun",
    "ExitReason",
    "Trade",
    "BacktestRunner",
    "IndicatorComparison",
    "SymbolOutcome",
    "BacktestResult",
    "OverfittingReport",
    "PerformanceAnalyzer",
]
