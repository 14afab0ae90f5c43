"""Candle sources for the backtesting system."""

from backtest.storage.candle_source import (
    CandleSource,
    CsvCandleSource,
    InMemoryCandleSource,
    load_csv,
)

__all__ = ["CandleSource", "CsvCandleSource", "InMemoryCandleSource", "load_csv"]
