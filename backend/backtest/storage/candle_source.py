"""Candle data sources for backtesting.

The engine never fetches data itself. A source hands over a complete,
ordered series before a run starts.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Protocol

from core.models.candle import Candle, CandleSeries
from core.models.converters import series_from_rows

logger = logging.getLogger(__name__)


class CandleSource(Protocol):
    """Protocol for candle data access."""

    async def get_series(self, symbol: str, timeframe: str) -> CandleSeries: ...


class InMemoryCandleSource:
    """Serve pre-loaded series keyed by (symbol, timeframe)."""

    def __init__(self, series: dict[tuple[str, str], list[Candle] | CandleSeries] | None = None):
        self._series: dict[tuple[str, str], CandleSeries] = {}
        for (symbol, timeframe), candles in (series or {}).items():
            self.add(symbol, timeframe, candles)

    def add(self, symbol: str, timeframe: str, candles: list[Candle] | CandleSeries) -> None:
        if not isinstance(candles, CandleSeries):
            candles = CandleSeries.from_candles(candles, symbol=symbol, timeframe=timeframe)
        self._series[(symbol, timeframe)] = candles

    async def get_series(self, symbol: str, timeframe: str) -> CandleSeries:
        series = self._series.get((symbol, timeframe))
        if series is None:
            logger.warning(f"No candles for {symbol} {timeframe}")
            return CandleSeries(symbol=symbol, timeframe=timeframe)
        return series


class CsvCandleSource:
    """Read ``<root>/<SYMBOL>_<timeframe>.csv`` files.

    Columns: ``time`` (or ``timestamp``/``open_time``; seconds or
    milliseconds), ``open``, ``high``, ``low``, ``close``, ``volume``.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, symbol: str, timeframe: str) -> Path:
        return self.root / f"{symbol}_{timeframe}.csv"

    async def get_series(self, symbol: str, timeframe: str) -> CandleSeries:
        return load_csv(self.path_for(symbol, timeframe), symbol=symbol, timeframe=timeframe)


def load_csv(path: str | Path, symbol: str = "", timeframe: str = "") -> CandleSeries:
    """Load one OHLCV CSV file into a CandleSeries."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Candle file not found: {path}")
        return CandleSeries(symbol=symbol, timeframe=timeframe)

    with path.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    series = series_from_rows(rows, symbol=symbol, timeframe=timeframe)
    logger.info(f"Loaded {len(series):,} candles from {path}")
    return series
