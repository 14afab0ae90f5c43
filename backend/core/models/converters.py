"""Ingestion-boundary converters.

Upstream sources deliver timestamps as seconds or milliseconds, as ints,
floats, numeric strings, ``Decimal`` or ``datetime``. Everything is
normalised to integer epoch milliseconds here, before candles enter the
engine.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping

from core.errors import InvalidCandleError
from core.models.candle import Candle, CandleSeries

logger = logging.getLogger(__name__)

# Anything below this is treated as epoch seconds (1e11 ms is March 1973,
# 1e11 s is far beyond any plausible market data).
_SECONDS_CUTOFF = 100_000_000_000


# =============================================================================
# Timestamp conversion helpers
# =============================================================================

def datetime_to_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive datetimes are UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def ms_to_datetime(ms: int) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def normalize_timestamp(value: Any) -> int:
    """Normalise a timestamp of any supported representation to epoch ms.

    Raises:
        InvalidCandleError: If the value is missing, non-numeric or negative.
    """
    if isinstance(value, datetime):
        return datetime_to_ms(value)
    if isinstance(value, bool) or value is None:
        raise InvalidCandleError(f"Invalid timestamp: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            number = Decimal(text)
        except ArithmeticError:
            try:
                return datetime_to_ms(datetime.fromisoformat(text.replace("Z", "+00:00")))
            except ValueError:
                raise InvalidCandleError(f"Invalid timestamp: {value!r}") from None
    elif isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    else:
        raise InvalidCandleError(f"Invalid timestamp type: {type(value).__name__}")

    if not number.is_finite() or number < 0:
        raise InvalidCandleError(f"Invalid timestamp: {value!r}")
    if number < _SECONDS_CUTOFF:
        number *= 1000
    return int(number)


# =============================================================================
# Raw row conversions
# =============================================================================

def _to_float(value: Any) -> float:
    if value is None or value == "":
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def candle_from_mapping(row: Mapping[str, Any]) -> Candle:
    """Build a Candle from a loosely typed row.

    Accepts ``time``/``timestamp``/``open_time`` for the time key. Missing or
    non-numeric prices become NaN so that the affected indicators emit
    ``None`` for that candle instead of aborting the series.
    """
    for key in ("time", "timestamp", "open_time"):
        if key in row:
            raw_time = row[key]
            break
    else:
        raise InvalidCandleError("Row has no time field")

    return Candle(
        time=normalize_timestamp(raw_time),
        open=_to_float(row.get("open")),
        high=_to_float(row.get("high")),
        low=_to_float(row.get("low")),
        close=_to_float(row.get("close")),
        volume=_to_float(row.get("volume", 0.0)),
    )


def series_from_rows(
    rows: Iterable[Mapping[str, Any]],
    symbol: str = "",
    timeframe: str = "",
    strict: bool = False,
) -> CandleSeries:
    """Convert raw rows to a CandleSeries, sorting by normalised time.

    Rows whose timestamp cannot be parsed are dropped with a warning;
    ``strict=True`` raises InvalidCandleError on the first one instead.
    """
    candles: list[Candle] = []
    skipped = 0
    for row in rows:
        try:
            candles.append(candle_from_mapping(row))
        except InvalidCandleError:
            if strict:
                raise
            skipped += 1
    if skipped:
        logger.warning(f"{symbol} {timeframe}: skipped {skipped} rows with invalid timestamps")
    candles.sort(key=lambda c: c.time)
    return CandleSeries.from_candles(candles, symbol=symbol, timeframe=timeframe, strict=strict)
