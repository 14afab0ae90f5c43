"""Candle (OHLCV) data models."""

from __future__ import annotations

import logging
import math
from typing import Iterator, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.errors import InvalidCandleError

logger = logging.getLogger(__name__)


class Candle(BaseModel):
    """One time-bucketed OHLCV record.

    ``time`` is the bucket open time in epoch milliseconds. Timestamps are
    normalised to milliseconds before a candle is built (see
    ``core.models.converters``); the engine never converts them.
    """

    model_config = ConfigDict(frozen=True)

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def is_valid(self) -> bool:
        """True if every OHLC value is a finite number."""
        return all(math.isfinite(v) for v in (self.open, self.high, self.low, self.close))

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def range_size(self) -> float:
        """Get the full range (high - low) of the candle."""
        return self.high - self.low


class CandleSeries(BaseModel):
    """Immutable, strictly time-ordered candles for one (symbol, timeframe).

    With ``strict=True`` an out-of-order or duplicate timestamp raises
    :class:`InvalidCandleError`. Otherwise the offending candles are dropped
    and a warning is logged.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = ""
    timeframe: str = ""
    candles: tuple[Candle, ...] = Field(default_factory=tuple)
    strict: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _enforce_order(cls, data):
        if not isinstance(data, dict):
            return data
        raw = data.get("candles") or ()
        strict = data.get("strict", False)
        ordered: list = []
        last_time: int | None = None
        dropped = 0
        for item in raw:
            candle = item if isinstance(item, Candle) else Candle.model_validate(item)
            if last_time is not None and candle.time <= last_time:
                if strict:
                    raise InvalidCandleError(
                        f"Candle time {candle.time} is not after {last_time}",
                        time=candle.time,
                    )
                dropped += 1
                continue
            ordered.append(candle)
            last_time = candle.time
        if dropped:
            logger.warning(
                f"{data.get('symbol', '')} {data.get('timeframe', '')}: "
                f"dropped {dropped} out-of-order candles"
            )
        return {**data, "candles": tuple(ordered)}

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:  # type: ignore[override]
        return iter(self.candles)

    def __getitem__(self, index):
        return self.candles[index]

    @property
    def closes(self) -> list[float]:
        return [c.close for c in self.candles]

    def slice(self, start: int | None = None, stop: int | None = None) -> CandleSeries:
        """Return a sub-series sharing symbol and timeframe."""
        return CandleSeries(
            symbol=self.symbol,
            timeframe=self.timeframe,
            candles=self.candles[start:stop],
        )

    def split(self, fraction: float = 0.8) -> tuple[CandleSeries, CandleSeries]:
        """Split chronologically into (head, tail) at ``fraction`` of the length."""
        if not 0.0 < fraction < 1.0:
            raise ValueError(f"split fraction must be in (0, 1), got {fraction}")
        index = int(len(self.candles) * fraction)
        return self.slice(None, index), self.slice(index, None)

    @classmethod
    def from_candles(
        cls,
        candles: Sequence[Candle],
        symbol: str = "",
        timeframe: str = "",
        strict: bool = False,
    ) -> CandleSeries:
        return cls(symbol=symbol, timeframe=timeframe, candles=tuple(candles), strict=strict)
