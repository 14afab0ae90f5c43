"""Indicator output models."""

from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class MACDValue(NamedTuple):
    macd: float
    signal: float | None
    histogram: float | None


class BollingerValue(NamedTuple):
    upper: float
    middle: float
    lower: float


class StochasticValue(NamedTuple):
    k: float
    d: float | None


# Flat value keys of an IndicatorRecord, grouped by the indicator that owns them.
INDICATOR_VALUE_KEYS: dict[str, tuple[str, ...]] = {
    "SMA": ("sma_fast", "sma_slow"),
    "EMA": ("ema_fast", "ema_slow"),
    "RSI": ("rsi",),
    "MACD": ("macd", "macd_signal", "macd_hist"),
    "BollingerBands": ("bb_upper", "bb_middle", "bb_lower"),
    "Stochastic": ("stoch_k", "stoch_d"),
    "StochasticRSI": ("stoch_rsi_k", "stoch_rsi_d"),
    "PSAR": ("psar",),
}

VALUE_KEYS: tuple[str, ...] = tuple(k for keys in INDICATOR_VALUE_KEYS.values() for k in keys)


class IndicatorRecord(BaseModel):
    """Indicator values for one candle.

    ``values`` always holds every key in :data:`VALUE_KEYS`; a key maps to
    ``None`` before its indicator has warmed up or when the candle was
    invalid for it.
    """

    model_config = ConfigDict(frozen=True)

    time: int
    close: float | None = None
    values: dict[str, float | None] = Field(default_factory=dict)

    def get(self, key: str) -> float | None:
        return self.values.get(key)

    def __getitem__(self, key: str) -> float | None:
        return self.values[key]

    @property
    def is_complete(self) -> bool:
        """True once every indicator has produced a value."""
        return all(self.values.get(k) is not None for k in VALUE_KEYS)

    @classmethod
    def empty(cls, time: int, close: float | None = None) -> IndicatorRecord:
        return cls(time=time, close=close, values={k: None for k in VALUE_KEYS})
