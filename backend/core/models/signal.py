"""Signal and consensus data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Direction(int, Enum):
    """Trade direction."""

    LONG = 1
    SHORT = -1


class Signal(str, Enum):
    """Closed set of trading signals.

    Each member carries a numeric score; ordering follows the score so that
    ``Signal.STRONG_SELL < Signal.SELL < ... < Signal.STRONG_BUY``.
    """

    STRONG_BUY = "strong_buy"
    BUY = "buy"
    NEUTRAL = "neutral"
    SELL = "sell"
    STRONG_SELL = "strong_sell"

    @property
    def score(self) -> int:
        return _SCORES[self]

    @property
    def is_buy(self) -> bool:
        return self.score > 0

    @property
    def is_sell(self) -> bool:
        return self.score < 0

    @classmethod
    def from_score(cls, score: float) -> Signal:
        """Map a numeric score back onto the closest signal (clamped to ±2)."""
        if score >= 2:
            return cls.STRONG_BUY
        if score >= 1:
            return cls.BUY
        if score <= -2:
            return cls.STRONG_SELL
        if score <= -1:
            return cls.SELL
        return cls.NEUTRAL

    @classmethod
    def parse(cls, value: str | Signal) -> Signal:
        """Parse a boundary string such as ``"Strong_Buy"``.

        Raises:
            ValueError: If the value is not one of the five canonical signals.
        """
        if isinstance(value, Signal):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown signal: {value!r}") from None

    def __lt__(self, other):
        if not isinstance(other, Signal):
            return NotImplemented
        return self.score < other.score

    def __le__(self, other):
        if not isinstance(other, Signal):
            return NotImplemented
        return self.score <= other.score

    def __gt__(self, other):
        if not isinstance(other, Signal):
            return NotImplemented
        return self.score > other.score

    def __ge__(self, other):
        if not isinstance(other, Signal):
            return NotImplemented
        return self.score >= other.score


_SCORES: dict[Signal, int] = {
    Signal.STRONG_BUY: 2,
    Signal.BUY: 1,
    Signal.NEUTRAL: 0,
    Signal.SELL: -1,
    Signal.STRONG_SELL: -2,
}


class CategoryScores(BaseModel):
    """Weighted score sums per indicator category."""

    model_config = ConfigDict(frozen=True)

    trend: float = 0.0
    momentum: float = 0.0
    volatility: float = 0.0

    @property
    def total(self) -> float:
        return self.trend + self.momentum + self.volatility


class AggregatedSignal(BaseModel):
    """Weighted consensus of all indicator signals for one candle.

    A neutral decision always carries zero strength and zero normalized
    score; the validator overrides whatever was passed in.
    """

    model_config = ConfigDict(frozen=True)

    signal: Signal = Signal.NEUTRAL
    strength: float = Field(default=0.0, ge=0.0, le=1.0)
    normalized: float = Field(default=0.0, ge=-1.0, le=1.0)
    category_scores: CategoryScores = Field(default_factory=CategoryScores)
    final_score: float = 0.0
    time: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _neutral_has_no_strength(cls, data):
        if isinstance(data, dict) and Signal.parse(data.get("signal", Signal.NEUTRAL)) is Signal.NEUTRAL:
            data = {**data, "strength": 0.0, "normalized": 0.0}
        return data

    @property
    def score(self) -> int:
        return self.signal.score


def signal_score(value: Signal | AggregatedSignal | str | float | int | None) -> float:
    """Numeric score of anything the backtest engine accepts as a signal."""
    if value is None:
        return 0.0
    if isinstance(value, AggregatedSignal):
        return float(value.signal.score)
    if isinstance(value, Signal):
        return float(value.score)
    if isinstance(value, str):
        return float(Signal.parse(value).score)
    return float(value)
