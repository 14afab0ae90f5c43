"""Volatility indicators: Bollinger Bands."""

from __future__ import annotations

import math

from core.errors import ConfigurationError
from core.indicators.base import Indicator
from core.indicators.trend import SMA
from core.models.indicator import BollingerValue


class BollingerBands(Indicator):
    """Bollinger Bands around an SMA middle band.

    ``std`` is the population standard deviation of the window around the
    middle band, so ``upper >= middle >= lower`` whenever ``k >= 0``.
    """

    name = "BollingerBands"

    def __init__(self, period: int = 20, k: float = 2.0):
        self._sma = SMA(period)
        self.period = self._sma.period
        if isinstance(k, bool) or not isinstance(k, (int, float)) or not math.isfinite(k) or k < 0:
            raise ConfigurationError(f"Bollinger k must be finite and >= 0, got {k!r}")
        self.k = float(k)

    def update(self, value: float) -> BollingerValue | None:
        middle = self._sma.update(value)
        if middle is None:
            return None

        window = self._sma.window.values
        variance = sum((p - middle) ** 2 for p in window) / self.period
        offset = self.k * math.sqrt(variance)
        return BollingerValue(upper=middle + offset, middle=middle, lower=middle - offset)

    @property
    def warmup(self) -> int:
        return self.period

    def reset(self) -> None:
        self._sma.reset()

    def params(self) -> dict:
        return {"period": self.period, "k": self.k}
