"""Trend indicators: SMA, EMA, MACD and Parabolic SAR."""

from __future__ import annotations

from collections import deque

from core.errors import ConfigurationError
from core.indicators.base import (
    Indicator,
    RollingWindow,
    require_positive_float,
    require_positive_int,
)
from core.models.indicator import MACDValue


class SMA(Indicator):
    """Simple moving average of the last ``period`` closes (rolling sum)."""

    name = "SMA"

    def __init__(self, period: int = 20):
        self.period = require_positive_int("period", period)
        self._window = RollingWindow(self.period)

    def update(self, value: float) -> float | None:
        self._window.add(value)
        if not self._window.is_full:
            return None
        return self._window.mean

    @property
    def window(self) -> RollingWindow:
        return self._window

    @property
    def warmup(self) -> int:
        return self.period

    def reset(self) -> None:
        self._window.clear()

    def params(self) -> dict:
        return {"period": self.period}


class EMA(Indicator):
    """Exponential moving average.

    Seeded with the SMA of the first ``period`` values, so the first value
    appears on observation ``period``. After that:
    ``ema = value * m + prev * (1 - m)`` with ``m = 2 / (period + 1)``.
    """

    name = "EMA"

    def __init__(self, period: int = 20):
        self.period = require_positive_int("period", period)
        self.multiplier = 2.0 / (self.period + 1)
        self._seed_sum = 0.0
        self._count = 0
        self._value: float | None = None

    def update(self, value: float) -> float | None:
        if self._value is None:
            self._seed_sum += value
            self._count += 1
            if self._count < self.period:
                return None
            self._value = self._seed_sum / self.period
            return self._value

        self._value = value * self.multiplier + self._value * (1 - self.multiplier)
        return self._value

    @property
    def value(self) -> float | None:
        return self._value

    @property
    def warmup(self) -> int:
        return self.period

    def reset(self) -> None:
        self._seed_sum = 0.0
        self._count = 0
        self._value = None

    def params(self) -> dict:
        return {"period": self.period}


class MACD(Indicator):
    """Moving Average Convergence Divergence.

    ``macd = EMA(fast) - EMA(slow)``, ``signal = EMA(signal_period)`` of the
    macd series and ``histogram = macd - signal``. While the signal EMA is
    still warming up a partial value with ``signal``/``histogram`` set to
    ``None`` is returned.
    """

    name = "MACD"

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        self.fast = require_positive_int("fast", fast)
        self.slow = require_positive_int("slow", slow)
        self.signal = require_positive_int("signal", signal)
        if self.fast >= self.slow:
            raise ConfigurationError(f"MACD fast period ({fast}) must be smaller than slow period ({slow})")
        self._fast_ema = EMA(self.fast)
        self._slow_ema = EMA(self.slow)
        self._signal_ema = EMA(self.signal)

    def update(self, value: float) -> MACDValue | None:
        fast = self._fast_ema.update(value)
        slow = self._slow_ema.update(value)
        if fast is None or slow is None:
            return None

        macd = fast - slow
        signal = self._signal_ema.update(macd)
        histogram = macd - signal if signal is not None else None
        return MACDValue(macd=macd, signal=signal, histogram=histogram)

    @property
    def warmup(self) -> int:
        return self.slow + self.signal - 1

    def reset(self) -> None:
        self._fast_ema.reset()
        self._slow_ema.reset()
        self._signal_ema.reset()

    def params(self) -> dict:
        return {"fast": self.fast, "slow": self.slow, "signal": self.signal}


class ParabolicSAR(Indicator):
    """Wilder's Parabolic Stop And Reverse.

    The first candle seeds an uptrend with ``sar = low`` and ``ep = high``.
    Each step moves ``sar += af * (ep - sar)``, clamps it so that it never
    enters the prior two bars' range, and reverses the trend when price
    penetrates it. On reversal the SAR jumps to the previous extreme point
    and ``af`` resets to ``step``; ``af`` grows by ``step`` (capped at
    ``max_step``) every time a new extreme is made.
    """

    name = "PSAR"
    inputs = ("high", "low")

    def __init__(self, step: float = 0.02, max_step: float = 0.2):
        self.step = require_positive_float("step", step)
        self.max_step = require_positive_float("max_step", max_step)
        if self.step > self.max_step:
            raise ConfigurationError(f"PSAR step ({step}) must not exceed max_step ({max_step})")
        self.reset()

    def reset(self) -> None:
        self._sar: float | None = None
        self._ep = 0.0
        self._af = self.step
        self._uptrend = True
        self._highs: deque[float] = deque(maxlen=2)
        self._lows: deque[float] = deque(maxlen=2)

    def update(self, high: float, low: float) -> float:
        if self._sar is None:
            self._sar = low
            self._ep = high
            self._highs.append(high)
            self._lows.append(low)
            return self._sar

        sar = self._sar + self._af * (self._ep - self._sar)

        if self._uptrend:
            sar = min(sar, *self._lows)
            if low < sar:
                self._uptrend = False
                sar = self._ep
                self._ep = low
                self._af = self.step
            elif high > self._ep:
                self._ep = high
                self._af = min(self._af + self.step, self.max_step)
        else:
            sar = max(sar, *self._highs)
            if high > sar:
                self._uptrend = True
                sar = self._ep
                self._ep = high
                self._af = self.step
            elif low < self._ep:
                self._ep = low
                self._af = min(self._af + self.step, self.max_step)

        self._sar = sar
        self._highs.append(high)
        self._lows.append(low)
        return sar

    @property
    def is_uptrend(self) -> bool:
        return self._uptrend

    @property
    def acceleration(self) -> float:
        return self._af

    @property
    def extreme_point(self) -> float:
        return self._ep

    @property
    def warmup(self) -> int:
        return 1

    def params(self) -> dict:
        return {"step": self.step, "max_step": self.max_step}
