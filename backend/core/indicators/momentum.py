"""Momentum oscillators: RSI, Stochastic and Stochastic RSI."""

from __future__ import annotations

from core.indicators.base import Indicator, RollingWindow, require_positive_int
from core.models.indicator import StochasticValue

# %K reported when the lookback range is flat (highest == lowest).
DEGENERATE_K = 50.0


def stochastic_k(value: float, lowest: float, highest: float) -> float:
    """Position of ``value`` inside [lowest, highest], scaled to 0..100."""
    span = highest - lowest
    if span == 0:
        return DEGENERATE_K
    return (value - lowest) / span * 100.0


class RSI(Indicator):
    """Relative Strength Index using Wilder's smoothing.

    The first ``period`` price deltas seed ``avg_gain``/``avg_loss`` with a
    simple mean; afterwards ``avg = (avg * (period - 1) + x) / period``.
    The first value appears on observation ``period + 1``.

    ``avg_loss == 0`` gives 100; a window without any movement at all
    (both averages zero) gives 50.
    """

    name = "RSI"

    def __init__(self, period: int = 14):
        self.period = require_positive_int("period", period)
        self.reset()

    def reset(self) -> None:
        self._last: float | None = None
        self._count = 0
        self._gain_sum = 0.0
        self._loss_sum = 0.0
        self._avg_gain: float | None = None
        self._avg_loss: float | None = None

    def update(self, value: float) -> float | None:
        if self._last is None:
            self._last = value
            return None

        change = value - self._last
        self._last = value
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0

        if self._avg_gain is None:
            self._gain_sum += gain
            self._loss_sum += loss
            self._count += 1
            if self._count < self.period:
                return None
            self._avg_gain = self._gain_sum / self.period
            self._avg_loss = self._loss_sum / self.period
        else:
            self._avg_gain = (self._avg_gain * (self.period - 1) + gain) / self.period
            self._avg_loss = (self._avg_loss * (self.period - 1) + loss) / self.period

        return self._rsi(self._avg_gain, self._avg_loss)

    @staticmethod
    def _rsi(avg_gain: float, avg_loss: float) -> float:
        if avg_loss == 0:
            return 50.0 if avg_gain == 0 else 100.0
        rs = avg_gain / avg_loss
        return 100.0 - 100.0 / (1.0 + rs)

    @property
    def warmup(self) -> int:
        return self.period + 1

    def params(self) -> dict:
        return {"period": self.period}


class Stochastic(Indicator):
    """Stochastic oscillator.

    ``%K`` locates the close inside the rolling ``k_period`` high/low range.
    ``%D`` is the SMA of the most recent ``d_period`` raw ``%K`` values; it
    is ``None`` until that many ``%K`` values exist.
    """

    name = "Stochastic"
    inputs = ("high", "low", "close")

    def __init__(self, k_period: int = 14, d_period: int = 3):
        self.k_period = require_positive_int("k_period", k_period)
        self.d_period = require_positive_int("d_period", d_period)
        self._highs = RollingWindow(self.k_period)
        self._lows = RollingWindow(self.k_period)
        self._k_values = RollingWindow(self.d_period)

    def update(self, high: float, low: float, close: float) -> StochasticValue | None:
        self._highs.add(high)
        self._lows.add(low)
        if not self._highs.is_full:
            return None

        k = stochastic_k(close, self._lows.min, self._highs.max)
        self._k_values.add(k)
        d = self._k_values.mean if self._k_values.is_full else None
        return StochasticValue(k=k, d=d)

    @property
    def warmup(self) -> int:
        return self.k_period + self.d_period - 1

    def reset(self) -> None:
        self._highs.clear()
        self._lows.clear()
        self._k_values.clear()

    def params(self) -> dict:
        return {"k_period": self.k_period, "d_period": self.d_period}


class StochasticRSI(Indicator):
    """Stochastic formula applied to a rolling window of RSI values.

    Raw stoch-RSI is smoothed by ``k_smooth`` to give ``%K``; ``%D`` is the
    ``d_smooth`` SMA of ``%K``. Nothing is returned until
    ``rsi_period + stoch_period + max(k_smooth, d_smooth)`` observations
    have been consumed and both smoothing windows are full. With the default
    14/14/3/3 the first value arrives on the 32nd candle.
    """

    name = "StochasticRSI"

    def __init__(
        self,
        rsi_period: int = 14,
        stoch_period: int = 14,
        k_smooth: int = 3,
        d_smooth: int = 3,
    ):
        self.rsi_period = require_positive_int("rsi_period", rsi_period)
        self.stoch_period = require_positive_int("stoch_period", stoch_period)
        self.k_smooth = require_positive_int("k_smooth", k_smooth)
        self.d_smooth = require_positive_int("d_smooth", d_smooth)
        self._rsi = RSI(self.rsi_period)
        self._rsi_window = RollingWindow(self.stoch_period)
        self._raw_k = RollingWindow(self.k_smooth)
        self._k_values = RollingWindow(self.d_smooth)
        self._count = 0

    def update(self, value: float) -> StochasticValue | None:
        self._count += 1
        rsi = self._rsi.update(value)
        if rsi is None:
            return None

        self._rsi_window.add(rsi)
        if not self._rsi_window.is_full:
            return None

        self._raw_k.add(stochastic_k(rsi, self._rsi_window.min, self._rsi_window.max))
        if not self._raw_k.is_full:
            return None

        self._k_values.add(self._raw_k.mean)
        if not self._k_values.is_full or self._count < self.warmup:
            return None
        return StochasticValue(k=self._raw_k.mean, d=self._k_values.mean)

    @property
    def warmup(self) -> int:
        required = self.rsi_period + self.stoch_period + max(self.k_smooth, self.d_smooth) + 1
        # When both smoothing windows exceed 3 they fill after the required count.
        chained = self.rsi_period + self.stoch_period + self.k_smooth + self.d_smooth - 2
        return max(required, chained)

    def reset(self) -> None:
        self._rsi.reset()
        self._rsi_window.clear()
        self._raw_k.clear()
        self._k_values.clear()
        self._count = 0

    def params(self) -> dict:
        return {
            "rsi_period": self.rsi_period,
            "stoch_period": self.stoch_period,
            "k_smooth": self.k_smooth,
            "d_smooth": self.d_smooth,
        }
