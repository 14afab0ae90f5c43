"""Batch indicator helpers (pure math, no I/O).

Each helper replays a sequence through the matching incremental
calculator, so the recurrence for every indicator lives in exactly one
place. Results are ``numpy`` float arrays of the input length with NaN
wherever the calculator had no value yet.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from core.indicators.base import RollingWindow, require_positive_int
from core.indicators.momentum import RSI, Stochastic, StochasticRSI
from core.indicators.trend import EMA, MACD, SMA, ParabolicSAR
from core.indicators.volatility import BollingerBands


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _replay(values: np.ndarray, update: Callable[[float], float | None]) -> np.ndarray:
    result = np.full(len(values), np.nan)
    for i, v in enumerate(values):
        if not np.isfinite(v):
            continue
        out = update(float(v))
        if out is not None:
            result[i] = out
    return result


def sma(values: Sequence[float], period: int) -> np.ndarray:
    """Simple moving average."""
    return _replay(_as_array(values), SMA(period).update)


def ema(values: Sequence[float], period: int) -> np.ndarray:
    """Exponential moving average, SMA-seeded."""
    return _replay(_as_array(values), EMA(period).update)


def rsi(values: Sequence[float], period: int = 14) -> np.ndarray:
    """Wilder RSI."""
    return _replay(_as_array(values), RSI(period).update)


def highest(values: Sequence[float], period: int) -> np.ndarray:
    """Highest value over the lookback period."""
    window = RollingWindow(require_positive_int("period", period))

    def update(v: float) -> float | None:
        window.add(v)
        return window.max if window.is_full else None

    return _replay(_as_array(values), update)


def lowest(values: Sequence[float], period: int) -> np.ndarray:
    """Lowest value over the lookback period."""
    window = RollingWindow(require_positive_int("period", period))

    def update(v: float) -> float | None:
        window.add(v)
        return window.min if window.is_full else None

    return _replay(_as_array(values), update)


def macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (macd, signal_line, histogram) arrays."""
    calc = MACD(fast, slow, signal)
    arr = _as_array(values)
    line = np.full(len(arr), np.nan)
    sig = np.full(len(arr), np.nan)
    hist = np.full(len(arr), np.nan)
    for i, v in enumerate(arr):
        if not np.isfinite(v):
            continue
        out = calc.update(float(v))
        if out is None:
            continue
        line[i] = out.macd
        if out.signal is not None:
            sig[i] = out.signal
            hist[i] = out.histogram
    return line, sig, hist


def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    k: float = 2.0,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (upper, middle, lower) arrays."""
    calc = BollingerBands(period, k)
    arr = _as_array(values)
    upper = np.full(len(arr), np.nan)
    middle = np.full(len(arr), np.nan)
    lower = np.full(len(arr), np.nan)
    for i, v in enumerate(arr):
        if not np.isfinite(v):
            continue
        out = calc.update(float(v))
        if out is not None:
            upper[i], middle[i], lower[i] = out
    return upper, middle, lower


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """Return (%K, %D) arrays."""
    calc = Stochastic(k_period, d_period)
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    k = np.full(len(c), np.nan)
    d = np.full(len(c), np.nan)
    for i in range(len(c)):
        if not (np.isfinite(h[i]) and np.isfinite(l[i]) and np.isfinite(c[i])):
            continue
        out = calc.update(float(h[i]), float(l[i]), float(c[i]))
        if out is None:
            continue
        k[i] = out.k
        if out.d is not None:
            d[i] = out.d
    return k, d


def stochastic_rsi(
    values: Sequence[float],
    rsi_period: int = 14,
    stoch_period: int = 14,
    k_smooth: int = 3,
    d_smooth: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """Return (%K, %D) arrays of the Stochastic RSI."""
    calc = StochasticRSI(rsi_period, stoch_period, k_smooth, d_smooth)
    arr = _as_array(values)
    k = np.full(len(arr), np.nan)
    d = np.full(len(arr), np.nan)
    for i, v in enumerate(arr):
        if not np.isfinite(v):
            continue
        out = calc.update(float(v))
        if out is not None:
            k[i], d[i] = out.k, out.d
    return k, d


def parabolic_sar(
    highs: Sequence[float],
    lows: Sequence[float],
    step: float = 0.02,
    max_step: float = 0.2,
) -> np.ndarray:
    """Parabolic SAR values."""
    calc = ParabolicSAR(step, max_step)
    h, l = _as_array(highs), _as_array(lows)
    result = np.full(len(h), np.nan)
    for i in range(len(h)):
        if np.isfinite(h[i]) and np.isfinite(l[i]):
            result[i] = calc.update(float(h[i]), float(l[i]))
    return result
