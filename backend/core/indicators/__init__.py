"""Technical indicators (pure math, no I/O)."""

from core.indicators.bank import IndicatorBank
from core.indicators.base import Indicator, RollingWindow
from core.indicators.indicators import (
    bollinger_bands,
    ema,
    highest,
    lowest,
    macd,
    parabolic_sar,
    rsi,
    sma,
    stochastic,
    stochastic_rsi,
)
from core.indicators.momentum import RSI, Stochastic, StochasticRSI
from core.indicators.trend import EMA, MACD, SMA, ParabolicSAR
from core.indicators.volatility import BollingerBands

__all__ = [
    "IndicatorBank",
    "Indicator",
    "RollingWindow",
    "SMA",
    "EMA",
    "RSI",
    "MACD",
    "BollingerBands",
    "Stochastic",
    "StochasticRSI",
    "ParabolicSAR",
    "bollinger_bands",
    "ema",
    "highest",
    "lowest",
    "macd",
    "parabolic_sar",
    "rsi",
    "sma",
    "stochastic",
    "stochastic_rsi",
]
