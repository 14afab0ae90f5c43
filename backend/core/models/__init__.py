"""Data models shared by the indicator, signal and backtest layers."""

from core.models.candle import Candle, CandleSeries
from core.models.config import (
    INDICATOR_CATEGORIES,
    INDICATOR_NAMES,
    BacktestParams,
    IndicatorConfig,
    SignalThresholds,
    WeightMap,
    default_weights,
    validate_weights,
)
from core.models.indicator import (
    INDICATOR_VALUE_KEYS,
    VALUE_KEYS,
    BollingerValue,
    IndicatorRecord,
    MACDValue,
    StochasticValue,
)
from core.models.signal import AggregatedSignal, CategoryScores, Direction, Signal, signal_score

__all__ = [
    "Candle",
    "CandleSeries",
    "INDICATOR_CATEGORIES",
    "INDICATOR_NAMES",
    "BacktestParams",
    "IndicatorConfig",
    "SignalThresholds",
    "WeightMap",
    "default_weights",
    "validate_weights",
    "INDICATOR_VALUE_KEYS",
    "VALUE_KEYS",
    "BollingerValue",
    "IndicatorRecord",
    "MACDValue",
    "StochasticValue",
    "AggregatedSignal",
    "CategoryScores",
    "Direction",
    "Signal",
    "signal_score",
]
