"""Indicator, classifier and backtest configuration models."""

from __future__ import annotations

import math
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.errors import ConfigurationError

# Canonical indicator names, used as WeightMap keys.
INDICATOR_NAMES: tuple[str, ...] = (
    "SMA",
    "EMA",
    "RSI",
    "MACD",
    "BollingerBands",
    "Stochastic",
    "StochasticRSI",
    "PSAR",
)

INDICATOR_CATEGORIES: dict[str, str] = {
    "SMA": "trend",
    "EMA": "trend",
    "PSAR": "trend",
    "RSI": "momentum",
    "MACD": "momentum",
    "Stochastic": "momentum",
    "StochasticRSI": "momentum",
    "BollingerBands": "volatility",
}

WeightMap = dict[str, float]


def default_weights() -> WeightMap:
    """Equal weight for every indicator."""
    return {name: 1.0 for name in INDICATOR_NAMES}


def validate_weights(weights: Mapping[str, float]) -> WeightMap:
    """Validate a weight map and return a plain dict copy.

    Raises:
        ConfigurationError: On unknown indicator names, non-numeric,
            non-finite or negative weights.
    """
    if not isinstance(weights, Mapping):
        raise ConfigurationError(f"Weight map must be a mapping, got {type(weights).__name__}")
    validated: WeightMap = {}
    for name, weight in weights.items():
        if name not in INDICATOR_CATEGORIES:
            raise ConfigurationError(
                f"Unknown indicator '{name}' in weight map. "
                f"Expected one of: {', '.join(INDICATOR_NAMES)}"
            )
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ConfigurationError(f"Weight for '{name}' must be a number, got {weight!r}")
        if not math.isfinite(weight) or weight < 0:
            raise ConfigurationError(f"Weight for '{name}' must be finite and >= 0, got {weight}")
        validated[name] = float(weight)
    return validated


class ConfigModel(BaseModel):
    """Frozen config model that reports bad values as ConfigurationError."""

    model_config = ConfigDict(frozen=True)

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {type(self).__name__}: {e}") from e


class IndicatorConfig(ConfigModel):
    """Period parameters for every indicator in the bank."""

    sma_fast: int = Field(default=20, gt=0)
    sma_slow: int = Field(default=50, gt=0)
    ema_fast: int = Field(default=20, gt=0)
    ema_slow: int = Field(default=50, gt=0)
    rsi_period: int = Field(default=14, gt=0)
    macd_fast: int = Field(default=12, gt=0)
    macd_slow: int = Field(default=26, gt=0)
    macd_signal: int = Field(default=9, gt=0)
    bb_period: int = Field(default=20, gt=0)
    bb_k: float = Field(default=2.0, ge=0)
    stoch_k: int = Field(default=14, gt=0)
    stoch_d: int = Field(default=3, gt=0)
    stoch_rsi_rsi: int = Field(default=14, gt=0)
    stoch_rsi_stoch: int = Field(default=14, gt=0)
    stoch_rsi_k: int = Field(default=3, gt=0)
    stoch_rsi_d: int = Field(default=3, gt=0)
    psar_step: float = Field(default=0.02, gt=0)
    psar_max_step: float = Field(default=0.2, gt=0)

    @model_validator(mode="after")
    def _check_relations(self) -> IndicatorConfig:
        if self.macd_fast >= self.macd_slow:
            raise ValueError(
                f"macd_fast ({self.macd_fast}) must be smaller than macd_slow ({self.macd_slow})"
            )
        if self.psar_step > self.psar_max_step:
            raise ValueError(
                f"psar_step ({self.psar_step}) must not exceed psar_max_step ({self.psar_max_step})"
            )
        return self


class SignalThresholds(ConfigModel):
    """Fixed thresholds used by the SignalClassifier."""

    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    rsi_weak_oversold: float = 40.0
    rsi_weak_overbought: float = 60.0
    stoch_oversold: float = 20.0
    stoch_overbought: float = 80.0
    bb_edge: float = Field(default=0.1, ge=0, lt=0.5)

    @model_validator(mode="after")
    def _check_zones(self) -> SignalThresholds:
        if not self.rsi_oversold <= self.rsi_weak_oversold <= self.rsi_weak_overbought <= self.rsi_overbought:
            raise ValueError("RSI zones must satisfy oversold <= weak_oversold <= weak_overbought <= overbought")
        if self.stoch_oversold >= self.stoch_overbought:
            raise ValueError("stoch_oversold must be below stoch_overbought")
        return self


class BacktestParams(ConfigModel):
    """Trading frictions and position rules for one backtest run.

    ``stop_loss`` is a (negative) return fraction, ``take_profit`` a positive
    one. ``max_loss_fraction`` / ``max_gain_fraction`` clamp each trade's
    PnL to a fraction of the position value (``None`` disables the clamp).
    """

    initial_balance: float = Field(default=10_000.0, gt=0)
    fee: float = Field(default=0.001, ge=0, lt=1)
    stop_loss: float = Field(default=-0.02, lt=0)
    take_profit: float = Field(default=0.04, gt=0)
    position_size_fraction: float = Field(default=1.0, gt=0, le=1)
    min_hold_periods: int = Field(default=0, ge=0)
    cooldown_periods: int = Field(default=0, ge=0)
    max_hold_periods: int | None = Field(default=None, gt=0)
    execute_next_bar: bool = False
    long_only: bool = True
    max_loss_fraction: float | None = Field(default=1.0, gt=0)
    max_gain_fraction: float | None = Field(default=None, gt=0)
    # Periods per year for Sharpe/Sortino; 252 * 24 assumes hourly candles.
    annualization_factor: float = Field(default=252 * 24, gt=0)
