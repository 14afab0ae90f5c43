"""Backtest-specific configuration.

Defaults for every engine parameter, loaded from ``BACKTEST_*`` environment
variables (or a ``.env`` file). Explicit arguments always win over these.
"""

from __future__ import annotations

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError
from core.models.config import BacktestParams, IndicatorConfig, default_weights


class BacktestSettings(BaseSettings):
    """Backtest configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BACKTEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Indicator periods
    sma_fast: int = 20
    sma_slow: int = 50
    ema_fast: int = 20
    ema_slow: int = 50
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bb_period: int = 20
    bb_k: float = 2.0
    stoch_k: int = 14
    stoch_d: int = 3
    stoch_rsi_rsi: int = 14
    stoch_rsi_stoch: int = 14
    stoch_rsi_k: int = 3
    stoch_rsi_d: int = 3
    psar_step: float = 0.02
    psar_max_step: float = 0.2

    # Trading frictions
    initial_balance: float = 10_000.0
    fee: float = 0.001
    stop_loss: float = -0.02
    take_profit: float = 0.04
    position_size_fraction: float = 1.0
    min_hold_periods: int = 0
    cooldown_periods: int = 0
    max_hold_periods: int | None = None
    execute_next_bar: bool = False
    long_only: bool = True
    max_loss_fraction: float | None = 1.0
    max_gain_fraction: float | None = None
    annualization_factor: float = 252 * 24

    # Aggregation
    weights: dict[str, float] = Field(default_factory=default_weights)
    signal_threshold: float = 0.0

    # Overfitting check
    train_fraction: float = Field(default=0.8, gt=0, lt=1)

    # Concurrency: per-symbol timeout in seconds (None = no timeout)
    symbol_timeout: float | None = None

    log_level: str = "INFO"

    def __init__(self, **values):
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid backtest settings: {e}") from e

    def backtest_params(self) -> BacktestParams:
        return BacktestParams(**self.model_dump(include=set(BacktestParams.model_fields)))

    def indicator_config(self) -> IndicatorConfig:
        return IndicatorConfig(**self.model_dump(include=set(IndicatorConfig.model_fields)))


_settings: BacktestSettings | None = None


def get_backtest_settings() -> BacktestSettings:
    """Get cached backtest settings instance."""
    global _settings
    if _settings is None:
        _settings = BacktestSettings()
    return _settings
