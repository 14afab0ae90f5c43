"""Error taxonomy for the indicator / signal / backtest engine.

Only configuration errors and a complete absence of usable data are
surfaced to callers as hard failures. Invalid candles and short series are
handled locally by emitting ``None`` values and carrying on.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(EngineError, ValueError):
    """Invalid period, weight map or backtest parameter.

    Raised at construction time, before any candle is processed.
    """


class InvalidCandleError(EngineError, ValueError):
    """Candle with non-finite OHLC values or an out-of-order timestamp."""

    def __init__(self, message: str, time: int | None = None):
        super().__init__(message)
        self.time = time


class InsufficientDataError(EngineError):
    """Series too short (or empty) for the requested computation."""

    def __init__(self, message: str, available: int = 0, required: int = 0):
        super().__init__(message)
        self.available = available
        self.required = required
