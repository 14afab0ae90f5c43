"""Indicator capability interface and shared rolling-window state."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, ClassVar

from core.errors import ConfigurationError
from core.models.candle import Candle


def require_positive_int(name: str, value: Any) -> int:
    """Validate a period parameter at construction time."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return value


def require_positive_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be finite and > 0, got {value!r}")
    return float(value)


class RollingWindow:
    """Fixed-size FIFO window with a running sum."""

    __slots__ = ("size", "_values", "_sum")

    def __init__(self, size: int):
        self.size = size
        self._values: deque[float] = deque(maxlen=size)
        self._sum = 0.0

    def add(self, value: float) -> None:
        if len(self._values) == self.size:
            self._sum -= self._values[0]
        self._values.append(value)
        self._sum += value

    @property
    def is_full(self) -> bool:
        return len(self._values) == self.size

    @property
    def mean(self) -> float | None:
        if not self._values:
            return None
        return self._sum / len(self._values)

    @property
    def max(self) -> float | None:
        return max(self._values) if self._values else None

    @property
    def min(self) -> float | None:
        return min(self._values) if self._values else None

    @property
    def values(self) -> list[float]:
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()
        self._sum = 0.0

    def __len__(self) -> int:
        return len(self._values)


class Indicator(ABC):
    """One stateful, incremental indicator calculator.

    ``consume`` takes one candle at a time in ascending time order and
    returns the current value, or ``None`` while warming up. A candle whose
    inputs are not finite yields ``None`` and leaves the state untouched.
    Subclasses implement ``update`` on raw input values so that composite
    indicators (MACD, StochasticRSI, ...) can feed derived series into them.
    """

    name: ClassVar[str] = ""
    # Candle fields passed positionally to ``update``.
    inputs: ClassVar[tuple[str, ...]] = ("close",)

    def consume(self, candle: Candle):
        values = tuple(getattr(candle, field) for field in self.inputs)
        if not all(math.isfinite(v) for v in values):
            return None
        return self.update(*values)

    @abstractmethod
    def update(self, *values: float):
        """Advance the recurrence by one observation and return the value."""

    @abstractmethod
    def reset(self) -> None:
        """Discard all recurrence state."""

    @property
    @abstractmethod
    def warmup(self) -> int:
        """Number of observations needed before the first full value."""

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.params().items())
        return f"{type(self).__name__}({params})"

    def params(self) -> dict[str, Any]:
        return {}
