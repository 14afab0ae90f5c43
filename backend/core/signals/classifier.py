"""SignalClassifier: indicator state -> canonical Signal.

One rule per indicator, registered by indicator name. Rules look at the
current IndicatorRecord and, where crossovers or momentum matter, the
previous one. Missing inputs always classify as neutral.
"""

from __future__ import annotations

from typing import Callable

from core.models.config import INDICATOR_NAMES, SignalThresholds
from core.models.indicator import IndicatorRecord
from core.models.signal import Signal

Rule = Callable[[IndicatorRecord, "IndicatorRecord | None", SignalThresholds], Signal]

_RULES: dict[str, Rule] = {}


def register_rule(name: str):
    """Decorator registering the classification rule for one indicator."""

    def decorator(func: Rule) -> Rule:
        if name in _RULES:
            raise ValueError(f"Rule for '{name}' is already registered by {_RULES[name].__name__}")
        _RULES[name] = func
        return func

    return decorator


def _prev(prev: IndicatorRecord | None, key: str) -> float | None:
    return prev.get(key) if prev is not None else None


def _from_score(score: int) -> Signal:
    return Signal.from_score(max(-2, min(2, score)))


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

def _moving_average_cross(
    record: IndicatorRecord,
    prev: IndicatorRecord | None,
    fast_key: str,
    slow_key: str,
) -> Signal:
    price = record.close
    fast = record.get(fast_key)
    slow = record.get(slow_key)
    if price is None or fast is None or slow is None:
        return Signal.NEUTRAL

    prev_fast = _prev(prev, fast_key)
    prev_slow = _prev(prev, slow_key)
    if prev_fast is not None and prev_slow is not None:
        # Golden cross
        if fast > slow and prev_fast <= prev_slow:
            return Signal.STRONG_BUY if price > fast and price > slow else Signal.BUY
        # Death cross
        if fast < slow and prev_fast >= prev_slow:
            return Signal.STRONG_SELL if price < fast and price < slow else Signal.SELL

    if fast > slow and price > fast:
        return Signal.BUY
    if fast < slow and price < fast:
        return Signal.SELL
    return Signal.NEUTRAL


@register_rule("SMA")
def classify_sma(record, prev, thresholds) -> Signal:
    return _moving_average_cross(record, prev, "sma_fast", "sma_slow")


@register_rule("EMA")
def classify_ema(record, prev, thresholds) -> Signal:
    return _moving_average_cross(record, prev, "ema_fast", "ema_slow")


@register_rule("PSAR")
def classify_psar(record, prev, thresholds) -> Signal:
    price = record.close
    sar = record.get("psar")
    if price is None or sar is None:
        return Signal.NEUTRAL

    side = (price > sar) - (price < sar)
    prev_price = prev.close if prev is not None else None
    prev_sar = _prev(prev, "psar")
    if prev_price is not None and prev_sar is not None:
        prev_side = (prev_price > prev_sar) - (prev_price < prev_sar)
        # Trend flip
        if side == 1 and prev_side == -1:
            return Signal.STRONG_BUY
        if side == -1 and prev_side == 1:
            return Signal.STRONG_SELL
    return _from_score(side)


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------

@register_rule("RSI")
def classify_rsi(record, prev, thresholds: SignalThresholds) -> Signal:
    value = record.get("rsi")
    if value is None:
        return Signal.NEUTRAL
    if value < thresholds.rsi_oversold:
        return Signal.BUY
    if value > thresholds.rsi_overbought:
        return Signal.SELL

    # Weak zones only count when RSI is already turning.
    prev_value = _prev(prev, "rsi")
    if prev_value is not None:
        if value < thresholds.rsi_weak_oversold and value > prev_value:
            return Signal.BUY
        if value > thresholds.rsi_weak_overbought and value < prev_value:
            return Signal.SELL
    return Signal.NEUTRAL


@register_rule("MACD")
def classify_macd(record, prev, thresholds) -> Signal:
    line = record.get("macd")
    signal = record.get("macd_signal")
    hist = record.get("macd_hist")
    if line is None or signal is None or hist is None:
        return Signal.NEUTRAL

    cross = (line > signal) - (line < signal)
    momentum = 0
    prev_hist = _prev(prev, "macd_hist")
    if prev_hist is not None:
        if hist > 0 and hist > prev_hist:
            momentum = 1
        elif hist < 0 and hist < prev_hist:
            momentum = -1
    return _from_score(cross + momentum)


def _stochastic_rule(
    record: IndicatorRecord,
    prev: IndicatorRecord | None,
    thresholds: SignalThresholds,
    k_key: str,
    d_key: str,
) -> Signal:
    k = record.get(k_key)
    d = record.get(d_key)
    if k is None or d is None:
        return Signal.NEUTRAL

    prev_k = _prev(prev, k_key)
    prev_d = _prev(prev, d_key)
    has_prev = prev_k is not None and prev_d is not None

    if k < thresholds.stoch_oversold and d < thresholds.stoch_oversold:
        if has_prev and k > prev_k and d > prev_d:
            return Signal.STRONG_BUY
        return Signal.BUY
    if k > thresholds.stoch_overbought and d > thresholds.stoch_overbought:
        if has_prev and k < prev_k and d < prev_d:
            return Signal.STRONG_SELL
        return Signal.SELL

    # %K / %D crossover
    if has_prev:
        if k > d and prev_k <= prev_d:
            return Signal.BUY
        if k < d and prev_k >= prev_d:
            return Signal.SELL
    return Signal.NEUTRAL


@register_rule("Stochastic")
def classify_stochastic(record, prev, thresholds) -> Signal:
    return _stochastic_rule(record, prev, thresholds, "stoch_k", "stoch_d")


@register_rule("StochasticRSI")
def classify_stochastic_rsi(record, prev, thresholds) -> Signal:
    return _stochastic_rule(record, prev, thresholds, "stoch_rsi_k", "stoch_rsi_d")


# ---------------------------------------------------------------------------
# Volatility
# ---------------------------------------------------------------------------

@register_rule("BollingerBands")
def classify_bollinger(record, prev, thresholds: SignalThresholds) -> Signal:
    price = record.close
    upper = record.get("bb_upper")
    lower = record.get("bb_lower")
    if price is None or upper is None or lower is None:
        return Signal.NEUTRAL

    width = upper - lower
    if width <= 0:
        return Signal.NEUTRAL
    position = (price - lower) / width
    if position < 0:
        return Signal.STRONG_BUY
    if position < thresholds.bb_edge:
        return Signal.BUY
    if position > 1:
        return Signal.STRONG_SELL
    if position > 1 - thresholds.bb_edge:
        return Signal.SELL
    return Signal.NEUTRAL


class SignalClassifier:
    """Maps an IndicatorRecord to one Signal per indicator."""

    def __init__(self, thresholds: SignalThresholds | None = None):
        self.thresholds = thresholds or SignalThresholds()

    def classify(
        self,
        record: IndicatorRecord,
        previous: IndicatorRecord | None = None,
    ) -> dict[str, Signal]:
        """Classify every indicator for one candle."""
        return {name: _RULES[name](record, previous, self.thresholds) for name in INDICATOR_NAMES}

    def classify_indicator(
        self,
        name: str,
        record: IndicatorRecord,
        previous: IndicatorRecord | None = None,
    ) -> Signal:
        """Classify a single indicator.

        Raises:
            KeyError: If no rule is registered under ``name``.
        """
        rule = _RULES.get(name)
        if rule is None:
            raise KeyError(f"Unknown indicator '{name}'. Available: {', '.join(sorted(_RULES))}")
        return rule(record, previous, self.thresholds)

    def classify_series(self, records: list[IndicatorRecord]) -> list[dict[str, Signal]]:
        """Classify a record stream, pairing each record with its predecessor."""
        result = []
        previous = None
        for record in records:
            result.append(self.classify(record, previous))
            previous = record
        return result
