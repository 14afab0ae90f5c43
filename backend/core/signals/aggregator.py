"""SignalAggregator: weighted consensus across indicators."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping

from core.errors import ConfigurationError
from core.models.config import (
    INDICATOR_CATEGORIES,
    WeightMap,
    default_weights,
    validate_weights,
)
from core.models.signal import AggregatedSignal, CategoryScores, Signal

logger = logging.getLogger(__name__)

# Final scores closer to zero than this are numeric noise.
ZERO_TOLERANCE = 1e-12


class SignalAggregator:
    """Combine per-indicator signals into one AggregatedSignal.

    ``final = (trend + momentum + volatility) / sum(weights)`` where each
    category is the weighted sum of its indicators' scores. ``final`` above
    ``threshold`` is a buy, below ``-threshold`` a sell, anything else
    neutral. Indicators missing from the weight map have weight 0.
    """

    def __init__(self, weights: Mapping[str, float] | None = None, threshold: float = 0.0):
        self.weights: WeightMap = validate_weights(default_weights() if weights is None else weights)
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ConfigurationError(f"threshold must be a number, got {threshold!r}")
        if not math.isfinite(threshold) or threshold < 0:
            raise ConfigurationError(f"threshold must be finite and >= 0, got {threshold}")
        self.threshold = float(threshold)
        self.total_weight = math.fsum(self.weights.values())
        if self.total_weight == 0:
            logger.warning("All indicator weights are zero; every aggregated signal is neutral")

    def aggregate(
        self,
        signals: Mapping[str, Signal | str],
        time: int | None = None,
    ) -> AggregatedSignal:
        categories = {"trend": 0.0, "momentum": 0.0, "volatility": 0.0}
        for name, weight in self.weights.items():
            raw = signals.get(name, Signal.NEUTRAL)
            categories[INDICATOR_CATEGORIES[name]] += weight * Signal.parse(raw).score

        scores = CategoryScores(**categories)
        final = scores.total / self.total_weight if self.total_weight > 0 else 0.0
        if not math.isfinite(final) or abs(final) < ZERO_TOLERANCE:
            final = 0.0

        if final > self.threshold:
            decision = Signal.BUY
        elif final < -self.threshold:
            decision = Signal.SELL
        else:
            decision = Signal.NEUTRAL

        normalized = max(-1.0, min(1.0, final))
        return AggregatedSignal(
            signal=decision,
            strength=abs(normalized),
            normalized=normalized,
            category_scores=scores,
            final_score=final,
            time=time,
        )

    def aggregate_many(
        self,
        signal_maps: Iterable[Mapping[str, Signal | str]],
        times: Iterable[int | None] | None = None,
    ) -> list[AggregatedSignal]:
        maps = list(signal_maps)
        stamps = list(times) if times is not None else [None] * len(maps)
        if len(stamps) != len(maps):
            raise ValueError(f"Got {len(maps)} signal maps but {len(stamps)} timestamps")
        return [self.aggregate(m, t) for m, t in zip(maps, stamps)]
