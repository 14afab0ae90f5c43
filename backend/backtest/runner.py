"""BacktestRunner — orchestrates the full pipeline for one or many series.

candles -> IndicatorBank -> SignalClassifier -> SignalAggregator
        -> BacktestEngine -> PerformanceAnalyzer

Every invocation builds its own bank and engine, so separate series (and
the two halves of an overfitting check) never share mutable state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from core.errors import InsufficientDataError
from core.indicators.bank import IndicatorBank
from core.models.candle import CandleSeries
from core.models.config import (
    INDICATOR_NAMES,
    BacktestParams,
    IndicatorConfig,
    SignalThresholds,
)
from core.models.indicator import IndicatorRecord
from core.models.signal import AggregatedSignal, Signal
from core.signals.aggregator import SignalAggregator
from core.signals.classifier import SignalClassifier

from backtest.config import BacktestSettings, get_backtest_settings
from backtest.engine import BacktestEngine, SignalInput
from backtest.stats import BacktestResult, OverfittingReport, PerformanceAnalyzer

logger = logging.getLogger(__name__)

CONSENSUS = "Consensus"


@dataclass
class SymbolOutcome:
    """Result (or failure) of one series inside a multi-symbol run."""

    symbol: str
    timeframe: str
    result: BacktestResult | None = None
    error: str | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class IndicatorComparison:
    """Single-indicator backtests next to the weighted consensus."""

    symbol: str
    timeframe: str
    results: dict[str, BacktestResult] = field(default_factory=dict)

    def ranking(self) -> list[tuple[str, BacktestResult]]:
        """Strategies ordered by ROI, best first."""
        return sorted(self.results.items(), key=lambda item: item[1].roi, reverse=True)

    @property
    def best(self) -> str | None:
        ranked = self.ranking()
        return ranked[0][0] if ranked else None


class BacktestRunner:
    """Run the indicator/signal/backtest pipeline on candle series."""

    def __init__(
        self,
        indicator_config: IndicatorConfig | None = None,
        thresholds: SignalThresholds | None = None,
        weights: dict[str, float] | None = None,
        params: BacktestParams | None = None,
        signal_threshold: float = 0.0,
    ):
        self.indicator_config = indicator_config or IndicatorConfig()
        self.params = params or BacktestParams()
        self.classifier = SignalClassifier(thresholds)
        self.aggregator = SignalAggregator(weights, signal_threshold)
        self.analyzer = PerformanceAnalyzer(self.params.annualization_factor)

    @classmethod
    def from_settings(cls, settings: BacktestSettings | None = None) -> BacktestRunner:
        settings = settings or get_backtest_settings()
        return cls(
            indicator_config=settings.indicator_config(),
            weights=settings.weights,
            params=settings.backtest_params(),
            signal_threshold=settings.signal_threshold,
        )

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def compute_indicators(self, series: CandleSeries) -> list[IndicatorRecord]:
        bank = IndicatorBank(self.indicator_config, series.symbol, series.timeframe)
        return bank.run(series)

    def classify(self, records: list[IndicatorRecord]) -> list[dict[str, Signal]]:
        return self.classifier.classify_series(records)

    def aggregate(
        self,
        signal_maps: list[dict[str, Signal]],
        records: list[IndicatorRecord],
    ) -> list[AggregatedSignal]:
        return self.aggregator.aggregate_many(signal_maps, [r.time for r in records])

    def generate_signals(self, series: CandleSeries) -> list[AggregatedSignal]:
        """Aggregated signal for every candle of ``series``."""
        records = self.compute_indicators(series)
        return self.aggregate(self.classify(records), records)

    # ------------------------------------------------------------------
    # Backtests
    # ------------------------------------------------------------------

    def run_series(self, series: CandleSeries, overfit_split: float | None = None) -> BacktestResult:
        """Backtest the weighted consensus signal over ``series``.

        With ``overfit_split`` the result also carries the train/test
        overfitting report for that split.

        Raises:
            InsufficientDataError: If the series has candles but none usable.
        """
        _check_usable(series)
        start = time.time()
        signals = self.generate_signals(series)
        result = self._backtest(series, signals, CONSENSUS)
        logger.info(
            f"{series.symbol} {series.timeframe}: {len(series):,} candles, "
            f"{result.total_trades} trades, ROI {result.roi:+.2f}% "
            f"({time.time() - start:.2f}s)"
        )
        if overfit_split is not None:
            report = self.check_overfitting(series, overfit_split)
            result.overfitting = report
            result.overfitting_detected = report.overfitting_detected
        return result

    def run_single_indicator(self, series: CandleSeries, name: str) -> BacktestResult:
        """Backtest the signal of one indicator on its own.

        Raises:
            KeyError: If ``name`` is not a known indicator.
        """
        if name not in INDICATOR_NAMES:
            raise KeyError(f"Unknown indicator '{name}'. Available: {', '.join(INDICATOR_NAMES)}")
        _check_usable(series)
        signal_maps = self.classify(self.compute_indicators(series))
        return self._backtest(series, [m[name] for m in signal_maps], name)

    def compare_indicators(self, series: CandleSeries) -> IndicatorComparison:
        """Every single-indicator backtest plus the consensus, on one series."""
        _check_usable(series)
        records = self.compute_indicators(series)
        signal_maps = self.classify(records)

        comparison = IndicatorComparison(symbol=series.symbol, timeframe=series.timeframe)
        for name in INDICATOR_NAMES:
            comparison.results[name] = self._backtest(series, [m[name] for m in signal_maps], name)
        comparison.results[CONSENSUS] = self._backtest(
            series, self.aggregate(signal_maps, records), CONSENSUS
        )
        logger.info(f"{series.symbol} {series.timeframe}: best strategy {comparison.best}")
        return comparison

    def check_overfitting(self, series: CandleSeries, split: float = 0.8) -> OverfittingReport:
        """Compare train and test ROI of two independent runs.

        Each half gets a fresh indicator bank, so the test half warms up
        from scratch instead of inheriting train state.
        """
        train, test = series.split(split)
        train_result = self._backtest(train, self.generate_signals(train), CONSENSUS)
        test_result = self._backtest(test, self.generate_signals(test), CONSENSUS)
        return self.analyzer.compare(train_result, test_result)

    def _backtest(
        self,
        series: CandleSeries,
        signals: Sequence[SignalInput],
        strategy: str,
    ) -> BacktestResult:
        engine = BacktestEngine(self.params)
        run = engine.run(series.candles, signals)
        return self.analyzer.analyze(
            run, symbol=series.symbol, timeframe=series.timeframe, strategy=strategy
        )

    # ------------------------------------------------------------------
    # Multi-symbol
    # ------------------------------------------------------------------

    async def run_symbols(
        self,
        series_list: Sequence[CandleSeries],
        timeout: float | None = None,
        overfit_split: float | None = None,
    ) -> list[SymbolOutcome]:
        """Backtest several series concurrently, one worker thread each.

        A failing or timed-out series is logged and reported in its
        outcome; the others still complete.
        """
        logger.info(f"Starting backtest of {len(series_list)} series (timeout={timeout})")
        outcomes = await asyncio.gather(
            *(self._run_symbol(series, timeout, overfit_split) for series in series_list)
        )
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(f"Finished {len(outcomes)} series, {failed} failed")
        return list(outcomes)

    async def _run_symbol(
        self,
        series: CandleSeries,
        timeout: float | None,
        overfit_split: float | None,
    ) -> SymbolOutcome:
        outcome = SymbolOutcome(symbol=series.symbol, timeframe=series.timeframe)
        start = time.time()
        try:
            if len(series) == 0:
                raise InsufficientDataError(
                    f"No candles for {series.symbol} {series.timeframe}", available=0, required=1
                )
            outcome.result = await asyncio.wait_for(
                asyncio.to_thread(self.run_series, series, overfit_split),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            outcome.error = f"timed out after {timeout}s"
            logger.error(f"Symbol backtest timed out: {series.symbol} {series.timeframe}")
        except Exception as exc:
            outcome.error = str(exc) or type(exc).__name__
            logger.error(
                f"Symbol backtest failed: {series.symbol} {series.timeframe}", exc_info=True
            )
        outcome.elapsed = time.time() - start
        return outcome


def _check_usable(series: CandleSeries) -> None:
    if len(series) and not any(c.is_valid for c in series):
        raise InsufficientDataError(
            f"{series.symbol} {series.timeframe}: none of {len(series)} candles is usable",
            available=0,
            required=1,
        )
