"""IndicatorBank: every indicator calculator for one (symbol, timeframe).

A bank owns its calculators' recurrence state exclusively. Build one bank
per series; never share a bank between series or threads.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from core.indicators.base import Indicator
from core.indicators.momentum import RSI, Stochastic, StochasticRSI
from core.indicators.trend import EMA, MACD, SMA, ParabolicSAR
from core.indicators.volatility import BollingerBands
from core.models.candle import Candle
from core.models.config import IndicatorConfig
from core.models.indicator import IndicatorRecord, VALUE_KEYS

logger = logging.getLogger(__name__)


class IndicatorBank:
    """Incrementally computes all indicators, one candle at a time.

    Candles must arrive in strictly increasing time order. A candle that is
    not newer than the previous one is rejected: it gets an all-``None``
    record and no calculator state changes.
    """

    def __init__(
        self,
        config: IndicatorConfig | None = None,
        symbol: str = "",
        timeframe: str = "",
    ):
        self.config = config or IndicatorConfig()
        self.symbol = symbol
        self.timeframe = timeframe

        cfg = self.config
        self.sma_fast = SMA(cfg.sma_fast)
        self.sma_slow = SMA(cfg.sma_slow)
        self.ema_fast = EMA(cfg.ema_fast)
        self.ema_slow = EMA(cfg.ema_slow)
        self.rsi = RSI(cfg.rsi_period)
        self.macd = MACD(cfg.macd_fast, cfg.macd_slow, cfg.macd_signal)
        self.bollinger = BollingerBands(cfg.bb_period, cfg.bb_k)
        self.stochastic = Stochastic(cfg.stoch_k, cfg.stoch_d)
        self.stoch_rsi = StochasticRSI(
            cfg.stoch_rsi_rsi, cfg.stoch_rsi_stoch, cfg.stoch_rsi_k, cfg.stoch_rsi_d
        )
        self.psar = ParabolicSAR(cfg.psar_step, cfg.psar_max_step)

        self._last_time: int | None = None
        self._count = 0
        self._rejected = 0

    @property
    def indicators(self) -> list[Indicator]:
        return [
            self.sma_fast,
            self.sma_slow,
            self.ema_fast,
            self.ema_slow,
            self.rsi,
            self.macd,
            self.bollinger,
            self.stochastic,
            self.stoch_rsi,
            self.psar,
        ]

    @property
    def warmup(self) -> int:
        """Candles needed before every indicator has produced a full value."""
        return max(ind.warmup for ind in self.indicators)

    @property
    def candles_seen(self) -> int:
        return self._count

    @property
    def rejected(self) -> int:
        return self._rejected

    def update(self, candle: Candle) -> IndicatorRecord:
        """Consume one candle and return the record of current values."""
        close = candle.close if math.isfinite(candle.close) else None
        if self._last_time is not None and candle.time <= self._last_time:
            self._rejected += 1
            logger.warning(
                f"[{self.symbol} {self.timeframe}] Rejected out-of-order candle "
                f"time={candle.time} (last={self._last_time})"
            )
            return IndicatorRecord.empty(candle.time, close)

        self._last_time = candle.time
        self._count += 1
        if not candle.is_valid:
            logger.warning(
                f"[{self.symbol} {self.timeframe}] Candle time={candle.time} has "
                f"non-finite OHLC values; affected indicators emit None"
            )

        values: dict[str, float | None] = dict.fromkeys(VALUE_KEYS)
        values["sma_fast"] = self.sma_fast.consume(candle)
        values["sma_slow"] = self.sma_slow.consume(candle)
        values["ema_fast"] = self.ema_fast.consume(candle)
        values["ema_slow"] = self.ema_slow.consume(candle)
        values["rsi"] = self.rsi.consume(candle)

        macd = self.macd.consume(candle)
        if macd is not None:
            values["macd"] = macd.macd
            values["macd_signal"] = macd.signal
            values["macd_hist"] = macd.histogram

        bands = self.bollinger.consume(candle)
        if bands is not None:
            values["bb_upper"] = bands.upper
            values["bb_middle"] = bands.middle
            values["bb_lower"] = bands.lower

        stoch = self.stochastic.consume(candle)
        if stoch is not None:
            values["stoch_k"] = stoch.k
            values["stoch_d"] = stoch.d

        stoch_rsi = self.stoch_rsi.consume(candle)
        if stoch_rsi is not None:
            values["stoch_rsi_k"] = stoch_rsi.k
            values["stoch_rsi_d"] = stoch_rsi.d

        values["psar"] = self.psar.consume(candle)

        return IndicatorRecord(time=candle.time, close=close, values=values)

    def run(self, candles: Iterable[Candle]) -> list[IndicatorRecord]:
        """Consume a whole series and return one record per candle."""
        records = [self.update(candle) for candle in candles]
        if records and len(records) < self.warmup:
            logger.warning(
                f"[{self.symbol} {self.timeframe}] Only {len(records)} candles for a "
                f"warm-up of {self.warmup}; some indicators stay None"
            )
        return records

    def reset(self) -> None:
        for indicator in self.indicators:
            indicator.reset()
        self._last_time = None
        self._count = 0
        self._rejected = 0
