"""Tests for IndicatorBank (per-series indicator state)."""

import math

import pytest

from core.indicators.bank import IndicatorBank
from core.models.candle import Candle
from core.models.config import IndicatorConfig
from core.models.indicator import VALUE_KEYS, IndicatorRecord

HOUR_MS = 3_600_000
START_MS = 1_700_000_000_000


def make_candles(closes: list[float], start: int = START_MS) -> list[Candle]:
    return [
        Candle(
            time=start + i * HOUR_MS,
            open=c,
            high=c + 1.0,
            low=c - 1.0,
            close=c,
            volume=10.0,
        )
        for i, c in enumerate(closes)
    ]


def wave(n: int) -> list[float]:
    return [100.0 + 5.0 * math.sin(i / 4.0) + 0.05 * i for i in range(n)]


class TestIndicatorBank:
    """Tests for incremental multi-indicator computation."""

    def test_one_record_per_candle(self):
        candles = make_candles(wave(80))
        records = IndicatorBank().run(candles)

        assert len(records) == 80
        assert [r.time for r in records] == [c.time for c in candles]
        assert all(set(r.values) == set(VALUE_KEYS) for r in records)

    def test_first_record_only_has_psar(self):
        record = IndicatorBank().run(make_candles([100.0]))[0]

        assert record.close == 100.0
        assert record["psar"] == pytest.approx(99.0)
        assert all(record[k] is None for k in VALUE_KEYS if k != "psar")

    def test_complete_after_warmup(self):
        bank = IndicatorBank()
        records = bank.run(make_candles(wave(60)))

        assert bank.warmup == 50
        assert not records[48].is_complete
        assert records[48]["sma_slow"] is None
        assert records[49].is_complete

    def test_empty_input(self):
        assert IndicatorBank().run([]) == []

    def test_out_of_order_candle_is_rejected(self):
        bank = IndicatorBank(IndicatorConfig(sma_fast=2, sma_slow=3))
        first, second, third = make_candles([10.0, 20.0, 30.0])

        bank.update(first)
        bank.update(second)
        record = bank.update(first)

        assert record == IndicatorRecord.empty(first.time, first.close)
        assert bank.rejected == 1
        assert bank.candles_seen == 2

        # State untouched: SMA(3) sees 10, 20, 30
        assert bank.update(third)["sma_slow"] == pytest.approx(20.0)

    def test_duplicate_timestamp_is_rejected(self):
        bank = IndicatorBank()
        candle = make_candles([10.0])[0]
        bank.update(candle)
        bank.update(candle)
        assert bank.rejected == 1

    def test_invalid_candle_emits_none(self):
        bank = IndicatorBank(IndicatorConfig(sma_fast=1, sma_slow=2))
        good = make_candles([10.0])[0]
        bad = Candle(time=good.time + HOUR_MS, open=10, high=11, low=9, close=float("nan"))

        bank.update(good)
        record = bank.update(bad)

        assert record.close is None
        assert record["sma_fast"] is None
        assert bank.candles_seen == 2

    def test_reset(self):
        bank = IndicatorBank()
        candles = make_candles(wave(60))
        before = bank.run(candles)
        bank.reset()
        after = bank.run(candles)

        assert bank.rejected == 0
        assert before[-1] == after[-1]

    def test_instances_are_independent(self):
        """Two banks never share calculator state."""
        a = IndicatorBank(symbol="AAA")
        b = IndicatorBank(symbol="BBB")
        rising = make_candles([100.0 + i for i in range(30)])
        falling = make_candles([200.0 - i for i in range(30)])

        for up, down in zip(rising, falling):
            rec_a = a.update(up)
            rec_b = b.update(down)

        assert rec_a["rsi"] == 100.0
        assert rec_b["rsi"] == pytest.approx(0.0)

        a.update(rising[-1])
        assert a.rejected == 1
        assert b.rejected == 0

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            IndicatorConfig(macd_fast=26, macd_slow=12)
        with pytest.raises(ValueError):
            IndicatorConfig(rsi_period=0)
