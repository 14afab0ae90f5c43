"""Single-series backtest engine.

Replays a signal stream against candles with an at-most-one-position state
machine (FLAT / OPEN(side)). Per candle, in ascending time order:

1. A pending next-bar entry is filled at this candle's open.
2. An open position is checked for exits: stop-loss, take-profit,
   opposite signal after the minimum hold, maximum hold.
3. If flat, out of cooldown and the candle did not just close a position,
   the candle's signal may open a new one.
4. The balance is appended to the equity curve.

Whatever is still open after the last candle is force-closed at the last
close with ``exit_reason="final"``.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from core.models.candle import Candle
from core.models.config import BacktestParams
from core.models.signal import AggregatedSignal, Direction, Signal, signal_score

logger = logging.getLogger(__name__)

SignalInput = Signal | AggregatedSignal | str | float | int | None


class ExitReason(str, Enum):
    """Why a position was closed."""

    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    SIGNAL = "signal"
    MAX_HOLD = "max_hold"
    FINAL = "final"


@dataclass(slots=True)
class Position:
    """The single live position of a run."""

    side: Direction
    entry_price: float
    entry_index: int
    entry_time: int
    balance_before_entry: float

    def price_return(self, price: float) -> float:
        """Unrealized return at ``price``, positive when in profit."""
        if self.side == Direction.LONG:
            return (price - self.entry_price) / self.entry_price
        return (self.entry_price - price) / self.entry_price

    def price_at_return(self, ret: float) -> float:
        """Price at which the position's return equals ``ret``."""
        if self.side == Direction.LONG:
            return self.entry_price * (1 + ret)
        return self.entry_price * (1 - ret)


@dataclass(slots=True, frozen=True)
class Trade:
    """A closed round trip.

    ``pnl`` is the balance change over the whole round trip, entry fee
    included, so the PnL of all trades sums to ``final - initial`` balance.
    """

    entry_time: int
    entry_price: float
    exit_time: int
    exit_price: float
    side: Direction
    net_return: float
    pnl: float
    is_win: bool
    holding_period: int
    exit_reason: ExitReason


@dataclass(slots=True, frozen=True)
class EquityPoint:
    time: int
    balance: float


@dataclass
class EngineRun:
    """Raw output of one engine invocation."""

    initial_balance: float
    final_balance: float
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    signal_counts: dict[str, int] = field(default_factory=dict)


class BacktestEngine:
    """Simulate trading one signal stream over one candle series.

    Each ``run`` starts from a clean state, so an engine instance may be
    reused sequentially, but never shared between threads mid-run.
    """

    def __init__(self, params: BacktestParams | None = None):
        self.params = params or BacktestParams()
        self._reset()

    def _reset(self) -> None:
        self._balance = self.params.initial_balance
        self._position: Position | None = None
        self._cooldown_until = 0
        self._trades: list[Trade] = []

    def run(self, candles: Sequence[Candle], signals: Sequence[SignalInput]) -> EngineRun:
        """Replay ``signals`` (one per candle) against ``candles``.

        Raises:
            ValueError: If the two sequences differ in length.
        """
        candles = list(candles)
        signals = list(signals)
        if len(candles) != len(signals):
            raise ValueError(f"Got {len(candles)} candles but {len(signals)} signals")

        self._reset()
        p = self.params
        equity: list[EquityPoint] = []
        counts: Counter[str] = Counter()
        pending: Direction | None = None
        last_price: float | None = None
        last_index = len(candles) - 1

        for i, candle in enumerate(candles):
            score = signal_score(signals[i])
            counts[Signal.from_score(score).value] += 1

            if pending is not None:
                if math.isfinite(candle.open) and candle.open > 0:
                    self._open(pending, candle.open, i, candle.time)
                else:
                    logger.debug(f"Dropped next-bar entry at {candle.time}: invalid open")
                pending = None

            price = candle.close
            if not (math.isfinite(price) and price > 0):
                if i == last_index and self._position is not None and last_price is not None:
                    self._close(last_price, i, candle.time, ExitReason.FINAL)
                equity.append(EquityPoint(candle.time, self._balance))
                continue
            last_price = price

            closed_now = False
            if self._position is not None:
                closed_now = self._check_exit(price, score, i, candle.time)

            if (
                self._position is None
                and not closed_now
                and i < last_index
                and i >= self._cooldown_until
            ):
                side = self._entry_side(score)
                if side is not None:
                    if p.execute_next_bar:
                        pending = side
                    else:
                        self._open(side, price, i, candle.time)

            if i == last_index and self._position is not None:
                self._close(price, i, candle.time, ExitReason.FINAL)

            equity.append(EquityPoint(candle.time, self._balance))

        logger.debug(
            f"Engine run: {len(candles)} candles, {len(self._trades)} trades, "
            f"final balance {self._balance:.2f}"
        )
        return EngineRun(
            initial_balance=p.initial_balance,
            final_balance=self._balance,
            trades=list(self._trades),
            equity_curve=equity,
            signal_counts=dict(counts),
        )

    def _entry_side(self, score: float) -> Direction | None:
        if score > 0:
            return Direction.LONG
        if score < 0 and not self.params.long_only:
            return Direction.SHORT
        return None

    def _check_exit(self, price: float, score: float, index: int, time: int) -> bool:
        p = self.params
        pos = self._position
        ret = pos.price_return(price)
        holding = index - pos.entry_index

        if ret <= p.stop_loss:
            self._close(pos.price_at_return(p.stop_loss), index, time, ExitReason.STOP_LOSS)
            return True
        if ret >= p.take_profit:
            self._close(pos.price_at_return(p.take_profit), index, time, ExitReason.TAKE_PROFIT)
            return True

        opposite = score < 0 if pos.side == Direction.LONG else score > 0
        if holding >= p.min_hold_periods and opposite:
            self._close(price, index, time, ExitReason.SIGNAL)
            return True
        if p.max_hold_periods is not None and holding >= p.max_hold_periods:
            self._close(price, index, time, ExitReason.MAX_HOLD)
            return True
        return False

    def _open(self, side: Direction, price: float, index: int, time: int) -> None:
        p = self.params
        balance_before = self._balance
        self._balance -= self._balance * p.position_size_fraction * p.fee
        self._position = Position(
            side=side,
            entry_price=price,
            entry_index=index,
            entry_time=time,
            balance_before_entry=balance_before,
        )
        logger.debug(f"Open {side.name} @ {price:.6g} (index={index})")

    def _close(self, price: float, index: int, time: int, reason: ExitReason) -> None:
        p = self.params
        pos = self._position
        net_return = pos.price_return(price) - p.fee

        position_value = self._balance * p.position_size_fraction
        pnl = position_value * net_return
        if p.max_loss_fraction is not None:
            pnl = max(pnl, -position_value * p.max_loss_fraction)
        if p.max_gain_fraction is not None:
            pnl = min(pnl, position_value * p.max_gain_fraction)
        self._balance += pnl

        trade_pnl = self._balance - pos.balance_before_entry
        self._trades.append(
            Trade(
                entry_time=pos.entry_time,
                entry_price=pos.entry_price,
                exit_time=time,
                exit_price=price,
                side=pos.side,
                net_return=net_return,
                pnl=trade_pnl,
                is_win=trade_pnl > 0,
                holding_period=index - pos.entry_index,
                exit_reason=reason,
            )
        )
        self._position = None
        self._cooldown_until = index + p.cooldown_periods
        logger.debug(
            f"Close {pos.side.name} @ {price:.6g} ({reason.value}) "
            f"net={net_return:+.4%} pnl={trade_pnl:+.2f}"
        )
