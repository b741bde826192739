"""Trading strategy: entry/exit signal trees and position sizing.

Entries form a tree: indicator leaves combined with AND / OR operators or
an anchor "confirmed by" a second entry within a day window. The strategy
keeps a rolling window of the most recent bars, long enough for the
deepest part of the tree, and turns the first unseen signal into an order.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import date, timedelta
from decimal import Context, Decimal
from enum import Enum
from typing import Optional, Sequence

import pandas as pd

from .errors import ConfigurationError
from .maths import MATH_CONTEXT, ZERO, round_down
from .orders import BuyTotalCostTomorrowAtOpeningPriceOrder, EquityOrder, SellTotalVolumeTomorrowAtOpeningPriceOrder
from .signals import Indicator
from .types import DatedSignal, EquityClass, PriceBar, SignalType

logger = logging.getLogger(__name__)


class InsufficientFundsAction(Enum):
    DELETE = "DELETE"
    # no retry semantics are defined; rejected when a strategy is built
    RESUBMIT = "RESUBMIT"


# ---------------------------------------------------------------------------
# Entry tree
# ---------------------------------------------------------------------------


class IndicatorEntry:
    """Leaf: the signals of a single indicator."""

    def __init__(self, indicator: Indicator):
        self.indicator = indicator

    @property
    def required_trading_prices(self) -> int:
        return self.indicator.required_trading_prices

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        return self.indicator.analyse(bars)


class AndEntry:
    """Signals of `left` dated on a day `right` also signals."""

    def __init__(self, left, right):
        self.left = left
        self.right = right

    @property
    def required_trading_prices(self) -> int:
        return max(self.left.required_trading_prices, self.right.required_trading_prices)

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        left = self.left.analyse(bars)
        if not left:
            return []
        right_dates = {signal.date for signal in self.right.analyse(bars)}
        return [signal for signal in left if signal.date in right_dates]


class OrEntry:
    """Union of both sides, one signal per date, in date order."""

    def __init__(self, left, right):
        self.left = left
        self.right = right

    @property
    def required_trading_prices(self) -> int:
        return max(self.left.required_trading_prices, self.right.required_trading_prices)

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        by_date: dict[date, DatedSignal] = {}
        for signal in self.left.analyse(bars) + self.right.analyse(bars):
            by_date.setdefault(signal.date, signal)
        return [by_date[key] for key in sorted(by_date)]


class ConfirmedBy:
    """A confirmation must fall within [anchor + delay, anchor + delay + day range]."""

    def __init__(self, confirmation_day_range: int, delay_until_confirmation_range: int = 0):
        if confirmation_day_range < 0 or delay_until_confirmation_range < 0:
            raise ValueError("confirmation day range and delay must not be negative")
        self.confirmation_day_range = confirmation_day_range
        self.delay_until_confirmation_range = delay_until_confirmation_range

    @property
    def required_trading_prices(self) -> int:
        return self.confirmation_day_range + self.delay_until_confirmation_range

    def is_confirmed_by(self, anchor: DatedSignal, confirmation: DatedSignal) -> bool:
        earliest = anchor.date + timedelta(days=self.delay_until_confirmation_range)
        latest = earliest + timedelta(days=self.confirmation_day_range)
        return earliest <= confirmation.date <= latest


class ConfirmationEntry:
    """Anchor signals that a second entry confirms; the latest confirmation is kept."""

    def __init__(self, anchor, confirmed_by: ConfirmedBy, confirmation):
        self.anchor = anchor
        self.confirmed_by = confirmed_by
        self.confirmation = confirmation

    @property
    def required_trading_prices(self) -> int:
        return (
            max(self.anchor.required_trading_prices, self.confirmation.required_trading_prices)
            + self.confirmed_by.required_trading_prices
        )

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        anchors = self.anchor.analyse(bars)
        if not anchors:
            return []
        confirmations = self.confirmation.analyse(bars)
        signals = []
        for anchor in anchors:
            confirmed = [c for c in confirmations if self.confirmed_by.is_confirmed_by(anchor, c)]
            if confirmed:
                signals.append(confirmed[-1])
        return signals


class PeriodicEntry:
    """A signal on the first bar on or after each `start + n * frequency`, n >= 1."""

    required_trading_prices = 2

    def __init__(self, start: date, frequency: pd.DateOffset, signal_type: SignalType = SignalType.BULLISH):
        self.start = pd.Timestamp(start)
        self.frequency = frequency
        self.signal_type = signal_type

    def _scheduled(self, periods: int) -> date:
        return (self.start + self.frequency * periods).date()

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        signals = []
        periods = 1
        scheduled = self._scheduled(periods)
        for yesterday, today in zip(bars, bars[1:]):
            fired = False
            while scheduled <= today.date:
                if yesterday.date < scheduled and not fired:
                    signals.append(DatedSignal(today.date, self.signal_type))
                    fired = True
                periods += 1
                scheduled = self._scheduled(periods)
        return signals


# ---------------------------------------------------------------------------
# Exits
# ---------------------------------------------------------------------------


class NeverExit:
    required_trading_prices = 0

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        return []


# ---------------------------------------------------------------------------
# Position sizing
# ---------------------------------------------------------------------------


class AbsoluteTradeValue:
    """A fixed amount, regardless of the cash available."""

    def __init__(self, value: Decimal):
        self.value = value

    def bounds(self, available: Decimal) -> Decimal:
        return self.value


class RelativeTradeValue:
    """A fraction of the cash available."""

    def __init__(self, fraction: Decimal, context: Context = MATH_CONTEXT):
        self.fraction = fraction
        self.context = context

    def bounds(self, available: Decimal) -> Decimal:
        return self.context.multiply(available, self.fraction)


class LargestPossibleEntryPosition:
    """The largest trade between the minimum and maximum bounds the cash allows.

    Below the minimum there is no trade at all.
    """

    def __init__(self, minimum, maximum):
        self.minimum = minimum
        self.maximum = maximum

    def entry_position_size(self, cash_account) -> Decimal:
        available = cash_account.balance
        minimum = self.minimum.bounds(available)
        if minimum > available:
            return ZERO
        return max(ZERO, minimum, min(available, self.maximum.bounds(available)))


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


class TradingStrategy:
    def __init__(
        self,
        entry,
        entry_size: LargestPossibleEntryPosition,
        exit_=None,
        equity_class: EquityClass = EquityClass.STOCK,
        equity_scale: int = 4,
        on_insufficient_funds: InsufficientFundsAction = InsufficientFundsAction.DELETE,
        context: Context = MATH_CONTEXT,
    ):
        if on_insufficient_funds is not InsufficientFundsAction.DELETE:
            raise ConfigurationError(
                f"Insufficient funds action {on_insufficient_funds.value} is not supported, only DELETE"
            )
        self.entry = entry
        self.entry_size = entry_size
        self.exit = exit_ if exit_ is not None else NeverExit()
        self.equity_class = equity_class
        self.equity_scale = equity_scale
        self.on_insufficient_funds = on_insufficient_funds
        self.context = context
        self._bars: deque[PriceBar] = deque(maxlen=self.required_trading_prices)
        self._previous_entry_signals: set[DatedSignal] = set()
        self._previous_exit_signals: set[DatedSignal] = set()

    @property
    def required_trading_prices(self) -> int:
        return max(self.entry.required_trading_prices, self.exit.required_trading_prices, 1)

    def _observe(self, bar: PriceBar) -> bool:
        """Add today's bar to the window; True once the window is full."""
        if not self._bars or self._bars[-1].date < bar.date:
            self._bars.append(bar)
        return len(self._bars) == self._bars.maxlen

    def _first_new_signal(self, tree, seen: set[DatedSignal]) -> Optional[DatedSignal]:
        signals = tree.analyse(list(self._bars))
        if signals and signals[0] not in seen:
            return signals[0]
        return None

    def exit_tick(self, broker, bar: PriceBar) -> Optional[EquityOrder]:
        if not self._observe(bar) or broker.equity_balance <= ZERO:
            return None
        signal = self._first_new_signal(self.exit, self._previous_exit_signals)
        if signal is None:
            return None
        self._previous_exit_signals.add(signal)
        logger.debug("exit signal %s, selling %s", signal.date, broker.equity_balance)
        return SellTotalVolumeTomorrowAtOpeningPriceOrder(broker.equity_balance, bar.date)

    def entry_tick(self, fees, cash_account, bar: PriceBar) -> Optional[EquityOrder]:
        if not self._observe(bar):
            return None
        signal = self._first_new_signal(self.entry, self._previous_entry_signals)
        if signal is None:
            return None
        # a signal is acted upon at most once, even when it buys nothing
        self._previous_entry_signals.add(signal)
        ctx = self.context
        amount = self.entry_size.entry_position_size(cash_account)
        # fee on the gross amount, as the order will pay it
        fee = fees.calculate_fee(amount, self.equity_class, bar.date)
        volume = round_down(ctx.divide(ctx.subtract(amount, fee), bar.close), self.equity_scale, ctx)
        if volume <= ZERO:
            logger.debug("entry signal %s, too little cash for any volume", signal.date)
            return None
        logger.debug("entry signal %s, placing order for %s", signal.date, amount)
        return BuyTotalCostTomorrowAtOpeningPriceOrder(amount, self.equity_class, self.equity_scale, bar.date, ctx)

    def action_on_insufficient_funds(self, order: EquityOrder) -> InsufficientFundsAction:
        return self.on_insufficient_funds
