"""Return on investment and net worth bookkeeping.

Percentage changes exclude deposits made between two updates. Rollups
*sum* the percentages of consecutive events rather than compounding them.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Context, Decimal
from typing import Optional, Sequence

import pandas as pd

from .events import (
    CashEvent,
    CashEventType,
    NetWorthEvent,
    NetWorthEventType,
    NetWorthListener,
    ReturnOnInvestmentEvent,
    ReturnOnInvestmentListener,
    notify,
)
from .maths import MATH_CONTEXT, ONE_HUNDRED, ZERO
from .types import PriceBar, SimulationState


def networth(equity_balance: Decimal, close: Decimal, cash_balance: Decimal, context: Context = MATH_CONTEXT) -> Decimal:
    return context.add(cash_balance, context.multiply(equity_balance, close))


def percentage_change(
    previous: Decimal, current: Decimal, deposited: Decimal, context: Context = MATH_CONTEXT
) -> Decimal:
    """Change from `previous` to `current` net of deposits, as a percentage of `previous`."""
    absolute = context.subtract(context.subtract(current, previous), deposited)
    if absolute == ZERO or previous == ZERO:
        return ZERO
    return context.multiply(context.divide(absolute, previous), ONE_HUNDRED)


class CumulativeReturnOnInvestment:
    """Day on day ROI; subscribe `on_cash_event` to the cash account to track deposits."""

    def __init__(self, listeners: Sequence[ReturnOnInvestmentListener] = (), context: Context = MATH_CONTEXT):
        self.context = context
        self._listeners = tuple(listeners)
        self._previous_networth: Optional[Decimal] = None
        self._previous_date: Optional[date] = None
        self._deposited = ZERO

    def on_cash_event(self, event: CashEvent) -> None:
        if event.type is CashEventType.DEPOSIT:
            self._deposited = self.context.add(self._deposited, event.amount)

    def update(self, broker, cash_account, bar: PriceBar) -> None:
        current = networth(broker.equity_balance, bar.close, cash_account.balance, self.context)
        if self._previous_networth is None:
            change = ZERO
        else:
            change = percentage_change(self._previous_networth, current, self._deposited, self.context)
        self._previous_networth = current
        self._deposited = ZERO

        start = self._previous_date if self._previous_date is not None else bar.date - timedelta(days=1)
        self._previous_date = bar.date
        notify(self._listeners, ReturnOnInvestmentEvent(change, start, bar.date, current))


class PeriodicCumulativeReturnOnInvestment:
    """Sums ROI events and emits one summary once each period has passed."""

    def __init__(
        self,
        start: date,
        period: pd.DateOffset,
        listeners: Sequence[ReturnOnInvestmentListener] = (),
        context: Context = MATH_CONTEXT,
    ):
        self.period = period
        self.context = context
        self._listeners = tuple(listeners)
        self._last_summary = start
        self._next_summary = (pd.Timestamp(start) + period).date()
        self._cumulative = ZERO

    def on_event(self, event: ReturnOnInvestmentEvent) -> None:
        self._cumulative = self.context.add(self._cumulative, event.percentage_change)
        today = event.inclusive_end_date
        if self._next_summary < today:
            notify(
                self._listeners,
                ReturnOnInvestmentEvent(self._cumulative, self._last_summary, today, event.networth),
            )
            self._cumulative = ZERO
            self._last_summary = today
            while self._next_summary < today:
                self._next_summary = (pd.Timestamp(self._next_summary) + self.period).date()


class TotalReturnOnInvestment:
    """Running sum of every ROI event's percentage change."""

    def __init__(self, context: Context = MATH_CONTEXT):
        self.context = context
        self._total = ZERO
        self._first: Optional[date] = None
        self._last: Optional[date] = None

    def on_event(self, event: ReturnOnInvestmentEvent) -> None:
        self._total = self.context.add(self._total, event.percentage_change)
        if self._first is None:
            self._first = event.exclusive_start_date
        self._last = event.inclusive_end_date

    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def first_date(self) -> Optional[date]:
        return self._first

    @property
    def last_date(self) -> Optional[date]:
        return self._last


class NetWorthSummaryEventGenerator:
    """On a simulation state change, reports the net worth at the last bar."""

    def __init__(
        self,
        broker,
        last_bar: PriceBar,
        cash_account,
        listeners: Sequence[NetWorthListener] = (),
        context: Context = MATH_CONTEXT,
    ):
        self.broker = broker
        self.last_bar = last_bar
        self.cash_account = cash_account
        self.context = context
        self._listeners = tuple(listeners)

    def on_state_change(self, state: SimulationState) -> None:
        ctx = self.context
        equity_balance = self.broker.equity_balance
        equity_value = ctx.multiply(equity_balance, self.last_bar.close)
        cash_balance = self.cash_account.balance
        event = NetWorthEvent(
            equity_balance,
            equity_value,
            cash_balance,
            ctx.add(cash_balance, equity_value),
            self.last_bar.date,
            NetWorthEventType.COMPLETED,
        )
        notify(self._listeners, event, state)
