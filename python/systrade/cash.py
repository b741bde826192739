"""Cash accounts: interest, deposits and the debits/credits of trading."""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from decimal import Context, Decimal
from typing import Sequence

from .errors import InsufficientFundsError
from .events import CashEvent, CashEventType, CashListener, notify
from .maths import MATH_CONTEXT, ONE_HUNDRED, ZERO

logger = logging.getLogger(__name__)


class FlatInterestRate:
    """Simple daily interest from an annual percentage (e.g. 1.5 for 1.5%)."""

    def __init__(self, annual_percent: Decimal, context: Context = MATH_CONTEXT):
        self.annual_percent = annual_percent
        self.context = context

    def interest(self, funds: Decimal, days: int, leap_year: bool) -> Decimal:
        if days == 0:
            return ZERO
        ctx = self.context
        days_in_year = Decimal(366 if leap_year else 365)
        daily = ctx.divide(ctx.divide(self.annual_percent, ONE_HUNDRED), days_in_year)
        return ctx.multiply(ctx.multiply(funds, daily), Decimal(days))


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


class CalculatedDailyPaidMonthlyCashAccount:
    """Interest accrues into escrow daily and is paid at the start of each month.

    `balance` only counts paid funds; escrow is excluded until paid.
    """

    def __init__(
        self,
        rate: FlatInterestRate,
        opening_funds: Decimal,
        opening_date: date,
        listeners: Sequence[CashListener] = (),
        context: Context = MATH_CONTEXT,
    ):
        self.rate = rate
        self.context = context
        self._funds = opening_funds
        self._escrow = ZERO
        self._last_interest_calculation = opening_date
        self._listeners = tuple(listeners)

    @property
    def balance(self) -> Decimal:
        return self._funds

    @property
    def escrow(self) -> Decimal:
        return self._escrow

    def update(self, trading_date: date) -> None:
        if trading_date <= self._last_interest_calculation:
            return
        last = self._last_interest_calculation
        while (last.year, last.month) != (trading_date.year, trading_date.month):
            last = self._apply_full_month_interest(last)
        days = (trading_date - last).days
        interest = self.rate.interest(self._funds, days, calendar.isleap(trading_date.year))
        self._escrow = self.context.add(self._escrow, interest)
        self._last_interest_calculation = trading_date

    def _apply_full_month_interest(self, last: date) -> date:
        days = calendar.monthrange(last.year, last.month)[1] - last.day + 1
        interest = self.context.add(self.rate.interest(self._funds, days, calendar.isleap(last.year)), self._escrow)
        self._escrow = ZERO
        paid_on = _first_of_next_month(last)
        if interest != ZERO:
            before = self._funds
            self._funds = self.context.add(before, interest)
            notify(self._listeners, CashEvent(before, self._funds, interest, CashEventType.INTEREST, paid_on))
        return paid_on

    def debit(self, amount: Decimal, transaction_date: date) -> None:
        if self._funds < amount:
            raise InsufficientFundsError(f"Attempting to debit {amount} from only {self._funds}")
        self._record(self.context.subtract(self._funds, amount), amount, CashEventType.DEBIT, transaction_date)

    def credit(self, amount: Decimal, transaction_date: date) -> None:
        self._record(self.context.add(self._funds, amount), amount, CashEventType.CREDIT, transaction_date)

    def deposit(self, amount: Decimal, transaction_date: date) -> None:
        self._record(self.context.add(self._funds, amount), amount, CashEventType.DEPOSIT, transaction_date)

    def _record(self, after: Decimal, amount: Decimal, event_type: CashEventType, transaction_date: date) -> None:
        before = self._funds
        self._funds = after
        notify(self._listeners, CashEvent(before, after, amount, event_type, transaction_date))


class RegularDepositCashAccount:
    """Decorates a cash account with a fixed deposit every `interval`.

    Deposits fall due on `first_deposit + n * interval`; every one due by
    an update is paid on that update.
    """

    def __init__(self, amount: Decimal, account, first_deposit: date, interval: timedelta):
        if interval.days < 1:
            raise ValueError("deposit interval must be at least one day")
        self.amount = amount
        self.account = account
        self.interval = interval
        self._next_deposit = first_deposit

    @property
    def balance(self) -> Decimal:
        return self.account.balance

    def update(self, trading_date: date) -> None:
        deposits = 0
        while self._next_deposit <= trading_date:
            self.account.deposit(self.amount, trading_date)
            self._next_deposit += self.interval
            deposits += 1
        if deposits > 1:
            logger.debug("%d deposits caught up on %s", deposits, trading_date)
        self.account.update(trading_date)

    def debit(self, amount: Decimal, transaction_date: date) -> None:
        self.account.debit(amount, transaction_date)

    def credit(self, amount: Decimal, transaction_date: date) -> None:
        self.account.credit(amount, transaction_date)

    def deposit(self, amount: Decimal, transaction_date: date) -> None:
        self.account.deposit(amount, transaction_date)
