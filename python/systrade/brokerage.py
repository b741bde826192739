"""Brokerage: equity balance, transaction fees and management fees.

Fee tiers follow the published retail pricing of each broker: the fee is
the larger of a flat amount and a percentage of the trade value, with the
tier chosen by the number of trades already placed this calendar month.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Context, Decimal
from typing import Optional, Sequence

import pandas as pd

from .errors import InsufficientEquitiesError, UnsupportedEquityClassError
from .events import (
    BrokerageEvent,
    BrokerageEventType,
    BrokerageListener,
    EquityEvent,
    EquityEventType,
    EquityListener,
    notify,
)
from .maths import MATH_CONTEXT, ZERO
from .types import EquityClass, PriceBar

logger = logging.getLogger(__name__)

_TRADEABLE = (EquityClass.STOCK, EquityClass.BOND)


def apply_largest(trade_value: Decimal, flat: Decimal, percent: Decimal, context: Context = MATH_CONTEXT) -> Decimal:
    """Larger of the flat fee and `percent` (a fraction) of the trade value."""
    return max(flat, context.multiply(trade_value, percent))


def _check_equity_class(equity_class: EquityClass) -> None:
    if equity_class not in _TRADEABLE:
        raise UnsupportedEquityClassError(f"No brokerage fees defined for {equity_class.value}")


@dataclass(frozen=True)
class FeeTier:
    """Applies while the trade count this month is below `below_trades` (None: no upper limit)."""

    below_trades: Optional[int]
    flat: Decimal
    percent: Decimal


class TieredTransactionFee:
    """Transaction fees stepping down with the number of trades this month."""

    def __init__(self, tiers: Sequence[FeeTier], context: Context = MATH_CONTEXT):
        if not tiers or tiers[-1].below_trades is not None:
            raise ValueError("the last fee tier must be open ended")
        self.tiers = tuple(tiers)
        self.context = context

    def calculate_fee(self, trade_value: Decimal, equity_class: EquityClass, trades_this_month: int) -> Decimal:
        _check_equity_class(equity_class)
        for tier in self.tiers:
            if tier.below_trades is None or trades_this_month < tier.below_trades:
                return apply_largest(trade_value, tier.flat, tier.percent, self.context)
        raise AssertionError("unreachable: last tier is open ended")


class FlatPercentageTransactionFee:
    """A single percentage of the trade value, no minimum."""

    def __init__(self, percent: Decimal, context: Context = MATH_CONTEXT):
        self.percent = percent
        self.context = context

    def calculate_fee(self, trade_value: Decimal, equity_class: EquityClass, trades_this_month: int) -> Decimal:
        _check_equity_class(equity_class)
        return self.context.multiply(trade_value, self.percent)


class ZeroTransactionFee:
    def calculate_fee(self, trade_value: Decimal, equity_class: EquityClass, trades_this_month: int) -> Decimal:
        _check_equity_class(equity_class)
        return ZERO


def cmc_markets_fees(context: Context = MATH_CONTEXT) -> TieredTransactionFee:
    return TieredTransactionFee(
        [
            FeeTier(11, Decimal("11"), Decimal("0.001")),
            FeeTier(31, Decimal("9.90"), Decimal("0.0008")),
            FeeTier(None, Decimal("9.90"), Decimal("0.00075")),
        ],
        context,
    )


def bell_direct_fees(context: Context = MATH_CONTEXT) -> TieredTransactionFee:
    return TieredTransactionFee(
        [
            FeeTier(11, Decimal("15"), Decimal("0.001")),
            FeeTier(31, Decimal("13"), Decimal("0.0008")),
            FeeTier(None, Decimal("10"), Decimal("0.0008")),
        ],
        context,
    )


def vanguard_retail_fees(context: Context = MATH_CONTEXT) -> FlatPercentageTransactionFee:
    return FlatPercentageTransactionFee(Decimal("0.001"), context)


TRANSACTION_FEES = {
    "cmc_markets": cmc_markets_fees,
    "bell_direct": bell_direct_fees,
    "vanguard_retail": vanguard_retail_fees,
    "zero": lambda context=MATH_CONTEXT: ZeroTransactionFee(),
}


class MonthlyRollingCounter:
    """Counts trades in the current calendar month; a new month starts from zero."""

    def __init__(self):
        self._month: Optional[tuple[int, int]] = None
        self._count = 0

    def add(self, trade_date: date) -> int:
        month = (trade_date.year, trade_date.month)
        if month != self._month:
            self._month = month
            self._count = 0
        self._count += 1
        return self._count

    def get(self, trade_date: date) -> int:
        if (trade_date.year, trade_date.month) != self._month:
            return 0
        return self._count


# ---------------------------------------------------------------------------
# Management fees
# ---------------------------------------------------------------------------


class FlatManagementFee:
    """Annual percentage of the holdings value."""

    def __init__(self, annual_percent: Decimal, context: Context = MATH_CONTEXT):
        self.annual_percent = annual_percent
        self.context = context

    def calculate_fee(self, number_of_equities: Decimal, price: Decimal, years: int) -> Decimal:
        holdings = self.context.multiply(number_of_equities, price)
        return self.context.multiply(self.context.multiply(holdings, self.annual_percent), Decimal(years))


class LadderedManagementFee:
    """Annual fee charged per band of holdings value.

    `ranges` are the upper bounds of each band; `fees` has one more entry
    than `ranges`, the last applying to everything above the final bound.
    """

    def __init__(self, ranges: Sequence[Decimal], fees: Sequence[Decimal], context: Context = MATH_CONTEXT):
        if len(ranges) + 1 != len(fees):
            raise ValueError(
                f"Expecting one less range entry than fee entries, but given {len(ranges)} and {len(fees)}"
            )
        self.ranges = tuple(ranges)
        self.fees = tuple(fees)
        self.context = context

    def calculate_fee(self, number_of_equities: Decimal, price: Decimal, years: int) -> Decimal:
        ctx = self.context
        holdings = ctx.multiply(number_of_equities, price)
        fee = ZERO
        bottom = ZERO
        for top, percent in zip(self.ranges, self.fees):
            if holdings <= bottom:
                break
            fee = ctx.add(fee, ctx.multiply(ctx.subtract(min(holdings, top), bottom), percent))
            bottom = top
        if holdings > bottom:
            fee = ctx.add(fee, ctx.multiply(ctx.subtract(holdings, bottom), self.fees[-1]))
        return ctx.multiply(fee, Decimal(years))


class ZeroManagementFee:
    def calculate_fee(self, number_of_equities: Decimal, price: Decimal, years: int) -> Decimal:
        return ZERO


class PeriodicManagementFee:
    """Charges the calculator's fee on every anniversary of `start`."""

    def __init__(self, start: date, calculator, frequency_years: int = 1):
        if frequency_years < 1:
            raise ValueError("frequency_years must be positive")
        self.calculator = calculator
        self.frequency_years = frequency_years
        self._start = pd.Timestamp(start)
        self._charges = 0

    def _charge_date(self, charges: int) -> date:
        return (self._start + pd.DateOffset(years=self.frequency_years * charges)).date()

    def update(self, number_of_equities: Decimal, price: Decimal, trading_date: date) -> Decimal:
        periods = 0
        while self._charge_date(self._charges + 1) <= trading_date:
            self._charges += 1
            periods += 1
        if periods == 0:
            return ZERO
        return self.calculator.calculate_fee(number_of_equities, price, periods * self.frequency_years)


# ---------------------------------------------------------------------------
# Broker
# ---------------------------------------------------------------------------


class SingleEquityClassBroker:
    """Holds a balance of a single equity and charges for trading it."""

    def __init__(
        self,
        transaction_fee,
        management_fee: Optional[PeriodicManagementFee] = None,
        equity_class: EquityClass = EquityClass.STOCK,
        listeners: Sequence[BrokerageListener] = (),
        equity_listeners: Sequence[EquityListener] = (),
        context: Context = MATH_CONTEXT,
    ):
        self.transaction_fee = transaction_fee
        self.management_fee = management_fee
        self.equity_class = equity_class
        self.context = context
        self._listeners = tuple(listeners)
        self._equity_listeners = tuple(equity_listeners)
        self._monthly_trades = MonthlyRollingCounter()
        self._equity_balance = ZERO

    @property
    def equity_balance(self) -> Decimal:
        return self._equity_balance

    def calculate_fee(self, trade_value: Decimal, equity_class: EquityClass, trade_date: date) -> Decimal:
        """Fee at this month's current trade count."""
        return self.transaction_fee.calculate_fee(trade_value, equity_class, self._monthly_trades.get(trade_date))

    def calculate_buy(self, price: Decimal, volume: Decimal, trade_date: date) -> Decimal:
        """Trade value plus fee, were the trade placed next. Nothing is recorded."""
        trade_value = self.context.multiply(price, volume)
        fee = self.transaction_fee.calculate_fee(
            trade_value, self.equity_class, self._monthly_trades.get(trade_date) + 1
        )
        return self.context.add(trade_value, fee)

    def buy(self, price: Decimal, volume: Decimal, trade_date: date) -> None:
        trade_value = self.context.multiply(price, volume)
        trades_this_month = self._monthly_trades.add(trade_date)
        fee = self.transaction_fee.calculate_fee(trade_value, self.equity_class, trades_this_month)
        starting = self._equity_balance
        self._equity_balance = self.context.add(starting, volume)
        notify(
            self._listeners,
            BrokerageEvent(
                starting, self._equity_balance, volume, BrokerageEventType.BUY, trade_date, trade_value, fee
            ),
        )

    def sell(self, price: Decimal, volume: Decimal, trade_date: date) -> Decimal:
        """Remove `volume` from the balance; returns the proceeds net of fees."""
        remaining = self.context.subtract(self._equity_balance, volume)
        if remaining < ZERO:
            raise InsufficientEquitiesError(
                f"Attempting to sell {volume} when only {self._equity_balance} are held"
            )
        trade_value = self.context.multiply(price, volume)
        trades_this_month = self._monthly_trades.add(trade_date)
        fee = self.transaction_fee.calculate_fee(trade_value, self.equity_class, trades_this_month)
        starting = self._equity_balance
        self._equity_balance = remaining
        notify(
            self._listeners,
            BrokerageEvent(starting, remaining, volume, BrokerageEventType.SELL, trade_date, trade_value, fee),
        )
        return self.context.subtract(trade_value, fee)

    def update(self, bar: PriceBar) -> None:
        """Erode the equity balance by any management fee due on this date."""
        if self.management_fee is None:
            return
        fee = self.management_fee.update(self._equity_balance, bar.close, bar.date)
        if fee <= ZERO or bar.close <= ZERO:
            return
        # the fee is paid in units of the equity at today's close
        units = min(self._equity_balance, self.context.divide(fee, bar.close))
        starting = self._equity_balance
        self._equity_balance = self.context.subtract(starting, units)
        logger.debug("management fee of %s (%s units) on %s", fee, units, bar.date)
        notify(
            self._equity_listeners,
            EquityEvent(starting, self._equity_balance, units, EquityEventType.MANAGEMENT_FEE, bar.date, fee),
        )
