"""Equity orders placed by the strategy and settled by the simulation.

An order is checked against each new bar in two steps: is it still valid,
and are its execution conditions met. Only then is it executed, mutating
the broker and the cash account in the same call.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Context, Decimal
from typing import Optional

from .errors import OrderError
from .events import OrderEvent, OrderEventType
from .maths import MATH_CONTEXT, ZERO, round_down
from .types import EquityClass, PriceBar

logger = logging.getLogger(__name__)


class EquityOrder:
    """Base for orders; `expiry_date` (inclusive) bounds the validity window."""

    order_type = OrderEventType.ENTRY

    def __init__(self, creation_date: date, expiry_date: Optional[date] = None):
        self.creation_date = creation_date
        self.expiry_date = expiry_date

    def is_valid(self, bar: PriceBar) -> bool:
        return self.expiry_date is None or bar.date <= self.expiry_date

    def are_execution_conditions_met(self, bar: PriceBar) -> bool:
        # placed after the close, filled on the next bar's open
        return bar.date > self.creation_date

    def execute(self, broker, cash_account, bar: PriceBar) -> None:
        raise NotImplementedError

    def order_event(self) -> OrderEvent:
        raise NotImplementedError


class BuyTotalCostTomorrowAtOpeningPriceOrder(EquityOrder):
    """Spend `target_total_cost` (fee included) at the next opening price."""

    order_type = OrderEventType.ENTRY

    def __init__(
        self,
        target_total_cost: Decimal,
        equity_class: EquityClass,
        equity_scale: int,
        creation_date: date,
        context: Context = MATH_CONTEXT,
        expiry_date: Optional[date] = None,
    ):
        super().__init__(creation_date, expiry_date)
        self.target_total_cost = target_total_cost
        self.equity_class = equity_class
        self.equity_scale = equity_scale
        self.context = context

    def execute(self, broker, cash_account, bar: PriceBar) -> None:
        if bar.open <= ZERO:
            raise OrderError(f"cannot buy at an opening price of {bar.open} on {bar.date}")
        ctx = self.context
        fee = broker.calculate_fee(self.target_total_cost, self.equity_class, bar.date)
        volume = round_down(
            ctx.divide(ctx.subtract(self.target_total_cost, fee), bar.open), self.equity_scale, ctx
        )
        if volume <= ZERO:
            logger.debug("order from %s buys nothing at an open of %s", self.creation_date, bar.open)
            return
        cost = broker.calculate_buy(bar.open, volume, bar.date)
        # debit first: raises InsufficientFundsError before the broker is touched
        cash_account.debit(cost, bar.date)
        broker.buy(bar.open, volume, bar.date)

    def order_event(self) -> OrderEvent:
        return OrderEvent(self.order_type, self.creation_date, total_cost=self.target_total_cost)


class SellTotalVolumeTomorrowAtOpeningPriceOrder(EquityOrder):
    """Sell `volume` equities at the next opening price, crediting the proceeds."""

    order_type = OrderEventType.EXIT

    def __init__(self, volume: Decimal, creation_date: date, expiry_date: Optional[date] = None):
        super().__init__(creation_date, expiry_date)
        self.volume = volume

    def execute(self, broker, cash_account, bar: PriceBar) -> None:
        proceeds = broker.sell(bar.open, self.volume, bar.date)
        cash_account.credit(proceeds, bar.date)

    def order_event(self) -> OrderEvent:
        return OrderEvent(self.order_type, self.creation_date, volume=self.volume)
