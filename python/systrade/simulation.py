"""Day-by-day simulation of one strategy trading one ticker.

Each calendar day from `start` (inclusive) to `end` (exclusive):

1. the cash account is updated (interest, deposits);
2. when the day has a price bar:
   a. outstanding orders are settled against it,
   b. the strategy is asked for an exit order, then an entry order,
   c. the ROI calculator takes a net worth snapshot,
   d. the broker charges any management fee due.

Days without a bar only update the cash account.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from .data_manager import TradingData
from .errors import ConfigurationError, InsufficientEquitiesError, InsufficientFundsError, SimulationError
from .events import (
    OrderDeletedEvent,
    OrderEventType,
    OrderListener,
    SimulationStateListener,
    notify,
)
from .orders import EquityOrder
from .strategy import InsufficientFundsAction
from .types import PriceBar, SimulationState

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class Simulation:
    def __init__(
        self,
        trading_data: TradingData,
        cash_account,
        broker,
        strategy,
        roi,
        order_listeners: Sequence[OrderListener] = (),
        state_listeners: Sequence[SimulationStateListener] = (),
        start: Optional[date] = None,
        end: Optional[date] = None,
    ):
        self.trading_data = trading_data
        self.cash_account = cash_account
        self.broker = broker
        self.strategy = strategy
        self.roi = roi
        self._order_listeners = tuple(order_listeners)
        self._state_listeners = tuple(state_listeners)
        self.start = start if start is not None else trading_data.earliest.date
        self.end = end if end is not None else trading_data.latest.date + ONE_DAY
        if self.end <= self.start:
            raise ConfigurationError(f"simulation end {self.end} must be after its start {self.start}")

        self.state = SimulationState.RUNNING
        self.current_date = self.start
        self._orders: list[EquityOrder] = []
        self._has_run = False

    @property
    def outstanding_orders(self) -> tuple[EquityOrder, ...]:
        return tuple(self._orders)

    def run(self) -> None:
        if self._has_run:
            raise SimulationError("a simulation can only be run once")
        self._has_run = True

        logger.info("simulating %s from %s to %s", self.trading_data.symbol, self.start, self.end)
        while self.current_date < self.end:
            self.step()

        self.state = SimulationState.COMPLETE
        logger.info("simulation of %s complete", self.trading_data.symbol)
        notify(self._state_listeners, self.state)

    def step(self) -> None:
        """Simulate `current_date`, then move on to the next calendar day."""
        today = self.current_date
        self.cash_account.update(today)

        bar = self.trading_data.bar_for(today)
        if bar is not None:
            self._orders = self._process_outstanding_orders(bar)
            self._add_order(self.strategy.exit_tick(self.broker, bar))
            self._add_order(self.strategy.entry_tick(self.broker, self.cash_account, bar))
            self.roi.update(self.broker, self.cash_account, bar)
            self.broker.update(bar)

        self.current_date = today + ONE_DAY

    def _add_order(self, order: Optional[EquityOrder]) -> None:
        if order is None:
            return
        logger.debug("%s order placed on %s", order.order_type.value, order.creation_date)
        notify(self._order_listeners, order.order_event())
        self._orders.append(order)

    def _process_outstanding_orders(self, bar: PriceBar) -> list[EquityOrder]:
        remaining = []
        for order in self._orders:
            if not order.is_valid(bar):
                continue
            if not order.are_execution_conditions_met(bar):
                remaining.append(order)
                continue
            self._execute(order, bar)
        return remaining

    def _execute(self, order: EquityOrder, bar: PriceBar) -> None:
        """Settle the order, or discard it when the cash account cannot cover it."""
        try:
            order.execute(self.broker, self.cash_account, bar)
        except InsufficientFundsError as exc:
            action = self.strategy.action_on_insufficient_funds(order)
            if action is InsufficientFundsAction.DELETE:
                placed = order.order_event()
                logger.info("deleting order from %s on %s: insufficient funds", placed.creation_date, bar.date)
                notify(
                    self._order_listeners,
                    OrderDeletedEvent(
                        OrderEventType.DELETE_INSUFFICIENT_FUNDS,
                        placed.creation_date,
                        total_cost=placed.total_cost,
                        volume=placed.volume,
                    ),
                )
                return
            raise ConfigurationError(f"Unsupported insufficient funds action: {action.value}") from exc
        except InsufficientEquitiesError:
            logger.exception("order from %s sold more equities than held", order.creation_date)
            raise
