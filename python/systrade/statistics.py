"""Running totals over the event stream of one simulation."""

from __future__ import annotations

from collections import Counter
from decimal import Decimal

from .events import (
    BrokerageEvent,
    BrokerageEventType,
    CashEvent,
    CashEventType,
    EquityEvent,
    EquityEventType,
    OrderDeletedEvent,
    OrderEvent,
    OrderEventType,
)
from .maths import ZERO


class CumulativeEventStatistics:
    """Subscribe each `on_*` method to the matching event source."""

    def __init__(self):
        self.brokerage_fees = ZERO
        # trades binned by their exact volume
        self.buy_events: Counter[Decimal] = Counter()
        self.sell_events: Counter[Decimal] = Counter()

        self.amount_deposited = ZERO
        self.interest_earned = ZERO
        self.deposit_count = 0
        self.interest_count = 0

        self.entry_order_count = 0
        self.exit_order_count = 0
        self.deleted_order_count = 0

        self.management_fees = ZERO
        self.management_fee_count = 0

    @property
    def buy_event_count(self) -> int:
        return sum(self.buy_events.values())

    @property
    def sell_event_count(self) -> int:
        return sum(self.sell_events.values())

    def on_brokerage_event(self, event: BrokerageEvent) -> None:
        self.brokerage_fees += event.transaction_fee
        if event.type is BrokerageEventType.BUY:
            self.buy_events[event.equity_amount] += 1
        elif event.type is BrokerageEventType.SELL:
            self.sell_events[event.equity_amount] += 1
        else:
            raise ValueError(f"Brokerage event type {event.type} is unexpected")

    def on_cash_event(self, event: CashEvent) -> None:
        if event.type is CashEventType.DEPOSIT:
            self.amount_deposited += event.amount
            self.deposit_count += 1
        elif event.type is CashEventType.INTEREST:
            self.interest_earned += event.amount
            self.interest_count += 1

    def on_order_event(self, event: OrderEvent) -> None:
        if isinstance(event, OrderDeletedEvent) or event.type is OrderEventType.DELETE_INSUFFICIENT_FUNDS:
            self.deleted_order_count += 1
        elif event.type is OrderEventType.ENTRY:
            self.entry_order_count += 1
        elif event.type is OrderEventType.EXIT:
            self.exit_order_count += 1

    def on_equity_event(self, event: EquityEvent) -> None:
        if event.type is EquityEventType.MANAGEMENT_FEE:
            self.management_fees += event.transaction_value
            self.management_fee_count += 1

    def summary(self) -> dict:
        return {
            "entry_orders": self.entry_order_count,
            "exit_orders": self.exit_order_count,
            "deleted_orders": self.deleted_order_count,
            "buy_events": self.buy_event_count,
            "sell_events": self.sell_event_count,
            "brokerage_fees": self.brokerage_fees,
            "management_fees": self.management_fees,
            "deposits": self.deposit_count,
            "amount_deposited": self.amount_deposited,
            "interest_earned": self.interest_earned,
        }
