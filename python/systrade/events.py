"""Typed events emitted during a simulation run.

Every event is a frozen dataclass. Listeners are plain callables that take
the event (net-worth listeners also receive the simulation state) and are
handed to the emitting component at construction, as immutable tuples.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Tuple

from .types import SignalType, SimulationState


class CashEventType(Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    DEPOSIT = "DEPOSIT"
    INTEREST = "INTEREST"


@dataclass(frozen=True)
class CashEvent:
    funds_before: Decimal
    funds_after: Decimal
    amount: Decimal
    type: CashEventType
    transaction_date: date


class BrokerageEventType(Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class BrokerageEvent:
    starting_equity_balance: Decimal
    end_equity_balance: Decimal
    equity_amount: Decimal
    type: BrokerageEventType
    transaction_date: date
    transaction_value: Decimal
    transaction_fee: Decimal


class EquityEventType(Enum):
    MANAGEMENT_FEE = "MANAGEMENT_FEE"


@dataclass(frozen=True)
class EquityEvent:
    """Change to the equity balance that is not a trade."""

    starting_equity_balance: Decimal
    end_equity_balance: Decimal
    equity_amount: Decimal
    type: EquityEventType
    event_date: date
    transaction_value: Decimal


class OrderEventType(Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    DELETE_INSUFFICIENT_FUNDS = "DELETE_INSUFFICIENT_FUNDS"


@dataclass(frozen=True)
class OrderEvent:
    """An order placed by the strategy.

    Total-cost orders carry `total_cost`, volume orders carry `volume`.
    """

    type: OrderEventType
    creation_date: date
    total_cost: Optional[Decimal] = None
    volume: Optional[Decimal] = None


@dataclass(frozen=True)
class OrderDeletedEvent(OrderEvent):
    """An outstanding order discarded because the cash account could not cover it."""


@dataclass(frozen=True)
class ReturnOnInvestmentEvent:
    """Change in net worth over (exclusive_start_date, inclusive_end_date].

    Daily events also carry the net worth at the end date.
    """

    percentage_change: Decimal
    exclusive_start_date: date
    inclusive_end_date: date
    networth: Optional[Decimal] = None


class NetWorthEventType(Enum):
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class NetWorthEvent:
    equity_balance: Decimal
    equity_balance_value: Decimal
    cash_balance: Decimal
    networth: Decimal
    event_date: date
    type: NetWorthEventType


@dataclass(frozen=True)
class SignalAnalysisEvent:
    signal_date: date
    indicator_id: str
    signal_type: SignalType


CashListener = Callable[[CashEvent], None]
BrokerageListener = Callable[[BrokerageEvent], None]
EquityListener = Callable[[EquityEvent], None]
OrderListener = Callable[[OrderEvent], None]
ReturnOnInvestmentListener = Callable[[ReturnOnInvestmentEvent], None]
NetWorthListener = Callable[[NetWorthEvent, SimulationState], None]
SignalAnalysisListener = Callable[[SignalAnalysisEvent], None]
SimulationStateListener = Callable[[SimulationState], None]


def notify(listeners: Tuple[Callable, ...], *args) -> None:
    """Synchronous delivery, in registration order."""
    for listener in listeners:
        listener(*args)
