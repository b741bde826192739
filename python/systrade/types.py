"""Shared value types for the simulation.

The guiding principle is to keep the runtime objects small, explicit and
immutable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum


@dataclass(frozen=True)
class PriceBar:
    """Daily OHLC bar for one ticker.

    All prices are Decimal (already adjusted to the desired currency scale).
    """

    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    symbol: str = ""


class SignalType(Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


@dataclass(frozen=True)
class DatedSignal:
    """A discrete bullish/bearish event tied to a calendar date."""

    date: date
    type: SignalType = SignalType.BULLISH


class EquityClass(Enum):
    STOCK = "STOCK"
    BOND = "BOND"
    FUTURE = "FUTURE"
    FOREX = "FOREX"
    METAL = "METAL"


class SimulationState(Enum):
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
