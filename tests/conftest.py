from datetime import date, timedelta
from decimal import Decimal

import pytest

from systrade.types import PriceBar


def _bars(closes, start=date(2021, 1, 4), spread=Decimal(0)):
    out = []
    for i, close in enumerate(closes):
        close = Decimal(str(close))
        out.append(
            PriceBar(
                date=start + timedelta(days=i),
                open=close,
                high=close + spread,
                low=close - spread,
                close=close,
                symbol="TEST",
            )
        )
    return out


@pytest.fixture
def make_bars():
    """Consecutive daily bars with open == close and a symmetric high/low spread."""
    return _bars


class Recorder:
    """Callable listener that keeps every call's arguments."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args[0] if len(args) == 1 else args)

    def __len__(self):
        return len(self.calls)


@pytest.fixture
def recorder():
    return Recorder


class StubCash:
    def __init__(self, balance):
        self.balance = Decimal(balance)


class StubBroker:
    def __init__(self, equity_balance=0):
        self.equity_balance = Decimal(equity_balance)


@pytest.fixture
def stub_cash():
    return StubCash


@pytest.fixture
def stub_broker():
    return StubBroker
