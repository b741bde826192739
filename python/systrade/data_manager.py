"""Trading data: the ascending price bars of one ticker, looked up by date."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from .data_provider import OhlcvFrame, to_price_bars
from .types import PriceBar


class TradingData:
    """Holds the bars of a single symbol; non-trading days are simply absent."""

    def __init__(self, bars: Iterable[PriceBar]):
        bars = list(bars)
        if not bars:
            raise ValueError("trading data needs at least one price bar")
        if any(bar is None for bar in bars):
            raise ValueError("price data must not contain None entries")
        # last bar wins for a duplicated date
        self._by_date = {bar.date: bar for bar in bars}
        self._bars = [self._by_date[day] for day in sorted(self._by_date)]

    @classmethod
    def from_frame(cls, frame: OhlcvFrame, decimals: int = 4) -> "TradingData":
        return cls(to_price_bars(frame, decimals))

    def __len__(self) -> int:
        return len(self._bars)

    @property
    def bars(self) -> list[PriceBar]:
        return list(self._bars)

    @property
    def symbol(self) -> str:
        return self._bars[0].symbol

    @property
    def earliest(self) -> PriceBar:
        return self._bars[0]

    @property
    def latest(self) -> PriceBar:
        return self._bars[-1]

    def bar_for(self, day: date) -> Optional[PriceBar]:
        return self._by_date.get(day)

    def last_bar_before(self, day: date) -> Optional[PriceBar]:
        """Most recent bar strictly before `day`."""
        previous = None
        for bar in self._bars:
            if bar.date >= day:
                break
            previous = bar
        return previous
