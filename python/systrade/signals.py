"""Signal generators: indicator lines -> dated bullish/bearish signals.

Every generator walks its line(s) from the second value onwards, asking the
in-range predicate about the candidate date before testing the crossover or
threshold for it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Sequence

import pandas as pd

from .events import SignalAnalysisEvent, SignalAnalysisListener, notify
from .indicators import MacdLines, StochasticLines, align_right
from .maths import ZERO
from .types import DatedSignal, PriceBar, SignalType

logger = logging.getLogger(__name__)

InRange = Callable[[date], bool]


class Gradient(Enum):
    POSITIVE = "POSITIVE"
    FLAT = "FLAT"
    NEGATIVE = "NEGATIVE"


def gradient_of(yesterday: Decimal, today: Decimal) -> Gradient:
    if today > yesterday:
        return Gradient.POSITIVE
    if today < yesterday:
        return Gradient.NEGATIVE
    return Gradient.FLAT


@dataclass(frozen=True)
class MacdBullishSignals:
    """MACD crossing above its signal line, or rising through the origin.

    A run where MACD sits on the signal line for several days yields a signal
    at each edge of the run.
    """

    signal_type = SignalType.BULLISH

    def generate(self, lines: MacdLines, in_range: InRange) -> list[DatedSignal]:
        macd_line, signal_line = align_right(lines.macd, lines.signal)
        macd_values = macd_line.to_numpy()
        signal_values = signal_line.to_numpy()
        dates = macd_line.index
        signals = []
        for i in range(1, len(macd_values)):
            if not in_range(dates[i]):
                continue
            today, yesterday = macd_values[i], macd_values[i - 1]
            if today <= yesterday:
                continue
            crossing_signal_line = today >= signal_values[i] and yesterday <= signal_values[i - 1]
            crossing_origin = today > ZERO and yesterday <= ZERO
            if crossing_signal_line or crossing_origin:
                signals.append(DatedSignal(dates[i], self.signal_type))
        return signals


@dataclass(frozen=True)
class MacdUptrendSignals:
    """Every date whose MACD is above zero; the signal line is ignored."""

    signal_type = SignalType.BULLISH

    def generate(self, lines: MacdLines, in_range: InRange) -> list[DatedSignal]:
        values = lines.macd.to_numpy()
        dates = lines.macd.index
        return [
            DatedSignal(dates[i], self.signal_type)
            for i in range(1, len(values))
            if in_range(dates[i]) and values[i] > ZERO
        ]


@dataclass(frozen=True)
class RsiBullishSignals:
    """RSI climbing back above the oversold threshold."""

    oversold: Decimal = Decimal(30)
    signal_type = SignalType.BULLISH

    def generate(self, line: pd.Series, in_range: InRange) -> list[DatedSignal]:
        values = line.to_numpy()
        dates = line.index
        signals = []
        for i in range(1, len(values)):
            if in_range(dates[i]) and values[i - 1] <= self.oversold < values[i]:
                signals.append(DatedSignal(dates[i], self.signal_type))
        return signals


@dataclass(frozen=True)
class RsiBearishSignals:
    """RSI falling back below the overbought threshold."""

    overbought: Decimal = Decimal(70)
    signal_type = SignalType.BEARISH

    def generate(self, line: pd.Series, in_range: InRange) -> list[DatedSignal]:
        values = line.to_numpy()
        dates = line.index
        signals = []
        for i in range(1, len(values)):
            if in_range(dates[i]) and values[i - 1] >= self.overbought > values[i]:
                signals.append(DatedSignal(dates[i], self.signal_type))
        return signals


@dataclass(frozen=True)
class StochasticBullishSignals:
    """Rising full %K crossing from below %D to above it."""

    signal_type = SignalType.BULLISH

    def generate(self, lines: StochasticLines, in_range: InRange) -> list[DatedSignal]:
        k_line, d_line = align_right(lines.k, lines.d)
        k_values = k_line.to_numpy()
        d_values = d_line.to_numpy()
        dates = k_line.index
        signals = []
        for i in range(1, len(k_values)):
            if not in_range(dates[i]):
                continue
            today, yesterday = k_values[i], k_values[i - 1]
            if today > yesterday and today > d_values[i] and yesterday < d_values[i - 1]:
                signals.append(DatedSignal(dates[i], self.signal_type))
        return signals


@dataclass(frozen=True)
class GradientSignals:
    """Signal whenever the day-on-day gradient of a moving average matches `target`."""

    target: Gradient = Gradient.POSITIVE
    signal_type: SignalType = SignalType.BULLISH

    def generate(self, line: pd.Series, in_range: InRange) -> list[DatedSignal]:
        values = line.to_numpy()
        dates = line.index
        signals = []
        for i in range(1, len(values)):
            if in_range(dates[i]) and gradient_of(values[i - 1], values[i]) is self.target:
                signals.append(DatedSignal(dates[i], self.signal_type))
        return signals


# ---------------------------------------------------------------------------
# Signal date ranges
# ---------------------------------------------------------------------------


def is_within_signal_range(earliest: date, latest: date, candidate: date) -> bool:
    """Inclusive at both ends."""
    return earliest <= candidate <= latest


@dataclass(frozen=True)
class TradingDaySignalRange:
    """Only the last `trading_days` bars of the window may carry a signal."""

    trading_days: int = 1

    def earliest_signal_date(self, bars: Sequence[PriceBar]) -> date:
        return bars[max(0, len(bars) - 1 - self.trading_days)].date

    def latest_signal_date(self, bars: Sequence[PriceBar]) -> date:
        return bars[-1].date


@dataclass(frozen=True)
class SimulationDatesSignalRange:
    """Narrows another range so no signal falls outside the simulation dates."""

    start: date
    end: date
    inner: TradingDaySignalRange = TradingDaySignalRange()

    def earliest_signal_date(self, bars: Sequence[PriceBar]) -> date:
        return max(self.start, self.inner.earliest_signal_date(bars))

    def latest_signal_date(self, bars: Sequence[PriceBar]) -> date:
        return min(self.end, self.inner.latest_signal_date(bars))


class Indicator:
    """Binds an indicator calculator to a signal generator and a date range.

    `analyse()` returns the signals and reports each one to the signal
    analysis listeners.
    """

    def __init__(
        self,
        indicator_id: str,
        calculator,
        generator,
        signal_range,
        listeners: Sequence[SignalAnalysisListener] = (),
    ):
        self.indicator_id = indicator_id
        self.calculator = calculator
        self.generator = generator
        self.signal_range = signal_range
        self._listeners = tuple(listeners)

    @property
    def required_trading_prices(self) -> int:
        return self.calculator.minimum_prices

    def analyse(self, bars: Sequence[PriceBar]) -> list[DatedSignal]:
        earliest = self.signal_range.earliest_signal_date(bars)
        latest = self.signal_range.latest_signal_date(bars)
        signals = self.generator.generate(
            self.calculator.calculate(bars),
            lambda candidate: is_within_signal_range(earliest, latest, candidate),
        )
        for signal in signals:
            logger.debug("%s %s signal on %s", self.indicator_id, signal.type.value, signal.date)
            notify(self._listeners, SignalAnalysisEvent(signal.date, self.indicator_id, signal.type))
        return signals
