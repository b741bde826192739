"""Indicator computation utilities.

Indicators are computed on the CLOSE (and HIGH/LOW where needed) of an
ascending sequence of `PriceBar`. Each returns an indicator line: a
`pandas.Series` of Decimal values indexed by bar date, holding one value per
date once the lookback is satisfied.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Context, Decimal
from typing import Sequence

import pandas as pd

from .errors import InsufficientDataError
from .maths import MATH_CONTEXT, ONE, ONE_HUNDRED, ZERO
from .types import PriceBar

# Divisor used by %K when the trailing high equals the trailing low.
ONE_HUNDREDTH = Decimal("0.01")


def validate_prices(bars: Sequence[PriceBar], lookback: int, value_count: int) -> None:
    """Reject bad arguments before any calculation."""
    if lookback <= 1:
        raise ValueError(f"lookback must be greater than one, given {lookback}")
    if value_count <= 1:
        raise ValueError(f"value count must be greater than one, given {value_count}")
    if any(bar is None for bar in bars):
        raise ValueError("price data must not contain None entries")
    if len(bars) < lookback + value_count:
        raise InsufficientDataError(
            f"At least {lookback + value_count} price bars are needed, only {len(bars)} given"
        )


def _line(dates, values: list[Decimal]) -> pd.Series:
    # object dtype keeps the Decimal values intact
    return pd.Series(values, index=pd.Index(list(dates), name="date"), dtype=object)


def _ema_values(values: Sequence[Decimal], lookback: int, context: Context) -> list[Decimal]:
    """Recursive EMA seeded with the first value; one output per input."""
    smoothing = context.divide(Decimal(2), Decimal(lookback + 1))
    out: list[Decimal] = []
    previous = values[0]
    for value in values:
        previous = context.add(context.multiply(context.subtract(value, previous), smoothing), previous)
        out.append(previous)
    return out


def sma(bars: Sequence[PriceBar], lookback: int, value_count: int = 2, context: Context = MATH_CONTEXT) -> pd.Series:
    """Simple moving average of the closes (mean of the trailing `lookback`)."""
    validate_prices(bars, lookback, value_count)
    divisor = Decimal(lookback)
    values = []
    for end in range(lookback, len(bars) + 1):
        total = ZERO
        for bar in bars[end - lookback:end]:
            total = context.add(total, bar.close)
        values.append(context.divide(total, divisor))
    return _line((bar.date for bar in bars[lookback - 1:]), values)


def ema(bars: Sequence[PriceBar], lookback: int, value_count: int = 2, context: Context = MATH_CONTEXT) -> pd.Series:
    """Exponential moving average of the closes.

    Smoothing factor 2/(lookback+1). The recursion starts at the first close
    and values are reported once `lookback` closes have been consumed.
    """
    validate_prices(bars, lookback, value_count)
    values = _ema_values([bar.close for bar in bars], lookback, context)
    return _line((bar.date for bar in bars[lookback - 1:]), values[lookback - 1:])


def ema_of_line(line: pd.Series, lookback: int, context: Context = MATH_CONTEXT) -> pd.Series:
    """EMA of an existing indicator line (e.g. the MACD signal line)."""
    if lookback <= 1:
        raise ValueError(f"lookback must be greater than one, given {lookback}")
    if len(line) < lookback:
        raise InsufficientDataError(f"At least {lookback} values are needed, only {len(line)} given")
    values = _ema_values(list(line.to_numpy()), lookback, context)
    return _line(line.index[lookback - 1:], values[lookback - 1:])



def sma_of_line(line: pd.Series, lookback: int, context: Context = MATH_CONTEXT) -> pd.Series:
    """Trailing mean of an existing indicator line."""
    if lookback < 1:
        raise ValueError(f"lookback must be at least one, given {lookback}")
    if len(line) < lookback:
        raise InsufficientDataError(f"At least {lookback} values are needed, only {len(line)} given")
    values = list(line.to_numpy())
    divisor = Decimal(lookback)
    means = []
    for end in range(lookback, len(values) + 1):
        total = ZERO
        for value in values[end - lookback:end]:
            total = context.add(total, value)
        means.append(context.divide(total, divisor))
    return _line(line.index[lookback - 1:], means)

@dataclass(frozen=True)
class MacdLines:
    """MACD line and its signal line, aligned on the same dates."""

    macd: pd.Series
    signal: pd.Series


def align_right(first: pd.Series, second: pd.Series) -> tuple[pd.Series, pd.Series]:
    """Trim two lines to their rightmost (most recent) common length."""
    size = min(len(first), len(second))
    return first.iloc[len(first) - size:], second.iloc[len(second) - size:]


def macd(
    bars: Sequence[PriceBar],
    fast: int,
    slow: int,
    signal: int,
    value_count: int = 2,
    context: Context = MATH_CONTEXT,
) -> MacdLines:
    """MACD (fast EMA - slow EMA) and signal line (EMA of MACD)."""
    if fast >= slow:
        raise ValueError(f"fast lookback {fast} must be shorter than slow lookback {slow}")
    validate_prices(bars, slow + signal, value_count)
    fast_line, slow_line = align_right(ema(bars, fast, value_count, context), ema(bars, slow, value_count, context))
    macd_values = [context.subtract(f, s) for f, s in zip(fast_line.to_numpy(), slow_line.to_numpy())]
    macd_line = _line(slow_line.index, macd_values)
    signal_line = ema_of_line(macd_line, signal, context)
    macd_line, signal_line = align_right(macd_line, signal_line)
    return MacdLines(macd=macd_line, signal=signal_line)


def rsi(bars: Sequence[PriceBar], lookback: int, value_count: int = 2, context: Context = MATH_CONTEXT) -> pd.Series:
    """Relative strength index using Wilder's smoothing.

    RS is the smoothed gain divided by the smoothed loss, or the smoothed gain
    alone when there is no loss. A flat series therefore gives RSI 0.
    """
    validate_prices(bars, lookback, value_count)
    closes = [bar.close for bar in bars]
    history = Decimal(lookback)
    archive = Decimal(lookback - 1)

    upward = ZERO
    downward = ZERO
    yesterday = closes[0]
    for today in closes[:lookback]:
        if today > yesterday:
            upward = context.add(upward, context.subtract(today, yesterday))
        elif today < yesterday:
            downward = context.add(downward, context.subtract(yesterday, today))
        yesterday = today
    upward = context.divide(upward, history)
    downward = context.divide(downward, history)

    values = []
    for i in range(lookback, len(closes)):
        change = context.subtract(closes[i], closes[i - 1])
        gain = change if change > ZERO else ZERO
        loss = -change if change < ZERO else ZERO
        upward = context.divide(context.add(context.multiply(upward, archive), gain), history)
        downward = context.divide(context.add(context.multiply(downward, archive), loss), history)
        strength = upward if downward <= ZERO else context.divide(upward, downward)
        values.append(context.subtract(ONE_HUNDRED, context.divide(ONE_HUNDRED, context.add(ONE, strength))))
    return _line((bar.date for bar in bars[lookback:]), values)


def stochastic_k(
    bars: Sequence[PriceBar], lookback: int, value_count: int = 2, context: Context = MATH_CONTEXT
) -> pd.Series:
    """Stochastic %K over the trailing window ending on each date, within [0, 100]."""
    validate_prices(bars, lookback, value_count)
    values = []
    for i in range(lookback - 1, len(bars)):
        window = bars[i - lookback + 1:i + 1]
        lowest = min(bar.low for bar in window)
        highest = max(bar.high for bar in window)
        spread = ONE_HUNDREDTH if highest == lowest else context.subtract(highest, lowest)
        k = context.multiply(context.divide(context.subtract(bars[i].close, lowest), spread), ONE_HUNDRED)
        values.append(min(ONE_HUNDRED, max(ZERO, k)))
    return _line((bar.date for bar in bars[lookback - 1:]), values)


@dataclass(frozen=True)
class StochasticLines:
    """Full %K and its %D signal line, aligned on the same dates."""

    k: pd.Series
    d: pd.Series


def stochastic(
    bars: Sequence[PriceBar],
    lookback: int,
    k_smoothing: int = 3,
    d_smoothing: int = 3,
    value_count: int = 2,
    context: Context = MATH_CONTEXT,
) -> StochasticLines:
    """Full stochastic oscillator.

    Full %K is the SMA of %K over `k_smoothing` days and %D the SMA of full
    %K over `d_smoothing` days. A smoothing of one leaves the line as is.
    """
    if k_smoothing < 1 or d_smoothing < 1:
        raise ValueError(f"smoothing must be at least one day, given {k_smoothing} and {d_smoothing}")
    validate_prices(bars, lookback + k_smoothing + d_smoothing - 2, value_count)
    full_k = sma_of_line(stochastic_k(bars, lookback, value_count, context), k_smoothing, context)
    full_d = sma_of_line(full_k, d_smoothing, context)
    k_line, d_line = align_right(full_k, full_d)
    return StochasticLines(k=k_line, d=d_line)


def atr(bars: Sequence[PriceBar], lookback: int, value_count: int = 2, context: Context = MATH_CONTEXT) -> pd.Series:
    """Average True Range (Wilder smoothing of the true range)."""
    validate_prices(bars, lookback, value_count)
    history = Decimal(lookback)
    archive = Decimal(lookback - 1)
    prior = context.subtract(bars[0].high, bars[0].low)
    values = [prior]
    for yesterday, today in zip(bars, bars[1:]):
        true_range = max(
            abs(context.subtract(today.high, today.low)),
            abs(context.subtract(today.high, yesterday.close)),
            abs(context.subtract(today.low, yesterday.close)),
        )
        prior = context.divide(context.add(context.multiply(prior, archive), true_range), history)
        values.append(prior)
    return _line((bar.date for bar in bars[lookback - 1:]), values[lookback - 1:])


# ---------------------------------------------------------------------------
# Indicator calculators: one frozen variant per indicator kind, each carrying
# its own parameters.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SimpleMovingAverage:
    lookback: int
    value_count: int = 2

    @property
    def minimum_prices(self) -> int:
        return self.lookback + self.value_count

    def calculate(self, bars: Sequence[PriceBar], context: Context = MATH_CONTEXT) -> pd.Series:
        return sma(bars, self.lookback, self.value_count, context)


@dataclass(frozen=True)
class ExponentialMovingAverage:
    lookback: int
    value_count: int = 2

    @property
    def minimum_prices(self) -> int:
        return self.lookback + self.value_count

    def calculate(self, bars: Sequence[PriceBar], context: Context = MATH_CONTEXT) -> pd.Series:
        return ema(bars, self.lookback, self.value_count, context)


@dataclass(frozen=True)
class MovingAverageConvergenceDivergence:
    fast: int = 12
    slow: int = 26
    signal: int = 9
    value_count: int = 2

    @property
    def minimum_prices(self) -> int:
        return self.slow + self.signal + self.value_count

    def calculate(self, bars: Sequence[PriceBar], context: Context = MATH_CONTEXT) -> MacdLines:
        return macd(bars, self.fast, self.slow, self.signal, self.value_count, context)


@dataclass(frozen=True)
class RelativeStrengthIndex:
    lookback: int = 14
    value_count: int = 2

    @property
    def minimum_prices(self) -> int:
        return self.lookback + self.value_count

    def calculate(self, bars: Sequence[PriceBar], context: Context = MATH_CONTEXT) -> pd.Series:
        return rsi(bars, self.lookback, self.value_count, context)


@dataclass(frozen=True)
class StochasticOscillator:
    lookback: int = 14
    k_smoothing: int = 3
    d_smoothing: int = 3
    value_count: int = 2

    @property
    def minimum_prices(self) -> int:
        return self.lookback + self.k_smoothing + self.d_smoothing + self.value_count - 2

    def calculate(self, bars: Sequence[PriceBar], context: Context = MATH_CONTEXT) -> StochasticLines:
        return stochastic(bars, self.lookback, self.k_smoothing, self.d_smoothing, self.value_count, context)


@dataclass(frozen=True)
class AverageTrueRange:
    lookback: int = 14
    value_count: int = 2

    @property
    def minimum_prices(self) -> int:
        return self.lookback + self.value_count

    def calculate(self, bars: Sequence[PriceBar], context: Context = MATH_CONTEXT) -> pd.Series:
        return atr(bars, self.lookback, self.value_count, context)
