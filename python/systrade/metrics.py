"""Performance metrics."""

from __future__ import annotations

from decimal import Context, Decimal

import numpy as np
import pandas as pd

from .maths import MATH_CONTEXT, ONE, ONE_HUNDRED, ZERO, to_decimal


def max_drawdown(networth: pd.Series) -> float:
    """Maximum drawdown of a net worth curve (as positive fraction)."""
    x = networth.astype(float).to_numpy()
    if len(x) == 0:
        return float("nan")
    peak = np.maximum.accumulate(x)
    dd = 1.0 - (x / np.maximum(peak, np.finfo(float).tiny))
    return float(np.nanmax(dd))


def cagr(start_value: Decimal, finish_value: Decimal, years: int, context: Context = MATH_CONTEXT) -> Decimal:
    """Compound annual growth rate as a percentage: ((finish/start)^(1/years) - 1) * 100."""
    if years <= 0:
        raise ValueError(f"years must be positive, given {years}")
    if start_value <= ZERO:
        raise ValueError(f"start value must be positive, given {start_value}")
    if finish_value <= ZERO:
        return -ONE_HUNDRED
    growth = context.divide(finish_value, start_value)
    annual = context.power(growth, context.divide(ONE, Decimal(years)))
    return context.multiply(context.subtract(annual, ONE), ONE_HUNDRED)


def cagr_of(networth: pd.Series, context: Context = MATH_CONTEXT) -> Decimal:
    """CAGR from the first to the last point of a date-indexed net worth curve, in whole years."""
    if len(networth) < 2:
        raise ValueError("at least two net worth values are needed")
    days = (pd.Timestamp(networth.index[-1]) - pd.Timestamp(networth.index[0])).days
    years = max(1, round(days / 365.25))
    return cagr(to_decimal(networth.iloc[0]), to_decimal(networth.iloc[-1]), years, context)
