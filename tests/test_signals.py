from datetime import date, timedelta
from decimal import Decimal

import pandas as pd
import pytest

from systrade.indicators import MacdLines, SimpleMovingAverage, StochasticLines
from systrade.signals import (
    Gradient,
    GradientSignals,
    Indicator,
    MacdBullishSignals,
    MacdUptrendSignals,
    RsiBearishSignals,
    RsiBullishSignals,
    SimulationDatesSignalRange,
    StochasticBullishSignals,
    TradingDaySignalRange,
    is_within_signal_range,
)
from systrade.types import SignalType

DATES = [date(2021, 3, 1) + timedelta(days=i) for i in range(8)]


def line(*values):
    return pd.Series([Decimal(str(v)) for v in values], index=DATES[: len(values)], dtype=object)


def always(_day):
    return True


def signal_dates(signals):
    return [DATES.index(signal.date) for signal in signals]


class TestMacdBullish:
    def test_extended_crossing(self):
        lines = MacdLines(macd=line(-1, 0.1, 0.1, 1, 1.2), signal=line(0, 0.1, 0.1, 0.2, 0.3))
        signals = MacdBullishSignals().generate(lines, always)

        assert signal_dates(signals) == [1, 3]
        assert all(signal.type is SignalType.BULLISH for signal in signals)

    def test_origin_crossing(self):
        # MACD stays under its signal line but climbs through zero
        lines = MacdLines(macd=line(-0.5, -0.1, 0.2), signal=line(1, 1, 1))
        assert signal_dates(MacdBullishSignals().generate(lines, always)) == [2]

    def test_candidate_date_outside_range(self):
        lines = MacdLines(macd=line(-1, 0.1, 0.1, 1, 1.2), signal=line(0, 0.1, 0.1, 0.2, 0.3))
        signals = MacdBullishSignals().generate(lines, lambda day: day != DATES[1])

        assert signal_dates(signals) == [3]


class TestMacdUptrend:
    def test_every_positive_date_after_the_first(self):
        lines = MacdLines(macd=line(1, -1, 2, 0, 3), signal=line(0, 0, 0, 0, 0))
        assert signal_dates(MacdUptrendSignals().generate(lines, always)) == [2, 4]


class TestRsi:
    @pytest.mark.parametrize(
        "values",
        [(10, 40, 20, 35), (31, 29, 31, 29), (0, 100, 0, 100), (30, 30, 31, 30)],
    )
    def test_bullish_never_on_first_date(self, values):
        signals = RsiBullishSignals(Decimal(30)).generate(line(*values), always)
        assert 0 not in signal_dates(signals)

    def test_bullish_leaving_oversold(self):
        signals = RsiBullishSignals(Decimal(30)).generate(line(10, 40, 20, 35, 30, 31), always)
        assert signal_dates(signals) == [1, 3, 5]

    def test_bearish_leaving_overbought(self):
        signals = RsiBearishSignals(Decimal(70)).generate(line(80, 60, 75, 65, 70, 69), always)

        assert signal_dates(signals) == [1, 3, 5]
        assert all(signal.type is SignalType.BEARISH for signal in signals)


class TestStochasticBullish:
    @pytest.mark.parametrize(
        "k_values, d_values",
        [
            ((25, 31, 28, 34, 60), (30, 30, 30, 30, 30)),
            ((25, 32, 28, 34, 60), (30, 31, 32, 33, 34)),
            ((25, 32, 24, 34, 60), (30, 29, 28, 27, 26)),
        ],
        ids=["flat", "rising", "falling"],
    )
    def test_k_crossing_above_d(self, k_values, d_values):
        lines = StochasticLines(k=line(*k_values), d=line(*d_values))
        assert signal_dates(StochasticBullishSignals().generate(lines, always)) == [1, 3]

    def test_falling_k_above_d(self):
        lines = StochasticLines(k=line(25, 40, 35, 33), d=line(30, 30, 30, 30))
        assert signal_dates(StochasticBullishSignals().generate(lines, always)) == [1]

    def test_touching_d_yesterday_is_not_a_crossing(self):
        lines = StochasticLines(k=line(30, 40), d=line(30, 30))
        assert StochasticBullishSignals().generate(lines, always) == []

    def test_candidate_date_outside_range(self):
        lines = StochasticLines(k=line(25, 32, 28, 34), d=line(30, 30, 30, 30))
        signals = StochasticBullishSignals().generate(lines, lambda day: day != DATES[1])

        assert signal_dates(signals) == [3]


class TestGradient:
    @pytest.mark.parametrize(
        "target, expected",
        [(Gradient.POSITIVE, [1, 4]), (Gradient.FLAT, [2]), (Gradient.NEGATIVE, [3])],
    )
    def test_matches_target(self, target, expected):
        signals = GradientSignals(target).generate(line(1, 2, 2, 1, 3), always)
        assert signal_dates(signals) == expected


class TestSignalRanges:
    def test_inclusive(self):
        assert is_within_signal_range(DATES[1], DATES[3], DATES[1])
        assert is_within_signal_range(DATES[1], DATES[3], DATES[3])
        assert not is_within_signal_range(DATES[1], DATES[3], DATES[4])

    def test_trading_days(self, make_bars):
        bars = make_bars([1, 2, 3, 4, 5])

        assert TradingDaySignalRange(1).earliest_signal_date(bars) == bars[3].date
        assert TradingDaySignalRange(1).latest_signal_date(bars) == bars[4].date
        assert TradingDaySignalRange(10).earliest_signal_date(bars) == bars[0].date

    def test_simulation_dates_narrow_the_range(self, make_bars):
        bars = make_bars([1, 2, 3, 4, 5])
        narrowed = SimulationDatesSignalRange(bars[2].date, bars[3].date, TradingDaySignalRange(4))

        assert narrowed.earliest_signal_date(bars) == bars[2].date
        assert narrowed.latest_signal_date(bars) == bars[3].date


class TestIndicator:
    def test_analyse_reports_each_signal(self, make_bars, recorder):
        bars = make_bars([1, 2, 3, 4, 5, 6])
        listener = recorder()
        indicator = Indicator(
            "SMA2",
            SimpleMovingAverage(2),
            GradientSignals(Gradient.POSITIVE),
            TradingDaySignalRange(1),
            (listener,),
        )

        signals = indicator.analyse(bars)

        assert [signal.date for signal in signals] == [bars[4].date, bars[5].date]
        assert [event.signal_date for event in listener.calls] == [bars[4].date, bars[5].date]
        assert all(event.indicator_id == "SMA2" for event in listener.calls)
        assert indicator.required_trading_prices == 4
