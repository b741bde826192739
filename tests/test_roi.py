from datetime import date, timedelta
from decimal import Decimal

import pandas as pd
import pytest

from systrade.events import CashEvent, CashEventType, NetWorthEventType, ReturnOnInvestmentEvent
from systrade.roi import (
    CumulativeReturnOnInvestment,
    NetWorthSummaryEventGenerator,
    PeriodicCumulativeReturnOnInvestment,
    TotalReturnOnInvestment,
    networth,
    percentage_change,
)
from systrade.types import PriceBar, SimulationState


def bar(day, close):
    close = Decimal(close)
    return PriceBar(day, close, close, close, close)


def roi_event(change, end, start=None):
    start = start or end - timedelta(days=1)
    return ReturnOnInvestmentEvent(Decimal(change), start, end)


class TestPercentageChange:
    @pytest.mark.parametrize(
        "previous, current, deposited, expected",
        [
            ("100", "110", "0", "10"),
            ("100", "110", "10", "0"),
            ("200", "150", "0", "-25"),
            ("0", "50", "0", "0"),
        ],
    )
    def test_net_of_deposits(self, previous, current, deposited, expected):
        change = percentage_change(Decimal(previous), Decimal(current), Decimal(deposited))
        assert change == Decimal(expected)

    def test_networth(self):
        assert networth(Decimal(3), Decimal("2.5"), Decimal(10)) == Decimal("17.5")


class TestCumulative:
    def test_daily_events_exclude_deposits(self, recorder, stub_broker, stub_cash):
        events = recorder()
        roi = CumulativeReturnOnInvestment((events,))

        roi.update(stub_broker(100), stub_cash(0), bar(date(2021, 1, 4), 10))
        roi.on_cash_event(CashEvent(Decimal(0), Decimal(100), Decimal(100), CashEventType.DEPOSIT, date(2021, 1, 5)))
        roi.update(stub_broker(100), stub_cash(100), bar(date(2021, 1, 5), "10.5"))

        first, second = events.calls
        assert first.percentage_change == 0
        assert first.exclusive_start_date == date(2021, 1, 3)
        assert first.networth == Decimal(1000)
        assert second.percentage_change == Decimal(5)
        assert second.exclusive_start_date == date(2021, 1, 4)
        assert second.inclusive_end_date == date(2021, 1, 5)

    def test_other_cash_events_ignored(self, recorder, stub_broker, stub_cash):
        events = recorder()
        roi = CumulativeReturnOnInvestment((events,))

        roi.update(stub_broker(0), stub_cash(100), bar(date(2021, 1, 4), 1))
        roi.on_cash_event(CashEvent(Decimal(100), Decimal(110), Decimal(10), CashEventType.INTEREST, date(2021, 1, 5)))
        roi.update(stub_broker(0), stub_cash(110), bar(date(2021, 1, 5), 1))

        assert events.calls[-1].percentage_change == Decimal(10)


class TestTotal:
    def test_sums_changes(self):
        total = TotalReturnOnInvestment()
        for change, day in (("22", 4), ("33", 5), ("4.35", 6)):
            total.on_event(roi_event(change, date(2021, 1, day)))

        assert total.total == Decimal("59.35")
        assert total.first_date == date(2021, 1, 3)
        assert total.last_date == date(2021, 1, 6)


class TestPeriodic:
    def test_emits_once_the_period_has_passed(self, recorder):
        events = recorder()
        periodic = PeriodicCumulativeReturnOnInvestment(date(2020, 1, 1), pd.DateOffset(months=1), (events,))

        periodic.on_event(roi_event(5, date(2020, 1, 10)))
        periodic.on_event(roi_event(5, date(2020, 1, 31)))
        assert events.calls == []

        periodic.on_event(roi_event(2, date(2020, 2, 5)))

        (summary,) = events.calls
        assert summary.percentage_change == Decimal(12)
        assert summary.exclusive_start_date == date(2020, 1, 1)
        assert summary.inclusive_end_date == date(2020, 2, 5)

    def test_period_boundary_is_exclusive(self, recorder):
        events = recorder()
        periodic = PeriodicCumulativeReturnOnInvestment(date(2020, 1, 1), pd.DateOffset(months=1), (events,))

        periodic.on_event(roi_event(1, date(2020, 2, 1)))
        assert events.calls == []
        periodic.on_event(roi_event(1, date(2020, 2, 2)))
        assert len(events) == 1

    def test_skipped_periods(self, recorder):
        events = recorder()
        periodic = PeriodicCumulativeReturnOnInvestment(date(2020, 1, 1), pd.DateOffset(months=1), (events,))

        periodic.on_event(roi_event(3, date(2020, 6, 15)))
        periodic.on_event(roi_event(1, date(2020, 6, 30)))
        periodic.on_event(roi_event(1, date(2020, 7, 2)))

        assert [event.percentage_change for event in events.calls] == [Decimal(3), Decimal(2)]
        assert events.calls[1].exclusive_start_date == date(2020, 6, 15)


class TestNetWorthSummary:
    def test_reports_last_bar(self, recorder, stub_broker, stub_cash):
        events = recorder()
        generator = NetWorthSummaryEventGenerator(
            stub_broker(10), bar(date(2021, 6, 30), 5), stub_cash(50), (events,)
        )

        generator.on_state_change(SimulationState.COMPLETE)

        event, state = events.calls[0]
        assert state is SimulationState.COMPLETE
        assert event.type is NetWorthEventType.COMPLETED
        assert event.equity_balance_value == Decimal(50)
        assert event.networth == Decimal(100)
        assert event.event_date == date(2021, 6, 30)
