from datetime import date, timedelta
from decimal import Decimal

import pytest

from systrade.cash import CalculatedDailyPaidMonthlyCashAccount, FlatInterestRate, RegularDepositCashAccount
from systrade.errors import InsufficientFundsError
from systrade.events import CashEventType


def account(funds, rate="0", opened=date(2021, 1, 1), listeners=()):
    return CalculatedDailyPaidMonthlyCashAccount(FlatInterestRate(Decimal(rate)), Decimal(funds), opened, listeners)


class TestFlatInterestRate:
    def test_simple_daily_interest(self):
        assert FlatInterestRate(Decimal("3.65")).interest(Decimal(1000), 10, False) == Decimal("1.0")

    def test_leap_year_has_more_days(self):
        rate = FlatInterestRate(Decimal("3.66"))
        assert rate.interest(Decimal(1000), 10, True) == Decimal("1.0")

    def test_no_days(self):
        assert FlatInterestRate(Decimal(5)).interest(Decimal(1000), 0, False) == 0


class TestCalculatedDailyPaidMonthly:
    def test_interest_held_in_escrow_until_month_end(self, recorder):
        events = recorder()
        cash = account(1000, "3.65", listeners=(events,))

        cash.update(date(2021, 1, 11))
        assert cash.escrow == Decimal("1.0")
        assert cash.balance == Decimal(1000)

        cash.update(date(2021, 2, 1))

        assert cash.balance == Decimal("1003.1")
        assert cash.escrow == 0
        (event,) = events.calls
        assert event.type is CashEventType.INTEREST
        assert event.amount == Decimal("3.1")
        assert event.transaction_date == date(2021, 2, 1)

    def test_zero_rate_emits_no_interest(self, recorder):
        events = recorder()
        cash = account(1000, listeners=(events,))

        cash.update(date(2021, 5, 3))

        assert events.calls == []

    def test_update_to_an_earlier_date_is_ignored(self):
        cash = account(1000, "3.65")
        cash.update(date(2021, 1, 11))
        cash.update(date(2021, 1, 5))

        assert cash.escrow == Decimal("1.0")

    def test_debit_beyond_balance(self):
        cash = account(100)

        with pytest.raises(InsufficientFundsError):
            cash.debit(Decimal("100.01"), date(2021, 1, 4))
        assert cash.balance == Decimal(100)

    def test_transactions(self, recorder):
        events = recorder()
        cash = account(100, listeners=(events,))

        cash.debit(Decimal(40), date(2021, 1, 4))
        cash.credit(Decimal(15), date(2021, 1, 5))
        cash.deposit(Decimal(5), date(2021, 1, 6))

        assert cash.balance == Decimal(80)
        assert [event.type for event in events.calls] == [
            CashEventType.DEBIT,
            CashEventType.CREDIT,
            CashEventType.DEPOSIT,
        ]
        assert events.calls[0].funds_after == Decimal(60)


class TestRegularDeposits:
    def test_deposits_caught_up(self, recorder):
        events = recorder()
        cash = RegularDepositCashAccount(
            Decimal(100), account(0, listeners=(events,)), date(2021, 1, 4), timedelta(days=7)
        )

        for day in (date(2021, 1, 4), date(2021, 1, 5), date(2021, 1, 11), date(2021, 1, 26)):
            cash.update(day)

        assert cash.balance == Decimal(400)
        assert [event.transaction_date for event in events.calls] == [
            date(2021, 1, 4),
            date(2021, 1, 11),
            date(2021, 1, 26),
            date(2021, 1, 26),
        ]

    def test_no_deposit_before_first_date(self):
        cash = RegularDepositCashAccount(Decimal(100), account(0), date(2021, 1, 4), timedelta(days=7))
        cash.update(date(2021, 1, 2))

        assert cash.balance == 0

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            RegularDepositCashAccount(Decimal(100), account(0), date(2021, 1, 4), timedelta(hours=12))

    def test_daily_interval(self, recorder):
        events = recorder()
        cash = RegularDepositCashAccount(
            Decimal(100), account(0, listeners=(events,)), date(2021, 1, 4), timedelta(days=1)
        )
        days = [date(2021, 1, 4) + timedelta(days=n) for n in range(4)]

        for day in days:
            cash.update(day)

        assert cash.balance == Decimal(400)
        assert [event.transaction_date for event in events.calls] == days

    def test_gap_not_a_multiple_of_the_interval(self):
        cash = RegularDepositCashAccount(Decimal(100), account(0), date(2021, 1, 4), timedelta(days=7))

        cash.update(date(2021, 1, 4))
        cash.update(date(2021, 1, 17))

        assert cash.balance == Decimal(200)

        cash.update(date(2021, 1, 18))

        assert cash.balance == Decimal(300)
