from datetime import date
from decimal import Decimal

import pytest

from systrade.brokerage import SingleEquityClassBroker, ZeroTransactionFee
from systrade.cash import CalculatedDailyPaidMonthlyCashAccount, FlatInterestRate
from systrade.data_manager import TradingData
from systrade.errors import ConfigurationError, InsufficientEquitiesError, SimulationError
from systrade.events import OrderDeletedEvent, OrderEventType
from systrade.orders import BuyTotalCostTomorrowAtOpeningPriceOrder, SellTotalVolumeTomorrowAtOpeningPriceOrder
from systrade.roi import CumulativeReturnOnInvestment
from systrade.simulation import Simulation
from systrade.strategy import InsufficientFundsAction
from systrade.types import EquityClass, PriceBar, SimulationState

MON, TUE, WED = date(2021, 1, 4), date(2021, 1, 5), date(2021, 1, 6)


def bar(day, price):
    price = Decimal(price)
    return PriceBar(day, price, price, price, price, "TEST")


class ScriptedStrategy:
    """Places the given orders on their creation dates and records every tick."""

    def __init__(self, *orders):
        self.orders = {order.creation_date: order for order in orders}
        self.ticks = []

    def exit_tick(self, broker, bar):
        return None

    def entry_tick(self, fees, cash_account, bar):
        self.ticks.append(bar.date)
        return self.orders.pop(bar.date, None)

    def action_on_insufficient_funds(self, order):
        return InsufficientFundsAction.DELETE


def simulation(strategy, funds=1000, order_listeners=(), roi_listeners=(), state_listeners=(), **kwargs):
    data = TradingData([bar(MON, 10), bar(WED, 10)])
    cash = CalculatedDailyPaidMonthlyCashAccount(FlatInterestRate(Decimal(0)), Decimal(funds), MON)
    broker = SingleEquityClassBroker(ZeroTransactionFee())
    roi = CumulativeReturnOnInvestment(roi_listeners)
    return Simulation(data, cash, broker, strategy, roi, order_listeners, state_listeners, **kwargs)


def buy(total, created=MON):
    return BuyTotalCostTomorrowAtOpeningPriceOrder(Decimal(total), EquityClass.STOCK, 4, created)


class TestStep:
    def test_day_without_a_bar(self, recorder):
        roi_events = recorder()
        strategy = ScriptedStrategy()
        sim = simulation(strategy, roi_listeners=(roi_events,))

        sim.step()
        sim.step()

        assert sim.current_date == WED
        assert strategy.ticks == [MON]
        assert len(roi_events) == 1

    def test_order_settled_on_a_later_bar(self, recorder):
        orders = recorder()
        sim = simulation(ScriptedStrategy(buy(100)), order_listeners=(orders,))

        sim.step()
        assert len(sim.outstanding_orders) == 1
        sim.step()
        assert len(sim.outstanding_orders) == 1
        sim.step()

        assert sim.outstanding_orders == ()
        assert sim.broker.equity_balance == Decimal(10)
        assert sim.cash_account.balance == Decimal(900)
        assert [event.type for event in orders.calls] == [OrderEventType.ENTRY]


class TestRun:
    def test_runs_every_day_to_the_last_bar(self, recorder):
        states = recorder()
        strategy = ScriptedStrategy()
        sim = simulation(strategy, state_listeners=(states,))

        sim.run()

        assert sim.end == date(2021, 1, 7)
        assert sim.current_date == sim.end
        assert strategy.ticks == [MON, WED]
        assert sim.state is SimulationState.COMPLETE
        assert states.calls == [SimulationState.COMPLETE]

    def test_end_is_exclusive(self):
        strategy = ScriptedStrategy()
        simulation(strategy, end=WED).run()

        assert strategy.ticks == [MON]

    def test_only_once(self):
        sim = simulation(ScriptedStrategy())
        sim.run()

        with pytest.raises(SimulationError):
            sim.run()

    def test_end_before_start(self):
        with pytest.raises(ConfigurationError):
            simulation(ScriptedStrategy(), start=WED, end=TUE)

    def test_unaffordable_order_deleted(self, recorder):
        orders = recorder()
        sim = simulation(ScriptedStrategy(buy(500)), funds=100, order_listeners=(orders,))

        sim.run()

        placed, deleted = orders.calls
        assert placed.type is OrderEventType.ENTRY
        assert isinstance(deleted, OrderDeletedEvent)
        assert deleted.type is OrderEventType.DELETE_INSUFFICIENT_FUNDS
        assert deleted.creation_date == MON
        assert deleted.total_cost == Decimal(500)
        assert sim.outstanding_orders == ()
        assert sim.broker.equity_balance == 0
        assert sim.cash_account.balance == Decimal(100)

    def test_selling_more_than_held_aborts(self):
        sell = SellTotalVolumeTomorrowAtOpeningPriceOrder(Decimal(5), MON)
        sim = simulation(ScriptedStrategy(sell))

        with pytest.raises(InsufficientEquitiesError):
            sim.run()
