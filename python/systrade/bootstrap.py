"""Builds the simulation object graph from a BacktestConfig.

Each config variant has one builder, looked up by the variant's type.
All listeners are wired here, at construction, before anything runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Context
from typing import Callable, Optional, Sequence

import pandas as pd

from .brokerage import (
    TRANSACTION_FEES,
    FlatManagementFee,
    LadderedManagementFee,
    PeriodicManagementFee,
    SingleEquityClassBroker,
    ZeroManagementFee,
)
from .cash import CalculatedDailyPaidMonthlyCashAccount, FlatInterestRate, RegularDepositCashAccount
from .config import (
    AndEntryConfig,
    BacktestConfig,
    ConfirmationEntryConfig,
    EmaGradientConfig,
    IndicatorEntryConfig,
    MacdConfig,
    ManagementFeeConfig,
    OrEntryConfig,
    PeriodicEntryConfig,
    RsiConfig,
    SmaGradientConfig,
    StochasticConfig,
)
from .data_manager import TradingData
from .errors import ConfigurationError
from .indicators import (
    ExponentialMovingAverage,
    MovingAverageConvergenceDivergence,
    RelativeStrengthIndex,
    SimpleMovingAverage,
    StochasticOscillator,
)
from .maths import MATH_CONTEXT
from .roi import (
    CumulativeReturnOnInvestment,
    NetWorthSummaryEventGenerator,
    PeriodicCumulativeReturnOnInvestment,
    TotalReturnOnInvestment,
)
from .signals import (
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
)
from .simulation import Simulation
from .statistics import CumulativeEventStatistics
from .strategy import (
    AbsoluteTradeValue,
    AndEntry,
    ConfirmationEntry,
    ConfirmedBy,
    IndicatorEntry,
    LargestPossibleEntryPosition,
    OrEntry,
    PeriodicEntry,
    RelativeTradeValue,
    TradingStrategy,
)
from .types import SignalType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Listeners:
    """Subscribers for every event source of one run."""

    cash: tuple = ()
    brokerage: tuple = ()
    equity: tuple = ()
    order: tuple = ()
    roi: tuple = ()
    periodic_roi: tuple = ()
    networth: tuple = ()
    signal: tuple = ()
    state: tuple = ()


# ---------------------------------------------------------------------------
# Indicators
# ---------------------------------------------------------------------------


def _signal_range(config: BacktestConfig, days: int) -> SimulationDatesSignalRange:
    return SimulationDatesSignalRange(config.start, config.end, TradingDaySignalRange(days))


def _sma(cfg: SmaGradientConfig, config: BacktestConfig, listeners: Listeners) -> Indicator:
    return Indicator(
        f"SMA{cfg.lookback}",
        SimpleMovingAverage(cfg.lookback),
        GradientSignals(Gradient(cfg.gradient), cfg.signal_type),
        _signal_range(config, cfg.signal_range_days),
        listeners.signal,
    )


def _ema(cfg: EmaGradientConfig, config: BacktestConfig, listeners: Listeners) -> Indicator:
    return Indicator(
        f"EMA{cfg.lookback}",
        ExponentialMovingAverage(cfg.lookback),
        GradientSignals(Gradient(cfg.gradient), cfg.signal_type),
        _signal_range(config, cfg.signal_range_days),
        listeners.signal,
    )


def _macd(cfg: MacdConfig, config: BacktestConfig, listeners: Listeners) -> Indicator:
    generator = MacdUptrendSignals() if cfg.uptrend else MacdBullishSignals()
    return Indicator(
        f"MACD{cfg.fast}-{cfg.slow}-{cfg.signal}",
        MovingAverageConvergenceDivergence(cfg.fast, cfg.slow, cfg.signal),
        generator,
        _signal_range(config, cfg.signal_range_days),
        listeners.signal,
    )


def _rsi(cfg: RsiConfig, config: BacktestConfig, listeners: Listeners) -> Indicator:
    if cfg.signal_type is SignalType.BULLISH:
        generator = RsiBullishSignals(cfg.oversold)
    else:
        generator = RsiBearishSignals(cfg.overbought)
    return Indicator(
        f"RSI{cfg.lookback}",
        RelativeStrengthIndex(cfg.lookback),
        generator,
        _signal_range(config, cfg.signal_range_days),
        listeners.signal,
    )


def _stochastic(cfg: StochasticConfig, config: BacktestConfig, listeners: Listeners) -> Indicator:
    return Indicator(
        f"STOCHASTIC{cfg.lookback}-{cfg.k_smoothing}-{cfg.d_smoothing}",
        StochasticOscillator(cfg.lookback, cfg.k_smoothing, cfg.d_smoothing),
        StochasticBullishSignals(),
        _signal_range(config, cfg.signal_range_days),
        listeners.signal,
    )


_INDICATOR_BUILDERS: dict[type, Callable] = {
    SmaGradientConfig: _sma,
    EmaGradientConfig: _ema,
    MacdConfig: _macd,
    RsiConfig: _rsi,
    StochasticConfig: _stochastic,
}


# ---------------------------------------------------------------------------
# Entry tree
# ---------------------------------------------------------------------------


def build_entry(entry, config: BacktestConfig, listeners: Listeners = Listeners()):
    builder = _ENTRY_BUILDERS.get(type(entry))
    if builder is None:
        raise ConfigurationError(f"no builder for entry configuration {type(entry).__name__}")
    return builder(entry, config, listeners)


def _indicator_entry(entry: IndicatorEntryConfig, config: BacktestConfig, listeners: Listeners):
    builder = _INDICATOR_BUILDERS.get(type(entry.indicator))
    if builder is None:
        raise ConfigurationError(f"no builder for indicator configuration {type(entry.indicator).__name__}")
    return IndicatorEntry(builder(entry.indicator, config, listeners))


def _and_entry(entry: AndEntryConfig, config: BacktestConfig, listeners: Listeners):
    return AndEntry(build_entry(entry.left, config, listeners), build_entry(entry.right, config, listeners))


def _or_entry(entry: OrEntryConfig, config: BacktestConfig, listeners: Listeners):
    return OrEntry(build_entry(entry.left, config, listeners), build_entry(entry.right, config, listeners))


def _confirmation_entry(entry: ConfirmationEntryConfig, config: BacktestConfig, listeners: Listeners):
    return ConfirmationEntry(
        build_entry(entry.anchor, config, listeners),
        ConfirmedBy(entry.confirmation_day_range, entry.delay_until_confirmation_range),
        build_entry(entry.confirmation, config, listeners),
    )


def _periodic_entry(entry: PeriodicEntryConfig, config: BacktestConfig, listeners: Listeners):
    return PeriodicEntry(config.start, entry.offset())


_ENTRY_BUILDERS: dict[type, Callable] = {
    IndicatorEntryConfig: _indicator_entry,
    AndEntryConfig: _and_entry,
    OrEntryConfig: _or_entry,
    ConfirmationEntryConfig: _confirmation_entry,
    PeriodicEntryConfig: _periodic_entry,
}


# ---------------------------------------------------------------------------
# Accounts and strategy
# ---------------------------------------------------------------------------


def build_management_fee(cfg: Optional[ManagementFeeConfig], config: BacktestConfig, context: Context):
    if cfg is None:
        return None
    if cfg.kind == "flat":
        calculator = FlatManagementFee(cfg.annual_percent, context)
    elif cfg.kind == "laddered":
        calculator = LadderedManagementFee(cfg.ranges, cfg.fees, context)
    elif cfg.kind == "zero":
        calculator = ZeroManagementFee()
    else:
        raise ConfigurationError(f"unknown management fee kind {cfg.kind!r}")
    return PeriodicManagementFee(config.start, calculator, cfg.frequency_years)


def build_broker(config: BacktestConfig, listeners: Listeners = Listeners(), context: Context = MATH_CONTEXT):
    fees = TRANSACTION_FEES.get(config.brokerage.fees)
    if fees is None:
        raise ConfigurationError(
            f"unknown brokerage fees {config.brokerage.fees!r}, expected one of {sorted(TRANSACTION_FEES)}"
        )
    return SingleEquityClassBroker(
        fees(context),
        build_management_fee(config.brokerage.management_fee, config, context),
        config.equity_class,
        listeners.brokerage,
        listeners.equity,
        context,
    )


def build_cash_account(config: BacktestConfig, listeners: Listeners = Listeners(), context: Context = MATH_CONTEXT):
    account = CalculatedDailyPaidMonthlyCashAccount(
        FlatInterestRate(config.cash.interest_rate, context),
        config.cash.opening_funds,
        config.start,
        listeners.cash,
        context,
    )
    if config.deposit is None:
        return account
    return RegularDepositCashAccount(
        config.deposit.amount, account, config.start, timedelta(days=config.deposit.interval_days)
    )


def build_strategy(config: BacktestConfig, listeners: Listeners = Listeners(), context: Context = MATH_CONTEXT):
    return TradingStrategy(
        entry=build_entry(config.entry, config, listeners),
        entry_size=LargestPossibleEntryPosition(
            AbsoluteTradeValue(config.entry_size.minimum),
            RelativeTradeValue(config.entry_size.maximum_fraction, context),
        ),
        exit_=build_entry(config.exit, config, listeners) if config.exit is not None else None,
        equity_class=config.equity_class,
        equity_scale=config.equity_scale,
        context=context,
    )


def warm_up_days(config: BacktestConfig) -> int:
    """Calendar days of price history needed before `start`.

    Trading days are roughly five in seven, so twice the trading-day count
    covers weekends and holidays.
    """
    return 2 * build_strategy(config).required_trading_prices


def build_simulation(
    config: BacktestConfig,
    trading_data: TradingData,
    roi,
    listeners: Listeners = Listeners(),
    context: Context = MATH_CONTEXT,
) -> Simulation:
    cash_account = build_cash_account(config, listeners, context)
    broker = build_broker(config, listeners, context)
    strategy = build_strategy(config, listeners, context)
    return Simulation(
        trading_data,
        cash_account,
        broker,
        strategy,
        roi,
        order_listeners=listeners.order,
        state_listeners=listeners.state,
        # warm-up bars before the start feed the strategy window, signals
        # are held back to the simulation dates by the signal range
        start=trading_data.earliest.date,
        end=config.end,
    )


# ---------------------------------------------------------------------------
# One complete run
# ---------------------------------------------------------------------------


@dataclass
class BacktestResult:
    config: BacktestConfig
    statistics: CumulativeEventStatistics
    total_roi: TotalReturnOnInvestment
    simulation: Simulation


class BacktestBootstrap:
    """Wires ROI, statistics and any extra listeners around one simulation."""

    def __init__(
        self,
        config: BacktestConfig,
        trading_data: TradingData,
        extra: Listeners = Listeners(),
        context: Context = MATH_CONTEXT,
    ):
        self.config = config
        self.trading_data = trading_data
        self.extra = extra
        self.context = context

    def run(self) -> BacktestResult:
        config = self.config
        extra = self.extra
        statistics = CumulativeEventStatistics()
        total = TotalReturnOnInvestment(self.context)

        periodic = PeriodicCumulativeReturnOnInvestment(
            config.start, pd.DateOffset(months=config.roi_summary_months), extra.periodic_roi, self.context
        )
        # only ROI within the simulation dates counts, not the warm-up
        in_window = _within(config, (total.on_event, periodic.on_event) + tuple(extra.roi))
        roi = CumulativeReturnOnInvestment((in_window,), self.context)

        listeners = Listeners(
            cash=(roi.on_cash_event, statistics.on_cash_event) + tuple(extra.cash),
            brokerage=(statistics.on_brokerage_event,) + tuple(extra.brokerage),
            equity=(statistics.on_equity_event,) + tuple(extra.equity),
            order=(statistics.on_order_event,) + tuple(extra.order),
            roi=extra.roi,
            periodic_roi=extra.periodic_roi,
            networth=extra.networth,
            signal=extra.signal,
            state=extra.state,
        )
        last_bar = self.trading_data.last_bar_before(config.end)
        if last_bar is None:
            raise ConfigurationError(f"no price data for {config.symbol} before {config.end}")
        cash_account = build_cash_account(config, listeners, self.context)
        broker = build_broker(config, listeners, self.context)
        networth = NetWorthSummaryEventGenerator(broker, last_bar, cash_account, extra.networth, self.context)
        simulation = Simulation(
            self.trading_data,
            cash_account,
            broker,
            build_strategy(config, listeners, self.context),
            roi,
            order_listeners=listeners.order,
            state_listeners=(networth.on_state_change,) + tuple(extra.state),
            start=self.trading_data.earliest.date,
            end=config.end,
        )

        logger.info("running %s from %s to %s", config.symbol, config.start, config.end)
        simulation.run()
        logger.info(
            "%s complete: total ROI %s%%, %d buys", config.symbol, total.total, statistics.buy_event_count
        )
        return BacktestResult(config, statistics, total, simulation)


def _within(config: BacktestConfig, targets: Sequence[Callable]) -> Callable:
    def deliver(event) -> None:
        if config.start <= event.inclusive_end_date < config.end:
            for target in targets:
                target(event)

    return deliver
