"""Configuration objects.

Style rules:
- one frozen dataclass per concern, built once before a run
- indicator and entry kinds are separate variants, each with its own fields
- money, rates and fractions are Decimal
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import pandas as pd
import yaml

from .errors import ConfigurationError
from .maths import to_decimal
from .types import EquityClass, SignalType


# ---------------------------------------------------------------------------
# Indicators (calculator + signal generator)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SmaGradientConfig:
    """Signals when the SMA's day-on-day gradient matches `gradient`."""

    lookback: int = 20
    gradient: str = "POSITIVE"
    signal_type: SignalType = SignalType.BULLISH
    signal_range_days: int = 1


@dataclass(frozen=True)
class EmaGradientConfig:
    lookback: int = 20
    gradient: str = "POSITIVE"
    signal_type: SignalType = SignalType.BULLISH
    signal_range_days: int = 1


@dataclass(frozen=True)
class MacdConfig:
    """MACD crossover (`uptrend=False`) or MACD above zero (`uptrend=True`)."""

    fast: int = 12
    slow: int = 26
    signal: int = 9
    uptrend: bool = False
    signal_range_days: int = 1


@dataclass(frozen=True)
class RsiConfig:
    """RSI leaving oversold (BULLISH) or leaving overbought (BEARISH)."""

    lookback: int = 14
    oversold: Decimal = Decimal(30)
    overbought: Decimal = Decimal(70)
    signal_type: SignalType = SignalType.BULLISH
    signal_range_days: int = 1


@dataclass(frozen=True)
class StochasticConfig:
    """Full %K crossing above %D; a smoothing of one day leaves a line unsmoothed."""

    lookback: int = 14
    k_smoothing: int = 3
    d_smoothing: int = 3
    signal_range_days: int = 1


IndicatorConfig = Union[SmaGradientConfig, EmaGradientConfig, MacdConfig, RsiConfig, StochasticConfig]


# ---------------------------------------------------------------------------
# Entry / exit trees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IndicatorEntryConfig:
    indicator: IndicatorConfig


@dataclass(frozen=True)
class AndEntryConfig:
    left: "EntryConfig"
    right: "EntryConfig"


@dataclass(frozen=True)
class OrEntryConfig:
    left: "EntryConfig"
    right: "EntryConfig"


@dataclass(frozen=True)
class ConfirmationEntryConfig:
    anchor: "EntryConfig"
    confirmation: "EntryConfig"
    confirmation_day_range: int = 3
    delay_until_confirmation_range: int = 0


@dataclass(frozen=True)
class PeriodicEntryConfig:
    """Buy every `frequency`, e.g. weeks=1 or months=1."""

    days: int = 0
    weeks: int = 0
    months: int = 0
    years: int = 0

    def offset(self) -> pd.DateOffset:
        if not (self.days or self.weeks or self.months or self.years):
            raise ConfigurationError("periodic entry needs a non-zero frequency")
        return pd.DateOffset(days=self.days, weeks=self.weeks, months=self.months, years=self.years)


EntryConfig = Union[
    IndicatorEntryConfig, AndEntryConfig, OrEntryConfig, ConfirmationEntryConfig, PeriodicEntryConfig
]


@dataclass(frozen=True)
class EntrySizeConfig:
    """Trade at least `minimum` and at most `maximum_fraction` of the cash available."""

    minimum: Decimal = Decimal(1000)
    maximum_fraction: Decimal = Decimal(1)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ManagementFeeConfig:
    """`kind` is "flat" (annual_percent as a fraction), "laddered" (ranges/fees) or "zero"."""

    kind: str = "flat"
    annual_percent: Decimal = Decimal("0.001")
    ranges: Tuple[Decimal, ...] = ()
    fees: Tuple[Decimal, ...] = ()
    frequency_years: int = 1


@dataclass(frozen=True)
class BrokerageConfig:
    fees: str = "cmc_markets"
    management_fee: Optional[ManagementFeeConfig] = None


@dataclass(frozen=True)
class CashConfig:
    opening_funds: Decimal = Decimal(0)
    # annual percentage, 1.5 is 1.5%
    interest_rate: Decimal = Decimal("1.5")


@dataclass(frozen=True)
class DepositConfig:
    amount: Decimal = Decimal(100)
    interval_days: int = 7


@dataclass(frozen=True)
class BacktestConfig:
    """Everything one simulation run needs. `end` is exclusive."""

    symbol: str
    start: date
    end: date
    entry: EntryConfig = field(default_factory=lambda: PeriodicEntryConfig(weeks=1))
    entry_size: EntrySizeConfig = field(default_factory=EntrySizeConfig)
    exit: Optional[EntryConfig] = None
    brokerage: BrokerageConfig = field(default_factory=BrokerageConfig)
    cash: CashConfig = field(default_factory=CashConfig)
    deposit: Optional[DepositConfig] = field(default_factory=DepositConfig)
    equity_class: EquityClass = EquityClass.STOCK
    equity_scale: int = 4
    on_insufficient_funds: str = "DELETE"
    roi_summary_months: int = 12

    def __post_init__(self):
        if self.end <= self.start:
            raise ConfigurationError(f"end {self.end} must be after start {self.start}")
        if self.on_insufficient_funds.upper() != "DELETE":
            raise ConfigurationError(
                f"Insufficient funds action {self.on_insufficient_funds} is not supported, only DELETE"
            )


# ---------------------------------------------------------------------------
# dict / YAML loading
# ---------------------------------------------------------------------------

_INDICATORS = {
    "sma": SmaGradientConfig,
    "ema": EmaGradientConfig,
    "macd": MacdConfig,
    "rsi": RsiConfig,
    "stochastic": StochasticConfig,
}

_DECIMAL_FIELDS = {"oversold", "overbought", "minimum", "maximum_fraction", "annual_percent",
                   "opening_funds", "interest_rate", "amount"}


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries, `override` taking precedence."""
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _fields(d: Dict[str, Any], *exclude: str) -> Dict[str, Any]:
    out = {}
    for key, value in d.items():
        if key in exclude:
            continue
        if key in _DECIMAL_FIELDS:
            value = to_decimal(value)
        elif key == "signal_type":
            value = SignalType(str(value).upper())
        elif key == "gradient":
            value = str(value).upper()
        out[key] = value
    return out


def _build(cls, d: Dict[str, Any], *exclude: str):
    try:
        return cls(**_fields(d, *exclude))
    except TypeError as exc:
        raise ConfigurationError(f"invalid {cls.__name__} fields {sorted(d)}: {exc}") from exc


def indicator_from_dict(d: Dict[str, Any]) -> IndicatorConfig:
    kind = str(d.get("type", "")).lower()
    if kind not in _INDICATORS:
        raise ConfigurationError(f"unknown indicator type {kind!r}, expected one of {sorted(_INDICATORS)}")
    return _build(_INDICATORS[kind], d, "type")


def entry_from_dict(d: Dict[str, Any]) -> EntryConfig:
    """Entry trees are nested dicts keyed by `type`: indicator, and, or, confirmation, periodic."""
    kind = str(d.get("type", "")).lower()
    if kind == "indicator":
        return IndicatorEntryConfig(indicator_from_dict(d["indicator"]))
    if kind in ("and", "or"):
        cls = AndEntryConfig if kind == "and" else OrEntryConfig
        return cls(entry_from_dict(d["left"]), entry_from_dict(d["right"]))
    if kind == "confirmation":
        return ConfirmationEntryConfig(
            anchor=entry_from_dict(d["anchor"]),
            confirmation=entry_from_dict(d["confirmation"]),
            confirmation_day_range=int(d.get("confirmation_day_range", 3)),
            delay_until_confirmation_range=int(d.get("delay_until_confirmation_range", 0)),
        )
    if kind == "periodic":
        return _build(PeriodicEntryConfig, d, "type")
    raise ConfigurationError(f"unknown entry type {kind!r}")


def _management_fee_from_dict(d: Dict[str, Any]) -> ManagementFeeConfig:
    return ManagementFeeConfig(
        kind=str(d.get("kind", "flat")).lower(),
        annual_percent=to_decimal(d.get("annual_percent", "0.001")),
        ranges=tuple(to_decimal(v) for v in d.get("ranges", ())),
        fees=tuple(to_decimal(v) for v in d.get("fees", ())),
        frequency_years=int(d.get("frequency_years", 1)),
    )


def _as_date(value) -> date:
    return pd.Timestamp(value).date()


def from_dict(d: Dict[str, Any]) -> BacktestConfig:
    """Build a BacktestConfig from plain data (e.g. parsed YAML)."""
    defaults: Dict[str, Any] = {
        "entry": {"type": "periodic", "weeks": 1},
        "entry_size": {"minimum": 1000, "maximum_fraction": 1},
        "brokerage": {"fees": "cmc_markets"},
        "cash": {"opening_funds": 0, "interest_rate": 1.5},
        "deposit": {"amount": 100, "interval_days": 7},
    }
    merged = _merge_dict(defaults, d or {})
    for required in ("symbol", "start", "end"):
        if required not in merged:
            raise ConfigurationError(f"configuration is missing {required!r}")

    brokerage = dict(merged["brokerage"])
    management_fee = brokerage.pop("management_fee", None)
    deposit = merged.get("deposit")

    return BacktestConfig(
        symbol=str(merged["symbol"]),
        start=_as_date(merged["start"]),
        end=_as_date(merged["end"]),
        entry=entry_from_dict(merged["entry"]),
        entry_size=_build(EntrySizeConfig, merged["entry_size"]),
        exit=entry_from_dict(merged["exit"]) if merged.get("exit") else None,
        brokerage=BrokerageConfig(
            fees=str(brokerage.get("fees", "cmc_markets")),
            management_fee=_management_fee_from_dict(management_fee) if management_fee else None,
        ),
        cash=_build(CashConfig, merged["cash"]),
        deposit=_build(DepositConfig, deposit) if deposit else None,
        equity_class=EquityClass(str(merged.get("equity_class", "STOCK")).upper()),
        equity_scale=int(merged.get("equity_scale", 4)),
        on_insufficient_funds=str(merged.get("on_insufficient_funds", "DELETE")),
        roi_summary_months=int(merged.get("roi_summary_months", 12)),
    )


def load_config(path: str | Path) -> BacktestConfig:
    """Load a BacktestConfig from a YAML file; missing sections take their defaults."""
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh) or {}
    return from_dict(raw)
