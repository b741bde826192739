"""Backtest runner utilities."""

from __future__ import annotations

import dataclasses
import logging
import os
from concurrent.futures import ProcessPoolExecutor
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from .bootstrap import BacktestBootstrap, warm_up_days
from .config import BacktestConfig, DepositConfig
from .data_manager import TradingData
from .data_provider import CsvProvider, OhlcvFrame, YfinanceProvider
from .metrics import max_drawdown
from .recorder import EventRecorder

logger = logging.getLogger(__name__)


def run_from_yfinance(
    config: BacktestConfig,
    output_dir: str | Path = "outputs",
    auto_adjust: bool = False,
    include_warmup: bool = True,
) -> dict[str, Path]:
    """Convenience runner using yfinance."""
    frame = fetch_yfinance(config, auto_adjust, include_warmup)
    return _run_core(frame, config, output_dir)


def fetch_yfinance(config: BacktestConfig, auto_adjust: bool = False, include_warmup: bool = True) -> OhlcvFrame:
    start_dt = pd.Timestamp(config.start)
    warmup_start = start_dt
    if include_warmup:
        # calendar days approximation (weekends/holidays) for daily bars
        warmup_start = start_dt - pd.Timedelta(days=warm_up_days(config))

    return YfinanceProvider().fetch(
        symbol=config.symbol,
        start=str(warmup_start.date()),
        end=str(config.end),
        auto_adjust=auto_adjust,
    )


def run_from_csv(
    csv_path: str | Path,
    config: BacktestConfig,
    output_dir: str | Path = "outputs",
) -> dict[str, Path]:
    frame = CsvProvider().fetch(csv_path=csv_path, symbol=config.symbol)
    return _run_core(frame, config, output_dir)


def _trading_data(frame: OhlcvFrame, config: BacktestConfig) -> TradingData:
    df = frame.df.loc[frame.df.index < pd.Timestamp(config.end)]
    if df.empty:
        raise ValueError(f"no price data for {config.symbol} before {config.end}")
    return TradingData.from_frame(OhlcvFrame(df=df, symbol=frame.symbol))


def _run_core(frame: OhlcvFrame, config: BacktestConfig, output_dir: str | Path) -> dict[str, Path]:
    recorder = EventRecorder()
    result = BacktestBootstrap(config, _trading_data(frame, config), recorder.listeners()).run()

    summary = result.statistics.summary()
    summary["total_roi_pct"] = result.total_roi.total
    networth = recorder.networth_frame()["Networth"]
    if len(networth):
        summary["max_drawdown"] = max_drawdown(networth)
    return recorder.write(output_dir, config.symbol, summary)


# ---------------------------------------------------------------------------
# One run per deposit amount
# ---------------------------------------------------------------------------


def _run_with_deposit(args: tuple) -> dict:
    frame, config, amount, output_dir = args
    deposit = config.deposit or DepositConfig()
    config = dataclasses.replace(config, deposit=dataclasses.replace(deposit, amount=amount))
    recorder = EventRecorder()
    result = BacktestBootstrap(config, _trading_data(frame, config), recorder.listeners()).run()
    if output_dir is not None:
        recorder.write(Path(output_dir) / f"deposit_{amount}", config.symbol, result.statistics.summary())

    row = {"deposit": amount, "total_roi_pct": result.total_roi.total}
    row.update(result.statistics.summary())
    if recorder.summary is not None:
        row["networth"] = recorder.summary.networth
    return row


def run_all_deposit_amounts(
    frame: OhlcvFrame,
    config: BacktestConfig,
    amounts: Sequence[Decimal],
    output_dir: Optional[str | Path] = None,
    max_workers: Optional[int] = None,
) -> pd.DataFrame:
    """Independent simulations, one per deposit amount, spread over a process pool."""
    workers = max_workers or os.cpu_count() or 1
    logger.info("running %d deposit amounts on %d workers", len(amounts), workers)
    args_list = [(frame, config, amount, output_dir) for amount in amounts]
    with ProcessPoolExecutor(max_workers=workers) as executor:
        rows = list(executor.map(_run_with_deposit, args_list))
    return pd.DataFrame(rows)
