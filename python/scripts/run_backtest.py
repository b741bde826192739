"""Run one backtest from a YAML configuration.

Example:
    python -m scripts.run_backtest --config configs/weekly_deposit.yaml --csv spy.csv
    python -m scripts.run_backtest --symbol SPY --start 2015-01-01 --end 2020-01-01
"""

from __future__ import annotations

import argparse
import dataclasses
import logging

import pandas as pd

from systrade.backtest import run_from_csv, run_from_yfinance
from systrade.config import from_dict, load_config


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--config", type=str, default=None, help="YAML configuration file.")
    p.add_argument("--symbol", type=str, default=None, help="Overrides the configured symbol.")
    p.add_argument("--start", type=str, default=None, help="Overrides the configured start date.")
    p.add_argument("--end", type=str, default=None, help="Overrides the configured (exclusive) end date.")
    p.add_argument("--csv", type=str, default=None, help="Simple OHLCV CSV path (Date,Open,High,Low,Close,Volume).")
    p.add_argument("--output_dir", type=str, default="outputs")
    p.add_argument("--auto_adjust", action="store_true", help="Use yfinance auto_adjust (if using yfinance).")
    p.add_argument("--log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.config:
        cfg = load_config(args.config)
        if args.symbol:
            cfg = dataclasses.replace(cfg, symbol=args.symbol)
        if args.start or args.end:
            start = pd.Timestamp(args.start).date() if args.start else cfg.start
            end = pd.Timestamp(args.end).date() if args.end else cfg.end
            cfg = dataclasses.replace(cfg, start=start, end=end)
    else:
        if not (args.symbol and args.start and args.end):
            p.error("--symbol, --start and --end are required without --config")
        cfg = from_dict({"symbol": args.symbol, "start": args.start, "end": args.end})

    if args.csv:
        paths = run_from_csv(csv_path=args.csv, config=cfg, output_dir=args.output_dir)
    else:
        paths = run_from_yfinance(config=cfg, output_dir=args.output_dir, auto_adjust=args.auto_adjust)

    for path in paths.values():
        print(path)


if __name__ == "__main__":
    main()
