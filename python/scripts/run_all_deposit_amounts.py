"""Run the same configuration once per weekly deposit amount, in parallel.

Example:
    python -m scripts.run_all_deposit_amounts --config configs/weekly_deposit.yaml \
      --amounts 100 250 500 1000 --out outputs_deposits
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from systrade.backtest import fetch_yfinance, run_all_deposit_amounts
from systrade.config import load_config
from systrade.data_provider import CsvProvider
from systrade.maths import to_decimal


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--config", type=str, required=True, help="YAML configuration file.")
    p.add_argument("--amounts", type=str, nargs="+", default=["100", "250", "500", "1000"])
    p.add_argument("--csv", type=str, default=None, help="Simple OHLCV CSV path; yfinance when omitted.")
    p.add_argument("--out", type=str, default="outputs_deposits")
    p.add_argument("--workers", type=int, default=None, help="Defaults to the CPU count.")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    cfg = load_config(args.config)
    if args.csv:
        frame = CsvProvider().fetch(csv_path=args.csv, symbol=cfg.symbol)
    else:
        frame = fetch_yfinance(cfg)

    amounts = [to_decimal(a) for a in args.amounts]
    table = run_all_deposit_amounts(frame, cfg, amounts, output_dir=args.out, max_workers=args.workers)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"deposits_{cfg.symbol.replace('.', '_')}.csv"
    table.to_csv(out_path, index=False, encoding="utf-8")
    print(table.to_string(index=False))
    print(out_path)


if __name__ == "__main__":
    main()
