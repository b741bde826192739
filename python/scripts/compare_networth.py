"""Compare two net worth curves written by run_backtest (networth_<symbol>.csv).

Curves are aligned on their common dates and normalized to their first
value before the difference statistics are computed.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
import pandas as pd

from systrade.metrics import cagr_of, max_drawdown


def load_networth(path: str) -> pd.Series:
    df = pd.read_csv(Path(path))
    cols = [c.strip().lower() for c in df.columns]
    if "date" not in cols or "networth" not in cols:
        raise ValueError("Unsupported format. Expected [Date, Networth] columns.")
    out = df[[df.columns[cols.index("date")], df.columns[cols.index("networth")]]].copy()
    out.columns = ["Date", "Networth"]
    out["Date"] = pd.to_datetime(out["Date"])
    return out.set_index("Date").sort_index()["Networth"].astype(float)


def main():
    p = argparse.ArgumentParser()
    p.add_argument("first", type=str, help="Net worth CSV.")
    p.add_argument("second", type=str, help="Net worth CSV to compare against.")
    p.add_argument("--plot", type=str, default=None, help="Save a PNG plot to this path.")
    args = p.parse_args()

    first = load_networth(args.first)
    second = load_networth(args.second)

    idx = first.index.intersection(second.index)
    if len(idx) < 2:
        raise SystemExit("The two curves share fewer than two dates.")
    a = first.loc[idx]
    b = second.loc[idx]
    # a zero first value (no funds yet) cannot be normalized
    an = a / a.iloc[0] if a.iloc[0] else a
    bn = b / b.iloc[0] if b.iloc[0] else b

    diff = an - bn
    rmse = float(np.sqrt(np.mean(diff**2)))
    mae = float(np.mean(np.abs(diff)))
    max_abs = float(np.max(np.abs(diff)))

    corr = float("nan")
    if len(idx) > 2:
        corr = float(np.corrcoef(an.values, bn.values)[0, 1])

    print(f"Aligned points: {len(idx)}")
    print(f"RMSE: {rmse:.6f}")
    print(f"MAE: {mae:.6f}")
    print(f"MaxAbs: {max_abs:.6f}")
    print(f"Corr: {corr:.6f}")
    for name, curve in (("first", a), ("second", b)):
        line = f"{name}: final {curve.iloc[-1]:.2f}, max drawdown {max_drawdown(curve):.4f}"
        if curve.iloc[0] > 0:
            line += f", CAGR {cagr_of(curve):.2f}%"
        print(line)

    if args.plot:
        import matplotlib.pyplot as plt

        plt.figure()
        plt.plot(an.index, an.values, label=Path(args.first).stem)
        plt.plot(bn.index, bn.values, label=Path(args.second).stem)
        plt.legend()
        plt.title("normalized net worth")
        plt.tight_layout()
        plt.savefig(args.plot, dpi=150)
        print(f"Saved plot: {args.plot}")


if __name__ == "__main__":
    main()
