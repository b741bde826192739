"""Collects the event stream of a run into tables and writes them as CSV."""

from __future__ import annotations

from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Optional

import pandas as pd

from .bootstrap import Listeners
from .events import NetWorthEvent, ReturnOnInvestmentEvent
from .types import SimulationState


def _row(kind: str, event) -> dict:
    row = {"event": kind}
    for key, value in asdict(event).items():
        row[key] = value.value if isinstance(value, Enum) else value
    return row


class EventRecorder:
    """Listener for every event source; `listeners()` hands it to a bootstrap."""

    def __init__(self):
        self.events: list[dict] = []
        self.networth: list[dict] = []
        self.periodic_roi: list[dict] = []
        self.summary: Optional[NetWorthEvent] = None
        self.state: Optional[SimulationState] = None

    def listeners(self) -> Listeners:
        return Listeners(
            cash=(self._record("CASH"),),
            brokerage=(self._record("BROKERAGE"),),
            equity=(self._record("EQUITY"),),
            order=(self._record("ORDER"),),
            roi=(self.on_roi,),
            periodic_roi=(self.on_periodic_roi,),
            networth=(self.on_networth,),
            signal=(self._record("SIGNAL"),),
            state=(self.on_state,),
        )

    def _record(self, kind: str):
        def record(event) -> None:
            self.events.append(_row(kind, event))

        return record

    def on_roi(self, event: ReturnOnInvestmentEvent) -> None:
        self.networth.append(
            {
                "Date": event.inclusive_end_date,
                "Networth": event.networth,
                "PercentageChange": event.percentage_change,
            }
        )

    def on_periodic_roi(self, event: ReturnOnInvestmentEvent) -> None:
        self.periodic_roi.append(
            {
                "ExclusiveStart": event.exclusive_start_date,
                "InclusiveEnd": event.inclusive_end_date,
                "PercentageChange": event.percentage_change,
            }
        )

    def on_networth(self, event: NetWorthEvent, state: SimulationState) -> None:
        self.summary = event

    def on_state(self, state: SimulationState) -> None:
        self.state = state

    def networth_frame(self) -> pd.DataFrame:
        if not self.networth:
            return pd.DataFrame(columns=["Networth", "PercentageChange"])
        df = pd.DataFrame(self.networth)
        df["Date"] = pd.to_datetime(df["Date"])
        return df.set_index("Date")

    def write(self, output_dir: str | Path, symbol: str, statistics: Optional[dict] = None) -> dict[str, Path]:
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        tag = symbol.replace(".", "_")

        paths = {
            "events": out_dir / f"events_{tag}.csv",
            "networth": out_dir / f"networth_{tag}.csv",
            "roi": out_dir / f"roi_{tag}.csv",
            "summary": out_dir / f"summary_{tag}.csv",
        }
        pd.DataFrame(self.events).to_csv(paths["events"], index=False, encoding="utf-8")
        self.networth_frame().to_csv(paths["networth"], encoding="utf-8")
        pd.DataFrame(self.periodic_roi).to_csv(paths["roi"], index=False, encoding="utf-8")

        summary = dict(statistics or {})
        if self.summary is not None:
            summary.update(
                {
                    "date": self.summary.event_date,
                    "equity_balance": self.summary.equity_balance,
                    "equity_balance_value": self.summary.equity_balance_value,
                    "cash_balance": self.summary.cash_balance,
                    "networth": self.summary.networth,
                }
            )
        pd.DataFrame([summary]).to_csv(paths["summary"], index=False, encoding="utf-8")
        return paths
