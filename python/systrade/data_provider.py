"""Daily price sources (yfinance, CSV) normalized to one OHLCV frame layout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .maths import to_decimal
from .types import PriceBar

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ["Open", "High", "Low", "Close"]
OHLCV_COLUMNS = PRICE_COLUMNS + ["Volume"]

# lower-cased source column -> normalized name
_COLUMN_NAMES = {
    "open": "Open",
    "high": "High",
    "low": "Low",
    "close": "Close",
    "adj close": "AdjClose",
    "adjclose": "AdjClose",
    "volume": "Volume",
}

_DATE_COLUMNS = ("Date", "date")


@dataclass(frozen=True)
class OhlcvFrame:
    """Daily bars of one symbol: OHLCV_COLUMNS as floats on an ascending date index."""

    df: pd.DataFrame
    symbol: str


def _single_instrument(df: pd.DataFrame) -> pd.DataFrame:
    """Flatten yfinance's (field, ticker) columns to the fields of the first ticker."""
    if not isinstance(df.columns, pd.MultiIndex):
        return df
    first = df.columns.get_level_values(-1)[0]
    return df.xs(first, axis=1, level=-1, drop_level=True)


def normalize_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """Rename, fill and clean a provider frame into the OhlcvFrame layout.

    Close falls back to the adjusted close when a source only has the latter
    and a missing volume is zero. Rows without a full set of prices are
    dropped and the last row wins on a repeated date.
    """
    df = _single_instrument(df)
    df = df.rename(columns={col: _COLUMN_NAMES.get(str(col).strip().lower(), col) for col in df.columns})
    if "Close" not in df.columns and "AdjClose" in df.columns:
        df = df.rename(columns={"AdjClose": "Close"})
    if "Volume" not in df.columns:
        df = df.assign(Volume=0.0)

    missing = [col for col in OHLCV_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"price data is missing the {missing} columns")

    out = df[OHLCV_COLUMNS].astype(float).dropna(subset=PRICE_COLUMNS)
    dropped = len(df) - len(out)
    if dropped:
        logger.warning("dropped %d rows without a full set of prices", dropped)
    return out[~out.index.duplicated(keep="last")].sort_index()


class YfinanceProvider:
    """Daily bars downloaded with yfinance."""

    def fetch(self, symbol: str, start: str, end: str, auto_adjust: bool = False) -> OhlcvFrame:
        import yfinance as yf

        df = yf.download(tickers=symbol, start=start, end=end, interval="1d", auto_adjust=auto_adjust, progress=False)
        if df is None or df.empty:
            raise RuntimeError(f"yfinance returned no prices for {symbol} between {start} and {end}")
        logger.info("downloaded %d bars of %s", len(df), symbol)
        return OhlcvFrame(df=normalize_ohlcv(df), symbol=symbol)


class CsvProvider:
    """Daily bars read from a CSV file with a Date (or date) column."""

    def fetch(self, csv_path: str | Path, symbol: str) -> OhlcvFrame:
        path = Path(csv_path)
        if not path.exists():
            raise FileNotFoundError(str(path))

        df = pd.read_csv(path)
        date_column = next((col for col in _DATE_COLUMNS if col in df.columns), None)
        if date_column is None:
            raise ValueError(f"{path} has no Date column")

        df.index = pd.to_datetime(df.pop(date_column))
        return OhlcvFrame(df=normalize_ohlcv(df), symbol=symbol)


def to_price_bars(frame: OhlcvFrame, decimals: int = 4) -> list[PriceBar]:
    """Ascending Decimal bars from a normalized frame.

    Prices are rounded to `decimals` places first, so float noise such as
    10.119999999 becomes 10.12.
    """
    prices = frame.df[PRICE_COLUMNS].round(decimals)
    return [
        PriceBar(
            date=pd.Timestamp(day).date(),
            open=to_decimal(float(row.Open)),
            high=to_decimal(float(row.High)),
            low=to_decimal(float(row.Low)),
            close=to_decimal(float(row.Close)),
            symbol=frame.symbol,
        )
        for day, row in prices.iterrows()
    ]
