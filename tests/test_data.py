from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from systrade.data_manager import TradingData
from systrade.data_provider import CsvProvider, OhlcvFrame, normalize_ohlcv, to_price_bars
from systrade.types import PriceBar


def frame(closes, start="2021-01-04"):
    index = pd.date_range(start, periods=len(closes), freq="D")
    df = pd.DataFrame(
        {"Open": closes, "High": closes, "Low": closes, "Close": closes, "Volume": [0.0] * len(closes)},
        index=index,
    )
    return OhlcvFrame(df=df, symbol="TEST")


class TestTradingData:
    def test_sorted_and_deduplicated(self, make_bars):
        bars = make_bars([1, 2, 3])
        replacement = PriceBar(bars[1].date, Decimal(9), Decimal(9), Decimal(9), Decimal(9), "TEST")

        data = TradingData([bars[2], bars[1], bars[0], replacement])

        assert len(data) == 3
        assert [bar.date for bar in data.bars] == [bar.date for bar in bars]
        assert data.bar_for(bars[1].date).close == Decimal(9)
        assert data.earliest == bars[0]
        assert data.latest == bars[2]
        assert data.symbol == "TEST"

    def test_missing_day(self, make_bars):
        data = TradingData(make_bars([1, 2]))
        assert data.bar_for(date(2030, 1, 1)) is None

    def test_last_bar_before(self, make_bars):
        bars = make_bars([1, 2, 3])
        data = TradingData(bars)

        assert data.last_bar_before(bars[2].date) == bars[1]
        assert data.last_bar_before(date(2031, 1, 1)) == bars[2]
        assert data.last_bar_before(bars[0].date) is None

    def test_rejects_empty_and_none(self, make_bars):
        with pytest.raises(ValueError):
            TradingData([])
        with pytest.raises(ValueError):
            TradingData(make_bars([1]) + [None])


class TestPriceBars:
    def test_float_noise_rounded(self):
        bars = to_price_bars(frame([10.119999999, 10.5]))

        assert bars[0].close == Decimal("10.12")
        assert bars[0].date == date(2021, 1, 4)
        assert bars[1].symbol == "TEST"

    def test_from_frame(self):
        data = TradingData.from_frame(frame([1.0, 2.0, 3.0]))

        assert len(data) == 3
        assert data.latest.close == Decimal(3)


class TestStandardize:
    def test_single_ticker_multiindex(self):
        columns = pd.MultiIndex.from_product([["Open", "High", "Low", "Close", "Adj Close", "Volume"], ["SPY"]])
        df = pd.DataFrame([[1, 2, 0.5, 1.5, 1.4, 100]], columns=columns, index=pd.to_datetime(["2021-01-04"]))

        out = normalize_ohlcv(df)

        assert list(out.columns) == ["Open", "High", "Low", "Close", "Volume"]
        assert out.iloc[0]["Close"] == 1.5

    def test_missing_columns(self):
        df = pd.DataFrame({"Open": [1.0]}, index=pd.to_datetime(["2021-01-04"]))
        with pytest.raises(ValueError):
            normalize_ohlcv(df)

    def test_rows_without_prices_dropped(self):
        df = pd.DataFrame(
            {"open": [1.0, None], "high": [1.0, 2.0], "low": [1.0, 2.0], "close": [1.0, 2.0]},
            index=pd.to_datetime(["2021-01-04", "2021-01-05"]),
        )

        out = normalize_ohlcv(df)

        assert len(out) == 1
        assert (out["Volume"] == 0).all()


class TestCsvProvider:
    def test_lowercase_date_column(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text(
            "date,open,high,low,close,volume\n"
            "2021-01-05,2,2,2,2,10\n"
            "2021-01-04,1,1,1,1,10\n",
            encoding="utf-8",
        )

        result = CsvProvider().fetch(path, symbol="TEST")

        assert list(result.df.index) == list(pd.to_datetime(["2021-01-04", "2021-01-05"]))
        assert result.symbol == "TEST"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CsvProvider().fetch(tmp_path / "absent.csv", symbol="TEST")

    def test_date_column_required(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text("timestamp,open,high,low,close\n2021-01-04,1,1,1,1\n", encoding="utf-8")

        with pytest.raises(ValueError):
            CsvProvider().fetch(path, symbol="TEST")

    def test_adjusted_close_stands_in_for_close(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text("Date,Open,High,Low,Adj Close\n2021-01-04,1,2,0.5,1.5\n", encoding="utf-8")

        bars = to_price_bars(CsvProvider().fetch(path, symbol="TEST"))

        assert bars[0].close == Decimal("1.5")
        assert bars[0].date == date(2021, 1, 4)
