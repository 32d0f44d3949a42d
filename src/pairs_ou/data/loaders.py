"""CSV ingestion for two-instrument quote exports.

The expected layout is an Excel-style export with two header rows: the first
names the instrument (only on the first column of each block), the second
names the field. Combined headers look like ``HOc2_Bid Close``.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from .series import SpreadSeries, log_spread


LOGGER = logging.getLogger(__name__)

_NA_TOKENS = {"NAN", "NA"}


def _scan_layout(path: Path) -> tuple[str, int]:
    """Return (separator, widest row) so ragged exports can be read as one frame."""
    with open(path, encoding="utf-8-sig", newline="") as f:
        lines = [line for line in f if line.strip()]
    if not lines:
        raise ValueError(f"Empty CSV: {path}")
    first = lines[0]
    sep = ";" if first.count(";") > first.count(",") else ","
    width = max(len(row) for row in csv.reader(lines, delimiter=sep))
    return sep, width


def _header_rows(raw: pd.DataFrame) -> tuple[int, int]:
    found: list[int] = []
    for i, row in raw.iterrows():
        nonempty = sum(1 for v in row if str(v).strip())
        if raw.shape[1] >= 4 and nonempty >= 2:
            found.append(int(i))
            if len(found) == 2:
                return found[0], found[1]
    if not found:
        raise ValueError("Empty CSV: no header row found")
    raise ValueError("CSV has no second header row")


def _clean_header(values: Sequence[str]) -> list[str]:
    out = []
    for v in values:
        s = str(v).replace("\xa0", " ").strip()
        out.append("" if s.upper() in _NA_TOKENS else s)
    return out


def combine_headers(row1: Sequence[str], row2: Sequence[str]) -> list[str]:
    """Forward-fill the first header row and join it with the second as ``a_b``."""
    top = pd.Series(_clean_header(row1)).replace("", np.nan).ffill().fillna("").tolist()
    bottom = _clean_header(row2)
    headers = []
    for a, b in zip(top, bottom):
        if a and b:
            headers.append(f"{a}_{b}")
        else:
            headers.append(b or a)
    return headers


def detect_time_column(headers: Sequence[str], second_row: Sequence[str]) -> str:
    """Pick the timestamp column: exact ``Timestamp``, then a ``*Timestamp*`` match,
    then the column whose field name is ``Timestamp``, then the first named column."""
    for h in headers:
        if h == "Timestamp":
            return h
    for h in headers:
        if "Timestamp" in h:
            return h
    for h, field in zip(headers, _clean_header(second_row)):
        if field == "Timestamp":
            return h
    for h in headers:
        if h:
            return h
    raise ValueError("Auto time_col failed: no Timestamp-like column found")


def parse_number(values: pd.Series) -> pd.Series:
    """Parse numbers written with decimal commas and stray spaces; failures become 0."""
    s = values.astype(str).str.replace(",", ".", regex=False)
    s = s.str.replace(r"[\s\xa0]", "", regex=True)
    return pd.to_numeric(s, errors="coerce").fillna(0.0).astype("float64")


def parse_timestamps(values: pd.Series) -> pd.Series:
    """Parse ISO timestamps as-is and everything else as day-first (European) dates."""
    s = values.astype(str).str.strip()
    iso = s.str.match(r"^\d{4}-\d{2}-\d{2}")
    out = pd.Series(pd.NaT, index=s.index, dtype="datetime64[ns]")
    if iso.any():
        out.loc[iso] = pd.to_datetime(s.loc[iso], format="ISO8601", errors="coerce")
    if (~iso).any():
        out.loc[~iso] = pd.to_datetime(s.loc[~iso], dayfirst=True, format="mixed", errors="coerce")
    return out


def _need(headers: list[str], name: str) -> int:
    try:
        return headers.index(name)
    except ValueError:
        raise KeyError(f"Missing column: {name}") from None


def load_price_csv(
    filepath: str | Path,
    *,
    bid_ask_cols: Sequence[str],
    time_col: str = "*",
    mid_cols: Sequence[str] | None = None,
    ticks: Sequence[float] | None = None,
    convs: Sequence[float] = (1.0, 1.0),
    start: str | pd.Timestamp | None = None,
    end: str | pd.Timestamp | None = None,
) -> SpreadSeries:
    """Load a two-instrument quote CSV into a SpreadSeries.

    Args:
        filepath: CSV path (``,`` or ``;`` separated)
        bid_ask_cols: Combined header names ``(bid1, ask1, bid2, ask2)``
        time_col: Combined time header, or ``"*"`` to auto-detect
        mid_cols: Optional combined headers ``(mid1, mid2)``
        ticks: Optional tick sizes used to rebuild missing bid/ask from the mid
        convs: Multiplicative unit conversion per product
        start: Inclusive lower time bound
        end: Exclusive upper time bound

    Returns:
        SpreadSeries in file order (rows outside ``[start, end)`` dropped)
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Cannot open CSV: {path}")
    if len(bid_ask_cols) != 4:
        raise ValueError("bid_ask_cols must name (bid1, ask1, bid2, ask2)")

    sep, width = _scan_layout(path)
    raw = pd.read_csv(
        path,
        sep=sep,
        header=None,
        names=range(width),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        encoding="utf-8-sig",
    ).fillna("")
    h1, h2 = _header_rows(raw)
    headers = combine_headers(raw.iloc[h1].tolist(), raw.iloc[h2].tolist())
    LOGGER.debug("Combined CSV headers: %s", headers)

    if time_col == "*":
        time_col = detect_time_column(headers, raw.iloc[h2].tolist())
        LOGGER.info("Auto-detected time column: %s", time_col)

    body = raw.iloc[h2 + 1 :].reset_index(drop=True)
    body.columns = range(body.shape[1])

    cols = {name: _need(headers, name) for name in [time_col, *bid_ask_cols]}
    b1, a1, b2, a2 = (parse_number(body[cols[c]]) for c in bid_ask_cols)
    if mid_cols is not None:
        m1 = parse_number(body[_need(headers, mid_cols[0])])
        m2 = parse_number(body[_need(headers, mid_cols[1])])
    else:
        m1 = pd.Series(0.0, index=body.index)
        m2 = pd.Series(0.0, index=body.index)

    # Zero means "not quoted" in these exports.
    m1 = m1.where(~((m1 == 0) & (b1 != 0) & (a1 != 0)), 0.5 * (b1 + a1))
    m2 = m2.where(~((m2 == 0) & (b2 != 0) & (a2 != 0)), 0.5 * (b2 + a2))
    if ticks is not None:
        rebuild1 = ((b1 == 0) | (a1 == 0)) & (m1 != 0)
        rebuild2 = ((b2 == 0) | (a2 == 0)) & (m2 != 0)
        b1 = b1.where(~rebuild1, m1 - ticks[0] / 2.0)
        a1 = a1.where(~rebuild1, m1 + ticks[0] / 2.0)
        b2 = b2.where(~rebuild2, m2 - ticks[1] / 2.0)
        a2 = a2.where(~rebuild2, m2 + ticks[1] / 2.0)

    df = pd.DataFrame(
        {
            "time": parse_timestamps(body[cols[time_col]]),
            "bid1": b1 * convs[0],
            "ask1": a1 * convs[0],
            "mid1": m1 * convs[0],
            "bid2": b2 * convs[1],
            "ask2": a2 * convs[1],
            "mid2": m2 * convs[1],
        }
    )
    df["log_spread"] = log_spread(df["mid1"], df["mid2"])

    keep = df["time"].notna()
    if start is not None:
        keep &= df["time"] >= pd.Timestamp(start)
    if end is not None:
        keep &= df["time"] < pd.Timestamp(end)
    df = df.loc[keep]
    LOGGER.info("Loaded %d rows from %s", len(df), path.name)
    return SpreadSeries.from_frame(df)
