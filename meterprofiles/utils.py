# meterprofiles/utils.py
from __future__ import annotations
import re
from datetime import datetime, time as _time
from typing import Optional, Iterable

import numpy as np
import pandas as pd

from . import canon
from .config import DateOrder

HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
DATE_LIKE_RE = re.compile(r"\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}")
_NUMERIC_CHARS_RE = re.compile(r"[^\d.\-]")
_CURRENCY_RE = re.compile(r"[$€£¥R]|ZAR|USD|EUR|AUD", re.IGNORECASE)

_DT_TAIL = r"(?:[ T]+(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\.\d+)?)?"
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,4})[-/. ](\d{1,2})[-/. ](\d{1,4})" + _DT_TAIL)
_TEXT_MONTH_RE = re.compile(
    r"^(\d{1,2})[-/. ]([A-Za-z]{3,9})[-/. ,]*(\d{2,4})" + _DT_TAIL
)


def clean_cell(value: object) -> str:
    """Trim whitespace and one layer of surrounding quotes."""
    if value is None:
        return ""
    if isinstance(value, float) and np.isnan(value):
        return ""
    s = str(value).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in "\"'":
        s = s[1:-1].strip()
    return s


def parse_number(value: object) -> Optional[float]:
    """
    Parse a display-formatted number: thousands separators, currency symbols
    and quotes are removed. Returns None when nothing numeric remains.
    """
    s = clean_cell(value)
    if not s:
        return None
    s = _CURRENCY_RE.sub("", s).replace(",", "").replace(" ", "").strip()
    try:
        out = float(s)
    except ValueError:
        return None
    if not np.isfinite(out):
        return None
    return out


def parse_loose_number(value: object) -> Optional[float]:
    """Strip every character that cannot be part of a plain decimal, then parse."""
    s = _NUMERIC_CHARS_RE.sub("", clean_cell(value))
    if not s or s in {"-", ".", "-."}:
        return None
    try:
        out = float(s)
    except ValueError:
        # e.g. "1-2" or "1.2.3" left over after stripping
        m = re.match(r"-?\d*\.?\d+", s)
        if not m:
            return None
        out = float(m.group(0))
    return out if np.isfinite(out) else None


def parse_time_slot(value: object) -> Optional[_time]:
    """'HH:MM' (or 'HH:MM:SS') to a time; '24:00' rolls over to midnight."""
    m = HHMM_RE.match(clean_cell(value))
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    second = int(m.group(3) or 0)
    if hour == 24 and minute == 0:
        return _time(0, 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return _time(hour, minute, second)


def looks_like_date(value: object) -> bool:
    return bool(DATE_LIKE_RE.search(clean_cell(value)))


def _ymd(p1: int, p2: int, p3: int, order: DateOrder) -> tuple[int, int, int]:
    # Unambiguous layouts win over the hint
    if p1 > 31:
        year, month, day = p1, p2, p3
    elif p3 > 31 or order in ("DMY", "MDY"):
        if order == "MDY":
            month, day, year = p1, p2, p3
        else:
            day, month, year = p1, p2, p3
    else:
        # Two small numbers either side: day-first is the common meter export
        # convention outside the US.
        if order == "YMD":
            year, month, day = p1, p2, p3
        else:
            day, month, year = p1, p2, p3
    if year < 100:
        year += 1900 if year > 50 else 2000
    return year, month, day


def _build(year, month, day, hh, mm, ss) -> Optional[datetime]:
    try:
        return datetime(year, month, day, int(hh or 0), int(mm or 0), int(ss or 0))
    except ValueError:
        return None


def parse_timestamp(
    date_str: object,
    time_str: object = None,
    order: DateOrder = "auto",
) -> Optional[datetime]:
    """
    Parse a meter timestamp from a combined field or a date + time pair.

    Accepts ISO, D/M/Y, M/D/Y (with order hint), Y/M/D and 'DD-Mon-YYYY'
    layouts with optional HH:MM[:SS]. Falls back to pandas for anything else
    (e.g. 'January 1, 2024 10:00'). Returns None when unparseable.
    """
    d = clean_cell(date_str)
    if not d:
        return None
    t = clean_cell(time_str) if time_str is not None else ""
    if t:
        slot = parse_time_slot(t)
        if slot is None:
            return None
        combined = f"{d} {slot.strftime('%H:%M:%S')}"
    else:
        combined = d

    m = _NUMERIC_DATE_RE.match(combined)
    if m:
        p1, p2, p3 = int(m.group(1)), int(m.group(2)), int(m.group(3))
        year, month, day = _ymd(p1, p2, p3, order)
        return _build(year, month, day, m.group(4), m.group(5), m.group(6))

    m = _TEXT_MONTH_RE.match(combined)
    if m:
        month = canon.MONTH_NAMES.get(m.group(2).lower()[:3])
        if month is None:
            return None
        year = int(m.group(3))
        if year < 100:
            year += 1900 if year > 50 else 2000
        return _build(year, month, int(m.group(1)), m.group(4), m.group(5), m.group(6))

    if not re.search(r"[A-Za-z]{3,}", combined) or not re.search(r"\d{4}", combined):
        return None
    ts = pd.to_datetime(combined, errors="coerce", dayfirst=order != "MDY")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime().replace(tzinfo=None)


def is_weekend(ts: datetime | pd.Timestamp) -> bool:
    return ts.weekday() >= 5


def distinct_labels(values: Iterable[object]) -> int:
    return len({clean_cell(v) for v in values if clean_cell(v)})


def round2(x: float) -> float:
    return float(round(float(x), 2))


def round1(x: float) -> float:
    return float(round(float(x), 1))


def month_label(ts: pd.Series | pd.DatetimeIndex) -> pd.Index:
    """Return 'Mon YYYY' labels from a datetime-like Series/Index."""
    idx = pd.DatetimeIndex(ts)
    return pd.Index(idx.strftime("%b %Y"))


def empty_readings() -> pd.DataFrame:
    """
    Return an empty readings frame with the correct index and columns.
    """
    idx = pd.DatetimeIndex([], name=canon.READINGS_INDEX)
    return pd.DataFrame(
        {
            "kw": pd.Series([], dtype=float),
            "kwh": pd.Series([], dtype=float),
            "cadence_min": pd.Series([], dtype=int),
        },
        index=idx,
    )


def build_readings(
    timestamps: Iterable[datetime],
    kw: Iterable[float],
    *,
    cadence_min: int,
) -> pd.DataFrame:
    kw_arr = np.asarray(list(kw), dtype=float)
    df = pd.DataFrame(
        {
            canon.READINGS_INDEX: pd.DatetimeIndex(list(timestamps)),
            "kw": kw_arr,
            "kwh": kw_arr * (cadence_min / 60.0),
            "cadence_min": int(cadence_min),
        }
    ).set_index(canon.READINGS_INDEX)
    return df.sort_index()
