from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from . import canon, exceptions, utils
from .types import (
    AggregationMode,
    ComparisonPoint,
    ComparisonResult,
    ComparisonSeries,
    DayTypeFilter,
    MeterStats,
    Representation,
)

logger = logging.getLogger(__name__)


@dataclass
class MeterSeries:
    """Persisted readings for one meter plus the metadata shown next to it."""

    meter_id: str
    name: str
    readings: pd.DataFrame
    site_name: str = ""
    floor_area: Optional[float] = None
    representation: Representation = "raw_kw"


def filter_readings(
    df: pd.DataFrame,
    *,
    day_type: DayTypeFilter = "all",
    start: Optional[datetime | pd.Timestamp] = None,
    end: Optional[datetime | pd.Timestamp] = None,
) -> pd.DataFrame:
    """Inclusive calendar-date range, then weekday/weekend selection."""
    if df.empty:
        return df
    days = df.index.normalize()
    mask = np.ones(len(df), dtype=bool)
    if start is not None:
        mask &= days >= pd.Timestamp(start).normalize()
    if end is not None:
        mask &= days <= pd.Timestamp(end).normalize()
    if day_type != "all":
        weekend = df.index.dayofweek >= 5
        mask &= weekend if day_type == "weekend" else ~weekend
    return df.loc[mask]


def hourly_series(df: pd.DataFrame) -> pd.Series:
    """Mean kW per hour of day, 24 rows labelled '00:00'..'23:00'."""
    labels = [f"{h:02d}:00" for h in range(canon.HOURS)]
    if df.empty:
        return pd.Series(0.0, index=labels)
    means = df["kw"].groupby(df.index.hour).mean()
    out = means.reindex(range(canon.HOURS), fill_value=0.0)
    out.index = labels
    return out


def weekly_series(df: pd.DataFrame) -> pd.Series:
    """Daily kWh totals averaged per weekday, Mon..Sun."""
    if df.empty:
        return pd.Series(0.0, index=list(canon.WEEKDAY_LABELS))
    daily = df["kwh"].groupby(df.index.normalize()).sum()
    by_dow = daily.groupby(daily.index.dayofweek).mean()
    out = by_dow.reindex(range(7), fill_value=0.0)
    out.index = list(canon.WEEKDAY_LABELS)
    return out


def monthly_series(df: pd.DataFrame) -> pd.Series:
    """kWh per calendar month, indexed by month Period (chronological)."""
    if df.empty:
        return pd.Series(dtype=float, index=pd.PeriodIndex([], freq="M"))
    return df["kwh"].groupby(df.index.to_period("M")).sum().sort_index()


def _build_frame(
    filtered: Dict[str, pd.DataFrame], mode: AggregationMode
) -> pd.DataFrame:
    """One column per meter id, one row per label, missing cells 0."""
    if mode == "hourly":
        cols = {mid: hourly_series(df) for mid, df in filtered.items()}
        return pd.DataFrame(cols)
    if mode == "weekly":
        cols = {mid: weekly_series(df) for mid, df in filtered.items()}
        return pd.DataFrame(cols)
    if mode == "monthly":
        cols = {mid: monthly_series(df) for mid, df in filtered.items()}
        frame = pd.DataFrame(cols).sort_index().fillna(0.0)
        if frame.empty:
            return frame
        frame.index = utils.month_label(frame.index.to_timestamp())
        return frame
    raise ValueError(f"Unknown aggregation mode: {mode!r}")


def _to_series(mode: AggregationMode, frame: pd.DataFrame, ids: Sequence[str]) -> ComparisonSeries:
    points: List[ComparisonPoint] = [
        {"label": str(label), "values": {mid: utils.round2(row[mid]) for mid in ids}}
        for label, row in frame.iterrows()
    ]
    return ComparisonSeries(mode=mode, points=points)


def baseline_frame(frame: pd.DataFrame, baseline_id: str) -> pd.DataFrame:
    """
    Re-express every cell as % difference from the baseline meter's value at
    the same label. The baseline column is 0; labels where the baseline is
    <= 0 are 0 for every meter.
    """
    base = frame[baseline_id]
    safe = base.where(base > 0)
    pct = frame.sub(safe, axis=0).div(safe, axis=0).mul(100.0)
    pct = pct.fillna(0.0)
    pct[baseline_id] = 0.0
    return pct


def compare_meters(
    meters: Sequence[MeterSeries],
    *,
    mode: AggregationMode = "hourly",
    day_type: DayTypeFilter = "all",
    start: Optional[datetime | pd.Timestamp] = None,
    end: Optional[datetime | pd.Timestamp] = None,
    baseline_id: Optional[str] = None,
) -> ComparisonResult:
    """
    Build a comparison view across meters.

    - hourly: mean kW per hour of day (24 points)
    - weekly: mean daily kWh per weekday (Mon..Sun)
    - monthly: kWh per calendar month present in the filtered data
    Filters (inclusive dates, day type) apply before bucketing; an empty
    filter result yields zero-valued points rather than an error.
    """
    kinds = {m.representation for m in meters}
    if len(kinds) > 1:
        raise exceptions.RepresentationMismatchError(
            "Cannot compare percentage and raw-kW meters in one view."
        )
    ids = [m.meter_id for m in meters]
    exceptions.require(len(set(ids)) == len(ids), "Meter ids must be unique.")
    if baseline_id is not None:
        exceptions.require(baseline_id in ids, f"Baseline meter {baseline_id} is not in the comparison.")

    filtered = {
        m.meter_id: filter_readings(m.readings, day_type=day_type, start=start, end=end)
        for m in meters
    }
    frame = _build_frame(filtered, mode)
    if not frame.empty:
        frame = frame[ids]

    # Stats use unrounded values; rounding is for display only
    totals = frame.sum(axis=0) if not frame.empty else pd.Series(0.0, index=ids)
    group_avg = float(totals.mean()) if len(totals) else 0.0
    baseline_total = float(totals[baseline_id]) if baseline_id is not None else 0.0

    stats: List[MeterStats] = []
    for m in meters:
        col = frame[m.meter_id] if not frame.empty else pd.Series(dtype=float)
        total = float(totals[m.meter_id])
        vs_group = (total - group_avg) / group_avg * 100.0 if group_avg > 0 else 0.0
        vs_base: Optional[float] = None
        if baseline_id is not None and m.meter_id != baseline_id and baseline_total > 0:
            vs_base = utils.round1((total - baseline_total) / baseline_total * 100.0)
        intensity = total / m.floor_area if m.floor_area else None
        stats.append(
            MeterStats(
                meter_id=m.meter_id,
                meter_name=m.name or "Unknown",
                site_name=m.site_name,
                avg_value=utils.round2(col.mean()) if len(col) else 0.0,
                peak_value=utils.round2(col.max()) if len(col) else 0.0,
                total_kwh=float(round(total)),
                vs_group_pct=utils.round1(vs_group),
                vs_baseline_pct=vs_base,
                energy_intensity=utils.round2(intensity) if intensity is not None else None,
            )
        )

    baseline_series = None
    if baseline_id is not None and not frame.empty:
        baseline_series = _to_series(mode, baseline_frame(frame, baseline_id).round(1), ids)

    logger.debug("Compared %d meters (%s, %s): %d points", len(meters), mode, day_type, len(frame))
    return ComparisonResult(
        series=_to_series(mode, frame, ids),
        stats=stats,
        baseline_series=baseline_series,
    )
