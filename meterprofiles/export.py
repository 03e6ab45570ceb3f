from __future__ import annotations
from typing import Mapping, Optional, Sequence, Union

import pandas as pd

from . import canon
from .aggregate import MeterSeries
from .types import CanonicalMeterProfile, ComparisonSeries


def _display_names(
    ids: Sequence[str],
    meters: Union[Sequence[MeterSeries], Mapping[str, str], None],
) -> list[str]:
    if meters is None:
        return list(ids)
    if isinstance(meters, Mapping):
        lookup = dict(meters)
    else:
        lookup = {m.meter_id: m.name for m in meters}
    return [lookup.get(i) or i for i in ids]


def comparison_frame(
    series: ComparisonSeries,
    meters: Union[Sequence[MeterSeries], Mapping[str, str], None] = None,
    *,
    include_total: bool = False,
    label_header: str = "Period",
) -> pd.DataFrame:
    """
    Tabular form of a comparison: one row per label, one column per meter
    (display name), optional row Total.
    """
    if meters is not None and not isinstance(meters, Mapping):
        ids = [m.meter_id for m in meters]
    elif series.points:
        ids = list(series.points[0]["values"].keys())
    else:
        ids = []

    data = {i: series.values_for(i) for i in ids}
    df = pd.DataFrame(data, index=pd.Index(series.labels, name=label_header), columns=ids)
    df.columns = _display_names(ids, meters)
    if include_total:
        df["Total"] = df.sum(axis=1)
    return df


def comparison_to_csv(
    series: ComparisonSeries,
    meters: Union[Sequence[MeterSeries], Mapping[str, str], None] = None,
    *,
    include_total: bool = False,
    label_header: str = "Period",
) -> str:
    """CSV text: header `Period,<meter names...>[,Total]`, values to 2 decimals."""
    df = comparison_frame(
        series, meters, include_total=include_total, label_header=label_header
    )
    return df.to_csv(float_format="%.2f", lineterminator="\n")


def profile_to_csv(profile: CanonicalMeterProfile, *, float_format: Optional[str] = "%.2f") -> str:
    """24-row Hour,Weekday,Weekend table for one profile."""
    unit = "pct" if profile.representation == "percentage" else "kW"
    df = pd.DataFrame(
        {
            f"Weekday ({unit})": list(profile.weekday_profile),
            f"Weekend ({unit})": list(profile.weekend_profile),
        },
        index=pd.Index([f"{h:02d}:00" for h in range(canon.HOURS)], name="Hour"),
    )
    return df.to_csv(float_format=float_format, lineterminator="\n")
