from __future__ import annotations
from typing import Sequence

import numpy as np

from . import canon, exceptions
from .types import CanonicalMeterProfile


def _scale_to_100(arr: np.ndarray, name: str) -> np.ndarray:
    total = float(arr.sum())
    if total <= 0:
        raise exceptions.ConversionError(
            f"Cannot express {name} as percentages: it sums to zero."
        )
    return arr / total * 100.0


def to_percentage(profile: CanonicalMeterProfile) -> CanonicalMeterProfile:
    """
    Explicit raw-kW -> percentage conversion: each day-type array is scaled to
    sum to 100. Percentage input is returned unchanged.
    """
    if profile.representation == "percentage":
        return profile
    weekday = _scale_to_100(np.asarray(profile.weekday_profile, dtype=float), "weekday profile")
    weekend = _scale_to_100(np.asarray(profile.weekend_profile, dtype=float), "weekend profile")
    return profile.model_copy(
        update={
            "weekday_profile": tuple(weekday),
            "weekend_profile": tuple(weekend),
            "representation": "percentage",
        }
    )


def require_same_representation(profiles: Sequence[CanonicalMeterProfile]) -> str:
    kinds = {p.representation for p in profiles}
    if len(kinds) > 1:
        raise exceptions.RepresentationMismatchError(
            "Cannot combine percentage and raw-kW profiles; convert with to_percentage() first."
        )
    return kinds.pop() if kinds else "raw_kw"


def stack_profiles(
    profiles: Sequence[CanonicalMeterProfile],
    *,
    reconcile: bool = False,
) -> CanonicalMeterProfile:
    """
    Combine several meters into one profile.

    raw_kw: hourly kW values are summed (loads stack).
    percentage: shapes are averaged so the result still sums to 100.
    Mixed input raises RepresentationMismatchError unless reconcile=True, in
    which case everything is converted to percentage first.
    """
    exceptions.require(bool(profiles), "No profiles to stack.", exceptions.ProfileError)
    if reconcile and len({p.representation for p in profiles}) > 1:
        profiles = [to_percentage(p) for p in profiles]
    representation = require_same_representation(profiles)

    weekday = np.vstack([np.asarray(p.weekday_profile, dtype=float) for p in profiles])
    weekend = np.vstack([np.asarray(p.weekend_profile, dtype=float) for p in profiles])
    if representation == "percentage":
        wd, we = weekday.mean(axis=0), weekend.mean(axis=0)
    else:
        wd, we = weekday.sum(axis=0), weekend.sum(axis=0)

    starts = [p.date_range_start for p in profiles if p.date_range_start is not None]
    ends = [p.date_range_end for p in profiles if p.date_range_end is not None]
    return CanonicalMeterProfile(
        weekday_profile=tuple(wd),
        weekend_profile=tuple(we),
        representation=representation,  # type: ignore[arg-type]
        data_points=sum(p.data_points for p in profiles),
        date_range_start=min(starts) if starts else None,
        date_range_end=max(ends) if ends else None,
        weekday_days=max(p.weekday_days for p in profiles),
        weekend_days=max(p.weekend_days for p in profiles),
        total_kwh=sum(p.total_kwh for p in profiles),
        peak_kw=float(max(wd.max(), we.max())) if representation == "raw_kw" else 0.0,
        weekend_fallback=any(p.weekend_fallback for p in profiles),
    )


def hour_labels() -> list[str]:
    return [f"{h:02d}:00" for h in range(canon.HOURS)]
