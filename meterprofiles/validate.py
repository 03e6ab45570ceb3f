from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, cast

import numpy as np
import pandas as pd

from . import canon, exceptions
from .config import QualityConfig
from .types import CanonicalMeterProfile


def assert_readings(df: pd.DataFrame) -> None:
    if df.index.name != canon.READINGS_INDEX:
        raise exceptions.ProfileError(f"Index must be '{canon.READINGS_INDEX}'.")
    idx = cast(pd.DatetimeIndex, df.index)
    if not isinstance(idx, pd.DatetimeIndex):
        raise exceptions.ProfileError("Index must be a DatetimeIndex.")
    if idx.tz is not None:
        raise exceptions.ProfileError("Index must be naive local time.")
    for col in canon.READINGS_COLS:
        if col not in df.columns:
            raise exceptions.ProfileError(f"Missing required column '{col}'.")
    if not idx.is_monotonic_increasing:
        raise exceptions.ProfileError("Index must be sorted ascending.")


def assert_profile(profile: CanonicalMeterProfile) -> None:
    """
    Re-check invariants on a profile that may have been built elsewhere
    (e.g. loaded from storage with model_construct).
    """
    for name in ("weekday_profile", "weekend_profile"):
        arr = np.asarray(getattr(profile, name), dtype=float)
        if arr.shape != (canon.HOURS,):
            raise exceptions.ProfileError(f"{name} must have {canon.HOURS} entries.")
        if not np.isfinite(arr).all():
            raise exceptions.ProfileError(f"{name} contains non-finite values.")
        if (arr < 0).any():
            raise exceptions.ProfileError(f"{name} contains negative values.")
        if profile.representation == "percentage" and not 99.0 <= arr.sum() <= 101.0:
            raise exceptions.ProfileError(f"{name} must sum to ~100 for a percentage profile.")


@dataclass
class ProfileQuality:
    empty: bool = False
    flat_line: bool = False
    extreme_outliers: bool = False
    too_few_points: bool = False
    invalid: bool = False
    warnings: List[str] = field(default_factory=list)


def profile_quality(
    profile: CanonicalMeterProfile,
    config: Optional[QualityConfig] = None,
) -> ProfileQuality:
    """
    Heuristic sanity checks a human should see before saving:
    empty (all zeros), flat line, extreme outliers (likely W read as kW),
    too few data points. Empty or absurdly large profiles are marked invalid;
    a flat line only warns since some loads really are constant.
    """
    cfg = config or QualityConfig()
    values = np.concatenate(
        [np.asarray(profile.weekday_profile), np.asarray(profile.weekend_profile)]
    )
    q = ProfileQuality(too_few_points=profile.data_points < cfg.min_data_points)

    if not values.any():
        q.empty = True
        q.invalid = True
        q.warnings.append("Extracted profile is empty (all zeros).")
        return q

    non_zero = values[values != 0]
    q.flat_line = bool(np.all(np.abs(non_zero - non_zero[0]) < 1e-4))
    q.extreme_outliers = bool((values > cfg.outlier_kw).any())

    if q.flat_line:
        q.warnings.append("Profile is a flat line (all consumption values are identical). Check column mapping.")
    if q.extreme_outliers:
        q.warnings.append("Extremely high values detected. Check the unit (e.g. W vs kW).")
    if q.too_few_points:
        q.warnings.append(f"Only {profile.data_points} data points processed. Profile may not be representative.")

    q.invalid = bool((values > cfg.invalid_kw).any())
    return q
