from __future__ import annotations
import logging
import warnings
from datetime import datetime
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from . import canon, exceptions, units, utils
from .classify import classify_columns
from .config import NormalizeConfig
from .types import (
    CanonicalMeterProfile,
    ColumnRoles,
    NormalizationResult,
    ParsedTable,
    Phase,
)

logger = logging.getLogger(__name__)

WEEKEND_FALLBACK_NOTE = "weekend hours copied from weekday profile (no dates in source)"


def _no_data(dropped: int, warn: Optional[List[str]] = None) -> NormalizationResult:
    return NormalizationResult(
        status="no_usable_data",
        profile=None,
        readings=utils.empty_readings(),
        dropped_rows=dropped,
        warnings=list(warn or []),
    )


def _apply_negative_policy(values: np.ndarray, policy: str) -> tuple[np.ndarray, np.ndarray]:
    """Return (values, keep_mask) after applying the negative-value policy."""
    if policy == "absolute":
        return np.abs(values), np.ones(values.shape, dtype=bool)
    if policy == "filter":
        return values, values >= 0
    return values, np.ones(values.shape, dtype=bool)


def hourly_means(kw: pd.Series) -> np.ndarray:
    """
    Mean kW per hour of day for a Series indexed by timestamp; hours with
    no samples are 0.
    """
    if kw.empty:
        return np.zeros(canon.HOURS)
    means = kw.groupby(kw.index.hour).mean()
    return means.reindex(range(canon.HOURS), fill_value=0.0).to_numpy(dtype=float)


def _flag_all_zero(profile_kw: np.ndarray, name: str, warn: List[str]) -> None:
    if profile_kw.size and not np.any(profile_kw):
        msg = f"All parsed values are zero{f' in {name}' if name else ''}."
        warnings.warn(msg, exceptions.EmptyResultWarning, stacklevel=3)
        warn.append("all_zero")


def _parse_rows(
    table: ParsedTable,
    roles: ColumnRoles,
    *,
    chunk_rows: int,
    should_stop: Optional[Callable[[], bool]],
) -> tuple[List[datetime], List[float], int]:
    stamps: List[datetime] = []
    raw: List[float] = []
    dropped = 0

    def cell(row, idx):
        return row[idx] if idx is not None and idx < len(row) else ""

    rows = table.rows
    for start in range(0, len(rows), max(chunk_rows, 1)):
        if should_stop is not None and should_stop():
            raise exceptions.ImportCancelled(
                f"Import cancelled after {start} of {len(rows)} rows."
            )
        for row in rows[start:start + chunk_rows]:
            if roles.timestamp_column is not None:
                ts = utils.parse_timestamp(cell(row, roles.timestamp_column), order=roles.date_order)
            else:
                ts = utils.parse_timestamp(
                    cell(row, roles.date_column),
                    cell(row, roles.time_column) or None,
                    order=roles.date_order,
                )
            value = utils.parse_loose_number(cell(row, roles.value_column))
            if ts is None or value is None:
                dropped += 1
                continue
            stamps.append(ts)
            raw.append(value)
    return stamps, raw, dropped


def _resolve_interval(roles: ColumnRoles, stamps: List[datetime], cfg: NormalizeConfig) -> int:
    if roles.interval_minutes:
        return int(roles.interval_minutes)
    estimated = units.estimate_interval_from_timestamps(stamps)
    if estimated is not None:
        return estimated
    labels = [ts.strftime("%H:%M") for ts in stamps]
    return units.detect_interval_minutes(labels, cfg.half_hour_label_threshold)


def normalize_table(
    table: ParsedTable,
    roles: ColumnRoles,
    *,
    source_file_name: str = "",
    config: Optional[NormalizeConfig] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> NormalizationResult:
    """
    Turn a timestamped table into a raw-kW weekday/weekend hourly profile.

    - Rows with an unparseable timestamp or value are dropped and counted.
    - Values are converted to kW using roles.unit (and interval, voltage,
      phase where the unit needs them). ConversionError propagates.
    - Each (day type, hour) bucket is the arithmetic mean of its kW samples;
      empty buckets are 0.
    - should_stop() is polled between row chunks; a True result raises
      ImportCancelled and nothing is returned.
    """
    cfg = config or NormalizeConfig()
    stamps, raw, dropped = _parse_rows(
        table, roles, chunk_rows=cfg.chunk_rows, should_stop=should_stop
    )
    if not stamps:
        logger.info("No usable rows in %s (%d dropped)", source_file_name or "table", dropped)
        return _no_data(dropped)

    values, keep = _apply_negative_policy(np.asarray(raw, dtype=float), cfg.negative_values)
    if not keep.all():
        dropped += int((~keep).sum())
        stamps = [ts for ts, k in zip(stamps, keep) if k]
        values = values[keep]
        if not stamps:
            return _no_data(dropped)

    interval = _resolve_interval(roles, stamps, cfg)
    factor = units.to_kw(
        1.0,
        roles.unit,
        interval_minutes=interval,
        power_factor=roles.power_factor or cfg.power_factor,
        voltage=roles.voltage,
        phase=roles.phase,
    )
    readings = utils.build_readings(stamps, values * factor, cadence_min=interval)

    # 'keep' leaves negatives in the readings; profile buckets are clipped
    kw = readings["kw"].clip(lower=0.0)
    weekend = readings.index.dayofweek >= 5
    weekday_profile = hourly_means(kw[~weekend])
    weekend_profile = hourly_means(kw[weekend])

    warn: List[str] = []
    if dropped:
        warn.append("dropped_rows")
    _flag_all_zero(kw.to_numpy(), source_file_name, warn)

    dates = pd.Series(readings.index.normalize())
    profile = CanonicalMeterProfile(
        weekday_profile=tuple(weekday_profile),
        weekend_profile=tuple(weekend_profile),
        representation="raw_kw",
        data_points=int(len(readings)),
        date_range_start=readings.index.min().to_pydatetime(),
        date_range_end=readings.index.max().to_pydatetime(),
        weekday_days=int(dates[~weekend].nunique()),
        weekend_days=int(dates[weekend].nunique()),
        total_kwh=float(readings["kwh"].sum()),
        peak_kw=float(kw.max()),
        source_file_name=source_file_name,
    )
    logger.debug(
        "Normalized %s: %d points, %d dropped, interval %d min",
        source_file_name or "table", profile.data_points, dropped, interval,
    )
    return NormalizationResult(
        status="ok",
        profile=profile,
        readings=readings,
        dropped_rows=dropped,
        warnings=warn,
    )


def normalize_pivot_column(
    table: ParsedTable,
    column: int,
    *,
    unit: str,
    interval_minutes: Optional[int] = None,
    source_file_name: str = "",
    power_factor: Optional[float] = None,
    voltage: Optional[float] = None,
    phase: Optional[Phase] = None,
    config: Optional[NormalizeConfig] = None,
) -> NormalizationResult:
    """
    Profile one value column of a time-slot pivot (first column HH:MM).

    Pivots carry no dates, so every sample lands in the weekday buckets and
    the weekend profile is copied from it (weekend_fallback=True).
    """
    cfg = config or NormalizeConfig()
    labels = table.column(0)
    interval = interval_minutes or units.detect_interval_minutes(
        labels, cfg.half_hour_label_threshold
    )

    hours: List[int] = []
    raw: List[float] = []
    dropped = 0
    for label, cell in zip(labels, table.column(column)):
        slot = utils.parse_time_slot(label)
        value = utils.parse_loose_number(cell)
        if slot is None or value is None:
            dropped += 1
            continue
        hours.append(slot.hour)
        raw.append(value)

    if not raw:
        return _no_data(dropped)

    values, keep = _apply_negative_policy(np.asarray(raw, dtype=float), cfg.negative_values)
    dropped += int((~keep).sum())
    hours_arr = np.asarray(hours)[keep]
    values = values[keep]
    if values.size == 0:
        return _no_data(dropped)

    factor = units.to_kw(
        1.0,
        unit,
        interval_minutes=interval,
        power_factor=power_factor or cfg.power_factor,
        voltage=voltage,
        phase=phase,
    )
    kw = pd.Series(np.clip(values * factor, 0.0, None), index=hours_arr)
    weekday_profile = (
        kw.groupby(level=0).mean().reindex(range(canon.HOURS), fill_value=0.0).to_numpy(dtype=float)
    )

    warn: List[str] = []
    if dropped:
        warn.append("dropped_rows")
    _flag_all_zero(kw.to_numpy(), source_file_name, warn)

    profile = CanonicalMeterProfile(
        weekday_profile=tuple(weekday_profile),
        weekend_profile=tuple(weekday_profile),
        representation="raw_kw",
        data_points=int(kw.size),
        total_kwh=float(kw.sum() * interval / 60.0),
        peak_kw=float(kw.max()),
        source_file_name=source_file_name,
        weekend_fallback=True,
    )
    return NormalizationResult(
        status="ok",
        profile=profile,
        readings=utils.empty_readings(),
        dropped_rows=dropped,
        warnings=warn,
        approximations=[WEEKEND_FALLBACK_NOTE],
    )


def normalize_pivot(
    table: ParsedTable,
    *,
    unit: str,
    interval_minutes: Optional[int] = None,
    source_file_name: str = "",
    power_factor: Optional[float] = None,
    voltage: Optional[float] = None,
    phase: Optional[Phase] = None,
    config: Optional[NormalizeConfig] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> Dict[int, NormalizationResult]:
    """
    One result per numeric column (the slot column excluded), keyed by column index.

    should_stop() is polled before each column; a True result raises
    ImportCancelled and no results are returned.
    """
    classification = classify_columns(table)
    out: Dict[int, NormalizationResult] = {}
    for col in classification.value_columns:
        if col.index == 0:
            continue
        if should_stop is not None and should_stop():
            raise exceptions.ImportCancelled(
                f"Import cancelled after {len(out)} of {len(classification.value_columns)} columns."
            )
        out[col.index] = normalize_pivot_column(
            table,
            col.index,
            unit=unit,
            interval_minutes=interval_minutes,
            source_file_name=source_file_name,
            power_factor=power_factor,
            voltage=voltage,
            phase=phase,
            config=config,
        )
    logger.info("Pivot %s: %d value columns", source_file_name or "table", len(out))
    return out
