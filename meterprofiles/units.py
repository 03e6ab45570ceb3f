from __future__ import annotations
import logging
import math
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from . import canon, exceptions, utils
from .types import Phase

logger = logging.getLogger(__name__)

# Multipliers to kW (power) or kWh (energy)
_POWER_SCALE = {"w": 0.001, "kw": 1.0, "mw": 1000.0}
_ENERGY_SCALE = {"wh": 0.001, "kwh": 1.0, "mwh": 1000.0}


def _unit_key(unit: str) -> str:
    return (unit or "").strip().lower()


def is_energy_unit(unit: str) -> bool:
    return _unit_key(unit) in {"wh", "kwh", "mwh", "kvah"}


def amps_to_kw(
    amps: float,
    voltage: Optional[float],
    power_factor: float = canon.DEFAULT_POWER_FACTOR,
    phase: Optional[Phase] = None,
) -> float:
    """
    Current to real power.

    single: V * I * pf / 1000
    three:  sqrt(3) * V_line * I * pf / 1000
    """
    exceptions.require(
        phase in ("single", "three"),
        "Converting amps needs an explicit phase ('single' or 'three').",
        exceptions.ConversionError,
    )
    exceptions.require(
        voltage is not None and voltage > 0,
        "Converting amps needs a supply voltage.",
        exceptions.ConversionError,
    )
    factor = math.sqrt(3) if phase == "three" else 1.0
    return factor * float(voltage) * float(amps) * float(power_factor) / 1000.0


def to_kw(
    value: float,
    unit: str,
    *,
    interval_minutes: Optional[int] = None,
    power_factor: float = canon.DEFAULT_POWER_FACTOR,
    voltage: Optional[float] = None,
    phase: Optional[Phase] = None,
) -> float:
    """
    Convert one reading to average kW over its interval.

    Energy units (Wh/kWh/MWh/kVAh) need interval_minutes; apparent units
    (kVA/kVAh) are scaled by the power factor.
    """
    key = _unit_key(unit)
    if key in _POWER_SCALE:
        return float(value) * _POWER_SCALE[key]
    if key == "kva":
        return float(value) * power_factor
    if key in ("a", "amps", "amp"):
        return amps_to_kw(value, voltage, power_factor, phase)

    if key in _ENERGY_SCALE or key == "kvah":
        exceptions.require(
            interval_minutes is not None and interval_minutes > 0,
            f"Converting {unit} to kW needs the reading interval.",
            exceptions.ConversionError,
        )
        kwh = float(value) * (power_factor if key == "kvah" else _ENERGY_SCALE[key])
        return kwh * 60.0 / float(interval_minutes)

    raise exceptions.ConversionError(f"Unknown unit: {unit!r}")


def to_kwh(
    value: float,
    unit: str,
    *,
    interval_minutes: Optional[int] = None,
    power_factor: float = canon.DEFAULT_POWER_FACTOR,
    voltage: Optional[float] = None,
    phase: Optional[Phase] = None,
) -> float:
    """Energy in kWh for one reading; power units need interval_minutes."""
    key = _unit_key(unit)
    if key in _ENERGY_SCALE:
        return float(value) * _ENERGY_SCALE[key]
    if key == "kvah":
        return float(value) * power_factor

    exceptions.require(
        interval_minutes is not None and interval_minutes > 0,
        f"Converting {unit} to kWh needs the reading interval.",
        exceptions.ConversionError,
    )
    kw = to_kw(
        value,
        unit,
        interval_minutes=interval_minutes,
        power_factor=power_factor,
        voltage=voltage,
        phase=phase,
    )
    return kw * float(interval_minutes) / 60.0


def detect_interval_minutes(time_labels: Iterable[object], threshold: int = 40) -> int:
    """
    Pivot grids carry no dates, so the slot count is all we have:
    48 half-hour labels versus 24 hourly ones.
    """
    n = utils.distinct_labels(time_labels)
    return 30 if n >= threshold else 60


def estimate_interval_from_timestamps(timestamps: Iterable[object]) -> Optional[int]:
    """
    Most common gap between consecutive timestamps, snapped to the nearest
    standard interval (1, 5, 10, 15, 30, 60, 120, 180, 240 minutes).
    None when fewer than two distinct timestamps exist.
    """
    idx = pd.DatetimeIndex(pd.to_datetime(list(timestamps), errors="coerce")).dropna()
    idx = idx.unique().sort_values()
    if len(idx) < 2:
        return None
    deltas = (pd.Series(idx).diff().dt.total_seconds().dropna() / 60.0).round().astype(int).to_numpy()
    deltas = deltas[deltas > 0]
    if deltas.size == 0:
        return None
    mode = int(pd.Series(deltas).mode().iloc[0])
    standard = np.asarray(canon.STANDARD_INTERVALS_MIN)
    snapped = int(standard[np.abs(standard - mode).argmin()])
    logger.debug("Interval estimate: mode gap %d min -> %d min", mode, snapped)
    return snapped
