from __future__ import annotations
import logging
import re
from typing import Any, List, Mapping, Optional

import numpy as np

from . import canon, exceptions, utils
from .config import ClassifyConfig, DateOrder
from .types import ColumnClassification, ColumnInfo, ColumnRoles, ParsedTable, Phase

logger = logging.getLogger(__name__)


def _header_says(header: str, keywords, exact) -> bool:
    h = header.lower().strip()
    return h in exact or any(k in h for k in keywords)


def _share(values: List[str], predicate) -> float:
    if not values:
        return 0.0
    return sum(1 for v in values if predicate(v)) / len(values)


def _classify_one(index: int, header: str, sample: List[str], cfg: ClassifyConfig) -> ColumnInfo:
    non_empty = [v for v in sample if v]
    info = ColumnInfo(index=index, header=header, role="ignore", sample_values=sample[: cfg.sample_values])

    values_date = bool(non_empty) and _share(non_empty, utils.looks_like_date) >= cfg.date_ratio
    values_time = bool(non_empty) and _share(
        non_empty, lambda v: utils.parse_time_slot(v) is not None
    ) >= cfg.date_ratio
    header_date = _header_says(header, canon.DATE_KEYWORDS, canon.EXACT_DATE_HEADERS)
    header_time = _header_says(header, canon.TIME_KEYWORDS, canon.EXACT_TIME_HEADERS)

    # Combined datetime cells under a 'Timestamp' header are a date column
    if values_date or (header_date and not values_time):
        info.role = "date"
        return info
    if values_time or header_time:
        info.role = "time"
        return info

    if header.lower().strip() in canon.NON_VALUE_HEADERS:
        info.reason = "status or reference column"
        return info

    numbers = [utils.parse_number(v) for v in sample]
    parsed = np.array([n for n in numbers if n is not None], dtype=float)
    info.numeric_count = int(parsed.size)
    if not sample or parsed.size / len(sample) < cfg.numeric_ratio:
        info.reason = "mostly non-numeric"
        return info

    info.role = "value"
    info.non_zero_count = int(np.count_nonzero(parsed))
    info.avg_value = float(parsed.mean()) if parsed.size else 0.0
    return info


def classify_columns(
    table: ParsedTable,
    *,
    sample_rows: Optional[int] = None,
    config: Optional[ClassifyConfig] = None,
) -> ColumnClassification:
    """
    Assign each column a role (date, time, value, ignore) from its header and
    the first sample_rows cells, and recommend the value column with the most
    non-zero readings (ties -> leftmost).

    Never raises; a table with no value columns yields recommended=None.
    """
    cfg = config or ClassifyConfig()
    n = sample_rows if sample_rows is not None else cfg.sample_rows
    rows = table.rows[:n]

    columns: List[ColumnInfo] = []
    for i, header in enumerate(table.headers):
        sample = [r[i] if i < len(r) else "" for r in rows]
        info = _classify_one(i, header, sample, cfg)
        if info.role == "ignore":
            logger.debug("Ignoring column %d (%r): %s", i, header, info.reason)
        columns.append(info)

    values = [c for c in columns if c.role == "value"]
    recommended = None
    if values:
        # max() keeps the first of equal keys, so ties go to the lowest index
        recommended = max(values, key=lambda c: c.non_zero_count).index
    return ColumnClassification(columns=columns, recommended=recommended)


def detect_unit_from_header(header: str) -> str:
    h = (header or "").lower()
    if "mwh" in h:
        return "MWh"
    if "mw" in h:
        return "MW"
    if "kvah" in h:
        return "kVAh"
    if "kva" in h:
        return "kVA"
    if "kwh" in h or "energy" in h or "consumption" in h:
        return "kWh"
    if "kw" in h:
        return "kW"
    if "wh" in h:
        return "Wh"
    if re.search(r"\bw\b", h) or "watt" in h:
        return "W"
    if "amp" in h or re.search(r"\ba\b", h) or "current" in h:
        return "A"
    return "kWh"


def resolve_roles(
    classification: ColumnClassification,
    override: Optional[Mapping[str, Any]] = None,
    *,
    unit: Optional[str] = None,
    interval_minutes: Optional[int] = None,
    voltage: Optional[float] = None,
    power_factor: Optional[float] = None,
    phase: Optional[Phase] = None,
    date_order: DateOrder = "auto",
) -> ColumnRoles:
    """
    Turn a classification into the column selection the normalizer uses.

    Any key present in `override` (value_column, timestamp_column,
    date_column, time_column, unit, ...) wins over the heuristics.
    """
    ov = dict(override or {})
    by_index = {c.index: c for c in classification.columns}

    value_column = ov.get("value_column", classification.recommended)
    exceptions.require(
        value_column is not None,
        "No numeric value column found.",
        exceptions.FormatError,
    )

    has_time_override = any(k in ov for k in ("timestamp_column", "date_column", "time_column"))
    timestamp_column = ov.get("timestamp_column")
    date_column = ov.get("date_column")
    time_column = ov.get("time_column")

    if not has_time_override:
        dates = classification.date_columns
        times = classification.time_columns
        if not dates:
            raise exceptions.ColumnAmbiguityError(
                "No date column detected; choose the timestamp column explicitly."
            )
        if times:
            date_column, time_column = dates[0].index, times[0].index
        else:
            timestamp_column = dates[0].index

    header = by_index[value_column].header if value_column in by_index else ""
    resolved_unit = unit or ov.get("unit") or detect_unit_from_header(header)

    return ColumnRoles(
        value_column=int(value_column),
        timestamp_column=timestamp_column,
        date_column=date_column,
        time_column=time_column,
        unit=resolved_unit,
        interval_minutes=ov.get("interval_minutes", interval_minutes),
        voltage=ov.get("voltage", voltage),
        power_factor=ov.get("power_factor", power_factor),
        phase=ov.get("phase", phase),
        date_order=ov.get("date_order", date_order),
    )
