from __future__ import annotations
from typing import TypedDict, Literal, List, Dict, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from . import canon
from .config import DateOrder
from .exceptions import PersistenceError

ColumnRole = Literal["date", "time", "value", "ignore"]
Representation = Literal["raw_kw", "percentage"]
MatchType = Literal["exact", "fuzzy", "manual", "new", "duplicate"]
Layout = Literal["delimited", "pivot"]
Phase = Literal["single", "three"]
AggregationMode = Literal["hourly", "weekly", "monthly"]
DayTypeFilter = Literal["all", "weekday", "weekend"]


# Sniffer output
@dataclass(frozen=True)
class ParsedTable:
    """
    A header row plus string data rows recovered from a raw file.

    header_index is the line number of the header in the source (after line
    splitting), so callers can point users at it.
    """

    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    separator: str = ","
    header_index: int = -1
    layout: Layout = "delimited"
    directive: Optional[str] = None
    preamble: Tuple[str, ...] = ()
    meter_name: Optional[str] = None
    date_range: Optional[Tuple[str, str]] = None

    @classmethod
    def empty(cls) -> "ParsedTable":
        return cls(headers=(), rows=())

    @property
    def is_empty(self) -> bool:
        return not self.headers

    def column(self, index: int) -> List[str]:
        return [r[index] if index < len(r) else "" for r in self.rows]


# Classifier output
@dataclass
class ColumnInfo:
    index: int
    header: str
    role: ColumnRole
    sample_values: List[str] = field(default_factory=list)
    numeric_count: int = 0
    non_zero_count: int = 0
    avg_value: float = 0.0
    reason: str = ""


@dataclass
class ColumnClassification:
    columns: List[ColumnInfo]
    recommended: Optional[int] = None

    @property
    def value_columns(self) -> List[ColumnInfo]:
        return [c for c in self.columns if c.role == "value"]

    @property
    def date_columns(self) -> List[ColumnInfo]:
        return [c for c in self.columns if c.role == "date"]

    @property
    def time_columns(self) -> List[ColumnInfo]:
        return [c for c in self.columns if c.role == "time"]

    @property
    def ignored(self) -> List[ColumnInfo]:
        return [c for c in self.columns if c.role == "ignore"]


@dataclass
class ColumnRoles:
    """Resolved column selection handed to the normalizer."""

    value_column: int
    timestamp_column: Optional[int] = None
    date_column: Optional[int] = None
    time_column: Optional[int] = None
    unit: str = "kWh"
    interval_minutes: Optional[int] = None
    voltage: Optional[float] = None
    power_factor: Optional[float] = None
    phase: Optional[Phase] = None
    date_order: DateOrder = "auto"


# Profiles
class CanonicalMeterProfile(BaseModel):
    """
    Average-kW (or percentage) shape per hour of day for weekdays and weekends.

    The representation is set by whoever builds the profile and is never
    guessed from the numbers.
    """

    model_config = ConfigDict(frozen=True)

    weekday_profile: Tuple[float, ...]
    weekend_profile: Tuple[float, ...]
    representation: Representation
    data_points: int = 0
    date_range_start: Optional[datetime] = None
    date_range_end: Optional[datetime] = None
    weekday_days: int = 0
    weekend_days: int = 0
    total_kwh: float = 0.0
    peak_kw: float = 0.0
    source_file_name: str = ""
    weekend_fallback: bool = False

    @field_validator("weekday_profile", "weekend_profile")
    @classmethod
    def _check_hours(cls, v: Tuple[float, ...]) -> Tuple[float, ...]:
        if len(v) != canon.HOURS:
            raise ValueError(f"profile must have {canon.HOURS} entries, got {len(v)}")
        if any(x < 0 for x in v):
            raise ValueError("profile values must be non-negative")
        return tuple(float(x) for x in v)

    @model_validator(mode="after")
    def _check_percentage(self) -> "CanonicalMeterProfile":
        if self.representation == "percentage":
            for name in ("weekday_profile", "weekend_profile"):
                total = sum(getattr(self, name))
                if not 99.0 <= total <= 101.0:
                    raise ValueError(
                        f"percentage {name} must sum to ~100, got {total:.2f}"
                    )
        return self


@dataclass
class NormalizationResult:
    status: Literal["ok", "no_usable_data"]
    profile: Optional[CanonicalMeterProfile]
    readings: pd.DataFrame
    dropped_rows: int = 0
    warnings: List[str] = field(default_factory=list)
    approximations: List[str] = field(default_factory=list)

    @property
    def usable(self) -> bool:
        return self.status == "ok" and self.profile is not None


# Matching
@dataclass
class MeterRecordSummary:
    id: str
    shop_name: Optional[str] = None
    shop_number: Optional[str] = None
    meter_label: Optional[str] = None
    site_name: Optional[str] = None
    floor_area: Optional[float] = None
    file_name: Optional[str] = None
    category: Optional[str] = None

    def names(self) -> List[str]:
        """Alternate identity fields, in matching priority order."""
        fields = (self.shop_name, self.meter_label, self.shop_number, self.site_name)
        return [f for f in fields if f]


@dataclass
class MatchResult:
    meter_id: Optional[str]
    match_type: MatchType
    confidence: float = 0.0
    matched_name: Optional[str] = None

    @classmethod
    def new(cls) -> "MatchResult":
        return cls(meter_id=None, match_type="new", confidence=0.0)


# Batch / save step
@dataclass
class ImportCandidate:
    label: str
    source_file_name: str
    result: NormalizationResult
    match: MatchResult = field(default_factory=MatchResult.new)
    column_index: Optional[int] = None
    duplicate_of: Optional[int] = None
    selected: bool = False

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_of is not None


@dataclass
class SaveSummary:
    updated: int = 0
    created: int = 0
    skipped: int = 0
    errors: List[PersistenceError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# Comparison
class ComparisonPoint(TypedDict):
    label: str
    values: Dict[str, float]


@dataclass
class ComparisonSeries:
    mode: AggregationMode
    points: List[ComparisonPoint]

    @property
    def labels(self) -> List[str]:
        return [p["label"] for p in self.points]

    def values_for(self, meter_id: str) -> List[float]:
        return [p["values"].get(meter_id, 0.0) for p in self.points]

    def to_frame(self) -> pd.DataFrame:
        rows = [{"label": p["label"], **p["values"]} for p in self.points]
        return pd.DataFrame(rows).set_index("label") if rows else pd.DataFrame()


@dataclass
class MeterStats:
    meter_id: str
    meter_name: str
    site_name: str
    avg_value: float
    peak_value: float
    total_kwh: float
    vs_group_pct: float
    vs_baseline_pct: Optional[float]
    energy_intensity: Optional[float]


@dataclass
class ComparisonResult:
    series: ComparisonSeries
    stats: List[MeterStats]
    baseline_series: Optional[ComparisonSeries] = None
