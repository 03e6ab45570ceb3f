from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from . import canon

DateOrder = Literal["auto", "YMD", "DMY", "MDY"]
NegativePolicy = Literal["absolute", "filter", "keep"]


@dataclass
class SniffConfig:
    # Rows inspected when looking for a pivot time-slot column
    header_scan_rows: int = 10
    min_usable_lines: int = 2


@dataclass
class ClassifyConfig:
    sample_rows: int = 100
    numeric_ratio: float = 0.10  # share of sampled cells that must parse as numbers
    date_ratio: float = 0.80  # share of non-empty sampled cells that must look like dates
    sample_values: int = 5


@dataclass
class NormalizeConfig:
    date_order: DateOrder = "auto"
    negative_values: NegativePolicy = "absolute"
    half_hour_label_threshold: int = 40  # distinct HH:MM labels implying 30 min data
    chunk_rows: int = 5000
    power_factor: float = canon.DEFAULT_POWER_FACTOR


@dataclass
class MatchConfig:
    accept_score: float = 40.0
    containment_weight: float = 80.0
    overlap_weight: float = 60.0
    min_token_len: int = 3


@dataclass
class DuplicateConfig:
    tolerance: float = 0.01


@dataclass
class QualityConfig:
    min_data_points: int = 48  # two days of hourly data
    outlier_kw: float = 1_000_000.0
    invalid_kw: float = 10_000_000.0


@dataclass
class ImportConfig:
    sniff: SniffConfig = field(default_factory=SniffConfig)
    classify: ClassifyConfig = field(default_factory=ClassifyConfig)
    normalize: NormalizeConfig = field(default_factory=NormalizeConfig)
    match: MatchConfig = field(default_factory=MatchConfig)
    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)


def default_config() -> ImportConfig:
    return ImportConfig()
