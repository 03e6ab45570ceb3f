from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Set, Union

from . import exceptions
from .classify import classify_columns, resolve_roles
from .config import DateOrder, ImportConfig, default_config
from .duplicates import flag_duplicates
from .matching import MatchSession
from .normalize import normalize_pivot, normalize_table
from .sniff import require_table, sniff_rows, sniff_text
from .types import (
    ImportCandidate,
    MatchResult,
    MeterRecordSummary,
    NormalizationResult,
    ParsedTable,
    Phase,
)
from .validate import profile_quality

logger = logging.getLogger(__name__)

Source = Union[str, Sequence[Sequence[Any]]]


@dataclass
class ImportBatch:
    candidates: List[ImportCandidate] = field(default_factory=list)
    session: MatchSession = field(default_factory=MatchSession)

    @property
    def claimed(self) -> Set[str]:
        return self.session.claimed

    @property
    def selected(self) -> List[ImportCandidate]:
        return [c for c in self.candidates if c.selected]


def _sniff(source: Source, name: str, cfg: ImportConfig, separator: Optional[str]) -> ParsedTable:
    if isinstance(source, str):
        table = sniff_text(source, separator=separator, config=cfg.sniff)
    else:
        table = sniff_rows(source, config=cfg.sniff)
    return require_table(table, name)


def _add_quality_codes(result: NormalizationResult, cfg: ImportConfig) -> None:
    if not result.usable:
        return
    q = profile_quality(result.profile, cfg.quality)  # type: ignore[arg-type]
    for flag, code in (
        (q.flat_line, "flat_line"),
        (q.extreme_outliers, "extreme_outliers"),
        (q.too_few_points, "too_few_points"),
    ):
        if flag and code not in result.warnings:
            result.warnings.append(code)


def import_file(
    name: str,
    source: Source,
    *,
    existing: Sequence[MeterRecordSummary] = (),
    session: Optional[MatchSession] = None,
    roles_override: Optional[Mapping[str, Any]] = None,
    unit: Optional[str] = None,
    interval_minutes: Optional[int] = None,
    voltage: Optional[float] = None,
    power_factor: Optional[float] = None,
    phase: Optional[Phase] = None,
    date_order: DateOrder = "auto",
    separator: Optional[str] = None,
    config: Optional[ImportConfig] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> ImportCandidate:
    """
    One timestamped meter file -> one candidate.

    sniff -> classify -> resolve roles -> normalize -> match the file name
    (or the SCADA meter name when the file carries one) against `existing`.

    Raises FormatError (no header/value column), ColumnAmbiguityError (no
    date column and no override), ConversionError (unit parameters missing)
    and ImportCancelled. Nothing is persisted here.
    """
    cfg = config or default_config()
    table = _sniff(source, name, cfg, separator)
    exceptions.require(
        table.layout != "pivot",
        f"{name} is a time-slot pivot; import it with import_pivot().",
        exceptions.FormatError,
    )

    classification = classify_columns(table, config=cfg.classify)
    roles = resolve_roles(
        classification,
        roles_override,
        unit=unit,
        interval_minutes=interval_minutes,
        voltage=voltage,
        power_factor=power_factor,
        phase=phase,
        date_order=date_order,
    )
    result = normalize_table(
        table,
        roles,
        source_file_name=name,
        config=cfg.normalize,
        should_stop=should_stop,
    )
    _add_quality_codes(result, cfg)

    label = table.meter_name or name
    match = MatchResult.new()
    if result.usable:
        session = session if session is not None else MatchSession(config=cfg.match)
        match = session.match(label, existing)

    logger.info(
        "Imported %s: status=%s match=%s dropped=%d",
        name, result.status, match.match_type, result.dropped_rows,
    )
    return ImportCandidate(
        label=label,
        source_file_name=name,
        result=result,
        match=match,
        column_index=roles.value_column,
        selected=result.usable,
    )


def import_pivot(
    name: str,
    source: Source,
    *,
    existing: Sequence[MeterRecordSummary] = (),
    session: Optional[MatchSession] = None,
    unit: str = "kW",
    interval_minutes: Optional[int] = None,
    voltage: Optional[float] = None,
    power_factor: Optional[float] = None,
    phase: Optional[Phase] = None,
    separator: Optional[str] = None,
    config: Optional[ImportConfig] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> List[ImportCandidate]:
    """
    A time-slot pivot -> one candidate per value column.

    Duplicate columns are flagged before matching so they never claim a
    meter; the remaining usable columns are matched on their headers.
    should_stop() is polled between columns and between matched labels.
    """
    cfg = config or default_config()
    table = _sniff(source, name, cfg, separator)

    results = normalize_pivot(
        table,
        unit=unit,
        interval_minutes=interval_minutes,
        source_file_name=name,
        power_factor=power_factor,
        voltage=voltage,
        phase=phase,
        config=cfg.normalize,
        should_stop=should_stop,
    )
    candidates: List[ImportCandidate] = []
    for index, result in results.items():
        _add_quality_codes(result, cfg)
        label = table.headers[index] or f"Column {index + 1}"
        candidates.append(
            ImportCandidate(
                label=label,
                source_file_name=name,
                result=result,
                column_index=index,
                selected=result.usable,
            )
        )

    flag_duplicates(candidates, config=cfg.duplicates)

    session = session if session is not None else MatchSession(config=cfg.match)
    to_match = [c for c in candidates if c.result.usable and not c.is_duplicate]
    matches = session.match_many(
        [c.label for c in to_match], existing, variant="header", should_stop=should_stop
    )
    for cand, match in zip(to_match, matches):
        cand.match = match

    logger.info(
        "Imported pivot %s: %d columns, %d duplicates",
        name, len(candidates), sum(c.is_duplicate for c in candidates),
    )
    return candidates


def build_batch(
    candidates: Sequence[ImportCandidate],
    *,
    session: Optional[MatchSession] = None,
    config: Optional[ImportConfig] = None,
) -> ImportBatch:
    """
    Collect candidates into a batch: flag duplicates across all of them and
    drop their matches, give each remaining meter to its first claimant, then
    apply the default selection (usable and not a duplicate).
    """
    cfg = config or default_config()
    batch = ImportBatch(candidates=list(candidates), session=session or MatchSession(config=cfg.match))
    flag_duplicates(batch.candidates, config=cfg.duplicates)
    for c in batch.candidates:
        if c.is_duplicate:
            batch.session.release(c.match.meter_id)
            c.match = MatchResult(None, "duplicate", 0.0, batch.candidates[c.duplicate_of].label)  # type: ignore[index]

    seen: Set[str] = set()
    for c in batch.candidates:
        meter_id = c.match.meter_id
        if meter_id is None:
            continue
        if meter_id in seen:
            # matched in separate sessions; the first candidate keeps the meter
            logger.warning("%r and an earlier file both matched meter %s", c.label, meter_id)
            c.match = MatchResult.new()
            continue
        seen.add(meter_id)
        batch.claimed.add(meter_id)

    for c in batch.candidates:
        c.selected = c.result.usable and not c.is_duplicate
    return batch


def assign_manual(batch: ImportBatch, index: int, meter_id: str) -> ImportCandidate:
    """
    Point a candidate at a chosen meter. A different candidate holding that
    meter falls back to 'new' so each meter is claimed once.
    """
    cand = batch.candidates[index]
    if cand.match.meter_id == meter_id:
        cand.match = MatchResult(meter_id, "manual", 100.0, cand.match.matched_name)
        return cand

    for i, other in enumerate(batch.candidates):
        if i != index and other.match.meter_id == meter_id:
            batch.session.release(meter_id)
            other.match = MatchResult.new()
    batch.session.release(cand.match.meter_id)
    cand.match = batch.session.manual(meter_id)
    cand.selected = cand.result.usable
    return cand


def mark_new(batch: ImportBatch, index: int) -> ImportCandidate:
    """Save this candidate as a new meter record instead of an update."""
    cand = batch.candidates[index]
    batch.session.release(cand.match.meter_id)
    cand.match = MatchResult.new()
    cand.selected = cand.result.usable
    return cand
