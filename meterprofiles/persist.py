from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Sequence, TypedDict, Union

from .exceptions import PersistenceError
from .ingest import ImportBatch
from .types import CanonicalMeterProfile, ImportCandidate, MeterRecordSummary, SaveSummary

logger = logging.getLogger(__name__)


class ImportProvenance(TypedDict):
    source: str
    file_name: str
    column_header: Optional[str]
    total_kwh: float
    peak_kw: float
    data_points: int
    imported_at: str


class MeterIdentity(TypedDict):
    shop_name: str
    site_name: str
    file_name: str
    provenance: ImportProvenance


class MeterStore(Protocol):
    """Storage collaborator; the library never talks to a database itself."""

    def list_meters(self) -> List[MeterRecordSummary]: ...

    def update_meter(
        self, meter_id: str, profile: CanonicalMeterProfile, identity: MeterIdentity
    ) -> bool: ...

    def create_meter(
        self, profile: CanonicalMeterProfile, identity: MeterIdentity
    ) -> Optional[str]: ...


def identity_for(candidate: ImportCandidate, *, source: str = "meterprofiles") -> MeterIdentity:
    profile = candidate.result.profile
    return {
        "shop_name": candidate.label,
        "site_name": candidate.label,
        "file_name": candidate.source_file_name,
        "provenance": {
            "source": source,
            "file_name": candidate.source_file_name,
            "column_header": candidate.label if candidate.column_index is not None else None,
            "total_kwh": profile.total_kwh if profile else 0.0,
            "peak_kw": profile.peak_kw if profile else 0.0,
            "data_points": profile.data_points if profile else 0,
            "imported_at": datetime.now(timezone.utc).isoformat(),
        },
    }


def _save_one(candidate: ImportCandidate, store: MeterStore, summary: SaveSummary) -> None:
    profile = candidate.result.profile
    meter_id = candidate.match.meter_id
    if profile is None:
        summary.errors.append(
            PersistenceError("No profile to save.", label=candidate.label, meter_id=meter_id)
        )
        summary.skipped += 1
        return

    identity = identity_for(candidate)
    try:
        if meter_id is not None:
            ok = store.update_meter(meter_id, profile, identity)
            new_id = meter_id if ok else None
        else:
            new_id = store.create_meter(profile, identity)
    except Exception as e:
        # one failed record must not stop the rest of the batch
        logger.warning("Saving %r failed: %s", candidate.label, e)
        summary.errors.append(PersistenceError(str(e), label=candidate.label, meter_id=meter_id))
        summary.skipped += 1
        return

    if not new_id:
        action = "update" if meter_id is not None else "create"
        logger.warning("Store refused to %s %r", action, candidate.label)
        summary.errors.append(
            PersistenceError(f"Store refused to {action} meter.", label=candidate.label, meter_id=meter_id)
        )
        summary.skipped += 1
    elif meter_id is not None:
        summary.updated += 1
    else:
        summary.created += 1


def save_batch(
    batch: Union[ImportBatch, Sequence[ImportCandidate]],
    store: MeterStore,
    *,
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> SaveSummary:
    """
    Upsert every selected candidate independently.

    Matched candidates update their meter, unmatched ones create a record.
    A failure (exception or falsy return from the store) is collected as a
    PersistenceError and counted as skipped; other candidates still save.
    Accepts an ImportBatch or a plain list of candidates.
    """
    items = batch.candidates if isinstance(batch, ImportBatch) else list(batch)
    todo = [c for c in items if c.selected]
    summary = SaveSummary()
    for i, cand in enumerate(todo):
        if on_progress is not None:
            on_progress(i, len(todo))
        _save_one(cand, store, summary)
    if on_progress is not None:
        on_progress(len(todo), len(todo))

    logger.info(
        "Save complete: %d updated, %d created, %d skipped",
        summary.updated, summary.created, summary.skipped,
    )
    return summary
