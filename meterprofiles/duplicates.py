from __future__ import annotations
import logging
from typing import Dict, Optional, Sequence

import numpy as np

from .config import DuplicateConfig
from .types import CanonicalMeterProfile, ImportCandidate

logger = logging.getLogger(__name__)


def detect_duplicates(
    profiles: Sequence[Optional[CanonicalMeterProfile]],
    *,
    tolerance: float = DuplicateConfig.tolerance,
) -> Dict[int, int]:
    """
    Map duplicate index -> original index.

    Pairs (i, j), i < j, are compared on their weekday arrays; j is a
    duplicate of i when every element differs by at most `tolerance`.
    An index already marked is never used again, so the first occurrence
    is always the original. Missing profiles are skipped.
    """
    arrays = [
        np.asarray(p.weekday_profile, dtype=float) if p is not None else None
        for p in profiles
    ]
    dupes: Dict[int, int] = {}
    for i, a in enumerate(arrays):
        if a is None or i in dupes:
            continue
        for j in range(i + 1, len(arrays)):
            b = arrays[j]
            if b is None or j in dupes or a.shape != b.shape:
                continue
            if np.all(np.abs(a - b) <= tolerance):
                dupes[j] = i
    return dupes


def flag_duplicates(
    candidates: Sequence[ImportCandidate],
    *,
    config: Optional[DuplicateConfig] = None,
) -> Dict[int, int]:
    """
    Mark duplicate candidates in place: match_type 'duplicate', back-reference
    to the original, deselected. Returns the duplicate map.
    """
    cfg = config or DuplicateConfig()
    dupes = detect_duplicates([c.result.profile for c in candidates], tolerance=cfg.tolerance)
    for j, i in dupes.items():
        cand = candidates[j]
        cand.duplicate_of = i
        cand.match.match_type = "duplicate"
        cand.selected = False
        logger.info("%r duplicates %r", cand.label, candidates[i].label)
    return dupes
