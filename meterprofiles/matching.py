from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Collection, Dict, List, Literal, Optional, Sequence, Set, Tuple

from . import canon, exceptions
from .config import MatchConfig
from .types import MatchResult, MatchType, MeterRecordSummary

logger = logging.getLogger(__name__)

Variant = Literal["name", "header"]
# (normalized_a, normalized_b) -> (score, match_type) or None when the rule does not apply
MatchStrategy = Callable[[str, str], Optional[Tuple[float, MatchType]]]

_EXT_RE = re.compile(r"\.(?:" + "|".join(canon.FILE_EXTENSIONS) + r")$")
_SEPARATORS_RE = re.compile(r"[_\-.]")
_SPACES_RE = re.compile(r"\s+")
_VERSION_RE = re.compile(r"^v\d+$")
_YEAR_RE = re.compile(r"^(?:19|20)\d{2}$")
_COMPACT_DATE_RE = re.compile(r"^\d{6}(?:\d{2})?$")
# trailing numeric date after separators became spaces: "2024 01 15", "15 01 2024"
_TRAILING_DATE_RE = re.compile(r"\s+(?:\d{4}\s\d{1,2}\s\d{1,2}|\d{1,2}\s\d{1,2}\s\d{2,4})$")
_TRAILING_DIGITS_RE = re.compile(r"\s*\(?\d+\)?$")


def _is_noise(token: str) -> bool:
    return (
        token in canon.NOISE_TOKENS
        or token in canon.MONTH_ABBR
        or token in canon.MONTH_FULL
        or bool(_VERSION_RE.match(token))
        or bool(_YEAR_RE.match(token))
        or bool(_COMPACT_DATE_RE.match(token))
    )


def normalize_name(s: str) -> str:
    """
    Canonical form of a meter name or filename for comparison.

    'Woolworths_Jan.csv' -> 'woolworths'
    'Shop-12 export v2.xlsx' -> 'shop 12'

    Trailing export noise (data/export/meter/..., month names, years,
    versions, dates) is dropped while at least one token remains, so the
    function is idempotent.
    """
    out = (s or "").lower().strip()
    out = _EXT_RE.sub("", out)
    out = _SEPARATORS_RE.sub(" ", out)
    out = _SPACES_RE.sub(" ", out).strip()

    while True:
        before = out
        stripped = _TRAILING_DATE_RE.sub("", out).strip()
        if stripped:
            out = stripped
        tokens = out.split(" ")
        while len(tokens) > 1 and _is_noise(tokens[-1]):
            tokens.pop()
        out = " ".join(tokens)
        if out == before:
            return out


def normalize_header(s: str) -> str:
    """normalize_name plus a trailing counter ('Shop A 2', 'Shop A (2)') removed."""
    base = normalize_name(s)
    stripped = _TRAILING_DIGITS_RE.sub("", base).strip()
    return stripped or base


def exact_strategy(a: str, b: str) -> Optional[Tuple[float, MatchType]]:
    return (100.0, "exact") if a == b else None


def containment_strategy(weight: float = 80.0) -> MatchStrategy:
    def strategy(a: str, b: str) -> Optional[Tuple[float, MatchType]]:
        if a in b or b in a:
            return (min(len(a), len(b)) / max(len(a), len(b)) * weight, "fuzzy")
        return None

    return strategy


def word_overlap_strategy(weight: float = 60.0, min_token_len: int = 3) -> MatchStrategy:
    def strategy(a: str, b: str) -> Optional[Tuple[float, MatchType]]:
        ta = {t for t in a.split(" ") if len(t) >= min_token_len}
        tb = {t for t in b.split(" ") if len(t) >= min_token_len}
        if not ta or not tb:
            return None
        shared = ta & tb
        if not shared:
            return None
        return (len(shared) / max(len(ta), len(tb)) * weight, "fuzzy")

    return strategy


def default_strategies(config: Optional[MatchConfig] = None) -> List[MatchStrategy]:
    cfg = config or MatchConfig()
    return [
        exact_strategy,
        containment_strategy(cfg.containment_weight),
        word_overlap_strategy(cfg.overlap_weight, cfg.min_token_len),
    ]


def match_label(
    label: str,
    candidates: Sequence[MeterRecordSummary],
    *,
    exclude: Collection[str] = (),
    variant: Variant = "name",
    config: Optional[MatchConfig] = None,
    strategies: Optional[Sequence[MatchStrategy]] = None,
) -> MatchResult:
    """
    Best existing meter for a file name or column header.

    Each candidate's alternate names (shop name, meter label, shop number,
    site name) are scored with every strategy; an exact hit returns at once,
    otherwise the highest score wins if it reaches the acceptance threshold.
    Ids in `exclude` are never returned. No acceptable match -> match_type 'new'.
    """
    cfg = config or MatchConfig()
    norm = normalize_header if variant == "header" else normalize_name
    rules = list(strategies) if strategies is not None else default_strategies(cfg)

    a = norm(label)
    if not a:
        return MatchResult.new()

    best: Optional[MatchResult] = None
    for meter in candidates:
        if meter.id in exclude:
            continue
        for name in meter.names():
            b = norm(name)
            if not b:
                continue
            for rule in rules:
                hit = rule(a, b)
                if hit is None:
                    continue
                score, kind = hit
                if kind == "exact":
                    return MatchResult(meter.id, "exact", 100.0, name)
                if best is None or score > best.confidence:
                    best = MatchResult(meter.id, kind, round(score, 1), name)

    if best is not None and best.confidence >= cfg.accept_score:
        return best
    return MatchResult.new()


@dataclass
class MatchSession:
    """
    Matching state for one import batch: a meter id, once claimed, is not
    offered to later labels until released.
    """

    claimed: Set[str] = field(default_factory=set)
    variant: Variant = "name"
    config: MatchConfig = field(default_factory=MatchConfig)

    def match(
        self,
        label: str,
        candidates: Sequence[MeterRecordSummary],
        *,
        variant: Optional[Variant] = None,
    ) -> MatchResult:
        result = match_label(
            label,
            candidates,
            exclude=self.claimed,
            variant=variant or self.variant,
            config=self.config,
        )
        if result.meter_id is not None:
            self.claimed.add(result.meter_id)
            logger.debug("Matched %r -> %s (%s, %.1f)", label, result.meter_id, result.match_type, result.confidence)
        return result

    def claim(self, meter_id: str) -> None:
        exceptions.require(
            meter_id not in self.claimed,
            f"Meter {meter_id} is already assigned in this batch.",
        )
        self.claimed.add(meter_id)

    def release(self, meter_id: Optional[str]) -> None:
        if meter_id is not None:
            self.claimed.discard(meter_id)

    def manual(self, meter_id: str, matched_name: Optional[str] = None) -> MatchResult:
        self.claim(meter_id)
        return MatchResult(meter_id, "manual", 100.0, matched_name)

    def match_many(
        self,
        labels: Sequence[str],
        candidates: Sequence[MeterRecordSummary],
        *,
        variant: Optional[Variant] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[MatchResult]:
        """
        Match several labels, longest first so specific names ('Shop 12A')
        claim their meter before generic ones ('Shop'). Results follow the
        input order.

        should_stop() is polled before each label; a True result releases the
        meters claimed by this call and raises ImportCancelled.
        """
        order = sorted(range(len(labels)), key=lambda i: -len(labels[i]))
        results: Dict[int, MatchResult] = {}
        for done, i in enumerate(order):
            if should_stop is not None and should_stop():
                for r in results.values():
                    self.release(r.meter_id)
                raise exceptions.ImportCancelled(
                    f"Matching cancelled after {done} of {len(labels)} labels."
                )
            results[i] = self.match(labels[i], candidates, variant=variant)
        return [results[i] for i in range(len(labels))]
