from __future__ import annotations
import csv
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from . import canon, exceptions, utils
from .config import SniffConfig
from .types import ParsedTable

logger = logging.getLogger(__name__)

WHITESPACE = "whitespace"

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_DIRECTIVE_RE = re.compile(r"^\s*sep=(\\t|.?)\s*$", re.IGNORECASE)
_SAMPLE_SEPARATORS = ("\t", ";", ",", "|")
_SCADA_META_RE = re.compile(
    r'^,?"?([^",]+)"?,(\d{4}-\d{2}-\d{2}),(\d{4}-\d{2}-\d{2})'
)


@dataclass
class HeaderGuess:
    index: int  # position within the non-blank rows
    layout: str = "delimited"
    meter_name: Optional[str] = None
    date_range: Optional[tuple[str, str]] = None


# A header strategy inspects the leading non-blank rows and either claims the
# header position or passes (None).
HeaderStrategy = Callable[[List[List[str]]], Optional[HeaderGuess]]


def split_lines(text: str) -> List[str]:
    return _LINE_SPLIT_RE.split(text)


def detect_sample_separator(lines: Sequence[str], sample: int = 10) -> str:
    """
    Pick the separator found on the most of the first `sample` lines, so a
    metadata line above the header does not decide it. Ties go to the
    higher total count, then to tab, semicolon, comma, pipe.
    """
    head = list(lines[:sample])
    scores = {
        sep: (sum(sep in line for line in head), sum(line.count(sep) for line in head))
        for sep in _SAMPLE_SEPARATORS
    }
    best = max(_SAMPLE_SEPARATORS, key=lambda s: scores[s])
    if scores[best][0] == 0:
        return ","
    return best


def split_cells(line: str, separator: str) -> List[str]:
    if separator == WHITESPACE:
        return [utils.clean_cell(c) for c in line.split()]
    reader = csv.reader([line], delimiter=separator, skipinitialspace=True)
    cells = next(reader, [])
    return [utils.clean_cell(c) for c in cells]


def scada_metadata_header(rows: List[List[str]]) -> Optional[HeaderGuess]:
    """
    SCADA exports prefix the header with a meter line, e.g.
    ',"Shop 12",2024-01-01,2024-12-31' or 'pnpscada.com,12345'.
    """
    if len(rows) < 2:
        return None
    first = ",".join(rows[0])
    second = " ".join(rows[1]).lower()
    has_headers = "rdate" in second and "rtime" in second and "kwh" in second
    if not has_headers:
        return None
    m = _SCADA_META_RE.match(first)
    if m:
        return HeaderGuess(
            index=1,
            meter_name=m.group(1).strip(),
            date_range=(m.group(2), m.group(3)),
        )
    if "scada" in first.lower():
        cells = [c for c in rows[0] if c]
        name = cells[1] if len(cells) > 1 else (cells[0] if cells else None)
        return HeaderGuess(index=1, meter_name=name)
    return None


def pivot_time_slot_header(scan_rows: int = 10) -> HeaderStrategy:
    """
    Spreadsheet pivots list one HH:MM slot per row in the first column.
    The row above the first slot is the header; a 'Time'/'Period' first cell
    is the header itself.
    """

    def strategy(rows: List[List[str]]) -> Optional[HeaderGuess]:
        for i, row in enumerate(rows[:scan_rows]):
            first = row[0].strip() if row else ""
            if not first:
                continue
            if utils.HHMM_RE.match(first) and utils.parse_time_slot(first) is not None:
                if not _is_slot_row(row):
                    # a time next to a calendar date is a timestamped reading
                    continue
                return HeaderGuess(index=i - 1 if i > 0 else 0, layout="pivot")
            lower = first.lower()
            if any(k in lower for k in canon.PIVOT_TIME_HEADERS) or lower in canon.PIVOT_PERIOD_HEADERS:
                # 'Time' header over HH:MM slots is a pivot; over datetimes it is a plain table
                nxt = rows[i + 1] if i + 1 < len(rows) else []
                layout = "pivot" if _is_slot_row(nxt) else "delimited"
                return HeaderGuess(index=i, layout=layout)
        return None

    return strategy


def _is_slot_row(row: Sequence[str]) -> bool:
    if not row or utils.parse_time_slot(row[0]) is None:
        return False
    return not any(utils.looks_like_date(c) for c in row[1:])


def _looks_like_header(row: Sequence[str]) -> bool:
    cells = [c for c in row if c]
    return bool(cells) and not any(
        utils.parse_number(c) is not None or utils.looks_like_date(c) for c in cells
    )


def metadata_preamble_header(scan_rows: int = 10) -> HeaderStrategy:
    """
    Exports sometimes open with title lines ('Meter export Shop 12') that are
    narrower than the table. The header is the first row in the scan window
    as wide as the widest row that holds only labels.
    """

    def strategy(rows: List[List[str]]) -> Optional[HeaderGuess]:
        if not rows:
            return None
        widest = max(len(r) for r in rows)
        if len(rows[0]) >= widest:
            return None
        for i, row in enumerate(rows[:scan_rows]):
            if len(row) == widest and _looks_like_header(row):
                return HeaderGuess(index=i)
        return None

    return strategy


def first_row_header(rows: List[List[str]]) -> Optional[HeaderGuess]:
    return HeaderGuess(index=0) if rows else None


def default_strategies(config: SniffConfig) -> List[HeaderStrategy]:
    return [
        scada_metadata_header,
        pivot_time_slot_header(config.header_scan_rows),
        metadata_preamble_header(config.header_scan_rows),
        first_row_header,
    ]


def _directive(line: str) -> Optional[str]:
    m = _DIRECTIVE_RE.match(line)
    if not m:
        return None
    return m.group(1) or ","


def _assemble(
    numbered: List[tuple[int, str]],
    *,
    separator: Optional[str],
    directive_line: Optional[str],
    strategies: Sequence[HeaderStrategy],
    config: SniffConfig,
) -> ParsedTable:
    if len(numbered) < config.min_usable_lines:
        logger.debug("Fewer than %d usable lines; returning empty table", config.min_usable_lines)
        return ParsedTable.empty()

    sep = separator or detect_sample_separator([line for _, line in numbered])
    rows = [split_cells(line, sep) for _, line in numbered]

    guess: Optional[HeaderGuess] = None
    for strategy in strategies:
        guess = strategy(rows)
        if guess is not None:
            break
    if guess is None:
        return ParsedTable.empty()

    data = [tuple(r) for r in rows[guess.index + 1:] if any(c for c in r)]
    headers = tuple(rows[guess.index])
    if not data or not any(headers):
        return ParsedTable.empty()

    return ParsedTable(
        headers=headers,
        rows=tuple(data),
        separator=sep,
        header_index=numbered[guess.index][0],
        layout=guess.layout,  # type: ignore[arg-type]
        directive=directive_line,
        preamble=tuple(line for _, line in numbered[: guess.index]),
        meter_name=guess.meter_name,
        date_range=guess.date_range,
    )


def sniff_text(
    text: str,
    *,
    separator: Optional[str] = None,
    config: Optional[SniffConfig] = None,
    strategies: Optional[Sequence[HeaderStrategy]] = None,
) -> ParsedTable:
    """
    Recover a ParsedTable from raw delimited text.

    - Skips a leading 'sep=X' directive (and uses X as the separator).
    - Drops blank lines.
    - Picks the header using the strategy chain (SCADA metadata line,
      pivot time-slot scan, title-line preamble, first row).
    Never raises: unusable input yields ParsedTable.empty().
    """
    cfg = config or SniffConfig()
    lines = split_lines(text or "")

    directive_line = None
    numbered: List[tuple[int, str]] = []
    for i, line in enumerate(lines):
        if not line.strip():
            continue
        if not numbered and directive_line is None:
            declared = _directive(line)
            if declared is not None:
                directive_line = line.strip()
                if separator is None:
                    separator = "\t" if declared == "\\t" else declared
                continue
        numbered.append((i, line))

    return _assemble(
        numbered,
        separator=separator,
        directive_line=directive_line,
        strategies=strategies or default_strategies(cfg),
        config=cfg,
    )


def sniff_rows(
    rows: Sequence[Sequence[object]],
    *,
    config: Optional[SniffConfig] = None,
    strategies: Optional[Sequence[HeaderStrategy]] = None,
) -> ParsedTable:
    """
    Recover a ParsedTable from an already-split grid (e.g. a spreadsheet sheet).
    Cells are stringified and cleaned; blank rows are dropped.
    """
    cfg = config or SniffConfig()
    grid: List[tuple[int, List[str]]] = []
    directive_line = None
    for i, row in enumerate(rows):
        cells = [utils.clean_cell(c) for c in (row or [])]
        if not any(cells):
            continue
        if not grid and directive_line is None and _directive(cells[0]) is not None:
            directive_line = cells[0]
            continue
        grid.append((i, cells))

    if len(grid) < cfg.min_usable_lines:
        return ParsedTable.empty()

    cells_only = [c for _, c in grid]
    guess: Optional[HeaderGuess] = None
    for strategy in strategies or default_strategies(cfg):
        guess = strategy(cells_only)
        if guess is not None:
            break
    if guess is None:
        return ParsedTable.empty()

    headers = tuple(cells_only[guess.index])
    data = [tuple(r) for r in cells_only[guess.index + 1:]]
    if not data or not any(headers):
        return ParsedTable.empty()
    return ParsedTable(
        headers=headers,
        rows=tuple(data),
        separator="",
        header_index=grid[guess.index][0],
        layout=guess.layout,  # type: ignore[arg-type]
        directive=directive_line,
        preamble=tuple(",".join(r) for r in cells_only[: guess.index]),
        meter_name=guess.meter_name,
        date_range=guess.date_range,
    )


def require_table(table: ParsedTable, name: str = "") -> ParsedTable:
    exceptions.require(
        not table.is_empty,
        f"No usable header or data rows found{f' in {name}' if name else ''}.",
        exceptions.FormatError,
    )
    return table


# File kind detection
SCADA_PATTERNS = (
    "rdate", "rtime", "kwh+", "kwh-", "kvarh", "kva", "pf", "status",
    "active energy", "reactive energy", "power factor", "meter reading",
)
TENANT_PATTERNS = ("name", "tenant", "shop", "store", "unit", "area", "sqm", "size", "m2", "square")
SHOP_TYPE_PATTERNS = ("name", "type", "category", "kwh", "consumption", "h0", "h1", "h2", "h3")


@dataclass
class FileKind:
    kind: str  # scada-meter | tenant-list | shop-types | unknown
    confidence: str  # high | medium | low
    matched: List[str] = field(default_factory=list)


def detect_file_kind(headers: Sequence[str]) -> FileKind:
    """Guess what a header row describes so misrouted uploads can be flagged."""
    lower = [h.lower().strip() for h in headers]

    def hits(patterns: Sequence[str]) -> List[str]:
        return [p for p in patterns if any(p in h for h in lower)]

    scada = hits(SCADA_PATTERNS)
    has_dt = any("date" in h or "time" in h for h in lower)
    has_energy = any(k in h for h in lower for k in ("kwh", "kva", "kvarh", "energy"))
    if has_dt and has_energy and len(scada) >= 2:
        return FileKind("scada-meter", "high" if len(scada) >= 4 else "medium", scada)

    has_name = any(k in h for h in lower for k in ("name", "tenant", "shop", "store"))
    has_area = any(k in h for h in lower for k in ("area", "sqm", "m2", "size"))
    if has_name and has_area:
        tenant = hits(TENANT_PATTERNS)
        return FileKind("tenant-list", "high" if len(tenant) >= 3 else "medium", tenant)

    has_kwh = any("kwh" in h or "consumption" in h for h in lower)
    has_hourly = any(re.fullmatch(r"h\d+", h) or "hour" in h for h in lower)
    if has_name and (has_kwh or has_hourly):
        shop = hits(SHOP_TYPE_PATTERNS)
        return FileKind("shop-types", "high" if len(shop) >= 3 else "medium", shop)

    return FileKind("unknown", "low")
