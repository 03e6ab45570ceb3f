from __future__ import annotations
from typing import Final, Dict, Tuple

HOURS: Final[int] = 24
DAY_TYPES: Final[Tuple[str, str]] = ("weekday", "weekend")
READINGS_INDEX: Final[str] = "t_start"
READINGS_COLS: Final[list[str]] = ["kw", "kwh", "cadence_min"]
DEFAULT_INTERVAL_MIN: Final[int] = 60
STANDARD_INTERVALS_MIN: Final[Tuple[int, ...]] = (1, 5, 10, 15, 30, 60, 120, 180, 240)

WEEKDAY_LABELS: Final[Tuple[str, ...]] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_ABBR: Final[Tuple[str, ...]] = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)
MONTH_NAMES: Final[Dict[str, int]] = {m: i + 1 for i, m in enumerate(MONTH_ABBR)}

# Header keywords
DATE_KEYWORDS: Final[Tuple[str, ...]] = ("date", "datum")
TIME_KEYWORDS: Final[Tuple[str, ...]] = ("time", "zeit")
EXACT_DATE_HEADERS: Final[Tuple[str, ...]] = ("rdate",)
EXACT_TIME_HEADERS: Final[Tuple[str, ...]] = ("rtime",)
NON_VALUE_HEADERS: Final[Tuple[str, ...]] = ("status", "rdate", "rtime")
PIVOT_TIME_HEADERS: Final[Tuple[str, ...]] = ("time",)
PIVOT_PERIOD_HEADERS: Final[Tuple[str, ...]] = ("period",)

# Export noise trailing a meter name in a filename, e.g. "shop_12_export_v2.csv"
FILE_EXTENSIONS: Final[Tuple[str, ...]] = ("csv", "tsv", "txt", "dat", "xls", "xlsx", "xlsm", "json")
NOISE_TOKENS: Final[Tuple[str, ...]] = (
    "data", "export", "meter", "reading", "readings", "profile",
    "import", "scada", "raw", "final",
)
MONTH_FULL: Final[Tuple[str, ...]] = (
    "january", "february", "march", "april", "june", "july",
    "august", "september", "october", "november", "december", "sept",
)

# Canonical unit spellings accepted by the unit converter
POWER_UNITS: Final[Tuple[str, ...]] = ("W", "kW", "MW", "kVA", "A")
ENERGY_UNITS: Final[Tuple[str, ...]] = ("Wh", "kWh", "MWh", "kVAh")
DEFAULT_POWER_FACTOR: Final[float] = 0.9
