import logging

from . import (
    canon,
    config,
    exceptions,
    types,
    utils,
    sniff,
    classify,
    units,
    normalize,
    validate,
    profiles,
    matching,
    duplicates,
    ingest,
    persist,
    aggregate,
    export,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "canon",
    "config",
    "exceptions",
    "types",
    "utils",
    "sniff",
    "classify",
    "units",
    "normalize",
    "validate",
    "profiles",
    "matching",
    "duplicates",
    "ingest",
    "persist",
    "aggregate",
    "export",
]
