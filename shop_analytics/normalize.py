"""Cell and dataset normalization for exported shop reports.

Every cell goes through :func:`normalize_cell`, whose rules are evaluated in a
fixed order and stop at the first match:

1. empty / null / NaN / sentinel text (``"NaN"``, ``"nan"``, ``"#N/A"``) -> ``0``
2. text containing ``/`` that parses as a calendar date -> ``pd.Timestamp``
3. text containing ``%`` -> leading number / 100 (``0`` if there is none)
4. text that is entirely a number -> ``float`` (``0`` if not finite)
5. anything else is returned unchanged

:func:`validate_dataset` is a separate sweep that replaces any numeric NaN
or infinity left in a dataset with ``0``.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd
from dateutil import parser as date_parser

Record = Dict[str, Any]
Dataset = List[Record]

SENTINEL_STRINGS = frozenset({"", "NaN", "nan", "#N/A"})

_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_FULL_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")
# Numeric slash dates only ("2024/03/01", "3/1", "2024/3/1 10:30"); words never reach the date parser.
_DATE_SHAPE = re.compile(r"\s*\d{1,4}/\d{1,2}(?:/\d{1,4})?(?:\s+\d{1,2}:\d{2}(?::\d{2})?)?\s*")


def is_non_finite(value: Any) -> bool:
    return isinstance(value, (float, np.floating)) and not math.isfinite(value)


def is_missing(value: Any) -> bool:
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    if isinstance(value, str):
        return value in SENTINEL_STRINGS
    return is_non_finite(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, (bool, np.bool_))


def parse_leading_float(text: str) -> Optional[float]:
    """Parse the numeric prefix of ``text`` (``"12.5abc"`` -> ``12.5``); ``None`` if there is none."""
    match = _LEADING_FLOAT.match(text)
    if not match:
        return None
    out = float(match.group(1))
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def as_number(value: Any) -> float:
    """Numeric view of a cell for summing; anything non-numeric counts as 0."""
    if is_number(value):
        return 0 if math.isnan(value) else value
    if isinstance(value, str):
        out = parse_leading_float(value)
        return 0 if out is None else out
    return 0


def parse_date_text(text: str) -> Optional[pd.Timestamp]:
    if not _DATE_SHAPE.fullmatch(text):
        return None
    # Month/day-only text ("12/31") resolves against the current year.
    default = datetime(datetime.now().year, 1, 1)
    try:
        parsed = date_parser.parse(text, default=default)
        return pd.Timestamp(parsed)
    except (ValueError, OverflowError):
        return None


def _normalize_percent(text: str) -> float:
    out = parse_leading_float(text.replace("%", ""))
    return 0 if out is None else out / 100


def _normalize_numeric_text(text: str) -> Any:
    if not text.strip():
        return 0
    if not _FULL_NUMBER.match(text):
        return text
    out = float(text)
    if math.isnan(out) or math.isinf(out):
        return 0
    return out


def normalize_cell(value: Any) -> Any:
    if is_missing(value):
        return 0
    if not isinstance(value, str):
        return value
    if "/" in value:
        parsed = parse_date_text(value)
        if parsed is not None:
            return parsed
    if "%" in value:
        return _normalize_percent(value)
    return _normalize_numeric_text(value)


def normalize_record(row: Mapping[str, Any]) -> Record:
    return {key: normalize_cell(value) for key, value in row.items()}


def normalize_dataset(rows: Iterable[Mapping[str, Any]]) -> Dataset:
    return [normalize_record(row) for row in rows]


def validate_dataset(dataset: Iterable[Mapping[str, Any]]) -> Dataset:
    out: Dataset = []
    for record in dataset:
        valid: Record = {}
        for key, value in record.items():
            if is_non_finite(value):
                valid[key] = 0
            else:
                valid[key] = value
        out.append(valid)
    return out


def has_nan_fields(dataset: Iterable[Mapping[str, Any]]) -> bool:
    return any(is_non_finite(v) for record in dataset for v in record.values())


def column_names(dataset: Dataset) -> List[str]:
    """Column names of a dataset in header order (taken from the first record)."""
    if not dataset:
        return []
    return list(dataset[0].keys())
