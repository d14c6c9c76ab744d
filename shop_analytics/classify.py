from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ReportKind(str, Enum):
    OVERVIEW = "Overview"
    PRODUCT_TRAFFIC = "ProductTraffic"
    PRODUCT_SAMPLE = "ProductSample"
    UNKNOWN = "Unknown"


SLOT_OVERVIEW = "overview"
SLOT_PRODUCT_TRAFFIC = "productTraffic"
SLOT_PRODUCT_SAMPLE = "productSample"
SLOTS = (SLOT_OVERVIEW, SLOT_PRODUCT_TRAFFIC, SLOT_PRODUCT_SAMPLE)

KIND_SLOTS = {
    ReportKind.OVERVIEW: SLOT_OVERVIEW,
    ReportKind.PRODUCT_TRAFFIC: SLOT_PRODUCT_TRAFFIC,
    ReportKind.PRODUCT_SAMPLE: SLOT_PRODUCT_SAMPLE,
}

# (terms, kind, header row, canonical name); first match wins.
REPORT_LEXICON: Tuple[Tuple[Tuple[str, ...], ReportKind, int, str], ...] = (
    (("overview", "business performance"), ReportKind.OVERVIEW, 4, "total"),
    (("product card traffic",), ReportKind.PRODUCT_TRAFFIC, 2, "producttotal"),
    (("products card list",), ReportKind.PRODUCT_SAMPLE, 2, "products"),
)

_TIMESTAMP_SUFFIX = re.compile(r"[_-]\d+.*\.xlsx?$")
_EXTENSION = re.compile(r"\.xlsx?$")


@dataclass(frozen=True)
class Classification:
    kind: ReportKind
    header_row_offset: int
    canonical_name: str

    @property
    def export_file_name(self) -> str:
        return f"{self.canonical_name}.xlsx"

    @property
    def slot(self) -> Optional[str]:
        return slot_for_kind(self.kind)


UNKNOWN_REPORT = Classification(ReportKind.UNKNOWN, 0, "unknown")


def clean_file_name(file_name: str) -> str:
    """Lower-case a workbook name and drop its timestamp suffix and extension."""
    name = (file_name or "").strip().lower()
    name = _TIMESTAMP_SUFFIX.sub("", name)
    return _EXTENSION.sub("", name)


def classify(file_name: str) -> Classification:
    clean = clean_file_name(file_name)
    for terms, kind, header_row, canonical in REPORT_LEXICON:
        if any(term in clean for term in terms):
            return Classification(kind, header_row, canonical)
    return UNKNOWN_REPORT


def slot_for_kind(kind: ReportKind) -> Optional[str]:
    return KIND_SLOTS.get(kind)


def kind_for_slot(slot: str) -> ReportKind:
    for kind, name in KIND_SLOTS.items():
        if name == slot:
            return kind
    return ReportKind.UNKNOWN


def classification_for_slot(slot: str) -> Classification:
    kind = kind_for_slot(slot)
    for _, lexicon_kind, header_row, canonical in REPORT_LEXICON:
        if lexicon_kind == kind:
            return Classification(kind, header_row, canonical)
    return UNKNOWN_REPORT
