import pytest

from shop_analytics.classify import (
    ReportKind,
    classification_for_slot,
    classify,
    clean_file_name,
    kind_for_slot,
    slot_for_kind,
)


@pytest.mark.parametrize(
    "file_name,kind,offset,canonical",
    [
        ("Overview Report_20240101.xlsx", ReportKind.OVERVIEW, 4, "total"),
        ("Business Performance-20240301120000.xlsx", ReportKind.OVERVIEW, 4, "total"),
        ("Product Card Traffic_20240101.xlsx", ReportKind.PRODUCT_TRAFFIC, 2, "producttotal"),
        ("Products Card List-2024.xls", ReportKind.PRODUCT_SAMPLE, 2, "products"),
        ("random_file.xlsx", ReportKind.UNKNOWN, 0, "unknown"),
        ("", ReportKind.UNKNOWN, 0, "unknown"),
    ],
)
def test_classify(file_name, kind, offset, canonical):
    c = classify(file_name)
    assert c.kind == kind
    assert c.header_row_offset == offset
    assert c.canonical_name == canonical
    assert c.export_file_name == f"{canonical}.xlsx"


def test_clean_file_name_strips_timestamp_and_extension():
    assert clean_file_name("Products Card List-2024.xls") == "products card list"
    assert clean_file_name("Overview Report_20240101_1200.XLSX") == "overview report"
    assert clean_file_name("Overview.xlsx") == "overview"


def test_timestamp_suffix_is_not_needed():
    assert classify("product card traffic.xlsx").kind == ReportKind.PRODUCT_TRAFFIC


def test_slots_round_trip():
    for kind in (ReportKind.OVERVIEW, ReportKind.PRODUCT_TRAFFIC, ReportKind.PRODUCT_SAMPLE):
        slot = slot_for_kind(kind)
        assert kind_for_slot(slot) == kind
        assert classification_for_slot(slot).kind == kind
    assert slot_for_kind(ReportKind.UNKNOWN) is None
    assert classify("random_file.xlsx").slot is None
    assert classification_for_slot("nope").kind == ReportKind.UNKNOWN
