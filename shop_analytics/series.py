"""Chronological chart series built from normalized report datasets.

Series points are plain dicts, ``{"date": "M/D", <label>: value, ...}``, sorted
ascending by the full underlying date. Only month/day is shown, so the same
day in two different years gets the same label; ordering still follows the
full date.

Conversion rates are stored as fractions (``0.125``) after normalization and
are rescaled to percent (``12.5``) here, when the series is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from shop_analytics.classify import SLOT_OVERVIEW, SLOT_PRODUCT_SAMPLE, SLOT_PRODUCT_TRAFFIC
from shop_analytics.normalize import Dataset, as_number, normalize_cell, parse_date_text

Series = List[Dict[str, Any]]

DATE_LABEL = "date"


@dataclass(frozen=True)
class SeriesPreset:
    name: str
    title: str
    slot: str
    field_map: Dict[str, str]
    date_field: Optional[str] = None
    label_field: Optional[str] = None
    rate_fields: Sequence[str] = field(default_factory=tuple)


def to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value
    if isinstance(value, (datetime, date)):
        return pd.Timestamp(value)
    if isinstance(value, str) and value.strip():
        return parse_date_text(value)
    return None


def format_short_date(value: Any) -> str:
    ts = to_timestamp(value)
    if ts is None:
        return ""
    return f"{ts.month}/{ts.day}"


def rate_to_percent(value: Any) -> float:
    if isinstance(value, str):
        value = normalize_cell(value)
    return round(float(as_number(value)) * 100, 2)


def format_rate(value: Any) -> str:
    return f"{float(as_number(value)):.2f}%"


def _point(record: Mapping[str, Any], field_map: Mapping[str, str], rate_fields: Sequence[str]) -> Dict[str, Any]:
    point: Dict[str, Any] = {}
    for label, source in field_map.items():
        value = record.get(source, 0)
        point[label] = rate_to_percent(value) if label in rate_fields else value
    return point


def build_series(
    dataset: Iterable[Mapping[str, Any]],
    field_map: Mapping[str, str],
    *,
    date_field: str,
    rate_fields: Sequence[str] = (),
) -> Series:
    keyed = []
    for idx, record in enumerate(dataset):
        ts = to_timestamp(record.get(date_field))
        point = {DATE_LABEL: format_short_date(ts)}
        point.update(_point(record, field_map, rate_fields))
        # Undated records keep their relative order after every dated one.
        keyed.append(((ts is None, ts.value if ts is not None else 0, idx), point))
    keyed.sort(key=lambda item: item[0])
    return [point for _, point in keyed]


def build_category_series(
    dataset: Iterable[Mapping[str, Any]],
    label_field: str,
    field_map: Mapping[str, str],
    *,
    rate_fields: Sequence[str] = (),
) -> Series:
    """Per-row series keyed by a label column (e.g. product name), in input order."""
    out: Series = []
    for record in dataset:
        label = record.get(label_field, "")
        point: Dict[str, Any] = {label_field: "" if label is None else str(label)}
        point.update(_point(record, field_map, rate_fields))
        out.append(point)
    return out


OVERVIEW_TRAFFIC = SeriesPreset(
    name="overview",
    title="总体数据文件",
    slot=SLOT_OVERVIEW,
    date_field="日期",
    field_map={"页面浏览次数": "页面浏览次数", "商品访客数": "商品访客数", "订单数": "订单数"},
)

PRODUCT_CONVERSION = SeriesPreset(
    name="traffic",
    title="商品数据转化数据",
    slot=SLOT_PRODUCT_TRAFFIC,
    date_field="时间",
    field_map={"曝光人数": "曝光用户数", "点击人数": "点击人数", "加车人数": "加车人数", "支付人数": "支付人数"},
)

_RATE_FIELDS = {
    "曝光到点击": "曝光到点击转化率",
    "点击到加车": "点击到加车转化率",
    "点击到成交": "点击到成交转化率",
    "加车到成交": "加车到成交转化率",
}

PRODUCT_RATES = SeriesPreset(
    name="traffic-rates",
    title="商品转化率数据",
    slot=SLOT_PRODUCT_TRAFFIC,
    date_field="时间",
    field_map=dict(_RATE_FIELDS),
    rate_fields=tuple(_RATE_FIELDS),
)

SAMPLE_RATES = SeriesPreset(
    name="sample-rates",
    title="转化率数据",
    slot=SLOT_PRODUCT_SAMPLE,
    label_field="name",
    field_map={v: v for v in _RATE_FIELDS.values()},
    rate_fields=tuple(_RATE_FIELDS.values()),
)

SERIES_PRESETS: Dict[str, SeriesPreset] = {
    p.name: p for p in (OVERVIEW_TRAFFIC, PRODUCT_CONVERSION, PRODUCT_RATES, SAMPLE_RATES)
}


def build_preset(preset: SeriesPreset, dataset: Optional[Dataset]) -> Series:
    if not dataset:
        return []
    if preset.label_field is not None:
        return build_category_series(dataset, preset.label_field, preset.field_map, rate_fields=preset.rate_fields)
    return build_series(dataset, preset.field_map, date_field=preset.date_field or DATE_LABEL, rate_fields=preset.rate_fields)
