from __future__ import annotations

from io import BytesIO
from typing import Any, List, Optional, Sequence

import pytest
from openpyxl import Workbook

OVERVIEW_HEADER = ["日期", "页面浏览次数", "商品访客数", "订单数", "商品交易总额(₱)", "支付转化率"]
TRAFFIC_HEADER = [
    "时间",
    "曝光用户数",
    "点击人数",
    "加车人数",
    "支付人数",
    "曝光到点击转化率",
    "点击到加车转化率",
    "点击到成交转化率",
    "加车到成交转化率",
]
SAMPLE_HEADER = ["name", "曝光用户数", "点击人数", "支付人数", "曝光到点击转化率"]


def build_workbook(
    header: Sequence[Any],
    rows: Sequence[Sequence[Any]],
    *,
    preamble: Optional[List[List[Any]]] = None,
    merge: Optional[str] = None,
    extra_sheet: bool = False,
) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    for line in preamble or []:
        ws.append(line)
    ws.append(list(header))
    for row in rows:
        ws.append(list(row))
    if merge:
        ws.merge_cells(merge)
    if extra_sheet:
        other = wb.create_sheet("Notes")
        other.append(["ignored"])
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def overview_bytes() -> bytes:
    return build_workbook(
        OVERVIEW_HEADER,
        [
            ["2024/03/01", 10, 5, 2, "100.50", "12.5%"],
            ["2024/01/15", "NaN", 3, "#N/A", 20, "5%"],
        ],
        preamble=[["Business overview"], ["Shop: demo"], ["Range: 2024/01/15 - 2024/03/01"], ["Currency: PHP"]],
    )


def traffic_bytes() -> bytes:
    return build_workbook(
        TRAFFIC_HEADER,
        [
            ["2024/02/02", 30, 12, 3, 1, "40%", "25%", "8.33%", "33.33%"],
            ["2024/02/01", 20, 8, 2, 1, "40%", "25%", "12.5%", "50%"],
        ],
        preamble=[["Product card traffic"], ["Range: 2024/02/01 - 2024/02/02"]],
    )


def sample_bytes() -> bytes:
    return build_workbook(
        SAMPLE_HEADER,
        [
            ["Phone case", 100, 10, 2, "10%"],
            ["Cable", 50, 5, 0, "10%"],
            ["Charger", 20, "", "", ""],
        ],
        preamble=[["Products card list"], ["Top products"]],
    )


@pytest.fixture
def overview_workbook() -> bytes:
    return overview_bytes()


@pytest.fixture
def traffic_workbook() -> bytes:
    return traffic_bytes()


@pytest.fixture
def sample_workbook() -> bytes:
    return sample_bytes()
