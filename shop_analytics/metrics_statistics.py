from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from shop_analytics.classify import SLOT_OVERVIEW, SLOT_PRODUCT_SAMPLE, SLOT_PRODUCT_TRAFFIC
from shop_analytics.normalize import Dataset, as_number, is_number, parse_leading_float
from shop_analytics.settings import DEFAULT_CURRENCY

# Exact report headers.
FIELD_PAGE_VIEWS = "页面浏览次数"
FIELD_PRODUCT_VISITORS = "商品访客数"
FIELD_ORDERS = "订单数"
FIELD_EXPOSED_USERS = "曝光用户数"
FIELD_CLICKED_USERS = "点击人数"
FIELD_CARTED_USERS = "加车人数"
FIELD_PAID_USERS = "支付人数"

# The GMV header carries a currency annotation that varies by template, e.g. "商品交易总额(₱)".
AMOUNT_FIELD_TERMS = ("商品交易总额", "gross merchandise value")

STATISTICS_LABELS: Dict[str, Dict[str, str]] = {
    SLOT_OVERVIEW: {
        "_title": "总览数据",
        "page_views": "总计页面浏览量",
        "product_visitors": "总计访客数",
        "orders": "总计订单数",
        "gmv": "总成交额",
    },
    SLOT_PRODUCT_TRAFFIC: {
        "_title": "商品总体数据",
        "exposed_users": "总曝光用户数",
        "clicked_users": "总点击人数",
        "carted_users": "总加车人数",
        "paid_users": "总支付人数",
    },
    SLOT_PRODUCT_SAMPLE: {
        "_title": "抽样商品数据",
        "total_products": "总商品数",
        "products_with_orders": "有订单商品数",
    },
}


def _metric_value(value: Any) -> Any:
    out = float(value)
    return int(out) if out.is_integer() else out


def find_amount_field(record: Mapping[str, Any], terms: Sequence[str] = AMOUNT_FIELD_TERMS) -> Optional[str]:
    """Return the first column of ``record`` whose lower-cased name contains any of ``terms``."""
    lowered = [t.lower() for t in terms]
    for key in record.keys():
        name = str(key).lower()
        if any(t in name for t in lowered):
            return key
    return None


def amount_value(record: Mapping[str, Any], terms: Sequence[str] = AMOUNT_FIELD_TERMS) -> float:
    key = find_amount_field(record, terms)
    if key is None:
        return 0
    return as_number(record[key])


def format_amount(value: float, currency: str = DEFAULT_CURRENCY) -> str:
    return f"{float(value):.2f} {currency}"


def parse_amount(text: Any) -> float:
    """Inverse of :func:`format_amount` for charting ("100.50 ₱" -> 100.5)."""
    if is_number(text):
        return float(text)
    out = parse_leading_float(str(text or ""))
    return 0.0 if out is None else out


def _frame(dataset: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame.from_records(list(dataset))


def column_total(df: pd.DataFrame, col: str) -> Any:
    if df.empty or col not in df.columns:
        return 0
    return _metric_value(df[col].map(as_number).sum())


def count_positive(df: pd.DataFrame, col: str) -> int:
    if df.empty or col not in df.columns:
        return 0
    return int((df[col].map(as_number) > 0).sum())


def compute_statistics(
    overview: Optional[Dataset],
    traffic: Optional[Dataset],
    sample: Optional[Dataset],
    *,
    currency: str = DEFAULT_CURRENCY,
) -> Optional[Dict[str, Dict[str, Any]]]:
    if overview is None or traffic is None or sample is None:
        return None

    overview_df = _frame(overview)
    traffic_df = _frame(traffic)
    sample_df = _frame(sample)

    gmv = sum(amount_value(record) for record in overview)

    return {
        SLOT_OVERVIEW: {
            "page_views": column_total(overview_df, FIELD_PAGE_VIEWS),
            "product_visitors": column_total(overview_df, FIELD_PRODUCT_VISITORS),
            "orders": column_total(overview_df, FIELD_ORDERS),
            "gmv": format_amount(gmv, currency),
        },
        SLOT_PRODUCT_TRAFFIC: {
            "exposed_users": column_total(traffic_df, FIELD_EXPOSED_USERS),
            "clicked_users": column_total(traffic_df, FIELD_CLICKED_USERS),
            "carted_users": column_total(traffic_df, FIELD_CARTED_USERS),
            "paid_users": column_total(traffic_df, FIELD_PAID_USERS),
        },
        SLOT_PRODUCT_SAMPLE: {
            "total_products": len(sample),
            "products_with_orders": count_positive(sample_df, FIELD_PAID_USERS),
        },
    }


def funnel_rows(summary: Optional[Dict[str, Dict[str, Any]]]) -> Dict[str, List[Dict[str, Any]]]:
    if not summary:
        return {"overview_funnel": [], "product_funnel": []}
    ov = summary[SLOT_OVERVIEW]
    tr = summary[SLOT_PRODUCT_TRAFFIC]
    return {
        "overview_funnel": [
            {"stage": "页面浏览", "value": ov["page_views"]},
            {"stage": "访客", "value": ov["product_visitors"]},
            {"stage": "订单", "value": ov["orders"]},
            {"stage": "成交额", "value": parse_amount(ov["gmv"])},
        ],
        "product_funnel": [
            {"stage": "曝光", "value": tr["exposed_users"]},
            {"stage": "点击", "value": tr["clicked_users"]},
            {"stage": "加购", "value": tr["carted_users"]},
            {"stage": "支付", "value": tr["paid_users"]},
        ],
    }


def order_share(sample: Optional[Dataset]) -> List[Dict[str, Any]]:
    """Products with vs. without paid orders in the sample report."""
    if not sample:
        return []
    total = len(sample)
    with_orders = count_positive(_frame(sample), FIELD_PAID_USERS)
    return [
        {"name": "有订单商品", "value": with_orders},
        {"name": "无订单商品", "value": total - with_orders},
    ]
