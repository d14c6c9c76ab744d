import pytest

from shop_analytics.metrics_statistics import (
    amount_value,
    compute_statistics,
    find_amount_field,
    format_amount,
    funnel_rows,
    order_share,
    parse_amount,
)

OVERVIEW = [{"页面浏览次数": 10, "商品访客数": 5, "订单数": 2, "商品交易总额(₱)": "100.50"}]
TRAFFIC = [{"曝光用户数": 50, "点击人数": 20, "加车人数": 5, "支付人数": 2}]
SAMPLE = [{"name": "Phone case", "支付人数": 1}]


def test_statistics_example():
    stats = compute_statistics(OVERVIEW, TRAFFIC, SAMPLE)
    assert stats == {
        "overview": {"page_views": 10, "product_visitors": 5, "orders": 2, "gmv": "100.50 ₱"},
        "productTraffic": {"exposed_users": 50, "clicked_users": 20, "carted_users": 5, "paid_users": 2},
        "productSample": {"total_products": 1, "products_with_orders": 1},
    }


@pytest.mark.parametrize(
    "overview,traffic,sample",
    [(None, TRAFFIC, SAMPLE), (OVERVIEW, None, SAMPLE), (OVERVIEW, TRAFFIC, None), (None, None, None)],
)
def test_statistics_need_all_three(overview, traffic, sample):
    assert compute_statistics(overview, traffic, sample) is None


def test_empty_datasets_count_as_present():
    stats = compute_statistics([], [], [])
    assert stats["overview"] == {"page_views": 0, "product_visitors": 0, "orders": 0, "gmv": "0.00 ₱"}
    assert stats["productSample"] == {"total_products": 0, "products_with_orders": 0}


def test_missing_and_non_numeric_fields_are_zero():
    overview = [{"页面浏览次数": 4}, {"商品访客数": "n/a"}, {"页面浏览次数": 1.5, "订单数": None}]
    traffic = [{"other": 1}]
    sample = [{"支付人数": 0}, {"支付人数": "3"}, {}]
    stats = compute_statistics(overview, traffic, sample, currency="USD")
    assert stats["overview"]["page_views"] == pytest.approx(5.5)
    assert stats["overview"]["product_visitors"] == 0
    assert stats["overview"]["orders"] == 0
    assert stats["overview"]["gmv"] == "0.00 USD"
    assert stats["productTraffic"]["exposed_users"] == 0
    assert stats["productSample"] == {"total_products": 3, "products_with_orders": 1}


def test_gmv_sums_across_rows():
    overview = [{"商品交易总额(₱)": 100.5}, {"商品交易总额(₱)": "0.25"}, {"商品交易总额(₱)": 0}]
    stats = compute_statistics(overview, [], [])
    assert stats["overview"]["gmv"] == "100.75 ₱"


def test_find_amount_field():
    assert find_amount_field({"日期": 1, "商品交易总额(₱)": 2}) == "商品交易总额(₱)"
    assert find_amount_field({"Gross Merchandise Value (USD)": 3}) == "Gross Merchandise Value (USD)"
    assert find_amount_field({"订单数": 2}) is None
    assert find_amount_field({"商品交易总额A": 1, "商品交易总额B": 2}) == "商品交易总额A"


def test_amount_value():
    assert amount_value({"商品交易总额(₱)": "12.5"}) == 12.5
    assert amount_value({"订单数": 2}) == 0
    assert amount_value({"商品交易总额": "abc"}) == 0


def test_format_and_parse_amount():
    assert format_amount(100.5) == "100.50 ₱"
    assert parse_amount("100.50 ₱") == 100.5
    assert parse_amount(3) == 3.0
    assert parse_amount(None) == 0.0


def test_funnel_rows():
    funnels = funnel_rows(compute_statistics(OVERVIEW, TRAFFIC, SAMPLE))
    assert [r["value"] for r in funnels["overview_funnel"]] == [10, 5, 2, 100.5]
    assert [r["value"] for r in funnels["product_funnel"]] == [50, 20, 5, 2]
    assert funnel_rows(None) == {"overview_funnel": [], "product_funnel": []}


def test_order_share():
    slices = order_share([{"支付人数": 1}, {"支付人数": 0}, {"支付人数": 2}])
    assert slices == [{"name": "有订单商品", "value": 2}, {"name": "无订单商品", "value": 1}]
    assert order_share(None) == []
