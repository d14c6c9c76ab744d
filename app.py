import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Any, Dict, Optional

from shop_analytics.charts import funnel_chart, order_share_chart, series_bar_chart
from shop_analytics.classify import SLOT_OVERVIEW, SLOT_PRODUCT_SAMPLE, SLOT_PRODUCT_TRAFFIC, classification_for_slot, classify
from shop_analytics.data import WorkbookParseError, export_workbook, preview_workbook, process_workbook
from shop_analytics.metrics_statistics import STATISTICS_LABELS, funnel_rows, order_share
from shop_analytics.series import OVERVIEW_TRAFFIC, PRODUCT_CONVERSION, PRODUCT_RATES, SAMPLE_RATES, build_preset
from shop_analytics.settings import normalize_options
from shop_analytics.store import DatasetStore, ingest_bytes

alt.data_transformers.disable_max_rows()

UPLOADERS = [
    (SLOT_OVERVIEW, "总体数据文件"),
    (SLOT_PRODUCT_TRAFFIC, "商品数据文件"),
    (SLOT_PRODUCT_SAMPLE, "抽样商品数据文件"),
]


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .stat-row {display: flex;justify-content: space-between;font-size: 0.9rem;}
        .stat-row dt {color: #4b5563;}
        .stat-row dd {font-weight: 600;margin: 0;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def get_store() -> DatasetStore:
    if "store" not in st.session_state:
        st.session_state["store"] = DatasetStore()
        st.session_state["upload_ids"] = {}
        st.session_state["status"] = {}
    return st.session_state["store"]


def handle_upload(store: DatasetStore, slot: str, uploaded, auto_preprocess: bool):
    if uploaded is None:
        return
    # Streamlit reruns the script on every interaction; only ingest a new file once.
    upload_id = (uploaded.name, uploaded.size, auto_preprocess)
    if st.session_state["upload_ids"].get(slot) == upload_id:
        return
    st.session_state["upload_ids"][slot] = upload_id
    result = ingest_bytes(store, slot, uploaded.name, uploaded.getvalue(), options=normalize_options({"auto_preprocess": auto_preprocess}))
    st.session_state["status"][slot] = result


def render_chart(chart: Optional[alt.Chart]):
    if chart is None:
        return
    st.altair_chart(chart, use_container_width=True)


def render_charts(store: DatasetStore):
    overview = store.get(SLOT_OVERVIEW)
    traffic = store.get(SLOT_PRODUCT_TRAFFIC)
    sample = store.get(SLOT_PRODUCT_SAMPLE)
    if not overview and not traffic and not sample:
        st.info("Upload at least one report to see charts.")
        return

    if overview:
        with card(OVERVIEW_TRAFFIC.title):
            render_chart(series_bar_chart(build_preset(OVERVIEW_TRAFFIC, overview), list(OVERVIEW_TRAFFIC.field_map)))

    if traffic:
        with card(PRODUCT_CONVERSION.title):
            render_chart(series_bar_chart(build_preset(PRODUCT_CONVERSION, traffic), list(PRODUCT_CONVERSION.field_map)))
        with card(PRODUCT_RATES.title):
            render_chart(series_bar_chart(build_preset(PRODUCT_RATES, traffic), list(PRODUCT_RATES.field_map), percent=True))

    if sample:
        with card(SAMPLE_RATES.title):
            render_chart(
                series_bar_chart(
                    build_preset(SAMPLE_RATES, sample),
                    list(SAMPLE_RATES.field_map),
                    x_field=SAMPLE_RATES.label_field,
                    percent=True,
                )
            )
        slices = order_share(sample)
        with card("商品订单占比"):
            render_chart(order_share_chart(slices))
            total = sum(s["value"] for s in slices)
            with_orders = slices[0]["value"] if slices else 0
            st.caption(f"总商品数: {total} · 有订单商品数: {with_orders} · 无订单商品数: {total - with_orders}")


def render_statistics(store: DatasetStore):
    stats = store.statistics()
    if stats is None:
        st.info("Statistics need all three reports: overview, product traffic and product sample.")
        return

    cols = st.columns(3)
    for col, (category, values) in zip(cols, stats.items()):
        labels: Dict[str, str] = STATISTICS_LABELS.get(category, {})
        rows = "".join(
            f"<div class='stat-row'><dt>{labels.get(k, k)}:</dt><dd>{v:,}</dd></div>"
            if isinstance(v, (int, float))
            else f"<div class='stat-row'><dt>{labels.get(k, k)}:</dt><dd>{v}</dd></div>"
            for k, v in values.items()
        )
        with col:
            with card(labels.get("_title", category)):
                st.markdown(f"<dl>{rows}</dl>", unsafe_allow_html=True)

    funnels = funnel_rows(stats)
    with card("总览数据漏斗"):
        render_chart(funnel_chart(funnels["overview_funnel"]))
    with card("商品数据漏斗"):
        render_chart(funnel_chart(funnels["product_funnel"]))


def render_preprocess():
    with card("数据预处理"):
        st.markdown(
            "- Detects the report type and header row from the file name\n"
            "- Normalizes empty / NaN cells, dates, percentages and numeric text\n"
            "- Exports the cleaned sheet under its canonical file name"
        )
        uploaded = st.file_uploader("上传文件进行预处理", type=["xlsx", "xls"], key="preprocess_upload")
        if uploaded is None:
            return
        try:
            processed = process_workbook(uploaded.name, uploaded.getvalue())
        except WorkbookParseError as exc:
            st.error(f"Error processing {uploaded.name}: {exc}")
            return
        c = processed.classification
        st.write(f"Report type: **{c.kind.value}** · header row {c.header_row_offset} · {len(processed.dataset)} rows")
        st.dataframe(pd.DataFrame(processed.dataset).head(50), hide_index=True, use_container_width=True)
        name, content = export_workbook(processed.dataset, c)
        st.download_button(
            f"Download {name}",
            data=content,
            file_name=name,
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )


def render_preview():
    with card("Excel文件预览"):
        uploaded = st.file_uploader("Workbook", type=["xlsx", "xls"], key="preview_upload")
        if uploaded is None:
            return
        try:
            preview: Dict[str, Any] = preview_workbook(uploaded.getvalue(), uploaded.name)
        except WorkbookParseError as exc:
            st.error(str(exc))
            return
        sheet = st.selectbox("Sheet", preview["sheet_names"])
        info = preview["sheets"][sheet]
        grid = pd.DataFrame(info["rows"], columns=info["columns"])
        grid.index = grid.index + 1
        st.dataframe(grid, use_container_width=True)
        st.caption(
            f"Rows: {info['total_rows']} · Columns: {info['total_cols']}"
            + (f" · Merged ranges: {info['merged_ranges']}" if info["merged_ranges"] else "")
        )


# ---------- UI setup ----------
st.set_page_config(page_title="Shop Analytics", layout="wide")
inject_base_styles()
st.title("Shop Analytics")
st.caption("Overview, product traffic and product sample reports in one place.")

store = get_store()

with st.sidebar:
    st.markdown("### Navigate")
    page = st.radio("Navigate", ["数据图表", "统计数据", "数据预处理", "Excel预览"], index=0)
    st.markdown("---")
    st.markdown("### Upload reports")
    auto_preprocess = st.checkbox("自动预处理数据", value=True)
    for slot, label in UPLOADERS:
        uploaded = st.file_uploader(label, type=["xlsx", "xls"], key=f"upload_{slot}")
        if uploaded is not None:
            detected = classify(uploaded.name)
            expected = classification_for_slot(slot)
            if detected.kind != expected.kind:
                st.caption(f"Detected {detected.kind.value}; header row {detected.header_row_offset} will be used.")
        handle_upload(store, slot, uploaded, auto_preprocess)
        result = st.session_state["status"].get(slot)
        if result is not None:
            (st.success if result.ok else st.error)(result.message)

if page == "数据图表":
    render_charts(store)
elif page == "统计数据":
    render_statistics(store)
elif page == "数据预处理":
    render_preprocess()
else:
    render_preview()
