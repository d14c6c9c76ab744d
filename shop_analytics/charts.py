from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from shop_analytics.series import DATE_LABEL, Series

alt.data_transformers.disable_max_rows()

COLORS = {
    "blue": "#4096ff",
    "green": "#52c41a",
    "orange": "#fa8c16",
    "purple": "#722ed1",
    "red": "#f5222d",
}
PALETTE = [COLORS["blue"], COLORS["green"], COLORS["purple"], COLORS["orange"], COLORS["red"]]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def series_bar_chart(
    series: Series,
    metrics: Sequence[str],
    *,
    x_field: str = DATE_LABEL,
    title: Optional[str] = None,
    percent: bool = False,
    height: int = 360,
) -> Optional[alt.Chart]:
    if not series:
        return None
    df = pd.DataFrame(series)
    metrics = [m for m in metrics if m in df.columns]
    if not metrics:
        return None
    # Keep the series order on the x axis; short date labels do not sort chronologically.
    order = df[x_field].astype(str).tolist()
    long_df = df.melt(id_vars=[x_field], value_vars=metrics, var_name="metric", value_name="value")
    long_df[x_field] = long_df[x_field].astype(str)
    y_axis = alt.Axis(labelExpr="datum.value + '%'", gridDash=[3, 3]) if percent else alt.Axis(gridDash=[3, 3])
    tooltip_fmt = ".2f" if percent else ","
    hover = alt.selection_point(fields=["metric"], on="mouseover", empty="all")
    chart = (
        alt.Chart(long_df)
        .mark_bar(size=20)
        .encode(
            x=alt.X(f"{x_field}:N", title=None, sort=list(dict.fromkeys(order))),
            xOffset="metric:N",
            y=alt.Y("value:Q", title=None, axis=y_axis),
            color=alt.Color("metric:N", title=None, scale=alt.Scale(domain=list(metrics), range=PALETTE[: len(metrics)])),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.3)),
            tooltip=[
                alt.Tooltip(f"{x_field}:N", title=x_field),
                alt.Tooltip("metric:N", title="Metric"),
                alt.Tooltip("value:Q", title="Value", format=tooltip_fmt),
            ],
        )
        .add_params(hover)
        .properties(height=height)
    )
    if title:
        chart = chart.properties(title=title)
    return chart


def funnel_chart(rows: List[Dict[str, Any]], *, title: Optional[str] = None, height: int = 220) -> Optional[alt.Chart]:
    if not rows:
        return None
    df = pd.DataFrame(rows)
    stages = df["stage"].tolist()
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            y=alt.Y("stage:N", title=None, sort=stages),
            x=alt.X("value:Q", title=None, axis=alt.Axis(gridDash=[3, 3])),
            color=alt.Color("stage:N", legend=None, scale=alt.Scale(domain=stages, range=PALETTE[: len(stages)])),
            tooltip=["stage", alt.Tooltip("value:Q", format=",.2f")],
        )
        .properties(height=height)
    )
    if title:
        chart = chart.properties(title=title)
    return chart


def order_share_chart(slices: List[Dict[str, Any]], *, title: Optional[str] = None) -> Optional[alt.Chart]:
    if not slices:
        return None
    df = pd.DataFrame(slices)
    total = float(df["value"].sum()) or 1.0
    df["share"] = df["value"] / total
    chart = (
        alt.Chart(df)
        .mark_arc(outerRadius=120)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("name:N", title=None, scale=alt.Scale(domain=df["name"].tolist(), range=[COLORS["blue"], COLORS["orange"]])),
            tooltip=["name", "value", alt.Tooltip("share:Q", format=".1%")],
        )
    )
    if title:
        chart = chart.properties(title=title)
    return chart
