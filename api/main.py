from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    ClassificationModel,
    ClassifyRequest,
    DatasetsResponse,
    IngestOptionsModel,
    IngestResultModel,
    MetaSlotsResponse,
)
from shop_analytics.charts import funnel_chart, order_share_chart, series_bar_chart, to_vega_spec
from shop_analytics.classify import SLOTS, SLOT_PRODUCT_SAMPLE, Classification, classification_for_slot, classify
from shop_analytics.data import WorkbookParseError, export_workbook, preview_workbook
from shop_analytics.metrics_statistics import STATISTICS_LABELS, funnel_rows, order_share
from shop_analytics.series import SERIES_PRESETS, build_preset
from shop_analytics.settings import normalize_options
from shop_analytics.store import DatasetStore, ingest_bytes


app = FastAPI(title="Shop Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = DatasetStore()

SlotName = Literal["overview", "productTraffic", "productSample"]
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _classification_payload(c: Classification) -> dict:
    return ClassificationModel(
        kind=c.kind.value,
        header_row_offset=c.header_row_offset,
        canonical_name=c.canonical_name,
        slot=c.slot,
        export_file_name=c.export_file_name,
    ).model_dump()


def _ingest(file: UploadFile, slot: Optional[str], auto_preprocess: bool) -> JSONResponse:
    # Called from plain `def` handlers, which FastAPI runs on its threadpool.
    options = normalize_options({"auto_preprocess": auto_preprocess})
    result = ingest_bytes(store, slot, file.filename or "", file.file.read(), options=options)
    payload = IngestResultModel(**asdict(result)).model_dump()
    return _json(payload, status_code=200 if result.ok else 422)


@app.get("/meta/slots", response_model=MetaSlotsResponse)
def meta_slots():
    defaults = IngestOptionsModel(**asdict(normalize_options())).model_dump()
    return _json({"slots": list(SLOTS), "series": list(SERIES_PRESETS), "options": defaults})


@app.post("/classify")
def classify_file(body: ClassifyRequest):
    try:
        return _json(_classification_payload(classify(body.file_name)))
    except Exception as exc:
        logger.exception("classify failed")
        return _error(exc)


@app.post("/upload")
def upload_auto(file: UploadFile = File(...), auto_preprocess: bool = Query(default=True)):
    try:
        return _ingest(file, None, auto_preprocess)
    except Exception as exc:
        logger.exception("upload failed")
        return _error(exc)


@app.post("/upload/{slot}")
def upload(slot: SlotName, file: UploadFile = File(...), auto_preprocess: bool = Query(default=True)):
    try:
        return _ingest(file, slot, auto_preprocess)
    except Exception as exc:
        logger.exception("upload %s failed", slot)
        return _error(exc)


@app.get("/datasets", response_model=DatasetsResponse)
def datasets():
    return _json({"datasets": store.describe()})


@app.delete("/datasets")
def clear_datasets():
    store.clear()
    return _json({"datasets": store.describe()})


@app.get("/datasets/{slot}")
def dataset(slot: SlotName, limit: Optional[int] = Query(default=None, ge=1)):
    data = store.get(slot)
    if data is None:
        return _json({"slot": slot, "rows": None})
    rows = data[:limit] if limit else data
    return _json({"slot": slot, "total_rows": len(data), "rows": rows})


@app.get("/statistics")
def statistics(currency: str = Query(default="₱")):
    try:
        stats = store.statistics(currency=normalize_options({"currency": currency}).currency)
        return _json({"statistics": stats, "labels": STATISTICS_LABELS})
    except Exception as exc:
        logger.exception("statistics failed")
        return _error(exc)


@app.get("/statistics/funnels")
def statistics_funnels():
    try:
        stats = store.statistics()
        return _json({**funnel_rows(stats), "order_share": order_share(store.get(SLOT_PRODUCT_SAMPLE))})
    except Exception as exc:
        logger.exception("funnels failed")
        return _error(exc)


@app.get("/series/{name}")
def series(name: str):
    preset = SERIES_PRESETS.get(name)
    if preset is None:
        return JSONResponse(status_code=404, content={"error": f"unknown series {name}", "type": "KeyError"})
    try:
        return _json({"name": name, "title": preset.title, "series": build_preset(preset, store.get(preset.slot))})
    except Exception as exc:
        logger.exception("series %s failed", name)
        return _error(exc)


@app.get("/charts")
def charts():
    try:
        out = {}
        for name, preset in SERIES_PRESETS.items():
            points = build_preset(preset, store.get(preset.slot))
            x_field = preset.label_field or "date"
            chart = series_bar_chart(
                points,
                list(preset.field_map),
                x_field=x_field,
                title=preset.title,
                percent=bool(preset.rate_fields),
            )
            if chart is not None:
                out[name] = to_vega_spec(chart)
        funnels = funnel_rows(store.statistics())
        for key, title in [("overview_funnel", "总览数据漏斗"), ("product_funnel", "商品数据漏斗")]:
            chart = funnel_chart(funnels[key], title=title)
            if chart is not None:
                out[key] = to_vega_spec(chart)
        pie = order_share_chart(order_share(store.get(SLOT_PRODUCT_SAMPLE)), title="商品订单占比")
        if pie is not None:
            out["order_share"] = to_vega_spec(pie)
        return _json({"charts": out})
    except Exception as exc:
        logger.exception("charts failed")
        return _error(exc)


@app.get("/export/{slot}")
def export_slot(slot: SlotName):
    data = store.get(slot)
    if data is None:
        return JSONResponse(status_code=404, content={"error": f"{slot} has no data", "type": "LookupError"})
    filename, content = export_workbook(data, classification_for_slot(slot))
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.post("/preview")
def preview(file: UploadFile = File(...), max_rows: int = Query(default=100)):
    try:
        content = file.file.read()
        options = normalize_options({"max_preview_rows": max_rows})
        return _json(preview_workbook(content, file.filename or "", max_rows=options.max_preview_rows))
    except WorkbookParseError as exc:
        return _error(exc, status_code=422)
    except Exception as exc:
        logger.exception("preview failed")
        return _error(exc)
