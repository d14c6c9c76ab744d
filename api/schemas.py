from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from shop_analytics.settings import DEFAULT_CURRENCY, DEFAULT_PREVIEW_ROWS


class IngestOptionsModel(BaseModel):
    auto_preprocess: bool = True
    currency: str = DEFAULT_CURRENCY
    max_preview_rows: int = DEFAULT_PREVIEW_ROWS


class ClassifyRequest(BaseModel):
    file_name: str


class ClassificationModel(BaseModel):
    kind: str
    header_row_offset: int
    canonical_name: str
    slot: Optional[str] = None
    export_file_name: str


class IngestResultModel(BaseModel):
    ok: bool
    slot: Optional[str] = None
    file_name: str
    kind: Optional[str] = None
    rows: int = 0
    columns: Optional[List[str]] = None
    message: str = ""
    stale: bool = False


class SlotInfoModel(BaseModel):
    loaded: bool
    rows: int
    columns: List[str] = Field(default_factory=list)


class MetaSlotsResponse(BaseModel):
    slots: List[str]
    series: List[str]
    options: IngestOptionsModel


class DatasetsResponse(BaseModel):
    datasets: Dict[str, SlotInfoModel]
