from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils import get_column_letter

from shop_analytics.classify import Classification, classify
from shop_analytics.normalize import Dataset, column_names, has_nan_fields, normalize_dataset, validate_dataset
from shop_analytics.settings import DEFAULT_PREVIEW_ROWS, IngestOptions

logger = logging.getLogger(__name__)

EXPORT_SHEET_NAME = "Sheet1"
EXPORT_DATE_FORMAT = "yyyy-mm-dd"
MIN_COLUMN_WIDTH = 12


class WorkbookParseError(Exception):
    """Raised when workbook bytes cannot be read as a spreadsheet."""


@dataclass
class ProcessedWorkbook:
    file_name: str
    classification: Classification
    dataset: Dataset = field(default_factory=list)

    @property
    def columns(self) -> List[str]:
        return column_names(self.dataset)


def excel_engine(file_name: str) -> Optional[str]:
    name = (file_name or "").lower()
    if name.endswith(".xlsx"):
        return "openpyxl"
    if name.endswith(".xls"):
        return "xlrd"
    return None


def read_workbook(content: bytes, file_name: str, header_row: int = 0) -> List[Dict[str, Any]]:
    """Read the first sheet of a workbook into row dicts, using ``header_row`` as the header."""
    if not content:
        raise WorkbookParseError(f"{file_name or 'workbook'} is empty")
    try:
        df = pd.read_excel(BytesIO(content), sheet_name=0, header=header_row, engine=excel_engine(file_name))
    except Exception as exc:
        raise WorkbookParseError(f"Could not read {file_name or 'workbook'}: {exc}") from exc
    df.columns = [str(c).strip() for c in df.columns]
    return df.to_dict(orient="records")


def process_workbook(file_name: str, content: bytes, *, options: Optional[IngestOptions] = None) -> ProcessedWorkbook:
    options = options or IngestOptions()
    classification = classify(file_name)
    rows = read_workbook(content, file_name, classification.header_row_offset)
    dataset: Dataset = normalize_dataset(rows) if options.auto_preprocess else [dict(r) for r in rows]
    if has_nan_fields(dataset):
        logger.debug("replacing NaN fields in %s", file_name)
    dataset = validate_dataset(dataset)
    logger.info(
        "processed %s as %s (header row %d): %d rows",
        file_name,
        classification.kind.value,
        classification.header_row_offset,
        len(dataset),
    )
    return ProcessedWorkbook(file_name=file_name, classification=classification, dataset=dataset)


def _strip_timezones(df: pd.DataFrame) -> pd.DataFrame:
    for col in df.columns:
        if isinstance(df[col].dtype, pd.DatetimeTZDtype):
            df[col] = df[col].dt.tz_localize(None)
    return df


def export_workbook(dataset: Dataset, classification: Classification) -> Tuple[str, bytes]:
    """Serialize a dataset to an XLSX workbook named after its report kind."""
    df = _strip_timezones(pd.DataFrame.from_records(dataset))
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl", date_format=EXPORT_DATE_FORMAT, datetime_format=EXPORT_DATE_FORMAT) as writer:
        df.to_excel(writer, sheet_name=EXPORT_SHEET_NAME, index=False)
        sheet = writer.sheets[EXPORT_SHEET_NAME]
        for idx, col in enumerate(df.columns, start=1):
            sheet.column_dimensions[get_column_letter(idx)].width = max(len(str(col)) * 1.5, MIN_COLUMN_WIDTH)
    return classification.export_file_name, buf.getvalue()


def _preview_cell(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, pd.Timestamp):
        return value.strftime("%Y-%m-%d")
    return str(value)


def _merged_range_counts(content: bytes) -> Dict[str, int]:
    try:
        wb = load_workbook(BytesIO(content))
    except Exception:
        logger.warning("could not inspect merged cells", exc_info=True)
        return {}
    return {ws.title: len(ws.merged_cells.ranges) for ws in wb.worksheets}


def preview_workbook(content: bytes, file_name: str, *, max_rows: int = DEFAULT_PREVIEW_ROWS) -> Dict[str, Any]:
    """Raw grid preview of every sheet: spreadsheet column letters, first ``max_rows`` rows as text."""
    try:
        sheets = pd.read_excel(BytesIO(content), sheet_name=None, header=None, engine=excel_engine(file_name))
    except Exception as exc:
        raise WorkbookParseError(f"Could not read {file_name or 'workbook'}: {exc}") from exc

    merges = _merged_range_counts(content) if excel_engine(file_name) == "openpyxl" else {}
    out: Dict[str, Any] = {"file_name": file_name, "sheet_names": list(sheets.keys()), "sheets": {}}
    for name, df in sheets.items():
        total_rows, total_cols = df.shape
        letters = [get_column_letter(i + 1) for i in range(total_cols)]
        rows = [[_preview_cell(v) for v in row] for row in df.head(max_rows).itertuples(index=False, name=None)]
        out["sheets"][name] = {
            "columns": letters,
            "rows": rows,
            "total_rows": int(total_rows),
            "total_cols": int(total_cols),
            "merged_ranges": int(merges.get(name, 0)),
        }
    return out
