from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

DEFAULT_CURRENCY = "₱"
DEFAULT_PREVIEW_ROWS = 100


@dataclass(frozen=True)
class IngestOptions:
    auto_preprocess: bool = True
    currency: str = DEFAULT_CURRENCY
    max_preview_rows: int = DEFAULT_PREVIEW_ROWS


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
        return default
    return bool(value)


def normalize_options(raw: Optional[dict] = None) -> IngestOptions:
    raw = raw or {}

    auto_preprocess = _as_bool(raw.get("auto_preprocess"), True)

    currency = str(raw.get("currency") or DEFAULT_CURRENCY).strip() or DEFAULT_CURRENCY

    max_rows = raw.get("max_preview_rows", DEFAULT_PREVIEW_ROWS)
    try:
        max_rows = int(max_rows)
    except Exception:
        max_rows = DEFAULT_PREVIEW_ROWS
    max_rows = max(1, min(1000, max_rows))

    return IngestOptions(auto_preprocess=auto_preprocess, currency=currency, max_preview_rows=max_rows)
