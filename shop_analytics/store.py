"""In-memory dataset slots and the upload/ingestion boundary.

There are three slots (``overview``, ``productTraffic``, ``productSample``).
An upload replaces its slot wholesale. Each upload takes a per-slot token
before its single suspension point (reading the file bytes); when the parse
finishes only the most recently started upload for that slot may install its
result, so a slow earlier upload can never overwrite a newer one.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from shop_analytics.classify import SLOTS, SLOT_OVERVIEW, SLOT_PRODUCT_SAMPLE, SLOT_PRODUCT_TRAFFIC, classify
from shop_analytics.data import WorkbookParseError, process_workbook
from shop_analytics.metrics_statistics import compute_statistics
from shop_analytics.normalize import Dataset, column_names
from shop_analytics.settings import DEFAULT_CURRENCY, IngestOptions

logger = logging.getLogger(__name__)


class UnknownSlotError(KeyError):
    pass


@dataclass
class IngestResult:
    ok: bool
    slot: Optional[str]
    file_name: str
    kind: Optional[str] = None
    rows: int = 0
    columns: Optional[List[str]] = None
    message: str = ""
    stale: bool = False


class DatasetStore:
    def __init__(self) -> None:
        self._slots: Dict[str, Optional[Dataset]] = {s: None for s in SLOTS}
        self._tokens: Dict[str, int] = {s: 0 for s in SLOTS}
        # Uploads may be parsed on worker threads; begin/install must not interleave.
        self._lock = threading.Lock()

    @staticmethod
    def _check(slot: str) -> str:
        if slot not in SLOTS:
            raise UnknownSlotError(slot)
        return slot

    def begin(self, slot: str) -> int:
        self._check(slot)
        with self._lock:
            self._tokens[slot] += 1
            return self._tokens[slot]

    def is_current(self, slot: str, token: int) -> bool:
        return self._tokens[self._check(slot)] == token

    def install(self, slot: str, token: int, dataset: Dataset) -> bool:
        with self._lock:
            if not self.is_current(slot, token):
                logger.warning("discarding stale result for %s (token %d, latest %d)", slot, token, self._tokens[slot])
                return False
            self._slots[slot] = dataset
        logger.info("installed %d rows into %s", len(dataset), slot)
        return True

    def get(self, slot: str) -> Optional[Dataset]:
        return self._slots[self._check(slot)]

    def snapshot(self) -> Dict[str, Optional[Dataset]]:
        return dict(self._slots)

    def clear(self) -> None:
        for slot in SLOTS:
            self._slots[slot] = None

    def describe(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for slot, dataset in self._slots.items():
            out[slot] = {
                "loaded": dataset is not None,
                "rows": len(dataset) if dataset is not None else 0,
                "columns": column_names(dataset) if dataset else [],
            }
        return out

    def statistics(self, currency: str = DEFAULT_CURRENCY) -> Optional[Dict[str, Dict[str, Any]]]:
        return compute_statistics(
            self._slots[SLOT_OVERVIEW],
            self._slots[SLOT_PRODUCT_TRAFFIC],
            self._slots[SLOT_PRODUCT_SAMPLE],
            currency=currency,
        )


def resolve_slot(file_name: str, slot: Optional[str]) -> Optional[str]:
    if slot:
        return slot
    return classify(file_name).slot


def _parse_into(
    store: DatasetStore, slot: str, token: int, file_name: str, content: bytes, options: IngestOptions
) -> IngestResult:
    try:
        processed = process_workbook(file_name, content, options=options)
    except WorkbookParseError as exc:
        logger.warning("parse failed for %s: %s", file_name, exc)
        return IngestResult(ok=False, slot=slot, file_name=file_name, message=f"Error processing {file_name}: {exc}")

    kind = processed.classification.kind.value
    if not store.install(slot, token, processed.dataset):
        return IngestResult(
            ok=False,
            slot=slot,
            file_name=file_name,
            kind=kind,
            rows=len(processed.dataset),
            message=f"{file_name} was superseded by a newer upload for {slot}",
            stale=True,
        )
    return IngestResult(
        ok=True,
        slot=slot,
        file_name=file_name,
        kind=kind,
        rows=len(processed.dataset),
        columns=processed.columns,
        message=f"Processed {file_name} into {slot} ({len(processed.dataset)} rows)",
    )


def _unrecognized(file_name: str) -> IngestResult:
    return IngestResult(ok=False, slot=None, file_name=file_name, kind=classify(file_name).kind.value, message=f"Unrecognized report type: {file_name}")


def ingest_bytes(
    store: DatasetStore,
    slot: Optional[str],
    file_name: str,
    content: bytes,
    *,
    options: Optional[IngestOptions] = None,
) -> IngestResult:
    target = resolve_slot(file_name, slot)
    if target is None:
        return _unrecognized(file_name)
    token = store.begin(target)
    return _parse_into(store, target, token, file_name, content, options or IngestOptions())


async def ingest_upload(
    store: DatasetStore,
    slot: Optional[str],
    file_name: str,
    read: Callable[[], Awaitable[bytes]],
    *,
    options: Optional[IngestOptions] = None,
) -> IngestResult:
    target = resolve_slot(file_name, slot)
    if target is None:
        return _unrecognized(file_name)
    token = store.begin(target)
    try:
        content = await read()
    except Exception as exc:
        logger.warning("reading %s failed: %s", file_name, exc)
        return IngestResult(ok=False, slot=target, file_name=file_name, message=f"Error processing {file_name}: {exc}")
    return _parse_into(store, target, token, file_name, content, options or IngestOptions())
