import asyncio
import threading

import pytest

from shop_analytics.settings import IngestOptions
from shop_analytics.store import DatasetStore, UnknownSlotError, ingest_bytes, ingest_upload, resolve_slot

from conftest import overview_bytes, sample_bytes, traffic_bytes


def test_store_starts_empty():
    store = DatasetStore()
    assert store.snapshot() == {"overview": None, "productTraffic": None, "productSample": None}
    assert store.statistics() is None
    assert store.describe()["overview"] == {"loaded": False, "rows": 0, "columns": []}


def test_unknown_slot():
    store = DatasetStore()
    with pytest.raises(UnknownSlotError):
        store.begin("nope")
    with pytest.raises(UnknownSlotError):
        store.get("nope")


def test_only_latest_token_installs():
    store = DatasetStore()
    first = store.begin("overview")
    second = store.begin("overview")
    assert not store.install("overview", first, [{"a": 1}])
    assert store.get("overview") is None
    assert store.install("overview", second, [{"a": 2}])
    assert store.get("overview") == [{"a": 2}]


def test_tokens_are_per_slot():
    store = DatasetStore()
    token = store.begin("overview")
    store.begin("productTraffic")
    assert store.install("overview", token, [])


def test_resolve_slot():
    assert resolve_slot("Overview Report_20240101.xlsx", None) == "overview"
    assert resolve_slot("random_file.xlsx", "productSample") == "productSample"
    assert resolve_slot("random_file.xlsx", None) is None


def test_ingest_all_three_and_statistics():
    store = DatasetStore()
    results = [
        ingest_bytes(store, None, "Overview Report_20240101.xlsx", overview_bytes()),
        ingest_bytes(store, None, "Product Card Traffic_20240201.xlsx", traffic_bytes()),
        ingest_bytes(store, None, "Products Card List-2024.xlsx", sample_bytes()),
    ]
    assert all(r.ok for r in results)
    assert [r.slot for r in results] == ["overview", "productTraffic", "productSample"]
    assert results[0].rows == 2

    stats = store.statistics()
    assert stats["overview"] == {"page_views": 10, "product_visitors": 8, "orders": 2, "gmv": "120.50 ₱"}
    assert stats["productTraffic"] == {"exposed_users": 50, "clicked_users": 20, "carted_users": 5, "paid_users": 2}
    assert stats["productSample"] == {"total_products": 3, "products_with_orders": 1}


def test_explicit_slot_overrides_classification():
    store = DatasetStore()
    result = ingest_bytes(store, "productSample", "Products Card List-2024.xlsx", sample_bytes())
    assert result.ok
    assert result.kind == "ProductSample"
    assert len(store.get("productSample")) == 3


def test_unrecognized_file_without_slot():
    store = DatasetStore()
    result = ingest_bytes(store, None, "random_file.xlsx", overview_bytes())
    assert not result.ok
    assert result.slot is None
    assert result.kind == "Unknown"
    assert store.snapshot() == {"overview": None, "productTraffic": None, "productSample": None}


def test_parse_failure_leaves_slot_unchanged():
    store = DatasetStore()
    assert ingest_bytes(store, None, "Overview Report_20240101.xlsx", overview_bytes()).ok
    before = store.get("overview")
    result = ingest_bytes(store, None, "Overview Report_20240102.xlsx", b"corrupt")
    assert not result.ok
    assert "Overview Report_20240102.xlsx" in result.message
    assert store.get("overview") is before


def test_reupload_replaces_slot():
    store = DatasetStore()
    ingest_bytes(store, None, "Overview Report_20240101.xlsx", overview_bytes())
    ingest_bytes(
        store, None, "Overview Report_20240101.xlsx", overview_bytes(), options=IngestOptions(auto_preprocess=False)
    )
    assert store.get("overview")[0]["日期"] == "2024/03/01"


def test_stale_upload_does_not_overwrite_newer_one():
    store = DatasetStore()

    async def fast_read():
        return overview_bytes()

    async def scenario():
        release = asyncio.Event()

        async def slow_read():
            await release.wait()
            return overview_bytes()

        slow = asyncio.create_task(
            ingest_upload(store, None, "Overview Report_1.xlsx", slow_read, options=IngestOptions(auto_preprocess=False))
        )
        await asyncio.sleep(0)
        fast = await ingest_upload(store, None, "Overview Report_2.xlsx", fast_read)
        release.set()
        return fast, await slow

    fast, slow = asyncio.run(scenario())
    assert fast.ok
    assert not slow.ok
    assert slow.stale
    # The newer, preprocessed upload is the one that stays.
    assert store.get("overview")[0]["支付转化率"] == pytest.approx(0.125)


def test_failed_read_leaves_slot_unchanged():
    store = DatasetStore()

    async def broken_read():
        raise OSError("connection reset")

    result = asyncio.run(ingest_upload(store, "overview", "Overview.xlsx", broken_read))
    assert not result.ok
    assert "connection reset" in result.message
    assert store.get("overview") is None


def test_clear():
    store = DatasetStore()
    ingest_bytes(store, None, "Overview Report_20240101.xlsx", overview_bytes())
    store.clear()
    assert store.get("overview") is None


def test_threaded_uploads_install_only_the_latest_token():
    store = DatasetStore()
    tokens = []
    barrier = threading.Barrier(8)

    def worker(n):
        barrier.wait()
        token = store.begin("overview")
        tokens.append(token)
        store.install("overview", token, [{"n": n, "token": token}])

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(tokens) == list(range(1, 9))
    assert store.get("overview")[0]["token"] == 8
