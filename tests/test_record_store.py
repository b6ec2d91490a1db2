from __future__ import annotations

from datetime import date

import pytest

from zona9.record_store import ACTIVITY_NOTES, RIG_MOVES, SITE_RECORDS, RecordStoreError


def test_upsert_replaces_by_key_and_select_filters(store):
    store.upsert(SITE_RECORDS, [
        {"name": "PHSS", "date": "2026-03-09", "stock": 1},
        {"name": "PHSS", "date": "2026-03-10", "stock": 2},
        {"name": "TANJUNG", "date": "2026-03-10", "stock": 3},
    ])
    store.upsert(SITE_RECORDS, [{"name": "PHSS", "date": date(2026, 3, 10), "stock": 5}])

    rows = store.select(SITE_RECORDS, equals={"date": date(2026, 3, 10)}, order_by="name")
    assert [(r["name"], r["stock"]) for r in rows] == [("PHSS", 5), ("TANJUNG", 3)]

    in_range = store.select(SITE_RECORDS, date_range=(date(2026, 3, 9), date(2026, 3, 9)))
    assert [r["stock"] for r in in_range] == [1]

    desc = store.select(SITE_RECORDS, order_by="date", descending=True)
    assert desc[0]["date"] == "2026-03-10"


def test_select_missing_collection_file_is_empty(store):
    assert store.select(ACTIVITY_NOTES) == []


def test_upsert_requires_key_fields(store):
    with pytest.raises(RecordStoreError) as exc_info:
        store.upsert(RIG_MOVES, [{"site": "TANJUNG", "date": "2026-03-10"}])
    assert exc_info.value.collection == RIG_MOVES


def test_delete_requires_filter_and_reports_count(store):
    store.upsert(RIG_MOVES, [
        {"id": "a", "site": "TANJUNG", "date": "2026-03-10"},
        {"id": "b", "site": "SANGATTA", "date": "2026-03-10"},
        {"id": "c", "site": "SANGATTA", "date": "2026-03-11"},
    ])
    with pytest.raises(RecordStoreError):
        store.delete(RIG_MOVES, equals={})
    assert store.delete(RIG_MOVES, equals={"date": date(2026, 3, 10)}) == 2
    assert [r["id"] for r in store.select(RIG_MOVES)] == ["c"]


def test_corrupt_collection_file_raises(store):
    store.root.mkdir(parents=True, exist_ok=True)
    (store.root / "site_records.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(RecordStoreError):
        store.select(SITE_RECORDS)


def test_unknown_collection_is_rejected(store):
    with pytest.raises(RecordStoreError):
        store.select("invoices")
