"""Record store surface used by the assembler and bulk save, plus a local JSON backend."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import date
from pathlib import Path
from typing import Any, Iterable


SITE_RECORDS = "site_records"
FUEL_RECORDS = "fuel_records"
RIG_MOVES = "rig_moves"
ACTIVITY_NOTES = "activity_notes"

# Upsert identity per collection. Rig moves are not unique per site/date, so they carry an id.
COLLECTION_KEYS: dict[str, tuple[str, ...]] = {
    SITE_RECORDS: ("name", "date"),
    FUEL_RECORDS: ("name", "date"),
    RIG_MOVES: ("id",),
    ACTIVITY_NOTES: ("site", "date"),
}


class RecordStoreError(Exception):
    def __init__(self, message: str, collection: str = ""):
        super().__init__(message)
        self.collection = collection


def _plain(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _matches(row: dict, equals: dict | None, date_range: tuple[Any, Any] | None, date_field: str) -> bool:
    for key, expected in (equals or {}).items():
        if str(row.get(key)) != str(_plain(expected)):
            return False
    if date_range is not None:
        start, end = date_range
        value = str(row.get(date_field) or "")
        if not value:
            return False
        if start is not None and value < str(_plain(start)):
            return False
        if end is not None and value > str(_plain(end)):
            return False
    return True


def _order_key(field_name: str):
    def _key(row: dict):
        value = row.get(field_name)
        return (value is None, str(value) if value is not None else "")

    return _key


class RecordStore(ABC):
    """Generic per-collection select/upsert/delete with date filters and ordering."""

    @abstractmethod
    def select(
        self,
        collection: str,
        *,
        equals: dict | None = None,
        date_range: tuple[Any, Any] | None = None,
        date_field: str = "date",
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, collection: str, rows: Iterable[dict]) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete(self, collection: str, *, equals: dict) -> int:
        raise NotImplementedError


class LocalJsonRecordStore(RecordStore):
    """One JSON array file per collection under a storage root."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._lock = threading.Lock()

    def _path_for(self, collection: str) -> Path:
        if collection not in COLLECTION_KEYS:
            raise RecordStoreError(f"Unsupported collection: {collection}", collection)
        return self.root / f"{collection}.json"

    def _load(self, collection: str) -> list[dict]:
        p = self._path_for(collection)
        if not p.exists():
            return []
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RecordStoreError(f"Collection file for {collection} is corrupt: {exc}", collection) from exc
        except OSError as exc:
            raise RecordStoreError(f"Could not read {collection}: {exc}", collection) from exc
        if not isinstance(data, list):
            raise RecordStoreError(f"Collection file for {collection} is not a list.", collection)
        return [row for row in data if isinstance(row, dict)]

    def _save(self, collection: str, rows: list[dict]) -> None:
        p = self._path_for(collection)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = p.with_suffix(f"{p.suffix}.tmp")
            tmp.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(p)
        except OSError as exc:
            raise RecordStoreError(f"Could not write {collection}: {exc}", collection) from exc

    def select(
        self,
        collection: str,
        *,
        equals: dict | None = None,
        date_range: tuple[Any, Any] | None = None,
        date_field: str = "date",
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict]:
        rows = [deepcopy(r) for r in self._load(collection) if _matches(r, equals, date_range, date_field)]
        if order_by:
            rows.sort(key=_order_key(order_by), reverse=descending)
        return rows

    def upsert(self, collection: str, rows: Iterable[dict]) -> int:
        keys = COLLECTION_KEYS.get(collection)
        if keys is None:
            raise RecordStoreError(f"Unsupported collection: {collection}", collection)
        incoming = [{k: _plain(v) for k, v in row.items()} for row in rows]
        for row in incoming:
            missing = [k for k in keys if row.get(k) in (None, "")]
            if missing:
                raise RecordStoreError(f"{collection} row is missing key field(s): {', '.join(missing)}", collection)
        with self._lock:
            existing = self._load(collection)
            index = {tuple(str(r.get(k)) for k in keys): i for i, r in enumerate(existing)}
            for row in incoming:
                ident = tuple(str(row.get(k)) for k in keys)
                if ident in index:
                    existing[index[ident]] = row
                else:
                    index[ident] = len(existing)
                    existing.append(row)
            self._save(collection, existing)
        return len(incoming)

    def delete(self, collection: str, *, equals: dict) -> int:
        if not equals:
            raise RecordStoreError("Refusing to delete without a filter.", collection)
        with self._lock:
            existing = self._load(collection)
            kept = [r for r in existing if not _matches(r, equals, None, "date")]
            removed = len(existing) - len(kept)
            if removed:
                self._save(collection, kept)
        return removed
