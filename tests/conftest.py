from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

import zona9.runtime_logging as runtime_logging
from zona9.models import SiteRecord, site_color
from zona9.record_store import SITE_RECORDS, LocalJsonRecordStore


REPORT_DAY = date(2026, 3, 10)


@pytest.fixture(autouse=True)
def isolated_runtime_log(tmp_path, monkeypatch):
    log_dir = Path(tmp_path) / "logs"
    monkeypatch.setattr(runtime_logging, "LOG_DIR", log_dir)
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", log_dir / "runtime_events.jsonl")
    return log_dir


@pytest.fixture
def store(tmp_path) -> LocalJsonRecordStore:
    return LocalJsonRecordStore(Path(tmp_path) / "store")


@pytest.fixture
def events() -> list[dict]:
    return []


@pytest.fixture
def log_event(events):
    def _log(**kwargs):
        events.append(kwargs)

    return _log


def site(name: str, day: date = REPORT_DAY, issued=0.0, received=0.0, stock=0.0, pob=0) -> SiteRecord:
    return SiteRecord(name, day, float(issued), float(received), float(stock), int(pob), site_color(name))


def seed_sites(store: LocalJsonRecordStore, records) -> None:
    store.upsert(SITE_RECORDS, [r.to_row() for r in records])
