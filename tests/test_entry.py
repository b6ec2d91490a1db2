from __future__ import annotations

import pandas as pd
import pytest

from conftest import REPORT_DAY
from zona9.assembler import assemble
from zona9.entry import (
    ReportDraft,
    draft_from_frames,
    fuel_entry_frame,
    load_standing_note,
    notes_entry_frame,
    rig_move_entry_frame,
    save_report,
    save_standing_note,
    site_entry_frame,
    write_report,
)
from zona9.models import DAILY_NOTES_DATE, WEEKLY_NOTES_DATE, Period, SITE_NAMES
from zona9.outcomes import SaveFailed
from zona9.record_store import ACTIVITY_NOTES, FUEL_RECORDS, RIG_MOVES, SITE_RECORDS, LocalJsonRecordStore
from zona9.sample_data import sample_draft


class FailingWriteStore(LocalJsonRecordStore):
    def __init__(self, root, failing: str):
        super().__init__(root)
        self.failing = failing

    def upsert(self, collection, rows):
        if collection == self.failing:
            raise ConnectionError("write rejected")
        return super().upsert(collection, rows)


def test_blank_frames_cover_site_catalog():
    sites = site_entry_frame(None)
    assert list(sites["name"]) == SITE_NAMES
    assert sites["stock"].sum() == 0
    assert "ZONA 9" not in list(fuel_entry_frame(None)["name"])
    assert rig_move_entry_frame(None).empty
    assert list(notes_entry_frame(None)["text"]) == [""] * 4


def test_draft_from_frames_validates_and_skips_blank_rows():
    sites = pd.DataFrame([
        {"name": "PHSS", "issued": 100, "received": 50, "stock": 1000, "pob": 26},
        {"name": None, "issued": None, "received": None, "stock": None, "pob": None},
    ])
    fuel = pd.DataFrame([{"name": "PHSS", "biosolar": 10, "pertalite": None, "pertadex": 1}])
    rigs = pd.DataFrame([{"site": "tanjung", "rig": "PDSI #1", "origin": "A", "destination": "B"}])
    notes = pd.DataFrame([{"site": "PHSS", "text": "Warehouse: Stok opname"}, {"site": "TANJUNG", "text": ""}])

    draft = draft_from_frames(REPORT_DAY, sites, fuel, rigs, notes)
    assert [s.name for s in draft.sites] == ["PHSS"]
    assert draft.sites[0].color == "#6366f1"
    assert draft.fuel[0].pertalite == 0
    assert draft.rig_moves[0].site == "TANJUNG"
    assert [n.site for n in draft.notes] == ["PHSS"]
    assert draft.cleared_note_sites == ("TANJUNG",)

    bad = pd.DataFrame([{"name": "PHSS", "issued": "banyak", "received": 0, "stock": 0, "pob": 0}])
    with pytest.raises(ValueError, match="Site row 1"):
        draft_from_frames(REPORT_DAY, bad, None, None, None)


def test_save_report_round_trips_through_assembler(store, events, log_event):
    outcome = save_report(store, sample_draft(REPORT_DAY), log_event=log_event)
    assert outcome.ok
    assert outcome.applied == (SITE_RECORDS, FUEL_RECORDS, RIG_MOVES, ACTIVITY_NOTES)
    assert events[-1]["event"] == "bulk_save_succeeded"

    snapshot = assemble(store, Period.single(REPORT_DAY))
    assert len(snapshot.sites) == 5
    assert len(snapshot.fuel) == 4
    assert {n.site for n in snapshot.notes} == {"PHSS", "SANGASANGA", "SANGATTA", "TANJUNG"}
    assert site_entry_frame(snapshot).loc[0, "issued"] == 11722400


def test_fuel_failure_keeps_sites_and_names_collection(tmp_path, events, log_event):
    store = FailingWriteStore(tmp_path / "store", FUEL_RECORDS)
    outcome = save_report(store, sample_draft(REPORT_DAY), log_event=log_event)
    assert not outcome.ok
    assert outcome.failed_collection == FUEL_RECORDS
    assert "fuel records" in outcome.message
    assert outcome.applied == (SITE_RECORDS,)
    # No rollback: the site write stays, later collections were never attempted.
    assert len(store.select(SITE_RECORDS)) == 5
    assert store.select(ACTIVITY_NOTES) == []
    assert events[-1]["event"] == "bulk_save_failed"


def test_write_report_raises_save_failed(tmp_path):
    store = FailingWriteStore(tmp_path / "store", SITE_RECORDS)
    with pytest.raises(SaveFailed) as exc_info:
        write_report(store, sample_draft(REPORT_DAY))
    assert exc_info.value.collection == SITE_RECORDS
    assert exc_info.value.applied == ()


def test_rig_moves_are_replaced_per_day(store):
    rigs = pd.DataFrame([
        {"site": "TANJUNG", "rig": "PDSI #1", "origin": "A", "destination": "B"},
        {"site": "SANGATTA", "rig": "PDSI #2", "origin": "C", "destination": "D"},
    ])
    save_report(store, draft_from_frames(REPORT_DAY, None, None, rigs, None))
    save_report(store, draft_from_frames(REPORT_DAY, None, None, rigs.iloc[:1], None))
    assert [r["site"] for r in store.select(RIG_MOVES)] == ["TANJUNG"]


def test_cleared_notes_are_deleted(store):
    save_report(store, ReportDraft(day=REPORT_DAY, notes=sample_draft(REPORT_DAY).notes))
    notes = pd.DataFrame([{"site": "PHSS", "text": ""}])
    save_report(store, draft_from_frames(REPORT_DAY, None, None, None, notes))
    assert "PHSS" not in {r["site"] for r in store.select(ACTIVITY_NOTES)}


def test_standing_notes_use_reserved_slots(store):
    assert load_standing_note(store, DAILY_NOTES_DATE) == ""
    assert save_standing_note(store, DAILY_NOTES_DATE, "Safety: Toolbox meeting 07:00").ok
    assert save_standing_note(store, WEEKLY_NOTES_DATE, "Weekly stock opname").ok
    assert load_standing_note(store, DAILY_NOTES_DATE) == "Safety: Toolbox meeting 07:00"
    assert load_standing_note(store, WEEKLY_NOTES_DATE) == "Weekly stock opname"

    assert save_standing_note(store, DAILY_NOTES_DATE, "   ").ok
    assert load_standing_note(store, DAILY_NOTES_DATE) == ""
    with pytest.raises(ValueError):
        load_standing_note(store, REPORT_DAY)
