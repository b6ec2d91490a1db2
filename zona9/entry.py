"""Data-entry helpers: editor frames, typed conversion, bulk save and standing notes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

import pandas as pd

from zona9.models import (
    COORDINATOR_SITE,
    FUEL_CATEGORIES,
    SITE_NAMES,
    STANDING_NOTE_DATES,
    ActivityNote,
    FuelRecord,
    RigMoveRecord,
    SiteRecord,
    Snapshot,
    format_date,
    note_text,
    parse_note_text,
    site_color,
)
from zona9.outcomes import SaveFailed, SaveOutcome
from zona9.record_store import ACTIVITY_NOTES, FUEL_RECORDS, RIG_MOVES, SITE_RECORDS, RecordStore
from zona9.runtime_logging import EventLogger, emit_event


SITE_COLUMNS = ["name", "issued", "received", "stock", "pob"]
FUEL_COLUMNS = ["name", *FUEL_CATEGORIES]
RIG_MOVE_COLUMNS = ["site", "rig", "origin", "destination"]
NOTE_COLUMNS = ["site", "text"]

COLLECTION_LABELS = {
    SITE_RECORDS: "site records",
    FUEL_RECORDS: "fuel records",
    RIG_MOVES: "rig moves",
    ACTIVITY_NOTES: "activity notes",
}


@dataclass(frozen=True)
class ReportDraft:
    day: date
    sites: tuple[SiteRecord, ...] = ()
    fuel: tuple[FuelRecord, ...] = ()
    rig_moves: tuple[RigMoveRecord, ...] = ()
    notes: tuple[ActivityNote, ...] = ()
    cleared_note_sites: tuple[str, ...] = field(default_factory=tuple)


def _by_name(records: Iterable, attr: str) -> dict:
    return {getattr(r, attr): r for r in records}


def site_entry_frame(snapshot: Snapshot | None) -> pd.DataFrame:
    """One row per catalog site (plus any extra stored site), prefilled from the snapshot."""
    existing = _by_name(snapshot.sites if snapshot else (), "name")
    names = SITE_NAMES + [n for n in existing if n not in SITE_NAMES]
    rows = []
    for name in names:
        rec = existing.get(name)
        rows.append(
            {
                "name": name,
                "issued": rec.issued if rec else 0.0,
                "received": rec.received if rec else 0.0,
                "stock": rec.stock if rec else 0.0,
                "pob": rec.pob if rec else 0,
            }
        )
    return pd.DataFrame(rows, columns=SITE_COLUMNS)


def fuel_entry_frame(snapshot: Snapshot | None) -> pd.DataFrame:
    existing = _by_name(snapshot.fuel if snapshot else (), "name")
    names = [n for n in SITE_NAMES if n != COORDINATOR_SITE] + [n for n in existing if n not in SITE_NAMES]
    rows = []
    for name in names:
        rec = existing.get(name)
        rows.append({"name": name, **{c: (rec.amount(c) if rec else 0.0) for c in FUEL_CATEGORIES}})
    return pd.DataFrame(rows, columns=FUEL_COLUMNS)


def rig_move_entry_frame(snapshot: Snapshot | None) -> pd.DataFrame:
    rows = [
        {"site": m.site, "rig": m.rig, "origin": m.origin, "destination": m.destination}
        for m in (snapshot.rig_moves if snapshot else ())
    ]
    return pd.DataFrame(rows, columns=RIG_MOVE_COLUMNS)


def notes_entry_frame(snapshot: Snapshot | None) -> pd.DataFrame:
    existing = _by_name(snapshot.notes if snapshot else (), "site")
    names = [n for n in SITE_NAMES if n != COORDINATOR_SITE] + [n for n in existing if n not in SITE_NAMES]
    rows = [{"site": n, "text": note_text(existing[n].items) if n in existing else ""} for n in names]
    return pd.DataFrame(rows, columns=NOTE_COLUMNS)


def _frame_rows(df: pd.DataFrame | None) -> list[dict]:
    if df is None or df.empty:
        return []
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def draft_from_frames(
    day: date,
    sites_df: pd.DataFrame | None,
    fuel_df: pd.DataFrame | None,
    rig_df: pd.DataFrame | None,
    notes_df: pd.DataFrame | None,
) -> ReportDraft:
    """Validated typed records for one day. Raises ValueError naming the offending row."""
    stamp = format_date(day)
    sites, fuel, moves, notes, cleared = [], [], [], [], []
    for idx, row in enumerate(_frame_rows(sites_df)):
        if _blank(row.get("name")):
            continue
        try:
            sites.append(SiteRecord.from_row({**row, "date": stamp, "color": site_color(row["name"])}))
        except ValueError as exc:
            raise ValueError(f"Site row {idx + 1}: {exc}") from exc
    for idx, row in enumerate(_frame_rows(fuel_df)):
        if _blank(row.get("name")):
            continue
        try:
            fuel.append(FuelRecord.from_row({**row, "date": stamp}))
        except ValueError as exc:
            raise ValueError(f"Fuel row {idx + 1}: {exc}") from exc
    for idx, row in enumerate(_frame_rows(rig_df)):
        if _blank(row.get("site")) and _blank(row.get("rig")):
            continue
        try:
            moves.append(RigMoveRecord.from_row({**row, "date": stamp}))
        except ValueError as exc:
            raise ValueError(f"Rig move row {idx + 1}: {exc}") from exc
    for row in _frame_rows(notes_df):
        if _blank(row.get("site")):
            continue
        items = parse_note_text(row.get("text") or "")
        site = str(row["site"]).strip().upper()
        if items:
            notes.append(ActivityNote(site=site, note_date=day, items=items))
        else:
            cleared.append(site)
    return ReportDraft(
        day=day,
        sites=tuple(sites),
        fuel=tuple(fuel),
        rig_moves=tuple(moves),
        notes=tuple(notes),
        cleared_note_sites=tuple(cleared),
    )


def _write_sites(store: RecordStore, draft: ReportDraft) -> None:
    store.upsert(SITE_RECORDS, [r.to_row() for r in draft.sites])


def _write_fuel(store: RecordStore, draft: ReportDraft) -> None:
    store.upsert(FUEL_RECORDS, [r.to_row() for r in draft.fuel])


def _write_rig_moves(store: RecordStore, draft: ReportDraft) -> None:
    # Moves have no natural key; the day's set is replaced wholesale.
    store.delete(RIG_MOVES, equals={"date": draft.day})
    store.upsert(RIG_MOVES, [m.to_row() for m in draft.rig_moves])


def _write_notes(store: RecordStore, draft: ReportDraft) -> None:
    for site in draft.cleared_note_sites:
        store.delete(ACTIVITY_NOTES, equals={"site": site, "date": draft.day})
    store.upsert(ACTIVITY_NOTES, [n.to_row() for n in draft.notes])


SAVE_STEPS: list[tuple[str, Callable[[RecordStore, ReportDraft], None]]] = [
    (SITE_RECORDS, _write_sites),
    (FUEL_RECORDS, _write_fuel),
    (RIG_MOVES, _write_rig_moves),
    (ACTIVITY_NOTES, _write_notes),
]


def write_report(store: RecordStore, draft: ReportDraft) -> tuple[str, ...]:
    """Write each collection independently, in order. Raises SaveFailed at the first failure.

    There is no cross-collection transaction: collections written before the
    failure stay written.
    """
    applied: list[str] = []
    for collection, step in SAVE_STEPS:
        try:
            step(store, draft)
        except Exception as exc:
            raise SaveFailed(
                f"Saving {COLLECTION_LABELS[collection]} failed: {exc}", collection, tuple(applied)
            ) from exc
        applied.append(collection)
    return tuple(applied)


def save_report(store: RecordStore, draft: ReportDraft, *, log_event: EventLogger | None = None) -> SaveOutcome:
    context = {"date": format_date(draft.day), "sites": len(draft.sites), "fuel": len(draft.fuel), "rig_moves": len(draft.rig_moves), "notes": len(draft.notes)}
    try:
        applied = write_report(store, draft)
    except SaveFailed as exc:
        emit_event(
            log_event,
            level="ERROR",
            event="bulk_save_failed",
            message=str(exc),
            context={**context, "failed_collection": exc.collection, "applied": list(exc.applied)},
            exc=exc,
        )
        return SaveOutcome(ok=False, applied=exc.applied, failed_collection=exc.collection, message=str(exc))
    emit_event(log_event, level="INFO", event="bulk_save_succeeded", message="Report saved.", context=context)
    return SaveOutcome(ok=True, applied=applied, message=f"Report for {format_date(draft.day)} saved.")


def _require_standing_slot(slot_date: date) -> None:
    if slot_date not in STANDING_NOTE_DATES:
        raise ValueError(f"{slot_date} is not a standing-notes slot.")


def load_standing_note(store: RecordStore, slot_date: date) -> str:
    _require_standing_slot(slot_date)
    rows = store.select(ACTIVITY_NOTES, equals={"site": COORDINATOR_SITE, "date": slot_date})
    if not rows:
        return ""
    return note_text(ActivityNote.from_row(rows[-1]).items)


def save_standing_note(
    store: RecordStore, slot_date: date, text: str, *, log_event: EventLogger | None = None
) -> SaveOutcome:
    _require_standing_slot(slot_date)
    note = ActivityNote(site=COORDINATOR_SITE, note_date=slot_date, items=parse_note_text(text))
    try:
        if note.items:
            store.upsert(ACTIVITY_NOTES, [note.to_row()])
        else:
            store.delete(ACTIVITY_NOTES, equals={"site": COORDINATOR_SITE, "date": slot_date})
    except Exception as exc:
        message = f"Saving standing notes failed: {exc}"
        emit_event(log_event, level="ERROR", event="bulk_save_failed", message=message, context={"slot": format_date(slot_date)}, exc=exc)
        return SaveOutcome(ok=False, failed_collection=ACTIVITY_NOTES, message=message)
    emit_event(log_event, level="INFO", event="bulk_save_succeeded", message="Standing notes saved.", context={"slot": format_date(slot_date)})
    return SaveOutcome(ok=True, applied=(ACTIVITY_NOTES,), message="Notes saved.")
