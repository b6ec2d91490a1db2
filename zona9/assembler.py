"""Snapshot assembly: concurrent collection reads joined into one immutable snapshot."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from zona9.models import (
    ActivityNote,
    FuelRecord,
    Period,
    RigMoveRecord,
    SiteRecord,
    Snapshot,
    site_sort_key,
)
from zona9.outcomes import DataUnavailable, LoadOutcome, LoadStatus
from zona9.record_store import ACTIVITY_NOTES, FUEL_RECORDS, RIG_MOVES, SITE_RECORDS, RecordStore
from zona9.runtime_logging import EventLogger, emit_event


def _read_plan(period: Period) -> dict[str, tuple[str, dict[str, Any]]]:
    in_period = {"date_range": (period.start, period.end), "order_by": "date"}
    plan = {
        "sites": (SITE_RECORDS, in_period),
        "fuel": (FUEL_RECORDS, in_period),
        "rig_moves": (RIG_MOVES, in_period),
        "notes": (ACTIVITY_NOTES, in_period),
    }
    if period.is_single:
        # Same query shape shifted back one day; only used for trend deltas.
        plan["previous_sites"] = (SITE_RECORDS, {"equals": {"date": period.previous_day}, "order_by": "name"})
    return plan


def _ordered_sites(rows: list[dict]) -> tuple[SiteRecord, ...]:
    records = [SiteRecord.from_row(r) for r in rows]
    return tuple(sorted(records, key=lambda r: (r.record_date, site_sort_key(r.name))))


def _build_snapshot(period: Period, raw: dict[str, list[dict]]) -> Snapshot:
    fuel = sorted((FuelRecord.from_row(r) for r in raw["fuel"]), key=lambda r: (r.record_date, site_sort_key(r.name)))
    moves = sorted((RigMoveRecord.from_row(r) for r in raw["rig_moves"]), key=lambda r: (r.move_date, site_sort_key(r.site)))
    notes = [ActivityNote.from_row(r) for r in raw["notes"]]
    notes = sorted((n for n in notes if not n.is_standing), key=lambda n: (n.note_date, site_sort_key(n.site)))
    return Snapshot(
        period=period,
        sites=_ordered_sites(raw["sites"]),
        fuel=tuple(fuel),
        rig_moves=tuple(moves),
        notes=tuple(notes),
        previous_sites=_ordered_sites(raw.get("previous_sites", [])),
    )


def assemble(store: RecordStore, period: Period, *, log_event: EventLogger | None = None) -> Snapshot:
    """Fetch every collection for `period` in parallel and join them into a Snapshot.

    Raises DataUnavailable when any read fails or returns malformed rows. An
    empty result set is not an error; the returned snapshot is simply empty.
    """
    if not isinstance(period, Period):
        raise TypeError("assemble() requires a Period.")
    plan = _read_plan(period)
    raw: dict[str, list[dict]] = {}
    with ThreadPoolExecutor(max_workers=len(plan), thread_name_prefix="zona9-read") as pool:
        futures = {key: (collection, pool.submit(store.select, collection, **kwargs)) for key, (collection, kwargs) in plan.items()}
        failure: tuple[str, BaseException] | None = None
        for key, (collection, future) in futures.items():
            try:
                raw[key] = future.result()
            except Exception as exc:
                if failure is None:
                    failure = (collection, exc)
    if failure is not None:
        collection, exc = failure
        emit_event(
            log_event,
            level="ERROR",
            event="snapshot_unavailable",
            message=f"Read failed for {collection}.",
            context={"period": period.label(), "collection": collection},
            exc=exc,
        )
        raise DataUnavailable(f"Could not load {collection.replace('_', ' ')}: {exc}", collection) from exc

    try:
        snapshot = _build_snapshot(period, raw)
    except ValueError as exc:
        emit_event(
            log_event,
            level="ERROR",
            event="snapshot_unavailable",
            message="Stored records failed validation.",
            context={"period": period.label()},
            exc=exc,
        )
        raise DataUnavailable(f"Stored records are malformed: {exc}") from exc

    emit_event(
        log_event,
        level="INFO",
        event="snapshot_assembled",
        message=f"Snapshot assembled for {period.label()}.",
        context={
            "period": period.label(),
            "sites": len(snapshot.sites),
            "fuel": len(snapshot.fuel),
            "rig_moves": len(snapshot.rig_moves),
            "notes": len(snapshot.notes),
            "previous_sites": len(snapshot.previous_sites),
        },
    )
    return snapshot


def load_period(store: RecordStore, period: Period, *, log_event: EventLogger | None = None) -> LoadOutcome:
    """Result-style wrapper: LOADED, NO_DATA (empty snapshot) or UNAVAILABLE."""
    try:
        snapshot = assemble(store, period, log_event=log_event)
    except DataUnavailable as exc:
        return LoadOutcome(LoadStatus.UNAVAILABLE, None, str(exc))
    if snapshot.is_empty:
        return LoadOutcome(LoadStatus.NO_DATA, snapshot, f"No report for {period.display_label()}.")
    return LoadOutcome(LoadStatus.LOADED, snapshot, "")


class SnapshotSlot:
    """Holds the page's current outcome; only the most recently started load may commit."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._outcome: LoadOutcome | None = None
        self._derived: dict[str, tuple[Any, Any]] = {}

    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def commit(self, ticket: int, outcome: LoadOutcome) -> bool:
        with self._lock:
            if ticket != self._generation:
                return False
            self._outcome = outcome
            self._derived = {}
            return True

    @property
    def current(self) -> LoadOutcome | None:
        return self._outcome

    @property
    def snapshot(self) -> Snapshot | None:
        return self._outcome.snapshot if self._outcome is not None else None

    def derived(self, key: str, compute: Callable[[Snapshot | None], Any]) -> Any:
        """Memoize `compute(snapshot)` on the identity of the current snapshot."""
        snapshot = self.snapshot
        with self._lock:
            cached = self._derived.get(key)
            if cached is not None and cached[0] is snapshot:
                return cached[1]
        value = compute(snapshot)
        with self._lock:
            if self.snapshot is snapshot:
                self._derived[key] = (snapshot, value)
        return value


def refresh_slot(
    slot: SnapshotSlot, store: RecordStore, period: Period, *, log_event: EventLogger | None = None
) -> LoadOutcome | None:
    ticket = slot.begin()
    outcome = load_period(store, period, log_event=log_event)
    if not slot.commit(ticket, outcome):
        emit_event(
            log_event,
            level="INFO",
            event="snapshot_superseded",
            message="A newer period load started; discarding this result.",
            context={"period": period.label(), "ticket": ticket},
        )
    return slot.current
