"""Typed report entities, site catalog constants and period helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable
from uuid import uuid4


COORDINATOR_SITE = "ZONA 9"

SITE_COLORS = {
    "PHSS": "#6366f1",
    "SANGASANGA": "#10b981",
    "SANGATTA": "#f59e0b",
    "TANJUNG": "#f43f5e",
    COORDINATOR_SITE: "#0ea5e9",
}
SITE_NAMES = list(SITE_COLORS.keys())
RIG_MOVE_SITES = ("SANGASANGA", "SANGATTA", "TANJUNG")
NEUTRAL_COLOR = "#94a3b8"

FUEL_CATEGORIES = ("biosolar", "pertalite", "pertadex")
FUEL_CATEGORY_LABELS = {
    "biosolar": "BIOSOLAR",
    "pertalite": "PERTALITE",
    "pertadex": "PERTADEX",
}

# Standing notes live outside the calendar under reserved dates.
DAILY_NOTES_DATE = date(1900, 1, 1)
WEEKLY_NOTES_DATE = date(1900, 1, 2)
STANDING_NOTE_DATES = {DAILY_NOTES_DATE, WEEKLY_NOTES_DATE}

DATE_FORMAT = "%Y-%m-%d"
DISPLAY_DATE_FORMAT = "%d %b %Y"


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    ENTRY = "entry"

    @classmethod
    def parse(cls, value: Any) -> "ViewMode":
        if isinstance(value, ViewMode):
            return value
        text = str(value or "").strip().lower()
        for mode in cls:
            if mode.value == text:
                return mode
        raise ValueError(f"Unsupported view mode: {value!r}")


def parse_date(value: Any) -> date:
    """Coerce a date, datetime or ISO `YYYY-MM-DD` string into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValueError("Date is required.")
    try:
        return datetime.strptime(text[:10], DATE_FORMAT).date()
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value!r}") from exc


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def site_color(name: str) -> str:
    return SITE_COLORS.get(str(name).strip().upper(), NEUTRAL_COLOR)


def site_sort_key(name: str) -> tuple[int, str]:
    key = str(name).strip().upper()
    if key in SITE_COLORS:
        return SITE_NAMES.index(key), key
    return len(SITE_NAMES), key


def _number(row: dict, key: str) -> float:
    value = row.get(key)
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Field '{key}' is not numeric: {row.get(key)!r}") from exc
    if math.isnan(out):
        return 0.0
    return out


def _name(row: dict, key: str) -> str:
    text = str(row.get(key) or "").strip().upper()
    if not text:
        raise ValueError(f"Field '{key}' is required.")
    return text


@dataclass(frozen=True)
class Period:
    """A single calendar day (start == end) or a closed date interval."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Period start {self.start} is after end {self.end}.")

    @classmethod
    def single(cls, day: Any) -> "Period":
        d = parse_date(day)
        return cls(d, d)

    @classmethod
    def interval(cls, start: Any, end: Any) -> "Period":
        return cls(parse_date(start), parse_date(end))

    @classmethod
    def week_ending(cls, day: Any, days: int = 7) -> "Period":
        end = parse_date(day)
        return cls(end - timedelta(days=max(1, int(days)) - 1), end)

    @property
    def is_single(self) -> bool:
        return self.start == self.end

    @property
    def previous_day(self) -> date:
        return self.start - timedelta(days=1)

    def days(self) -> list[date]:
        span = (self.end - self.start).days
        return [self.start + timedelta(days=i) for i in range(span + 1)]

    def label(self) -> str:
        if self.is_single:
            return format_date(self.start)
        return f"{format_date(self.start)}_to_{format_date(self.end)}"

    def display_label(self) -> str:
        if self.is_single:
            return self.start.strftime(DISPLAY_DATE_FORMAT)
        return f"{self.start.strftime(DISPLAY_DATE_FORMAT)} - {self.end.strftime(DISPLAY_DATE_FORMAT)}"


@dataclass(frozen=True)
class SiteRecord:
    name: str
    record_date: date
    issued: float = 0.0
    received: float = 0.0
    stock: float = 0.0
    pob: int = 0
    color: str = NEUTRAL_COLOR

    @classmethod
    def from_row(cls, row: dict) -> "SiteRecord":
        name = _name(row, "name")
        color = str(row.get("color") or "").strip() or site_color(name)
        return cls(
            name=name,
            record_date=parse_date(row.get("date")),
            issued=_number(row, "issued"),
            received=_number(row, "received"),
            stock=_number(row, "stock"),
            pob=int(round(_number(row, "pob"))),
            color=color,
        )

    def to_row(self) -> dict:
        return {
            "name": self.name,
            "date": format_date(self.record_date),
            "issued": self.issued,
            "received": self.received,
            "stock": self.stock,
            "pob": self.pob,
            "color": self.color,
        }


@dataclass(frozen=True)
class FuelRecord:
    name: str
    record_date: date
    biosolar: float = 0.0
    pertalite: float = 0.0
    pertadex: float = 0.0

    @classmethod
    def from_row(cls, row: dict) -> "FuelRecord":
        return cls(
            name=_name(row, "name"),
            record_date=parse_date(row.get("date")),
            biosolar=_number(row, "biosolar"),
            pertalite=_number(row, "pertalite"),
            pertadex=_number(row, "pertadex"),
        )

    def amount(self, category: str) -> float:
        if category not in FUEL_CATEGORIES:
            raise KeyError(category)
        return float(getattr(self, category))

    @property
    def total(self) -> float:
        return self.biosolar + self.pertalite + self.pertadex

    def to_row(self) -> dict:
        return {
            "name": self.name,
            "date": format_date(self.record_date),
            "biosolar": self.biosolar,
            "pertalite": self.pertalite,
            "pertadex": self.pertadex,
        }


@dataclass(frozen=True)
class RigMoveRecord:
    site: str
    rig: str
    origin: str
    destination: str
    move_date: date
    record_id: str = field(default_factory=lambda: uuid4().hex)

    @classmethod
    def from_row(cls, row: dict) -> "RigMoveRecord":
        return cls(
            site=_name(row, "site"),
            rig=str(row.get("rig") or "").strip(),
            origin=str(row.get("origin") or "").strip(),
            destination=str(row.get("destination") or "").strip(),
            move_date=parse_date(row.get("date")),
            record_id=str(row.get("id") or "").strip() or uuid4().hex,
        )

    def to_row(self) -> dict:
        return {
            "id": self.record_id,
            "site": self.site,
            "rig": self.rig,
            "origin": self.origin,
            "destination": self.destination,
            "date": format_date(self.move_date),
        }


@dataclass(frozen=True)
class ActivityItem:
    category: str
    description: str


def _parse_items(raw: Any) -> tuple[ActivityItem, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return parse_note_text(raw)
    items: list[ActivityItem] = []
    for entry in raw:
        if isinstance(entry, ActivityItem):
            items.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        description = str(entry.get("description") or "").strip()
        if not description:
            continue
        items.append(ActivityItem(str(entry.get("category") or "").strip(), description))
    return tuple(items)


def parse_note_text(text: str) -> tuple[ActivityItem, ...]:
    """Parse `Category: description` lines; lines without a category keep an empty one."""
    items: list[ActivityItem] = []
    for line in str(text or "").splitlines():
        line = line.strip().lstrip("-*").strip()
        if not line:
            continue
        category, sep, description = line.partition(":")
        if sep and category.strip() and description.strip() and len(category.strip()) <= 32:
            items.append(ActivityItem(category.strip(), description.strip()))
        else:
            items.append(ActivityItem("", line))
    return tuple(items)


def note_text(items: Iterable[ActivityItem]) -> str:
    lines = []
    for item in items:
        lines.append(f"{item.category}: {item.description}" if item.category else item.description)
    return "\n".join(lines)


@dataclass(frozen=True)
class ActivityNote:
    site: str
    note_date: date
    items: tuple[ActivityItem, ...] = ()

    @classmethod
    def from_row(cls, row: dict) -> "ActivityNote":
        raw_items = row.get("items")
        if raw_items is None:
            raw_items = row.get("text")
        return cls(site=_name(row, "site"), note_date=parse_date(row.get("date")), items=_parse_items(raw_items))

    @property
    def is_standing(self) -> bool:
        return self.note_date in STANDING_NOTE_DATES

    @property
    def event_label(self) -> str:
        count = len(self.items)
        return f"{count} EVENT{'S' if count != 1 else ''}"

    def to_row(self) -> dict:
        return {
            "site": self.site,
            "date": format_date(self.note_date),
            "items": [{"category": i.category, "description": i.description} for i in self.items],
        }


@dataclass(frozen=True)
class Snapshot:
    """Immutable record sets for one period plus the prior-day site baseline."""

    period: Period
    sites: tuple[SiteRecord, ...] = ()
    fuel: tuple[FuelRecord, ...] = ()
    rig_moves: tuple[RigMoveRecord, ...] = ()
    notes: tuple[ActivityNote, ...] = ()
    previous_sites: tuple[SiteRecord, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.sites or self.fuel or self.rig_moves or self.notes)

    @property
    def has_baseline(self) -> bool:
        return bool(self.previous_sites)

    def site_color(self, name: str) -> str:
        key = str(name).strip().upper()
        for record in reversed(self.sites):
            if record.name == key:
                return record.color
        return NEUTRAL_COLOR

    def site_dates(self) -> list[date]:
        return sorted({r.record_date for r in self.sites})

    def sites_on(self, day: date) -> tuple[SiteRecord, ...]:
        return tuple(r for r in self.sites if r.record_date == day)

    def latest_sites(self) -> tuple[SiteRecord, ...]:
        dates = self.site_dates()
        if not dates:
            return ()
        return self.sites_on(dates[-1])
