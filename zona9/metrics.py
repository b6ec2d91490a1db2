"""Display aggregates derived from a snapshot. Pure functions, no I/O."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

import pandas as pd

from zona9.models import (
    COORDINATOR_SITE,
    FUEL_CATEGORIES,
    RIG_MOVE_SITES,
    FuelRecord,
    SiteRecord,
    Snapshot,
    site_sort_key,
)


LABEL_MIN_SHARE = 0.01
ZERO_TREND = "+0.00%"
TREND_METRICS = ("issued", "received", "stock")


def _safe_div(a: float, b: float) -> float:
    return float(a / b) if b else 0.0


def trend_delta(current: float, previous: float | None) -> str:
    """Signed percent change; a zero (or missing) baseline reads exactly "+0.00%"."""
    if not previous:
        return ZERO_TREND
    pct = (float(current) - float(previous)) / float(previous) * 100.0
    if round(pct, 2) == 0:
        return ZERO_TREND
    return f"{pct:+.2f}%"


@dataclass(frozen=True)
class ShareEntry:
    name: str
    value: float
    share: float
    label: str
    color: str


def share_entries(
    items: Iterable[tuple[str, float, str]], min_share: float = LABEL_MIN_SHARE
) -> list[ShareEntry]:
    """Proportions of a series; entries under `min_share` keep their value but get no label."""
    rows = [(str(n), float(v or 0.0), str(c)) for n, v, c in items]
    total = sum(v for _, v, _ in rows)
    out: list[ShareEntry] = []
    for name, value, color in rows:
        share = _safe_div(value, total)
        label = f"{share * 100:.1f}%" if total and share >= min_share else ""
        out.append(ShareEntry(name=name, value=value, share=share, label=label, color=color))
    return out


@dataclass(frozen=True)
class SiteTotals:
    issued: float
    received: float
    stock: float
    pob: int


@dataclass(frozen=True)
class FuelTotals:
    by_category: dict[str, float]
    grand_total: float


@dataclass(frozen=True)
class SiteRow:
    name: str
    color: str
    issued: float = 0.0
    received: float = 0.0
    stock: float = 0.0
    pob: int = 0


@dataclass(frozen=True)
class FuelRow:
    name: str
    color: str
    amounts: dict[str, float]

    @property
    def total(self) -> float:
        return sum(self.amounts.values())


@dataclass(frozen=True)
class RigMoveGroup:
    site: str
    count: int
    color: str


@dataclass(frozen=True)
class ReportSummary:
    mode: str
    totals: SiteTotals | None
    fuel: FuelTotals | None
    site_rows: list[SiteRow]
    fuel_rows: list[FuelRow]
    rig_moves: list[RigMoveGroup]
    rig_move_total: int
    stock_shares: list[ShareEntry]
    pob_shares: list[ShareEntry]
    trends: dict[str, str] | None = None
    has_baseline: bool = False
    level_date: date | None = None
    daily_flows: pd.DataFrame | None = field(default=None, compare=False)


def site_totals(records: Iterable[SiteRecord]) -> SiteTotals | None:
    """Plain additive sums; None when there are no records at all."""
    rows = list(records)
    if not rows:
        return None
    return SiteTotals(
        issued=sum(r.issued for r in rows),
        received=sum(r.received for r in rows),
        stock=sum(r.stock for r in rows),
        pob=int(sum(r.pob for r in rows)),
    )


def fuel_totals(records: Iterable[FuelRecord]) -> FuelTotals | None:
    rows = list(records)
    if not rows:
        return None
    by_category = {c: sum(r.amount(c) for r in rows) for c in FUEL_CATEGORIES}
    return FuelTotals(by_category=by_category, grand_total=sum(by_category.values()))


def group_rig_moves(snapshot: Snapshot) -> dict[str, RigMoveGroup]:
    """Count moves per site, colored by the site's current record (neutral when unknown)."""
    counts: dict[str, int] = {}
    for move in snapshot.rig_moves:
        counts[move.site] = counts.get(move.site, 0) + 1
    return {site: RigMoveGroup(site, count, snapshot.site_color(site)) for site, count in counts.items()}


def rig_move_panel(snapshot: Snapshot) -> list[RigMoveGroup]:
    """Fixed rig-move sites first (zero when idle), then any other site with moves."""
    groups = group_rig_moves(snapshot)
    out = [groups.get(s, RigMoveGroup(s, 0, snapshot.site_color(s))) for s in RIG_MOVE_SITES]
    extra = sorted((g for s, g in groups.items() if s not in RIG_MOVE_SITES), key=lambda g: site_sort_key(g.site))
    return out + extra


def _trends(snapshot: Snapshot, current: SiteTotals | None) -> dict[str, str] | None:
    if current is None:
        return None
    previous = site_totals(snapshot.previous_sites)
    return {m: trend_delta(getattr(current, m), getattr(previous, m) if previous else 0.0) for m in TREND_METRICS}


def _fuel_rows(snapshot: Snapshot, fuel_frame: pd.DataFrame | None = None) -> list[FuelRow]:
    if fuel_frame is None:
        return [
            FuelRow(r.name, snapshot.site_color(r.name), {c: r.amount(c) for c in FUEL_CATEGORIES})
            for r in sorted(snapshot.fuel, key=lambda r: site_sort_key(r.name))
        ]
    rows = []
    for name, values in fuel_frame.iterrows():
        rows.append(FuelRow(str(name), snapshot.site_color(str(name)), {c: float(values[c]) for c in FUEL_CATEGORIES}))
    return sorted(rows, key=lambda r: site_sort_key(r.name))


def _stock_shares(rows: list[SiteRow], min_share: float) -> list[ShareEntry]:
    return share_entries(((r.name, r.stock, r.color) for r in rows if r.stock > 0), min_share)


def _pob_shares(rows: list[SiteRow], min_share: float) -> list[ShareEntry]:
    return share_entries(((r.name, float(r.pob), r.color) for r in rows), min_share)


def daily_summary(snapshot: Snapshot, min_share: float = LABEL_MIN_SHARE) -> ReportSummary | None:
    if snapshot.is_empty:
        return None
    records = snapshot.sites
    totals = site_totals(records)
    site_rows = [
        SiteRow(r.name, r.color, r.issued, r.received, r.stock, r.pob)
        for r in sorted(records, key=lambda r: site_sort_key(r.name))
    ]
    moves = rig_move_panel(snapshot)
    return ReportSummary(
        mode="day",
        totals=totals,
        fuel=fuel_totals(snapshot.fuel),
        site_rows=site_rows,
        fuel_rows=_fuel_rows(snapshot),
        rig_moves=moves,
        rig_move_total=len(snapshot.rig_moves),
        stock_shares=_stock_shares(site_rows, min_share),
        pob_shares=_pob_shares(site_rows, min_share),
        trends=_trends(snapshot, totals),
        has_baseline=snapshot.has_baseline,
        level_date=snapshot.period.start if records else None,
    )


def daily_flows(snapshot: Snapshot) -> pd.DataFrame:
    """Per-day flow totals across the period, zero-filled for days without records."""
    index = pd.Index(snapshot.period.days(), name="date")
    out = pd.DataFrame(index=index, data={"issued": 0.0, "received": 0.0, "fuel": 0.0})
    if snapshot.sites:
        sites = pd.DataFrame([{"date": r.record_date, "issued": r.issued, "received": r.received} for r in snapshot.sites])
        by_day = sites.groupby("date")[["issued", "received"]].sum()
        out.loc[by_day.index, ["issued", "received"]] = by_day.to_numpy()
    if snapshot.fuel:
        fuel = pd.DataFrame([{"date": r.record_date, "fuel": r.total} for r in snapshot.fuel])
        by_day = fuel.groupby("date")["fuel"].sum()
        out.loc[by_day.index, "fuel"] = by_day.to_numpy()
    return out.reset_index()


def weekly_summary(snapshot: Snapshot, min_share: float = LABEL_MIN_SHARE) -> ReportSummary | None:
    """Flows are summed over every day; stock and POB come from the last day with site records."""
    if snapshot.is_empty:
        return None
    level_records = snapshot.latest_sites()
    level_by_site = {r.name: r for r in level_records}
    site_rows: list[SiteRow] = []
    totals: SiteTotals | None = None
    if snapshot.sites:
        frame = pd.DataFrame([r.to_row() for r in snapshot.sites])
        flows = frame.groupby("name")[["issued", "received"]].sum()
        for name in sorted(flows.index, key=site_sort_key):
            level = level_by_site.get(name)
            site_rows.append(
                SiteRow(
                    name=name,
                    color=snapshot.site_color(name),
                    issued=float(flows.loc[name, "issued"]),
                    received=float(flows.loc[name, "received"]),
                    stock=level.stock if level else 0.0,
                    pob=level.pob if level else 0,
                )
            )
        level_totals = site_totals(level_records)
        totals = SiteTotals(
            issued=float(flows["issued"].sum()),
            received=float(flows["received"].sum()),
            stock=level_totals.stock if level_totals else 0.0,
            pob=level_totals.pob if level_totals else 0,
        )

    fuel_rows: list[FuelRow] = []
    if snapshot.fuel:
        fuel_frame = pd.DataFrame([r.to_row() for r in snapshot.fuel]).groupby("name")[list(FUEL_CATEGORIES)].sum()
        fuel_rows = _fuel_rows(snapshot, fuel_frame)

    return ReportSummary(
        mode="week",
        totals=totals,
        fuel=fuel_totals(snapshot.fuel),
        site_rows=site_rows,
        fuel_rows=fuel_rows,
        rig_moves=rig_move_panel(snapshot),
        rig_move_total=len(snapshot.rig_moves),
        stock_shares=_stock_shares(site_rows, min_share),
        pob_shares=_pob_shares(site_rows, min_share),
        trends=None,
        has_baseline=False,
        level_date=level_records[0].record_date if level_records else None,
        daily_flows=daily_flows(snapshot),
    )


def summarize(snapshot: Snapshot | None, min_share: float = LABEL_MIN_SHARE) -> ReportSummary | None:
    if snapshot is None:
        return None
    if snapshot.period.is_single:
        return daily_summary(snapshot, min_share)
    return weekly_summary(snapshot, min_share)


def issue_receive_rows(summary: ReportSummary) -> list[SiteRow]:
    """Rows for the issue/receive table; the coordinating site carries no warehouse flows."""
    return [r for r in summary.site_rows if r.name != COORDINATOR_SITE]
