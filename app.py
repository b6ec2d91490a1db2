from __future__ import annotations

import html
import uuid
from datetime import date
from pathlib import Path

import pandas as pd
import requests
import streamlit as st
import streamlit.components.v1 as components

from zona9.assembler import SnapshotSlot, refresh_slot
from zona9.charts import (
    daily_flow_figure,
    fuel_category_figure,
    plotly_config,
    pob_figure,
    rig_move_figure,
    stock_distribution_figure,
)
from zona9.client_capture import build_capture_script
from zona9.config import load_config
from zona9.entry import (
    draft_from_frames,
    fuel_entry_frame,
    load_standing_note,
    notes_entry_frame,
    rig_move_entry_frame,
    save_report,
    save_standing_note,
    site_entry_frame,
)
from zona9.export_request import (
    OUTPUT_FORMATS,
    ExportRequest,
    client_capture_filename,
    period_from_dates,
)
from zona9.formatting import format_currency, format_flow, format_litres, format_number, trend_tone
from zona9.metrics import ZERO_TREND, ReportSummary, issue_receive_rows, summarize
from zona9.models import (
    DAILY_NOTES_DATE,
    FUEL_CATEGORIES,
    FUEL_CATEGORY_LABELS,
    WEEKLY_NOTES_DATE,
    ActivityNote,
    Period,
    Snapshot,
    ViewMode,
)
from zona9.outcomes import LoadOutcome, LoadStatus
from zona9.record_store import LocalJsonRecordStore, RecordStoreError
from zona9.render_mode import (
    SCROLL_CONTAINER_CLASS,
    page_stylesheet,
    resolve_render_mode,
    text_area_height,
)
from zona9.runtime_logging import (
    append_runtime_event,
    configure_log_root,
    install_global_exception_logging,
    read_runtime_events,
    runtime_log_path,
)
from zona9.sample_data import sample_draft


VIEW_LABELS = {
    "Daily": ViewMode.DAY,
    "Weekly": ViewMode.WEEK,
    "Input": ViewMode.ENTRY,
}


st.set_page_config(page_title="Zona 9 Operations Report", layout="wide")

CONFIG = load_config()
configure_log_root(CONFIG.storage_root)
install_global_exception_logging()
STORE = LocalJsonRecordStore(CONFIG.storage_root)

QUERY = st.query_params.to_dict()
MODE = resolve_render_mode(QUERY)
st.markdown(page_stylesheet(MODE, CONFIG.viewport_width), unsafe_allow_html=True)

st.session_state.setdefault("view_choice", "Daily")
st.session_state.setdefault("report_date", date.today())
st.session_state.setdefault("week_end", date.today())
st.session_state.setdefault("entry_date", date.today())
st.session_state.setdefault("entry_version", 0)
st.session_state.setdefault("runtime_log_limit", 100)


def _slot() -> SnapshotSlot:
    slot = st.session_state.get("snapshot_slot")
    if not isinstance(slot, SnapshotSlot):
        slot = SnapshotSlot()
        st.session_state["snapshot_slot"] = slot
    return slot


def _load(period: Period, *, force: bool = False) -> LoadOutcome:
    slot = _slot()
    if force or slot.current is None or st.session_state.get("slot_period") != period:
        st.session_state["slot_period"] = period
        refresh_slot(slot, STORE, period, log_event=append_runtime_event)
    return slot.current


def _summary(min_share: float) -> ReportSummary | None:
    return _slot().derived("summary", lambda snap: summarize(snap, min_share))


def _switch_to_entry() -> None:
    st.session_state["view_choice"] = "Input"
    period = st.session_state.get("slot_period")
    if isinstance(period, Period):
        st.session_state["entry_date"] = period.end


def _interactive_period(view: ViewMode) -> Period:
    if view == ViewMode.WEEK:
        return period_from_dates(view, st.session_state["week_end"])
    if view == ViewMode.ENTRY:
        return Period.single(st.session_state["entry_date"])
    return period_from_dates(view, st.session_state["report_date"])


def _card(label: str, value: str, *, trend: str | None = None, tone: str = "neutral", caption: str = "") -> str:
    pill = f'<span class="zona9-trend {tone}">{html.escape(trend)}</span>' if trend else ""
    foot = f'<div style="font-size:11px;color:#94a3b8;margin-top:4px;">{html.escape(caption)}</div>' if caption else ""
    return (
        '<div class="zona9-card">'
        f'<div style="display:flex;justify-content:space-between;align-items:center;">'
        f'<span style="font-size:11px;font-weight:700;color:#64748b;text-transform:uppercase;">{html.escape(label)}</span>{pill}</div>'
        f'<div style="font-size:22px;font-weight:800;color:#0f172a;margin-top:6px;">{html.escape(value)}</div>'
        f"{foot}</div>"
    )


def _html_table(headers: list[str], rows: list[list[str]], *, dot_colors: list[str] | None = None) -> str:
    head = "".join(f'<th style="text-align:{"left" if i == 0 else "right"};padding:6px 8px;">{html.escape(h)}</th>' for i, h in enumerate(headers))
    body = []
    for idx, row in enumerate(rows):
        cells = []
        for i, cell in enumerate(row):
            text = html.escape(cell)
            if i == 0 and dot_colors:
                text = f'<span class="zona9-site-dot" style="background:{dot_colors[idx]};"></span>{text}'
            cells.append(f'<td style="text-align:{"left" if i == 0 else "right"};padding:6px 8px;">{text}</td>')
        body.append(f"<tr>{''.join(cells)}</tr>")
    return (
        '<table style="width:100%;border-collapse:collapse;font-size:13px;">'
        f'<thead style="color:#64748b;font-size:11px;text-transform:uppercase;"><tr>{head}</tr></thead>'
        f"<tbody>{''.join(body)}</tbody></table>"
    )


def _plot(fig, key: str) -> None:
    st.plotly_chart(fig, width="stretch", config=plotly_config(MODE), key=key)


def _render_stat_cards(summary: ReportSummary) -> None:
    totals = summary.totals
    trends = summary.trends or {}
    baseline_note = "" if summary.has_baseline else "No prior-day data"
    weekly = summary.mode == "week"
    level_note = f"As of {summary.level_date:%d %b %Y}" if weekly and summary.level_date else ""

    def _trend(metric: str, higher_is_good: bool = True) -> tuple[str | None, str]:
        if weekly:
            return None, "neutral"
        value = trends.get(metric, ZERO_TREND)
        return value, trend_tone(value, higher_is_good=higher_is_good)

    c1, c2, c3, c4 = st.columns(4)
    trend, tone = _trend("issued")
    c1.markdown(
        _card("Good Issue", format_currency(totals.issued if totals else 0), trend=trend, tone=tone, caption="Week total" if weekly else baseline_note),
        unsafe_allow_html=True,
    )
    trend, tone = _trend("received")
    c2.markdown(
        _card("Good Receive", format_currency(totals.received if totals else 0), trend=trend, tone=tone, caption="Week total" if weekly else baseline_note),
        unsafe_allow_html=True,
    )
    trend, tone = _trend("stock")
    c3.markdown(
        _card("Stock Value", format_currency(totals.stock if totals else 0), trend=trend, tone=tone, caption=level_note if weekly else baseline_note),
        unsafe_allow_html=True,
    )
    c4.markdown(_card("Personnel On Board", format_number(totals.pob if totals else 0), caption=level_note), unsafe_allow_html=True)


def _render_site_panels(summary: ReportSummary, key_prefix: str) -> None:
    left, mid, right = st.columns([2, 1, 1])
    with left:
        st.markdown("**Stock Distribution**")
        _plot(stock_distribution_figure(summary.stock_shares), f"{key_prefix}_stock")
        rows = [s for s in summary.site_rows if s.stock > 0]
        st.markdown(
            _html_table(
                ["Site", "Stock", "Share"],
                [[s.name, format_currency(s.stock), next((e.label for e in summary.stock_shares if e.name == s.name), "")] for s in rows],
                dot_colors=[s.color for s in rows],
            ),
            unsafe_allow_html=True,
        )
    with mid:
        st.markdown("**POB**")
        _plot(pob_figure(summary.pob_shares, summary.totals.pob if summary.totals else 0), f"{key_prefix}_pob")
        st.markdown(
            _html_table(["Site", "POB"], [[s.name, format_number(s.pob)] for s in summary.site_rows], dot_colors=[s.color for s in summary.site_rows]),
            unsafe_allow_html=True,
        )
    with right:
        st.markdown("**Rig Move**")
        _plot(rig_move_figure(summary.rig_moves, summary.rig_move_total), f"{key_prefix}_rig")
        st.markdown(
            _html_table(["Site", "Moves"], [[g.site, format_number(g.count)] for g in summary.rig_moves], dot_colors=[g.color for g in summary.rig_moves]),
            unsafe_allow_html=True,
        )


def _render_flows(summary: ReportSummary) -> None:
    st.markdown("**Good Issue / Good Receive**")
    rows = issue_receive_rows(summary)
    if not rows:
        st.caption("No warehouse flows recorded.")
        return
    st.markdown(
        _html_table(
            ["Site", "Good Issue", "Good Receive"],
            [[r.name, format_flow(r.issued), format_flow(r.received)] for r in rows],
            dot_colors=[r.color for r in rows],
        ),
        unsafe_allow_html=True,
    )


def _render_fuel(summary: ReportSummary, key_prefix: str) -> None:
    st.markdown("**Fuel Consumption**")
    if summary.fuel is None:
        st.caption("No fuel records for this period.")
        return
    cols = st.columns(len(FUEL_CATEGORIES))
    for col, category in zip(cols, FUEL_CATEGORIES):
        with col:
            st.caption(FUEL_CATEGORY_LABELS[category])
            _plot(
                fuel_category_figure(summary.fuel_rows, category, summary.fuel.by_category[category], min_share=CONFIG.label_min_share),
                f"{key_prefix}_fuel_{category}",
            )
    st.markdown(
        _html_table(
            ["Site", *[FUEL_CATEGORY_LABELS[c] for c in FUEL_CATEGORIES], "Total"],
            [[r.name, *[format_litres(r.amounts[c]) for c in FUEL_CATEGORIES], format_litres(r.total)] for r in summary.fuel_rows],
            dot_colors=[r.color for r in summary.fuel_rows],
        ),
        unsafe_allow_html=True,
    )
    st.caption(f"Grand total: {format_litres(summary.fuel.grand_total)}")


def _notes_html(notes: tuple[ActivityNote, ...], snapshot: Snapshot, *, show_dates: bool) -> str:
    blocks = []
    for note in notes:
        color = snapshot.site_color(note.site)
        when = f" &middot; {note.note_date:%d %b}" if show_dates else ""
        items = "".join(
            '<div style="padding:4px 0;">'
            + (f'<div class="zona9-note-category">{html.escape(item.category)}</div>' if item.category else "")
            + f'<div style="font-size:13px;color:#334155;">{html.escape(item.description)}</div></div>'
            for item in note.items
        )
        blocks.append(
            '<div style="margin-bottom:12px;">'
            f'<div class="zona9-note-site"><span class="zona9-site-dot" style="background:{color};"></span>'
            f'{html.escape(note.site)}{when} <span style="float:right;font-size:10px;color:#94a3b8;">{note.event_label}</span></div>'
            f"{items}</div>"
        )
    return f'<div class="{SCROLL_CONTAINER_CLASS} zona9-card">{"".join(blocks)}</div>'


def _render_activity(snapshot: Snapshot, weekly: bool) -> None:
    st.markdown("**Activity Log**")
    if not snapshot.notes:
        st.caption("No activities recorded.")
        return
    st.markdown(_notes_html(snapshot.notes, snapshot, show_dates=weekly), unsafe_allow_html=True)


def _render_standing_notes(weekly: bool) -> None:
    slot_date = WEEKLY_NOTES_DATE if weekly else DAILY_NOTES_DATE
    st.markdown("**Weekly Notes**" if weekly else "**Daily Notes**")
    try:
        text = load_standing_note(STORE, slot_date)
    except (RecordStoreError, ValueError) as exc:
        append_runtime_event(level="ERROR", event="snapshot_unavailable", message="Standing notes could not be read.", exc=exc)
        st.warning("Standing notes are unavailable right now.")
        return
    if MODE.is_export:
        if text.strip():
            st.markdown(
                f'<div class="zona9-card" style="white-space:pre-wrap;font-size:13px;">{html.escape(text)}</div>',
                unsafe_allow_html=True,
            )
        else:
            st.caption("No notes.")
        return
    key = f"standing_note_{slot_date.isoformat()}"
    st.session_state.setdefault(key, text)
    st.text_area(
        "Notes",
        key=key,
        height=text_area_height(st.session_state[key], mode=MODE),
        label_visibility="collapsed",
    )
    if st.button("Save notes", key=f"{key}_save"):
        outcome = save_standing_note(STORE, slot_date, st.session_state[key], log_event=append_runtime_event)
        st.toast(outcome.message)


def _server_error_detail(exc: requests.RequestException) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return f"{body['error']} ({response.status_code})"
        return f"capture service returned HTTP {response.status_code}"
    return str(exc)


def _request_server_export(export_request: ExportRequest, fmt: str) -> None:
    url = export_request.endpoint_url(CONFIG.capture_url, fmt)
    st.session_state.pop("export_file", None)
    try:
        with st.spinner("Rendering high-resolution report..."):
            response = requests.get(url, timeout=CONFIG.capture_request_timeout_sec)
            response.raise_for_status()
    except requests.RequestException as exc:
        detail = _server_error_detail(exc)
        append_runtime_event(
            level="ERROR",
            event="export_request_failed",
            message=detail,
            context={"url": url, "format": fmt, "period": export_request.period.label()},
            exc=exc,
        )
        st.toast(f"Export failed: {detail}. Quick PNG captures in this browser instead.")
        return
    st.session_state["export_file"] = {
        "data": response.content,
        "file_name": export_request.filename(fmt),
        "mime": OUTPUT_FORMATS[fmt],
    }


def _render_export_bar(view: ViewMode, period: Period) -> None:
    export_request = ExportRequest(period=period, view=view, host=CONFIG.public_host)
    c1, c2, c3, c4 = st.columns([1, 1, 1, 3])
    if c1.button("Export HD PNG", key="export_png"):
        _request_server_export(export_request, "png")
    if c2.button("Export HD PDF", key="export_pdf"):
        _request_server_export(export_request, "pdf")
    if c3.button("Quick PNG", key="export_client", help="Capture in this browser; lower fidelity than the HD export."):
        filename = client_capture_filename(period)
        append_runtime_event(
            level="INFO",
            event="client_capture_requested",
            message="In-browser capture requested.",
            context={"period": period.label(), "filename": filename},
        )
        components.html(
            build_capture_script(filename, viewport_width=CONFIG.viewport_width, nonce=uuid.uuid4().hex),
            height=0,
        )
    ready = st.session_state.get("export_file")
    if ready:
        c4.download_button(
            f"Download {ready['file_name']}",
            ready["data"],
            file_name=ready["file_name"],
            mime=ready["mime"],
            key="export_download",
        )


def _render_dashboard(view: ViewMode, period: Period) -> None:
    weekly = view == ViewMode.WEEK
    st.title("ZONA 9 Operations Report")
    st.caption(("Weekly report · " if weekly else "Daily report · ") + period.display_label())
    if not MODE.is_export:
        _render_export_bar(view, period)

    outcome = _load(period, force=MODE.is_export)
    if outcome.status == LoadStatus.UNAVAILABLE:
        st.toast(outcome.message)
        st.error(f"Report data is unavailable: {outcome.message}")
        return
    summary = _summary(CONFIG.label_min_share)
    if outcome.status == LoadStatus.NO_DATA or summary is None:
        st.info(outcome.message or f"No report for {period.display_label()}.")
        if not MODE.is_export:
            st.button("Enter data for this date", key="goto_entry", on_click=_switch_to_entry)
        return

    key_prefix = f"{view.value}_{period.label()}"
    _render_stat_cards(summary)
    st.write("")
    _render_site_panels(summary, key_prefix)
    if weekly and summary.daily_flows is not None:
        st.markdown("**Daily Flow**")
        _plot(daily_flow_figure(summary.daily_flows), f"{key_prefix}_flows")
    left, right = st.columns([1, 1])
    with left:
        _render_flows(summary)
        st.write("")
        _render_fuel(summary, key_prefix)
    with right:
        _render_activity(outcome.snapshot, weekly)
        _render_standing_notes(weekly)


def _load_sample_data() -> None:
    day = st.session_state["entry_date"]
    draft = sample_draft(day)
    st.session_state["entry_frames"] = {
        "day": day,
        "snapshot": Snapshot(period=Period.single(day), sites=draft.sites, fuel=draft.fuel, notes=draft.notes),
    }
    st.session_state["entry_version"] += 1


def _render_entry(day: date) -> None:
    st.title("Daily Input")
    st.caption(f"Report date: {day:%d %b %Y}")
    outcome = _load(Period.single(day))
    if outcome.status == LoadStatus.UNAVAILABLE:
        st.error(f"Existing records could not be loaded: {outcome.message}")

    seeded = st.session_state.get("entry_frames")
    if isinstance(seeded, dict) and seeded.get("day") == day:
        snapshot = seeded["snapshot"]
    else:
        snapshot = outcome.snapshot
    st.button("Load sample data", key="load_sample", on_click=_load_sample_data)

    version = f"{day.isoformat()}_{st.session_state['entry_version']}"
    st.subheader("Sites")
    sites_df = st.data_editor(
        site_entry_frame(snapshot),
        key=f"sites_editor_{version}",
        hide_index=True,
        num_rows="dynamic",
        width="stretch",
        column_config={
            "name": st.column_config.TextColumn("Site"),
            "issued": st.column_config.NumberColumn("Good Issue (Rp)", min_value=0.0, format="%.0f"),
            "received": st.column_config.NumberColumn("Good Receive (Rp)", min_value=0.0, format="%.0f"),
            "stock": st.column_config.NumberColumn("Stock (Rp)", min_value=0.0, format="%.0f"),
            "pob": st.column_config.NumberColumn("POB", min_value=0, step=1, format="%d"),
        },
    )
    st.subheader("Fuel (litres)")
    fuel_df = st.data_editor(
        fuel_entry_frame(snapshot),
        key=f"fuel_editor_{version}",
        hide_index=True,
        num_rows="dynamic",
        width="stretch",
        column_config={"name": st.column_config.TextColumn("Site")}
        | {c: st.column_config.NumberColumn(FUEL_CATEGORY_LABELS[c], min_value=0.0, format="%.0f") for c in FUEL_CATEGORIES},
    )
    st.subheader("Rig Moves")
    rig_df = st.data_editor(
        rig_move_entry_frame(snapshot),
        key=f"rig_editor_{version}",
        hide_index=True,
        num_rows="dynamic",
        width="stretch",
    )
    st.subheader("Activities")
    st.caption("One activity per line, written as `Category: description`.")
    notes_df = st.data_editor(
        notes_entry_frame(snapshot),
        key=f"notes_editor_{version}",
        hide_index=True,
        num_rows="dynamic",
        width="stretch",
        column_config={"site": st.column_config.TextColumn("Site"), "text": st.column_config.TextColumn("Activities", width="large")},
    )

    if st.button("Save report", key="save_report", type="primary"):
        try:
            draft = draft_from_frames(day, sites_df, fuel_df, rig_df, notes_df)
        except ValueError as exc:
            st.error(str(exc))
            return
        result = save_report(STORE, draft, log_event=append_runtime_event)
        if result.ok:
            st.session_state.pop("entry_frames", None)
            _load(Period.single(day), force=True)
            st.success(result.message)
        else:
            st.error(result.message)
            if result.applied:
                st.caption("Already written: " + ", ".join(c.replace("_", " ") for c in result.applied))


def _render_diagnostics() -> None:
    with st.expander("Diagnostics", expanded=False):
        log_path = Path(runtime_log_path())
        st.caption(f"Runtime log file: `{log_path}`")
        st.number_input("Recent runtime log rows", min_value=20, max_value=2000, step=20, key="runtime_log_limit")
        runtime_events = read_runtime_events(limit=int(st.session_state["runtime_log_limit"]))
        if runtime_events:
            runtime_df = pd.DataFrame(runtime_events)
            preferred_cols = ["timestamp_utc", "level", "event", "message", "exception_type", "exception_message", "context"]
            cols = [c for c in preferred_cols if c in runtime_df.columns]
            st.dataframe(runtime_df[cols].astype(str), width="stretch", hide_index=True)
        else:
            st.caption("No runtime events logged yet.")
        if log_path.exists():
            st.download_button(
                "Download Runtime Log (JSONL)",
                log_path.read_text(encoding="utf-8"),
                file_name="zona9_runtime_events.jsonl",
                mime="application/x-ndjson",
            )


if MODE.is_export:
    try:
        EXPORT_REQUEST = ExportRequest.from_query_params(QUERY, require_host=False)
    except ValueError as exc:
        append_runtime_event(
            level="WARNING",
            event="capture_request_rejected",
            message=str(exc),
            context={"query": QUERY},
        )
        st.error(f"Invalid export parameters: {exc}")
        st.stop()
    if EXPORT_REQUEST.view == ViewMode.ENTRY:
        st.info("The input view has no exportable report.")
        st.stop()
    _render_dashboard(EXPORT_REQUEST.view, EXPORT_REQUEST.period)
else:
    with st.sidebar:
        st.header("ZONA 9")
        st.radio("View", list(VIEW_LABELS.keys()), key="view_choice")
        VIEW = VIEW_LABELS[st.session_state["view_choice"]]
        if VIEW == ViewMode.WEEK:
            st.date_input("Week ending", key="week_end")
        elif VIEW == ViewMode.ENTRY:
            st.date_input("Report date", key="entry_date")
        else:
            st.date_input("Report date", key="report_date")
        if st.button("Refresh data", key="refresh_data"):
            _load(_interactive_period(VIEW), force=True)
        _render_diagnostics()

    if VIEW == ViewMode.ENTRY:
        _render_entry(st.session_state["entry_date"])
    else:
        _render_dashboard(VIEW, _interactive_period(VIEW))
