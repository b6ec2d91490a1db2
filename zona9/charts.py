"""Plotly figure builders for the dashboard panels."""

from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go

from zona9.formatting import format_currency, format_number
from zona9.metrics import LABEL_MIN_SHARE, FuelRow, RigMoveGroup, ShareEntry, share_entries
from zona9.render_mode import RenderMode


IDLE_SLICE_COLOR = "#f1f5f9"
ISSUED_COLOR = "#10b981"
RECEIVED_COLOR = "#f43f5e"
FUEL_COLOR = "#4f46e5"
FONT_FAMILY = "Inter, 'Source Sans Pro', sans-serif"


def plotly_config(mode: RenderMode) -> dict:
    if mode.is_export:
        return {"staticPlot": True, "displayModeBar": False, "responsive": False}
    return {"displaylogo": False, "responsive": True, "modeBarButtonsToRemove": ["lasso2d", "select2d"]}


def _finish(fig: go.Figure, height: int, *, margin: int = 8) -> go.Figure:
    fig.update_layout(
        height=height,
        margin={"l": margin, "r": margin, "t": margin, "b": margin},
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font={"family": FONT_FAMILY, "size": 11, "color": "#0f172a"},
        showlegend=False,
        # No animated transitions, so a capture never lands mid-frame.
        transition={"duration": 0},
    )
    return fig


def _donut(
    shares: list[ShareEntry],
    *,
    hole: float,
    height: int,
    center_text: str = "",
    show_labels: bool = False,
    hover_format: str = "%{label}: %{value:,.0f}<extra></extra>",
) -> go.Figure:
    fig = go.Figure(
        go.Pie(
            labels=[s.name for s in shares],
            values=[s.value for s in shares],
            marker={"colors": [s.color for s in shares], "line": {"width": 0}},
            hole=hole,
            sort=False,
            direction="clockwise",
            text=[s.label for s in shares] if show_labels else None,
            textinfo="text" if show_labels else "none",
            textposition="outside",
            textfont={"size": 10, "color": "#64748b"},
            hovertemplate=hover_format,
        )
    )
    if center_text:
        fig.add_annotation(
            text=f"<b>{center_text}</b>", x=0.5, y=0.5, showarrow=False, font={"size": 16, "color": "#0f172a"}
        )
    return _finish(fig, height, margin=24 if show_labels else 4)


def _idle_donut(height: int, center_text: str) -> go.Figure:
    return _donut([ShareEntry("none", 1.0, 1.0, "", IDLE_SLICE_COLOR)], hole=0.66, height=height, center_text=center_text)


def stock_distribution_figure(shares: list[ShareEntry], height: int = 220) -> go.Figure:
    """Stock share donut; slices under the label threshold are drawn but left unlabeled."""
    if not shares:
        return _idle_donut(height, "-")
    return _donut(shares, hole=0.7, height=height, show_labels=True, hover_format="%{label}: Rp %{value:,.0f}<extra></extra>")


def pob_figure(shares: list[ShareEntry], total: int, height: int = 140) -> go.Figure:
    if not shares or not total:
        return _idle_donut(height, format_number(total))
    return _donut(shares, hole=0.66, height=height, center_text=format_number(total))


def rig_move_figure(groups: list[RigMoveGroup], total: int, height: int = 140) -> go.Figure:
    active = [g for g in groups if g.count > 0]
    if not active:
        return _idle_donut(height, "0")
    shares = share_entries((g.site, float(g.count), g.color) for g in active)
    return _donut(shares, hole=0.66, height=height, center_text=format_number(total))


def fuel_category_figure(
    rows: list[FuelRow], category: str, total: float, height: int = 110, min_share: float = LABEL_MIN_SHARE
) -> go.Figure:
    shares = share_entries(((r.name, r.amounts.get(category, 0.0), r.color) for r in rows), min_share)
    if not shares or not total:
        return _idle_donut(height, "0 L")
    return _donut(shares, hole=0.62, height=height, center_text=f"{format_number(total)} L", hover_format="%{label}: %{value:,.0f} L<extra></extra>")


def daily_flow_figure(flows: pd.DataFrame, height: int = 260) -> go.Figure:
    """Issued vs received per day, with fuel litres on a secondary axis."""
    labels = [pd.Timestamp(d).strftime("%d %b") for d in flows["date"]]
    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=labels,
            y=flows["issued"],
            name="Good Issue",
            marker_color=ISSUED_COLOR,
            customdata=[format_currency(v) for v in flows["issued"]],
            hovertemplate="%{x}: %{customdata}<extra>Good Issue</extra>",
        )
    )
    fig.add_trace(
        go.Bar(
            x=labels,
            y=flows["received"],
            name="Good Receive",
            marker_color=RECEIVED_COLOR,
            customdata=[format_currency(v) for v in flows["received"]],
            hovertemplate="%{x}: %{customdata}<extra>Good Receive</extra>",
        )
    )
    fig.add_trace(
        go.Scatter(
            x=labels,
            y=flows["fuel"],
            name="Fuel (L)",
            yaxis="y2",
            mode="lines+markers",
            line={"color": FUEL_COLOR, "width": 2},
            hovertemplate="%{x}: %{y:,.0f} L<extra>Fuel</extra>",
        )
    )
    _finish(fig, height, margin=36)
    fig.update_layout(
        barmode="group",
        showlegend=True,
        legend={"orientation": "h", "y": 1.12, "x": 0},
        yaxis={"title": None, "gridcolor": "#f1f5f9", "tickformat": "~s"},
        yaxis2={"overlaying": "y", "side": "right", "showgrid": False, "tickformat": "~s"},
    )
    return fig
