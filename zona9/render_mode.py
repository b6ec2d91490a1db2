"""Interactive vs export rendering: layout rules and the capture readiness contract.

The mode is decided once from the page's launch parameters. Export mode is the
non-interactive rendering used for automated capture: controls are hidden,
height-capped containers are expanded, animations are off, and the page is only
considered ready once web fonts are loaded, at least one chart surface is in the
DOM, and a settle delay has elapsed after both became true.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from zona9.config import AppConfig
from zona9.export_request import is_export_requested


CHART_SELECTOR = ".js-plotly-plot .main-svg"
CONTENT_ROOT_SELECTOR = '[data-testid="stAppViewContainer"]'
SCROLL_CONTAINER_CLASS = "zona9-scroll"
INTERACTIVE_ONLY_CLASS = "no-print"

# Evaluated in the page by the capture driver.
READINESS_PROBE_JS = (
    "(selector) => ({"
    "fonts: !!document.fonts && document.fonts.status === 'loaded',"
    "charts: document.querySelectorAll(selector).length"
    "})"
)
CONTENT_HEIGHT_JS = (
    "(selector) => {"
    "const root = document.querySelector(selector) || document.body;"
    "return Math.ceil(Math.max(root.scrollHeight, root.getBoundingClientRect().height));"
    "}"
)


class RenderMode(str, Enum):
    INTERACTIVE = "interactive"
    EXPORT = "export"

    @property
    def is_export(self) -> bool:
        return self == RenderMode.EXPORT


def resolve_render_mode(params: Mapping[str, Any]) -> RenderMode:
    return RenderMode.EXPORT if is_export_requested(params) else RenderMode.INTERACTIVE


_SHARED_CSS = f"""
.{SCROLL_CONTAINER_CLASS}::-webkit-scrollbar {{ width: 4px; }}
.{SCROLL_CONTAINER_CLASS}::-webkit-scrollbar-track {{ background: #f1f5f9; }}
.{SCROLL_CONTAINER_CLASS}::-webkit-scrollbar-thumb {{ background: #cbd5e1; border-radius: 10px; }}
div[data-testid="stMetricValue"] {{ font-variant-numeric: tabular-nums; }}
.zona9-card {{ background: #ffffff; border: 1px solid #f1f5f9; border-radius: 16px; padding: 1rem 1.25rem; }}
.zona9-site-dot {{ display: inline-block; width: 8px; height: 8px; border-radius: 999px; margin-right: 6px; }}
.zona9-trend {{ font-size: 11px; font-weight: 700; padding: 2px 10px; border-radius: 999px; }}
.zona9-trend.good {{ color: #059669; background: #ecfdf5; }}
.zona9-trend.bad {{ color: #e11d48; background: #fff1f2; }}
.zona9-trend.neutral {{ color: #475569; background: #f8fafc; }}
.zona9-note-site {{ font-weight: 700; border-bottom: 1px solid #f8fafc; padding: 6px 0; }}
.zona9-note-category {{ font-size: 10px; font-weight: 700; color: #4f46e5; text-transform: uppercase; }}
"""

_INTERACTIVE_CSS = f"""
.{SCROLL_CONTAINER_CLASS} {{ max-height: 1100px; overflow-y: auto; }}
.zona9-note-site {{ position: sticky; top: 0; background: rgba(255, 255, 255, 0.95); z-index: 10; }}
@media print {{ .{INTERACTIVE_ONLY_CLASS} {{ display: none !important; }} }}
"""


def _export_css(viewport_width: int) -> str:
    return f"""
*, *::before, *::after {{
    transition: none !important;
    animation: none !important;
    scroll-behavior: auto !important;
    caret-color: transparent !important;
}}
html, body, .stApp, {CONTENT_ROOT_SELECTOR}, [data-testid="stMain"], section.main {{
    height: auto !important;
    min-height: 0 !important;
    overflow: visible !important;
}}
{CONTENT_ROOT_SELECTOR} {{ position: relative !important; }}
.block-container, [data-testid="stMainBlockContainer"] {{
    max-width: {int(viewport_width)}px !important;
    padding-top: 2rem !important;
    padding-bottom: 2rem !important;
}}
section[data-testid="stSidebar"], header[data-testid="stHeader"], [data-testid="stToolbar"],
[data-testid="stDecoration"], [data-testid="stStatusWidget"], .modebar-container,
.stButton, .stDownloadButton, [data-testid="stDateInput"], [data-testid="stSelectbox"],
[data-testid="stRadio"], [data-testid="stToast"], .{INTERACTIVE_ONLY_CLASS} {{
    display: none !important;
}}
.{SCROLL_CONTAINER_CLASS}, [data-testid="stVerticalBlockBorderWrapper"], [data-testid="stVerticalBlockBorderWrapper"] > div {{
    max-height: none !important;
    height: auto !important;
    overflow: visible !important;
}}
[style*="position: sticky"], .zona9-note-site {{ position: static !important; }}
textarea {{ height: auto !important; overflow: visible !important; resize: none !important; }}
::-webkit-scrollbar {{ display: none !important; }}
"""


def page_stylesheet(mode: RenderMode, viewport_width: int = 1440) -> str:
    css = _SHARED_CSS + (_export_css(viewport_width) if mode.is_export else _INTERACTIVE_CSS)
    return f"<style>{css}</style>"


def normalization_css(viewport_width: int = 1440) -> str:
    """Export-like rules applied to the live page by the in-browser capture fallback."""
    return _SHARED_CSS + _export_css(viewport_width)


def text_area_height(
    text: str,
    *,
    mode: RenderMode = RenderMode.INTERACTIVE,
    min_rows: int = 3,
    max_rows: int = 12,
    chars_per_line: int = 90,
    line_px: int = 24,
    padding_px: int = 20,
) -> int:
    """Pixel height for an auto-growing text area; export mode never caps the row count."""
    rows = 0
    for line in str(text or "").splitlines() or [""]:
        rows += max(1, math.ceil(len(line) / max(1, chars_per_line)))
    rows = max(min_rows, rows)
    if not mode.is_export:
        rows = min(rows, max(min_rows, max_rows))
    # Streamlit rejects text areas shorter than 68px.
    return max(68, rows * line_px + padding_px)


@dataclass(frozen=True)
class ReadinessContract:
    settle_delay_ms: int = 1000
    timeout_ms: int = 10000
    poll_interval_ms: int = 100
    chart_selector: str = CHART_SELECTOR

    @classmethod
    def from_config(cls, config: AppConfig) -> "ReadinessContract":
        return cls(settle_delay_ms=config.settle_delay_ms, timeout_ms=config.ready_timeout_ms)


class ReadinessTracker:
    """Tracks when fonts and a stable chart count were first observed and applies the settle delay.

    Charts mount one after another, so any change in the chart count restarts the settle window.
    """

    def __init__(self, contract: ReadinessContract, clock: Callable[[], float] = time.monotonic):
        self.contract = contract
        self._clock = clock
        self.fonts_loaded = False
        self.chart_count = 0
        self._both_since: float | None = None

    @property
    def conditions_met(self) -> bool:
        return self.fonts_loaded and self.chart_count > 0

    def observe(self, fonts_loaded: bool, chart_count: int, *, restart_on_change: bool = True) -> bool:
        previous_count = self.chart_count
        self.fonts_loaded = bool(fonts_loaded)
        self.chart_count = max(0, int(chart_count or 0))
        if self.conditions_met:
            if self._both_since is None or (restart_on_change and self.chart_count != previous_count):
                self._both_since = self._clock()
        else:
            self._both_since = None
        return self.is_ready()

    def settle_remaining_ms(self) -> int:
        if self._both_since is None:
            return int(self.contract.settle_delay_ms)
        elapsed_ms = (self._clock() - self._both_since) * 1000.0
        return max(0, math.ceil(self.contract.settle_delay_ms - elapsed_ms))

    def is_ready(self) -> bool:
        return self._both_since is not None and self.settle_remaining_ms() == 0

    def pending(self) -> list[str]:
        out = []
        if not self.fonts_loaded:
            out.append("web fonts not loaded")
        if self.chart_count <= 0:
            out.append(f"no chart element matching {self.contract.chart_selector}")
        if self.conditions_met and not self.is_ready():
            out.append("settle delay not elapsed")
        return out


def wait_until_ready(
    probe: Callable[[], tuple[bool, int]],
    sleep_ms: Callable[[int], Any],
    contract: ReadinessContract,
    clock: Callable[[], float] = time.monotonic,
) -> ReadinessTracker:
    """Poll `probe` until the contract holds.

    The timeout bounds the wait for fonts and charts. A chart count that keeps
    changing restarts the settle delay until the deadline passes; after that the
    running settle delay always completes. Raises TimeoutError otherwise.
    """
    tracker = ReadinessTracker(contract, clock)
    deadline = clock() + contract.timeout_ms / 1000.0
    while True:
        fonts_loaded, chart_count = probe()
        if tracker.observe(fonts_loaded, chart_count, restart_on_change=clock() < deadline):
            return tracker
        if not tracker.conditions_met and clock() >= deadline:
            raise TimeoutError("Page never reached ready state: " + ", ".join(tracker.pending()))
        if tracker.conditions_met:
            sleep_ms(max(1, min(int(contract.poll_interval_ms), tracker.settle_remaining_ms())))
        else:
            sleep_ms(max(1, int(contract.poll_interval_ms)))
