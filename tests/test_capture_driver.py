from __future__ import annotations

from datetime import date
from io import BytesIO
import re

import pytest
from PIL import Image

from zona9.capture_driver import CaptureSettings, png_to_pdf, render
from zona9.export_request import ExportRequest
from zona9.models import Period, ViewMode
from zona9.outcomes import RenderFailed
from zona9.render_mode import CONTENT_HEIGHT_JS, READINESS_PROBE_JS, ReadinessContract


def _png(width: int = 12, height: int = 20) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (248, 250, 252)).save(buf, format="PNG")
    return buf.getvalue()


class FakeClock:
    def __init__(self) -> None:
        self.now_ms = 0

    def __call__(self) -> float:
        return self.now_ms / 1000.0


class FakePage:
    def __init__(self, world, viewport):
        self.world = world
        self.viewport_size = dict(viewport)
        self.viewport_history = []

    def goto(self, url, wait_until=None, timeout=None):
        self.world.calls.append(("goto", url, wait_until, timeout))
        if self.world.fail_at == "goto":
            raise TimeoutError("Timeout 30000ms exceeded.")

    def evaluate(self, script, arg=None):
        if script == READINESS_PROBE_JS:
            now = self.world.clock.now_ms
            return {"fonts": now >= self.world.fonts_at_ms, "charts": 2 if now >= self.world.charts_at_ms else 0}
        if script == CONTENT_HEIGHT_JS:
            return self.world.heights.pop(0) if len(self.world.heights) > 1 else self.world.heights[0]
        raise AssertionError(f"unexpected script {script!r}")

    def wait_for_timeout(self, ms):
        self.world.clock.now_ms += int(ms)

    def set_viewport_size(self, size):
        self.viewport_size = dict(size)
        self.viewport_history.append(dict(size))

    def screenshot(self, **kwargs):
        self.world.calls.append(("screenshot", kwargs))
        if self.world.fail_at == "screenshot":
            raise RuntimeError("Target closed")
        return self.world.png


class FakeContext:
    def __init__(self, world, viewport):
        self.world = world
        self.viewport = viewport

    def new_page(self):
        self.world.page = FakePage(self.world, self.viewport)
        return self.world.page


class FakeBrowser:
    def __init__(self, world):
        self.world = world
        self.closed = False

    def new_context(self, viewport, device_scale_factor):
        self.world.calls.append(("new_context", viewport, device_scale_factor))
        return FakeContext(self.world, viewport)

    def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, world):
        self.world = world

    def launch(self, headless, args):
        if self.world.fail_at == "launch":
            raise RuntimeError("Executable doesn't exist")
        self.world.browser = FakeBrowser(self.world)
        return self.world.browser


class FakeWorld:
    def __init__(self, *, fonts_at_ms=0, charts_at_ms=0, heights=(2400,), fail_at=None):
        self.clock = FakeClock()
        self.fonts_at_ms = fonts_at_ms
        self.charts_at_ms = charts_at_ms
        self.heights = list(heights)
        self.fail_at = fail_at
        self.png = _png()
        self.calls = []
        self.browser = None
        self.page = None
        self.chromium = FakeChromium(self)

    def __call__(self):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


REQUEST = ExportRequest(Period.single(date(2026, 3, 10)), ViewMode.DAY, "http://dash:8501")
SETTINGS = CaptureSettings(readiness=ReadinessContract(settle_delay_ms=1000, timeout_ms=3000, poll_interval_ms=100))


def _render(world, fmt="png", log_event=None):
    return render(REQUEST, fmt, settings=SETTINGS, playwright_factory=world, clock=world.clock, log_event=log_event)


def test_png_capture_waits_for_readiness_and_measures_height(events, log_event):
    world = FakeWorld(fonts_at_ms=400, charts_at_ms=700, heights=(2400, 2450))
    result = _render(world, log_event=log_event)

    assert result.content == world.png
    assert result.mime_type == "image/png"
    assert result.filename == "Zona9_Report_2026-03-10.png"
    assert (result.width, result.height) == (1440, 2450)
    assert world.browser.closed

    goto = next(c for c in world.calls if c[0] == "goto")
    assert goto[1].startswith("http://dash:8501/?")
    assert "export=true" in goto[1]
    assert goto[2:] == ("networkidle", 30000)
    assert ("new_context", {"width": 1440, "height": 1200}, 2.0) in world.calls
    shot = next(c for c in world.calls if c[0] == "screenshot")[1]
    assert shot["full_page"] is True
    assert world.page.viewport_history[-1] == {"width": 1440, "height": 2450}
    # Charts appeared at 700ms and the settle delay ran after that.
    assert world.clock.now_ms >= 1700
    assert [e["event"] for e in events] == ["capture_started", "capture_succeeded"]


def test_pdf_is_single_page_sized_to_capture():
    world = FakeWorld(heights=(2400,))
    result = _render(world, "pdf")
    assert result.mime_type == "application/pdf"
    assert result.filename == "Zona9_Report_2026-03-10.pdf"
    assert result.content.startswith(b"%PDF")
    assert result.content.count(b"/MediaBox") == 1


def _media_box(pdf: bytes) -> tuple[float, ...]:
    match = re.search(rb"/MediaBox\s*\[([^\]]*)\]", pdf)
    assert match is not None
    return tuple(float(v) for v in match.group(1).split())


def test_pdf_page_follows_screenshot_size_not_measured_height():
    pdf = png_to_pdf(_png(30, 60), device_scale=2.0)
    assert pdf.startswith(b"%PDF")
    assert _media_box(pdf) == (0.0, 0.0, 15.0, 30.0)


def test_pdf_from_render_uses_screenshot_pixels():
    world = FakeWorld(heights=(2400,))
    result = _render(world, "pdf")
    assert _media_box(result.content) == (0.0, 0.0, 6.0, 10.0)


@pytest.mark.parametrize(
    ("world_kwargs", "stage"),
    [
        ({"fail_at": "goto"}, "navigate"),
        ({"charts_at_ms": 10**9}, "readiness"),
        ({"fonts_at_ms": 10**9}, "readiness"),
        ({"heights": (0,)}, "measure"),
        ({"fail_at": "screenshot"}, "capture"),
    ],
)
def test_failures_raise_render_failed_and_close_browser(world_kwargs, stage, events, log_event):
    world = FakeWorld(**world_kwargs)
    with pytest.raises(RenderFailed) as exc_info:
        _render(world, log_event=log_event)
    assert exc_info.value.stage == stage
    assert world.browser.closed
    assert events[-1]["event"] == "capture_failed"
    assert events[-1]["context"]["stage"] == stage


def test_launch_failure_has_no_browser_to_close():
    world = FakeWorld(fail_at="launch")
    with pytest.raises(RenderFailed) as exc_info:
        _render(world)
    assert exc_info.value.stage == "launch"
    assert world.browser is None


def test_bad_format_or_missing_host_is_rejected_before_launch():
    world = FakeWorld()
    with pytest.raises(ValueError):
        _render(world, "gif")
    with pytest.raises(ValueError):
        render(ExportRequest(Period.single(date(2026, 3, 10)), ViewMode.DAY), playwright_factory=world)
    assert world.browser is None
