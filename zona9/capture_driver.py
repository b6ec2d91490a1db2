"""Headless capture of the export-mode page with Playwright Chromium.

Every request gets its own browser process. The browser is closed on every
exit path; a leaked Chromium in a serverless worker outlives the request.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Callable

from playwright.sync_api import sync_playwright
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from zona9.config import AppConfig
from zona9.export_request import OUTPUT_FORMATS, ExportRequest, parse_output_format
from zona9.outcomes import CaptureResult, RenderFailed
from zona9.render_mode import (
    CONTENT_HEIGHT_JS,
    CONTENT_ROOT_SELECTOR,
    READINESS_PROBE_JS,
    ReadinessContract,
    wait_until_ready,
)
from zona9.runtime_logging import EventLogger, emit_event


CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--hide-scrollbars",
    "--font-render-hinting=none",
]

STAGE_MESSAGES = {
    "launch": "Could not start the headless browser",
    "navigate": "Dashboard page did not finish loading",
    "readiness": "Dashboard never reached export-ready state",
    "measure": "Could not measure rendered content",
    "capture": "Screenshot capture failed",
    "encode": "Could not encode the export file",
}


@dataclass(frozen=True)
class CaptureSettings:
    viewport_width: int = 1440
    viewport_height: int = 1200
    device_scale: float = 2.0
    nav_timeout_ms: int = 30000
    readiness: ReadinessContract = field(default_factory=ReadinessContract)
    content_selector: str = CONTENT_ROOT_SELECTOR

    @classmethod
    def from_config(cls, config: AppConfig) -> "CaptureSettings":
        return cls(
            viewport_width=config.viewport_width,
            viewport_height=config.viewport_height,
            device_scale=config.device_scale,
            nav_timeout_ms=config.nav_timeout_ms,
            readiness=ReadinessContract.from_config(config),
        )


def png_to_pdf(png_bytes: bytes, device_scale: float = 1.0, title: str = "Zona 9 Report") -> bytes:
    """Single page sized to the screenshot in CSS pixels, so no break lands inside content and no blank page trails."""
    image = ImageReader(BytesIO(png_bytes))
    pixel_width, pixel_height = image.getSize()
    scale = max(1.0, float(device_scale))
    width, height = pixel_width / scale, pixel_height / scale
    buf = BytesIO()
    pdf = canvas.Canvas(buf, pagesize=(width, height), pageCompression=1)
    pdf.setTitle(title)
    pdf.drawImage(image, 0, 0, width=width, height=height)
    pdf.showPage()
    pdf.save()
    return buf.getvalue()


def _probe(page, selector: str) -> tuple[bool, int]:
    result = page.evaluate(READINESS_PROBE_JS, selector) or {}
    return bool(result.get("fonts")), int(result.get("charts") or 0)


def _measure_content_height(page, selector: str) -> int:
    height = int(page.evaluate(CONTENT_HEIGHT_JS, selector) or 0)
    if height <= 0:
        raise ValueError(f"Content root {selector!r} reported no height.")
    return height


def _close_quietly(browser, log_event: EventLogger | None) -> None:
    try:
        browser.close()
    except Exception as exc:
        emit_event(
            log_event,
            level="WARNING",
            event="capture_browser_close_failed",
            message="Browser close raised during teardown.",
            exc=exc,
        )


def render(
    request: ExportRequest,
    output_format: str = "png",
    *,
    settings: CaptureSettings | None = None,
    playwright_factory: Callable[[], Any] | None = None,
    clock: Callable[[], float] = time.monotonic,
    log_event: EventLogger | None = None,
) -> CaptureResult:
    """Render `request` to PNG or PDF bytes.

    Raises RenderFailed for navigation timeouts, a page that never becomes ready,
    and capture or encoding errors. No partial output is returned.
    """
    settings = settings or CaptureSettings()
    fmt = parse_output_format(output_format)
    url = request.target_url()
    factory = playwright_factory or sync_playwright
    width = int(settings.viewport_width)
    context_info = {"url": url, "format": fmt, "period": request.period.label(), "view": request.view.value}
    emit_event(log_event, level="INFO", event="capture_started", message="Headless capture started.", context=context_info)

    started = clock()
    stage = "launch"
    try:
        with factory() as pw:
            browser = None
            try:
                browser = pw.chromium.launch(headless=True, args=CHROMIUM_ARGS)
                context = browser.new_context(
                    viewport={"width": width, "height": int(settings.viewport_height)},
                    device_scale_factor=float(settings.device_scale),
                )
                page = context.new_page()

                stage = "navigate"
                page.goto(url, wait_until="networkidle", timeout=int(settings.nav_timeout_ms))

                stage = "readiness"
                contract = settings.readiness
                wait_until_ready(lambda: _probe(page, contract.chart_selector), page.wait_for_timeout, contract, clock)

                stage = "measure"
                height = _measure_content_height(page, settings.content_selector)
                page.set_viewport_size({"width": width, "height": height})
                # Resizing can reflow responsive charts; take the larger of the two measurements.
                page.wait_for_timeout(max(1, int(contract.poll_interval_ms)))
                height = max(height, _measure_content_height(page, settings.content_selector))
                if height != page.viewport_size["height"]:
                    page.set_viewport_size({"width": width, "height": height})

                stage = "capture"
                png_bytes = page.screenshot(type="png", full_page=True, animations="disabled")
            finally:
                if browser is not None:
                    _close_quietly(browser, log_event)

        stage = "encode"
        if fmt == "pdf":
            content = png_to_pdf(png_bytes, settings.device_scale, title=f"Zona 9 Report {request.period.display_label()}")
        else:
            content = bytes(png_bytes)
        if not content:
            raise ValueError("Renderer produced no bytes.")
    except Exception as exc:
        emit_event(
            log_event,
            level="ERROR",
            event="capture_failed",
            message=f"Headless capture failed during {stage}.",
            context={**context_info, "stage": stage, "elapsed_sec": round(clock() - started, 3)},
            exc=exc,
        )
        raise RenderFailed(f"{STAGE_MESSAGES[stage]}: {exc}", stage) from exc

    emit_event(
        log_event,
        level="INFO",
        event="capture_succeeded",
        message="Headless capture finished.",
        context={**context_info, "width": width, "height": height, "bytes": len(content), "elapsed_sec": round(clock() - started, 3)},
    )
    return CaptureResult(
        content=content,
        mime_type=OUTPUT_FORMATS[fmt],
        filename=request.filename(fmt),
        width=width,
        height=height,
    )
