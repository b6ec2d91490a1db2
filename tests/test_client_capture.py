from __future__ import annotations

from zona9.client_capture import HTML2CANVAS_URL, NORMALIZE_STYLE_ID, build_capture_script


def test_script_normalizes_waits_and_downloads():
    script = build_capture_script("Zona9_Dashboard_Report_2026-03-10.png", viewport_width=1600, settle_ms=1500)
    assert HTML2CANVAS_URL in script
    assert "window.parent.document" in script
    assert NORMALIZE_STYLE_ID in script
    assert "doc.fonts.ready" in script
    assert "setTimeout(resolve, 1500)" in script
    assert "windowWidth: 1600" in script
    assert '"Zona9_Dashboard_Report_2026-03-10.png"' in script
    assert "Export failed" in script
    assert "style.remove()" in script


def test_script_escapes_closing_tags_in_values():
    script = build_capture_script("</script><b>.png")
    assert "</script><b>" not in script


def test_nonce_changes_markup():
    assert build_capture_script("a.png", nonce="1") != build_capture_script("a.png", nonce="2")
