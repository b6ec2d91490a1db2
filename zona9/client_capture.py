"""In-browser PNG capture of the live dashboard, used when the capture service is unreachable."""

from __future__ import annotations

import json

from zona9.render_mode import CONTENT_ROOT_SELECTOR, normalization_css


HTML2CANVAS_URL = "https://cdn.jsdelivr.net/npm/html2canvas@1.4.1/dist/html2canvas.min.js"
NORMALIZE_STYLE_ID = "zona9-capture-normalize"
CAPTURE_BACKGROUND = "#f8fafc"


def _js(value) -> str:
    # Keep "</script>" inside string literals from closing the tag.
    return json.dumps(value).replace("</", "<\\/")


def build_capture_script(
    filename: str,
    *,
    viewport_width: int = 1600,
    settle_ms: int = 1500,
    scale: int = 2,
    nonce: str = "",
) -> str:
    """HTML for `streamlit.components.v1.html` that rasterizes `window.parent.document`.

    The live page is normalized first (interactive chrome hidden, scroll
    containers expanded, animations and sticky positioning off), then fonts are
    awaited and a settle delay runs before html2canvas is called. Errors are
    shown to the user once; there is no retry.
    """
    return f"""
<script src="{HTML2CANVAS_URL}"></script>
<script>
(async () => {{
  const doc = window.parent.document;
  let style = doc.getElementById({_js(NORMALIZE_STYLE_ID)});
  if (!style) {{
    style = doc.createElement("style");
    style.id = {_js(NORMALIZE_STYLE_ID)};
    doc.head.appendChild(style);
  }}
  style.textContent = {_js(normalization_css(viewport_width))};
  try {{
    if (typeof html2canvas !== "function") {{
      throw new Error("html2canvas could not be loaded");
    }}
    if (doc.fonts && doc.fonts.ready) {{
      await doc.fonts.ready;
    }}
    await new Promise((resolve) => setTimeout(resolve, {int(settle_ms)}));
    const root = doc.querySelector({_js(CONTENT_ROOT_SELECTOR)}) || doc.body;
    const canvas = await html2canvas(root, {{
      scale: {int(scale)},
      useCORS: true,
      backgroundColor: {_js(CAPTURE_BACKGROUND)},
      windowWidth: {int(viewport_width)},
      width: root.scrollWidth,
      height: root.scrollHeight,
    }});
    const blob = await new Promise((resolve, reject) => {{
      canvas.toBlob((b) => (b ? resolve(b) : reject(new Error("Canvas produced no image"))), "image/png");
    }});
    const link = doc.createElement("a");
    link.href = URL.createObjectURL(blob);
    link.download = {_js(filename)};
    doc.body.appendChild(link);
    link.click();
    link.remove();
    setTimeout(() => URL.revokeObjectURL(link.href), 5000);
  }} catch (err) {{
    window.parent.alert("Export failed: " + (err && err.message ? err.message : String(err)));
  }} finally {{
    style.remove();
  }}
}})();
</script>
<!-- capture {_js(nonce)} -->
"""
