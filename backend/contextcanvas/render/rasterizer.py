"""Canvas rasterizer: executes canvas JavaScript in headless Chromium and returns a PNG.

Model-authored code is untrusted. It runs in a separate browser process on a
blank page with every network request aborted, never in this interpreter.

Contract: ``render`` always returns an image. If the code throws, the browser
cannot start, or the render times out, the result is a placeholder PNG whose
caption carries the failure message.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import textwrap
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

MAX_DIMENSION = 4096

_PLACEHOLDER_BACKGROUND = (30, 30, 30)
_PLACEHOLDER_TEXT = (255, 107, 107)
_PLACEHOLDER_MARGIN = 16
_PLACEHOLDER_LINE_HEIGHT = 14

_HARNESS_HTML = """<!DOCTYPE html>
<html><head><style>html,body{margin:0;padding:0;background:#fff}</style></head>
<body><canvas id="canvas"></canvas></body></html>"""

# Runs the user code with ``ctx`` and ``canvas`` bound. Code that loads images
# pushes promises onto ``window.__pending`` so the screenshot waits for them.
_RUN_SCRIPT = """
async ({code, width, height}) => {
  const canvas = document.getElementById('canvas');
  canvas.width = width;
  canvas.height = height;
  const ctx = canvas.getContext('2d');
  ctx.fillStyle = '#ffffff';
  ctx.fillRect(0, 0, width, height);
  window.__pending = [];
  try {
    new Function('ctx', 'canvas', code)(ctx, canvas);
    await Promise.all(window.__pending);
    return null;
  } catch (err) {
    return (err && err.name ? err.name + ': ' : '') + String(err && err.message ? err.message : err);
  }
}
"""


class RasterizationError(RuntimeError):
    """The canvas code could not be rendered. Never leaves this module."""


@dataclass
class RenderedImage:
    data: bytes
    media_type: str = "image/png"
    placeholder: bool = False
    error: str | None = None

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.to_base64()}"


def clamp_dimension(value: int) -> int:
    return max(1, min(int(value), MAX_DIMENSION))


def placeholder_image(width: int, height: int, message: str) -> RenderedImage:
    """Deterministic error image: dark background with a wrapped red caption."""
    width, height = clamp_dimension(width), clamp_dimension(height)
    img = Image.new("RGB", (width, height), _PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()

    # Default bitmap font is ~6px per character
    chars_per_line = max(10, (width - 2 * _PLACEHOLDER_MARGIN) // 6)
    lines = textwrap.wrap(f"Render error: {message}", width=chars_per_line) or ["Render error"]

    y = _PLACEHOLDER_MARGIN
    for line in lines:
        if y > height - _PLACEHOLDER_LINE_HEIGHT:
            break
        draw.text((_PLACEHOLDER_MARGIN, y), line, fill=_PLACEHOLDER_TEXT, font=font)
        y += _PLACEHOLDER_LINE_HEIGHT

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return RenderedImage(data=buf.getvalue(), placeholder=True, error=message)


async def _render_in_chromium(source: str, width: int, height: int) -> bytes:
    from playwright.async_api import async_playwright

    async with async_playwright() as pw:
        browser = await pw.chromium.launch()
        try:
            page = await browser.new_page(viewport={"width": width, "height": height})
            await page.route("**/*", lambda route: route.abort())
            await page.set_content(_HARNESS_HTML)
            error = await page.evaluate(_RUN_SCRIPT, {"code": source, "width": width, "height": height})
            if error:
                raise RasterizationError(error)
            return await page.locator("#canvas").screenshot(type="png")
        finally:
            await browser.close()


class CanvasRasterizer:
    """render(code, width, height) -> image, with failures absorbed into placeholders."""

    def __init__(
        self,
        timeout_s: float = 30.0,
        runner: Callable[[str, int, int], Awaitable[bytes]] | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self._runner = runner or _render_in_chromium

    async def render(self, source: str, width: int, height: int) -> RenderedImage:
        width, height = clamp_dimension(width), clamp_dimension(height)
        try:
            data = await asyncio.wait_for(self._runner(source, width, height), self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Canvas render timed out after %.1fs", self.timeout_s)
            return placeholder_image(width, height, f"render timed out after {self.timeout_s:.0f}s")
        except Exception as e:
            logger.warning("Canvas render failed: %s", e)
            return placeholder_image(width, height, str(e) or type(e).__name__)

        return RenderedImage(data=data)
