"""Webpage screenshots for the ``import_webpage`` tool."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

# Viewport bounds: below this pages collapse to mobile layouts, above it the
# PNG gets large enough to dominate the canvas source.
MIN_VIEWPORT_WIDTH, MAX_VIEWPORT_WIDTH = 320, 1920
MIN_VIEWPORT_HEIGHT, MAX_VIEWPORT_HEIGHT = 240, 1080


class WebpageImportError(RuntimeError):
    """The page could not be captured (bad URL, navigation failure, timeout)."""


def validate_url(url: str) -> str:
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise WebpageImportError(f"Only http and https URLs can be imported, got {url!r}")
    if not parsed.netloc:
        raise WebpageImportError(f"URL has no host: {url!r}")
    return url


def clamp_viewport(width: int, height: int) -> tuple[int, int]:
    return (
        max(MIN_VIEWPORT_WIDTH, min(int(width), MAX_VIEWPORT_WIDTH)),
        max(MIN_VIEWPORT_HEIGHT, min(int(height), MAX_VIEWPORT_HEIGHT)),
    )


class WebpageScreenshotter:
    def __init__(self, timeout_s: float = 30.0) -> None:
        self.timeout_s = timeout_s

    async def capture(self, url: str, width: int, height: int) -> bytes:
        """Screenshot ``url`` at a clamped viewport. Raises WebpageImportError."""
        url = validate_url(url)
        width, height = clamp_viewport(width, height)
        logger.info("Capturing %s at %dx%d", url, width, height)
        try:
            return await asyncio.wait_for(self._screenshot(url, width, height), self.timeout_s)
        except asyncio.TimeoutError as e:
            raise WebpageImportError(f"Timed out loading {url}") from e
        except WebpageImportError:
            raise
        except Exception as e:
            raise WebpageImportError(f"Failed to capture {url}: {e}") from e

    async def _screenshot(self, url: str, width: int, height: int) -> bytes:
        from playwright.async_api import async_playwright

        async with async_playwright() as pw:
            browser = await pw.chromium.launch()
            try:
                page = await browser.new_page(viewport={"width": width, "height": height})
                response = await page.goto(url, wait_until="networkidle")
                if response is not None and response.status >= 400:
                    raise WebpageImportError(f"{url} returned HTTP {response.status}")
                return await page.screenshot(type="png")
            finally:
                await browser.close()
