"""Redaction: keeps canvas source textually bounded before the model sees it.

Imported webpages are embedded as ``data:image/png;base64,...`` literals. Those
payloads are useless to the model as text and grow with every import, so the
copy sent back to the model swaps each long payload for a short token. The
rasterizer always receives the original.
"""

from __future__ import annotations

import re

REDACTED_TOKEN = "[IMAGE DATA REDACTED]"

# Shorter payloads (tiny icons, test fixtures) are left alone.
DEFAULT_MIN_PAYLOAD = 200

_EMBEDDED_IMAGE_RE = re.compile(
    r"(?P<prefix>data:image/[a-zA-Z0-9.+-]+;base64,)(?P<payload>[A-Za-z0-9+/]+={0,2})"
)


def redact_embedded_images(text: str, min_length: int = DEFAULT_MIN_PAYLOAD) -> str:
    """Return a copy of ``text`` with long embedded base64 image payloads replaced."""

    def _swap(m: re.Match[str]) -> str:
        if len(m.group("payload")) < min_length:
            return m.group(0)
        return m.group("prefix") + REDACTED_TOKEN

    return _EMBEDDED_IMAGE_RE.sub(_swap, text)


def count_embedded_images(text: str) -> int:
    return sum(1 for _ in _EMBEDDED_IMAGE_RE.finditer(text))
