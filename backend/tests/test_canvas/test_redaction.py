"""Tests for embedded-image redaction."""

from __future__ import annotations

from contextcanvas.canvas.redaction import (
    REDACTED_TOKEN,
    count_embedded_images,
    redact_embedded_images,
)

LONG_PAYLOAD = "iVBORw0KGgo" + "A" * 600 + "=="


def _embed(payload: str, mime: str = "image/png") -> str:
    return f'img.src = "data:{mime};base64,{payload}";'


def test_long_payload_is_replaced():
    source = _embed(LONG_PAYLOAD)
    result = redact_embedded_images(source)
    assert LONG_PAYLOAD not in result
    assert result == f'img.src = "data:image/png;base64,{REDACTED_TOKEN}";'


def test_short_payload_is_kept():
    source = _embed("iVBORw0KGgo=")
    assert redact_embedded_images(source) == source


def test_min_length_is_configurable():
    source = _embed("A" * 50)
    assert REDACTED_TOKEN in redact_embedded_images(source, min_length=10)


def test_every_payload_is_replaced():
    source = "\n".join([_embed(LONG_PAYLOAD), "ctx.fill();", _embed(LONG_PAYLOAD, "image/jpeg")])
    result = redact_embedded_images(source)
    assert result.count(REDACTED_TOKEN) == 2
    assert "data:image/jpeg;base64," in result
    assert "ctx.fill();" in result


def test_text_without_images_is_unchanged():
    source = 'ctx.fillText("data:text/plain;base64,aGVsbG8=", 0, 0);'
    assert redact_embedded_images(source) == source


def test_redacted_text_is_bounded():
    sources = [_embed("B" * n) for n in (1000, 10_000, 100_000)]
    lengths = {len(redact_embedded_images(s)) for s in sources}
    assert len(lengths) == 1


def test_count_embedded_images():
    assert count_embedded_images(_embed(LONG_PAYLOAD) + _embed("AAAA")) == 2
    assert count_embedded_images("ctx.fill();") == 0
