"""Tests for the structured canvas document view."""

from __future__ import annotations

import pytest

from contextcanvas.canvas.document import CanvasDocument, CanvasNode
from tests.conftest import HOUSE_CANVAS, SUN_CANVAS


@pytest.mark.parametrize(
    "source",
    [
        "",
        SUN_CANVAS,
        HOUSE_CANVAS,
        "// ELEMENT: a\n// END ELEMENT: a",
        "\n\nloose();\n\n",
        "//element: A\nx();\n//END ELEMENT: a\ntrailing();",
    ],
)
def test_round_trip(source):
    assert CanvasDocument.from_source(source).to_source() == source


def test_top_level_nodes():
    doc = CanvasDocument.from_source(SUN_CANVAS)
    assert [node.name for node in doc.nodes] == [None, "sun"]
    assert doc.nodes[0].code.startswith('ctx.fillStyle = "#87ceeb";')


def test_nested_elements_stay_in_parent():
    doc = CanvasDocument.from_source(HOUSE_CANVAS)
    assert doc.element_names == ["house", "grass"]
    assert "// ELEMENT: door" in doc.nodes[0].code


def test_node_to_source():
    node = CanvasNode(name="a", code="x();", start_marker="// ELEMENT: a", end_marker="// END ELEMENT: a")
    assert node.to_source() == "// ELEMENT: a\nx();\n// END ELEMENT: a"
    assert CanvasNode(code="loose();").to_source() == "loose();"
