"""Structured view of canvas source: an ordered list of code chunks and named elements.

Markers are only the serialization format. ``from_source`` / ``to_source``
round-trip the text exactly, including marker spelling and blank lines.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from contextcanvas.canvas.elements import parse_elements, split_lines


class CanvasNode(BaseModel):
    name: str | None = None  # None = loose code outside any element
    code: str = ""
    start_marker: str = ""
    end_marker: str = ""
    has_body: bool = True  # False when the end marker directly follows the start marker

    @property
    def is_element(self) -> bool:
        return self.name is not None

    def to_source(self) -> str:
        if not self.is_element:
            return self.code
        body = [self.code] if self.has_body else []
        return "\n".join([self.start_marker, *body, self.end_marker])


class CanvasDocument(BaseModel):
    nodes: list[CanvasNode] = Field(default_factory=list)

    @classmethod
    def from_source(cls, source: str) -> "CanvasDocument":
        """Split source into top-level nodes. Nested elements stay inside their parent's code."""
        lines = split_lines(source)
        spans = sorted(parse_elements(source), key=lambda s: s.start_line)

        nodes: list[CanvasNode] = []
        cursor = 0
        for span in spans:
            if span.start_line < cursor:
                continue  # nested inside an element already emitted
            if span.start_line > cursor:
                nodes.append(CanvasNode(code="\n".join(lines[cursor : span.start_line])))
            nodes.append(
                CanvasNode(
                    name=span.name,
                    code=span.inner_text,
                    start_marker=lines[span.start_line],
                    end_marker=lines[span.end_line],
                    has_body=span.end_line > span.start_line + 1,
                )
            )
            cursor = span.end_line + 1

        if cursor < len(lines):
            nodes.append(CanvasNode(code="\n".join(lines[cursor:])))

        return cls(nodes=nodes)

    def to_source(self) -> str:
        return "\n".join(node.to_source() for node in self.nodes)

    @property
    def element_names(self) -> list[str]:
        return [node.name for node in self.nodes if node.name is not None]
