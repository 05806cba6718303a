"""Element markers: scan canvas JavaScript for named, independently editable spans.

An element is delimited by two line comments:

    // ELEMENT: sun
    ctx.fillStyle = "gold";
    ctx.arc(80, 80, 40, 0, Math.PI * 2);
    // END ELEMENT: sun

Names compare case-insensitively. The scan is tolerant: an end marker with no
preceding start, or a start with no later end, simply leaves that name
unresolvable. Nothing here raises on malformed input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

START_MARKER_RE = re.compile(r"^\s*//\s*ELEMENT:\s*(?P<name>.+?)\s*$", re.IGNORECASE)
END_MARKER_RE = re.compile(r"^\s*//\s*END\s+ELEMENT:\s*(?P<name>.+?)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ElementSpan:
    """A resolved element. Line indices are 0-based and point at the marker lines."""

    name: str
    start_line: int
    end_line: int
    inner_text: str


def normalize_name(name: str) -> str:
    return name.strip().lower()


def start_marker(name: str) -> str:
    return f"// ELEMENT: {name.strip()}"


def end_marker(name: str) -> str:
    return f"// END ELEMENT: {name.strip()}"


def split_lines(document: str) -> list[str]:
    """Split on newlines only, so joining with "\\n" restores the document exactly."""
    return document.split("\n")


def marker_name(line: str) -> tuple[str, str] | None:
    """Classify a line as ("start", name), ("end", name) or None."""
    m = END_MARKER_RE.match(line)
    if m:
        return "end", m.group("name")
    m = START_MARKER_RE.match(line)
    if m:
        return "start", m.group("name")
    return None


def find_element(document: str, name: str) -> ElementSpan | None:
    """Locate the first ``ELEMENT: name`` and the next ``END ELEMENT: name`` after it.

    Markers for other names between the two belong to nested or sibling
    elements and are skipped.
    """
    wanted = normalize_name(name)
    lines = split_lines(document)

    start: int | None = None
    for i, line in enumerate(lines):
        kind_name = marker_name(line)
        if kind_name is None:
            continue
        kind, found = kind_name
        if normalize_name(found) != wanted:
            continue
        if start is None:
            if kind == "start":
                start = i
        elif kind == "end":
            return ElementSpan(
                name=START_MARKER_RE.match(lines[start]).group("name"),
                start_line=start,
                end_line=i,
                inner_text="\n".join(lines[start + 1 : i]),
            )
    return None


def parse_elements(document: str) -> list[ElementSpan]:
    """Every resolvable element in document order of its start marker.

    Each distinct name resolves at most once, using the same pairing rule as
    :func:`find_element`.
    """
    lines = split_lines(document)
    seen: set[str] = set()
    spans: list[ElementSpan] = []

    for i, line in enumerate(lines):
        kind_name = marker_name(line)
        if kind_name is None or kind_name[0] != "start":
            continue
        key = normalize_name(kind_name[1])
        if key in seen:
            continue
        seen.add(key)
        span = find_element(document, kind_name[1])
        if span is not None:
            spans.append(span)

    return spans


def element_map(document: str) -> dict[str, str]:
    """Map element name -> inner code for every resolvable element."""
    return {span.name: span.inner_text for span in parse_elements(document)}
