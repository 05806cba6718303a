"""Canvas source editor: whole-canvas replace, append, and element replace-or-insert.

All functions are pure: they take the current document and return the edited
one. A failed edit raises before producing anything, so the caller's document
is left exactly as it was.
"""

from __future__ import annotations

import logging

from contextcanvas.canvas.elements import (
    END_MARKER_RE,
    START_MARKER_RE,
    end_marker,
    find_element,
    normalize_name,
    split_lines,
    start_marker,
)

logger = logging.getLogger(__name__)

APPEND_ATTRIBUTION = "// Added by assistant"


class ElementNotFound(KeyError):
    """No ``ELEMENT: name`` / ``END ELEMENT: name`` pair exists in the document."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Element '{self.name}' not found in canvas"


def replace_all(document: str, new_text: str) -> str:
    return new_text


def append(document: str, fragment: str) -> str:
    """Append ``fragment`` after a separating newline and an attribution comment."""
    return f"{document}\n{APPEND_ATTRIBUTION}\n{fragment}"


def wrap_element(name: str, code: str) -> str:
    return f"{start_marker(name)}\n{code}\n{end_marker(name)}"


def strip_own_markers(name: str, code: str) -> str:
    """Drop a start/end marker pair for ``name`` wrapping ``code``, if present.

    Leading and trailing blank lines around the pair are dropped with it.
    """
    lines = split_lines(code)
    filled = [i for i, line in enumerate(lines) if line.strip()]
    if len(filled) < 2:
        return code
    first, last = filled[0], filled[-1]
    start = START_MARKER_RE.match(lines[first])
    end = END_MARKER_RE.match(lines[last])
    if start is None or end is None:
        return code
    wanted = normalize_name(name)
    if normalize_name(start.group("name")) != wanted or normalize_name(end.group("name")) != wanted:
        return code
    return "\n".join(lines[first + 1 : last])


def update_element(
    document: str,
    name: str,
    new_inner_text: str,
    create_if_missing: bool = True,
) -> str:
    """Replace the inner lines of element ``name``; marker lines are kept verbatim.

    When the element does not resolve, a new wrapped block is appended if
    ``create_if_missing`` is set, otherwise :class:`ElementNotFound` is raised.
    """
    new_inner_text = strip_own_markers(name, new_inner_text)
    span = find_element(document, name)

    if span is None:
        if not create_if_missing:
            raise ElementNotFound(name)
        logger.debug("Element %r not found, appending new block", name)
        block = wrap_element(name, new_inner_text)
        if not document:
            return block
        return f"{document}\n{block}"

    lines = split_lines(document)
    edited = lines[: span.start_line + 1] + split_lines(new_inner_text) + lines[span.end_line :]
    return "\n".join(edited)
