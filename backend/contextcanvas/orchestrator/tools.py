"""Canvas tools exposed to the model.

Tool-level failures (missing element, failed import) come back as error
outcomes; they never abort the round.
"""

from __future__ import annotations

import base64
import json
import logging
import math
from typing import Any

from contextcanvas.canvas.editor import ElementNotFound, append, replace_all, update_element
from contextcanvas.orchestrator.registry import (
    ToolContext,
    ToolOutcome,
    ToolRegistry,
    canvas_tool,
    get_registry,
)
from contextcanvas.render.webpage import WebpageImportError, clamp_viewport

logger = logging.getLogger(__name__)

_CODE_PROPERTY = {
    "type": "string",
    "description": "JavaScript drawing code. `ctx` (CanvasRenderingContext2D) and `canvas` are in scope.",
}


def _flag(value: Any, default: bool) -> bool:
    """Read a boolean tool argument. Strings "true"/"false" are accepted, anything else is rejected."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"expected a boolean, got {value!r}")


def _coordinate(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {value!r}")
    return number


def _summarize(code: str, limit: int = 60) -> str:
    first = code.strip().splitlines()[0] if code.strip() else ""
    return first if len(first) <= limit else first[: limit - 3] + "..."


@canvas_tool(
    name="append_to_canvas",
    description="Append drawing code after the existing canvas code. Existing drawing is kept.",
    input_schema={
        "type": "object",
        "properties": {"code": _CODE_PROPERTY},
        "required": ["code"],
    },
)
async def append_to_canvas(ctx: ToolContext, args: dict[str, Any]) -> ToolOutcome:
    code = str(args["code"])
    ctx.source = append(ctx.source, code)
    return ToolOutcome(content=f"Appended {len(code.splitlines())} lines to the canvas", detail=_summarize(code))


@canvas_tool(
    name="replace_canvas",
    description="Replace ALL canvas code with new code. Everything currently drawn is discarded.",
    input_schema={
        "type": "object",
        "properties": {"code": _CODE_PROPERTY},
        "required": ["code"],
    },
)
async def replace_canvas(ctx: ToolContext, args: dict[str, Any]) -> ToolOutcome:
    code = str(args["code"])
    ctx.source = replace_all(ctx.source, code)
    return ToolOutcome(content=f"Canvas replaced ({len(code.splitlines())} lines)", detail=_summarize(code))


@canvas_tool(
    name="update_element",
    description=(
        "Replace the code between '// ELEMENT: <name>' and '// END ELEMENT: <name>'. "
        "The marker comments are kept. If the element does not exist it is created "
        "at the end of the canvas unless create_if_missing is false."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Element name (case-insensitive)"},
            "code": _CODE_PROPERTY,
            "create_if_missing": {"type": "boolean", "default": True},
        },
        "required": ["name", "code"],
    },
)
async def update_element_tool(ctx: ToolContext, args: dict[str, Any]) -> ToolOutcome:
    name = str(args["name"])
    create = _flag(args.get("create_if_missing"), True)
    try:
        ctx.source = update_element(ctx.source, name, str(args["code"]), create_if_missing=create)
    except ElementNotFound as e:
        return ToolOutcome(
            content=f"Error: {e}. Use create_if_missing=true or check the element name.",
            is_error=True,
            detail=name,
        )
    return ToolOutcome(content=f"Element '{name}' updated", detail=name)


def _image_element_code(url: str, data_url: str, x: float, y: float, width: int, height: int) -> str:
    return "\n".join(
        [
            f"// Imported from {url}",
            "(() => {",
            "  const img = new Image();",
            "  const drawn = new Promise((resolve) => {",
            f"    img.onload = () => {{ try {{ ctx.drawImage(img, {x:g}, {y:g}, {width}, {height}); }} finally {{ resolve(); }} }};",
            "    img.onerror = () => resolve();",
            "  });",
            "  if (window.__pending) window.__pending.push(drawn);",
            f"  img.src = {json.dumps(data_url)};",
            "})();",
        ]
    )


def _failed_import_code(url: str, message: str, x: float, y: float) -> str:
    return "\n".join(
        [
            "ctx.save();",
            'ctx.fillStyle = "#ff4d4f";',
            'ctx.font = "16px sans-serif";',
            f"ctx.fillText({json.dumps('Failed to import ' + url)}, {x:g}, {y:g} + 20);",
            'ctx.font = "12px sans-serif";',
            f"ctx.fillText({json.dumps(message[:120])}, {x:g}, {y:g} + 40);",
            "ctx.restore();",
        ]
    )


@canvas_tool(
    name="import_webpage",
    description=(
        "Screenshot a web page (http/https only) and place the image on the canvas at (x, y). "
        "The screenshot is stored in a named element so it can be moved or removed later."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "http(s) URL to capture"},
            "x": {"type": "number", "default": 0},
            "y": {"type": "number", "default": 0},
            "width": {"type": "integer", "description": "Viewport width (320-1920)", "default": 1024},
            "height": {"type": "integer", "description": "Viewport height (240-1080)", "default": 768},
            "name": {"type": "string", "description": "Element name for the image"},
        },
        "required": ["url"],
    },
)
async def import_webpage(ctx: ToolContext, args: dict[str, Any]) -> ToolOutcome:
    url = str(args["url"]).replace("\n", " ").strip()
    x, y = _coordinate(args.get("x", 0)), _coordinate(args.get("y", 0))
    width, height = clamp_viewport(args.get("width", 1024), args.get("height", 768))
    name = str(args.get("name") or f"webpage_{ctx.next_index('webpage')}")

    try:
        if ctx.screenshotter is None:
            raise WebpageImportError("Webpage import is not available")
        png = await ctx.screenshotter.capture(url, width, height)
    except WebpageImportError as e:
        logger.warning("import_webpage failed for %s: %s", url, e)
        ctx.source = update_element(ctx.source, name, _failed_import_code(url, str(e), x, y))
        return ToolOutcome(content=f"Error: {e}", is_error=True, detail=url)

    data_url = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
    ctx.source = update_element(ctx.source, name, _image_element_code(url, data_url, x, y, width, height))
    return ToolOutcome(
        content=f"Imported {url} as element '{name}' ({width}x{height} at {x},{y})",
        detail=url,
    )


def default_registry() -> ToolRegistry:
    """The registry holding the tools above (importing this module registers them)."""
    return get_registry()
