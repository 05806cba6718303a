"""Tool registry: every canvas tool is a handler registered via decorator.

Usage:
    @canvas_tool(
        name="replace_canvas",
        description="Replace all canvas code.",
        input_schema={"type": "object", "properties": {"code": {"type": "string"}}, "required": ["code"]},
    )
    async def replace_canvas(ctx: ToolContext, args: dict) -> ToolOutcome:
        ctx.source = replace_all(ctx.source, args["code"])
        return ToolOutcome(content="Canvas replaced")

The tool loop only sees the registry: it sends ``schemas()`` to the model and
dispatches each tool call by name through ``get()``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from contextcanvas.render.webpage import WebpageScreenshotter

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Mutable state a handler may touch during one round."""

    source: str
    width: int
    height: int
    screenshotter: "WebpageScreenshotter | None" = None
    # Per-session counter for generated element names (webpage_1, webpage_2, ...)
    counters: dict[str, int] = field(default_factory=dict)

    def next_index(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]


@dataclass
class ToolOutcome:
    content: str
    is_error: bool = False
    detail: str = ""


ToolHandler = Callable[[ToolContext, dict[str, Any]], Awaitable[ToolOutcome]]


@dataclass
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler

    def schema(self) -> dict[str, Any]:
        """Anthropic tool definition."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def missing_arguments(self, args: dict[str, Any]) -> list[str]:
        required = self.input_schema.get("required", [])
        return [key for key in required if key not in args]


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Duplicate tool name: {spec.name}")
        self._tools[spec.name] = spec
        logger.debug("Registered tool %s", spec.name)

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def schemas(self) -> list[dict[str, Any]]:
        return [spec.schema() for spec in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def count(self) -> int:
        return len(self._tools)


# Module-level singleton
_registry = ToolRegistry()


def get_registry() -> ToolRegistry:
    return _registry


def canvas_tool(*, name: str, description: str, input_schema: dict[str, Any]):
    """Decorator to register a tool handler in the default registry."""

    def decorator(fn: ToolHandler) -> ToolHandler:
        _registry.register(ToolSpec(name=name, description=description, input_schema=input_schema, handler=fn))
        return fn

    return decorator
