"""API response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    message: str = "Context Canvas server running"
    version: str = "0.1.0"
    tools: list[str] = Field(default_factory=list)


class ToolUse(BaseModel):
    kind: str
    detail: str = ""
    error: str | None = None


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    response: str = ""
    canvas_js: str = Field(default="", alias="canvasJS")
    canvas_image: str | None = Field(default=None, alias="canvasImage")
    tool_uses: list[ToolUse] = Field(default_factory=list, alias="toolUses")
    usage: dict[str, int] = Field(default_factory=dict)
    elements: list[str] = Field(default_factory=list)
    error: str | None = None


class IterateResponse(BaseModel):
    success: bool = True
    code: str = ""
    usage: dict[str, Any] = Field(default_factory=dict)


class InferResponse(BaseModel):
    success: bool = True
    code: str = ""
    thinking: str = ""
    signature: str = ""
    usage: dict[str, Any] = Field(default_factory=dict)


class SessionDeleteResponse(BaseModel):
    success: bool = True
    removed: bool = False
