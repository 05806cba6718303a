"""API request models. Wire names are camelCase, as the browser clients send them."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_SCALE, MAX_SCALE = 0.1, 5.0


class CanvasDimensions(BaseModel):
    width: int = Field(default=1024, ge=1, le=4096)
    height: int = Field(default=768, ge=1, le=4096)


class Viewport(BaseModel):
    """Client pan/zoom state. ``scale`` is clamped rather than rejected."""

    model_config = ConfigDict(populate_by_name=True)

    offset_x: float = Field(default=0.0, alias="offsetX")
    offset_y: float = Field(default=0.0, alias="offsetY")
    scale: float = 1.0

    @field_validator("scale")
    @classmethod
    def _clamp_scale(cls, v: float) -> float:
        return max(MIN_SCALE, min(v, MAX_SCALE))

    def as_dict(self) -> dict[str, float]:
        return {"offsetX": self.offset_x, "offsetY": self.offset_y, "scale": self.scale}


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="", description="User's chat message")
    canvas_screenshot: str | None = Field(
        default=None, alias="canvasScreenshot", description="PNG data URL of the client canvas"
    )
    canvas_js: str | None = Field(default=None, alias="canvasJS", description="Current canvas JavaScript")
    canvas_dimensions: CanvasDimensions | None = Field(default=None, alias="canvasDimensions")
    viewport: Viewport | None = None
    session_id: str | None = Field(default=None, alias="sessionId")
    enable_thinking: bool = Field(default=False, alias="enableThinking")
    temperature: float | None = Field(default=None, ge=0.0, le=1.0)


class HistoryMessage(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class IterateRequest(BaseModel):
    """Avatar iteration: first drawing, then refinements from the previous render."""

    model_config = ConfigDict(populate_by_name=True)

    persona: str = Field(default="", description="Who the model is drawing itself as")
    iteration_number: int = Field(default=0, ge=0, alias="iterationNumber")
    previous_image: str | None = Field(default=None, alias="previousImage", description="base64 PNG")
    conversation_history: list[HistoryMessage] = Field(default_factory=list, alias="conversationHistory")


class InferRequest(BaseModel):
    """One vision call over a snapshot of the wall canvas."""

    model_config = ConfigDict(populate_by_name=True)

    system_prompt: str = Field(default="", alias="systemPrompt")
    wall_image: str = Field(..., alias="wallImage", description="base64 PNG of the current canvas")
    enable_thinking: bool = Field(default=False, alias="enableThinking")
    temperature: float = Field(default=1.0, ge=0.0, le=1.0)
