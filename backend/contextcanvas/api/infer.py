"""POST /api/infer: one vision call over the wall canvas, optionally with extended thinking."""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from langchain_core.messages import HumanMessage

from contextcanvas.dependencies import get_gateway
from contextcanvas.llm.gateway import GatewayError, ModelGateway, message_text, message_thinking, usage_tokens
from contextcanvas.llm.prompts import WALL_INFER_PROMPT
from contextcanvas.models.requests import InferRequest
from contextcanvas.models.responses import InferResponse
from contextcanvas.orchestrator.loop import image_block, parse_screenshot, text_block

router = APIRouter()
logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:javascript|js)?\s*", re.IGNORECASE)


def extract_code(text: str) -> str:
    """Strip markdown code fences the model adds despite being told not to."""
    return _FENCE_RE.sub("", text).strip()


@router.post("/infer", response_model=InferResponse)
async def infer(req: InferRequest, gateway: ModelGateway = Depends(get_gateway)):
    data, media_type = parse_screenshot(req.wall_image)
    turn = HumanMessage(content=[image_block(data, media_type), text_block(WALL_INFER_PROMPT)])

    options = gateway.default_options()
    options.temperature = req.temperature
    options.thinking = req.enable_thinking

    try:
        reply = await gateway.complete(req.system_prompt, [turn], options=options)
    except GatewayError as e:
        logger.error("Error calling Anthropic API: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    thinking, signature = message_thinking(reply)
    return InferResponse(
        success=True,
        code=extract_code(message_text(reply)),
        thinking=thinking,
        signature=signature,
        usage=usage_tokens(reply),
    )
