"""POST /api/iterate: avatar builder. Draw a first avatar, then refine it from the last render."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from contextcanvas.api.infer import extract_code
from contextcanvas.dependencies import get_gateway
from contextcanvas.llm.gateway import GatewayError, ModelGateway, message_text, usage_tokens
from contextcanvas.llm.prompts import AVATAR_FIRST_TEMPLATE, AVATAR_REFINE_TEMPLATE
from contextcanvas.models.requests import IterateRequest
from contextcanvas.models.responses import IterateResponse
from contextcanvas.orchestrator.loop import image_block, parse_screenshot, text_block

router = APIRouter()
logger = logging.getLogger(__name__)


def _build_turns(req: IterateRequest) -> list[BaseMessage]:
    turns: list[BaseMessage] = []
    for msg in req.conversation_history:
        if msg.role == "user":
            turns.append(HumanMessage(content=msg.content))
        else:
            turns.append(AIMessage(content=msg.content))

    if req.iteration_number == 0:
        prompt = AVATAR_FIRST_TEMPLATE.format(persona=req.persona)
    else:
        prompt = AVATAR_REFINE_TEMPLATE.format(iteration=req.iteration_number)

    if req.previous_image:
        data, media_type = parse_screenshot(req.previous_image)
        turns.append(HumanMessage(content=[image_block(data, media_type), text_block(prompt)]))
    else:
        turns.append(HumanMessage(content=prompt))
    return turns


@router.post("/iterate", response_model=IterateResponse)
async def iterate(req: IterateRequest, gateway: ModelGateway = Depends(get_gateway)):
    try:
        reply = await gateway.complete("", _build_turns(req))
    except GatewayError as e:
        logger.error("Error calling Anthropic API: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return IterateResponse(success=True, code=extract_code(message_text(reply)), usage=usage_tokens(reply))
