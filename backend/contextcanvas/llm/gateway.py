"""Model gateway: LangChain ChatAnthropic calls with overload retry.

The SDK's own retries are disabled (``max_retries=0``) so the policy here is
the only one: an "overloaded" error is retried with exponential backoff
(2s, 4s, ...) up to ``retry_attempts`` attempts in total; anything else fails
immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, SystemMessage

from contextcanvas.config import Settings

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "[LLM not configured - set ANTHROPIC_API_KEY in .env]"

# (error type, message) pairs the API uses for capacity errors. A None
# message matches any message for that type.
_OVERLOADED_SIGNATURES = {
    ("overloaded_error", None),
    ("api_error", "Overloaded"),
}


class GatewayError(Exception):
    """Base class for model call failures."""


class TransientOverload(GatewayError):
    """The provider is temporarily over capacity. Retried by the gateway."""


class FatalRequestError(GatewayError):
    """A model call failed for good (non-retryable, timed out, or retries exhausted)."""


@dataclass
class GatewayOptions:
    temperature: float | None = 1.0
    thinking: bool = False
    thinking_budget: int = 3000
    max_tokens: int = 8192


def _error_body(exc: BaseException) -> dict[str, Any] | None:
    """Find the ``{"error": {"type", "message"}}`` payload on an SDK error, if any."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        return body
    error = getattr(exc, "error", None)
    if isinstance(error, dict):
        return error if "error" in error else {"error": error}
    return None


def is_overloaded(exc: BaseException) -> bool:
    if isinstance(exc, TransientOverload):
        return True
    body = _error_body(exc)
    if not body:
        return False
    nested = body.get("error")
    if not isinstance(nested, dict):
        return False
    err_type, message = nested.get("type"), nested.get("message")
    return (err_type, None) in _OVERLOADED_SIGNATURES or (err_type, message) in _OVERLOADED_SIGNATURES


def usage_tokens(message: AIMessage) -> dict[str, int]:
    usage = getattr(message, "usage_metadata", None) or {}
    return {
        "input_tokens": int(usage.get("input_tokens", 0) or 0),
        "output_tokens": int(usage.get("output_tokens", 0) or 0),
    }


def message_text(message: BaseMessage) -> str:
    """Concatenate the visible text blocks of a message (thinking excluded)."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def message_thinking(message: BaseMessage) -> tuple[str, str]:
    """Return (thinking, signature) from the first thinking block, or empty strings."""
    if isinstance(message.content, str):
        return "", ""
    for block in message.content:
        if isinstance(block, dict) and block.get("type") == "thinking":
            return block.get("thinking", ""), block.get("signature", "")
    return "", ""


def _default_model_factory(settings: Settings) -> Callable[[GatewayOptions], Any]:
    def build(options: GatewayOptions):
        from langchain_anthropic import ChatAnthropic

        kwargs: dict[str, Any] = {
            "model": settings.model,
            "api_key": settings.anthropic_api_key,
            "max_tokens": options.max_tokens,
            "max_retries": 0,
        }
        if options.thinking:
            # The API rejects non-default temperatures with thinking on
            kwargs["max_tokens"] = max(options.max_tokens, options.thinking_budget + 1024)
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": options.thinking_budget}
        elif options.temperature is not None:
            kwargs["temperature"] = options.temperature
        return ChatAnthropic(**kwargs)

    return build


class ModelGateway:
    def __init__(
        self,
        settings: Settings,
        model_factory: Callable[[GatewayOptions], Any] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self._configured = model_factory is not None or bool(settings.anthropic_api_key)
        self._model_factory = model_factory or _default_model_factory(settings)
        self._sleep = sleep

    def default_options(self) -> GatewayOptions:
        return GatewayOptions(
            thinking_budget=self.settings.thinking_budget,
            max_tokens=self.settings.max_tokens,
        )

    async def complete(
        self,
        system_prompt: str,
        turns: Sequence[BaseMessage],
        tools: list[dict[str, Any]] | None = None,
        options: GatewayOptions | None = None,
    ) -> AIMessage:
        if not self._configured:
            return AIMessage(content=NOT_CONFIGURED_MESSAGE)

        options = options or self.default_options()
        llm = self._model_factory(options)
        if tools:
            llm = llm.bind_tools(tools)

        messages: list[BaseMessage] = [SystemMessage(content=system_prompt)] if system_prompt else []
        messages.extend(turns)
        attempts = max(1, self.settings.retry_attempts)
        last_error: BaseException | None = None

        for attempt in range(attempts):
            try:
                return await asyncio.wait_for(llm.ainvoke(messages), self.settings.model_timeout_s)
            except asyncio.TimeoutError as e:
                raise FatalRequestError(
                    f"Model call timed out after {self.settings.model_timeout_s:.0f}s"
                ) from e
            except Exception as e:
                if not is_overloaded(e):
                    raise FatalRequestError(str(e)) from e
                last_error = e
                if attempt == attempts - 1:
                    break
                wait_s = self.settings.retry_base_delay_s * (2**attempt)
                logger.warning(
                    "API overloaded, retrying in %.0fs (attempt %d/%d)",
                    wait_s,
                    attempt + 1,
                    attempts,
                )
                await self._sleep(wait_s)

        logger.error("API still overloaded after %d attempts", attempts)
        raise FatalRequestError(str(last_error) or "Overloaded") from last_error
