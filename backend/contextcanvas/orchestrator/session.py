"""Chat sessions: per-session conversation history with explicit lifecycle.

History lives in a ``SessionStore`` owned by the app, not in module state.
Each session carries a lock; the API holds it for a whole exchange, so two
requests on the same session run one after the other while different
sessions proceed concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from contextcanvas.render.rasterizer import RenderedImage

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


@dataclass
class ChatSession:
    session_id: str
    history: list[BaseMessage] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Generated element-name counters survive across exchanges
    counters: dict[str, int] = field(default_factory=dict)
    last_used: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_used = time.monotonic()


@dataclass
class OrchestrationSession:
    """State for one exchange; discarded once the response is sent."""

    source: str
    width: int
    height: int
    image: RenderedImage | None = None
    tool_uses: list[dict[str, object]] = field(default_factory=list)
    iteration: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    turns: list[BaseMessage] = field(default_factory=list)
    final_text: str = ""
    error: str | None = None
    cap_hit: bool = False
    started: float = field(default_factory=time.monotonic)

    @property
    def tokens(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.input_tokens + self.output_tokens,
        }

    def add_usage(self, usage: dict[str, int]) -> None:
        self.input_tokens += usage.get("input_tokens", 0)
        self.output_tokens += usage.get("output_tokens", 0)


def _is_exchange_start(messages: list[BaseMessage], index: int) -> bool:
    """A user turn that opens an exchange, i.e. not the screenshot turn after tool results."""
    msg = messages[index]
    if not isinstance(msg, HumanMessage):
        return False
    if index == 0:
        return True
    prev = messages[index - 1]
    return not isinstance(prev, ToolMessage) and not (isinstance(prev, AIMessage) and prev.tool_calls)


def trim_history(messages: list[BaseMessage], limit: int) -> list[BaseMessage]:
    """Keep at most ``limit`` messages, dropping whole exchanges from the oldest end.

    Cuts only happen at exchange boundaries, so an assistant turn with tool
    calls always keeps its tool results. If even the newest exchange is longer
    than ``limit``, that exchange alone is kept.
    """
    if limit <= 0:
        return []
    if len(messages) <= limit:
        return list(messages)

    boundaries = [i for i in range(len(messages)) if _is_exchange_start(messages, i)]
    earliest = len(messages) - limit
    for i in boundaries:
        if i >= earliest:
            return messages[i:]

    if boundaries:
        logger.debug("Newest exchange exceeds history limit %d; keeping it whole", limit)
        return messages[boundaries[-1] :]
    return []


def drop_unanswered_tool_calls(messages: list[BaseMessage]) -> list[BaseMessage]:
    """Cut the list at the first assistant turn whose tool calls lack results.

    Happens when an exchange aborts mid-round; the API rejects a tool call
    without a matching result in later requests.
    """
    for i, msg in enumerate(messages):
        if not isinstance(msg, AIMessage) or not msg.tool_calls:
            continue
        answered: set[str] = set()
        for follower in messages[i + 1 :]:
            if not isinstance(follower, ToolMessage):
                break
            answered.add(follower.tool_call_id)
        if any(call["id"] not in answered for call in msg.tool_calls):
            logger.debug("Dropping %d turns with unanswered tool calls", len(messages) - i)
            return messages[:i]
    return list(messages)


class SessionStore:
    """In-memory map of session id -> ChatSession."""

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}

    def get(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str | None = None) -> ChatSession:
        session_id = session_id or DEFAULT_SESSION_ID
        session = self._sessions.get(session_id)
        if session is None:
            session = ChatSession(session_id=session_id)
            self._sessions[session_id] = session
            logger.info("Created session %s", session_id)
        session.touch()
        return session

    def evict(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("Evicted session %s", session_id)
        return removed

    def evict_idle(self, max_idle_s: float) -> list[str]:
        """Drop sessions unused for ``max_idle_s`` seconds, skipping ones mid-exchange."""
        cutoff = time.monotonic() - max_idle_s
        stale = [
            sid
            for sid, s in self._sessions.items()
            if s.last_used < cutoff and not s.lock.locked()
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("Evicted %d idle sessions", len(stale))
        return stale

    def __len__(self) -> int:
        return len(self._sessions)
