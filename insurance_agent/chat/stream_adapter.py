"""
Server-Sent Events adapter for a chat turn.

Wraps the orchestration loop with:
- the `start` event and SSE framing (`event: <type>` / `data: <json>`)
- the request wall-clock ceiling: on expiry the stream ends with a `finish`
  event whose `finishReason` is `timeout`
- the last-resort error boundary: anything escaping the loop is logged and
  reported as a single `error` event with a fixed French message
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Dict, Optional

from insurance_agent.chat.runtime_streaming import ChatStreamEvent, run_chat_stream
from insurance_agent.chat.types import ChatRequest, ui_messages_to_model_messages
from insurance_agent.errors import user_safe_message
from insurance_agent.llm.client import resolve_model_id
from insurance_agent.llm.streaming import ChatModel, get_chat_model
from insurance_agent.tools.context import ToolContext

logger = logging.getLogger(__name__)


def format_sse_event(event_type: str, data: Dict[str, Any]) -> str:
    """Format data as Server-Sent Event."""
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


async def run_chat_request(
    req: ChatRequest,
    *,
    ctx: ToolContext,
    model_factory: Callable[[str], ChatModel] = get_chat_model,
) -> AsyncGenerator[ChatStreamEvent, None]:
    """Resolve the model for `req`, convert its history and run one turn."""
    model_id = resolve_model_id(req.model, web_search=req.web_search, cfg=ctx.config)
    logger.info("Chat turn: model=%s web_search=%s messages=%d", model_id, req.web_search, len(req.messages))
    model = model_factory(model_id)
    messages = ui_messages_to_model_messages(req.messages)
    async for ev in run_chat_stream(messages=messages, model=model, ctx=ctx):
        yield ev


async def stream_sse(
    events: AsyncIterator[ChatStreamEvent],
    *,
    timeout_seconds: float,
    message_id: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + float(timeout_seconds)
    agen = events.__aiter__()

    yield format_sse_event("start", {"messageId": message_id or f"msg-{uuid.uuid4().hex[:16]}"})
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning("Chat stream hit the %.0fs ceiling", timeout_seconds)
                yield format_sse_event("finish", {"finishReason": "timeout"})
                break
            try:
                ev = await asyncio.wait_for(agen.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError:
                if loop.time() < deadline:
                    raise
                logger.warning("Chat stream hit the %.0fs ceiling", timeout_seconds)
                yield format_sse_event("finish", {"finishReason": "timeout"})
                break
            yield format_sse_event(ev.event_type, ev.payload)
    except Exception as e:
        logger.exception("Chat stream error: %s", e)
        yield format_sse_event("error", {"errorText": user_safe_message(e)})
    finally:
        aclose = getattr(agen, "aclose", None)
        if aclose is not None:
            await aclose()
