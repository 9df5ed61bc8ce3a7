"""
Streaming tool-orchestration loop.

One session per request:

    IDLE -> STREAMING(1) -> [TOOL_DISPATCH -> STREAMING(n+1)]* -> DONE | BUDGET_EXHAUSTED

Each STREAMING step is one model call. Its text, reasoning and sources are
forwarded as they arrive; its completed tool calls are validated and
dispatched concurrently, and their results are appended to the history in
call order (correlated by call id). A step without tool calls ends the turn.
The step budget is checked before every model call, so after the last allowed
step the loop stops with whatever has been produced.

Tool failures never escape the loop: they become `tool-output-error` events
carrying a user-safe French message. Model failures propagate to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional, Sequence

from insurance_agent.chat.prompts import SYSTEM_PROMPT
from insurance_agent.chat.types import (
    ModelMessage,
    ReasoningPart,
    SourcePart,
    TextPart,
    ToolCallPart,
    ToolInvocation,
    ToolResultPart,
)
from insurance_agent.llm.streaming import ChatModel
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.registry import TOOLS, ToolDefinition, ToolResult, run_tool
from insurance_agent.tools.summaries import summarize_tool_result, tool_call_key

logger = logging.getLogger(__name__)


@dataclass
class ChatStreamEvent:
    """Single event in the chat stream; `event_type` is the SSE event name."""

    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


class LoopState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"
    BUDGET_EXHAUSTED = "budget_exhausted"


_TRANSITIONS = {
    LoopState.IDLE: (LoopState.STREAMING,),
    LoopState.STREAMING: (LoopState.TOOL_DISPATCH, LoopState.DONE),
    LoopState.TOOL_DISPATCH: (LoopState.STREAMING, LoopState.BUDGET_EXHAUSTED),
    LoopState.DONE: (),
    LoopState.BUDGET_EXHAUSTED: (),
}

FINISH_REASONS = {LoopState.DONE: "stop", LoopState.BUDGET_EXHAUSTED: "step-limit"}


@dataclass
class ChatSession:
    """Per-request state: history buffer, step counter and the turn's tool calls."""

    history: List[ModelMessage]
    max_steps: int
    step: int = 0
    state: LoopState = LoopState.IDLE
    invocations: Dict[str, ToolInvocation] = field(default_factory=dict)

    def transition(self, to: LoopState) -> None:
        if to not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal chat loop transition {self.state.value} -> {to.value}")
        self.state = to

    def new_invocation(self, *, provider_call_id: Optional[str], tool_name: str, index: int) -> ToolInvocation:
        call_id = (provider_call_id or "").strip()
        if not call_id or call_id in self.invocations:
            # Missing or reused provider ids get a fresh id unique within this turn.
            call_id = f"call_{uuid.uuid4().hex[:16]}"
        inv = ToolInvocation(
            call_id=call_id,
            tool_name=tool_name,
            provider_call_id=provider_call_id,
            index=index,
            step=self.step,
        )
        self.invocations[call_id] = inv
        return inv


def _start_message(tools: Mapping[str, ToolDefinition], name: str) -> str:
    t = tools.get(name)
    return t.start_message if t is not None else "Traitement en cours"


async def _dispatch(calls: Sequence[ToolInvocation], ctx: ToolContext) -> List[ToolResult]:
    return list(await asyncio.gather(*(run_tool(inv.tool_name, inv.input, ctx) for inv in calls)))


async def run_chat_stream(
    *,
    messages: Sequence[ModelMessage],
    model: ChatModel,
    ctx: ToolContext,
    tools: Mapping[str, ToolDefinition] = TOOLS,
    max_steps: Optional[int] = None,
    system_prompt: Optional[str] = SYSTEM_PROMPT,
) -> AsyncGenerator[ChatStreamEvent, None]:
    """
    Run one assistant turn and yield its stream events, ending with `finish`.

    Yields (in order per step): start-step, then any of reasoning-delta,
    text-delta, source-url, tool-input-start, tool-input-delta,
    tool-input-available; then tool-output-available / tool-output-error for
    each dispatched call; then finish-step.
    """
    budget = int(max_steps if max_steps is not None else ctx.config.max_steps)
    history: List[ModelMessage] = []
    if system_prompt:
        history.append(ModelMessage(role="system", parts=(TextPart(text=system_prompt),)))
    history.extend(messages)

    session = ChatSession(history=history, max_steps=max(1, budget))
    tool_defs = list(tools.values())
    session.transition(LoopState.STREAMING)

    while True:
        session.step += 1
        step = session.step
        yield ChatStreamEvent("start-step", {"step": step})

        text_buf: List[str] = []
        reasoning_buf: List[str] = []
        sources: List[SourcePart] = []
        by_index: Dict[int, ToolInvocation] = {}

        async for ch in model.stream_step(session.history, tool_defs):
            if ch.kind == "text":
                text_buf.append(ch.text)
                yield ChatStreamEvent("text-delta", {"id": f"text-{step}", "delta": ch.text})

            elif ch.kind == "reasoning":
                reasoning_buf.append(ch.text)
                yield ChatStreamEvent("reasoning-delta", {"id": f"reasoning-{step}", "delta": ch.text})

            elif ch.kind == "source":
                src = SourcePart(source_id=f"src-{step}-{len(sources) + 1}", url=str(ch.url), title=ch.title)
                sources.append(src)
                yield ChatStreamEvent("source-url", {"sourceId": src.source_id, "url": src.url, "title": src.title})

            elif ch.kind == "tool-call-start":
                if ch.index in by_index:
                    continue
                inv = session.new_invocation(
                    provider_call_id=ch.call_id, tool_name=ch.tool_name or "", index=ch.index
                )
                by_index[ch.index] = inv
                yield ChatStreamEvent(
                    "tool-input-start",
                    {
                        "toolCallId": inv.call_id,
                        "toolName": inv.tool_name,
                        "title": _start_message(tools, inv.tool_name),
                    },
                )

            elif ch.kind == "tool-call-delta":
                inv = by_index.get(ch.index)
                if inv is None or inv.state != "input-streaming":
                    continue
                inv.input_text += ch.text
                yield ChatStreamEvent("tool-input-delta", {"toolCallId": inv.call_id, "inputTextDelta": ch.text})

            elif ch.kind == "tool-call":
                inv = by_index.get(ch.index)
                if inv is None:
                    inv = session.new_invocation(
                        provider_call_id=ch.call_id, tool_name=ch.tool_name or "", index=ch.index
                    )
                    by_index[ch.index] = inv
                    yield ChatStreamEvent(
                        "tool-input-start",
                        {
                            "toolCallId": inv.call_id,
                            "toolName": inv.tool_name,
                            "title": _start_message(tools, inv.tool_name),
                        },
                    )
                elif inv.state != "input-streaming":
                    continue
                if ch.tool_name:
                    inv.tool_name = ch.tool_name
                inv.input = ch.args
                inv.advance("input-available")
                yield ChatStreamEvent(
                    "tool-input-available",
                    {"toolCallId": inv.call_id, "toolName": inv.tool_name, "input": inv.input},
                )

        calls = [by_index[i] for i in sorted(by_index) if by_index[i].state == "input-available"]
        for i in sorted(by_index):
            if by_index[i].state == "input-streaming":
                logger.warning("Dropping incomplete tool call %s (%s)", by_index[i].call_id, by_index[i].tool_name)

        parts: List[Any] = []
        if reasoning_buf:
            parts.append(ReasoningPart(text="".join(reasoning_buf)))
        if text_buf:
            parts.append(TextPart(text="".join(text_buf)))
        parts.extend(sources)
        parts.extend(ToolCallPart(tool_call_id=c.call_id, tool_name=c.tool_name, input=c.input) for c in calls)
        if parts:
            session.history.append(ModelMessage(role="assistant", parts=tuple(parts)))

        if not calls:
            yield ChatStreamEvent("finish-step", {"step": step})
            session.transition(LoopState.DONE)
            break

        session.transition(LoopState.TOOL_DISPATCH)
        results = await _dispatch(calls, ctx)

        result_parts: List[ToolResultPart] = []
        for inv, res in zip(calls, results):
            outcome, summary = summarize_tool_result(
                tool=inv.tool_name, ok=res.ok, error=res.error_kind, result=res.output
            )
            logger.info(
                "Tool result %s (%s): %s",
                tool_call_key(inv.tool_name, inv.input if isinstance(inv.input, dict) else {}),
                outcome,
                summary,
            )
            if res.ok:
                inv.output = res.output
                inv.advance("output-available")
                result_parts.append(ToolResultPart(tool_call_id=inv.call_id, tool_name=inv.tool_name, output=res.output))
                yield ChatStreamEvent(
                    "tool-output-available",
                    {"toolCallId": inv.call_id, "toolName": inv.tool_name, "output": res.output},
                )
            else:
                inv.error_text = res.error
                inv.metadata["errorKind"] = res.error_kind
                inv.advance("output-error")
                result_parts.append(
                    ToolResultPart(tool_call_id=inv.call_id, tool_name=inv.tool_name, error_text=res.error or "")
                )
                yield ChatStreamEvent(
                    "tool-output-error",
                    {"toolCallId": inv.call_id, "toolName": inv.tool_name, "errorText": res.error},
                )
        session.history.append(ModelMessage(role="tool", parts=tuple(result_parts)))
        yield ChatStreamEvent("finish-step", {"step": step})

        if session.step >= session.max_steps:
            session.transition(LoopState.BUDGET_EXHAUSTED)
            logger.info("Step budget exhausted after %d step(s)", session.step)
            break
        session.transition(LoopState.STREAMING)

    yield ChatStreamEvent(
        "finish",
        {
            "finishReason": FINISH_REASONS[session.state],
            "steps": session.step,
            "toolCalls": len(session.invocations),
        },
    )
