"""
Streaming, tool-aware model capability.

The orchestration loop only talks to the `ChatModel` Protocol: one call per
step, yielding `ModelStreamChunk`s (text, reasoning, tool-call fragments,
completed tool calls, source citations). `LangChainChatModel` adapts any
LangChain chat model with `bind_tools` + `astream`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Literal, Optional, Protocol, Sequence, Tuple

from insurance_agent.chat.types import ModelMessage
from insurance_agent.config import _env_bool
from insurance_agent.errors import ModelProviderError
from insurance_agent.llm.client import _classify_error, _get_llm_instance, _load_config
from insurance_agent.tools.registry import ToolDefinition
from insurance_agent.tracing import build_invoke_config

logger = logging.getLogger(__name__)

ChunkKind = Literal["text", "reasoning", "tool-call-start", "tool-call-delta", "tool-call", "source"]


@dataclass(frozen=True)
class ModelStreamChunk:
    """
    Single chunk of one model step.

    Tool calls are keyed by `index` within the step: `tool-call-start` and
    `tool-call-delta` may precede the final `tool-call`, which carries the
    parsed arguments (a dict, or the raw text when it was not valid JSON).
    """

    kind: ChunkKind
    text: str = ""
    index: int = 0
    call_id: Optional[str] = None
    tool_name: Optional[str] = None
    args: Any = None
    url: Optional[str] = None
    title: Optional[str] = None


class ChatModel(Protocol):
    model_id: str

    def stream_step(
        self, messages: Sequence[ModelMessage], tools: Sequence[ToolDefinition]
    ) -> AsyncIterator[ModelStreamChunk]: ...


def parse_tool_args(raw: str) -> Any:
    if not (raw or "").strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def to_langchain_messages(messages: Sequence[ModelMessage]) -> List[Any]:
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

    out: List[Any] = []
    for m in messages:
        if m.role == "system":
            out.append(SystemMessage(content=m.text()))
        elif m.role == "user":
            out.append(HumanMessage(content=m.text()))
        elif m.role == "assistant":
            out.append(
                AIMessage(
                    content=m.text(),
                    tool_calls=[
                        {
                            "name": c.tool_name,
                            "args": c.input if isinstance(c.input, dict) else {},
                            "id": c.tool_call_id,
                        }
                        for c in m.tool_calls()
                    ],
                )
            )
        else:
            for r in m.tool_results():
                out.append(ToolMessage(content=r.content_for_model(), tool_call_id=r.tool_call_id, name=r.tool_name))
    return out


def _content_pieces(content: Any) -> Iterable[ModelStreamChunk]:
    if isinstance(content, str):
        if content:
            yield ModelStreamChunk(kind="text", text=content)
        return
    if not isinstance(content, list):
        return
    for block in content:
        if isinstance(block, str):
            if block:
                yield ModelStreamChunk(kind="text", text=block)
            continue
        if not isinstance(block, dict):
            continue
        btype = block.get("type")
        if btype == "text" and block.get("text"):
            yield ModelStreamChunk(kind="text", text=str(block["text"]))
        elif btype == "thinking" and block.get("thinking"):
            yield ModelStreamChunk(kind="reasoning", text=str(block["thinking"]))
        elif btype == "reasoning":
            for s in block.get("summary") or []:
                if isinstance(s, dict) and s.get("text"):
                    yield ModelStreamChunk(kind="reasoning", text=str(s["text"]))


def _citations(chunk: Any) -> Iterable[Tuple[str, Optional[str]]]:
    meta = getattr(chunk, "response_metadata", None) or {}
    extra = getattr(chunk, "additional_kwargs", None) or {}
    for src in (meta, extra):
        for c in src.get("citations") or []:
            if isinstance(c, str) and c:
                yield c, None
        for r in src.get("search_results") or []:
            if isinstance(r, dict) and r.get("url"):
                yield str(r["url"]), (str(r["title"]) if r.get("title") else None)


class LangChainChatModel:
    def __init__(self, model_id: str, llm: Any):
        self.model_id = model_id
        self._llm = llm

    async def stream_step(
        self, messages: Sequence[ModelMessage], tools: Sequence[ToolDefinition]
    ) -> AsyncIterator[ModelStreamChunk]:
        llm = self._llm.bind_tools([t.spec() for t in tools]) if tools else self._llm
        config = build_invoke_config(kind="chat_step", run_name="chat_step", metadata={"model": self.model_id})

        calls: Dict[Any, Dict[str, Any]] = {}
        seen_urls: set = set()
        last_key: Any = None

        try:
            async for chunk in llm.astream(to_langchain_messages(messages), config=config or None):
                for piece in _content_pieces(getattr(chunk, "content", None)):
                    yield piece

                reasoning = (getattr(chunk, "additional_kwargs", None) or {}).get("reasoning_content")
                if reasoning:
                    yield ModelStreamChunk(kind="reasoning", text=str(reasoning))

                for tc in getattr(chunk, "tool_call_chunks", None) or []:
                    key = tc.get("index")
                    if key is None:
                        key = tc.get("id") or (last_key if last_key is not None else 0)
                    last_key = key
                    acc = calls.get(key)
                    if acc is None:
                        acc = {"pos": len(calls), "id": tc.get("id"), "name": tc.get("name") or "", "args": ""}
                        calls[key] = acc
                        yield ModelStreamChunk(
                            kind="tool-call-start", index=acc["pos"], call_id=acc["id"], tool_name=acc["name"]
                        )
                    else:
                        acc["id"] = acc["id"] or tc.get("id")
                        acc["name"] = acc["name"] or tc.get("name") or ""
                    delta = tc.get("args") or ""
                    if delta:
                        acc["args"] += delta
                        yield ModelStreamChunk(kind="tool-call-delta", index=acc["pos"], text=delta)

                for url, title in _citations(chunk):
                    if url not in seen_urls:
                        seen_urls.add(url)
                        yield ModelStreamChunk(kind="source", url=url, title=title)
        except ModelProviderError:
            raise
        except Exception as e:
            code = _classify_error(e, model=self.model_id)
            logger.warning("model stream failed (%s): %s", code, e)
            raise ModelProviderError(code, detail=str(e)) from e

        for acc in calls.values():
            yield ModelStreamChunk(
                kind="tool-call",
                index=acc["pos"],
                call_id=acc["id"],
                tool_name=acc["name"],
                args=parse_tool_args(acc["args"]),
            )


class MockChatModel:
    """Deterministic stand-in used when LLM_MOCK=1 (no tool calls, no external calls)."""

    def __init__(self, model_id: str):
        self.model_id = model_id

    async def stream_step(
        self, messages: Sequence[ModelMessage], tools: Sequence[ToolDefinition]
    ) -> AsyncIterator[ModelStreamChunk]:
        last_user = next((m for m in reversed(messages) if m.role == "user"), None)
        echo = last_user.text() if last_user is not None else ""
        reply = "LLM_MOCK activé : aucun appel externe n'a été effectué."
        if echo:
            reply += f" Message reçu : {echo[:200]}"
        for i in range(0, len(reply), 40):
            yield ModelStreamChunk(kind="text", text=reply[i : i + 40])


def get_chat_model(model_id: str) -> ChatModel:
    """Raises ModelProviderError when the provider cannot be initialized."""
    if _env_bool("LLM_MOCK", False):
        return MockChatModel(model_id)
    llm, err = _get_llm_instance(model_id, _load_config())
    if err:
        raise ModelProviderError(err)
    return LangChainChatModel(model_id, llm)

