from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

ModelRole = Literal["system", "user", "assistant", "tool"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextPart(_Frozen):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(_Frozen):
    type: Literal["reasoning"] = "reasoning"
    text: str


class SourcePart(_Frozen):
    type: Literal["source-url"] = "source-url"
    source_id: str
    url: str
    title: Optional[str] = None


class ToolCallPart(_Frozen):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolResultPart(_Frozen):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: Optional[Dict[str, Any]] = None
    error_text: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_text is not None

    def content_for_model(self) -> str:
        if self.error_text is not None:
            return json.dumps({"error": self.error_text}, ensure_ascii=False)
        return json.dumps(self.output, ensure_ascii=False)


ModelPart = Annotated[
    Union[TextPart, ReasoningPart, SourcePart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]


class ModelMessage(_Frozen):
    """One immutable history entry; a session only ever appends these."""

    role: ModelRole
    parts: Tuple[ModelPart, ...] = ()

    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    def tool_calls(self) -> List[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    def tool_results(self) -> List[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]


# ---------------------------------------------------------------------------
# Inbound UI messages
# ---------------------------------------------------------------------------


class UIMessage(BaseModel):
    """
    A message as the chat UI sends it: typed parts (`text`, `reasoning`,
    `tool-<name>`, `step-start`, ...) or a legacy `content` string.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    role: Literal["system", "user", "assistant"]
    parts: List[Dict[str, Any]] = Field(default_factory=list)
    content: Optional[str] = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    messages: List[UIMessage] = Field(min_length=1)
    model: Optional[str] = None
    web_search: bool = Field(default=False, alias="webSearch")


_COMPLETED_TOOL_STATES = ("output-available", "output-error")


def _flush_assistant(
    out: List[ModelMessage], content: List[Any], results: List[ToolResultPart]
) -> None:
    if content:
        out.append(ModelMessage(role="assistant", parts=tuple(content)))
    if results:
        out.append(ModelMessage(role="tool", parts=tuple(results)))
    content.clear()
    results.clear()


def ui_messages_to_model_messages(messages: List[UIMessage]) -> List[ModelMessage]:
    """
    Convert UI history to model history.

    Completed tool parts of an assistant message become a tool-call on the
    assistant turn plus a tool-result on a following `tool` message; each
    `step-start` part closes one assistant step. Incomplete tool parts and
    reasoning are not replayed to the model.
    """
    out: List[ModelMessage] = []
    for m in messages:
        if m.role in ("system", "user"):
            texts = [str(p.get("text") or "") for p in m.parts if p.get("type") == "text"]
            if not texts and m.content:
                texts = [m.content]
            text = "".join(texts)
            if text:
                out.append(ModelMessage(role=m.role, parts=(TextPart(text=text),)))
            continue

        content: List[Any] = []
        results: List[ToolResultPart] = []
        if not m.parts and m.content:
            content.append(TextPart(text=m.content))
        for p in m.parts:
            ptype = str(p.get("type") or "")
            if ptype == "step-start":
                _flush_assistant(out, content, results)
            elif ptype == "text" and p.get("text"):
                content.append(TextPart(text=str(p["text"])))
            elif ptype.startswith("tool-") and p.get("state") in _COMPLETED_TOOL_STATES and p.get("toolCallId"):
                name = ptype[len("tool-") :]
                call_id = str(p["toolCallId"])
                content.append(ToolCallPart(tool_call_id=call_id, tool_name=name, input=p.get("input")))
                if p.get("state") == "output-error":
                    results.append(
                        ToolResultPart(tool_call_id=call_id, tool_name=name, error_text=str(p.get("errorText") or ""))
                    )
                else:
                    output = p.get("output")
                    results.append(
                        ToolResultPart(
                            tool_call_id=call_id,
                            tool_name=name,
                            output=output if isinstance(output, dict) else {"value": output},
                        )
                    )
        _flush_assistant(out, content, results)
    return out


# ---------------------------------------------------------------------------
# Tool call lifecycle
# ---------------------------------------------------------------------------

ToolCallState = Literal["input-streaming", "input-available", "output-available", "output-error"]

_STATE_RANK: Dict[str, int] = {
    "input-streaming": 0,
    "input-available": 1,
    "output-available": 2,
    "output-error": 2,
}


class InvalidTransition(ValueError):
    pass


@dataclass
class ToolInvocation:
    """
    One tool call within a turn. States only move forward; a call may skip
    `input-streaming` when it arrives complete. Terminal states are final.
    """

    call_id: str
    tool_name: str
    state: ToolCallState = "input-streaming"
    input_text: str = ""
    input: Any = None
    output: Optional[Dict[str, Any]] = None
    error_text: Optional[str] = None
    provider_call_id: Optional[str] = None
    index: Optional[int] = None
    step: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.state in _COMPLETED_TOOL_STATES

    def advance(self, new_state: ToolCallState) -> None:
        if self.is_terminal:
            raise InvalidTransition(f"tool call {self.call_id} already {self.state}; cannot move to {new_state}")
        if _STATE_RANK[new_state] <= _STATE_RANK[self.state]:
            raise InvalidTransition(f"tool call {self.call_id}: {self.state} -> {new_state} is not forward")
        self.state = new_state
