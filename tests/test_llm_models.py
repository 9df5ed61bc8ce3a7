from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from insurance_agent.config import ChatConfig
from insurance_agent.errors import AUTHENTICATION_MESSAGE, ModelProviderError, user_safe_message
from insurance_agent.llm.client import _classify_error, _get_llm_instance, _load_config, provider_for_model, resolve_model_id
from insurance_agent.llm.streaming import LangChainChatModel, MockChatModel, get_chat_model, parse_tool_args


def test_resolve_model_id() -> None:
    cfg = ChatConfig()
    assert resolve_model_id(None, web_search=False, cfg=cfg) == "openai/gpt-oss-120b"
    assert resolve_model_id("  ", web_search=False, cfg=cfg) == "openai/gpt-oss-120b"
    assert resolve_model_id("deepseek/deepseek-r1", web_search=False, cfg=cfg) == "deepseek/deepseek-r1"
    assert resolve_model_id("deepseek/deepseek-r1", web_search=True, cfg=cfg) == "perplexity/sonar"


def test_resolve_model_id_enforces_allow_list() -> None:
    cfg = ChatConfig(allowed_models={"google/gemini-2.5-flash"})
    assert resolve_model_id("cohere/command-r", web_search=False, cfg=cfg) == cfg.default_model
    assert resolve_model_id("google/gemini-2.5-flash", web_search=False, cfg=cfg) == "google/gemini-2.5-flash"


@pytest.mark.parametrize(
    "model_id,provider",
    [
        ("anthropic/claude-sonnet-4", "anthropic"),
        ("google/gemini-2.5-flash", "vertexai"),
        ("openai/gpt-oss-120b", "gateway"),
        ("perplexity/sonar", "gateway"),
        ("plain-model", "gateway"),
    ],
)
def test_provider_for_model(model_id: str, provider: str) -> None:
    assert provider_for_model(model_id) == provider


def test_llm_instance_reports_missing_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = _load_config()
    assert _get_llm_instance("openai/gpt-oss-120b", cfg) == (None, "missing_api_key")
    assert _get_llm_instance("anthropic/claude-sonnet-4", cfg) == (None, "missing_api_key")
    assert _get_llm_instance("google/gemini-2.5-flash", cfg) == (None, "missing_gcp_project")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "proj")
    assert _get_llm_instance("google/gemini-2.5-flash", cfg) == (None, "missing_gcp_location")


def test_llm_config_is_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_TEMPERATURE", "7")
    monkeypatch.setenv("LLM_MAX_OUTPUT_TOKENS", "1")
    cfg = _load_config()
    assert cfg.temperature == 1.0
    assert cfg.max_output_tokens == 64


def test_get_chat_model_raises_provider_error_without_credentials() -> None:
    with pytest.raises(ModelProviderError) as ei:
        get_chat_model("openai/gpt-oss-120b")
    assert user_safe_message(ei.value) == AUTHENTICATION_MESSAGE


def test_get_chat_model_mock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_MOCK", "1")
    assert isinstance(get_chat_model("openai/gpt-oss-120b"), MockChatModel)


@pytest.mark.parametrize(
    "exc,code",
    [
        (TimeoutError(), "timeout"),
        (RuntimeError("HTTP 504 from upstream"), "gateway_timeout"),
        (RuntimeError("401 Unauthorized"), "unauthenticated"),
        (RuntimeError("PERMISSION_DENIED: caller lacks access"), "permission_denied"),
        (RuntimeError("429 Too Many Requests"), "rate_limited"),
        (RuntimeError("model not found"), "model_not_found:m"),
        (ValueError("weird"), "llm_error:ValueError"),
    ],
)
def test_classify_error(exc: BaseException, code: str) -> None:
    assert _classify_error(exc, model="m") == code


def test_parse_tool_args() -> None:
    assert parse_tool_args("") == {}
    assert parse_tool_args('{"refPersonne": 1001}') == {"refPersonne": 1001}
    assert parse_tool_args("{not json") == "{not json"


class _Chunk:
    def __init__(
        self,
        content: Any = "",
        tool_call_chunks: Optional[List[Dict[str, Any]]] = None,
        response_metadata: Optional[Dict[str, Any]] = None,
    ):
        self.content = content
        self.tool_call_chunks = tool_call_chunks or []
        self.additional_kwargs: Dict[str, Any] = {}
        self.response_metadata = response_metadata or {}


class _FakeLLM:
    def __init__(self, chunks: List[Any], error: Optional[Exception] = None):
        self._chunks = chunks
        self._error = error
        self.bound: List[Any] = []

    def bind_tools(self, specs):  # type: ignore[no-untyped-def]
        self.bound = list(specs)
        return self

    async def astream(self, messages, config=None):  # type: ignore[no-untyped-def]
        for c in self._chunks:
            yield c
        if self._error is not None:
            raise self._error


async def _chunks(model) -> List[Any]:  # type: ignore[no-untyped-def]
    from insurance_agent.chat.types import ModelMessage, TextPart
    from insurance_agent.tools.registry import TOOLS

    msgs = [ModelMessage(role="user", parts=(TextPart(text="Bonjour"),))]
    return [c async for c in model.stream_step(msgs, list(TOOLS.values()))]


@pytest.mark.asyncio
async def test_langchain_model_accumulates_tool_call_chunks() -> None:
    llm = _FakeLLM(
        [
            _Chunk(content="Je vérifie. "),
            _Chunk(tool_call_chunks=[{"index": 0, "id": "call_1", "name": "getClaimStatus", "args": '{"numSin'}]),
            _Chunk(tool_call_chunks=[{"index": 0, "id": None, "name": None, "args": 'istre": "SIN-1"}'}]),
            _Chunk(response_metadata={"citations": ["https://example.tn/a", "https://example.tn/a"]}),
        ]
    )
    out = await _chunks(LangChainChatModel("openai/gpt-oss-120b", llm))

    assert len(llm.bound) == 6
    kinds = [c.kind for c in out]
    assert kinds == ["text", "tool-call-start", "tool-call-delta", "tool-call-delta", "source", "tool-call"]
    final = out[-1]
    assert final.call_id == "call_1"
    assert final.tool_name == "getClaimStatus"
    assert final.args == {"numSinistre": "SIN-1"}


@pytest.mark.asyncio
async def test_langchain_model_wraps_provider_errors() -> None:
    llm = _FakeLLM([_Chunk(content="Début")], error=RuntimeError("429 rate limit exceeded"))
    with pytest.raises(ModelProviderError) as ei:
        await _chunks(LangChainChatModel("openai/gpt-oss-120b", llm))
    assert ei.value.code == "rate_limited"


@pytest.mark.asyncio
async def test_mock_model_echoes_last_user_message() -> None:
    out = await _chunks(MockChatModel("openai/gpt-oss-120b"))
    text = "".join(c.text for c in out)
    assert "LLM_MOCK" in text
    assert "Bonjour" in text
    assert all(c.kind == "text" for c in out)


def test_to_langchain_messages_maps_roles() -> None:
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

    from insurance_agent.chat.types import ModelMessage, TextPart, ToolCallPart, ToolResultPart
    from insurance_agent.llm.streaming import to_langchain_messages

    msgs = [
        ModelMessage(role="system", parts=(TextPart(text="sys"),)),
        ModelMessage(role="user", parts=(TextPart(text="q"),)),
        ModelMessage(
            role="assistant",
            parts=(ToolCallPart(tool_call_id="c1", tool_name="getClaimStatus", input={"numSinistre": "S"}),),
        ),
        ModelMessage(
            role="tool",
            parts=(ToolResultPart(tool_call_id="c1", tool_name="getClaimStatus", error_text="introuvable"),),
        ),
    ]
    out = to_langchain_messages(msgs)
    assert [type(m) for m in out] == [SystemMessage, HumanMessage, AIMessage, ToolMessage]
    assert out[2].tool_calls[0]["id"] == "c1"
    assert out[3].tool_call_id == "c1"
    assert "introuvable" in out[3].content
