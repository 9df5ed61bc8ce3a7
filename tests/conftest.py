"""
Pytest config.

Local imports like `import insurance_agent` rely on the repo root being on
sys.path. When invoking a global `pytest` entrypoint that doesn't happen
reliably during collection, so we pin it here.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


FIXED_NOW = datetime(2024, 10, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unit tests never talk to LangSmith, Postgres or real model providers."""
    for name in (
        "LANGSMITH_TRACING",
        "LANGCHAIN_TRACING_V2",
        "LANGSMITH_API_KEY",
        "LANGCHAIN_API_KEY",
        "LLM_MOCK",
        "DB_AUTO_MIGRATE",
        "INSURANCE_STORE",
        "POSTGRES_DSN",
        "POSTGRES_HOST",
        "POSTGRES_DB",
        "POSTGRES_USER",
        "POSTGRES_PASSWORD",
        "AI_GATEWAY_API_KEY",
        "ANTHROPIC_API_KEY",
        "GOOGLE_CLOUD_PROJECT",
        "GOOGLE_CLOUD_LOCATION",
        "LLM_TEMPERATURE",
        "LLM_MAX_OUTPUT_TOKENS",
        "CHAT_MAX_STEPS",
        "CHAT_REQUEST_TIMEOUT_SECONDS",
        "CHAT_DEFAULT_MODEL",
        "CHAT_WEB_SEARCH_MODEL",
        "CHAT_ALLOWED_MODELS",
        "QUOTE_API_URL",
        "QUOTE_API_TIMEOUT_SECONDS",
        "LANGSMITH_TRACE_EXCLUDE",
        "LANGSMITH_SEND_PII",
    ):
        monkeypatch.delenv(name, raising=False)


class FakeQuoteApi:
    """Records every request; returns `payload` or raises `error`."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else {}
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def request_quote(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.requests.append(dict(params))
        if self.error is not None:
            raise self.error
        return dict(self.payload)


class ScriptedChatModel:
    """
    ChatModel double: step N yields the chunks in `steps[N]`; once the script
    is exhausted every further step answers with plain text.
    """

    def __init__(self, steps: Sequence[Sequence[Any]], model_id: str = "test/scripted"):
        self.model_id = model_id
        self._steps = [list(s) for s in steps]
        self.calls: List[List[Any]] = []

    async def stream_step(self, messages, tools):  # type: ignore[no-untyped-def]
        from insurance_agent.llm.streaming import ModelStreamChunk

        self.calls.append(list(messages))
        i = len(self.calls) - 1
        chunks = self._steps[i] if i < len(self._steps) else [ModelStreamChunk(kind="text", text="Terminé.")]
        for ch in chunks:
            if isinstance(ch, Exception):
                raise ch
            yield ch


@pytest.fixture
def demo_store():
    from insurance_agent.store.memory import seed_demo_store

    return seed_demo_store()


@pytest.fixture
def fake_quote_api() -> FakeQuoteApi:
    return FakeQuoteApi()


@pytest.fixture
def ctx(demo_store, fake_quote_api):
    from insurance_agent.config import ChatConfig
    from insurance_agent.tools.context import ToolContext

    return ToolContext(store=demo_store, quote_api=fake_quote_api, config=ChatConfig(), now=lambda: FIXED_NOW)


@pytest.fixture
def scripted_model():
    """Factory: `scripted_model([[chunk, ...], ...])`."""
    return ScriptedChatModel


@pytest.fixture
def quote_api_factory():
    return FakeQuoteApi
