from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

from insurance_agent.config import ChatConfig, load_chat_config
from insurance_agent.providers.quote_api import QuoteApiProvider, get_quote_api_provider
from insurance_agent.store import get_insurance_store
from insurance_agent.store.base import InsuranceStore


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ToolContext:
    """Collaborators injected into every tool handler. Shared read-only across requests."""

    store: InsuranceStore
    quote_api: QuoteApiProvider
    config: ChatConfig = field(default_factory=ChatConfig)
    now: Callable[[], datetime] = _utc_now

    def today(self) -> date:
        return self.now().date()


def build_tool_context(
    *,
    store: Optional[InsuranceStore] = None,
    quote_api: Optional[QuoteApiProvider] = None,
    config: Optional[ChatConfig] = None,
) -> ToolContext:
    return ToolContext(
        store=store or get_insurance_store(),
        quote_api=quote_api or get_quote_api_provider(),
        config=config or load_chat_config(),
    )
