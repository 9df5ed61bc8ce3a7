"""Client for the external auto-quote HTTP API (API Devis)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import requests

from insurance_agent.config import QuoteApiConfig, load_quote_api_config
from insurance_agent.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@runtime_checkable
class QuoteApiProvider(Protocol):
    def request_quote(self, params: Dict[str, Any]) -> Dict[str, Any]: ...


class DefaultQuoteApiProvider:
    """
    One GET per quote; no retries.

    Raises UpstreamFailure on transport errors, non-2xx statuses and
    non-JSON bodies. The internal detail always names the API so the
    last-resort mapper picks the quote-service message.
    """

    def __init__(self, cfg: Optional[QuoteApiConfig] = None):
        self._cfg = cfg or load_quote_api_config()

    def request_quote(self, params: Dict[str, Any]) -> Dict[str, Any]:
        clean = {k: v for k, v in params.items() if v is not None}
        try:
            response = requests.get(self._cfg.url, params=clean, timeout=self._cfg.timeout_seconds)
        except requests.exceptions.RequestException as e:
            logger.warning("quote API request failed: %s", e)
            raise UpstreamFailure(f"Quote API request failed: {type(e).__name__}: {e}") from e

        if not (200 <= response.status_code < 300):
            logger.warning("quote API returned HTTP %d", response.status_code)
            raise UpstreamFailure(f"Quote API returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFailure(f"Quote API returned a non-JSON body: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamFailure(f"Quote API returned an unexpected payload type: {type(data).__name__}")
        return data


def get_quote_api_provider() -> QuoteApiProvider:
    """Seam for swapping provider implementations (tests inject a fake)."""
    return DefaultQuoteApiProvider()
