from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict

import pytest
import requests

from insurance_agent.errors import QUOTE_SERVICE_MESSAGE, UpstreamFailure, user_safe_message
from insurance_agent.tools.quotes import DEFAULT_QUOTE_PARAMS, build_quote_params, generate_quote
from insurance_agent.tools.schemas import QuoteInput


def _quote_args(**extra: Any) -> Dict[str, Any]:
    args: Dict[str, Any] = {
        "clientInfo": {"nomPrenom": "Ben Salah Mohamed", "numPieceIdentite": 8765432, "codeSexe": "M"},
        "productInfo": {"libProduit": "Auto Confort", "branche": "Automobile", "capitalAssure": 45000},
    }
    args.update(extra)
    return args


def test_build_quote_params_applies_defaults_and_overrides() -> None:
    params = build_quote_params(
        QuoteInput.model_validate(_quote_args(additionalInfo={"nombrePlace": 7, "puissance": 9}))
    )
    assert params["cin"] == "8765432"
    assert params["valeurVenale"] == 45000
    assert params["nombrePlace"] == 7
    assert params["puissance"] == 9
    assert params["classe"] == DEFAULT_QUOTE_PARAMS["classe"]
    assert params["dateCirculation"] == "2020-01-01"


def test_build_quote_params_sparse_request_uses_fixed_defaults() -> None:
    params = build_quote_params(
        QuoteInput.model_validate({"clientInfo": {}, "productInfo": {"libProduit": "Auto Confort"}})
    )
    assert params == DEFAULT_QUOTE_PARAMS


def test_generate_quote_maps_upstream_response(ctx, fake_quote_api) -> None:
    fake_quote_api.payload = {
        "quoteId": "DEV-2024-0042",
        "prime": {"mensuelle": 70, "semestrielle": "410,5", "annuelle": 790},
        "garanties": ["Responsabilité civile", {"codeGarantie": 4, "libGarantie": "Bris de glace", "capitalAssure": 1500}],
        "remises": [{"nom": "Fidélité", "montant": 40, "pourcentage": 5}],
        "conditions": "Devis soumis à inspection du véhicule.",
        "prochainEtapes": ["Envoyer la carte grise"],
    }
    out = generate_quote(QuoteInput.model_validate(_quote_args()), ctx)

    assert fake_quote_api.requests[0]["cin"] == "8765432"
    assert out.quote_id == "DEV-2024-0042"
    assert out.prime.mensuelle == 70.0
    assert out.prime.semestrielle == 410.5
    assert [(g.code_garantie, g.lib_garantie) for g in out.garanties] == [
        (1, "Responsabilité civile"),
        (4, "Bris de glace"),
    ]
    assert out.remises[0].nom == "Fidélité"
    assert out.conditions == "Devis soumis à inspection du véhicule."
    assert out.prochain_etapes == ["Envoyer la carte grise"]
    assert out.valid_jusquau == "2024-10-31T09:00:00+00:00"


def test_generate_quote_partial_response_uses_fallbacks(ctx, fake_quote_api) -> None:
    fake_quote_api.payload = {}
    out = generate_quote(QuoteInput.model_validate(_quote_args()), ctx)

    assert out.quote_id.startswith("QTE-")
    assert (out.prime.mensuelle, out.prime.semestrielle, out.prime.annuelle) == (65.0, 380.0, 720.0)
    assert len(out.garanties) == 4
    assert len(out.remises) == 2
    assert len(out.prochain_etapes) == 4
    assert out.capital_assure == 45000.0


@pytest.mark.asyncio
async def test_quote_upstream_failure_surfaces_quote_service_message(ctx, quote_api_factory) -> None:
    from insurance_agent.tools.registry import run_tool

    failing = replace(ctx, quote_api=quote_api_factory(error=UpstreamFailure("Quote API returned HTTP 503")))
    res = await run_tool("generateQuote", _quote_args(), failing)
    assert res.ok is False
    assert res.error_kind == "upstream_failure"
    assert res.error == QUOTE_SERVICE_MESSAGE


@pytest.mark.asyncio
async def test_invalid_quote_input_never_calls_the_api(ctx, fake_quote_api) -> None:
    from insurance_agent.tools.registry import run_tool

    res = await run_tool("generateQuote", _quote_args(clientInfo={"codeSexe": "X"}), ctx)
    assert res.error_kind == "schema_violation"
    assert fake_quote_api.requests == []


class _Resp:
    def __init__(self, status_code: int, body: Any = None, bad_json: bool = False):
        self.status_code = status_code
        self._body = body
        self._bad_json = bad_json

    def json(self) -> Any:
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._body


def _provider():  # type: ignore[no-untyped-def]
    from insurance_agent.config import QuoteApiConfig
    from insurance_agent.providers.quote_api import DefaultQuoteApiProvider

    return DefaultQuoteApiProvider(QuoteApiConfig(url="http://quotes.test/api/auto/devis", timeout_seconds=3))


def test_default_provider_sends_query_params(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: Dict[str, Any] = {}

    def _get(url, params=None, timeout=None):  # type: ignore[no-untyped-def]
        seen.update(url=url, params=params, timeout=timeout)
        return _Resp(200, {"quoteId": "Q1"})

    monkeypatch.setattr("insurance_agent.providers.quote_api.requests.get", _get)
    assert _provider().request_quote({"cin": "1", "classe": None}) == {"quoteId": "Q1"}
    assert seen == {"url": "http://quotes.test/api/auto/devis", "params": {"cin": "1"}, "timeout": 3}


@pytest.mark.parametrize(
    "resp",
    [_Resp(503, {}), _Resp(200, bad_json=True), _Resp(200, ["not", "a", "dict"])],
)
def test_default_provider_rejects_bad_responses(monkeypatch: pytest.MonkeyPatch, resp: _Resp) -> None:
    monkeypatch.setattr("insurance_agent.providers.quote_api.requests.get", lambda *a, **k: resp)
    with pytest.raises(UpstreamFailure) as ei:
        _provider().request_quote({})
    assert user_safe_message(ei.value) == QUOTE_SERVICE_MESSAGE


def test_default_provider_wraps_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _get(*_a, **_k):  # type: ignore[no-untyped-def]
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr("insurance_agent.providers.quote_api.requests.get", _get)
    with pytest.raises(UpstreamFailure) as ei:
        _provider().request_quote({"cin": "1"})
    assert "Quote API request failed" in str(ei.value)
    assert ei.value.user_message == QUOTE_SERVICE_MESSAGE
