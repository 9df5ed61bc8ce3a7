from __future__ import annotations

from types import MappingProxyType
from typing import Any, List

import pytest

from insurance_agent.errors import DATA_ACCESS_MESSAGE, GENERIC_MESSAGE
from insurance_agent.tools.schemas import ClaimStatusOutput


def test_registry_exposes_six_tools_each_in_exactly_one_category() -> None:
    from insurance_agent.tools.registry import TOOL_CATEGORIES, TOOLS

    assert set(TOOLS) == {
        "getInsuranceProductInfo",
        "getClientPolicyInfo",
        "checkClaimCoverage",
        "getPaymentStatus",
        "getClaimStatus",
        "generateQuote",
    }
    listed = [name for cat in TOOL_CATEGORIES.values() for name in cat["tools"]]
    assert sorted(listed) == sorted(TOOLS)
    for key, cat in TOOL_CATEGORIES.items():
        for name in cat["tools"]:
            assert TOOLS[name].category == key


def test_tool_spec_uses_camel_case_json_schema() -> None:
    from insurance_agent.tools.registry import TOOLS

    spec = TOOLS["getClaimStatus"].spec()
    assert spec["type"] == "function"
    assert spec["function"]["name"] == "getClaimStatus"
    props = spec["function"]["parameters"]["properties"]
    assert {"numSinistre", "numContrat", "refPersonne", "libEtatSinistre"} <= set(props)

    quote_schema = TOOLS["generateQuote"].json_schema()
    assert set(quote_schema["required"]) == {"clientInfo", "productInfo"}


@pytest.mark.asyncio
async def test_schema_violation_never_reaches_handler(monkeypatch: pytest.MonkeyPatch, ctx) -> None:
    import insurance_agent.tools.registry as reg
    from insurance_agent.tools.schemas import ClientPolicyInput

    calls: List[Any] = []

    def _handler(args, _ctx):  # type: ignore[no-untyped-def]
        calls.append(args)
        raise AssertionError("handler must not run")

    stub = reg.ToolDefinition(
        name="getClientPolicyInfo",
        description="stub",
        input_model=ClientPolicyInput,
        handler=_handler,
        category="clientServices",
        start_message="stub",
    )
    monkeypatch.setattr(reg, "TOOLS", MappingProxyType({"getClientPolicyInfo": stub}))

    res = await reg.run_tool("getClientPolicyInfo", {}, ctx)
    assert res.ok is False
    assert res.error_kind == "schema_violation"
    assert res.error == "Les paramètres fournis pour cette recherche sont invalides."
    assert calls == []

    res2 = await reg.run_tool("getClientPolicyInfo", "refPersonne=1001", ctx)
    assert res2.error_kind == "schema_violation"
    assert calls == []


@pytest.mark.asyncio
async def test_unknown_tool_is_a_failed_result(ctx) -> None:
    from insurance_agent.tools.registry import UNKNOWN_TOOL_MESSAGE, run_tool

    res = await run_tool("deleteAllContracts", {}, ctx)
    assert res.ok is False
    assert res.error == UNKNOWN_TOOL_MESSAGE
    assert res.output is None


@pytest.mark.asyncio
async def test_unexpected_exception_is_mapped_to_safe_message(monkeypatch: pytest.MonkeyPatch, ctx) -> None:
    import insurance_agent.tools.registry as reg
    from insurance_agent.tools.schemas import PaymentStatusInput

    def _boom(args, _ctx):  # type: ignore[no-untyped-def]
        raise RuntimeError("database socket closed at 10.0.0.12:5432")

    stub = reg.ToolDefinition(
        name="getPaymentStatus",
        description="stub",
        input_model=PaymentStatusInput,
        handler=_boom,
        category="clientServices",
        start_message="stub",
    )
    monkeypatch.setattr(reg, "TOOLS", MappingProxyType({"getPaymentStatus": stub}))

    res = await reg.run_tool("getPaymentStatus", {"refPersonne": 1}, ctx)
    assert res.ok is False
    assert res.error == DATA_ACCESS_MESSAGE
    assert res.error_kind == "internal_error"
    assert "10.0.0.12" not in (res.error or "")

    def _weird(args, _ctx):  # type: ignore[no-untyped-def]
        raise KeyError("x")

    weird = reg.ToolDefinition(
        name="getPaymentStatus",
        description="stub",
        input_model=PaymentStatusInput,
        handler=_weird,
        category="clientServices",
        start_message="stub",
    )
    monkeypatch.setattr(reg, "TOOLS", MappingProxyType({"getPaymentStatus": weird}))
    res2 = await reg.run_tool("getPaymentStatus", {"refPersonne": 1}, ctx)
    assert res2.error == GENERIC_MESSAGE


@pytest.mark.asyncio
async def test_successful_result_is_wire_form(ctx) -> None:
    from insurance_agent.tools.registry import run_tool

    res = await run_tool("getClaimStatus", {"numSinistre": "SIN-2024-000245"}, ctx)
    assert res.ok is True
    assert res.error is None
    assert res.output is not None
    assert res.output["tool"] == "getClaimStatus"
    assert res.output["numSinistre"] == "SIN-2024-000245"
    assert isinstance(res.value, ClaimStatusOutput)
    assert res.value.status == "processing"


@pytest.mark.asyncio
async def test_handler_output_outside_its_variant_is_rejected(monkeypatch: pytest.MonkeyPatch, ctx) -> None:
    import insurance_agent.tools.registry as reg
    from insurance_agent.tools.schemas import PaymentStatusInput, PaymentStatusOutput

    def _wrong_variant(args, _ctx):  # type: ignore[no-untyped-def]
        return PaymentStatusOutput(contrats=[])

    mislabeled = reg.ToolDefinition(
        name="getClaimStatus",
        description="stub",
        input_model=PaymentStatusInput,
        handler=_wrong_variant,
        category="claims",
        start_message="stub",
    )
    monkeypatch.setattr(reg, "TOOLS", MappingProxyType({"getClaimStatus": mislabeled}))

    res = await reg.run_tool("getClaimStatus", {"refPersonne": 1001}, ctx)
    assert res.ok is False
    assert res.error_kind == "internal_error"
    assert res.error == GENERIC_MESSAGE
    assert res.value is None
