"""
Tool registry: one immutable definition per insurance tool.

A definition binds a name, a model-facing description, a pydantic input model
(its JSON schema is what the model sees), a synchronous handler, a UI category
and a short French progress message. Execution is async at this seam: input is
validated first, then the handler runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, TypeAdapter, ValidationError

from insurance_agent.errors import SchemaViolation, ToolError, user_safe_message
from insurance_agent.tools.claims import get_claim_status
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.coverage import check_claim_coverage
from insurance_agent.tools.payments import get_payment_status
from insurance_agent.tools.policies import get_client_policy_info
from insurance_agent.tools.products import get_insurance_product_info
from insurance_agent.tools.quotes import generate_quote
from insurance_agent.tools.schemas import (
    ClaimCoverageInput,
    ClaimStatusInput,
    ClientPolicyInput,
    PaymentStatusInput,
    ProductInfoInput,
    QuoteInput,
    ToolOutput,
)
from insurance_agent.tools.summaries import compact_args_for_log
from insurance_agent.tracing import trace_tool_call

logger = logging.getLogger(__name__)


def _violation_summary(err: ValidationError, *, max_items: int = 4) -> str:
    parts: List[str] = []
    for e in err.errors()[:max_items]:
        loc = ".".join(str(x) for x in e.get("loc") or ()) or "input"
        parts.append(f"{loc}: {e.get('msg')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[[Any, ToolContext], ToolOutput]
    category: str
    start_message: str

    def json_schema(self) -> Dict[str, Any]:
        return self.input_model.model_json_schema(by_alias=True)

    def spec(self) -> Dict[str, Any]:
        """OpenAI-style function spec (accepted by LangChain `bind_tools`)."""
        return {
            "type": "function",
            "function": {"name": self.name, "description": self.description, "parameters": self.json_schema()},
        }

    def validate(self, raw: Any) -> BaseModel:
        """Parse raw model-provided arguments; raises SchemaViolation without touching the handler."""
        if not isinstance(raw, dict):
            raise SchemaViolation(f"{self.name}: arguments must be a JSON object, got {type(raw).__name__}")
        try:
            return self.input_model.model_validate(raw)
        except ValidationError as e:
            raise SchemaViolation(f"{self.name}: invalid input ({_violation_summary(e)})") from e

    async def execute(self, args: BaseModel, ctx: ToolContext) -> ToolOutput:
        wire_args = args.model_dump(by_alias=True, exclude_none=True, mode="json")
        return await asyncio.to_thread(
            trace_tool_call,
            tool=self.name,
            args=wire_args,
            fn=lambda: self.handler(args, ctx),
        )


@dataclass(frozen=True)
class ToolResult:
    """
    Exactly one per dispatched call: either the typed `value` (and its wire
    form in `output`) or a user-safe `error`.
    """

    ok: bool
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    value: Optional[ToolOutput] = None


_OUTPUT_ADAPTER: TypeAdapter[Any] = TypeAdapter(ToolOutput)


def _checked_output(tool: ToolDefinition, out: Any) -> ToolOutput:
    """Handler output must be the `ToolOutput` variant tagged with the tool's own name."""
    value = _OUTPUT_ADAPTER.validate_python(out)
    if value.tool != tool.name:
        raise TypeError(f"{tool.name} returned a {value.tool} output")
    return value


_DEFINITIONS = (
    ToolDefinition(
        name="getInsuranceProductInfo",
        description=(
            "Get detailed information about BH Assurance insurance products, guarantees, and conditions. "
            "Filter by branch, sub-branch, product or guarantee code/label; without filters returns the catalog."
        ),
        input_model=ProductInfoInput,
        handler=get_insurance_product_info,
        category="productInfo",
        start_message="Recherche d'informations produit",
    ),
    ToolDefinition(
        name="getClientPolicyInfo",
        description=(
            "Retrieve client policy information and subscribed guarantees. "
            "Requires at least one client identifier (refPersonne, numContrat, nomPrenom, raisonSociale, "
            "matriculeFiscale or numPieceIdentite)."
        ),
        input_model=ClientPolicyInput,
        handler=get_client_policy_info,
        category="clientServices",
        start_message="Consultation de votre police",
    ),
    ToolDefinition(
        name="checkClaimCoverage",
        description=(
            "Check if a claim is covered under the client's policy: contract must be active and a subscribed "
            "guarantee must match the nature of the claim."
        ),
        input_model=ClaimCoverageInput,
        handler=check_claim_coverage,
        category="claims",
        start_message="Vérification de couverture",
    ),
    ToolDefinition(
        name="getPaymentStatus",
        description="Get client payment status, amounts due and next due dates for one or all contracts.",
        input_model=PaymentStatusInput,
        handler=get_payment_status,
        category="clientServices",
        start_message="Consultation des paiements",
    ),
    ToolDefinition(
        name="getClaimStatus",
        description=(
            "Get status and details of an insurance claim by claim number, or the latest claim of a contract "
            "or of a client."
        ),
        input_model=ClaimStatusInput,
        handler=get_claim_status,
        category="claims",
        start_message="Suivi de sinistre",
    ),
    ToolDefinition(
        name="generateQuote",
        description="Generate an auto insurance quote using the BH Assurance API Devis.",
        input_model=QuoteInput,
        handler=generate_quote,
        category="quotes",
        start_message="Génération de devis",
    ),
)

TOOLS: Mapping[str, ToolDefinition] = MappingProxyType({d.name: d for d in _DEFINITIONS})

TOOL_CATEGORIES: Mapping[str, Dict[str, Any]] = MappingProxyType(
    {
        "productInfo": {
            "name": "Product Information",
            "tools": ["getInsuranceProductInfo"],
            "description": "Information about BH Assurance products and guarantees",
        },
        "clientServices": {
            "name": "Client Services",
            "tools": ["getClientPolicyInfo", "getPaymentStatus"],
            "description": "Client policy and payment information",
        },
        "claims": {
            "name": "Claims Management",
            "tools": ["checkClaimCoverage", "getClaimStatus"],
            "description": "Claim coverage and status information",
        },
        "quotes": {
            "name": "Quote Generation",
            "tools": ["generateQuote"],
            "description": "Generate new insurance quotes",
        },
    }
)

UNKNOWN_TOOL_MESSAGE = "Cet outil n'est pas disponible."


def get_tool(name: str) -> Optional[ToolDefinition]:
    return TOOLS.get(str(name or "").strip())


async def run_tool(name: str, raw_args: Any, ctx: ToolContext) -> ToolResult:
    """
    Validate and execute one tool call. Never raises for tool-level failures:
    domain errors and unexpected exceptions become a failed ToolResult.
    """
    tool = get_tool(name)
    if tool is None:
        logger.warning("Unknown tool requested: %s", name)
        return ToolResult(ok=False, error=UNKNOWN_TOOL_MESSAGE, error_kind=SchemaViolation.kind)

    logger.info("Tool call: %s args=%s", tool.name, compact_args_for_log(raw_args))
    try:
        args = tool.validate(raw_args)
        value = _checked_output(tool, await tool.execute(args, ctx))
    except ToolError as e:
        logger.warning("Tool %s failed (%s): %s", tool.name, e.kind, e)
        return ToolResult(ok=False, error=e.user_message, error_kind=e.kind)
    except Exception as e:
        logger.exception("Tool %s raised unexpectedly", tool.name)
        return ToolResult(ok=False, error=user_safe_message(e), error_kind="internal_error")
    return ToolResult(ok=True, output=value.to_wire(), value=value)
