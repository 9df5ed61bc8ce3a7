from __future__ import annotations

import re
import unicodedata
from datetime import date
from typing import List, Optional

from insurance_agent.store.base import ContractGuaranteeRecord, ContractRecord
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.schemas import ClaimCoverageInput, ClaimCoverageOutput, ContractGuaranteeOut

COVERAGE_PERCENTAGE = 90
DEDUCTIBLE = 500.0

# Normalized (no accents, lower case). Both the claim nature and the guarantee
# label must contain the keyword for it to count.
COVERAGE_KEYWORDS = (
    "vol",
    "incendie",
    "collision",
    "bris de glace",
    "responsabilite civile",
    "dommage",
    "assistance",
    "catastrophe",
    "degat des eaux",
    "accident",
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def normalize_text(s: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFKD", s or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def _tokens(s: str) -> List[str]:
    return _TOKEN_RE.findall(s)


def guarantee_matches(nature: str, label: Optional[str]) -> bool:
    n = normalize_text(nature)
    lbl = normalize_text(label)
    if not n or not lbl:
        return False
    if any(kw in n and kw in lbl for kw in COVERAGE_KEYWORDS):
        return True
    nature_tokens = [t for t in _tokens(n) if len(t) >= 3]
    return any(lt.startswith(nt) for lt in _tokens(lbl) for nt in nature_tokens)


def is_contract_active(k: ContractRecord, today: date) -> bool:
    """Active when today is within [effetContrat, dateExpiration]; no expiration means open-ended."""
    if today < k.effet_contrat:
        return False
    return k.date_expiration is None or today <= k.date_expiration


def estimated_payout(amount: Optional[float]) -> Optional[float]:
    if amount is None:
        return None
    return max(0.0, round(amount * COVERAGE_PERCENTAGE / 100.0 - DEDUCTIBLE, 2))


def _not_covered(num_contrat: str, explanation: str, exclusions: Optional[List[str]] = None) -> ClaimCoverageOutput:
    return ClaimCoverageOutput(
        num_contrat=num_contrat,
        is_covered=False,
        coverage_percentage=0,
        explanation=explanation,
        applicable_conditions=[],
        estimated_payout=None,
        deductible=None,
        exclusions=list(exclusions or []),
        garanties_applicables=[],
    )


def _guarantee_out(g: ContractGuaranteeRecord) -> ContractGuaranteeOut:
    return ContractGuaranteeOut(code_garantie=g.code_garantie, lib_garantie=g.lib_garantie, capital_assure=g.capital_assure)


def check_claim_coverage(args: ClaimCoverageInput, ctx: ToolContext) -> ClaimCoverageOutput:
    contract = ctx.store.get_contract(args.num_contrat)
    if contract is None:
        return _not_covered(
            args.num_contrat,
            f"Aucun contrat ne correspond au numéro {args.num_contrat}. La couverture ne peut pas être confirmée.",
        )

    if not is_contract_active(contract, ctx.today()):
        return _not_covered(
            contract.num_contrat,
            f"Le contrat {contract.num_contrat} n'est pas en vigueur à ce jour. Le sinistre n'est pas couvert.",
        )

    matched = [g for g in contract.garanties if guarantee_matches(args.nature_sinistre, g.lib_garantie)]
    if not matched:
        return _not_covered(
            contract.num_contrat,
            f"Aucune garantie du contrat {contract.num_contrat} ne couvre un sinistre de nature "
            f"« {args.nature_sinistre} ».",
            exclusions=[f"Nature de sinistre non garantie : {args.nature_sinistre}"],
        )

    labels = ", ".join(g.lib_garantie or str(g.code_garantie) for g in matched)
    return ClaimCoverageOutput(
        num_contrat=contract.num_contrat,
        is_covered=True,
        coverage_percentage=COVERAGE_PERCENTAGE,
        explanation=(
            f"Le sinistre est couvert par la garantie {labels} du contrat {contract.num_contrat}. "
            f"Une franchise de {DEDUCTIBLE:.0f} TND s'applique."
        ),
        applicable_conditions=[
            f"Franchise de {DEDUCTIBLE:.0f} TND",
            "Déclaration dans les 5 jours ouvrés",
            "Justificatifs du sinistre requis",
        ],
        estimated_payout=estimated_payout(args.montant_encaisse),
        deductible=DEDUCTIBLE,
        exclusions=[],
        garanties_applicables=[_guarantee_out(g) for g in matched],
    )
