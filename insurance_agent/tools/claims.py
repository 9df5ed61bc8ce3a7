from __future__ import annotations

from typing import Optional, Tuple

from insurance_agent.errors import NotFound
from insurance_agent.store.base import ClaimRecord
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.coverage import normalize_text
from insurance_agent.tools.policies import iso_or_none
from insurance_agent.tools.schemas import ClaimStatus, ClaimStatusInput, ClaimStatusOutput

# First matching group wins; keywords are compared without accents.
_STATUS_RULES: Tuple[Tuple[ClaimStatus, Tuple[str, ...]], ...] = (
    ("paid", ("clos", "regle", "paye")),
    ("processing", ("ouvert", "en cours", "traitement")),
    ("denied", ("refus", "rejet", "annul")),
    ("approved", ("valid", "accept", "approuv")),
    ("submitted", ("attente", "soumis", "declar")),
)


def map_claim_status(label: Optional[str]) -> ClaimStatus:
    text = normalize_text(label)
    if text:
        for status, keywords in _STATUS_RULES:
            if any(kw in text for kw in keywords):
                return status
    return "submitted"


def _resolve_claim(args: ClaimStatusInput, ctx: ToolContext) -> Optional[ClaimRecord]:
    """Claim number, else latest claim of the contract, else latest claim of the client."""
    store = ctx.store
    claim = store.get_claim(args.num_sinistre) if args.num_sinistre else None
    if claim is None and args.num_contrat:
        claim = store.latest_claim_for_contract(args.num_contrat)
    if claim is None and args.ref_personne is not None:
        claim = store.latest_claim_for_client(args.ref_personne)
    return claim


def get_claim_status(args: ClaimStatusInput, ctx: ToolContext) -> ClaimStatusOutput:
    claim = _resolve_claim(args, ctx)
    if claim is None:
        ident = args.num_sinistre or args.num_contrat or args.ref_personne
        raise NotFound(
            f"no claim found for {ident!r}",
            user_message="Aucun sinistre ne correspond aux informations fournies. Veuillez vérifier le numéro indiqué.",
        )

    label = claim.lib_etat_sinistre or args.lib_etat_sinistre
    return ClaimStatusOutput(
        num_sinistre=claim.num_sinistre,
        num_contrat=claim.num_contrat,
        status=map_claim_status(label),
        lib_branche=claim.lib_branche,
        lib_sous_branche=claim.lib_sous_branche,
        lib_produit=claim.lib_produit,
        nature_sinistre=claim.nature_sinistre,
        lib_type_sinistre=claim.lib_type_sinistre,
        taux_responsabilite=claim.taux_responsabilite,
        date_survenance=iso_or_none(claim.date_survenance),
        date_declaration=iso_or_none(claim.date_declaration),
        date_ouverture=iso_or_none(claim.date_ouverture),
        observation_sinistre=claim.observation_sinistre,
        lib_etat_sinistre=label,
        lieu_accident=claim.lieu_accident,
        motif_reouverture=claim.motif_reouverture,
        montant_encaisse=claim.montant_encaisse,
        montant_a_encaisser=claim.montant_a_encaisser,
    )
