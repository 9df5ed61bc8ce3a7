from __future__ import annotations

from typing import List

from insurance_agent.store.base import ContractRecord
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.policies import iso_or_none, resolve_client
from insurance_agent.tools.schemas import PaymentContractOut, PaymentStatusInput, PaymentStatusOutput


def _resolve_contracts(args: PaymentStatusInput, ctx: ToolContext) -> List[ContractRecord]:
    store = ctx.store
    if args.num_contrat:
        k = store.get_contract(args.num_contrat)
        return [k] if k is not None else []
    if args.ref_personne is not None:
        return store.list_contracts(args.ref_personne)
    if args.nom_prenom or args.raison_sociale:
        client = resolve_client(store, nom_prenom=args.nom_prenom, raison_sociale=args.raison_sociale)
        return store.list_contracts(client.ref_personne) if client is not None else []
    return []


def get_payment_status(args: PaymentStatusInput, ctx: ToolContext) -> PaymentStatusOutput:
    """
    Payment status per contract. An empty `contrats` list means nothing matched;
    it is a normal result, not an error.
    """
    contracts = _resolve_contracts(args, ctx)
    rows = [
        PaymentContractOut(
            num_contrat=k.num_contrat,
            lib_produit=k.lib_produit,
            statut_paiement=k.statut_paiement,
            somme_quittances=k.somme_quittances,
            prochain_terme=k.prochain_terme,
            effet_contrat=k.effet_contrat.isoformat(),
            date_expiration=iso_or_none(k.date_expiration),
        )
        for k in contracts
    ]

    ref = contracts[0].ref_personne if contracts else args.ref_personne
    if len(contracts) == 1:
        only = contracts[0]
        return PaymentStatusOutput(
            ref_personne=ref,
            num_contrat=only.num_contrat,
            statut_paiement=only.statut_paiement,
            somme_quittances=only.somme_quittances,
            prochain_terme=only.prochain_terme,
            contrats=rows,
        )
    return PaymentStatusOutput(ref_personne=ref, num_contrat=args.num_contrat, contrats=rows)
