from __future__ import annotations

from datetime import date
from typing import Optional

from insurance_agent.errors import NotFound
from insurance_agent.store.base import ClientRecord, ContractRecord, InsuranceStore
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.schemas import (
    ClientPolicyInput,
    ClientPolicyOutput,
    ContractGuaranteeOut,
    ContractOut,
    IndividualOut,
    OrganizationOut,
)


def iso_or_none(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def resolve_client(
    store: InsuranceStore,
    *,
    ref_personne: Optional[int] = None,
    num_contrat: Optional[str] = None,
    nom_prenom: Optional[str] = None,
    raison_sociale: Optional[str] = None,
    matricule_fiscale: Optional[str] = None,
    num_piece_identite: Optional[int] = None,
) -> Optional[ClientRecord]:
    """
    Resolve a client from the first supplied identifier.

    Precedence: refPersonne, numContrat (owning client), nomPrenom,
    raisonSociale, matriculeFiscale, numPieceIdentite.
    """
    if ref_personne is not None:
        return store.get_client(ref_personne)
    if num_contrat:
        contract = store.get_contract(num_contrat)
        return store.get_client(contract.ref_personne) if contract else None
    if nom_prenom:
        return store.find_client(nom_prenom=nom_prenom)
    if raison_sociale:
        return store.find_client(raison_sociale=raison_sociale)
    if matricule_fiscale:
        return store.find_client(matricule_fiscale=matricule_fiscale)
    if num_piece_identite is not None:
        return store.find_client(num_piece_identite=num_piece_identite)
    return None


def contract_out(k: ContractRecord) -> ContractOut:
    return ContractOut(
        num_contrat=k.num_contrat,
        lib_produit=k.lib_produit,
        effet_contrat=k.effet_contrat.isoformat(),
        date_expiration=iso_or_none(k.date_expiration),
        prochain_terme=k.prochain_terme,
        lib_etat_contrat=k.lib_etat_contrat,
        branche=k.branche,
        somme_quittances=k.somme_quittances,
        statut_paiement=k.statut_paiement,
        capital_assure=k.capital_assure,
        garanties=[
            ContractGuaranteeOut(code_garantie=g.code_garantie, lib_garantie=g.lib_garantie, capital_assure=g.capital_assure)
            for g in k.garanties
        ],
    )


def get_client_policy_info(args: ClientPolicyInput, ctx: ToolContext) -> ClientPolicyOutput:
    client = resolve_client(
        ctx.store,
        ref_personne=args.ref_personne,
        num_contrat=args.num_contrat,
        nom_prenom=args.nom_prenom,
        raison_sociale=args.raison_sociale,
        matricule_fiscale=args.matricule_fiscale,
        num_piece_identite=args.num_piece_identite,
    )
    if client is None:
        raise NotFound(
            "client not found",
            user_message="Aucun client ne correspond aux informations fournies. Veuillez vérifier les identifiants.",
        )

    ind = client.individual
    org = client.organization
    return ClientPolicyOutput(
        ref_personne=client.ref_personne,
        personne_physique=(
            IndividualOut(
                ref_personne=ind.ref_personne,
                nom_prenom=ind.nom_prenom,
                date_naissance=iso_or_none(ind.date_naissance),
                lieu_naissance=ind.lieu_naissance,
                code_sexe=ind.code_sexe,
                situation_familiale=ind.situation_familiale,
                num_piece_identite=ind.num_piece_identite,
                lib_secteur_activite=ind.lib_secteur_activite,
                lib_profession=ind.lib_profession,
                ville=ind.ville,
                lib_gouvernorat=ind.lib_gouvernorat,
                ville_gouvernorat=ind.ville_gouvernorat,
            )
            if ind is not None
            else None
        ),
        personne_morale=(
            OrganizationOut(
                ref_personne=org.ref_personne,
                raison_sociale=org.raison_sociale,
                matricule_fiscale=org.matricule_fiscale,
                lib_secteur_activite=org.lib_secteur_activite,
                lib_activite=org.lib_activite,
                ville=org.ville,
                lib_gouvernorat=org.lib_gouvernorat,
                ville_gouvernorat=org.ville_gouvernorat,
            )
            if org is not None
            else None
        ),
        contrats=[contract_out(k) for k in ctx.store.list_contracts(client.ref_personne)],
    )
