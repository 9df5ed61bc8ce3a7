"""In-memory insurance store, seeded with demo data for local runs and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from insurance_agent.store.base import (
    ClaimRecord,
    ClientRecord,
    ContractGuaranteeRecord,
    ContractRecord,
    GuaranteeRecord,
    IndividualRecord,
    OrganizationRecord,
    ProductQuery,
    ProductRecord,
)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle.strip().lower() in (haystack or "").lower()


@dataclass
class InMemoryInsuranceStore:
    products: List[ProductRecord] = field(default_factory=list)
    clients: List[ClientRecord] = field(default_factory=list)
    contracts: List[ContractRecord] = field(default_factory=list)
    claims: List[ClaimRecord] = field(default_factory=list)

    def find_products(self, query: ProductQuery) -> List[ProductRecord]:
        if query.is_empty():
            return []
        out: List[ProductRecord] = []
        for p in self.products:
            if query.code_branche is not None and p.code_branche != query.code_branche:
                continue
            if query.code_sous_branche is not None and p.code_sous_branche != query.code_sous_branche:
                continue
            if query.code_produit is not None and p.code_produit != query.code_produit:
                continue
            if query.code_garantie is not None and not any(g.code_garantie == query.code_garantie for g in p.garanties):
                continue
            if query.lib_branche and not _contains(p.lib_branche, query.lib_branche):
                continue
            if query.lib_sous_branche and not _contains(p.lib_sous_branche, query.lib_sous_branche):
                continue
            if query.lib_produit and not _contains(p.lib_produit, query.lib_produit):
                continue
            out.append(p)
        return out

    def list_products(self, *, limit: int) -> List[ProductRecord]:
        return sorted(self.products, key=lambda p: p.code_produit)[:limit]

    def get_client(self, ref_personne: int) -> Optional[ClientRecord]:
        for c in self.clients:
            if c.ref_personne == ref_personne:
                return c
        return None

    def find_client(
        self,
        *,
        nom_prenom: Optional[str] = None,
        raison_sociale: Optional[str] = None,
        matricule_fiscale: Optional[str] = None,
        num_piece_identite: Optional[int] = None,
    ) -> Optional[ClientRecord]:
        # One pass per identifier, lowest ref_personne first, like the Postgres store.
        ordered = sorted(self.clients, key=lambda c: c.ref_personne)
        people = [(c, c.individual) for c in ordered if c.individual is not None]
        orgs = [(c, c.organization) for c in ordered if c.organization is not None]
        if nom_prenom:
            for c, ind in people:
                if _contains(ind.nom_prenom, nom_prenom):
                    return c
        if raison_sociale:
            for c, org in orgs:
                if _contains(org.raison_sociale, raison_sociale):
                    return c
        if matricule_fiscale:
            for c, org in orgs:
                if org.matricule_fiscale.lower() == matricule_fiscale.strip().lower():
                    return c
        if num_piece_identite is not None:
            for c, ind in people:
                if ind.num_piece_identite == num_piece_identite:
                    return c
        return None

    def get_contract(self, num_contrat: str) -> Optional[ContractRecord]:
        for k in self.contracts:
            if k.num_contrat == num_contrat:
                return k
        return None

    def list_contracts(self, ref_personne: int) -> List[ContractRecord]:
        """Most recent effective date first."""
        owned = [k for k in self.contracts if k.ref_personne == ref_personne]
        return sorted(owned, key=lambda k: k.effet_contrat, reverse=True)

    def get_claim(self, num_sinistre: str) -> Optional[ClaimRecord]:
        for s in self.claims:
            if s.num_sinistre == num_sinistre:
                return s
        return None

    def latest_claim_for_contract(self, num_contrat: str) -> Optional[ClaimRecord]:
        return _latest(s for s in self.claims if s.num_contrat == num_contrat)

    def latest_claim_for_client(self, ref_personne: int) -> Optional[ClaimRecord]:
        owned = {k.num_contrat for k in self.list_contracts(ref_personne)}
        return _latest(s for s in self.claims if s.num_contrat in owned)


def _latest(claims: Iterable[ClaimRecord]) -> Optional[ClaimRecord]:
    items = list(claims)
    if not items:
        return None
    return sorted(items, key=lambda s: s.date_declaration or date.min, reverse=True)[0]


_AUTO_GUARANTEES = [
    GuaranteeRecord(1, "Responsabilité civile", "Dommages corporels et matériels causés aux tiers."),
    GuaranteeRecord(2, "Dommages collision", "Dommages subis par le véhicule en cas de collision avec un tiers identifié."),
    GuaranteeRecord(3, "Vol et incendie", "Vol du véhicule ou de ses éléments, incendie et explosion."),
    GuaranteeRecord(4, "Bris de glace", "Remplacement du pare-brise, des vitres et de la lunette arrière."),
    GuaranteeRecord(5, "Assistance dépannage", "Remorquage et dépannage 24h/24."),
]

_HOME_GUARANTEES = [
    GuaranteeRecord(10, "Incendie et explosion", "Dommages causés au logement et à son contenu par le feu."),
    GuaranteeRecord(11, "Dégât des eaux", "Fuites, ruptures de canalisations et infiltrations."),
    GuaranteeRecord(12, "Vol et vandalisme", "Vol avec effraction et actes de vandalisme."),
]

_HEALTH_GUARANTEES = [
    GuaranteeRecord(20, "Frais médicaux", "Remboursement des consultations et médicaments."),
    GuaranteeRecord(21, "Hospitalisation", "Prise en charge des frais d'hospitalisation."),
]


def seed_demo_store() -> InMemoryInsuranceStore:
    """Small, coherent data set used by the CLI demo and the test suite."""
    products = [
        ProductRecord(
            code_branche=1,
            lib_branche="Automobile",
            code_sous_branche=11,
            lib_sous_branche="Véhicules particuliers",
            code_produit=101,
            lib_produit="Auto Confort",
            description="Couverture complète pour véhicules particuliers.",
            profils_cibles=["particuliers", "jeunes conducteurs"],
            garanties=list(_AUTO_GUARANTEES),
        ),
        ProductRecord(
            code_branche=1,
            lib_branche="Automobile",
            code_sous_branche=12,
            lib_sous_branche="Flottes d'entreprise",
            code_produit=102,
            lib_produit="Auto Flotte Pro",
            description="Assurance des flottes automobiles professionnelles.",
            profils_cibles=["entreprises"],
            garanties=list(_AUTO_GUARANTEES[:3]),
        ),
        ProductRecord(
            code_branche=2,
            lib_branche="Incendie et risques divers",
            code_sous_branche=21,
            lib_sous_branche="Multirisque habitation",
            code_produit=201,
            lib_produit="Habitation Sérénité",
            description="Protection du logement et de son contenu.",
            profils_cibles=["propriétaires", "locataires"],
            garanties=list(_HOME_GUARANTEES),
        ),
        ProductRecord(
            code_branche=3,
            lib_branche="Santé",
            code_sous_branche=31,
            lib_sous_branche="Santé individuelle",
            code_produit=301,
            lib_produit="Santé Plus",
            description="Complémentaire santé individuelle.",
            profils_cibles=["particuliers", "familles"],
            garanties=list(_HEALTH_GUARANTEES),
        ),
    ]

    clients = [
        ClientRecord(
            ref_personne=1001,
            individual=IndividualRecord(
                ref_personne=1001,
                nom_prenom="Ben Salah Mohamed",
                num_piece_identite=8765432,
                date_naissance=date(1985, 4, 12),
                lieu_naissance="Tunis",
                code_sexe="M",
                situation_familiale="Marié",
                lib_secteur_activite="Services",
                lib_profession="Ingénieur",
                ville="Tunis",
                lib_gouvernorat="Tunis",
                ville_gouvernorat="Tunis - Tunis",
            ),
        ),
        ClientRecord(
            ref_personne=2001,
            organization=OrganizationRecord(
                ref_personne=2001,
                raison_sociale="Société Méditerranéenne de Transport",
                matricule_fiscale="1234567A/M/000",
                lib_secteur_activite="Transport",
                lib_activite="Transport de marchandises",
                ville="Sfax",
                lib_gouvernorat="Sfax",
                ville_gouvernorat="Sfax - Sfax",
            ),
        ),
        ClientRecord(
            ref_personne=1002,
            individual=IndividualRecord(
                ref_personne=1002,
                nom_prenom="Trabelsi Amira",
                num_piece_identite=9123456,
                date_naissance=date(1992, 9, 3),
                code_sexe="F",
                ville="Sousse",
                lib_gouvernorat="Sousse",
            ),
        ),
    ]

    contracts = [
        ContractRecord(
            num_contrat="BH-AUTO-2024-001234",
            ref_personne=1001,
            lib_produit="Auto Confort",
            effet_contrat=date(2024, 1, 15),
            date_expiration=None,
            prochain_terme="2025-01-15",
            lib_etat_contrat="En vigueur",
            branche="Automobile",
            somme_quittances=650.0,
            statut_paiement="À jour",
            capital_assure=50000.0,
            garanties=[
                ContractGuaranteeRecord(1, "Responsabilité civile", 1000000.0),
                ContractGuaranteeRecord(2, "Dommages collision", 50000.0),
                ContractGuaranteeRecord(3, "Vol et incendie", 25000.0),
            ],
        ),
        ContractRecord(
            num_contrat="BH-HAB-2021-000777",
            ref_personne=1001,
            lib_produit="Habitation Sérénité",
            effet_contrat=date(2021, 3, 1),
            date_expiration=date(2022, 3, 1),
            prochain_terme=None,
            lib_etat_contrat="Résilié",
            branche="Incendie et risques divers",
            somme_quittances=0.0,
            statut_paiement="Soldé",
            capital_assure=120000.0,
            garanties=[
                ContractGuaranteeRecord(10, "Incendie et explosion", 120000.0),
                ContractGuaranteeRecord(11, "Dégât des eaux", 20000.0),
            ],
        ),
        ContractRecord(
            num_contrat="BH-FLT-2023-000042",
            ref_personne=2001,
            lib_produit="Auto Flotte Pro",
            effet_contrat=date(2023, 6, 1),
            date_expiration=None,
            prochain_terme="2025-06-01",
            lib_etat_contrat="En vigueur",
            branche="Automobile",
            somme_quittances=12400.0,
            statut_paiement="Impayé",
            capital_assure=400000.0,
            garanties=[
                ContractGuaranteeRecord(1, "Responsabilité civile", 5000000.0),
                ContractGuaranteeRecord(2, "Dommages collision", 400000.0),
            ],
        ),
        ContractRecord(
            num_contrat="BH-SAN-2024-000310",
            ref_personne=1002,
            lib_produit="Santé Plus",
            effet_contrat=date(2024, 2, 1),
            date_expiration=None,
            prochain_terme="2025-02-01",
            lib_etat_contrat="En vigueur",
            branche="Santé",
            somme_quittances=90.0,
            statut_paiement="À jour",
            garanties=[ContractGuaranteeRecord(20, "Frais médicaux"), ContractGuaranteeRecord(21, "Hospitalisation")],
        ),
    ]

    claims = [
        ClaimRecord(
            num_sinistre="SIN-2024-000101",
            num_contrat="BH-AUTO-2024-001234",
            lib_branche="Automobile",
            lib_sous_branche="Véhicules particuliers",
            lib_produit="Auto Confort",
            nature_sinistre="Collision",
            lib_type_sinistre="Matériel",
            taux_responsabilite=50.0,
            date_survenance=date(2024, 3, 2),
            date_declaration=date(2024, 3, 4),
            date_ouverture=date(2024, 3, 5),
            observation_sinistre="Accrochage en stationnement.",
            lib_etat_sinistre="Réglé",
            lieu_accident="Tunis",
            montant_encaisse=1200.0,
            montant_a_encaisser=0.0,
        ),
        ClaimRecord(
            num_sinistre="SIN-2024-000245",
            num_contrat="BH-AUTO-2024-001234",
            lib_branche="Automobile",
            lib_sous_branche="Véhicules particuliers",
            lib_produit="Auto Confort",
            nature_sinistre="Bris de glace",
            date_survenance=date(2024, 9, 18),
            date_declaration=date(2024, 9, 19),
            date_ouverture=date(2024, 9, 20),
            lib_etat_sinistre="En cours de traitement",
            lieu_accident="La Marsa",
            montant_a_encaisser=800.0,
        ),
        ClaimRecord(
            num_sinistre="SIN-2023-000900",
            num_contrat="BH-FLT-2023-000042",
            lib_branche="Automobile",
            lib_sous_branche="Flottes d'entreprise",
            lib_produit="Auto Flotte Pro",
            nature_sinistre="Collision",
            date_declaration=date(2023, 11, 10),
            lib_etat_sinistre="Refusé",
            montant_encaisse=0.0,
        ),
    ]

    return InMemoryInsuranceStore(products=products, clients=clients, contracts=contracts, claims=claims)
