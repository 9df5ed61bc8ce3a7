"""Insurance data store seam: record types and the read-only query Protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class GuaranteeRecord:
    code_garantie: int
    lib_garantie: str
    description: str = ""


@dataclass(frozen=True)
class ProductRecord:
    code_branche: int
    lib_branche: str
    code_sous_branche: Optional[int]
    lib_sous_branche: Optional[str]
    code_produit: int
    lib_produit: str
    description: str = ""
    profils_cibles: List[str] = field(default_factory=list)
    garanties: List[GuaranteeRecord] = field(default_factory=list)


@dataclass(frozen=True)
class IndividualRecord:
    ref_personne: int
    nom_prenom: str
    num_piece_identite: int
    date_naissance: Optional[date] = None
    lieu_naissance: Optional[str] = None
    code_sexe: Optional[str] = None
    situation_familiale: Optional[str] = None
    lib_secteur_activite: Optional[str] = None
    lib_profession: Optional[str] = None
    ville: Optional[str] = None
    lib_gouvernorat: Optional[str] = None
    ville_gouvernorat: Optional[str] = None


@dataclass(frozen=True)
class OrganizationRecord:
    ref_personne: int
    raison_sociale: str
    matricule_fiscale: str
    lib_secteur_activite: Optional[str] = None
    lib_activite: Optional[str] = None
    ville: Optional[str] = None
    lib_gouvernorat: Optional[str] = None
    ville_gouvernorat: Optional[str] = None


@dataclass(frozen=True)
class ClientRecord:
    """A client is exactly one of an individual or an organization."""

    ref_personne: int
    individual: Optional[IndividualRecord] = None
    organization: Optional[OrganizationRecord] = None


@dataclass(frozen=True)
class ContractGuaranteeRecord:
    code_garantie: int
    lib_garantie: Optional[str] = None
    capital_assure: Optional[float] = None


@dataclass(frozen=True)
class ContractRecord:
    num_contrat: str
    ref_personne: int
    lib_produit: str
    effet_contrat: date
    date_expiration: Optional[date] = None
    prochain_terme: Optional[str] = None
    lib_etat_contrat: Optional[str] = None
    branche: Optional[str] = None
    somme_quittances: Optional[float] = None
    statut_paiement: Optional[str] = None
    capital_assure: Optional[float] = None
    garanties: List[ContractGuaranteeRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ClaimRecord:
    num_sinistre: str
    num_contrat: str
    lib_branche: str
    lib_sous_branche: str
    lib_produit: str
    nature_sinistre: str
    lib_type_sinistre: Optional[str] = None
    taux_responsabilite: Optional[float] = None
    date_survenance: Optional[date] = None
    date_declaration: Optional[date] = None
    date_ouverture: Optional[date] = None
    observation_sinistre: Optional[str] = None
    lib_etat_sinistre: Optional[str] = None
    lieu_accident: Optional[str] = None
    motif_reouverture: Optional[str] = None
    montant_encaisse: Optional[float] = None
    montant_a_encaisser: Optional[float] = None


@dataclass(frozen=True)
class ProductQuery:
    """Identifying fields for a product lookup (any subset may be set)."""

    code_branche: Optional[int] = None
    code_sous_branche: Optional[int] = None
    code_produit: Optional[int] = None
    code_garantie: Optional[int] = None
    lib_branche: Optional[str] = None
    lib_sous_branche: Optional[str] = None
    lib_produit: Optional[str] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.__dict__.values())


@runtime_checkable
class InsuranceStore(Protocol):
    """
    Read-only queries used by the tool handlers.

    Implementations must be safe to call from several worker threads at once.
    Infrastructure failures are raised as `DataAccessFailure`.
    """

    def find_products(self, query: ProductQuery) -> List[ProductRecord]: ...

    def list_products(self, *, limit: int) -> List[ProductRecord]: ...

    def get_client(self, ref_personne: int) -> Optional[ClientRecord]: ...

    def find_client(
        self,
        *,
        nom_prenom: Optional[str] = None,
        raison_sociale: Optional[str] = None,
        matricule_fiscale: Optional[str] = None,
        num_piece_identite: Optional[int] = None,
    ) -> Optional[ClientRecord]: ...

    def get_contract(self, num_contrat: str) -> Optional[ContractRecord]: ...

    def list_contracts(self, ref_personne: int) -> List[ContractRecord]: ...

    def get_claim(self, num_sinistre: str) -> Optional[ClaimRecord]: ...

    def latest_claim_for_contract(self, num_contrat: str) -> Optional[ClaimRecord]: ...

    def latest_claim_for_client(self, ref_personne: int) -> Optional[ClaimRecord]: ...
