"""
Typed contracts for the insurance tools.

Wire format is camelCase (what the model and the UI see); Python attributes are
snake_case. Inputs ignore unknown keys. Outputs always serialize every field,
with `null` for absent optional values, and carry a `tool` tag so that
`ToolOutput` is a closed discriminated union.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _strip_or_none(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class _Input(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class _Output(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class ProductInfoInput(_Input):
    code_branche: Optional[int] = Field(default=None, description="Code de la branche d'assurance")
    code_sous_branche: Optional[int] = Field(default=None, description="Code de la sous-branche")
    code_produit: Optional[int] = Field(default=None, description="Code du produit")
    code_garantie: Optional[int] = Field(default=None, description="Code de la garantie")
    lib_branche: Optional[str] = Field(default=None, description="Libellé de la branche")
    lib_sous_branche: Optional[str] = Field(default=None, description="Libellé de la sous-branche")
    lib_produit: Optional[str] = Field(default=None, description="Libellé du produit")
    query: str = Field(description="Question spécifique sur le produit d'assurance")

    @field_validator("lib_branche", "lib_sous_branche", "lib_produit", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return _strip_or_none(v)

    @field_validator("query")
    @classmethod
    def _query_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be empty")
        return v


class ClientPolicyInput(_Input):
    ref_personne: Optional[int] = Field(default=None, description="Référence de la personne (physique ou morale)")
    num_contrat: Optional[str] = Field(default=None, description="Numéro de contrat spécifique")
    raison_sociale: Optional[str] = Field(default=None, description="Raison sociale (pour personne morale)")
    nom_prenom: Optional[str] = Field(default=None, description="Nom et prénom (pour personne physique)")
    matricule_fiscale: Optional[str] = Field(default=None, description="Matricule fiscal (pour personne morale)")
    num_piece_identite: Optional[int] = Field(
        default=None, description="Numéro de pièce d'identité (pour personne physique)"
    )

    @field_validator("num_contrat", "raison_sociale", "nom_prenom", "matricule_fiscale", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return _strip_or_none(v)

    @model_validator(mode="after")
    def _one_identifier(self) -> "ClientPolicyInput":
        if all(getattr(self, name) is None for name in type(self).model_fields):
            raise ValueError("at least one client identifier is required")
        return self


class ClaimCoverageInput(_Input):
    num_contrat: str = Field(description="Numéro de contrat pour vérification de couverture")
    nature_sinistre: str = Field(description="Nature du sinistre")
    lib_type_sinistre: Optional[str] = Field(default=None, description="Type de sinistre")
    observation_sinistre: Optional[str] = Field(default=None, description="Description détaillée du sinistre")
    montant_encaisse: Optional[float] = Field(default=None, ge=0, description="Montant estimé du sinistre")
    lieu_accident: Optional[str] = Field(default=None, description="Lieu de l'accident")

    @field_validator("num_contrat", "nature_sinistre")
    @classmethod
    def _required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class PaymentStatusInput(_Input):
    ref_personne: Optional[int] = Field(default=None, description="Référence de la personne")
    num_contrat: Optional[str] = Field(default=None, description="Numéro de contrat spécifique")
    raison_sociale: Optional[str] = Field(default=None, description="Raison sociale (pour personne morale)")
    nom_prenom: Optional[str] = Field(default=None, description="Nom et prénom (pour personne physique)")

    @field_validator("num_contrat", "raison_sociale", "nom_prenom", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return _strip_or_none(v)


class ClaimStatusInput(_Input):
    num_sinistre: Optional[str] = Field(default=None, description="Numéro de sinistre spécifique")
    num_contrat: Optional[str] = Field(default=None, description="Numéro de contrat")
    ref_personne: Optional[int] = Field(default=None, description="Référence de la personne")
    lib_etat_sinistre: Optional[str] = Field(default=None, description="État du sinistre")

    @field_validator("num_sinistre", "num_contrat", "lib_etat_sinistre", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return _strip_or_none(v)

    @model_validator(mode="after")
    def _one_identifier(self) -> "ClaimStatusInput":
        if self.num_sinistre is None and self.num_contrat is None and self.ref_personne is None:
            raise ValueError("one of numSinistre, numContrat or refPersonne is required")
        return self


class QuoteClientInfo(_Input):
    nom_prenom: Optional[str] = Field(default=None, description="Nom et prénom du client")
    date_naissance: Optional[str] = Field(default=None, description="Date de naissance (YYYY-MM-DD)")
    lieu_naissance: Optional[str] = Field(default=None, description="Lieu de naissance")
    code_sexe: Optional[Literal["M", "F"]] = Field(default=None, description="Code sexe (M/F)")
    situation_familiale: Optional[str] = Field(default=None, description="Situation familiale")
    num_piece_identite: Optional[int] = Field(default=None, description="Numéro de pièce d'identité (CIN)")
    lib_secteur_activite: Optional[str] = Field(default=None, description="Secteur d'activité")
    lib_profession: Optional[str] = Field(default=None, description="Profession")
    ville: Optional[str] = Field(default=None, description="Ville")
    lib_gouvernorat: Optional[str] = Field(default=None, description="Gouvernorat")
    raison_sociale: Optional[str] = Field(default=None, description="Raison sociale de l'entreprise")
    matricule_fiscale: Optional[str] = Field(default=None, description="Matricule fiscal")


class QuoteProductInfo(_Input):
    lib_produit: str = Field(min_length=1, description="Libellé du produit d'assurance")
    branche: Optional[str] = Field(default=None, description="Branche d'assurance")
    capital_assure: Optional[float] = Field(
        default=None, gt=0, description="Capital assuré souhaité (valeur vénale du véhicule)"
    )


class QuoteAdditionalInfo(_Input):
    nature_contrat: Optional[Literal["r", "n"]] = Field(
        default=None, description="Nature du contrat (r pour renouvellement, n pour nouveau)"
    )
    nombre_place: Optional[int] = Field(default=None, ge=1, le=60, description="Nombre de places du véhicule")
    date_premiere_mise_en_circulation: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Date de première mise en circulation (YYYY-MM-DD)",
    )
    capital_bris_de_glace: Optional[float] = Field(default=None, ge=0, description="Capital bris de glace")
    capital_dommage_collision: Optional[float] = Field(default=None, ge=0, description="Capital dommage collision")
    puissance: Optional[int] = Field(default=None, ge=1, le=100, description="Puissance du véhicule")
    classe: Optional[int] = Field(default=None, ge=1, le=12, description="Classe du véhicule")


class QuoteInput(_Input):
    client_info: QuoteClientInfo
    product_info: QuoteProductInfo
    additional_info: Optional[QuoteAdditionalInfo] = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class GuaranteeOut(_Output):
    code_garantie: int
    lib_garantie: str
    description: str = ""


class ProductOut(_Output):
    code_branche: int
    lib_branche: str
    code_sous_branche: Optional[int] = None
    lib_sous_branche: Optional[str] = None
    code_produit: int
    lib_produit: str
    description: str = ""
    garanties: List[GuaranteeOut] = Field(default_factory=list)
    profils_cibles: List[str] = Field(default_factory=list)


class ProductInfoOutput(_Output):
    tool: Literal["getInsuranceProductInfo"] = "getInsuranceProductInfo"
    query: str
    match: Literal["exact", "fallback"]
    produits: List[ProductOut]


class IndividualOut(_Output):
    ref_personne: int
    nom_prenom: str
    date_naissance: Optional[str] = None
    lieu_naissance: Optional[str] = None
    code_sexe: Optional[str] = None
    situation_familiale: Optional[str] = None
    num_piece_identite: int
    lib_secteur_activite: Optional[str] = None
    lib_profession: Optional[str] = None
    ville: Optional[str] = None
    lib_gouvernorat: Optional[str] = None
    ville_gouvernorat: Optional[str] = None


class OrganizationOut(_Output):
    ref_personne: int
    raison_sociale: str
    matricule_fiscale: str
    lib_secteur_activite: Optional[str] = None
    lib_activite: Optional[str] = None
    ville: Optional[str] = None
    lib_gouvernorat: Optional[str] = None
    ville_gouvernorat: Optional[str] = None


class ContractGuaranteeOut(_Output):
    code_garantie: int
    lib_garantie: Optional[str] = None
    capital_assure: Optional[float] = None


class ContractOut(_Output):
    num_contrat: str
    lib_produit: str
    effet_contrat: str
    date_expiration: Optional[str] = None
    prochain_terme: Optional[str] = None
    lib_etat_contrat: Optional[str] = None
    branche: Optional[str] = None
    somme_quittances: Optional[float] = None
    statut_paiement: Optional[str] = None
    capital_assure: Optional[float] = None
    garanties: List[ContractGuaranteeOut] = Field(default_factory=list)


class ClientPolicyOutput(_Output):
    tool: Literal["getClientPolicyInfo"] = "getClientPolicyInfo"
    ref_personne: int
    personne_physique: Optional[IndividualOut] = None
    personne_morale: Optional[OrganizationOut] = None
    contrats: List[ContractOut]


class ClaimCoverageOutput(_Output):
    tool: Literal["checkClaimCoverage"] = "checkClaimCoverage"
    num_contrat: str
    is_covered: bool
    coverage_percentage: int
    explanation: str
    applicable_conditions: List[str] = Field(default_factory=list)
    estimated_payout: Optional[float] = None
    deductible: Optional[float] = None
    exclusions: List[str] = Field(default_factory=list)
    garanties_applicables: List[ContractGuaranteeOut] = Field(default_factory=list)


class PaymentContractOut(_Output):
    num_contrat: str
    lib_produit: str
    statut_paiement: Optional[str] = None
    somme_quittances: Optional[float] = None
    prochain_terme: Optional[str] = None
    effet_contrat: str
    date_expiration: Optional[str] = None


class PaymentStatusOutput(_Output):
    tool: Literal["getPaymentStatus"] = "getPaymentStatus"
    ref_personne: Optional[int] = None
    num_contrat: Optional[str] = None
    statut_paiement: Optional[str] = None
    somme_quittances: Optional[float] = None
    prochain_terme: Optional[str] = None
    contrats: List[PaymentContractOut]


ClaimStatus = Literal["submitted", "processing", "approved", "denied", "paid"]


class ClaimStatusOutput(_Output):
    tool: Literal["getClaimStatus"] = "getClaimStatus"
    num_sinistre: str
    num_contrat: str
    status: ClaimStatus
    lib_branche: str
    lib_sous_branche: str
    lib_produit: str
    nature_sinistre: str
    lib_type_sinistre: Optional[str] = None
    taux_responsabilite: Optional[float] = None
    date_survenance: Optional[str] = None
    date_declaration: Optional[str] = None
    date_ouverture: Optional[str] = None
    observation_sinistre: Optional[str] = None
    lib_etat_sinistre: Optional[str] = None
    lieu_accident: Optional[str] = None
    motif_reouverture: Optional[str] = None
    montant_encaisse: Optional[float] = None
    montant_a_encaisser: Optional[float] = None


class PremiumOut(_Output):
    mensuelle: float
    semestrielle: float
    annuelle: float


class QuoteGuaranteeOut(_Output):
    code_garantie: int
    lib_garantie: str
    capital_assure: Optional[float] = None
    description: str = ""


class DiscountOut(_Output):
    nom: str
    montant: float
    pourcentage: float


class QuoteOutput(_Output):
    tool: Literal["generateQuote"] = "generateQuote"
    quote_id: str
    lib_produit: str
    branche: Optional[str] = None
    capital_assure: Optional[float] = None
    prime: PremiumOut
    garanties: List[QuoteGuaranteeOut]
    remises: List[DiscountOut]
    valid_jusquau: str
    conditions: str
    prochain_etapes: List[str]


ToolOutput = Annotated[
    Union[
        ProductInfoOutput,
        ClientPolicyOutput,
        ClaimCoverageOutput,
        PaymentStatusOutput,
        ClaimStatusOutput,
        QuoteOutput,
    ],
    Field(discriminator="tool"),
]
