from __future__ import annotations

from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict

SuggestionCategory = Literal["product", "policy", "claim", "payment", "quote", "general"]


class ChatSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    prompt: str
    category: SuggestionCategory


SUGGESTIONS: List[ChatSuggestion] = [
    ChatSuggestion(
        id="product-info",
        title="Informations Produits",
        description="Découvrez nos garanties et couvertures",
        prompt="Quelles sont les garanties incluses dans le contrat auto BH Assurance ?",
        category="product",
    ),
    ChatSuggestion(
        id="policy-details",
        title="Ma Police d'Assurance",
        description="Consultez les détails de votre contrat",
        prompt="Pouvez-vous me donner les détails de ma police d'assurance et mes garanties souscrites ?",
        category="policy",
    ),
    ChatSuggestion(
        id="claim-status",
        title="Statut de Sinistre",
        description="Suivez l'état de votre déclaration",
        prompt="Quel est le statut de ma demande de sinistre et quelles sont les prochaines étapes ?",
        category="claim",
    ),
    ChatSuggestion(
        id="payment-status",
        title="Statut de Paiement",
        description="Vérifiez vos paiements et échéances",
        prompt="Quel est le statut de mes paiements et ma prochaine échéance ?",
        category="payment",
    ),
    ChatSuggestion(
        id="coverage-check",
        title="Vérification Couverture",
        description="Vérifiez si un sinistre est couvert",
        prompt="Mon sinistre est-il couvert par ma police d'assurance actuelle ?",
        category="claim",
    ),
    ChatSuggestion(
        id="quote-request",
        title="Demande de Devis",
        description="Obtenez un devis personnalisé",
        prompt="Je souhaite obtenir un devis d'assurance automobile. Pouvez-vous m'aider ?",
        category="quote",
    ),
]


def list_suggestions(
    *, categories: Optional[Sequence[str]] = None, limit: Optional[int] = None
) -> List[ChatSuggestion]:
    out = [s for s in SUGGESTIONS if not categories or s.category in categories]
    if limit is not None and limit >= 0:
        out = out[:limit]
    return out
