from __future__ import annotations

import logging

from insurance_agent.errors import NotFound
from insurance_agent.store.base import ProductQuery, ProductRecord
from insurance_agent.tools.context import ToolContext
from insurance_agent.tools.schemas import GuaranteeOut, ProductInfoInput, ProductInfoOutput, ProductOut

logger = logging.getLogger(__name__)


def _product_out(p: ProductRecord) -> ProductOut:
    return ProductOut(
        code_branche=p.code_branche,
        lib_branche=p.lib_branche,
        code_sous_branche=p.code_sous_branche,
        lib_sous_branche=p.lib_sous_branche,
        code_produit=p.code_produit,
        lib_produit=p.lib_produit,
        description=p.description,
        garanties=[
            GuaranteeOut(code_garantie=g.code_garantie, lib_garantie=g.lib_garantie, description=g.description)
            for g in p.garanties
        ],
        profils_cibles=list(p.profils_cibles),
    )


def get_insurance_product_info(args: ProductInfoInput, ctx: ToolContext) -> ProductInfoOutput:
    """
    Look products up by any identifying field; otherwise list the catalog.

    Codes match exactly, labels case-insensitively and partially. When no
    identifier is given or nothing matches, a bounded general listing is
    returned with `match="fallback"`.
    """
    query = ProductQuery(
        code_branche=args.code_branche,
        code_sous_branche=args.code_sous_branche,
        code_produit=args.code_produit,
        code_garantie=args.code_garantie,
        lib_branche=args.lib_branche,
        lib_sous_branche=args.lib_sous_branche,
        lib_produit=args.lib_produit,
    )

    found = [] if query.is_empty() else ctx.store.find_products(query)
    if found:
        return ProductInfoOutput(query=args.query, match="exact", produits=[_product_out(p) for p in found])

    listing = ctx.store.list_products(limit=ctx.config.product_fallback_limit)
    if not listing:
        raise NotFound(
            "product catalog is empty",
            user_message="Aucun produit d'assurance n'est disponible pour le moment.",
        )
    logger.info("product lookup fell back to catalog listing (%d products)", len(listing))
    return ProductInfoOutput(query=args.query, match="fallback", produits=[_product_out(p) for p in listing])
