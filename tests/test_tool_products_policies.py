from __future__ import annotations

import pytest

from insurance_agent.errors import NotFound
from insurance_agent.tools.policies import get_client_policy_info
from insurance_agent.tools.products import get_insurance_product_info
from insurance_agent.tools.schemas import ClientPolicyInput, ProductInfoInput


def _products(ctx, **kw):  # type: ignore[no-untyped-def]
    return get_insurance_product_info(ProductInfoInput.model_validate({"query": "garanties", **kw}), ctx)


def test_product_lookup_by_code_is_exact(ctx) -> None:
    out = _products(ctx, codeProduit=101)
    assert out.match == "exact"
    assert [p.code_produit for p in out.produits] == [101]
    assert [g.lib_garantie for g in out.produits[0].garanties][:3] == [
        "Responsabilité civile",
        "Dommages collision",
        "Vol et incendie",
    ]


def test_product_label_match_is_partial_and_case_insensitive(ctx) -> None:
    out = _products(ctx, libBranche="AUTO")
    assert out.match == "exact"
    assert sorted(p.code_produit for p in out.produits) == [101, 102]


def test_product_lookup_by_guarantee_code(ctx) -> None:
    out = _products(ctx, codeGarantie=11)
    assert [p.lib_produit for p in out.produits] == ["Habitation Sérénité"]


def test_product_without_identifiers_lists_catalog(ctx) -> None:
    out = _products(ctx)
    assert out.match == "fallback"
    assert [p.code_produit for p in out.produits] == [101, 102, 201, 301]
    assert out.query == "garanties"


def test_product_no_match_falls_back_to_bounded_listing(ctx) -> None:
    from dataclasses import replace

    small = replace(ctx, config=replace(ctx.config, product_fallback_limit=2))
    out = _products(small, libProduit="Voyage")
    assert out.match == "fallback"
    assert len(out.produits) == 2


def test_product_empty_catalog_is_not_found(ctx) -> None:
    from dataclasses import replace

    from insurance_agent.store.memory import InMemoryInsuranceStore

    with pytest.raises(NotFound):
        _products(replace(ctx, store=InMemoryInsuranceStore()))


def test_client_policy_by_name_returns_individual_and_contracts(ctx) -> None:
    out = get_client_policy_info(ClientPolicyInput.model_validate({"nomPrenom": "ben salah"}), ctx)
    assert out.ref_personne == 1001
    assert out.personne_physique is not None
    assert out.personne_physique.num_piece_identite == 8765432
    assert out.personne_morale is None
    assert {k.num_contrat for k in out.contrats} == {"BH-AUTO-2024-001234", "BH-HAB-2021-000777"}


def test_client_policy_organization_by_fiscal_id(ctx) -> None:
    out = get_client_policy_info(ClientPolicyInput.model_validate({"matriculeFiscale": "1234567a/m/000"}), ctx)
    assert out.ref_personne == 2001
    assert out.personne_physique is None
    assert out.personne_morale is not None
    assert out.personne_morale.raison_sociale == "Société Méditerranéenne de Transport"


def test_client_policy_by_contract_number_resolves_owner(ctx) -> None:
    out = get_client_policy_info(ClientPolicyInput.model_validate({"numContrat": "BH-SAN-2024-000310"}), ctx)
    assert out.ref_personne == 1002


def test_client_policy_ref_personne_takes_precedence(ctx) -> None:
    args = ClientPolicyInput.model_validate({"refPersonne": 1002, "nomPrenom": "Ben Salah"})
    assert get_client_policy_info(args, ctx).ref_personne == 1002


def test_client_policy_is_idempotent(ctx) -> None:
    args = ClientPolicyInput.model_validate({"refPersonne": 1001})
    assert get_client_policy_info(args, ctx).to_wire() == get_client_policy_info(args, ctx).to_wire()


def test_client_policy_wire_dates_are_iso(ctx) -> None:
    wire = get_client_policy_info(ClientPolicyInput.model_validate({"refPersonne": 1001}), ctx).to_wire()
    by_num = {k["numContrat"]: k for k in wire["contrats"]}
    assert by_num["BH-AUTO-2024-001234"]["effetContrat"] == "2024-01-15"
    assert by_num["BH-AUTO-2024-001234"]["dateExpiration"] is None
    assert by_num["BH-HAB-2021-000777"]["dateExpiration"] == "2022-03-01"
    assert wire["personnePhysique"]["dateNaissance"] == "1985-04-12"


def test_client_policy_unknown_client_is_not_found(ctx) -> None:
    with pytest.raises(NotFound) as ei:
        get_client_policy_info(ClientPolicyInput.model_validate({"numPieceIdentite": 1}), ctx)
    assert "Aucun client" in ei.value.user_message
