"""Postgres-backed insurance store (psycopg, one short-lived connection per query)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from insurance_agent.errors import DataAccessFailure
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

logger = logging.getLogger(__name__)


def _connect(dsn: str):
    import psycopg  # type: ignore[import-not-found]

    return psycopg.connect(dsn)


def _contains(text: str) -> str:
    """ILIKE pattern matching `text` literally anywhere; pair with ESCAPE '\\'."""
    escaped = text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _f(v: Any) -> Optional[float]:
    return float(v) if v is not None else None


_PRODUCT_COLUMNS = """
  p.code_branche, b.lib_branche, p.code_sous_branche, sb.lib_sous_branche,
  p.code_produit, p.lib_produit, p.description, p.profils_cibles
"""

_PRODUCT_FROM = """
FROM produit p
JOIN branche b ON b.code_branche = p.code_branche
LEFT JOIN sous_branche sb ON sb.code_sous_branche = p.code_sous_branche
"""

_INDIVIDUAL_COLUMNS = """
  ref_personne, nom_prenom, num_piece_identite, date_naissance, lieu_naissance,
  code_sexe, situation_familiale, lib_secteur_activite, lib_profession,
  ville, lib_gouvernorat, ville_gouvernorat
"""

_ORGANIZATION_COLUMNS = """
  ref_personne, raison_sociale, matricule_fiscale, lib_secteur_activite,
  lib_activite, ville, lib_gouvernorat, ville_gouvernorat
"""

_CONTRACT_COLUMNS = """
  num_contrat, ref_personne, lib_produit, effet_contrat, date_expiration,
  prochain_terme, lib_etat_contrat, branche, somme_quittances, statut_paiement,
  capital_assure
"""

_CLAIM_COLUMNS = """
  num_sinistre, num_contrat, lib_branche, lib_sous_branche, lib_produit,
  nature_sinistre, lib_type_sinistre, taux_responsabilite, date_survenance,
  date_declaration, date_ouverture, observation_sinistre, lib_etat_sinistre,
  lieu_accident, motif_reouverture, montant_encaisse, montant_a_encaisser
"""


class PostgresInsuranceStore:
    def __init__(self, dsn: str):
        self._dsn = dsn

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple[Any, ...]]:
        try:
            with _connect(self._dsn) as conn:
                return list(conn.execute(sql, tuple(params)).fetchall() or [])
        except Exception as e:
            # Internal detail stays in the log and in str(err); the user sees the fixed message.
            logger.warning("insurance store query failed: %s", e)
            raise DataAccessFailure(f"database query failed: {type(e).__name__}: {e}") from e

    # ---- products -------------------------------------------------------

    def _guarantees_for(self, codes: List[int]) -> Dict[int, List[GuaranteeRecord]]:
        if not codes:
            return {}
        rows = self._fetchall(
            """
            SELECT pg.code_produit, g.code_garantie, g.lib_garantie, g.description
            FROM produit_garantie pg
            JOIN garantie g ON g.code_garantie = pg.code_garantie
            WHERE pg.code_produit = ANY(%s)
            ORDER BY pg.code_produit, g.code_garantie;
            """,
            (codes,),
        )
        out: Dict[int, List[GuaranteeRecord]] = {}
        for r in rows:
            out.setdefault(int(r[0]), []).append(
                GuaranteeRecord(code_garantie=int(r[1]), lib_garantie=str(r[2]), description=str(r[3] or ""))
            )
        return out

    def _products_from_rows(self, rows: List[Tuple[Any, ...]]) -> List[ProductRecord]:
        guarantees = self._guarantees_for([int(r[4]) for r in rows])
        return [
            ProductRecord(
                code_branche=int(r[0]),
                lib_branche=str(r[1]),
                code_sous_branche=int(r[2]) if r[2] is not None else None,
                lib_sous_branche=str(r[3]) if r[3] is not None else None,
                code_produit=int(r[4]),
                lib_produit=str(r[5]),
                description=str(r[6] or ""),
                profils_cibles=list(r[7] or []),
                garanties=guarantees.get(int(r[4]), []),
            )
            for r in rows
        ]

    def find_products(self, query: ProductQuery) -> List[ProductRecord]:
        if query.is_empty():
            return []
        where: List[str] = []
        params: List[Any] = []
        if query.code_branche is not None:
            where.append("p.code_branche = %s")
            params.append(query.code_branche)
        if query.code_sous_branche is not None:
            where.append("p.code_sous_branche = %s")
            params.append(query.code_sous_branche)
        if query.code_produit is not None:
            where.append("p.code_produit = %s")
            params.append(query.code_produit)
        if query.code_garantie is not None:
            where.append(
                "EXISTS (SELECT 1 FROM produit_garantie x WHERE x.code_produit = p.code_produit AND x.code_garantie = %s)"
            )
            params.append(query.code_garantie)
        if query.lib_branche:
            where.append("b.lib_branche ILIKE %s ESCAPE '\\'")
            params.append(_contains(query.lib_branche))
        if query.lib_sous_branche:
            where.append("sb.lib_sous_branche ILIKE %s ESCAPE '\\'")
            params.append(_contains(query.lib_sous_branche))
        if query.lib_produit:
            where.append("p.lib_produit ILIKE %s ESCAPE '\\'")
            params.append(_contains(query.lib_produit))

        sql = f"SELECT {_PRODUCT_COLUMNS} {_PRODUCT_FROM} WHERE {' AND '.join(where)} ORDER BY p.code_produit;"
        return self._products_from_rows(self._fetchall(sql, params))

    def list_products(self, *, limit: int) -> List[ProductRecord]:
        sql = f"SELECT {_PRODUCT_COLUMNS} {_PRODUCT_FROM} ORDER BY p.code_produit LIMIT %s;"
        return self._products_from_rows(self._fetchall(sql, (int(limit),)))

    # ---- clients --------------------------------------------------------

    @staticmethod
    def _individual(r: Tuple[Any, ...]) -> ClientRecord:
        ind = IndividualRecord(
            ref_personne=int(r[0]),
            nom_prenom=str(r[1]),
            num_piece_identite=int(r[2]),
            date_naissance=r[3],
            lieu_naissance=r[4],
            code_sexe=r[5],
            situation_familiale=r[6],
            lib_secteur_activite=r[7],
            lib_profession=r[8],
            ville=r[9],
            lib_gouvernorat=r[10],
            ville_gouvernorat=r[11],
        )
        return ClientRecord(ref_personne=ind.ref_personne, individual=ind)

    @staticmethod
    def _organization(r: Tuple[Any, ...]) -> ClientRecord:
        org = OrganizationRecord(
            ref_personne=int(r[0]),
            raison_sociale=str(r[1]),
            matricule_fiscale=str(r[2]),
            lib_secteur_activite=r[3],
            lib_activite=r[4],
            ville=r[5],
            lib_gouvernorat=r[6],
            ville_gouvernorat=r[7],
        )
        return ClientRecord(ref_personne=org.ref_personne, organization=org)

    def _first_individual(self, where: str, param: Any) -> Optional[ClientRecord]:
        rows = self._fetchall(
            f"SELECT {_INDIVIDUAL_COLUMNS} FROM personne_physique WHERE {where} ORDER BY ref_personne LIMIT 1;",
            (param,),
        )
        return self._individual(rows[0]) if rows else None

    def _first_organization(self, where: str, param: Any) -> Optional[ClientRecord]:
        rows = self._fetchall(
            f"SELECT {_ORGANIZATION_COLUMNS} FROM personne_morale WHERE {where} ORDER BY ref_personne LIMIT 1;",
            (param,),
        )
        return self._organization(rows[0]) if rows else None

    def get_client(self, ref_personne: int) -> Optional[ClientRecord]:
        return self._first_individual("ref_personne = %s", ref_personne) or self._first_organization(
            "ref_personne = %s", ref_personne
        )

    def find_client(
        self,
        *,
        nom_prenom: Optional[str] = None,
        raison_sociale: Optional[str] = None,
        matricule_fiscale: Optional[str] = None,
        num_piece_identite: Optional[int] = None,
    ) -> Optional[ClientRecord]:
        if nom_prenom:
            found = self._first_individual("nom_prenom ILIKE %s ESCAPE '\\'", _contains(nom_prenom))
            if found:
                return found
        if raison_sociale:
            found = self._first_organization("raison_sociale ILIKE %s ESCAPE '\\'", _contains(raison_sociale))
            if found:
                return found
        if matricule_fiscale:
            found = self._first_organization("lower(matricule_fiscale) = lower(%s)", matricule_fiscale.strip())
            if found:
                return found
        if num_piece_identite is not None:
            return self._first_individual("num_piece_identite = %s", num_piece_identite)
        return None

    # ---- contracts ------------------------------------------------------

    def _contract_guarantees(self, nums: List[str]) -> Dict[str, List[ContractGuaranteeRecord]]:
        if not nums:
            return {}
        rows = self._fetchall(
            """
            SELECT gc.num_contrat, gc.code_garantie, g.lib_garantie, gc.capital_assure
            FROM garantie_contrat gc
            LEFT JOIN garantie g ON g.code_garantie = gc.code_garantie
            WHERE gc.num_contrat = ANY(%s)
            ORDER BY gc.num_contrat, gc.code_garantie;
            """,
            (nums,),
        )
        out: Dict[str, List[ContractGuaranteeRecord]] = {}
        for r in rows:
            out.setdefault(str(r[0]), []).append(
                ContractGuaranteeRecord(code_garantie=int(r[1]), lib_garantie=r[2], capital_assure=_f(r[3]))
            )
        return out

    def _contracts_from_rows(self, rows: List[Tuple[Any, ...]]) -> List[ContractRecord]:
        guarantees = self._contract_guarantees([str(r[0]) for r in rows])
        return [
            ContractRecord(
                num_contrat=str(r[0]),
                ref_personne=int(r[1]),
                lib_produit=str(r[2]),
                effet_contrat=r[3],
                date_expiration=r[4],
                prochain_terme=str(r[5]) if r[5] is not None else None,
                lib_etat_contrat=r[6],
                branche=r[7],
                somme_quittances=_f(r[8]),
                statut_paiement=r[9],
                capital_assure=_f(r[10]),
                garanties=guarantees.get(str(r[0]), []),
            )
            for r in rows
        ]

    def get_contract(self, num_contrat: str) -> Optional[ContractRecord]:
        rows = self._fetchall(f"SELECT {_CONTRACT_COLUMNS} FROM contrat WHERE num_contrat = %s;", (num_contrat,))
        found = self._contracts_from_rows(rows)
        return found[0] if found else None

    def list_contracts(self, ref_personne: int) -> List[ContractRecord]:
        rows = self._fetchall(
            f"SELECT {_CONTRACT_COLUMNS} FROM contrat WHERE ref_personne = %s ORDER BY effet_contrat DESC;",
            (ref_personne,),
        )
        return self._contracts_from_rows(rows)

    # ---- claims ---------------------------------------------------------

    @staticmethod
    def _claim(r: Tuple[Any, ...]) -> ClaimRecord:
        return ClaimRecord(
            num_sinistre=str(r[0]),
            num_contrat=str(r[1]),
            lib_branche=str(r[2]),
            lib_sous_branche=str(r[3]),
            lib_produit=str(r[4]),
            nature_sinistre=str(r[5]),
            lib_type_sinistre=r[6],
            taux_responsabilite=_f(r[7]),
            date_survenance=r[8],
            date_declaration=r[9],
            date_ouverture=r[10],
            observation_sinistre=r[11],
            lib_etat_sinistre=r[12],
            lieu_accident=r[13],
            motif_reouverture=r[14],
            montant_encaisse=_f(r[15]),
            montant_a_encaisser=_f(r[16]),
        )

    def get_claim(self, num_sinistre: str) -> Optional[ClaimRecord]:
        rows = self._fetchall(f"SELECT {_CLAIM_COLUMNS} FROM sinistre WHERE num_sinistre = %s;", (num_sinistre,))
        return self._claim(rows[0]) if rows else None

    def latest_claim_for_contract(self, num_contrat: str) -> Optional[ClaimRecord]:
        rows = self._fetchall(
            f"""
            SELECT {_CLAIM_COLUMNS} FROM sinistre
            WHERE num_contrat = %s
            ORDER BY date_declaration DESC NULLS LAST
            LIMIT 1;
            """,
            (num_contrat,),
        )
        return self._claim(rows[0]) if rows else None

    def latest_claim_for_client(self, ref_personne: int) -> Optional[ClaimRecord]:
        rows = self._fetchall(
            f"""
            SELECT {_CLAIM_COLUMNS} FROM sinistre
            WHERE num_contrat IN (SELECT num_contrat FROM contrat WHERE ref_personne = %s)
            ORDER BY date_declaration DESC NULLS LAST
            LIMIT 1;
            """,
            (ref_personne,),
        )
        return self._claim(rows[0]) if rows else None
