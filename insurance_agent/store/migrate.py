"""
Bootstrap schema for the insurance tables.

The production schema is owned by the policy-administration system; these
migrations only exist so a dev Postgres can be brought up with the tables the
read queries in `store/postgres.py` expect. Files are `NNNN_name.sql`, applied
in lexical order, each in its own transaction, and recorded with a sha256 of
their contents in `insurance_schema_migrations`.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from insurance_agent.config import StoreConfig, build_postgres_dsn, load_store_config

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
MIGRATIONS_TABLE = "insurance_schema_migrations"

# pg_advisory_lock key; concurrent replicas starting with DB_AUTO_MIGRATE=1 serialize on it.
MIGRATION_LOCK_KEY = 0x42484153  # "BHAS"


class MigrationDrift(RuntimeError):
    """An already-applied migration file was edited afterwards."""


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path
    checksum: str
    sql: str


@dataclass
class MigrationPlan:
    pending: List[Migration] = field(default_factory=list)
    up_to_date: List[str] = field(default_factory=list)
    drifted: List[str] = field(default_factory=list)


def load_migrations(directory: Optional[Path] = None) -> List[Migration]:
    """Read `NNNN_name.sql` files in lexical order; the version is the numeric prefix."""
    directory = directory or MIGRATIONS_DIR
    if not directory.is_dir():
        return []
    out: List[Migration] = []
    for p in sorted(directory.glob("*.sql")):
        raw = p.read_bytes()
        out.append(
            Migration(
                version=p.stem.split("_", 1)[0],
                path=p,
                checksum=hashlib.sha256(raw).hexdigest(),
                sql=raw.decode("utf-8"),
            )
        )
    return out


def plan_migrations(migrations: Iterable[Migration], applied: Mapping[str, str]) -> MigrationPlan:
    """Split `migrations` against the applied `{version: checksum}` map."""
    plan = MigrationPlan()
    for m in migrations:
        prev = applied.get(m.version)
        if prev is None:
            plan.pending.append(m)
        elif prev == m.checksum:
            plan.up_to_date.append(m.version)
        else:
            plan.drifted.append(m.version)
    return plan


def _connect(dsn: str):
    import psycopg  # type: ignore[import-not-found]

    return psycopg.connect(dsn)


def _read_applied(conn) -> Dict[str, str]:
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} ("
        " version text PRIMARY KEY,"
        " checksum text NOT NULL,"
        " applied_at timestamptz NOT NULL DEFAULT now())"
    )
    rows = conn.execute(f"SELECT version, checksum FROM {MIGRATIONS_TABLE}").fetchall()
    return {str(v): str(c) for v, c in rows}


def apply_migrations(
    *,
    dsn: str,
    migrations: Optional[Iterable[Migration]] = None,
    dry_run: bool = False,
) -> MigrationPlan:
    """
    Apply the pending migrations under the advisory lock and return the plan.

    Raises MigrationDrift before applying anything when an applied file changed.
    With `dry_run` the plan is computed but nothing is executed.
    """
    migs = list(migrations) if migrations is not None else load_migrations()

    with _connect(dsn) as conn:
        conn.execute("SELECT pg_advisory_lock(%s)", (MIGRATION_LOCK_KEY,))
        try:
            plan = plan_migrations(migs, _read_applied(conn))
            if plan.drifted:
                raise MigrationDrift(f"Applied migrations changed on disk: {', '.join(plan.drifted)}")
            if dry_run:
                return plan
            for m in plan.pending:
                with conn.transaction():
                    conn.execute(m.sql)
                    conn.execute(
                        f"INSERT INTO {MIGRATIONS_TABLE}(version, checksum) VALUES (%s, %s)",
                        (m.version, m.checksum),
                    )
                logger.info("Applied migration %s (%s)", m.version, m.path.name)
        finally:
            conn.execute("SELECT pg_advisory_unlock(%s)", (MIGRATION_LOCK_KEY,))
    return plan


def maybe_auto_migrate(cfg: Optional[StoreConfig] = None) -> Tuple[bool, str]:
    """
    Auto-migrate on startup when DB_AUTO_MIGRATE=1 and the store is Postgres.

    Returns: (did_attempt, message)
    """
    cfg = cfg or load_store_config()
    if not cfg.db_auto_migrate:
        return False, "DB_AUTO_MIGRATE is disabled"
    if cfg.backend != "postgres":
        return False, "store backend is not postgres"
    dsn = build_postgres_dsn(cfg)
    if not dsn:
        return False, "Postgres DSN not configured"
    try:
        plan = apply_migrations(dsn=dsn)
    except Exception as e:
        return True, f"Migration failed: {e}"
    if plan.pending:
        return True, f"Applied {len(plan.pending)} migration(s): {', '.join(m.version for m in plan.pending)}"
    return True, "No pending migrations"


def main(*, dry_run: bool = False) -> int:
    dsn = build_postgres_dsn(load_store_config())
    if not dsn:
        print("Postgres not configured (set POSTGRES_DSN or POSTGRES_HOST/POSTGRES_DB/POSTGRES_USER/POSTGRES_PASSWORD).")
        return 2
    plan = apply_migrations(dsn=dsn, dry_run=dry_run)
    verb = "Would apply" if dry_run else "Applied"
    if plan.pending:
        print(f"{verb} {len(plan.pending)} migration(s): {', '.join(m.version for m in plan.pending)}")
    else:
        print("No pending migrations.")
    return 0
