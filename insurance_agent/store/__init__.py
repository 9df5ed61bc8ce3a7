"""Insurance data store: Protocol, Postgres implementation, seeded in-memory implementation.

psycopg is imported lazily inside the Postgres store so the service can run
on the in-memory store without DB drivers installed.
"""

from __future__ import annotations

import logging
from typing import Optional

from insurance_agent.config import StoreConfig, build_postgres_dsn, load_store_config
from insurance_agent.store.base import InsuranceStore

logger = logging.getLogger(__name__)


def get_insurance_store(cfg: Optional[StoreConfig] = None) -> InsuranceStore:
    """Build the configured store. Falls back to the demo store when Postgres is not configured."""
    cfg = cfg or load_store_config()
    if cfg.backend == "postgres":
        dsn = build_postgres_dsn(cfg)
        if dsn:
            from insurance_agent.store.postgres import PostgresInsuranceStore

            return PostgresInsuranceStore(dsn)
        logger.warning("INSURANCE_STORE=postgres but no DSN configured; using the in-memory demo store")

    from insurance_agent.store.memory import seed_demo_store

    return seed_demo_store()
