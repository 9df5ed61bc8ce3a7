from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Set


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _split_csv(raw: str) -> List[str]:
    return [x.strip() for x in (raw or "").split(",") if x.strip()]


DEFAULT_MODEL = "openai/gpt-oss-120b"
WEB_SEARCH_MODEL = "perplexity/sonar"


@dataclass(frozen=True)
class ChatConfig:
    # Step budget (model-reasoning/tool-dispatch cycles per request)
    max_steps: int = 5

    # Wall-clock ceiling for a whole streamed request
    request_timeout_seconds: float = 30.0

    # Model selection
    default_model: str = DEFAULT_MODEL
    web_search_model: str = WEB_SEARCH_MODEL
    allowed_models: Optional[Set[str]] = None

    # Tool caps
    product_fallback_limit: int = 10


def load_chat_config() -> ChatConfig:
    """
    Load chat runtime settings from env.

    Recommended vars:
    - CHAT_MAX_STEPS=5
    - CHAT_REQUEST_TIMEOUT_SECONDS=30
    - CHAT_DEFAULT_MODEL=openai/gpt-oss-120b
    - CHAT_WEB_SEARCH_MODEL=perplexity/sonar
    - CHAT_ALLOWED_MODELS=openai/gpt-oss-120b,google/gemini-2.5-flash
    - PRODUCT_FALLBACK_LIMIT=10
    """
    allowed = _split_csv(os.getenv("CHAT_ALLOWED_MODELS", ""))

    return ChatConfig(
        max_steps=max(1, min(_env_int("CHAT_MAX_STEPS", 5), 10)),
        request_timeout_seconds=max(1.0, min(_env_float("CHAT_REQUEST_TIMEOUT_SECONDS", 30.0), 300.0)),
        default_model=(os.getenv("CHAT_DEFAULT_MODEL") or "").strip() or DEFAULT_MODEL,
        web_search_model=(os.getenv("CHAT_WEB_SEARCH_MODEL") or "").strip() or WEB_SEARCH_MODEL,
        allowed_models=set(allowed) if allowed else None,
        product_fallback_limit=max(1, min(_env_int("PRODUCT_FALLBACK_LIMIT", 10), 50)),
    )


@dataclass(frozen=True)
class StoreConfig:
    # "postgres" or "memory"
    backend: str
    db_auto_migrate: bool

    # Postgres connection (either dsn or parts)
    postgres_dsn: Optional[str]
    postgres_host: Optional[str]
    postgres_port: int
    postgres_db: Optional[str]
    postgres_user: Optional[str]
    postgres_password: Optional[str]


def load_store_config() -> StoreConfig:
    dsn = (os.getenv("POSTGRES_DSN") or "").strip() or None
    host = (os.getenv("POSTGRES_HOST") or "").strip() or None
    port = _env_int("POSTGRES_PORT", 5432)
    db = (os.getenv("POSTGRES_DB") or "").strip() or None
    user = (os.getenv("POSTGRES_USER") or "").strip() or None
    pw = (os.getenv("POSTGRES_PASSWORD") or "").strip() or None

    backend = (os.getenv("INSURANCE_STORE") or "").strip().lower()
    if backend not in ("postgres", "memory"):
        backend = "postgres" if (dsn or host) else "memory"

    return StoreConfig(
        backend=backend,
        db_auto_migrate=_env_bool("DB_AUTO_MIGRATE", False),
        postgres_dsn=dsn,
        postgres_host=host,
        postgres_port=port,
        postgres_db=db,
        postgres_user=user,
        postgres_password=pw,
    )


def build_postgres_dsn(cfg: StoreConfig) -> Optional[str]:
    if cfg.postgres_dsn:
        return cfg.postgres_dsn
    if not (cfg.postgres_host and cfg.postgres_db and cfg.postgres_user and cfg.postgres_password):
        return None
    # psycopg's conninfo builder quotes/escapes special characters in passwords.
    from psycopg.conninfo import make_conninfo

    return make_conninfo(
        host=cfg.postgres_host,
        port=cfg.postgres_port,
        dbname=cfg.postgres_db,
        user=cfg.postgres_user,
        password=cfg.postgres_password,
    )


@dataclass(frozen=True)
class QuoteApiConfig:
    url: str
    timeout_seconds: int = 20


DEFAULT_QUOTE_API_URL = "http://localhost:8090/api/auto/devis"


def load_quote_api_config() -> QuoteApiConfig:
    return QuoteApiConfig(
        url=(os.getenv("QUOTE_API_URL") or "").strip() or DEFAULT_QUOTE_API_URL,
        timeout_seconds=max(1, min(_env_int("QUOTE_API_TIMEOUT_SECONDS", 20), 120)),
    )
