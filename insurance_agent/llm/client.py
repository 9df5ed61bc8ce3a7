"""
Model selection and LangChain chat-model construction.

Models are addressed as `<provider>/<model>` ids (the same ids the chat UI
offers). Routing:
- anthropic/*  -> `langchain_anthropic.ChatAnthropic` (ANTHROPIC_API_KEY)
- google/*     -> `langchain_google_vertexai.ChatVertexAI` (GOOGLE_CLOUD_PROJECT,
                  GOOGLE_CLOUD_LOCATION, Application Default Credentials)
- anything else -> `langchain_openai.ChatOpenAI` against an OpenAI-compatible
                  AI gateway (AI_GATEWAY_API_KEY, AI_GATEWAY_BASE_URL), with
                  the full id as model name

Env:
- LLM_MOCK=1: deterministic stub model, no external calls
- LLM_TEMPERATURE (default 0.2), LLM_MAX_OUTPUT_TOKENS (default 2048),
  LLM_TIMEOUT_SECONDS (default 30)

Construction never raises: `_get_llm_instance` returns `(llm, err_code)`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from insurance_agent.config import ChatConfig, _env_float, _env_int

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_BASE_URL = "https://ai-gateway.vercel.sh/v1"

# Models offered to the chat UI (GET /api/models).
MODEL_CATALOG: List[Dict[str, str]] = [
    {"name": "GPT OSS", "value": "openai/gpt-oss-120b"},
    {"name": "Command R", "value": "cohere/command-r"},
    {"name": "Gemini 2.5 flash", "value": "google/gemini-2.5-flash"},
    {"name": "Deepseek R1", "value": "deepseek/deepseek-r1"},
]


@dataclass(frozen=True)
class LLMConfig:
    temperature: float
    max_output_tokens: int
    timeout: int


def _load_config() -> LLMConfig:
    return LLMConfig(
        temperature=max(0.0, min(_env_float("LLM_TEMPERATURE", 0.2), 1.0)),
        max_output_tokens=max(64, min(_env_int("LLM_MAX_OUTPUT_TOKENS", 2048), 8192)),
        timeout=max(5, min(_env_int("LLM_TIMEOUT_SECONDS", 30), 300)),
    )


def resolve_model_id(requested: Optional[str], *, web_search: bool, cfg: ChatConfig) -> str:
    """
    Pick the model for a request: the web-search model when `web_search` is set,
    else the requested id when allowed, else the configured default.
    """
    if web_search:
        return cfg.web_search_model
    req = (requested or "").strip()
    if not req:
        return cfg.default_model
    if cfg.allowed_models is not None and req not in cfg.allowed_models:
        logger.warning("Requested model %s is not allowed; using %s", req, cfg.default_model)
        return cfg.default_model
    return req


def provider_for_model(model_id: str) -> str:
    prefix = (model_id or "").split("/", 1)[0].strip().lower()
    if prefix == "anthropic":
        return "anthropic"
    if prefix in ("google", "vertex", "vertexai"):
        return "vertexai"
    return "gateway"


def _bare_model_name(model_id: str) -> str:
    return model_id.split("/", 1)[1] if "/" in model_id else model_id


def _vertex_project_location_required() -> Tuple[Optional[str], Optional[str], Optional[str]]:
    project = (os.getenv("GOOGLE_CLOUD_PROJECT") or "").strip() or None
    location = (os.getenv("GOOGLE_CLOUD_LOCATION") or "").strip() or None
    if not project:
        return None, None, "missing_gcp_project"
    if not location:
        return None, None, "missing_gcp_location"
    return project, location, None


def _classify_error(e: BaseException, *, model: str) -> str:
    msg = str(e or "").replace("\n", " ").strip()
    up = msg.upper()

    # Status codes before generic keywords to avoid false matches.
    if isinstance(e, TimeoutError):
        return "timeout"
    if "408" in msg:
        return "timeout"
    if "504" in msg:
        return "gateway_timeout"
    if "DEADLINE_EXCEEDED" in up or "DEADLINE EXCEEDED" in up:
        return "deadline_exceeded"
    if "TIMEOUT" in up or "TIMED OUT" in up:
        return "timeout"

    if "PERMISSION_DENIED" in up or "403" in msg:
        return "permission_denied"
    if "UNAUTHENTICATED" in up or "401" in msg:
        return "unauthenticated"
    if "404" in msg or "NOT FOUND" in up:
        return f"model_not_found:{model}"
    if "RATE" in up and "LIMIT" in up:
        return "rate_limited"
    if "429" in msg or "OVERLOADED" in up:
        return "rate_limited"
    if "MAX_TOKENS" in up or "MAX TOKENS" in up or "CONTEXT LENGTH" in up:
        return "max_tokens_truncated"
    if "API_KEY" in up and ("INVALID" in up or "MISSING" in up):
        return "unauthenticated"

    return f"llm_error:{type(e).__name__}"


def _get_llm_instance(model_id: str, cfg: LLMConfig) -> Tuple[Any, Optional[str]]:
    """
    Returns: (llm_instance, error_code). Exactly one is None.
    """
    provider = provider_for_model(model_id)

    if provider == "vertexai":
        project, location, err = _vertex_project_location_required()
        if err:
            return None, err

        # Preflight ADC so we return stable error codes.
        try:
            import google.auth  # type: ignore[import-not-found]
        except Exception:
            return None, "adc_import_failed"
        try:
            google.auth.default(scopes=["https://www.googleapis.com/auth/cloud-platform"])
        except Exception:
            return None, "missing_adc_credentials"

        try:
            from langchain_google_vertexai import ChatVertexAI  # type: ignore[import-not-found]
        except Exception:
            return None, "sdk_import_failed:langchain_google_vertexai"

        llm = ChatVertexAI(
            model=_bare_model_name(model_id),
            temperature=cfg.temperature,
            max_output_tokens=cfg.max_output_tokens,
            project=str(project),
            location=str(location),
            timeout=cfg.timeout,
            max_retries=0,
        )
        return llm, None

    if provider == "anthropic":
        api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        if not api_key:
            return None, "missing_api_key"
        try:
            from langchain_anthropic import ChatAnthropic  # type: ignore[import-not-found]
        except Exception:
            return None, "sdk_import_failed:langchain_anthropic"

        llm = ChatAnthropic(
            model=_bare_model_name(model_id),
            temperature=cfg.temperature,
            max_tokens=cfg.max_output_tokens,
            anthropic_api_key=api_key,
            timeout=cfg.timeout,
            max_retries=0,
        )
        return llm, None

    api_key = (os.getenv("AI_GATEWAY_API_KEY") or "").strip()
    if not api_key:
        return None, "missing_api_key"
    try:
        from langchain_openai import ChatOpenAI  # type: ignore[import-not-found]
    except Exception:
        return None, "sdk_import_failed:langchain_openai"

    llm = ChatOpenAI(
        model=model_id,
        temperature=cfg.temperature,
        max_tokens=cfg.max_output_tokens,
        api_key=api_key,
        base_url=(os.getenv("AI_GATEWAY_BASE_URL") or "").strip() or DEFAULT_GATEWAY_BASE_URL,
        timeout=cfg.timeout,
        max_retries=0,
    )
    return llm, None
