"""Optional LangSmith tracing for model streams and tool executions (env-gated)."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Optional

from insurance_agent.config import _env_bool, _split_csv

logger = logging.getLogger(__name__)


def should_trace_run_name(name: str) -> bool:
    """
    Return False if `name` matches LANGSMITH_TRACE_EXCLUDE.

    Entries ending in '*' match by prefix, e.g. "tool:getPayment*".
    """
    n = str(name or "").strip()
    if not n:
        return True
    for pat in _split_csv(os.getenv("LANGSMITH_TRACE_EXCLUDE", "")):
        if pat.endswith("*"):
            if n.startswith(pat[:-1]):
                return False
        elif n == pat:
            return False
    return True


def _api_key() -> Optional[str]:
    return (os.getenv("LANGSMITH_API_KEY") or "").strip() or (os.getenv("LANGCHAIN_API_KEY") or "").strip() or None


def tracing_enabled() -> bool:
    want = _env_bool("LANGSMITH_TRACING", False) or _env_bool("LANGCHAIN_TRACING_V2", False)
    if not want:
        return False
    if not _api_key():
        logger.warning(
            "LangSmith tracing requested but no API key found (LANGSMITH_API_KEY/LANGCHAIN_API_KEY). Tracing disabled."
        )
        return False
    return True


def _project_name() -> str:
    return (
        (os.getenv("LANGSMITH_PROJECT") or "").strip()
        or (os.getenv("LANGCHAIN_PROJECT") or "").strip()
        or "insurance-agent"
    )


def _tags() -> Optional[List[str]]:
    tags = _split_csv(os.getenv("LANGSMITH_TAGS", ""))
    return tags or None


def build_langsmith_callbacks() -> List[Any]:
    """Returns [] when tracing is disabled or the tracer cannot be built."""
    if not tracing_enabled():
        return []
    try:
        from langchain_core.tracers.langchain import LangChainTracer  # type: ignore[import-not-found]
        from langsmith import Client  # type: ignore[import-not-found]
    except Exception as e:
        logger.warning("LangSmith tracing enabled but dependencies unavailable: %s", type(e).__name__)
        return []
    return [LangChainTracer(project_name=_project_name(), client=Client(api_key=_api_key()), tags=_tags())]


def build_invoke_config(*, kind: str, run_name: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """RunnableConfig dict for a LangChain call; {} when tracing is off."""
    if not tracing_enabled():
        return {}

    prefix = (os.getenv("LANGSMITH_RUN_NAME_PREFIX") or "").strip()
    md = dict(metadata or {})
    md["kind"] = str(kind or "unknown")

    cfg: Dict[str, Any] = {"metadata": md, "run_name": f"{prefix}{run_name}"}
    callbacks = build_langsmith_callbacks()
    if callbacks:
        cfg["callbacks"] = callbacks
    tags = _tags()
    if tags:
        cfg["tags"] = tags
    return cfg


# Tool arguments that identify a client; masked in span inputs unless LANGSMITH_SEND_PII=1.
PERSONAL_ARG_FIELDS = frozenset(
    {
        "nomPrenom",
        "raisonSociale",
        "matriculeFiscale",
        "numPieceIdentite",
        "dateNaissance",
        "lieuNaissance",
    }
)


def redact_tool_args(args: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of `args` with personal identifiers masked, nested objects included."""
    if _env_bool("LANGSMITH_SEND_PII", False):
        return dict(args or {})
    out: Dict[str, Any] = {}
    for k, v in (args or {}).items():
        if isinstance(v, dict):
            out[k] = redact_tool_args(v)
        elif k in PERSONAL_ARG_FIELDS and v not in (None, ""):
            out[k] = "***"
        else:
            out[k] = v
    return out


def trace_tool_call(*, tool: str, args: Dict[str, Any], fn: Callable[[], Any]) -> Any:
    """
    Execute `fn()` exactly once, inside a `tool:<name>` LangSmith span when tracing is on.

    Errors raised by `fn` propagate unchanged. Tracing failures only cost the span.
    """
    if not tracing_enabled() or not (should_trace_run_name(f"tool:{tool}") and should_trace_run_name(str(tool))):
        return fn()

    try:
        from langsmith.run_helpers import traceable  # type: ignore[import-not-found]
    except Exception:
        return fn()

    state: Dict[str, Any] = {"ran": False}

    def _run() -> Any:
        state["ran"] = True
        return fn()

    @traceable(name=f"tool:{tool}", run_type="tool")
    def _wrapped(_tool: str, _args: Dict[str, Any]):
        return _run()

    try:
        return _wrapped(str(tool), redact_tool_args(args))
    except Exception:
        if state["ran"]:
            raise
        logger.debug("tool span setup failed for %s; running untraced", tool)
        return fn()
