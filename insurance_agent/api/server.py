"""FastAPI server for the insurance assistant chat.

Endpoints:
- POST /api/chat         streaming chat turn (Server-Sent Events)
- GET  /api/tools        tool catalog (categories + input JSON schemas)
- GET  /api/suggestions  starter prompts for the chat UI
- GET  /api/models       selectable models
- GET  /healthz
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import StreamingResponse

from insurance_agent.chat.stream_adapter import run_chat_request, stream_sse
from insurance_agent.chat.suggestions import list_suggestions
from insurance_agent.chat.types import ChatRequest
from insurance_agent.llm.client import MODEL_CATALOG
from insurance_agent.llm.streaming import ChatModel, get_chat_model
from insurance_agent.tools.context import ToolContext, build_tool_context
from insurance_agent.tools.registry import TOOL_CATEGORIES, TOOLS

logger = logging.getLogger(__name__)

app = FastAPI(title="BH Assurance chat assistant")

_ctx_lock = threading.Lock()


def get_tool_context() -> ToolContext:
    """Shared, read-only tool context; built on first use."""
    ctx = getattr(app.state, "tool_context", None)
    if ctx is not None:
        return ctx
    with _ctx_lock:
        ctx = getattr(app.state, "tool_context", None)
        if ctx is None:
            ctx = build_tool_context()
            app.state.tool_context = ctx
    return ctx


def _model_factory() -> Callable[[str], ChatModel]:
    return getattr(app.state, "model_factory", None) or get_chat_model


@app.on_event("startup")
def _startup_maybe_migrate_db() -> None:
    """
    Optional dev behavior: auto-apply DB migrations when DB_AUTO_MIGRATE=1.

    This should never prevent the server from starting; failures are logged.
    """
    try:
        from insurance_agent.store.migrate import maybe_auto_migrate

        did_attempt, msg = maybe_auto_migrate()
        if did_attempt:
            logger.info("DB migrations: %s", msg)
    except Exception as e:
        logger.warning("DB migrations: startup auto-migrate failed: %s", str(e))


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/api/chat")
async def chat(req: ChatRequest) -> StreamingResponse:
    """Streaming chat endpoint using Server-Sent Events."""
    ctx = get_tool_context()
    events = run_chat_request(req, ctx=ctx, model_factory=_model_factory())
    return StreamingResponse(
        stream_sse(events, timeout_seconds=ctx.config.request_timeout_seconds, message_id=req.id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@app.get("/api/tools")
def tools_catalog() -> Dict[str, Any]:
    return {
        "categories": {k: dict(v) for k, v in TOOL_CATEGORIES.items()},
        "tools": [
            {
                "name": t.name,
                "description": t.description,
                "category": t.category,
                "inputSchema": t.json_schema(),
            }
            for t in TOOLS.values()
        ],
    }


@app.get("/api/suggestions")
def suggestions(
    category: Optional[List[str]] = Query(None),
    limit: Optional[int] = Query(None, ge=0),
) -> Dict[str, Any]:
    items = list_suggestions(categories=category, limit=limit)
    return {"suggestions": [s.model_dump() for s in items]}


@app.get("/api/models")
def models() -> Dict[str, Any]:
    cfg = get_tool_context().config
    return {
        "models": list(MODEL_CATALOG),
        "default": cfg.default_model,
        "webSearch": cfg.web_search_model,
    }


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting chat server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
