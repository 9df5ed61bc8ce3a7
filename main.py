#!/usr/bin/env python3
"""
BH Assurance chat assistant - streaming tool-using chat over insurance data.
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "info").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)

#
# NOTE: Keep package imports lazy (inside functions) so `--serve` does not pull
# LangChain provider packages until the first chat request.
#


def chat_once(message: str, *, model: Optional[str] = None, web_search: bool = False) -> int:
    """Run one chat turn and print the streamed answer to stdout."""
    import asyncio

    from insurance_agent.chat.stream_adapter import run_chat_request, stream_sse
    from insurance_agent.chat.types import ChatRequest, UIMessage
    from insurance_agent.tools.context import build_tool_context

    ctx = build_tool_context()
    req = ChatRequest(
        messages=[UIMessage(role="user", parts=[{"type": "text", "text": message}])],
        model=model,
        webSearch=web_search,
    )

    async def _run() -> int:
        rc = 0
        events = run_chat_request(req, ctx=ctx)
        async for frame in stream_sse(events, timeout_seconds=ctx.config.request_timeout_seconds):
            event_type, data = _parse_frame(frame)
            if event_type == "text-delta":
                print(data.get("delta", ""), end="", flush=True)
            elif event_type == "tool-input-start":
                print(f"\n[{data.get('title')}...]", file=sys.stderr)
            elif event_type == "tool-output-error":
                print(f"[{data.get('toolName')}] {data.get('errorText')}", file=sys.stderr)
            elif event_type == "error":
                print(f"\n{data.get('errorText')}", file=sys.stderr)
                rc = 1
            elif event_type == "finish":
                print()
                logging.getLogger(__name__).info("Turn finished: %s", data)
        return rc

    return asyncio.run(_run())


def _parse_frame(frame: str) -> Tuple[str, Dict[str, Any]]:
    event_type, data = "", {}
    for line in frame.splitlines():
        if line.startswith("event: "):
            event_type = line[len("event: ") :]
        elif line.startswith("data: "):
            data = json.loads(line[len("data: ") :])
    return event_type, data


def run_single_tool(name: str, raw_args: str) -> int:
    """Execute one tool against the configured store and print its result as JSON."""
    import asyncio

    from insurance_agent.tools.context import build_tool_context
    from insurance_agent.tools.registry import run_tool

    try:
        args = json.loads(raw_args or "{}")
    except json.JSONDecodeError as e:
        print(f"Invalid --args JSON: {e}", file=sys.stderr)
        return 2
    res = asyncio.run(run_tool(name, args, build_tool_context()))
    if res.ok:
        print(json.dumps(res.output, indent=2, ensure_ascii=False))
        return 0
    print(json.dumps({"error": res.error, "kind": res.error_kind}, indent=2, ensure_ascii=False))
    return 1


def list_tools() -> None:
    from insurance_agent.tools.registry import TOOL_CATEGORIES, TOOLS

    for key, cat in TOOL_CATEGORIES.items():
        print(f"{cat['name']} ({key})")
        for name in cat["tools"]:
            t = TOOLS[name]
            print(f"  - {t.name}: {t.start_message}")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="BH Assurance chat assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the HTTP server (POST /api/chat streams SSE)
  python main.py --serve --port 8080

  # One chat turn from the terminal
  python main.py --chat "Quel est le statut de mon sinistre SIN-2024-000245 ?"

  # Call one tool directly
  python main.py --tool getPaymentStatus --args '{"numContrat": "BH-AUTO-2024-001234"}'
        """,
    )

    parser.add_argument("--serve", action="store_true", help="Run the HTTP chat server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")
    parser.add_argument("--chat", metavar="MESSAGE", help="Send one message and print the streamed answer")
    parser.add_argument("--model", help="Model id for --chat (e.g. openai/gpt-oss-120b)")
    parser.add_argument("--web-search", action="store_true", help="Use the web-search model for --chat")
    parser.add_argument("--tool", metavar="NAME", help="Run a single tool (see --list-tools)")
    parser.add_argument("--args", default="{}", help="JSON arguments for --tool (default: {})")
    parser.add_argument("--list-tools", action="store_true", help="List available tools by category")
    parser.add_argument("--migrate", action="store_true", help="Apply pending Postgres migrations and exit")
    parser.add_argument("--dry-run", action="store_true", help="With --migrate: only list pending migrations")

    args = parser.parse_args()

    try:
        if args.serve:
            from insurance_agent.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return

        if args.migrate:
            from insurance_agent.store.migrate import main as migrate_main

            sys.exit(migrate_main(dry_run=args.dry_run))

        if args.list_tools:
            list_tools()
            return

        if args.tool:
            sys.exit(run_single_tool(args.tool, args.args))

        if args.chat:
            sys.exit(chat_once(args.chat, model=args.model, web_search=args.web_search))

        # No arguments provided
        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
