from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Literal, Optional, Tuple

ToolOutcome = Literal["ok", "empty", "error"]


def _truncate(s: str, n: int) -> str:
    txt = (s or "").strip()
    if len(txt) <= n:
        return txt
    return txt[: max(0, n - 1)].rstrip() + "…"


def tool_call_key(tool: str, args: Dict[str, Any]) -> str:
    """
    Short stable fingerprint for (tool, args); used to correlate log lines.
    """
    payload = json.dumps(
        {"tool": str(tool or "").strip(), "args": args or {}},
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        default=str,
    )
    h = hashlib.blake2s(payload.encode("utf-8"), digest_size=6).hexdigest()
    return f"{str(tool or '').strip()}:{h}"


def compact_args_for_log(args: Any, *, max_keys: int = 8, max_value_chars: int = 60) -> Dict[str, Any]:
    if not isinstance(args, dict):
        return {}
    out: Dict[str, Any] = {}
    for i, (k, v) in enumerate(args.items()):
        if i >= max_keys:
            break
        out[str(k)] = _truncate(v, max_value_chars) if isinstance(v, str) else v
    return out


def summarize_tool_result(*, tool: str, ok: bool, error: Optional[str], result: Any) -> Tuple[ToolOutcome, str]:
    """
    Return (outcome, one-line summary) for logs and stream metadata.

    `result` is the wire (camelCase) form of a tool output.
    """
    t = str(tool or "").strip()
    if not ok:
        return "error", _truncate(f"{t}: error {str(error or '').strip() or 'unknown'}", 160)
    if not isinstance(result, dict):
        return "ok", f"{t}: ok"

    if t == "getInsuranceProductInfo":
        n = len(result.get("produits") or [])
        return ("empty" if n == 0 else "ok"), f"products: {result.get('match')} ({n})"

    if t == "getClientPolicyInfo":
        n = len(result.get("contrats") or [])
        kind = "individual" if result.get("personnePhysique") else "organization"
        return "ok", f"client {result.get('refPersonne')}: {kind}, {n} contract(s)"

    if t == "checkClaimCoverage":
        if result.get("isCovered"):
            return "ok", _truncate(
                f"coverage {result.get('numContrat')}: covered {result.get('coveragePercentage')}%"
                f" payout={result.get('estimatedPayout')}",
                160,
            )
        return "ok", f"coverage {result.get('numContrat')}: not covered"

    if t == "getPaymentStatus":
        n = len(result.get("contrats") or [])
        if n == 0:
            return "empty", "payments: empty (0 contracts)"
        return "ok", f"payments: {n} contract(s)"

    if t == "getClaimStatus":
        return "ok", f"claim {result.get('numSinistre')}: {result.get('status')}"

    if t == "generateQuote":
        prime = result.get("prime") or {}
        return "ok", f"quote {result.get('quoteId')}: annual={prime.get('annuelle')}"

    return "ok", f"{t}: ok"
