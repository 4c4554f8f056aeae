"""Utility helpers for the coffee shop tournament."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Optional

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def strip_thinking_tokens(text: str) -> str:
    """Remove <think>...</think> blocks if present."""
    if not text:
        return text
    while True:
        start = text.find("<think>")
        if start == -1:
            break
        end = text.find("</think>", start)
        if end == -1:
            break
        text = text[:start] + text[end + len("</think>") :]
    return text


def extract_json_text(text: str) -> Optional[str]:
    """Pull a JSON object out of an LLM reply.

    A fenced code block wins; otherwise the span from the first ``{`` to
    the last ``}`` is returned. None when neither is present.
    """
    if not text:
        return None
    match = _FENCED_BLOCK.search(text)
    if match and match.group(1).strip().startswith("{"):
        return match.group(1).strip()
    s, e = text.find("{"), text.rfind("}")
    if s != -1 and e != -1 and e > s:
        return text[s : e + 1]
    return None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def clamp_int(value: float, low: int = 1, high: int = 10) -> int:
    # half-up, so 8.5 -> 9
    return max(low, min(high, int(math.floor(value + 0.5))))
