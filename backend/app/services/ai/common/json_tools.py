"""Strict JSON parsing of LLM replies."""

from __future__ import annotations

import json
import re

from app.core.errors import ParseError

_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_FENCE_CLOSE_RE = re.compile(r"\r?\n?[ \t]*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding triple-backtick fence (``` or ```json) from *text*."""
    stripped = (text or "").strip()
    if stripped.startswith("```"):
        stripped = _FENCE_OPEN_RE.sub("", stripped, count=1)
        stripped = _FENCE_CLOSE_RE.sub("", stripped, count=1)
    return stripped.strip()


def parse_json_object(text: str) -> dict:
    """Parse *text* as exactly one JSON object, after fence stripping.

    Prose around the object is not tolerated: the model is told to reply with
    JSON only, and anything else is treated as a malformed reply.
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ParseError("Empty model reply")
    try:
        parsed = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ParseError(f"Model reply is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ParseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
