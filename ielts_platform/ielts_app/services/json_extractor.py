"""Pull a JSON document out of free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_CLOSERS = {"{": "}", "[": "]"}


class ExtractionError(ValueError):
    """Raised when no plausible JSON document can be recovered from model text."""


def _balanced_span(text: str, opener: str) -> str | None:
    """Return the first balanced `opener ... closer` span, skipping string literals."""

    closer = _CLOSERS[opener]
    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find(opener, start + 1)
    return None


def extract_json(text: str) -> str:
    """Return the JSON substring of ``text``.

    Order: first fenced block whose body starts with ``{`` or ``[``, then the
    first top-level object span, then the first top-level array span, then the
    trimmed text itself when it starts like JSON.
    """

    if not text or not isinstance(text, str):
        raise ExtractionError("Empty or invalid response from AI")

    for match in _FENCE_RE.finditer(text):
        body = match.group(1).strip()
        if body.startswith(("{", "[")):
            return body

    for opener in ("{", "["):
        span = _balanced_span(text, opener)
        if span is not None:
            return span

    trimmed = text.strip()
    if trimmed.startswith(("{", "[")):
        return trimmed
    raise ExtractionError("Could not extract valid JSON from AI response")


def parse_json_payload(text: str) -> Any:
    """Extract and decode; decoding failures surface as ``ExtractionError``."""

    raw = extract_json(text)
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"Invalid JSON from AI: {exc.msg} at position {exc.pos}") from exc
