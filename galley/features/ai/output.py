"""Coercion of raw model text into JSON."""

import json
import re
from typing import Any

from galley.core.errors import ModelOutputError

_JSON_FENCE_RE = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE_RE = re.compile(r"```\s*")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fence delimiters and surrounding whitespace."""
    text = _JSON_FENCE_RE.sub("", text or "")
    text = _FENCE_RE.sub("", text)
    return text.strip()


def _outermost_span(text: str, open_char: str, close_char: str) -> str | None:
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def extract_json(text: str) -> Any:
    """Parse the model's answer as JSON.

    The whole stripped text is tried first, then the outermost object span,
    then the outermost array span.
    """
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    for open_char, close_char in (("{", "}"), ("[", "]")):
        span = _outermost_span(cleaned, open_char, close_char)
        if span is None:
            continue
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            continue

    raise ModelOutputError("Model response is not valid JSON")
